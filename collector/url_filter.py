"""
URL normalization and frontier filtering
"""

from typing import List, Optional, Set, Tuple
from urllib.parse import urldefrag, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup


DEFAULT_PORTS = {'http': 80, 'https': 443}

# Resources that are not HTML pages
NON_PAGE_EXTENSIONS = (
    '.jpg', '.jpeg', '.png', '.gif', '.bmp', '.svg', '.webp', '.ico',  # Images
    '.css', '.js',  # Stylesheets and scripts
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',  # Documents
    '.zip', '.rar', '.tar', '.gz',  # Archives
    '.mp4', '.mp3', '.avi', '.mov', '.wmv',  # Media
    '.xml', '.json', '.txt',  # Data files
)

SKIPPED_SCHEMES = ('javascript:', 'mailto:', 'tel:', 'data:')


def origin_of(url: str) -> Tuple[str, str, int]:
    """Return (scheme, host, port) with the scheme's default port filled in"""
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    try:
        port = parsed.port
    except ValueError:
        port = None
    return scheme, (parsed.hostname or '').lower(), port or DEFAULT_PORTS.get(scheme, 0)


def same_origin(url: str, other: str) -> bool:
    return origin_of(url) == origin_of(other)


def normalize_url(url: str) -> str:
    """Drop the fragment, lower-case scheme and host, and give bare hosts a '/' path"""
    url, _ = urldefrag(url.strip())
    parsed = urlparse(url)
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path or '/',
        parsed.params,
        parsed.query,
        '',
    ))


def resolve_href(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve an href against the page URL, or None when it is not a navigable link"""
    if not href:
        return None
    href = href.strip()
    if not href or href.lower().startswith(SKIPPED_SCHEMES):
        return None
    try:
        return urljoin(base_url, href)
    except ValueError:
        return None


def discover_links(html: str, base_url: str) -> List[str]:
    """Extract absolute link targets from a page in document order, without duplicates"""
    soup = BeautifulSoup(html or '', 'html.parser')
    links = []
    seen: Set[str] = set()

    for anchor in soup.find_all('a', href=True):
        absolute_url = resolve_href(anchor['href'], base_url)
        if absolute_url is None or absolute_url in seen:
            continue
        seen.add(absolute_url)
        links.append(absolute_url)

    return links


class UrlFilter:
    """Decides which discovered URLs join the crawl frontier"""

    def __init__(self, seed_url: str, max_url_length: int = 500):
        self.seed_url = normalize_url(seed_url)
        self.origin = origin_of(self.seed_url)
        self.max_url_length = max_url_length

    def is_internal(self, url: str) -> bool:
        return origin_of(url) == self.origin

    def is_crawlable(self, url: str) -> bool:
        """Check if URL is a same-origin HTML page worth visiting"""
        parsed = urlparse(url)

        # Must have netloc and valid scheme
        if not parsed.netloc or parsed.scheme not in ('http', 'https'):
            return False

        if len(url) > self.max_url_length:
            return False

        if parsed.path.lower().endswith(NON_PAGE_EXTENSIONS):
            return False

        return self.is_internal(url)

    def frontier_candidates(self, links: List[str], visited: Set[str]) -> List[str]:
        """Normalize links and keep the crawlable, unvisited ones in order"""
        candidates = []
        seen: Set[str] = set()

        for link in links:
            url = normalize_url(link)
            if url in visited or url in seen:
                continue
            if not self.is_crawlable(url):
                continue
            seen.add(url)
            candidates.append(url)

        return candidates
