"""
Presence checks for robots.txt and sitemap.xml at the site root
"""

import logging
from typing import Optional
from urllib.parse import urljoin, urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import CollectorConfig
from .models import SiteFiles


class SiteFileProbe:
    """Checks the crawl-control files of a site with plain HTTP requests"""

    def __init__(self, config: Optional[CollectorConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or CollectorConfig()
        self.logger = logging.getLogger(__name__)
        self.session = session or self._build_session()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({'User-Agent': self.config.user_agent})
        return session

    def _exists(self, url: str) -> bool:
        try:
            response = self.session.get(url, timeout=self.config.timeout_ms / 1000, allow_redirects=True)
        except requests.RequestException as e:
            self.logger.warning(f"Error fetching {url}: {e}")
            return False

        if response.status_code == 200:
            self.logger.debug(f"Found {url}")
            return True
        self.logger.debug(f"{url} returned HTTP {response.status_code}")
        return False

    def probe(self, url: str) -> SiteFiles:
        """Blocking; run it in a worker thread from async code"""
        parsed = urlparse(url)
        root = f"{parsed.scheme}://{parsed.netloc}"
        return SiteFiles(
            robots_txt=self._exists(urljoin(root, '/robots.txt')),
            sitemap=self._exists(urljoin(root, '/sitemap.xml')),
        )

    def close(self):
        self.session.close()
