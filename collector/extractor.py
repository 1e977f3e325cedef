"""
Page extractor: turns one loaded page into PageData

The browser supplies the rendered DOM and navigation timings; every DOM query
runs over that snapshot with BeautifulSoup. Each field is extracted on its own
so that a malformed fragment degrades that field to its default instead of
failing the page.
"""

import copy
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .analytics import ScriptTag, detect_analytics
from .classifier import classify
from .config import CollectorConfig
from .keywords import extract_keywords
from .models import (
    AnalyticsData,
    Breadcrumb,
    BusinessProfile,
    ButtonData,
    FormData,
    FormInputData,
    Headings,
    HttpInfo,
    ImageData,
    KeywordData,
    LinkData,
    MenuItem,
    MetaTagEntry,
    MetaTags,
    PageAccessibility,
    PageContent,
    PageData,
    PageNavigation,
    PagePerformance,
    PageSEO,
    PageTechnical,
    SemanticTagDetail,
    SemanticTags,
    StructuredData,
)
from .url_filter import origin_of, resolve_href


logger = logging.getLogger(__name__)

T = TypeVar('T')

HEADING_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']

SEMANTIC_TAG_NAMES = (
    'article', 'section', 'nav', 'header', 'footer', 'aside', 'main',
    'figure', 'figcaption', 'time', 'address', 'blockquote', 'details', 'summary',
)

NAV_SELECTORS = (
    'nav a',
    'header nav a',
    '.navbar a',
    '.navigation a',
    '[role="navigation"] a',
)

BREADCRUMB_SELECTORS = (
    '[aria-label="breadcrumb"] a',
    '[aria-label="Breadcrumb"] a',
    '.breadcrumb a',
    '.breadcrumbs a',
)

NON_CONTENT_TAGS = ['script', 'style', 'noscript', 'iframe', 'template']

NEXT_FLIGHT_DATA = re.compile(r'self\.__next_f\.push\(\[.*?\]\)')
WHITESPACE = re.compile(r'\s+')

# Signatures of pages served by bot protection instead of the real content
BLOCK_PATTERNS = (
    re.compile(r'access\s+denied', re.IGNORECASE),
    re.compile(r'access\s+forbidden', re.IGNORECASE),
    re.compile(r'403\s+forbidden', re.IGNORECASE),
    re.compile(r'you\s+have\s+been\s+blocked', re.IGNORECASE),
    re.compile(r'your\s+access\s+has\s+been\s+blocked', re.IGNORECASE),
    re.compile(r'bot\s+detected\s+and\s+blocked', re.IGNORECASE),
    re.compile(r'cloudflare\s+ray\s+id', re.IGNORECASE),
    re.compile(r'checking\s+your\s+browser\s+before\s+accessing', re.IGNORECASE),
    re.compile(r'ddos\s+protection\s+active', re.IGNORECASE),
    re.compile(r'rate\s+limit\s+exceeded', re.IGNORECASE),
)

TIMING_SCRIPT = """
() => {
  const nav = performance.getEntriesByType('navigation')[0];
  const paint = performance.getEntriesByType('paint');
  const fcp = paint.find((entry) => entry.name === 'first-contentful-paint');
  if (!nav) {
    return { loadTime: 0, domContentLoaded: 0, firstContentfulPaint: fcp ? fcp.startTime : 0 };
  }
  const loadEnd = nav.loadEventEnd || nav.domContentLoadedEventEnd;
  return {
    loadTime: Math.max(0, loadEnd - nav.startTime),
    domContentLoaded: Math.max(0, nav.domContentLoadedEventEnd - nav.startTime),
    firstContentfulPaint: fcp ? fcp.startTime : 0,
  };
}
"""


def detect_block_page(title: str, text: str) -> Optional[str]:
    """Return the matched block signature, or None for a normal page"""
    content = f"{title} {text}"
    for pattern in BLOCK_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(0)
    return None


def _safe(label: str, func: Callable[[], T], default: T) -> T:
    try:
        return func()
    except Exception as e:
        logger.debug(f"Extraction of {label} failed: {e}")
        return default


def _text(element) -> str:
    return WHITESPACE.sub(' ', element.get_text(' ', strip=True)).strip()


def _int_attr(value: Any) -> int:
    digits = re.match(r'\s*(\d+)', str(value or ''))
    return int(digits.group(1)) if digits else 0


def _attr(element, name: str) -> str:
    value = element.get(name, '')
    if isinstance(value, list):
        return ' '.join(value)
    return value or ''


class _Document:
    """Parsed page plus lookups shared by the field extractors"""

    def __init__(self, html: str, url: str, origin: str):
        self.soup = BeautifulSoup(html or '', 'html.parser')
        self.url = url
        self.origin = origin_of(origin)
        self.meta: Dict[str, str] = {}
        for meta in self.soup.find_all('meta'):
            key = (meta.get('name') or meta.get('property') or '').strip().lower()
            if key and key not in self.meta:
                self.meta[key] = meta.get('content', '') or ''

    def meta_content(self, name: str) -> str:
        return self.meta.get(name.lower(), '')

    def title(self) -> str:
        head_title = self.soup.find('title')
        return _text(head_title) if head_title else ''

    def language(self) -> str:
        html_tag = self.soup.find('html')
        return _attr(html_tag, 'lang') if html_tag else ''

    def charset(self) -> str:
        charset_meta = self.soup.find('meta', charset=True)
        if charset_meta:
            return charset_meta['charset']
        for meta in self.soup.find_all('meta', attrs={'http-equiv': True}):
            if meta['http-equiv'].lower() == 'content-type':
                match = re.search(r'charset=([\w-]+)', meta.get('content', ''), re.IGNORECASE)
                if match:
                    return match.group(1)
        return ''

    def canonical(self) -> str:
        link = self.soup.find('link', rel='canonical')
        return _attr(link, 'href') if link else ''

    def absolute(self, value: str) -> str:
        return urljoin(self.url, value) if value else ''


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------

def _headings(doc: _Document) -> Headings:
    return Headings(**{tag: [_text(el) for el in doc.soup.find_all(tag)] for tag in HEADING_TAGS})


def _meta_tags(doc: _Document) -> MetaTags:
    m = doc.meta_content
    return MetaTags(
        title=doc.title(),
        description=m('description'),
        keywords=m('keywords'),
        author=m('author'),
        robots=m('robots'),
        viewport=m('viewport'),
        charset=doc.charset(),
        language=doc.language(),
        canonical=doc.canonical(),
        og_title=m('og:title'),
        og_description=m('og:description'),
        og_image=m('og:image'),
        og_url=m('og:url'),
        og_type=m('og:type'),
        og_site_name=m('og:site_name'),
        og_locale=m('og:locale'),
        twitter_card=m('twitter:card'),
        twitter_title=m('twitter:title'),
        twitter_description=m('twitter:description'),
        twitter_image=m('twitter:image'),
        twitter_site=m('twitter:site'),
        twitter_creator=m('twitter:creator'),
        geo_region=m('geo.region'),
        geo_placename=m('geo.placename'),
        geo_position=m('geo.position'),
        revisit_after=m('revisit-after'),
        rating=m('rating'),
        distribution=m('distribution'),
        copyright=m('copyright'),
        generator=m('generator'),
        application_name=m('application-name'),
        theme_color=m('theme-color'),
        color_scheme=m('color-scheme'),
        all_meta_tags=[
            MetaTagEntry(
                name=meta.get('name') or meta.get('property') or '',
                content=meta.get('content', '') or '',
                http_equiv=meta.get('http-equiv', '') or '',
            )
            for meta in doc.soup.find_all('meta')
        ],
    )


def _scripts(doc: _Document) -> List[ScriptTag]:
    return [
        ScriptTag(src=doc.absolute(_attr(script, 'src')), text=script.get_text() or '')
        for script in doc.soup.find_all('script')
    ]


def _clean_text(doc: _Document) -> str:
    body = copy.copy(doc.soup.body or doc.soup)
    for element in body.find_all(NON_CONTENT_TAGS):
        element.decompose()
    for element in body.select('[data-nextjs], [data-reactroot]'):
        element.decompose()
    text = NEXT_FLIGHT_DATA.sub('', body.get_text(' '))
    return WHITESPACE.sub(' ', text).strip()


def _images(doc: _Document) -> List[ImageData]:
    return [
        ImageData(
            src=doc.absolute(_attr(img, 'src')),
            alt=_attr(img, 'alt'),
            title=_attr(img, 'title'),
            width=_int_attr(img.get('width')),
            height=_int_attr(img.get('height')),
            loading=_attr(img, 'loading') or 'eager',
        )
        for img in doc.soup.find_all('img')
    ]


def _links(doc: _Document) -> List[LinkData]:
    links = []
    for anchor in doc.soup.find_all('a', href=True):
        href = resolve_href(anchor['href'], doc.url)
        if href is None:
            continue
        links.append(LinkData(
            href=href,
            text=_text(anchor),
            title=_attr(anchor, 'title'),
            target=_attr(anchor, 'target'),
            rel=_attr(anchor, 'rel'),
            is_internal=origin_of(href) == doc.origin,
            # Confirming a broken link needs a follow-up request
            is_broken=False,
        ))
    return links


def _input_label(doc: _Document, field_element) -> str:
    field_id = field_element.get('id')
    if field_id:
        label = doc.soup.find('label', attrs={'for': field_id})
        if label:
            return _text(label)
    parent_label = field_element.find_parent('label')
    return _text(parent_label) if parent_label else ''


def _forms(doc: _Document) -> List[FormData]:
    forms = []
    for form in doc.soup.find_all('form'):
        inputs = []
        for field_element in form.find_all(['input', 'select', 'textarea']):
            if field_element.name == 'input':
                input_type = (field_element.get('type') or 'text').lower()
            else:
                input_type = field_element.name
            inputs.append(FormInputData(
                type=input_type,
                name=_attr(field_element, 'name'),
                placeholder=_attr(field_element, 'placeholder'),
                required=field_element.has_attr('required'),
                label=_input_label(doc, field_element),
            ))

        submit = form.select_one('button[type="submit"], input[type="submit"]')
        submit_text = ''
        if submit is not None:
            submit_text = _text(submit) or _attr(submit, 'value')

        forms.append(FormData(
            action=doc.absolute(_attr(form, 'action')) or doc.url,
            method=(_attr(form, 'method') or 'get').lower(),
            inputs=inputs,
            submit_button=submit_text,
        ))
    return forms


def _buttons(doc: _Document) -> List[ButtonData]:
    buttons = []
    for button in doc.soup.select('button, input[type="button"], input[type="submit"]'):
        default_type = 'submit' if button.name == 'button' else 'button'
        buttons.append(ButtonData(
            text=_text(button) or _attr(button, 'value'),
            type=_attr(button, 'type') or default_type,
            css_class=_attr(button, 'class'),
            onclick=_attr(button, 'onclick'),
            aria_label=_attr(button, 'aria-label'),
        ))
    return buttons


def _schema_type(content: Any) -> str:
    if isinstance(content, list):
        types = [_schema_type(item) for item in content]
        return ', '.join(t for t in types if t != 'unknown') or 'unknown'
    if isinstance(content, dict):
        if '@type' in content:
            schema_type = content['@type']
            return ', '.join(schema_type) if isinstance(schema_type, list) else str(schema_type)
        if '@graph' in content:
            return _schema_type(content['@graph'])
    return 'unknown'


def _json_ld(doc: _Document) -> List[StructuredData]:
    blocks = []
    for script in doc.soup.find_all('script', type='application/ld+json'):
        try:
            content = json.loads(script.get_text() or '{}')
        except ValueError:
            blocks.append(StructuredData(type='unknown', content={}, valid=False, errors=['Invalid JSON']))
            continue
        blocks.append(StructuredData(type=_schema_type(content), content=content))
    return blocks


def _microdata(doc: _Document) -> List[StructuredData]:
    items = []
    for scope in doc.soup.find_all(attrs={'itemscope': True}):
        if scope.find_parent(attrs={'itemscope': True}) is not None:
            continue
        item_type = _attr(scope, 'itemtype')
        properties = {}
        for prop in scope.find_all(attrs={'itemprop': True}):
            value = prop.get('content') or prop.get('href') or prop.get('src') or _text(prop)
            properties.setdefault(_attr(prop, 'itemprop'), value)
        items.append(StructuredData(
            type=item_type.rstrip('/').rsplit('/', 1)[-1] if item_type else 'unknown',
            content={'itemtype': item_type, 'properties': properties},
            format='microdata',
        ))
    return items


def _heading_hierarchy(doc: _Document) -> bool:
    """True when heading levels never skip a level on the way down"""
    previous = 0
    for heading in doc.soup.find_all(HEADING_TAGS):
        level = int(heading.name[1])
        if level > previous + 1 and previous != 0:
            return False
        if previous == 0 and level != 1:
            return False
        previous = level
    return True


def _accessibility(doc: _Document) -> PageAccessibility:
    images = doc.soup.find_all('img')
    positive_tabindex = any(
        _int_attr(el.get('tabindex')) > 0
        for el in doc.soup.find_all(attrs={'tabindex': True})
    )
    return PageAccessibility(
        alt_texts=[_attr(img, 'alt') for img in images],
        aria_labels=[_attr(el, 'aria-label') for el in doc.soup.find_all(attrs={'aria-label': True})],
        heading_hierarchy=_safe('heading hierarchy', lambda: _heading_hierarchy(doc), True),
        keyboard_navigation=not positive_tabindex,
        images_missing_alt=sum(1 for img in images if not img.has_attr('alt')),
    )


def _technical(doc: _Document, console_errors: List[str]) -> PageTechnical:
    return PageTechnical(
        viewport=doc.meta_content('viewport'),
        language=doc.language(),
        charset=doc.charset(),
        css_files=[doc.absolute(_attr(link, 'href')) for link in doc.soup.find_all('link', rel='stylesheet')],
        js_files=[doc.absolute(_attr(script, 'src')) for script in doc.soup.find_all('script', src=True)],
        errors=list(console_errors),
    )


def _semantic_tags(doc: _Document) -> SemanticTags:
    counts = {}
    details = []
    for tag_name in SEMANTIC_TAG_NAMES:
        elements = doc.soup.find_all(tag_name)
        counts[tag_name] = len(elements)
        if elements:
            first = elements[0]
            details.append(SemanticTagDetail(
                tag=tag_name,
                count=len(elements),
                has_id=bool(first.get('id')),
                has_class=bool(first.get('class')),
                has_aria_label=bool(first.get('aria-label')),
            ))
    return SemanticTags(
        semantic_tags=counts,
        semantic_tag_details=details,
        total_semantic_tags=sum(counts.values()),
    )


def _navigation(doc: _Document) -> PageNavigation:
    menu_items = []
    for selector in NAV_SELECTORS:
        anchors = doc.soup.select(selector)
        if not anchors:
            continue
        for anchor in anchors:
            href, text = _attr(anchor, 'href'), _text(anchor)
            if href and text:
                menu_items.append(MenuItem(text=text, href=doc.absolute(href)))
        # First matching selector wins
        break

    breadcrumbs = []
    for selector in BREADCRUMB_SELECTORS:
        anchors = doc.soup.select(selector)
        if anchors:
            breadcrumbs = [
                Breadcrumb(text=_text(a), href=doc.absolute(_attr(a, 'href')), position=i)
                for i, a in enumerate(anchors, start=1)
            ]
            break

    search_input = doc.soup.select_one(
        'input[type="search"], form[role="search"] input, input[name="q"], input[name="s"], input[name="search"]'
    )
    return PageNavigation(
        menu_items=menu_items,
        breadcrumbs=breadcrumbs,
        has_search=search_input is not None,
        search_placeholder=_attr(search_input, 'placeholder') if search_input is not None else '',
    )


def _label_from_path(path: str) -> Dict[str, str]:
    parts = [part for part in path.split('/') if part]
    if not parts:
        return {'label': 'Home', 'type': 'homepage'}
    page_name = parts[-1]
    label = ' '.join(word.capitalize() for word in page_name.split('-'))
    return {'label': label, 'type': page_name}


def identify_page(url: str, menu_items: List[MenuItem]) -> Dict[str, str]:
    """Name a page after its navbar entry, falling back to its URL path"""
    current_path = urlparse(url).path.lower() or '/'

    for item in menu_items:
        link_path = urlparse(item.href).path.lower() or '/'
        is_section = link_path != '/' and current_path.startswith(link_path.rstrip('/') + '/')
        if current_path == link_path or is_section:
            return {'label': item.text, 'type': re.sub(r'\s+', '-', item.text.lower())}

    return _label_from_path(current_path)


def _performance(timings: Dict[str, Any]) -> PagePerformance:
    return PagePerformance(
        load_time=float(timings.get('loadTime') or 0),
        dom_content_loaded=float(timings.get('domContentLoaded') or 0),
        first_contentful_paint=float(timings.get('firstContentfulPaint') or 0),
    )


def parse_page(
    html: str,
    url: str,
    origin: Optional[str] = None,
    timings: Optional[Dict[str, Any]] = None,
    http: Optional[HttpInfo] = None,
    console_errors: Optional[List[str]] = None,
    keyword_limit: int = 30,
    max_text_length: Optional[int] = None,
) -> PageData:
    """Build PageData from a rendered DOM snapshot"""
    doc = _Document(html, url, origin or url)

    title = _safe('title', doc.title, '')
    meta_description = doc.meta_content('description')
    headings = _safe('headings', lambda: _headings(doc), Headings())
    images = _safe('images', lambda: _images(doc), [])
    links = _safe('links', lambda: _links(doc), [])
    text = _safe('text', lambda: _clean_text(doc), '')
    navigation = _safe('navigation', lambda: _navigation(doc), PageNavigation())
    structured = _safe('json-ld', lambda: _json_ld(doc), []) + _safe('microdata', lambda: _microdata(doc), [])
    page_info = _safe('page identity', lambda: identify_page(url, navigation.menu_items), {'label': 'Page', 'type': 'page'})

    keywords = _safe(
        'keywords',
        lambda: extract_keywords(
            body_text=text,
            meta_keywords=doc.meta_content('keywords'),
            heading_texts=headings.h1 + headings.h2 + headings.h3,
            alt_texts=[image.alt for image in images],
            limit=keyword_limit,
        ),
        KeywordData(),
    )

    stored_text = text[:max_text_length] if max_text_length else text

    return PageData(
        url=url,
        page_label=page_info['label'],
        page_type=page_info['type'],
        title=title,
        meta_description=meta_description,
        headings=headings,
        meta_tags=_safe('meta tags', lambda: _meta_tags(doc), MetaTags()),
        analytics=_safe('analytics', lambda: detect_analytics(_scripts(doc)), AnalyticsData()),
        keywords=keywords,
        content=PageContent(
            text=stored_text,
            word_count=len(text.split()),
            images=images,
            links=links,
            forms=_safe('forms', lambda: _forms(doc), []),
            buttons=_safe('buttons', lambda: _buttons(doc), []),
        ),
        performance=_safe('performance', lambda: _performance(timings or {}), PagePerformance()),
        seo=PageSEO(
            title_length=len(title),
            meta_description_length=len(meta_description),
            heading_structure=_safe('heading structure', lambda: [_text(h) for h in doc.soup.find_all(HEADING_TAGS)], []),
            image_alt_texts=[image.alt for image in images],
            internal_links=sum(1 for link in links if link.is_internal),
            external_links=sum(1 for link in links if not link.is_internal),
            canonical_url=_safe('canonical', doc.canonical, ''),
            robots_meta=doc.meta_content('robots'),
            schema_markup=structured,
        ),
        accessibility=_safe('accessibility', lambda: _accessibility(doc), PageAccessibility()),
        technical=_safe('technical', lambda: _technical(doc, console_errors or []), PageTechnical()),
        tags=_safe('semantic tags', lambda: _semantic_tags(doc), SemanticTags()),
        navigation=navigation,
        classification=_safe('classification', lambda: classify(text), BusinessProfile()),
        http=http or HttpInfo(),
    )


class PageExtractor:
    """Extracts PageData from the page the browser currently has loaded"""

    def __init__(self, config: Optional[CollectorConfig] = None):
        self.config = config or CollectorConfig()
        self.logger = logging.getLogger(__name__)

    async def _timings(self, page) -> Dict[str, Any]:
        try:
            return await page.evaluate(TIMING_SCRIPT) or {}
        except Exception as e:
            self.logger.debug(f"Timing collection failed for {page.url}: {e}")
            return {}

    async def _html(self, page) -> str:
        try:
            return await page.content()
        except Exception as e:
            self.logger.warning(f"Could not read DOM of {page.url}: {e}")
            return ''

    async def extract(
        self,
        page,
        url: Optional[str] = None,
        origin: Optional[str] = None,
        response=None,
        response_time: float = 0.0,
        console_errors: Optional[List[str]] = None,
    ) -> PageData:
        """Extract PageData from a page that has already been navigated"""
        page_url = url or page.url
        html = await self._html(page)
        timings = await self._timings(page)

        http = HttpInfo()
        if response is not None:
            http = HttpInfo(
                status_code=response.status,
                headers=dict(response.headers),
                response_time=round(response_time, 1),
            )

        return parse_page(
            html,
            page_url,
            origin=origin,
            timings=timings,
            http=http,
            console_errors=console_errors,
            keyword_limit=self.config.content_keyword_limit,
            max_text_length=self.config.max_text_length,
        )
