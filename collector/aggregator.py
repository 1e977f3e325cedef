"""
Site-wide rollups over collected pages

Performance, SEO, technical and UX figures are computed over the "score
scope": the entry page alone (``score_scope="entry"``) or every collected page
(``score_scope="site"``). Content figures and summary totals always cover every
page.
"""

import logging
import re
from collections import Counter
from statistics import mean
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse

import textstat

from .config import CollectorConfig
from .models import (
    AggregateReport,
    CachingData,
    CollectionSummary,
    CompressionData,
    ContentData,
    ContentQualityData,
    ContentTypeData,
    CTAData,
    CTADetailsData,
    DiagnosticData,
    ExternalLinkingData,
    FormUXData,
    InternalLinkingData,
    LoadingData,
    MenuData,
    MetaTagData,
    MobileData,
    NavigationData,
    OpportunityData,
    PageData,
    PerformanceData,
    PerformanceMetrics,
    ReadabilityData,
    SearchData,
    SecurityData,
    SEOData,
    ServerInfo,
    SiteFiles,
    TechnicalData,
    TechnicalSEOData,
    TopicData,
    UserExperienceData,
    VisualHierarchyData,
)


logger = logging.getLogger(__name__)

# Reported when a category cannot be computed
PLACEHOLDER_SCORES = {
    'performance': 85,
    'seo': 75,
    'accessibility': 75,
    'content': 80,
    'technical': 85,
    'ux': 70,
}

TITLE_MIN, TITLE_MAX = 30, 60
DESC_MIN, DESC_MAX = 120, 160
MIN_WORDS_OK = 300
PREFERRED_SCHEMA_TYPES = {'Organization', 'LocalBusiness', 'ProfessionalService', 'Person', 'WebSite'}

SLOW_LOAD_MS = 3000
SLOW_FCP_MS = 3000
MAX_STYLESHEETS = 5
MAX_SCRIPTS = 10
MAX_EAGER_IMAGES = 5
TOPIC_COUNT = 10

CTA_PATTERN = re.compile(
    r'\b(get started|sign up|signup|subscribe|contact|book|buy|shop now|order|request|'
    r'try|start|download|join|register|learn more|get a quote|schedule|demo)\b',
    re.IGNORECASE,
)

NON_LABELLED_INPUT_TYPES = {'hidden', 'submit', 'button', 'reset', 'image'}


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def _fraction(hits: int, total: int, empty: float = 1.0) -> float:
    return hits / total if total else empty


def _header(page: PageData, name: str) -> str:
    return {k.lower(): v for k, v in page.http.headers.items()}.get(name, '')


def _missing_alt(page: PageData) -> int:
    return sum(1 for image in page.content.images if not image.alt.strip())


def _labelled_inputs(page: PageData) -> Dict[str, int]:
    fields = [
        field for form in page.content.forms for field in form.inputs
        if field.type not in NON_LABELLED_INPUT_TYPES
    ]
    labelled = sum(1 for field in fields if field.label or field.placeholder)
    return {'total': len(fields), 'labelled': labelled}


def _ctas(page: PageData) -> Dict[str, List[CTADetailsData]]:
    primary = [
        CTADetailsData(text=button.text, type='button')
        for button in page.content.buttons
        if CTA_PATTERN.search(button.text or button.aria_label)
    ]
    secondary = [
        CTADetailsData(text=link.text, type='link')
        for link in page.content.links
        if link.text and CTA_PATTERN.search(link.text)
    ]
    return {'primary': primary, 'secondary': secondary}


# ---------------------------------------------------------------------------
# Per-page scores
# ---------------------------------------------------------------------------

def score_performance(page: PageData) -> Optional[float]:
    load_time = page.performance.load_time
    fcp = page.performance.first_contentful_paint
    if load_time <= 0 and fcp <= 0:
        return None

    seconds = load_time / 1000
    if seconds < 2.0:
        score = 95
    elif seconds < 4.0:
        score = 85
    elif seconds < 6.0:
        score = 70
    else:
        score = 55
    if fcp > SLOW_FCP_MS:
        score -= 10
    return clamp(score)


def score_seo(page: PageData) -> float:
    headings = page.headings

    meta = 0
    if page.title:
        meta += 10 if TITLE_MIN <= len(page.title) <= TITLE_MAX else 6
    if page.meta_description:
        meta += 10 if DESC_MIN <= len(page.meta_description) <= DESC_MAX else 6
    if page.seo.canonical_url:
        meta += 5

    content = 0
    if page.content.word_count >= MIN_WORDS_OK:
        content += 12
    elif page.content.word_count >= 150:
        content += 8
    elif page.content.word_count >= 80:
        content += 4
    if headings.h2:
        content += 6
    if headings.h3:
        content += 3
    if page.technical.language:
        content += 4

    structure = 0
    if len(headings.h1) == 1:
        structure += 10
    elif len(headings.h1) > 1:
        structure += 6
    if page.technical.viewport:
        structure += 5

    schema = 0
    valid_types = {
        t.strip()
        for block in page.seo.schema_markup if block.valid
        for t in block.type.split(',')
    }
    if valid_types:
        schema = 15 if valid_types & PREFERRED_SCHEMA_TYPES else 12

    links_media = 0
    images = len(page.content.images)
    if images == 0:
        links_media += 2
    else:
        missing_ratio = _missing_alt(page) / images
        links_media += 5 if missing_ratio == 0 else (3 if missing_ratio <= 0.25 else 1)
    links_media += 3 if page.seo.internal_links >= 3 else (2 if page.seo.internal_links >= 1 else 0)
    links_media += 2 if page.seo.external_links >= 1 else 0

    basics = 0
    if page.http.status_code == 0 or 200 <= page.http.status_code < 300:
        basics += 4
    if 'noindex' in page.seo.robots_meta.lower():
        basics -= 4
    seconds = page.performance.load_time / 1000
    if 0 < seconds < 2.0:
        basics += 6
    elif 0 < seconds < 4.0:
        basics += 4
    elif 0 < seconds < 6.0:
        basics += 2

    return clamp(
        clamp(meta, 0, 25)
        + clamp(content, 0, 25)
        + clamp(structure, 0, 15)
        + clamp(schema, 0, 15)
        + clamp(links_media, 0, 10)
        + clamp(basics, 0, 10)
    )


def score_accessibility(page: PageData) -> float:
    images = len(page.content.images)
    inputs = _labelled_inputs(page)
    buttons = page.content.buttons
    named_buttons = sum(1 for button in buttons if button.text or button.aria_label)

    score = 30 * (1 - _fraction(page.accessibility.images_missing_alt, images, empty=0.0))
    score += 20 if page.accessibility.heading_hierarchy else 0
    score += 15 if page.technical.language else 0
    score += 15 * _fraction(inputs['labelled'], inputs['total'])
    score += 10 * _fraction(named_buttons, len(buttons))
    score += 10 if page.accessibility.keyboard_navigation else 0
    return clamp(score)


def readability(text: str) -> ReadabilityData:
    if not text.strip():
        return ReadabilityData()
    try:
        words = textstat.lexicon_count(text, removepunct=True)
        if words == 0:
            return ReadabilityData()
        sentences = textstat.sentence_count(text)
        return ReadabilityData(
            flesch_score=round(textstat.flesch_reading_ease(text), 1),
            grade_level=round(textstat.flesch_kincaid_grade(text), 1),
            average_sentence_length=round(words / max(1, sentences), 1),
            average_syllables_per_word=round(textstat.syllable_count(text) / words, 2),
        )
    except Exception as e:
        logger.warning(f"Readability scoring failed: {e}")
        return ReadabilityData()


def score_content(page: PageData) -> float:
    words = page.content.word_count
    if words >= 600:
        score = 40
    elif words >= 300:
        score = 30
    elif words >= 150:
        score = 20
    elif words >= 50:
        score = 10
    else:
        score = 0
    score += 15 if page.headings.h1 else 0
    score += 15 if page.headings.h2 else 0
    score += 10 if page.content.images else 0
    score += 10 if len(page.keywords.content_keywords) >= 10 else 0

    flesch = readability(page.content.text).flesch_score
    if flesch >= 60:
        score += 10
    elif flesch >= 30:
        score += 5
    return clamp(score)


def score_technical(page: PageData) -> float:
    score = 30 if page.url.startswith('https://') else 0
    score += 15 if _header(page, 'strict-transport-security') else 0
    score += 10 if _header(page, 'content-security-policy') else 0
    score += 10 if _header(page, 'x-content-type-options') else 0
    score += 15 if _header(page, 'content-encoding') else 0
    score += 10 if page.technical.viewport else 0
    score += 10 if _header(page, 'cache-control') or _header(page, 'etag') else 0
    return clamp(score)


def score_ux(page: PageData) -> float:
    inputs = _labelled_inputs(page)
    ctas = _ctas(page)

    score = 25 if page.navigation.menu_items else 0
    score += 10 if page.navigation.has_search else 0
    score += 25 if ctas['primary'] or ctas['secondary'] else 0
    score += 20 * _fraction(inputs['labelled'], inputs['total'])
    score += 10 if page.accessibility.heading_hierarchy else 0
    score += 10 if page.navigation.breadcrumbs or page.page_type == 'homepage' else 0
    return clamp(score)


def _mean_score(scores: Iterable[Optional[float]], category: str) -> float:
    available = [score for score in scores if score is not None]
    if not available:
        return PLACEHOLDER_SCORES[category]
    return round(mean(available), 1)


def critical_issues(page: PageData) -> int:
    issues = 0
    issues += 0 if page.title else 1
    issues += 0 if page.headings.h1 else 1
    issues += 1 if 'noindex' in page.seo.robots_meta.lower() else 0
    issues += sum(1 for block in page.seo.schema_markup if not block.valid)
    return issues


def recommendations(page: PageData) -> int:
    count = 0
    count += 0 if page.meta_description else 1
    count += 0 if TITLE_MIN <= len(page.title) <= TITLE_MAX else 1
    count += 1 if _missing_alt(page) else 0
    count += 0 if page.seo.canonical_url else 1
    return count


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

class MultiPageAggregator:
    """Pure reductions from collected pages to the site-wide report"""

    def __init__(self, config: Optional[CollectorConfig] = None):
        self.config = config or CollectorConfig()
        self.logger = logging.getLogger(__name__)

    def scope(self, pages: List[PageData]) -> List[PageData]:
        """Pages the category scores are computed from"""
        if self.config.score_scope == 'site':
            return list(pages)
        return list(pages[:1])

    def aggregate(self, pages: List[PageData], site_files: Optional[SiteFiles] = None) -> AggregateReport:
        self.logger.info(f"Aggregating {len(pages)} pages (score scope: {self.config.score_scope})")
        performance = self.performance(pages)
        seo = self.seo(pages, site_files or SiteFiles())
        content = self.content(pages)
        technical = self.technical(pages)
        user_experience = self.user_experience(pages)
        return AggregateReport(
            performance=performance,
            seo=seo,
            content=content,
            technical=technical,
            user_experience=user_experience,
            summary=self.summary(pages, performance, seo),
        )

    def performance(self, pages: List[PageData]) -> PerformanceData:
        scoped = self.scope(pages)
        if not scoped:
            return PerformanceData(overall_score=PLACEHOLDER_SCORES['performance'])

        metrics = PerformanceMetrics(
            first_contentful_paint=round(mean(p.performance.first_contentful_paint for p in scoped), 1),
            dom_content_loaded=round(mean(p.performance.dom_content_loaded for p in scoped), 1),
            load_time=round(mean(p.performance.load_time for p in scoped), 1),
        )
        return PerformanceData(
            overall_score=_mean_score((score_performance(p) for p in scoped), 'performance'),
            metrics=metrics,
            opportunities=self._opportunities(scoped),
            diagnostics=self._diagnostics(scoped),
        )

    def _opportunities(self, pages: List[PageData]) -> List[OpportunityData]:
        checks = [
            ('reduce-load-time', 'Reduce page load time',
             lambda p: p.performance.load_time > SLOW_LOAD_MS,
             f'Pages take longer than {SLOW_LOAD_MS / 1000:.0f}s to finish loading'),
            ('reduce-stylesheets', 'Combine stylesheets',
             lambda p: len(p.technical.css_files) > MAX_STYLESHEETS,
             f'Pages load more than {MAX_STYLESHEETS} stylesheets'),
            ('reduce-javascript', 'Reduce JavaScript requests',
             lambda p: len(p.technical.js_files) > MAX_SCRIPTS,
             f'Pages load more than {MAX_SCRIPTS} external scripts'),
            ('offscreen-images', 'Defer offscreen images',
             lambda p: sum(1 for img in p.content.images if img.loading != 'lazy') > MAX_EAGER_IMAGES,
             f'Pages eagerly load more than {MAX_EAGER_IMAGES} images'),
        ]
        opportunities = []
        for check_id, title, predicate, description in checks:
            affected = sum(1 for page in pages if predicate(page))
            if affected:
                opportunities.append(OpportunityData(
                    id=check_id,
                    title=title,
                    description=description,
                    score=round(1 - affected / len(pages), 2),
                    savings=f'{affected} of {len(pages)} pages',
                ))
        return opportunities

    def _diagnostics(self, pages: List[PageData]) -> List[DiagnosticData]:
        diagnostics = []
        errors = [error for page in pages for error in page.technical.errors]
        if errors:
            diagnostics.append(DiagnosticData(
                id='console-errors',
                title='Browser errors logged to the console',
                description=f'{len(errors)} console errors were recorded while loading pages',
                score=0.0,
                details='; '.join(errors[:5]),
            ))
        dcl = mean(p.performance.dom_content_loaded for p in pages)
        if dcl > 0:
            diagnostics.append(DiagnosticData(
                id='dom-content-loaded',
                title='DOM content loaded',
                description='Average time until the document was parsed',
                score=1.0 if dcl < 1500 else 0.5,
                details=f'{dcl:.0f} ms',
            ))
        return diagnostics

    def seo(self, pages: List[PageData], site_files: SiteFiles) -> SEOData:
        scoped = self.scope(pages)
        if not scoped:
            return SEOData(
                overall_score=PLACEHOLDER_SCORES['seo'],
                technical_seo=TechnicalSEOData(robots_txt=site_files.robots_txt, sitemap=site_files.sitemap),
            )

        entry = scoped[0]
        tags = entry.meta_tags
        meta = MetaTagData(
            title=entry.title,
            description=entry.meta_description,
            keywords=tags.keywords,
            author=tags.author,
            robots=tags.robots,
            canonical=tags.canonical,
            og_title=tags.og_title,
            og_description=tags.og_description,
            og_image=tags.og_image,
            twitter_card=tags.twitter_card,
            twitter_title=tags.twitter_title,
            twitter_description=tags.twitter_description,
            twitter_image=tags.twitter_image,
        )
        return SEOData(
            overall_score=_mean_score((score_seo(p) for p in scoped), 'seo'),
            meta_tags=meta,
            structured_data=[block for p in scoped for block in p.seo.schema_markup],
            internal_linking=self._internal_linking(scoped),
            external_linking=self._external_linking(scoped),
            content_quality=self._content_quality(scoped),
            technical_seo=TechnicalSEOData(
                robots_txt=site_files.robots_txt,
                sitemap=site_files.sitemap,
                https=entry.url.startswith('https://'),
                www_redirect=False,
                trailing_slash=self._trailing_slash(scoped),
                duplicate_content=self._has_duplicate_titles(pages),
            ),
        )

    @staticmethod
    def _internal_linking(pages: List[PageData]) -> InternalLinkingData:
        links = [link for p in pages for link in p.content.links if link.is_internal]
        anchors = list(dict.fromkeys(link.text for link in links if link.text))
        targets = {link.href for link in links}
        return InternalLinkingData(
            total_links=len(links),
            average_per_page=round(len(links) / len(pages), 1),
            anchor_texts=anchors[:50],
            link_equity=round(_fraction(len(targets), len(links), empty=0.0), 2),
        )

    @staticmethod
    def _external_linking(pages: List[PageData]) -> ExternalLinkingData:
        links = [link for p in pages for link in p.content.links if not link.is_internal]
        nofollow = sum(1 for link in links if 'nofollow' in link.rel.lower().split())
        domains = list(dict.fromkeys(
            urlparse(link.href).hostname for link in links if urlparse(link.href).hostname
        ))
        return ExternalLinkingData(
            total_links=len(links),
            nofollow=nofollow,
            dofollow=len(links) - nofollow,
            domains=domains,
        )

    @staticmethod
    def _content_quality(pages: List[PageData]) -> ContentQualityData:
        titles = [p.title for p in pages if p.title]
        engaged = sum(1 for p in pages if p.content.forms or _ctas(p)['primary'])
        relevance = []
        for p in pages:
            title_words = {w for w in re.findall(r'\w+', p.title.lower()) if len(w) > 4}
            if title_words:
                relevance.append(len(title_words & set(p.keywords.content_keywords)) / len(title_words))
        return ContentQualityData(
            uniqueness=round(_fraction(len(set(titles)), len(titles), empty=0.0) * 100, 1),
            depth=round(min(100.0, mean(p.content.word_count for p in pages) / 10), 1),
            freshness=0.0,
            relevance=round(mean(relevance) * 100, 1) if relevance else 0.0,
            engagement=round(engaged / len(pages) * 100, 1),
        )

    @staticmethod
    def _trailing_slash(pages: List[PageData]) -> bool:
        paths = [
            urlparse(link.href).path
            for p in pages for link in p.content.links
            if link.is_internal and urlparse(link.href).path not in ('', '/')
        ]
        if not paths:
            return False
        return sum(1 for path in paths if path.endswith('/')) > len(paths) / 2

    @staticmethod
    def _has_duplicate_titles(pages: List[PageData]) -> bool:
        counts = Counter(p.title for p in pages if p.title)
        return any(count > 1 for count in counts.values())

    def content(self, pages: List[PageData]) -> ContentData:
        total_words = sum(p.content.word_count for p in pages)
        average = total_words / len(pages) if pages else 0

        types: Dict[str, List[int]] = {}
        for page in pages:
            types.setdefault(page.page_type, []).append(page.content.word_count)

        frequencies = Counter()
        for page in pages:
            frequencies.update(page.keywords.keyword_frequency)
        top = frequencies.most_common(TOPIC_COUNT)
        highest = top[0][1] if top else 1

        return ContentData(
            total_words=total_words,
            average_words_per_page=round(average, 1),
            content_types=[
                ContentTypeData(type=page_type, count=len(counts), average_length=round(mean(counts), 1))
                for page_type, counts in types.items()
            ],
            topics=[
                TopicData(topic=word, frequency=count, relevance=round(count / highest, 2))
                for word, count in top
            ],
            readability=readability(' '.join(p.content.text for p in pages)),
        )

    def technical(self, pages: List[PageData]) -> TechnicalData:
        scoped = self.scope(pages)
        if not scoped:
            return TechnicalData()

        entry = scoped[0]
        viewport = entry.technical.viewport
        responsive = 'width=device-width' in viewport.replace(' ', '').lower()
        encoding = _header(entry, 'content-encoding').lower()
        return TechnicalData(
            server_info=ServerInfo(
                server=_header(entry, 'server') or 'Unknown',
                powered_by=_header(entry, 'x-powered-by') or 'Unknown',
                response_time=entry.http.response_time,
                status_code=entry.http.status_code,
            ),
            security=SecurityData(
                https=all(p.url.startswith('https://') for p in scoped),
                hsts=all(_header(p, 'strict-transport-security') for p in scoped),
                csp=all(_header(p, 'content-security-policy') for p in scoped),
                xss_protection=all(_header(p, 'x-xss-protection') for p in scoped),
                content_type_options=all(_header(p, 'x-content-type-options') for p in scoped),
            ),
            mobile_optimization=MobileData(
                responsive=responsive,
                viewport=viewport,
                touch_friendly=responsive,
                mobile_friendly=responsive,
            ),
            caching=CachingData(
                cache_control=_header(entry, 'cache-control'),
                etag=_header(entry, 'etag'),
                last_modified=_header(entry, 'last-modified'),
                expires=_header(entry, 'expires'),
            ),
            compression=CompressionData(
                gzip='gzip' in encoding,
                brotli='br' in encoding.split(', '),
            ),
        )

    def user_experience(self, pages: List[PageData]) -> UserExperienceData:
        scoped = self.scope(pages)
        if not scoped:
            return UserExperienceData()

        entry = scoped[0]
        forms = [form for p in scoped for form in p.content.forms]
        fields = [field for form in forms for field in form.inputs]
        primary = [cta for p in scoped for cta in _ctas(p)['primary']]
        secondary = [cta for p in scoped for cta in _ctas(p)['secondary']]
        search = next((p.navigation for p in scoped if p.navigation.has_search), None)
        body_text = ' '.join(p.content.text.lower() for p in scoped)

        return UserExperienceData(
            navigation=NavigationData(
                main_menu=MenuData(
                    items=list(entry.navigation.menu_items),
                    depth=1 if entry.navigation.menu_items else 0,
                    mobile_friendly='width=device-width' in entry.technical.viewport.replace(' ', ''),
                ),
                breadcrumbs=list(entry.navigation.breadcrumbs),
                search=SearchData(
                    present=search is not None,
                    placeholder=search.search_placeholder if search else '',
                ),
            ),
            forms=FormUXData(
                total_forms=len(forms),
                average_fields=round(len(fields) / len(forms), 1) if forms else 0.0,
                validation=any(field.required for field in fields),
                error_handling='error' in body_text and bool(forms),
                success_messages=('thank you' in body_text or 'success' in body_text) and bool(forms),
            ),
            calls_to_action=CTAData(
                total=len(primary) + len(secondary),
                primary=primary,
                secondary=secondary,
                average_per_page=round((len(primary) + len(secondary)) / len(scoped), 1),
            ),
            visual_hierarchy=VisualHierarchyData(
                heading_structure=all(p.accessibility.heading_hierarchy for p in scoped),
            ),
            loading_states=LoadingData(
                skeleton_screens='skeleton' in body_text,
                progress_indicators='loading' in body_text,
                error_states='error' in body_text,
                empty_states='no results' in body_text,
            ),
        )

    def summary(self, pages: List[PageData], performance: PerformanceData, seo: SEOData) -> CollectionSummary:
        scoped = self.scope(pages)
        return CollectionSummary(
            total_pages=len(pages),
            total_words=sum(p.content.word_count for p in pages),
            total_images=sum(len(p.content.images) for p in pages),
            total_links=sum(len(p.content.links) for p in pages),
            average_load_time=round(mean(p.performance.load_time for p in pages), 1) if pages else 0.0,
            seo_score=seo.overall_score,
            performance_score=performance.overall_score,
            accessibility_score=_mean_score((score_accessibility(p) for p in scoped), 'accessibility'),
            content_score=_mean_score((score_content(p) for p in pages), 'content'),
            technical_score=_mean_score((score_technical(p) for p in scoped), 'technical'),
            ux_score=_mean_score((score_ux(p) for p in scoped), 'ux'),
            critical_issues=sum(critical_issues(p) for p in pages),
            recommendations=len(performance.opportunities) + sum(recommendations(p) for p in pages),
        )
