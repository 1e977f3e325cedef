"""
Data models for the site collector

Attributes are snake_case; ``to_dict`` emits the camelCase JSON structure
consumed by the analysis and UI layers.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(part.capitalize() for part in rest)


def serialize(value: Any) -> Any:
    """Recursively convert dataclasses to JSON-ready dictionaries"""
    if is_dataclass(value) and not isinstance(value, type):
        return {
            f.metadata.get('key', _camel(f.name)): serialize(getattr(value, f.name))
            for f in fields(value)
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: serialize(item) for key, item in value.items()}
    return value


class Serializable:
    """Mixin adding JSON serialization to dataclasses"""

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization"""
        return serialize(self)


class UrlState(Enum):
    QUEUED = "queued"
    VISITING = "visiting"
    SUCCEEDED = "succeeded"
    REDIRECTED = "redirected"
    BROKEN = "broken"


class BusinessType(Enum):
    B2B = "B2B"
    B2C = "B2C"
    BOTH = "BOTH"
    UNKNOWN = "UNKNOWN"


# ---------------------------------------------------------------------------
# Site map
# ---------------------------------------------------------------------------

def sitemap_priority(depth: int) -> float:
    if depth == 0:
        return 1.0
    return round(max(0.1, 1.0 - depth * 0.2), 2)


@dataclass(frozen=True)
class SitemapEntry(Serializable):
    url: str
    depth: int
    priority: float
    last_modified: str
    change_frequency: str = "weekly"


@dataclass(frozen=True)
class RedirectData(Serializable):
    from_url: str = field(metadata={'key': 'from'})
    to_url: str = field(metadata={'key': 'to'})
    status: int
    type: str

    @classmethod
    def for_status(cls, from_url: str, to_url: str, status: int) -> "RedirectData":
        return cls(
            from_url=from_url,
            to_url=to_url,
            status=status,
            type='permanent' if status == 301 else 'temporary',
        )


@dataclass(frozen=True)
class SiteMapData(Serializable):
    total_pages: int
    depth: int
    orphaned_pages: List[str] = field(default_factory=list)
    broken_links: List[str] = field(default_factory=list)
    redirects: List[RedirectData] = field(default_factory=list)
    sitemap: List[SitemapEntry] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Per-page data
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Headings(Serializable):
    h1: List[str] = field(default_factory=list)
    h2: List[str] = field(default_factory=list)
    h3: List[str] = field(default_factory=list)
    h4: List[str] = field(default_factory=list)
    h5: List[str] = field(default_factory=list)
    h6: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class MetaTagEntry(Serializable):
    name: str
    content: str
    http_equiv: str = ""


@dataclass(frozen=True)
class MetaTags(Serializable):
    title: str = ""
    description: str = ""
    keywords: str = ""
    author: str = ""
    robots: str = ""
    viewport: str = ""
    charset: str = ""
    language: str = ""
    canonical: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    og_url: str = ""
    og_type: str = ""
    og_site_name: str = ""
    og_locale: str = ""
    twitter_card: str = ""
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""
    twitter_site: str = ""
    twitter_creator: str = ""
    geo_region: str = ""
    geo_placename: str = ""
    geo_position: str = ""
    revisit_after: str = ""
    rating: str = ""
    distribution: str = ""
    copyright: str = ""
    generator: str = ""
    application_name: str = ""
    theme_color: str = ""
    color_scheme: str = ""
    all_meta_tags: List[MetaTagEntry] = field(default_factory=list)


@dataclass(frozen=True)
class GoogleAnalytics4(Serializable):
    measurement_ids: List[str] = field(default_factory=list)
    config: Dict[str, str] = field(default_factory=dict)
    scripts_found: int = 0


@dataclass(frozen=True)
class GoogleTagManager(Serializable):
    container_ids: List[str] = field(default_factory=list)
    scripts_found: int = 0


@dataclass(frozen=True)
class FacebookPixel(Serializable):
    pixel_id: Optional[str] = None
    found: bool = False


@dataclass(frozen=True)
class AnalyticsData(Serializable):
    google_analytics4: GoogleAnalytics4 = field(default_factory=GoogleAnalytics4)
    google_tag_manager: GoogleTagManager = field(default_factory=GoogleTagManager)
    facebook_pixel: FacebookPixel = field(default_factory=FacebookPixel)
    other_analytics: List[str] = field(default_factory=list)
    all_analytics_scripts: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class KeywordData(Serializable):
    meta_keywords: List[str] = field(default_factory=list)
    content_keywords: List[str] = field(default_factory=list)
    heading_keywords: List[str] = field(default_factory=list)
    alt_text_keywords: List[str] = field(default_factory=list)
    all_keywords: List[str] = field(default_factory=list)
    keyword_frequency: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ImageData(Serializable):
    src: str
    alt: str = ""
    title: str = ""
    width: int = 0
    height: int = 0
    loading: str = "eager"


@dataclass(frozen=True)
class LinkData(Serializable):
    href: str
    text: str = ""
    title: str = ""
    target: str = ""
    rel: str = ""
    is_internal: bool = False
    is_broken: bool = False


@dataclass(frozen=True)
class FormInputData(Serializable):
    type: str = "text"
    name: str = ""
    placeholder: str = ""
    required: bool = False
    label: str = ""


@dataclass(frozen=True)
class FormData(Serializable):
    action: str = ""
    method: str = "get"
    inputs: List[FormInputData] = field(default_factory=list)
    submit_button: str = ""


@dataclass(frozen=True)
class ButtonData(Serializable):
    text: str = ""
    type: str = "button"
    css_class: str = field(default="", metadata={'key': 'class'})
    onclick: str = ""
    aria_label: str = ""


@dataclass(frozen=True)
class PageContent(Serializable):
    text: str = ""
    word_count: int = 0
    images: List[ImageData] = field(default_factory=list)
    links: List[LinkData] = field(default_factory=list)
    forms: List[FormData] = field(default_factory=list)
    buttons: List[ButtonData] = field(default_factory=list)


@dataclass(frozen=True)
class PagePerformance(Serializable):
    load_time: float = 0.0
    dom_content_loaded: float = 0.0
    first_contentful_paint: float = 0.0
    # Needs a performance observer bridge; None means unavailable
    largest_contentful_paint: Optional[float] = None
    cumulative_layout_shift: Optional[float] = None


@dataclass(frozen=True)
class StructuredData(Serializable):
    type: str
    content: Any
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    format: str = "json-ld"


@dataclass(frozen=True)
class PageSEO(Serializable):
    title_length: int = 0
    meta_description_length: int = 0
    heading_structure: List[str] = field(default_factory=list)
    image_alt_texts: List[str] = field(default_factory=list)
    internal_links: int = 0
    external_links: int = 0
    canonical_url: str = ""
    robots_meta: str = ""
    schema_markup: List[StructuredData] = field(default_factory=list)


@dataclass(frozen=True)
class PageAccessibility(Serializable):
    alt_texts: List[str] = field(default_factory=list)
    aria_labels: List[str] = field(default_factory=list)
    heading_hierarchy: bool = True
    color_contrast: Dict = field(default_factory=dict)
    keyboard_navigation: bool = True
    images_missing_alt: int = 0


@dataclass(frozen=True)
class PageTechnical(Serializable):
    viewport: str = ""
    language: str = ""
    charset: str = ""
    css_files: List[str] = field(default_factory=list)
    js_files: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SemanticTagDetail(Serializable):
    tag: str
    count: int
    has_id: bool = False
    has_class: bool = False
    has_aria_label: bool = False


@dataclass(frozen=True)
class SemanticTags(Serializable):
    semantic_tags: Dict[str, int] = field(default_factory=dict)
    semantic_tag_details: List[SemanticTagDetail] = field(default_factory=list)
    total_semantic_tags: int = 0


@dataclass(frozen=True)
class MenuItem(Serializable):
    text: str
    href: str


@dataclass(frozen=True)
class Breadcrumb(Serializable):
    text: str
    href: str
    position: int


@dataclass(frozen=True)
class PageNavigation(Serializable):
    menu_items: List[MenuItem] = field(default_factory=list)
    breadcrumbs: List[Breadcrumb] = field(default_factory=list)
    has_search: bool = False
    search_placeholder: str = ""


@dataclass(frozen=True)
class BusinessProfile(Serializable):
    business_type: BusinessType = BusinessType.UNKNOWN
    business_type_confidence: float = 0.0
    industries: List[str] = field(default_factory=list)
    industry_confidence: float = 0.0


@dataclass(frozen=True)
class HttpInfo(Serializable):
    status_code: int = 0
    headers: Dict[str, str] = field(default_factory=dict)
    response_time: float = 0.0


@dataclass(frozen=True)
class PageData(Serializable):
    """Everything extracted from one loaded page"""
    url: str
    page_label: str = "Page"
    page_type: str = "page"
    title: str = ""
    meta_description: str = ""
    headings: Headings = field(default_factory=Headings)
    meta_tags: MetaTags = field(default_factory=MetaTags)
    analytics: AnalyticsData = field(default_factory=AnalyticsData)
    keywords: KeywordData = field(default_factory=KeywordData)
    content: PageContent = field(default_factory=PageContent)
    performance: PagePerformance = field(default_factory=PagePerformance)
    seo: PageSEO = field(default_factory=PageSEO)
    accessibility: PageAccessibility = field(default_factory=PageAccessibility)
    technical: PageTechnical = field(default_factory=PageTechnical)
    tags: SemanticTags = field(default_factory=SemanticTags)
    navigation: PageNavigation = field(default_factory=PageNavigation)
    classification: BusinessProfile = field(default_factory=BusinessProfile)
    http: HttpInfo = field(default_factory=HttpInfo)
    # Block signature found on a page with enough content to keep
    suspected_block: Optional[str] = None


@dataclass(frozen=True)
class PageFailure(Serializable):
    """A sitemap page that produced no PageData"""
    url: str
    reason: str
    kind: str = "error"


# ---------------------------------------------------------------------------
# Site-wide rollups
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OpportunityData(Serializable):
    id: str
    title: str
    description: str
    score: float
    savings: str = ""


@dataclass(frozen=True)
class DiagnosticData(Serializable):
    id: str
    title: str
    description: str
    score: float
    details: str = ""


@dataclass(frozen=True)
class PerformanceMetrics(Serializable):
    first_contentful_paint: float = 0.0
    dom_content_loaded: float = 0.0
    load_time: float = 0.0
    largest_contentful_paint: Optional[float] = None
    first_input_delay: Optional[float] = None
    cumulative_layout_shift: Optional[float] = None
    speed_index: Optional[float] = None


@dataclass(frozen=True)
class PerformanceData(Serializable):
    overall_score: float
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    opportunities: List[OpportunityData] = field(default_factory=list)
    diagnostics: List[DiagnosticData] = field(default_factory=list)


@dataclass(frozen=True)
class MetaTagData(Serializable):
    title: str = ""
    description: str = ""
    keywords: str = ""
    author: str = ""
    robots: str = ""
    canonical: str = ""
    og_title: str = ""
    og_description: str = ""
    og_image: str = ""
    twitter_card: str = ""
    twitter_title: str = ""
    twitter_description: str = ""
    twitter_image: str = ""


@dataclass(frozen=True)
class InternalLinkingData(Serializable):
    total_links: int = 0
    average_per_page: float = 0.0
    anchor_texts: List[str] = field(default_factory=list)
    link_equity: float = 0.0


@dataclass(frozen=True)
class ExternalLinkingData(Serializable):
    total_links: int = 0
    nofollow: int = 0
    dofollow: int = 0
    domains: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ContentQualityData(Serializable):
    uniqueness: float = 0.0
    depth: float = 0.0
    freshness: float = 0.0
    relevance: float = 0.0
    engagement: float = 0.0


@dataclass(frozen=True)
class TechnicalSEOData(Serializable):
    robots_txt: bool = False
    sitemap: bool = False
    https: bool = False
    www_redirect: bool = False
    trailing_slash: bool = False
    duplicate_content: bool = False


@dataclass(frozen=True)
class SEOData(Serializable):
    overall_score: float
    meta_tags: MetaTagData = field(default_factory=MetaTagData)
    structured_data: List[StructuredData] = field(default_factory=list)
    internal_linking: InternalLinkingData = field(default_factory=InternalLinkingData)
    external_linking: ExternalLinkingData = field(default_factory=ExternalLinkingData)
    content_quality: ContentQualityData = field(default_factory=ContentQualityData)
    technical_seo: TechnicalSEOData = field(default_factory=TechnicalSEOData)


@dataclass(frozen=True)
class ContentTypeData(Serializable):
    type: str
    count: int
    average_length: float


@dataclass(frozen=True)
class TopicData(Serializable):
    topic: str
    frequency: int
    relevance: float
    sentiment: float = 0.0


@dataclass(frozen=True)
class SentimentData(Serializable):
    overall: float = 0.0
    positive: float = 0.0
    negative: float = 0.0
    neutral: float = 0.0


@dataclass(frozen=True)
class ReadabilityData(Serializable):
    flesch_score: float = 0.0
    grade_level: float = 0.0
    average_sentence_length: float = 0.0
    average_syllables_per_word: float = 0.0


@dataclass(frozen=True)
class ContentData(Serializable):
    total_words: int = 0
    average_words_per_page: float = 0.0
    content_types: List[ContentTypeData] = field(default_factory=list)
    topics: List[TopicData] = field(default_factory=list)
    sentiment: SentimentData = field(default_factory=SentimentData)
    readability: ReadabilityData = field(default_factory=ReadabilityData)


@dataclass(frozen=True)
class ServerInfo(Serializable):
    server: str = "Unknown"
    powered_by: str = "Unknown"
    response_time: float = 0.0
    status_code: int = 0


@dataclass(frozen=True)
class SecurityData(Serializable):
    https: bool = False
    hsts: bool = False
    csp: bool = False
    xss_protection: bool = False
    content_type_options: bool = False


@dataclass(frozen=True)
class MobileData(Serializable):
    responsive: bool = False
    viewport: str = ""
    touch_friendly: bool = False
    mobile_friendly: bool = False


@dataclass(frozen=True)
class CachingData(Serializable):
    cache_control: str = ""
    etag: str = ""
    last_modified: str = ""
    expires: str = ""


@dataclass(frozen=True)
class CompressionData(Serializable):
    gzip: bool = False
    brotli: bool = False
    compression_ratio: float = 0.0


@dataclass(frozen=True)
class TechnicalData(Serializable):
    server_info: ServerInfo = field(default_factory=ServerInfo)
    security: SecurityData = field(default_factory=SecurityData)
    mobile_optimization: MobileData = field(default_factory=MobileData)
    caching: CachingData = field(default_factory=CachingData)
    compression: CompressionData = field(default_factory=CompressionData)


@dataclass(frozen=True)
class MenuData(Serializable):
    items: List[MenuItem] = field(default_factory=list)
    depth: int = 0
    mobile_friendly: bool = False


@dataclass(frozen=True)
class PaginationData(Serializable):
    current: int = 1
    total: int = 1
    next: str = ""
    previous: str = ""


@dataclass(frozen=True)
class SearchData(Serializable):
    present: bool = False
    placeholder: str = ""
    results: List[Dict] = field(default_factory=list)


@dataclass(frozen=True)
class NavigationData(Serializable):
    main_menu: MenuData = field(default_factory=MenuData)
    breadcrumbs: List[Breadcrumb] = field(default_factory=list)
    pagination: PaginationData = field(default_factory=PaginationData)
    search: SearchData = field(default_factory=SearchData)


@dataclass(frozen=True)
class FormUXData(Serializable):
    total_forms: int = 0
    average_fields: float = 0.0
    validation: bool = False
    error_handling: bool = False
    success_messages: bool = False


@dataclass(frozen=True)
class CTADetailsData(Serializable):
    text: str
    type: str
    position: str = ""
    visibility: str = "visible"


@dataclass(frozen=True)
class CTAData(Serializable):
    total: int = 0
    primary: List[CTADetailsData] = field(default_factory=list)
    secondary: List[CTADetailsData] = field(default_factory=list)
    average_per_page: float = 0.0


@dataclass(frozen=True)
class VisualHierarchyData(Serializable):
    heading_structure: bool = True
    color_contrast: Optional[float] = None


@dataclass(frozen=True)
class LoadingData(Serializable):
    skeleton_screens: bool = False
    progress_indicators: bool = False
    error_states: bool = False
    empty_states: bool = False


@dataclass(frozen=True)
class UserExperienceData(Serializable):
    navigation: NavigationData = field(default_factory=NavigationData)
    forms: FormUXData = field(default_factory=FormUXData)
    calls_to_action: CTAData = field(default_factory=CTAData)
    visual_hierarchy: VisualHierarchyData = field(default_factory=VisualHierarchyData)
    loading_states: LoadingData = field(default_factory=LoadingData)


@dataclass(frozen=True)
class CollectionSummary(Serializable):
    total_pages: int
    total_words: int
    total_images: int
    total_links: int
    average_load_time: float
    seo_score: float
    performance_score: float
    accessibility_score: float
    content_score: float
    technical_score: float
    ux_score: float
    critical_issues: int = 0
    recommendations: int = 0
    blocked_pages: int = 0


@dataclass(frozen=True)
class AggregateReport:
    """Output of one aggregation pass"""
    performance: PerformanceData
    seo: SEOData
    content: ContentData
    technical: TechnicalData
    user_experience: UserExperienceData
    summary: CollectionSummary


@dataclass(frozen=True)
class SiteFiles(Serializable):
    """Presence of crawl-control files at the site root"""
    robots_txt: bool = False
    sitemap: bool = False


@dataclass(frozen=True)
class ComprehensiveCollectionResult(Serializable):
    url: str
    timestamp: str
    pages: List[PageData]
    site_map: SiteMapData
    performance: PerformanceData
    seo: SEOData
    content: ContentData
    technical: TechnicalData
    user_experience: UserExperienceData
    summary: CollectionSummary
    failures: List[PageFailure] = field(default_factory=list)
