"""
Site collector

Crawls a website breadth-first in a headless browser, extracts structured
data from every page and rolls it up into one site-wide collection result.
"""

from .aggregator import MultiPageAggregator
from .collector import SiteCollector
from .config import CollectorConfig, CrawlTarget
from .exceptions import (
    BlockedByTarget,
    BrowserLaunchFailed,
    CollectionError,
    NavigationTimeout,
    UnhandledCollectionError,
)
from .extractor import PageExtractor, detect_block_page, parse_page
from .logger import Logger
from .models import (
    ComprehensiveCollectionResult,
    PageData,
    PageFailure,
    RedirectData,
    SiteMapData,
    SitemapEntry,
)
from .site_probe import SiteFileProbe
from .url_filter import UrlFilter
from .walker import SiteWalker

__all__ = [
    # Orchestrator
    'SiteCollector',

    # Configuration
    'CollectorConfig',
    'CrawlTarget',

    # Core components
    'PageExtractor',
    'SiteWalker',
    'MultiPageAggregator',
    'SiteFileProbe',
    'UrlFilter',
    'parse_page',
    'detect_block_page',

    # Data models
    'ComprehensiveCollectionResult',
    'PageData',
    'PageFailure',
    'RedirectData',
    'SiteMapData',
    'SitemapEntry',

    # Errors
    'CollectionError',
    'BrowserLaunchFailed',
    'NavigationTimeout',
    'BlockedByTarget',
    'UnhandledCollectionError',

    # Logging
    'Logger',
]
