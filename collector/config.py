"""
Configuration settings for the site collector
"""

import os
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional
from urllib.parse import urlparse

from dotenv import load_dotenv


DEFAULT_USER_AGENT = (
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
)

SCORE_SCOPES = ('entry', 'site')


@dataclass
class CollectorConfig:
    """Configuration class for collector settings"""
    # Crawl bounds
    max_pages: int = 50
    max_depth: int = 3
    timeout_ms: int = 30000

    # Navigation
    wait_until: str = "domcontentloaded"
    settle_delay_ms: int = 2000
    max_retries: int = 2
    retry_backoff: float = 1.0
    follow_redirects: bool = False

    # Browser
    headless: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080
    user_agent: str = DEFAULT_USER_AGENT
    launch_args: List[str] = field(default_factory=lambda: [
        '--no-sandbox',
        '--disable-setuid-sandbox',
        '--disable-dev-shm-usage',
        '--disable-accelerated-2d-canvas',
        '--no-first-run',
        '--no-zygote',
        '--disable-gpu',
        '--disable-blink-features=AutomationControlled',
        '--disable-features=IsolateOrigins,site-per-process',
    ])
    extra_http_headers: Dict[str, str] = field(default_factory=lambda: {
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,image/apng,*/*;q=0.8',
        'Accept-Language': 'en-US,en;q=0.9',
        'DNT': '1',
        'Upgrade-Insecure-Requests': '1',
    })

    # Extraction
    content_keyword_limit: int = 30
    max_text_length: Optional[int] = None
    # A block signature only excludes a page with less visible text than this
    block_text_threshold: int = 100

    # Aggregation
    score_scope: str = "entry"
    probe_site_files: bool = True

    def __post_init__(self):
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if self.max_depth < 0:
            raise ValueError("max_depth cannot be negative")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.block_text_threshold < 0:
            raise ValueError("block_text_threshold cannot be negative")
        if self.score_scope not in SCORE_SCOPES:
            raise ValueError(f"score_scope must be one of {SCORE_SCOPES}, got {self.score_scope!r}")

    @classmethod
    def from_env(cls, **overrides) -> "CollectorConfig":
        """Build a config from COLLECTOR_* environment variables"""
        load_dotenv()

        values = {
            'max_pages': int(os.getenv("COLLECTOR_MAX_PAGES", 50)),
            'max_depth': int(os.getenv("COLLECTOR_MAX_DEPTH", 3)),
            'timeout_ms': int(os.getenv("COLLECTOR_TIMEOUT_MS", 30000)),
            'wait_until': os.getenv("COLLECTOR_WAIT_UNTIL", "domcontentloaded"),
            'settle_delay_ms': int(os.getenv("COLLECTOR_SETTLE_DELAY_MS", 2000)),
            'max_retries': int(os.getenv("COLLECTOR_MAX_RETRIES", 2)),
            'block_text_threshold': int(os.getenv("COLLECTOR_BLOCK_TEXT_THRESHOLD", 100)),
            'headless': os.getenv("COLLECTOR_HEADLESS", "true").lower() == "true",
            'follow_redirects': os.getenv("COLLECTOR_FOLLOW_REDIRECTS", "false").lower() == "true",
            'score_scope': os.getenv("COLLECTOR_SCORE_SCOPE", "entry"),
            'probe_site_files': os.getenv("COLLECTOR_PROBE_SITE_FILES", "true").lower() == "true",
        }

        # Sandboxing can only be re-enabled where the container allows it
        if os.getenv("COLLECTOR_BROWSER_SANDBOX", "false").lower() == "true":
            values['launch_args'] = [
                arg for arg in cls().launch_args
                if arg not in ('--no-sandbox', '--disable-setuid-sandbox')
            ]

        values.update(overrides)
        return cls(**values)

    def for_target(self, target: "CrawlTarget") -> "CollectorConfig":
        """Return a copy of this config bounded by the given target"""
        return replace(
            self,
            max_pages=target.max_pages,
            max_depth=target.max_depth,
            timeout_ms=target.timeout_ms,
            launch_args=list(self.launch_args),
            extra_http_headers=dict(self.extra_http_headers),
        )


@dataclass(frozen=True)
class CrawlTarget:
    """Origin URL plus the bounds of one collection run"""
    url: str
    max_pages: int = 50
    max_depth: int = 3
    timeout_ms: int = 30000

    def __post_init__(self):
        parsed = urlparse(self.url)
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValueError(f"Crawl target must be an absolute http(s) URL: {self.url!r}")
        if self.max_pages < 1:
            raise ValueError("max_pages must be at least 1")
        if self.max_depth < 0:
            raise ValueError("max_depth cannot be negative")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")

    @classmethod
    def from_config(cls, url: str, config: CollectorConfig) -> "CrawlTarget":
        return cls(
            url=url,
            max_pages=config.max_pages,
            max_depth=config.max_depth,
            timeout_ms=config.timeout_ms,
        )
