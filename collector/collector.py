"""
Collection orchestrator: browser lifecycle, walk, per-page extraction, aggregation
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set, Tuple, Union

from .aggregator import MultiPageAggregator
from .browser import BrowserSession, ConsoleRecorder, navigate
from .config import CollectorConfig, CrawlTarget
from .exceptions import BlockedByTarget, CollectionError, NavigationTimeout, UnhandledCollectionError
from .extractor import PageExtractor, detect_block_page
from .models import (
    ComprehensiveCollectionResult,
    PageData,
    PageFailure,
    SiteFiles,
    SiteMapData,
    SitemapEntry,
)
from .site_probe import SiteFileProbe
from .url_filter import normalize_url
from .walker import SiteWalker


BLOCKED_STATUS = 403


class SiteCollector:
    """Runs one complete collection per ``collect`` call, each with its own browser"""

    def __init__(
        self,
        config: Optional[CollectorConfig] = None,
        session_factory: Callable[[CollectorConfig], BrowserSession] = BrowserSession,
        probe: Optional[SiteFileProbe] = None,
    ):
        self.config = config or CollectorConfig()
        self.session_factory = session_factory
        self.probe = probe
        self.session = None
        self.logger = logging.getLogger(__name__)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def open(self, config: Optional[CollectorConfig] = None):
        """Launch a browser session and return its page"""
        if self.session is not None:
            raise RuntimeError("A collection is already running on this collector")
        self.session = self.session_factory(config or self.config)
        return await self.session.start()

    async def close(self):
        """Close the current browser session, if any"""
        session, self.session = self.session, None
        if session is not None:
            await session.close()
            self.logger.info("Browser closed")

    async def collect(
        self,
        target: Union[str, CrawlTarget],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ComprehensiveCollectionResult:
        """Crawl, extract and aggregate one site

        Args:
            target: Seed URL, or a CrawlTarget carrying per-run bounds
            cancel_event: When set, the run stops at the next page and returns
                what it has collected so far

        Raises:
            BrowserLaunchFailed: The browser could not be started
            BlockedByTarget: Every page of the site served a block page
            UnhandledCollectionError: Any other fatal failure
        """
        if not isinstance(target, CrawlTarget):
            target = CrawlTarget.from_config(target, self.config)
        config = self.config.for_target(target)
        url = target.url

        self.logger.info(f"Starting collection for {url}")
        try:
            page = await self.open(config)
            recorder = ConsoleRecorder(page)

            walker = SiteWalker(page, config)
            site_map = await walker.walk(url, cancel_event=cancel_event)
            origin = walker.seed_url or normalize_url(url)
            self.logger.info(
                f"Walk finished: {site_map.total_pages} pages, "
                f"{len(site_map.broken_links)} broken links, {len(site_map.redirects)} redirects"
            )

            site_files = await self._probe_site_files(origin, config)

            entries = site_map.sitemap[:config.max_pages]
            pages, failures = await self._extract_pages(
                page, recorder, entries, origin, config, cancel_event,
            )
            blocked = [failure for failure in failures if failure.kind == 'blocked']
            if entries and len(blocked) == len(entries):
                raise BlockedByTarget(url, blocked[0].reason)

            site_map = replace(site_map, orphaned_pages=self._orphaned_pages(site_map, pages, origin))

            report = MultiPageAggregator(config).aggregate(pages, site_files)
            summary = replace(report.summary, blocked_pages=len(blocked))

            result = ComprehensiveCollectionResult(
                url=url,
                timestamp=datetime.now(timezone.utc).isoformat(),
                pages=pages,
                site_map=site_map,
                performance=report.performance,
                seo=report.seo,
                content=report.content,
                technical=report.technical,
                user_experience=report.user_experience,
                summary=summary,
                failures=failures,
            )
            self.logger.info(
                f"Collection finished for {url}: {len(pages)} pages, {len(failures)} failures"
            )
            return result

        except CollectionError:
            raise
        except Exception as e:
            self.logger.error(f"Collection failed for {url}: {e}")
            raise UnhandledCollectionError(url, e) from e
        finally:
            await self.close()

    async def _probe_site_files(self, origin: str, config: CollectorConfig) -> SiteFiles:
        if not config.probe_site_files:
            return SiteFiles()
        probe = self.probe or SiteFileProbe(config)
        try:
            return await asyncio.to_thread(probe.probe, origin)
        except Exception as e:
            self.logger.warning(f"Site file probe failed for {origin}: {e}")
            return SiteFiles()
        finally:
            if probe is not self.probe:
                probe.close()

    async def _navigate_with_retry(self, page, url: str, config: CollectorConfig):
        attempts = config.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await navigate(page, url, config)
            except Exception as e:
                if attempt == attempts:
                    raise
                delay = config.retry_backoff * attempt
                self.logger.warning(f"Attempt {attempt} for {url} failed ({e}), retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

    async def _extract_pages(
        self,
        page,
        recorder: ConsoleRecorder,
        entries: List[SitemapEntry],
        origin: str,
        config: CollectorConfig,
        cancel_event: Optional[asyncio.Event],
    ) -> Tuple[List[PageData], List[PageFailure]]:
        extractor = PageExtractor(config)
        pages: List[PageData] = []
        failures: List[PageFailure] = []

        for entry in entries:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info("Collection cancelled, returning partial results")
                break

            recorder.clear()
            try:
                response, elapsed = await self._navigate_with_retry(page, entry.url, config)
                if config.settle_delay_ms:
                    await asyncio.sleep(config.settle_delay_ms / 1000)

                if response is not None and response.status == BLOCKED_STATUS:
                    self.logger.warning(f"Blocked at {entry.url}: HTTP {BLOCKED_STATUS}")
                    failures.append(PageFailure(entry.url, f"HTTP {BLOCKED_STATUS}", 'blocked'))
                    continue

                page_data = await extractor.extract(
                    page,
                    url=entry.url,
                    origin=origin,
                    response=response,
                    response_time=elapsed,
                    console_errors=recorder.drain(),
                )
            except NavigationTimeout as e:
                self.logger.warning(f"Skipping {entry.url}: {e}")
                failures.append(PageFailure(entry.url, str(e), 'timeout'))
                continue
            except Exception as e:
                self.logger.error(f"Error extracting {entry.url}: {e}")
                failures.append(PageFailure(entry.url, f"{type(e).__name__}: {e}", 'error'))
                continue

            signature = detect_block_page(page_data.title, page_data.content.text)
            if signature:
                text_length = len(page_data.content.text)
                if text_length < config.block_text_threshold:
                    self.logger.warning(f"Block page detected at {entry.url}: {signature}")
                    failures.append(PageFailure(entry.url, signature, 'blocked'))
                    continue
                self.logger.warning(
                    f"Possible block at {entry.url} ({signature}), "
                    f"but content length is {text_length}, keeping the page"
                )
                page_data = replace(page_data, suspected_block=signature)

            pages.append(page_data)

        return pages, failures

    @staticmethod
    def _orphaned_pages(site_map: SiteMapData, pages: List[PageData], origin: str) -> List[str]:
        linked: Set[str] = {
            normalize_url(link.href)
            for page in pages
            for link in page.content.links
            if link.is_internal
        }
        return [
            entry.url for entry in site_map.sitemap
            if entry.url != origin and entry.url not in linked
        ]
