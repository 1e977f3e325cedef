"""
Breadth-first site walker that builds the sitemap
"""

import asyncio
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Set, Tuple

from .browser import navigate, redirect_of
from .config import CollectorConfig
from .exceptions import NavigationTimeout
from .models import RedirectData, SiteMapData, SitemapEntry, UrlState, sitemap_priority
from .url_filter import UrlFilter, discover_links, normalize_url


class SiteWalker:
    """Visits same-origin pages in BFS order up to the page and depth bounds"""

    def __init__(self, page, config: Optional[CollectorConfig] = None):
        self.page = page
        self.config = config or CollectorConfig()
        self.logger = logging.getLogger(__name__)

        self.seed_url: Optional[str] = None
        self.visited: Set[str] = set()
        self.states: Dict[str, UrlState] = {}
        self.sitemap: List[SitemapEntry] = []
        self.broken_links: List[str] = []
        self.redirects: List[RedirectData] = []

    def _reset(self):
        self.visited = set()
        self.states = {}
        self.sitemap = []
        self.broken_links = []
        self.redirects = []

    def _mark_broken(self, url: str, reason: str):
        self.logger.warning(f"Broken link {url}: {reason}")
        self.states[url] = UrlState.BROKEN
        self.broken_links.append(url)

    @staticmethod
    def _last_modified(headers: Dict[str, str]) -> str:
        return (
            headers.get('last-modified')
            or headers.get('date')
            or datetime.now(timezone.utc).isoformat()
        )

    async def _discover(self, url: str) -> List[str]:
        html = await self.page.content()
        base_url = getattr(self.page, 'url', None) or url
        return discover_links(html, base_url)

    async def _resolve_seed(self, seed_url: str) -> Tuple[Optional[str], Optional[Any]]:
        """Follow a redirecting seed to the URL the crawl is rooted at

        Returns the root URL and, when the browser already landed there, the
        response to reuse for the depth-0 visit.
        """
        try:
            response, _ = await navigate(self.page, seed_url, self.config)
        except Exception as e:
            self._mark_broken(seed_url, f"{type(e).__name__}: {e}")
            return None, None

        if response is None:
            return seed_url, None

        redirect = await redirect_of(response, seed_url)
        if redirect is None:
            return seed_url, response
        if not redirect.to_url:
            return seed_url, None

        self.logger.info(f"Seed redirects to {redirect.to_url}, rooting the crawl there")
        self.states[seed_url] = UrlState.REDIRECTED
        self.redirects.append(redirect)
        if 300 <= response.status < 400:
            return normalize_url(redirect.to_url), None
        return normalize_url(response.url), response

    async def walk(self, seed_url: str, cancel_event: Optional[asyncio.Event] = None) -> SiteMapData:
        """Crawl from the seed and return the finished site map"""
        self._reset()
        seed_url = normalize_url(seed_url)
        self.seed_url = seed_url

        resolved, seed_response = await self._resolve_seed(seed_url)
        if resolved is None:
            return self._site_map()
        self.seed_url = resolved

        url_filter = UrlFilter(resolved)
        queue: Deque[Tuple[str, int]] = deque([(url_filter.seed_url, 0)])
        self.states[url_filter.seed_url] = UrlState.QUEUED
        landed: Dict[str, Any] = {}
        if seed_response is not None:
            landed[url_filter.seed_url] = seed_response

        self.logger.info(
            f"Walking {url_filter.seed_url} (max_pages={self.config.max_pages}, "
            f"max_depth={self.config.max_depth})"
        )

        while queue and len(self.visited) < self.config.max_pages:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info("Walk cancelled, returning partial site map")
                break

            url, depth = queue.popleft()
            if url in self.visited or depth > self.config.max_depth:
                continue

            self.visited.add(url)
            self.states[url] = UrlState.VISITING

            try:
                if url in landed:
                    response = landed.pop(url)
                else:
                    response, _ = await navigate(self.page, url, self.config)
                    if response is None:
                        self._mark_broken(url, "no response")
                        continue

                    redirect = await redirect_of(response, url)
                    if redirect is not None:
                        self.logger.info(f"Redirect {redirect.from_url} -> {redirect.to_url} ({redirect.status})")
                        self.states[url] = UrlState.REDIRECTED
                        self.redirects.append(redirect)
                        if 300 <= response.status < 400:
                            self._follow_redirect(redirect, depth, url_filter, queue)
                            continue
                        url = self._claim_landing(response.url, url_filter)
                        if url is None:
                            continue

                if response.status >= 400:
                    self._mark_broken(url, f"HTTP {response.status}")
                    continue

                self.sitemap.append(SitemapEntry(
                    url=url,
                    depth=depth,
                    priority=sitemap_priority(depth),
                    last_modified=self._last_modified(response.headers),
                ))
                self.states[url] = UrlState.SUCCEEDED

                if depth >= self.config.max_depth:
                    continue

                links = await self._discover(url)
                for link in url_filter.frontier_candidates(links, self.visited):
                    queue.append((link, depth + 1))
                    self.states.setdefault(link, UrlState.QUEUED)

            except NavigationTimeout as e:
                self._mark_broken(url, str(e))
            except Exception as e:
                self._mark_broken(url, f"{type(e).__name__}: {e}")

        return self._site_map()

    def _claim_landing(self, landed_url: str, url_filter: UrlFilter) -> Optional[str]:
        """Take over the page the browser landed on after following a redirect"""
        target = normalize_url(landed_url)
        if target in self.visited or not url_filter.is_crawlable(target):
            return None
        if len(self.visited) >= self.config.max_pages:
            return None
        self.visited.add(target)
        self.states[target] = UrlState.VISITING
        return target

    def _follow_redirect(self, redirect: RedirectData, depth: int, url_filter: UrlFilter, queue: Deque):
        """Queue a redirect target next, when following redirects is enabled"""
        if not self.config.follow_redirects or not redirect.to_url:
            return
        target = normalize_url(redirect.to_url)
        if target in self.visited or not url_filter.is_crawlable(target):
            return
        # Front of the queue at the same depth keeps BFS ordering intact
        queue.appendleft((target, depth))
        self.states.setdefault(target, UrlState.QUEUED)

    def _site_map(self) -> SiteMapData:
        return SiteMapData(
            total_pages=len(self.sitemap),
            depth=max((entry.depth for entry in self.sitemap), default=0),
            orphaned_pages=[],
            broken_links=list(self.broken_links),
            redirects=list(self.redirects),
            sitemap=list(self.sitemap),
        )
