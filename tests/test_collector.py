"""
End-to-end tests for the collection orchestrator over a fake browser
"""

import asyncio
import json
import sys
from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collector.aggregator import MultiPageAggregator
from collector.collector import SiteCollector
from collector.config import CollectorConfig, CrawlTarget
from collector.exceptions import BlockedByTarget, BrowserLaunchFailed, UnhandledCollectionError
from collector.models import SiteFiles
from collector.walker import SiteWalker
from fakes import FakeSite, html_page, session_factory

SEED = "https://example.com/"


def fast_config(**overrides) -> CollectorConfig:
    values = dict(settle_delay_ms=0, max_retries=0, retry_backoff=0, probe_site_files=False)
    values.update(overrides)
    return CollectorConfig(**values)


def three_page_site() -> FakeSite:
    return (
        FakeSite()
        .page(SEED, html_page("Home", body="Welcome to the example platform", links=["/about", "/contact"]))
        .page("https://example.com/about", html_page("About", body="About our company", links=["/", "/contact"]))
        .page("https://example.com/contact", html_page("Contact", body="Write to us", links=["/"]))
    )


@pytest.mark.unit
class TestCollect:
    """Successful collections"""

    @pytest.mark.asyncio
    async def test_collects_every_sitemap_page(self):
        factory = session_factory(three_page_site())
        collector = SiteCollector(fast_config(max_depth=2), session_factory=factory)

        result = await collector.collect(SEED)

        assert [page.url for page in result.pages] == [
            SEED, "https://example.com/about", "https://example.com/contact",
        ]
        assert result.site_map.total_pages == 3
        assert result.summary.total_pages == 3
        assert result.failures == []
        assert result.url == SEED
        assert factory.sessions[0].closed

    @pytest.mark.asyncio
    async def test_pages_are_extracted_once(self):
        factory = session_factory(three_page_site())
        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        urls = [page.url for page in result.pages]
        assert len(urls) == len(set(urls))

    @pytest.mark.asyncio
    async def test_max_pages_one(self):
        site = FakeSite().page(SEED, html_page("Home", links=[f"/p{i}" for i in range(10)]))
        factory = session_factory(site)

        result = await SiteCollector(fast_config(max_pages=1), session_factory=factory).collect(SEED)

        assert len(result.pages) == 1
        assert [entry.url for entry in result.site_map.sitemap] == [SEED]

    @pytest.mark.asyncio
    async def test_crawl_target_overrides_bounds(self):
        factory = session_factory(three_page_site())
        target = CrawlTarget(SEED, max_pages=2, max_depth=1)

        result = await SiteCollector(fast_config(), session_factory=factory).collect(target)

        assert len(result.pages) == 2
        assert factory.sessions[0].config.max_pages == 2

    @pytest.mark.asyncio
    async def test_orphaned_pages(self):
        # The hub is blocked, so nothing collected links to the leaf
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/hub"]))
            .page("https://example.com/hub", html_page("Hub", body="Access Denied", links=["/leaf"]))
            .page("https://example.com/leaf", html_page("Leaf"))
        )
        factory = session_factory(site)

        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        assert result.site_map.orphaned_pages == ["https://example.com/leaf"]

    @pytest.mark.asyncio
    async def test_broken_links_do_not_abort(self):
        site = three_page_site().page(SEED, html_page("Home", links=["/about", "/gone"]))
        factory = session_factory(site)

        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        assert "https://example.com/gone" in result.site_map.broken_links
        assert "https://example.com/gone" not in [page.url for page in result.pages]

    @pytest.mark.asyncio
    async def test_site_file_probe_runs_off_loop(self):
        probe = Mock()
        probe.probe.return_value = SiteFiles(robots_txt=True, sitemap=True)
        factory = session_factory(three_page_site())
        collector = SiteCollector(fast_config(probe_site_files=True), session_factory=factory, probe=probe)

        result = await collector.collect(SEED)

        probe.probe.assert_called_once_with(SEED)
        assert result.seo.technical_seo.robots_txt is True
        assert result.seo.technical_seo.sitemap is True

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        factory = session_factory(three_page_site())
        async with SiteCollector(fast_config(), session_factory=factory) as collector:
            await collector.collect(SEED)
        assert collector.session is None
        assert factory.sessions[0].closed

    @pytest.mark.asyncio
    async def test_each_collect_uses_its_own_browser(self):
        factory = session_factory(three_page_site())
        collector = SiteCollector(fast_config(), session_factory=factory)

        await collector.collect(SEED)
        await collector.collect(SEED)

        assert len(factory.sessions) == 2
        assert all(session.closed for session in factory.sessions)


@pytest.mark.unit
class TestBlockedPages:
    """Bot-protection pages are reported, never collected"""

    @pytest.mark.asyncio
    async def test_access_denied_page_is_excluded(self):
        site = three_page_site().page(
            "https://example.com/contact",
            html_page("Error", body="Access Denied. You don't have permission to access this server."),
        )
        factory = session_factory(site)

        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        assert "https://example.com/contact" not in [page.url for page in result.pages]
        failure = result.failures[0]
        assert failure.url == "https://example.com/contact"
        assert failure.kind == "blocked"
        assert result.summary.blocked_pages == 1
        assert result.summary.total_pages == 2

    @pytest.mark.asyncio
    async def test_403_page_is_never_collected(self):
        site = three_page_site().page("https://example.com/about", html_page("About"), status=403)
        factory = session_factory(site)

        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        # The walker already sees the 403 as a broken link
        assert "https://example.com/about" in result.site_map.broken_links
        assert "https://example.com/about" not in [page.url for page in result.pages]

    @pytest.mark.asyncio
    async def test_fully_blocked_site_raises(self):
        site = FakeSite().page(SEED, html_page("Access Denied", body="Cloudflare Ray ID: 12345"))
        factory = session_factory(site)

        with pytest.raises(BlockedByTarget):
            await SiteCollector(fast_config(), session_factory=factory).collect(SEED)
        assert factory.sessions[0].closed

    @pytest.mark.asyncio
    async def test_article_mentioning_a_signature_is_kept(self):
        article = " ".join(
            ["Our support team explains what to do when a login page reports access denied."] * 40
        )
        site = FakeSite().page(SEED, html_page("Troubleshooting logins", body=article))
        factory = session_factory(site)

        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        assert [page.url for page in result.pages] == [SEED]
        assert result.pages[0].suspected_block == "access denied"
        assert result.failures == []
        assert result.summary.blocked_pages == 0
        assert result.to_dict()['pages'][0]['suspectedBlock'] == "access denied"

    @pytest.mark.asyncio
    async def test_block_text_threshold_is_configurable(self):
        body = "Rate limit exceeded, please slow down and try again in a few minutes."
        site = three_page_site().page("https://example.com/contact", html_page("Contact", body=body))

        strict = await SiteCollector(
            fast_config(), session_factory=session_factory(site),
        ).collect(SEED)
        lenient = await SiteCollector(
            fast_config(block_text_threshold=20), session_factory=session_factory(site),
        ).collect(SEED)

        assert [failure.kind for failure in strict.failures] == ["blocked"]
        assert "https://example.com/contact" not in [page.url for page in strict.pages]
        assert lenient.failures == []
        contact = [page for page in lenient.pages if page.url == "https://example.com/contact"][0]
        assert contact.suspected_block == "Rate limit exceeded"

    @pytest.mark.asyncio
    async def test_unflagged_pages_have_no_suspected_block(self):
        factory = session_factory(three_page_site())
        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        assert all(page.suspected_block is None for page in result.pages)


@pytest.mark.unit
class TestFailures:
    """Fatal errors close the browser before propagating"""

    @pytest.mark.asyncio
    async def test_launch_failure(self):
        factory = session_factory(three_page_site(), fail_launch=True)
        collector = SiteCollector(fast_config(), session_factory=factory)

        with pytest.raises(BrowserLaunchFailed):
            await collector.collect(SEED)
        assert factory.sessions[0].closed
        assert collector.session is None

    @pytest.mark.asyncio
    async def test_unhandled_error_is_wrapped(self):
        factory = session_factory(three_page_site())
        collector = SiteCollector(fast_config(), session_factory=factory)

        with patch.object(MultiPageAggregator, 'aggregate', side_effect=RuntimeError("boom")):
            with pytest.raises(UnhandledCollectionError) as exc_info:
                await collector.collect(SEED)

        assert isinstance(exc_info.value.cause, RuntimeError)
        assert factory.sessions[0].closed

    @pytest.mark.asyncio
    async def test_extraction_timeout_is_recorded(self):
        site = three_page_site()
        factory = session_factory(site)
        collector = SiteCollector(fast_config(), session_factory=factory)
        real_walk = SiteWalker.walk

        # Time out the contact page only after the walk has mapped it
        async def walk_then_stall(self, seed_url, cancel_event=None):
            site_map = await real_walk(self, seed_url, cancel_event)
            site.timeout("https://example.com/contact")
            return site_map

        with patch.object(SiteWalker, 'walk', walk_then_stall):
            result = await collector.collect(SEED)

        assert [failure.kind for failure in result.failures] == ["timeout"]
        assert result.failures[0].url == "https://example.com/contact"
        assert len(result.pages) == 2

    @pytest.mark.asyncio
    async def test_navigation_is_retried(self):
        calls = []

        def flaky():
            calls.append(SEED)
            # The walk succeeds, the first extraction attempt times out
            if len(calls) == 2:
                raise PlaywrightTimeoutError("Timeout 30000ms exceeded.")

        factory = session_factory(three_page_site(), hooks={SEED: flaky})
        collector = SiteCollector(fast_config(max_retries=2, max_pages=1), session_factory=factory)

        result = await collector.collect(SEED)

        assert len(result.pages) == 1
        assert result.failures == []
        assert len(calls) == 3


@pytest.mark.unit
class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_returns_partial_result(self):
        cancel = asyncio.Event()
        factory = session_factory(three_page_site(), hooks={"https://example.com/about": cancel.set})
        collector = SiteCollector(fast_config(), session_factory=factory)

        result = await collector.collect(SEED, cancel_event=cancel)

        assert [entry.url for entry in result.site_map.sitemap] == [SEED, "https://example.com/about"]
        assert result.pages == []
        assert factory.sessions[0].closed


@pytest.mark.unit
class TestSerialization:
    """The result serializes to the camelCase JSON contract"""

    @pytest.mark.asyncio
    async def test_json_contract(self):
        site = (
            FakeSite(follow_redirects=False)
            .page(SEED, html_page("Home", links=["/about", "/old"]))
            .page("https://example.com/about", html_page("About"))
            .redirect("https://example.com/old", "/about", status=301)
        )
        factory = session_factory(site)
        result = await SiteCollector(fast_config(), session_factory=factory).collect(SEED)

        data = json.loads(json.dumps(result.to_dict()))

        assert set(data) == {
            'url', 'timestamp', 'pages', 'siteMap', 'performance', 'seo', 'content',
            'technical', 'userExperience', 'summary', 'failures',
        }
        page = data['pages'][0]
        assert page['performance']['largestContentfulPaint'] is None
        assert page['performance']['cumulativeLayoutShift'] is None
        assert 'metaDescription' in page
        assert page['classification']['businessType'] == 'UNKNOWN'
        assert data['siteMap']['redirects'][0] == {
            'from': 'https://example.com/old',
            'to': 'https://example.com/about',
            'status': 301,
            'type': 'permanent',
        }
        assert data['siteMap']['sitemap'][0]['changeFrequency'] == 'weekly'
        assert data['summary']['blockedPages'] == 0
        assert data['performance']['metrics']['speedIndex'] is None
