"""
Tests for the breadth-first site walker
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from collector.config import CollectorConfig
from collector.models import UrlState
from collector.walker import SiteWalker
from fakes import FakePage, FakeSite, html_page

SEED = "https://example.com/"


def walker_for(site: FakeSite, **overrides) -> SiteWalker:
    config = CollectorConfig(settle_delay_ms=0, **overrides)
    return SiteWalker(FakePage(site), config)


def three_page_site() -> FakeSite:
    return (
        FakeSite()
        .page(SEED, html_page("Home", links=["/about", "/contact"]))
        .page("https://example.com/about", html_page("About", links=["/", "/contact"]))
        .page("https://example.com/contact", html_page("Contact", links=["/", "/about"]))
    )


def entries_by_url(site_map):
    return {entry.url: entry for entry in site_map.sitemap}


@pytest.mark.unit
class TestBreadthFirstWalk:
    """Depth assignment, bounds and de-duplication"""

    @pytest.mark.asyncio
    async def test_simple_three_page_site(self):
        walker = walker_for(three_page_site(), max_depth=2)
        site_map = await walker.walk(SEED)

        entries = entries_by_url(site_map)
        assert len(site_map.sitemap) == 3
        assert entries[SEED].depth == 0
        assert entries["https://example.com/about"].depth == 1
        assert entries["https://example.com/contact"].depth == 1
        assert site_map.broken_links == []
        assert site_map.total_pages == 3
        assert site_map.depth == 1

    @pytest.mark.asyncio
    async def test_visit_order_is_breadth_first(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/a", "/b"]))
            .page("https://example.com/a", html_page("A", links=["/a/deep"]))
            .page("https://example.com/b", html_page("B", links=["/b/deep"]))
            .page("https://example.com/a/deep", html_page("A deep"))
            .page("https://example.com/b/deep", html_page("B deep"))
        )
        walker = walker_for(site)
        site_map = await walker.walk(SEED)

        assert [entry.url for entry in site_map.sitemap] == [
            SEED,
            "https://example.com/a",
            "https://example.com/b",
            "https://example.com/a/deep",
            "https://example.com/b/deep",
        ]
        assert [entry.depth for entry in site_map.sitemap] == [0, 1, 1, 2, 2]

    @pytest.mark.asyncio
    async def test_depth_is_shortest_distance(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/a", "/shared"]))
            .page("https://example.com/a", html_page("A", links=["/shared"]))
            .page("https://example.com/shared", html_page("Shared"))
        )
        site_map = await walker_for(site).walk(SEED)

        assert entries_by_url(site_map)["https://example.com/shared"].depth == 1

    @pytest.mark.asyncio
    async def test_max_depth_is_respected(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/one"]))
            .page("https://example.com/one", html_page("One", links=["/two"]))
            .page("https://example.com/two", html_page("Two", links=["/three"]))
            .page("https://example.com/three", html_page("Three"))
        )
        site_map = await walker_for(site, max_depth=1).walk(SEED)

        assert [entry.url for entry in site_map.sitemap] == [SEED, "https://example.com/one"]
        assert all(entry.depth <= 1 for entry in site_map.sitemap)

    @pytest.mark.asyncio
    async def test_max_pages_one_keeps_only_seed(self):
        links = [f"/page-{i}" for i in range(20)]
        site = FakeSite().page(SEED, html_page("Home", links=links))
        for link in links:
            site.page(f"https://example.com{link}", html_page(link))

        walker = walker_for(site, max_pages=1)
        site_map = await walker.walk(SEED)

        assert [entry.url for entry in site_map.sitemap] == [SEED]
        assert walker.page.visits == [SEED]

    @pytest.mark.asyncio
    async def test_max_pages_bounds_dense_site(self):
        site = FakeSite()
        urls = [SEED] + [f"https://example.com/p{i}" for i in range(12)]
        for url in urls:
            site.page(url, html_page(url, links=urls))

        site_map = await walker_for(site, max_pages=5).walk(SEED)

        assert site_map.total_pages <= 5

    @pytest.mark.asyncio
    async def test_no_page_is_visited_twice(self):
        walker = walker_for(three_page_site())
        await walker.walk(SEED)

        visits = walker.page.visits
        assert len(visits) == len(set(visits))

    @pytest.mark.asyncio
    async def test_external_and_asset_links_are_not_followed(self):
        site = FakeSite().page(SEED, html_page("Home", links=[
            "https://other.example.org/",
            "http://example.com/insecure",
            "https://example.com:8443/other-port",
            "/logo.png",
            "/brochure.pdf",
            "mailto:team@example.com",
            "/about#team",
        ]))
        site.page("https://example.com/about", html_page("About"))

        walker = walker_for(site)
        site_map = await walker.walk(SEED)

        assert [entry.url for entry in site_map.sitemap] == [SEED, "https://example.com/about"]
        assert "https://other.example.org/" not in walker.page.visits

    @pytest.mark.asyncio
    async def test_sitemap_entry_fields(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/about"]),
                  headers={'last-modified': 'Wed, 01 May 2024 10:00:00 GMT'})
            .page("https://example.com/about", html_page("About"),
                  headers={'date': 'Thu, 02 May 2024 10:00:00 GMT'})
        )
        site_map = await walker_for(site).walk(SEED)
        seed, about = site_map.sitemap

        assert seed.priority == 1.0
        assert about.priority == 0.8
        assert seed.change_frequency == "weekly"
        assert seed.last_modified == 'Wed, 01 May 2024 10:00:00 GMT'
        assert about.last_modified == 'Thu, 02 May 2024 10:00:00 GMT'


@pytest.mark.unit
class TestBrokenLinks:
    """Failed URLs are recorded and the walk carries on"""

    @pytest.mark.asyncio
    async def test_404_is_broken_and_walk_continues(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/missing", "/about"]))
            .page("https://example.com/about", html_page("About"))
        )
        walker = walker_for(site)
        site_map = await walker.walk(SEED)

        assert "https://example.com/missing" in site_map.broken_links
        assert "https://example.com/missing" not in entries_by_url(site_map)
        assert "https://example.com/about" in entries_by_url(site_map)
        assert walker.states["https://example.com/missing"] == UrlState.BROKEN
        assert walker.states["https://example.com/about"] == UrlState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_timeout_is_broken(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/slow", "/about"]))
            .timeout("https://example.com/slow")
            .page("https://example.com/about", html_page("About"))
        )
        site_map = await walker_for(site).walk(SEED)

        assert site_map.broken_links == ["https://example.com/slow"]
        assert len(site_map.sitemap) == 2

    @pytest.mark.asyncio
    async def test_unreachable_seed_gives_empty_map(self):
        site = FakeSite().timeout(SEED)
        site_map = await walker_for(site).walk(SEED)

        assert site_map.sitemap == []
        assert site_map.broken_links == [SEED]
        assert site_map.depth == 0


@pytest.mark.unit
class TestRedirects:
    """Redirects are recorded as data"""

    @pytest.mark.asyncio
    async def test_literal_redirect_is_recorded_not_followed(self):
        site = (
            FakeSite(follow_redirects=False)
            .page(SEED, html_page("Home", links=["/old"]))
            .redirect("https://example.com/old", "/new", status=301)
            .page("https://example.com/new", html_page("New"))
        )
        walker = walker_for(site)
        site_map = await walker.walk(SEED)

        redirect = site_map.redirects[0]
        assert redirect.from_url == "https://example.com/old"
        assert redirect.to_url == "https://example.com/new"
        assert redirect.status == 301
        assert redirect.type == "permanent"
        assert "https://example.com/new" not in entries_by_url(site_map)
        assert walker.states["https://example.com/old"] == UrlState.REDIRECTED

    @pytest.mark.asyncio
    async def test_followed_redirect_is_detected(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/old"]))
            .redirect("https://example.com/old", "https://example.com/new", status=302)
            .page("https://example.com/new", html_page("New"))
        )
        walker = walker_for(site)
        site_map = await walker.walk(SEED)

        assert len(site_map.redirects) == 1
        assert site_map.redirects[0].status == 302
        assert site_map.redirects[0].type == "temporary"
        # The browser already landed on the target, so it counts as visited
        assert [entry.url for entry in site_map.sitemap] == [SEED, "https://example.com/new"]
        assert walker.states["https://example.com/old"] == UrlState.REDIRECTED
        assert walker.states["https://example.com/new"] == UrlState.SUCCEEDED
        assert "https://example.com/new" not in walker.page.visits

    @pytest.mark.asyncio
    async def test_trailing_slash_redirects_keep_pages(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/about", "/contact"]))
            .redirect("https://example.com/about", "/about/")
            .redirect("https://example.com/contact", "/contact/")
            .page("https://example.com/about/", html_page("About", links=["/team/"]))
            .page("https://example.com/contact/", html_page("Contact"))
            .page("https://example.com/team/", html_page("Team"))
        )
        site_map = await walker_for(site).walk(SEED)

        assert [(entry.url, entry.depth) for entry in site_map.sitemap] == [
            (SEED, 0),
            ("https://example.com/about/", 1),
            ("https://example.com/contact/", 1),
            ("https://example.com/team/", 2),
        ]
        assert [redirect.to_url for redirect in site_map.redirects] == [
            "https://example.com/about/", "https://example.com/contact/",
        ]
        assert site_map.broken_links == []

    @pytest.mark.asyncio
    async def test_followed_redirect_to_visited_page_adds_nothing(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/home"]))
            .redirect("https://example.com/home", SEED)
        )
        site_map = await walker_for(site).walk(SEED)

        assert [entry.url for entry in site_map.sitemap] == [SEED]
        assert len(site_map.redirects) == 1

    @pytest.mark.asyncio
    async def test_followed_redirect_respects_page_budget(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/about"]))
            .redirect("https://example.com/about", "/about/")
            .page("https://example.com/about/", html_page("About"))
        )
        walker = walker_for(site, max_pages=2)
        site_map = await walker.walk(SEED)

        assert [entry.url for entry in site_map.sitemap] == [SEED]
        assert len(walker.visited) <= 2

    @pytest.mark.asyncio
    async def test_follow_redirects_option_visits_target(self):
        site = (
            FakeSite()
            .page(SEED, html_page("Home", links=["/old", "/other"]))
            .redirect("https://example.com/old", "https://example.com/new")
            .page("https://example.com/new", html_page("New"))
            .page("https://example.com/other", html_page("Other"))
        )
        site_map = await walker_for(site, follow_redirects=True).walk(SEED)

        entries = entries_by_url(site_map)
        assert entries["https://example.com/new"].depth == 1
        assert [entry.url for entry in site_map.sitemap] == [
            SEED, "https://example.com/new", "https://example.com/other",
        ]

    @pytest.mark.asyncio
    async def test_follow_redirects_skips_external_target(self):
        site = (
            FakeSite(follow_redirects=False)
            .page(SEED, html_page("Home", links=["/out"]))
            .redirect("https://example.com/out", "https://elsewhere.example.net/")
        )
        walker = walker_for(site, follow_redirects=True)
        site_map = await walker.walk(SEED)

        assert "https://elsewhere.example.net/" not in walker.page.visits
        assert len(site_map.redirects) == 1

    @pytest.mark.asyncio
    async def test_redirecting_seed_roots_crawl_at_target(self):
        site = (
            FakeSite()
            .redirect("http://example.com/", SEED)
            .page(SEED, html_page("Home", links=["/about"]))
            .page("https://example.com/about", html_page("About"))
        )
        walker = walker_for(site)
        site_map = await walker.walk("http://example.com")

        assert walker.seed_url == SEED
        assert [entry.url for entry in site_map.sitemap] == [SEED, "https://example.com/about"]
        assert site_map.redirects[0].from_url == "http://example.com/"
        # The landing page of the seed redirect is not loaded a second time
        assert walker.page.visits == ["http://example.com/", "https://example.com/about"]

    @pytest.mark.asyncio
    async def test_literal_seed_redirect_loads_target(self):
        site = (
            FakeSite(follow_redirects=False)
            .redirect("http://example.com/", SEED)
            .page(SEED, html_page("Home"))
        )
        walker = walker_for(site)
        site_map = await walker.walk("http://example.com")

        assert [entry.url for entry in site_map.sitemap] == [SEED]
        assert walker.page.visits == ["http://example.com/", SEED]


@pytest.mark.unit
class TestCancellation:
    """A set cancel event stops the walk with partial results"""

    @pytest.mark.asyncio
    async def test_cancel_mid_walk(self):
        cancel = asyncio.Event()
        walker = walker_for(three_page_site())
        walker.page.hooks["https://example.com/about"] = cancel.set

        site_map = await walker.walk(SEED, cancel_event=cancel)

        assert [entry.url for entry in site_map.sitemap] == [SEED, "https://example.com/about"]
        assert walker.states["https://example.com/contact"] == UrlState.QUEUED

    @pytest.mark.asyncio
    async def test_walk_is_reusable(self):
        walker = walker_for(three_page_site())
        first = await walker.walk(SEED)
        second = await walker.walk(SEED)

        assert [e.url for e in first.sitemap] == [e.url for e in second.sitemap]
        assert first.broken_links == second.broken_links == []
