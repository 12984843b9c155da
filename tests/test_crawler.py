"""End-to-end crawl scenarios over canned pages."""

import pytest

from listing_crawler.config import CrawlConfig
from listing_crawler.crawl.crawler import ListingCrawler
from listing_crawler.crawl.stealth import StealthHeaders
from listing_crawler.export.dataset import Dataset
from listing_crawler.utils.diagnostics import DiagnosticStore
from tests.pages import BASE_URL, jsonld_product, jsonld_script, myx_product, myx_script, page

CHROME = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/125.0.0.0 Safari/537.36"
)


class FakeGenerator:
    def generate(self):
        return {"User-Agent": CHROME}


class FakeSite:
    def __init__(self, pages):
        self.pages = pages
        self.requests = []

    async def __call__(self, session, task, headers):
        self.requests.append((task.url, task.page_no, dict(headers)))
        if task.url not in self.pages:
            raise ConnectionError(f"404 {task.url}")
        return self.pages[task.url]


def make_crawler(site, tmp_path=None, **overrides):
    values = dict(
        start_urls=[BASE_URL],
        max_items=100,
        max_pages=10,
        retries=0,
        retry_backoff=0,
        min_delay=0,
        max_delay=0,
    )
    values.update(overrides)
    config = CrawlConfig(**values)
    return ListingCrawler(
        config,
        dataset=Dataset(),
        diagnostics=DiagnosticStore(str(tmp_path) if tmp_path else None),
        stealth=StealthHeaders(FakeGenerator(), min_delay=0, max_delay=0),
        fetcher=site,
    )


@pytest.mark.asyncio
async def test_single_page_with_organic_and_sponsored_products():
    organic = [myx_product(1), myx_product(2), myx_product(3)]
    pla = [myx_product(20, isPla=True), myx_product(21, isPla=True)]
    site = FakeSite({BASE_URL: page(myx_script(organic, pla))})

    report = await make_crawler(site, max_pages=1, max_items=100).run()

    assert len(report.records) == 5
    assert [r.product_id for r in report.records] == ["1", "2", "3", "20", "21"]
    assert [r.is_sponsored for r in report.records] == [False, False, False, True, True]
    assert all(r.source_url == BASE_URL and r.scraped_at for r in report.records)
    assert [url for url, _, _ in site.requests] == [BASE_URL]


@pytest.mark.asyncio
async def test_requests_carry_stealth_headers():
    site = FakeSite({BASE_URL: page(myx_script([myx_product(1)]))})
    await make_crawler(site, max_pages=1).run()

    headers = {k.lower(): v for k, v in site.requests[0][2].items()}
    assert headers["user-agent"] == CHROME
    assert 'v="125"' in headers["sec-ch-ua"]


@pytest.mark.asyncio
async def test_paginates_and_dedups_across_pages():
    page_2 = f"{BASE_URL}?p=2"
    page_3 = f"{BASE_URL}?p=3"
    site = FakeSite({
        BASE_URL: page(myx_script([myx_product(1), myx_product(2)])),
        page_2: page(myx_script([myx_product(2), myx_product(3)])),
        page_3: page(myx_script([myx_product(4)])),
    })

    report = await make_crawler(site, max_pages=3).run()

    assert [r.product_id for r in report.records] == ["1", "2", "3", "4"]
    assert [(url, n) for url, n, _ in site.requests] == [(BASE_URL, 1), (page_2, 2), (page_3, 3)]
    assert report.records[2].source_url == page_2


@pytest.mark.asyncio
async def test_item_budget_caps_output_and_stops_pagination():
    products = [myx_product(i) for i in range(8)]
    site = FakeSite({BASE_URL: page(myx_script(products))})

    crawler = make_crawler(site, max_items=5)
    report = await crawler.run()

    assert len(report.records) == 5
    assert crawler.state.should_continue(1) is False
    assert len(site.requests) == 1


@pytest.mark.asyncio
async def test_self_referencing_next_link_is_not_followed():
    html = page(myx_script([myx_product(1)]), head=f'<link rel="next" href="{BASE_URL}">')
    site = FakeSite({BASE_URL: html})

    report = await make_crawler(site).run()

    assert len(report.records) == 1
    assert len(site.requests) == 1


@pytest.mark.asyncio
async def test_blocked_page_yields_nothing_and_is_retried(tmp_path):
    blocked = page(myx_script([myx_product(1)]), title="Access Denied")
    site = FakeSite({BASE_URL: blocked})

    report = await make_crawler(site, tmp_path, retries=2).run()

    assert report.records == []
    assert len(site.requests) == 3
    assert report.blocked_responses == 3
    assert report.requests_failed == 1
    assert (tmp_path / "page-1-blocked.html").exists()


@pytest.mark.asyncio
async def test_empty_page_still_paginates(tmp_path):
    page_2 = f"{BASE_URL}?p=2"
    site = FakeSite({
        BASE_URL: page("<p>Our catalog is loading</p>"),
        page_2: page(jsonld_script([jsonld_product("LD-1")])),
    })

    report = await make_crawler(site, tmp_path, max_pages=2).run()

    assert [r.product_id for r in report.records] == ["LD-1"]
    assert report.pages_empty == 1
    assert (tmp_path / "page-1-empty.html").exists()


@pytest.mark.asyncio
async def test_failed_page_does_not_abort_other_seeds():
    other = "https://shop.example.com/women-tops"
    site = FakeSite({other: page(myx_script([myx_product(9)]))})

    report = await make_crawler(site, start_urls=["https://shop.example.com/gone", other], max_pages=1).run()

    assert [r.product_id for r in report.records] == ["9"]
    assert report.requests_failed == 1
