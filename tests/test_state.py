"""Tests for deduplication and budget accounting."""

import threading

from listing_crawler.crawl.state import CrawlState
from listing_crawler.extractors.base import ProductRecord

PAGE_1 = "https://shop.example.com/men-tshirts"
PAGE_2 = "https://shop.example.com/men-tshirts?p=2"


def fixed_clock():
    return "2026-01-01T00:00:00+00:00"


def test_same_id_across_pages_is_kept_once():
    state = CrawlState(max_items=100, max_pages=10, clock=fixed_clock)
    first = state.accumulate([ProductRecord(product_id="42", name="Tee")], PAGE_1, 1)
    second = state.accumulate([ProductRecord(product_id="42", name="Tee again")], PAGE_2, 2)

    assert len(first.batch) == 1
    assert second.batch == []
    assert second.duplicates == 1
    assert state.saved == 1
    assert state.max_page_no == 2


def test_composite_key_dedup():
    state = CrawlState(max_items=100, max_pages=10)
    records = [ProductRecord(brand="Roadster", name="Tee"), ProductRecord(brand="Roadster", name="Tee")]
    result = state.accumulate(records, PAGE_1)
    assert len(result.batch) == 1


def test_url_key_used_when_no_id():
    state = CrawlState(max_items=100, max_pages=10)
    records = [
        ProductRecord(product_url="https://shop.example.com/p/1", name="A"),
        ProductRecord(product_url="https://shop.example.com/p/1", name="B"),
    ]
    assert len(state.accumulate(records, PAGE_1).batch) == 1


def test_records_without_any_key_are_always_kept():
    state = CrawlState(max_items=100, max_pages=10)
    result = state.accumulate([ProductRecord(price=10), ProductRecord(price=10)], PAGE_1)
    assert len(result.batch) == 2
    assert ProductRecord().dedup_key() == ""


def test_item_budget_stops_mid_batch():
    state = CrawlState(max_items=5, max_pages=10)
    records = [ProductRecord(product_id=str(i)) for i in range(8)]
    result = state.accumulate(records, PAGE_1, 1)

    assert [r.product_id for r in result.batch] == ["0", "1", "2", "3", "4"]
    assert result.discarded == 3
    assert result.budget_reached is True
    assert state.should_continue(1) is False


def test_batches_are_stamped_with_provenance():
    state = CrawlState(max_items=10, max_pages=10, clock=fixed_clock)
    original = ProductRecord(product_id="1")
    stamped = state.accumulate([original], PAGE_2, 2).batch[0]

    assert stamped.source_url == PAGE_2
    assert stamped.scraped_at == "2026-01-01T00:00:00+00:00"
    assert original.source_url is None


def test_page_ceiling():
    state = CrawlState(max_items=10, max_pages=3)
    assert state.should_continue(1) is True
    assert state.should_continue(2) is True
    assert state.should_continue(3) is False


def test_concurrent_accumulation_never_overshoots():
    state = CrawlState(max_items=50, max_pages=10)
    barrier = threading.Barrier(8)

    def worker(offset):
        barrier.wait()
        for i in range(40):
            # Threads of the same parity offer identical ids: 80 unique keys in total.
            state.accumulate([ProductRecord(product_id=str((offset % 2) * 1000 + i))], PAGE_1)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert state.saved == 50
    assert state.budget_reached
