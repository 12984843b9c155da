"""Tests for next-page resolution and blocked-page detection."""

from bs4 import BeautifulSoup

from listing_crawler.crawl.blocking import BlockedPageError, detect_block
from listing_crawler.crawl.pagination import find_next_page, with_page_param
from tests.pages import BASE_URL, page


def soup_of(html):
    return BeautifulSoup(html, "html.parser")


def test_prefers_link_rel_next():
    html = page('<a rel="next" href="/anchor-next">next</a>', head='<link rel="next" href="/men-tshirts?p=2">')
    assert find_next_page(soup_of(html), BASE_URL, 2) == "https://shop.example.com/men-tshirts?p=2"


def test_uses_anchor_rel_next():
    html = page('<a class="pager" rel="next nofollow" href="?page=3">Next</a>')
    assert find_next_page(soup_of(html), BASE_URL, 2) == "https://shop.example.com/men-tshirts?page=3"


def test_synthesizes_page_param():
    soup = soup_of(page("<p>no pager</p>"))
    assert find_next_page(soup, BASE_URL, 2) == "https://shop.example.com/men-tshirts?p=2"
    assert (
        find_next_page(soup, "https://shop.example.com/s?q=tee&p=2&sort=new", 3)
        == "https://shop.example.com/s?q=tee&p=3&sort=new"
    )
    assert find_next_page(soup, BASE_URL, 4, page_param="page") == "https://shop.example.com/men-tshirts?page=4"


def test_malformed_base_gives_none():
    assert find_next_page(soup_of(page()), "not a url", 2) is None
    assert with_page_param("ftp//broken", 2) is None


def test_self_referencing_next_link_resolves_to_current_url():
    html = page(head='<link rel="next" href="/men-tshirts">')
    # Callers compare against the current URL and refuse to enqueue it.
    assert find_next_page(soup_of(html), BASE_URL, 2) == BASE_URL


def test_detects_access_denied():
    assert detect_block(soup_of(page(title="Access Denied"))) == "Access Denied"
    assert detect_block(soup_of(page(title="Please solve this Captcha"))) == "Captcha"


def test_detection_is_case_sensitive_and_title_only():
    assert detect_block(soup_of(page(title="access denied"))) is None
    assert detect_block(soup_of(page("<h1>Access Denied</h1>"))) is None
    assert detect_block(soup_of("<html><body>no title</body></html>")) is None


def test_blocked_error_carries_marker():
    err = BlockedPageError(BASE_URL, "Captcha")
    assert err.marker == "Captcha"
    assert BASE_URL in str(err)
