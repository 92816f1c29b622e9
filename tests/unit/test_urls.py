import pytest

from dealscout.core.search.urls import canonical_url, classify_url, host_matches, is_detail_url, site_filter, source_rank


@pytest.mark.parametrize(
    "url",
    [
        "https://www.crexi.com/properties/123456/dollar-general",
        "https://www.crexi.com/property/abc",
        "https://www.loopnet.com/Listing/123-Main-St/12345/",
        "https://brevitas.com/p/abc-warehouse",
        "https://www.realnex.com/listing/42",
    ],
)
def test_detail_shapes(url):
    assert is_detail_url(url)
    assert classify_url(url) == "detail"


@pytest.mark.parametrize(
    "url,kind",
    [
        ("https://www.crexi.com/", "home"),
        ("https://www.crexi.com/properties/tenants/cvs", "category"),
        ("https://www.crexi.com/profile/jane-broker", "profile"),
        ("https://www.loopnet.com/search/commercial-real-estate/tx/for-sale/", "search"),
        ("https://example.com/blog/post", "other"),
    ],
)
def test_non_detail_shapes(url, kind):
    assert not is_detail_url(url)
    assert classify_url(url) == kind


def test_canonical_url_strips_query_and_fragment():
    a = canonical_url("https://WWW.Crexi.com/properties/1/x?utm=1#photos")
    assert a == "https://www.crexi.com/properties/1/x"
    assert canonical_url("not a url") == "not a url"


def test_source_rank_and_host_matching():
    assert source_rank("https://www.crexi.com/properties/1/x") == 0
    assert source_rank("https://brevitas.com/p/x") == 1
    assert source_rank("https://www.loopnet.com/Listing/x/1/") == 2
    assert host_matches("https://www.crexi.com/x", "crexi.com")
    assert not host_matches("https://notcrexi.com/x", "crexi.com")


def test_site_filter():
    assert site_filter(["crexi.com", "loopnet.com"]) == "(site:crexi.com OR site:loopnet.com)"
    assert site_filter([]) == ""
