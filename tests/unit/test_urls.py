from deepcrawl.urls import normalize_url


def test_relative_links_are_joined_against_the_page():
    assert normalize_url("/about", base="https://example.test/blog/") == "https://example.test/about"
    assert normalize_url("post-1", base="https://example.test/blog/") == "https://example.test/blog/post-1"


def test_fragments_default_ports_and_host_case_are_normalized():
    assert normalize_url("HTTPS://Example.TEST:443/a#top") == "https://example.test/a"
    assert normalize_url("http://example.test:8080") == "http://example.test:8080/"


def test_query_strings_are_kept():
    assert normalize_url("https://example.test/search?q=x#r") == "https://example.test/search?q=x"


def test_non_http_links_are_left_alone():
    assert normalize_url(" mailto:hello@example.test ", base="https://example.test/") == "mailto:hello@example.test"
