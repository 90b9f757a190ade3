import pytest

from deepcrawl.content import ContentType, guess_content_type, is_html


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://example.test/", ContentType.HTML),
        ("https://example.test/about", ContentType.HTML),
        ("https://example.test/logo.PNG", ContentType.PNG),
        ("https://example.test/photo.jpeg", ContentType.JPEG),
        ("https://example.test/anim.gif", ContentType.JPEG),
        ("https://example.test/static/app.js", ContentType.JAVASCRIPT),
        ("https://example.test/a/style.css", ContentType.CSS),
        ("https://example.test/report.pdf", ContentType.PDF),
        ("https://example.test/api/data.json", ContentType.JSON),
    ],
)
def test_guess_content_type_by_suffix(url, expected):
    assert guess_content_type(url) is expected


def test_query_string_does_not_affect_classification():
    assert guess_content_type("https://example.test/app.js?v=3") is ContentType.JAVASCRIPT
    assert guess_content_type("https://example.test/page?file=x.css") is ContentType.HTML


def test_classification_is_pure():
    url = "https://example.test/Assets/Main.CSS"
    assert {guess_content_type(url) for _ in range(5)} == {ContentType.CSS}


def test_is_html():
    assert is_html("https://example.test/blog/post-1")
    assert not is_html("https://example.test/blog/cover.webp")
    assert is_html("")
