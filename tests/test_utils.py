from pathlib import Path, PurePosixPath

import pytest

from folio.html_utils import (
    escape_html,
    format_attributes,
    is_external_url,
    join_root_url,
    map_text_segments,
    parse_attr_list,
    split_trailing_attr_list,
    strip_tags,
)
from folio.utils import (
    atomic_write,
    base_url_for,
    ensure_clean_dir,
    heading_id,
    is_hidden,
    is_markdown,
    is_within,
    normalize_doc_path,
    output_path_for,
    relative_url,
    titleize,
    write_text_atomic,
)


def test_titleize_and_heading_id():
    assert titleize("getting-started.md") == "Getting Started"
    assert titleize("api_reference") == "Api Reference"
    assert heading_id("Hello, <em>World</em>!") == "hello-world"
    assert heading_id("???") == "section"


def test_doc_paths_and_urls():
    assert normalize_doc_path("./guide//intro.md") == "guide/intro.md"
    assert normalize_doc_path("/about.md") == "about.md"
    assert output_path_for("guide/intro.md") == "guide/intro.html"
    assert output_path_for("index.md") == "index.html"
    assert relative_url("index.html", "about.html") == "about.html"
    assert relative_url("guide/intro.html", "index.html") == "../index.html"
    assert relative_url("guide/intro.html", "guide/setup.html") == "setup.html"
    assert base_url_for("index.html") == "."
    assert base_url_for("a/b/c.html") == "../.."


def test_path_predicates(tmp_path):
    assert is_markdown(Path("x.md"))
    assert is_markdown(Path("x.MARKDOWN"))
    assert not is_markdown(Path("x.txt"))
    assert is_hidden(PurePosixPath(".git/config"))
    assert is_hidden(PurePosixPath("docs/.draft.md"))
    assert not is_hidden(PurePosixPath("docs/page.md"))
    assert is_within(tmp_path / "a" / "b", tmp_path)
    assert not is_within(tmp_path, tmp_path / "a")


def test_ensure_clean_dir(tmp_path):
    target = tmp_path / "out"
    (target / "nested").mkdir(parents=True)
    (target / "nested" / "old.html").write_text("x", encoding="utf-8")
    ensure_clean_dir(target)
    assert target.is_dir()
    assert list(target.iterdir()) == []


def test_atomic_write_replaces_file(tmp_path):
    target = tmp_path / "deep" / "page.html"
    write_text_atomic(target, "first")
    write_text_atomic(target, "second")
    assert target.read_text(encoding="utf-8") == "second"
    assert [p.name for p in target.parent.iterdir()] == ["page.html"]


def test_atomic_write_cleans_up_on_error(tmp_path):
    target = tmp_path / "page.html"
    target.write_text("original", encoding="utf-8")
    with pytest.raises(RuntimeError):
        with atomic_write(target) as handle:
            handle.write("partial")
            raise RuntimeError("boom")
    assert target.read_text(encoding="utf-8") == "original"
    assert [p.name for p in tmp_path.iterdir()] == ["page.html"]


def test_escape_and_urls():
    assert escape_html('<a href="x">&</a>') == "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"
    assert join_root_url("https://example.com/docs/", "about.html") == "https://example.com/docs/about.html"
    assert join_root_url("", "about.html") == "about.html"
    assert is_external_url("https://example.com")
    assert is_external_url("mailto:team@example.com")
    assert not is_external_url("guide/intro.md")


def test_map_text_segments_skips_code():
    html = "<p>a <code>a</code> <em>a</em></p><pre><code>a</code></pre>"
    result = map_text_segments(html, lambda text: text.replace("a", "b"))
    assert result == "<p>b <code>a</code> <em>b</em></p><pre><code>a</code></pre>"


def test_strip_tags():
    assert strip_tags("<p>Hello  <em>world</em> &amp; more</p>") == "Hello world & more"


def test_attr_lists():
    assert parse_attr_list('.a .b #main title="Hi there"') == {
        "class": "a b",
        "id": "main",
        "title": "Hi there",
    }
    assert format_attributes({"id": "x", "data-v": 'a"b'}) == ' id="x" data-v="a&quot;b"'
    assert split_trailing_attr_list("Install {: #setup }") == ("Install", {"id": "setup"})
    assert split_trailing_attr_list("Use {braces}") == ("Use {braces}", {})
    text, attrs = split_trailing_attr_list("Title {: title=&quot;Big one&quot; }")
    assert text == "Title"
    assert attrs == {"title": "Big one"}
