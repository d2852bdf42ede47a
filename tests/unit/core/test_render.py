"""Unit tests for core/render.py"""

import pytest

from mdsite.config import Settings
from mdsite.core.models import Document, Layout, Route
from mdsite.core.render import (
    Renderer,
    derive_excerpt,
    expand_includes,
    load_includes,
    load_layouts,
    reading_time,
    render_chain,
    resolve_chain,
    substitute,
)
from mdsite.errors import IncludeCycleError, IncludeNotFound, LayoutCycleError, LayoutNotFound, ParseError


LAYOUTS = {
    "base": Layout("base", "<html>{{ content }}</html>"),
    "default": Layout("default", "<main>{{ content }}</main>", parent="base"),
    "post": Layout("post", "<article>{{ content }}</article>", parent="default"),
}


def test_resolve_chain_innermost_first():
    assert [l.name for l in resolve_chain("post", LAYOUTS, "a.md")] == ["post", "default", "base"]


def test_resolve_chain_missing_layout():
    with pytest.raises(LayoutNotFound, match=r"a\.md: layout 'nope' not found"):
        resolve_chain("nope", LAYOUTS, "a.md")


def test_resolve_chain_missing_parent():
    layouts = {"post": Layout("post", "{{ content }}", parent="gone")}
    with pytest.raises(LayoutNotFound, match="'gone'"):
        resolve_chain("post", layouts, "a.md")


def test_resolve_chain_cycle():
    layouts = {
        "a": Layout("a", "{{ content }}", parent="b"),
        "b": Layout("b", "{{ content }}", parent="a"),
    }
    with pytest.raises(LayoutCycleError, match=r"x\.md: layout cycle a -> b -> a") as exc:
        resolve_chain("a", layouts, "x.md")
    assert exc.value.chain == ["a", "b", "a"]


def test_render_chain_wraps_innermost_to_root():
    chain = resolve_chain("post", LAYOUTS, "a.md")
    assert render_chain("<p>hi</p>", chain, {}, {}, "a.md") == "<html><main><article><p>hi</p></article></main></html>"


def test_expand_includes_nested():
    includes = {"signup.html": "<form>{% include button.html %}</form>", "button.html": "<button/>"}
    assert expand_includes("a {% include signup.html %} b", includes, "x.md") == "a <form><button/></form> b"


def test_expand_includes_missing():
    with pytest.raises(IncludeNotFound, match=r"posts/x\.md: include 'signup.html' not found"):
        expand_includes("{% include signup.html %}", {}, "posts/x.md")


def test_expand_includes_cycle():
    includes = {"a.html": "{% include b.html %}", "b.html": "{% include a.html %}"}
    with pytest.raises(IncludeCycleError, match="a.html -> b.html -> a.html"):
        expand_includes("{% include a.html %}", includes, "x.md")


def test_substitute_values_and_unknowns():
    """Known values substitute, unknown page/site fields render empty, other braces stay."""
    text = "{{ page.title }}|{{ page.missing }}|{{ site.nothing }}|{{ other }}|{{content}}"
    assert substitute(text, {"page.title": "T"}) == "T|||{{ other }}|{{content}}"


def test_substitute_does_not_rescan_values():
    assert substitute("{{ content }}", {"content": "{{ page.title }}", "page.title": "T"}) == "{{ page.title }}"


def test_derive_excerpt_skips_headings():
    assert derive_excerpt("# Title\n\nFirst   paragraph\nwraps.\n\nSecond.\n") == "First paragraph wraps."


def test_reading_time():
    assert reading_time(Document(source_path="a.md", layout="post", body="word " * 401)) == 3
    assert reading_time(Document(source_path="a.md", layout="post", body="", reading_time=4.2)) == 5
    assert reading_time(Document(source_path="a.md", layout="post")) == 1


def test_load_layouts_reads_parent(tmp_path, write, theme):
    write(tmp_path, theme)
    layouts = load_layouts(tmp_path / "_layouts")
    assert set(layouts) == {"base", "default", "post"}
    assert layouts["post"].parent == "default"
    assert layouts["base"].parent is None
    assert layouts["default"].template == "<main>{{ content }}</main>\n"


@pytest.fixture(name="renderer")
def renderer_fixture(tmp_path, write, theme):
    write(tmp_path, theme)
    return Renderer(tmp_path, Settings(site_title="Notes & Co", site_url="https://example.com/"),
                    {"posts_list": "<ul><li>x</li></ul>"})


def _route(url="/2024/03/05/t/"):
    return Route("p.md", url, url.lstrip("/") + "index.html")


def test_renderer_render_full_chain(renderer):
    doc = Document(source_path="p.md", layout="post", title="A & B", body="Hello *world*.\n")
    text = renderer.render(doc, _route()).text
    assert text.startswith("<html><head><title>A &amp; B | Notes &amp; Co</title></head>")
    assert "<main><article><h1>A &amp; B</h1>\n<p>Hello <em>world</em>.</p>\n" in text
    assert '<form class="signup"><button>Subscribe</button></form>' in text
    assert text.index("<main>") < text.index("<article>") < text.index("</article>") < text.index("</main>")


def test_renderer_html_body_not_converted(renderer):
    doc = Document(source_path="index.html", layout="default", body="*raw* {{ site.posts_list }}")
    text = renderer.render(doc, _route("/")).text
    assert "<main>*raw* <ul><li>x</li></ul></main>" in text


def test_renderer_related_and_skip_related(renderer):
    related = '<ul class="related-posts"><li>r</li></ul>'
    doc = Document(source_path="p.md", layout="post", body="b")
    assert related in renderer.render(doc, _route(), related=related).text
    skipped = doc.model_copy(update={"skip_related": True})
    assert related not in renderer.render(skipped, _route(), related=related).text


def test_renderer_page_values(renderer):
    doc = Document(
        source_path="p.md", layout="post", title="T", date="2024-03-05", tags=["design", "process"],
        body="First paragraph.\n\nSecond.\n",
    )
    values = renderer.page_values(doc, _route())
    assert values["page.date"] == "Mar 05, 2024"
    assert values["page.tags"] == "design, process"
    assert values["page.excerpt"] == "First paragraph."
    assert values["page.canonical_url"] == "https://example.com/2024/03/05/t/"
    assert values["page.reading_time"] == "1"
    assert values["site.url"] == "https://example.com"


def test_renderer_extra_fields_escaped(renderer):
    doc = Document(source_path="p.md", layout="post", extra={"series": "<modules>"})
    assert renderer.page_values(doc, _route())["page.series"] == "&lt;modules&gt;"


def test_renderer_canonical_url_override(renderer):
    doc = Document(source_path="p.md", layout="post", canonical_url="https://elsewhere.example/p")
    assert renderer.page_values(doc, _route())["page.canonical_url"] == "https://elsewhere.example/p"


def test_renderer_missing_include_names_document(tmp_path, write, theme):
    write(tmp_path, {**theme, "_includes/signup.html": "{% include gone.html %}"})
    renderer = Renderer(tmp_path, Settings())
    doc = Document(source_path="posts/p.md", layout="post", body="b")
    with pytest.raises(IncludeNotFound, match=r"posts/p\.md: include 'gone.html'"):
        renderer.render(doc, _route())


def test_renderer_render_listing(renderer):
    route = Route("<archive>", "/archive/", "archive/index.html")
    text = renderer.render_listing(route, "Archive", "<ul></ul>").text
    assert "<title>Archive | Notes &amp; Co</title>" in text
    assert "<main><ul></ul></main>" in text


def test_load_layouts_not_utf8(tmp_path, write, theme):
    write(tmp_path, theme)
    (tmp_path / "_layouts/broken.html").write_bytes(b"<p>\xff</p>\n")
    with pytest.raises(ParseError, match=r"_layouts/broken\.html: not valid UTF-8"):
        load_layouts(tmp_path / "_layouts")


def test_load_includes_not_utf8(tmp_path, write, theme):
    write(tmp_path, theme)
    (tmp_path / "_includes/nested").mkdir()
    (tmp_path / "_includes/nested/broken.html").write_bytes(b"\xc3\x28")
    with pytest.raises(ParseError, match=r"_includes/nested/broken\.html: not valid UTF-8"):
        load_includes(tmp_path / "_includes")
