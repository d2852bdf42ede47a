"""Root test configuration: isolated working directory and a sample source tree"""

import os
from pathlib import Path

import pytest

from mdsite.config import Settings


BASE_LAYOUT = """\
<html><head><title>{{ page.title }} | {{ site.title }}</title></head>
<body>
{{ content }}
</body></html>
"""

DEFAULT_LAYOUT = """\
---
layout: base
---
<main>{{ content }}</main>
"""

POST_LAYOUT = """\
---
layout: default
---
<article><h1>{{ page.title }}</h1>
{{ content }}
{% include signup.html %}
<p class="tags">{{ page.tag_links }}</p>
<aside>{{ page.related }}</aside>
</article>
"""

THEME = {
    "_layouts/base.html": BASE_LAYOUT,
    "_layouts/default.html": DEFAULT_LAYOUT,
    "_layouts/post.html": POST_LAYOUT,
    "_includes/signup.html": '<form class="signup">{% include signup-button.html %}</form>',
    "_includes/signup-button.html": "<button>Subscribe</button>",
}


def write_tree(root: Path, files: dict[str, str]) -> Path:
    """Write {relative_path: text} under root and return root."""
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return root


def post(title: str, date: str, tags: list[str] = (), body: str = "Body text.\n", **extra) -> str:
    """Front matter + body for a post document."""
    lines = ["---", "layout: post", f"title: {title}", f"date: {date}"]
    if tags:
        lines.append(f"tags: [{', '.join(tags)}]")
    lines += [f"{k}: {v}" for k, v in extra.items()]
    return "\n".join(lines) + "\n---\n\n" + body


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Run each test from a clean tmp directory with no MDSITE_* overrides."""
    for name in list(os.environ):
        if name.startswith("MDSITE_"):
            monkeypatch.delenv(name)
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)


@pytest.fixture(name="settings")
def settings_fixture():
    return Settings(site_title="Notes", site_url="https://example.com", workers=1)


@pytest.fixture(name="source")
def source_fixture(tmp_path):
    """A small blog: three posts, an undated page, a home page and a static image."""
    return write_tree(tmp_path / "src", {
        **THEME,
        "posts/2024-01-10-modules.md": post(
            "On Modules", "2024-01-10", ["design", "architecture"], "Modules hide *decisions*.\n"),
        "_drafts/unfinished.md": post("Unfinished", "2024-02-01"),
        "posts/2024-03-05-teams.md": post("Small Teams", "2024-03-05", ["process"]),
        "posts/2024-01-10-interfaces.md": post("Interfaces", "2024-01-10", ["design"]),
        "posts/2023-12-24-boundaries.md": post("Boundaries", "2023-12-24", ["design", "architecture"]),
        "about.md": "---\nlayout: default\ntitle: About\n---\n\nI write about software.\n",
        "index.html": "---\nlayout: default\ntitle: Home\n---\n{{ site.posts_list }}",
        "images/diagram.svg": "<svg></svg>\n",
    })


@pytest.fixture(name="write")
def write_fixture():
    """The write_tree helper, for tests that build their own source trees."""
    return write_tree


@pytest.fixture(name="post_text")
def post_text_fixture():
    """The post() helper producing front matter + body text."""
    return post


@pytest.fixture(name="theme")
def theme_fixture():
    return dict(THEME)
