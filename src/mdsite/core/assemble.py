"""Site assembly: ordering, tag and archive listings, related posts, feed and sitemap"""

import html
import logging
from dataclasses import dataclass
from itertools import groupby
from typing import Iterable

from mdsite.config import Settings
from mdsite.core.models import Post, RenderedPage, Route
from mdsite.core.render import Renderer, derive_excerpt
from mdsite.core.route import make_route
from mdsite.core.utils.hashing import digest
from mdsite.core.utils.slug import slugify


logger = logging.getLogger(__name__)

FEED_PATH = "/feed.xml"
SITEMAP_PATH = "/sitemap.xml"


def sort_posts(posts: Iterable[Post]) -> list[Post]:
    """Order by publish date descending, ties broken by source path ascending."""
    by_path = sorted(posts, key=lambda p: p.doc.source_path)
    return sorted(by_path, key=lambda p: p.doc.timestamp, reverse=True)


def listed_posts(posts: Iterable[Post]) -> list[Post]:
    """Published, dated posts in listing order; undated pages never appear in listings."""
    return sort_posts(p for p in posts if p.doc.published and p.doc.date is not None)


def tag_slug(tag: str) -> str:
    return slugify(tag) or digest(tag, 8)


def tag_route(tag: str, settings: Settings) -> Route:
    return make_route(f"/{settings.tag_dir.strip('/')}/{tag_slug(tag)}/", f"<tag:{tag}>", settings)


def archive_route(settings: Settings) -> Route:
    return make_route(settings.archive_path, "<archive>", settings)


def feed_route(settings: Settings) -> Route:
    return make_route(FEED_PATH, "<feed>", settings)


def sitemap_route(settings: Settings) -> Route:
    return make_route(SITEMAP_PATH, "<sitemap>", settings)


@dataclass
class TagGroup:
    """Posts sharing a tag slug; name is the first spelling met in listing order."""
    name:  str
    posts: list[Post]


def _slugs(tags: Iterable[str]) -> set[str]:
    return {tag_slug(t) for t in tags}


def group_by_tag(posts: list[Post]) -> dict[str, TagGroup]:
    """Map each tag slug to its member posts, preserving listing order; sorted by slug.

    Spellings that share a slug ('Python', 'python') are one tag.
    """
    groups: dict[str, TagGroup] = {}
    for post in posts:
        seen: set[str] = set()
        for tag in post.doc.tags:
            slug = tag_slug(tag)
            if slug in seen:
                continue
            seen.add(slug)
            groups.setdefault(slug, TagGroup(tag, [])).posts.append(post)
    return dict(sorted(groups.items()))


def link_list(posts: list[Post], settings: Settings, css_class: str = "post-list") -> str:
    """Render posts as a deterministic HTML list of dated links."""
    if not posts:
        return ""
    items = []
    for post in posts:
        d = post.doc.date
        title = html.escape(post.doc.title or post.route.url)
        items.append(
            f'<li><time datetime="{d:%Y-%m-%d}">{html.escape(d.strftime(settings.date_format))}</time> '
            f'<a href="{html.escape(post.route.url)}">{title}</a></li>'
        )
    return f'<ul class="{css_class}">\n' + "\n".join(items) + "\n</ul>\n"


def tag_links(tags: Iterable[str], routes: dict[str, Route]) -> str:
    """Comma-separated links to the tag pages that exist for tags, one per slug."""
    links: dict[str, str] = {}
    for tag in tags:
        slug = tag_slug(tag)
        if slug in routes and slug not in links:
            links[slug] = f'<a href="{html.escape(routes[slug].url)}">{html.escape(tag)}</a>'
    return ", ".join(links.values())


def related_posts(post: Post, posts: list[Post], limit: int) -> list[Post]:
    """Up to limit posts sharing the most tags with post; ties keep listing order."""
    if limit <= 0 or not post.doc.tags:
        return []
    tags = _slugs(post.doc.tags)
    scored = [
        (len(tags & _slugs(other.doc.tags)), i, other)
        for i, other in enumerate(posts)
        if other.doc.source_path != post.doc.source_path
    ]
    scored = [s for s in scored if s[0] > 0]
    scored.sort(key=lambda s: (-s[0], s[1]))
    return [other for _, _, other in scored[:limit]]


def build_tag_pages(
    by_tag: dict[str, TagGroup],
    routes: dict[str, Route],
    renderer: Renderer,
    ) -> list[RenderedPage]:
    """One listing page per distinct tag with reverse-chronological links."""
    pages = []
    for slug, group in by_tag.items():
        content = f"<h1>{html.escape(group.name)}</h1>\n" + link_list(group.posts, renderer.settings)
        pages.append(renderer.render_listing(routes[slug], f"Tagged: {group.name}", content))
    logger.debug("built %d tag pages", len(pages))
    return pages


def build_archive(posts: list[Post], route: Route, renderer: Renderer) -> RenderedPage:
    """Global chronological index grouped by year, newest first."""
    parts = ["<h1>Archive</h1>\n"]
    for year, members in groupby(posts, key=lambda p: p.doc.timestamp.year):
        parts.append(f"<h2>{year}</h2>\n")
        parts.append(link_list(list(members), renderer.settings))
    return renderer.render_listing(route, "Archive", "".join(parts))


def _atom_time(post: Post) -> str:
    d = post.doc.date
    return d.isoformat() if d.tzinfo else d.isoformat() + "Z"


def build_feed(posts: list[Post], route: Route, settings: Settings) -> RenderedPage:
    """Atom feed of the newest feed_limit posts; 'updated' is the newest post date."""
    base = settings.site_url.rstrip("/")
    entries = []
    for post in posts[:settings.feed_limit]:
        doc = post.doc
        url = doc.canonical_url or f"{base}{post.route.url}"
        summary = doc.description or doc.excerpt or derive_excerpt(doc.body)
        entries.append(
            "  <entry>\n"
            f"    <title>{html.escape(doc.title or post.route.url)}</title>\n"
            f'    <link href="{html.escape(url)}"/>\n'
            f"    <id>urn:sha256:{digest(doc.source_path)}</id>\n"
            f"    <updated>{_atom_time(post)}</updated>\n"
            f"    <summary>{html.escape(summary)}</summary>\n"
            + "".join(f'    <category term="{html.escape(t)}"/>\n' for t in doc.tags)
            + "  </entry>\n"
        )
    updated = _atom_time(posts[0]) if posts else ""
    text = (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom">\n'
        f"  <title>{html.escape(settings.site_title)}</title>\n"
        f'  <link href="{html.escape(base)}{FEED_PATH}" rel="self"/>\n'
        f'  <link href="{html.escape(base)}/"/>\n'
        f"  <id>{html.escape(base)}/</id>\n"
        f"  <updated>{updated}</updated>\n"
        + "".join(entries)
        + "</feed>\n"
    )
    return RenderedPage(route=route, text=text)


def build_sitemap(routes: Iterable[Route], route: Route, settings: Settings) -> RenderedPage:
    """sitemap.xml over every HTML route, sorted by URL."""
    base = settings.site_url.rstrip("/")
    urls = sorted({r.url for r in routes if r.output_path.endswith(".html")})
    body = "".join(f"  <url><loc>{html.escape(base + u)}</loc></url>\n" for u in urls)
    text = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        f"{body}</urlset>\n"
    )
    return RenderedPage(route=route, text=text)
