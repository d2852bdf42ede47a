"""Pipeline step functions: load, plan routes, render and write the site"""

import logging
import shutil
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from mdsite.config import Settings
from mdsite.core.assemble import (
    TagGroup,
    archive_route,
    build_archive,
    build_feed,
    build_sitemap,
    build_tag_pages,
    feed_route,
    group_by_tag,
    link_list,
    listed_posts,
    related_posts,
    sitemap_route,
    tag_links,
    tag_route,
)
from mdsite.core.models import Document, Post, RenderedPage, Route
from mdsite.core.parse import iter_documents, iter_static_files
from mdsite.core.render import Renderer
from mdsite.core.route import check_routes, route_document, route_static
from mdsite.errors import ConfigError


logger = logging.getLogger(__name__)


@dataclass
class SitePlan:
    """Every route of a build, validated against collisions before anything is rendered."""
    posts:       list[Post]                 # all published documents, in source order
    listed:      list[Post]                 # dated posts in listing order
    by_tag:      dict[str, TagGroup]        # keyed by tag slug
    tag_routes:  dict[str, Route]
    archive:     Route
    feed:        Route | None
    sitemap:     Route | None
    static:      list[tuple[Path, Route]] = field(default_factory=list)

    @property
    def routes(self) -> list[Route]:
        routes = [p.route for p in self.posts]
        routes += list(self.tag_routes.values())
        routes.append(self.archive)
        routes += [r for r in (self.feed, self.sitemap) if r is not None]
        routes += [r for _, r in self.static]
        return routes


@dataclass
class BuildResult:
    pages:    list[RenderedPage]
    listings: list[RenderedPage]
    static:   list[tuple[Path, Route]]

    @property
    def total(self) -> int:
        return len(self.pages) + len(self.listings) + len(self.static)


def check_output_dir(source: Path, output: Path) -> None:
    """Reject output directories that would overwrite, delete or be re-read as source."""
    source, output = source.resolve(), output.resolve()
    if output == source or output in source.parents:
        raise ConfigError(f"Output directory {output} must not be or contain the source directory {source}")
    if source in output.parents and not output.relative_to(source).parts[0].startswith(('_', '.')):
        raise ConfigError(
            f"Output directory {output} is inside the source directory; prefix it with '_' so it is not read back"
        )


def load_documents(source: Path) -> list[Document]:
    """Load every document under source, failing fast; unpublished documents are dropped."""
    docs = []
    for doc in iter_documents(source):
        if not doc.published:
            logger.info("skipping unpublished %s", doc.source_path)
            continue
        docs.append(doc)
    return docs


def plan_site(source: Path, settings: Settings) -> SitePlan:
    """Load and route everything, then run the collision barrier."""
    if not source.is_dir():
        raise ConfigError(f"Source directory {source} does not exist")
    posts = [Post(doc, route_document(doc, settings)) for doc in load_documents(source)]
    listed = listed_posts(posts)
    by_tag = group_by_tag(listed)
    plan = SitePlan(
        posts=posts,
        listed=listed,
        by_tag=by_tag,
        tag_routes={slug: tag_route(group.name, settings) for slug, group in by_tag.items()},
        archive=archive_route(settings),
        feed=feed_route(settings) if settings.feed_limit else None,
        sitemap=sitemap_route(settings) if settings.sitemap else None,
        static=[(p, route_static(p.relative_to(source).as_posix())) for p in iter_static_files(source)],
    )
    check_routes(plan.routes)
    logger.info("planned %d routes (%d documents, %d tags)", len(plan.routes), len(posts), len(by_tag))
    return plan


def render_pages(plan: SitePlan, renderer: Renderer, workers: int) -> list[RenderedPage]:
    """Render every document; documents are independent so they may run on a thread pool."""
    settings = renderer.settings

    def _render(post: Post) -> RenderedPage:
        related = link_list(related_posts(post, plan.listed, settings.related_posts), settings, "related-posts")
        return renderer.render(post.doc, post.route, related, tag_links(post.doc.tags, plan.tag_routes))

    if workers <= 1:
        return [_render(p) for p in plan.posts]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(_render, plan.posts))


def render_listings(plan: SitePlan, renderer: Renderer) -> list[RenderedPage]:
    settings = renderer.settings
    listings = build_tag_pages(plan.by_tag, plan.tag_routes, renderer)
    listings.append(build_archive(plan.listed, plan.archive, renderer))
    if plan.feed is not None:
        listings.append(build_feed(plan.listed, plan.feed, settings))
    if plan.sitemap is not None:
        listings.append(build_sitemap(plan.routes, plan.sitemap, settings))
    return listings


def write_site(output: Path, pages: list[RenderedPage], static: list[tuple[Path, Route]], clean: bool) -> None:
    if clean and output.exists():
        shutil.rmtree(output)
    for page in pages:
        dest = output / page.route.output_path
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(page.text, encoding='utf-8')
    for src, route in static:
        dest = output / route.output_path
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dest)


def run_build(source: Path, output: Path, settings: Settings) -> BuildResult:
    """Build the site from source into output.

    Everything is loaded, routed, collision-checked and rendered in memory
    before the first write, so any error leaves the previous output intact.
    """
    check_output_dir(source, output)
    plan = plan_site(source, settings)

    site = {
        'posts_list': link_list(plan.listed, settings),
        'tags': [group.name for group in plan.by_tag.values()],
        'archive_url': plan.archive.url,
        'feed_url': plan.feed.url if plan.feed else '',
    }
    renderer = Renderer(source, settings, site)
    pages = render_pages(plan, renderer, settings.workers)
    listings = render_listings(plan, renderer)

    write_site(output, pages + listings, plan.static, settings.clean)
    logger.info("wrote %d pages, %d listings, %d static files to %s",
                len(pages), len(listings), len(plan.static), output)
    return BuildResult(pages=pages, listings=listings, static=plan.static)
