"""Routing: map documents and generated pages to URLs and output paths"""

import logging
import posixpath
from pathlib import PurePosixPath
from typing import Iterable

from mdsite.config import Settings
from mdsite.core.models import Document, Route
from mdsite.core.parse import POST_FILENAME_RE
from mdsite.core.utils.slug import slugify
from mdsite.errors import ConfigError, RouteConflict


logger = logging.getLogger(__name__)


def _normalize(url: str) -> str:
    """Force a leading slash and collapse duplicate slashes; keep a trailing one."""
    trailing = url.endswith('/')
    url = posixpath.normpath('/' + url.strip().lstrip('/'))
    return url if url == '/' or not trailing else url + '/'


def make_route(url: str, source: str, settings: Settings) -> Route:
    """Build a Route for url, choosing the output file per url_style.

    Directory URLs map to index.html; URLs with an extension map to that file;
    anything else becomes dir/index.html (pretty) or name.html (plain).
    """
    url = _normalize(url)
    if url.endswith('/'):
        return Route(source, url, url.lstrip('/') + 'index.html')
    if PurePosixPath(url).suffix:
        return Route(source, url, url.lstrip('/'))
    if settings.url_style == 'pretty':
        return Route(source, url + '/', url.lstrip('/') + '/index.html')
    return Route(source, url, url.lstrip('/') + '.html')


def document_slug(doc: Document) -> str:
    """Slug of the title, falling back to the filename (minus any date prefix)."""
    if doc.title and (slug := slugify(doc.title)):
        return slug
    stem = PurePosixPath(doc.source_path).stem
    if m := POST_FILENAME_RE.match(stem):
        stem = m.group(2)
    return slugify(stem) or 'post'


def _page_url(doc: Document, settings: Settings) -> str:
    """Undated pages route by source path: about.md -> /about/, blog/index.md -> /blog/."""
    path = PurePosixPath(doc.source_path)
    parent = '' if str(path.parent) == '.' else f"{path.parent.as_posix()}/"
    if path.stem == 'index':
        return f"/{parent}"
    if settings.url_style == 'plain':
        return f"/{parent}{path.stem}.html"
    return f"/{parent}{path.stem}/"


def route_document(doc: Document, settings: Settings) -> Route:
    """Compute a document's route: explicit permalink, else date + slug, else source path."""
    if doc.permalink:
        return make_route(doc.permalink, doc.source_path, settings)
    if doc.date is not None:
        d = doc.date
        try:
            url = settings.permalink_pattern.format(
                year=f"{d:%Y}", month=f"{d:%m}", day=f"{d:%d}", slug=document_slug(doc),
            )
        except (KeyError, IndexError) as e:
            raise ConfigError(f"Invalid permalink_pattern {settings.permalink_pattern!r}: {e}") from e
        return make_route(url, doc.source_path, settings)
    return make_route(_page_url(doc, settings), doc.source_path, settings)


def route_static(source: str) -> Route:
    """Static files keep their relative path."""
    return Route(source, '/' + source, source)


def check_routes(routes: Iterable[Route]) -> list[Route]:
    """Fail with RouteConflict when two routes share an output path; returns the routes."""
    seen: dict[str, Route] = {}
    checked = []
    for route in routes:
        if (other := seen.get(route.output_path)) is not None:
            raise RouteConflict(route.output_path, other.source, route.source)
        seen[route.output_path] = route
        checked.append(route)
    logger.debug("checked %d routes", len(checked))
    return checked
