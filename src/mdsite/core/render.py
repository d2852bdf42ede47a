"""Template rendering: layout chains, include expansion and variable substitution.

Templates support exactly three constructs:

    {{ content }}              the body or the inner layout's output
    {{ page.<field> }}         document values; {{ site.<field> }} site values
    {% include <name> %}       a file from the includes directory

Substituted values are never rescanned, so bodies containing template-like
text are inserted as-is. Unknown page/site fields render empty.
"""

import html
import logging
import math
import re
from pathlib import Path
from typing import Any, Optional

from markdown_it import MarkdownIt

from mdsite.config import Settings
from mdsite.core.models import Document, Layout, RenderedPage, Route
from mdsite.core.parse import read_source, split_frontmatter
from mdsite.errors import IncludeCycleError, IncludeNotFound, LayoutCycleError, LayoutNotFound


logger = logging.getLogger(__name__)

VAR_RE = re.compile(r'\{\{\s*(content|(?:page|site)\.[\w-]+)\s*\}\}')
INCLUDE_RE = re.compile(r'\{%-?\s*include\s+([\w./-]+)\s*-?%\}')

# Values holding pre-rendered HTML; everything else is escaped on substitution.
HTML_KEYS = {'content', 'page.related', 'page.tag_links', 'site.posts_list'}

WORDS_PER_MINUTE = 200


def _make_parser(preset: str) -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


def load_layouts(layouts_dir: Path) -> dict[str, Layout]:
    """Load every layout file keyed by stem; a 'layout' header names the parent."""
    layouts: dict[str, Layout] = {}
    if not layouts_dir.is_dir():
        return layouts
    for path in sorted(p for p in layouts_dir.iterdir() if p.is_file()):
        if path.stem in layouts:
            logger.warning("duplicate layout '%s' ignored: %s", path.stem, path.name)
            continue
        source = f"{layouts_dir.name}/{path.name}"
        header, template = split_frontmatter(read_source(path, source), source)
        layouts[path.stem] = Layout(name=path.stem, template=template, parent=header.get('layout') or None)
    return layouts


def load_includes(includes_dir: Path) -> dict[str, str]:
    """Load include files keyed by their POSIX path relative to includes_dir."""
    if not includes_dir.is_dir():
        return {}
    includes = {}
    for path in sorted(p for p in includes_dir.rglob('*') if p.is_file()):
        name = path.relative_to(includes_dir).as_posix()
        includes[name] = read_source(path, f"{includes_dir.name}/{name}")
    return includes


def resolve_chain(name: str, layouts: dict[str, Layout], source: str) -> list[Layout]:
    """Return the layout chain for name, innermost first, ending at a root layout."""
    chain: list[Layout] = []
    visited: list[str] = []
    current: Optional[str] = name
    while current:
        if current in visited:
            raise LayoutCycleError(visited + [current], source)
        layout = layouts.get(current)
        if layout is None:
            raise LayoutNotFound(current, source)
        visited.append(current)
        chain.append(layout)
        current = layout.parent
    return chain


def expand_includes(text: str, includes: dict[str, str], source: str, stack: tuple[str, ...] = ()) -> str:
    """Replace include tags with the named include's (recursively expanded) text."""
    def _sub(m: re.Match) -> str:
        name = m.group(1)
        if name in stack:
            raise IncludeCycleError([*stack, name], source)
        if name not in includes:
            raise IncludeNotFound(name, source)
        return expand_includes(includes[name], includes, source, (*stack, name))

    return INCLUDE_RE.sub(_sub, text)


def substitute(text: str, values: dict[str, str]) -> str:
    """Single-pass variable substitution; {{ content }} is kept when no content is given."""
    def _sub(m: re.Match) -> str:
        key = m.group(1)
        if key in values:
            return values[key]
        return m.group(0) if key == 'content' else ''

    return VAR_RE.sub(_sub, text)


def render_chain(
    content: str,
    chain: list[Layout],
    values: dict[str, str],
    includes: dict[str, str],
    source: str,
    ) -> str:
    """Wrap content with each layout from innermost to root."""
    for layout in chain:
        template = expand_includes(layout.template, includes, source)
        content = substitute(template, {**values, 'content': content})
    return content


def derive_excerpt(body: str) -> str:
    """First prose paragraph of body with whitespace collapsed."""
    for para in re.split(r'\n\s*\n', body):
        text = para.strip()
        if not text or text.startswith(('#', '{%', '<!--', '---')):
            continue
        return ' '.join(text.split())
    return ''


def reading_time(doc: Document) -> int:
    if doc.reading_time is not None:
        return max(1, math.ceil(doc.reading_time))
    words = len(re.findall(r'\w+', doc.body))
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def _scalar(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (list, tuple)):
        return ', '.join(_scalar(v) for v in value)
    return str(value)


def _escape_values(values: dict[str, Any]) -> dict[str, str]:
    return {k: _scalar(v) if k in HTML_KEYS else html.escape(_scalar(v)) for k, v in values.items()}


class Renderer:
    """Renders documents and listing pages against a source tree's layouts and includes."""

    def __init__(self, root: Path, settings: Settings, site: dict[str, Any] = None):
        self.settings = settings
        self.layouts = load_layouts(root / settings.layouts_dir)
        self.includes = load_includes(root / settings.includes_dir)
        self.md = _make_parser(settings.parser_config)
        site_values = {'title': settings.site_title, 'url': settings.site_url.rstrip('/')}
        site_values.update(site or {})
        self.site = {f"site.{k}": v for k, v in site_values.items()}
        logger.debug("loaded %d layouts, %d includes", len(self.layouts), len(self.includes))

    def canonical_url(self, doc: Document, route: Route) -> str:
        if doc.canonical_url:
            return doc.canonical_url
        return f"{self.settings.site_url.rstrip('/')}{route.url}"

    def page_values(self, doc: Document, route: Route, related: str = '', tag_links: str = '') -> dict[str, str]:
        """Template values for a document, escaped except for HTML fragments."""
        page: dict[str, Any] = {f"page.{k}": v for k, v in doc.extra.items()}
        page.update({
            'page.layout': doc.layout,
            'page.title': doc.title,
            'page.date': doc.date.strftime(self.settings.date_format) if doc.date else '',
            'page.date_iso': doc.date.isoformat() if doc.date else '',
            'page.tags': list(doc.tags),
            'page.tag_links': tag_links,
            'page.url': route.url,
            'page.permalink': doc.permalink,
            'page.canonical_url': self.canonical_url(doc, route),
            'page.description': doc.description,
            'page.excerpt': doc.excerpt or derive_excerpt(doc.body),
            'page.reading_time': reading_time(doc),
            'page.image': doc.image,
            'page.source_path': doc.source_path,
            'page.related': '' if doc.skip_related else related,
        })
        return _escape_values({**self.site, **page})

    def render_body(self, doc: Document, values: dict[str, str]) -> str:
        """Expand includes and variables in the body, then convert Markdown to HTML."""
        body = substitute(expand_includes(doc.body, self.includes, doc.source_path), values)
        return self.md.render(body) if doc.is_markdown else body

    def render(self, doc: Document, route: Route, related: str = '', tag_links: str = '') -> RenderedPage:
        chain = resolve_chain(doc.layout, self.layouts, doc.source_path)
        values = self.page_values(doc, route, related, tag_links)
        text = render_chain(self.render_body(doc, values), chain, values, self.includes, doc.source_path)
        logger.debug("rendered %s -> %s", doc.source_path, route.output_path)
        return RenderedPage(route=route, text=text)

    def render_listing(self, route: Route, title: str, content: str) -> RenderedPage:
        """Render a generated listing page through the configured listing layout."""
        chain = resolve_chain(self.settings.listing_layout, self.layouts, route.source)
        values = _escape_values({**self.site, 'page.title': title, 'page.url': route.url,
                                 'page.canonical_url': f"{self.settings.site_url.rstrip('/')}{route.url}"})
        return RenderedPage(route=route, text=render_chain(content, chain, values, self.includes, route.source))
