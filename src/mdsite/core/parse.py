"""Document loading: file discovery and front matter extraction"""

import logging
import re
from pathlib import Path
from typing import Any, Iterator

import yaml
from pydantic import ValidationError

from mdsite.core.models import HEADER_FIELDS, MARKDOWN_EXTENSIONS, Document
from mdsite.errors import MissingFieldError, ParseError


logger = logging.getLogger(__name__)

HEADER_DELIMITER = '---'
DOCUMENT_EXTENSIONS = MARKDOWN_EXTENSIONS | {'.html', '.htm'}
POST_FILENAME_RE = re.compile(r'^(\d{4}-\d{2}-\d{2})-(.+)$')


def split_frontmatter(text: str, source: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter_dict, body) with the YAML header removed.

    Text that does not open with a header line is returned unchanged with an
    empty header. An opened but unterminated header is a ParseError.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != HEADER_DELIMITER:
        return {}, text

    for i in range(1, len(lines)):
        if lines[i].strip() in (HEADER_DELIMITER, '...'):
            header, body = ''.join(lines[1:i]), ''.join(lines[i + 1:])
            break
    else:
        raise ParseError(source, "unterminated header block")

    try:
        fm = yaml.safe_load(header) or {}
    except yaml.YAMLError as e:
        raise ParseError(source, f"invalid YAML header: {e}") from e
    if not isinstance(fm, dict):
        raise ParseError(source, f"header must be a mapping, got {type(fm).__name__}")
    return fm, body.lstrip('\r\n')


def read_source(path: Path, source: str) -> str:
    """Read a UTF-8 source file; undecodable bytes are a ParseError naming source."""
    try:
        return path.read_text(encoding='utf-8-sig')
    except UnicodeDecodeError as e:
        raise ParseError(source, f"not valid UTF-8 (byte {e.start})") from e


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in error.errors()
    )


def _is_hidden(path: Path, root: Path) -> bool:
    """Paths under '_' or '.' components hold layouts, includes, drafts or tooling."""
    return any(part.startswith(('_', '.')) for part in path.relative_to(root).parts)


def discover_files(root: Path) -> list[Path]:
    """Return sorted files under root, skipping '_'- and '.'-prefixed components."""
    return sorted(p for p in root.rglob('*') if p.is_file() and not _is_hidden(p, root))


def is_document(path: Path) -> bool:
    """A file is a document when it has a document extension and opens with a header line."""
    if path.suffix.lower() not in DOCUMENT_EXTENSIONS:
        return False
    with path.open(encoding='utf-8-sig', errors='replace') as fh:
        return fh.readline(256).strip() == HEADER_DELIMITER


def parse_file(path: Path, root: Path) -> Document:
    """Parse a single file into a Document.

    Raises ParseError for a malformed header and MissingFieldError when the
    header has no layout.
    """
    source = path.relative_to(root).as_posix()
    raw = read_source(path, source)
    frontmatter, body = split_frontmatter(raw, source)

    if not frontmatter.get('layout'):
        raise MissingFieldError(source, 'layout')

    fields = {k: frontmatter[k] for k in HEADER_FIELDS if k in frontmatter}
    extra = {k: v for k, v in frontmatter.items() if k not in HEADER_FIELDS}

    if fields.get('date') is None:
        if m := POST_FILENAME_RE.match(path.stem):
            fields['date'] = m.group(1)

    try:
        doc = Document(source_path=source, body=body, extra=extra, **fields)
    except ValidationError as e:
        raise ParseError(source, f"invalid header: {_describe(e)}") from e
    logger.debug("loaded %s (layout=%s)", source, doc.layout)
    return doc


def iter_documents(root: Path) -> Iterator[Document]:
    """Lazily yield a Document for every document file under root."""
    for path in discover_files(root):
        if is_document(path):
            yield parse_file(path, root)


def iter_static_files(root: Path) -> Iterator[Path]:
    """Yield files under root that are copied verbatim rather than rendered."""
    for path in discover_files(root):
        if not is_document(path):
            yield path
