"""Data models shared by the load, route, render and assemble steps"""

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from pathlib import PurePosixPath
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


MARKDOWN_EXTENSIONS = {'.md', '.markdown'}

# Header keys mapped onto Document fields; everything else lands in Document.extra.
HEADER_FIELDS = (
    'layout', 'title', 'date', 'tags', 'permalink', 'canonical_url', 'skip_related',
    'description', 'excerpt', 'reading_time', 'image', 'published',
)


def _to_datetime(value: Any) -> Any:
    if isinstance(value, datetime) or value is None:
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            pass
        for fmt in ('%Y-%m-%d %H:%M:%S %z', '%Y-%m-%d %H:%M %z', '%Y-%m-%d %H:%M'):
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
        raise ValueError(f"unrecognised date '{value}'")
    return value


class Document(BaseModel):
    """One source content file: header fields plus an opaque body."""
    model_config = ConfigDict(frozen=True)

    source_path:   str                  # POSIX path relative to the source root
    layout:        str
    title:         Optional[str] = None
    date:          Optional[datetime] = None
    tags:          tuple[str, ...] = ()
    permalink:     Optional[str] = None
    canonical_url: Optional[str] = None
    skip_related:  bool = False
    description:   Optional[str] = None
    excerpt:       Optional[str] = None
    reading_time:  Optional[float] = None
    image:         Optional[str] = None
    published:     bool = True
    extra:         dict[str, Any] = {}
    body:          str = ""

    @field_validator('date', mode='before')
    @classmethod
    def _coerce_date(cls, v):
        return _to_datetime(v)

    @field_validator('tags', mode='before')
    @classmethod
    def _coerce_tags(cls, v):
        """Accept a list or a space-separated string; drop duplicates, keep first-seen order."""
        if v is None:
            return ()
        if isinstance(v, str):
            v = v.split()
        if not isinstance(v, (list, tuple, set)):
            raise ValueError("tags must be a list of strings")
        return tuple(dict.fromkeys(str(t).strip() for t in v if str(t).strip()))

    @field_validator('title', 'description', 'excerpt', 'layout', mode='before')
    @classmethod
    def _coerce_text(cls, v):
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def is_markdown(self) -> bool:
        return PurePosixPath(self.source_path).suffix.lower() in MARKDOWN_EXTENSIONS

    @property
    def timestamp(self) -> Optional[datetime]:
        """Naive UTC publish time used for ordering; aware and naive dates compare safely."""
        if self.date is None or self.date.tzinfo is None:
            return self.date
        return self.date.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class Layout:
    """A named template, optionally wrapped by a parent layout."""
    name:     str
    template: str
    parent:   Optional[str] = None


@dataclass(frozen=True)
class Route:
    source:      str    # source path, or a generated page marker such as "<tag:python>"
    url:         str
    output_path: str    # POSIX path relative to the output directory


@dataclass(frozen=True)
class Post:
    """A routed document, the unit listings and related-post lookups work with."""
    doc:   Document
    route: Route


@dataclass(frozen=True)
class RenderedPage:
    route: Route
    text:  str
