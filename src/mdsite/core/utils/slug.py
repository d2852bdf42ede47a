"""Slug generation for routes and tag pages"""

import re
import unicodedata


_STRIP_RE = re.compile(r'[^a-z0-9\s_-]')
_SEP_RE = re.compile(r'[\s_-]+')


def slugify(text: str) -> str:
    """Lower-case, fold accents to ASCII, drop non-alphanumerics and hyphenate words.

    'Café Culture, Part 2' -> 'cafe-culture-part-2'
    """
    text = unicodedata.normalize('NFKD', text).encode('ascii', 'ignore').decode('ascii')
    text = _STRIP_RE.sub('', text.lower())
    return _SEP_RE.sub('-', text).strip('-')
