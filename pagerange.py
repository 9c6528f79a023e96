import re
from typing import Optional

from models import PageRange

_NUMBER = re.compile(r'^\d+$')


def _to_int(part: str) -> int:
    part = part.strip()
    if not _NUMBER.match(part):
        raise ValueError(f'not a page number: {part!r}')
    return int(part)


def parse_page_range(value: Optional[str]) -> Optional[PageRange]:
    """
    Parse "N" or "A-B" into an inclusive 1-based PageRange.
    Returns None for blank input (print all pages), raises ValueError for anything malformed.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if '-' in text:
        left, _, right = text.partition('-')
        first, last = _to_int(left), _to_int(right)
    else:
        first = last = _to_int(text)
    if first < 1 or last < 1:
        raise ValueError('page numbers start at 1')
    if last < first:
        raise ValueError('page range is reversed')
    return PageRange(first=first, last=last)
