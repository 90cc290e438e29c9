"""
Canonical math delimiters and the scanners shared by the pipeline stages.

A region already wrapped in one of the canonical pairs is never touched again,
which is what keeps repeated normalization a no-op.
"""

import re
from typing import Iterator, List, Optional, Sequence, Tuple

INLINE_OPEN = "\\("
INLINE_CLOSE = "\\)"
DISPLAY_OPEN = "\\["
DISPLAY_CLOSE = "\\]"

# Display environments that count as already delimited math
MATH_ENVIRONMENTS = [
    'align', 'equation', 'gather', 'multline', 'split', 'array', 'matrix',
    'pmatrix', 'bmatrix', 'Bmatrix', 'vmatrix', 'Vmatrix', 'smallmatrix',
    'cases', 'dcases', 'rcases', 'aligned', 'gathered', 'alignedat', 'eqnarray'
]

_env_pattern = '|'.join(re.escape(env) for env in MATH_ENVIRONMENTS)

# \( ... \), \[ ... \], $$ ... $$ and \begin{env} ... \end{env}
CANONICAL_REGION = re.compile(
    r'\\\(.*?\\\)'
    r'|\\\[.*?\\\]'
    r'|(?<!\\)\$\$.+?(?<!\\)\$\$'
    r'|\\begin\{(' + _env_pattern + r')(\*?)\}.*?\\end\{\1\2\}',
    re.DOTALL
)

# $...$ on a single line; an escaped \$ or a $$ never opens or closes one
SINGLE_DOLLAR = re.compile(r'(?<![\\$])\$(?!\$)([^$\n]+?)(?<!\\)\$(?!\$)')

# Delimiter tokens that must not appear inside a span we are about to wrap
DELIMITER_TOKEN = re.compile(r'\\[()\[\]]|\$\$')

# A dollar sign that is not escaped with a backslash
UNESCAPED_DOLLAR = re.compile(r'(?<!\\)\$')

# URLs (scheme://..., www....) and e-mail addresses; never cross a $ or whitespace
ADDRESS_TOKEN = re.compile(
    r'[^\s$]*(?:://|www\.)[^\s$]*'
    r'|[^\s$@]+@[^\s$@]+\.[^\s$@]+'
)

Region = Tuple[int, int]


def find_canonical_regions(text: str) -> List[Region]:
    """Return (start, end) offsets of every already-delimited math region."""
    return [match.span() for match in CANONICAL_REGION.finditer(text)]


def find_dollar_regions(text: str) -> List[Region]:
    return [match.span() for match in SINGLE_DOLLAR.finditer(text)]


def iter_gaps(length: int, regions: Sequence[Region]) -> Iterator[Region]:
    """Yield the (start, end) stretches of a text of ``length`` not covered by ``regions``.

    ``regions`` must be sorted and non-overlapping, which is what ``finditer`` produces.
    """
    cursor = 0
    for start, end in regions:
        if start > cursor:
            yield cursor, start
        cursor = max(cursor, end)
    if cursor < length:
        yield cursor, length


def find_unpaired_dollar_regions(text: str, dollar_regions: Optional[Sequence[Region]] = None) -> List[Region]:
    """Stretches of ``text`` that a dollar sign with no $...$ partner would delimit.

    Between two $...$ regions, unmatched dollars are paired in order (a pair
    across a newline or an adjacent ``$x$$y$`` lands here) and each pair covers
    the text between them. A last odd dollar covers everything after it up to
    the next $...$ region.
    """
    if dollar_regions is None:
        dollar_regions = find_dollar_regions(text)
    regions = []
    for start, end in iter_gaps(len(text), dollar_regions):
        strays = [match.start() for match in UNESCAPED_DOLLAR.finditer(text, start, end)]
        for opening, closing in zip(strays[0::2], strays[1::2]):
            regions.append((opening, closing + 1))
        if len(strays) % 2:
            regions.append((strays[-1], end))
    return regions


def find_address_regions(text: str) -> List[Region]:
    return [match.span() for match in ADDRESS_TOKEN.finditer(text)]


def find_shielded_regions(text: str, dollar_regions: Optional[Sequence[Region]] = None) -> List[Region]:
    """Regions no rewrite may touch: unpaired-dollar stretches plus URL and e-mail tokens, sorted."""
    return sorted(find_unpaired_dollar_regions(text, dollar_regions) + find_address_regions(text))


def overlaps(start: int, end: int, regions: Sequence[Region]) -> bool:
    return any(region_start < end and start < region_end for region_start, region_end in regions)


def is_canonically_wrapped(content: str) -> bool:
    """True when the whole of ``content`` is one canonical delimited region."""
    stripped = content.strip()
    return bool(stripped) and CANONICAL_REGION.fullmatch(stripped) is not None


def wrap_inline(content: str) -> str:
    return f"{INLINE_OPEN}{content}{INLINE_CLOSE}"


def wrap_display(content: str) -> str:
    return f"{DISPLAY_OPEN}{content}{DISPLAY_CLOSE}"
