"""
Currency protection for the notation pipeline.

Dollar amounts are swapped for opaque placeholders before any math-aware
rewriting runs, and swapped back verbatim at the very end.
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence, Tuple

logger = logging.getLogger(__name__)

# Private-use code points; ordinary prose and LaTeX never contain them
SENTINEL_OPEN = "\ue000"
SENTINEL_CLOSE = "\ue001"
PLACEHOLDER_PATTERN = re.compile(SENTINEL_OPEN + r'(\d+)' + SENTINEL_CLOSE)

UNIT_WORDS = ('USD', 'dollars', 'dollar', 'bucks', 'buck')
PREFIX_UNIT_WORDS = ('USD', 'dollars', 'dollar')
MAGNITUDE_WORDS = ('million', 'billion', 'thousand', 'k')

# 1,250.99 or 1250.5 (unit and magnitude forms accept any decimal part)
_AMOUNT = r'(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?'
# 1,250.99 or 25 (bare form only accepts two-digit cents)
_PLAIN_AMOUNT = r'(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?'


def _alternation(words: Sequence[str]) -> str:
    return '|'.join(re.escape(word) for word in words)


class SpanKind(Enum):
    CURRENCY = "currency"
    RESERVED = "reserved"  # literal sentinel characters found in the input


@dataclass(frozen=True)
class ProtectedSpan:
    """A substring swapped out for a placeholder during one pipeline call."""
    placeholder: str
    original_text: str
    kind: SpanKind = SpanKind.CURRENCY


@dataclass(frozen=True)
class GuardedText:
    """Output of CurrencyGuard.protect: the guarded text plus what was taken out of it."""
    text: str
    spans: Tuple[ProtectedSpan, ...] = ()

    @property
    def mapping(self) -> Dict[str, str]:
        return {span.placeholder: span.original_text for span in self.spans}

    @property
    def currency_count(self) -> int:
        return sum(1 for span in self.spans if span.kind is SpanKind.CURRENCY)


def make_placeholder(index: int) -> str:
    return f"{SENTINEL_OPEN}{index}{SENTINEL_CLOSE}"


def contains_placeholder(text: str) -> bool:
    return SENTINEL_OPEN in text or SENTINEL_CLOSE in text


def unescape_currency(text: str) -> str:
    """Turn LLM-escaped currency (``\\$200``) back into a plain ``$200``."""
    if not text or not isinstance(text, str):
        return text or ""
    return re.sub(r'\\\$(?=\d)', '$', text)


class CurrencyGuard:
    """
    Detects currency-shaped substrings and replaces them with placeholders.

    All pattern classes live in one alternation so a single left-to-right scan
    decides every match: the leftmost match wins, and at the same offset the
    earlier class wins. Literal sentinel characters already present in the
    input are protected first, so the input can never forge a placeholder.
    """

    def __init__(self):
        units = _alternation(UNIT_WORDS)
        prefix_units = _alternation(PREFIX_UNIT_WORDS)
        magnitudes = _alternation(MAGNITUDE_WORDS)

        self.currency_pattern = re.compile(
            r'(?P<reserved>[' + SENTINEL_OPEN + SENTINEL_CLOSE + r']+)'
            # $25 USD, $3.50 dollars, $5 bucks
            r'|(?P<amount_unit>(?<!\$)\$' + _AMOUNT + r'[ \t]*(?:' + units + r')\b)'
            # $5 million, $10k
            r'|(?P<amount_magnitude>(?<!\$)\$' + _AMOUNT + r'[ \t]*(?:' + magnitudes + r')\b)'
            # USD $25, dollars $500
            r'|(?P<unit_amount>\b(?:' + prefix_units + r')[ \t]*\$' + _AMOUNT + r'\b)'
            # $25, $1,000, $3.50
            r'|(?P<amount>(?<!\$)\$' + _PLAIN_AMOUNT + r'\b)',
            re.IGNORECASE
        )

    def protect(self, text: str) -> GuardedText:
        """Replace every currency amount in ``text`` with a placeholder."""
        if not text or not isinstance(text, str):
            return GuardedText(text or "")

        spans = []

        def protect_callback(match: re.Match) -> str:
            kind = SpanKind.RESERVED if match.lastgroup == 'reserved' else SpanKind.CURRENCY
            placeholder = make_placeholder(len(spans))
            spans.append(ProtectedSpan(placeholder, match.group(0), kind))
            logger.debug(f"Protecting {kind.value} text {match.group(0)!r} ({match.lastgroup})")
            return placeholder

        guarded = self.currency_pattern.sub(protect_callback, text)
        return GuardedText(guarded, tuple(spans))

    def restore(self, text: str, spans: Sequence[ProtectedSpan]) -> str:
        """Put the original text back for every placeholder emitted by ``protect``."""
        if not spans:
            return text
        lookup = {span.placeholder: span.original_text for span in spans}

        def restore_callback(match: re.Match) -> str:
            original = lookup.get(match.group(0))
            if original is None:
                logger.warning(f"No protected text recorded for placeholder #{match.group(1)}, leaving it in place")
                return match.group(0)
            return original

        return PLACEHOLDER_PATTERN.sub(restore_callback, text)


# Global instance for convenience
currency_guard = CurrencyGuard()

def protect_currency(text: str) -> GuardedText:
    """Protect currency amounts in text."""
    return currency_guard.protect(text)

def restore_currency(text: str, spans: Sequence[ProtectedSpan]) -> str:
    """Restore currency amounts protected by protect_currency."""
    return currency_guard.restore(text, spans)
