"""
The math-notation normalization pipeline.

    CurrencyGuard.protect -> SymbolNormalizer -> MathSpanClassifier
        -> DelimiterRewriter -> CurrencyGuard.restore

Each stage takes an immutable string and returns a new one, plus an explicit
side list (protected spans, classified spans). Nothing is carried over from one
call to the next, so a single NotationNormalizer can serve concurrent callers.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from notation_utils.currency_guard import CurrencyGuard, ProtectedSpan, unescape_currency
from notation_utils.delimiter_rewriter import DelimiterRewriter, LayoutThresholds
from notation_utils.math_classifier import ClassifiedSpan, MathSpanClassifier
from notation_utils.symbol_normalizer import SymbolNormalizer

logger = logging.getLogger(__name__)


class NormalizationError(Exception):
    """Raised by NotationNormalizer.normalize_strict when a stage fails unexpectedly."""
    pass


@dataclass(frozen=True)
class NormalizationResult:
    """Everything one pipeline run produced, for diagnostics and reports."""
    original: str
    output: str
    guarded_text: str = ""
    normalized_text: str = ""
    protected: Tuple[ProtectedSpan, ...] = ()
    spans: Tuple[ClassifiedSpan, ...] = ()

    @property
    def math_spans(self) -> Tuple[ClassifiedSpan, ...]:
        return tuple(span for span in self.spans if span.is_math)

    @property
    def changed(self) -> bool:
        return self.output != self.original


class NotationNormalizer:
    """
    Rewrites free-form text so every math expression sits in canonical
    \\( \\) or \\[ \\] delimiters, without touching currency amounts.
    """

    def __init__(self, thresholds: Optional[LayoutThresholds] = None, unescape_dollars: bool = False):
        self.currency_guard = CurrencyGuard()
        self.symbol_normalizer = SymbolNormalizer()
        self.classifier = MathSpanClassifier()
        self.rewriter = DelimiterRewriter(thresholds)
        self.unescape_dollars = unescape_dollars

    def inspect(self, text: str) -> NormalizationResult:
        """Run the pipeline and keep every intermediate product."""
        if not text or not isinstance(text, str):
            return NormalizationResult(text or "", text or "")

        source = unescape_currency(text) if self.unescape_dollars else text
        guarded = self.currency_guard.protect(source)
        normalized = self.symbol_normalizer.normalize_symbols(guarded.text)
        spans = self.classifier.classify(normalized)
        rewritten = self.rewriter.rewrite(spans, normalized)
        output = self.currency_guard.restore(rewritten, guarded.spans)

        return NormalizationResult(
            original=text,
            output=output,
            guarded_text=guarded.text,
            normalized_text=normalized,
            protected=guarded.spans,
            spans=tuple(spans),
        )

    def normalize_strict(self, text: str) -> str:
        """Normalize ``text``, raising NormalizationError if a stage fails."""
        try:
            result = self.inspect(text)
        except Exception as e:
            raise NormalizationError(f"Failed to normalize text starting {str(text)[:40]!r}: {e}") from e
        if result.changed:
            logger.debug(
                f"Normalized text: {len(result.protected)} protected span(s), "
                f"{len(result.math_spans)} math span(s) of {len(result.spans)} candidate(s)"
            )
        return result.output

    def normalize(self, text: str) -> str:
        """
        Normalize math notation in text.

        Never raises: if anything goes wrong the input is returned unchanged,
        since an unrendered expression is recoverable and corrupted text is not.

        Args:
            text: Free-form text possibly containing math and currency

        Returns:
            str: Text with canonical math delimiters and untouched currency
        """
        if not text or not isinstance(text, str):
            return text or ""
        try:
            return self.normalize_strict(text)
        except NormalizationError as e:
            logger.error(f"Math normalization failed, returning input unchanged: {e}", exc_info=True)
            return text


# Global instance for convenience
notation_normalizer = NotationNormalizer()

def normalize(text: str) -> str:
    """Normalize math notation in text, leaving currency amounts untouched."""
    return notation_normalizer.normalize(text)

def inspect_normalization(text: str) -> NormalizationResult:
    """Run the pipeline on text and return every intermediate product."""
    return notation_normalizer.inspect(text)
