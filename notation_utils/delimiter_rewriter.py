"""
Wraps the spans the classifier judged to be math in canonical delimiters,
choosing inline \\( \\) or display \\[ \\] from per-construct length limits.
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Optional, Sequence

from notation_utils.delimiters import is_canonically_wrapped, wrap_display, wrap_inline
from notation_utils.math_classifier import ClassifiedSpan, Construct, Operand

logger = logging.getLogger(__name__)

ENV_PREFIX = "NOTATION_"

# Default per-construct limits, in characters of operand text (braces stripped)
DEFAULT_FRAC_OPERAND = 12
DEFAULT_SQRT_RADICAND = 15
DEFAULT_SCRIPT_OPERAND = 15
DEFAULT_SUM_SCRIPT = 10
DEFAULT_SUM_BODY = 20
DEFAULT_INT_SCRIPT = 8
DEFAULT_INT_BODY = 20
DEFAULT_LIM_SCRIPT = 12
DEFAULT_LIM_BODY = 20
DEFAULT_EXPRESSION = 60

# Constructs whose operands go to display as soon as they nest a brace or an exponent
NESTING_SENSITIVE = (Construct.FRAC, Construct.SCRIPT)


class Layout(Enum):
    INLINE = "inline"
    DISPLAY = "display"


@dataclass(frozen=True)
class LayoutThresholds:
    """Character-length limits above which an operand forces display layout."""
    frac_operand: int = DEFAULT_FRAC_OPERAND
    sqrt_radicand: int = DEFAULT_SQRT_RADICAND
    script_operand: int = DEFAULT_SCRIPT_OPERAND
    sum_script: int = DEFAULT_SUM_SCRIPT
    sum_body: int = DEFAULT_SUM_BODY
    int_script: int = DEFAULT_INT_SCRIPT
    int_body: int = DEFAULT_INT_BODY
    lim_script: int = DEFAULT_LIM_SCRIPT
    lim_body: int = DEFAULT_LIM_BODY
    expression: int = DEFAULT_EXPRESSION

    def limit_for(self, operand: Operand) -> int:
        construct = operand.construct
        if construct is Construct.FRAC:
            return self.frac_operand
        if construct is Construct.SQRT:
            return self.sqrt_radicand
        if construct is Construct.SCRIPT:
            return self.script_operand
        if construct in (Construct.SUM, Construct.INT, Construct.LIM):
            prefix = construct.value
            if operand.role == 'body':
                return getattr(self, f"{prefix}_body")
            return getattr(self, f"{prefix}_script")
        return self.expression

    @classmethod
    def from_env(cls, environ=None) -> 'LayoutThresholds':
        """Build thresholds, overriding any field from a NOTATION_<FIELD> environment variable."""
        environ = os.environ if environ is None else environ
        overrides = {}
        for threshold in fields(cls):
            name = ENV_PREFIX + threshold.name.upper()
            raw = environ.get(name)
            if raw is None:
                continue
            try:
                value = int(raw)
            except ValueError:
                logger.warning(f"Ignoring {name}={raw!r}: not an integer")
                continue
            if value < 0:
                logger.warning(f"Ignoring {name}={raw!r}: must not be negative")
                continue
            overrides[threshold.name] = value
        if overrides:
            logger.info(f"Layout thresholds overridden from environment: {overrides}")
        return replace(cls(), **overrides)


def _is_nested(text: str) -> bool:
    return '{' in text or '^' in text


class DelimiterRewriter:
    """
    Wraps math spans in canonical delimiters.

    Short, flat expressions get inline delimiters and anything past a
    construct's length limit (or a nested fraction/exponent operand) gets
    display delimiters. Plain-text spans are never touched.
    """

    def __init__(self, thresholds: Optional[LayoutThresholds] = None):
        self.thresholds = thresholds or LayoutThresholds()

    def choose_layout(self, span: ClassifiedSpan) -> Layout:
        for operand in span.operands:
            limit = self.thresholds.limit_for(operand)
            if len(operand.text) > limit:
                logger.debug(f"Display layout: {operand.construct.value} {operand.role} '{operand.text}' exceeds {limit} chars")
                return Layout.DISPLAY
            if operand.construct in NESTING_SENSITIVE and _is_nested(operand.text):
                logger.debug(f"Display layout: {operand.construct.value} {operand.role} '{operand.text}' is nested")
                return Layout.DISPLAY
        if len(span.raw_content.strip()) > self.thresholds.expression:
            logger.debug(f"Display layout: expression longer than {self.thresholds.expression} chars")
            return Layout.DISPLAY
        return Layout.INLINE

    def wrap(self, span: ClassifiedSpan) -> str:
        content = span.raw_content.strip()
        if self.choose_layout(span) is Layout.DISPLAY:
            return wrap_display(content)
        return wrap_inline(content)

    def rewrite(self, spans: Sequence[ClassifiedSpan], text: str) -> str:
        """Rewrite math spans of ``text`` left to right; overlapping spans are skipped."""
        if not text or not isinstance(text, str):
            return text or ""

        pieces = []
        cursor = 0
        wrapped = 0
        for span in sorted(spans, key=lambda item: item.start):
            if not span.is_math:
                continue
            if span.start < cursor:
                logger.debug(f"Skipping span at {span.start}: overlaps the previous rewrite")
                continue
            original = text[span.start:span.end]
            if is_canonically_wrapped(span.raw_content):
                logger.debug(f"Span '{original}' is already delimited, leaving it unchanged")
                continue
            pieces.append(text[cursor:span.start])
            pieces.append(self.wrap(span))
            cursor = span.end
            wrapped += 1
        pieces.append(text[cursor:])

        if wrapped:
            logger.debug(f"Wrapped {wrapped} math span(s)")
        return ''.join(pieces)


# Global instance for convenience
delimiter_rewriter = DelimiterRewriter()

def rewrite_delimiters(spans: Sequence[ClassifiedSpan], text: str) -> str:
    """Wrap classified math spans of text in canonical delimiters."""
    return delimiter_rewriter.rewrite(spans, text)
