"""
Delimiter report for a piece of text.

Counts currency amounts and math expressions, flags $...$ pairs that are
neither (the ambiguous ones a writer should look at), and runs every math span
through the LaTeX validator.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from notation_utils.currency_guard import SpanKind
from notation_utils.delimiters import CANONICAL_REGION
from notation_utils.latex_validator import LatexValidator
from notation_utils.math_classifier import Construct
from notation_utils.normalizer import NotationNormalizer

logger = logging.getLogger(__name__)

# A $...$ pair whose content is only a number is a price range, not an ambiguity
NUMERIC_CONTENT = re.compile(r'^\s*[\d.,\s]+\s*$')


@dataclass
class DelimiterReport:
    currency_count: int = 0
    math_expressions: int = 0
    ambiguous_dollars: int = 0
    inline_count: int = 0
    display_count: int = 0
    issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    latex_warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.issues

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "currency_count": self.currency_count,
            "math_expressions": self.math_expressions,
            "ambiguous_dollars": self.ambiguous_dollars,
            "inline_count": self.inline_count,
            "display_count": self.display_count,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "latex_warnings": list(self.latex_warnings),
        }


def _count_canonical(text: str):
    """Count the inline and display regions already present in ``text``."""
    inline = display = 0
    for match in CANONICAL_REGION.finditer(text):
        if match.group(0).startswith('\\('):
            inline += 1
        else:
            display += 1
    return inline, display


def analyze_delimiters(text: str, normalizer: Optional[NotationNormalizer] = None) -> DelimiterReport:
    """Report on currency amounts, math expressions and ambiguous dollar pairs in ``text``."""
    report = DelimiterReport()
    if not text or not isinstance(text, str):
        return report

    normalizer = normalizer or NotationNormalizer()
    validator = LatexValidator()
    result = normalizer.inspect(text)
    restore = normalizer.currency_guard.restore

    report.currency_count = sum(1 for span in result.protected if span.kind is SpanKind.CURRENCY)
    report.inline_count, report.display_count = _count_canonical(text)

    for span in result.spans:
        if span.construct is Construct.DOLLAR and not span.is_math:
            content = span.raw_content
            if NUMERIC_CONTENT.match(restore(content, result.protected)):
                continue
            pair = restore(f"${content}$", result.protected)
            report.ambiguous_dollars += 1
            report.issues.append(f"Ambiguous dollar sign usage: {pair}")
            report.suggestions.append(f'If "{pair}" is math, add LaTeX symbols. If not, consider rewording.')
            continue
        if not span.is_math:
            continue

        report.math_expressions += 1
        latex = validator.validate(span.raw_content)
        for issue in latex.errors:
            report.issues.append(f"{issue.message} in '{span.raw_content}': {issue.context}")
            if issue.suggestion:
                report.suggestions.append(issue.suggestion)
        for warning in latex.warnings:
            report.latex_warnings.append(f"{warning.message} in '{span.raw_content}'")

    logger.info(
        f"Delimiter analysis: {report.currency_count} currency amount(s), "
        f"{report.math_expressions} math expression(s), {report.ambiguous_dollars} ambiguous dollar pair(s)"
    )
    return report
