"""
Finds the regions of a text that might be math and decides, for each one,
whether it really is. Doubtful regions are always judged plain text.
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from notation_utils.currency_guard import contains_placeholder
from notation_utils.delimiters import (
    DELIMITER_TOKEN, SINGLE_DOLLAR, find_canonical_regions, find_shielded_regions, iter_gaps
)
from notation_utils.latex_validator import brace_depth, check_brace_balance, open_brace_depth
from notation_utils.symbol_normalizer import GREEK_LETTER_NAMES, KNOWN_COMMANDS

logger = logging.getLogger(__name__)

FUNCTION_NAMES = ('sin', 'cos', 'tan', 'log', 'ln', 'exp', 'sqrt', 'sum', 'int', 'lim')

# Brace group with up to two levels of nesting: {a}, {a^{2}}, {\frac{a}{b^{2}}}
_GROUP = r'\{(?:[^{}\n]|\{(?:[^{}\n]|\{[^{}\n]*\})*\})*\}'
# Limits of sum/int/lim: a brace group or one character that stands alone (sum_i, int_0^1)
_LIMIT_ARG = r'(?:' + _GROUP + r'|[A-Za-z0-9](?![A-Za-z0-9_]))'
# Exponent or subscript of a plain base: a brace group or an alphanumeric run
_SCRIPT_ARG = r'(?:' + _GROUP + r'|[A-Za-z0-9]+)'
# One term of a body following sum/int/lim, and terms chained by arithmetic operators
_TERM = r"[\w\\({\[|](?:[\w\\(){}\[\]^|'.]*[\w(){}\[\]^|'])?"
_BODY = _TERM + r"(?:[ \t]*[-+*/=][ \t]*" + _TERM + r")*"

# Unbraced subscripts only count on a single-letter base (x_1, H_2O), never on identifiers like my_var
MAX_BARE_SUBSCRIPT_LENGTH = 2
# A script touching one of these is part of a path, address or dotted name (a/x_1, x_1@host)
ADDRESS_NEIGHBORS_BEFORE = '/@.:'
ADDRESS_NEIGHBORS_AFTER = '/@:'
# Complexity = longest operand + NESTING_WEIGHT * deepest brace nesting
NESTING_WEIGHT = 10

SCRIPT_PART = re.compile(r'([_^])(' + _GROUP + r'|[A-Za-z0-9]+)')


class Verdict(Enum):
    MATH = "math"
    PLAIN_TEXT = "plain_text"


class Construct(Enum):
    """Pattern family that produced a candidate span, in tie-break order."""
    DOLLAR = "dollar"
    FRAC = "frac"
    SUM = "sum"
    INT = "int"
    LIM = "lim"
    SQRT = "sqrt"
    SCRIPT = "script"
    COMMAND = "command"


# Named groups of each construct pattern that hold an operand
CONSTRUCT_ROLES = {
    Construct.FRAC: ('numerator', 'denominator'),
    Construct.SUM: ('subscript', 'superscript', 'body'),
    Construct.INT: ('subscript', 'superscript', 'body'),
    Construct.LIM: ('subscript', 'body'),
    Construct.SQRT: ('radicand',),
}


@dataclass(frozen=True)
class Operand:
    construct: Construct
    role: str
    text: str


@dataclass(frozen=True)
class CandidateSpan:
    """A region of the text that might be math; ``start``/``end`` cover any $ delimiters."""
    start: int
    end: int
    raw_content: str
    construct: Construct


@dataclass(frozen=True)
class ClassifiedSpan(CandidateSpan):
    verdict: Verdict = Verdict.PLAIN_TEXT
    complexity: int = 0
    operands: Tuple[Operand, ...] = ()

    @property
    def is_math(self) -> bool:
        return self.verdict is Verdict.MATH


def _strip_group(text: str) -> str:
    if len(text) >= 2 and text.startswith('{') and text.endswith('}'):
        return text[1:-1]
    return text


class MathSpanClassifier:
    """
    Finds candidate math regions and decides whether each one is math.

    Regions already wrapped in canonical delimiters are skipped. In what is
    left, $...$ regions are found first; bare LaTeX-shaped constructs are then
    looked for only in the stretches between them, minus the shielded regions
    (URLs, e-mail addresses and text an unmatched dollar would delimit). A span
    is math when its content carries a math-indicating token and is well
    formed; anything doubtful stays plain text.
    """

    def __init__(self):
        # Bare constructs; a leading backslash is optional on the named ones
        self.construct_patterns = [
            (Construct.FRAC, re.compile(
                r'(?<![A-Za-z\\])\\?frac[ \t]*(?P<numerator>' + _GROUP + r')[ \t]*(?P<denominator>' + _GROUP + r')'
            )),
            (Construct.SUM, re.compile(
                r'(?<![A-Za-z\\])\\?(?:sum|prod)_(?P<subscript>' + _LIMIT_ARG + r')'
                r'(?:\^(?P<superscript>' + _LIMIT_ARG + r'))?'
                r'(?:[ \t]*(?P<body>' + _BODY + r'))?'
            )),
            (Construct.INT, re.compile(
                r'(?<![A-Za-z\\])\\?(?:int|iint|oint)_(?P<subscript>' + _LIMIT_ARG + r')'
                r'\^(?P<superscript>' + _LIMIT_ARG + r')'
                r'(?:[ \t]*(?P<body>' + _BODY + r'(?:[ \t]+d[a-z]\b)?))?'
            )),
            (Construct.LIM, re.compile(
                r'(?<![A-Za-z\\])\\?lim_(?P<subscript>' + _LIMIT_ARG + r')'
                r'(?:[ \t]*(?P<body>' + _BODY + r'))?'
            )),
            (Construct.SQRT, re.compile(
                r'(?<![A-Za-z\\])\\?sqrt(?:\[(?P<index>[^\]\n]{1,10})\])?(?P<radicand>' + _GROUP + r')'
            )),
            (Construct.SCRIPT, re.compile(
                r'(?<![\\\w{^_])(?P<base>[A-Za-z0-9]+)(?P<scripts>(?:[_^]' + _SCRIPT_ARG + r'){1,2})'
            )),
        ]

        commands = '|'.join(sorted(KNOWN_COMMANDS, key=len, reverse=True))
        single_command = (
            r'\\(?:' + commands + r')(?![A-Za-z0-9])(?:' + _GROUP + r')*(?:[_^]' + _SCRIPT_ARG + r')*'
        )
        # A run of known commands such as \alpha, \to or \mathbb{R}, never cut off before a brace or mid-word
        self.command_pattern = re.compile(
            r'(?<!\\)' + single_command + r'(?:[ \t]*' + single_command + r')*(?![A-Za-z0-9{])'
        )

        self.math_indicator = re.compile(
            r'[{}^_]|\\[A-Za-z]+|\b(?:' + '|'.join(FUNCTION_NAMES + GREEK_LETTER_NAMES) + r')\b'
        )

    def classify(self, text: str) -> List[ClassifiedSpan]:
        """Find and classify every candidate span in ``text``, ordered by position."""
        if not text or not isinstance(text, str):
            return []
        spans = [self.classify_span(candidate) for candidate in self.find_candidates(text)]
        math_count = sum(1 for span in spans if span.is_math)
        logger.debug(f"Classified {len(spans)} candidate span(s): {math_count} math, {len(spans) - math_count} plain text")
        return spans

    def find_candidates(self, text: str) -> List[CandidateSpan]:
        candidates = []
        for gap_start, gap_end in iter_gaps(len(text), find_canonical_regions(text)):
            gap = text[gap_start:gap_end]
            dollar_regions = []
            for match in SINGLE_DOLLAR.finditer(gap):
                candidates.append(CandidateSpan(
                    gap_start + match.start(), gap_start + match.end(), match.group(1), Construct.DOLLAR
                ))
                dollar_regions.append(match.span())
            shielded = find_shielded_regions(gap, dollar_regions)
            if shielded:
                logger.debug(f"Leaving {len(shielded)} shielded region(s) alone")
            for start, end in iter_gaps(len(gap), sorted(dollar_regions + shielded)):
                candidates.extend(self._find_bare_constructs(gap[start:end], gap_start + start))
        candidates.sort(key=lambda candidate: candidate.start)
        return candidates

    def _find_bare_constructs(self, segment: str, offset: int) -> List[CandidateSpan]:
        """Bare constructs in a stretch of text with no $...$ or canonical regions."""
        found = []
        patterns = self.construct_patterns + [(Construct.COMMAND, self.command_pattern)]
        for order, (construct, pattern) in enumerate(patterns):
            for match in pattern.finditer(segment):
                if construct is Construct.SCRIPT and (not self._is_script(match) or self._touches_address(match)):
                    continue
                found.append((match.start(), -(match.end() - match.start()), order, construct, match))

        # Leftmost first, then longest, then family order
        found.sort(key=lambda item: item[:3])
        selected = []
        cursor = 0
        for start, _, _, construct, match in found:
            if start < cursor:
                continue
            if open_brace_depth(segment, start) > 0:
                logger.debug(f"Skipping {construct.value} candidate '{match.group(0)}' inside an unclosed brace group")
                continue
            selected.append(CandidateSpan(offset + match.start(), offset + match.end(), match.group(0), construct))
            cursor = match.end()
        return selected

    def _is_script(self, match: re.Match) -> bool:
        """Carets always count; unbraced subscripts only on a one-letter base."""
        base = match.group('base')
        for marker, argument in SCRIPT_PART.findall(match.group('scripts')):
            if marker == '^' or argument.startswith('{'):
                continue
            if not (len(base) == 1 and base.isalpha() and len(argument) <= MAX_BARE_SUBSCRIPT_LENGTH):
                return False
        return True

    @staticmethod
    def _touches_address(match: re.Match) -> bool:
        text = match.string
        before = text[match.start() - 1] if match.start() > 0 else ''
        after = text[match.end()] if match.end() < len(text) else ''
        return (before != "" and before in ADDRESS_NEIGHBORS_BEFORE) or (after != "" and after in ADDRESS_NEIGHBORS_AFTER)

    def plain_text_reason(self, content: str) -> Optional[str]:
        """Why ``content`` is not math, or None when it is."""
        if not content or not content.strip():
            return "empty content"
        if contains_placeholder(content):
            return "contains protected text"
        if not self.math_indicator.search(content):
            return "no math-indicating token"
        if DELIMITER_TOKEN.search(content):
            return "contains a math delimiter"
        balance = check_brace_balance(content)
        if not balance.is_balanced:
            return balance.message
        return None

    def classify_span(self, candidate: CandidateSpan) -> ClassifiedSpan:
        content = candidate.raw_content
        reason = self.plain_text_reason(content)
        if reason is not None:
            logger.debug(f"Plain text {candidate.construct.value} span '{content}': {reason}")
            return ClassifiedSpan(candidate.start, candidate.end, content, candidate.construct, Verdict.PLAIN_TEXT)

        operands = self.extract_operands(content)
        longest = max((len(operand.text) for operand in operands), default=len(content.strip()))
        complexity = longest + NESTING_WEIGHT * brace_depth(content)
        logger.debug(f"Math {candidate.construct.value} span '{content}' (complexity {complexity})")
        return ClassifiedSpan(
            candidate.start, candidate.end, content, candidate.construct,
            Verdict.MATH, complexity, tuple(operands)
        )

    def extract_operands(self, content: str) -> List[Operand]:
        """Operands of every construct found in ``content``, braces stripped."""
        operands = []
        for construct, pattern in self.construct_patterns:
            for match in pattern.finditer(content):
                if construct is Construct.SCRIPT:
                    if not self._is_script(match):
                        continue
                    for marker, argument in SCRIPT_PART.findall(match.group('scripts')):
                        role = 'superscript' if marker == '^' else 'subscript'
                        operands.append(Operand(construct, role, _strip_group(argument)))
                    continue
                for role in CONSTRUCT_ROLES[construct]:
                    value = match.group(role)
                    if value:
                        operands.append(Operand(construct, role, _strip_group(value)))
        return operands


# Global instance for convenience
math_classifier = MathSpanClassifier()

def classify_spans(text: str) -> List[ClassifiedSpan]:
    """Find and classify candidate math spans in text."""
    return math_classifier.classify(text)
