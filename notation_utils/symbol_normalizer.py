"""
Rewrites the Unicode and ASCII spellings of math found outside delimiters
into LaTeX commands, so the classifier only has to recognize one notation.
"""

import re
import logging
from typing import Callable, List

from notation_utils.delimiters import (
    Region, find_canonical_regions, find_dollar_regions, find_shielded_regions, overlaps
)

logger = logging.getLogger(__name__)

SUPERSCRIPT_DIGITS = {
    '⁰': '0', '¹': '1', '²': '2', '³': '3', '⁴': '4',
    '⁵': '5', '⁶': '6', '⁷': '7', '⁸': '8', '⁹': '9',
}

SUBSCRIPT_DIGITS = {
    '₀': '0', '₁': '1', '₂': '2', '₃': '3', '₄': '4',
    '₅': '5', '₆': '6', '₇': '7', '₈': '8', '₉': '9',
}

GREEK_LETTER_NAMES = (
    'alpha', 'beta', 'gamma', 'delta', 'epsilon', 'zeta', 'eta', 'theta',
    'iota', 'kappa', 'lambda', 'mu', 'nu', 'xi', 'omicron', 'pi',
    'rho', 'sigma', 'tau', 'upsilon', 'phi', 'chi', 'psi', 'omega',
)

UPPERCASE_GREEK_NAMES = (
    'Gamma', 'Delta', 'Theta', 'Lambda', 'Xi', 'Pi', 'Sigma', 'Upsilon', 'Phi', 'Psi', 'Omega',
)

# Standalone Unicode glyphs and the command each one becomes
UNICODE_COMMANDS = {
    # Greek
    'α': r'\alpha', 'β': r'\beta', 'γ': r'\gamma', 'δ': r'\delta', 'ε': r'\epsilon',
    'ζ': r'\zeta', 'η': r'\eta', 'θ': r'\theta', 'ι': r'\iota', 'κ': r'\kappa',
    'λ': r'\lambda', 'μ': r'\mu', 'ν': r'\nu', 'ξ': r'\xi', 'π': r'\pi',
    'ρ': r'\rho', 'σ': r'\sigma', 'τ': r'\tau', 'υ': r'\upsilon', 'φ': r'\phi',
    'χ': r'\chi', 'ψ': r'\psi', 'ω': r'\omega',
    'Γ': r'\Gamma', 'Δ': r'\Delta', 'Θ': r'\Theta', 'Λ': r'\Lambda', 'Ξ': r'\Xi',
    'Π': r'\Pi', 'Σ': r'\Sigma', 'Φ': r'\Phi', 'Ψ': r'\Psi', 'Ω': r'\Omega',
    # Calculus and big operators
    '∫': r'\int', '∬': r'\iint', '∮': r'\oint', '∑': r'\sum', '∏': r'\prod',
    '∂': r'\partial', '∇': r'\nabla', '∞': r'\infty',
    # Arithmetic
    '±': r'\pm', '∓': r'\mp', '×': r'\times', '÷': r'\div', '⋅': r'\cdot',
    # Relations
    '≤': r'\leq', '≥': r'\geq', '≠': r'\neq', '≈': r'\approx', '≡': r'\equiv',
    '∝': r'\propto', '∼': r'\sim',
    # Arrows
    '→': r'\rightarrow', '←': r'\leftarrow', '↔': r'\leftrightarrow',
    '⇒': r'\Rightarrow', '⇐': r'\Leftarrow', '⇔': r'\Leftrightarrow', '↦': r'\mapsto',
    # Sets and logic
    '∈': r'\in', '∉': r'\notin', '⊂': r'\subset', '⊃': r'\supset', '⊆': r'\subseteq',
    '⊇': r'\supseteq', '∪': r'\cup', '∩': r'\cap', '∅': r'\emptyset', '∀': r'\forall',
    '∃': r'\exists', '¬': r'\neg', '∧': r'\wedge', '∨': r'\vee',
    # Number sets
    'ℝ': r'\mathbb{R}', 'ℕ': r'\mathbb{N}', 'ℤ': r'\mathbb{Z}', 'ℚ': r'\mathbb{Q}', 'ℂ': r'\mathbb{C}',
}

# ASCII operator spellings; a run of operator characters converts only when the whole run is one of these
OPERATOR_COMMANDS = {
    '->': r'\to',
    '<=': r'\leq',
    '>=': r'\geq',
    '!=': r'\neq',
}
OPERATOR_CHARS = '-<>=!'

# Macro names an LLM sometimes emits without their backslash
BARE_MACRO_NAMES = ('frac', 'sum', 'prod', 'int', 'lim')

# Commands the classifier treats as math when they appear outside delimiters
KNOWN_COMMANDS = frozenset(
    {name for command in UNICODE_COMMANDS.values() for name in re.findall(r'\\([A-Za-z]+)', command)}
    | set(GREEK_LETTER_NAMES)
    | set(UPPERCASE_GREEK_NAMES)
    | {
        'to', 'leq', 'geq', 'neq', 'infty', 'le', 'ge', 'ne', 'lt', 'gt',
        'frac', 'dfrac', 'tfrac', 'sqrt', 'sum', 'prod', 'int', 'lim', 'limsup', 'liminf',
        'sin', 'cos', 'tan', 'log', 'ln', 'exp', 'min', 'max', 'det',
        'varepsilon', 'vartheta', 'varphi', 'ell',
        'cdots', 'ldots', 'dots', 'quad', 'qquad',
        'mathbb', 'mathcal', 'mathbf', 'mathrm', 'text', 'operatorname',
        'hat', 'bar', 'vec', 'tilde', 'dot', 'overline', 'underline',
        'left', 'right', 'langle', 'rangle', 'mid', 'circ',
    }
)


class SymbolNormalizer:
    """
    Rewrites Unicode math glyphs, superscript digits, ASCII operators and bare
    Greek-letter words into LaTeX commands.

    Text that is already inside a canonical math region is passed through as is,
    and so is every shielded region: URLs, e-mail addresses and whatever an
    unmatched dollar sign would delimit. Greek words are additionally left alone
    inside $...$ regions, whose content the classifier judges as written.
    """

    def __init__(self):
        self.superscript_pattern = re.compile(r'(?<=[A-Za-z0-9])([' + ''.join(SUPERSCRIPT_DIGITS) + r']+)')
        self.subscript_pattern = re.compile(r'(?<=[A-Za-z])([' + ''.join(SUBSCRIPT_DIGITS) + r']+)')

        glyphs = sorted(UNICODE_COMMANDS, key=len, reverse=True)
        self.glyph_pattern = re.compile('|'.join(re.escape(glyph) for glyph in glyphs))
        # √(x+1) -> \sqrt{x+1}, √2 -> \sqrt{2}
        self.radical_pattern = re.compile(r'√(?:\(([^()\n]*)\)|([A-Za-z0-9]+))?')

        self.bare_macro_pattern = re.compile(
            r'(?<![\\\w])(?:(?:' + '|'.join(BARE_MACRO_NAMES) + r')'
            r'(?=\{|[_^](?:\{|[A-Za-z0-9](?![A-Za-z0-9_])))'
            r'|sqrt(?=[{\[]))'
        )

        # Whole runs only, so <=<= or --> is never split into a command plus leftovers
        self.operator_pattern = re.compile(r'[ \t]*([' + re.escape(OPERATOR_CHARS) + r']+)[ \t]*')
        self.infinity_pattern = re.compile(r'[ \t]*(?<![\\\w])infinity(?!\w)[ \t]*')

        self.greek_word_pattern = re.compile(r'(?<![\\\w])(' + '|'.join(GREEK_LETTER_NAMES) + r')(?!\w)')

    def normalize_symbols(self, text: str) -> str:
        """Normalize every part of ``text`` that lies outside canonical math regions."""
        if not text or not isinstance(text, str):
            return text or ""

        regions = find_canonical_regions(text)
        parts = []
        cursor = 0
        for start, end in regions:
            parts.append(self._normalize_segment(text[cursor:start]))
            parts.append(text[start:end])
            cursor = end
        parts.append(self._normalize_segment(text[cursor:]))
        return ''.join(parts)

    def _normalize_segment(self, segment: str) -> str:
        if not segment:
            return segment

        segment = self._substitute(self.radical_pattern, self._radical_callback, segment)
        segment = self._substitute(self.glyph_pattern, self._glyph_callback, segment)
        segment = self._substitute(self.superscript_pattern, self._superscript_callback, segment)
        segment = self._substitute(self.subscript_pattern, self._subscript_callback, segment)
        segment = self._substitute(self.bare_macro_pattern, lambda match: '\\' + match.group(0), segment)
        segment = self._substitute(self.operator_pattern, self._operator_callback, segment)
        segment = self._substitute(self.infinity_pattern, self._spaced(r'\infty'), segment)
        # Greek words only outside $...$ regions
        return self._substitute(self.greek_word_pattern, self._greek_callback, segment, outside_dollars=True)

    def _substitute(self, pattern: re.Pattern, callback: Callable[[re.Match], str],
                    segment: str, outside_dollars: bool = False) -> str:
        """``pattern.sub`` that leaves any match touching a shielded region as it was."""
        dollar_regions = find_dollar_regions(segment)
        blocked: List[Region] = find_shielded_regions(segment, dollar_regions)
        if outside_dollars:
            blocked = sorted(blocked + dollar_regions)
        if not blocked:
            return pattern.sub(callback, segment)

        def guarded(match: re.Match) -> str:
            if overlaps(match.start(), match.end(), blocked):
                return match.group(0)
            return callback(match)
        return pattern.sub(guarded, segment)

    def _operator_callback(self, match: re.Match) -> str:
        command = OPERATOR_COMMANDS.get(match.group(1))
        if command is None:
            return match.group(0)
        return self._spaced(command)(match)

    def _superscript_callback(self, match: re.Match) -> str:
        digits = ''.join(SUPERSCRIPT_DIGITS[char] for char in match.group(1))
        return f"^{{{digits}}}"

    def _subscript_callback(self, match: re.Match) -> str:
        digits = ''.join(SUBSCRIPT_DIGITS[char] for char in match.group(1))
        return f"_{{{digits}}}"

    def _radical_callback(self, match: re.Match) -> str:
        radicand = match.group(1) if match.group(1) is not None else match.group(2)
        if radicand is None:
            return self._glue_safe(r'\sqrt', match)
        return f"\\sqrt{{{radicand}}}"

    def _glyph_callback(self, match: re.Match) -> str:
        return self._glue_safe(UNICODE_COMMANDS[match.group(0)], match)

    def _greek_callback(self, match: re.Match) -> str:
        logger.debug(f"Converting Greek letter name '{match.group(1)}' to a command")
        return '\\' + match.group(1)

    @staticmethod
    def _glue_safe(command: str, match: re.Match) -> str:
        """Append a space when a command name would otherwise run into the following letter."""
        text = match.string
        next_char = text[match.end()] if match.end() < len(text) else ''
        if command[-1].isalpha() and next_char.isascii() and next_char.isalpha():
            return command + ' '
        return command

    @staticmethod
    def _spaced(command: str) -> Callable[[re.Match], str]:
        """Build a callback that surrounds ``command`` with single spaces, except at a line edge.

        Whitespace the match consumed is always replaced by one space.
        """
        def callback(match: re.Match) -> str:
            text, matched = match.string, match.group(0)
            before = text[match.start() - 1] if match.start() > 0 else '\n'
            after = text[match.end()] if match.end() < len(text) else '\n'
            lead = ' ' if matched[0] in ' \t' or before not in '\r\n' else ''
            trail = ' ' if matched[-1] in ' \t' or after not in '\r\n' else ''
            return f"{lead}{command}{trail}"
        return callback


# Global instance for convenience
symbol_normalizer = SymbolNormalizer()

def normalize_symbols(text: str) -> str:
    """Canonicalize Unicode glyphs, operators and Greek-letter words in text."""
    return symbol_normalizer.normalize_symbols(text)
