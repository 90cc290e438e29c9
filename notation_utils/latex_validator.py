"""
Lightweight checks on LaTeX fragments.

This is not a parser. It catches the handful of mistakes that make a
renderer reject a whole expression: unbalanced braces, a script marker with no
argument, digits glued onto a command name and stray backslashes.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from notation_utils.symbol_normalizer import KNOWN_COMMANDS

logger = logging.getLogger(__name__)

CONTEXT_RADIUS = 20
ERROR_MARKER = "[ERROR HERE]"

# (kind, pattern, message, suggestion)
DANGEROUS_PATTERNS = [
    ('missing_superscript', re.compile(r"\^(?![{\w\\(*'+\-])"),
     "Superscript marker without an argument", "Wrap the exponent in braces: x^{2}"),
    ('missing_subscript', re.compile(r"(?<!\\)_(?![{\w\\(*'+\-])"),
     "Subscript marker without an argument", "Wrap the subscript in braces: x_{i}"),
    ('command_with_digit', re.compile(r'\\([A-Za-z]+)(\d+)'),
     "Digits attached directly to a command name", "Use a subscript: \\phi_{1}"),
    ('stray_backslash', re.compile(r'\\(?![A-Za-z{}_^\\,;:!|$%&#\s()\[\]])'),
     "Backslash not followed by a command", "Remove the backslash or complete the command"),
]

COMMAND_PATTERN = re.compile(r'\\([A-Za-z]+)')


@dataclass(frozen=True)
class BraceBalance:
    is_balanced: bool
    message: str = ""
    position: Optional[int] = None


@dataclass(frozen=True)
class LatexIssue:
    kind: str
    message: str
    position: int
    context: str
    suggestion: str = ""


@dataclass
class LatexValidationResult:
    content: str
    errors: List[LatexIssue] = field(default_factory=list)
    warnings: List[LatexIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _is_escaped(text: str, index: int) -> bool:
    return index > 0 and text[index - 1] == '\\'


def check_brace_balance(content: str) -> BraceBalance:
    """Check that every unescaped ``{`` has a matching ``}`` in the right order."""
    open_positions = []
    for index, char in enumerate(content):
        if char not in '{}' or _is_escaped(content, index):
            continue
        if char == '{':
            open_positions.append(index)
        elif not open_positions:
            return BraceBalance(False, f"Unexpected closing brace at position {index}", index)
        else:
            open_positions.pop()
    if open_positions:
        position = open_positions[-1]
        return BraceBalance(False, f"{len(open_positions)} unclosed brace(s), last opened at position {position}", position)
    return BraceBalance(True)


def brace_depth(content: str) -> int:
    """Maximum nesting depth of unescaped braces in ``content``."""
    depth = deepest = 0
    for index, char in enumerate(content):
        if char not in '{}' or _is_escaped(content, index):
            continue
        depth = depth + 1 if char == '{' else max(0, depth - 1)
        deepest = max(deepest, depth)
    return deepest


def open_brace_depth(content: str, position: int) -> int:
    """Number of braces opened and not yet closed before ``position``."""
    depth = 0
    for index, char in enumerate(content[:position]):
        if char not in '{}' or _is_escaped(content, index):
            continue
        depth = depth + 1 if char == '{' else max(0, depth - 1)
    return depth


def error_context(content: str, position: int, radius: int = CONTEXT_RADIUS) -> str:
    """Show ``radius`` characters either side of ``position`` with a marker at the offset."""
    start = max(0, position - radius)
    end = min(len(content), position + radius)
    return f"{content[start:position]}{ERROR_MARKER}{content[position:end]}"


class LatexValidator:
    """Validates a single LaTeX fragment (the content between math delimiters)."""

    def __init__(self, known_commands=None):
        self.known_commands = frozenset(known_commands) if known_commands is not None else KNOWN_COMMANDS

    def validate(self, content: str) -> LatexValidationResult:
        result = LatexValidationResult(content)
        if not content or not content.strip():
            return result

        balance = check_brace_balance(content)
        if not balance.is_balanced:
            result.errors.append(LatexIssue(
                'unbalanced_braces', balance.message, balance.position,
                error_context(content, balance.position), "Add or remove braces so every { has a matching }"
            ))

        for kind, pattern, message, suggestion in DANGEROUS_PATTERNS:
            for match in pattern.finditer(content):
                if kind == 'command_with_digit' and match.group(1) not in self.known_commands:
                    continue
                result.errors.append(LatexIssue(
                    kind, message, match.start(), error_context(content, match.start()), suggestion
                ))

        for match in COMMAND_PATTERN.finditer(content):
            name = match.group(1)
            if name in self.known_commands or name in ('begin', 'end'):
                continue
            result.warnings.append(LatexIssue(
                'unknown_command', f"Unknown command \\{name}", match.start(),
                error_context(content, match.start()), "Check the command is supported by the renderer"
            ))

        if result.errors:
            logger.debug(f"LaTeX fragment {content[:50]!r} has {len(result.errors)} error(s)")
        return result


def validate_latex(content: str) -> LatexValidationResult:
    """Validate a LaTeX fragment against the default command set."""
    return LatexValidator().validate(content)
