#!/usr/bin/env python3
"""
Math Notation Normalizer

A command-line tool that rewrites math in Markdown or plain text into canonical
\\( \\) and \\[ \\] delimiters while leaving dollar amounts untouched.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from tqdm import tqdm

from notation_utils.delimiter_analysis import analyze_delimiters
from notation_utils.delimiter_rewriter import LayoutThresholds
from notation_utils.normalizer import NormalizationError, NotationNormalizer
from notation_utils.self_test import run_self_tests

DEFAULT_LOG_FILE = "normalize_math.log"

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False, log_file: Optional[str] = DEFAULT_LOG_FILE):
    """Log to stderr and, unless ``log_file`` is empty, to a file."""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Normalize math delimiters in Markdown or text while preserving currency amounts.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "inputs",
        nargs="*",
        help="Files to normalize (reads stdin when none are given)"
    )

    output_group = parser.add_argument_group('output options')
    output_group.add_argument(
        "-o", "--output",
        default=None,
        help="Write the result to this file instead of stdout (single input only)"
    )
    output_group.add_argument(
        "--in-place",
        action="store_true",
        help="Rewrite each input file in place"
    )

    mode_group = parser.add_argument_group('mode options')
    mode_group.add_argument(
        "--check",
        action="store_true",
        help="Report ambiguous dollar signs and LaTeX problems without writing; exit 1 if any input would change"
    )
    mode_group.add_argument(
        "--self-test",
        action="store_true",
        help="Run the built-in conformance cases and exit"
    )

    parser.add_argument(
        "--unescape-dollars",
        action="store_true",
        help="Turn escaped currency such as \\$200 back into $200 before normalizing"
    )

    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help="Log file path (empty string disables file logging)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def validate_arguments(args) -> bool:
    """Validate command line arguments."""
    if args.self_test:
        return True

    for path in args.inputs:
        if not os.path.isfile(path):
            logger.error(f"Error: input file '{path}' does not exist.")
            return False

    if args.output and args.in_place:
        logger.error("Error: --output and --in-place cannot be used together.")
        return False

    if args.output and len(args.inputs) > 1:
        logger.error("Error: --output accepts a single input file.")
        return False

    if args.in_place and not args.inputs:
        logger.error("Error: --in-place needs at least one input file.")
        return False

    if args.check and (args.output or args.in_place):
        logger.warning("--check does not write output; ignoring --output/--in-place.")

    return True


def read_text(path: Optional[str]) -> str:
    if path is None:
        return sys.stdin.read()
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def write_text(path: Optional[str], text: str):
    if path is None:
        sys.stdout.write(text)
        return
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)


def check_text(name: str, text: str, normalizer: NotationNormalizer) -> bool:
    """Log a delimiter report for ``text``; True when it is clean and already normalized."""
    report = analyze_delimiters(text, normalizer)
    for issue in report.issues:
        logger.warning(f"{name}: {issue}")
    for suggestion in report.suggestions:
        logger.info(f"{name}: suggestion: {suggestion}")
    for warning in report.latex_warnings:
        logger.info(f"{name}: {warning}")

    up_to_date = normalizer.normalize_strict(text) == text
    if not up_to_date:
        logger.warning(f"{name}: math delimiters would be rewritten")
    logger.info(
        f"{name}: {report.currency_count} currency amount(s), {report.math_expressions} math expression(s), "
        f"{report.inline_count} inline and {report.display_count} display region(s) already delimited"
    )
    return report.is_valid and up_to_date


def process_inputs(args, normalizer: NotationNormalizer) -> bool:
    """Normalize or check every input; returns False if any check fails."""
    paths = args.inputs or [None]
    all_ok = True

    with tqdm(
        total=len(paths),
        desc="Normalizing" if not args.check else "Checking",
        unit="file",
        ncols=100,
        disable=len(paths) < 2
    ) as pbar:
        for path in paths:
            name = path or "<stdin>"
            pbar.set_postfix_str(os.path.basename(name))
            text = read_text(path)

            if args.check:
                all_ok = check_text(name, text, normalizer) and all_ok
            else:
                output = normalizer.normalize_strict(text)
                if args.in_place:
                    target = path
                elif args.output:
                    target = args.output
                else:
                    target = None
                if target is not None and target == path and output == text:
                    logger.info(f"{name}: already normalized")
                else:
                    write_text(target, output)
                    if target is not None:
                        logger.info(f"{name}: written to {target}")
            pbar.update(1)

    return all_ok


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the script."""
    args = parse_arguments(argv)
    configure_logging(args.debug, args.log_file)

    if not validate_arguments(args):
        return 1

    normalizer = NotationNormalizer(
        thresholds=LayoutThresholds.from_env(),
        unescape_dollars=args.unescape_dollars
    )

    try:
        if args.self_test:
            report = run_self_tests(normalizer)
            print(report.format())
            return 0 if report.passed else 1

        try:
            ok = process_inputs(args, normalizer)
        except NormalizationError as e:
            logger.error(f"Normalization error: {str(e)}")
            return 1
        except OSError as e:
            logger.error(f"File error: {str(e)}")
            return 1

        if args.check and not ok:
            logger.warning("Check failed: some inputs need attention.")
            return 1
        return 0

    except KeyboardInterrupt:
        logger.warning("\nNormalization interrupted by user.")
        return 130  # Standard exit code for Ctrl+C


if __name__ == "__main__":
    sys.exit(main())
