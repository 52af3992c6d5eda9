# src/pathclip/cli.py
import sys
import argparse
import logging
import os
import re
from typing import List, Optional

import pyperclip

# Module imports
from pathclip.config import DEFAULT_FILE_TEMPLATE, DEFAULT_SIZE_LIMIT, DEFAULT_TREE_TEMPLATE, Configuration, Mode, StructureFormat
from pathclip.core.composer import ClipSession, render_output
from pathclip.errors import InvalidConfigurationError
from pathclip.models import FileRecord, SkipEvent, SkipReason
from pathclip.utils.tokenizer import TokenCounter

__version__ = "0.1.0"

_SIZE_MULTIPLIERS = {"": 1, "K": 1024, "M": 1024 ** 2, "G": 1024 ** 3}


def parse_size(value: str) -> int:
    """Parses '3145728', '512K', '3M' or '1G' into bytes."""
    match = re.fullmatch(r"\s*(\d+)\s*([KMG]?)B?\s*", value, re.IGNORECASE)
    if not match:
        raise argparse.ArgumentTypeError(f"Invalid size '{value}'")
    return int(match.group(1)) * _SIZE_MULTIPLIERS[match.group(2).upper()]


def unescape_template(value: str) -> str:
    """Templates typed on a shell arrive with literal backslash escapes."""
    return value.replace("\\n", "\n").replace("\\t", "\t").replace("\\r", "\r")


def create_arg_parser():
    parser = argparse.ArgumentParser(
        prog="pathclip",
        description="Aggregate the content and/or layout of selected files and folders into one prompt-ready text block."
    )
    parser.add_argument("paths", nargs="+", help="Files or directories to include")

    parser.add_argument(
        "--mode",
        choices=[m.value for m in Mode],
        default=Mode.FULL.value,
        help="content: file blocks only, tree: structure only, full: both (default)"
    )
    parser.add_argument("--tree-only", action="store_true", help="Shortcut for --mode tree")
    parser.add_argument(
        "--structure",
        choices=[s.value for s in StructureFormat],
        default=StructureFormat.REPO_ROOT.value,
        help="Path form used to draw the tree (default: repo)"
    )
    parser.add_argument("--exclude", action="append", default=[], metavar="PATTERN", help="Gitignore-style pattern to exclude (repeatable)")
    parser.add_argument("--include", action="append", default=[], metavar="PATTERN", help="Pattern that is always kept, overriding ignore rules (repeatable)")
    parser.add_argument("--no-gitignore", action="store_true", help="Do not respect .gitignore rules")
    parser.add_argument("--max-size", type=parse_size, default=DEFAULT_SIZE_LIMIT, metavar="SIZE", help="Skip files larger than SIZE (bytes, or with K/M/G suffix; default 3M)")
    parser.add_argument("--file-template", default=DEFAULT_FILE_TEMPLATE, help="Per-file template: {{fileName}}, {{relativePath}}, {{repoPath}}, {{absolutePath}}, {{language}}, {{content}}")
    parser.add_argument("--tree-template", default=DEFAULT_TREE_TEMPLATE, help="Tree template: {{tree}}")
    parser.add_argument("--base", default=None, help="Directory that relative paths are computed from")

    output = parser.add_mutually_exclusive_group()
    output.add_argument("--print", action="store_true", dest="print_mode", help="Print to stdout instead of copying to the clipboard")
    output.add_argument("-o", "--output", type=str, default=None, help="Write to a file instead of copying to the clipboard")

    parser.add_argument("-v", "--verbose", action="store_true", help="Report every skipped path")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_configuration(args) -> Configuration:
    return Configuration(
        size_limit_bytes=args.max_size,
        exclude_patterns=tuple(args.exclude),
        include_patterns=tuple(args.include),
        respect_ignore_file=not args.no_gitignore,
        file_template=unescape_template(args.file_template),
        tree_template=unescape_template(args.tree_template),
        structure_format=args.structure,
        mode=Mode.TREE_ONLY.value if args.tree_only else args.mode,
    ).validate()


def print_summary(records: List[FileRecord], counter: TokenCounter) -> None:
    print("\n--- Top 10 Largest Files (Est. Tokens) ---", file=sys.stderr)
    print(f"{'Rank':<5} | {'Tokens':<10} | {'File Path'}", file=sys.stderr)
    print("-" * 60, file=sys.stderr)
    ranked = counter.rank(records)
    for i, (record, tokens) in enumerate(ranked[:10]):
        print(f"{i+1:<5} | {tokens:<10} | {record.selection_relative_path}", file=sys.stderr)
    print("-" * 60, file=sys.stderr)
    print(f"Total files: {len(records)}", file=sys.stderr)
    print(f"Total tokens: {sum(tokens for _, tokens in ranked)}", file=sys.stderr)
    print("-" * 60, file=sys.stderr)


def deliver(output: str, args) -> None:
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(output)
            print(f"\nSuccess! Context written to: {args.output}", file=sys.stderr)
        except IOError as e:
            print(f"Error writing file: {e}", file=sys.stderr)
            sys.exit(1)
        return

    if args.print_mode:
        sys.stdout.write(output)
        return

    try:
        pyperclip.copy(output)
        print(f"\nSuccess! {len(output):,} chars copied to clipboard.", file=sys.stderr)
    except pyperclip.PyperclipException as e:
        print(f"Clipboard unavailable ({e}), printing to stdout instead.", file=sys.stderr)
        sys.stdout.write(output)


def main(argv: Optional[List[str]] = None):
    try:
        # 1. Setup
        parser = create_arg_parser()
        args = parser.parse_args(argv)

        logging.basicConfig(
            level=logging.INFO if args.verbose else logging.WARNING,
            format="%(levelname)s: %(message)s",
            stream=sys.stderr,
        )

        try:
            config = build_configuration(args)
        except InvalidConfigurationError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

        print("--- pathclip ---", file=sys.stderr)
        print(f"Mode:      {config.mode.value}", file=sys.stderr)
        print(f"Structure: {config.structure_format.value}", file=sys.stderr)

        # 2. Collect
        def on_skip(event: SkipEvent):
            if event.reason is SkipReason.PATH_NOT_FOUND:
                print(f"Error: Path not found: {event.path}", file=sys.stderr)
            elif args.verbose:
                print(f"[Skipped] {os.path.relpath(event.path)} ({event.reason.value})", file=sys.stderr)

        session = ClipSession()
        records = session.collect(args.paths, config, on_skip=on_skip, base=args.base)

        if not records:
            print("No matching files found.", file=sys.stderr)
            return

        # 3. Output
        output = render_output(records, config)
        if config.mode.includes_content:
            print_summary(records, TokenCounter())
        else:
            print(f"Total paths: {len(records)}", file=sys.stderr)

        deliver(output, args)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)

    except Exception as e:
        print(f"An unexpected error occurred: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
