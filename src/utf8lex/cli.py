"""Command-line interface for utf8lex."""

from __future__ import annotations

import argparse
import io
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from utf8lex.errors import ErrorKind, Utf8LexError


@dataclass(frozen=True, slots=True)
class CliOptions:
    """Generator options after merging utf8lex.toml with the command line."""

    input_file: Path
    output_file: Path | None
    head_file: Path | None
    tail_file: Path | None
    tracing: bool


def build_parser() -> argparse.ArgumentParser:
    """Return the utf8lex argument parser."""
    p = argparse.ArgumentParser(
        prog="utf8lex",
        description="Generate a UTF-8 lexer module from a lexicon (.l) file",
    )
    p.add_argument("input", help="Input lexicon file")
    p.add_argument("-o", "--output", help="Output Python module (default: stdout)")
    p.add_argument("--head", metavar="FILE", help="Prologue template (default: built in)")
    p.add_argument("--tail", metavar="FILE", help="Epilogue template (default: built in)")
    p.add_argument(
        "--config",
        metavar="FILE",
        help="Config file (default: auto-discover utf8lex.toml)",
    )
    p.add_argument(
        "--tracing",
        action="store_true",
        default=None,
        help="Dump the compiled rules and trace lexing to stderr",
    )
    return p


def load_config(config_path: Path | None, input_dir: Path) -> dict[str, Any]:
    """Read *config_path*, or utf8lex.toml in *input_dir*; {} when there is none."""
    path = config_path if config_path is not None else input_dir / "utf8lex.toml"

    if not path.is_file():
        return {}

    with open(path, "rb") as f:
        return tomllib.load(f)


def resolve_options(args: argparse.Namespace) -> CliOptions:
    """Merge config file and CLI args into CliOptions.

    Precedence: config file < CLI flags.  Relative paths in the config
    file are taken relative to the config file's directory.
    """
    input_file = Path(args.input)
    input_dir = input_file.parent
    if not input_dir.parts:
        input_dir = Path(".")

    config_path = Path(args.config) if args.config else None
    config = load_config(config_path, input_dir)
    config_dir = config_path.parent if config_path is not None else input_dir

    def config_file(value: object) -> Path | None:
        if isinstance(value, str) and value:
            return config_dir / value
        return None

    # Tracing: config < CLI
    tracing = bool(config.get("tracing", False))
    if args.tracing is not None:
        tracing = args.tracing

    # Output: config < CLI
    output_file = config_file(config.get("output"))
    if args.output:
        output_file = Path(args.output)

    # Templates: config < CLI
    head_file = tail_file = None
    cfg_template = config.get("template")
    if isinstance(cfg_template, dict):
        head_file = config_file(cfg_template.get("head"))
        tail_file = config_file(cfg_template.get("tail"))
    if args.head:
        head_file = Path(args.head)
    if args.tail:
        tail_file = Path(args.tail)

    return CliOptions(
        input_file=input_file,
        output_file=output_file,
        head_file=head_file,
        tail_file=tail_file,
        tracing=tracing,
    )


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise Utf8LexError(ErrorKind.FILE_OPEN, f"cannot open {path}") from exc
    except UnicodeDecodeError as exc:
        raise Utf8LexError(ErrorKind.BAD_UTF8, f"{path} is not valid UTF-8") from exc
    except OSError as exc:
        raise Utf8LexError(ErrorKind.FILE_READ, f"cannot read {path}: {exc}") from exc


def generate_file(options: CliOptions) -> str:
    """Read and compile the lexicon, returning the generated module's source."""
    from utf8lex.debug import dump_database
    from utf8lex.emit import emit
    from utf8lex.grammar_parser import parse_lexicon
    from utf8lex.state import Settings
    from utf8lex.templates import DEFAULT_HEAD, DEFAULT_TAIL

    settings = Settings(
        tracing=options.tracing,
        input_path=options.input_file,
        output_path=options.output_file,
    )
    source = _read_text(options.input_file)
    head = _read_text(options.head_file) if options.head_file else DEFAULT_HEAD
    tail = _read_text(options.tail_file) if options.tail_file else DEFAULT_TAIL

    lexicon = parse_lexicon(source, settings)
    if options.tracing:
        dump_database(lexicon.database, file=sys.stderr)

    out = io.StringIO()
    emit(lexicon, out, head=head, tail=tail)
    return out.getvalue()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point. Returns the exit code (0, or the error kind). Does not call sys.exit()."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        options = resolve_options(args)
    except tomllib.TOMLDecodeError as exc:
        print(f"error: bad config file: {exc}", file=sys.stderr)
        return int(ErrorKind.FILE_READ)

    try:
        code = generate_file(options)
    except Utf8LexError as exc:
        print(exc.format(str(options.input_file)), file=sys.stderr)
        return int(exc.kind)

    if options.output_file:
        try:
            options.output_file.write_text(code, encoding="utf-8")
        except OSError as exc:
            print(f"error: cannot write {options.output_file}: {exc}", file=sys.stderr)
            return int(ErrorKind.FILE_WRITE)
    else:
        sys.stdout.write(code)

    return 0
