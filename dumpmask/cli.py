"""Command line entry point: masks e-mails and phones in a dump read from stdin."""

from __future__ import annotations

import argparse
import gc
import io
import os
import sys
from typing import Iterable, Iterator, Optional, Sequence, TextIO

from .config import (
    EMAIL_ALGORITHM,
    PHONE_ALGORITHM,
    ConfigError,
    MaskOptions,
    PathLike,
    Settings,
    load_config,
    validate_algorithms,
)
from .masking import Cache, Masker, load_cache, save_cache
from .tables import TableAnalyzer, process_dump_line


class LineProcessor:
    """Applies skipping and masking to the lines of a dump, one at a time."""

    def __init__(
        self,
        options: MaskOptions,
        settings: Settings,
        masker: Masker,
        analyzer: Optional[TableAnalyzer] = None,
    ) -> None:
        self.options = options
        self.settings = settings
        self.masker = masker
        self.analyzer = analyzer if analyzer is not None else TableAnalyzer()

    def _is_skipped(self, line: str) -> bool:
        return any(
            line.startswith(f"INSERT INTO `{table}`") for table in self.settings.skip_tables
        )

    def process(self, line: str) -> str:
        """Return the masked line, or an empty string if the line is dropped."""
        if self._is_skipped(line):
            return ""

        by_tables = self.settings.has_processing_tables
        if by_tables:
            self.analyzer.parse_line(line)

        if self.options.email_algorithm == EMAIL_ALGORITHM:
            if by_tables:
                line = process_dump_line(
                    line, self.options, self.masker, self.analyzer, self.settings
                )
            else:
                line = self.settings.email_regex.sub(
                    lambda m: self.masker.mask_email(m.group(0)), line
                )

        if self.options.phone_algorithm == PHONE_ALGORITHM:
            if by_tables:
                line = process_dump_line(
                    line, self.options, self.masker, self.analyzer, self.settings
                )
            else:
                line = self.settings.phone_regex.sub(
                    lambda m: self.masker.mask_phone(m.group(0)), line
                )

        return line


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dumpmask",
        description="Mask e-mail addresses and phone numbers in an SQL dump.",
        allow_abbrev=False,
    )
    parser.add_argument(
        "-mask-email",
        "--mask-email",
        dest="email_algorithm",
        default="",
        help="Email masking algorithm (light-hash)",
    )
    parser.add_argument(
        "-mask-phone",
        "--mask-phone",
        dest="phone_algorithm",
        default="",
        help="Phone masking algorithm (light-mask)",
    )
    parser.add_argument(
        "-no-cache",
        "--no-cache",
        dest="no_cache",
        action="store_true",
        help="Disable caching",
    )
    parser.add_argument(
        "-config",
        "--config",
        dest="config_file",
        default="",
        help="Path to config file",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> MaskOptions:
    """Parse command line arguments into MaskOptions."""
    args = _build_parser().parse_args(argv)
    return MaskOptions(
        email_algorithm=args.email_algorithm,
        phone_algorithm=args.phone_algorithm,
        cache_enabled=not args.no_cache,
        config_file=args.config_file,
    )


def _memory_usage() -> int:
    """Best estimate of the bytes the process currently holds."""
    try:
        with open("/proc/self/statm", encoding="ascii") as handle:
            resident_pages = int(handle.read().split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE")
    except (OSError, ValueError, IndexError, AttributeError):
        pass
    try:
        import resource
    except ImportError:
        return 0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return peak if sys.platform == "darwin" else peak * 1024


def _free_memory(cache: Optional[Cache], cache_path: PathLike) -> None:
    if cache is None:
        return
    if cache_path:
        try:
            save_cache(cache, cache_path)
        except (OSError, ValueError):
            pass
    cache.clear()
    gc.collect()


def _complete_lines(stream: Iterable[str]) -> Iterator[str]:
    """Yield newline-terminated lines; a final line without a newline is dropped."""
    for line in stream:
        if not line.endswith("\n"):
            return
        yield line


def run(options: MaskOptions, stdin: TextIO, stdout: TextIO) -> None:
    """Mask the dump read from ``stdin`` and write the result to ``stdout``.

    Raises ConfigError when the configuration cannot be loaded.
    """
    settings = load_config(options.config_file or None)
    config = settings.config

    cache: Optional[Cache] = None
    if options.cache_enabled:
        try:
            cache = load_cache(config.cache_path)
        except ValueError as exc:
            print(f"Cache load warning: {exc}", file=sys.stderr)
            cache = Cache()

    processor = LineProcessor(options, settings, Masker(settings, cache))
    memory_limit = config.memory_limit_mb * 1024 * 1024
    flush_every = config.cache_flush_count

    for count, line in enumerate(_complete_lines(stdin), start=1):
        masked = processor.process(line)
        if masked.strip():
            stdout.write(masked)
        if count % flush_every == 0 and _memory_usage() > memory_limit:
            _free_memory(cache, config.cache_path)

    if cache is not None:
        try:
            save_cache(cache, config.cache_path)
        except (OSError, ValueError) as exc:
            print(f"Cache save warning: {exc}", file=sys.stderr)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command; returns the process exit status."""
    options = parse_args(argv)
    try:
        validate_algorithms(options)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    stdin = io.TextIOWrapper(
        sys.stdin.buffer, encoding="utf-8", errors="surrogateescape", newline="\n"
    )
    stdout = io.TextIOWrapper(
        sys.stdout.buffer, encoding="utf-8", errors="surrogateescape", newline="\n"
    )
    try:
        run(options, stdin, stdout)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        stdout.flush()
        stdout.detach()
        stdin.detach()
    return 0