#!/usr/bin/env python3
"""
Consolidate a top-level LaTeX file into a single file ahead of a pandoc run.

Every line of the form `\\input{name}` (leading whitespace allowed) is replaced
by the raw contents of `name.tex`, resolved against the current directory.
Included files are spliced in as-is and not scanned again, so only one level
of `\\input` is expanded. Output is appended to, never truncated.
"""
import argparse
import errno
import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional

INPUT_RE = re.compile(rb"\s*\\input\{(.*)\}")

DEFAULT_INPUT = "gopherref.tex"
DEFAULT_OUTPUT = "gopherref_c.tex"


@dataclass(frozen=True)
class FlattenConfig:
    input_path: Path
    output_path: Path


class FlattenError(Exception):
    """A file could not be read or written while flattening."""

    def __init__(self, path: Path, cause: OSError, writing: bool = False):
        self.path = Path(path)
        self.cause = cause
        self.writing = writing
        super().__init__(f"{self.path}: {self.reason}")

    @property
    def reason(self) -> str:
        return self.cause.strerror or str(self.cause)

    def report(self) -> str:
        # [+] for the output side, [!] for everything read
        prefix = "[+]" if self.writing else "[!]"
        verb = "writing" if self.writing else "reading"
        return f"{prefix} unrecoverable error {verb} {self.path}: {self.reason}"


def strip_terminator(line: bytes) -> bytes:
    if line.endswith(b"\r\n"):
        return line[:-2]
    if line.endswith(b"\n"):
        return line[:-1]
    return line


def include_target(line: bytes) -> Optional[Path]:
    """Return the file an `\\input{...}` line refers to, or None."""
    m = INPUT_RE.fullmatch(strip_terminator(line))
    if not m:
        return None
    return Path(m.group(1).decode("utf-8", errors="surrogateescape") + ".tex")


def read_include(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise FlattenError(path, e)


def read_lines(f: BinaryIO, path: Path) -> Iterator[bytes]:
    # readline() keeps the terminator and has no length cap
    while True:
        try:
            line = f.readline()
        except OSError as e:
            raise FlattenError(path, e)
        if not line:
            return
        yield line


def append_chunk(out: BinaryIO, path: Path, chunk: bytes):
    # out is unbuffered; raw writes may be short
    view = memoryview(chunk)
    try:
        while view:
            n = out.write(view)
            view = view[n:]
    except OSError as e:
        raise FlattenError(path, e, writing=True)


def run(input_path, output_path) -> int:
    """Flatten `input_path` onto the end of `output_path`.

    Returns the number of `\\input` lines that were substituted. Raises
    FlattenError on the first unreadable file or failed write; chunks already
    appended stay in the output. Appending a file onto itself is refused.
    """
    src = Path(input_path)
    dst = Path(output_path)
    try:
        f = open(src, "rb")
    except OSError as e:
        raise FlattenError(src, e)
    includes = 0
    with f:
        if src.resolve() == dst.resolve():
            raise FlattenError(dst, OSError(errno.EINVAL, "output is the input file"), writing=True)
        try:
            out = open(dst, "ab", buffering=0)
        except OSError as e:
            raise FlattenError(dst, e, writing=True)
        with out:
            for line in read_lines(f, src):
                inc = include_target(line)
                if inc is None:
                    append_chunk(out, dst, line)
                    continue
                append_chunk(out, dst, read_include(inc))
                includes += 1
    return includes


def parse_args(argv=None) -> FlattenConfig:
    parser = argparse.ArgumentParser(
        prog="flatten-tex",
        description="Inline \\input{...} lines of a LaTeX file into a single file.",
    )
    parser.add_argument(
        "-i",
        dest="input",
        default=DEFAULT_INPUT,
        help=f"input file name (default: {DEFAULT_INPUT})",
    )
    parser.add_argument(
        "-o",
        dest="output",
        default=DEFAULT_OUTPUT,
        help=f"output file name (default: {DEFAULT_OUTPUT})",
    )
    args = parser.parse_args(argv)
    return FlattenConfig(input_path=Path(args.input), output_path=Path(args.output))


def main(argv=None) -> int:
    config = parse_args(argv)
    try:
        includes = run(config.input_path, config.output_path)
    except FlattenError as e:
        print(e.report())
        return 1
    print(f"Flattened {config.input_path} -> {config.output_path} ({includes} inputs inlined)")
    return 0


if __name__ == '__main__':
    sys.exit(main())
