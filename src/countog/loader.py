"""Sequence loading.

Reads a FASTA or FASTQ stream into a single nucleotide buffer. Records are
separated by an ``n`` so that no k-mer window spans two records.

Usage
-----
>>> import io
>>> from countog.loader import load_genome
>>> load_genome(io.StringIO(">seq1\\nTCAG\\n")).sequence
'ntcag'
"""
from __future__ import annotations

import gzip
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, TextIO

from .config import DEFAULT_GENOME_SIZE
from .errors import ArgumentError, InputFormatError, ResourceExhaustedError

logger = logging.getLogger(__name__)

SEPARATOR = "n"
QUALITY_OFFSET = 33  # Phred+33
DEFAULT_MIN_QUALITY = 16

_CASE_MAP = str.maketrans("TCAG", "tcag")


@dataclass(frozen=True)
class GenomeBuffer:
    """Normalized nucleotide buffer built once per run."""

    data: bytes
    valid_base_count: int  # bases that may be counted
    total_base_count: int  # also separators and quality-filtered bases
    fmt: str = "fasta"
    records: int = 0
    truncated: bool = False

    def __len__(self) -> int:
        return len(self.data)

    @property
    def sequence(self) -> str:
        return self.data.decode("ascii", errors="replace")


class _Builder:
    """Accumulates buffer contents and the two tallies."""

    def __init__(self, max_genome_size: int):
        # One slot stays reserved for the logical end of buffer.
        self.capacity = max_genome_size - 1
        self.parts: list[str] = []
        self.valid = 0
        self.total = 0
        self.records = 0
        self.truncated = False

    def fits(self, size: int) -> bool:
        if self.total + size > self.capacity:
            self.truncated = True
            return False
        return True

    def append(self, symbols: str, valid: int):
        self.parts.append(symbols)
        self.total += len(symbols)
        self.valid += valid

    def build(self, fmt: str) -> GenomeBuffer:
        try:
            data = _pack(self.parts)
        except MemoryError as exc:
            raise ResourceExhaustedError(f"cannot allocate a buffer of {self.total} bases") from exc
        return GenomeBuffer(
            data=data,
            valid_base_count=self.valid,
            total_base_count=self.total,
            fmt=fmt,
            records=self.records,
            truncated=self.truncated,
        )


def _pack(parts: list[str]) -> bytes:
    return "".join(parts).encode("ascii", errors="replace")


def _normalize(line: str) -> str:
    """Lower-case T/C/A/G, keep other letters, drop everything else."""
    return "".join(c for c in line if c.isalpha()).translate(_CASE_MAP)


def _non_empty(lines: Iterator[str]) -> Iterator[str]:
    for line in lines:
        if line.strip():
            yield line


def _load_fasta(first: str, lines: Iterator[str], builder: _Builder):
    line = first
    while True:
        if line.startswith(">"):
            if not builder.fits(1):
                return
            builder.append(SEPARATOR, 0)
            builder.records += 1
        else:
            # The raw line length bounds the growth, as in a fixed-size read.
            if not builder.fits(len(line)):
                return
            symbols = _normalize(line)
            builder.append(symbols, len(symbols))
        line = next(lines, None)
        if line is None:
            return


def _load_fastq(first: str, lines: Iterator[str], builder: _Builder, min_quality: int):
    header = first
    while header is not None:
        if not header.startswith("@"):
            raise InputFormatError(f"FASTQ record {builder.records + 1} does not start with '@'")
        seq = next(lines, None)
        plus = next(lines, None)
        if seq is not None and (plus is None or not plus.startswith("+")):
            raise InputFormatError(f"FASTQ record {builder.records + 1} is missing its '+' separator line")
        qual = next(lines, None)
        if seq is None or qual is None:
            raise InputFormatError(f"FASTQ record {builder.records + 1} is truncated")
        seq = seq.rstrip("\r\n")
        qual = qual.rstrip("\r\n")
        if len(seq) != len(qual):
            raise InputFormatError(
                f"FASTQ record {builder.records + 1}: sequence has {len(seq)} bases "
                f"but quality has {len(qual)}"
            )
        if not builder.fits(1 + len(seq)):
            return
        symbols = []
        passed = 0
        for base, q in zip(seq, qual):
            if ord(q) - QUALITY_OFFSET < min_quality:
                symbols.append(SEPARATOR)
            else:
                symbols.append(base)
                passed += 1
        builder.append(SEPARATOR + "".join(symbols).translate(_CASE_MAP), passed)
        builder.records += 1
        header = next(_non_empty(lines), None)


def load_genome(
    handle: TextIO,
    max_genome_size: int = DEFAULT_GENOME_SIZE,
    min_quality: int = DEFAULT_MIN_QUALITY,
) -> GenomeBuffer:
    """Build a :class:`GenomeBuffer` from an open FASTA or FASTQ text stream.

    Parameters
    ----------
    handle
        Text stream; the format is chosen from its first non-empty line.
    max_genome_size
        Hard cap on the buffer. Loading stops quietly once the next line
        would not fit; what was read so far is kept.
    min_quality
        FASTQ bases below this Phred score are replaced by ``n``.
    """
    lines = iter(handle)
    first = next(_non_empty(lines), None)
    if first is None:
        raise InputFormatError("input is empty")

    builder = _Builder(max_genome_size)
    if first.startswith(">"):
        fmt = "fasta"
        _load_fasta(first, lines, builder)
    elif first.startswith("@"):
        fmt = "fastq"
        _load_fastq(first, lines, builder, min_quality)
    else:
        raise InputFormatError("neither FASTA nor FASTQ")

    genome = builder.build(fmt)
    logger.info(
        f"Loaded {fmt.upper()}: {genome.records} records, {len(genome)} symbols, "
        f"{genome.valid_base_count} valid bases"
    )
    if genome.truncated:
        logger.warning(f"Input truncated at maximum genome size {max_genome_size}")
    return genome


def open_sequence_file(path: str | Path) -> TextIO:
    """Open a FASTA/FASTQ file for reading, decompressing ``*.gz``."""
    path = Path(path)
    if not path.is_file():
        raise ArgumentError(f"cannot read input file: {path}")
    if path.suffix == ".gz":
        return gzip.open(path, "rt")
    return open(path, "r")


def load_genome_file(path: str | Path, **kwargs) -> GenomeBuffer:
    """Load a genome buffer from a file on disk; see :func:`load_genome`."""
    try:
        with open_sequence_file(path) as fh:
            return load_genome(fh, **kwargs)
    except UnicodeDecodeError as exc:
        raise InputFormatError(f"{path} is not a text sequence file") from exc
    except OSError as exc:
        raise ArgumentError(f"cannot read input file: {path} ({exc})") from exc
