"""Turning k-mer counts into normalized output rows."""
from __future__ import annotations

from typing import Optional, Sequence, TextIO

import numpy as np

from .codec import ComplementTable, kmer_names
from .counter import ScanningCounter

HEADER_LABEL = "DATA"


def normalize(values: np.ndarray) -> np.ndarray:
    """Scale *values* so the largest is 1; an all-zero row stays zero."""
    values = np.asarray(values, dtype=np.float64)
    peak = values.max() if values.size else 0.0
    if peak <= 0:
        return np.zeros_like(values)
    return values / peak


def merge_complementary(counts: np.ndarray, table: ComplementTable) -> np.ndarray:
    """Sum each bin with its reverse complement, one value per pair.

    Pairs come in first-encountered bin order. A self-complementary bin
    contributes its own count once.
    """
    first, second = table.pair_arrays()
    return counts[first] + np.where(first == second, 0, counts[second])


def format_row(values: Sequence[float], label: Optional[str] = None) -> str:
    """Tab-separated values with four decimals, optionally after *label*."""
    cells = [f"{v:.4f}" for v in values]
    if label is not None:
        cells.insert(0, label)
    return "\t".join(cells)


def format_header(k: int, label: Optional[str] = None) -> str:
    """Names of all ``4**k`` bins in index order."""
    names = kmer_names(k)
    if label is not None:
        names.insert(0, HEADER_LABEL)
    return "\t".join(names)


class RowEmitter:
    """Produces one normalized row per call from a :class:`ScanningCounter`."""

    def __init__(
        self,
        counter: ScanningCounter,
        counting_size: int,
        merge: bool = False,
        label: Optional[str] = None,
        complements: Optional[ComplementTable] = None,
    ):
        self.counter = counter
        self.counting_size = counting_size
        self.merge = merge
        self.label = label
        self.complements = complements if complements is not None else ComplementTable(counter.k)
        self.counts = np.zeros(4 ** counter.k, dtype=np.int64)

    def next_counts(self) -> np.ndarray:
        """Zero the count table and fill it for one row."""
        self.counts[:] = 0
        self.counter.advance_and_count(self.counts, self.counting_size)
        if self.merge:
            return merge_complementary(self.counts, self.complements)
        return self.counts

    def next_row(self) -> np.ndarray:
        return normalize(self.next_counts())

    def emit_row(self, out: TextIO) -> np.ndarray:
        row = self.next_row()
        out.write(format_row(row, self.label) + "\n")
        return row
