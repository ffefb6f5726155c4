"""Main countog pipeline interface."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator, Optional, TextIO

import numpy as np
from tqdm import tqdm

from .codec import ComplementTable
from .config import CountingConfig
from .counter import ScanningCounter
from .emitter import RowEmitter, format_header
from .loader import GenomeBuffer, load_genome_file

logger = logging.getLogger(__name__)


class Pipeline:
    """One counting run over a loaded genome.

    Owns the genome buffer, the complement table, the count table and the
    scan state, which persists from row to row.
    """

    def __init__(self, genome: GenomeBuffer, config: Optional[CountingConfig] = None):
        self.config = config or CountingConfig()
        self.genome = genome
        self.complements = ComplementTable(self.config.oligo)
        self.counter = ScanningCounter(genome, self.config.oligo, self.config.shift_size)
        self.emitter = RowEmitter(
            self.counter,
            counting_size=self.config.counting_size,
            merge=self.config.merge,
            label=self.config.label,
            complements=self.complements,
        )

    @classmethod
    def from_file(cls, path: str | Path, config: Optional[CountingConfig] = None) -> "Pipeline":
        """Load *path* (FASTA/FASTQ, optionally gzipped) and build a pipeline."""
        config = config or CountingConfig()
        genome = load_genome_file(
            path,
            max_genome_size=config.max_genome_size,
            min_quality=config.min_quality,
        )
        return cls(genome, config)

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def iter_rows(self, rows: Optional[int] = None, show_progress: bool = False) -> Iterator[np.ndarray]:
        """Yield *rows* normalized row vectors (default ``size_data``)."""
        if rows is None:
            rows = self.config.size_data
        iterator = range(rows)
        if show_progress:
            iterator = tqdm(iterator, desc="Counting oligos", file=sys.stderr)
        for _ in iterator:
            yield self.emitter.next_row()

    def feature_matrix(self, rows: Optional[int] = None) -> np.ndarray:
        """Stack rows into a ``(rows, columns)`` array.

        Warning: holds the whole output in memory. Use :meth:`run` otherwise.
        """
        out = np.zeros((self.config.size_data if rows is None else rows, self.config.num_columns))
        for i, row in enumerate(self.iter_rows(rows)):
            out[i] = row
        return out

    def run(self, out: TextIO, show_progress: bool = False) -> int:
        """Write the optional header and ``size_data`` rows to *out*."""
        if self.config.header:
            out.write(format_header(self.config.oligo, self.config.label) + "\n")
        written = 0
        iterator = range(self.config.size_data)
        if show_progress:
            iterator = tqdm(iterator, desc="Counting oligos", file=sys.stderr)
        for _ in iterator:
            self.emitter.emit_row(out)
            written += 1
        logger.info(f"Wrote {written} rows of {self.config.num_columns} columns")
        return written
