"""Sliding-window k-mer counting over a genome buffer.

The scan keeps its cursor between rows, so consecutive rows sample
consecutive stretches of the genome. When a window runs off the end of the
buffer the cursor jumps to the next multiple of the shift size, and once the
shift grid covers the genome it starts again from the beginning.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from .codec import boundary_start, first_window, window_bins
from .errors import InsufficientDataError, ResourceExhaustedError
from .loader import GenomeBuffer

logger = logging.getLogger(__name__)


@dataclass
class ScanState:
    """Scan position carried from one row to the next."""

    cursor: int = 0
    round_counter: int = 1


class ScanningCounter:
    """Counts overlapping k-mer windows starting from a persistent cursor."""

    def __init__(self, genome: GenomeBuffer, k: int, shift_size: int, chunk_size: int = 1 << 16):
        self.genome = genome
        self.k = k
        if genome.valid_base_count < shift_size:
            logger.info(
                f"Genome has {genome.valid_base_count} valid bases, less than shift "
                f"size {shift_size}; using a shift of 1"
            )
            shift_size = 1
        self.shift_size = shift_size
        self.chunk_size = chunk_size

        try:
            self.boundary = boundary_start(genome.data, k)
            # Offset 0 is only scanned on the very first attempt.
            found = first_window(genome.data, k, start=1)
        except MemoryError as exc:
            raise ResourceExhaustedError(f"cannot index a genome of {len(genome)} symbols") from exc
        if found < 0:
            raise InsufficientDataError(f"no complete {k}-mer window in the input")
        self.state = ScanState()

    def _chunk_bins(self, start: int, stop: int) -> np.ndarray:
        """Window bins for offsets ``start`` to ``stop - 1``."""
        try:
            return window_bins(self.genome.data[start : stop + self.k - 1], self.k)[: stop - start]
        except MemoryError as exc:
            raise ResourceExhaustedError(f"cannot allocate a scan chunk of {stop - start} windows") from exc

    def _relocate(self):
        state = self.state
        target = self.shift_size * state.round_counter
        state.round_counter += 1
        if target >= len(self.genome):
            target = 0
            state.round_counter = 0
        logger.debug(f"Buffer end reached at {state.cursor}; relocating to {target}")
        state.cursor = target

    def _check_wraparound(self):
        if self.genome.valid_base_count >= self.shift_size * (self.state.round_counter + 1):
            self.state.round_counter = 0

    def advance_and_count(self, counts: np.ndarray, target: int) -> int:
        """Add *target* complete windows to *counts* and return the number added.

        Windows broken by an invalid symbol are skipped one offset at a time.
        Runs of offsets before the buffer end are handled a chunk at a time.
        """
        state = self.state
        done = 0
        while done < target:
            if state.cursor >= self.boundary:
                self._relocate()
            else:
                need = target - done
                stop = min(self.boundary, state.cursor + self.chunk_size)
                window = self._chunk_bins(state.cursor, stop)
                hits = np.flatnonzero(window >= 0)
                if hits.size >= need:
                    hits = hits[:need]
                    stop = state.cursor + int(hits[-1]) + 1
                if hits.size:
                    np.add.at(counts, window[hits], 1)
                    done += hits.size
                # The increment below moves past the last attempted offset.
                state.cursor = stop - 1
            self._check_wraparound()
            state.cursor += 1
        return done
