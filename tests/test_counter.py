import io

import numpy as np
import pytest

from countog.codec import encode_kmer, encode_window
from countog.counter import ScanningCounter
from countog import counter as counter_module
from countog.errors import InsufficientDataError, ResourceExhaustedError
from countog.loader import GenomeBuffer, load_genome


def _genome(data: bytes, valid=None) -> GenomeBuffer:
    if valid is None:
        valid = sum(c in b"tcag" for c in data)
    return GenomeBuffer(data=data, valid_base_count=valid, total_base_count=len(data))


def _reference_rows(genome, k, shift, target, rows):
    """Scan one window attempt at a time."""
    if genome.valid_base_count < shift:
        shift = 1
    cursor, round_counter = 0, 1
    out = []
    for _ in range(rows):
        counts = np.zeros(4 ** k, dtype=np.int64)
        done = 0
        while done < target:
            window = encode_window(genome.data, cursor, k)
            if window is None:
                cursor = shift * round_counter
                round_counter += 1
                if cursor >= len(genome):
                    cursor, round_counter = 0, 0
            elif window.complete:
                counts[window.index] += 1
                done += 1
            if genome.valid_base_count >= shift * (round_counter + 1):
                round_counter = 0
            cursor += 1
        out.append(counts)
    return out


def test_counts_sum_to_target_on_clean_buffer():
    counter = ScanningCounter(_genome(b"tcagtcagtt"), k=2, shift_size=4)
    counts = np.zeros(16, dtype=np.int64)
    assert counter.advance_and_count(counts, 5) == 5
    assert counts.sum() == 5
    assert counter.state.cursor == 5


def test_end_to_end_windows():
    genome = load_genome(io.StringIO(">seq1\nTCAG\n"))
    counter = ScanningCounter(genome, k=2, shift_size=20000)
    assert counter.shift_size == 1
    for _ in range(3):
        counts = np.zeros(16, dtype=np.int64)
        counter.advance_and_count(counts, 3)
        assert np.flatnonzero(counts).tolist() == sorted(encode_kmer(s) for s in ("TC", "CA", "AG"))
        assert counter.state.cursor == 4


def test_relocation_follows_shift_grid():
    # 15 valid bases with a shift of 10: the grid is not yet exhausted
    genome = _genome(b"t" * 10 + b"c" * 5)
    counter = ScanningCounter(genome, k=1, shift_size=10)
    counts = np.zeros(4, dtype=np.int64)
    counter.advance_and_count(counts, 15)
    assert counts.tolist() == [10, 5, 0, 0]
    assert counter.state.round_counter == 1

    counts[:] = 0
    counter.advance_and_count(counts, 5)
    # offsets 11-14 after the jump to 10, then wrap to offset 1
    assert counts.tolist() == [1, 4, 0, 0]
    assert counter.state.cursor == 2
    assert counter.state.round_counter == 0


def test_scan_state_persists_across_calls():
    genome = _genome(b"tcagtcagtcag")
    counter = ScanningCounter(genome, k=3, shift_size=1)
    counts = np.zeros(64, dtype=np.int64)
    counter.advance_and_count(counts, 4)
    assert counter.state.cursor == 4
    counter.advance_and_count(counts, 2)
    assert counter.state.cursor == 6


def test_shift_forced_to_one_for_short_genome():
    counter = ScanningCounter(_genome(b"ntcagn"), k=2, shift_size=100)
    assert counter.shift_size == 1
    counts = np.zeros(16, dtype=np.int64)
    # many more windows than the genome holds; must not run away
    assert counter.advance_and_count(counts, 300) == 300
    assert counts.sum() == 300
    assert 0 <= counter.state.cursor <= len(counter.genome)


@pytest.mark.parametrize("data", [b"nnnn", b"tc", b"", b"tcnnn"])
def test_no_countable_window(data):
    with pytest.raises(InsufficientDataError):
        ScanningCounter(_genome(data), k=3, shift_size=1)


@pytest.mark.parametrize(
    "data,k,shift,target",
    [
        (b"ntcagnnacgtacgttgcanatgcatgc", 3, 5, 7),
        (b"ntcagnnacgtacgttgcanatgcatgc", 2, 10, 11),
        (b"nacgtRRtgcannnnggatcctgaNNtt", 4, 3, 5),
        (b"ttttttttttccccccccccaaaaagggggtcn", 2, 12, 9),
    ],
)
def test_matches_one_attempt_at_a_time_scan(data, k, shift, target):
    genome = _genome(data)
    expected = _reference_rows(genome, k, shift, target, rows=8)
    counter = ScanningCounter(genome, k=k, shift_size=shift, chunk_size=3)
    for row in expected:
        counts = np.zeros(4 ** k, dtype=np.int64)
        counter.advance_and_count(counts, target)
        assert counts.tolist() == row.tolist()


def test_scan_indexes_one_chunk_at_a_time(monkeypatch):
    sizes = []
    real = counter_module.window_bins

    def recording(data, k):
        sizes.append(len(data))
        return real(data, k)

    genome = _genome(b"ntcagnnacgtacgttgcanatgcatgc" * 200)
    counter = ScanningCounter(genome, k=3, shift_size=50, chunk_size=64)
    monkeypatch.setattr(counter_module, "window_bins", recording)
    counts = np.zeros(64, dtype=np.int64)
    counter.advance_and_count(counts, 3000)
    assert counts.sum() == 3000
    assert sizes and max(sizes) <= 64 + 3 - 1
    assert not any(isinstance(v, np.ndarray) and v.size >= len(genome) for v in vars(counter).values())


def test_index_allocation_failure_at_setup(monkeypatch):
    def fail(data, k):
        raise MemoryError

    monkeypatch.setattr(counter_module, "boundary_start", fail)
    with pytest.raises(ResourceExhaustedError) as excinfo:
        ScanningCounter(_genome(b"ntcagtcag"), k=2, shift_size=1)
    assert excinfo.value.code == 3


def test_index_allocation_failure_while_scanning(monkeypatch):
    counter = ScanningCounter(_genome(b"ntcagtcag"), k=2, shift_size=1)

    def fail(data, k):
        raise MemoryError

    monkeypatch.setattr(counter_module, "window_bins", fail)
    with pytest.raises(ResourceExhaustedError):
        counter.advance_and_count(np.zeros(16, dtype=np.int64), 2)
