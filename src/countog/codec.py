"""K-mer codec.

A k-mer window maps to a bin index in ``[0, 4**k)`` by positional base-4
digits, the first base of the window being the least significant digit::

    t=0, c=1, a=2, g=3

Usage
-----
>>> from countog.codec import encode_kmer, decode, reverse_complement
>>> encode_kmer("TC")
4
>>> decode(4, 2)
'TC'
>>> decode(reverse_complement(encode_kmer("TC"), 2), 2)
'GA'
"""
from __future__ import annotations

from typing import Dict, Iterator, NamedTuple, Optional, Tuple

import numpy as np

from .errors import EncodingInvariantError

NUCLEOTIDES = 4
BASES = "TCAG"  # digit value -> upper-case base name
COMPLEMENT_DIGIT = (2, 3, 0, 1)  # t<->a, c<->g

_DIGIT_BY_BYTE: Dict[int, int] = {ord(base): digit for digit, base in enumerate(BASES.lower())}

_INVALID = 255
_DIGIT_LUT = np.full(256, _INVALID, dtype=np.uint8)
for _byte, _digit in _DIGIT_BY_BYTE.items():
    _DIGIT_LUT[_byte] = _digit


class Window(NamedTuple):
    """Result of reading one k-mer window.

    ``consumed`` is the number of valid bases read. ``index`` is only set
    when the window is complete.
    """

    consumed: int
    index: Optional[int]

    @property
    def complete(self) -> bool:
        return self.index is not None


def encode_window(buffer: bytes, offset: int, k: int) -> Optional[Window]:
    """Encode the *k* symbols of *buffer* starting at *offset*.

    Returns ``None`` when the end of the buffer comes before *k* symbols were
    read. A symbol outside ``tcag`` stops the read early and the returned
    window holds only the count of valid symbols before it.
    """
    index = 0
    for i in range(k):
        pos = offset + i
        if pos >= len(buffer):
            return None
        digit = _DIGIT_BY_BYTE.get(buffer[pos])
        if digit is None:
            return Window(i, None)
        index += digit * NUCLEOTIDES ** i
    return Window(k, index)


def encode_kmer(kmer: str) -> int:
    """Bin index of a whole k-mer string (case-insensitive)."""
    window = encode_window(kmer.lower().encode("ascii"), 0, len(kmer))
    if window is None or not window.complete:
        raise ValueError(f"Not a TCAG k-mer: {kmer!r}")
    return window.index


def _digits(index: int, k: int) -> list[int]:
    if not 0 <= index < NUCLEOTIDES ** k:
        raise EncodingInvariantError(f"bin {index} out of range for k={k}")
    digits = []
    for _ in range(k):
        index, digit = divmod(index, NUCLEOTIDES)
        digits.append(digit)
    return digits


def decode(index: int, k: int) -> str:
    """Upper-case k-mer named by bin *index*."""
    names = []
    for digit in _digits(index, k):
        if not 0 <= digit < NUCLEOTIDES:
            raise EncodingInvariantError(f"nucleotide {digit}")
        names.append(BASES[digit])
    return "".join(names)


def reverse_complement(index: int, k: int) -> int:
    """Bin index of the reverse complement of bin *index*."""
    rev = 0
    for i, digit in enumerate(reversed(_digits(index, k))):
        if not 0 <= digit < NUCLEOTIDES:
            raise EncodingInvariantError(f"nucleotide {digit}")
        rev += COMPLEMENT_DIGIT[digit] * NUCLEOTIDES ** i
    return rev


def kmer_names(k: int) -> list[str]:
    """Names of all ``4**k`` bins in index order."""
    return [decode(i, k) for i in range(NUCLEOTIDES ** k)]


class ComplementTable:
    """Lazily built map from a bin to its reverse-complement bin.

    Each entry is computed at most once and never overwritten.
    """

    def __init__(self, k: int):
        self.k = k
        self.size = NUCLEOTIDES ** k
        self._table: Dict[int, int] = {}
        self._pairs: Optional[Tuple[np.ndarray, np.ndarray]] = None

    def __getitem__(self, index: int) -> int:
        try:
            return self._table[index]
        except KeyError:
            rev = reverse_complement(index, self.k)
            self._table[index] = rev
            self._table.setdefault(rev, index)
            return rev

    def __contains__(self, index: int) -> bool:
        return index in self._table

    def __len__(self) -> int:
        return len(self._table)

    def pairs(self) -> Iterator[Tuple[int, int]]:
        """Yield ``(bin, complement)`` once per pair, in first-encountered order.

        A self-complementary bin is yielded as ``(bin, bin)``.
        """
        consumed = set()
        for index in range(self.size):
            if index in consumed:
                continue
            rev = self[index]
            consumed.add(index)
            consumed.add(rev)
            yield index, rev

    def pair_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """``pairs()`` as two aligned index arrays, cached for the run."""
        if self._pairs is None:
            first, second = zip(*self.pairs())
            self._pairs = (np.array(first, dtype=np.int64), np.array(second, dtype=np.int64))
        return self._pairs


def window_bins(data: bytes, k: int) -> np.ndarray:
    """Bin index of the window starting at every offset of *data*.

    Offsets whose window is not complete (an invalid symbol inside, or the
    buffer ends first) hold ``-1``. Called on slices of the genome so only
    one chunk of indices is alive at a time.
    """
    n = len(data)
    bins = np.full(n, -1, dtype=np.int64)
    if n < k:
        return bins
    digits = _DIGIT_LUT[np.frombuffer(data, dtype=np.uint8)]
    valid = digits != _INVALID
    m = n - k + 1
    index = np.zeros(m, dtype=np.int64)
    ok = np.ones(m, dtype=bool)
    for i in range(k):
        index += digits[i : i + m].astype(np.int64) << (2 * i)
        ok &= valid[i : i + m]
    bins[:m] = np.where(ok, index, -1)
    return bins


def boundary_start(data: bytes, k: int) -> int:
    """First offset from which a window read always runs off the buffer end.

    Every offset ``>= boundary_start`` gives ``encode_window(...) is None``;
    every offset below it gives a window.
    """
    return max(len(data) - k + 1, _last_invalid(data) + 1, 0)


def _last_invalid(data: bytes, chunk_size: int = 1 << 20) -> int:
    """Offset of the last non-``tcag`` symbol, or -1; scans back a chunk at a time."""
    view = np.frombuffer(data, dtype=np.uint8)
    end = len(view)
    while end > 0:
        start = max(0, end - chunk_size)
        invalid = np.flatnonzero(_DIGIT_LUT[view[start:end]] == _INVALID)
        if invalid.size:
            return start + int(invalid[-1])
        end = start
    return -1


def first_window(data: bytes, k: int, start: int = 0, chunk_size: int = 1 << 20) -> int:
    """First offset ``>= start`` holding a complete window, or -1."""
    n = len(data)
    while start <= n - k:
        stop = min(n - k + 1, start + chunk_size)
        hits = np.flatnonzero(window_bins(data[start : stop + k - 1], k)[: stop - start] >= 0)
        if hits.size:
            return start + int(hits[0])
        start = stop
    return -1
