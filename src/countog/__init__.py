"""countog: normalized oligonucleotide counts from FASTA/FASTQ for ML training data."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("countog")
except PackageNotFoundError:
    __version__ = "0.0.0+dev"

from .config import CountingConfig  # noqa: F401
from .pipeline import Pipeline  # noqa: F401
