"""Exception hierarchy for countog.

Every error carries an integer ``code`` that the command line uses as its
exit status. Library code only raises; reporting is left to the caller.
"""


class CountogError(Exception):
    """Base class for all countog errors."""

    code: int = 1


class ArgumentError(CountogError, ValueError):
    """No usable input was supplied."""

    code = 1


class ConfigError(ArgumentError):
    """An option value is out of range or unknown."""


class InputFormatError(CountogError, ValueError):
    """The input is neither FASTA nor well-formed FASTQ."""

    code = 2


class InsufficientDataError(InputFormatError):
    """The genome buffer holds no complete k-mer window."""


class ResourceExhaustedError(CountogError, MemoryError):
    """The genome buffer could not be allocated."""

    code = 3


class EncodingInvariantError(CountogError, AssertionError):
    """A base-4 digit fell outside ``{0, 1, 2, 3}``.

    This points at a logic defect rather than bad input.
    """

    code = 4
