"""Configuration module for countog counting parameters."""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml  # type: ignore

from .errors import ConfigError

DEFAULT_GENOME_SIZE = 2 ** 32


@dataclass
class CountingConfig:
    """Configuration for one counting run."""

    # Window parameters
    oligo: int = 8  # k-mer size
    counting_size: int = 100_000  # complete windows counted per row
    size_data: int = 20_000  # number of output rows
    shift_size: int = 20_000  # relocation stride at the buffer end

    # Loading parameters
    max_genome_size: int = DEFAULT_GENOME_SIZE
    min_quality: int = 16

    # Output parameters
    merge: bool = False  # fold complementary oligos together
    header: bool = False
    label: Optional[str] = None

    def __post_init__(self):
        """Validate configuration."""
        if not 1 <= self.oligo <= 15:
            raise ConfigError(f"oligo must be between 1 and 15, got {self.oligo}")
        for name in ("counting_size", "shift_size", "max_genome_size"):
            if getattr(self, name) < 1:
                raise ConfigError(f"{name} must be positive, got {getattr(self, name)}")
        if self.size_data < 0:
            raise ConfigError(f"size_data must not be negative, got {self.size_data}")
        if self.label is not None and any(c in self.label for c in "\t\n"):
            raise ConfigError("label must not contain tabs or newlines")

    @property
    def num_bins(self) -> int:
        """Number of distinct k-mers, ``4**oligo``."""
        return 4 ** self.oligo

    @property
    def num_columns(self) -> int:
        """Number of value columns in each output row."""
        if not self.merge:
            return self.num_bins
        # Self-complementary k-mers (even k only) form pairs on their own.
        palindromes = 4 ** (self.oligo // 2) if self.oligo % 2 == 0 else 0
        return (self.num_bins + palindromes) // 2

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides) -> "CountingConfig":
        """Load a config from a YAML mapping, then apply non-None *overrides*."""
        try:
            with open(path) as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot load config {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must contain a mapping")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys in {path}: {sorted(unknown)}")
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)
