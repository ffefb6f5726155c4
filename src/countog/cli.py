"""Command-line interface for countog."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich import print

from .config import CountingConfig
from .errors import ArgumentError, CountogError
from .pipeline import Pipeline

app = typer.Typer(add_help_option=True)

logger = logging.getLogger(__name__)


@app.command()
def count(
    sequence_file: Optional[Path] = typer.Argument(None, help="Input FASTA or FASTQ file (optionally .gz)"),
    oligo: Optional[int] = typer.Option(None, "--oligo", "-o", help="Size of oligonucleotide in nt [default: 8]"),
    counting: Optional[int] = typer.Option(
        None, "--counting", "-c", help="Number of counting oligos for one-line data [default: 100000]"
    ),
    rows: Optional[int] = typer.Option(None, "--rows", "-t", help="Number of one-line data [default: 20000]"),
    shift: Optional[int] = typer.Option(
        None, "--shift", "-s", help="Size of shift in bp for the next round [default: 20000]"
    ),
    genome_size: Optional[int] = typer.Option(
        None, "--genome-size", "-g", help="Maximum genome size [default: 4294967296]"
    ),
    min_quality: Optional[int] = typer.Option(None, "--min-quality", "-q", help="Minimum quality score [default: 16]"),
    merge: Optional[bool] = typer.Option(
        None, "--merge/--no-merge", "-r", help="Merge complementary oligonucleotides [default: no-merge]"
    ),
    header: Optional[bool] = typer.Option(
        None, "--header/--no-header", "-d", help="Print the header line [default: no-header]"
    ),
    label: Optional[str] = typer.Option(None, "--label", "-l", help="Add a label for training data"),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML file with default parameters"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write rows here instead of stdout"),
    progress: bool = typer.Option(False, "--progress", help="Show a progress bar on stderr"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log run details to stderr"),
):
    """Count oligonucleotides and print normalized values ranging from 0 to 1."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    overrides = dict(
        oligo=oligo,
        counting_size=counting,
        size_data=rows,
        shift_size=shift,
        max_genome_size=genome_size,
        min_quality=min_quality,
        merge=merge,
        header=header,
        label=label,
    )
    try:
        if sequence_file is None:
            raise ArgumentError("specify an input FASTA or FASTQ file name")
        if config is not None:
            cfg = CountingConfig.from_yaml(config, **overrides)
        else:
            cfg = CountingConfig(**{k: v for k, v in overrides.items() if v is not None})
        pipeline = Pipeline.from_file(sequence_file, cfg)
        if output is None:
            pipeline.run(sys.stdout, show_progress=progress)
        else:
            try:
                fh = open(output, "w")
            except OSError as exc:
                raise ArgumentError(f"cannot write output file: {output} ({exc})") from exc
            with fh:
                pipeline.run(fh, show_progress=progress)
            logger.info(f"Saved rows -> {output}")
    except CountogError as exc:
        print(f"[red]Error {exc.code}:[/red] {exc}", file=sys.stderr)
        raise typer.Exit(code=exc.code)


if __name__ == "__main__":
    app()
