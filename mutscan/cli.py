import logging
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from mutscan.config import Config, ConfigurationError
from mutscan.core.io import FeatureIndexBuilder, write_bed
from mutscan.errors import InputValidationError
from mutscan.pipeline import MutationPipeline

app = typer.Typer(
    name="mutscan",
    help="Annotated, merged mutation tables from whole-genome alignments.",
    add_completion=False,
    no_args_is_help=True
)


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@app.command()
def run(
    config_file: Annotated[Optional[Path], typer.Option("--config-file", "-c", help="YAML configuration file")] = None,
    annotation: Annotated[Optional[Path], typer.Option(help="Gene annotation table (GFF-like)")] = None,
    reference: Annotated[Optional[Path], typer.Option(help="Reference FASTA, or a directory holding exactly one")] = None,
    mutants_dir: Annotated[Optional[Path], typer.Option(help="Directory of mutant FASTA files")] = None,
    snps_dir: Annotated[Optional[Path], typer.Option(help="Directory of precomputed <mutant>.snps tables")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output table (default: stdout)")] = None,
    work_dir: Annotated[Optional[Path], typer.Option(help="Directory for aligner output")] = None,
    reference_name: Annotated[Optional[str], typer.Option(help="Name written in the Reference column")] = None,
    threads: Annotated[Optional[int], typer.Option(help="Maximum number of mutants processed at once")] = None,
    join_backend: Annotated[Optional[str], typer.Option(help="auto, bedtools, intervaltree or naive")] = None,
    keep_intermediate: Annotated[Optional[bool], typer.Option(
        "--keep-intermediate/--no-keep-intermediate", help="Write genes.bed and per-mutant tables to the work dir"
    )] = None,
    log_level: Annotated[Optional[str], typer.Option(help="DEBUG, INFO, WARNING, ERROR or CRITICAL")] = None,
):
    """Align mutants, annotate their variants and write the merged mutation table."""
    config = Config()
    try:
        config.load(str(config_file) if config_file else None, {
            "annotation": annotation,
            "reference": reference,
            "mutants_dir": mutants_dir,
            "snps_dir": snps_dir,
            "output_file": output,
            "work_dir": work_dir,
            "reference_name": reference_name,
            "threads": threads,
            "join_backend": join_backend,
            "keep_intermediate": keep_intermediate,
            "log_level": log_level,
        })
    except ConfigurationError as e:
        setup_logging()
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(code=1)

    setup_logging(config.get("log_level"))
    try:
        summary = MutationPipeline(config).run()
    except InputValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if summary.failed and not summary.succeeded:
        typer.echo("Error: every mutant failed", err=True)
        raise typer.Exit(code=2)
    if summary.partial:
        typer.echo(f"Partial success: {len(summary.failed)} mutant(s) failed: "
                   + ", ".join(r.mutant_id for r in summary.failed), err=True)


@app.command()
def index(
    annotation: Annotated[Path, typer.Option(..., help="Gene annotation table (GFF-like)")],
    output: Annotated[Path, typer.Option("--output", "-o", help="Output BED file")] = Path("genes.bed"),
    verbose: bool = False
):
    """Build the feature index (genes.bed) from an annotation table."""
    setup_logging("DEBUG" if verbose else "INFO")

    builder = FeatureIndexBuilder()
    try:
        features = builder.build(annotation)
    except InputValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    write_bed(features, output)
    typer.echo(f"Wrote {len(features)} features to {output}")


def main():
    app()


if __name__ == "__main__":
    main()
