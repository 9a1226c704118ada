from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from virpred.config import DEFAULT_PREFIX, VALID_FORMATS, PredictConfig
from virpred.pipeline import PipelineResult, run_prediction

EPILOG = "Example:\n\n  virpred -i data.csv -f Counts -o ./results"


def echo_parameters(config: PredictConfig) -> None:
    click.echo("\n=== VirPred Analysis Parameters ===")
    click.echo(f"Expression file: {config.input_path}")
    click.echo(f"Data format: {config.format}")
    click.echo(f"Output directory: {config.output_dir}")
    click.echo(f"Output prefix: {config.prefix}\n")


def echo_summary(result: PipelineResult) -> None:
    stats = result.stats
    click.echo("\n=== Analysis Summary ===")
    click.echo(f"Input genes: {stats['genes']}")
    click.echo(f"Input samples: {stats['samples']}")
    click.echo(f"Features used: {stats['features_matched']}/{stats['features_required']}")
    click.echo(f"Virulent predictions: {stats['virulent']}")
    click.echo(f"Avirulent predictions: {stats['avirulent']}")
    click.echo(f"Results saved to: {result.output_path}\n")


@click.command(epilog=EPILOG)
@click.option(
    "-i",
    "--input",
    "input_path",
    required=True,
    type=click.Path(path_type=Path),
    metavar="FILE",
    help="Expression data file (CSV/TSV) with genes as rows and samples as columns.",
)
@click.option(
    "-f",
    "--format",
    "data_format",
    type=click.Choice(VALID_FORMATS),
    default="Normalize",
    show_default=True,
    help="'Normalize' for normalized data (log2TPM, log2FPKM, ...); 'Counts' for raw RNA-seq counts.",
)
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    metavar="DIR",
    help="Output directory (default: current directory).",
)
@click.option(
    "-p",
    "--prefix",
    default=DEFAULT_PREFIX,
    show_default=True,
    metavar="PREFIX",
    help="Output file prefix; the report is written as PREFIX_YYYYMMDD.csv.",
)
@click.option(
    "--gene-sets",
    "gene_sets_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Local GO:BP GMT file to use instead of downloading from MSigDB.",
)
@click.option(
    "--reference",
    "reference_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help=(
        "Reference training CSV (feature columns plus 'Label'). Defaults to the bundled "
        "dataset, which is synthetic demonstration data: supply a real reference for "
        "meaningful virulence calls."
    ),
)
@click.option(
    "--model",
    "model_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Pre-fit model used when every reference feature is present.",
)
@click.option("--msigdb-release", default=None, help="MSigDB release to download, e.g. 2024.1.Hs.")
@click.option("--workers", type=click.IntRange(1, None), default=None, help="Worker threads for scoring and prediction.")
@click.option("--timeout", type=click.IntRange(1, None), default=None, help="Gene-set download timeout in seconds.")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
def cli(
    input_path: Path,
    data_format: str,
    output_dir: Optional[Path],
    prefix: str,
    gene_sets_path: Optional[Path],
    reference_path: Optional[Path],
    model_path: Optional[Path],
    msigdb_release: Optional[str],
    workers: Optional[int],
    timeout: Optional[int],
    verbose: bool,
) -> None:
    """Virulence Prediction Tool: predicts influenza virulence from host gene expression data."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    config = PredictConfig.from_env(
        input_path,
        format=data_format,
        output_dir=output_dir,
        prefix=prefix,
        gene_sets_path=gene_sets_path,
        reference_path=reference_path,
        model_path=model_path,
        msigdb_release=msigdb_release,
        workers=workers,
        timeout=timeout,
    )
    echo_parameters(config)

    click.echo("Running virulence prediction...")
    result = run_prediction(config)

    for message in result.warnings:
        click.echo(f"[WARNING] {message}", err=True)

    if not result.ok:
        click.echo(f"Error ({result.error.kind}): {result.error}", err=True)
        sys.exit(1)

    click.echo("Analysis completed successfully!")
    echo_summary(result)


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
