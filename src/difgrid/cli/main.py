"""Main CLI application for difgrid."""

import typer
from pathlib import Path
from typing import List, Optional

from ..api import GridStrategy

app = typer.Typer(
    name="difgrid",
    help="Conditional likelihood grids for differential selection between branch groups",
    no_args_is_help=True,
)


@app.callback()
def callback():
    """
    Conditional likelihood grids for differential selection between branch groups.
    """


@app.command()
def run(
    alignment: Path = typer.Option(
        ...,
        "--alignment", "-s",
        help="Codon alignment file (FASTA or PHYLIP)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    tree: Path = typer.Option(
        ...,
        "--tree", "-t",
        help="Tagged phylogenetic tree file (Newick format)",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
    tags: List[str] = typer.Option(
        ...,
        "--tag",
        help="Branch group tag, e.g. '{G1}'; repeat once per group, in order",
    ),
    strategy: GridStrategy = typer.Option(
        GridStrategy.memoized_parallel,
        "--strategy",
        help="Grid evaluation strategy",
    ),
    foreground_grid: int = typer.Option(
        6,
        "--foreground-grid",
        help="Intervals on the alpha and per-group omega axes",
        min=1,
    ),
    background_grid: int = typer.Option(
        4,
        "--background-grid",
        help="Intervals on the background omega axis",
        min=1,
    ),
    kappa: float = typer.Option(
        2.0,
        "--kappa",
        help="Transition/transversion exchangeability ratio",
        min=0.0,
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        help="Worker threads for the parallel strategies (default: CPU count)",
        min=1,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output", "-o",
        help="Write matrices and axes to this .npz file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Show grid progress",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet", "-q",
        help="Minimal output",
    ),
):
    """
    Compute the conditional likelihood grid for tagged branch groups.

    Example:
        difgrid run -s alignment.fasta -t tree.nwk --tag '{G1}' --tag '{G2}'
        difgrid run -s alignment.fasta -t tree.nwk --tag '{G1}' --strategy direct -o grid.npz
    """
    from .commands.run import run_grid_command

    run_grid_command(
        alignment=alignment,
        tree=tree,
        tags=tags,
        strategy=strategy.value,
        foreground_grid=foreground_grid,
        background_grid=background_grid,
        kappa=kappa,
        workers=workers,
        output=output,
        verbose=verbose,
        quiet=quiet,
    )


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
