from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from ..config import load_config
from ..core.errors import ReconstructionError
from ..core.exporter import NpzMeshWriter, PlyMeshWriter
from ..core.pipeline import MODES, ReconstructionConfig, Reconstructor
from ..examples.synthetic import point_object_names
from ..runtime.builders import load_points
from ..sdk.run import reconstruct_from_config

app = typer.Typer(help="Cocone surface reconstruction utilities")


def _configure_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric, format="[%(levelname)s] %(message)s")
    logging.getLogger("cocone").setLevel(numeric)


def _writer_for(path: Path):
    ext = path.suffix.lower()
    if ext == ".ply":
        return PlyMeshWriter(str(path))
    if ext == ".npz":
        return NpzMeshWriter(str(path))
    raise typer.BadParameter(f"Unsupported output extension '{ext}'", param_hint="--output")


@app.command("reconstruct")
def reconstruct(
    config: Path = typer.Argument(..., exists=True, readable=True, help="Path to YAML configuration file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Override output path (extension sets format)."),
    mode: Optional[str] = typer.Option(None, "--mode", help="Override reconstruction mode (cocone, bound_cocone, convex_hull)."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Override hull insertion seed."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Reconstruct a surface from the point source in a YAML config."""

    _configure_logging(log_level)
    if mode is not None and mode not in MODES:
        raise typer.BadParameter(f"mode must be one of {list(MODES)}.", param_hint="--mode")
    if output is not None and output.suffix.lower() not in {".ply", ".npz"}:
        raise typer.BadParameter(f"Unsupported output extension '{output.suffix.lower()}'", param_hint="--output")
    cfg = load_config(config)
    try:
        result = reconstruct_from_config(cfg, output=output, mode=mode, seed=seed)
    except ReconstructionError as exc:
        typer.echo(f"Reconstruction failed: {exc}", err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="CONFIG")
    stats = result.stats
    typer.echo(f"Completed {stats['mesh_facets']} facets from {stats['points']} points → {result.output_path}")


@app.command("hull")
def hull(
    points: Path = typer.Argument(..., exists=True, readable=True, help="Point file (.npy, .npz with 'points', or text)."),
    output: Path = typer.Option(..., "--output", "-o", help="Output mesh path (.ply or .npz)."),
    bits: int = typer.Option(24, "--bits", help="Grid resolution in bits per axis."),
    seed: int = typer.Option(0, "--seed", help="Insertion order seed."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level (e.g. INFO, DEBUG)."),
) -> None:
    """Write the convex hull of a point file as a mesh."""

    _configure_logging(log_level)
    writer = _writer_for(output)
    pts = load_points(points.resolve())
    try:
        result = Reconstructor(ReconstructionConfig(mode="convex_hull", bits=bits, seed=seed)).run(pts)
        writer.write(result.mesh)
    except ReconstructionError as exc:
        typer.echo(f"Convex hull failed: {exc}", err=True)
        raise typer.Exit(code=1)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--output")
    typer.echo(f"Wrote {result.mesh.facet_count} hull facets → {output.resolve()}")


@app.command("objects")
def objects(
    dimension: int = typer.Option(3, "--dimension", "-d", help="Space dimension."),
) -> None:
    """List the synthetic point objects available in a dimension."""

    if dimension < 2 or dimension > 6:
        raise typer.BadParameter("dimension must be within [2, 6].", param_hint="--dimension")
    for name in point_object_names(dimension):
        typer.echo(name)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
