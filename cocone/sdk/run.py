from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Union

from ..config import RunConfig, load_config
from ..core.pipeline import Reconstructor
from ..core.progress import ProgressRatio
from ..runtime.builders import build_points, build_reconstruction, build_writer


@dataclass(frozen=True)
class ConfigRunResult:
    """Summary of a reconstruction driven by a configuration file."""

    stats: Dict[str, int]
    output_path: Path
    config: RunConfig


def reconstruct_from_config(
    config: Union[str, Path, RunConfig],
    *,
    output: Optional[Path] = None,
    mode: Optional[str] = None,
    seed: Optional[int] = None,
    progress: Optional[ProgressRatio] = None,
) -> ConfigRunResult:
    """Reconstruct a surface described by a configuration file or object.

    Parameters
    ----------
    config:
        Path to a YAML file or a pre-loaded :class:`~cocone.config.schema.RunConfig`.
    output:
        Optional override for the mesh file written by the run. The extension
        drives the format (``.ply`` or ``.npz``).
    mode:
        Optional override for the reconstruction mode.
    seed:
        Optional override for the hull insertion-order seed.
    progress:
        Optional progress/cancellation sink passed through to every stage.

    Returns
    -------
    ConfigRunResult
        Includes the run statistics (points, simplices, facets), the resolved
        output path, and the resolved configuration object used for the run.
    """

    cfg = load_config(config) if not isinstance(config, RunConfig) else config.model_copy(deep=True)

    if mode:
        cfg.reconstruction.mode = mode  # type: ignore[assignment]
    if seed is not None:
        cfg.reconstruction.seed = seed

    if output is not None:
        out_path = Path(output).resolve()
        ext = out_path.suffix.lower()
        if ext not in {".ply", ".npz"}:
            raise ValueError(f"Unsupported output extension '{ext}'")
        cfg.output.path = out_path
        cfg.output.format = ext.lstrip(".")  # type: ignore[assignment]
    else:
        cfg.output.path = Path(cfg.output.path).resolve()

    points = build_points(cfg)
    writer = build_writer(cfg)
    result = Reconstructor(build_reconstruction(cfg)).run(points, progress)
    writer.write(result.mesh)

    return ConfigRunResult(stats=result.stats, output_path=Path(cfg.output.path), config=cfg)
