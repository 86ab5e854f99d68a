from __future__ import annotations

from pathlib import Path

import numpy as np

from ..config import RunConfig
from ..core.exporter import NpzMeshWriter, PlyMeshWriter
from ..core.pipeline import ReconstructionConfig
from ..examples.synthetic import point_object


def load_points(path: Path) -> np.ndarray:
    """Read an (M, N) point array from ``.npy``, ``.npz`` (key ``points``) or text."""
    ext = path.suffix.lower()
    if ext == ".npy":
        pts = np.load(path)
    elif ext == ".npz":
        with np.load(path) as data:
            if "points" not in data:
                raise ValueError(f"{path.name} has no 'points' array")
            pts = data["points"]
    else:
        pts = np.loadtxt(path, dtype=np.float64, comments="#", ndmin=2)
    pts = np.asarray(pts, dtype=np.float32)
    if pts.ndim != 2:
        raise ValueError(f"Expected an (M, N) point array in {path.name}, got shape {pts.shape}")
    return pts


def build_points(cfg: RunConfig) -> np.ndarray:
    src = cfg.source
    if src.kind == "object":
        return point_object(src.name, src.point_count, src.dimension, seed=src.seed)
    if src.kind == "file":
        return load_points(Path(src.path))
    raise ValueError(f"Unsupported source kind: {src.kind}")


def build_reconstruction(cfg: RunConfig) -> ReconstructionConfig:
    rc = cfg.reconstruction
    return ReconstructionConfig(
        mode=rc.mode,
        bits=rc.bits,
        precision=rc.precision,
        seed=rc.seed,
        cocone_cosine=rc.cocone_cosine,
        limit_cosine=rc.limit_cosine,
        quorum=rc.quorum,
        rho=rc.rho,
        alpha=rc.alpha,
        strict_empty=rc.strict_empty,
    )


def build_writer(cfg: RunConfig):
    out_cfg = cfg.output
    format_lower = out_cfg.format.lower()
    if format_lower == "npz":
        return NpzMeshWriter(str(out_cfg.path))
    if format_lower == "ply":
        return PlyMeshWriter(str(out_cfg.path))
    raise ValueError(f"Unsupported output format: {out_cfg.format}")
