from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .delaunay import DelaunayTriangulation, compute_delaunay
from .errors import EmptyResultError
from .geometry import DEFAULT_BITS
from .hull import compute_convex_hull
from .manifold import (
    BOUND_ALPHA,
    BOUND_RHO,
    COCONE_COSINE,
    LIMIT_COSINE,
    CoconeParameters,
    ManifoldClassifier,
    ManifoldFacet,
    ManifoldVertex,
)
from .orientation import Orientation, OrientationPropagator
from .progress import ProgressRatio, check_cancelled, report
from .surface import SurfaceMesh, extract_surface
from .utils import get_logger

_log = get_logger()

MODES = ("cocone", "bound_cocone", "convex_hull")


@dataclass
class ReconstructionConfig:
    mode: str = "cocone"
    bits: int = DEFAULT_BITS
    precision: str = "auto"
    seed: int = 0
    cocone_cosine: float = COCONE_COSINE
    limit_cosine: float = LIMIT_COSINE
    quorum: Optional[int] = None
    rho: float = BOUND_RHO
    alpha: float = BOUND_ALPHA
    strict_empty: bool = False


@dataclass(frozen=True)
class ReconstructionResult:
    mesh: SurfaceMesh
    triangulation: Optional[DelaunayTriangulation]
    vertices: Tuple[ManifoldVertex, ...]
    facets: Tuple[ManifoldFacet, ...]
    orientation: Orientation
    stats: Dict[str, int]


class Reconstructor:
    """Runs Delaunay -> cocone -> orientation -> extraction for one request.

    Stages run strictly in sequence; cancellation is checked between stages
    and inside every long loop.  Nothing is shared between requests except the
    caller's ``ProgressRatio``.
    """

    def __init__(self, cfg: Optional[ReconstructionConfig] = None) -> None:
        self.cfg = cfg or ReconstructionConfig()
        if self.cfg.mode not in MODES:
            raise ValueError(f"Unknown reconstruction mode '{self.cfg.mode}', expected one of {MODES}")

    def _stage(self, progress: Optional[ProgressRatio], name: str) -> None:
        check_cancelled(progress)
        if progress is not None:
            progress.set_text(name)
        report(progress, 0.0, 1.0)
        _log.debug("Stage: %s", name)

    def _params(self) -> CoconeParameters:
        cfg = self.cfg
        return CoconeParameters(
            cocone_cosine=cfg.cocone_cosine,
            limit_cosine=cfg.limit_cosine,
            quorum=cfg.quorum,
            bound=cfg.mode == "bound_cocone",
            rho=cfg.rho,
            alpha=cfg.alpha,
        )

    def run(self, points: Any, progress: Optional[ProgressRatio] = None) -> ReconstructionResult:
        pts = np.asarray(points, dtype=np.float32)
        if self.cfg.mode == "convex_hull":
            return self._run_convex_hull(pts, progress)

        cfg = self.cfg
        self._stage(progress, "delaunay")
        tri = compute_delaunay(pts, progress=progress, bits=cfg.bits, precision=cfg.precision, seed=cfg.seed)  # type: ignore[arg-type]

        self._stage(progress, "cocone")
        manifold = ManifoldClassifier(self._params()).classify(tri, progress)
        candidates = manifold.cocone_facets()
        facets = [tri.facets[i].vertices for i in candidates]
        orthos = np.array([tri.facets[i].ortho for i in candidates], dtype=np.float64).reshape(-1, tri.dimension)

        self._stage(progress, "orientation")
        orientation = OrientationPropagator(tri.points).orient(facets, orthos, progress)

        self._stage(progress, "surface")
        warnings = self._empty_warnings(len(candidates))
        mesh = extract_surface(
            tri.points,
            facets,
            orthos,
            orientation,
            normal_types=[manifold.facets[i].normal for i in candidates],
            poles=manifold.poles(),
            warnings=warnings,
            manifold=True,
            outer=[tri.facets[i].one_sided for i in candidates],
            progress=progress,
        )
        check_cancelled(progress)
        report(progress, 1.0, 1.0)
        stats = {
            "points": int(len(pts)),
            "simplices": len(tri.simplices),
            "delaunay_facets": len(tri.facets),
            "candidates": len(candidates),
            "components": orientation.component_count,
            "mesh_vertices": mesh.vertex_count,
            "mesh_facets": mesh.facet_count,
        }
        _log.info("Reconstruction (%s): %d facets over %d vertices", cfg.mode, mesh.facet_count, mesh.vertex_count)
        return ReconstructionResult(mesh, tri, manifold.vertices, manifold.facets, orientation, stats)

    def _run_convex_hull(self, pts: np.ndarray, progress: Optional[ProgressRatio]) -> ReconstructionResult:
        cfg = self.cfg
        self._stage(progress, "convex hull")
        hull = compute_convex_hull(pts, progress=progress, bits=cfg.bits, precision=cfg.precision, seed=cfg.seed)  # type: ignore[arg-type]
        facets = [f.vertices for f in hull]
        orthos = np.array([f.ortho for f in hull], dtype=np.float64).reshape(-1, pts.shape[1])
        count = len(facets)
        orientation = Orientation(np.ones(count, dtype=np.int8), np.zeros(count, dtype=np.int64), ())
        self._stage(progress, "surface")
        mesh = extract_surface(pts, facets, orthos, orientation, warnings=self._empty_warnings(count))
        report(progress, 1.0, 1.0)
        stats = {
            "points": int(len(pts)),
            "hull_facets": count,
            "mesh_vertices": mesh.vertex_count,
            "mesh_facets": mesh.facet_count,
        }
        return ReconstructionResult(mesh, None, (), (), orientation, stats)

    def _empty_warnings(self, accepted: int) -> Tuple[str, ...]:
        if accepted:
            return ()
        message = "no facet passed the cocone test; the surface is empty"
        if self.cfg.strict_empty:
            raise EmptyResultError(message)
        _log.warning(message)
        return (message,)


def reconstruct(
    points: Any,
    cfg: Optional[ReconstructionConfig] = None,
    progress: Optional[ProgressRatio] = None,
    **overrides: Any,
) -> SurfaceMesh:
    """Reconstruct a surface mesh; keyword overrides patch ``cfg`` field by field."""
    base = cfg or ReconstructionConfig()
    if overrides:
        base = replace(base, **overrides)
    return Reconstructor(base).run(points, progress).mesh
