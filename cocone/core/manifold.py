"""Cocone classification of Delaunay vertices and facets.

Every point gets a pole direction (an estimate of the surface normal) from
its Voronoi cell.  A Delaunay facet is a surface candidate when its dual
Voronoi edge crosses the cocones of its vertices, i.e. passes close to the
plane orthogonal to their poles.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union
import math

import numpy as np

from .delaunay import DelaunayTriangulation
from .geometry import circumcenters
from .progress import ProgressRatio, check_cancelled, report
from .utils import get_logger, unit_vector

_log = get_logger()

# cos(3*pi/8): the cocone is the set of directions within 22.5 degrees of the
# plane orthogonal to the pole.
COCONE_COSINE = math.cos(3.0 * math.pi / 8.0)
# A pole agreeing with a facet ortho less than this is not used for shading.
LIMIT_COSINE = 0.7
BOUND_RHO = 0.3
BOUND_ALPHA = 0.14

_REPORT_EVERY = 256


@dataclass(frozen=True)
class NoNormals:
    pass


@dataclass(frozen=True)
class UseNormals:
    negate: bool = False


@dataclass(frozen=True)
class ReverseNormals:
    flags: Tuple[bool, ...]


NormalType = Union[NoNormals, UseNormals, ReverseNormals]


@dataclass(frozen=True)
class ManifoldVertex:
    positive_norm: Optional[np.ndarray]
    height: float
    radius: float
    cocone_neighbors: Tuple[int, ...] = ()

    @property
    def has_pole(self) -> bool:
        return self.positive_norm is not None


@dataclass(frozen=True)
class ManifoldFacet:
    cocone_vertex: Tuple[bool, ...]
    normal: NormalType
    cocone: bool = False


@dataclass(frozen=True)
class CoconeParameters:
    cocone_cosine: float = COCONE_COSINE
    limit_cosine: float = LIMIT_COSINE
    quorum: Optional[int] = None
    bound: bool = False
    rho: float = BOUND_RHO
    alpha: float = BOUND_ALPHA


@dataclass(frozen=True)
class ManifoldData:
    vertices: Tuple[ManifoldVertex, ...]
    facets: Tuple[ManifoldFacet, ...]
    interior: Tuple[bool, ...] = ()

    def cocone_facets(self) -> List[int]:
        return [i for i, f in enumerate(self.facets) if f.cocone]

    def poles(self) -> List[Optional[np.ndarray]]:
        return [v.positive_norm for v in self.vertices]


def dual_edge_meets_cocone(
    start: np.ndarray,
    direction: np.ndarray,
    ray: bool,
    vertex: np.ndarray,
    pole: np.ndarray,
    cosine: float,
) -> bool:
    """Whether ``start + t * direction`` (t in [0, 1], or [0, inf) for a ray)
    enters the double cone ``|cos(x - vertex, pole)| <= cosine``.

    With ``w = start - vertex`` the condition is ``f(t) <= 0`` for the quadratic
    ``f(t) = (n.(w + t d))^2 - c^2 |w + t d|^2``.
    """
    w = start - vertex
    dn = float(np.dot(direction, pole))
    wn = float(np.dot(w, pole))
    c2 = cosine * cosine
    a = dn * dn - c2 * float(np.dot(direction, direction))
    b = 2.0 * (wn * dn - c2 * float(np.dot(w, direction)))
    k = wn * wn - c2 * float(np.dot(w, w))
    if k <= 0.0:
        return True
    if ray:
        if a < 0.0 or (a == 0.0 and b < 0.0):
            return True
    elif a + b + k <= 0.0:
        return True
    if a > 0.0:
        t = -b / (2.0 * a)
        if t > 0.0 and (ray or t < 1.0):
            return a * t * t + b * t + k <= 0.0
    return False


def normal_type(ortho: np.ndarray, poles: Sequence[Optional[np.ndarray]], limit_cosine: float) -> NormalType:
    if any(p is None for p in poles):
        return NoNormals()
    dots = [float(np.dot(p, ortho)) for p in poles]
    if any(abs(d) < limit_cosine for d in dots):
        return NoNormals()
    if all(d > 0.0 for d in dots):
        return UseNormals()
    if all(d < 0.0 for d in dots):
        return UseNormals(negate=True)
    return ReverseNormals(tuple(d < 0.0 for d in dots))


class ManifoldClassifier:
    """Pole estimation and cocone facet selection over a Delaunay triangulation."""

    def __init__(self, params: Optional[CoconeParameters] = None) -> None:
        self.params = params or CoconeParameters()

    def classify(self, tri: DelaunayTriangulation, progress: Optional[ProgressRatio] = None) -> ManifoldData:
        points = tri.points
        centers = circumcenters(points, tri.simplex_array())
        poles, heights, radii = self._poles(tri, centers, progress)

        cocone_flags: List[Tuple[bool, ...]] = []
        types: List[NormalType] = []
        total = len(tri.facets)
        for fi, facet in enumerate(tri.facets):
            if fi % _REPORT_EVERY == 0:
                check_cancelled(progress)
                report(progress, 0.5 + 0.4 * fi / max(total, 1), 1.0)
            s0, s1 = facet.simplices
            start = centers[s0]
            ray = s1 < 0
            direction = facet.ortho if ray else centers[s1] - start
            cocone_flags.append(tuple(
                poles[v] is not None
                and dual_edge_meets_cocone(start, direction, ray, points[v], poles[v], self.params.cocone_cosine)
                for v in facet.vertices
            ))
            types.append(normal_type(facet.ortho, [poles[v] for v in facet.vertices], self.params.limit_cosine))

        if self.params.bound:
            interior = self._interior(tri, poles, heights, radii, cocone_flags)
            accepted = [
                any(interior[v] for v in f.vertices)
                and all(flag for v, flag in zip(f.vertices, flags) if interior[v])
                for f, flags in zip(tri.facets, cocone_flags)
            ]
        else:
            interior = [p is not None for p in poles]
            quorum = self.params.quorum if self.params.quorum is not None else tri.dimension
            accepted = [sum(flags) >= quorum for flags in cocone_flags]

        neighbors: List[List[int]] = [[] for _ in range(len(points))]
        for fi, facet in enumerate(tri.facets):
            if accepted[fi]:
                for v in facet.vertices:
                    neighbors[v].append(fi)

        vertices = tuple(
            ManifoldVertex(poles[i], heights[i], radii[i], tuple(neighbors[i])) for i in range(len(points))
        )
        facets = tuple(
            ManifoldFacet(flags, nt, ok) for flags, nt, ok in zip(cocone_flags, types, accepted)
        )
        report(progress, 1.0, 1.0)
        _log.info(
            "Cocone: %d of %d facets accepted, %d points without a pole",
            sum(accepted), total, sum(p is None for p in poles),
        )
        return ManifoldData(vertices, facets, tuple(bool(x) for x in interior))

    def _poles(
        self,
        tri: DelaunayTriangulation,
        centers: np.ndarray,
        progress: Optional[ProgressRatio],
    ) -> Tuple[List[Optional[np.ndarray]], List[float], List[float]]:
        points = tri.points
        m, d = points.shape
        incident: List[List[int]] = [[] for _ in range(m)]
        for sid, simplex in enumerate(tri.simplices):
            for v in simplex.vertices:
                incident[v].append(sid)
        hull_sum = np.zeros((m, d), dtype=np.float64)
        on_hull = np.zeros(m, dtype=bool)
        for facet in tri.facets:
            if facet.one_sided:
                for v in facet.vertices:
                    hull_sum[v] += facet.ortho
                    on_hull[v] = True

        poles: List[Optional[np.ndarray]] = []
        heights: List[float] = []
        radii: List[float] = []
        cosine = self.params.cocone_cosine
        for i in range(m):
            if i % _REPORT_EVERY == 0:
                check_cancelled(progress)
                report(progress, 0.5 * i / m, 1.0)
            if not incident[i]:
                poles.append(None)
                heights.append(0.0)
                radii.append(0.0)
                continue
            offsets = centers[incident[i]] - points[i]
            dist = np.linalg.norm(offsets, axis=1)
            if on_hull[i]:
                pole = unit_vector(hull_sum[i])
            else:
                pole = unit_vector(offsets[int(np.argmax(dist))])
            if pole is None:
                poles.append(None)
                heights.append(0.0)
                radii.append(0.0)
                continue
            dots = offsets @ pole
            negative = dots < 0.0
            height = float(dist[negative].max()) if negative.any() else 0.0
            safe = np.where(dist > 0.0, dist, 1.0)
            inside = np.abs(dots) <= cosine * safe
            radius = float(dist[inside].max()) if inside.any() else 0.0
            pole.setflags(write=False)
            poles.append(pole)
            heights.append(height)
            radii.append(radius)
        return poles, heights, radii

    def _interior(
        self,
        tri: DelaunayTriangulation,
        poles: Sequence[Optional[np.ndarray]],
        heights: Sequence[float],
        radii: Sequence[float],
        cocone_flags: Sequence[Tuple[bool, ...]],
    ) -> List[bool]:
        """Well-sampled points, grown over candidate facets with agreeing poles."""
        rho, alpha = self.params.rho, self.params.alpha
        interior = [
            poles[i] is not None and heights[i] > 0.0 and radii[i] <= rho * heights[i]
            for i in range(len(poles))
        ]
        links: List[List[int]] = [[] for _ in range(len(poles))]
        for facet, flags in zip(tri.facets, cocone_flags):
            marked = [v for v, flag in zip(facet.vertices, flags) if flag]
            for a in marked:
                for b in marked:
                    if a != b:
                        links[a].append(b)
        cos_alpha = math.cos(alpha)
        queue = deque(i for i, ok in enumerate(interior) if ok)
        while queue:
            a = queue.popleft()
            for b in links[a]:
                if interior[b] or poles[b] is None:
                    continue
                if abs(float(np.dot(poles[a], poles[b]))) >= cos_alpha:
                    interior[b] = True
                    queue.append(b)
        _log.debug("Bound cocone: %d of %d points interior", sum(interior), len(interior))
        return interior
