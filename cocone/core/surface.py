from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .geometry import orient_vertices
from .manifold import NoNormals, NormalType, ReverseNormals, UseNormals
from .orientation import Orientation, Ridge, consistent_orientation
from .progress import ProgressRatio, check_cancelled
from .utils import get_logger

_log = get_logger()

_CHECK_EVERY = 1024


def _frozen(arr: np.ndarray) -> np.ndarray:
    out = np.array(arr, copy=True)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class SurfaceMesh:
    """Oriented facets over a compacted vertex array.

    ``normal_indices[f, j]`` points into ``normals`` (shading normal of corner j
    of facet f) or is -1 when the facet has only its geometric normal.
    ``source_indices`` maps mesh vertices back to the input points.
    """
    vertices: np.ndarray
    normals: np.ndarray
    facets: np.ndarray
    facet_normals: np.ndarray
    normal_indices: np.ndarray
    texcoords: np.ndarray
    materials: np.ndarray
    source_indices: np.ndarray
    warnings: Tuple[str, ...] = ()

    @property
    def dimension(self) -> int:
        return int(self.vertices.shape[1])

    @property
    def facet_count(self) -> int:
        return int(len(self.facets))

    @property
    def vertex_count(self) -> int:
        return int(len(self.vertices))

    @property
    def is_empty(self) -> bool:
        return self.facet_count == 0

    @classmethod
    def build(
        cls,
        vertices: np.ndarray,
        normals: np.ndarray,
        facets: np.ndarray,
        facet_normals: np.ndarray,
        normal_indices: np.ndarray,
        source_indices: np.ndarray,
        warnings: Sequence[str] = (),
    ) -> "SurfaceMesh":
        d = int(vertices.shape[1])
        return cls(
            vertices=_frozen(np.asarray(vertices, dtype=np.float64).reshape(-1, d)),
            normals=_frozen(np.asarray(normals, dtype=np.float64).reshape(-1, d)),
            facets=_frozen(np.asarray(facets, dtype=np.int64).reshape(-1, d)),
            facet_normals=_frozen(np.asarray(facet_normals, dtype=np.float64).reshape(-1, d)),
            normal_indices=_frozen(np.asarray(normal_indices, dtype=np.int64).reshape(-1, d)),
            texcoords=_frozen(np.zeros((0, d - 1), dtype=np.float64)),
            materials=_frozen(np.zeros(len(facets), dtype=np.int32)),
            source_indices=_frozen(np.asarray(source_indices, dtype=np.int64)),
            warnings=tuple(warnings),
        )

    @classmethod
    def empty(cls, dimension: int, warnings: Sequence[str] = ()) -> "SurfaceMesh":
        z = np.zeros((0, dimension))
        return cls.build(z, z, z, z, z, np.zeros(0), warnings)


def _ridges(vertices: Sequence[int]) -> List[Ridge]:
    v = tuple(sorted(int(x) for x in vertices))
    return [v[:k] + v[k + 1:] for k in range(len(v))]


def _opposite(vertices: Sequence[int], ridge: Ridge) -> int:
    return next(int(v) for v in vertices if v not in ridge)


def _sweep_order(
    points: np.ndarray,
    facets: Sequence[Sequence[int]],
    ridge: Ridge,
    start: int,
    normal: np.ndarray,
    others: Sequence[int],
) -> List[int]:
    """``others`` sorted by the angle swept around ``ridge`` from facet ``start``
    towards the side its ``normal`` points to.

    Angles are measured in the 2-plane orthogonal to the ridge; a facet lying
    on top of ``start`` comes last.
    """
    base = points[ridge[0]]
    span = points[list(ridge[1:])] - base
    if len(span):
        q, _ = np.linalg.qr(span.T)
        project = np.eye(points.shape[1]) - q @ q.T
    else:
        project = np.eye(points.shape[1])
    u = project @ (points[_opposite(facets[start], ridge)] - base)
    u = u / np.linalg.norm(u)
    n = project @ normal
    n = n - np.dot(n, u) * u
    n = n / np.linalg.norm(n)
    swept = []
    for g in others:
        w = project @ (points[_opposite(facets[g], ridge)] - base)
        theta = float(np.arctan2(np.dot(w, n), np.dot(w, u)))
        if theta <= 0.0:
            theta += 2.0 * np.pi
        swept.append((theta, g))
    return [g for _, g in sorted(swept)]


def _without_fins(
    facets: Sequence[Sequence[int]],
    owners: Dict[Ridge, List[int]],
    component: np.ndarray,
) -> List[bool]:
    """Repeatedly strip facets with a ridge no other facet shares.

    Components that would vanish entirely are open patches and stay whole.
    """
    alive = [True] * len(facets)
    load = {ridge: len(ids) for ridge, ids in owners.items()}
    queue = [fid for fid, verts in enumerate(facets) if any(load[r] == 1 for r in _ridges(verts))]
    while queue:
        fid = queue.pop()
        if not alive[fid]:
            continue
        alive[fid] = False
        for r in _ridges(facets[fid]):
            load[r] -= 1
            if load[r] == 1:
                queue.extend(g for g in owners[r] if alive[g])
    left = {int(component[fid]) for fid in range(len(facets)) if alive[fid]}
    return [a or int(component[fid]) not in left for fid, a in enumerate(alive)]


def outer_sheet(
    points: np.ndarray,
    facets: Sequence[Sequence[int]],
    orthos: np.ndarray,
    orientation: Orientation,
    outer: Optional[Sequence[bool]] = None,
    progress: Optional[ProgressRatio] = None,
) -> np.ndarray:
    """Select a manifold sheet out of the candidate facets and orient it.

    Facets dangling off a ridge nobody else shares are eroded first.  Each
    component is then walked from a seed facet.  Across every ridge the walk
    continues into the first candidate met when rotating from the current
    facet through the side its normal faces, so pockets and fins hanging
    off the surface are never entered.  A facet is only added while none of
    its ridges already carries two sheet facets.

    ``outer[i]`` marks facets known to face the unbounded region along their
    raw ortho (Delaunay hull facets); the first such facet of a component is
    its seed.  Components without one start from their lowest facet, facing
    the side chosen by ``orientation``.

    Returns one sign per facet: +1 or -1 for sheet facets, 0 for dropped ones.
    """
    pts = np.asarray(points, dtype=np.float64)
    orthos = np.asarray(orthos, dtype=np.float64)
    count = len(facets)
    owners: Dict[Ridge, List[int]] = {}
    for fid, verts in enumerate(facets):
        for ridge in _ridges(verts):
            owners.setdefault(ridge, []).append(fid)
    alive = _without_fins(facets, owners, orientation.component)

    seeds: Dict[int, int] = {}
    for fid in range(count):
        if not alive[fid]:
            continue
        comp = int(orientation.component[fid])
        if comp not in seeds or (outer is not None and outer[fid] and not outer[seeds[comp]]):
            seeds[comp] = fid

    kept = [False] * count
    walk = np.zeros(count, dtype=np.int8)
    sheet: Dict[Ridge, int] = {}

    def fits(fid: int) -> bool:
        return all(sheet.get(r, 0) < 2 for r in _ridges(facets[fid]))

    def add(fid: int, sign: int) -> None:
        kept[fid] = True
        walk[fid] = sign
        for r in _ridges(facets[fid]):
            sheet[r] = sheet.get(r, 0) + 1

    steps = 0
    for comp in sorted(seeds):
        seed = seeds[comp]
        add(seed, 1 if outer is not None and outer[seed] else int(orientation.signs[seed]))
        stack = [seed]
        while stack:
            steps += 1
            if steps % _CHECK_EVERY == 0:
                check_cancelled(progress)
            f = stack.pop()
            normal = orthos[f] * walk[f]
            for ridge in _ridges(facets[f]):
                if sheet[ridge] >= 2:
                    continue
                others = [g for g in owners[ridge] if g != f and alive[g] and not kept[g]]
                if not others:
                    continue
                g = _sweep_order(pts, facets, ridge, f, normal, others)[0]
                if not fits(g):
                    continue
                same = consistent_orientation(pts, facets[f], facets[g], ridge, normal, orthos[g])
                add(g, 1 if same else -1)
                stack.append(g)

    disagree = sum(1 for i in range(count) if kept[i] and walk[i] != orientation.signs[i])
    _log.debug(
        "Outer sheet: kept %d of %d candidate facets (%d signs differ from the spanning tree)",
        sum(kept), count, disagree,
    )
    walk.setflags(write=False)
    return walk


def _corner_flips(kind: NormalType, count: int) -> Optional[List[int]]:
    if isinstance(kind, NoNormals):
        return None
    if isinstance(kind, UseNormals):
        return [-1 if kind.negate else 1] * count
    if isinstance(kind, ReverseNormals):
        return [-1 if flag else 1 for flag in kind.flags]
    raise TypeError(f"Unknown normal type {kind!r}")


def extract_surface(
    points: np.ndarray,
    facets: Sequence[Sequence[int]],
    orthos: np.ndarray,
    orientation: Orientation,
    normal_types: Optional[Sequence[NormalType]] = None,
    poles: Optional[Sequence[Optional[np.ndarray]]] = None,
    warnings: Sequence[str] = (),
    manifold: bool = False,
    outer: Optional[Sequence[bool]] = None,
    progress: Optional[ProgressRatio] = None,
) -> SurfaceMesh:
    """Turn oriented candidate facets into a ``SurfaceMesh``.

    ``facets``/``orthos`` are the accepted facets in the order used by
    ``orientation``.  With ``manifold=True`` only the sheet chosen by
    ``outer_sheet`` is emitted, oriented by that walk, so every ridge of
    the result bounds at most two facets.
    """
    pts = np.asarray(points, dtype=np.float64)
    d = pts.shape[1]
    signs = np.asarray(orientation.signs)
    if manifold and len(facets):
        signs = outer_sheet(pts, facets, orthos, orientation, outer, progress)
    keep = [i for i in range(len(facets)) if signs[i] != 0]
    if not keep:
        return SurfaceMesh.empty(d, warnings)

    used = sorted({int(v) for i in keep for v in facets[i]})
    remap = {old: new for new, old in enumerate(used)}

    out_facets: List[Tuple[int, ...]] = []
    out_normals: List[np.ndarray] = []
    normal_rows: List[List[int]] = []
    shading: List[np.ndarray] = []
    slots: Dict[Tuple[int, int], int] = {}
    for i in keep:
        sign = int(signs[i])
        normal = np.asarray(orthos[i], dtype=np.float64) * sign
        ordered = orient_vertices(pts, facets[i], normal)
        flips = None
        if normal_types is not None and poles is not None:
            flips = _corner_flips(normal_types[i], len(facets[i]))
        if flips is None:
            normal_rows.append([-1] * d)
        else:
            corner = {int(v): f * sign for v, f in zip(facets[i], flips)}
            row = []
            for v in ordered:
                key = (v, corner[v])
                slot = slots.get(key)
                if slot is None:
                    slot = len(shading)
                    slots[key] = slot
                    shading.append(np.asarray(poles[v], dtype=np.float64) * corner[v])
                row.append(slot)
            normal_rows.append(row)
        out_facets.append(tuple(remap[v] for v in ordered))
        out_normals.append(normal)

    return SurfaceMesh.build(
        vertices=pts[used],
        normals=np.array(shading).reshape(-1, d),
        facets=np.array(out_facets),
        facet_normals=np.array(out_normals),
        normal_indices=np.array(normal_rows),
        source_indices=np.array(used),
        warnings=warnings,
    )
