from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .graph import kruskal
from .progress import ProgressRatio, check_cancelled, report
from .utils import get_logger

_log = get_logger()

Ridge = Tuple[int, ...]

# Folds flatter than this (sine of the fold angle) are decided by the ortho dot product.
_FLAT_FOLD = 1e-9


@dataclass(frozen=True)
class SpanningEdge:
    a: int
    b: int
    weight: float


@dataclass(frozen=True)
class Orientation:
    signs: np.ndarray
    component: np.ndarray
    edges: Tuple[SpanningEdge, ...]

    @property
    def component_count(self) -> int:
        return int(self.component.max()) + 1 if len(self.component) else 0

    @staticmethod
    def empty() -> "Orientation":
        return Orientation(np.zeros(0, dtype=np.int8), np.zeros(0, dtype=np.int64), ())

    def oriented(self, orthos: np.ndarray) -> np.ndarray:
        return np.asarray(orthos, dtype=np.float64) * self.signs[:, None]


def ridge_adjacency(facets: Sequence[Sequence[int]]) -> Dict[Tuple[int, int], Ridge]:
    """Pairs of facets ``(a, b)``, ``a < b``, sharing an (N-2)-face, mapped to that face."""
    owners: Dict[Ridge, List[int]] = {}
    for fid, verts in enumerate(facets):
        v = tuple(sorted(int(x) for x in verts))
        for k in range(len(v)):
            owners.setdefault(v[:k] + v[k + 1:], []).append(fid)
    pairs: Dict[Tuple[int, int], Ridge] = {}
    for ridge, ids in owners.items():
        for i in range(len(ids)):
            for j in range(i + 1, len(ids)):
                pairs.setdefault((min(ids[i], ids[j]), max(ids[i], ids[j])), ridge)
    return pairs


def consistent_orientation(
    points: np.ndarray,
    parent: Sequence[int],
    child: Sequence[int],
    ridge: Ridge,
    parent_ortho: np.ndarray,
    child_ortho: np.ndarray,
) -> bool:
    """Whether ``child_ortho`` points to the same side of the surface as ``parent_ortho``.

    Across a fold, each facet's opposite vertex lies on the same side of the
    other facet's hyperplane exactly when both orthos face the same side.
    """
    r = points[ridge[0]]
    p = points[next(v for v in parent if v not in ridge)] - r
    c = points[next(v for v in child if v not in ridge)] - r
    a = float(np.dot(parent_ortho, c)) / max(float(np.linalg.norm(c)), 1e-300)
    b = float(np.dot(child_ortho, p)) / max(float(np.linalg.norm(p)), 1e-300)
    if abs(a) <= _FLAT_FOLD or abs(b) <= _FLAT_FOLD:
        return float(np.dot(parent_ortho, child_ortho)) >= 0.0
    return (a > 0.0) == (b > 0.0)


class OrientationPropagator:
    """Consistent facet orientation by propagation along a minimum spanning tree.

    Nodes are facets, edges join facets sharing a ridge with weight
    ``1 - cos`` of the consistently oriented dihedral, so that the tree
    prefers flat joins and takes fold-backs last.  Each
    component's root (smallest id) faces away from the component centroid.
    """

    def __init__(self, points: np.ndarray) -> None:
        self.points = np.asarray(points, dtype=np.float64)

    def _join_weight(
        self,
        facets: Sequence[Sequence[int]],
        orthos: np.ndarray,
        a: int,
        b: int,
        ridge: Ridge,
    ) -> float:
        """``1 - cos`` of the angle between the two orthos once oriented consistently.

        A flat join costs about 0 and a facet folded back onto its neighbour
        about 2, whatever the raw ortho signs are.
        """
        dot = float(np.dot(orthos[a], orthos[b]))
        same = consistent_orientation(self.points, facets[a], facets[b], ridge, orthos[a], orthos[b])
        return 1.0 - (dot if same else -dot)

    def orient(
        self,
        facets: Sequence[Sequence[int]],
        orthos: np.ndarray,
        progress: Optional[ProgressRatio] = None,
    ) -> Orientation:
        count = len(facets)
        if count == 0:
            return Orientation.empty()
        orthos = np.asarray(orthos, dtype=np.float64)
        pairs = ridge_adjacency(facets)
        weighted = (
            (self._join_weight(facets, orthos, a, b, ridge), a, b) for (a, b), ridge in pairs.items()
        )
        tree = kruskal(count, weighted, progress)
        report(progress, 0.5, 1.0)

        adjacency: List[List[int]] = [[] for _ in range(count)]
        for a, b, _ in tree:
            adjacency[a].append(b)
            adjacency[b].append(a)
        for nbrs in adjacency:
            nbrs.sort()

        centers = np.array([self.points[list(f)].mean(axis=0) for f in facets])
        signs = np.zeros(count, dtype=np.int8)
        component = np.full(count, -1, dtype=np.int64)
        n_comp = 0
        for root in range(count):
            if component[root] >= 0:
                continue
            check_cancelled(progress)
            members = [root]
            component[root] = n_comp
            stack = [root]
            while stack:
                node = stack.pop()
                for nxt in adjacency[node]:
                    if component[nxt] < 0:
                        component[nxt] = n_comp
                        members.append(nxt)
                        stack.append(nxt)
            centroid = centers[members].mean(axis=0)
            signs[root] = 1 if float(np.dot(orthos[root], centers[root] - centroid)) >= 0.0 else -1

            stack = [root]
            visited = {root}
            while stack:
                node = stack.pop()
                node_ortho = orthos[node] * signs[node]
                for nxt in adjacency[node]:
                    if nxt in visited:
                        continue
                    visited.add(nxt)
                    ridge = pairs[(min(node, nxt), max(node, nxt))]
                    same = consistent_orientation(self.points, facets[node], facets[nxt], ridge, node_ortho, orthos[nxt])
                    signs[nxt] = 1 if same else -1
                    stack.append(nxt)
            n_comp += 1
        report(progress, 1.0, 1.0)
        _log.info("Orientation: %d facets in %d component(s), %d tree edges", count, n_comp, len(tree))
        signs.setflags(write=False)
        component.setflags(write=False)
        return Orientation(signs, component, tuple(SpanningEdge(a, b, w) for a, b, w in tree))


def orient_facets(
    points: np.ndarray,
    facets: Sequence[Sequence[int]],
    orthos: np.ndarray,
    progress: Optional[ProgressRatio] = None,
) -> Orientation:
    return OrientationPropagator(points).orient(facets, orthos, progress)
