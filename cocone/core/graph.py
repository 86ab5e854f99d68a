from __future__ import annotations
from typing import Iterable, List, Optional, Tuple

import numpy as np

from .progress import ProgressRatio, check_cancelled, report


class DisjointSets:
    """Union-find over integer ids with path halving and union by rank."""

    def __init__(self, count: int) -> None:
        self.parent = list(range(count))
        self.rank = [0] * count

    def find(self, x: int) -> int:
        parent = self.parent
        while parent[x] != x:
            parent[x] = parent[parent[x]]
            x = parent[x]
        return x

    def union(self, a: int, b: int) -> bool:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.rank[ra] < self.rank[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        if self.rank[ra] == self.rank[rb]:
            self.rank[ra] += 1
        return True


def kruskal(
    count: int,
    edges: Iterable[Tuple[float, int, int]],
    progress: Optional[ProgressRatio] = None,
) -> List[Tuple[int, int, float]]:
    """Minimum spanning forest of ``count`` nodes.

    ``edges`` are ``(weight, a, b)``; ties are broken by ``(a, b)`` so the
    forest does not depend on input order.  Returns ``(a, b, weight)``.
    """
    ordered = sorted((w, min(a, b), max(a, b)) for w, a, b in edges if a != b)
    sets = DisjointSets(count)
    tree: List[Tuple[int, int, float]] = []
    for step, (w, a, b) in enumerate(ordered):
        if step % 1024 == 0:
            check_cancelled(progress)
        if sets.union(a, b):
            tree.append((a, b, w))
            if len(tree) == count - 1:
                break
    return tree


def simplex_edges(simplices: np.ndarray) -> np.ndarray:
    """Unique undirected edges (a < b) of a set of simplices."""
    simplices = np.asarray(simplices, dtype=np.int64)
    k = simplices.shape[1] if simplices.ndim == 2 else 0
    if simplices.size == 0 or k < 2:
        return np.zeros((0, 2), dtype=np.int64)
    pairs = [np.sort(simplices[:, [i, j]], axis=1) for i in range(k) for j in range(i + 1, k)]
    return np.unique(np.vstack(pairs), axis=0)


def point_minimum_spanning_tree(
    points: np.ndarray,
    simplices: np.ndarray,
    progress: Optional[ProgressRatio] = None,
) -> List[Tuple[int, int, float]]:
    """Euclidean minimum spanning tree of a point cloud.

    The Euclidean MST is a subgraph of the Delaunay graph, so only the edges
    of ``simplices`` are considered.  Points not touched by any simplex stay
    isolated.
    """
    pts = np.asarray(points, dtype=np.float64)
    edges = simplex_edges(simplices)
    if len(edges) == 0:
        return []
    lengths = np.linalg.norm(pts[edges[:, 0]] - pts[edges[:, 1]], axis=1)
    tree = kruskal(
        len(pts),
        ((float(w), int(a), int(b)) for w, (a, b) in zip(lengths, edges)),
        progress,
    )
    report(progress, 1.0, 1.0)
    return tree
