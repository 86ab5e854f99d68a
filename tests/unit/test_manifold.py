import itertools
import math

import numpy as np
import pytest

from cocone.core.delaunay import compute_delaunay
from cocone.core.errors import CancelledError
from cocone.core.manifold import (
    COCONE_COSINE,
    CoconeParameters,
    ManifoldClassifier,
    NoNormals,
    ReverseNormals,
    UseNormals,
    dual_edge_meets_cocone,
    normal_type,
)
from cocone.core.progress import ProgressRatio

ORIGIN = np.zeros(3)
UP = np.array([0.0, 0.0, 1.0])


def _ellipse(count: int) -> np.ndarray:
    t = 2.0 * np.pi * np.arange(count) / count
    return np.column_stack([2.0 * np.cos(t), np.sin(t)]).astype(np.float32)


@pytest.mark.parametrize(
    "start,direction,ray,expected",
    [
        ((0, 0, 1), (1, 0, -1), False, True),    # ends on the tangent plane
        ((0, 0, 1), (0, 0, 1), False, False),    # runs along the pole
        ((0, 0, 1), (1, 0, 0), True, True),      # ray flattening out
        ((0, 0, 1), (0, 0, 1), True, False),     # ray running away along the pole
        ((1, 0, 1), (0, 0, -2), False, True),    # crosses the band in the middle
        ((-1, 0, 2), (2, 0, 0), False, False),   # stays above the band
    ],
)
def test_dual_edge_meets_cocone(start, direction, ray, expected) -> None:
    hit = dual_edge_meets_cocone(
        np.asarray(start, dtype=float), np.asarray(direction, dtype=float), ray, ORIGIN, UP, COCONE_COSINE
    )
    assert hit is expected


def test_normal_type_variants() -> None:
    n = np.array([0.0, 0.0, 1.0])
    assert normal_type(n, [n, None, n], 0.7) == NoNormals()
    assert normal_type(n, [n, n, n], 0.7) == UseNormals()
    assert normal_type(n, [-n, -n, -n], 0.7) == UseNormals(negate=True)
    assert normal_type(n, [n, -n, n], 0.7) == ReverseNormals((False, True, False))
    tilted = np.array([0.0, math.sin(1.0), math.cos(1.0)])
    assert normal_type(n, [n, tilted, n], 0.7) == NoNormals()


def test_tetrahedron_accepts_every_facet() -> None:
    points = np.array([[1, 1, 1], [1, -1, -1], [-1, 1, -1], [-1, -1, 1]], dtype=np.float32)
    tri = compute_delaunay(points)
    data = ManifoldClassifier().classify(tri)
    assert data.cocone_facets() == [0, 1, 2, 3]
    for i, v in enumerate(data.vertices):
        assert v.has_pole
        np.testing.assert_allclose(v.positive_norm, points[i] / np.sqrt(3.0), atol=1e-6)
        # the only Voronoi vertex is the centre, on the negative side of the pole
        assert v.height == pytest.approx(math.sqrt(3.0))
        assert v.radius == 0.0
        assert len(v.cocone_neighbors) == 3
    assert all(f.normal == NoNormals() for f in data.facets)


def test_cube_accepts_only_hull_facets() -> None:
    cube = np.array(list(itertools.product((-1.0, 1.0), repeat=3)), dtype=np.float32)
    tri = compute_delaunay(cube)
    data = ManifoldClassifier().classify(tri)
    hull = [i for i, f in enumerate(tri.facets) if f.one_sided]
    assert data.cocone_facets() == hull
    assert len(hull) == 12


def test_ellipse_keeps_the_boundary_polygon() -> None:
    points = _ellipse(96)
    tri = compute_delaunay(points)
    data = ManifoldClassifier().classify(tri)
    accepted = data.cocone_facets()
    assert len(accepted) == 96
    edges = {tuple(sorted(tri.facets[i].vertices)) for i in accepted}
    assert edges == {tuple(sorted((k, (k + 1) % 96))) for k in range(96)}
    assert all(isinstance(data.facets[i].normal, UseNormals) for i in accepted)
    for i, v in enumerate(data.vertices):
        assert float(np.dot(v.positive_norm, points[i])) > 0.0


def test_quorum_relaxes_acceptance() -> None:
    rng = np.random.default_rng(2)
    points = rng.normal(size=(60, 3)).astype(np.float32)
    tri = compute_delaunay(points)
    strict = set(ManifoldClassifier().classify(tri).cocone_facets())
    loose = set(ManifoldClassifier(CoconeParameters(quorum=1)).classify(tri).cocone_facets())
    assert strict <= loose


def test_bound_mode_requires_an_interior_vertex() -> None:
    points = _ellipse(64)
    tri = compute_delaunay(points)
    data = ManifoldClassifier(CoconeParameters(bound=True)).classify(tri)
    for i in data.cocone_facets():
        verts = tri.facets[i].vertices
        assert any(data.interior[v] for v in verts)
        for v, flag in zip(verts, data.facets[i].cocone_vertex):
            if data.interior[v]:
                assert flag


def test_classification_can_be_cancelled() -> None:
    tri = compute_delaunay(_ellipse(32))
    progress = ProgressRatio()
    progress.cancel()
    with pytest.raises(CancelledError):
        ManifoldClassifier().classify(tri, progress)
