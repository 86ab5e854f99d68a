import itertools

import numpy as np
import pytest

from cocone.core.delaunay import DelaunaySimplex, compute_delaunay, delaunay_facets
from cocone.core.errors import DegenerateInputError, NumericOverflowError
from cocone.core.geometry import determinant, discretize


def _assert_empty_spheres(points: np.ndarray, tri) -> None:
    """Exact in-sphere check on the grid coordinates the triangulation was built from."""
    q, index = discretize(points)
    assert len(index) == len(points)
    q = [[int(x) for x in row] for row in q]
    for simplex in tri.simplices:
        base = q[simplex.vertices[0]]
        rows = [[a - b for a, b in zip(q[v], base)] for v in simplex.vertices[1:]]
        lifted = [r + [sum(x * x for x in r)] for r in rows]
        far = [10 ** 12] + [0] * (len(base) - 1)
        outside = determinant(lifted + [far + [sum(x * x for x in far)]])
        assert outside != 0
        for p in range(len(q)):
            if p in simplex.vertices:
                continue
            d = [a - b for a, b in zip(q[p], base)]
            s = determinant(lifted + [d + [sum(x * x for x in d)]])
            assert s * outside >= 0, f"point {p} inside the circumsphere of {simplex.vertices}"


@pytest.mark.parametrize("dimension,count", [(2, 60), (3, 40)])
def test_random_triangulation_is_delaunay(dimension: int, count: int) -> None:
    rng = np.random.default_rng(dimension)
    points = rng.uniform(-1.0, 1.0, size=(count, dimension)).astype(np.float32)
    tri = compute_delaunay(points)
    assert tri.dimension == dimension
    _assert_empty_spheres(points, tri)


def test_simplices_cover_the_hull() -> None:
    spatial = pytest.importorskip("scipy.spatial")
    rng = np.random.default_rng(4)
    points = rng.uniform(-1.0, 1.0, size=(80, 2)).astype(np.float32)
    tri = compute_delaunay(points)
    area = 0.0
    for s in tri.simplices:
        a, b, c = tri.points[list(s.vertices)]
        area += abs(np.linalg.det(np.vstack([b - a, c - a]))) / 2.0
    assert area == pytest.approx(spatial.ConvexHull(points.astype(np.float64)).volume, rel=1e-5)


def test_cospherical_cube() -> None:
    cube = np.array(list(itertools.product((-1.0, 1.0), repeat=3)), dtype=np.float32)
    tri = compute_delaunay(cube)
    volume = 0.0
    for s in tri.simplices:
        p = tri.points[list(s.vertices)]
        volume += abs(np.linalg.det(p[1:] - p[0])) / 6.0
    assert volume == pytest.approx(8.0)
    assert sum(f.one_sided for f in tri.facets) == 12


def test_minimal_input_gives_one_simplex() -> None:
    tri = compute_delaunay(np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], dtype=np.float32))
    assert [s.vertices for s in tri.simplices] == [(0, 1, 2)]
    assert len(tri.facets) == 3
    assert all(f.one_sided for f in tri.facets)


def test_orthos_point_out_of_their_simplex() -> None:
    rng = np.random.default_rng(9)
    points = rng.normal(size=(50, 3)).astype(np.float32)
    tri = compute_delaunay(points)
    for s in tri.simplices:
        p = tri.points[list(s.vertices)]
        for i in range(4):
            n = s.ortho(i)
            assert np.isclose(np.linalg.norm(n), 1.0)
            facet_point = p[(i + 1) % 4]
            assert float(np.dot(n, p[i] - facet_point)) < 0.0
    for f in tri.facets:
        s0, s1 = f.simplices
        owner = tri.simplices[s0].vertices
        assert set(f.vertices) <= set(owner)
        opposite = next(v for v in owner if v not in f.vertices)
        assert float(np.dot(f.ortho, tri.points[opposite] - tri.points[f.vertices[0]])) < 0.0
        if s1 >= 0:
            assert set(f.vertices) <= set(tri.simplices[s1].vertices)


def test_delaunay_facets_pairs_shared_facets() -> None:
    orthos = np.zeros((3, 2))
    a = DelaunaySimplex((0, 1, 2), orthos)
    b = DelaunaySimplex((1, 2, 3), orthos)
    facets = delaunay_facets([a, b])
    shared = [f for f in facets if not f.one_sided]
    assert [f.vertices for f in shared] == [(1, 2)]
    assert shared[0].simplices == (0, 1)
    assert len(facets) == 5


def test_duplicates_are_ignored() -> None:
    points = np.array([[0, 0], [1, 0], [0, 1], [1, 1], [1, 0]], dtype=np.float32)
    tri = compute_delaunay(points)
    assert len(tri.simplices) == 2
    assert all(4 not in s.vertices for s in tri.simplices)


def test_degenerate_and_overflow() -> None:
    with pytest.raises(DegenerateInputError):
        compute_delaunay(np.array([[0, 0], [1, 1], [2, 2], [3, 3]], dtype=np.float32))
    with pytest.raises(DegenerateInputError):
        compute_delaunay(np.array([[0, 0, 0], [1, 0, 0]], dtype=np.float32))
    rng = np.random.default_rng(0)
    with pytest.raises(NumericOverflowError):
        compute_delaunay(rng.normal(size=(10, 3)).astype(np.float32), precision="int64")


def test_int64_predicates_on_a_coarse_grid() -> None:
    tri = compute_delaunay(np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], dtype=np.float32), bits=4, precision="int64")
    assert len(tri.simplices) == 1
