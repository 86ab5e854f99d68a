import numpy as np
import pytest

from cocone.core.errors import DegenerateInputError, NumericOverflowError
from cocone.core.geometry import (
    NumericPolicy,
    circumcenters,
    determinant,
    discretize,
    integer_ortho,
    integer_rank,
    lift,
    orient_vertices,
    ortho,
)


def test_determinant_is_exact() -> None:
    assert determinant([[4, 3], [6, 3]]) == -6
    assert determinant([[6, 1, 1], [4, -2, 5], [2, 8, 7]]) == -306
    assert determinant([[0, 1], [1, 0]]) == -1
    assert determinant([[1, 2], [2, 4]]) == 0
    big = 10 ** 20
    assert determinant([[big, 1], [1, big]]) == big * big - 1


def test_integer_rank() -> None:
    assert integer_rank([[1, 2, 3], [2, 4, 6]]) == 1
    assert integer_rank([[1, 2, 3], [2, 4, 6], [0, 1, 0]]) == 2
    assert integer_rank([[1, 0, 0], [0, 1, 0], [0, 0, 1]]) == 3


def test_integer_ortho_is_orthogonal() -> None:
    assert integer_ortho([[1, 0, 0], [0, 1, 0]]) == [0, 0, 1]
    rng = np.random.default_rng(3)
    for d in (2, 3, 4, 5):
        vectors = rng.integers(-1000, 1000, size=(d - 1, d)).tolist()
        n = integer_ortho(vectors)
        for v in vectors:
            assert sum(a * b for a, b in zip(n, v)) == 0


def test_float_ortho_matches_cross_product() -> None:
    a = np.array([1.0, 2.0, 3.0])
    b = np.array([-2.0, 0.5, 4.0])
    np.testing.assert_allclose(ortho(np.vstack([a, b])), np.cross(a, b))


def test_circumcenters() -> None:
    pts = np.array([[0.0, 0.0], [2.0, 0.0], [0.0, 2.0]])
    np.testing.assert_allclose(circumcenters(pts, np.array([[0, 1, 2]])), [[1.0, 1.0]])
    pts3 = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    np.testing.assert_allclose(circumcenters(pts3, np.array([[0, 1, 2, 3]])), [[0.5, 0.5, 0.5]])


def test_orient_vertices_follows_normal() -> None:
    pts = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    assert orient_vertices(pts, (0, 1, 2), np.array([0.0, 0.0, 1.0])) == (0, 1, 2)
    assert orient_vertices(pts, (0, 1, 2), np.array([0.0, 0.0, -1.0])) == (0, 2, 1)


def test_numeric_policy_selects_number_type() -> None:
    small = np.array([[0, 0, 0], [255, 255, 255]], dtype=np.int64)
    assert NumericPolicy.for_points(small).dtype is np.int64
    assert NumericPolicy.for_points(small, "exact").exact

    q = np.array([[1 << 23, 1 << 23, 1 << 23]], dtype=np.int64)
    lifted = lift(q)
    assert NumericPolicy.for_points(lifted).exact
    with pytest.raises(NumericOverflowError):
        NumericPolicy.for_points(lifted, "int64")


def test_discretize_drops_duplicates_keeping_first() -> None:
    pts = np.array([[0.0, 0.0], [1.0, 1.0], [0.0, 0.0], [1.0, 0.0]])
    q, index = discretize(pts, bits=8)
    np.testing.assert_array_equal(index, [0, 1, 3])
    assert q.shape == (3, 2)
    assert np.abs(q).max() <= 255


def test_discretize_rejects_bad_input() -> None:
    with pytest.raises(DegenerateInputError):
        discretize(np.array([[1.0, 2.0], [1.0, 2.0]]))
    with pytest.raises(DegenerateInputError):
        discretize(np.array([[np.nan, 0.0], [1.0, 2.0]]))
    with pytest.raises(ValueError):
        discretize(np.array([[0.0, 0.0], [1.0, 2.0]]), bits=1)


def test_lift_uses_python_integers() -> None:
    q = np.array([[3, 4], [1 << 30, 0]], dtype=np.int64)
    lifted = lift(q)
    assert lifted[0, 2] == 25
    assert lifted[1, 2] == 1 << 60
