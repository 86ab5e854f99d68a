import numpy as np

from cocone.core.orientation import orient_facets
from cocone.core.surface import extract_surface, outer_sheet

SQUARE = [(0, 1), (1, 2), (2, 3), (0, 3)]
SQUARE_ORTHOS = [[0.0, -1.0], [1.0, 0.0], [0.0, 1.0], [-1.0, 0.0]]


def _unit(rows) -> np.ndarray:
    rows = np.asarray(rows, dtype=np.float64)
    return rows / np.linalg.norm(rows, axis=1, keepdims=True)


def test_pocket_behind_a_vertex_is_skipped() -> None:
    points = np.array([[0, 0], [2, 0], [2, 2], [0, 2], [1, 0.3], [0.3, 1]], dtype=np.float64)
    facets = SQUARE + [(0, 4), (4, 5), (0, 5)]
    orthos = _unit(SQUARE_ORTHOS + [[0.3, -1.0], [0.7, 0.7], [-1.0, 0.3]])
    orientation = orient_facets(points, facets, orthos)
    assert orientation.component_count == 1

    signs = outer_sheet(points, facets, orthos, orientation, outer=[True] * 4 + [False] * 3)

    np.testing.assert_array_equal(signs != 0, [True] * 4 + [False] * 3)
    for verts, ortho, sign in zip(facets[:4], orthos[:4], signs[:4]):
        assert float(np.dot(ortho * sign, points[list(verts)].mean(axis=0) - [1.0, 1.0])) > 0.0


def test_fins_are_eroded_and_open_patches_kept() -> None:
    points = np.array(
        [[0, 0], [2, 0], [2, 2], [0, 2], [3, -1], [1, 1], [5, 0], [6, 1], [7, 0]], dtype=np.float64
    )
    facets = SQUARE + [(1, 4), (0, 5), (6, 7), (7, 8)]
    orthos = _unit(SQUARE_ORTHOS + [[1.0, 1.0], [1.0, -1.0], [-1.0, 1.0], [1.0, 1.0]])
    orientation = orient_facets(points, facets, orthos)

    signs = outer_sheet(points, facets, orthos, orientation)

    np.testing.assert_array_equal(signs != 0, [True] * 4 + [False, False, True, True])
    assert not signs.flags.writeable


def test_extract_surface_keeps_every_facet_unless_asked() -> None:
    points = np.array([[0, 0], [2, 0], [2, 2], [0, 2], [1, 0.3], [0.3, 1]], dtype=np.float64)
    facets = SQUARE + [(0, 4), (4, 5), (0, 5)]
    orthos = _unit(SQUARE_ORTHOS + [[0.3, -1.0], [0.7, 0.7], [-1.0, 0.3]])
    orientation = orient_facets(points, facets, orthos)

    assert extract_surface(points, facets, orthos, orientation).facet_count == 7
    mesh = extract_surface(points, facets, orthos, orientation, manifold=True, outer=[True] * 4 + [False] * 3)
    assert mesh.facet_count == 4
    assert mesh.vertex_count == 4
    np.testing.assert_array_equal(mesh.source_indices, [0, 1, 2, 3])
