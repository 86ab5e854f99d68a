"""Cocone – N-dimensional surface reconstruction from point clouds.

This package contains the reconstruction pipeline:
- Exact integer convex hull in any dimension (core.hull)
- Delaunay triangulation through the lifting map (core.delaunay)
- Voronoi pole estimation and cocone facet selection (core.manifold)
- Orientation along a minimum spanning tree of facets (core.orientation)
- Immutable output mesh and writers (core.surface, core.exporter)
- High-level Reconstructor orchestrator (core.pipeline)

Every stage reports progress to, and can be cancelled through, a ProgressRatio.
"""

from .core.errors import (
    ReconstructionError, DegenerateInputError, NumericOverflowError,
    CancelledError, EmptyResultError,
)
from .core.progress import ProgressRatio
from .core.geometry import NumericPolicy, discretize
from .core.hull import ConvexHullBuilder, ConvexHullFacet, compute_convex_hull
from .core.delaunay import (DelaunaySimplex, DelaunayFacet, DelaunayTriangulation,
                            compute_delaunay, delaunay_facets)
from .core.manifold import (
    ManifoldClassifier, ManifoldVertex, ManifoldFacet, CoconeParameters,
    NoNormals, UseNormals, ReverseNormals,
)
from .core.graph import point_minimum_spanning_tree
from .core.orientation import Orientation, OrientationPropagator, SpanningEdge, orient_facets
from .core.surface import SurfaceMesh, extract_surface
from .core.exporter import PlyMeshWriter, NpzMeshWriter
from .core.pipeline import Reconstructor, ReconstructionConfig, ReconstructionResult, reconstruct
