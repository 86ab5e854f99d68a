from __future__ import annotations
from typing import Dict
import numpy as np
import pathlib

from .surface import SurfaceMesh
from .utils import get_logger

_log = get_logger()


# Minimal PLY and NPZ mesh writers
class PlyMeshWriter:
    """ASCII PLY with vertex positions and oriented triangles (3-D meshes only)."""

    def __init__(self, path: str) -> None:
        self.path = path

    def write(self, mesh: SurfaceMesh) -> None:
        if mesh.dimension != 3:
            raise ValueError(f"PLY output requires a 3-D mesh, got {mesh.dimension}-D")
        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write("ply\nformat ascii 1.0\n")
            for warning in mesh.warnings:
                f.write(f"comment {warning}\n")
            f.write(f"element vertex {mesh.vertex_count}\n")
            f.write("property float x\nproperty float y\nproperty float z\n")
            f.write(f"element face {mesh.facet_count}\n")
            f.write("property list uchar int vertex_indices\n")
            f.write("end_header\n")
            for x, y, z in mesh.vertices:
                f.write(f"{float(x)} {float(y)} {float(z)}\n")
            for a, b, c in mesh.facets:
                f.write(f"3 {int(a)} {int(b)} {int(c)}\n")
        _log.info("Wrote %d facets to %s", mesh.facet_count, path.name)


class NpzMeshWriter:
    """Every ``SurfaceMesh`` array in one compressed ``.npz``; works in any dimension."""

    def __init__(self, path: str) -> None:
        self.path = path

    def write(self, mesh: SurfaceMesh) -> None:
        path = pathlib.Path(self.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        out: Dict[str, np.ndarray] = {
            "vertices": mesh.vertices,
            "normals": mesh.normals,
            "facets": mesh.facets,
            "facet_normals": mesh.facet_normals,
            "normal_indices": mesh.normal_indices,
            "texcoords": mesh.texcoords,
            "materials": mesh.materials,
            "source_indices": mesh.source_indices,
            "warnings": np.array(mesh.warnings, dtype=str),
        }
        np.savez_compressed(path, **out)
        _log.info("Wrote %d facets to %s", mesh.facet_count, path.name)
