"""Reconstruction stages: hull, Delaunay, cocone classification, orientation, extraction."""
