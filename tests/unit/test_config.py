from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from cocone.config import RunConfig, load_config
from cocone.config.schema import FileSourceConfig, ObjectSourceConfig


def _dump(path: Path, data: dict) -> Path:
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f)
    return path


def test_object_config_defaults(tmp_path: Path) -> None:
    cfg_path = _dump(
        tmp_path / "run.yaml",
        {"source": {"kind": "object", "name": "torus", "point_count": 300}, "output": {"path": "out/torus.ply"}},
    )
    cfg = load_config(cfg_path)
    assert isinstance(cfg.source, ObjectSourceConfig)
    assert cfg.source.dimension == 3
    assert cfg.reconstruction.mode == "cocone"
    assert cfg.reconstruction.quorum is None
    assert cfg.output.format == "ply"
    assert cfg.output.path == (tmp_path / "out" / "torus.ply").resolve()


def test_file_source_is_resolved_next_to_the_config(tmp_path: Path) -> None:
    cfg_path = _dump(
        tmp_path / "run.yaml",
        {
            "source": {"kind": "file", "path": "cloud.npy"},
            "reconstruction": {"mode": "bound_cocone", "bits": 20, "precision": "exact"},
            "output": {"path": "mesh.npz", "format": "npz"},
        },
    )
    cfg = load_config(cfg_path)
    assert isinstance(cfg.source, FileSourceConfig)
    assert cfg.source.path == (tmp_path / "cloud.npy").resolve()
    assert cfg.reconstruction.bits == 20


def test_ply_needs_three_dimensions() -> None:
    with pytest.raises(ValidationError):
        RunConfig.model_validate(
            {"source": {"kind": "object", "dimension": 4}, "output": {"path": "x.ply", "format": "ply"}}
        )
    cfg = RunConfig.model_validate(
        {"source": {"kind": "object", "dimension": 4}, "output": {"path": "x.npz", "format": "npz"}}
    )
    assert cfg.source.dimension == 4


@pytest.mark.parametrize(
    "source,reconstruction",
    [
        ({"kind": "object", "name": "teapot"}, {}),
        ({"kind": "object", "name": "mobius_strip", "dimension": 2}, {}),
        ({"kind": "object", "dimension": 7}, {}),
        ({"kind": "object"}, {"quorum": 4}),
        ({"kind": "object"}, {"mode": "crust"}),
        ({"kind": "object"}, {"bits": 60}),
        ({"kind": "mesh", "path": "a.ply"}, {}),
    ],
)
def test_invalid_configs(source: dict, reconstruction: dict) -> None:
    with pytest.raises(ValidationError):
        RunConfig.model_validate(
            {"source": source, "reconstruction": reconstruction, "output": {"path": "x.npz", "format": "npz"}}
        )


def test_root_must_be_a_mapping(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)
