from __future__ import annotations

import math
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, model_validator

from ..core.geometry import DEFAULT_BITS, MAX_BITS
from ..examples.synthetic import point_object_names


class ObjectSourceConfig(BaseModel):
    kind: Literal["object"]
    name: str = "ellipsoid"
    point_count: int = Field(1000, ge=1)
    dimension: int = Field(3, ge=2, le=6)
    seed: Optional[int] = None

    @model_validator(mode="after")
    def _validate_object(self) -> "ObjectSourceConfig":
        available = point_object_names(self.dimension)
        if self.name not in available:
            raise ValueError(
                f"Point object '{self.name}' is not available in {self.dimension} dimensions; choose from {available}"
            )
        return self


class FileSourceConfig(BaseModel):
    kind: Literal["file"]
    path: Path


SourceConfig = Annotated[
    Union[ObjectSourceConfig, FileSourceConfig],
    Field(discriminator="kind"),
]


class ReconstructionConfigModel(BaseModel):
    mode: Literal["cocone", "bound_cocone", "convex_hull"] = "cocone"
    bits: int = Field(DEFAULT_BITS, ge=2, le=MAX_BITS)
    precision: Literal["auto", "int64", "exact"] = "auto"
    cocone_cosine: float = Field(math.cos(3.0 * math.pi / 8.0), gt=0.0, lt=1.0)
    limit_cosine: float = Field(0.7, ge=0.0, le=1.0)
    quorum: Optional[int] = Field(None, ge=1)
    rho: float = Field(0.3, gt=0.0)
    alpha: float = Field(0.14, gt=0.0, lt=math.pi / 2.0)
    seed: int = 0
    strict_empty: bool = False


class OutputConfig(BaseModel):
    path: Path
    format: Literal["ply", "npz"] = "ply"


class RunConfig(BaseModel):
    source: SourceConfig
    reconstruction: ReconstructionConfigModel = ReconstructionConfigModel()
    output: OutputConfig

    @model_validator(mode="after")
    def _check_output(self) -> "RunConfig":
        if isinstance(self.source, ObjectSourceConfig):
            if self.output.format == "ply" and self.source.dimension != 3:
                raise ValueError("format 'ply' requires a 3-dimensional source; use 'npz'")
            if self.reconstruction.quorum is not None and self.reconstruction.quorum > self.source.dimension:
                raise ValueError("quorum cannot exceed the number of facet vertices (the dimension)")
        return self


def load_config(path: str | Path) -> RunConfig:
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError("Configuration root must be a mapping.")
    cfg = RunConfig.model_validate(data)
    cfg.output.path = (path.parent / cfg.output.path).resolve()
    if isinstance(cfg.source, FileSourceConfig) and not cfg.source.path.is_absolute():
        cfg.source.path = (path.parent / cfg.source.path).resolve()
    return cfg
