"""Configuration loading utilities for cocone."""

from .schema import (
    RunConfig,
    load_config,
)

__all__ = ["RunConfig", "load_config"]
