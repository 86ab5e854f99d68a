"""Programmatic entry points mirroring the CLI."""

from .run import ConfigRunResult, reconstruct_from_config

__all__ = ["ConfigRunResult", "reconstruct_from_config"]
