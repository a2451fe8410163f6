"""Sidecar that detects finished Claude Code sessions and publishes their outcome."""

__version__ = "0.1.0"

__all__ = ["__version__"]
