# src/__init__.py — v1
"""intentphrase: checkpointed intent phrase generation pipeline."""

from intentphrase.version import __version__

__all__ = ["__version__"]
