"""
Equalizer Tools - comparison tools built on the engine utils.

Submodules:
- equalize: WBS equalization of contractor proposals (tree aggregation,
  node drill-down, proposal item tagging)
"""

from tools import equalize

__all__ = [
    "equalize",
]
