"""Utility helpers for the DramaHub backend.

Submodules:
- settled: collect independent awaitables as success-or-failure results
"""

__all__: list[str] = []
