"""
Physics kernels for hydroflux processes.

Design Rules:
1. Functions take floats or numpy arrays as input
2. Functions return floats or numpy arrays as output
3. No file I/O, no `self`, no state mutation
4. All physical constraints documented in docstrings
5. Numba JIT compiled with cache=True
"""

from hydroflux.process.kernels import canopy, transport

__all__ = [
    "canopy",
    "transport",
]
