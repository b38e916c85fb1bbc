"""Bridges to third-party primitives (PyNaCl sealed boxes)."""
