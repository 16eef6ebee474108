"""Gated release pipeline: resolve, build, gate, publish, record."""

__version__ = "0.1.0"
