"""Duplex — dual-provider generative orchestration engine."""

__version__ = "0.1.0"
