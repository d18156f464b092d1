"""Orchestrator for private Clique proof-of-authority networks."""

__version__ = "0.1.0"
