"""Trigram code index management: per-directory indexes, compact search, local web UI."""

__version__ = "0.1.0"
