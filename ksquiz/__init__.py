"""ksquiz: an offline Key Stage quiz engine backed by an embedded SQLite store."""

__version__ = "0.3.0"
