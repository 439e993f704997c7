"""Bundled content packs."""
