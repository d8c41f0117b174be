"""Packaged data files (chapter table, default config)."""
