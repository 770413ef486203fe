"""Packaged data files (builtin presets)."""
