"""Saved pages, their annotations and topical groups."""
