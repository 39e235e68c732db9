"""Saved command macros (flows) and their persistence."""
