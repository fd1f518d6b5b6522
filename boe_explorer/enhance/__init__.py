"""Deterministic keyword classifiers attached to normalized records."""
