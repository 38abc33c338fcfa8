"""Normalization and classification merge."""
