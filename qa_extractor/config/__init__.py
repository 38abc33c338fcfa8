"""Configuration package."""

from qa_extractor.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
