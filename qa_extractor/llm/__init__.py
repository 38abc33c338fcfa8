"""LLM provider access: runtime config, retries, parsing and the client."""

from qa_extractor.llm.client import AIClient, TranscriptionSegment
from qa_extractor.llm.runtime import ProviderRuntimeConfig, build_runtime_config

__all__ = [
    "AIClient",
    "ProviderRuntimeConfig",
    "TranscriptionSegment",
    "build_runtime_config",
]
