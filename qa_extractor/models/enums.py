"""Enumeration types for jobs and providers."""

from enum import Enum


class JobState(str, Enum):
    """Lifecycle state of a background job."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCESS, JobState.ERROR, JobState.CANCELLED)


class AiProvider(str, Enum):
    """Supported LLM providers."""

    MISTRAL = "mistral"
    OPENAI = "openai"

    @classmethod
    def normalize(cls, value: "str | AiProvider | None") -> "AiProvider":
        """Map free-form input to a provider; anything but openai is mistral."""
        if isinstance(value, AiProvider):
            return value
        if str(value or "").strip().lower() == "openai":
            return cls.OPENAI
        return cls.MISTRAL
