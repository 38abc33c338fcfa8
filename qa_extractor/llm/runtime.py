"""Per-job provider runtime configuration."""

from dataclasses import dataclass, field

from qa_extractor.config.settings import Settings
from qa_extractor.errors import ConfigurationError
from qa_extractor.llm.retry import KeyRotator
from qa_extractor.models import AiProvider
from qa_extractor.services.provider_settings import ProviderSettings


@dataclass
class ProviderRuntimeConfig:
    """Resolved provider settings for one job."""

    provider: AiProvider
    api_keys: list[str]
    transcribe_api_key: str
    chat_url: str
    ocr_url: str
    transcribe_url: str
    chat_model: str
    ocr_model: str
    transcribe_model: str
    min_interval: float = 0.0
    max_attempts_per_key: int = 4
    rotator: KeyRotator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rotator = KeyRotator(self.api_keys)


def build_runtime_config(
    provider: AiProvider | str,
    provider_settings: ProviderSettings,
    settings: Settings,
) -> ProviderRuntimeConfig:
    """Resolve the runtime config for ``provider``.

    Mistral rotates across up to four keys; OpenAI uses its single key.

    Raises:
        ConfigurationError: The provider has no primary API key.
    """
    provider = AiProvider.normalize(provider)
    entry = getattr(provider_settings, provider.value)

    if not entry.api_key:
        raise ConfigurationError(f"Missing {provider.value.upper()} API key in settings.")

    if provider == AiProvider.MISTRAL:
        keys = [entry.api_key, entry.api_key2, entry.api_key3, entry.api_key4]
        min_interval = settings.mistral_chat_min_interval_seconds
        max_attempts = settings.mistral_chat_max_retries_per_key
    else:
        keys = [entry.api_key]
        min_interval = settings.openai_chat_min_interval_seconds
        max_attempts = settings.openai_chat_max_retries_per_key

    return ProviderRuntimeConfig(
        provider=provider,
        api_keys=keys,
        transcribe_api_key=entry.transcribe_api_key or entry.api_key,
        chat_url=entry.chat_endpoint,
        ocr_url=entry.ocr_endpoint,
        transcribe_url=entry.transcribe_endpoint,
        chat_model=entry.chat_model,
        ocr_model=entry.ocr_model,
        transcribe_model=entry.transcribe_model,
        min_interval=min_interval,
        max_attempts_per_key=max_attempts,
    )
