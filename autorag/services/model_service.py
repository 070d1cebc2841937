"""
Model service for LLM provider management.
Resolves the configured model string to a generation provider.
"""
from typing import Tuple

from ..config import Settings
from ..openai_client import DEFAULT_MODEL as DEFAULT_OPENAI_MODEL, OpenAIGenerator
from ..ollama_client import OllamaGenerator


def resolve_model(model_string: str = None) -> Tuple[str, str]:
    """
    Resolve a model string to provider and model name.

    Args:
        model_string: Format "provider:model_name" (e.g., "openai:gpt-4o-mini")
                     or None for default

    Returns:
        Tuple of (provider, model_name)

    Examples:
        >>> resolve_model("openai:gpt-4o-mini")
        ('openai', 'gpt-4o-mini')

        >>> resolve_model("ollama:qwen2.5:7b")
        ('ollama', 'qwen2.5:7b')

        >>> resolve_model(None)
        ('openai', 'gpt-4o-mini')
    """
    if not model_string:
        return "openai", DEFAULT_OPENAI_MODEL

    if model_string.startswith("openai:"):
        provider = "openai"
        model_name = model_string[len("openai:"):]
    elif model_string.startswith("ollama:"):
        provider = "ollama"
        model_name = model_string[len("ollama:"):]
    else:
        # Fallback to default if format is unexpected
        return "openai", DEFAULT_OPENAI_MODEL

    if not model_name:
        return "openai", DEFAULT_OPENAI_MODEL

    return provider, model_name


def build_generator(settings: Settings):
    """Construct the generation provider named by LLM_MODEL."""
    provider, model_name = resolve_model(settings.llm_model)
    if provider == "ollama":
        return OllamaGenerator(model=model_name, base_url=settings.ollama_url)
    return OpenAIGenerator(api_key=settings.openai_api_key, model=model_name)
