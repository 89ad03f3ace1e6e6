"""AI-assisted time entry generation."""

from harv.ai.context import AiContext, gather_context
from harv.ai.parsing import extract_json_object, proposals_from_response, validate_proposals
from harv.ai.pipeline import GenerationPipeline, GenerationReport
from harv.ai.prompt import build_prompt
from harv.ai.providers import (
    AIProvider,
    AnthropicProvider,
    LLMClientProvider,
    OpenAIProvider,
    ProviderName,
    create_provider,
)

__all__ = [
    "AIProvider",
    "AiContext",
    "AnthropicProvider",
    "GenerationPipeline",
    "GenerationReport",
    "LLMClientProvider",
    "OpenAIProvider",
    "ProviderName",
    "build_prompt",
    "create_provider",
    "extract_json_object",
    "gather_context",
    "proposals_from_response",
    "validate_proposals",
]
