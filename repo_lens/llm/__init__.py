from .base import LLMClient, LLMError
from .openai_client import OpenAIClient

__all__ = ["LLMClient", "LLMError", "OpenAIClient"]
