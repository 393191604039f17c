from app.services.llm.azure_openai_provider import AzureOpenAIProvider
from app.services.llm.base import LLMProvider, LLMResponse

__all__ = ["LLMProvider", "LLMResponse", "AzureOpenAIProvider"]
