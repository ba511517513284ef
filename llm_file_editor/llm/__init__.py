from .base import CompletionRequest, CompletionResponse, LLMClient, ProviderConfig
from .openai_client import OpenAIClient
from .anthropic_client import AnthropicClient
from .router import ActiveProvider, ModelSelection, ProviderRouter
