"""Model providers and the query layer that chains them.

- Ollama: local models via the native /api endpoints
- OpenAI-compatible: hosted models (Groq, Together, Perplexity, ...)
"""

from op_monitor.providers.base import ModelProvider
from op_monitor.providers.chain import ModelQueryLayer, create_query_layer, fallback_result
from op_monitor.providers.ollama import OllamaProvider
from op_monitor.providers.openai_compat import OpenAICompatProvider
from op_monitor.providers.parsing import parse_response, strip_reasoning_tokens

__all__ = [
    "ModelProvider",
    "ModelQueryLayer",
    "OllamaProvider",
    "OpenAICompatProvider",
    "create_query_layer",
    "fallback_result",
    "parse_response",
    "strip_reasoning_tokens",
]
