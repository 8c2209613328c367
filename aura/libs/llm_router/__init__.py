"""Model-agnostic LLM routing utilities."""

from .base import BaseProvider, ProviderHTTPError
from .openrouter import OPENROUTER_DEFAULT_BASE_URL, OpenRouterProvider
from .router import AllProvidersFailedError, LLMRouteConfig, LLMRouter, RetryPolicy, is_retriable
from .types import LLMResponse, Task

__all__ = [
    "AllProvidersFailedError",
    "BaseProvider",
    "LLMResponse",
    "LLMRouteConfig",
    "LLMRouter",
    "OPENROUTER_DEFAULT_BASE_URL",
    "OpenRouterProvider",
    "ProviderHTTPError",
    "RetryPolicy",
    "Task",
    "is_retriable",
]
