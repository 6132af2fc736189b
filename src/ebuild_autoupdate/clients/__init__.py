"""Client abstractions."""

from .http import FetchedContent, create_http_client, fetch_content
from .llm import LLMProvider, create_llm_provider
from .ratelimit import RateLimiter

__all__ = ["FetchedContent", "LLMProvider", "RateLimiter", "create_http_client", "create_llm_provider", "fetch_content"]
