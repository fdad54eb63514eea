"""LLM client infrastructure."""

from .client import GeminiRestClient, VertexRestClient, build_llm_client

__all__ = ["GeminiRestClient", "VertexRestClient", "build_llm_client"]
