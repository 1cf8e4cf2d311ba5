"""
OpenAI service client and response handling.

Provides centralized OpenAI/Azure OpenAI integration for chat responses
and embeddings, with automatic client configuration and usage metrics.
"""

from .client import (
    openai_client,
    call_response_with_metrics,
    create_embeddings,
    reset_client,
    MODEL_PRICING,
)

__all__ = [
    "openai_client",
    "call_response_with_metrics",
    "create_embeddings",
    "reset_client",
    "MODEL_PRICING",
]
