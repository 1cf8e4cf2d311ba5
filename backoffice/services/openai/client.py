import os
import time
from typing import Any, Dict, List, Optional, Tuple

from openai import AzureOpenAI, OpenAI

from ...config import CONFIG

# Approximate pricing per 1K tokens (as of 2025)
MODEL_PRICING = {
    "gpt-4o-mini": {"input": 0.00015, "output": 0.0006},
    "gpt-4o": {"input": 0.005, "output": 0.015},
    "gpt-5-mini": {"input": 0.00025, "cached_input": 0.000025, "output": 0.002},
    "text-embedding-3-small": {"input": 0.00002, "output": 0.0},
    "text-embedding-3-large": {"input": 0.00013, "output": 0.0},
}

_client = None
_provider = "openai"
# Azure serves models under deployment names; keyed by call kind.
_deployments: Dict[str, Optional[str]] = {"responses": None, "embeddings": None}


def _supports_temperature(model: str) -> bool:
    """Determine if the target model accepts the temperature parameter."""
    lowered = (model or "").strip().lower()
    return not lowered.startswith("gpt-5")


def _is_reasoning_model(model: str) -> bool:
    lowered = (model or "").strip().lower()
    return lowered.startswith(("gpt-5", "o1", "o3", "o4"))


def reset_client() -> None:
    """Drop the cached client so the next call re-reads the environment."""
    global _client, _provider
    _client = None
    _provider = "openai"
    _deployments.update(responses=None, embeddings=None)


def _max_retries() -> int:
    try:
        return int(os.getenv("OPENAI_MAX_RETRIES", "2"))
    except ValueError:
        return 2


def _build_azure(explicit: bool) -> AzureOpenAI:
    endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
    key = os.getenv("AZURE_OPENAI_API_KEY")
    if not (endpoint and key):
        prefix = "OPENAI_CLIENT=azure requested but " if explicit else ""
        raise RuntimeError(f"{prefix}AZURE_OPENAI_ENDPOINT and AZURE_OPENAI_API_KEY must be set")
    client = AzureOpenAI(
        azure_endpoint=endpoint,
        api_key=key,
        api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-12-01-preview"),
        timeout=CONFIG.outbound_http_timeout,
        max_retries=_max_retries(),
    )
    _deployments.update(
        responses=os.getenv("AZURE_OPENAI_DEPLOYMENT"),
        embeddings=os.getenv("AZURE_OPENAI_EMBEDDING_DEPLOYMENT"),
    )
    _log("[openai] initialized Azure client", "| endpoint:", endpoint)
    return client


def _build_openai(explicit: bool) -> OpenAI:
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        prefix = "OPENAI_CLIENT=openai requested but " if explicit else ""
        raise RuntimeError(f"{prefix}OPENAI_API_KEY must be set")
    client = OpenAI(api_key=key, timeout=CONFIG.outbound_http_timeout, max_retries=_max_retries())
    _log("[openai] initialized standard OpenAI client")
    return client


def openai_client() -> OpenAI:
    """
    Shared client for responses and embeddings.

    ``OPENAI_CLIENT`` forces the provider; otherwise Azure is used when its
    endpoint and key are both present. Every request carries
    ``OUTBOUND_HTTP_TIMEOUT_SECONDS``.
    """
    global _client, _provider
    if _client is None:
        preference = (os.getenv("OPENAI_CLIENT") or "").strip().lower()
        azure_available = bool(os.getenv("AZURE_OPENAI_ENDPOINT") and os.getenv("AZURE_OPENAI_API_KEY"))
        if preference == "azure" or (preference != "openai" and azure_available):
            _client = _build_azure(explicit=preference == "azure")
            _provider = "azure"
        else:
            _client = _build_openai(explicit=preference == "openai")
            _provider = "openai"
    return _client


def _target_model(kind: str, model: str) -> str:
    if _provider == "azure" and _deployments.get(kind):
        return _deployments[kind]
    return model


def _log(*parts: Any) -> None:
    from .utils import log as _base_log

    _base_log(*parts)


def _estimate_cost(model: str, input_tokens: int, output_tokens: int, cache_tokens: int = 0) -> float:
    pricing = MODEL_PRICING.get(model, {"input": 0, "output": 0})
    input_cost = (input_tokens / 1000) * pricing.get("input", 0)
    cached_cost = (cache_tokens / 1000) * pricing.get("cached_input", pricing.get("input", 0))
    output_cost = (output_tokens / 1000) * pricing.get("output", 0)
    return input_cost + output_cost + cached_cost


def call_response_with_metrics(
    *,
    model: str,
    system_prompt: Optional[str],
    user_prompt: str,
    temperature: Optional[float] = 0.0,
    response_format: Optional[Dict[str, Any]] = None,
) -> Tuple[str, Dict[str, Any]]:
    """Run one Responses API call and return ``(output_text, metrics)``."""

    start_time = time.time()

    messages: List[Dict[str, Any]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})

    client = openai_client()
    target_model = _target_model("responses", model)
    _log(f"[openai:{_provider}] response model:", model, "| deployed_as:", target_model, "| prompt_len:", len(user_prompt))

    kwargs: Dict[str, Any] = {"model": target_model, "input": messages}
    if temperature is not None and _supports_temperature(model):
        kwargs["temperature"] = temperature
    if _is_reasoning_model(model):
        kwargs["reasoning"] = {"effort": "low"}
    if response_format is not None:
        kwargs["text"] = {"format": response_format}

    resp = client.responses.create(**kwargs)

    duration_ms = int((time.time() - start_time) * 1000)
    text = (getattr(resp, "output_text", "") or "").strip()

    usage = getattr(resp, "usage", None)
    input_tokens = getattr(usage, "input_tokens", None) or getattr(usage, "prompt_tokens", 0) or 0
    output_tokens = getattr(usage, "output_tokens", None) or getattr(usage, "completion_tokens", 0) or 0
    cache_tokens = getattr(usage, "cached_input_tokens", None) or 0
    total_tokens = getattr(usage, "total_tokens", None) or (input_tokens + output_tokens)
    total_cost = _estimate_cost(model, input_tokens, output_tokens, cache_tokens)

    metrics = {
        "duration_ms": duration_ms,
        "prompt_tokens": input_tokens,
        "completion_tokens": output_tokens,
        "total_tokens": total_tokens,
        "cache_tokens": cache_tokens,
        "estimated_cost_usd": round(total_cost, 6),
        "model": model,
    }
    _log(
        f"[openai:{_provider}] response output_len:",
        len(text),
        "| duration:",
        f"{duration_ms}ms",
        "| tokens:",
        total_tokens,
        "| cost:",
        f"${total_cost:.6f}",
    )
    return text, metrics


def create_embeddings(
    *,
    model: str,
    inputs: List[str],
    dimensions: Optional[int] = None,
) -> Tuple[List[List[float]], Dict[str, Any]]:
    """Embed ``inputs`` in one request, returning vectors in input order."""

    start_time = time.time()
    client = openai_client()
    target_model = _target_model("embeddings", model)

    kwargs: Dict[str, Any] = {"model": target_model, "input": inputs}
    if dimensions:
        kwargs["dimensions"] = dimensions

    resp = client.embeddings.create(**kwargs)

    duration_ms = int((time.time() - start_time) * 1000)
    data = sorted(getattr(resp, "data", None) or [], key=lambda item: getattr(item, "index", 0))
    vectors = [list(getattr(item, "embedding", []) or []) for item in data]

    usage = getattr(resp, "usage", None)
    prompt_tokens = getattr(usage, "prompt_tokens", 0) or 0
    total_tokens = getattr(usage, "total_tokens", None) or prompt_tokens

    metrics = {
        "duration_ms": duration_ms,
        "prompt_tokens": prompt_tokens,
        "total_tokens": total_tokens,
        "estimated_cost_usd": round(_estimate_cost(model, prompt_tokens, 0), 6),
        "model": model,
    }
    _log(
        f"[openai:{_provider}] embeddings model:",
        target_model,
        "| inputs:",
        len(inputs),
        "| duration:",
        f"{duration_ms}ms",
        "| tokens:",
        total_tokens,
    )
    return vectors, metrics
