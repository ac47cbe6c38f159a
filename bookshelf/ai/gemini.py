from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import requests


@dataclass
class GeminiError(Exception):
    message: str


def build_url(base_url: str, model: str, api_key: str) -> str:
    base = base_url.rstrip("/")
    if base.endswith("/v1beta"):
        return f"{base}/models/{model}:generateContent?key={api_key}"
    return f"{base}/v1beta/models/{model}:generateContent?key={api_key}"


def generate_content(
    api_key: str,
    base_url: str,
    model: str,
    message: str,
    timeout_seconds: int = 60,
) -> str:
    """Send one user message to Gemini generateContent and return the reply text.

    The reply is candidates[0].content.parts[0].text. There are no retries;
    every failure (transport, HTTP status, JSON, response shape) raises
    GeminiError with a short, client-safe message.
    """
    if not api_key:
        raise GeminiError("Missing API key")
    if not base_url:
        raise GeminiError("Missing base_url")
    if not model:
        raise GeminiError("Missing model")
    if not message:
        raise GeminiError("Missing message")

    url = build_url(base_url, model, api_key)
    payload: Dict[str, Any] = {
        "contents": [
            {
                "role": "user",
                "parts": [{"text": message}],
            }
        ],
    }

    try:
        r = requests.post(url, json=payload, timeout=timeout_seconds)
    except requests.RequestException as e:
        raise GeminiError("Failed to contact Gemini API") from e

    if r.status_code != 200:
        raise GeminiError(f"Gemini API returned HTTP {r.status_code}")

    try:
        data = r.json()
    except ValueError as e:
        raise GeminiError("Failed to parse Gemini response") from e

    if not isinstance(data, dict):
        raise GeminiError("Failed to parse Gemini response")

    # Expected: candidates[0].content.parts[0].text
    candidates = data.get("candidates") or []
    if not candidates:
        raise GeminiError("No response from Gemini")
    content = (candidates[0] or {}).get("content") or {}
    parts = content.get("parts") or []
    if not parts or "text" not in (parts[0] or {}):
        raise GeminiError("No text in Gemini response")
    return str(parts[0]["text"])
