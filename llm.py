import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import requests

import config

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    pass


class LLMNotConfigured(LLMError):
    pass


def is_configured() -> bool:
    return bool(config.LLM_API_KEY)


def _call_llm(
    messages: List[dict],
    max_tokens: Optional[int] = None,
    temperature: Optional[float] = None,
    json_mode: bool = False,
) -> str:
    if not config.LLM_API_KEY:
        raise LLMNotConfigured("LLM_API_KEY not set; cannot call LLM.")

    url = f"{config.LLM_API_BASE.rstrip('/')}/chat/completions"
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {config.LLM_API_KEY}",
    }
    payload: Dict[str, Any] = {
        "model": config.LLM_MODEL,
        "messages": messages,
        "max_tokens": max_tokens or config.LLM_MAX_TOKENS,
        "temperature": config.LLM_TEMPERATURE if temperature is None else temperature,
    }
    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    try:
        resp = requests.post(url, headers=headers, json=payload, timeout=config.LLM_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise LLMError(f"LLM request failed: {exc}") from exc
    if resp.status_code >= 400:
        raise LLMError(f"LLM API error {resp.status_code}: {resp.text}")

    data = resp.json()
    choice = (data.get("choices") or [{}])[0].get("message", {}).get("content")
    if not choice:
        raise LLMError("LLM returned no content.")
    return choice


async def complete(prompt: str, max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> str:
    """
    Send a single free-text prompt and return the raw completion text.
    Bounded by LLM_TIMEOUT_SECONDS; a timeout is raised as LLMError.
    """
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(
                _call_llm,
                [{"role": "user", "content": prompt}],
                max_tokens,
                temperature,
            ),
            timeout=config.LLM_TIMEOUT_SECONDS,
        )
    except asyncio.TimeoutError as exc:
        raise LLMError(f"LLM call timed out after {config.LLM_TIMEOUT_SECONDS:g}s") from exc


def extract_json_object(text: Any) -> Dict[str, Any]:
    """
    Pull the first balanced {...} object out of free text and parse it.
    Prose, markdown fences and truncation degrade to {} instead of raising.
    """
    if not isinstance(text, str):
        return {}
    start = text.find("{")
    if start < 0:
        return {}

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                try:
                    parsed = json.loads(text[start: idx + 1])
                except ValueError:
                    logger.warning("Completion contained malformed JSON")
                    return {}
                return parsed if isinstance(parsed, dict) else {}

    logger.warning("Completion JSON was truncated")
    return {}
