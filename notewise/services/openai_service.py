"""OpenAI wrapper.

All flows talk to the provider through ``llm_json`` (structured output) or
``synthesize_speech`` (audio). Both return ``(value, error)`` tuples; an empty
error string means success.
"""
from __future__ import annotations

import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from flask import current_app
from openai import OpenAI

logger = logging.getLogger(__name__)

JSON_SYSTEM_PROMPT = (
    "You are a JSON API. Return ONLY valid JSON with no markdown formatting, "
    "no code fences, no explanations. Start your response with { and end with }."
)


def client_ready() -> Tuple[bool, str]:
    key = (current_app.config.get("OPENAI_API_KEY") or "").strip()
    if not key:
        return False, "OPENAI_API_KEY is missing"
    return True, ""


def model_name() -> str:
    return (current_app.config.get("OPENAI_MODEL") or "").strip() or "gpt-4.1"


def get_client() -> Optional[OpenAI]:
    ok, _ = client_ready()
    if not ok:
        return None
    key = current_app.config["OPENAI_API_KEY"].strip()
    return OpenAI(api_key=key, timeout=current_app.config.get("OPENAI_TIMEOUT", 60))


def safe_json_loads(s: str) -> Tuple[Optional[Dict[str, Any]], str]:
    if not s:
        return None, "Empty model output"

    # Strip markdown code blocks if present
    text = s.strip()
    if text.startswith("```"):
        lines = text.split("\n", 1)
        if len(lines) > 1:
            text = lines[1]
        if text.endswith("```"):
            text = text[:-3].strip()
        elif "```" in text:
            text = text.rsplit("```", 1)[0].strip()

    try:
        obj = json.loads(text)
        if isinstance(obj, dict):
            return obj, ""
    except ValueError:
        pass

    # Fallback: first JSON object embedded in prose
    m = re.search(r"\{.*\}", text, flags=re.DOTALL)
    if m:
        try:
            obj = json.loads(m.group(0))
            if isinstance(obj, dict):
                return obj, ""
        except ValueError:
            pass
    return None, "Model did not return valid json"


def _user_content(prompt: str, files: Optional[List[Tuple[str, str]]]) -> Any:
    if not files:
        return prompt
    parts: List[Dict[str, Any]] = []
    for filename, data_uri in files:
        parts.append({"type": "file", "file": {"filename": filename, "file_data": data_uri}})
    parts.append({"type": "text", "text": prompt})
    return parts


def llm_json(
    prompt: str,
    temperature: float = 0.2,
    files: Optional[List[Tuple[str, str]]] = None,
) -> Tuple[Optional[Dict[str, Any]], str]:
    """Send one prompt and parse the reply as a JSON object.

    ``files`` is a list of ``(filename, data_uri)`` pairs attached ahead of the
    prompt text, used for PDF extraction.
    """
    client = get_client()
    if client is None:
        ok, msg = client_ready()
        return None, msg or "Client not available"
    try:
        res = client.chat.completions.create(
            model=model_name(),
            messages=[
                {"role": "system", "content": JSON_SYSTEM_PROMPT},
                {"role": "user", "content": _user_content(prompt, files)},
            ],
            temperature=temperature,
        )
        text = (res.choices[0].message.content or "").strip()
    except Exception as e:
        logger.warning("LLM request failed: %s: %s", type(e).__name__, e)
        return None, f"LLM request failed: {type(e).__name__}: {e}"

    obj, err = safe_json_loads(text)
    if err:
        logger.warning("Unparseable model output (%d chars)", len(text))
        return None, err
    return obj, ""


def synthesize_speech(text: str) -> Tuple[str, str]:
    """Render ``text`` as MP3 and return it as a data URI."""
    client = get_client()
    if client is None:
        ok, msg = client_ready()
        return "", msg or "Client not available"
    try:
        res = client.audio.speech.create(
            model=current_app.config.get("OPENAI_TTS_MODEL", "gpt-4o-mini-tts"),
            voice=current_app.config.get("OPENAI_TTS_VOICE", "alloy"),
            input=text,
            response_format="mp3",
        )
        audio = res.content
    except Exception as e:
        logger.warning("Speech request failed: %s: %s", type(e).__name__, e)
        return "", f"LLM request failed: {type(e).__name__}: {e}"
    if not audio:
        return "", "Empty audio output"
    return "data:audio/mpeg;base64," + base64.b64encode(audio).decode("ascii"), ""
