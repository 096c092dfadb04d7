"""
Failure classification and user-facing notifications

Provider failures fall into two kinds: the provider is overloaded, or
something else went wrong. Each feature has its own wording for the latter.
"""
from typing import Any, Dict, Tuple

from flask import jsonify

OVERLOADED = "overloaded"
ERROR = "error"
INVALID = "invalid"

_OVERLOADED_MARKERS = ("503", "529", "overloaded", "rate limit", "ratelimit", "request body is too large")

BUSY_DESCRIPTION = "The AI model is currently overloaded. Please try again in a moment."

FAILURE_DESCRIPTIONS = {
    "upload": "Failed to process PDF. Please try a different file.",
    "summary": "Failed to generate summary.",
    "quiz": "Could not generate quiz. Please try again.",
    "flashcards": "Could not generate flashcards. Please try again.",
    "smart-notes": "Could not generate notes. Please try again.",
    "qna": "Could not answer the question. Please try again.",
    "videos": "Could not suggest videos. Please try again.",
    "tts": "Text-to-speech failed.",
}

BUSY_DESCRIPTIONS = {
    "tts": "Text-to-speech is currently unavailable. Please try again in a moment.",
}

CHAT_REPLIES = {
    OVERLOADED: "Sorry, the AI is a bit busy right now. Please try again in a moment.",
    ERROR: "Sorry, I ran into an error. Please try again.",
}


class InvalidInput(ValueError):
    """Raised when a flow or session operation gets unusable input."""

    def __init__(self, description: str, title: str = "Invalid Input"):
        super().__init__(description)
        self.title = title
        self.description = description


def classify_error(err: str) -> str:
    low = (err or "").lower()
    if any(marker in low for marker in _OVERLOADED_MARKERS):
        return OVERLOADED
    return ERROR


def notification(title: str, description: str, variant: str = "destructive") -> Dict[str, str]:
    return {"variant": variant, "title": title, "description": description}


def failure_notification(feature: str, err: str) -> Tuple[str, Dict[str, str]]:
    kind = classify_error(err)
    if kind == OVERLOADED:
        return kind, notification("AI is Busy", BUSY_DESCRIPTIONS.get(feature, BUSY_DESCRIPTION))
    return kind, notification("Error", FAILURE_DESCRIPTIONS.get(feature, "Something went wrong. Please try again."))


def failure_response(feature: str, err: str, **extra: Any):
    kind, note = failure_notification(feature, err)
    status = 503 if kind == OVERLOADED else 502
    return jsonify({"ok": False, "error": err, "kind": kind, "notification": note, **extra}), status


def invalid_response(exc: InvalidInput, status: int = 400):
    return jsonify({
        "ok": False,
        "error": exc.description,
        "kind": INVALID,
        "notification": notification(exc.title, exc.description),
    }), status
