"""Sentiment and topic extraction through the hosted inference API."""

from __future__ import annotations

import json
import logging
import os
from typing import Any

import requests

log = logging.getLogger(__name__)

HF_API_BASE_URL = "https://api-inference.huggingface.co/models/"
SENTIMENT_MODEL_ID = "distilbert-base-uncased-finetuned-sst-2-english"
ZERO_SHOT_MODEL_ID = "facebook/bart-large-mnli"
TOPIC_SCORE_THRESHOLD = 0.8
REQUEST_TIMEOUT = 30.0


class HuggingFaceError(Exception):
    """Raised when the inference API cannot be reached or gives an unusable answer."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        estimated_time: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.estimated_time = estimated_time


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _status_error(model_id: str, url: str, status: int, body: bytes) -> HuggingFaceError:
    text = body.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(body)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict):
        message = parsed.get("error", "")
        estimated = parsed.get("estimated_time", 0)
        warnings = parsed.get("warnings")
        well_formed = (
            isinstance(message, str)
            and (estimated is None or _is_number(estimated))
            and (
                warnings is None
                or (isinstance(warnings, list) and all(isinstance(w, str) for w in warnings))
            )
        )
        if well_formed and message:
            if estimated:
                if estimated > 0:
                    return HuggingFaceError(
                        f"HF API error for {model_id} (model loading, try again in "
                        f"{estimated:.0f}s): {message}",
                        status=status,
                        estimated_time=float(estimated),
                    )
            return HuggingFaceError(
                f"HF API error for {model_id}: {message}", status=status
            )

    return HuggingFaceError(
        f"Hugging Face API ({url}) request failed with status {status}: {text}",
        status=status,
    )


def call_hugging_face_api(model_id: str, payload: Any) -> bytes:
    """POST ``payload`` to the model and return the raw response body."""
    token = os.environ.get("HF_TOKEN", "")
    if not token:
        raise HuggingFaceError("HF_TOKEN environment variable not set")

    try:
        body = json.dumps(payload).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise HuggingFaceError(
            f"error marshalling request body for HF API: {exc}"
        ) from exc

    url = HF_API_BASE_URL + model_id
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
    }
    try:
        response = requests.post(url, data=body, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        raise HuggingFaceError(
            f"error sending request to Hugging Face API ({url}): {exc}"
        ) from exc

    content = response.content
    if response.status_code != 200:
        log.warning(
            "Hugging Face API (%s) returned non-200 status: %d. Response body: %s",
            url,
            response.status_code,
            content.decode("utf-8", errors="replace"),
        )
        raise _status_error(model_id, url, response.status_code, content)
    return content


def _parse_sentiment(body: bytes) -> list[list[dict[str, Any]]] | None:
    parsed = json.loads(body)
    if parsed is None:
        return None
    if not isinstance(parsed, list):
        raise ValueError("expected a list of label lists")
    result = []
    for group in parsed:
        if group is None:
            result.append([])
            continue
        if not isinstance(group, list):
            raise ValueError("expected a list of label/score pairs")
        pairs = []
        for item in group:
            if not isinstance(item, dict):
                raise ValueError("expected a label/score object")
            label = item.get("label") or ""
            score = item.get("score") or 0.0
            if not isinstance(label, str) or not _is_number(score):
                raise ValueError("label must be a string and score a number")
            pairs.append({"label": label, "score": float(score)})
        result.append(pairs)
    return result


def get_sentiment(feedback_text: str) -> str:
    """Return the most likely sentiment label; blank text counts as ``NEUTRAL``."""
    if not feedback_text.strip():
        return "NEUTRAL"

    try:
        body = call_hugging_face_api(SENTIMENT_MODEL_ID, {"inputs": feedback_text})
    except HuggingFaceError as exc:
        raise HuggingFaceError(
            f"sentiment API call failed: {exc}",
            status=exc.status,
            estimated_time=exc.estimated_time,
        ) from exc

    try:
        groups = _parse_sentiment(body)
    except ValueError as exc:
        log.warning("Error unmarshalling sentiment response: %s. Body: %r", exc, body)
        raise HuggingFaceError(f"error unmarshalling sentiment response: {exc}") from exc

    if not groups or not groups[0]:
        log.warning("Sentiment response format unexpected or empty. Body: %r", body)
        raise HuggingFaceError("sentiment response format unexpected or empty")

    best_label, highest = "NEUTRAL", 0.0
    for pair in groups[0]:
        if pair["score"] > highest:
            highest = pair["score"]
            best_label = pair["label"]
    return best_label


def _parse_zero_shot(body: bytes) -> tuple[list[str], list[float]]:
    parsed = json.loads(body)
    if parsed is None:
        return [], []
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    labels = parsed.get("labels") or []
    scores = parsed.get("scores") or []
    if not isinstance(labels, list) or not all(isinstance(x, str) for x in labels):
        raise ValueError("labels must be a list of strings")
    if not isinstance(scores, list) or not all(_is_number(x) for x in scores):
        raise ValueError("scores must be a list of numbers")
    return labels, [float(x) for x in scores]


def get_topics(feedback_text: str, candidate_topics: list[str]) -> list[str]:
    """Return the candidate topics the model scores above the threshold."""
    if not feedback_text.strip() or not candidate_topics:
        return []

    payload = {
        "inputs": feedback_text,
        "parameters": {
            "candidate_labels": list(candidate_topics),
            "multi_label": True,
        },
    }
    try:
        body = call_hugging_face_api(ZERO_SHOT_MODEL_ID, payload)
    except HuggingFaceError as exc:
        raise HuggingFaceError(
            f"topic extraction API call failed: {exc}",
            status=exc.status,
            estimated_time=exc.estimated_time,
        ) from exc

    try:
        labels, scores = _parse_zero_shot(body)
    except ValueError as exc:
        log.warning("Error unmarshalling zero-shot response: %s. Body: %r", exc, body)
        raise HuggingFaceError(f"error unmarshalling zero-shot response: {exc}") from exc

    if not labels or len(labels) != len(scores):
        log.warning("Zero-shot response format unexpected or empty. Body: %r", body)
        return []
    return [
        label
        for label, score in zip(labels, scores)
        if score > TOPIC_SCORE_THRESHOLD
    ]