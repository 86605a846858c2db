"""Request, response and record types used by the churn prediction service."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class PredictRequest:
    """Body of a prediction request."""

    nls_score: int | None = None
    feedback_text: str = ""

    @classmethod
    def from_json(cls, data: str | bytes) -> PredictRequest:
        """Decode the first JSON value in ``data``; raise ValueError if it does not fit."""
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8")
        text = data.lstrip()
        try:
            document, _ = json.JSONDecoder().raw_decode(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON: {exc}") from exc

        if document is None:
            return cls()
        if not isinstance(document, dict):
            raise ValueError("request body must be a JSON object")

        score = document.get("nls_score")
        if score is not None:
            if isinstance(score, bool) or not isinstance(score, int):
                raise ValueError("nls_score must be an integer")
            if not _INT64_MIN <= score <= _INT64_MAX:
                raise ValueError("nls_score is out of range")

        feedback = document.get("feedback_text")
        if feedback is None:
            feedback = ""
        elif not isinstance(feedback, str):
            raise ValueError("feedback_text must be a string")

        return cls(nls_score=score, feedback_text=feedback)


@dataclass(frozen=True)
class PredictResponse:
    """Body of a successful prediction response."""

    customer_id: str
    churn_probability: float
    reason: str
    comment_sentiment: str = ""
    comment_topics: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON-ready mapping, leaving out empty sentiment and topics."""
        result: dict[str, Any] = {
            "customer_id": self.customer_id,
            "churn_probability": self.churn_probability,
            "reason": self.reason,
        }
        if self.comment_sentiment:
            result["comment_sentiment"] = self.comment_sentiment
        if self.comment_topics:
            result["comment_topics"] = list(self.comment_topics)
        return result


@dataclass
class CustomerData:
    """A piece of customer feedback together with its derived insights."""

    nls_score: int
    feedback: str = ""
    id: str = ""
    created_at: datetime | None = None
    comment_sentiment: str = ""
    comment_topics: list[str] = field(default_factory=list)

    def to_record(self) -> dict[str, Any]:
        """Return the row stored in the ``customer_feedback`` table."""
        record: dict[str, Any] = {}
        if self.id:
            record["id"] = self.id
        record["nls_score"] = self.nls_score
        record["feedback_text"] = self.feedback
        if self.created_at is not None:
            record["created_at"] = self.created_at.isoformat()
        if self.comment_sentiment:
            record["comment_sentiment"] = self.comment_sentiment
        if self.comment_topics:
            record["comment_topics"] = list(self.comment_topics)
        return record


@dataclass
class ChurnPrediction:
    """A churn estimate for one piece of customer feedback."""

    churn_probability: float = 0.0
    reason: str = ""
    customer_id: str = ""
    id: str = ""
    predicted_at: datetime | None = None

    def to_record(self) -> dict[str, Any]:
        """Return the row stored in the ``churn_predictions`` table."""
        record: dict[str, Any] = {}
        if self.id:
            record["id"] = self.id
        record["customer_feedback_id"] = self.customer_id
        record["churn_probability"] = self.churn_probability
        record["reason"] = self.reason
        if self.predicted_at is not None:
            record["predicted_at"] = self.predicted_at.isoformat()
        return record