"""Rule-based churn estimation."""

from __future__ import annotations

from datetime import datetime, timezone

from churnagent.models import ChurnPrediction, CustomerData

NEGATIVE_KEYWORDS = ("bad", "poor", "terrible", "unhappy")

REASON_HIGH = "Low NLS score and/or negative feedback/sentiment."
REASON_LOW = "High NLS score."
REASON_MODERATE = "Moderate NLS score or neutral feedback/sentiment."


def _has_negative_keyword(feedback: str) -> bool:
    lowered = feedback.lower()
    return any(keyword in lowered for keyword in NEGATIVE_KEYWORDS)


def predict_churn(data: CustomerData) -> ChurnPrediction:
    """Estimate the churn probability for ``data`` from its score, text and sentiment."""
    negative_feedback = _has_negative_keyword(data.feedback)
    negative_sentiment = data.comment_sentiment.upper() == "NEGATIVE"

    if (data.nls_score < 5 and negative_feedback) or (
        data.nls_score < 3 and negative_sentiment
    ):
        probability, reason = 0.8, REASON_HIGH
    elif data.nls_score >= 8:
        probability, reason = 0.1, REASON_LOW
    else:
        probability, reason = 0.4, REASON_MODERATE

    return ChurnPrediction(
        churn_probability=probability,
        reason=reason,
        predicted_at=datetime.now(timezone.utc),
    )