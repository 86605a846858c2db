"""The prediction endpoint: request validation, enrichment, scoring and storage."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterable
from http import HTTPStatus
from typing import Any

from churnagent.churn import predict_churn
from churnagent.huggingface import HuggingFaceError, get_sentiment, get_topics
from churnagent.models import CustomerData, PredictRequest, PredictResponse
from churnagent.storage import (
    StorageError,
    SupabaseClient,
    init_clients,
    store_churn_prediction,
    store_customer_data,
)

log = logging.getLogger(__name__)

CANDIDATE_TOPICS = (
    "service",
    "product quality",
    "pricing",
    "customer support",
    "speed",
    "ease of use",
)


class ApiError(Exception):
    """An error answer of the endpoint, carrying its HTTP status."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def to_dict(self) -> dict[str, str]:
        """Return the JSON body sent for this error."""
        return {"error": self.message}


def handle_predict(
    client: SupabaseClient | None, method: str, body: bytes | str
) -> PredictResponse:
    """Process one prediction request; raise ApiError for any failure answer."""
    if method != "POST":
        raise ApiError(HTTPStatus.METHOD_NOT_ALLOWED, "Only POST method is allowed.")

    try:
        request = PredictRequest.from_json(body)
    except (ValueError, UnicodeDecodeError) as exc:
        log.warning("Error decoding request body: %s", exc)
        raise ApiError(HTTPStatus.BAD_REQUEST, "Invalid JSON request body.") from exc

    if request.nls_score is None:
        raise ApiError(HTTPStatus.BAD_REQUEST, "NLS score is required.")
    if not 0 <= request.nls_score <= 10:
        raise ApiError(HTTPStatus.BAD_REQUEST, "NLS score must be between 0 and 10.")

    try:
        sentiment = get_sentiment(request.feedback_text)
    except HuggingFaceError as exc:
        log.warning("Could not get sentiment from Hugging Face: %s", exc)
        sentiment = "UNKNOWN"
    log.info("Sentiment received: %s", sentiment)

    try:
        topics = get_topics(request.feedback_text, list(CANDIDATE_TOPICS))
    except HuggingFaceError as exc:
        log.warning("Could not get topics from Hugging Face: %s", exc)
        topics = []
    log.info("Topics received: %s", topics)

    customer = CustomerData(
        nls_score=request.nls_score,
        feedback=request.feedback_text,
        comment_sentiment=sentiment,
        comment_topics=topics,
    )

    try:
        customer_id = store_customer_data(client, customer)
    except StorageError as exc:
        log.error("Error storing customer data: %s", exc)
        raise ApiError(
            HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to store customer data."
        ) from exc
    log.info("Customer data stored successfully. ID: %s", customer_id)
    customer.id = customer_id

    prediction = predict_churn(customer)
    prediction.customer_id = customer_id

    try:
        store_churn_prediction(client, prediction)
    except StorageError as exc:
        log.error("Error storing churn prediction: %s", exc)
        raise ApiError(
            HTTPStatus.INTERNAL_SERVER_ERROR, "Failed to store churn prediction."
        ) from exc
    log.info("Churn prediction stored successfully.")

    return PredictResponse(
        customer_id=customer_id,
        churn_probability=prediction.churn_probability,
        reason=prediction.reason,
        comment_sentiment=customer.comment_sentiment,
        comment_topics=customer.comment_topics,
    )


class _LazyClient:
    """Build the database client once, remembering either the client or the failure."""

    def __init__(self, factory: Callable[[], SupabaseClient | None]) -> None:
        self._factory = factory
        self._lock = threading.Lock()
        self._done = False
        self._client: SupabaseClient | None = None
        self._error: Exception | None = None

    def get(self) -> SupabaseClient | None:
        with self._lock:
            if not self._done:
                self._done = True
                log.info("Attempting to initialize clients...")
                try:
                    self._client = self._factory()
                except Exception as exc:  # the failure is kept and reported per request
                    log.error("Error during client initialization: %s", exc)
                    self._error = exc
                else:
                    log.info("Clients initialized successfully.")
        if self._error is not None:
            raise self._error
        return self._client


def _read_body(environ: dict[str, Any]) -> bytes:
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    if length <= 0:
        return b""
    return environ["wsgi.input"].read(length)


def _respond(
    start_response: Callable[..., Any], status: int, payload: dict[str, Any]
) -> Iterable[bytes]:
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    status_line = f"{int(status)} {HTTPStatus(status).phrase}"
    start_response(
        status_line,
        [("Content-Type", "application/json"), ("Content-Length", str(len(body)))],
    )
    return [body]


def create_app(
    client_factory: Callable[[], SupabaseClient | None] | None = None,
) -> Callable[..., Iterable[bytes]]:
    """Return a WSGI application serving the prediction endpoint.

    The client is built by ``client_factory`` (by default from the environment)
    on the first request and reused afterwards.
    """
    lazy = _LazyClient(client_factory or init_clients)

    def app(environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        try:
            client = lazy.get()
        except Exception as exc:
            return _respond(
                start_response,
                HTTPStatus.INTERNAL_SERVER_ERROR,
                {"error": f"Server initialization failed: {exc}"},
            )

        log.info("Received request for /predict from %s", environ.get("REMOTE_ADDR", ""))
        method = environ.get("REQUEST_METHOD", "GET")
        body = _read_body(environ) if method == "POST" else b""
        try:
            result = handle_predict(client, method, body)
        except ApiError as exc:
            return _respond(start_response, exc.status, exc.to_dict())
        return _respond(start_response, HTTPStatus.OK, result.to_dict())

    return app