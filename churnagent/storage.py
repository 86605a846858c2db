"""Persistence of feedback and predictions in a Supabase (PostgREST) database."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any

import requests

from churnagent.models import ChurnPrediction, CustomerData

log = logging.getLogger(__name__)

CUSTOMER_TABLE = "customer_feedback"
PREDICTION_TABLE = "churn_predictions"


class StorageError(Exception):
    """Raised when the database is not configured or rejects a write."""


class SupabaseClient:
    """Minimal client for inserting rows through the Supabase REST interface."""

    def __init__(self, url: str, key: str, timeout: float = 30.0) -> None:
        if not url or not key:
            raise StorageError("a Supabase URL and key are required")
        self.url = url.rstrip("/")
        self.key = key
        self.timeout = timeout

    def insert(self, table: str, record: dict[str, Any]) -> list[Any]:
        """Insert ``record`` into ``table`` and return the rows the server sends back."""
        endpoint = f"{self.url}/rest/v1/{table}"
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        try:
            response = requests.post(
                endpoint, data=json.dumps(record), headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise StorageError(f"request to {endpoint} failed: {exc}") from exc

        if not 200 <= response.status_code < 300:
            log.error(
                "Insert into %s failed with status %d: %s",
                table,
                response.status_code,
                response.text,
            )
            raise StorageError(
                f"insert into {table} failed with status {response.status_code}: "
                f"{response.text}"
            )
        if not response.content:
            return []
        try:
            rows = response.json()
        except ValueError as exc:
            raise StorageError(f"invalid JSON returned by insert into {table}") from exc
        if not isinstance(rows, list):
            raise StorageError(f"insert into {table} did not return a list of rows")
        return rows


def _require(client: SupabaseClient | None) -> SupabaseClient:
    if client is None:
        raise StorageError("SupabaseClient not initialized")
    return client


def store_customer_data(client: SupabaseClient | None, data: CustomerData) -> str:
    """Insert ``data`` and return the identifier the database assigned to it."""
    client = _require(client)
    if data.created_at is None:
        data = dataclasses.replace(data, created_at=datetime.now(timezone.utc))
    try:
        rows = client.insert(CUSTOMER_TABLE, data.to_record())
    except StorageError as exc:
        raise StorageError(f"error storing customer data: {exc}") from exc

    if not rows:
        raise StorageError("no data returned after insert")
    first = rows[0]
    if not isinstance(first, dict):
        raise StorageError("error unmarshalling customer data: row is not an object")
    identifier = first.get("id") or ""
    if not isinstance(identifier, str):
        raise StorageError("error unmarshalling customer data: id is not a string")
    return identifier


def store_churn_prediction(
    client: SupabaseClient | None, prediction: ChurnPrediction
) -> None:
    """Insert ``prediction`` into the predictions table."""
    client = _require(client)
    if prediction.predicted_at is None:
        prediction = dataclasses.replace(
            prediction, predicted_at=datetime.now(timezone.utc)
        )
    try:
        client.insert(PREDICTION_TABLE, prediction.to_record())
    except StorageError as exc:
        raise StorageError(f"error storing churn prediction: {exc}") from exc


def init_clients() -> SupabaseClient:
    """Build the database client from ``SUPABASE_URL`` and ``SUPABASE_KEY``."""
    url = os.environ.get("SUPABASE_URL", "")
    key = os.environ.get("SUPABASE_KEY", "")
    if not url or not key:
        raise StorageError(
            "SUPABASE_URL and SUPABASE_KEY environment variables must be set"
        )
    if not os.environ.get("HF_TOKEN"):
        log.warning(
            "HF_TOKEN environment variable not set. Sentiment/topic features will fail."
        )
    client = SupabaseClient(url, key)
    log.info("Supabase client initialized successfully.")
    return client