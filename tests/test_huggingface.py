import json

import pytest
import requests
import responses

from churnagent.huggingface import (
    HF_API_BASE_URL,
    SENTIMENT_MODEL_ID,
    TOPIC_SCORE_THRESHOLD,
    ZERO_SHOT_MODEL_ID,
    HuggingFaceError,
    call_hugging_face_api,
    get_sentiment,
    get_topics,
)

SENTIMENT_URL = HF_API_BASE_URL + SENTIMENT_MODEL_ID
ZERO_SHOT_URL = HF_API_BASE_URL + ZERO_SHOT_MODEL_ID
CANDIDATES = ["service", "product quality", "pricing", "customer support", "speed", "ease of use"]

DOCUMENTED_SENTIMENT_URL = (
    "https://api-inference.huggingface.co/models/"
    "distilbert-base-uncased-finetuned-sst-2-english"
)
DOCUMENTED_ZERO_SHOT_URL = "https://api-inference.huggingface.co/models/facebook/bart-large-mnli"


@pytest.fixture
def api():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as mock:
        yield mock


@pytest.fixture
def token(monkeypatch):
    monkeypatch.setenv("HF_TOKEN", "token")


def test_sentiment_posts_to_documented_endpoint(token, api):
    api.add(
        responses.POST,
        DOCUMENTED_SENTIMENT_URL,
        json=[[{"label": "POSITIVE", "score": 0.7}]],
    )
    assert get_sentiment("great") == "POSITIVE"
    assert api.calls[0].request.url == DOCUMENTED_SENTIMENT_URL


def test_topics_post_to_documented_endpoint(token, api):
    api.add(
        responses.POST,
        DOCUMENTED_ZERO_SHOT_URL,
        json={"labels": ["speed"], "scores": [0.99]},
    )
    assert get_topics("so slow", CANDIDATES) == ["speed"]
    assert api.calls[0].request.url == DOCUMENTED_ZERO_SHOT_URL


def test_missing_token_is_an_error(monkeypatch, api):
    monkeypatch.delenv("HF_TOKEN", raising=False)
    with pytest.raises(HuggingFaceError, match="HF_TOKEN environment variable not set"):
        call_hugging_face_api(SENTIMENT_MODEL_ID, {"inputs": "x"})
    assert len(api.calls) == 0


def test_call_sends_token_and_json(token, api):
    api.add(responses.POST, SENTIMENT_URL, body=b"[]", status=200)
    body = call_hugging_face_api(SENTIMENT_MODEL_ID, {"inputs": "hello"})
    assert body == b"[]"
    sent = api.calls[0].request
    assert sent.headers["Authorization"] == "Bearer token"
    assert sent.headers["Content-Type"] == "application/json"
    assert json.loads(sent.body) == {"inputs": "hello"}


def test_model_loading_error_reports_estimated_time(token, api):
    api.add(
        responses.POST,
        SENTIMENT_URL,
        json={"error": "Model is loading", "estimated_time": 20.0},
        status=503,
    )
    with pytest.raises(HuggingFaceError, match="model loading, try again in 20s") as info:
        call_hugging_face_api(SENTIMENT_MODEL_ID, {"inputs": "x"})
    assert info.value.estimated_time == 20.0
    assert info.value.status == 503


def test_structured_error_without_estimate(token, api):
    api.add(responses.POST, SENTIMENT_URL, json={"error": "bad input"}, status=400)
    with pytest.raises(HuggingFaceError) as info:
        call_hugging_face_api(SENTIMENT_MODEL_ID, {"inputs": "x"})
    assert str(info.value) == f"HF API error for {SENTIMENT_MODEL_ID}: bad input"


def test_unstructured_error_includes_status_and_body(token, api):
    api.add(responses.POST, SENTIMENT_URL, body="gateway down", status=502)
    with pytest.raises(HuggingFaceError, match="request failed with status 502: gateway down"):
        call_hugging_face_api(SENTIMENT_MODEL_ID, {"inputs": "x"})


def test_connection_failure_is_wrapped(token, api):
    api.add(responses.POST, SENTIMENT_URL, body=requests.ConnectionError("refused"))
    with pytest.raises(HuggingFaceError, match="error sending request"):
        call_hugging_face_api(SENTIMENT_MODEL_ID, {"inputs": "x"})


def test_blank_feedback_is_neutral_without_a_call(monkeypatch, api):
    monkeypatch.delenv("HF_TOKEN", raising=False)
    assert get_sentiment("   ") == "NEUTRAL"
    assert len(api.calls) == 0


def test_sentiment_picks_highest_score(token, api):
    api.add(
        responses.POST,
        SENTIMENT_URL,
        json=[[{"label": "POSITIVE", "score": 0.1}, {"label": "NEGATIVE", "score": 0.9}]],
    )
    assert get_sentiment("awful") == "NEGATIVE"


def test_sentiment_all_zero_scores_stay_neutral(token, api):
    api.add(responses.POST, SENTIMENT_URL, json=[[{"label": "POSITIVE", "score": 0}]])
    assert get_sentiment("hmm") == "NEUTRAL"


@pytest.mark.parametrize("payload", [[], [[]], None])
def test_sentiment_empty_response_is_an_error(token, api, payload):
    api.add(responses.POST, SENTIMENT_URL, json=payload)
    with pytest.raises(HuggingFaceError, match="unexpected or empty"):
        get_sentiment("text")


def test_sentiment_malformed_response_is_an_error(token, api):
    api.add(responses.POST, SENTIMENT_URL, json={"label": "POSITIVE"})
    with pytest.raises(HuggingFaceError, match="error unmarshalling sentiment response"):
        get_sentiment("text")


def test_sentiment_api_failure_is_wrapped(token, api):
    api.add(responses.POST, SENTIMENT_URL, json={"error": "oops"}, status=500)
    with pytest.raises(HuggingFaceError, match="^sentiment API call failed"):
        get_sentiment("text")


def test_topics_skip_blank_text_or_no_candidates(monkeypatch, api):
    monkeypatch.delenv("HF_TOKEN", raising=False)
    assert get_topics("", CANDIDATES) == []
    assert get_topics("some text", []) == []
    assert len(api.calls) == 0


def test_topics_filtered_by_threshold(token, api):
    api.add(
        responses.POST,
        ZERO_SHOT_URL,
        json={
            "sequence": "too expensive and slow support",
            "labels": ["pricing", "speed", "service", "ease of use"],
            "scores": [0.95, 0.5, 0.85, TOPIC_SCORE_THRESHOLD],
        },
    )
    topics = get_topics("too expensive and slow support", CANDIDATES)
    assert topics == ["pricing", "service"]
    sent = json.loads(api.calls[0].request.body)
    assert sent["parameters"] == {"candidate_labels": CANDIDATES, "multi_label": True}
    assert sent["inputs"] == "too expensive and slow support"


def test_topics_mismatched_lengths_give_nothing(token, api):
    api.add(responses.POST, ZERO_SHOT_URL, json={"labels": ["pricing"], "scores": []})
    assert get_topics("text", CANDIDATES) == []


def test_topics_malformed_response_is_an_error(token, api):
    api.add(responses.POST, ZERO_SHOT_URL, json=["pricing"])
    with pytest.raises(HuggingFaceError, match="error unmarshalling zero-shot response"):
        get_topics("text", CANDIDATES)


def test_topics_api_failure_is_wrapped(token, api):
    api.add(responses.POST, ZERO_SHOT_URL, body="nope", status=500)
    with pytest.raises(HuggingFaceError, match="^topic extraction API call failed"):
        get_topics("text", CANDIDATES)