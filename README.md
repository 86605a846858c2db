# churnagent

A small HTTP service that scores customers for churn risk. It takes a
customer's NLS score (0–10) and free-text feedback, estimates how likely the
customer is to churn, and stores the feedback and the prediction in Supabase
tables.

For each request the service does the following:

1. Checks the input. `nls_score` must be present, must be an integer and must
   be between 0 and 10.
2. Asks the Hugging Face inference API for the sentiment of the feedback. It
   uses the `distilbert-base-uncased-finetuned-sst-2-english` model and keeps
   the label with the highest score. Blank feedback counts as `NEUTRAL`. If the
   call fails, the sentiment is `UNKNOWN`.
3. Asks the Hugging Face inference API for the topics of the feedback. It runs
   zero-shot classification with `facebook/bart-large-mnli` over these labels:
   service, product quality, pricing, customer support, speed and ease of use.
   A topic is kept when its score is above 0.8. Blank feedback, or a failed
   call, gives no topics.
4. Inserts the feedback into the `customer_feedback` table and reads back the
   `id` the database assigns.
5. Applies fixed rules to predict churn:
   - **0.8**: the score is below 5 and the feedback contains "bad", "poor",
     "terrible" or "unhappy" (case-insensitive), or the score is below 3 and
     the sentiment is `NEGATIVE`.
   - **0.1**: the score is 8 or more.
   - **0.4**: any other case.
6. Inserts the prediction into the `churn_predictions` table and returns it.

## Installation

```
pip install .
```

Tests need the `test` extra:

```
pip install ".[test]"
pytest
```

## Configuration

The service reads these environment variables:

| Variable       | Purpose                                                  |
|----------------|----------------------------------------------------------|
| `SUPABASE_URL` | Base URL of the Supabase project (required)              |
| `SUPABASE_KEY` | Supabase API key (required)                              |
| `HF_TOKEN`     | Hugging Face API token, used for sentiment and topics    |

If `HF_TOKEN` is not set, the service still starts and logs a warning. Every
request with non-blank feedback then gets the sentiment `UNKNOWN` and no topics.

## Running the server

```
churnagent-server
```

Before it starts serving, the server checks `SUPABASE_URL` and `SUPABASE_KEY`.
If either one is missing, or the port cannot be bound, it logs the error and
exits with status 1. By default it listens on port 8080 on all addresses. Use
`--host` and `--port` to change this:

```
churnagent-server --host 127.0.0.1 --port 9000
```

The server answers `/predict` and returns `404 page not found` for every other
path. Stop it with Ctrl-C.

## The API

Request:

```
POST /predict
Content-Type: application/json

{"nls_score": 4, "feedback_text": "The support was terrible."}
```

Response:

```json
{
  "customer_id": "…",
  "churn_probability": 0.8,
  "reason": "Low NLS score and/or negative feedback/sentiment.",
  "comment_sentiment": "NEGATIVE",
  "comment_topics": ["customer support"]
}
```

If the sentiment or the topic list is empty, that field is left out of the
response.

Errors come back as `{"error": "<message>"}` with one of these statuses:

- 400: the body is not valid JSON, or the score is missing, of the wrong type,
  or out of range.
- 405: the method is not POST.
- 500: client initialisation failed, or a row could not be stored.

## Using it as a library

- `churnagent.handler.create_app(client_factory=None)` returns a WSGI
  application. The app calls `client_factory` once, on the first request, to
  build the `SupabaseClient`. By default it uses
  `churnagent.storage.init_clients`, which reads the environment. If that call
  fails, every request gets a 500 response.
- `churnagent.handler.handle_predict(client, method, body)` handles one request
  without HTTP. It returns a `PredictResponse` or raises `ApiError`, which
  carries `status` and `message`.
- `churnagent.churn.predict_churn(data)` applies the churn rules to a
  `churnagent.models.CustomerData` and returns a `ChurnPrediction`. It makes no
  network calls.
- `churnagent.huggingface.get_sentiment` and `get_topics` call the inference
  API. They raise `HuggingFaceError` when the call fails.
- `churnagent.storage.SupabaseClient(url, key, timeout=30.0)` inserts rows
  through the Supabase REST interface. `store_customer_data` and
  `store_churn_prediction` raise `StorageError` on failure.

## What it does not do

- It does not create the `customer_feedback` or `churn_predictions` tables.
  They must already exist with columns that match the stored fields.
- It does not read predictions back, and it has no endpoint other than
  `/predict`.
- It does not authenticate incoming requests.
- It does not retry failed calls to Hugging Face or Supabase.