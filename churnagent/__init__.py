"""WSGI service scoring customer feedback for churn risk, backed by Supabase and Hugging Face inference."""

__version__ = "0.1.0"