"""Care Feedback HTTP API."""
