"""Blueprint Engine — HTTP API."""
