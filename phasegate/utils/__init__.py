"""Shared utilities: logging, audit trail, retries."""
