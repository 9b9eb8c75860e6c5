"""Diagnostic model, store, ingestion and the background sweeper."""
