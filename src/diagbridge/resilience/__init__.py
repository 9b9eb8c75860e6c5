"""Host error types, classification and in-flight deduplication."""
