"""Operation timing."""
