"""Host collaborators: protocols, standalone adapters, test fakes."""
