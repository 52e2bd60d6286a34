"""Storage and embedding adapters."""
