"""Core infrastructure: domain models and LLM access."""
