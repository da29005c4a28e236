"""Core configuration and process-scoped resources."""
