"""Core data model, configuration and error types for the fetch layer."""
