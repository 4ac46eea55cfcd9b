"""Command and response schemas for the hierarchy use cases."""
