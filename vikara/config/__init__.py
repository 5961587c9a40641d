"""Configuration via pydantic-settings."""
