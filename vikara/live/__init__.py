"""Realtime model connectors."""
