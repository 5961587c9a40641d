"""Realtime transport and voice session lifecycle."""
