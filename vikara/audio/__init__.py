"""Microphone, camera and speaker pipelines."""
