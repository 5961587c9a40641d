"""Calendar server: Google OAuth and Calendar over FastAPI."""
