"""Vikara: talk or type to book meetings on Google Calendar."""

from __future__ import annotations

__version__ = "0.1.0"
