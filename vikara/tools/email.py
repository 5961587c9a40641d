"""Spoken-email normalization and validation.

Speech-to-text renders ``vik@example.com`` as ``"Vik at example dot com"``.
One policy is applied everywhere, before validation:

1. lowercase and trim
2. `` at `` -> ``@`` and `` dot `` -> ``.`` (whole words, any surrounding whitespace)
3. strip leading/trailing punctuation other than characters valid at the ends
4. drop remaining whitespace

The result is then checked against ``local@domain.tld``.
"""

from __future__ import annotations

import re

_SPOKEN_AT = re.compile(r"\s+at\s+")
_SPOKEN_DOT = re.compile(r"\s+dot\s+")
_WHITESPACE = re.compile(r"\s+")
_EDGE_PUNCTUATION = " \t\r\n.,;:!?\"'`()[]{}<>"

EMAIL_PATTERN = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9-]+(?:\.[a-z0-9-]+)*\.[a-z]{2,}$")

REPEAT_EMAIL_MESSAGE = (
    "The email address '{value}' does not look valid. "
    "Ask the user to repeat the email slowly, letter by letter."
)


def normalize_spoken_email(raw: str) -> str:
    """Turn a transcribed email into its written form.

    >>> normalize_spoken_email("Vik at Example dot com.")
    'vik@example.com'
    """
    text = f" {raw.strip().lower()} "
    text = _SPOKEN_AT.sub("@", text)
    text = _SPOKEN_DOT.sub(".", text)
    text = text.strip(_EDGE_PUNCTUATION)
    return _WHITESPACE.sub("", text)


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))
