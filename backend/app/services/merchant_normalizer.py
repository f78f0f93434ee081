"""
Merchant normalization for recurring expense detection.

Collapses a raw bank description such as
``"PURCHASE AUTHORIZED ON 03/14 NETFLIX.COM 866-579-7172 CA CARD 4321"``
into a stable merchant key (``"netflix"``). The pipeline is applied until it
reaches a fixed point, so normalizing a key again returns the same key.
"""

import re
from typing import Optional

from app.config import Settings, settings as default_settings

_BOILERPLATE = re.compile(
    r"\b(?:recurring payment authorized on|purchase authorized on|debit card purchase|"
    r"paypal inst xfer|ach debit|purchase|pos)\b"
)
_CARD_FRAGMENT = re.compile(r"\bcard\s*[#x*\d]{4,}")
_SHORT_DATE = re.compile(r"\b\d{1,2}/\d{1,2}(?:/\d{2,4})?\b")
# Bank reference codes such as "S584073000000000"
_REFERENCE_CODE = re.compile(r"\b[a-z]\d{4,}\w*\b")
_LONG_DIGITS = re.compile(r"\d{4,}")
_DISALLOWED = re.compile(r"[^a-z0-9&'. ]")
_WHITESPACE = re.compile(r"\s+")
_SHORT_NUMBER = re.compile(r"^\d{1,3}$")

US_STATE_CODES = frozenset(
    "al ak az ar ca co ct de fl ga hi id il in ia ks ky la me md ma mi mn ms mo "
    "mt ne nv nh nj nm ny nc nd oh ok or pa ri sc sd tn tx ut vt va wa wv wi wy dc".split()
)

_MAX_PASSES = 50


def _strip_trailing_noise(text: str) -> str:
    tokens = text.split(" ")
    while len(tokens) > 1:
        last = tokens[-1].strip(".'")
        if last in US_STATE_CODES or _SHORT_NUMBER.match(last) or not last:
            tokens.pop()
        else:
            break
    return " ".join(tokens)


def _resolve_alias(text: str, config: Settings) -> str:
    for fragment, canonical in config.merchant_aliases.items():
        if fragment in text:
            return canonical
    return text


def _normalize_once(text: str, config: Settings) -> str:
    text = text.casefold()
    text = _BOILERPLATE.sub(" ", text)
    text = _CARD_FRAGMENT.sub(" ", text)
    text = _SHORT_DATE.sub(" ", text)
    text = _REFERENCE_CODE.sub(" ", text)
    text = _LONG_DIGITS.sub(" ", text)
    text = _DISALLOWED.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip(" .'")
    text = _strip_trailing_noise(text)
    text = _resolve_alias(text, config)
    return text[:config.merchant_key_max_length].rstrip(" .'")


def normalize(description: Optional[str], config: Optional[Settings] = None) -> str:
    """
    Reduce a transaction description to its canonical merchant key.

    Returns an empty string when nothing recognizable is left.
    """
    config = config or default_settings
    text = description or ""

    for _ in range(_MAX_PASSES):
        normalized = _normalize_once(text, config)
        if normalized == text:
            break
        text = normalized

    return text


def display_name(merchant_key: str) -> str:
    """Human-readable rendering of a merchant key."""
    return " ".join(word.capitalize() for word in merchant_key.split(" ") if word)
