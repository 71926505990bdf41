from __future__ import annotations

import re
from typing import Any

_MARKET_SUFFIX = re.compile(r"[\s,]+(?:mkt|market)\.?\s*$")
_DIRECTIONALS = (
    (re.compile(r"^n[.\s]+"), "north "),
    (re.compile(r"^s[.\s]+"), "south "),
    (re.compile(r"^e[.\s]+"), "east "),
    (re.compile(r"^w[.\s]+"), "west "),
)
_ABBREVIATIONS = (
    (re.compile(r"\b(?:ft|fort)\b\.?"), "fort"),
    (re.compile(r"\b(?:st|saint)\b\.?"), "saint"),
    (re.compile(r"\b(?:mt|mount)\b\.?"), "mount"),
)
_NON_ALNUM = re.compile(r"[^a-z0-9]")
_ASCII_LOWER = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def normalize_city_name(name: Any) -> str:
    """
    Canonical spelling for matching, e.g. "Ft. Worth Mkt" -> "fortworth",
    "St Louis" -> "saintlouis". Pure and locale independent.
    """
    if name is None:
        return ""
    text = str(name).strip().translate(_ASCII_LOWER)
    text = _MARKET_SUFFIX.sub("", text)
    for pattern, repl in _DIRECTIONALS:
        text = pattern.sub(repl, text)
    for pattern, repl in _ABBREVIATIONS:
        text = pattern.sub(repl, text)
    return _NON_ALNUM.sub("", text)


def normalize_state(state: Any) -> str:
    return str(state or "").strip().upper()


def city_key(name: Any, state: Any) -> str:
    return f"{normalize_city_name(name)}|{normalize_state(state)}"
