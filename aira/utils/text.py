"""Normalization helpers for informal Indonesian user input.

Every function works on a trimmed, lower-cased copy of its input. Only
``parse_salary`` and ``validate_salary`` raise; the rest degrade to a
sensible default.
"""

import math
import re
from enum import Enum
from typing import NamedTuple

from aira.errors import SalaryFormatError


class Lifestyle(str, Enum):
    FRUGAL = "Minimalis"
    BALANCED = "Moderate"
    RELAXED = "Santai"


class Confirmation(NamedTuple):
    is_confirmation: bool
    is_yes: bool


CURRENCY_WORDS = ("rupiah", "idr", "rp")

# Largest magnitude first: "m" must not be tried before "miliar" is ruled out.
MAGNITUDE_SUFFIXES: tuple[tuple[tuple[str, ...], int], ...] = (
    (("miliar", "milyar", "m"), 1_000_000_000),
    (("juta", "jt"), 1_000_000),
    (("ribu", "rb", "k"), 1_000),
)

CITY_TABLE = {
    "jkt": "Jakarta",
    "jakarta": "Jakarta",
    "sby": "Surabaya",
    "surabaya": "Surabaya",
    "bdg": "Bandung",
    "bandung": "Bandung",
    "jogja": "Yogyakarta",
    "jogjakarta": "Yogyakarta",
    "yogya": "Yogyakarta",
    "yogyakarta": "Yogyakarta",
    "mdn": "Medan",
    "medan": "Medan",
    "bali": "Bali",
    "denpasar": "Bali",
}

SUPPORTED_CITIES = frozenset(CITY_TABLE.values())

LIFESTYLE_KEYWORDS: tuple[tuple[Lifestyle, tuple[str, ...]], ...] = (
    (Lifestyle.FRUGAL, ("minimalis", "hemat", "irit", "sederhana", "saving", "nabung", "1")),
    (Lifestyle.RELAXED, ("santai", "yolo", "enjoy", "boros", "flexing", "fun", "3")),
    (Lifestyle.BALANCED, ("moderate", "balanced", "seimbang", "normal", "biasa", "2")),
)

YES_KEYWORDS = ("ya", "yes", "iya", "ok", "oke", "siap", "betul", "benar", "lanjut")
NO_KEYWORDS = ("tidak", "no", "nope", "enggak", "gak", "salah", "ulang")

BUDGET_TRIGGER_PHRASES = (
    "buatin budget",
    "bikinin budget",
    "generate budget",
    "buat budget",
    "siap",
    "oke buatin",
    "lanjut",
    "udah cukup",
)

SALARY_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"\d+\s*(?:miliar|milyar|juta|jt|ribu|rb)",
        r"\d{7,}",
        r"rp\.?\s*\d+",
    )
)

_CURRENCY = re.compile(r"(?:" + "|".join(CURRENCY_WORDS) + r")\.?")
# "Rp5.000.000,-" and "5.000.000.-"
_TRAILING_DASH = re.compile(r"[,.]?-+$")
_THOUSANDS_SEPARATOR = re.compile(r"(?<=\d)\.(?=\d{3}(?!\d))")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")

MIN_SALARY = 1_000_000
MAX_SALARY = 1_000_000_000


def _clean(text: str) -> str:
    return text.strip().lower()


def parse_salary(text: str) -> float:
    """Parse salary strings such as ``"5 juta"``, ``"5jt"``, ``"Rp 5.000.000"``
    ``"Rp. 5.000.000,-"`` or ``"5,5 juta"`` into an amount in rupiah."""
    value = _clean(text)
    value = _CURRENCY.sub("", value)
    value = _TRAILING_DASH.sub("", value.strip())
    value = _THOUSANDS_SEPARATOR.sub("", value)
    value = value.replace(",", ".")
    value = re.sub(r"\s+", "", value)

    multiplier = 1
    for tokens, factor in MAGNITUDE_SUFFIXES:
        suffix = next((t for t in tokens if value.endswith(t)), None)
        if suffix is not None:
            value = value[: -len(suffix)]
            multiplier = factor
            break

    if not _NUMBER.fullmatch(value):
        raise SalaryFormatError(f"invalid salary format: {text!r}")

    return round(float(value) * multiplier, 2)


def validate_salary(amount: float) -> None:
    if amount <= 0:
        raise SalaryFormatError("salary must be greater than 0")
    if amount < MIN_SALARY:
        raise SalaryFormatError("salary seems too low (below 1 million)")
    if amount > MAX_SALARY:
        raise SalaryFormatError("salary seems unrealistically high")


def normalize_location(text: str) -> str:
    value = _clean(text)
    return CITY_TABLE.get(value, value.title())


def is_supported_location(text: str) -> bool:
    return normalize_location(text) in SUPPORTED_CITIES


def _match_lifestyle(text: str) -> Lifestyle | None:
    value = _clean(text)
    for lifestyle, keywords in LIFESTYLE_KEYWORDS:
        if any(keyword in value for keyword in keywords):
            return lifestyle
    return None


def normalize_lifestyle(text: str) -> Lifestyle:
    return _match_lifestyle(text) or Lifestyle.BALANCED


def is_valid_lifestyle(text: str) -> bool:
    """True when the text names a lifestyle explicitly instead of falling
    back to the default tier."""
    return _match_lifestyle(text) is not None


def extract_confirmation(text: str) -> Confirmation:
    value = _clean(text)
    if any(keyword in value for keyword in YES_KEYWORDS):
        return Confirmation(is_confirmation=True, is_yes=True)
    if any(keyword in value for keyword in NO_KEYWORDS):
        return Confirmation(is_confirmation=True, is_yes=False)
    return Confirmation(is_confirmation=False, is_yes=False)


def contains_salary_info(text: str) -> bool:
    value = _clean(text)
    return any(pattern.search(value) for pattern in SALARY_PATTERNS)


def requests_budget(text: str) -> bool:
    value = _clean(text)
    return any(phrase in value for phrase in BUDGET_TRIGGER_PHRASES)


def round_to_nearest(amount: float, interval: float) -> float:
    """Round half away from zero to the nearest multiple of ``interval``."""
    if interval <= 0 or not math.isfinite(amount) or not math.isfinite(interval):
        return amount
    steps = math.floor(abs(amount) / interval + 0.5)
    return math.copysign(steps * interval, amount)


def format_rupiah(amount: float) -> str:
    """``1500000`` -> ``"Rp 1.500.000"``."""
    return "Rp " + f"{round(amount):,}".replace(",", ".")
