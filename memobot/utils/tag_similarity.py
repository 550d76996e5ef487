"""
Pure helpers deciding whether two tag names mean the same thing.

Equivalence combines normalization (case, plural suffixes, separators), a
fixed abbreviation dictionary and normalized edit-distance similarity.
"""

from __future__ import annotations

import re

ABBREVIATIONS: dict[str, list[str]] = {
    "meeting": ["mtg", "meet"],
    "document": ["doc", "docs"],
    "information": ["info"],
    "application": ["app", "apps"],
    "development": ["dev"],
    "production": ["prod"],
    "configuration": ["config", "cfg"],
    "message": ["msg"],
    "project": ["proj"],
    "reference": ["ref"],
    "specification": ["spec", "specs"],
    "repository": ["repo"],
    "administration": ["admin"],
    "authentication": ["auth"],
    "organization": ["org"],
    "environment": ["env"],
    "temporary": ["temp", "tmp"],
    "management": ["mgmt"],
    "department": ["dept"],
    "number": ["num", "no"],
    "assistant": ["asst"],
    "account": ["acct"],
    "address": ["addr"],
    "approximate": ["approx"],
    "average": ["avg"],
    "building": ["bldg"],
    "company": ["co"],
    "corporation": ["corp"],
    "december": ["dec"],
    "january": ["jan"],
    "february": ["feb"],
}

# Abbreviations shorter than this only match exactly; "co" or "no" inside
# an unrelated word is not evidence of anything.
MIN_CONTAINED_ABBREVIATION = 3

SHORT_NAME_LENGTH = 5
SHORT_NAME_THRESHOLD = 0.85
DEFAULT_THRESHOLD = 0.80

_SEPARATORS = re.compile(r"[-_]+")
_WHITESPACE = re.compile(r"\s+")


def _singularize(word: str) -> str:
    if len(word) > 4 and word.endswith("ies"):
        return word[:-3] + "y"
    if (
        len(word) > 4
        and word.endswith("es")
        and word[:-2].endswith(("s", "x", "z", "ch", "sh"))
    ):
        return word[:-2]
    if len(word) > 3 and word.endswith("s") and not word.endswith("ss"):
        return word[:-1]
    return word


def normalize_tag_name(name: str) -> str:
    """Lowercase, trim, singularize each word, then drop separators."""
    words = _WHITESPACE.split(_SEPARATORS.sub(" ", name.strip().lower()))
    return "".join(_singularize(w) for w in words if w)


def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def _abbreviation_match(full: str, other: str) -> bool:
    for long_form, short_forms in ABBREVIATIONS.items():
        if full == long_form and other in short_forms:
            return True
        if long_form in full:
            for short in short_forms:
                if len(short) >= MIN_CONTAINED_ABBREVIATION and short in other:
                    return True
    return False


def similarity_threshold(a: str, b: str) -> float:
    return (
        SHORT_NAME_THRESHOLD
        if min(len(a), len(b)) <= SHORT_NAME_LENGTH
        else DEFAULT_THRESHOLD
    )


def normalized_names_equivalent(a: str, b: str) -> bool:
    """Equivalence on already-normalized names."""
    if not a or not b:
        return False
    if a == b:
        return True
    if _abbreviation_match(a, b) or _abbreviation_match(b, a):
        return True
    return string_similarity(a, b) >= similarity_threshold(a, b)


def tags_equivalent(name_a: str, name_b: str) -> bool:
    return normalized_names_equivalent(
        normalize_tag_name(name_a), normalize_tag_name(name_b)
    )
