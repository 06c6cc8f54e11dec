"""Text normalization shared by every matching stage."""

from __future__ import annotations

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
# Consonants a Spanish singular can end in before an "-es" plural.
_ES_PLURAL_STEMS = set("dlnrjxy")


def normalize(text: str) -> str:
    """Lower-case, strip accents and punctuation, collapse whitespace.

    "Arroz Diána  500-G" -> "arroz diana 500g"
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = _NON_ALNUM.sub("", stripped)
    return _WHITESPACE.sub(" ", cleaned).strip()


def words(text: str, min_length: int = 0) -> list[str]:
    """Split normalized text into words longer than ``min_length``."""
    return [w for w in normalize(text).split(" ") if w and len(w) > min_length]


def singularize(word: str) -> str:
    """Fold a Spanish plural back to its singular form.

    Only the regular endings are handled: "arroces" -> "arroz",
    "limones" -> "limon", "huevos" -> "huevo". Short words are left alone.
    """
    if len(word) <= 3 or not word.endswith("s"):
        return word
    if word.endswith("ces"):
        return word[:-3] + "z"
    if word.endswith("es") and len(word) > 4 and word[-3] in _ES_PLURAL_STEMS:
        return word[:-2]
    return word[:-1]


def singularize_text(text: str) -> str:
    return " ".join(singularize(w) for w in normalize(text).split(" ") if w)
