"""Input language detection and the canned, localized pipeline messages."""

from __future__ import annotations

import re

DEFAULT_LANGUAGE = "en"

REFUSAL_MESSAGES: dict[str, str] = {
    "en": "No official data found in current clinical guidelines.",
    "fr": "Aucune donnée officielle trouvée dans les recommandations cliniques actuelles.",
}

APOLOGY_MESSAGES: dict[str, str] = {
    "en": (
        "Sorry, the clinical assistant is temporarily unavailable. "
        "Please try again in a moment."
    ),
    "fr": (
        "Désolé, l'assistant clinique est momentanément indisponible. "
        "Veuillez réessayer dans un instant."
    ),
}

_FRENCH_MARKERS = frozenset(
    {
        "le", "la", "les", "un", "une", "des", "du", "de", "et", "est",
        "quel", "quelle", "quels", "quelles", "pour", "avec", "dans", "sur",
        "chez", "enfant", "contient", "combien", "posologie", "comment",
        "qu", "est-ce", "quoi", "pourquoi", "je", "il", "elle", "nous", "vous",
    }
)
_ENGLISH_MARKERS = frozenset(
    {
        "the", "a", "an", "and", "is", "are", "what", "which", "for", "with",
        "in", "on", "of", "child", "does", "how", "much", "why", "i", "it",
        "we", "you", "dose", "contain",
    }
)
_FRENCH_ACCENTS = re.compile(r"[àâçéèêëîïôûùüÿœ]")
_WORD = re.compile(r"[a-zàâçéèêëîïôûùüÿœ]+(?:-[a-zàâçéèêëîïôûùüÿœ]+)*")


def detect_language(text: str) -> str:
    """Return "fr" or "en" from stop-word and accent counts."""
    lowered = text.lower()
    words = _WORD.findall(lowered)
    french = sum(1 for w in words if w in _FRENCH_MARKERS)
    french += len(_FRENCH_ACCENTS.findall(lowered))
    english = sum(1 for w in words if w in _ENGLISH_MARKERS)
    return "fr" if french > english else DEFAULT_LANGUAGE


def refusal_message(language: str) -> str:
    return REFUSAL_MESSAGES.get(language, REFUSAL_MESSAGES[DEFAULT_LANGUAGE])


def apology_message(language: str) -> str:
    return APOLOGY_MESSAGES.get(language, APOLOGY_MESSAGES[DEFAULT_LANGUAGE])
