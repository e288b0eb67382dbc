"""Question normalization into a ranked keyword set."""

from __future__ import annotations

import re
from dataclasses import dataclass

# Articles, question words and generic dosage/unit words (English + French).
STOP_WORDS: frozenset[str] = frozenset(
    {
        # English
        "what", "which", "when", "where", "does", "have", "with", "from",
        "that", "this", "these", "those", "there", "their", "about", "into",
        "should", "would", "could", "much", "many", "dose", "dosage", "doses",
        "contain", "contains", "ingredient", "ingredients", "composition",
        "concentration", "amount", "quantity", "tell", "give", "please",
        "used", "using", "patient", "patients",
        # French
        "quel", "quelle", "quels", "quelles", "pour", "avec", "dans", "sont",
        "contient", "combien", "posologie", "quantite", "quantité",
        "comment", "cette", "cela", "leur", "leurs", "votre", "notre",
        "patiente", "chez",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s]|_")
_LETTER_DIGIT = re.compile(r"(?<=[^\W\d_])(?=\d)|(?<=\d)(?=[^\W\d_])")


@dataclass(frozen=True)
class NormalizedQuery:
    keywords: tuple[str, ...]
    search_text: str


def _tokenize(question: str) -> list[str]:
    text = _PUNCTUATION.sub(" ", question.lower())
    text = _LETTER_DIGIT.sub(" ", text)
    return text.split()


def normalize_query(
    question: str,
    *,
    min_length: int = 4,
    search_terms: int = 5,
) -> NormalizedQuery:
    """Lower-case, strip punctuation, split letter/digit runs and filter tokens.

    Keywords are de-duplicated and ranked longest first (ties keep their order
    of appearance), since longer tokens discriminate better in the keyword
    fallback. ``search_text`` joins the top ``search_terms`` keywords.
    """
    seen: dict[str, None] = {}
    for token in _tokenize(question):
        if len(token) < min_length or token in STOP_WORDS:
            continue
        seen.setdefault(token, None)

    keywords = tuple(sorted(seen, key=len, reverse=True))
    return NormalizedQuery(
        keywords=keywords,
        search_text=" ".join(keywords[:search_terms]),
    )
