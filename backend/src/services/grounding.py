"""Grounding gate: decide whether an answer may be attempted at all."""

from __future__ import annotations

import logging

from src.models.pipeline import GateDecision
from src.models.rag import GroundingContext, RetrievalResult
from src.services.language import detect_language, refusal_message

logger = logging.getLogger(__name__)


def check_grounding(results: list[RetrievalResult], question: str) -> GateDecision:
    """Refuse when the retrieved evidence is empty or blank, otherwise proceed.

    Pure function of its inputs: identical results and question always yield
    the same decision.
    """
    language = detect_language(question)
    evidence = [r for r in results if r.content.strip()]
    if not evidence:
        logger.info("Grounding gate: refuse (no evidence, language=%s)", language)
        return GateDecision(
            proceed=False, language=language, refusal=refusal_message(language)
        )

    context = GroundingContext(results=evidence)
    logger.info(
        "Grounding gate: proceed with %d records %s", len(evidence), context.record_ids
    )
    return GateDecision(proceed=True, language=language, context=context)
