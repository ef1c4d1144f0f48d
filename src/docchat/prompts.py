"""Prompt templates for grounded and ungrounded chat turns."""
from __future__ import annotations

from typing import Sequence

GROUNDED_TEMPLATE = (
    "You are a helpful AI assistant. Answer the user's question based *only* on the "
    "provided context. If the answer cannot be found in the context, politely state "
    "that you don't have enough information.\n\n"
    "Context:\n{context}\n\n"
    "Question: {question}"
)

UNGROUNDED_TEMPLATE = (
    "You are a helpful AI assistant. Answer the following question:\n"
    "Question: {question}"
)

NO_RELEVANT_INFORMATION_MESSAGE = (
    "I couldn't find relevant information in the provided document to answer your "
    "question. Could you please rephrase or ask about something else in the document?"
)


def build_context(passages: Sequence[str]) -> str:
    """Join passages with a blank line, keeping their order."""

    return "\n\n".join(passage.strip() for passage in passages)


def build_grounded_prompt(question: str, passages: Sequence[str]) -> str:
    if not passages:
        raise ValueError("a grounded prompt needs at least one passage")
    return GROUNDED_TEMPLATE.format(context=build_context(passages), question=question.strip())


def build_ungrounded_prompt(question: str) -> str:
    return UNGROUNDED_TEMPLATE.format(question=question.strip())


__all__ = [
    "GROUNDED_TEMPLATE",
    "NO_RELEVANT_INFORMATION_MESSAGE",
    "UNGROUNDED_TEMPLATE",
    "build_context",
    "build_grounded_prompt",
    "build_ungrounded_prompt",
]
