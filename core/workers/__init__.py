"""Clause classification workers.

This package provides the classification stage of the pipeline:
- ClauseClassifier: validates and reconciles backend judgements
- OpenAIClauseJudge: chat-completions backend (OpenAI or Groq)
- KeywordClauseJudge: deterministic offline backend
- ClassifierRegistry: backend lookup by name
"""

from core.workers.base_worker import ClassificationContext, LanguageModelClassifier
from core.workers.classifier import ClauseClassifier, ClauseJudgement, build_context
from core.workers.keyword_judge import KeywordClauseJudge
from core.workers.openai_judge import OpenAIClauseJudge
from core.workers.worker_registry import ClassifierRegistry

__all__ = [
    "ClassificationContext",
    "ClassifierRegistry",
    "ClauseClassifier",
    "ClauseJudgement",
    "KeywordClauseJudge",
    "LanguageModelClassifier",
    "OpenAIClauseJudge",
    "build_context",
]
