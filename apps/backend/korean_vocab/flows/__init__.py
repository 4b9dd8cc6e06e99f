"""Multi-step flows that combine an LLM provider with validation."""

from .vocabulary_generate import VocabularyGenerateFlow, VocabularyGenerationError

__all__ = ["VocabularyGenerateFlow", "VocabularyGenerationError"]
