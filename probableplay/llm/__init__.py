"""Model query client, response extraction and model-backed lookups."""

from probableplay.llm.extraction import extract_structured, try_extract_structured
from probableplay.llm.gemini_client import GeminiClient, ModelQuery, ModelResponse

__all__ = [
    "extract_structured", "try_extract_structured",
    "GeminiClient", "ModelQuery", "ModelResponse",
]
