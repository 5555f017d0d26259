"""
Google Gemini API client for forecast queries.

`generate()` never raises and reports failures through GeminiResult.status.
`query()` is the Model Query seam used by the engine: it returns the text
plus grounding sources, and raises UpstreamUnavailable on any failure.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx

from probableplay.config import Settings, get_settings
from probableplay.errors import UpstreamUnavailable
from probableplay.models import Source
from probableplay.telemetry import record_llm_request

logger = logging.getLogger(__name__)

PROVIDER = "gemini"


@dataclass
class GeminiResult:
    """Result from a Gemini API call."""

    status: str  # COMPLETED, ERROR, TIMEOUT
    text: str
    tokens_in: int
    tokens_out: int
    exec_ms: int
    model_version: str
    raw_output: dict
    error: Optional[str] = None
    finish_reason: Optional[str] = None  # STOP, MAX_TOKENS, SAFETY, RECITATION, OTHER
    sources: list[Source] = field(default_factory=list)


@dataclass(frozen=True)
class ModelResponse:
    """Text answer plus the web sources the model grounded it on."""

    text: str
    sources: tuple[Source, ...] = ()


class ModelQuery(Protocol):
    async def query(
        self,
        subject: str,
        instructions: Optional[str] = None,
        temperature: Optional[float] = None,
        kind: str = "standard",
    ) -> ModelResponse:
        ...


class GeminiClient:
    """Async client for Google Gemini API."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        settings = settings or get_settings()
        self.api_key = (settings.GEMINI_API_KEY or "").strip()
        self.model = settings.GEMINI_MODEL
        self.base_url = settings.GEMINI_BASE_URL.rstrip("/")
        self.timeout = settings.LLM_TIMEOUT_SECONDS
        self.max_tokens = settings.GEMINI_MAX_TOKENS
        self.search_grounding = settings.LLM_SEARCH_GROUNDING

        self._client: Optional[httpx.AsyncClient] = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _build_payload(
        self,
        prompt: str,
        system_instruction: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> dict:
        generation_config = {"maxOutputTokens": max_tokens or self.max_tokens}
        if temperature is not None:
            generation_config["temperature"] = temperature

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if self.search_grounding:
            payload["tools"] = [{"google_search": {}}]
        return payload

    async def generate(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> GeminiResult:
        """
        Generate text using Gemini API.

        Args:
            prompt: The prompt to send to the model.
            system_instruction: Optional system role text.
            temperature: Sampling temperature (None = model default).
            max_tokens: Override default max tokens.

        Returns:
            GeminiResult with generated text and metadata.
        """
        if not self.api_key:
            return GeminiResult(
                status="NOT_CONFIGURED",
                text="",
                tokens_in=0,
                tokens_out=0,
                exec_ms=0,
                model_version=self.model,
                raw_output={},
                error="GEMINI_API_KEY not configured",
            )

        client = await self._get_client()
        url = f"{self.base_url}/{self.model}:generateContent?key={self.api_key}"
        payload = self._build_payload(prompt, system_instruction, temperature, max_tokens)

        start_time = time.time()

        try:
            response = await client.post(url, json=payload)
            elapsed_ms = int((time.time() - start_time) * 1000)

            if response.status_code != 200:
                error_text = response.text[:500]
                logger.error(f"Gemini API error {response.status_code}: {error_text}")
                return GeminiResult(
                    status="ERROR",
                    text="",
                    tokens_in=0,
                    tokens_out=0,
                    exec_ms=elapsed_ms,
                    model_version=self.model,
                    raw_output={},
                    error=f"HTTP {response.status_code}: {error_text}",
                )

            data = response.json()

            text, finish_reason = self._extract_text_and_reason(data)
            usage = data.get("usageMetadata", {})

            # Log warning if finish_reason indicates potential truncation
            if finish_reason and finish_reason != "STOP":
                logger.warning(
                    f"Gemini finishReason={finish_reason} (tokens_out={usage.get('candidatesTokenCount', 0)}, "
                    f"max_tokens={max_tokens or self.max_tokens}, text_len={len(text)})"
                )

            return GeminiResult(
                status="COMPLETED",
                text=text,
                tokens_in=usage.get("promptTokenCount", 0),
                tokens_out=usage.get("candidatesTokenCount", 0),
                exec_ms=elapsed_ms,
                model_version=data.get("modelVersion", self.model),
                raw_output=data,
                finish_reason=finish_reason,
                sources=self._extract_sources(data),
            )

        except httpx.TimeoutException:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Gemini API timeout after {elapsed_ms}ms")
            return GeminiResult(
                status="TIMEOUT",
                text="",
                tokens_in=0,
                tokens_out=0,
                exec_ms=elapsed_ms,
                model_version=self.model,
                raw_output={},
                error="Request timed out",
            )
        except Exception as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.exception(f"Gemini API error: {e}")
            return GeminiResult(
                status="ERROR",
                text="",
                tokens_in=0,
                tokens_out=0,
                exec_ms=elapsed_ms,
                model_version=self.model,
                raw_output={},
                error=str(e),
            )

    async def query(
        self,
        subject: str,
        instructions: Optional[str] = None,
        temperature: Optional[float] = None,
        kind: str = "standard",
    ) -> ModelResponse:
        """
        Model Query collaborator: text + sources, or UpstreamUnavailable.

        Args:
            subject: The prompt body.
            instructions: System instruction for the model.
            temperature: Sampling temperature.
            kind: Request kind, used only as a metrics label.
        """
        result = await self.generate(
            subject, system_instruction=instructions, temperature=temperature
        )
        record_llm_request(PROVIDER, kind, result.status.lower(), result.exec_ms)

        if result.status != "COMPLETED":
            raise UpstreamUnavailable(result.error or "Gemini request failed", status=result.status)
        if not result.text:
            raise UpstreamUnavailable("No response from model", status="ERROR")

        return ModelResponse(text=result.text, sources=tuple(result.sources))

    def _extract_text_and_reason(self, response: dict) -> tuple[str, Optional[str]]:
        """Extract text and finishReason from Gemini response."""
        candidates = response.get("candidates", [])
        if not candidates:
            return "", None

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")

        content = candidate.get("content", {})
        parts = content.get("parts", [])

        if not parts:
            return "", finish_reason

        # Grounded answers can arrive split across several text parts
        text = "".join(part.get("text", "") for part in parts)
        return text, finish_reason

    def _extract_sources(self, response: dict) -> list[Source]:
        """Map grounding chunks to Source citations (web chunks with title + uri)."""
        candidates = response.get("candidates", [])
        if not candidates:
            return []

        metadata = candidates[0].get("groundingMetadata") or {}
        sources = []
        for chunk in metadata.get("groundingChunks") or []:
            web = chunk.get("web") or {}
            if web.get("uri") and web.get("title"):
                sources.append(Source(title=web["title"], uri=web["uri"]))
        return sources
