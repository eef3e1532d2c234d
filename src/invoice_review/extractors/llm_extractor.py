"""LLM extractor backed by a local Ollama server.

Privacy constraints:
- Never log prompts or raw document content at INFO level
- Remote Ollama: auth header support, no document text in logs

Every failure (disabled, transport, HTTP status, malformed JSON) surfaces as
ExtractionUnavailable so the ingest pipeline can fall back to a scaffold.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

import httpx

from ..schemas.field_values import Category
from .base import BaseExtractor, ExtractionResult, ExtractionUnavailable
from .prompts import ExtractionPrompt

if TYPE_CHECKING:
    from ..config import LLMConfig

logger = logging.getLogger(__name__)


class OllamaExtractor(BaseExtractor):
    """Extracts invoice fields by prompting an Ollama chat model for JSON."""

    def __init__(self, llm_config: LLMConfig) -> None:
        """Initialize the extractor.

        Args:
            llm_config: LLM section of the application configuration.
        """
        self.llm_config = llm_config
        self._prompt = ExtractionPrompt()

        headers = {}
        if llm_config.auth_header:
            # Support formats: "Bearer token" or "Custom-Header: value"
            if ":" in llm_config.auth_header:
                key, value = llm_config.auth_header.split(":", 1)
                headers[key.strip()] = value.strip()
            else:
                headers["Authorization"] = llm_config.auth_header

        self._client = httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(llm_config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
        )

    @property
    def name(self) -> str:
        return "llm"

    def extract(self, content: str) -> ExtractionResult:
        if not self.llm_config.enabled:
            raise ExtractionUnavailable("LLM extraction is disabled", strategy=self.name)

        url = f"{self.llm_config.ollama_url.rstrip('/')}/api/chat"
        payload = {
            "model": self.llm_config.model,
            "messages": [
                {"role": "system", "content": self._prompt.system_prompt},
                {
                    "role": "user",
                    "content": self._prompt.format_user_message(
                        content, [c.value for c in Category]
                    ),
                },
            ],
            "stream": False,
            "format": "json",
        }

        logger.debug("Calling Ollama model %s at %s", self.llm_config.model, self.llm_config.ollama_url)

        try:
            response = self._client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.warning("Ollama request timed out after %ds", self.llm_config.timeout_seconds)
            raise ExtractionUnavailable("LLM request timed out", strategy=self.name) from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Ollama API error %s for model '%s'",
                e.response.status_code,
                self.llm_config.model,
            )
            raise ExtractionUnavailable(
                f"LLM returned HTTP {e.response.status_code}", strategy=self.name
            ) from e
        except httpx.RequestError as e:
            logger.error("Ollama request failed: %s (URL: %s)", e, self.llm_config.ollama_url)
            raise ExtractionUnavailable(f"LLM unreachable: {e}", strategy=self.name) from e
        except ValueError as e:
            raise ExtractionUnavailable("LLM response is not JSON", strategy=self.name) from e

        message = data.get("message", {}) if isinstance(data, dict) else {}
        fields = self._parse_json_response(message.get("content", ""))
        logger.debug("Ollama %s returned %d field(s)", self.llm_config.model, len(fields))

        result = ExtractionResult.from_field_map(fields, strategy=self.name)
        result.raw_matches["model"] = self.llm_config.model
        result.raw_matches["prompt_version"] = self._prompt.version
        return result

    def _parse_json_response(self, content: str) -> dict:
        """Parse JSON from the model output.

        Handles markdown code fences and JSON embedded in surrounding text.

        Raises:
            ExtractionUnavailable: If no JSON object can be recovered.
        """
        if not content:
            raise ExtractionUnavailable("Empty LLM response", strategy=self.name)

        content = content.strip()
        if content.startswith("```json"):
            content = content[7:]
        elif content.startswith("```"):
            content = content[3:]
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            match = re.search(r"\{[\s\S]*\}", content)
            if not match:
                raise ExtractionUnavailable("No JSON object in LLM response", strategy=self.name)
            try:
                parsed = json.loads(match.group())
            except json.JSONDecodeError as e:
                raise ExtractionUnavailable("Malformed JSON in LLM response", strategy=self.name) from e

        if not isinstance(parsed, dict):
            raise ExtractionUnavailable("LLM response is not a JSON object", strategy=self.name)
        return parsed

    def close(self) -> None:
        self._client.close()
