"""
LLM interface for Prdtrack using LiteLLM.

The planning engine treats the model as a text-analysis oracle: it sends
free-text instructions plus a context blob and expects one JSON object back,
either in a ```json fenced block or as bare braces.

LiteLLM supports 100+ providers:
- OpenAI (gpt-4o, gpt-4-turbo)
- Anthropic (claude-3-5-sonnet, claude-3-opus)
- Google (gemini-pro, gemini-1.5-pro)
- Azure, AWS Bedrock, Ollama, and more

See: https://docs.litellm.ai/docs/providers
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Protocol

from .config import LLMConfig
from .errors import ConfigError, OracleResponseError

logger = logging.getLogger(__name__)

# Suppress LiteLLM's verbose logging
logging.getLogger("LiteLLM").setLevel(logging.WARNING)


FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
BARE_JSON = re.compile(r"(\{.*\})", re.DOTALL)


class Oracle(Protocol):
    """Anything that answers instructions + context with free text."""

    def complete(self, instructions: str, context: str) -> str:
        ...


def extract_json(content: str) -> dict[str, Any]:
    """
    Locate and decode the JSON object in an oracle response.

    Tries a fenced block first, then the outermost brace pair. Raises
    OracleResponseError when neither yields a JSON object.
    """
    match = FENCED_JSON.search(content) or BARE_JSON.search(content)
    if not match:
        logger.error("No valid JSON found in AI response: %s", content[:500])
        raise OracleResponseError("No valid JSON found in AI response")

    try:
        data = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        logger.error("Failed to parse JSON from AI response: %s", match.group(1)[:500])
        raise OracleResponseError(f"Failed to parse JSON from AI response: {e}") from e

    if not isinstance(data, dict):
        raise OracleResponseError("AI response JSON is not an object")
    return data


class LLMClient:
    """LiteLLM-based oracle client."""

    def __init__(
        self,
        model: str = "gpt-4o",
        temperature: float = 0.1,  # Low for consistent planning decisions
        max_tokens: int = 4000,
        json_mode: bool = False,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.json_mode = json_mode
        self._litellm = None

    def _get_litellm(self):
        """Lazy import LiteLLM."""
        if self._litellm is None:
            try:
                import litellm
                self._litellm = litellm
            except ImportError:
                raise ImportError(
                    "LiteLLM is required for PRD analysis. "
                    "Install with: pip install litellm"
                )
        return self._litellm

    @property
    def enabled(self) -> bool:
        """Check if the model's provider has an API key configured."""
        model_lower = self.model.lower()
        if model_lower.startswith(("gpt-", "o1", "o3", "openai/")):
            return bool(os.environ.get("OPENAI_API_KEY"))
        elif model_lower.startswith(("claude-", "anthropic/")):
            return bool(os.environ.get("ANTHROPIC_API_KEY"))
        elif model_lower.startswith(("gemini-", "gemini/")):
            return bool(os.environ.get("GOOGLE_API_KEY") or os.environ.get("GEMINI_API_KEY"))
        return True

    def complete(self, instructions: str, context: str) -> str:
        """Send one instructions/context pair and return the raw response text."""
        if not self.enabled:
            raise ConfigError(f"No API key configured for model {self.model}")
        litellm = self._get_litellm()

        logger.debug(
            "Starting AI analysis with %s (instructions %d chars, context %d chars)",
            self.model, len(instructions), len(context),
        )

        kwargs: dict[str, Any] = {}
        if self.json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = litellm.completion(
                model=self.model,
                messages=[
                    {"role": "system", "content": instructions},
                    {"role": "user", "content": context},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                **kwargs,
            )
        except Exception as e:
            logger.error("LLM call failed with %s: %s", self.model, e)
            raise OracleResponseError(f"LLM call failed: {e}") from e

        content = response.choices[0].message.content or ""
        usage = getattr(response, "usage", None)
        tokens = getattr(usage, "total_tokens", 0) if usage else 0
        logger.info(
            "AI analysis: used %s tokens, generated %d chars response",
            tokens, len(content),
        )
        return content


def get_llm_client(config: LLMConfig | None = None) -> LLMClient:
    """Get the configured LLM client."""
    config = config or LLMConfig()
    return LLMClient(
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        json_mode=config.json_mode,
    )
