"""
Chat-completion text generation provider (OpenRouter, OpenAI or Anthropic).
"""

import json
import os
from typing import Any, Dict, Optional

from anthropic import Anthropic
from loguru import logger
from openai import OpenAI

from .base import TextGenerationProvider
from ..config.settings import LLM_CONFIG
from ..errors import TextGenerationError

SYSTEM_PROMPT = (
    "You are a B2B lead scoring expert specializing in evaluating companies for "
    "marketing automation, WhatsApp Business API, and digital transformation "
    "opportunities. Analyze the provided data and return a JSON response with "
    "lead scoring and insights. Always respond with valid JSON only."
)


class ChatCompletionProvider(TextGenerationProvider):
    """
    Text generation over a chat-completion API.
    complete() returns the parsed JSON object from the model response.
    """

    name = "chat_completion"

    def __init__(
        self,
        api_key: Optional[str] = None,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the LLM client.

        Args:
            api_key: API key for the LLM provider
            provider: "openrouter", "openai" or "anthropic"
            model: Model identifier in the provider's format
            base_url: API base URL (OpenRouter only)
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or LLM_CONFIG.get("api_key") or os.getenv("OPENROUTER_API_KEY")
        self.provider = provider or LLM_CONFIG.get("provider", "openrouter")
        self.model = model or LLM_CONFIG.get("model", "openai/gpt-4-turbo")
        self.base_url = base_url or LLM_CONFIG.get("base_url", "https://openrouter.ai/api/v1")
        self.timeout = timeout or LLM_CONFIG.get("timeout", 30)
        self.max_tokens = LLM_CONFIG.get("max_tokens", 1500)
        self.temperature = LLM_CONFIG.get("temperature", 0.7)
        self.client = self._initialize_client()

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _initialize_client(self):
        """Initialize the SDK client based on provider"""
        if not self.api_key:
            logger.warning("No LLM API key provided, AI scoring disabled")
            return None

        if self.provider == "openrouter":
            return OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                default_headers={
                    "HTTP-Referer": LLM_CONFIG.get("site_url", ""),
                    "X-Title": LLM_CONFIG.get("app_name", ""),
                },
            )
        if self.provider == "openai":
            return OpenAI(api_key=self.api_key, timeout=self.timeout)
        if self.provider == "anthropic":
            return Anthropic(api_key=self.api_key, timeout=self.timeout)

        raise ValueError(f"Unknown provider: {self.provider}")

    def complete(self, prompt: str) -> Dict[str, Any]:
        if self.client is None:
            raise TextGenerationError("LLM client not configured")

        try:
            content = self._call_llm(prompt)
        except TextGenerationError:
            raise
        except Exception as e:
            raise TextGenerationError(f"{self.provider} request failed: {e}") from e

        return parse_json_response(content)

    def _call_llm(self, prompt: str) -> str:
        """Call the LLM API and return the raw text"""
        if self.provider in ["openrouter", "openai"]:
            # Both OpenRouter and OpenAI use the same SDK interface
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                response_format={"type": "json_object"},
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
            return response.choices[0].message.content or ""

        response = self.client.messages.create(
            model=self.model,
            system=SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.content[0].text


def parse_json_response(response: str) -> Dict[str, Any]:
    """Parse a model response into a JSON object, tolerating markdown fences"""
    clean = (response or "").strip()
    if clean.startswith("```"):
        parts = clean.split("```")
        clean = parts[1] if len(parts) > 1 else ""
        if clean.startswith("json"):
            clean = clean[4:]
    clean = clean.strip()

    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise TextGenerationError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise TextGenerationError(f"Expected a JSON object, got {type(data).__name__}")
    return data
