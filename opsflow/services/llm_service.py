"""
LLM service for OpsFlow.
Provides text generation via the OpenAI chat completions API, optionally with a
JSON schema for structured output or a search-enabled model for web context.
"""

import json
import time
import uuid
from typing import Any, Dict, Optional

import requests

from opsflow.services.errors import LLMError
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.llm')


class LLMService:
    """Service for interacting with the OpenAI API."""

    def __init__(self, api_key: str = "", model: str = "gpt-4o-mini",
                 search_model: str = "gpt-4o-mini-search-preview", timeout: int = 60,
                 api_base: str = "https://api.openai.com/v1"):
        self.api_key = api_key
        self.model = model
        self.search_model = search_model
        self.api_base = api_base
        self.timeout = timeout

    def is_configured(self) -> bool:
        """Check if an API key is configured."""
        return bool(self.api_key)

    def generate(
        self,
        prompt: str,
        response_schema: Optional[Dict[str, Any]] = None,
        add_context_from_internet: bool = False,
        system: Optional[str] = None,
    ) -> Any:
        """
        Generate a completion for ``prompt``.

        Args:
            prompt: User prompt
            response_schema: Optional JSON schema; the parsed object is returned
                and trusted to conform
            add_context_from_internet: Use the search-enabled model
            system: Optional system message

        Returns:
            The response text, or the parsed object when a schema is supplied

        Raises:
            LLMError: not configured, transport failure, non-200 response or
                unparseable structured output
        """
        request_id = str(uuid.uuid4())
        start_time = time.time()

        if not self.is_configured():
            logger.warning(f"[{request_id}] OpenAI API key not configured")
            raise LLMError("OPENAI_API_KEY not configured")

        model = self.search_model if add_context_from_internet else self.model
        messages = [
            {"role": "system", "content": system or "You are a helpful AI assistant."},
            {"role": "user", "content": prompt},
        ]
        payload: Dict[str, Any] = {"model": model, "messages": messages}

        if add_context_from_internet:
            payload["web_search_options"] = {}
        else:
            payload["temperature"] = 0.2 if response_schema else 0.7

        if response_schema:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "response", "schema": response_schema},
            }

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}"
        }

        try:
            logger.info(f"[{request_id}] OpenAI request: model={model}", structured=bool(response_schema))
            response = requests.post(
                f"{self.api_base}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout
            )
        except requests.exceptions.Timeout:
            raise LLMError("OpenAI API timeout")
        except requests.exceptions.RequestException as e:
            raise LLMError(f"OpenAI API exception: {e}")

        latency_ms = int((time.time() - start_time) * 1000)

        if response.status_code != 200:
            logger.error(
                f"[{request_id}] OpenAI error: status={response.status_code}",
                error_details=response.text[:500],
                latency_ms=latency_ms
            )
            raise LLMError(f"OpenAI API error: {response.status_code}")

        data = response.json()
        content = data.get("choices", [{}])[0].get("message", {}).get("content") or ""
        usage = data.get("usage", {})
        logger.info(
            f"[{request_id}] OpenAI success: latency={latency_ms}ms, "
            f"tokens={usage.get('total_tokens', 0)}"
        )

        if not response_schema:
            return content

        try:
            return json.loads(content)
        except ValueError:
            raise LLMError("OpenAI returned malformed structured output")
