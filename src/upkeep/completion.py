"""Text-completion backends and JSON recovery from completion output."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import openai

from upkeep.config import Config
from upkeep.errors import MalformedOutput, UpstreamError
from upkeep.models import Settings
from upkeep.transport import TransportClient

logger = logging.getLogger(__name__)

GPT_PATH = "/api/yandex/gpt"
MODEL_URI_TEMPLATE = "gpt://{folder_id}/yandexgpt/latest"


class CompletionBackend(Protocol):
    name: str

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str: ...


class RelayCompletionBackend:
    """YandexGPT completion through the relay's GPT endpoint."""

    name = "yandexgpt"

    def __init__(self, transport: TransportClient, base_url: str, settings: Settings):
        self.transport = transport
        self.url = base_url.rstrip("/") + GPT_PATH
        self.settings = settings

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        body = {
            "apiKey": self.settings.api_key,
            "folderId": self.settings.folder_id,
            "body": {
                "modelUri": MODEL_URI_TEMPLATE.format(folder_id=self.settings.folder_id),
                "completionOptions": {"temperature": temperature, "maxTokens": max_tokens},
                "messages": [
                    {"role": "system", "text": system_prompt},
                    {"role": "user", "text": user_prompt},
                ],
            },
        }
        data = self.transport.request(self.url, "POST", body=body, capability="completion")
        try:
            text = data["result"]["alternatives"][0]["message"]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise MalformedOutput("completion", f"unexpected response shape: {e!r}") from e
        if not isinstance(text, str):
            raise MalformedOutput("completion", "completion text is not a string")
        return text


class GatewayBackend:
    """LLM backend using an OpenAI-compatible model gateway."""

    name = "gateway"

    def __init__(self, model: str = "qwen3-4b", base_url: str = "http://localhost:8800/v1",
                 timeout: float = 60.0):
        self.client = openai.OpenAI(base_url=base_url, api_key="not-needed", timeout=timeout)
        self.model = model

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Generate text using the model gateway.

        Args:
            system_prompt: System context/instructions
            user_prompt: User query
            temperature: Sampling temperature
            max_tokens: Completion length limit

        Returns:
            Generated text response
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIStatusError as e:
            raise UpstreamError("completion", e.status_code, e.message) from e
        except openai.APIError as e:
            raise UpstreamError("completion", None, str(e)) from e
        if not response.choices:
            raise MalformedOutput("completion", "gateway returned no choices")
        return response.choices[0].message.content or ""


def get_backend(config: Config, transport: TransportClient, settings: Settings) -> CompletionBackend:
    """Get the configured completion backend.

    Credentials are checked when a job starts, not here, so a backend can be
    built for a search-only session.
    """
    if config.completion_backend == "gateway":
        return GatewayBackend(
            model=config.gateway_model,
            base_url=config.gateway_url,
            timeout=config.request_timeout,
        )
    return RelayCompletionBackend(transport, config.relay_base_url, settings)


def extract_json_block(text: str) -> str:
    """Extract JSON from LLM response, handling various formats.

    Handles:
    - ```json ... ``` code blocks
    - ``` ... ``` code blocks
    - Raw JSON, optionally surrounded by prose

    Args:
        text: Response text potentially containing JSON

    Returns:
        Extracted JSON string

    Raises:
        json.JSONDecodeError: If no valid JSON can be found
    """
    text = text.strip()

    for fence in ("```json", "```"):
        if fence in text:
            start = text.find(fence) + len(fence)
            end = text.find("```", start)
            if end != -1:
                json_str = text[start:end].strip()
                json.loads(json_str)  # Validate
                return json_str

    try:
        json.loads(text)
        return text
    except json.JSONDecodeError:
        pass

    # Prose around a bare JSON value: take the outermost bracketed span
    starts = [i for i in (text.find("["), text.find("{")) if i != -1]
    end = max(text.rfind("]"), text.rfind("}"))
    if starts and end > min(starts):
        json_str = text[min(starts):end + 1]
        json.loads(json_str)  # Validate
        return json_str

    json.loads(text)  # Raises with the original position info
    return text


def parse_completion_json(text: str, capability: str = "completion") -> Any:
    """Parse completion output as JSON, raising MalformedOutput on failure."""
    try:
        return json.loads(extract_json_block(text))
    except json.JSONDecodeError as e:
        raise MalformedOutput(capability, f"not valid JSON ({e.msg})") from e
