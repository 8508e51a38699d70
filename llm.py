import logging
from typing import Any, Dict, List, Optional

import httpx

from config import Settings, get_settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """The inference provider rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMClient:
    """OpenAI-compatible chat completion client."""

    def __init__(self, settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None):
        settings = settings or get_settings()
        self.provider = settings.provider
        self.api_key = settings.api_key
        self.base_url = settings.base_url.rstrip("/")
        self.max_tokens = settings.max_output_tokens
        self.temperature = settings.temperature

        if not self.api_key and settings.requires_api_key:
            raise ValueError(f"API key not found for provider: {self.provider}")

        self.client = http_client or httpx.AsyncClient(timeout=settings.request_timeout)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.client.request(method, f"{self.base_url}{path}",
                                                 headers=self._headers(), **kwargs)
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            raise LLMError(f"{self.provider.upper()} API error: {e.response.status_code} - {e.response.text}",
                           status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            raise LLMError(f"Error calling {self.provider.upper()} API: {e}") from e

    async def chat(self, messages: List[Dict[str, Any]], model: str) -> Dict[str, Any]:
        """Send prepared `{role, content}` blocks as a chat completion request."""
        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        logger.debug("Chat completion: model=%s messages=%d", model, len(messages))
        return await self._request("POST", "/chat/completions", json=payload)

    async def list_models(self) -> List[Dict[str, Any]]:
        """Raw provider model entries (`id`, `created`, `owned_by`)."""
        response = await self._request("GET", "/models")
        return response.get("data", [])

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()


def reply_text(response: Dict[str, Any]) -> str:
    """Assistant text from a chat completion response."""
    try:
        content = response["choices"][0]["message"].get("content")
    except (KeyError, IndexError, TypeError) as e:
        raise LLMError(f"Malformed completion response: {response!r}") from e
    return content or ""
