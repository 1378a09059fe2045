"""
OpenAI-compatible chat completions client, used for screenshot vision analysis
and audit summaries
"""
import base64
from typing import Any, Dict, List, Optional

import httpx

from ..base import BaseAPIClient


def image_part(data: bytes, mime_type: str = "image/jpeg", detail: str = "high") -> Dict[str, Any]:
    """Inline a screenshot as a data URL content part"""
    encoded = base64.b64encode(data).decode("ascii")
    return {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{encoded}", "detail": detail}}


def text_part(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


class OpenAIClient(BaseAPIClient):
    """Chat completions client; works against any OpenAI-compatible base URL"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        from core.config import get_settings

        settings = get_settings()
        if api_key is None and settings.openai_api_key:
            api_key = settings.openai_api_key.get_secret_value()
        self.model = model or settings.openai_model

        super().__init__(
            provider="openai",
            api_key=api_key,
            base_url=settings.openai_base_url,
            client=client,
            timeout=timeout or settings.vision_timeout,
        )

    def _get_base_url(self) -> str:
        return "https://api.openai.com/v1"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def chat_completion(
        self,
        messages: List[Dict[str, Any]],
        temperature: float = 0.3,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Create a chat completion

        Args:
            messages: List of message objects (content may be a list of text/image parts)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            response_format: Response format specification

        Returns:
            Dict containing the completion response

        Raises:
            ExternalAPIError: When the API call fails
        """
        payload: Dict[str, Any] = {"model": self.model, "messages": messages, "temperature": temperature}

        if max_tokens:
            payload["max_tokens"] = max_tokens

        if response_format:
            payload["response_format"] = response_format

        return await self.make_request(
            "POST",
            "/chat/completions",
            json=payload,
            headers=self._get_headers(),
        )

    @staticmethod
    def first_message_content(response: Dict[str, Any]) -> Optional[str]:
        """Text of the first choice, or None for an empty/malformed response"""
        try:
            return response["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None
