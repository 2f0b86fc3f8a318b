import asyncio
import logging
from traceback import format_exc
from typing import Any, Dict, List, Optional

import requests

from app.models.slides import ImageInput, ModelProvider
from app.models.vision import ClaudeConfigManager, Prompt, VisionTask
from app.services.vision.common import (
    OPERATION_EXPLAIN,
    OPERATION_SUMMARISE,
    MissingApiKeyError,
    PromptLogger,
    ProviderErrorKind,
    ProviderResult,
    VisionRouterService,
    classify_error_message,
)
from config import ANTHROPIC_API_KEY

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class MalformedResponseError(ValueError):
    """Raised when the messages endpoint answers without any text content."""


class ClaudeRouterService(VisionRouterService):
    """Anthropic Claude implementation of the vision router service."""

    provider = ModelProvider.ANTHROPIC

    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    TIMEOUT_SECONDS = 120

    def _get_headers(self) -> Dict[str, str]:
        if not ANTHROPIC_API_KEY:
            raise MissingApiKeyError(
                "Anthropic API key is not defined in environment variables (ANTHROPIC_API_KEY)"
            )
        return {
            "x-api-key": ANTHROPIC_API_KEY,
            "anthropic-version": self.API_VERSION,
            "content-type": "application/json",
        }

    @staticmethod
    def _build_content(
        prompt: Prompt, image: Optional[ImageInput] = None
    ) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt.user_message}]
        if image is not None:
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": image.media_type,
                        "data": image.data,
                    },
                }
            )
        return content

    @staticmethod
    def _classify_exception(e: Exception) -> ProviderErrorKind:
        if isinstance(e, MissingApiKeyError):
            return ProviderErrorKind.MISSING_KEY
        if isinstance(e, MalformedResponseError):
            return ProviderErrorKind.MALFORMED_RESPONSE
        if isinstance(e, requests.HTTPError) and e.response is not None:
            status_code = e.response.status_code
            if status_code == 401:
                return ProviderErrorKind.INVALID_KEY
            if status_code == 403:
                return ProviderErrorKind.PERMISSION_DENIED
            if status_code == 429:
                return ProviderErrorKind.QUOTA_EXCEEDED
        if isinstance(e, (requests.ConnectionError, requests.Timeout)):
            return ProviderErrorKind.NETWORK
        return classify_error_message(str(e))

    async def _send_message(
        self, task: VisionTask, prompt: Prompt, image: Optional[ImageInput] = None
    ) -> str:
        model_config = ClaudeConfigManager.get_text_generation_model_config(task)
        PromptLogger.log_prompt(self.provider, str(prompt))

        payload: Dict[str, Any] = {
            "model": model_config.model_id,
            "max_tokens": model_config.max_tokens,
            "messages": [
                {"role": "user", "content": self._build_content(prompt, image)}
            ],
        }
        if prompt.system_message:
            payload["system"] = prompt.system_message

        response = await asyncio.to_thread(
            requests.post,
            self.API_URL,
            headers=self._get_headers(),
            json=payload,
            timeout=self.TIMEOUT_SECONDS,
        )
        response.raise_for_status()

        data = response.json()
        for block in data.get("content") or []:
            if block.get("type") == "text" and block.get("text"):
                return block["text"]
        raise MalformedResponseError("Claude response contained no text content")

    async def explain(self, image: ImageInput) -> ProviderResult:
        """Explain an image with the larger Claude model."""
        try:
            text = await self._send_message(
                VisionTask.EXPLAIN, ClaudeConfigManager.get_prompt_image_explain(), image
            )
            return ProviderResult.success(self.provider, text)
        except Exception as e:
            logger.error(f"Error analyzing image with Claude: {str(e)}\n{format_exc()}")
            return self._failure(
                OPERATION_EXPLAIN, self._classify_exception(e), str(e)
            )

    async def summarise(
        self, explanation: str, message: str = "", caption: str = ""
    ) -> ProviderResult:
        """Summarise an explanation into slide text with the smaller Claude model."""
        try:
            text = await self._send_message(
                VisionTask.SUMMARISE,
                ClaudeConfigManager.get_prompt_slide_summarise(
                    explanation, message, caption
                ),
            )
            return ProviderResult.success(self.provider, text)
        except Exception as e:
            logger.error(f"Error summarizing with Claude: {str(e)}\n{format_exc()}")
            return self._failure(
                OPERATION_SUMMARISE, self._classify_exception(e), str(e)
            )
