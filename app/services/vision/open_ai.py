import logging
from traceback import format_exc
from typing import Dict, List, Optional

import openai
from openai import AsyncOpenAI

from app.models.slides import ImageInput, ModelProvider
from app.models.vision import OpenAiConfigManager, Prompt, VisionTask
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
from config import OPENAI_API_KEY

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class OpenAiRouterService(VisionRouterService):
    """OpenAI implementation of the vision router service."""

    provider = ModelProvider.OPENAI

    def __init__(self):
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if self._client is None:
            if not OPENAI_API_KEY:
                raise MissingApiKeyError(
                    "OpenAI API key is not defined in environment variables (OPENAI_API_KEY)"
                )
            self._client = AsyncOpenAI(api_key=OPENAI_API_KEY)
        return self._client

    @staticmethod
    def _convert_prompt_to_messages(
        prompt: Prompt, image: Optional[ImageInput] = None
    ) -> List[Dict]:
        """Convert a Prompt object to OpenAI chat message format."""
        messages = []
        if prompt.system_message:
            messages.append({"role": "system", "content": prompt.system_message})

        if image is None:
            messages.append({"role": "user", "content": prompt.user_message})
        else:
            messages.append(
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt.user_message},
                        {
                            "type": "image_url",
                            "image_url": {"url": image.to_data_url()},
                        },
                    ],
                }
            )
        return messages

    @staticmethod
    def _classify_exception(e: Exception) -> ProviderErrorKind:
        if isinstance(e, MissingApiKeyError):
            return ProviderErrorKind.MISSING_KEY
        if isinstance(e, openai.AuthenticationError):
            return ProviderErrorKind.INVALID_KEY
        if isinstance(e, openai.PermissionDeniedError):
            return ProviderErrorKind.PERMISSION_DENIED
        if isinstance(e, openai.RateLimitError):
            return ProviderErrorKind.QUOTA_EXCEEDED
        if isinstance(e, (openai.APIConnectionError, openai.APITimeoutError)):
            return ProviderErrorKind.NETWORK
        return classify_error_message(str(e))

    async def _complete(
        self, task: VisionTask, prompt: Prompt, image: Optional[ImageInput] = None
    ) -> Optional[str]:
        model_config = OpenAiConfigManager.get_text_generation_model_config(task)
        PromptLogger.log_prompt(self.provider, str(prompt))

        response = await self._get_client().chat.completions.create(
            model=model_config.model_id,
            messages=self._convert_prompt_to_messages(prompt, image),
            max_tokens=model_config.max_tokens,
        )

        if not response.choices:
            return None
        return response.choices[0].message.content

    async def explain(self, image: ImageInput) -> ProviderResult:
        """Explain an image with the OpenAI vision model."""
        try:
            text = await self._complete(
                VisionTask.EXPLAIN, OpenAiConfigManager.get_prompt_image_explain(), image
            )
            if not text:
                logger.error("OpenAI returned no explanation")
                return self._failure(
                    OPERATION_EXPLAIN,
                    ProviderErrorKind.MALFORMED_RESPONSE,
                    "No explanation generated",
                )
            return ProviderResult.success(self.provider, text)
        except Exception as e:
            logger.error(f"Error explaining with OpenAI: {str(e)}\n{format_exc()}")
            return self._failure(
                OPERATION_EXPLAIN, self._classify_exception(e), str(e)
            )

    async def summarise(
        self, explanation: str, message: str = "", caption: str = ""
    ) -> ProviderResult:
        """Summarise an explanation into slide text with the smaller OpenAI model."""
        try:
            text = await self._complete(
                VisionTask.SUMMARISE,
                OpenAiConfigManager.get_prompt_slide_summarise(
                    explanation, message, caption
                ),
            )
            if not text:
                logger.error("OpenAI returned no summary")
                return self._failure(
                    OPERATION_SUMMARISE,
                    ProviderErrorKind.MALFORMED_RESPONSE,
                    "No summary generated",
                )
            return ProviderResult.success(self.provider, text)
        except Exception as e:
            logger.error(f"Error summarizing with OpenAI: {str(e)}\n{format_exc()}")
            return self._failure(
                OPERATION_SUMMARISE, self._classify_exception(e), str(e)
            )
