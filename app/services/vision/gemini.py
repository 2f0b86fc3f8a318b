import json
import logging
import re
from traceback import format_exc
from typing import List, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.models.slides import ImageInput, ModelProvider
from app.models.vision import GeminiConfigManager, Prompt, VisionTask
from app.models.vision.gemini import MIN_SUMMARY_LENGTH
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
from config import GOOGLE_API_KEY

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TRANSIENT_ERROR_MARKERS = (
    "fetch failed",
    "network",
    "timeout",
    "timed out",
    "econnreset",
    "etimedout",
    "connection reset",
)

DEFAULT_CAPTION = "interesting image"


def is_transient_network_error(e: Exception) -> bool:
    """Check whether a Gemini call failed for a reason worth retrying."""
    if isinstance(e, (httpx.TransportError, ConnectionError, TimeoutError)):
        return True
    if isinstance(e, genai_errors.APIError):
        # The API answered, so the network is fine
        return False
    message = str(e).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


def parse_tags(response_text: str) -> List[str]:
    """Parse Gemini's tag output into a list of tags.

    Accepts a JSON array, a JSON object with a "tags" array, or plain
    comma-separated text.
    """
    text = response_text.strip()

    # Models often wrap JSON in a ```json fence
    fenced = re.match(r"^```(?:json)?\s*(.*?)\s*```$", text, re.DOTALL)
    if fenced:
        text = fenced.group(1).strip()

    try:
        if text.startswith("[") and text.endswith("]"):
            parsed = json.loads(text)
            if isinstance(parsed, list):
                return [str(tag).strip() for tag in parsed if str(tag).strip()]
        if '"tags"' in text:
            parsed = json.loads(text)
            if isinstance(parsed, dict) and isinstance(parsed.get("tags"), list):
                return [str(tag).strip() for tag in parsed["tags"] if str(tag).strip()]
    except ValueError as e:
        logger.warning(f"Could not parse tags as JSON, extracting from text: {str(e)}")

    cleaned = re.sub(r'[\[\]"{}]', "", text)
    return [tag.strip() for tag in cleaned.split(",") if tag.strip()]


class GeminiRouterService(VisionRouterService):
    """Google Gemini implementation of the vision router service."""

    provider = ModelProvider.GEMINI

    MAX_RETRIES = 2
    RETRY_BACKOFF_SECONDS = 1.0

    def __init__(self):
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        """Get or create the GenAI client for the Gemini API."""
        if self._client is None:
            if not GOOGLE_API_KEY:
                raise MissingApiKeyError(
                    "Google API key is not defined in environment variables (GOOGLE_API_KEY)"
                )
            logger.info("Initializing Gemini client")
            self._client = genai.Client(api_key=GOOGLE_API_KEY)
        return self._client

    @staticmethod
    def _classify_exception(e: Exception) -> ProviderErrorKind:
        if isinstance(e, MissingApiKeyError):
            return ProviderErrorKind.MISSING_KEY
        if isinstance(e, genai_errors.APIError):
            if e.code == 401 or "api key" in str(e).lower():
                return ProviderErrorKind.INVALID_KEY
            if e.code == 403:
                return ProviderErrorKind.PERMISSION_DENIED
            if e.code == 429:
                return ProviderErrorKind.QUOTA_EXCEEDED
        if is_transient_network_error(e):
            return ProviderErrorKind.NETWORK
        return classify_error_message(str(e))

    @staticmethod
    def _image_part(image: ImageInput) -> types.Part:
        return types.Part.from_bytes(data=image.raw_bytes(), mime_type=image.media_type)

    async def _generate(
        self, task: VisionTask, prompt: Prompt, image: Optional[ImageInput] = None
    ) -> str:
        model_config = GeminiConfigManager.get_text_generation_model_config(task)
        PromptLogger.log_prompt(self.provider, str(prompt))

        contents = [prompt.user_message]
        if image is not None:
            contents.append(self._image_part(image))

        response = await self._get_client().aio.models.generate_content(
            model=model_config.model_id,
            contents=contents,
            config=types.GenerateContentConfig(
                system_instruction=prompt.system_message,
                temperature=model_config.temperature,
                top_p=model_config.top_p,
                max_output_tokens=model_config.max_tokens,
            ),
        )
        return response.text or ""

    @VisionRouterService.retry_on_transient_errors(
        is_transient_network_error,
        max_retries=MAX_RETRIES,
        backoff_seconds=RETRY_BACKOFF_SECONDS,
    )
    async def _generate_explanation(self, image: ImageInput) -> str:
        logger.info("Sending image to Gemini for analysis...")
        return await self._generate(
            VisionTask.EXPLAIN, GeminiConfigManager.get_prompt_image_explain(), image
        )

    async def explain(self, image: ImageInput) -> ProviderResult:
        """Explain an image with Gemini, retrying transient network failures."""
        try:
            text = await self._generate_explanation(image)
            if not text:
                logger.error("Gemini returned no explanation")
                return self._failure(
                    OPERATION_EXPLAIN,
                    ProviderErrorKind.MALFORMED_RESPONSE,
                    "No explanation generated",
                )
            logger.info(f"Received response from Gemini: {text[:100]}...")
            return ProviderResult.success(self.provider, text)
        except Exception as e:
            logger.error(f"Error analyzing image with Gemini: {str(e)}\n{format_exc()}")
            return self._failure(
                OPERATION_EXPLAIN, self._classify_exception(e), str(e)
            )

    async def summarise(
        self, explanation: str, message: str = "", caption: str = ""
    ) -> ProviderResult:
        """Summarise an explanation into slide text with Gemini.

        A suspiciously short answer is replaced by a canned slide body rather
        than surfaced as if it were normal content.
        """
        try:
            logger.info("Sending text to Gemini for summarization...")
            summary = await self._generate(
                VisionTask.SUMMARISE,
                GeminiConfigManager.get_prompt_slide_summarise(
                    explanation, message, caption
                ),
            )
        except Exception as e:
            logger.error(f"Error summarizing with Gemini: {str(e)}\n{format_exc()}")
            return self._failure(
                OPERATION_SUMMARISE, self._classify_exception(e), str(e)
            )

        if len(summary) < MIN_SUMMARY_LENGTH:
            logger.warning(
                f"Gemini returned a very short summary, might be low quality: {summary}"
            )
            return ProviderResult.success(
                self.provider, GeminiConfigManager.get_fallback_slide_summary(caption)
            )

        return ProviderResult.success(self.provider, summary)

    async def generate_image_tags(self, image: ImageInput) -> List[str]:
        """Generate descriptive keyword tags for an image."""
        try:
            logger.info("Sending image to Gemini for tag generation...")
            response_text = await self._generate(
                VisionTask.TAG, GeminiConfigManager.get_prompt_image_tags(), image
            )
            return parse_tags(response_text)
        except Exception as e:
            logger.error(
                f"Error generating image tags with Gemini: {str(e)}\n{format_exc()}"
            )
            return [f"Error: {str(e)}"]

    async def quick_describe(self, image: ImageInput) -> str:
        """Describe an image in one brief sentence, suitable as a caption."""
        try:
            caption = await self._generate(
                VisionTask.CAPTION, GeminiConfigManager.get_prompt_image_caption(), image
            )
            return caption.strip() or DEFAULT_CAPTION
        except Exception as e:
            logger.error(
                f"Error quickly analyzing image with Gemini: {str(e)}\n{format_exc()}"
            )
            return DEFAULT_CAPTION
