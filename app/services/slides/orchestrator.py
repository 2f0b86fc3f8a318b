import asyncio
import logging
import re
from traceback import format_exc
from typing import Dict, Optional, Tuple

from app.models.slides import (
    ERROR_CREATING_CONTENT,
    ERROR_CREATING_TITLE,
    ERROR_PROCESSING_CONTENT,
    ERROR_PROCESSING_TITLE,
    UNTITLED_SLIDE_TITLE,
    ImageInput,
    ModelProvider,
    Slide,
    SlideRequest,
    SlideResponse,
)
from app.services.vision.claude import ClaudeRouterService
from app.services.vision.common import (
    PROVIDER_LABELS,
    ProviderResult,
    VisionRouterService,
)
from app.services.vision.gemini import GeminiRouterService
from app.services.vision.open_ai import OpenAiRouterService
from config import MAX_CONCURRENCY

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TITLE_PATTERN = re.compile(r"^#\s*(.+)$", re.MULTILINE)


def parse_summary(summary: str) -> Tuple[str, str]:
    """Split Markdown slide text into a title and its content.

    The title is the first `# Heading` line; that line is removed from the
    content and the remainder is trimmed.

    Returns:
        Tuple[str, str]: The title ("Untitled Slide" when there is no heading) and content.
    """
    match = TITLE_PATTERN.search(summary)
    if not match:
        return UNTITLED_SLIDE_TITLE, summary.strip()

    title = match.group(1).strip()
    content = (summary[: match.start()] + summary[match.end() :]).strip()
    return title, content


def _preview(text: str) -> str:
    return f"{text[:100]}..."


class SlideDeckService:
    """Turns a batch of images into slides, one slide per image in input order."""

    def __init__(
        self,
        services: Optional[Dict[ModelProvider, VisionRouterService]] = None,
        max_concurrency: int = MAX_CONCURRENCY,
    ):
        self.services = services or {
            ModelProvider.OPENAI: OpenAiRouterService(),
            ModelProvider.GEMINI: GeminiRouterService(),
            ModelProvider.ANTHROPIC: ClaudeRouterService(),
        }
        self.max_concurrency = max(1, max_concurrency)

    async def generate_slides(self, request: SlideRequest) -> SlideResponse:
        """Generate one slide per image.

        Failures for a single image become an error slide in that image's
        position; they never abort the rest of the batch.
        """
        logger.info(
            f"Using AI model: {request.model.value} for {len(request.images)} image(s)"
        )

        if self.max_concurrency == 1:
            slides = [
                await self._process_image(request, index)
                for index in range(len(request.images))
            ]
        else:
            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def _bounded(index: int) -> Slide:
                async with semaphore:
                    return await self._process_image(request, index)

            # gather keeps results in input order
            slides = await asyncio.gather(
                *(_bounded(index) for index in range(len(request.images)))
            )

        return SlideResponse(slides=list(slides))

    async def _process_image(self, request: SlideRequest, index: int) -> Slide:
        message = request.message_for(index)
        caption = request.caption_for(index)

        try:
            image = ImageInput.from_data(request.images[index])
            return await self._build_slide(request.model, image, message, caption)
        except Exception as e:
            logger.error(
                f"Error processing image {index} with {request.model.value}: {str(e)}\n{format_exc()}"
            )
            return Slide(
                title=ERROR_PROCESSING_TITLE,
                content=ERROR_PROCESSING_CONTENT,
                full_explanation=str(e) or "Unknown error",
                original_message=message,
                original_caption=caption,
            )

    async def _build_slide(
        self, model: ModelProvider, image: ImageInput, message: str, caption: str
    ) -> Slide:
        service = self.services[model]

        explanation = await service.explain(image)
        if self._is_gemini_failure(explanation):
            logger.warning(
                f"Falling back to OpenAI due to Gemini error: {explanation.sentinel}"
            )
            service = self.services[ModelProvider.OPENAI]
            explanation = await service.explain(image)

        if not explanation.ok:
            logger.error(
                f"Error generating explanation with {service.label}: {explanation.sentinel}"
            )
            return Slide(
                title=ERROR_PROCESSING_TITLE,
                content=ERROR_PROCESSING_CONTENT,
                full_explanation=explanation.sentinel,
                original_message=message,
                original_caption=caption,
            )

        logger.info(
            f"Generated explanation with {service.label}: {_preview(explanation.text)}"
        )

        summary = await service.summarise(explanation.text, message, caption)
        if self._is_gemini_failure(summary):
            logger.warning(
                f"Falling back to OpenAI for summarization: {summary.sentinel}"
            )
            summary = await self.services[ModelProvider.OPENAI].summarise(
                explanation.text, message, caption
            )

        if not summary.ok:
            logger.error(
                f"Error generating summary with {PROVIDER_LABELS[summary.provider]}: "
                f"{summary.sentinel}"
            )
            return Slide(
                title=ERROR_CREATING_TITLE,
                content=ERROR_CREATING_CONTENT,
                full_explanation=explanation.text,
                original_message=message,
                original_caption=caption,
            )

        logger.info(
            f"Generated summary with {PROVIDER_LABELS[summary.provider]}: "
            f"{_preview(summary.text)}"
        )

        title, content = parse_summary(summary.text)
        return Slide(
            title=title,
            content=content,
            full_explanation=explanation.text,
            original_message=message,
            original_caption=caption,
        )

    @staticmethod
    def _is_gemini_failure(result: ProviderResult) -> bool:
        return (
            not result.ok
            and result.error is not None
            and result.error.provider == ModelProvider.GEMINI
        )
