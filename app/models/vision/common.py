from abc import ABC
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field


class VisionTask(str, Enum):
    """Tasks a vision provider is configured for."""

    EXPLAIN = "explain"
    SUMMARISE = "summarise"
    TAG = "tag"
    CAPTION = "caption"


class Prompt(BaseModel):
    """Standardized prompt structure for all vision providers."""

    system_message: Optional[str] = None
    user_message: str

    def __str__(self) -> str:
        """Convert the prompt to a string representation with system and user messages separated by double newlines."""
        if not self.system_message:
            return self.user_message
        return f"{self.system_message}\n\n{self.user_message}"


class TextGenerationModelConfig(BaseModel):
    """Configuration for a language model."""

    model_id: str
    max_tokens: int = Field(gt=0)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class ConfigManager(ABC):
    """Base class for vision provider configuration managers."""

    provider_name: str = ""
    text_generation_model_configs: Dict[VisionTask, TextGenerationModelConfig] = {}

    @classmethod
    def get_text_generation_model_config(
        cls, task: VisionTask
    ) -> TextGenerationModelConfig:
        """Get the configuration for a specific task."""
        if task not in cls.text_generation_model_configs:
            raise ValueError(
                f"Task {task} not found in {cls.provider_name} configurations"
            )
        return cls.text_generation_model_configs[task]

    @classmethod
    def get_prompt_image_explain(cls) -> Prompt:
        """Get the prompt sent alongside an image to get a detailed explanation."""
        return Prompt(
            user_message=(
                "Provide a detailed explanation of what's in this image. "
                "Describe the objects, context, and any notable elements."
            ),
        )

    @classmethod
    def get_prompt_slide_summarise(
        cls, explanation: str, message: str = "", caption: str = ""
    ) -> Prompt:
        """Get the formatted prompt for turning an explanation into a slide.

        Args:
            explanation: The detailed image explanation.
            message: Optional message the user attached to the image.
            caption: Optional caption the user attached to the image.
        """
        user_message = (
            "Generate a slide from this explanation. "
            "Format your response with a # Title at the top, followed by 3-5 bullet points of content."
        )

        if message or caption:
            user_message += (
                "\n\n"
                "IMPORTANT: You must directly incorporate the original message and caption into the slide content itself.\n"
                "Don't just append them or list them separately - integrate their meaning and context into both the title\n"
                "and bullet points as appropriate.\n\n"
                f"Original Message: {message}\n"
                f"Original Caption: {caption}"
            )

        user_message += f"\n\nExplanation:\n{explanation}"

        return Prompt(
            system_message=(
                "You are a slide deck assistant. "
                "Create concise slides that incorporate all relevant context into the content."
            ),
            user_message=user_message,
        )

    @classmethod
    def get_prompt_image_tags(cls) -> Prompt:
        """Get the prompt for extracting keyword tags from an image."""
        return Prompt(
            system_message=(
                "You are an expert in tagging images that specializes in identifying objects, scenes, colors, and contexts. "
                "Your job is to extract relevant keywords from a photo that will help describe what's in the image. "
                "Extract only tags that are obviously present in the image. "
                "Return the keywords as a JSON array of strings."
            ),
            user_message="List the tags for this image.",
        )

    @classmethod
    def get_prompt_image_caption(cls) -> Prompt:
        """Get the prompt for a one-sentence image caption."""
        return Prompt(
            user_message=(
                "Describe this image in a single brief sentence. Keep it under 15 words. "
                "No introduction or commentary, just a direct description."
            ),
        )
