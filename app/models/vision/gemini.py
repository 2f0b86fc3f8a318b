from typing import Dict

from app.models.vision.common import (
    ConfigManager,
    Prompt,
    TextGenerationModelConfig,
    VisionTask,
)

# Summaries shorter than this are treated as a degraded answer
MIN_SUMMARY_LENGTH = 50


class GeminiConfigManager(ConfigManager):
    provider_name = "Gemini"

    text_generation_model_configs: Dict[VisionTask, TextGenerationModelConfig] = {
        VisionTask.EXPLAIN: TextGenerationModelConfig(
            model_id="gemini-2.0-flash",
            max_tokens=1000,
            temperature=0.4,
            top_p=0.8,
        ),
        VisionTask.SUMMARISE: TextGenerationModelConfig(
            model_id="gemini-2.0-flash",
            max_tokens=800,
            temperature=0.4,
            top_p=0.8,
        ),
        VisionTask.TAG: TextGenerationModelConfig(
            model_id="gemini-2.0-flash",
            max_tokens=800,
            temperature=0.2,
            top_p=0.8,
        ),
        VisionTask.CAPTION: TextGenerationModelConfig(
            model_id="gemini-2.0-flash",
            max_tokens=50,
            temperature=0.2,
            top_p=0.8,
        ),
    }

    @classmethod
    def get_prompt_image_explain(cls) -> Prompt:
        return Prompt(
            system_message=(
                "You are an expert image analyst that provides detailed and accurate descriptions of images."
            ),
            user_message=(
                "Provide a detailed explanation of what's in this image. "
                "Describe the objects, context, colors, and any notable elements in detail. "
                "If there's text in the image, include it in your analysis."
            ),
        )

    @classmethod
    def get_prompt_slide_summarise(
        cls, explanation: str, message: str = "", caption: str = ""
    ) -> Prompt:
        user_message = f"Image Explanation: {explanation}\n"
        if message or caption:
            user_message += (
                f"Context: {message}\n"
                f"Caption: {caption}\n\n"
                "Weave the context and caption into the title and the points themselves "
                "rather than listing them separately.\n"
            )
        user_message += (
            "\n"
            "Create a slide based on this image analysis. Format as follows:\n"
            "# Title That Captures Main Theme\n\n"
            "Then create 3-5 bullet points or short paragraphs that highlight the key aspects of the image. "
            "Be informative, engaging and educational. Include interesting facts or observations where possible.\n\n"
            "The content should be comprehensive enough to stand on its own even if someone couldn't see the image."
        )

        return Prompt(
            system_message=(
                "You are an expert at creating engaging presentation slides from image analyses."
            ),
            user_message=user_message,
        )

    @staticmethod
    def get_fallback_slide_summary(caption: str = "") -> str:
        """Get the canned slide body used when Gemini returns a degraded summary."""
        subject = caption or "interesting content"
        kind = caption or "visual that requires further analysis"
        return (
            "# Analysis of the Image\n\n"
            f"This image appears to show {subject}.\n\n"
            "- The image contains elements that would be explained in more detail with proper AI analysis.\n"
            "- Unfortunately, the AI generated a limited response.\n"
            f"- The image appears to be a {kind}.\n\n"
            "Try selecting a different AI model for better results."
        )
