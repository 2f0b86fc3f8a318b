from app.models.vision.claude import ClaudeConfigManager
from app.models.vision.common import (
    ConfigManager,
    Prompt,
    TextGenerationModelConfig,
    VisionTask,
)
from app.models.vision.gemini import GeminiConfigManager
from app.models.vision.open_ai import OpenAiConfigManager

__all__ = [
    "ConfigManager",
    "Prompt",
    "TextGenerationModelConfig",
    "VisionTask",
    "ClaudeConfigManager",
    "GeminiConfigManager",
    "OpenAiConfigManager",
]
