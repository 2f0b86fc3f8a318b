from typing import Dict

from app.models.vision.common import (
    ConfigManager,
    TextGenerationModelConfig,
    VisionTask,
)


class OpenAiConfigManager(ConfigManager):
    provider_name = "OpenAI"

    text_generation_model_configs: Dict[VisionTask, TextGenerationModelConfig] = {
        VisionTask.EXPLAIN: TextGenerationModelConfig(
            model_id="gpt-4o",
            max_tokens=1000,
        ),
        # Cheaper model, the explanation already carries the detail
        VisionTask.SUMMARISE: TextGenerationModelConfig(
            model_id="gpt-4o-mini",
            max_tokens=400,
        ),
    }
