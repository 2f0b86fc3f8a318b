from typing import Dict

from app.models.vision.common import (
    ConfigManager,
    TextGenerationModelConfig,
    VisionTask,
)


class ClaudeConfigManager(ConfigManager):
    provider_name = "Claude"

    text_generation_model_configs: Dict[VisionTask, TextGenerationModelConfig] = {
        VisionTask.EXPLAIN: TextGenerationModelConfig(
            model_id="claude-3-opus-20240229",
            max_tokens=1000,
        ),
        VisionTask.SUMMARISE: TextGenerationModelConfig(
            model_id="claude-3-haiku-20240307",
            max_tokens=500,
        ),
    }
