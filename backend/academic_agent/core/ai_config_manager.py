"""
Model provider configuration stored in AI-Config.json
"""

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError


logger = logging.getLogger(__name__)


class AgentConfig(BaseModel):
    """Provider selection and generation parameters"""
    ai_provider: str = Field(..., description="AI provider name")
    ai_model: str = Field(..., description="AI model name")
    ai_api_key: str = Field(..., description="API key")
    ai_base_url: Optional[str] = Field(None, description="Base URL")
    temperature: float = Field(0.1, ge=0.0, le=2.0, description="Temperature for generation")
    max_tokens: int = Field(2000, ge=1, description="Maximum tokens to generate")
    max_iterations: Optional[int] = Field(
        None, ge=1, description="Overrides the configured iteration cap when set"
    )


class AIConfigError(ValueError):
    """The configuration file exists but cannot be used"""


class AIConfigManager:
    """Loads, saves and deletes the provider configuration file"""

    def __init__(self, config_path: Path):
        self.config_path = Path(config_path)

    def exists(self) -> bool:
        return self.config_path.exists()

    def load(self) -> Optional[AgentConfig]:
        """Read the configuration

        Returns:
            The configuration, or None when no file exists

        Raises:
            AIConfigError: the file is unreadable or invalid
        """
        if not self.config_path.exists():
            return None

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return AgentConfig.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.error(f"Failed to load AI config from {self.config_path}: {e}")
            raise AIConfigError(f"Invalid AI config file {self.config_path}: {e}") from e

    def save(self, config: AgentConfig) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            json.dump(config.model_dump(), f, indent=2, ensure_ascii=False)
        logger.info(f"Saved AI config: provider={config.ai_provider}, model={config.ai_model}")

    def delete(self) -> bool:
        if not self.config_path.exists():
            return False
        self.config_path.unlink()
        logger.info(f"Deleted AI config {self.config_path}")
        return True
