import os
import logging
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DEFAULT_CONFIG_PATH = os.path.join(BASE_DIR, "config", "config.yaml")


class AppSettings(BaseModel):
    name: str = "Market Insight API"
    version: str = "0.1.0"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(levelname)s - %(module)s - %(message)s"
    log_file: Optional[str] = None
    use_stream_handler: bool = True


class GeminiSettings(BaseModel):
    """Passed explicitly to the Gemini client; the pipeline never reads the environment."""
    api_key: Optional[str] = None
    model_name: str = "gemini-2.0-flash"
    temperature: float = Field(0.1, ge=0.0, le=2.0)
    max_output_tokens: int = Field(2048, gt=0)
    grounding: bool = True


class PipelineSettings(BaseModel):
    chart_points: int = Field(12, ge=2)
    chart_interval_hours: int = Field(2, ge=1)
    analysis_max_chars: int = Field(4000, ge=1)
    change_window: str = "24 hours"


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    gemini: GeminiSettings = Field(default_factory=GeminiSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)


def load_config(path: Optional[str] = None) -> Settings:
    """
    Load the YAML config and the .env file.
    GEMINI_API_KEY from the environment fills gemini.api_key when the file leaves it empty.
    """
    load_dotenv()
    config_path = path or os.getenv("CONFIG_PATH", DEFAULT_CONFIG_PATH)
    try:
        with open(config_path, "r") as f:
            cfg = yaml.safe_load(f)
            if not cfg:
                raise ValueError("Config file is empty or invalid.")
        settings = Settings.model_validate(cfg)
    except FileNotFoundError:
        logging.error(f"❌ Config not found at {config_path}")
        raise SystemExit(f"Config not found: {config_path}")
    except yaml.YAMLError as e:
        logging.error(f"❌ Error parsing {config_path}: {e}")
        raise SystemExit(f"Error parsing config: {e}")
    except (ValueError, ValidationError) as e:
        logging.error(f"❌ Invalid config in {config_path}: {e}")
        raise SystemExit(f"Invalid config: {e}")

    if not settings.gemini.api_key:
        settings.gemini.api_key = os.getenv("GEMINI_API_KEY")
    return settings
