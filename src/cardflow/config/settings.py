"""Application settings loader from YAML configuration."""
import os
import yaml
from pathlib import Path
from typing import Optional
from dataclasses import dataclass

from cardflow.utils.exceptions import ConfigError
from cardflow.utils.logger import get_home_dir


@dataclass
class AppSettings:
    """Application-wide settings loaded from config.yaml."""

    # App info
    app_name: str
    app_version: str

    # Logging
    log_level: str

    # LLM
    llm_model_name: str
    llm_timeout_seconds: int
    llm_max_retries: int
    llm_backoff_factor: float
    llm_send_pdf_as_text: bool

    # Import
    batch_size: int
    default_currency: str
    default_card_name: str
    date_order: str  # DMY or MDY, used when a file's dates are ambiguous

    # Paths
    database_file: str

    gemini_api_key: Optional[str] = None

    @classmethod
    def load(cls, config_path: Path = None) -> "AppSettings":
        """Load settings from YAML file."""
        if config_path is None:
            env_path = os.getenv("CARDFLOW_CONFIG")
            # Default to config.yaml in project root
            config_path = Path(env_path) if env_path else Path(__file__).resolve().parents[3] / "config.yaml"

        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}

        try:
            database_file = config["paths"]["database_file"] or str(get_home_dir() / "cardflow.db")
            return cls(
                app_name=config["app"]["name"],
                app_version=config["app"]["version"],
                log_level=config["logging"]["level"],
                llm_model_name=config["llm"]["model_name"],
                llm_timeout_seconds=config["llm"]["timeout_seconds"],
                llm_max_retries=config["llm"]["max_retries"],
                llm_backoff_factor=config["llm"]["backoff_factor"],
                llm_send_pdf_as_text=config["llm"].get("send_pdf_as_text", False),
                batch_size=config["import"]["batch_size"],
                default_currency=config["import"]["default_currency"],
                default_card_name=config["import"]["default_card_name"],
                date_order=str(config["import"].get("date_order", "DMY")).upper(),
                database_file=os.path.expanduser(database_file),
                gemini_api_key=os.getenv("GEMINI_API_KEY") or config["llm"].get("api_key"),
            )
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Missing configuration key in {config_path}: {e}")

    def validate(self) -> tuple[bool, str]:
        """Validate configuration values."""
        if not self.gemini_api_key:
            return False, "Gemini API key is required (set GEMINI_API_KEY)"

        if self.batch_size < 1:
            return False, "Import batch size must be at least 1"

        if len(self.default_currency) != 3:
            return False, "Default currency must be a 3-letter code"

        if self.date_order not in ("DMY", "MDY"):
            return False, "Date order must be DMY or MDY"

        if self.llm_max_retries < 1:
            return False, "LLM max retries must be at least 1"

        return True, "Configuration is valid"

    @property
    def day_first(self) -> bool:
        return self.date_order != "MDY"
