"""Configuration loader."""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = "config/wizard_config.yaml"


class DocumentConfig(BaseModel):
    """How target documents are written."""

    indent: str = Field("    ", description="Indentation unit used when the document has none to copy")
    backup: bool = Field(True, description="Keep a .bak copy of the previous document")

    @field_validator("indent")
    @classmethod
    def indent_is_whitespace(cls, v: str) -> str:
        if not v or v.strip():
            raise ValueError("indent must be a non-empty run of spaces or tabs")
        return v


class CataloguesConfig(BaseModel):
    search_paths: list[str] = Field(default_factory=list)


class OutputConfig(BaseModel):
    summary_dir: Optional[str] = None


class LoggingConfig(BaseModel):
    level: str = "INFO"
    json_output: bool = Field(False, alias="json")

    model_config = {"populate_by_name": True}


class WizardConfig(BaseModel):
    """Wizard configuration model."""

    document: DocumentConfig = Field(default_factory=DocumentConfig)
    catalogues: CataloguesConfig = Field(default_factory=CataloguesConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(config: WizardConfig) -> WizardConfig:
    """Apply RULEWIZARD_* environment variables on top of the file config."""
    level = os.getenv("RULEWIZARD_LOG_LEVEL")
    if level:
        config.logging.level = level
    json_output = os.getenv("RULEWIZARD_LOG_JSON")
    if json_output:
        config.logging.json_output = _env_flag(json_output)
    return config


def load_config(config_path: Optional[str | Path] = None) -> WizardConfig:
    """
    Load wizard configuration from YAML file.

    The path defaults to $RULEWIZARD_CONFIG, then config/wizard_config.yaml.
    Variables from a .env file are loaded first.

    Args:
        config_path: Path to config file

    Returns:
        Loaded configuration

    Raises:
        FileNotFoundError: If config file not found
        yaml.YAMLError: If config file is invalid
    """
    load_dotenv()

    config_path = Path(config_path or os.getenv("RULEWIZARD_CONFIG") or DEFAULT_CONFIG_PATH)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f) or {}

    return apply_env_overrides(WizardConfig(**config_data))
