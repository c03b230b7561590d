import os
from typing import Any, Dict

import yaml
from loguru import logger
from pydantic import ValidationError

from .main import Config


def read_yaml(config_path: str) -> Dict[str, Any]:
    """
    Read a YAML configuration file.

    Args:
        config_path: Path to the YAML file.

    Returns:
        The parsed configuration dictionary (empty for an empty file).

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        content = f.read()

    try:
        return yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        logger.critical(f"Error parsing YAML file '{config_path}': {e}")
        raise


def validate_config(config_data: Dict[str, Any]) -> Config:
    """
    Validate configuration data against the Config model.

    Raises:
        ValidationError: If the configuration fails validation.
    """
    try:
        return Config.model_validate(config_data)
    except ValidationError as e:
        logger.critical(f"Error validating configuration: {e}")
        logger.error("Configuration data:")
        logger.error(config_data)
        raise
