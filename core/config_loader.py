"""Configuration loader: ``config.yaml`` plus ``.env`` overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from core.config_models import AppConfig

LOGGER = logging.getLogger(__name__)

BASE_PATH = Path(__file__).resolve().parents[1]

# env var -> (section, field, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], object]]] = {
    "HE_DASH_MAX_RETRIES": ("transport", "max_retries", int),
    "HE_DASH_BASE_DELAY_S": ("transport", "base_delay_s", float),
    "HE_DASH_TIMEOUT_S": ("transport", "timeout_s", float),
    "HE_DASH_CHUNK_SIZE": ("fetch", "chunk_size", int),
}


def _apply_env_overrides(config: AppConfig) -> AppConfig:
    for env_name, (section, field_name, convert) in ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw.strip() == "":
            continue
        try:
            value = convert(raw.strip())
        except ValueError as exc:
            raise ValueError(f"{env_name} has an invalid value: {raw!r}") from exc
        updated_section = replace(getattr(config, section), **{field_name: value})
        config = replace(config, **{section: updated_section})
        LOGGER.debug("Applied %s override: %s.%s=%s", env_name, section, field_name, value)
    return config


def load_config(
    config_path: Optional[Path] = None,
    env_path: Optional[Path] = None,
) -> AppConfig:
    """Load application configuration from YAML and environment variables.

    A missing default ``config.yaml`` yields the built-in defaults; an
    explicitly requested path must exist.
    """

    if env_path is None:
        default_env = BASE_PATH / ".env"
        if default_env.exists():
            env_path = default_env
    if env_path is not None:
        load_dotenv(dotenv_path=env_path, override=False)

    data: object = {}
    if config_path is None:
        default_config = BASE_PATH / "config.yaml"
        if default_config.exists():
            config_path = default_config
        else:
            LOGGER.info("No config.yaml found, using built-in defaults")
    if config_path is not None:
        with open(config_path, "r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a mapping at the top level")

    return _apply_env_overrides(AppConfig.from_dict(data))


__all__ = ["ENV_OVERRIDES", "load_config"]
