"""Configuration module for remote-emulator."""

from remote_emulator.config.loader import get_config_path, load_config
from remote_emulator.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
