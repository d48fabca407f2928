"""
restrules settings provider
"""

import os
import sys
import functools
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

try:
    import ujson as json
except ImportError:
    import json

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .schemas import config


SETTINGS_LOG_ERROR_FUNCTION: Optional[Callable[[str], Any]] = functools.partial(print, file=sys.stderr)
"""
optional function to accept log messages on failure
"""

SETTINGS_LOG_INFO_FUNCTION: Optional[Callable[[str], Any]] = None
"""
optional function to accept log messages when creating a new configuration file
"""

CONFIG_PATHS: List[str] = ["config.json", os.path.join("..", "config.json")]
"""
list of search paths for the config file, can be overwritten by the env variable ``CONFIG_PATH``
"""

if os.environ.get("CONFIG_PATH"):
    CONFIG_PATHS = [os.environ.get("CONFIG_PATH")]


class ConfigFileSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source reading the first existing JSON file of ``CONFIG_PATHS``

    The search paths are evaluated whenever the settings get instantiated,
    so that changing ``CONFIG_PATHS`` at runtime (e.g. in unit tests or via
    the ``--config`` command-line argument) takes effect for new instances.
    """

    def get_field_value(self, field, field_name: str) -> Tuple[Any, str, bool]:
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        return read_settings_from_file()


class Settings(BaseSettings, config.CoreConfig):
    """
    restrules settings

    Do not change the settings at runtime, since route rules, the status table
    and the version registrations are built from them once during startup.
    Always restart the server after changing the config file. Values are
    taken from the init arguments first, then from environment variables
    (using ``__`` as nested delimiter, e.g. ``SERVER__PORT``) and finally
    from the JSON config file; anything else falls back to the defaults.
    """

    model_config = SettingsConfigDict(env_nested_delimiter="__", env_file=".env", extra="ignore")

    @classmethod
    def settings_customise_sources(
            cls,
            settings_cls: Type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,
            file_secret_settings: PydanticBaseSettingsSource
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
            ConfigFileSettingsSource(settings_cls)
        )


def store_configuration(conf: Optional[config.CoreConfig] = None, path: Optional[str] = None) -> config.CoreConfig:
    p = path or os.path.abspath(CONFIG_PATHS[0])
    conf = conf or get_default_core_config()
    with open(p, "w") as f:
        json.dump(conf.model_dump(), f, indent=4)
    SETTINGS_LOG_INFO_FUNCTION and SETTINGS_LOG_INFO_FUNCTION(f"A new config file has been created as {p!r}.")
    return conf


def find_config_file() -> Optional[str]:
    for path in CONFIG_PATHS:
        if os.path.exists(path):
            return path
    return None


def read_settings_from_file() -> Dict[str, Any]:
    path = find_config_file()
    if path is None:
        return {}
    with open(path, "r", encoding="UTF-8") as file:
        try:
            content = json.load(file)
        except ValueError:
            if SETTINGS_LOG_ERROR_FUNCTION:
                SETTINGS_LOG_ERROR_FUNCTION(f"The config file {path!r} is no valid JSON file!")
            raise
    if not isinstance(content, dict):
        raise ValueError(f"The config file {path!r} must contain a JSON object")
    return content


def get_default_core_config() -> config.CoreConfig:
    return config.CoreConfig()


def get_default_config() -> Dict[str, Any]:
    return get_default_core_config().model_dump()
