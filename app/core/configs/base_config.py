import json
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Environment-driven settings base.

    Values are read from the process environment first, then from a local
    ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True,
    )

    @staticmethod
    def _parse_list(value: Any) -> Any:
        """Accept ``a,b,c`` or a JSON array for list-typed settings."""
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith('['):
                return json.loads(stripped)
            return [item.strip() for item in stripped.split(',') if item.strip()]
        return value
