"""
hypernav settings: packaged config.yaml, then .env / environment, then overrides
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Tuple

from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

# environment variable -> key path in the settings tree
ENV_MAPPINGS: Dict[str, Tuple[str, ...]] = {
    'HYPERNAV_USER_AGENT': ('fetcher', 'user_agent'),
    'HYPERNAV_TIMEOUT': ('fetcher', 'timeout'),
    'HYPERNAV_MAX_REDIRECTS': ('fetcher', 'max_redirects'),
    'HYPERNAV_CACHE_POLICY': ('cache', 'policy'),
    'HYPERNAV_CACHE_TTL': ('cache', 'ttl'),
    'HYPERNAV_STRICT_FORMATS': ('formats', 'strict'),
    'LOG_LEVEL': ('logging', 'level'),
    'LOG_FORMAT': ('logging', 'format'),
}


class Config:
    """Settings for the fetcher, the state cache, the format registry and logging."""

    def __init__(self, config_path: str = None, overrides: Dict[str, Any] = None):
        """
        Args:
            config_path: YAML settings file. Defaults to the config.yaml
                        packaged with hypernav.
            overrides: Nested dict applied last, over file and environment.
        """
        self.config_path = Path(config_path or DEFAULT_CONFIG_PATH)
        self._config = self._read_file()

        load_dotenv()
        self._apply_env_overrides(self._config)

        if overrides:
            self._merge(self._config, overrides)

    def _read_file(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r') as f:
                return yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"hypernav config not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Could not parse {self.config_path}: {e}")

    def _apply_env_overrides(self, config: Dict[str, Any]) -> None:
        for name, key_path in ENV_MAPPINGS.items():
            raw = os.getenv(name)
            if raw is None:
                continue

            section = config
            for key in key_path[:-1]:
                section = section.setdefault(key, {})
            section[key_path[-1]] = self._convert_env_value(raw)

    def _convert_env_value(self, value: str):
        """'true'/'false' become bools, numeric strings int or float."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        for cast in (int, float):
            try:
                return cast(value)
            except ValueError:
                pass

        return value

    def _merge(self, target: Dict[str, Any], source: Dict[str, Any]):
        for key, value in source.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._merge(target[key], value)
            else:
                target[key] = value

    def get(self, *keys, default=None):
        """Look up a nested setting, e.g. get('cache', 'ttl').

        Returns default when any key along the path is missing.
        """
        node = self._config
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                return default
            node = node[key]
        return node

    @property
    def fetcher(self) -> Dict[str, Any]:
        """httpx client settings: user_agent, timeout, redirects, pool limits."""
        return self.get('fetcher', default={})

    @property
    def cache(self) -> Dict[str, Any]:
        return self.get('cache', default={})

    @property
    def formats(self) -> Dict[str, Any]:
        return self.get('formats', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """level and format (json or console) for configure_logging."""
        return self.get('logging', default={})
