from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .config import Settings, get_settings

LOGGER = logging.getLogger('relayer.environment')

DEFAULT_ENV = 'testnet'


class ConfigError(Exception):
    """A required file, field or variable is missing or has an unusable value."""


@dataclass(frozen=True)
class EnvironmentContext:
    name: str
    config_root: Path
    output_root: Path

    def config_path(self, *parts: str) -> Path:
        return self.config_root.joinpath(self.name, *parts)

    def output_path(self, *parts: str) -> Path:
        return self.output_root.joinpath(self.name, *parts)

    def read_json(self, path: Path) -> Any:
        # Not cached: scripts may rewrite config files mid-run.
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError as exc:
            raise ConfigError(f'Failed to find config file at {path}!') from exc
        if not raw.strip():
            raise ConfigError(f'Config file at {path} is empty!')
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(f'Config file at {path} is not valid JSON: {exc}') from exc

    def load_script_config(self, process_name: str) -> Any:
        config = self.read_json(self.config_path('scriptConfigs', f'{process_name}.json'))
        if not config:
            raise ConfigError('Failed to pull config file!')
        return config


_active: EnvironmentContext | None = None


def _overlay_path(settings: Settings, env: str) -> Path:
    suffix = '' if env == DEFAULT_ENV else f'.{env}'
    return settings.env_file_dir / f'.env{suffix}'


def init() -> EnvironmentContext:
    """Select the environment for this process.

    Reads ``ENV``, layers the environment's dotenv overlay underneath the
    process environment and pins the resulting context. Only one environment
    may be selected per process.
    """
    global _active

    settings = get_settings()
    env = settings.environment
    if not env:
        raise ConfigError(
            'ENV must be defined to the name of the deployment/network that you want to use.'
        )

    if _active is not None:
        if _active.name != env:
            raise ConfigError(
                f'environment already initialized as {_active.name!r}; cannot switch to {env!r}'
            )
        return _active

    overlay = _overlay_path(settings, env)
    if load_dotenv(overlay, override=False):
        LOGGER.info('loaded env overlay env=%s path=%s', env, overlay)
    else:
        LOGGER.debug('no env overlay env=%s path=%s', env, overlay)

    # The overlay may define variables that feed settings.
    get_settings.cache_clear()
    settings = get_settings()

    _active = EnvironmentContext(
        name=env,
        config_root=settings.config_root,
        output_root=settings.output_root
    )
    LOGGER.info('environment initialized env=%s config_root=%s', env, settings.config_root)
    return _active


def current() -> EnvironmentContext:
    if _active is None:
        raise ConfigError('environment is not initialized; call init() first')
    return _active


def reset() -> None:
    """Forget the active environment. Test helper only."""
    global _active
    _active = None
