from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def resolve_repo_path(path_value: str) -> Path:
    """Relative roots (the defaults included) are anchored at the repository root."""
    path = Path(path_value)
    if path.is_absolute():
        return path
    return _repo_root() / path


@dataclass(frozen=True)
class Settings:
    environment: str
    config_root: Path
    output_root: Path
    env_file_dir: Path
    container: str
    dev_build: bool
    rpc_timeout_seconds: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        environment=os.getenv('ENV', '').strip(),
        config_root=resolve_repo_path(os.getenv('RELAYER_CONFIG_ROOT', 'relayer/config')),
        output_root=resolve_repo_path(os.getenv('RELAYER_OUTPUT_ROOT', 'relayer/output')),
        env_file_dir=resolve_repo_path(os.getenv('RELAYER_ENV_FILE_DIR', 'relayer')),
        container=os.getenv('CONTAINER', '').strip(),
        # Forge artifacts compiled without via-ir are tagged DEV=True.
        dev_build=os.getenv('DEV', '') == 'True',
        rpc_timeout_seconds=int(os.getenv('RPC_TIMEOUT_SECONDS', '10'))
    )
