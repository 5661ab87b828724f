from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

from .environment import EnvironmentContext

LOGGER = logging.getLogger('relayer.run_log')

LAST_RUN_FILENAME = 'lastrun.json'


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class RunLogWriter:
    """Persists deployment run outputs under ``{output_root}/{env}/{process}``.

    Every write lands twice: ``lastrun.json`` is overwritten and a file named
    by the epoch-millisecond timestamp is added next to it. The timestamped
    files are the run history and are never rewritten.
    """

    def __init__(self, context: EnvironmentContext) -> None:
        self.context = context

    def process_dir(self, process_name: str) -> Path:
        return self.context.output_path(process_name)

    def last_run_path(self, process_name: str) -> Path:
        return self.process_dir(process_name) / LAST_RUN_FILENAME

    def write_output_files(self, output: Any, process_name: str) -> tuple[Path, Path]:
        out_dir = self.process_dir(process_name)
        out_dir.mkdir(parents=True, exist_ok=True)

        body = json.dumps(output)
        last_run = out_dir / LAST_RUN_FILENAME
        snapshot = out_dir / f'{_epoch_millis()}.json'
        last_run.write_text(body, encoding='utf-8')
        snapshot.write_text(body, encoding='utf-8')

        LOGGER.info('wrote run output process=%s env=%s snapshot=%s', process_name, self.context.name, snapshot.name)
        return last_run, snapshot

    def load_last_run(self, process_name: str) -> Any | None:
        path = self.last_run_path(process_name)
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            LOGGER.debug('no last run process=%s path=%s', process_name, path)
            return None
        return json.loads(raw)
