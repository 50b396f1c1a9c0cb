"""
Engine configuration from the environment, and logging setup.
"""

import os
import logging
import tempfile
from dataclasses import dataclass
from typing import Optional

from pseudomr.remote import RemoteSorter
from pseudomr.sorters import ExternalSorter, MergeSorter, Sorter

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

SORTERS = ('external', 'merge', 'remote')


def configure_logging(level=logging.INFO):
    """Configure root logging once for command line use."""
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)


@dataclass
class EngineConfig:
    """Settings of a pseudo map-reduce job"""

    scratch_dir: str = tempfile.gettempdir()
    sorter: str = 'external'
    sort_command: str = 'sort'
    sort_timeout: Optional[float] = None
    sort_buffer_lines: int = 100000
    sort_server: str = 'localhost:50061'
    encoding: str = 'utf-8'

    def __post_init__(self):
        if self.sorter not in SORTERS:
            raise ValueError(f"Unknown sorter '{self.sorter}', expected one of {', '.join(SORTERS)}")
        if self.sort_timeout is not None and self.sort_timeout <= 0:
            raise ValueError(f"Sort timeout must be positive: {self.sort_timeout}")
        if self.sort_buffer_lines <= 0:
            raise ValueError(f"Sort buffer must be positive: {self.sort_buffer_lines}")

    @classmethod
    def from_env(cls, environ=None) -> 'EngineConfig':
        """
        Read configuration from PSEUDOMR_* environment variables

        Args:
            environ: Mapping to read instead of os.environ

        Raises:
            ValueError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        timeout = env.get('PSEUDOMR_SORT_TIMEOUT')
        return cls(
            scratch_dir=env.get('PSEUDOMR_SCRATCH_DIR', tempfile.gettempdir()),
            sorter=env.get('PSEUDOMR_SORTER', 'external'),
            sort_command=env.get('PSEUDOMR_SORT_COMMAND', 'sort'),
            sort_timeout=float(timeout) if timeout else None,
            sort_buffer_lines=int(env.get('PSEUDOMR_SORT_BUFFER_LINES', 100000)),
            sort_server=env.get('PSEUDOMR_SORT_SERVER', 'localhost:50061'),
            encoding=env.get('PSEUDOMR_ENCODING', 'utf-8'),
        )


def build_sorter(config: EngineConfig) -> Sorter:
    """Create the sorter selected by a configuration"""
    if config.sorter == 'merge':
        return MergeSorter(config.sort_buffer_lines)
    if config.sorter == 'remote':
        return RemoteSorter(config.sort_server, config.sort_timeout)
    return ExternalSorter(config.sort_command, config.sort_timeout)
