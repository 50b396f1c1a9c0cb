"""
Sort/shuffle strategies.

A sorter turns N spill artifacts into one artifact holding all their lines
in ascending byte-wise order of the whole line. Records sharing a key end up
contiguous, and their values are ordered by value text. Input artifacts are
always deleted, whether the sort succeeds or not.
"""

import os
import heapq
import logging
import subprocess
from abc import ABC, abstractmethod
from contextlib import ExitStack
from typing import List, Optional

from pseudomr.artifacts import ArtifactStore, FileArtifactStore, discard
from pseudomr.errors import ShuffleError

logger = logging.getLogger(__name__)

SORTED_PREFIX = 'sort-'


def _line_key(line: str) -> str:
    return line.rstrip('\n')


class Sorter(ABC):
    """Sorts spill artifacts into a single sorted artifact"""

    def sort(self, artifacts: List[str], store: ArtifactStore) -> str:
        """
        Sort artifacts into a new artifact of the same store

        Args:
            artifacts: Spill artifacts to sort, deleted by this call
            store: Store holding the artifacts

        Returns:
            Handle of the sorted artifact

        Raises:
            ShuffleError: If sorting failed
        """
        artifacts = list(artifacts)
        try:
            output = store.create(SORTED_PREFIX)
            try:
                if artifacts:
                    self._sort(artifacts, output, store)
            except Exception:
                discard(store, [output])
                raise
        finally:
            discard(store, artifacts)
        return output

    @abstractmethod
    def _sort(self, artifacts: List[str], output: str, store: ArtifactStore):
        """Write the sorted lines of artifacts into output."""


class ExternalSorter(Sorter):
    """Delegates sorting to the system sort command"""

    def __init__(self, command: str = 'sort', timeout: Optional[float] = None):
        """
        Initialize the sorter

        Args:
            command: Sort executable
            timeout: Seconds to wait for the command, None for no limit
        """
        self.command = command
        self.timeout = timeout

    def build_command(self, artifacts: List[str], output: str, scratch_dir: Optional[str] = None) -> List[str]:
        command = [self.command]
        if scratch_dir:
            command += ['-T', scratch_dir]
        command += ['-o', output]
        command += artifacts
        return command

    def _sort(self, artifacts: List[str], output: str, store: ArtifactStore):
        if not isinstance(store, FileArtifactStore):
            raise TypeError("ExternalSorter requires a FileArtifactStore")

        command = self.build_command(artifacts, output, store.scratch_dir)
        # Byte-wise ordering whatever the user locale is
        env = dict(os.environ, LC_ALL='C')

        logger.info(f"Starting external sort of {len(artifacts)} files")
        try:
            result = subprocess.run(command, env=env, capture_output=True, text=True,
                                    timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired:
            logger.error(f"External sort timed out after {self.timeout}s")
            raise ShuffleError(f"Unable to sort/shuffle data: sort timed out after {self.timeout}s")
        except OSError as e:
            logger.error(f"Can not run external sort: {e}")
            raise ShuffleError(f"Unable to sort/shuffle data: {e}") from e

        if result.returncode != 0:
            logger.error(f"External sort failed with exit code {result.returncode}: {result.stderr.strip()}")
            raise ShuffleError()

        logger.info(f"External sort done: {output}")


class MergeSorter(Sorter):
    """In-process external merge sort: sorted runs merged with heapq.merge"""

    def __init__(self, buffer_lines: int = 100000):
        if buffer_lines <= 0:
            raise ValueError("buffer_lines must be positive")
        self.buffer_lines = buffer_lines

    def _write_run(self, lines: List[str], store: ArtifactStore) -> str:
        lines.sort(key=_line_key)
        run = store.create('run-')
        with store.open_write(run) as f:
            f.writelines(lines)
        return run

    def _make_runs(self, artifacts: List[str], store: ArtifactStore) -> List[str]:
        runs = []
        buffer = []
        try:
            for artifact in artifacts:
                with store.open_read(artifact) as f:
                    for line in f:
                        if not line.endswith('\n'):
                            line += '\n'
                        buffer.append(line)
                        if len(buffer) >= self.buffer_lines:
                            runs.append(self._write_run(buffer, store))
                            buffer = []
            if buffer:
                runs.append(self._write_run(buffer, store))
        except Exception:
            discard(store, runs)
            raise
        return runs

    def _sort(self, artifacts: List[str], output: str, store: ArtifactStore):
        logger.info(f"Starting merge sort of {len(artifacts)} artifacts")
        try:
            runs = self._make_runs(artifacts, store)
        except OSError as e:
            raise ShuffleError(f"Unable to sort/shuffle data: {e}") from e

        try:
            with ExitStack() as stack:
                readers = [stack.enter_context(store.open_read(run)) for run in runs]
                with store.open_write(output) as out:
                    out.writelines(heapq.merge(*readers, key=_line_key))
        except OSError as e:
            raise ShuffleError(f"Unable to sort/shuffle data: {e}") from e
        finally:
            discard(store, runs)

        logger.info(f"Merge sort done: {len(runs)} runs merged into {output}")
