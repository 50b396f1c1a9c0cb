"""
Artifact stores for spill and sorted files.
An artifact is an opaque handle; FileArtifactStore uses absolute paths.
"""

import io
import os
import logging
import time
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, TextIO

logger = logging.getLogger(__name__)

ARTIFACT_ENCODING = 'utf-8'

# Prefix of every artifact file name
FILE_PREFIX = 'pseudomr-'

# Prefixes of the artifacts the engine, sorters and sort service create
ARTIFACT_PREFIXES = ('map-', 'sort-', 'run-', 'remote-')


class ArtifactStore(ABC):
    """Creates, writes, reads and deletes intermediate artifacts"""

    @abstractmethod
    def create(self, prefix: str) -> str:
        """Create a new empty artifact with a unique name and return its handle."""

    @abstractmethod
    def open_write(self, artifact: str) -> TextIO:
        """Open an artifact for writing. Closing the stream finalizes it."""

    @abstractmethod
    def open_read(self, artifact: str) -> TextIO:
        """Open an artifact for reading, one record per line."""

    @abstractmethod
    def delete(self, artifact: str):
        """Delete an artifact. Raises OSError if it cannot be deleted."""

    @abstractmethod
    def exists(self, artifact: str) -> bool:
        """Return True if the artifact still exists."""

    @abstractmethod
    def size(self, artifact: str) -> int:
        """Size of the artifact content in bytes."""


class FileArtifactStore(ArtifactStore):
    """Artifacts are temporary files inside a scratch directory"""

    def __init__(self, scratch_dir: Optional[str] = None):
        """
        Initialize the store

        Args:
            scratch_dir: Directory for artifacts, system temp directory if None
        """
        self.scratch_dir = os.path.abspath(scratch_dir or tempfile.gettempdir())
        os.makedirs(self.scratch_dir, exist_ok=True)

    def create(self, prefix: str) -> str:
        # mkstemp keeps names unique when several jobs share the directory
        fd, path = tempfile.mkstemp(prefix=FILE_PREFIX + prefix, suffix='.txt', dir=self.scratch_dir)
        os.close(fd)
        return path

    def open_write(self, artifact: str) -> TextIO:
        return open(artifact, 'w', encoding=ARTIFACT_ENCODING, newline='\n')

    def open_read(self, artifact: str) -> TextIO:
        return open(artifact, 'r', encoding=ARTIFACT_ENCODING, newline='\n')

    def delete(self, artifact: str):
        os.remove(artifact)

    def exists(self, artifact: str) -> bool:
        return os.path.exists(artifact)

    def size(self, artifact: str) -> int:
        return os.path.getsize(artifact)


class _MemoryWriter(io.StringIO):
    """StringIO that commits its content to the owning store on close"""

    def __init__(self, store, artifact):
        super().__init__()
        self._store = store
        self._artifact = artifact

    def close(self):
        if not self.closed:
            self._store._commit(self._artifact, self.getvalue())
        super().close()


class MemoryArtifactStore(ArtifactStore):
    """In-memory artifacts, for tests and small jobs"""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._next_id = 0
        self._lock = threading.Lock()

    def create(self, prefix: str) -> str:
        with self._lock:
            artifact = f"{prefix}{self._next_id}"
            self._next_id += 1
            self._data[artifact] = ''
        return artifact

    def _commit(self, artifact: str, content: str):
        with self._lock:
            if artifact not in self._data:
                raise FileNotFoundError(f"Artifact not found: {artifact}")
            self._data[artifact] = content

    def open_write(self, artifact: str) -> TextIO:
        if not self.exists(artifact):
            raise FileNotFoundError(f"Artifact not found: {artifact}")
        return _MemoryWriter(self, artifact)

    def open_read(self, artifact: str) -> TextIO:
        with self._lock:
            if artifact not in self._data:
                raise FileNotFoundError(f"Artifact not found: {artifact}")
            return io.StringIO(self._data[artifact])

    def delete(self, artifact: str):
        with self._lock:
            if artifact not in self._data:
                raise FileNotFoundError(f"Artifact not found: {artifact}")
            del self._data[artifact]

    def exists(self, artifact: str) -> bool:
        with self._lock:
            return artifact in self._data

    def size(self, artifact: str) -> int:
        with self._lock:
            return len(self._data[artifact].encode(ARTIFACT_ENCODING))

    def artifacts(self):
        """Handles of all live artifacts."""
        with self._lock:
            return list(self._data)


def discard(store: ArtifactStore, artifacts: Iterable[str]):
    """Delete artifacts, logging a warning for each one that cannot be removed."""
    for artifact in artifacts:
        try:
            store.delete(artifact)
        except OSError as e:
            logger.warning(f"Can not delete artifact {artifact}: {e}")


def find_stale_artifacts(scratch_dir: str, min_age_seconds: float = 3600.0) -> List[str]:
    """
    Find artifact files left in a scratch directory by jobs that did not clean up

    Args:
        scratch_dir: Directory to scan
        min_age_seconds: Only files not modified for at least this long are returned

    Returns:
        Sorted list of absolute paths
    """
    if not os.path.isdir(scratch_dir):
        return []

    prefixes = tuple(FILE_PREFIX + prefix for prefix in ARTIFACT_PREFIXES)
    cutoff = time.time() - min_age_seconds
    stale = []
    for entry in os.scandir(scratch_dir):
        if not entry.is_file():
            continue
        if not entry.name.startswith(prefixes) or not entry.name.endswith('.txt'):
            continue
        if entry.stat().st_mtime <= cutoff:
            stale.append(os.path.abspath(entry.path))
    return sorted(stale)
