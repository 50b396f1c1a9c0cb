"""
Pseudo map-reduce engine.

Runs a map/shuffle/reduce computation on a single machine: map passes
append their output to spill artifacts, a sorter merges the spills into one
sorted artifact, and the reduce pass streams over it one key group at a
time. Map passes, sort and reduce run strictly one after the other.
"""

import io
import os
import bz2
import gzip
import lzma
import uuid
import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterable, List, Optional, TextIO, Union

from pseudomr.artifacts import ArtifactStore, FileArtifactStore, discard
from pseudomr.codec import encode_record
from pseudomr.config import EngineConfig, build_sorter
from pseudomr.grouping import ValueIterator, read_groups
from pseudomr.metrics import JobMetrics
from pseudomr.reporter import Reporter
from pseudomr.sorters import Sorter

logger = logging.getLogger(__name__)

SPILL_PREFIX = 'map-'

COMPRESSED_OPENERS = {
    '.gz': gzip.open,
    '.bz2': bz2.open,
    '.xz': lzma.open,
}

PathType = Union[str, os.PathLike]


def open_text(path: PathType, mode: str = 'r', encoding: str = 'utf-8') -> TextIO:
    """
    Open a text file, compressed or not depending on its extension

    Args:
        path: File path; .gz, .bz2 and .xz files are (de)compressed
        mode: 'r' or 'w'
        encoding: Text encoding
    """
    path = os.fspath(path)
    opener = COMPRESSED_OPENERS.get(os.path.splitext(path)[1].lower(), open)
    return opener(path, mode + 't', encoding=encoding)


def _is_binary(stream) -> bool:
    """True for byte streams such as io.BytesIO, sys.stdin.buffer or gzip.open(path)."""
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        return True
    mode = getattr(stream, 'mode', None)
    return isinstance(mode, str) and 'b' in mode


def _chomp(line: str) -> str:
    """Remove one trailing line terminator."""
    if line.endswith('\n'):
        line = line[:-1]
    if line.endswith('\r'):
        line = line[:-1]
    return line


class PseudoMapReduce(ABC):
    """
    Base class of a local map-reduce job.

    Subclasses implement map() and reduce(). A job instance owns its spill
    and sorted artifacts and its Reporter. Counters are kept across map
    passes until reset() is called.
    """

    def __init__(self, scratch_dir: Optional[str] = None, store: Optional[ArtifactStore] = None,
                 sorter: Optional[Sorter] = None, config: Optional[EngineConfig] = None,
                 job_id: Optional[str] = None):
        """
        Initialize the job

        Args:
            scratch_dir: Directory for artifacts, overrides the configuration
            store: Artifact store, a FileArtifactStore on the scratch directory if None
            sorter: Sort strategy, the configured one if None
            config: Engine configuration, read from the environment if None
            job_id: Identifier used in logs and metrics
        """
        self.config = config or EngineConfig.from_env()
        self.store = store or FileArtifactStore(scratch_dir or self.config.scratch_dir)
        self.sorter = sorter or build_sorter(self.config)
        self.job_id = job_id or uuid.uuid4().hex[:8]
        self.metrics = JobMetrics(job_id=self.job_id)

        self._reporter = Reporter()
        self._spills: List[str] = []
        self._sorted: Optional[str] = None

    #
    # User functions
    #

    @abstractmethod
    def map(self, value: str, output: List[str], reporter: Reporter):
        """
        Map one input line

        Args:
            value: Input line without its line terminator
            output: List to append intermediate lines (key<TAB>value) to
            reporter: Job counters

        Raises:
            OSError: Aborts the map pass
        """

    @abstractmethod
    def reduce(self, key: str, values: ValueIterator, output: List[str], reporter: Reporter):
        """
        Reduce the values of one key

        Args:
            key: Group key
            values: Single-pass iterator over the values of the key, in
                ascending order of the value text
            output: List to append output lines to
            reporter: Job counters

        Raises:
            OSError: Aborts the reduce pass
        """

    #
    # State
    #

    @property
    def reporter(self) -> Reporter:
        return self._reporter

    @property
    def spill_artifacts(self) -> List[str]:
        """Spill artifacts waiting for the shuffle."""
        return list(self._spills)

    def reset(self):
        """Clear every counter of the reporter."""
        logger.debug(f"Job {self.job_id}: resetting counters")
        self._reporter.clear()

    def cleanup(self):
        """Delete every pending spill and sorted artifact."""
        pending = list(self._spills)
        if self._sorted is not None:
            pending.append(self._sorted)
        self._spills = []
        self._sorted = None
        discard(self.store, pending)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.cleanup()
        return False

    #
    # Map
    #

    def run_map(self, source: Union[PathType, Iterable[str]]) -> int:
        """
        Run a map pass over an input file or stream

        Each call writes a new spill artifact; several calls accumulate
        artifacts for a single shuffle.

        Args:
            source: File path, binary stream (decoded with the configured
                encoding) or iterable of text lines

        Returns:
            Number of input lines processed

        Raises:
            OSError: On read or write failure, or if map() raises it
        """
        if source is None:
            raise TypeError("The input source is None.")

        if isinstance(source, (str, os.PathLike)):
            with open_text(source, 'r', self.config.encoding) as f:
                return self.run_map(f)

        if _is_binary(source):
            text = io.TextIOWrapper(source, encoding=self.config.encoding)
            try:
                return self.run_map(text)
            finally:
                text.detach()

        spill = self.store.create(SPILL_PREFIX)
        self._spills.append(spill)
        started = self.metrics.start_map_pass()

        results: List[str] = []
        lines = 0
        records = 0
        try:
            with self.store.open_write(spill) as out:
                for line in source:
                    self.map(_chomp(line), results, self._reporter)
                    for result in results:
                        out.write(result)
                        out.write('\n')
                    records += len(results)
                    results.clear()
                    lines += 1
        except Exception:
            logger.error(f"Job {self.job_id}: map pass failed after {lines} lines")
            self._spills.remove(spill)
            discard(self.store, [spill])
            raise

        self.metrics.input_lines += lines
        self.metrics.map_output_records += records
        self.metrics.end_map_pass(self.store.size(spill), started)
        logger.info(f"Job {self.job_id}: mapped {lines} lines into {records} records")
        return lines

    #
    # Shuffle
    #

    def shuffle(self) -> str:
        """
        Sort the pending spill artifacts into one sorted artifact

        Returns:
            Handle of the sorted artifact

        Raises:
            ShuffleError: If the sorter failed
        """
        if self._sorted is not None and not self._spills:
            return self._sorted

        inputs = list(self._spills)
        if self._sorted is not None:
            inputs.append(self._sorted)
        self._spills = []
        self._sorted = None

        self.metrics.start_sort()
        self._sorted = self.sorter.sort(inputs, self.store)
        self.metrics.end_sort()
        return self._sorted

    #
    # Reduce
    #

    def run_reduce(self, sink: Union[PathType, TextIO]) -> int:
        """
        Shuffle the map output and run the reduce pass

        Output lines are written as each group completes.

        Args:
            sink: File path, writable text stream or binary stream (encoded
                with the configured encoding)

        Returns:
            Number of groups reduced

        Raises:
            ShuffleError: If the shuffle failed
            MalformedRecordError: If the sorted data holds a line without tab
            OSError: On read or write failure, or if reduce() raises it
        """
        if sink is None:
            raise TypeError("The output sink is None.")

        if isinstance(sink, (str, os.PathLike)):
            with open_text(sink, 'w', self.config.encoding) as f:
                return self.run_reduce(f)

        if _is_binary(sink):
            text = io.TextIOWrapper(sink, encoding=self.config.encoding, newline='\n')
            try:
                return self.run_reduce(text)
            finally:
                text.detach()

        sorted_artifact = self.shuffle()
        self._sorted = None
        self.metrics.start_reduce()

        results: List[str] = []
        groups = 0
        records = 0
        try:
            with self.store.open_read(sorted_artifact) as f:
                for key, values in read_groups(f):
                    self.reduce(key, values, results, self._reporter)
                    for result in results:
                        sink.write(result)
                        sink.write('\n')
                    records += len(results)
                    results.clear()
                    groups += 1
        except Exception:
            logger.error(f"Job {self.job_id}: reduce pass failed after {groups} groups")
            raise
        finally:
            discard(self.store, [sorted_artifact])

        sink.flush()
        self.metrics.groups += groups
        self.metrics.reduce_output_records += records
        self.metrics.end_reduce()
        logger.info(f"Job {self.job_id}: reduced {groups} groups into {records} records")
        return groups


class FunctionJob(PseudoMapReduce):
    """
    Job built from two generator functions.

    map_function(line, reporter) yields (key, value) pairs.
    reduce_function(key, values, reporter) yields (key, value) output records,
    written as key<TAB>value lines.
    """

    def __init__(self, map_function: Callable, reduce_function: Callable, **kwargs):
        super().__init__(**kwargs)
        self.map_function = map_function
        self.reduce_function = reduce_function

    def map(self, value, output, reporter):
        for key, out_value in self.map_function(value, reporter) or ():
            output.append(encode_record(key, out_value))

    def reduce(self, key, values, output, reporter):
        for out_key, out_value in self.reduce_function(key, values, reporter) or ():
            output.append(f"{out_key}\t{out_value}")
