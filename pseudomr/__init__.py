"""
Single-machine map/shuffle/reduce engine with disk-based grouping.
"""

from pseudomr.artifacts import ArtifactStore, FileArtifactStore, MemoryArtifactStore
from pseudomr.codec import decode_record, encode_record
from pseudomr.config import EngineConfig, build_sorter, configure_logging
from pseudomr.engine import FunctionJob, PseudoMapReduce
from pseudomr.errors import JobLoadError, MalformedRecordError, PseudoMapReduceError, ShuffleError
from pseudomr.grouping import RepeatedValues, ValueIterator, read_groups
from pseudomr.reporter import Reporter
from pseudomr.sorters import ExternalSorter, MergeSorter, Sorter

__version__ = '0.1.0'

__all__ = [
    'ArtifactStore', 'FileArtifactStore', 'MemoryArtifactStore',
    'decode_record', 'encode_record',
    'EngineConfig', 'build_sorter', 'configure_logging',
    'FunctionJob', 'PseudoMapReduce',
    'JobLoadError', 'MalformedRecordError', 'PseudoMapReduceError', 'ShuffleError',
    'RepeatedValues', 'ValueIterator', 'read_groups',
    'Reporter',
    'ExternalSorter', 'MergeSorter', 'Sorter',
]
