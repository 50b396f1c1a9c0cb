"""
Performance metrics for pseudo map-reduce jobs.
"""

import time
import json
from dataclasses import dataclass, asdict
from typing import Optional

import psutil


@dataclass
class JobMetrics:
    """Metrics for one job instance, across all its map and reduce passes."""

    job_id: str
    map_passes: int = 0
    input_lines: int = 0
    map_output_records: int = 0
    spill_artifacts: int = 0
    spill_bytes: int = 0
    groups: int = 0
    reduce_output_records: int = 0
    map_phase_start: float = 0.0
    map_phase_end: float = 0.0
    sort_phase_start: float = 0.0
    sort_phase_end: float = 0.0
    reduce_phase_start: float = 0.0
    reduce_phase_end: float = 0.0
    peak_memory_bytes: int = 0

    @property
    def map_phase_time_seconds(self) -> float:
        """Time from the start of the first map pass to the end of the last one."""
        return self.map_phase_end - self.map_phase_start

    @property
    def sort_phase_time_seconds(self) -> float:
        return self.sort_phase_end - self.sort_phase_start

    @property
    def reduce_phase_time_seconds(self) -> float:
        return self.reduce_phase_end - self.reduce_phase_start

    def start_map_pass(self) -> float:
        """Start time of a map pass, to hand to end_map_pass once it succeeds."""
        return time.time()

    def end_map_pass(self, spill_bytes: int, started: Optional[float] = None):
        """
        Record a completed map pass

        Failed passes are never recorded, so map_passes always equals
        spill_artifacts.

        Args:
            spill_bytes: Size of the spill artifact the pass wrote
            started: Value returned by start_map_pass, now if None
        """
        now = time.time()
        if self.map_passes == 0:
            self.map_phase_start = started if started is not None else now
        self.map_passes += 1
        self.map_phase_end = now
        self.spill_artifacts += 1
        self.spill_bytes += spill_bytes
        self.sample_memory()

    def start_sort(self):
        self.sort_phase_start = time.time()

    def end_sort(self):
        self.sort_phase_end = time.time()
        self.sample_memory()

    def start_reduce(self):
        self.reduce_phase_start = time.time()

    def end_reduce(self):
        self.reduce_phase_end = time.time()
        self.sample_memory()

    def sample_memory(self):
        """Record the resident memory of this process if it is a new peak."""
        rss = psutil.Process().memory_info().rss
        self.peak_memory_bytes = max(self.peak_memory_bytes, rss)

    def to_dict(self) -> dict:
        """Convert metrics to dictionary."""
        data = asdict(self)
        data['map_phase_time_seconds'] = self.map_phase_time_seconds
        data['sort_phase_time_seconds'] = self.sort_phase_time_seconds
        data['reduce_phase_time_seconds'] = self.reduce_phase_time_seconds
        return data

    def save_to_file(self, filepath: str):
        """Save metrics to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
