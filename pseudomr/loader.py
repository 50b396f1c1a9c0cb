"""
Dynamic loader for job files.
A job file is a Python module defining map_function and reduce_function.
"""

import os
import importlib.util

from pseudomr.engine import FunctionJob
from pseudomr.errors import JobLoadError


class FunctionLoader:
    """Dynamically loads user-provided map/reduce functions from Python files"""

    def __init__(self, job_file: str):
        """
        Initialize the function loader

        Args:
            job_file: Path to user's Python file containing map/reduce functions
        """
        self.job_file = job_file
        self.module = None

    def load_module(self):
        """
        Dynamically load user-provided module

        Returns:
            The loaded module object

        Raises:
            FileNotFoundError: If the job file doesn't exist
            JobLoadError: If the file can not be imported
        """
        if not os.path.exists(self.job_file):
            raise FileNotFoundError(f"Job file not found: {self.job_file}")

        name = os.path.splitext(os.path.basename(self.job_file))[0]
        spec = importlib.util.spec_from_file_location(f"pseudomr_job_{name}", self.job_file)
        if spec is None or spec.loader is None:
            raise JobLoadError(f"Failed to load job file: {self.job_file}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        self.module = module
        return module

    def _get_function(self, name: str):
        if not self.module:
            self.load_module()

        function = getattr(self.module, name, None)
        if not callable(function):
            raise JobLoadError(f"Job file must define '{name}': {self.job_file}")
        return function

    def get_map_function(self):
        """The map_function callable of the job file"""
        return self._get_function('map_function')

    def get_reduce_function(self):
        """The reduce_function callable of the job file"""
        return self._get_function('reduce_function')

    def load_job(self, **kwargs) -> FunctionJob:
        """
        Build a job from the job file

        Args:
            **kwargs: Passed to FunctionJob (scratch_dir, store, sorter, config, job_id)
        """
        return FunctionJob(self.get_map_function(), self.get_reduce_function(), **kwargs)
