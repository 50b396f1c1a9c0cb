#!/usr/bin/env python3
"""
Pseudo MapReduce CLI
Runs a job file locally, serves the remote sort service and cleans scratch files
"""

import os
import sys
import logging
import argparse
import dataclasses

from pseudomr.config import SORTERS, EngineConfig, build_sorter, configure_logging
from pseudomr.errors import PseudoMapReduceError
from pseudomr.loader import FunctionLoader
from pseudomr.remote import SortServicer, serve
from pseudomr.artifacts import FileArtifactStore, find_stale_artifacts

logger = logging.getLogger(__name__)


def _config_from_args(args) -> EngineConfig:
    """Environment configuration overridden by command line options"""
    overrides = {}
    for option, field in (('scratch_dir', 'scratch_dir'), ('sorter', 'sorter'),
                          ('sort_timeout', 'sort_timeout'), ('sort_server', 'sort_server')):
        value = getattr(args, option, None)
        if value is not None:
            overrides[field] = value
    return dataclasses.replace(EngineConfig.from_env(), **overrides)


def run_job(args):
    """Run a job file over input files"""
    try:
        config = _config_from_args(args)
        job = FunctionLoader(args.job_file).load_job(config=config, job_id=args.job_id)
    except (OSError, ValueError, PseudoMapReduceError) as e:
        print(f"Error loading job: {e}")
        return 1

    with job:
        try:
            for path in args.inputs:
                job.run_map(path)
            job.run_reduce(args.output)
        except (OSError, ValueError, PseudoMapReduceError) as e:
            logger.error(f"Job {job.job_id} failed: {e}")
            print(f"Error: job {job.job_id} failed: {e}")
            return 1

    for group in sorted(job.reporter.groups()):
        job.reporter.log_counters(group, logger)

    if args.metrics_file:
        job.metrics.save_to_file(args.metrics_file)

    print(f"✓ Job {job.job_id} completed: {job.metrics.groups} keys written to {args.output}")
    return 0


def serve_sort(args):
    """Start the remote sort service"""
    config = _config_from_args(args)
    if config.sorter == 'remote':
        config = dataclasses.replace(config, sorter='external')
    sorter = build_sorter(config)
    servicer = SortServicer(FileArtifactStore(config.scratch_dir), sorter)
    print(f"Sort server starting on port {args.port}")
    serve(args.port, servicer, args.max_workers)
    return 0


def format_size(size_bytes: int) -> str:
    """Format bytes into human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024.0:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024.0
    return f"{size_bytes:.2f} TB"


def clean_scratch(args):
    """Delete artifacts left in the scratch directory by crashed jobs"""
    config = _config_from_args(args)
    stale = find_stale_artifacts(config.scratch_dir, args.min_age)

    files_deleted = 0
    bytes_freed = 0
    for path in stale:
        try:
            file_size = os.path.getsize(path)
            if args.dry_run:
                print(f"  Would delete: {os.path.basename(path)} ({file_size} bytes)")
            else:
                os.remove(path)
        except OSError as e:
            print(f"  Error deleting {os.path.basename(path)}: {e}")
            continue
        files_deleted += 1
        bytes_freed += file_size

    if args.dry_run:
        print(f"DRY RUN: Would delete {files_deleted} files ({format_size(bytes_freed)})")
    else:
        print(f"✓ Cleanup complete: {files_deleted} files deleted ({format_size(bytes_freed)})")
    return 0


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        prog='pseudomr',
        description='Local map/shuffle/reduce engine',
        epilog='Example: %(prog)s run examples/wordcount.py input.txt -o counts.txt'
    )
    parser.add_argument('--log-level', default='INFO', help='Logging level (default: INFO)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # run command
    run_parser = subparsers.add_parser(
        'run',
        help='Run a job locally',
        description='Run one map pass per input file, then a single reduce pass'
    )
    run_parser.add_argument('job_file', help='Python file with map_function and reduce_function')
    run_parser.add_argument('inputs', nargs='+', help='Input files (.gz, .bz2 and .xz are decompressed)')
    run_parser.add_argument('-o', '--output', required=True, help='Output file')
    run_parser.add_argument('--job-id', help='Custom job ID (auto-generated if not provided)')
    run_parser.add_argument('--scratch-dir', help='Directory for intermediate files')
    run_parser.add_argument('--sorter', choices=SORTERS, help='Sort strategy (default: external)')
    run_parser.add_argument('--sort-timeout', type=float, help='Sort timeout in seconds')
    run_parser.add_argument('--sort-server', help='Sort server address for the remote sorter')
    run_parser.add_argument('--metrics-file', help='Write job metrics to this JSON file')
    run_parser.set_defaults(func=run_job)

    # serve-sort command
    serve_parser = subparsers.add_parser(
        'serve-sort',
        help='Run the remote sort service',
        description='Serve sort requests from remote sorters over gRPC'
    )
    serve_parser.add_argument('--port', type=int, default=50061, help='Port to listen on (default: 50061)')
    serve_parser.add_argument('--max-workers', type=int, default=4, help='Concurrent requests (default: 4)')
    serve_parser.add_argument('--scratch-dir', help='Directory for intermediate files')
    serve_parser.add_argument('--sorter', choices=('external', 'merge'), help='Local sort strategy')
    serve_parser.add_argument('--sort-timeout', type=float, help='Sort timeout in seconds')
    serve_parser.set_defaults(func=serve_sort)

    # clean command
    clean_parser = subparsers.add_parser(
        'clean',
        help='Delete stale intermediate files',
        description='Delete spill and sort files left in the scratch directory by jobs that did not finish'
    )
    clean_parser.add_argument('--scratch-dir', help='Directory to clean')
    clean_parser.add_argument('--min-age', type=float, default=3600.0,
                              help='Only delete files older than this many seconds (default: 3600)')
    clean_parser.add_argument('--dry-run', '-n', action='store_true',
                              help='Show what would be deleted without deleting')
    clean_parser.set_defaults(func=clean_scratch)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    # If no command specified, print help
    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
