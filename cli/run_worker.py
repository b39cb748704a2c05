#!/usr/bin/env python3
"""
Run the ARQ worker for background smart generation jobs.

Usage:
    python cli/run_worker.py
    python cli/run_worker.py --burst          # drain the queue, then exit
    python cli/run_worker.py --max-jobs 2 -v
"""

import argparse
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from arq import run_worker


def main():
    parser = argparse.ArgumentParser(description="Run the smart generation worker")
    parser.add_argument("--burst", action="store_true", help="Exit once the queue is empty")
    parser.add_argument("--max-jobs", type=int, help="Concurrent generation jobs (default: WORKER_MAX_JOBS)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level")
    args = parser.parse_args()

    if args.verbose:
        os.environ["LOG_LEVEL"] = "DEBUG"

    # Settings are read from the environment at import time
    from charlib.worker import WorkerSettings

    overrides = {"burst": args.burst}
    if args.max_jobs is not None:
        overrides["max_jobs"] = args.max_jobs
    run_worker(WorkerSettings, **overrides)


if __name__ == "__main__":
    main()
