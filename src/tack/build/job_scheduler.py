"""
Bounded-parallel compile job scheduler.

Compilation runs as native compiler processes, never threads: the driver
spawns up to max_parallel processes and waits for them.

Admission policy:
    When the window of running processes is full, the scheduler waits for
    the OLDEST admitted process before admitting the next job (FIFO), not
    for whichever process happens to finish first. This keeps the loop
    trivial and fair; under very uneven compile times a slot may sit idle
    until the oldest job finishes.

Failure policy:
    The first non-zero exit or spawn failure stops admission. Every process
    that was already started is still waited for before the error is
    raised, so no child outlives the batch. On KeyboardInterrupt the
    remaining process trees are terminated.
"""

import logging
import subprocess
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Deque, List, Optional, Sequence, Tuple

from ..errors import BuildError, JobFailedError, SpawnError
from ..output import log_command
from ..subprocess_utils import spawn, terminate_processes, wait

logger = logging.getLogger(__name__)


class JobState(Enum):
    """State of a compile job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CompileJob:
    """Single compiler invocation."""

    argv: List[str]
    source: Optional[Path] = None
    output: Optional[Path] = None
    state: JobState = JobState.PENDING
    returncode: Optional[int] = None
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    _proc: Optional[subprocess.Popen] = field(default=None, repr=False, compare=False)

    def duration(self) -> Optional[float]:
        """Get job duration in seconds."""
        if self.start_time and self.end_time:
            return self.end_time - self.start_time
        return None

    @property
    def label(self) -> str:
        if self.source is not None:
            return str(self.source)
        return self.argv[0] if self.argv else "<empty>"


def _start(job: CompileJob, cwd: Optional[Path], verbose: bool) -> None:
    if verbose:
        log_command(job.argv)
    job.start_time = time.time()
    try:
        job._proc = spawn(job.argv, cwd=cwd)
    except SpawnError:
        job.state = JobState.FAILED
        job.end_time = time.time()
        raise
    job.state = JobState.RUNNING


def _finish(job: CompileJob) -> bool:
    if job._proc is None:
        raise BuildError(f"{job.label}: job was never started")
    job.returncode = wait(job._proc)
    job.end_time = time.time()
    job._proc = None
    if job.returncode == 0:
        job.state = JobState.COMPLETED
        logger.debug(f"{job.label}: ok ({job.duration() or 0.0:.2f}s)")
        return True
    job.state = JobState.FAILED
    logger.debug(f"{job.label}: exit code {job.returncode}")
    return False


_Failure = Optional[Tuple[CompileJob, Optional[SpawnError]]]


def _run_sequential(jobs: Sequence[CompileJob], cwd: Optional[Path], verbose: bool) -> _Failure:
    for job in jobs:
        try:
            _start(job, cwd, verbose)
        except SpawnError as e:
            return job, e
        if not _finish(job):
            return job, None
    return None


def _run_window(jobs: Sequence[CompileJob], max_parallel: int, cwd: Optional[Path], verbose: bool) -> _Failure:
    running: Deque[CompileJob] = deque()
    failure: _Failure = None

    for job in jobs:
        if len(running) >= max_parallel:
            oldest = running.popleft()
            if not _finish(oldest):
                failure = (oldest, None)
                break
        try:
            _start(job, cwd, verbose)
        except SpawnError as e:
            failure = (job, e)
            break
        running.append(job)

    # no child may outlive the batch, even after a failure
    while running:
        job = running.popleft()
        if not _finish(job) and failure is None:
            failure = (job, None)
    return failure


def run_many(
    jobs: Sequence[CompileJob],
    max_parallel: int = 1,
    cwd: Optional[Path] = None,
    verbose: bool = False,
) -> None:
    """Run compile jobs with at most max_parallel processes at a time.

    Args:
        jobs: Jobs to run, admitted in order
        max_parallel: Window size; values below 1 are treated as 1
        cwd: Working directory for every process
        verbose: Echo each command line before starting it

    Raises:
        JobFailedError: A job exited non-zero (raised for the first failure
            observed, after all started processes have exited)
        SpawnError: A compiler could not be started
    """
    if max_parallel < 1:
        max_parallel = 1

    try:
        if max_parallel == 1:
            failure = _run_sequential(jobs, cwd, verbose)
        else:
            failure = _run_window(jobs, max_parallel, cwd, verbose)
    except KeyboardInterrupt:
        alive = [j._proc for j in jobs if j._proc is not None]
        logger.warning(f"Interrupted, terminating {len(alive)} compiler process(es)")
        terminate_processes(alive)
        raise

    if failure is not None:
        job, spawn_error = failure
        if spawn_error is not None:
            raise spawn_error
        raise JobFailedError(job.argv, job.returncode or 1, source=job.label)
