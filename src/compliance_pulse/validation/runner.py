"""Run a validator over many files with per-file isolation and timeouts."""

from __future__ import annotations

import logging
import math
import os
import time
from collections.abc import Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Optional

from ..exceptions import ErrorCode, ValidatorError
from ..file_ops import read_bytes_limited
from ..models import FileResult, ViolationRecord
from .base import Validator

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 1024 * 1024

# Upper bound on how long the collector sleeps between deadline checks
_POLL_SECONDS = 0.05


def default_workers(paths: int = 0) -> int:
    workers = min(8, (os.cpu_count() or 1) + 2)
    return min(workers, paths) if paths else workers


def _validate_one(validator: Validator, path: str, max_bytes: int) -> FileResult:
    """Worker body: read and validate one file. Exceptions propagate to the caller."""
    start = time.perf_counter()
    content = read_bytes_limited(path, max_bytes)
    violations = list(validator.validate(path, content))
    records = tuple(v for v in violations if isinstance(v, ViolationRecord))
    if len(records) != len(violations):
        raise TypeError("validator returned non-ViolationRecord items")
    return FileResult(
        path=path,
        violations=records,
        duration_ms=(time.perf_counter() - start) * 1000.0,
    )


def _errored(path: str, error: ValidatorError) -> FileResult:
    logger.warning("Validation failed for %s: %s", path, error)
    return FileResult(path=path, errored=True)


def _collect(path: str, future: Future[FileResult]) -> FileResult:
    try:
        return future.result()
    except OSError as exc:
        return _errored(
            path,
            ValidatorError(
                message=f"Cannot read file: {exc}",
                code=ErrorCode.CP102,
                context={"path": path},
            ),
        )
    except Exception as exc:
        return _errored(
            path,
            ValidatorError(
                message=f"Validator raised {type(exc).__name__}: {exc}",
                code=ErrorCode.CP100,
                context={"path": path},
            ),
        )


def run_validations(
    validator: Validator,
    paths: Sequence[str],
    timeout: float = 2.0,
    max_workers: Optional[int] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    executor: Optional[ThreadPoolExecutor] = None,
) -> list[FileResult]:
    """Validate *paths* in parallel and return one FileResult per path, in order.

    A file whose validation raises, times out, or cannot be read is returned
    with ``errored=True`` and no violations.

    The *timeout* clock for a file starts when a worker picks it up, so time
    spent queued behind other files does not count against it. Files still
    queued once every wave could have finished (``timeout`` times
    ``ceil(len(paths) / max_workers)``) are cancelled and reported as timed
    out; that only happens when workers are stuck.

    Timed-out workers cannot be interrupted and keep running in the
    background. Pass a long-lived *executor* (the orchestrator does) so a
    validator that hangs holds at most ``max_workers`` threads instead of
    leaking a fresh pool every cycle. When no executor is given a private one
    is created and shut down without waiting.
    """
    if not paths:
        return []

    workers = max_workers or default_workers(len(paths))
    owned = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pulse-validate")
    started: dict[int, float] = {}

    def job(index: int, path: str) -> FileResult:
        started[index] = time.monotonic()
        return _validate_one(validator, path, max_bytes)

    futures: list[Future[FileResult]] = []
    outcomes: dict[int, FileResult] = {}
    try:
        futures = [pool.submit(job, i, path) for i, path in enumerate(paths)]
        queued_deadline = time.monotonic() + timeout * math.ceil(len(paths) / workers)
        pending = set(range(len(paths)))

        while pending:
            now = time.monotonic()
            for index in sorted(pending):
                future = futures[index]
                if future.done():
                    outcomes[index] = _collect(paths[index], future)
                    pending.discard(index)
                    continue
                begun = started.get(index)
                if begun is None:
                    expired = now >= queued_deadline
                else:
                    expired = now - begun >= timeout
                if expired:
                    future.cancel()
                    message = (
                        f"Validator exceeded {timeout:.2f}s"
                        if begun is not None
                        else "Validator never started (all workers busy)"
                    )
                    outcomes[index] = _errored(
                        paths[index],
                        ValidatorError(
                            message=message,
                            code=ErrorCode.CP101,
                            context={"path": paths[index]},
                        ),
                    )
                    pending.discard(index)
            if pending:
                wait([futures[i] for i in pending], timeout=_POLL_SECONDS, return_when=FIRST_COMPLETED)
    finally:
        if owned:
            pool.shutdown(wait=False, cancel_futures=True)
        else:
            for future in futures:
                future.cancel()

    return [outcomes[i] for i in range(len(paths))]
