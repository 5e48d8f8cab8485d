"""Fleet orchestrator with bounded parallel fan-out and per-host isolation."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Iterable, List, Optional, Set

from driftguard.engine.results import HostResult, HostStatus
from driftguard.utils.errors import DriftGuardError, ErrorContext, error_handler
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8

# Type aliases for the per-host operation and progress callback
HostOperation = Callable[[str], HostResult]
ProgressCallback = Callable[[str, HostStatus, Optional[str]], None]


def normalize_hosts(hosts: Iterable[str]) -> List[str]:
    """Strip host names and drop blanks, comments and case-insensitive duplicates."""
    seen: Set[str] = set()
    normalized = []
    for host in hosts:
        name = host.strip()
        if not name or name.startswith("#"):
            continue
        folded = name.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        normalized.append(name)
    return normalized


class ResultCollector:
    """Lock-guarded, append-only aggregation of host results for one run."""

    def __init__(self):
        self.lock = threading.Lock()
        self.results: List[HostResult] = []
        self.started: Set[str] = set()
        self.closed = False

    def append(self, result: HostResult) -> bool:
        """Append a result; returns False once the run has been closed."""
        with self.lock:
            if self.closed:
                return False
            self.results.append(result)
            return True

    def sorted_results(self) -> List[HostResult]:
        """Results sorted by host then record identity."""
        with self.lock:
            return sorted(self.results, key=lambda r: r.sort_key())


class FleetOrchestrator:
    """Dispatches one operation per host across a bounded worker pool.

    A failing host produces an ``error`` result and never affects its
    siblings. Cancellation and timeouts stop new hosts from starting; every
    host still gets exactly one result.
    """

    def __init__(self, max_workers: int = DEFAULT_MAX_WORKERS, timeout: Optional[float] = None):
        """Initialize fleet orchestrator.

        Args:
            max_workers: Maximum number of hosts in flight
            timeout: Default overall run timeout in seconds
        """
        self.max_workers = max_workers
        self.timeout = timeout
        self._cancel = threading.Event()
        self.logger = get_logger(__name__)

    def cancel(self) -> None:
        """Stop scheduling new host operations for the current run."""
        self.logger.warning("Cancellation requested; no new hosts will be started")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def run(
        self,
        hosts: Iterable[str],
        op: HostOperation,
        operation: str = "collect",
        max_workers: Optional[int] = None,
        timeout: Optional[float] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[HostResult]:
        """Run ``op`` once per host.

        Args:
            hosts: Host identifiers
            op: Per-host operation returning a HostResult
            operation: Operation name recorded on synthesized results
            max_workers: Override for the worker limit
            timeout: Override for the overall timeout in seconds
            progress_callback: Optional callback for per-host completion

        Returns:
            One result per host, sorted by host then record identity
        """
        hosts = normalize_hosts(hosts)
        if not hosts:
            return []

        workers = min(max_workers or self.max_workers, len(hosts))
        timeout = timeout if timeout is not None else self.timeout
        collector = ResultCollector()

        self.logger.info(f"Running {operation} on {len(hosts)} host(s) with {workers} worker(s)...")
        start = time.monotonic()

        # Each run starts uncancelled
        self._cancel.clear()

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="driftguard")
        try:
            futures = {}
            for host in hosts:
                future = executor.submit(
                    self._run_host, host, op, operation, collector, progress_callback
                )
                futures[future] = host
            _, not_done = wait(futures, timeout=timeout)
        except BaseException:
            # Interrupted: let in-flight hosts finish, drop queued ones
            self._cancel.set()
            executor.shutdown(wait=True, cancel_futures=True)
            self._close_after_interrupt(collector, hosts, operation)
            raise

        if not_done:
            self._close_after_timeout(
                collector, [futures[f] for f in not_done], operation, timeout
            )
            executor.shutdown(wait=False, cancel_futures=True)
        else:
            executor.shutdown(wait=True)

        results = collector.sorted_results()
        failed = sum(1 for r in results if r.is_error())
        self.logger.info(
            f"{operation} finished on {len(results)} host(s) in {time.monotonic() - start:.1f}s "
            f"({failed} error(s))"
        )
        return results

    def _close_after_timeout(
        self,
        collector: ResultCollector,
        pending_hosts: List[str],
        operation: str,
        timeout: Optional[float],
    ) -> None:
        with collector.lock:
            collector.closed = True
            reported = {result.host for result in collector.results}
            for host in pending_hosts:
                if host in reported:
                    continue
                if host in collector.started:
                    collector.results.append(HostResult(
                        host=host,
                        operation=operation,
                        status=HostStatus.ERROR,
                        message=f"Timed out after {timeout}s; outcome unknown",
                    ))
                else:
                    collector.results.append(HostResult(
                        host=host,
                        operation=operation,
                        status=HostStatus.WARNING,
                        message=f"Not started: run timed out after {timeout}s",
                    ))
        self.logger.error(
            f"Run timed out after {timeout}s with {len(pending_hosts)} host(s) unfinished"
        )

    def _close_after_interrupt(
        self,
        collector: ResultCollector,
        hosts: List[str],
        operation: str,
    ) -> None:
        with collector.lock:
            collector.closed = True
            reported = {result.host for result in collector.results}
            skipped = [host for host in hosts if host not in reported]
            for host in skipped:
                collector.results.append(HostResult(
                    host=host,
                    operation=operation,
                    status=HostStatus.WARNING,
                    message="Not started: run was interrupted",
                ))
        self.logger.error(
            f"{operation} interrupted; {len(skipped)} host(s) not started: {', '.join(skipped)}"
        )

    def _run_host(
        self,
        host: str,
        op: HostOperation,
        operation: str,
        collector: ResultCollector,
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        with collector.lock:
            if collector.closed:
                return
            if self._cancel.is_set():
                collector.results.append(HostResult(
                    host=host,
                    operation=operation,
                    status=HostStatus.WARNING,
                    message="Not started: run was cancelled",
                ))
                return
            collector.started.add(host)

        start = time.monotonic()
        try:
            result = op(host)
        except DriftGuardError as e:
            e.context.host = e.context.host or host
            self.logger.error(f"{operation} failed: {e.message}", extra={"host": host})
            result = HostResult(
                host=host,
                operation=operation,
                status=HostStatus.ERROR,
                message=e.message,
                error=e,
            )
        except Exception as e:
            error = error_handler.handle_exception(
                e, ErrorContext(host=host, operation=operation)
            )
            self.logger.exception(f"Unexpected error during {operation}", extra={"host": host})
            result = HostResult(
                host=host,
                operation=operation,
                status=HostStatus.ERROR,
                message=error.message,
                error=error,
            )

        result.duration = time.monotonic() - start
        if not collector.append(result):
            self.logger.warning(
                f"Discarding {operation} result that arrived after the run timed out",
                extra={"host": host},
            )
            return

        if progress_callback:
            progress_callback(host, result.status, result.message or None)
