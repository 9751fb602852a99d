"""Build orchestration.

One build runs: capture -> graph -> resolve -> load cache -> plan -> dispatch
batches on a bounded worker pool with retry -> merge -> persist -> report.

Failures are scoped to the smallest unit. An unresolved import fails its
batch, a version conflict fails its component, a toolchain failure fails its
batch (or the whole build under ``strict_toolchain``), and everything else
still builds.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import UTC, datetime
from pathlib import Path

import structlog

from smelt_core.build.models import (
    BatchResult,
    BatchStatus,
    BuildResult,
    BuildStatus,
    UnitFailure,
)
from smelt_core.build.retry import create_retry_decorator
from smelt_core.build.toolchain import CompileRequest, Toolchain
from smelt_core.cache.artifact_cache import ArtifactCache, entries_from_output
from smelt_core.cache.store import CacheStore
from smelt_core.errors import CompilerDiagnostic, SmeltError, ToolchainFailure, UnresolvedImport
from smelt_core.graph.source_graph import SourceGraph
from smelt_core.observability import compiler_invocation
from smelt_core.schemas.artifacts import (
    CacheEntry,
    CompilerOutput,
    ContractArtifact,
    Diagnostic,
)
from smelt_core.schemas.batch import Batch
from smelt_core.schemas.config import BuildConfig
from smelt_core.schemas.source import SourceFile
from smelt_core.versioning.resolver import VersionResolver

logger = structlog.get_logger(__name__)

SMELT_VERSION = "0.1.0"


class BuildRunner:
    """Runs incremental builds of one project.

    Attributes:
        toolchain: External compiler collaborator.
        config: Build configuration.
        project_root: Directory the cache file is relative to.
        store: Cache persistence.

    Example:
        >>> runner = BuildRunner(toolchain, BuildConfig(), project_root=Path("."))
        >>> result = runner.run({"src/Token.sol": source}, ["0.8.19", "0.8.24"])
        >>> result.status
        <BuildStatus.SUCCESS: 'success'>
    """

    def __init__(
        self,
        toolchain: Toolchain,
        config: BuildConfig | None = None,
        *,
        project_root: Path | None = None,
        store: CacheStore | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            toolchain: Compiler collaborator, called once per batch attempt.
            config: Build configuration; defaults apply when None.
            project_root: Project root; defaults to the working directory.
            store: Cache store; defaults to ``project_root / config.cache_file``.
        """
        self.toolchain = toolchain
        self.config = config or BuildConfig()
        self.project_root = project_root or Path(".")
        self.store = store or CacheStore(self.project_root / self.config.cache_file)
        self._cancelled = threading.Event()
        self._invocations = 0
        self._lock = threading.Lock()
        self._log = logger.bind(component="build_runner")

    def cancel(self) -> None:
        """Stop dispatching batches. In-flight invocations finish."""
        self._cancelled.set()
        self._log.info("build_cancel_requested")

    def run(
        self,
        files: Mapping[str, str] | Iterable[SourceFile],
        available_versions: Sequence[str],
    ) -> BuildResult:
        """Build a captured project.

        Args:
            files: ``{path: content}`` or already-scanned SourceFiles.
            available_versions: Compiler versions the toolchain can run.

        Returns:
            BuildResult with per-batch outcomes, artifacts and diagnostics.
        """
        start_time = time.monotonic()
        started_at = datetime.now(UTC)
        self._cancelled.clear()
        self._invocations = 0

        try:
            graph = SourceGraph.build(files, self.config.remapping_rules, strict=False)
        except SmeltError as e:
            self._log.error("build_structural_error", error=str(e))
            return BuildResult(
                status=BuildStatus.FAILED,
                first_error=str(e),
                failures=[UnitFailure(files=(), error_type=type(e).__name__, message=str(e))],
                started_at=started_at,
                finished_at=datetime.now(UTC),
                total_duration_ms=int((time.monotonic() - start_time) * 1000),
            )

        self._log.info("build_started", files=len(graph), versions=len(available_versions))

        resolver = VersionResolver(self.config.settings, self.config.pinned_version)
        resolution = resolver.partition(graph, available_versions)
        cache = self.store.load()

        unresolved: dict[str, list[UnresolvedImport]] = {}
        for error in graph.unresolved:
            unresolved.setdefault(error.source, []).append(error)

        results: dict[str, BatchResult] = {}
        resolvable: list[Batch] = []
        for batch in resolution.batches:
            errors = [e for path in batch.files for e in unresolved.get(path, [])]
            if errors:
                results[batch.batch_id] = _failed(batch, errors[0])
            else:
                resolvable.append(batch)

        planned = cache.plan(graph, resolvable)
        planned_ids = {batch.batch_id for batch in planned}
        for batch in resolvable:
            if batch.batch_id not in planned_ids:
                results[batch.batch_id] = BatchResult(
                    batch_id=batch.batch_id,
                    files=batch.files,
                    version=batch.version,
                    status=BatchStatus.CACHED,
                )

        fresh, dispatched, aborted_by = self._dispatch(graph, planned)
        results.update(dispatched)

        merged = cache.merge(fresh, keep=graph.files.keys())
        self._persist(cache, merged, bool(fresh))

        ordered = [results[b.batch_id] for b in resolution.batches]
        failures = [
            UnitFailure(
                files=tuple(getattr(error, "files", ())),
                error_type=type(error).__name__,
                message=str(error),
            )
            for error in resolution.failures
        ]
        failures.extend(
            UnitFailure(
                files=r.files,
                error_type=r.error_type or "SmeltError",
                message=r.message,
                batch_id=r.batch_id,
            )
            for r in ordered
            if r.failed
        )

        status = _overall_status(ordered, failures, aborted_by)
        first_error: str | None = None
        if aborted_by is not None:
            first_error = aborted_by
        elif status == BuildStatus.FAILED and failures:
            first_error = failures[0].message

        total_duration_ms = int((time.monotonic() - start_time) * 1000)
        self._log.info(
            "build_completed",
            status=status.value,
            compiled=sum(1 for r in ordered if r.status == BatchStatus.COMPILED),
            cached=sum(1 for r in ordered if r.status == BatchStatus.CACHED),
            failed=len(failures),
            invocations=self._invocations,
            total_duration_ms=total_duration_ms,
        )

        return BuildResult(
            status=status,
            batches=ordered,
            failures=failures,
            artifacts=_artifacts(merged, ordered),
            diagnostics=_diagnostics(merged, ordered),
            invocations=self._invocations,
            first_error=first_error,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            total_duration_ms=total_duration_ms,
        )

    def _dispatch(
        self,
        graph: SourceGraph,
        planned: list[Batch],
    ) -> tuple[dict[str, CacheEntry], dict[str, BatchResult], str | None]:
        """Compile planned batches on the worker pool.

        Batches are submitted only while fewer than ``max_workers`` are in
        flight, so cancellation can drop everything not yet started.
        """
        fresh: dict[str, CacheEntry] = {}
        results: dict[str, BatchResult] = {}
        aborted_by: str | None = None
        queue = deque(planned)

        with ThreadPoolExecutor(
            max_workers=self.config.max_workers, thread_name_prefix="smelt-compile"
        ) as executor:
            in_flight: dict[Future[tuple[BatchResult, CompilerOutput | None]], Batch] = {}
            while queue or in_flight:
                while (
                    queue
                    and len(in_flight) < self.config.max_workers
                    and aborted_by is None
                    and not self._cancelled.is_set()
                ):
                    batch = queue.popleft()
                    in_flight[executor.submit(self._compile_batch, graph, batch)] = batch
                if not in_flight:
                    break

                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    batch = in_flight.pop(future)
                    result, output = future.result()
                    results[batch.batch_id] = result
                    if result.status == BatchStatus.COMPILED and output is not None:
                        fresh.update(entries_from_output(graph, batch, output))
                    if (
                        self.config.strict_toolchain
                        and result.error_type == ToolchainFailure.__name__
                        and aborted_by is None
                    ):
                        aborted_by = result.message
                        self._log.error(
                            "build_aborted",
                            batch_id=batch.batch_id,
                            reason="strict_toolchain",
                        )

        for batch in queue:
            results[batch.batch_id] = BatchResult(
                batch_id=batch.batch_id,
                files=batch.files,
                version=batch.version,
                status=BatchStatus.CANCELLED,
                message="Build stopped before this batch was dispatched",
            )
        if queue:
            self._log.warning("batches_cancelled", count=len(queue))
        return fresh, results, aborted_by

    def _compile_batch(
        self, graph: SourceGraph, batch: Batch
    ) -> tuple[BatchResult, CompilerOutput | None]:
        """Compile one batch with retry; never raises."""
        start_time = time.monotonic()
        request = CompileRequest.for_batch(batch, graph)
        attempts = 0

        def invoke(request: CompileRequest) -> CompilerOutput:
            nonlocal attempts
            attempts += 1
            with self._lock:
                self._invocations += 1
            with compiler_invocation(
                batch.batch_id, version=batch.version, file_count=len(batch.files)
            ):
                return self.toolchain.compile(request)

        compile_with_retry = create_retry_decorator(
            self.config.retry, operation_name="compile_batch"
        )(invoke)

        try:
            output = compile_with_retry(request)
        except ToolchainFailure as e:
            return _failed(batch, e, attempts=attempts, start_time=start_time), None
        except Exception as e:
            self._log.error("toolchain_error", batch_id=batch.batch_id, error=str(e))
            return _failed(batch, e, attempts=attempts, start_time=start_time), None

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if output.errors:
            error = CompilerDiagnostic(output.errors)
            self._log.warning(
                "batch_compiler_errors",
                batch_id=batch.batch_id,
                errors=len(output.errors),
            )
            return (
                BatchResult(
                    batch_id=batch.batch_id,
                    files=batch.files,
                    version=batch.version,
                    status=BatchStatus.FAILED,
                    attempts=attempts,
                    error_type=type(error).__name__,
                    message=str(error),
                    diagnostics=list(output.diagnostics),
                    duration_ms=duration_ms,
                ),
                output,
            )

        return (
            BatchResult(
                batch_id=batch.batch_id,
                files=batch.files,
                version=batch.version,
                status=BatchStatus.COMPILED,
                attempts=attempts,
                diagnostics=list(output.diagnostics),
                duration_ms=duration_ms,
            ),
            output,
        )

    def _persist(self, previous: ArtifactCache, merged: ArtifactCache, changed: bool) -> None:
        if not changed and not previous.corrupted and merged.record == previous.record:
            return
        record = merged.record.model_copy(
            update={"smelt_version": SMELT_VERSION, "project_root": str(self.project_root)}
        )
        try:
            self.store.persist(record)
        except OSError as e:
            # Output is still valid; the next build simply starts from the old record.
            self._log.error("cache_persist_failed", path=str(self.store.path), error=str(e))


def _failed(
    batch: Batch,
    error: Exception,
    *,
    attempts: int = 0,
    start_time: float | None = None,
) -> BatchResult:
    duration_ms = int((time.monotonic() - start_time) * 1000) if start_time is not None else 0
    return BatchResult(
        batch_id=batch.batch_id,
        files=batch.files,
        version=batch.version,
        status=BatchStatus.FAILED,
        attempts=attempts,
        error_type=type(error).__name__,
        message=str(error),
        duration_ms=duration_ms,
    )


def _overall_status(
    results: list[BatchResult],
    failures: list[UnitFailure],
    aborted_by: str | None,
) -> BuildStatus:
    if aborted_by is not None:
        return BuildStatus.FAILED
    incomplete = failures or any(r.status == BatchStatus.CANCELLED for r in results)
    if not incomplete:
        return BuildStatus.SUCCESS
    if any(r.succeeded for r in results):
        return BuildStatus.PARTIAL
    return BuildStatus.FAILED


def _artifacts(
    cache: ArtifactCache, results: list[BatchResult]
) -> dict[str, list[ContractArtifact]]:
    artifacts: dict[str, list[ContractArtifact]] = {}
    for result in results:
        if result.succeeded:
            for path in result.files:
                artifacts[path] = cache.artifacts(path)
    return artifacts


def _diagnostics(cache: ArtifactCache, results: list[BatchResult]) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    for result in results:
        if result.status == BatchStatus.CACHED:
            for path in result.files:
                entry = cache.entry(path)
                if entry is not None:
                    diagnostics.extend(entry.diagnostics)
        else:
            diagnostics.extend(result.diagnostics)
    return diagnostics
