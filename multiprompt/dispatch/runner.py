"""
Dispatcher: fans one prompt out to every selected provider.

For each selected provider the prompt is recorded as a Pending
submission and rendered into an injection script synchronously; the
execution itself runs on a dedicated daemon thread per attempt:

    start -> executor.execute(provider, script) -> succeed | fail

Callers get the Pending submissions back immediately and poll the
SubmissionStore for progress. A failing or hanging provider never
affects its siblings or later batches.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from concurrent.futures import wait as wait_for_futures
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from multiprompt.errors import CommandError, InternalError, NotFoundError, ValidationError
from multiprompt.injection.executor import (
    DryRunExecutor,
    ExecutionFault,
    InjectionOutcome,
    RemoteExecutor,
    ScriptExecutor,
)
from multiprompt.injection.script_builder import ScriptSynthesizer
from multiprompt.logging_utils import log_event
from multiprompt.providers.config import ProviderConfigs, load_provider_configs
from multiprompt.providers.registry import ProviderId, ProviderRegistry
from multiprompt.settings import DispatchSettings
from multiprompt.tracker.store import SubmissionStore
from multiprompt.tracker.submission import (
    Submission,
    SubmissionErrorKind,
    SubmissionStatus,
    TransitionError,
    utcnow,
)

logger = logging.getLogger(__name__)

ExecutionResult = Union[InjectionOutcome, ExecutionFault]


@dataclass(frozen=True)
class _Job:
    provider_id: ProviderId
    script: str


@dataclass
class DispatchReport:
    """Summary of one submit call once its tasks have settled."""

    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    dry_run: bool = False
    submissions: list[Submission] = field(default_factory=list)

    @classmethod
    def from_submissions(
        cls,
        submissions: list[Submission],
        started_at: datetime,
        dry_run: bool = False,
    ) -> DispatchReport:
        return cls(
            started_at=started_at,
            completed_at=utcnow(),
            dry_run=dry_run,
            submissions=list(submissions),
        )

    def count(self, status: SubmissionStatus) -> int:
        return sum(1 for s in self.submissions if s.status is status)

    @property
    def succeeded(self) -> int:
        return self.count(SubmissionStatus.SUCCESS)

    @property
    def failed(self) -> int:
        return self.count(SubmissionStatus.FAILED)

    @property
    def unsettled(self) -> int:
        return sum(1 for s in self.submissions if not s.status.is_terminal)

    def summary(self) -> str:
        """Format a human-readable dispatch summary."""
        mode = "DRY RUN" if self.dry_run else "LIVE"
        duration = ""
        if self.completed_at:
            elapsed = (self.completed_at - self.started_at).total_seconds()
            duration = f" in {elapsed:.1f}s"

        lines = [
            f"=== Dispatch Report ({mode}) ===",
            f"Started:   {self.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        ]
        if self.completed_at:
            lines.append(
                f"Finished:  {self.completed_at.strftime('%Y-%m-%d %H:%M:%S UTC')}{duration}"
            )
        lines.extend([
            f"Providers: {len(self.submissions)}",
            f"Success:   {self.succeeded}",
            f"Failed:    {self.failed}",
            f"Unsettled: {self.unsettled}",
            "",
        ])

        for i, s in enumerate(self.submissions, 1):
            lines.append(
                f"  [{i}] {s.status.value:10s} | {s.provider_id.value:8s} | "
                f"attempts: {s.attempt_count} | {s.id}"
            )
            if s.error_kind:
                lines.append(f"      Error: {s.error_kind.value}: {s.error_message}")

        lines.append("")
        lines.append("=== End Report ===")
        return "\n".join(lines)


class Dispatcher:
    """
    Orchestrate concurrent prompt delivery to the selected providers.

    Usage:
        with Dispatcher(registry, store, load_provider_configs(), executor) as d:
            submissions = d.submit("Hello")
            settled = d.wait([s.id for s in submissions], timeout=60)
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        store: SubmissionStore,
        configs: Optional[ProviderConfigs],
        executor: ScriptExecutor,
        synthesizer: Optional[ScriptSynthesizer] = None,
        auto_retry: bool = False,
    ) -> None:
        self.registry = registry
        self.store = store
        self.configs = configs
        self.executor = executor
        self.synthesizer = synthesizer or ScriptSynthesizer()
        self.auto_retry = auto_retry
        self._lock = threading.Lock()
        self._jobs: dict[str, _Job] = {}
        self._futures: dict[str, Future] = {}
        self._owns_executor = False
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        settings: DispatchSettings,
        executor: Optional[ScriptExecutor] = None,
        registry: Optional[ProviderRegistry] = None,
        store: Optional[SubmissionStore] = None,
    ) -> Dispatcher:
        """Wire a dispatcher from settings, building the executor if none is given.

        A configured ``executor_endpoint`` selects the RemoteExecutor;
        otherwise scripts go to a DryRunExecutor.
        """
        owns_executor = executor is None
        if executor is None:
            if settings.executor_endpoint:
                executor = RemoteExecutor(
                    settings.executor_endpoint, timeout=settings.executor_timeout
                )
            else:
                executor = DryRunExecutor()

        dispatcher = cls(
            registry=registry or ProviderRegistry(),
            store=store or SubmissionStore(),
            configs=load_provider_configs(settings.providers_config),
            executor=executor,
            synthesizer=ScriptSynthesizer(settle_ms=settings.settle_ms),
            auto_retry=settings.auto_retry,
        )
        dispatcher._owns_executor = owns_executor
        return dispatcher

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.shutdown()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Stop accepting work; optionally wait for in-flight attempts to finish.

        Workers are daemon threads, so a hung attempt never keeps the
        process alive.
        """
        with self._lock:
            self._closed = True
            futures = list(self._futures.values())
        if wait and futures:
            wait_for_futures(futures, timeout=timeout)
        if self._owns_executor:
            self.executor.close()

    # ---- Inbound operations ----

    def submit(self, prompt: str) -> list[Submission]:
        """Fan ``prompt`` out to every selected provider.

        Returns the created submissions as Pending snapshots. A provider
        whose selector configuration is missing gets a Failed submission;
        its siblings are dispatched normally.

        Raises:
            ValidationError: Empty prompt or no provider selected.
            NotFoundError: No selector configuration is loaded at all.
        """
        if prompt is None or not prompt.strip():
            raise ValidationError("Prompt cannot be empty")

        providers = self.registry.selected()
        if not providers:
            raise ValidationError("No providers selected")
        if self.configs is None:
            raise NotFoundError("Provider configuration is not loaded")
        if self._closed:
            raise InternalError("Dispatcher has been shut down")

        submissions: list[Submission] = []
        scheduled: list[str] = []

        for provider in providers:
            submission = self.store.create(provider.id, prompt)
            try:
                config = self.configs.get_config(provider.id)
                script = self.synthesizer.build_for(config, prompt)
            except CommandError as e:
                submissions.append(self._fail_unscheduled(submission.id, e))
                continue

            with self._lock:
                self._jobs[submission.id] = _Job(provider_id=provider.id, script=script)
            submissions.append(submission)
            scheduled.append(submission.id)

        for submission_id in scheduled:
            self._schedule(submission_id)

        log_event(
            logger,
            logging.INFO,
            "prompt_dispatched",
            prompt_length=len(prompt),
            providers=[s.provider_id.value for s in submissions],
            scheduled=len(scheduled),
        )
        return submissions

    def retry(self, submission_id: str) -> Submission:
        """Start another attempt for a Retrying submission.

        The attempt is claimed (Retrying -> InProgress) before its worker
        is spawned, so concurrent calls for one submission start it once.
        Returns the InProgress snapshot.

        Raises:
            NotFoundError: Unknown submission, or no script was recorded for it.
            InternalError: The submission is not Retrying.
        """
        self.store.status(submission_id)
        with self._lock:
            if self._closed:
                raise InternalError("Dispatcher has been shut down")
            if submission_id not in self._jobs:
                raise NotFoundError(f"No script recorded for submission {submission_id}")
        started = self._claim_retry(submission_id)
        self._schedule(submission_id, started)
        return started

    def report_result(self, submission_id: str, result: ExecutionResult) -> Submission:
        """Fold an externally obtained execution result into the store.

        Raises:
            NotFoundError: Unknown submission id.
            InternalError: The submission is not InProgress.
        """
        now = self.store.now()
        return self.store.update(submission_id, lambda s: self._apply(s, result, now=now))

    def sweep_timeouts(self) -> list[Submission]:
        """Fail every InProgress submission that overran its timeout budget.

        One pass only; scheduling repeated sweeps is up to the host.
        """
        swept: list[Submission] = []
        budget = self.store.timeout_seconds
        for submission_id in self.store.check_timeouts():
            try:
                updated = self.store.update(
                    submission_id,
                    lambda s: self._fail_if_in_progress(
                        s,
                        SubmissionErrorKind.TIMEOUT,
                        f"No result within {budget:g}s",
                        self.store.now(),
                    ),
                )
            except CommandError as e:
                log_event(
                    logger,
                    logging.DEBUG,
                    "timeout_sweep_skipped",
                    submission_id=submission_id,
                    reason=str(e),
                )
                continue

            swept.append(updated)
            log_event(
                logger,
                logging.WARNING,
                "submission_timed_out",
                submission_id=submission_id,
                provider_id=updated.provider_id.value,
                attempt_count=updated.attempt_count,
                status=updated.status.value,
            )
            if self.auto_retry and updated.status is SubmissionStatus.RETRYING:
                self._restart(submission_id)
        return swept

    def join(
        self,
        submission_ids: Optional[list[str]] = None,
        timeout: Optional[float] = None,
    ) -> list[Submission]:
        """Block until the tasks for ``submission_ids`` finish, then snapshot them."""
        with self._lock:
            ids = list(self._futures) if submission_ids is None else list(submission_ids)
            futures = [self._futures[i] for i in ids if i in self._futures]
        if futures:
            wait_for_futures(futures, timeout=timeout)
        return [self.store.status(i) for i in ids]

    def wait(
        self,
        submission_ids: list[str],
        timeout: float = 60.0,
        poll_interval: float = 0.25,
    ) -> list[Submission]:
        """Join and sweep until every submission has settled or ``timeout`` passes.

        A submission has settled when it is terminal, or when no task is
        running for it and it is not InProgress (e.g. Retrying with
        auto-retry off).
        """
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            snapshots = self.join(submission_ids, timeout=max(0.0, min(poll_interval, remaining)))
            if all(self._is_settled(s) for s in snapshots) or remaining <= 0:
                return snapshots
            self.sweep_timeouts()

    # ---- Task body ----

    def _schedule(self, submission_id: str, started: Optional[Submission] = None) -> None:
        """Run one attempt on its own daemon thread.

        ``started`` is the InProgress snapshot when the caller already
        claimed the attempt; otherwise the worker starts it.
        """
        future: Future = Future()
        future.set_running_or_notify_cancel()
        worker = threading.Thread(
            target=self._work,
            args=(submission_id, started, future),
            name=f"dispatch-{submission_id[:8]}",
            daemon=True,
        )
        with self._lock:
            if self._closed:
                raise InternalError("Dispatcher has been shut down")
            self._futures[submission_id] = future
        worker.start()

    def _work(self, submission_id: str, started: Optional[Submission], future: Future) -> None:
        try:
            self._run(submission_id, started)
        except Exception as e:
            logger.exception("Dispatch task crashed for submission %s", submission_id)
            future.set_exception(e)
        else:
            future.set_result(None)

    def _claim_retry(self, submission_id: str) -> Submission:
        now = self.store.now()

        def _start(s: Submission) -> None:
            if s.status is not SubmissionStatus.RETRYING:
                raise TransitionError(f"Cannot retry from {s.status.value} state")
            s.start(now)

        return self.store.update(submission_id, _start)

    def _restart(self, submission_id: str) -> None:
        try:
            started = self._claim_retry(submission_id)
        except CommandError as e:
            log_event(
                logger,
                logging.DEBUG,
                "auto_retry_skipped",
                submission_id=submission_id,
                reason=str(e),
            )
            return
        self._schedule(submission_id, started)

    def _run(self, submission_id: str, started: Optional[Submission] = None) -> None:
        with self._lock:
            job = self._jobs[submission_id]

        while True:
            if started is None:
                try:
                    started = self.store.start(submission_id)
                except CommandError as e:
                    log_event(
                        logger,
                        logging.WARNING,
                        "submission_start_rejected",
                        submission_id=submission_id,
                        reason=str(e),
                    )
                    return

            attempt = started.attempt_count
            started = None
            log_event(
                logger,
                logging.INFO,
                "execution_started",
                submission_id=submission_id,
                provider_id=job.provider_id.value,
                attempt_count=attempt,
                script_length=len(job.script),
            )

            result = self._execute(job)
            try:
                resolved = self.store.update(
                    submission_id,
                    lambda s: self._apply(
                        s, result, expected_attempt=attempt, now=self.store.now()
                    ),
                )
            except CommandError as e:
                log_event(
                    logger,
                    logging.WARNING,
                    "stale_result_discarded",
                    submission_id=submission_id,
                    provider_id=job.provider_id.value,
                    attempt_count=attempt,
                    reason=str(e),
                )
                return

            log_event(
                logger,
                logging.INFO if resolved.status is SubmissionStatus.SUCCESS else logging.WARNING,
                "execution_finished",
                submission_id=submission_id,
                provider_id=job.provider_id.value,
                attempt_count=resolved.attempt_count,
                status=resolved.status.value,
                error_kind=resolved.error_kind.value if resolved.error_kind else None,
            )

            if not (self.auto_retry and resolved.status is SubmissionStatus.RETRYING):
                return

    def _execute(self, job: _Job) -> ExecutionResult:
        try:
            return self.executor.execute(job.provider_id, job.script)
        except ExecutionFault as fault:
            return fault
        except Exception as e:
            logger.exception("Executor raised unexpectedly for %s", job.provider_id.value)
            return ExecutionFault(
                f"Executor error: {e}",
                kind=SubmissionErrorKind.INJECTION_FAILED,
            )

    @staticmethod
    def _apply(
        submission: Submission,
        result: ExecutionResult,
        expected_attempt: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> None:
        if expected_attempt is not None and submission.attempt_count != expected_attempt:
            raise TransitionError(
                f"result for attempt {expected_attempt} arrived during attempt "
                f"{submission.attempt_count}"
            )
        if submission.status is not SubmissionStatus.IN_PROGRESS:
            raise TransitionError(
                f"Cannot record a result from {submission.status.value} state"
            )

        if isinstance(result, ExecutionFault):
            submission.fail(result.kind, result.message, now)
        elif result.success:
            submission.succeed(now)
        elif not result.element_found:
            submission.fail(
                SubmissionErrorKind.ELEMENT_NOT_FOUND,
                result.error_message or "Input element not found",
                now,
            )
        else:
            submission.fail(
                SubmissionErrorKind.INJECTION_FAILED,
                result.error_message or "Submit was not triggered",
                now,
            )

    @staticmethod
    def _fail_if_in_progress(
        submission: Submission,
        kind: SubmissionErrorKind,
        message: str,
        now: Optional[datetime] = None,
    ) -> None:
        if submission.status is not SubmissionStatus.IN_PROGRESS:
            raise TransitionError(f"already {submission.status.value}")
        submission.fail(kind, message, now)

    def _fail_unscheduled(self, submission_id: str, error: CommandError) -> Submission:
        log_event(
            logger,
            logging.ERROR,
            "provider_dispatch_failed",
            submission_id=submission_id,
            code=error.code,
            error=error.message,
        )

        now = self.store.now()

        def _fail(s: Submission) -> None:
            s.start(now)
            s.fail(SubmissionErrorKind.INJECTION_FAILED, error.message, now)

        return self.store.update(submission_id, _fail)

    def _is_settled(self, submission: Submission) -> bool:
        if submission.status.is_terminal:
            return True
        with self._lock:
            future = self._futures.get(submission.id)
        running = future is not None and not future.done()
        return not running and submission.status is not SubmissionStatus.IN_PROGRESS
