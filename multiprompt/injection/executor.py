"""
Script execution boundary.

The core never runs scripts itself. A ScriptExecutor takes a provider id
and a synthesized script, runs it against that provider's live page, and
returns an InjectionOutcome, or raises ExecutionFault when the target
could not be reached at all.

Two executors ship with the package:

- DryRunExecutor reports success without touching anything.
- RemoteExecutor hands the script to an HTTP browser-automation endpoint.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from multiprompt.logging_utils import log_event
from multiprompt.providers.registry import ProviderId
from multiprompt.tracker.submission import SubmissionErrorKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InjectionOutcome:
    """Result reported by an injection script."""

    success: bool
    element_found: bool
    submit_triggered: bool
    error_message: Optional[str] = None

    @classmethod
    def succeeded(cls) -> InjectionOutcome:
        return cls(success=True, element_found=True, submit_triggered=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InjectionOutcome:
        """Parse the object returned by the script.

        Raises:
            ValueError: If a required flag is missing or not a boolean.
        """
        flags = {}
        for name in ("success", "element_found", "submit_triggered"):
            value = data.get(name)
            if not isinstance(value, bool):
                raise ValueError(f"Injection outcome field {name!r} must be a boolean, got {value!r}")
            flags[name] = value
        message = data.get("error_message")
        return cls(error_message=str(message) if message is not None else None, **flags)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "element_found": self.element_found,
            "submit_triggered": self.submit_triggered,
            "error_message": self.error_message,
        }


class ExecutionFault(Exception):
    """A hard failure to run the script (target unreachable, timed out, ...)."""

    def __init__(
        self,
        message: str,
        kind: SubmissionErrorKind = SubmissionErrorKind.NETWORK_ERROR,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind


class ScriptExecutor(ABC):
    """
    Abstract runner for injection scripts.

    Implementations are called from worker threads, one call per attempt,
    possibly concurrently for different providers.
    """

    @abstractmethod
    def execute(self, provider_id: ProviderId, script: str) -> InjectionOutcome:
        """Run ``script`` in the provider's page and return its outcome.

        Raises:
            ExecutionFault: If the script could not be run at all.
        """
        ...

    def close(self) -> None:
        """Release any resources held by the executor."""


class DryRunExecutor(ScriptExecutor):
    """Accept every script and report success, recording what was sent."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.executed: list[tuple[ProviderId, str]] = []

    def execute(self, provider_id: ProviderId, script: str) -> InjectionOutcome:
        with self._lock:
            self.executed.append((provider_id, script))
        log_event(
            logger,
            logging.INFO,
            "dry_run_execution",
            provider_id=provider_id.value,
            script_length=len(script),
        )
        return InjectionOutcome.succeeded()


class RemoteExecutor(ScriptExecutor):
    """
    Execute scripts through an HTTP browser-automation endpoint.

    The endpoint receives ``POST {base_url}/execute`` with a JSON body
    ``{"provider_id", "target_url", "script"}`` and answers with the
    outcome object the script resolved to.

    Usage:
        with RemoteExecutor("http://127.0.0.1:9222") as executor:
            outcome = executor.execute(ProviderId.CLAUDE, script)
    """

    STATUS_KINDS = {
        401: SubmissionErrorKind.AUTHENTICATION_ERROR,
        403: SubmissionErrorKind.AUTHENTICATION_ERROR,
        429: SubmissionErrorKind.RATE_LIMIT_ERROR,
    }

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def execute(self, provider_id: ProviderId, script: str) -> InjectionOutcome:
        payload = {
            "provider_id": provider_id.value,
            "target_url": provider_id.url,
            "script": script,
        }

        try:
            resp = self._client.post("/execute", json=payload)
        except httpx.TimeoutException as e:
            raise ExecutionFault(
                f"Execution timed out for {provider_id.value}: {e}",
                kind=SubmissionErrorKind.TIMEOUT,
            )
        except httpx.HTTPError as e:
            raise ExecutionFault(f"Executor unreachable for {provider_id.value}: {e}")

        if resp.status_code >= 400:
            kind = self.STATUS_KINDS.get(resp.status_code, SubmissionErrorKind.NETWORK_ERROR)
            log_event(
                logger,
                logging.WARNING,
                "remote_execution_rejected",
                provider_id=provider_id.value,
                status_code=resp.status_code,
                error_kind=kind.value,
            )
            raise ExecutionFault(
                f"Executor returned HTTP {resp.status_code} for {provider_id.value}",
                kind=kind,
            )

        try:
            data = resp.json()
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return InjectionOutcome.from_dict(data)
        except ValueError as e:
            raise ExecutionFault(
                f"Failed to parse injection result for {provider_id.value}: {e}",
                kind=SubmissionErrorKind.INJECTION_FAILED,
            )

    def check_health(self) -> bool:
        """Return True if the automation endpoint answers its health check."""
        try:
            resp = self._client.get("/health")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False
