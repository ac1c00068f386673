"""
Pitch detector protocol for the evaluation harness.

Defines the contract that all frame-wise pitch detectors must satisfy.
Any class that implements ``initialize``, ``detect``, ``dispose``,
``describe`` and ``is_ready`` can be registered with the EvaluationRunner —
no inheritance required. A streaming ML detector lives outside this package
and plugs in the same way.

Also provides two small building blocks for implementations:

    Readiness   one-shot completion signal (success or typed error)
                replacing "poll until the model is loaded" loops.
    TraceHook   opt-in per-instance callback for per-frame decisions,
                replacing a global debug flag.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Protocol, runtime_checkable

import numpy as np

from pitch_engine.errors import DetectorInitError
from pitch_engine.types import Detection

logger = logging.getLogger(__name__)

TraceHook = Callable[[str, dict[str, Any]], None]
"""Called as ``hook(event_name, payload)`` from inside ``detect()``."""


@runtime_checkable
class PitchDetector(Protocol):
    """
    Protocol for frame-wise pitch detectors.

    Lifecycle: ``initialize()`` → any number of ``detect(frame)`` calls from
    a single caller → ``dispose()``.
    """

    @property
    def is_ready(self) -> bool:
        """True once ``initialize()`` succeeded and until ``dispose()``."""
        ...

    def initialize(self) -> bool:
        """Prepare estimator resources. Returns True on success."""
        ...

    def detect(self, frame: np.ndarray) -> Detection:
        """
        Estimate the pitch of one fixed-size frame.

        Args:
            frame: 1-D float samples, length equal to the configured buffer size.

        Returns:
            Detection with ``frequency=None`` for unvoiced frames.

        Raises:
            DetectorNotReadyError: If called before ``initialize()``.
        """
        ...

    def dispose(self) -> None:
        """Release estimator resources. Idempotent."""
        ...

    def describe(self) -> dict[str, Any]:
        """Diagnostic snapshot: name, sample_rate, frequency range, is_ready, ..."""
        ...


class Readiness:
    """One-shot readiness signal backed by ``concurrent.futures.Future``.

    The first ``resolve()`` or ``fail()`` wins; later calls are ignored so a
    late failure cannot flip a detector that already reported ready.

    Example:
        >>> ready = Readiness("crepe")
        >>> loader_thread_done_callback = ready.resolve
        >>> ready.wait(timeout=5.0)   # blocks, True or DetectorInitError
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._future: Future[bool] = Future()

    @property
    def is_resolved(self) -> bool:
        """True if the signal completed successfully."""
        return self._future.done() and self._future.exception() is None

    def resolve(self) -> None:
        if self._future.done():
            return
        self._future.set_result(True)
        logger.debug("Detector %s ready", self._name)

    def fail(self, exc: BaseException) -> None:
        if self._future.done():
            return
        self._future.set_exception(exc)
        logger.warning("Detector %s failed to initialize: %s", self._name, exc)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until resolved.

        Raises:
            DetectorInitError: On timeout or if the signal carries a failure.
        """
        try:
            return self._future.result(timeout=timeout)
        except FutureTimeoutError as exc:
            raise DetectorInitError(
                f"Detector '{self._name}' not ready after {timeout}s"
            ) from exc
        except Exception as exc:
            raise DetectorInitError(f"Detector '{self._name}' failed to initialize") from exc

    def reset(self) -> None:
        """Start a fresh signal (used after dispose)."""
        self._future = Future()
