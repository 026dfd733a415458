"""
Background evaluation for interactive use.

An editor calls `Session.submit` on every change. Evaluations run one at a
time on a single worker thread; a submission that's still waiting when a
newer one arrives is dropped, so the newest text always wins.
"""
from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Callable

from . import EvaluationError
from .main import evaluate
from .scene import SceneGraph

logger = logging.getLogger(__name__)

__all__ = ["Session", "Superseded"]


class Superseded(RuntimeError):
    "A newer request replaced this one before it was evaluated"


class _Job:
    def __init__(self, gen: int, text: str, kw: dict):
        self.gen = gen
        self.text = text
        self.kw = kw
        self.future: Future = Future()


class Session:
    """
    Serializes evaluations through one worker thread.

    ``scene`` is the result of the newest evaluation that succeeded; it is
    only ever replaced as a whole. ``error`` is set instead if the newest
    evaluation failed with an `EvaluationError`.

    ``on_result`` is called from the worker thread with each new scene, or
    with the error.
    """

    def __init__(self, on_result: Callable[[SceneGraph | EvaluationError], None] | None = None, **kw):
        self.on_result = on_result
        self.kw = kw
        self.scene: SceneGraph | None = None
        self.error: EvaluationError | None = None

        self._lock = threading.Lock()
        self._gen = 0
        self._pending: _Job | None = None
        self._latest: _Job | None = None
        self._queue: queue.Queue[_Job | None] = queue.Queue()
        self._thread = threading.Thread(target=self._run, name="scadmesh", daemon=True)
        self._thread.start()

    def __enter__(self):
        return self

    def __exit__(self, *tb):
        self.close()

    def submit(self, text: str) -> Future:
        """Queue ``text`` for evaluation, superseding anything not yet started.

        The returned future resolves to the `SceneGraph`, or raises the
        `EvaluationError`, or `Superseded` if a newer text came in first.
        """
        with self._lock:
            if self._thread is None:
                raise RuntimeError("Session is closed")
            self._gen += 1
            job = _Job(self._gen, text, self.kw)
            old, self._pending = self._pending, job
            self._latest = job
        if old is not None and old.future.set_running_or_notify_cancel():
            old.future.set_exception(Superseded(old.gen))
        self._queue.put(job)
        return job.future

    def wait(self, timeout: float | None = None) -> SceneGraph | None:
        """Wait for the newest submission to be processed, return ``scene``."""
        with self._lock:
            job = self._latest
        if job is not None:
            try:
                job.future.result(timeout)
            except (EvaluationError, Superseded):
                pass
        return self.scene

    def close(self):
        """Stop the worker thread after the current evaluation."""
        with self._lock:
            thread, self._thread = self._thread, None
        if thread is None:
            return
        self._queue.put(None)
        thread.join()

    def _run(self):
        while True:
            job = self._queue.get()
            if job is None:
                return
            with self._lock:
                if self._pending is not job:
                    # superseded; its future has already been resolved
                    continue
                self._pending = None
            if not job.future.set_running_or_notify_cancel():
                continue
            self._process(job)

    def _process(self, job: _Job):
        try:
            result = evaluate(job.text, **job.kw)
        except EvaluationError as exc:
            logger.info("Evaluation %d failed: %s", job.gen, exc)
            result = exc
        except Exception as exc:
            logger.exception("Evaluation %d crashed", job.gen)
            job.future.set_exception(exc)
            return

        with self._lock:
            # a newer text may be waiting: don't show stale results
            current = job.gen == self._gen
            if current:
                if isinstance(result, SceneGraph):
                    self.scene, self.error = result, None
                else:
                    self.error = result

        if isinstance(result, SceneGraph):
            job.future.set_result(result)
        else:
            job.future.set_exception(result)
        if current and self.on_result is not None:
            self.on_result(result)
