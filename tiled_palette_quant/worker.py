from __future__ import annotations

"""
Isolated engine runs in a separate process.

The child runs engine.run() and reports over a multiprocessing.Queue with one
tagged message type:

  EngineMessage("progress",  token, percent)
  EngineMessage("partial",   token, blocks)      palette blocks, before indexing
  EngineMessage("completed", token, result, log)
  EngineMessage("failed",    token, reason, log)

A QuantSession hands out an increasing token per run. Starting a run
terminates whatever was in flight; messages carrying any other token are
dropped. The child's stdout is captured and returned in `log` so that only
the parent prints.
"""

import io
import multiprocessing
import queue as queue_mod
import time
from contextlib import redirect_stdout
from dataclasses import dataclass
from typing import Any, List, Optional

from .constants import WORKER_POLL_SECONDS
from .core_types import QuantizationSettings, QuantizedResult, SourceImage
from .engine import run
from .errors import EngineCrash, EngineTimeout
from .settings import validate_image, validate_settings
from .utils import ProgressCallback

MESSAGE_KINDS = ("progress", "partial", "completed", "failed")


@dataclass(frozen=True)
class EngineMessage:
    kind: str
    token: int
    payload: Any = None
    log: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.kind in ("completed", "failed")


def _child_main(
    token: int,
    settings: QuantizationSettings,
    image: SourceImage,
    debug: bool,
    out: Any,
) -> None:
    buf = io.StringIO()
    try:
        with redirect_stdout(buf):
            result = run(
                settings,
                image,
                progress=lambda pct: out.put(EngineMessage("progress", token, pct)),
                debug=debug,
                on_blocks=lambda blocks: out.put(
                    EngineMessage("partial", token, blocks)
                ),
            )
    except Exception as exc:  # reported to the parent, which raises EngineCrash
        out.put(
            EngineMessage(
                "failed", token, f"{type(exc).__name__}: {exc}", buf.getvalue()
            )
        )
        return
    out.put(EngineMessage("completed", token, result, buf.getvalue()))


def _freeze(result: QuantizedResult) -> QuantizedResult:
    """Arrays lose their read-only flag when pickled across processes."""
    result.indices.setflags(write=False)
    result.transparent.setflags(write=False)
    result.tile_assignment.blocks.setflags(write=False)
    return result


class QuantSession:
    """
    At most one authoritative run at a time.

    Usage:
      with QuantSession(timeout=30) as session:
          session.start(settings, image)
          result = session.wait(progress=print)
    """

    def __init__(self, *, timeout: Optional[float] = None, debug: bool = False):
        self.timeout = timeout
        self.debug = debug
        self._ctx = multiprocessing.get_context("spawn")
        self._token = 0
        self._proc: Optional[Any] = None
        self._queue: Optional[Any] = None
        self._started_at = 0.0
        self.progress = 0
        self.blocks: Optional[tuple] = None
        self.result: Optional[QuantizedResult] = None
        self.reason: Optional[str] = None
        self.log = ""

    @property
    def token(self) -> int:
        return self._token

    @property
    def running(self) -> bool:
        return self._proc is not None

    def start(self, settings: QuantizationSettings, image: SourceImage) -> int:
        """Validate, supersede any in-flight run, spawn a new one. Returns its token."""
        settings = validate_settings(settings)
        image = validate_image(image)
        self.cancel()
        self._token += 1
        self.progress = 0
        self.blocks = None
        self.result = None
        self.reason = None
        self.log = ""

        self._queue = self._ctx.Queue()
        self._proc = self._ctx.Process(
            target=_child_main,
            args=(self._token, settings, image, self.debug, self._queue),
            daemon=True,
        )
        self._started_at = time.monotonic()
        self._proc.start()
        return self._token

    def cancel(self) -> None:
        """Terminate the in-flight run, if any, and release its queue."""
        proc, q = self._proc, self._queue
        self._proc = None
        self._queue = None
        if proc is not None:
            if proc.is_alive():
                proc.terminate()
            proc.join()
            proc.close()
        if q is not None:
            q.close()
            q.cancel_join_thread()

    def _accept(self, msg: EngineMessage) -> bool:
        if msg.token != self._token or msg.kind not in MESSAGE_KINDS:
            return False
        if msg.kind == "progress":
            self.progress = max(self.progress, int(msg.payload))
        elif msg.kind == "partial":
            self.blocks = msg.payload
        elif msg.kind == "completed":
            self.result = _freeze(msg.payload)
            self.progress = 100
            self.log = msg.log
        else:
            self.reason = str(msg.payload)
            self.log = msg.log
        return True

    def _drain(self, block_for: float = 0.0) -> List[EngineMessage]:
        out: List[EngineMessage] = []
        q = self._queue
        if q is None:
            return out
        while True:
            try:
                msg = q.get(timeout=block_for) if block_for > 0 else q.get_nowait()
            except queue_mod.Empty:
                return out
            if self._accept(msg):
                out.append(msg)
                if msg.is_terminal:
                    return out

    def poll(self) -> List[EngineMessage]:
        """
        Collect current-token messages without blocking.

        A child that exited without a terminal message yields a synthetic
        "failed" message; a run past its timeout is terminated and raises.
        """
        if self._proc is None:
            return []
        msgs = self._drain()
        if msgs and msgs[-1].is_terminal:
            self.cancel()
            return msgs

        if not self._proc.is_alive():
            # Flush anything the feeder thread wrote before exit.
            msgs.extend(self._drain(block_for=WORKER_POLL_SECONDS))
            if not (msgs and msgs[-1].is_terminal):
                code = self._proc.exitcode
                crash = EngineMessage(
                    "failed", self._token, f"worker exited with code {code}"
                )
                self._accept(crash)
                msgs.append(crash)
            self.cancel()
            return msgs

        if self.timeout is not None:
            elapsed = time.monotonic() - self._started_at
            if elapsed > self.timeout:
                self.cancel()
                raise EngineTimeout(
                    f"run {self._token} exceeded {self.timeout:g}s and was terminated"
                )
        return msgs

    def wait(self, progress: Optional[ProgressCallback] = None) -> QuantizedResult:
        """Block until the current run finishes; raise EngineCrash on failure."""
        if self._proc is None and self.result is None and self.reason is None:
            raise EngineCrash("no run in progress")
        last = -1
        while True:
            for msg in self.poll():
                if msg.kind != "progress" or progress is None:
                    continue
                if int(msg.payload) > last:
                    last = int(msg.payload)
                    progress(last)
            if self.result is not None:
                if progress is not None and last < 100:
                    progress(100)
                return self.result
            if self.reason is not None:
                raise EngineCrash(self.reason)
            if self._proc is None:
                raise EngineCrash(f"run {self._token} was cancelled")
            time.sleep(WORKER_POLL_SECONDS)

    def __enter__(self) -> "QuantSession":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.cancel()


def run_isolated(
    settings: QuantizationSettings,
    image: SourceImage,
    progress: Optional[ProgressCallback] = None,
    *,
    timeout: Optional[float] = None,
    debug: bool = False,
) -> QuantizedResult:
    """Run the engine in a fresh child process and wait for the result."""
    with QuantSession(timeout=timeout, debug=debug) as session:
        session.start(settings, image)
        return session.wait(progress)


__all__ = [
    "MESSAGE_KINDS",
    "EngineMessage",
    "QuantSession",
    "run_isolated",
]
