# tripwire_kernel/sources/capture.py
"""
Production adapter over the external capture/enforcement subsystem.

- Events arrive as fixed-size little-endian records on a byte stream
  (normally a FIFO fed from the kernel ring buffer):
      u32 pid | u32 uid | char comm[16] | char filename[256] | i32 flags
- Blocking writes the PID into the pinned `blocked_pids` BPF map that the
  LSM hook consults, via bpftool.
"""
from __future__ import annotations

import logging
import os
import select
import struct
import subprocess
import threading
from typing import BinaryIO, Callable, List, Optional

from ..errors import Cancelled, SourceClosedError, SourceError
from ..types import MAX_COMM_BYTES, MAX_PATH_BYTES, Event, trim_cstr

logger = logging.getLogger(__name__)

RECORD = struct.Struct("<II16s256si")
RECORD_SIZE = RECORD.size  # 284


def decode_record(raw: bytes) -> Event:
    if len(raw) != RECORD_SIZE:
        raise SourceError(f"parsing event: expected {RECORD_SIZE} bytes, got {len(raw)}")
    pid, uid, comm, filename, flags = RECORD.unpack(raw)
    return Event(
        actor_id=pid,
        owner_id=uid,
        actor_name=trim_cstr(comm, MAX_COMM_BYTES),
        resource_path=trim_cstr(filename, MAX_PATH_BYTES),
        flags=flags,
    )


def encode_record(event: Event) -> bytes:
    """Inverse of decode_record; used to feed FIFOs in tests and tooling."""
    return RECORD.pack(
        event.actor_id,
        event.owner_id,
        event.actor_name.encode("utf-8")[:MAX_COMM_BYTES],
        event.resource_path.encode("utf-8")[:MAX_PATH_BYTES],
        event.flags,
    )


def bpftool_update_argv(bpftool: str, map_path: str, pid: int) -> List[str]:
    key = [f"{b:02x}" for b in struct.pack("<I", pid)]
    return [bpftool, "map", "update", "pinned", map_path, "key", "hex", *key, "value", "hex", "01", "any"]


class BpftoolBlocker:
    """Mark a PID as blocked in a pinned BPF hash map."""

    def __init__(self, map_path: str, bpftool: str = "bpftool", timeout_seconds: int = 5):
        self.map_path = map_path
        self.bpftool = bpftool
        self.timeout_seconds = timeout_seconds

    def __call__(self, pid: int) -> None:
        argv = bpftool_update_argv(self.bpftool, self.map_path, pid)
        try:
            p = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as e:
            raise SourceError(f"bpftool not found: {self.bpftool}") from e
        except subprocess.TimeoutExpired as e:
            raise SourceError(f"bpftool timed out after {self.timeout_seconds}s") from e

        if p.returncode != 0:
            raise SourceError(
                f"failed to update blocked_pids map: {p.stderr.strip() or f'exit {p.returncode}'}"
            )


class CaptureEventSource:
    def __init__(
        self,
        stream: BinaryIO,
        blocker: Callable[[int], None],
        poll_interval: float = 0.2,
    ):
        self._stream = stream
        self._blocker = blocker
        self._poll_interval = poll_interval
        self._lock = threading.Lock()
        self._closed = False
        self._buf = b""

    @classmethod
    def open(
        cls,
        events_path: str,
        block_map: str,
        bpftool: str = "bpftool",
        poll_interval: float = 0.2,
    ) -> "CaptureEventSource":
        # O_NONBLOCK so opening a FIFO does not wait for a writer.
        try:
            fd = os.open(events_path, os.O_RDONLY | os.O_NONBLOCK)
        except OSError as e:
            raise SourceError(f"open event stream {events_path}: {e}") from e
        stream = os.fdopen(fd, "rb", buffering=0)
        return cls(stream, BpftoolBlocker(block_map, bpftool=bpftool), poll_interval=poll_interval)

    def _check_open(self) -> None:
        with self._lock:
            if self._closed:
                raise SourceClosedError()

    def next_event(self, cancel: threading.Event) -> Event:
        while True:
            self._check_open()
            if cancel.is_set():
                raise Cancelled()

            try:
                fd = self._stream.fileno()
                ready, _, _ = select.select([fd], [], [], self._poll_interval)
                if not ready:
                    continue
                chunk = os.read(fd, RECORD_SIZE - len(self._buf))
            except BlockingIOError:
                continue
            except (OSError, ValueError) as e:
                self._check_open()
                raise SourceError(f"reading from event stream: {e}") from e

            if not chunk:
                # Writer went away. Wait for it to come back or for cancellation.
                logger.debug("event stream at EOF, waiting for writer")
                if cancel.wait(self._poll_interval):
                    raise Cancelled()
                continue

            self._buf += chunk
            if len(self._buf) < RECORD_SIZE:
                continue
            raw, self._buf = self._buf, b""
            return decode_record(raw)

    def block(self, actor_id: int) -> None:
        self._check_open()
        self._blocker(actor_id)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._stream.close()
        except OSError as e:
            raise SourceError(f"close event stream: {e}") from e
