# tests/test_capture_source.py
"""CaptureEventSource over an in-process pipe, and the bpftool blocker."""
from __future__ import annotations

import os
import struct
import subprocess
import threading

import pytest

from tripwire_kernel.errors import Cancelled, SourceClosedError, SourceError
from tripwire_kernel.source import EventSource
from tripwire_kernel.sources import capture
from tripwire_kernel.sources.capture import (
    RECORD_SIZE,
    BpftoolBlocker,
    CaptureEventSource,
    bpftool_update_argv,
    decode_record,
    encode_record,
)
from tripwire_kernel.sources.replay import make_event


@pytest.fixture
def pipe_source():
    r, w = os.pipe()
    blocked = []
    source = CaptureEventSource(os.fdopen(r, "rb", buffering=0), blocked.append, poll_interval=0.01)
    writer = os.fdopen(w, "wb", buffering=0)
    yield source, writer, blocked
    if not writer.closed:
        writer.close()
    source.close()


def raw_record(pid, uid, comm: bytes, filename: bytes, flags=0) -> bytes:
    return struct.pack("<II16s256si", pid, uid, comm, filename, flags)


def test_record_size_matches_capture_struct():
    assert RECORD_SIZE == 4 + 4 + 16 + 256 + 4


def test_decode_record_trims_nul_padding():
    event = decode_record(raw_record(1234, 1000, b"cat", b"/etc/passwd", flags=0o100))

    assert event.actor_id == 1234
    assert event.owner_id == 1000
    assert event.actor_name == "cat"
    assert event.resource_path == "/etc/passwd"
    assert event.flags == 0o100


def test_decode_record_stops_at_first_nul():
    event = decode_record(raw_record(1, 0, b"ab\x00cd", b"/tmp/a\x00stale-bytes"))

    assert event.actor_name == "ab"
    assert event.resource_path == "/tmp/a"


def test_decode_record_full_width_fields():
    event = decode_record(raw_record(1, 0, b"x" * 16, b"/" + b"y" * 255, flags=-1))

    assert event.actor_name == "x" * 16
    assert len(event.resource_path) == 256
    assert event.flags == -1


def test_decode_record_rejects_short_input():
    with pytest.raises(SourceError, match="expected 284 bytes"):
        decode_record(b"\x00" * 10)


def test_encode_decode_inverse():
    event = make_event(42, 7, "bash", "/etc/shadow", flags=2)
    assert decode_record(encode_record(event)) == event


def test_satisfies_event_source_protocol(pipe_source):
    source, _, _ = pipe_source
    assert isinstance(source, EventSource)


def test_reads_records_from_stream(pipe_source):
    source, writer, _ = pipe_source
    writer.write(encode_record(make_event(1, 0, "a", "/etc/a")))
    writer.write(encode_record(make_event(2, 0, "b", "/etc/b")))

    cancel = threading.Event()
    assert source.next_event(cancel).actor_id == 1
    assert source.next_event(cancel).actor_id == 2


def test_reassembles_split_records(pipe_source):
    source, writer, _ = pipe_source
    raw = encode_record(make_event(9, 0, "split", "/etc/split"))
    cancel = threading.Event()
    result = []

    worker = threading.Thread(target=lambda: result.append(source.next_event(cancel)))
    worker.start()
    writer.write(raw[:100])
    writer.write(raw[100:])
    worker.join(5)

    assert result and result[0].resource_path == "/etc/split"


def test_idle_stream_honours_cancel(pipe_source):
    source, _, _ = pipe_source
    cancel = threading.Event()
    timer = threading.Timer(0.05, cancel.set)
    timer.start()

    with pytest.raises(Cancelled):
        source.next_event(cancel)


def test_eof_waits_for_cancel(pipe_source):
    source, writer, _ = pipe_source
    writer.close()
    cancel = threading.Event()
    threading.Timer(0.05, cancel.set).start()

    with pytest.raises(Cancelled):
        source.next_event(cancel)


def test_block_delegates_to_blocker(pipe_source):
    source, _, blocked = pipe_source
    source.block(4242)
    assert blocked == [4242]


def test_operations_after_close_fail(pipe_source):
    source, _, _ = pipe_source
    source.close()
    source.close()

    with pytest.raises(SourceClosedError):
        source.next_event(threading.Event())
    with pytest.raises(SourceClosedError):
        source.block(1)


def test_open_missing_path_raises_source_error(tmp_path):
    with pytest.raises(SourceError):
        CaptureEventSource.open(str(tmp_path / "missing"), "/sys/fs/bpf/none")


def test_open_fifo_without_writer(tmp_path):
    fifo = tmp_path / "events"
    os.mkfifo(fifo)
    source = CaptureEventSource.open(str(fifo), "/sys/fs/bpf/none", poll_interval=0.01)
    cancel = threading.Event()
    threading.Timer(0.05, cancel.set).start()
    try:
        with pytest.raises(Cancelled):
            source.next_event(cancel)
    finally:
        source.close()


def test_bpftool_argv_uses_little_endian_key():
    argv = bpftool_update_argv("bpftool", "/sys/fs/bpf/tripwire/blocked_pids", 0x01020304)

    assert argv == [
        "bpftool", "map", "update", "pinned", "/sys/fs/bpf/tripwire/blocked_pids",
        "key", "hex", "04", "03", "02", "01",
        "value", "hex", "01", "any",
    ]


def test_bpftool_blocker_success(monkeypatch):
    calls = []

    def fake_run(argv, **kwargs):
        calls.append(argv)
        return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

    monkeypatch.setattr(capture.subprocess, "run", fake_run)
    BpftoolBlocker("/maps/blocked", bpftool="/usr/sbin/bpftool")(1234)

    assert calls[0][0] == "/usr/sbin/bpftool"
    assert calls[0][4] == "/maps/blocked"


def test_bpftool_blocker_nonzero_exit(monkeypatch):
    def fake_run(argv, **kwargs):
        return subprocess.CompletedProcess(argv, 255, stdout="", stderr="Error: bpf obj get: No such file")

    monkeypatch.setattr(capture.subprocess, "run", fake_run)

    with pytest.raises(SourceError, match="No such file"):
        BpftoolBlocker("/maps/blocked")(1)


def test_bpftool_blocker_missing_binary():
    with pytest.raises(SourceError, match="bpftool not found"):
        BpftoolBlocker("/maps/blocked", bpftool="/nonexistent/bpftool")(1)


def test_bpftool_blocker_timeout(monkeypatch):
    def fake_run(argv, **kwargs):
        raise subprocess.TimeoutExpired(argv, kwargs.get("timeout"))

    monkeypatch.setattr(capture.subprocess, "run", fake_run)

    with pytest.raises(SourceError, match="timed out"):
        BpftoolBlocker("/maps/blocked", timeout_seconds=1)(1)
