# tripwire_kernel/sources/__init__.py
from .replay import ReplayEventSource, make_event, load_events_jsonl
from .capture import CaptureEventSource, BpftoolBlocker, decode_record, encode_record

__all__ = [
    "ReplayEventSource",
    "make_event",
    "load_events_jsonl",
    "CaptureEventSource",
    "BpftoolBlocker",
    "decode_record",
    "encode_record",
]
