# tripwire_cli.py
from __future__ import annotations

import argparse
import dataclasses
import signal
import sys
import threading
from typing import Any, Dict, Optional

from tripwire_kernel.config import TripwireConfig, parse_patterns
from tripwire_kernel.engine import DecisionEngine
from tripwire_kernel.errors import ConfigError, SourceError
from tripwire_kernel.logging import configure_logging
from tripwire_kernel.loop import ControlLoop
from tripwire_kernel.sources.capture import CaptureEventSource
from tripwire_kernel.sources.replay import ReplayEventSource, load_events_jsonl
from tripwire_kernel.types import Notification, NotificationKind, canonical_json


def print_notification(note: Notification) -> None:
    if note.kind is NotificationKind.VIOLATION:
        print(
            f"[VIOLATION {note.count}/{note.threshold}] PID {note.actor_id} ({note.actor_name}) "
            f"opened disallowed file: {note.resource_path}",
            flush=True,
        )
    elif note.kind is NotificationKind.BLOCKED:
        print(f"\n*** PID {note.actor_id} is now BLOCKED from opening any further files! ***\n", flush=True)


def print_banner(config: TripwireConfig) -> None:
    print(f"Disallowed files: {list(config.disallowed)}")
    print(f"Threshold: {config.threshold} file(s)")
    if config.target_pid != 0:
        print(f"Target PID: {config.target_pid}")
    print("Press Ctrl+C to stop")
    print()


def config_from_args(args: argparse.Namespace) -> TripwireConfig:
    """Environment first, then any flag that was actually given."""
    config = TripwireConfig.from_env()
    overrides: Dict[str, Any] = {}
    if args.disallowed is not None:
        overrides["disallowed"] = parse_patterns(args.disallowed)
    if args.threshold is not None:
        overrides["threshold"] = args.threshold
    if args.pid is not None:
        overrides["target_pid"] = args.pid
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    for name in ("events_path", "block_map", "bpftool", "status_port"):
        value = getattr(args, name, None)
        if value is not None:
            overrides[name] = value
    return dataclasses.replace(config, **overrides)


def _load_config(args: argparse.Namespace) -> Optional[TripwireConfig]:
    """Build and validate the config, printing CONFIG_ERROR lines on failure."""
    try:
        config = config_from_args(args)
    except ConfigError as e:
        errors = e.errors
    else:
        errors = config.validate()
    for msg in errors:
        print("CONFIG_ERROR:", msg, file=sys.stderr)
    return None if errors else config


def install_signal_handlers(cancel: threading.Event) -> None:
    def _handler(signum, frame):
        cancel.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def cmd_run(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if config is None:
        return 2
    configure_logging(config.log_level, structured=config.structured_logs)

    try:
        source = CaptureEventSource.open(
            config.events_path,
            config.block_map,
            bpftool=config.bpftool,
            poll_interval=config.poll_interval,
        )
    except SourceError as e:
        print("SOURCE_ERROR:", e, file=sys.stderr)
        return 1

    engine = DecisionEngine(source, config.policy(), listeners=[print_notification])
    loop = ControlLoop(engine)

    server = None
    if config.has_status_api():
        from tripwire_ui import NotificationHub, create_app, serve_in_background

        hub = NotificationHub()
        engine.subscribe(hub.publish)
        server, _ = serve_in_background(create_app(engine, hub), config.status_host, config.status_port)

    cancel = threading.Event()
    install_signal_handlers(cancel)

    print_banner(config)
    loop.announce()
    try:
        loop.run(cancel)
    finally:
        if server is not None:
            server.should_exit = True
        source.close()

    print("\nExiting...")
    return 0


def replay_events(
    config: TripwireConfig,
    events_file: str,
    quiet: bool = False,
) -> Dict[str, Any]:
    """Feed a recorded event file through a fresh engine and summarise the result."""
    source = ReplayEventSource(load_events_jsonl(events_file))
    listeners = [] if quiet else [print_notification]
    engine = DecisionEngine(source, config.policy(), listeners=listeners)
    loop = ControlLoop(engine)

    cancel = threading.Event()
    worker = threading.Thread(target=loop.run, args=(cancel,), name="tripwire-replay")
    worker.start()
    while not source.idle.wait(0.1):
        if not worker.is_alive():
            break
    cancel.set()
    worker.join()
    source.close()

    snap = engine.snapshot()
    summary = snap.to_dict()
    summary["threshold"] = config.threshold
    summary["errors"] = loop.read_errors + loop.process_errors
    return summary


def cmd_replay(args: argparse.Namespace) -> int:
    config = _load_config(args)
    if config is None:
        return 2
    configure_logging(config.log_level, structured=config.structured_logs)

    try:
        summary = replay_events(config, args.events, quiet=args.json)
    except SourceError as e:
        print("SOURCE_ERROR:", e, file=sys.stderr)
        return 1

    if args.json:
        print(canonical_json(summary))
        return 0

    print(f"Total violations: {summary['total']}")
    for pid, count in summary["counts"].items():
        print(f"PID {pid} violations: {count}")
    print(f"Any PIDs blocked: {str(bool(summary['blocked'])).lower()}")
    if summary["blocked"]:
        print("Blocked PIDs: " + ", ".join(str(p) for p in summary["blocked"]))
    return 0


def _add_policy_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--disallowed", default=None,
                   help="Comma-separated list of disallowed file patterns (e.g., '/etc/passwd,/etc/shadow')")
    p.add_argument("--threshold", type=int, default=None, help="Number of disallowed files before blocking (default: 2)")
    p.add_argument("--pid", type=int, default=None, help="Only watch this PID (default: 0, all processes)")
    p.add_argument("--log-level", default="", help="DEBUG, INFO, WARNING, ERROR")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="tripwire")
    sub = ap.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Watch the capture stream and block offenders")
    _add_policy_args(run)
    run.add_argument("--events", dest="events_path", default=None, help="FIFO carrying capture records")
    run.add_argument("--block-map", dest="block_map", default=None, help="Pinned blocked_pids map")
    run.add_argument("--bpftool", default=None)
    run.add_argument("--status-port", dest="status_port", type=int, default=None,
                     help="Serve the status API on this port (0 disables)")
    run.set_defaults(fn=cmd_run)

    rep = sub.add_parser("replay", help="Run the engine over a recorded JSONL event file")
    _add_policy_args(rep)
    rep.add_argument("--events", required=True)
    rep.add_argument("--json", action="store_true", help="Print the summary as JSON")
    rep.set_defaults(fn=cmd_replay)

    return ap


def main(argv: Optional[list[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    return int(args.fn(args))


if __name__ == "__main__":
    raise SystemExit(main())
