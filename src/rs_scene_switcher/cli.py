from __future__ import annotations

import argparse
import json
from pathlib import Path

from .config import load_config
from .errors import TelemetryDecodeError, TelemetryFetchError
from .reporting import read_json
from .runner import replay_file, run_daemon, run_once
from .telemetry import SnifferClient, decode_reading


def _default_config_path() -> Path:
    here = Path(__file__).resolve()
    return here.parents[2] / "config" / "settings.toml"


def cmd_run(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    try:
        run_daemon(cfg, interval_override=(args.interval if args.interval > 0.0 else None))
    except KeyboardInterrupt:
        return 0
    return 0


def cmd_once(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    result = run_once(cfg, status_output_override=args.status_output)
    print(json.dumps(result.payload, indent=2))
    return 0 if result.ok else 2


def cmd_probe(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    client = SnifferClient.from_config(cfg)
    try:
        reading = decode_reading(client.fetch())
    except (TelemetryFetchError, TelemetryDecodeError) as exc:
        print(json.dumps({"ok": False, "url": client.url, "reason": str(exc)}, indent=2))
        return 2
    print(json.dumps({"ok": True, "url": client.url, "reading": reading.summary()}, indent=2))
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    path = cfg.resolve(cfg.runtime.status_file)
    if not path.exists():
        print(json.dumps({"status": "missing", "path": str(path)}, indent=2))
        return 1
    print(json.dumps(read_json(path), indent=2))
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    cfg = load_config(args.config)
    path = Path(args.recording).expanduser().resolve()
    if not path.exists():
        print(json.dumps({"ok": False, "reason": f"missing:{path}"}, indent=2))
        return 1
    payload = replay_file(cfg, path, step_seconds=args.step)
    print(json.dumps(payload, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rocksmith scene switcher CLI")
    parser.add_argument("--config", default=str(_default_config_path()))
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Poll the sniffer and drive scene switches until interrupted")
    p_run.add_argument("--interval", type=float, default=0.0, help="Override runtime.poll_interval_seconds")
    p_run.set_defaults(func=cmd_run)

    p_once = sub.add_parser("once", help="Run a single poll cycle")
    p_once.add_argument("--status-output", default="", help="Override runtime.status_file")
    p_once.set_defaults(func=cmd_once)

    p_probe = sub.add_parser("probe", help="Fetch and decode one sniffer reading")
    p_probe.set_defaults(func=cmd_probe)

    p_status = sub.add_parser("status", help="Read latest status file")
    p_status.set_defaults(func=cmd_status)

    p_replay = sub.add_parser("replay", help="Replay recorded sniffer responses (JSONL) through a fresh session")
    p_replay.add_argument("recording")
    p_replay.add_argument("--step", type=float, default=1.0, help="Synthetic seconds between readings")
    p_replay.set_defaults(func=cmd_replay)

    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
