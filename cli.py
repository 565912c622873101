from __future__ import annotations

import argparse
import json
import sys

import requests


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Pod registry watcher CLI")
    p.add_argument("--api", default="http://localhost:8000", help="API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("services", help="List registered services")

    s_svc = sub.add_parser("service", help="Show every version of one service")
    s_svc.add_argument("name")

    s_ev = sub.add_parser("events", help="Show the change journal")
    s_ev.add_argument("--limit", type=int, default=20)

    sub.add_parser("health", help="Show watcher health")

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "services":
        _print(requests.get(f"{base}/services", timeout=10).json())
        return 0

    if args.cmd == "service":
        r = requests.get(f"{base}/services/{args.name}", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "health":
        r = requests.get(f"{base}/health", timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
