from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Sequence

from saferoute.safe_route import RouteResult, compute_safe_route


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute a flood- and congestion-aware route from local JSON files."
    )
    parser.add_argument("--roads", required=True, help="JSON object keyed by node id, or a list of nodes")
    parser.add_argument("--traffic", default=None, help="JSON list (or object keyed by edgeId) of traffic records")
    parser.add_argument("--floods", default=None, help="JSON list of {polygon, severity} records")
    parser.add_argument("--src", required=True, help="source as 'lat,lng'")
    parser.add_argument("--dst", required=True, help="destination as 'lat,lng'")
    parser.add_argument("--output", default=None, help="write the result JSON here instead of stdout")
    return parser


def parse_point(raw: str) -> tuple[float, float]:
    parts = [p.strip() for p in str(raw).split(",")]
    if len(parts) != 2:
        raise ValueError(f"expected 'lat,lng', got {raw!r}")
    return float(parts[0]), float(parts[1])


def _load_json(path: str | None, *, default: Any) -> Any:
    if path is None:
        return default
    return json.loads(Path(path).read_text(encoding="utf-8"))


def _traffic_records(raw: Any) -> list[dict[str, Any]]:
    if isinstance(raw, dict):
        return [dict(v, edgeId=v.get("edgeId", k)) for k, v in raw.items() if isinstance(v, dict)]
    if isinstance(raw, list):
        return [v for v in raw if isinstance(v, dict)]
    raise ValueError("traffic JSON must be an object or a list")


def run_offline(args: argparse.Namespace) -> RouteResult:
    roads = _load_json(args.roads, default={})
    traffic = _traffic_records(_load_json(args.traffic, default=[]))
    floods = _load_json(args.floods, default=[])
    if not isinstance(floods, list):
        raise ValueError("floods JSON must be a list")
    return compute_safe_route(roads, traffic, floods, parse_point(args.src), parse_point(args.dst))


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    result = run_offline(args)
    text = json.dumps(result.as_dict(), indent=2)
    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
    else:
        print(text)
    return 0 if result.found else 2


if __name__ == "__main__":
    raise SystemExit(main())
