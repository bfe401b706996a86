#!/usr/bin/env python3
"""
Replay a captured decision payload through the decisioning pipeline.

Useful when a surface shows unexpected content: feed the saved payload in
with the timestamp or context of interest and see which propositions
qualify and which condition diagnostics come up.
"""

import argparse
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional
import sys

from shared.config import BaseConfig
from shared.logging import configure_logging
from service_messaging.app.pipeline.decisioning import DecisioningPipeline
from service_messaging.app.rules.models import EvaluationContext


def replay(
    *,
    payload: Any,
    context: Dict[str, Any],
    timestamp: Optional[int],
    requested_scopes: list,
    strict: bool,
    max_depth: int,
) -> dict:
    """Process the payload on a fresh pipeline and return the summary."""
    pipeline = DecisioningPipeline(strict_schemas=strict, max_depth=max_depth)

    values = dict(context)
    if timestamp is not None:
        values["~timestampu"] = timestamp

    result = pipeline.process(payload, EvaluationContext.current(values), requested_scopes=requested_scopes)

    return {
        "qualified": [p.to_payload() for p in result.qualified],
        "unqualified": [p.to_payload() for p in result.unqualified],
        "content": [
            {
                "proposition_id": entry.proposition_id,
                "item_id": entry.item_id,
                "schema": entry.schema,
                "consequence_id": entry.consequence_id,
                "type": type(entry.content).__name__,
            }
            for entry in result.content
        ],
        "diagnostics": [asdict(d) for d in result.diagnostics],
        "skipped": result.skipped,
        "store": pipeline.store.get_store_stats(),
    }


def _load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _parse_args() -> argparse.Namespace:
    config = BaseConfig()
    parser = argparse.ArgumentParser(description="Replay a decision payload through the decisioning pipeline.")
    parser.add_argument("payload", type=Path, help="Path to the captured decision payload JSON")
    parser.add_argument("--context", type=Path, default=None, help="Path to a JSON map of evaluation context values")
    parser.add_argument("--timestamp", type=int, default=None, help="Epoch seconds to evaluate ~timestampu against")
    parser.add_argument("--scope", action="append", default=[], help="Surface refreshed by this payload (repeatable)")
    parser.add_argument("--strict", action="store_true", default=config.strict_schemas, help="Reject unknown schema tags")
    parser.add_argument("--max-depth", type=int, default=config.max_condition_depth, help="Deepest condition tree evaluated")
    parser.add_argument("--log-level", default="warning", help="Log level for pipeline diagnostics")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    configure_logging("messaging-replay", args.log_level)

    try:
        payload = _load_json(args.payload)
        context = _load_json(args.context) if args.context else {}
        if not isinstance(context, dict):
            print("[replay] context file must hold a JSON object", file=sys.stderr)
            return 2

        summary = replay(
            payload=payload,
            context=context,
            timestamp=args.timestamp,
            requested_scopes=args.scope,
            strict=args.strict,
            max_depth=args.max_depth,
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # pragma: no cover - CLI surface
        print(f"[replay] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
