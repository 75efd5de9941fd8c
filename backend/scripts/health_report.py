#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import os
import sys

SCRIPT_DIR = os.path.abspath(os.path.dirname(__file__))
BACKEND_DIR = os.path.abspath(os.path.join(SCRIPT_DIR, ".."))

sys.path.append(BACKEND_DIR)

from configflow.config_loader import ConfigLoader
from configflow.engine import RuleEngine
from configflow.report import build_health_report, render_markdown


def main() -> int:
    parser = argparse.ArgumentParser(description="Report rule-engine health for the configuration packs.")
    parser.add_argument(
        "--packs-dir",
        default=os.path.join(BACKEND_DIR, "configflow", "knowledge", "packs"),
        help="Directory of YAML config packs.",
    )
    parser.add_argument(
        "--format",
        choices=("markdown", "json"),
        default="markdown",
        help="Output format.",
    )
    args = parser.parse_args()

    nodes, edges, rules = ConfigLoader(args.packs_dir).load_all()
    engine = RuleEngine(nodes, edges, rules)
    report = build_health_report(engine, engine.analyze_graph())

    if args.format == "json":
        print(json.dumps(report, indent=2, sort_keys=True))
        return 0

    print(render_markdown(report), end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
