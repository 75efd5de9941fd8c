from typing import Any, Dict, List

from .engine import RuleEngine
from .models import GraphAnalysis

SEVERITY_ORDER = ("error", "warning", "info", "suggestion")


def build_health_report(engine: RuleEngine, analysis: GraphAnalysis) -> Dict[str, Any]:
    health_counts = {"healthy": 0, "warning": 0, "critical": 0}
    severity_counts = {severity: 0 for severity in SEVERITY_ORDER}
    problem_nodes: List[Dict[str, Any]] = []

    for node_id, node_analysis in analysis.analysis_by_node_id.items():
        health_counts[node_analysis.health] += 1
        for item in node_analysis.issues + node_analysis.suggestions:
            severity_counts[item.severity] += 1
        if node_analysis.health == "healthy":
            continue
        node = engine.nodes[node_id]
        problem_nodes.append(
            {
                "node_id": node_id,
                "kind": node.kind,
                "label": node.label,
                "health": node_analysis.health,
                "issues": [f"{issue.severity}: {issue.title}" for issue in node_analysis.issues],
            }
        )

    # critical first, then by label for stable output
    problem_nodes.sort(key=lambda item: (item["health"] != "critical", item["label"]))
    return {
        "nodes": len(engine.nodes),
        "total_issues": analysis.total_issues,
        "total_conflicts": analysis.total_conflicts,
        "conflict_entries": analysis.conflict_entries,
        "health": health_counts,
        "severities": severity_counts,
        "problem_nodes": problem_nodes,
    }


def render_markdown(report: Dict[str, Any]) -> str:
    lines: List[str] = [
        "# Configuration Health Report",
        "",
        "## Summary",
        f"- nodes: {report['nodes']}",
        f"- total_issues: {report['total_issues']}",
        f"- total_conflicts: {report['total_conflicts']} ({report['conflict_entries']} entries)",
    ]
    for health, count in report["health"].items():
        lines.append(f"- {health}: {count}")

    lines.extend(["", "## Findings by Severity"])
    for severity, count in report["severities"].items():
        lines.append(f"- {severity}: {count}")

    lines.extend(["", "## Nodes Needing Attention"])
    if not report["problem_nodes"]:
        lines.append("_All nodes are healthy._")
    for item in report["problem_nodes"]:
        lines.append(f"### {item['label']} ({item['kind']}, {item['health']})")
        for issue in item["issues"]:
            lines.append(f"- {issue}")

    return "\n".join(lines).rstrip() + "\n"
