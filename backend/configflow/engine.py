import collections
import logging
from typing import DefaultDict, Dict, Iterable, List, Optional, Set, Tuple, get_args

from .models import (
    ConflictRecord,
    DependencyRecord,
    Edge,
    GraphAnalysis,
    Issue,
    IssueFix,
    Node,
    NodeAnalysis,
    NodeKind,
    RuleTable,
)
from .rules import RuleBook

logger = logging.getLogger(__name__)


class _Findings:
    def __init__(self) -> None:
        self.issues: List[Issue] = []
        self.suggestions: List[Issue] = []
        self.dependencies: List[DependencyRecord] = []
        self.conflicts: List[ConflictRecord] = []


class RuleEngine:
    def __init__(self, nodes: Iterable[Node], edges: Iterable[Edge], rules: Optional[RuleTable] = None):
        self.nodes: Dict[str, Node] = {node.id: node for node in nodes}
        self.edges: List[Edge] = list(edges)
        self.rules = RuleBook(rules)
        # child id -> parent id, built once per pass over structural edges only
        self.parent_index: Dict[str, str] = {}
        self.children_index: DefaultDict[str, List[str]] = collections.defaultdict(list)
        for edge in self.edges:
            if not edge.is_structural:
                continue
            if edge.source not in self.nodes or edge.target not in self.nodes:
                continue
            if edge.target not in self.children_index[edge.source]:
                self.children_index[edge.source].append(edge.target)
            # first structural edge wins as the parent
            self.parent_index.setdefault(edge.target, edge.source)

    def parent_of(self, node_id: str) -> Optional[Node]:
        parent_id = self.parent_index.get(node_id)
        return self.nodes.get(parent_id) if parent_id else None

    def children_of(self, node_id: str) -> List[Node]:
        return [self.nodes[child_id] for child_id in self.children_index.get(node_id, [])]

    def enclosing_module(self, node_id: str) -> Optional[Node]:
        seen: Set[str] = {node_id}
        current = self.parent_of(node_id)
        while current is not None and current.id not in seen:
            if current.kind == "module":
                return current
            seen.add(current.id)
            current = self.parent_of(current.id)
        return None

    def sibling_options(self, node_id: str) -> List[Node]:
        module = self.enclosing_module(node_id)
        if module is None:
            return []
        siblings: List[Node] = []
        for group in self.children_of(module.id):
            if group.kind != "group":
                continue
            siblings.extend(child for child in self.children_of(group.id) if child.kind == "option")
        return siblings

    def find_option(self, key: str, scope: Optional[List[Node]] = None) -> Optional[Node]:
        candidates = scope if scope is not None else self.nodes.values()
        for node in candidates:
            if node.kind == "option" and node.option_key == key:
                return node
        return None

    def analyze_node(self, node_id: str) -> NodeAnalysis:
        node = self.nodes.get(node_id)
        if node is None:
            return NodeAnalysis(node_id=node_id)

        findings = _Findings()
        analyzer = getattr(self, _KIND_ANALYZERS[node.kind])
        analyzer(node, findings)

        if node.kind != "container" and node.id not in self.parent_index:
            findings.issues.append(
                Issue(
                    id=f"orphan_{node.id}",
                    severity="error",
                    title="Orphan Node",
                    message=(
                        f"This {node.kind} is not connected to any parent. "
                        "It won't be part of the configuration."
                    ),
                    affected_node_ids=[node.id],
                )
            )

        return NodeAnalysis(
            node_id=node.id,
            issues=findings.issues,
            suggestions=findings.suggestions,
            dependencies=findings.dependencies,
            conflicts=findings.conflicts,
            health=_health(findings.issues),
        )

    def analyze_graph(self) -> GraphAnalysis:
        result = GraphAnalysis()
        pairs: Set[Tuple[str, str]] = set()
        for node_id in self.nodes:
            analysis = self.analyze_node(node_id)
            result.analysis_by_node_id[node_id] = analysis
            result.total_issues += len(analysis.issues)
            result.conflict_entries += len(analysis.conflicts)
            for conflict in analysis.conflicts:
                other = conflict.node_id or conflict.key
                pairs.add((node_id, other) if node_id < other else (other, node_id))

        result.total_conflicts = len(pairs)
        result.conflict_pairs = [list(pair) for pair in sorted(pairs)]
        logger.debug(
            "Analyzed %d nodes: %d issues, %d conflicts (%d entries)",
            len(self.nodes),
            result.total_issues,
            result.total_conflicts,
            result.conflict_entries,
        )
        return result

    def _analyze_container(self, node: Node, findings: _Findings) -> None:
        if not self.children_of(node.id):
            findings.issues.append(
                Issue(
                    id=f"container_empty_{node.id}",
                    severity="warning",
                    title="Empty Container",
                    message="This container has no modules. Add at least one module to build your configuration.",
                    affected_node_ids=[node.id],
                )
            )

        findings.suggestions.append(
            Issue(
                id=f"suggest_module_{node.id}",
                severity="suggestion",
                title="Add More Modules",
                message=(
                    "Consider adding more modules for a complete streaming pipeline "
                    "(Video, Audio, CDN, DRM, Analytics)."
                ),
                affected_node_ids=[node.id],
            )
        )

    def _analyze_module(self, node: Node, findings: _Findings) -> None:
        groups = [child for child in self.children_of(node.id) if child.kind == "group"]

        if not groups:
            findings.issues.append(
                Issue(
                    id=f"module_no_groups_{node.id}",
                    severity="error",
                    title="No Groups",
                    message="Every module needs at least one group to organize its options.",
                    affected_node_ids=[node.id],
                )
            )

        for group in groups:
            if not self.children_of(group.id):
                findings.issues.append(
                    Issue(
                        id=f"group_empty_{group.id}",
                        severity="warning",
                        title=f"Empty Group: {group.label}",
                        message="This group has no options. Consider adding configuration options.",
                        affected_node_ids=[node.id, group.id],
                    )
                )

        if len(groups) == 1:
            findings.suggestions.append(
                Issue(
                    id=f"suggest_more_groups_{node.id}",
                    severity="suggestion",
                    title="Consider More Groups",
                    message=(
                        "Modules with multiple groups provide better organization. "
                        "E.g. separate codec settings from hardware settings."
                    ),
                    affected_node_ids=[node.id],
                )
            )

    def _analyze_group(self, node: Node, findings: _Findings) -> None:
        options = self.children_of(node.id)
        if not options:
            findings.issues.append(
                Issue(
                    id=f"group_empty_{node.id}",
                    severity="warning",
                    title="Empty Group",
                    message="Add options to this group for configuration.",
                    affected_node_ids=[node.id],
                )
            )
            return

        if not any(option.is_included for option in options):
            findings.suggestions.append(
                Issue(
                    id=f"suggest_include_{node.id}",
                    severity="info",
                    title="No Default Selections",
                    message=(
                        "None of the options in this group are included by default. "
                        "Consider setting at least one default option."
                    ),
                    affected_node_ids=[node.id],
                )
            )

    def _analyze_option(self, node: Node, findings: _Findings) -> None:
        key = node.option_key
        if not key or not self.rules:
            return

        # Rule keys only resolve inside the enclosing module; empty when there is none.
        scope = self.sibling_options(node.id)

        for rule in self.rules.rules_for(key):
            for required_key in rule.requires:
                self._check_requirement(node, key, required_key, rule.advisory_message, scope, findings)
            for conflict_key in rule.conflicts:
                self._check_conflict(node, key, conflict_key, rule.advisory_message, scope, findings)

        for rule in self.rules.rules_requiring(key):
            dependent = self.find_option(rule.subject_key, scope)
            if dependent is not None and dependent.is_included and not node.is_included:
                findings.issues.append(
                    Issue(
                        id=f"needed_by_{key}_{rule.subject_key}",
                        severity="warning",
                        title=f"Required By: {rule.subject_key}",
                        message=(
                            f'"{dependent.label}" depends on this option. '
                            "Disabling it may break the dependency chain."
                        ),
                        affected_node_ids=[node.id, dependent.id],
                    )
                )

        if node.is_included:
            findings.suggestions.append(
                Issue(
                    id=f"dep_chain_{node.id}",
                    severity="suggestion",
                    title="Dependency Chain Analysis",
                    message=(
                        f"This option is active. The rule engine has checked "
                        f"{len(findings.dependencies)} dependencies and "
                        f"{len(findings.conflicts)} potential conflicts."
                    ),
                    affected_node_ids=[node.id],
                )
            )

        if not node.is_editable:
            findings.suggestions.append(
                Issue(
                    id=f"locked_{node.id}",
                    severity="info",
                    title="Locked Option",
                    message="This option is not user-editable. It's controlled by system rules or admin configuration.",
                    affected_node_ids=[node.id],
                )
            )

    def _check_requirement(
        self,
        node: Node,
        key: str,
        required_key: str,
        advisory: Optional[str],
        scope: List[Node],
        findings: _Findings,
    ) -> None:
        in_scope = self.find_option(required_key, scope)
        # Out-of-scope matches only lend a label; they never satisfy the rule.
        resolved = in_scope or self.find_option(required_key)
        present = in_scope is not None and in_scope.is_included

        findings.dependencies.append(
            DependencyRecord(
                key=required_key,
                label=resolved.label if resolved else required_key,
                present=present,
                node_id=resolved.id if resolved else None,
            )
        )
        if present:
            return

        fix = None
        if in_scope is not None:
            fix = IssueFix(
                label=f"Enable {required_key}",
                action="enable",
                target_node_id=in_scope.id,
                key=required_key,
            )
        findings.issues.append(
            Issue(
                id=f"missing_dep_{key}_{required_key}",
                severity="error",
                title=f"Missing Dependency: {required_key}",
                message=advisory or f'"{node.label}" requires "{required_key}" to be enabled.',
                affected_node_ids=[node.id, resolved.id] if resolved else [node.id],
                fix=fix,
            )
        )

    def _check_conflict(
        self,
        node: Node,
        key: str,
        conflict_key: str,
        advisory: Optional[str],
        scope: List[Node],
        findings: _Findings,
    ) -> None:
        other = self.find_option(conflict_key, scope)
        if other is None or not other.is_included:
            return

        findings.conflicts.append(
            ConflictRecord(key=conflict_key, label=other.label, conflicts_with=key, node_id=other.id)
        )
        findings.issues.append(
            Issue(
                id=f"conflict_{key}_{conflict_key}",
                severity="error",
                title=f"Conflict: {node.label} ⚡ {other.label}",
                message=advisory or f'"{node.label}" conflicts with "{other.label}". They cannot both be active.',
                affected_node_ids=[node.id, other.id],
                fix=IssueFix(
                    label=f"Disable {conflict_key}",
                    action="disable",
                    target_node_id=other.id,
                    key=conflict_key,
                ),
            )
        )


_KIND_ANALYZERS: Dict[str, str] = {
    "container": "_analyze_container",
    "module": "_analyze_module",
    "group": "_analyze_group",
    "option": "_analyze_option",
}

# Every node kind must have an analyzer; a new kind fails at import time.
_missing_kinds = set(get_args(NodeKind)) - set(_KIND_ANALYZERS)
if _missing_kinds:
    raise RuntimeError(f"No analyzer registered for node kinds: {sorted(_missing_kinds)}")


def _health(issues: List[Issue]) -> str:
    if any(issue.severity == "error" for issue in issues):
        return "critical"
    if any(issue.severity == "warning" for issue in issues):
        return "warning"
    return "healthy"


def analyze_node(
    node_id: str,
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    rules: Optional[RuleTable] = None,
) -> NodeAnalysis:
    return RuleEngine(nodes, edges, rules).analyze_node(node_id)


def analyze_graph(
    nodes: Iterable[Node],
    edges: Iterable[Edge],
    rules: Optional[RuleTable] = None,
) -> GraphAnalysis:
    return RuleEngine(nodes, edges, rules).analyze_graph()
