from typing import Dict, Iterable, List, NamedTuple, Optional

from .models import ConnectionCheck, Edge, Node, NODE_LABELS


class ConnectionRule(NamedTuple):
    source_kind: str
    target_kind: str
    reason: str


class ChildRequirement(NamedTuple):
    kind: str
    label: str
    reason: str
    required: bool


# Valid parent -> child connections
CONNECTION_RULES: List[ConnectionRule] = [
    ConnectionRule("container", "module", "Containers hold modules"),
    ConnectionRule("module", "group", "Modules hold groups"),
    ConnectionRule("group", "option", "Groups hold options"),
]

HIERARCHY_CHAIN = " → ".join(NODE_LABELS.values())

# What each node kind expects underneath it
CHILD_REQUIREMENTS: Dict[str, List[ChildRequirement]] = {
    "container": [
        ChildRequirement("module", "Add Module", "Containers need at least one module", True),
    ],
    "module": [
        ChildRequirement("group", "Add Group", "Modules need at least one group", True),
    ],
    "group": [
        ChildRequirement("option", "Add Option", "Groups should contain options", True),
        ChildRequirement("option", "Add Toggle", "Consider adding a toggle option", False),
    ],
    "option": [],
}


def _find_rule(source_kind: str, target_kind: str) -> Optional[ConnectionRule]:
    for rule in CONNECTION_RULES:
        if rule.source_kind == source_kind and rule.target_kind == target_kind:
            return rule
    return None


def validate_connection(source_kind: str, target_kind: str) -> ConnectionCheck:
    rule = _find_rule(source_kind, target_kind)
    if rule:
        return ConnectionCheck(valid=True, message=rule.reason)

    # child -> parent is the wrong direction
    if _find_rule(target_kind, source_kind):
        return ConnectionCheck(
            valid=False,
            message=f"Wrong direction: connect {target_kind} → {source_kind} instead",
        )

    if source_kind == target_kind:
        return ConnectionCheck(
            valid=False,
            message=f"Cannot connect {source_kind} to {source_kind}",
        )

    return ConnectionCheck(
        valid=False,
        message=(
            f"Invalid: {source_kind} cannot directly connect to {target_kind}. "
            f"Follow hierarchy: {HIERARCHY_CHAIN}"
        ),
    )


def uniqueness_violation(source_id: str, target_id: str, existing_edges: Iterable[Edge]) -> Optional[str]:
    structural = [e for e in existing_edges if e.is_structural]

    # A duplicate also has a parent; report the more specific message first.
    if any(e.source == source_id and e.target == target_id for e in structural):
        return "This connection already exists"

    if any(e.target == target_id for e in structural):
        return "This node already has a parent connection"

    return None


def missing_child_suggestions(node: Node, children: Iterable[Node]) -> List[ChildRequirement]:
    child_kinds = [child.kind for child in children]
    missing: List[ChildRequirement] = []
    for requirement in CHILD_REQUIREMENTS[node.kind]:
        if requirement.required:
            if requirement.kind not in child_kinds:
                missing.append(requirement)
        elif child_kinds.count(requirement.kind) < 2:
            missing.append(requirement)
    return missing
