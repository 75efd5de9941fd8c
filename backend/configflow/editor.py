import logging
import re
from typing import Any, Dict, List, Optional

from .connections import uniqueness_violation, validate_connection
from .engine import RuleEngine
from .models import (
    Edge,
    GraphAnalysis,
    IssueFix,
    Node,
    NodeAnalysis,
    NODE_CHILDREN,
    NODE_LABELS,
    RuleTable,
)

logger = logging.getLogger(__name__)

NODE_ID_PATTERN = re.compile(r"^node_(\d+)$")
# Node fields an update may reset to None
CLEARABLE_FIELDS = frozenset({"description", "visibility_rule"})


class EditorSession:
    """Mutable editing state around an immutable rule table.

    Every mutation rebuilds the engine and re-runs the whole-graph analysis,
    so ``analysis()`` always reflects the latest snapshot.
    """

    def __init__(self, nodes: List[Node], edges: List[Edge], rules: Optional[RuleTable] = None):
        self.nodes: Dict[str, Node] = {node.id: node for node in nodes}
        self.edges: List[Edge] = list(edges)
        self.rules = rules
        self._id_counter = _next_counter(self.nodes)
        self._analysis = self._reanalyze()

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], rules: Optional[RuleTable] = None) -> "EditorSession":
        if "nodes" not in data or "edges" not in data:
            raise ValueError("Snapshot must contain 'nodes' and 'edges'")
        nodes = [Node.model_validate(item) for item in data["nodes"]]
        edges = [Edge.model_validate(item) for item in data["edges"]]
        return cls(nodes, edges, rules)

    def export_snapshot(self) -> Dict[str, Any]:
        return {
            "nodes": [node.model_dump() for node in self.nodes.values()],
            "edges": [edge.model_dump() for edge in self.edges],
        }

    def engine(self) -> RuleEngine:
        return RuleEngine(self.nodes.values(), self.edges, self.rules)

    def analysis(self) -> GraphAnalysis:
        return self._analysis

    def analyze_node(self, node_id: str) -> NodeAnalysis:
        return self._analysis.analysis_by_node_id.get(node_id) or NodeAnalysis(node_id=node_id)

    def get_node(self, node_id: str) -> Node:
        node = self.nodes.get(node_id)
        if node is None:
            raise KeyError(node_id)
        return node

    def add_node(self, kind: str, label: Optional[str] = None) -> Node:
        node_id = f"node_{self._id_counter}"
        self._id_counter += 1
        node = Node(id=node_id, kind=kind, label=label or f"New {NODE_LABELS[kind]}")
        self.nodes[node_id] = node
        self._analysis = self._reanalyze()
        return node

    def connect(self, source_id: str, target_id: str) -> Edge:
        source = self.get_node(source_id)
        target = self.get_node(target_id)

        check = validate_connection(source.kind, target.kind)
        if not check.valid:
            logger.info("Rejected connection %s -> %s: %s", source_id, target_id, check.message)
            raise ValueError(check.message)

        violation = uniqueness_violation(source_id, target_id, self.edges)
        if violation:
            logger.info("Rejected connection %s -> %s: %s", source_id, target_id, violation)
            raise ValueError(violation)

        edge = Edge(source=source_id, target=target_id)
        self.edges.append(edge)
        self._analysis = self._reanalyze()
        return edge

    def disconnect(self, source_id: str, target_id: str) -> None:
        self.edges = [e for e in self.edges if not (e.source == source_id and e.target == target_id)]
        self._analysis = self._reanalyze()

    def update_node(self, node_id: str, **changes: Any) -> Node:
        node = self.get_node(node_id)
        updates = dict(changes)
        for field, value in updates.items():
            if value is None and field not in CLEARABLE_FIELDS:
                raise ValueError(f"Field {field!r} cannot be cleared")
        if "properties" in updates:
            updates["properties"] = {**node.properties, **updates["properties"]}
        # Re-validate so bad values are rejected instead of stored
        updated = Node.model_validate({**node.model_dump(), **updates})
        if updated.id != node_id:
            raise ValueError("Node id cannot be changed")
        self.nodes[node_id] = updated
        self._analysis = self._reanalyze()
        return updated

    def delete_node(self, node_id: str) -> None:
        self.get_node(node_id)
        del self.nodes[node_id]
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        self._analysis = self._reanalyze()

    def auto_add_child(self, parent_id: str, label: Optional[str] = None) -> Node:
        parent = self.get_node(parent_id)
        child_kind = NODE_CHILDREN[parent.kind]
        if child_kind is None:
            raise ValueError(f"A {parent.kind} cannot hold children")
        child = self.add_node(child_kind, label)
        self.connect(parent_id, child.id)
        return child

    def apply_fix(self, fix: IssueFix) -> GraphAnalysis:
        target = self.get_node(fix.target_node_id)
        if target.kind != "option":
            raise ValueError(f"Fix target {target.id} is a {target.kind}, not an option")
        self.update_node(target.id, properties={"included": fix.action == "enable"})
        logger.info("Applied fix '%s' to %s", fix.label, target.id)
        return self._analysis

    def _reanalyze(self) -> GraphAnalysis:
        return self.engine().analyze_graph()


def _next_counter(nodes: Dict[str, Node]) -> int:
    highest = 0
    for node_id in nodes:
        match = NODE_ID_PATTERN.match(node_id)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1
