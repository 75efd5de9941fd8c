from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

NodeKind = Literal["container", "module", "group", "option"]
EdgeRelation = Literal["contains", "requires"]
Severity = Literal["error", "warning", "info", "suggestion"]
Health = Literal["healthy", "warning", "critical"]
FixAction = Literal["enable", "disable"]
PropertyValue = Union[str, bool, int, float]

# Structural containment: parent kind -> the only kind it may hold.
NODE_CHILDREN: Dict[str, Optional[str]] = {
    "container": "module",
    "module": "group",
    "group": "option",
    "option": None,
}
NODE_LABELS: Dict[str, str] = {
    "container": "Container",
    "module": "Module",
    "group": "Group",
    "option": "Option",
}


class Node(BaseModel):
    id: str
    kind: NodeKind
    label: str
    description: Optional[str] = None
    visible: bool = True
    visibility_rule: Optional[str] = None  # opaque, never evaluated
    properties: Dict[str, PropertyValue] = Field(default_factory=dict)

    @property
    def option_key(self) -> Optional[str]:
        key = self.properties.get("key")
        return key if isinstance(key, str) and key else None

    @property
    def is_included(self) -> bool:
        return self.properties.get("included") is True

    @property
    def is_editable(self) -> bool:
        return self.properties.get("editable") is not False


class Edge(BaseModel):
    source: str
    target: str
    rel: EdgeRelation = "contains"

    @property
    def is_structural(self) -> bool:
        return self.rel == "contains"


class Rule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_key: str = Field(alias="option_key")
    requires: List[str] = Field(default_factory=list)
    conflicts: List[str] = Field(default_factory=list)
    advisory_message: Optional[str] = Field(default=None, alias="suggestion")


class RuleModule(BaseModel):
    id: str
    name: Optional[str] = None
    rules: List[Rule] = Field(default_factory=list)


class RuleTable(BaseModel):
    modules: List[RuleModule] = Field(default_factory=list)


class IssueFix(BaseModel):
    label: str
    action: FixAction
    target_node_id: str
    key: Optional[str] = None


class Issue(BaseModel):
    id: str
    severity: Severity
    title: str
    message: str
    affected_node_ids: List[str] = Field(default_factory=list)
    fix: Optional[IssueFix] = None


class DependencyRecord(BaseModel):
    key: str
    label: str
    present: bool
    node_id: Optional[str] = None


class ConflictRecord(BaseModel):
    key: str
    label: str
    conflicts_with: str
    node_id: Optional[str] = None


class NodeAnalysis(BaseModel):
    node_id: str
    issues: List[Issue] = Field(default_factory=list)
    suggestions: List[Issue] = Field(default_factory=list)
    dependencies: List[DependencyRecord] = Field(default_factory=list)
    conflicts: List[ConflictRecord] = Field(default_factory=list)
    health: Health = "healthy"


class GraphAnalysis(BaseModel):
    analysis_by_node_id: Dict[str, NodeAnalysis] = Field(default_factory=dict)
    total_issues: int = 0
    # Distinct unordered node pairs; conflict_entries is the raw per-node sum.
    total_conflicts: int = 0
    conflict_entries: int = 0
    conflict_pairs: List[List[str]] = Field(default_factory=list)


class ConnectionCheck(BaseModel):
    valid: bool
    message: str


# Raw pack format, as authored in knowledge/packs/*.yaml

class RawOption(BaseModel):
    id: Optional[int] = None
    key: str
    name: str
    editable: bool = True
    included: bool = False


class RawGroup(BaseModel):
    id: Optional[int] = None
    name: str
    options: List[RawOption] = Field(default_factory=list)


class RawModule(BaseModel):
    id: str
    name: str
    initial: Optional[str] = None
    groups: List[RawGroup] = Field(default_factory=list)
    rules: List[Rule] = Field(default_factory=list)
    states: Dict[str, Dict[str, str]] = Field(default_factory=dict)


class RawConfig(BaseModel):
    modules: List[RawModule] = Field(default_factory=list)

    def rule_table(self) -> RuleTable:
        return RuleTable(
            modules=[RuleModule(id=m.id, name=m.name, rules=m.rules) for m in self.modules]
        )


# API payloads

class GraphSnapshot(BaseModel):
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    rules: RuleTable = Field(default_factory=RuleTable)


class ConnectionKindsRequest(BaseModel):
    source_kind: NodeKind
    target_kind: NodeKind


class ConnectionRequest(BaseModel):
    source: str
    target: str


class NodeCreateRequest(BaseModel):
    kind: NodeKind
    label: Optional[str] = None
    parent_id: Optional[str] = None


class NodeUpdateRequest(BaseModel):
    label: Optional[str] = None
    description: Optional[str] = None
    visible: Optional[bool] = None
    visibility_rule: Optional[str] = None
    properties: Optional[Dict[str, PropertyValue]] = None


class ApplyFixRequest(BaseModel):
    fix: IssueFix
