import logging
import os
from typing import Dict, List, Tuple

import yaml

from .models import Edge, Node, RawConfig, RawModule, RuleTable

logger = logging.getLogger(__name__)


def parse_config(config: RawConfig) -> Tuple[List[Node], List[Edge]]:
    """Flatten raw modules into a Container → Module → Group → Option graph.

    Structural edges carry ``rel="contains"``. Every rule ``requires`` entry
    whose keys both exist in the same module also produces a ``requires``
    overlay edge from the required option to the dependent one.
    """
    nodes: List[Node] = []
    edges: List[Edge] = []
    counter = 0

    def next_id() -> str:
        nonlocal counter
        counter += 1
        return f"node_{counter}"

    container_id = next_id()
    nodes.append(
        Node(
            id=container_id,
            kind="container",
            label="Configuration Root",
            description="Root container for all modules",
            properties={"moduleCount": len(config.modules)},
        )
    )

    for module in config.modules:
        module_id = next_id()
        nodes.append(
            Node(
                id=module_id,
                kind="module",
                label=module.name,
                description=f"ID: {module.id} | Initial state: {module.initial}",
                properties={
                    "moduleId": module.id,
                    "initial": module.initial or "",
                    "rulesCount": len(module.rules),
                    "statesCount": len(module.states),
                },
            )
        )
        edges.append(Edge(source=container_id, target=module_id))

        option_ids: Dict[str, str] = {}
        for group in module.groups:
            group_id = next_id()
            group_props = {"optionCount": len(group.options)}
            if group.id is not None:
                group_props["groupId"] = group.id
            nodes.append(
                Node(
                    id=group_id,
                    kind="group",
                    label=group.name,
                    description=f"{len(group.options)} option(s)",
                    properties=group_props,
                )
            )
            edges.append(Edge(source=module_id, target=group_id))

            for option in group.options:
                option_id = next_id()
                option_ids[option.key] = option_id
                option_props = {
                    "key": option.key,
                    "editable": option.editable,
                    "included": option.included,
                }
                if option.id is not None:
                    option_props["optionId"] = option.id
                nodes.append(
                    Node(
                        id=option_id,
                        kind="option",
                        label=option.name,
                        description="Included" if option.included else "Not included",
                        properties=option_props,
                    )
                )
                edges.append(Edge(source=group_id, target=option_id))

        for rule in module.rules:
            dependent_id = option_ids.get(rule.subject_key)
            for required_key in rule.requires:
                required_id = option_ids.get(required_key)
                if dependent_id and required_id:
                    edges.append(Edge(source=required_id, target=dependent_id, rel="requires"))

    return nodes, edges


class ConfigLoader:
    def __init__(self, packs_dir: str):
        self.packs_dir = packs_dir
        self.modules: List[RawModule] = []

    def load_all(self) -> Tuple[List[Node], List[Edge], RuleTable]:
        # Reset state to allow for reloads
        self.modules = []

        for root, _, files in sorted(os.walk(self.packs_dir)):
            for file in sorted(files):
                if file.endswith(".yaml") or file.endswith(".yml"):
                    self._load_pack(os.path.join(root, file))

        config = self.raw_config()
        nodes, edges = parse_config(config)
        logger.info(
            "Loaded %d modules from %s (%d nodes, %d edges)",
            len(self.modules),
            self.packs_dir,
            len(nodes),
            len(edges),
        )
        return nodes, edges, config.rule_table()

    def raw_config(self) -> RawConfig:
        return RawConfig(modules=list(self.modules))

    def _load_pack(self, pack_path: str):
        with open(pack_path, "r") as f:
            data = yaml.safe_load(f)
            if not data:
                return

            known_ids = {m.id for m in self.modules}
            for module_data in data.get("modules", []):
                module = RawModule(**module_data)
                if module.id in known_ids:
                    raise ValueError(f"Duplicate module ID: {module.id}")
                self._validate_module(module)
                self.modules.append(module)
                known_ids.add(module.id)
            logger.debug("Loaded pack %s", pack_path)

    def _validate_module(self, module: RawModule):
        seen_keys = set()
        for group in module.groups:
            for option in group.options:
                if option.key in seen_keys:
                    raise ValueError(f"Duplicate option key in module {module.id}: {option.key}")
                seen_keys.add(option.key)
