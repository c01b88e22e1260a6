"""
Workflow Graph Definition.

A workflow is a set of function nodes connected by action-labelled
edges. After a node runs, the action in its result (or "default" on
success / "error" on failure) selects the outgoing edge to follow.
A node without an edge for that action ends the run.
"""

from typing import Any, Dict, List, Optional, Set
from dataclasses import dataclass, field
import uuid


DEFAULT_ACTION = "default"
ERROR_ACTION = "error"


@dataclass
class WorkflowNode:
    """
    A node instance in the workflow graph.

    Attributes:
        node_id: Unique identifier within the workflow
        function_id: Registry id of the function to execute
        params: Literal parameters passed to the function
        envs: Node-level environment values (override flow envs)
        max_retries: Attempts made when the function raises
        retry_delay_ms: Wait between attempts
        label: Optional display label
    """
    node_id: str
    function_id: str
    params: Dict[str, Any] = field(default_factory=dict)
    envs: Dict[str, str] = field(default_factory=dict)
    max_retries: int = 1
    retry_delay_ms: float = 0
    label: Optional[str] = None

    def __post_init__(self):
        if not self.node_id:
            raise ValueError("Node id cannot be empty")
        if not self.function_id:
            raise ValueError(f"Node '{self.node_id}' must reference a function")
        self.max_retries = max(1, int(self.max_retries))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.node_id,
            "functionId": self.function_id,
            "params": self.params,
            "envs": self.envs,
            "runtime": {
                "maxRetries": self.max_retries,
                "retryDelay": self.retry_delay_ms,
            },
            "label": self.label,
        }


@dataclass
class ValidationReport:
    """Outcome of validating a workflow."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass
class Workflow:
    """
    A workflow graph of function nodes and action edges.

    Attributes:
        workflow_id: Unique identifier for this workflow
        name: Human-readable name
        nodes: Dict of node_id -> WorkflowNode
        edges: Dict of source node_id -> {action: target node_id}
        start_node: Node where execution begins
        envs: Flow-level environment values
        max_steps: Optional cap on node executions per run
    """

    workflow_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "Unnamed Workflow"
    nodes: Dict[str, WorkflowNode] = field(default_factory=dict)
    edges: Dict[str, Dict[str, str]] = field(default_factory=dict)
    start_node: Optional[str] = None
    envs: Dict[str, str] = field(default_factory=dict)
    max_steps: Optional[int] = None
    description: str = ""
    version: str = "1.0.0"

    def add_node(
        self,
        node_id: str,
        function_id: str,
        params: Optional[Dict[str, Any]] = None,
        envs: Optional[Dict[str, str]] = None,
        max_retries: int = 1,
        retry_delay_ms: float = 0,
        label: Optional[str] = None,
    ) -> "Workflow":
        """
        Add a node to the workflow.

        The first node added becomes the start node unless one is set
        explicitly.

        Returns:
            Self for chaining
        """
        if node_id in self.nodes:
            raise ValueError(f"Node '{node_id}' already exists in the workflow")

        self.nodes[node_id] = WorkflowNode(
            node_id=node_id,
            function_id=function_id,
            params=dict(params or {}),
            envs=dict(envs or {}),
            max_retries=max_retries,
            retry_delay_ms=retry_delay_ms,
            label=label,
        )

        if self.start_node is None:
            self.start_node = node_id

        return self

    def add_edge(self, source: str, target: str, action: str = DEFAULT_ACTION) -> "Workflow":
        """
        Connect source to target for the given action.

        Returns:
            Self for chaining
        """
        if source not in self.nodes:
            raise ValueError(f"Source node '{source}' not found in workflow")
        if target not in self.nodes:
            raise ValueError(f"Target node '{target}' not found in workflow")

        routes = self.edges.setdefault(source, {})
        if action in routes and routes[action] != target:
            raise ValueError(
                f"Node '{source}' already routes action '{action}' to '{routes[action]}'"
            )
        routes[action] = target
        return self

    def set_start_node(self, node_id: str) -> "Workflow":
        if node_id not in self.nodes:
            raise ValueError(f"Node '{node_id}' not found in workflow")
        self.start_node = node_id
        return self

    def get_next_node(self, node_id: str, action: str) -> Optional[str]:
        """Target of the edge leaving node_id for action, or None."""
        return self.edges.get(node_id, {}).get(action)

    def has_route(self, node_id: str, action: str) -> bool:
        return action in self.edges.get(node_id, {})

    def validate(self, registry=None) -> ValidationReport:
        """
        Validate the workflow structure.

        Args:
            registry: FunctionRegistry used to check function ids
                (the global registry if omitted)

        Returns:
            ValidationReport with errors and warnings
        """
        if registry is None:
            from tinyflow.registry import function_registry
            registry = function_registry

        report = ValidationReport()

        if not self.nodes:
            report.errors.append("Workflow must have at least one node")
            return report

        if not self.start_node:
            report.errors.append("Workflow must have a start node")
        elif self.start_node not in self.nodes:
            report.errors.append(f'Start node "{self.start_node}" does not exist')

        for node in self.nodes.values():
            if not registry.has(node.function_id):
                report.errors.append(
                    f'Node "{node.node_id}" references unknown function "{node.function_id}"'
                )

        for source, routes in self.edges.items():
            if source not in self.nodes:
                report.errors.append(f'Edge source node "{source}" does not exist')
            for action, target in routes.items():
                if target not in self.nodes:
                    report.errors.append(
                        f'Edge target node "{target}" ({source} --{action}-->) does not exist'
                    )

        if self.start_node in self.nodes:
            orphans = set(self.nodes) - self._get_reachable_nodes()
            for node_id in sorted(orphans):
                report.warnings.append(f'Node "{node_id}" is not reachable from the start node')

        return report

    def _get_reachable_nodes(self) -> Set[str]:
        """Get all nodes reachable from the start node."""
        reachable: Set[str] = set()
        to_visit = [self.start_node] if self.start_node else []

        while to_visit:
            node_id = to_visit.pop()
            if node_id in reachable or node_id not in self.nodes:
                continue
            reachable.add(node_id)
            to_visit.extend(self.edges.get(node_id, {}).values())

        return reachable

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the workflow to its JSON shape."""
        return {
            "id": self.workflow_id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "nodes": [node.to_dict() for node in self.nodes.values()],
            "edges": [
                {"from": source, "to": target, "action": action}
                for source, routes in self.edges.items()
                for action, target in routes.items()
            ],
            "flow": {"startNodeId": self.start_node, "envs": self.envs},
        }

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the workflow."""
        lines = ["graph TD"]

        for node_id, node in self.nodes.items():
            label = node.label or node.function_id
            if node_id == self.start_node:
                lines.append(f'    {node_id}["{label} (start)"]')
            else:
                lines.append(f'    {node_id}["{label}"]')

        for source, routes in self.edges.items():
            for action, target in routes.items():
                if action == DEFAULT_ACTION:
                    lines.append(f"    {source} --> {target}")
                else:
                    lines.append(f"    {source} -->|{action}| {target}")

        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"Workflow(name='{self.name}', nodes={list(self.nodes.keys())}, "
            f"start='{self.start_node}')"
        )
