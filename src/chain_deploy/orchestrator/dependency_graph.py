"""Dependency graph of deployable units built from argument references."""

from typing import Dict, List, Set, Optional, Tuple
from dataclasses import dataclass
from collections import defaultdict

from chain_deploy.plan.models import DeployableUnit, DeploymentPlan


@dataclass
class DependencyNode:
    """Node in the dependency graph."""

    name: str
    dependencies: Set[str]  # Unit names this node references
    position: int  # Index in the plan's declared order


class DependencyGraph:
    """Directed graph of unit references. Edges point from dependency to dependent."""

    def __init__(self):
        """Initialize empty dependency graph."""
        self.nodes: Dict[str, DependencyNode] = {}
        self._adjacency_list: Dict[str, Set[str]] = defaultdict(set)

    @classmethod
    def from_plan(cls, plan: DeploymentPlan) -> "DependencyGraph":
        """Build the graph from a plan's units.

        Later duplicates of a name are ignored; duplicate detection is the
        planner's job.
        """
        graph = cls()
        for unit in plan.units:
            if not graph.has_unit(unit.name):
                graph.add_unit(unit)
        return graph

    def add_unit(self, unit: DeployableUnit) -> None:
        """Add a unit and the edges from every unit it references."""
        dependencies = set(unit.references())
        self.nodes[unit.name] = DependencyNode(
            name=unit.name,
            dependencies=dependencies,
            position=len(self.nodes)
        )
        for dep_name in dependencies:
            self._adjacency_list[dep_name].add(unit.name)

    def has_unit(self, name: str) -> bool:
        """Check if a unit exists in the graph."""
        return name in self.nodes

    def missing_dependencies(self) -> List[Tuple[str, str]]:
        """List (unit, reference) pairs whose reference is not a unit in the graph."""
        missing = []
        for node in self._ordered_nodes():
            for dep_name in sorted(node.dependencies):
                if dep_name not in self.nodes:
                    missing.append((node.name, dep_name))
        return missing

    def detect_circular_dependencies(self) -> Optional[List[str]]:
        """Detect circular references in the graph.

        Returns:
            List of unit names forming a cycle (first name repeated at the
            end), or None if no cycle exists
        """
        # White (0): unvisited, Gray (1): visiting, Black (2): visited
        color = {name: 0 for name in self.nodes}
        parent = {}

        def dfs(name: str) -> Optional[List[str]]:
            color[name] = 1

            for dependent in sorted(self._adjacency_list[name]):
                if color[dependent] == 1:
                    # Back edge, walk parents to rebuild the cycle
                    cycle = [dependent]
                    current = name
                    while current != dependent:
                        cycle.append(current)
                        current = parent.get(current)
                        if current is None:
                            break
                    cycle.append(dependent)
                    return list(reversed(cycle))

                if color[dependent] == 0:
                    parent[dependent] = name
                    cycle = dfs(dependent)
                    if cycle:
                        return cycle

            color[name] = 2
            return None

        for node in self._ordered_nodes():
            if color[node.name] == 0:
                cycle = dfs(node.name)
                if cycle:
                    return cycle

        return None

    def _ordered_nodes(self) -> List[DependencyNode]:
        return sorted(self.nodes.values(), key=lambda node: node.position)
