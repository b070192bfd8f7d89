"""
Dependency graph shared by date propagation and the network model.
"""
from collections import deque
import logging
import warnings

from planning.errors import CyclicDependencyError, DanglingDependencyWarning, SelfDependencyError

logger = logging.getLogger(__name__)


class DependencyGraph:
    """
    Adjacency views over a flat dependency list.

    Attributes:
        task_ids: Task ids in input order
        successors: predecessor id -> list of successor ids
        predecessors: successor id -> list of predecessor ids
        edges: (predecessor id, successor id) -> Dependency
    """

    def __init__(self, task_ids, dependencies):
        self.task_ids = list(dict.fromkeys(task_ids))
        known = set(self.task_ids)

        self.successors = {task_id: [] for task_id in self.task_ids}
        self.predecessors = {task_id: [] for task_id in self.task_ids}
        self.edges = {}
        self.skipped = []

        for dependency in dependencies:
            pred_id = dependency.predecessor_id
            succ_id = dependency.successor_id

            if pred_id not in known or succ_id not in known:
                warnings.warn(
                    f"Dependency {pred_id} -> {succ_id} references a missing task, skipped",
                    DanglingDependencyWarning,
                    stacklevel=2,
                )
                self.skipped.append(dependency)
                continue

            key = (pred_id, succ_id)
            existing = self.edges.get(key)
            if existing is not None:
                # Duplicate edge: the larger lag wins
                if (dependency.lag or 0) > (existing.lag or 0):
                    self.edges[key] = dependency
                continue

            self.edges[key] = dependency
            self.successors[pred_id].append(succ_id)
            self.predecessors[succ_id].append(pred_id)

    def lag(self, predecessor_id, successor_id):
        """Lag of the edge in business days, 0 if the edge has none."""
        dependency = self.edges.get((predecessor_id, successor_id))
        if dependency is None:
            return 0
        return dependency.lag or 0

    def topological_sort(self):
        """
        Orders task ids so that every predecessor comes before its successors.

        Kahn's algorithm; ties keep the input order.

        Returns:
            List of task ids

        Raises:
            CyclicDependencyError: when some tasks cannot be ordered
        """
        in_degree = {task_id: len(self.predecessors[task_id]) for task_id in self.task_ids}
        queue = deque(task_id for task_id in self.task_ids if in_degree[task_id] == 0)
        order = []

        while queue:
            task_id = queue.popleft()
            order.append(task_id)
            for successor_id in self.successors[task_id]:
                in_degree[successor_id] -= 1
                if in_degree[successor_id] == 0:
                    queue.append(successor_id)

        if len(order) < len(self.task_ids):
            blocked = [task_id for task_id in self.task_ids if in_degree[task_id] > 0]
            logger.error(f"Circular dependencies detected: {len(order)} of {len(self.task_ids)} "
                         f"tasks ordered, blocked: {blocked}")
            raise CyclicDependencyError(
                f"Circular dependencies detected between tasks {blocked}",
                task_ids=blocked,
            )

        return order


def topological_sort(task_ids, dependencies):
    """Shortcut for DependencyGraph(task_ids, dependencies).topological_sort()."""
    return DependencyGraph(task_ids, dependencies).topological_sort()


def _successor_map(edges):
    graph = {}
    for pred_id, succ_id in edges:
        graph.setdefault(pred_id, []).append(succ_id)
    return graph


def _edge_pair(edge):
    if isinstance(edge, tuple):
        return edge
    return edge.predecessor_id, edge.successor_id


def find_cycle_path(new_edge, existing_edges):
    """
    Looks for a cycle created by adding `new_edge` to the graph.

    Depth-first search from the new edge's predecessor with an explicit
    stack of (node, successor iterator) frames; a node met again while it is
    still on the recursion stack closes a cycle.

    Args:
        new_edge: Dependency or (predecessor id, successor id)
        existing_edges: Dependencies or (predecessor id, successor id) pairs

    Returns:
        List of task ids forming the cycle (first id repeated at the end),
        or None when there is no cycle
    """
    pred_id, succ_id = _edge_pair(new_edge)
    if pred_id == succ_id:
        return [pred_id, succ_id]

    graph = _successor_map(_edge_pair(edge) for edge in existing_edges)
    graph.setdefault(pred_id, []).append(succ_id)

    visited = {pred_id}
    on_stack = [pred_id]
    on_stack_set = {pred_id}
    frames = [(pred_id, iter(graph.get(pred_id, [])))]

    while frames:
        node, successors = frames[-1]
        advanced = False
        for neighbor in successors:
            if neighbor in on_stack_set:
                start = on_stack.index(neighbor)
                return on_stack[start:] + [neighbor]
            if neighbor not in visited:
                visited.add(neighbor)
                on_stack.append(neighbor)
                on_stack_set.add(neighbor)
                frames.append((neighbor, iter(graph.get(neighbor, []))))
                advanced = True
                break
        if not advanced:
            frames.pop()
            on_stack.pop()
            on_stack_set.discard(node)

    return None


def detect_cycle(new_edge, existing_edges):
    """
    Checks whether adding `new_edge` to `existing_edges` would create a cycle.

    Self-loops always count as a cycle.

    Args:
        new_edge: Dependency or (predecessor id, successor id)
        existing_edges: Dependencies or (predecessor id, successor id) pairs

    Returns:
        True if the new edge closes a cycle
    """
    return find_cycle_path(new_edge, existing_edges) is not None


def validate_new_dependency(predecessor_id, successor_id, existing_edges):
    """
    Rejects a dependency that would make the graph cyclic.

    Args:
        predecessor_id: Id of the task that must finish first
        successor_id: Id of the dependent task
        existing_edges: Current dependencies of the project

    Raises:
        SelfDependencyError: if both ids are the same task
        CyclicDependencyError: if the new edge closes a cycle
    """
    if predecessor_id == successor_id:
        raise SelfDependencyError(
            f"Task {predecessor_id} cannot depend on itself",
            task_ids=[predecessor_id],
        )

    cycle = find_cycle_path((predecessor_id, successor_id), existing_edges)
    if cycle is not None:
        path = ' -> '.join(str(task_id) for task_id in cycle)
        logger.warning(f"Rejected dependency {predecessor_id} -> {successor_id}: cycle {path}")
        raise CyclicDependencyError(f"Circular dependency: {path}", task_ids=cycle[:-1])
