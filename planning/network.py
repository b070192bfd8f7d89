# planning/network.py
"""
Network model (CPM): early/late times, total float and the critical path.

Times are day offsets from the project start (0), not calendar dates.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import List

from config import CRITICAL_FLOAT_EPSILON
from logger import logger
from planning.graph import DependencyGraph
from planning.models import TaskWithCPM, copy_task
from planning.rollup import group_children

VIEW_PLANNED = 'planned'
VIEW_ACTUAL = 'actual'


@dataclass
class NetworkModel:
    """Result of the network model calculation."""
    network: List[TaskWithCPM] = field(default_factory=list)
    critical_path: List[object] = field(default_factory=list)
    project_duration: float = 0


def prepare_tasks_for_view(tasks, view_mode=VIEW_PLANNED):
    """
    Adjusts task durations to the schedule being analysed.

    In the actual view a task's actual_duration replaces its duration when
    set. In the planned view actual data is stripped so that tracked tasks
    are analysed by their plan.

    Args:
        tasks: List of tasks
        view_mode: 'planned' or 'actual'

    Returns:
        New list of tasks
    """
    if view_mode == VIEW_ACTUAL:
        return [
            copy_task(task, duration=task.actual_duration) if task.actual_duration is not None else copy_task(task)
            for task in tasks
        ]
    if view_mode == VIEW_PLANNED:
        return [
            copy_task(task, actual_duration=None, actual_start_date=None, actual_end_date=None)
            for task in tasks
        ]
    raise ValueError(f"Unknown view mode: {view_mode}")


def calculate_network_parameters(tasks, dependencies, view_mode=VIEW_PLANNED, epsilon=CRITICAL_FLOAT_EPSILON):
    """
    Calculates the parameters of the network model.

    Args:
        tasks: List of tasks
        dependencies: List of dependencies
        view_mode: 'planned' or 'actual'
        epsilon: Float tolerance for zero total float

    Returns:
        NetworkModel with the tasks (input order), the ordered critical path
        ids and the project duration

    Raises:
        CyclicDependencyError: if the dependencies contain a cycle
    """
    if not tasks:
        logger.warning("No tasks for the network model")
        return NetworkModel()

    tasks = prepare_tasks_for_view(tasks, view_mode)
    network, graph, order = create_network_model(tasks, dependencies)

    calculate_early_times(network, graph, order)
    project_duration = get_project_duration(network)
    calculate_late_times(network, graph, order, project_duration)
    calculate_reserves(network)
    identify_critical_path(network, tasks, epsilon)

    critical_path = get_critical_path_sequence(network, dependencies)

    logger.info(f"Network model: {len(network)} tasks, project: {project_duration} days")
    logger.info(f"Critical path: {critical_path}")

    return NetworkModel(network=network, critical_path=critical_path, project_duration=project_duration)


def create_network_model(tasks, dependencies):
    """
    Creates the network model nodes and the dependency order.

    Container tasks stay in the model so that dependencies touching them
    are still honoured.

    Args:
        tasks: List of tasks
        dependencies: List of dependencies

    Returns:
        Tuple (network, graph, topological order of ids)
    """
    network = [TaskWithCPM.from_task(task) for task in tasks]
    graph = DependencyGraph([task.id for task in network], dependencies)
    order = graph.topological_sort()

    logger.debug(f"Network model created: {len(network)} tasks, {len(graph.edges)} dependencies")
    return network, graph, order


def calculate_early_times(network, graph, order):
    """
    Forward pass: earliest start and finish for every task.

    Tasks without predecessors start at 0, the others at the latest
    predecessor early finish plus lag.
    """
    tasks_by_id = {task.id: task for task in network}

    for task_id in order:
        task = tasks_by_id[task_id]
        predecessors = graph.predecessors[task_id]
        if predecessors:
            task.early_start = max(
                tasks_by_id[pred_id].early_finish + graph.lag(pred_id, task_id)
                for pred_id in predecessors
            )
        else:
            task.early_start = 0
        task.early_finish = task.early_start + task.duration

    return network


def calculate_late_times(network, graph, order, project_duration):
    """
    Backward pass: latest start and finish for every task.

    Tasks without successors finish at the project duration, the others at
    the earliest successor late start minus lag.
    """
    tasks_by_id = {task.id: task for task in network}

    for task_id in reversed(order):
        task = tasks_by_id[task_id]
        successors = graph.successors[task_id]
        if successors:
            task.late_finish = min(
                tasks_by_id[succ_id].late_start - graph.lag(task_id, succ_id)
                for succ_id in successors
            )
        else:
            task.late_finish = project_duration
        task.late_start = task.late_finish - task.duration

    return network


def calculate_reserves(network):
    """Total float = late start - early start."""
    for task in network:
        task.total_float = task.late_start - task.early_start
    return network


def identify_critical_path(network, tasks, epsilon=CRITICAL_FLOAT_EPSILON):
    """
    Marks critical tasks.

    A task is critical when its total float is zero (within epsilon) and it
    is a leaf. Container tasks are never critical.

    Returns:
        List of critical tasks sorted by early start
    """
    container_ids = set(group_children(tasks))
    critical_tasks = []

    for task in network:
        task.is_critical = abs(task.total_float) < epsilon and task.id not in container_ids
        if task.is_critical:
            critical_tasks.append(task)

    critical_tasks.sort(key=lambda x: x.early_start)
    return critical_tasks


def get_critical_tasks(network):
    """Tasks on the critical path, in network order."""
    return [task for task in network if task.is_critical]


def get_critical_path_sequence(network, dependencies):
    """
    Orders the critical tasks along their dependencies.

    Topological order over the critical tasks only; among tasks that are
    ready at the same time the smaller early start goes first.

    Args:
        network: Tasks with CPM parameters
        dependencies: List of dependencies

    Returns:
        List of task ids
    """
    critical = {task.id: task for task in network if task.is_critical}
    if not critical:
        return []

    graph = {task_id: [] for task_id in critical}
    in_degree = {task_id: 0 for task_id in critical}
    seen = set()
    for dependency in dependencies:
        key = (dependency.predecessor_id, dependency.successor_id)
        if key[0] in critical and key[1] in critical and key not in seen:
            seen.add(key)
            graph[key[0]].append(key[1])
            in_degree[key[1]] += 1

    queue = deque(task_id for task_id in critical if in_degree[task_id] == 0)
    sequence = []
    while queue:
        queue = deque(sorted(queue, key=lambda task_id: critical[task_id].early_start))
        task_id = queue.popleft()
        sequence.append(task_id)
        for neighbor in graph[task_id]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    return sequence


def get_project_duration(network):
    """Project duration = max early finish, 0 for an empty network."""
    if not network:
        return 0
    return max(task.early_finish for task in network)
