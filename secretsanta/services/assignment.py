from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Set

from loguru import logger

from secretsanta.services.graph import Graph, build_graph


class AssignmentError(RuntimeError):
    pass


class SearchBudgetExceeded(AssignmentError):
    def __init__(self, max_steps: int) -> None:
        super().__init__(f"Cycle search gave up after {max_steps} steps.")
        self.max_steps = max_steps


@dataclass(frozen=True)
class Pair:
    giver: str
    receiver: str

    def as_dict(self) -> Dict[str, str]:
        return {"from": self.giver, "to": self.receiver}


@dataclass(frozen=True)
class PairingOutcome:
    pairs: List[Pair]
    complete: bool
    budget_exhausted: bool = False

    def as_mapping(self) -> Dict[str, str]:
        return {pair.giver: pair.receiver for pair in self.pairs}


@dataclass
class TourState:
    """Partial tour plus one candidate cursor per path position.

    The cursor at depth ``d`` is the index of the next candidate of
    ``path[d]`` still to be tried, which lets the search backtrack without
    recursion.
    """

    start: int
    path: List[int] = field(default_factory=list)
    visited: Set[int] = field(default_factory=set)
    cursors: List[int] = field(default_factory=list)

    @classmethod
    def starting_at(cls, start: int) -> "TourState":
        state = cls(start=start)
        state.push(start)
        return state

    @property
    def current(self) -> int:
        return self.path[-1]

    def is_complete(self, total: int) -> bool:
        return len(self.path) == total

    def is_visited(self, vertex: int) -> bool:
        return vertex in self.visited

    def push(self, vertex: int) -> None:
        self.path.append(vertex)
        self.visited.add(vertex)
        self.cursors.append(0)

    def pop(self) -> Optional[int]:
        # the start vertex is never removed
        if len(self.path) <= 1:
            return None
        vertex = self.path.pop()
        self.visited.discard(vertex)
        self.cursors.pop()
        return vertex

    def next_candidate(self, graph: Graph) -> Optional[int]:
        options = graph.candidates[self.current]
        cursor = self.cursors[-1]
        while cursor < len(options):
            candidate = options[cursor]
            cursor += 1
            if candidate not in self.visited:
                self.cursors[-1] = cursor
                return candidate
        self.cursors[-1] = cursor
        return None


class _StepBudget:
    def __init__(self, max_steps: Optional[int]) -> None:
        self.max_steps = max_steps
        self.steps = 0

    def tick(self) -> None:
        self.steps += 1
        if self.max_steps is not None and self.steps > self.max_steps:
            raise SearchBudgetExceeded(self.max_steps)


def can_likely_satisfy(graph: Graph, remaining: Set[int], tail: int, start: int) -> bool:
    """Heuristic prune: necessary, not sufficient.

    ``tail`` is the vertex about to be appended and ``remaining`` the vertices
    still unvisited after it. Returns False only when the branch provably
    cannot close into a cycle: the tail has no unvisited successor, some
    remaining vertex has no successor left (the start counts, it closes the
    tour), or some remaining vertex can no longer be reached. True says
    nothing about whether a cycle actually exists.
    """
    if not remaining:
        return True

    tail_successors = graph.candidate_sets[tail] & remaining
    if not tail_successors:
        return False

    exits = remaining | {start}
    reachable = set(tail_successors)
    for vertex in remaining:
        successors = (graph.candidate_sets[vertex] & exits) - {vertex}
        if not successors:
            return False
        reachable |= successors & remaining
    return reachable >= remaining


def _search_from(graph: Graph, start: int, budget: _StepBudget) -> Optional[List[int]]:
    total = graph.size
    all_vertices = set(graph.vertices)
    state = TourState.starting_at(start)

    while True:
        if state.is_complete(total):
            if graph.has_edge(state.current, start):
                return list(state.path)
            if state.pop() is None:
                return None
            continue

        candidate = state.next_candidate(graph)
        if candidate is None:
            if state.pop() is None:
                return None
            continue

        budget.tick()
        remaining = all_vertices - state.visited - {candidate}
        if not can_likely_satisfy(graph, remaining, candidate, start):
            continue
        state.push(candidate)


def find_cycle(graph: Graph, max_steps: Optional[int] = None) -> Optional[List[int]]:
    """Search for a Hamiltonian cycle, trying start vertices in order.

    Returns the visiting order or None when no cycle exists. Raises
    SearchBudgetExceeded once more than ``max_steps`` candidate moves have
    been tried across all start vertices.
    """
    budget = _StepBudget(max_steps)
    for start in graph.vertices:
        path = _search_from(graph, start, budget)
        if path is not None:
            logger.bind(start=graph.label(start), steps=budget.steps).info(
                "Found gift cycle"
            )
            return path
    logger.bind(steps=budget.steps).info("No gift cycle exists for this graph")
    return None


def cycle_to_pairs(graph: Graph, path: Sequence[int]) -> List[Pair]:
    return [
        Pair(graph.label(giver), graph.label(path[(position + 1) % len(path)]))
        for position, giver in enumerate(path)
    ]


def fallback_assignment(graph: Graph) -> List[Pair]:
    pairs: List[Pair] = []
    used: Set[int] = set()
    for giver in graph.vertices:
        receiver = next((r for r in graph.candidates[giver] if r not in used), None)
        if receiver is None:
            continue
        used.add(receiver)
        pairs.append(Pair(graph.label(giver), graph.label(receiver)))

    logger.info(
        "Fallback assignment created {assigned} pairs out of {total}",
        assigned=len(pairs),
        total=graph.size,
    )
    return pairs


def generate_pairs(graph: Graph, max_steps: Optional[int] = None) -> PairingOutcome:
    if graph.size == 0:
        return PairingOutcome(pairs=[], complete=False)

    budget_exhausted = False
    try:
        cycle = find_cycle(graph, max_steps)
    except SearchBudgetExceeded as exc:
        logger.bind(participants=graph.size).warning("{error}", error=str(exc))
        cycle = None
        budget_exhausted = True

    if cycle is not None:
        return PairingOutcome(pairs=cycle_to_pairs(graph, cycle), complete=True)

    logger.warning("No valid gift cycle found, falling back to best-effort assignment")
    return PairingOutcome(
        pairs=fallback_assignment(graph),
        complete=False,
        budget_exhausted=budget_exhausted,
    )


def assign(
    participants: Sequence[str],
    exclusions: Optional[Mapping[str, Sequence[str]]] = None,
    forced_pairs: Optional[Mapping[str, str]] = None,
    max_steps: Optional[int] = None,
) -> PairingOutcome:
    graph = build_graph(participants, exclusions, forced_pairs)
    return generate_pairs(graph, max_steps=max_steps)
