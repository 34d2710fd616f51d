from __future__ import annotations

import heapq
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from math import inf, isinf

EdgeCostFn = Callable[[str, str], float]


@dataclass(frozen=True)
class SearchResult:
    distances: dict[str, float]
    predecessors: dict[str, str | None]
    visited: frozenset[str]
    reached_goal: bool

    def distance_to(self, node: str) -> float:
        return self.distances.get(node, inf)


def dijkstra_search(
    *,
    adjacency: Mapping[str, Sequence[str]],
    start: str,
    goal: str,
    cost_fn: EdgeCostFn,
) -> SearchResult:
    """Single-pair Dijkstra over ``adjacency`` with costs computed on demand.

    The frontier is a binary heap with lazy deletion. Entries with equal
    tentative distance pop in push order, which follows adjacency iteration
    order, so results are deterministic; which of several equal-cost paths wins
    is otherwise unspecified.
    """
    distances: dict[str, float] = {node: inf for node in adjacency}
    predecessors: dict[str, str | None] = {node: None for node in adjacency}
    distances[start] = 0.0
    predecessors[start] = None

    visited: set[str] = set()
    push_seq = 0
    heap: list[tuple[float, int, str]] = [(0.0, push_seq, start)]
    reached_goal = False

    while heap:
        cost, _, node = heapq.heappop(heap)
        if node in visited or cost > distances.get(node, inf):
            continue
        if node == goal:
            reached_goal = True
            break
        visited.add(node)

        for nxt in adjacency.get(node, ()):
            if nxt in visited:
                continue
            edge = cost_fn(node, nxt)
            if isinf(edge):
                continue
            candidate = cost + max(0.0, float(edge))
            if candidate < distances.get(nxt, inf):
                distances[nxt] = candidate
                predecessors[nxt] = node
                push_seq += 1
                heapq.heappush(heap, (candidate, push_seq, nxt))

    return SearchResult(
        distances=distances,
        predecessors=predecessors,
        visited=frozenset(visited),
        reached_goal=reached_goal,
    )
