from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from loguru import logger


@dataclass(frozen=True)
class Graph:
    """Directed candidate graph over participants.

    Vertices are dense indices into ``labels``; participant identifiers only
    appear at the boundary (``label``/``index``).
    """

    labels: Tuple[str, ...]
    candidates: Tuple[Tuple[int, ...], ...]
    index: Dict[str, int] = field(compare=False, repr=False)
    candidate_sets: Tuple[FrozenSet[int], ...] = field(compare=False, repr=False)

    @property
    def size(self) -> int:
        return len(self.labels)

    @property
    def vertices(self) -> range:
        return range(len(self.labels))

    def label(self, vertex: int) -> str:
        return self.labels[vertex]

    def candidate_labels(self, participant: str) -> List[str]:
        return [self.labels[v] for v in self.candidates[self.index[participant]]]

    def has_edge(self, giver: int, receiver: int) -> bool:
        return receiver in self.candidate_sets[giver]


def _unique(participants: Sequence[str]) -> List[str]:
    return list(dict.fromkeys(participants))


def build_graph(
    participants: Sequence[str],
    exclusions: Optional[Mapping[str, Sequence[str]]] = None,
    forced_pairs: Optional[Mapping[str, str]] = None,
) -> Graph:
    labels = _unique(participants)
    index = {label: position for position, label in enumerate(labels)}
    exclusions = exclusions or {}
    forced_pairs = forced_pairs or {}

    candidates: List[Tuple[int, ...]] = []
    for giver in labels:
        if giver in forced_pairs:
            target = index.get(forced_pairs[giver])
            candidates.append((target,) if target is not None else ())
            continue

        excluded = set(exclusions.get(giver) or ())
        candidates.append(
            tuple(
                index[receiver]
                for receiver in labels
                if receiver != giver and receiver not in excluded
            )
        )

    return Graph(
        labels=tuple(labels),
        candidates=tuple(candidates),
        index=index,
        candidate_sets=tuple(frozenset(items) for items in candidates),
    )


def validate_constraints(
    participants: Sequence[str],
    exclusions: Optional[Mapping[str, Sequence[str]]] = None,
    forced_pairs: Optional[Mapping[str, str]] = None,
) -> List[str]:
    """Return human-readable warnings for suspicious constraint combinations.

    None of these stop generation; the graph builder applies its usual rules
    (a forced pair always wins over exclusions).
    """
    known = set(participants)
    exclusions = exclusions or {}
    forced_pairs = forced_pairs or {}
    warnings: List[str] = []

    for giver, receivers in exclusions.items():
        if giver not in known:
            warnings.append(f"Exclusion for unknown participant {giver} is ignored.")
            continue
        for receiver in receivers or ():
            if receiver not in known:
                warnings.append(f"Exclusion {giver} -> {receiver} names an unknown participant.")

    for giver, receiver in forced_pairs.items():
        if giver not in known:
            warnings.append(f"Forced pair for unknown participant {giver} is ignored.")
            continue
        if receiver not in known:
            warnings.append(
                f"Forced pair {giver} -> {receiver} names an unknown participant; {giver} cannot be assigned."
            )
        elif receiver == giver:
            warnings.append(f"Forced pair {giver} -> {receiver} points a participant at themself.")
        if receiver in (exclusions.get(giver) or ()):
            warnings.append(
                f"Forced pair {giver} -> {receiver} is also excluded; the forced pair takes precedence."
            )

    for warning in warnings:
        logger.warning("Constraint warning: {warning}", warning=warning)
    return warnings
