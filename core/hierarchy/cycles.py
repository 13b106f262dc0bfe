"""
Circular reference detection in the reporting graph.

A member's reporting edges form a forest. Before a member is pointed at a new
supervisor, the chain above that supervisor is walked: if it reaches the
member, the new edge would close a loop.

The detector reads whatever graph it is given. Callers editing the hierarchy
concurrently must hand it a consistent snapshot (see MemberStore.snapshot),
otherwise a concurrent write can invalidate the answer.
"""
from typing import Mapping, Optional, Protocol

from .types import ValidationResult


class ReportingGraph(Protocol):
    """Read access to reporting edges."""

    def reporting_to(self, member_id: int) -> Optional[int]:
        """Id of the member `member_id` reports to, or None at a root."""
        ...


class SnapshotGraph:
    """ReportingGraph over an in-memory {member_id: reporting_to_id} mapping."""

    def __init__(self, edges: Mapping[int, Optional[int]]):
        self._edges = dict(edges)

    def reporting_to(self, member_id: int) -> Optional[int]:
        return self._edges.get(member_id)

    def __contains__(self, member_id: int) -> bool:
        return member_id in self._edges

    def with_edge(self, member_id: int, reporting_to: Optional[int]) -> "SnapshotGraph":
        """Copy of this graph with one edge replaced."""
        edges = dict(self._edges)
        edges[member_id] = reporting_to
        return SnapshotGraph(edges)


class CircularReferenceDetector:
    """Rejects reporting edges that would create (or extend) a cycle."""

    def __init__(self, graph: ReportingGraph):
        self._graph = graph

    def detect(self, member_id: int, proposed_supervisor_id: Optional[int]) -> ValidationResult:
        result = ValidationResult()

        if proposed_supervisor_id is None:
            return result

        if proposed_supervisor_id == member_id:
            result.add_error("Devotee cannot report to themselves")
            return result

        visited: set[int] = set()
        current: Optional[int] = proposed_supervisor_id

        while current is not None:
            if current == member_id:
                result.add_error(
                    "Circular reference detected: new supervisor is already reporting to this devotee"
                )
                return result
            if current in visited:
                result.add_error(
                    f"Circular reference detected: reporting chain above devotee "
                    f"{proposed_supervisor_id} already loops at devotee {current}"
                )
                return result
            visited.add(current)
            current = self._graph.reporting_to(current)

        return result
