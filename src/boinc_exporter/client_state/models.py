"""
Client state data model.

Purpose:
    Immutable representation of the subset of ``client_state.xml`` the exporter
    publishes. Instances are rebuilt from disk on every scrape and discarded
    once their values have been copied into the metrics registry.
External Dependencies:
    None. Pure standard-library dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Result:
    """A scheduled unit of work known to the client.

    ``report_deadline`` and ``received_time`` are unix timestamps and are
    independent of each other.
    """

    name: str = ""
    report_deadline: float = 0.0
    received_time: float = 0.0
    version_number: int = 0


@dataclass(frozen=True)
class ActiveTask:
    """Checkpointed execution state of a result currently being computed."""

    name: str = ""
    fraction_done: float = 0.0
    elapsed_time: float = 0.0


@dataclass(frozen=True)
class ClientState:
    """Parsed snapshot of the client state file."""

    domain_name: str = ""
    results: tuple[Result, ...] = field(default_factory=tuple)
    active_tasks: tuple[ActiveTask, ...] = field(default_factory=tuple)

    @property
    def active_task_count(self) -> int:
        return len(self.active_tasks)

    def result_names(self) -> frozenset[str]:
        return frozenset(result.name for result in self.results)

    def active_task_names(self) -> frozenset[str]:
        return frozenset(task.name for task in self.active_tasks)


__all__ = ["ActiveTask", "ClientState", "Result"]
