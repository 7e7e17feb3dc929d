"""Host scheduler interface and an in-process implementation of it."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Protocol

import networkx as nx

from scala.errors import GraphError, ScalaBuildError
from scala.executor import CompileResult, CompileStatus

TaskAction = Callable[[], CompileResult]


class HostScheduler(Protocol):
    def register_task(
        self,
        name: str,
        depends_on: Iterable[str],
        inputs: Iterable[Path],
        outputs: Iterable[Path],
        action: TaskAction,
    ) -> None: ...


@dataclass(frozen=True)
class RegisteredTask:
    name: str
    depends_on: tuple[str, ...]
    inputs: Iterable[Path]
    outputs: tuple[Path, ...]
    action: TaskAction


@dataclass
class BuildOutcome:
    results: dict[str, CompileResult] = field(default_factory=dict)
    first_failure: CompileResult | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.first_failure is None and not self.cancelled and not self.not_attempted

    @property
    def not_attempted(self) -> frozenset[str]:
        return frozenset(
            name for name, result in self.results.items() if result.status is CompileStatus.NOT_ATTEMPTED
        )

    def status(self, name: str) -> CompileStatus:
        return self.results[name].status


class LocalScheduler:
    """Runs registered tasks in dependency order on a thread pool.

    Dependencies on names that were never registered (host-language compile
    tasks, for instance) are considered satisfied by the host. A task whose
    dependency failed is not attempted, nor is anything downstream of it.
    """

    def __init__(
        self,
        max_workers: int | None = None,
        cancel_event: threading.Event | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._max_workers = max_workers
        self._cancel_event = cancel_event or threading.Event()
        self._logger = logger or logging.getLogger(__name__)
        self._tasks: dict[str, RegisteredTask] = {}

    @property
    def tasks(self) -> dict[str, RegisteredTask]:
        return dict(self._tasks)

    def register_task(
        self,
        name: str,
        depends_on: Iterable[str],
        inputs: Iterable[Path],
        outputs: Iterable[Path],
        action: TaskAction,
    ) -> None:
        if name in self._tasks:
            raise GraphError(f"Task `{name}` is already registered.")
        self._tasks[name] = RegisteredTask(
            name=name,
            depends_on=tuple(depends_on),
            inputs=inputs,
            outputs=tuple(outputs),
            action=action,
        )

    def cancel(self) -> None:
        self._cancel_event.set()

    def run(self, targets: Iterable[str] | None = None) -> BuildOutcome:
        selected = self._select(targets)
        deps = {
            name: tuple(dep for dep in self._tasks[name].depends_on if dep in self._tasks)
            for name in selected
        }

        outcome = BuildOutcome()
        pending = list(selected)
        running: dict[Future[CompileResult], str] = {}

        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            while pending or running:
                if not self._cancel_event.is_set():
                    for name in list(pending):
                        if all(dep in outcome.results and outcome.results[dep].ok for dep in deps[name]):
                            pending.remove(name)
                            self._logger.debug("Starting %s", name)
                            running[pool.submit(self._tasks[name].action)] = name

                if not running:
                    break

                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    name = running.pop(future)
                    result = self._result_of(name, future)
                    outcome.results[name] = result
                    if not result.ok and outcome.first_failure is None:
                        outcome.first_failure = result

        for name in pending:
            outcome.results[name] = CompileResult(name, CompileStatus.NOT_ATTEMPTED)
        outcome.cancelled = self._cancel_event.is_set()
        if outcome.not_attempted:
            self._logger.warning("Not attempted: %s", ", ".join(sorted(outcome.not_attempted)))
        return outcome

    def _result_of(self, name: str, future: Future[CompileResult]) -> CompileResult:
        try:
            return future.result()
        except Exception as e:
            self._logger.exception("%s raised an unexpected error", name)
            error = ScalaBuildError(f"Task `{name}` failed unexpectedly: {e!r}")
            error.__cause__ = e
            return CompileResult(name, CompileStatus.FAILED, error=error)

    def _select(self, targets: Iterable[str] | None) -> list[str]:
        graph = nx.DiGraph()
        for task in self._tasks.values():
            graph.add_node(task.name)
            for dep in task.depends_on:
                if dep in self._tasks:
                    graph.add_edge(dep, task.name)
        if not nx.is_directed_acyclic_graph(graph):
            raise GraphError("Registered tasks contain a dependency cycle.")

        if targets is None:
            return list(nx.lexicographical_topological_sort(graph))

        wanted: set[str] = set()
        for target in targets:
            if target not in self._tasks:
                raise GraphError(f"Unknown task `{target}`.")
            wanted.add(target)
            wanted.update(nx.ancestors(graph, target))
        return [name for name in nx.lexicographical_topological_sort(graph) if name in wanted]
