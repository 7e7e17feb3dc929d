"""Compile task derivation and the build graph.

Uses NetworkX for acyclicity validation and topological ordering. Edges point
from a dependency to its dependent, so a topological sort yields an execution
order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

import networkx as nx

from scala.classpath import ClasspathResolver
from scala.errors import GraphError
from scala.settings import ScalaSettings
from scala.source_sets import (
    SCALA_LANGUAGE,
    SourceSet,
    SourceSetKind,
    SourceSetRegistry,
)

if TYPE_CHECKING:
    from scala.executor import CompileExecutor
    from scala.scheduler import HostScheduler

HOST_LANGUAGE = "java"


@dataclass
class CompileTask:
    name: str
    source_set: SourceSet
    sources: tuple[Path, ...]
    destination_dir: Path
    scala_version: str
    scalac_jars: tuple[Path, ...]
    depends_on: list[str] = field(default_factory=list)
    host_depends_on: list[str] = field(default_factory=list)
    description: str = ""

    @property
    def source_set_name(self) -> str:
        return self.source_set.name

    @property
    def host_task_name(self) -> str:
        return self.source_set.task_name("compile", HOST_LANGUAGE)


class BuildGraph:
    """All compile tasks of one build invocation plus their dependency edges."""

    def __init__(self) -> None:
        self._graph: nx.DiGraph = nx.DiGraph()
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def __contains__(self, name: object) -> bool:
        return self._graph.has_node(name)

    def add_task(self, task: CompileTask) -> None:
        self._check_mutable()
        if self._graph.has_node(task.name):
            existing = self._graph.nodes[task.name]["task"]
            raise GraphError(
                f"Duplicate task name `{task.name}` derived for source sets "
                f"`{existing.source_set_name}` and `{task.source_set_name}`."
            )
        self._graph.add_node(task.name, task=task)

    def add_dependency(self, task_name: str, depends_on: str) -> None:
        self._check_mutable()
        task = self.get_task(task_name)
        if depends_on not in task.depends_on:
            task.depends_on.append(depends_on)

    def get_task(self, name: str) -> CompileTask:
        if not self._graph.has_node(name):
            raise GraphError(f"Unknown task `{name}`.")
        return self._graph.nodes[name]["task"]

    def tasks(self) -> tuple[CompileTask, ...]:
        return tuple(data["task"] for _, data in self._graph.nodes(data=True))

    def task_for(self, source_set_name: str) -> CompileTask:
        for task in self.tasks():
            if task.source_set_name == source_set_name:
                return task
        raise GraphError(f"No compile task exists for source set `{source_set_name}`.")

    def dependencies_of(self, name: str) -> tuple[CompileTask, ...]:
        """Direct dependencies of a task, in edge declaration order."""
        return tuple(self.get_task(dep) for dep in self.get_task(name).depends_on)

    def dependents_of(self, name: str) -> frozenset[str]:
        """Every task that transitively depends on `name`."""
        self.get_task(name)
        return frozenset(nx.descendants(self._graph, name))

    def has_edge(self, task_name: str, depends_on: str) -> bool:
        return depends_on in self.get_task(task_name).depends_on

    def validate(self) -> None:
        """Check that every edge target exists and that the graph is acyclic.

        Raises:
            GraphError: If an edge is dangling or the graph contains a cycle.
        """
        self._graph.remove_edges_from(list(self._graph.edges()))
        for task in self.tasks():
            for dep in task.depends_on:
                if not self._graph.has_node(dep):
                    raise GraphError(f"Task `{task.name}` depends on unknown task `{dep}`.")
                self._graph.add_edge(dep, task.name)

        if not nx.is_directed_acyclic_graph(self._graph):
            try:
                cycle = nx.find_cycle(self._graph)
                cycle_str = " -> ".join(edge[0] for edge in cycle)
                raise GraphError(f"Compile tasks contain a cycle: {cycle_str} -> {cycle[0][0]}")
            except nx.NetworkXNoCycle:
                raise GraphError("Compile tasks contain a cycle") from None

    def freeze(self) -> None:
        self.validate()
        self._frozen = True

    def topological_order(self) -> tuple[CompileTask, ...]:
        try:
            order = nx.lexicographical_topological_sort(self._graph)
            return tuple(self.get_task(name) for name in order)
        except nx.NetworkXUnfeasible as e:
            raise GraphError(f"Cannot sort compile tasks: {e}") from e

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphError("The build graph is frozen and can no longer be modified.")


class TaskGraphBuilder:
    """Derives one Scala compile task per source set and wires their edges."""

    def __init__(
        self,
        settings: ScalaSettings,
        scalac_jars: Iterable[Path | str] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self._settings = settings
        self._scalac_jars = tuple(Path(jar) for jar in scalac_jars)
        self._logger = logger or logging.getLogger(__name__)
        self._declared: list[tuple[str, str]] = []

    def declare_dependency(self, source_set: str, on: str) -> None:
        """Add an edge beyond the kind-based defaults, e.g. `integrationTest` on `main`."""
        if (source_set, on) not in self._declared:
            self._declared.append((source_set, on))

    def build(self, registry: SourceSetRegistry) -> BuildGraph:
        self._settings.validate()
        registry.finalize()

        graph = BuildGraph()
        for source_set in registry.list():
            graph.add_task(self._derive_task(registry, source_set))

        main = registry.find(SourceSetKind.MAIN)
        for task in graph.tasks():
            if task.source_set.kind is SourceSetKind.TEST and main is not None:
                graph.add_dependency(task.name, graph.task_for(main.name).name)

        for source_set_name, on in self._declared:
            if source_set_name not in registry:
                raise GraphError(f"Cannot declare a dependency for unknown source set `{source_set_name}`.")
            if on not in registry:
                raise GraphError(f"Source set `{source_set_name}` cannot depend on unknown source set `{on}`.")
            graph.add_dependency(graph.task_for(source_set_name).name, graph.task_for(on).name)

        # A dependency's host-language classes are on the classpath too.
        for task in graph.tasks():
            for dep in graph.dependencies_of(task.name):
                if dep.host_task_name not in task.host_depends_on:
                    task.host_depends_on.append(dep.host_task_name)

        graph.freeze()
        self._logger.debug("Built compile graph with %d task(s)", len(graph))
        return graph

    def register(
        self,
        graph: BuildGraph,
        scheduler: HostScheduler,
        executor: CompileExecutor,
        resolver: ClasspathResolver | None = None,
    ) -> None:
        resolver = resolver or ClasspathResolver(logger=self._logger)
        for task in graph.topological_order():
            scheduler.register_task(
                task.name,
                (*task.depends_on, *task.host_depends_on),
                _TaskInputs(task, graph, resolver),
                (task.destination_dir,),
                _compile_action(task, graph, resolver, executor),
            )

    def _derive_task(self, registry: SourceSetRegistry, source_set: SourceSet) -> CompileTask:
        directories = registry.scala(source_set.name)
        return CompileTask(
            name=source_set.task_name("compile", SCALA_LANGUAGE),
            source_set=source_set,
            sources=directories.source_files(),
            destination_dir=directories.output_dir,
            scala_version=self._settings.version,
            scalac_jars=self._scalac_jars,
            host_depends_on=[source_set.task_name("compile", HOST_LANGUAGE)],
            description=f"Compiles {source_set.name} Scala source.",
        )


class _TaskInputs:
    """Lazily evaluated input files of a task: its sources plus its classpath."""

    def __init__(self, task: CompileTask, graph: BuildGraph, resolver: ClasspathResolver) -> None:
        self._task = task
        self._graph = graph
        self._resolver = resolver

    def __iter__(self):
        yield from self._task.sources
        yield from self._resolver.resolve(self._task, self._graph)


def _compile_action(
    task: CompileTask,
    graph: BuildGraph,
    resolver: ClasspathResolver,
    executor: CompileExecutor,
):
    def action():
        return executor.execute(task, resolver.resolve(task, graph))

    return action
