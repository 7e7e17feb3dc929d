"""Compile classpath composition for Scala compile tasks."""

from __future__ import annotations

import logging
import os
import threading
import weakref
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, TypeVar

from scala.errors import GraphError

if TYPE_CHECKING:
    from scala.graph import BuildGraph, CompileTask

T = TypeVar("T")


def _dedupe(values: Iterable[T]) -> tuple[T, ...]:
    seen: set[T] = set()
    ordered: list[T] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return tuple(ordered)


class ClasspathResolver:
    """Composes the effective compile classpath of a task.

    The classpath starts with the source set's own host-resolved entries and
    its host-language classes directory. Every dependency task then
    contributes its Scala output directory, its host-language classes
    directory and, transitively, its own classpath. First occurrence wins,
    comparing normalized paths.

    Paths are symbolic: directories of dependencies that have not run yet are
    included as-is, since the graph edges order execution. Classpaths of a
    frozen graph are computed once per task and reused.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._cache: weakref.WeakKeyDictionary[BuildGraph, dict[str, tuple[Path, ...]]] = (
            weakref.WeakKeyDictionary()
        )
        self._cache_lock = threading.Lock()

    def resolve(self, task: CompileTask, graph: BuildGraph) -> tuple[Path, ...]:
        classpath = self._resolve(task, graph, (), self._cache_for(graph))
        self._logger.debug("Classpath for %s: %s", task.name, [str(p) for p in classpath])
        return classpath

    def _cache_for(self, graph: BuildGraph) -> dict[str, tuple[Path, ...]]:
        if not graph.frozen:
            return {}
        with self._cache_lock:
            return self._cache.setdefault(graph, {})

    def _resolve(
        self,
        task: CompileTask,
        graph: BuildGraph,
        visiting: tuple[str, ...],
        resolved: dict[str, tuple[Path, ...]],
    ) -> tuple[Path, ...]:
        cached = resolved.get(task.name)
        if cached is not None:
            return cached
        if task.name in visiting:
            raise GraphError(
                f"Cannot resolve the classpath of `{task.name}`: cycle through {' -> '.join(visiting)}"
            )

        entries: list[Path] = [
            *task.source_set.compile_classpath,
            task.source_set.host_classes_dir,
        ]
        for dep in graph.dependencies_of(task.name):
            entries.append(dep.destination_dir)
            entries.append(dep.source_set.host_classes_dir)
            entries.extend(self._resolve(dep, graph, (*visiting, task.name), resolved))
        classpath = _dedupe(Path(os.path.normpath(entry)) for entry in entries)
        resolved[task.name] = classpath
        return classpath
