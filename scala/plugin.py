"""Applies Scala compilation to a project outside of Pants."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Iterable, Sequence

from scala.classpath import ClasspathResolver
from scala.compiler import CompilerInstanceLoader
from scala.errors import ConfigurationError
from scala.executor import CompileExecutor
from scala.graph import BuildGraph, TaskGraphBuilder
from scala.ide import IdeModuleMetadata, ide_metadata
from scala.scheduler import BuildOutcome, HostScheduler, LocalScheduler
from scala.settings import ScalaSettings
from scala.source_sets import SourceSetRegistry

DependencyResolver = Callable[[Sequence[str]], Iterable[Path]]


class ScalaPlugin:
    """Wires source sets, the compile graph and the compiler toolchain together.

    The scalac classpath is either given directly or obtained by handing the
    toolchain coordinates to `dependency_resolver`, which is expected to
    return local files or raise.
    """

    def __init__(
        self,
        project_dir: Path | str,
        build_dir: Path | str | None = None,
        settings: ScalaSettings | None = None,
        scalac_jars: Iterable[Path | str] | None = None,
        dependency_resolver: DependencyResolver | None = None,
        max_workers: int | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings or ScalaSettings()
        self._logger = logger or logging.getLogger(__name__)
        self.source_sets = SourceSetRegistry(project_dir, build_dir, logger=self._logger)
        self._scalac_jars = tuple(Path(jar) for jar in scalac_jars) if scalac_jars is not None else None
        self._dependency_resolver = dependency_resolver
        self._max_workers = max_workers
        self._cancel_event = threading.Event()
        self._builder: TaskGraphBuilder | None = None
        self._declared: list[tuple[str, str]] = []
        self._graph: BuildGraph | None = None

    def declare_dependency(self, source_set: str, on: str) -> None:
        self._declared.append((source_set, on))

    def resolve_scalac_classpath(self) -> tuple[Path, ...]:
        """Resolve the JAR files the Scala compiler itself needs for the configured version."""
        if self._scalac_jars is not None:
            return self._scalac_jars
        if self._dependency_resolver is None:
            raise ConfigurationError(
                "No scalac classpath configured: pass `scalac_jars` or a `dependency_resolver`."
            )
        try:
            self._scalac_jars = tuple(
                Path(jar) for jar in self._dependency_resolver(self.settings.toolchain_coordinates())
            )
        except Exception as e:
            raise ConfigurationError(
                "Could not determine the Scalac classpath. Make sure that you are (a) using the "
                "correct Scala version and (b) have at least one repository defined. The version "
                f"that is configured currently is '{self.settings.version}'."
            ) from e
        return self._scalac_jars

    def graph(self) -> BuildGraph:
        if self._graph is None:
            self._builder = TaskGraphBuilder(
                self.settings, self.resolve_scalac_classpath(), logger=self._logger
            )
            for source_set, on in self._declared:
                self._builder.declare_dependency(source_set, on)
            self._graph = self._builder.build(self.source_sets)
        return self._graph

    def register(self, scheduler: HostScheduler) -> BuildGraph:
        graph = self.graph()
        assert self._builder is not None
        executor = CompileExecutor(
            CompilerInstanceLoader(self.settings, logger=self._logger),
            cancel_event=self._cancel_event,
            logger=self._logger,
        )
        self._builder.register(graph, scheduler, executor, ClasspathResolver(logger=self._logger))
        return graph

    def run(self, targets: Iterable[str] | None = None) -> BuildOutcome:
        scheduler = LocalScheduler(
            max_workers=self._max_workers,
            cancel_event=self._cancel_event,
            logger=self._logger,
        )
        self.register(scheduler)
        return scheduler.run(targets)

    def cancel(self) -> None:
        self._cancel_event.set()

    def ide_metadata(self) -> IdeModuleMetadata:
        return ide_metadata(self.source_sets, self.settings)
