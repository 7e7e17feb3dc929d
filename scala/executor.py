"""Runs a compiler instance over one compile task."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from scala.compiler import CompilerInstance, CompilerInstanceLoader
from scala.errors import CompileFailed, ScalaBuildError, ToolchainError

if TYPE_CHECKING:
    from scala.graph import CompileTask


class CompileStatus(enum.Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"
    NOT_ATTEMPTED = "not_attempted"


@dataclass(frozen=True)
class CompileResult:
    task_name: str
    status: CompileStatus
    error: ScalaBuildError | None = None
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (CompileStatus.SUCCEEDED, CompileStatus.SKIPPED)

    @property
    def diagnostics(self) -> str:
        if isinstance(self.error, CompileFailed):
            return self.error.diagnostics
        return ""


_CacheKey = tuple[str, frozenset[Path]]


class CompileExecutor:
    """Compiles tasks, caching compiler instances for one build invocation.

    The cache is keyed by (version, artifact set). Concurrent requests for the
    same key wait on a per-key lock, so each toolchain is loaded once.
    """

    def __init__(
        self,
        loader: CompilerInstanceLoader,
        cancel_event: threading.Event | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loader = loader
        self._cancel_event = cancel_event or threading.Event()
        self._logger = logger or logging.getLogger(__name__)
        self._instances: dict[_CacheKey, CompilerInstance] = {}
        self._key_locks: dict[_CacheKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def compiler_for(self, version: str, artifacts: Iterable[Path]) -> CompilerInstance:
        artifacts = tuple(artifacts)
        key: _CacheKey = (version, frozenset(artifacts))
        with self._locks_guard:
            lock = self._key_locks.setdefault(key, threading.Lock())
        with lock:
            instance = self._instances.get(key)
            if instance is None:
                instance = self._loader.load(version, artifacts)
                self._instances[key] = instance
            else:
                self._logger.debug("Reusing Scala %s compiler instance", version)
            return instance

    def execute(self, task: CompileTask, classpath: Iterable[Path]) -> CompileResult:
        if not task.sources:
            self._logger.debug("Skipping %s: no Scala sources", task.name)
            return CompileResult(task.name, CompileStatus.SKIPPED)

        try:
            compiler = self.compiler_for(task.scala_version, task.scalac_jars)
            try:
                task.destination_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ToolchainError(
                    f"Cannot create the output directory {task.destination_dir} of {task.name}: {e}"
                ) from e
            self._logger.info(
                "Compiling %d Scala source(s) for %s using Scala %s",
                len(task.sources),
                task.name,
                task.scala_version,
            )
            run = compiler.compile(
                task.sources,
                classpath,
                task.destination_dir,
                task_name=task.name,
                cancel_event=self._cancel_event,
            )
        except ScalaBuildError as e:
            self._logger.error("%s failed: %s", task.name, e)
            return CompileResult(task.name, CompileStatus.FAILED, error=e)

        return CompileResult(task.name, CompileStatus.SUCCEEDED, output=run.output)
