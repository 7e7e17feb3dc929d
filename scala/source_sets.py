"""Source set registry and the Scala directory side-table."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

from scala.errors import GraphError

MAIN_SOURCE_SET_NAME = "main"
TEST_SOURCE_SET_NAME = "test"

SCALA_LANGUAGE = "scala"
SCALA_EXTENSION = ".scala"


class SourceSetKind(enum.Enum):
    MAIN = "main"
    TEST = "test"
    CUSTOM = "custom"

    @property
    def is_test(self) -> bool:
        return self is SourceSetKind.TEST


def classify(name: str) -> SourceSetKind:
    if name == MAIN_SOURCE_SET_NAME:
        return SourceSetKind.MAIN
    if name == TEST_SOURCE_SET_NAME:
        return SourceSetKind.TEST
    return SourceSetKind.CUSTOM


@dataclass(frozen=True)
class SourceSet:
    """A host source set: its name, host-language output and resolved compile classpath."""

    name: str
    host_classes_dir: Path
    compile_classpath: tuple[Path, ...] = ()

    @property
    def kind(self) -> SourceSetKind:
        return classify(self.name)

    def task_name(self, verb: str, language: str) -> str:
        """Derive a task name the way the host does, e.g. `compileTestScala`."""
        parts = [verb]
        if self.name != MAIN_SOURCE_SET_NAME:
            parts.append(_capitalize(self.name))
        parts.append(_capitalize(language))
        return "".join(parts)


@dataclass
class ScalaSourceDirectories:
    """Scala-specific metadata attached to a source set by name."""

    name: str
    source_dirs: list[Path]
    output_dir: Path
    _frozen: bool = field(default=False, repr=False, compare=False)

    def src_dir(self, path: Path | str) -> None:
        self._check_mutable()
        path = Path(path)
        if path not in self.source_dirs:
            self.source_dirs.append(path)

    def set_output_dir(self, path: Path | str) -> None:
        self._check_mutable()
        self.output_dir = Path(path)

    def source_files(self) -> tuple[Path, ...]:
        files: set[Path] = set()
        for directory in self.source_dirs:
            if not directory.is_dir():
                continue
            files.update(p for p in directory.rglob(f"*{SCALA_EXTENSION}") if p.is_file())
        return tuple(sorted(files))

    def freeze(self) -> None:
        self._frozen = True

    def _check_mutable(self) -> None:
        if self._frozen:
            raise GraphError(
                f"Scala directories of source set `{self.name}` cannot change after the build graph is finalized."
            )


SourceSetCallback = Callable[[SourceSet], None]


class SourceSetRegistry:
    """Append-only registry of source sets for one build invocation.

    Callbacks passed to `all` fire for every set already registered and for
    every set registered later, until `finalize` cuts registration off.
    """

    def __init__(
        self,
        project_dir: Path | str,
        build_dir: Path | str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.project_dir = Path(project_dir)
        self.build_dir = Path(build_dir) if build_dir is not None else self.project_dir / "build"
        self._logger = logger or logging.getLogger(__name__)
        self._source_sets: dict[str, SourceSet] = {}
        self._scala: dict[str, ScalaSourceDirectories] = {}
        self._callbacks: list[SourceSetCallback] = []
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def register(self, source_set: SourceSet) -> SourceSet:
        if self._finalized:
            raise GraphError(
                f"Source set `{source_set.name}` was registered after the build graph was finalized."
            )
        if source_set.name in self._source_sets:
            raise GraphError(f"Source set `{source_set.name}` is already registered.")

        self._source_sets[source_set.name] = source_set
        self._scala[source_set.name] = ScalaSourceDirectories(
            name=source_set.name,
            source_dirs=[self.project_dir / "src" / source_set.name / SCALA_LANGUAGE],
            output_dir=self.build_dir / "classes" / SCALA_LANGUAGE / source_set.name,
        )
        self._logger.debug("Registered source set %s (%s)", source_set.name, source_set.kind.value)

        for callback in tuple(self._callbacks):
            callback(source_set)
        return source_set

    def all(self, callback: SourceSetCallback) -> None:
        self._callbacks.append(callback)
        for source_set in tuple(self._source_sets.values()):
            callback(source_set)

    def list(self) -> tuple[SourceSet, ...]:
        return tuple(self._source_sets.values())

    def __iter__(self) -> Iterator[SourceSet]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._source_sets)

    def __contains__(self, name: object) -> bool:
        return name in self._source_sets

    def get(self, name: str) -> SourceSet:
        try:
            return self._source_sets[name]
        except KeyError:
            raise GraphError(f"Unknown source set `{name}`.") from None

    def find(self, kind: SourceSetKind) -> SourceSet | None:
        for source_set in self._source_sets.values():
            if source_set.kind is kind:
                return source_set
        return None

    def classify(self, name: str) -> SourceSetKind:
        return classify(name)

    def scala(self, name: str) -> ScalaSourceDirectories:
        try:
            return self._scala[name]
        except KeyError:
            raise GraphError(f"Unknown source set `{name}`.") from None

    def finalize(self) -> None:
        if self._finalized:
            return
        for directories in self._scala.values():
            directories.freeze()
        self._finalized = True
        self._logger.debug("Finalized %d source set(s)", len(self._source_sets))


def _capitalize(value: str) -> str:
    return value[:1].upper() + value[1:] if value else value
