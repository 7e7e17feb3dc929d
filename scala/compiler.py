"""Locating the Scala toolchain in an artifact set and running it in its own JVM.

Every compiler instance runs in a fresh JVM whose classpath is exactly the
artifact set it was loaded from, with an environment built from scratch, so
two toolchain versions never share loaded classes with each other or with
whatever the host process has on its own classpath.
"""

from __future__ import annotations

import logging
import os
import re
import shlex
import shutil
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, TypeVar

from scala.errors import (
    ArtifactNotFoundError,
    CompileCancelled,
    CompileFailed,
    ConfigurationError,
    ToolchainError,
)
from scala.settings import (
    DEFAULT_COMPILER_PREFIXES,
    DEFAULT_LIBRARY_PREFIXES,
    ScalaSettings,
)

LIBRARY_ROLE = "library"
COMPILER_ROLE = "compiler"

SCALA2_MAIN_CLASS = "scala.tools.nsc.Main"
SCALA3_MAIN_CLASS = "dotty.tools.dotc.Main"

_SCALA3_FAMILIES = ("scala3", "dotty")
_ARTIFACT_VERSION = re.compile(r"-(\d+\.\d+[^/]*?)\.jar$")

T = TypeVar("T")

_MISSING_LIBRARY_HINT = (
    "Please make sure that the correct version of the scala library is on the compile "
    "classpath, e.g. by adding `implementation 'org.scala-lang:scala-library:2.13.8'`."
)


def _dedupe(items: Iterable[T]) -> tuple[T, ...]:
    seen: set[T] = set()
    out: list[T] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return tuple(out)


def _split_command(command: str) -> tuple[str, ...]:
    parts = tuple(shlex.split(command))
    if not parts:
        raise ValueError("Tool command cannot be empty.")
    return parts


def _jvm_process_env(java: tuple[str, ...]) -> dict[str, str]:
    """Environment for the toolchain JVM, built from scratch.

    Variables the JVM reads implicitly (CLASSPATH, JAVA_TOOL_OPTIONS,
    _JAVA_OPTIONS, JDK_JAVA_OPTIONS) are never forwarded.
    """
    path_parts: list[str] = []
    if os.path.isabs(java[0]):
        path_parts.append(str(Path(java[0]).parent))
    existing_path = os.environ.get("PATH")
    if existing_path:
        path_parts.append(existing_path)

    env: dict[str, str] = {}
    if path_parts:
        env["PATH"] = os.pathsep.join(_dedupe(path_parts))

    for name in ("HOME", "JAVA_HOME", "TMPDIR", "LANG"):
        value = os.environ.get(name)
        if value:
            env[name] = value

    return env


def artifact_version(artifact: Path) -> str | None:
    """Best-effort version suffix of an archive name, e.g. `2.13.8` for `scala-library-2.13.8.jar`."""
    match = _ARTIFACT_VERSION.search(artifact.name)
    return match.group(1) if match else None


@dataclass(frozen=True)
class ArtifactPrefixes:
    library: tuple[str, ...] = DEFAULT_LIBRARY_PREFIXES
    compiler: tuple[str, ...] = DEFAULT_COMPILER_PREFIXES

    def for_role(self, role: str) -> tuple[str, ...]:
        if role == LIBRARY_ROLE:
            return self.library
        if role == COMPILER_ROLE:
            return self.compiler
        raise ValueError(f"Unknown artifact role `{role}`")

    def family(self, role: str, artifact: Path) -> str | None:
        """The distribution family of a matched artifact: `scala`, `scala3` or `dotty`."""
        for prefix in self.for_role(role):
            if artifact.name.startswith(prefix):
                return prefix[: -len(role)].rstrip("-_") if prefix.endswith(role) else prefix
        return None


def find_artifact(
    artifacts: Iterable[Path],
    role: str,
    prefixes: ArtifactPrefixes,
    hint: str = "",
) -> Path:
    """Return the first artifact whose file name starts with one of the role's prefixes."""
    candidates = tuple(artifacts)
    role_prefixes = prefixes.for_role(role)
    for artifact in candidates:
        if artifact.name.startswith(role_prefixes):
            return artifact
    raise ArtifactNotFoundError(role, candidates, hint)


@dataclass(frozen=True)
class JvmIsolation:
    """A fresh JVM process with an explicit classpath and a scrubbed environment."""

    java: tuple[str, ...]
    jvm_options: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)

    def argv(self, classpath: tuple[Path, ...], main_class: str, args: Iterable[str]) -> tuple[str, ...]:
        return (
            *self.java,
            *self.jvm_options,
            "-cp",
            os.pathsep.join(str(entry) for entry in classpath),
            main_class,
            *args,
        )


@dataclass(frozen=True)
class CompilerRun:
    destination_dir: Path
    output: str


@dataclass(frozen=True)
class CompilerInstance:
    version: str
    library_artifact: Path
    compiler_artifact: Path
    artifacts: tuple[Path, ...]
    main_class: str
    isolation: JvmIsolation
    prefixes: ArtifactPrefixes = ArtifactPrefixes()
    poll_interval: float = 0.1

    @property
    def key(self) -> tuple[str, frozenset[Path]]:
        return (self.version, frozenset(self.artifacts))

    def check_classpath(self, classpath: Iterable[Path]) -> Path:
        """Make sure that the scala-library is actually available on the compile classpath."""
        return find_artifact(
            (Path(entry) for entry in classpath), LIBRARY_ROLE, self.prefixes, _MISSING_LIBRARY_HINT
        )

    def compiler_args(
        self,
        sources: Iterable[Path],
        classpath: Iterable[Path],
        destination_dir: Path,
    ) -> tuple[str, ...]:
        return (
            "-classpath",
            os.pathsep.join(str(entry) for entry in classpath),
            "-d",
            str(destination_dir),
            *(str(source) for source in sources),
        )

    def argv(
        self,
        sources: Iterable[Path],
        classpath: Iterable[Path],
        destination_dir: Path,
    ) -> tuple[str, ...]:
        return self.isolation.argv(
            self.artifacts,
            self.main_class,
            self.compiler_args(sources, classpath, destination_dir),
        )

    def compile(
        self,
        sources: Iterable[Path],
        classpath: Iterable[Path],
        destination_dir: Path,
        *,
        task_name: str = "",
        cancel_event: threading.Event | None = None,
    ) -> CompilerRun:
        """Compile `sources` into `destination_dir`.

        Raises:
            ArtifactNotFoundError: If no scala library is on the compile classpath.
            CompileFailed: If the compiler reports errors; the output is kept verbatim.
            CompileCancelled: If `cancel_event` is set while the compiler runs.
            ToolchainError: If the JVM cannot be launched.
        """
        sources = tuple(sources)
        classpath = tuple(Path(entry) for entry in classpath)
        task_name = task_name or str(destination_dir)
        self.check_classpath(classpath)

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        if cancelled():
            shutil.rmtree(destination_dir, ignore_errors=True)
            raise CompileCancelled(task_name)

        argv = self.argv(sources, classpath, destination_dir)
        try:
            process = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                env=dict(self.isolation.env),
                text=True,
            )
        except OSError as e:
            raise ToolchainError(
                f"Cannot launch the Scala {self.version} compiler via `{self.isolation.java[0]}`: {e}"
            ) from e

        while True:
            try:
                output, _ = process.communicate(timeout=self.poll_interval)
                break
            except subprocess.TimeoutExpired:
                if cancelled():
                    process.kill()
                    process.communicate()
                    break

        # Output written while the build was being cancelled is never kept.
        if cancelled():
            shutil.rmtree(destination_dir, ignore_errors=True)
            raise CompileCancelled(task_name)
        if process.returncode != 0:
            raise CompileFailed(task_name, output)
        return CompilerRun(destination_dir=destination_dir, output=output)


class CompilerInstanceLoader:
    """Builds compiler instances from an arbitrary, user-supplied artifact set."""

    def __init__(self, settings: ScalaSettings, logger: logging.Logger | None = None) -> None:
        self._settings = settings
        self._logger = logger or logging.getLogger(__name__)
        self.prefixes = ArtifactPrefixes(
            library=settings.library_prefixes,
            compiler=settings.compiler_prefixes,
        )

    def load(self, version: str, artifacts: Iterable[Path | str]) -> CompilerInstance:
        ordered = _ordered_artifacts(artifacts)
        library = find_artifact(ordered, LIBRARY_ROLE, self.prefixes)
        compiler = find_artifact(ordered, COMPILER_ROLE, self.prefixes)
        self._check_versions(library, compiler)

        java = _split_command(self._settings.java)
        family = self.prefixes.family(COMPILER_ROLE, compiler)
        main_class = SCALA3_MAIN_CLASS if family in _SCALA3_FAMILIES else SCALA2_MAIN_CLASS
        self._logger.debug(
            "Loaded Scala %s toolchain: library=%s compiler=%s main=%s",
            version,
            library.name,
            compiler.name,
            main_class,
        )
        return CompilerInstance(
            version=version,
            library_artifact=library,
            compiler_artifact=compiler,
            artifacts=ordered,
            main_class=main_class,
            isolation=JvmIsolation(
                java=java,
                jvm_options=tuple(self._settings.jvm_options),
                env=_jvm_process_env(java),
            ),
            prefixes=self.prefixes,
        )

    def _check_versions(self, library: Path, compiler: Path) -> None:
        library_family = self.prefixes.family(LIBRARY_ROLE, library)
        compiler_family = self.prefixes.family(COMPILER_ROLE, compiler)
        # Scala 3 ships on top of a 2.13 library, so only same-family pairs are comparable.
        if library_family != compiler_family:
            return
        library_version = artifact_version(library)
        compiler_version = artifact_version(compiler)
        if library_version is None or compiler_version is None or library_version == compiler_version:
            return

        message = (
            f"Scala library `{library.name}` ({library_version}) and compiler "
            f"`{compiler.name}` ({compiler_version}) come from different versions."
        )
        if self._settings.strict_versions:
            raise ConfigurationError(message)
        self._logger.warning(message)


def _ordered_artifacts(artifacts: Iterable[Path | str]) -> tuple[Path, ...]:
    if isinstance(artifacts, (set, frozenset)):
        return tuple(sorted(Path(artifact) for artifact in artifacts))
    return _dedupe(Path(artifact) for artifact in artifacts)
