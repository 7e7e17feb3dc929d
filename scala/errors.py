"""Error taxonomy for the Scala compile backend."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable


class ScalaBuildError(Exception):
    """Base class for every error raised by the Scala compile backend."""


class ConfigurationError(ScalaBuildError):
    """Invalid or missing configuration, reported before any task runs."""


class GraphError(ScalaBuildError):
    """The compile task graph is malformed (duplicates, cycles, dangling edges)."""


class ToolchainError(ScalaBuildError):
    """The compiler toolchain could not be launched at all."""


class ArtifactNotFoundError(ScalaBuildError):
    def __init__(self, role: str, artifacts: Iterable[Path | str], hint: str = "") -> None:
        self.role = role
        self.artifacts = tuple(str(artifact) for artifact in artifacts)
        message = (
            f"Cannot find the {role} JAR file in {list(self.artifacts)}. "
            "Did you forget to declare a dependency?"
        )
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)


class CompileFailed(ScalaBuildError):
    """The compiler ran and reported diagnostics."""

    def __init__(self, task_name: str, diagnostics: str) -> None:
        self.task_name = task_name
        self.diagnostics = diagnostics
        super().__init__(f"Compilation failed for {task_name}:\n{diagnostics}")


class CompileCancelled(ScalaBuildError):
    def __init__(self, task_name: str) -> None:
        self.task_name = task_name
        super().__init__(f"Compilation of {task_name} was cancelled.")
