"""Configuration surface for Scala compilation."""

from __future__ import annotations

import shlex
from dataclasses import dataclass

from scala.errors import ConfigurationError

DEFAULT_SCALA_VERSION = "2.12.8"

DEFAULT_LIBRARY_PREFIXES = ("scala-library", "scala3-library")
DEFAULT_COMPILER_PREFIXES = ("scala-compiler", "scala3-compiler", "dotty-compiler")


def major_version(version: str) -> str:
    """Return `<major>.<minor>` for a two or three component version string."""
    parts = version.split(".")
    if len(parts) not in (2, 3) or not all(parts):
        raise ConfigurationError(
            f"Scala version '{version}' is not supported. Cannot determine the major version."
        )
    return f"{parts[0]}.{parts[1]}"


def is_scala3(version: str) -> bool:
    return major_version(version).split(".")[0] == "3"


@dataclass(frozen=True)
class ScalaSettings:
    version: str = DEFAULT_SCALA_VERSION
    sdk_name: str | None = None
    java: str = "java"
    jvm_options: tuple[str, ...] = ()
    library_prefixes: tuple[str, ...] = DEFAULT_LIBRARY_PREFIXES
    compiler_prefixes: tuple[str, ...] = DEFAULT_COMPILER_PREFIXES
    strict_versions: bool = False

    def __post_init__(self) -> None:
        if not self.version or not self.version.strip():
            raise ConfigurationError("The Scala version must not be empty.")
        if not self.java or not self.java.strip():
            raise ConfigurationError("The java executable must not be empty.")
        try:
            shlex.split(self.java)
        except ValueError as e:
            raise ConfigurationError(f"Cannot parse the java command `{self.java}`: {e}") from e
        if not self.library_prefixes:
            raise ConfigurationError("At least one library artifact prefix is required.")
        if not self.compiler_prefixes:
            raise ConfigurationError("At least one compiler artifact prefix is required.")

    @property
    def major_version(self) -> str:
        return major_version(self.version)

    @property
    def sdk_display_name(self) -> str:
        return self.sdk_name or f"scala-sdk-{self.version}"

    def toolchain_coordinates(self) -> tuple[str, ...]:
        """Dependency coordinates the host must resolve to obtain the compiler classpath."""
        if is_scala3(self.version):
            return (f"org.scala-lang:scala3-compiler_3:{self.version}",)
        return (f"org.scala-lang:scala-compiler:{self.version}",)

    def validate(self) -> None:
        """Fail fast on a version string the toolchain lookup cannot use."""
        major_version(self.version)
