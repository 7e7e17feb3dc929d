"""Provider data structures for Scala backend rules."""

from __future__ import annotations

from dataclasses import dataclass

from pants.engine.fs import Digest


@dataclass(frozen=True)
class BuiltScalaSourceSet:
    """Compiled classes of a source set plus everything it was compiled against."""

    digest: Digest
    source_set_name: str
    destination_dir: str
    class_files: tuple[str, ...]
    classpath: tuple[str, ...]
    skipped: bool = False
