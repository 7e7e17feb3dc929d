"""Metadata handed to IDE project generators."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from scala.settings import ScalaSettings
from scala.source_sets import SourceSetRegistry


@dataclass(frozen=True)
class IdeSourceSet:
    name: str
    source_dirs: tuple[Path, ...]
    is_test: bool


@dataclass(frozen=True)
class IdeModuleMetadata:
    """Source directories of a module plus the Scala SDK it should reference.

    The SDK is referenced at application level, i.e. it is expected to be
    configured once per IDE installation.
    """

    source_sets: tuple[IdeSourceSet, ...]
    sdk_name: str
    sdk_level: str = "application"

    @property
    def source_dirs(self) -> frozenset[Path]:
        return frozenset(d for s in self.source_sets if not s.is_test for d in s.source_dirs)

    @property
    def test_source_dirs(self) -> frozenset[Path]:
        return frozenset(d for s in self.source_sets if s.is_test for d in s.source_dirs)


def ide_metadata(registry: SourceSetRegistry, settings: ScalaSettings) -> IdeModuleMetadata:
    return IdeModuleMetadata(
        source_sets=tuple(
            IdeSourceSet(
                name=source_set.name,
                source_dirs=tuple(registry.scala(source_set.name).source_dirs),
                is_test=source_set.kind.is_test,
            )
            for source_set in registry.list()
        ),
        sdk_name=settings.sdk_display_name,
    )
