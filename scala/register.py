"""Registration entrypoint for custom Scala Pants backend."""

from __future__ import annotations

from scala import rules as scala_rules
from scala.target_types import ScalaSourceSet


def target_types() -> list[type]:
    return [
        ScalaSourceSet,
    ]


def rules() -> list:
    return [
        *scala_rules.rules(),
    ]
