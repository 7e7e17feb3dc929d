"""Subsystem options for the Scala compiler toolchain used by the custom backend."""

from __future__ import annotations

from pants.option.option_types import BoolOption, StrListOption, StrOption
from pants.option.subsystem import Subsystem

from scala.settings import (
    DEFAULT_COMPILER_PREFIXES,
    DEFAULT_LIBRARY_PREFIXES,
    DEFAULT_SCALA_VERSION,
    ScalaSettings,
)


class ScalacSubsystem(Subsystem):
    options_scope = "scalac"
    help = "Scala compiler configuration for the custom Scala backend."

    version = StrOption(default=DEFAULT_SCALA_VERSION, help="Scala version used to compile source sets.")
    sdk_name = StrOption(default=None, help="Scala SDK name referenced by generated IDE modules.")
    java = StrOption(default="java", help="Command used to launch the JVM that runs scalac.")
    jvm_options = StrListOption(help="Options passed to the JVM that runs scalac.")
    library_prefixes = StrListOption(
        default=list(DEFAULT_LIBRARY_PREFIXES),
        help="File name prefixes identifying the Scala library JAR.",
    )
    compiler_prefixes = StrListOption(
        default=list(DEFAULT_COMPILER_PREFIXES),
        help="File name prefixes identifying the Scala compiler JAR.",
    )
    strict_versions = BoolOption(
        default=False,
        help="Fail when the Scala library and compiler JARs carry different versions.",
    )

    def to_settings(self) -> ScalaSettings:
        return ScalaSettings(
            version=self.version,
            sdk_name=self.sdk_name,
            java=self.java,
            jvm_options=tuple(self.jvm_options),
            library_prefixes=tuple(self.library_prefixes),
            compiler_prefixes=tuple(self.compiler_prefixes),
            strict_versions=self.strict_versions,
        )
