"""Custom Pants target types for Scala source sets."""

from __future__ import annotations

from pants.engine.target import (
    COMMON_TARGET_FIELDS,
    MultipleSourcesField,
    StringField,
    StringSequenceField,
    Target,
)


class ScalaSourceSetSourcesField(MultipleSourcesField):
    alias = "sources"
    default = ("**/*.scala",)
    expected_file_extensions = (".scala",)
    help = "Recursive Scala source globs for this source set."


class ScalaSourceSetNameField(StringField):
    alias = "source_set_name"
    default = None
    help = (
        "Name of the source set, e.g. `main` or `test`. Defaults to the target name. "
        "A `test` source set depends on the `main` source set in the same directory."
    )


class ScalaSourceSetDependenciesField(StringSequenceField):
    alias = "source_set_dependencies"
    default = ()
    help = "Addresses of further `scala_source_set` targets whose output this source set compiles against."


class ScalaClasspathField(StringSequenceField):
    alias = "classpath"
    default = ()
    help = "Resolved JAR files or class directories on the compile classpath, e.g. the scala library."


class ScalaCompilerArtifactsField(StringSequenceField):
    alias = "compiler_artifacts"
    required = True
    help = "JAR files making up the Scala compiler toolchain (library, compiler and their dependencies)."


class ScalaSourceSet(Target):
    alias = "scala_source_set"
    core_fields = (
        *COMMON_TARGET_FIELDS,
        ScalaSourceSetSourcesField,
        ScalaSourceSetNameField,
        ScalaSourceSetDependenciesField,
        ScalaClasspathField,
        ScalaCompilerArtifactsField,
    )
    help = "A named set of Scala sources compiled in one scalac invocation."
