"""Shared pytest fixtures for pants-scala tests."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from textwrap import dedent

import pytest

from scala.settings import ScalaSettings
from scala.source_sets import SourceSet

# Stands in for `java -cp <toolchain> <scalac main> ...`. It understands just
# enough Scala to be useful: `class`/`trait`/`object` declarations produce
# class files, `new X` and `extends X` must resolve against the sources being
# compiled or a class directory on `-classpath`.
MOCK_JAVA = dedent(
    '''\
    #!@PYTHON@
    import json
    import os
    import re
    import sys
    import time
    from pathlib import Path

    LOG = Path(__file__).with_name("invocations.jsonl")


    def option(args, name):
        return args[args.index(name) + 1] if name in args else ""


    def main(argv):
        with LOG.open("a") as log:
            log.write(json.dumps({"argv": argv, "env": dict(os.environ)}) + "\\n")

        cp_index = argv.index("-cp")
        toolchain = [p for p in argv[cp_index + 1].split(os.pathsep) if p]
        rest = argv[cp_index + 3:]
        classpath = [Path(p) for p in option(rest, "-classpath").split(os.pathsep) if p]
        dest = Path(option(rest, "-d"))
        sources = [Path(a) for a in rest if a.endswith(".scala")]

        compiler_version = ""
        for jar in toolchain:
            name = Path(jar).name
            if name.startswith(("scala-compiler", "scala3-compiler", "dotty-compiler")):
                match = re.search(r"-(\\d+\\.\\d+(?:\\.\\d+)?)\\.jar$", name)
                compiler_version = match.group(1) if match else ""

        declared = {}
        errors = []
        for source in sources:
            text = source.read_text()
            if "// sleep" in text:
                time.sleep(30)
            required = re.search(r"// requires scala (\\S+)", text)
            if required and not compiler_version.startswith(required.group(1)):
                errors.append(
                    f"{source}:1: error: this source requires Scala {required.group(1)} "
                    f"but the compiler is {compiler_version}"
                )
            for kind, name in re.findall(r"\\b(class|trait|object)\\s+(\\w+)", text):
                declared[name] = kind

        for source in sources:
            for lineno, line in enumerate(source.read_text().splitlines(), start=1):
                for name in re.findall(r"\\b(?:new|extends)\\s+(\\w+)", line):
                    if name in declared:
                        continue
                    if any((entry / f"{name}.class").is_file() for entry in classpath if entry.is_dir()):
                        continue
                    errors.append(f"{source}:{lineno}: error: not found: type {name}")

        if errors:
            for error in errors:
                print(error)
            print(f"{len(errors)} error{'s' if len(errors) > 1 else ''} found")
            return 1

        dest.mkdir(parents=True, exist_ok=True)
        for name, kind in declared.items():
            (dest / f"{name}.class").write_text(kind)
            if kind == "object":
                (dest / f"{name}$.class").write_text(kind)
        return 0


    sys.exit(main(sys.argv[1:]))
    '''
)


@dataclass(frozen=True)
class MockToolchain:
    java: Path
    library: Path
    compiler: Path
    reflect: Path
    log: Path

    @property
    def jars(self) -> tuple[Path, ...]:
        return (self.library, self.reflect, self.compiler)

    def invocations(self) -> list[dict]:
        if not self.log.exists():
            return []
        return [json.loads(line) for line in self.log.read_text().splitlines() if line]


def write_mock_java(directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    java = directory / "mock_java.py"
    java.write_text(MOCK_JAVA.replace("@PYTHON@", sys.executable))
    os.chmod(java, 0o755)
    return java


def write_jars(directory: Path, *names: str) -> tuple[Path, ...]:
    directory.mkdir(parents=True, exist_ok=True)
    jars = []
    for name in names:
        jar = directory / name
        jar.write_bytes(b"PK\x05\x06" + b"\x00" * 18)
        jars.append(jar)
    return tuple(jars)


@pytest.fixture
def toolchain(tmp_path: Path) -> MockToolchain:
    """A mock Scala 2.13.8 toolchain driven by a fake `java` executable."""
    tools_dir = tmp_path / "toolchain"
    java = write_mock_java(tools_dir)
    library, reflect, compiler = write_jars(
        tools_dir,
        "scala-library-2.13.8.jar",
        "scala-reflect-2.13.8.jar",
        "scala-compiler-2.13.8.jar",
    )
    return MockToolchain(
        java=java,
        library=library,
        compiler=compiler,
        reflect=reflect,
        log=tools_dir / "invocations.jsonl",
    )


@pytest.fixture
def scala_settings(toolchain: MockToolchain) -> ScalaSettings:
    return ScalaSettings(version="2.13.8", java=str(toolchain.java))


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory for integration tests."""
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True, exist_ok=True)
    return project


@pytest.fixture
def host_source_set(project_dir: Path):
    """Factory for host source sets whose Java output lives under `build/classes/java`."""

    def make(name: str, *classpath: Path) -> SourceSet:
        return SourceSet(
            name=name,
            host_classes_dir=project_dir / "build" / "classes" / "java" / name,
            compile_classpath=tuple(classpath),
        )

    return make


@pytest.fixture
def write_scala(project_dir: Path):
    """Factory writing a Scala file below `src/<source set>/scala`."""

    def write(source_set: str, relpath: str, content: str) -> Path:
        path = project_dir / "src" / source_set / "scala" / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(dedent(content))
        return path

    return write
