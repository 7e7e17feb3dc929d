"""Unit tests for classpath composition."""

from __future__ import annotations

from pathlib import Path

from scala.classpath import ClasspathResolver, _dedupe
from scala.graph import BuildGraph, TaskGraphBuilder
from scala.settings import ScalaSettings
from scala.source_sets import SourceSet, SourceSetRegistry


class TestDedupe:
    """Tests for _dedupe helper function."""

    def test_empty(self) -> None:
        assert _dedupe([]) == ()

    def test_with_duplicates(self) -> None:
        assert _dedupe(["a", "b", "a", "c"]) == ("a", "b", "c")

    def test_preserves_order(self) -> None:
        assert _dedupe([3, 1, 2, 1, 3]) == (3, 1, 2)


def _graph(tmp_path: Path, *names: str, declared: tuple[tuple[str, str], ...] = ()) -> BuildGraph:
    registry = SourceSetRegistry(tmp_path)
    library = tmp_path / "lib" / "scala-library-2.13.8.jar"
    for name in names:
        registry.register(
            SourceSet(
                name=name,
                host_classes_dir=tmp_path / "build" / "classes" / "java" / name,
                compile_classpath=(library, tmp_path / "lib" / f"{name}-dep.jar"),
            )
        )
    builder = TaskGraphBuilder(ScalaSettings(version="2.13.8"))
    for source_set, on in declared:
        builder.declare_dependency(source_set, on)
    return builder.build(registry)


class TestClasspathResolver:
    def test_main_classpath(self, tmp_path: Path) -> None:
        graph = _graph(tmp_path, "main")
        classpath = ClasspathResolver().resolve(graph.get_task("compileScala"), graph)

        assert classpath == (
            tmp_path / "lib" / "scala-library-2.13.8.jar",
            tmp_path / "lib" / "main-dep.jar",
            tmp_path / "build" / "classes" / "java" / "main",
        )

    def test_test_classpath_includes_main_outputs(self, tmp_path: Path) -> None:
        graph = _graph(tmp_path, "main", "test")
        resolver = ClasspathResolver()
        main_cp = resolver.resolve(graph.get_task("compileScala"), graph)
        test_cp = resolver.resolve(graph.get_task("compileTestScala"), graph)

        assert test_cp[:3] == (
            tmp_path / "lib" / "scala-library-2.13.8.jar",
            tmp_path / "lib" / "test-dep.jar",
            tmp_path / "build" / "classes" / "java" / "test",
        )
        assert tmp_path / "build" / "classes" / "scala" / "main" in test_cp
        assert tmp_path / "build" / "classes" / "java" / "main" in test_cp
        assert set(main_cp) | {graph.get_task("compileScala").destination_dir} <= set(test_cp)

    def test_no_duplicates(self, tmp_path: Path) -> None:
        graph = _graph(tmp_path, "main", "test", "integrationTest", declared=(("integrationTest", "test"),))
        classpath = ClasspathResolver().resolve(graph.get_task("compileIntegrationTestScala"), graph)

        assert len(classpath) == len(set(classpath))
        assert classpath.count(tmp_path / "lib" / "scala-library-2.13.8.jar") == 1

    def test_transitive_dependencies(self, tmp_path: Path) -> None:
        graph = _graph(tmp_path, "main", "test", "integrationTest", declared=(("integrationTest", "test"),))
        classpath = ClasspathResolver().resolve(graph.get_task("compileIntegrationTestScala"), graph)

        assert tmp_path / "build" / "classes" / "scala" / "test" in classpath
        assert tmp_path / "build" / "classes" / "scala" / "main" in classpath
        assert classpath.index(tmp_path / "build" / "classes" / "scala" / "test") < classpath.index(
            tmp_path / "build" / "classes" / "scala" / "main"
        )

    def test_custom_source_set_only_sees_its_own_inputs(self, tmp_path: Path) -> None:
        graph = _graph(tmp_path, "main", "benchmarks")
        classpath = ClasspathResolver().resolve(graph.get_task("compileBenchmarksScala"), graph)

        assert tmp_path / "build" / "classes" / "scala" / "main" not in classpath
        assert tmp_path / "build" / "classes" / "java" / "main" not in classpath

    def test_declared_edges_keep_declaration_order(self, tmp_path: Path) -> None:
        graph = _graph(
            tmp_path,
            "main",
            "shared",
            "benchmarks",
            declared=(("benchmarks", "shared"), ("benchmarks", "main")),
        )
        classpath = ClasspathResolver().resolve(graph.get_task("compileBenchmarksScala"), graph)

        shared_out = tmp_path / "build" / "classes" / "scala" / "shared"
        main_out = tmp_path / "build" / "classes" / "scala" / "main"
        assert classpath.index(shared_out) < classpath.index(main_out)

    def test_missing_directories_are_not_an_error(self, tmp_path: Path) -> None:
        graph = _graph(tmp_path, "main", "test")
        classpath = ClasspathResolver().resolve(graph.get_task("compileTestScala"), graph)

        assert not any(entry.exists() for entry in classpath)

    def test_equivalent_paths_are_deduplicated(self, tmp_path: Path) -> None:
        registry = SourceSetRegistry(tmp_path)
        registry.register(
            SourceSet(
                name="main",
                host_classes_dir=tmp_path / "build" / "classes" / "java" / "main",
                compile_classpath=(tmp_path / "lib" / ".." / "lib" / "a.jar", tmp_path / "lib" / "a.jar"),
            )
        )
        graph = TaskGraphBuilder(ScalaSettings(version="2.13.8")).build(registry)

        classpath = ClasspathResolver().resolve(graph.get_task("compileScala"), graph)

        assert classpath[:1] == (tmp_path / "lib" / "a.jar",)
        assert classpath.count(tmp_path / "lib" / "a.jar") == 1

    def test_layered_diamonds_resolve_each_task_once(self, tmp_path: Path) -> None:
        class CountingResolver(ClasspathResolver):
            def __init__(self) -> None:
                super().__init__()
                self.computed: list[str] = []

            def _resolve(self, task, graph, visiting, resolved):
                if task.name not in resolved:
                    self.computed.append(task.source_set.name)
                return super()._resolve(task, graph, visiting, resolved)

        layers = 18
        names = ["main"]
        declared: list[tuple[str, str]] = []
        below = ["main"]
        for layer in range(layers):
            current = [f"layer{layer}a", f"layer{layer}b"]
            names.extend(current)
            declared.extend((name, dep) for name in current for dep in below)
            below = current
        graph = _graph(tmp_path, *names, declared=tuple(declared))
        resolver = CountingResolver()

        top = graph.task_for(f"layer{layers - 1}a")
        classpath = resolver.resolve(top, graph)
        resolver.resolve(top, graph)

        assert sorted(resolver.computed) == sorted(names[:-1])
        assert len(classpath) == len(set(classpath))
        assert tmp_path / "build" / "classes" / "scala" / "main" in classpath
        assert tmp_path / "build" / "classes" / "scala" / "layer0b" in classpath
