"""Rules for compiling Scala source sets."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, TypeVar

from pants.build_graph.address import Address, AddressInput
from pants.engine.fs import (
    CreateDigest,
    Digest,
    Directory,
    MergeDigests,
    Snapshot,
)
from pants.engine.internals.graph import hydrate_sources, resolve_target
from pants.engine.internals.selectors import Get, MultiGet
from pants.engine.process import FallibleProcessResult, Process
from pants.engine.rules import collect_rules, implicitly, rule
from pants.engine.target import HydrateSourcesRequest, WrappedTarget, WrappedTargetRequest

from scala.compiler import CompilerInstanceLoader
from scala.errors import CompileFailed
from scala.providers import BuiltScalaSourceSet
from scala.source_sets import MAIN_SOURCE_SET_NAME, SCALA_EXTENSION, SourceSetKind, classify
from scala.subsystem import ScalacSubsystem
from scala.target_types import (
    ScalaClasspathField,
    ScalaCompilerArtifactsField,
    ScalaSourceSet,
    ScalaSourceSetDependenciesField,
    ScalaSourceSetNameField,
    ScalaSourceSetSourcesField,
)

T = TypeVar("T")


@dataclass(frozen=True)
class CompileScalaSourceSetRequest:
    address: Address


def _dedupe(items: Iterable[T]) -> tuple[T, ...]:
    seen: set[T] = set()
    out: list[T] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return tuple(out)


def _target_output_dir(address: Address, source_set_name: str) -> str:
    spec_path = address.spec_path or "_root_"
    return f"__pants_scala__/classes/scala/{spec_path}/{source_set_name}"


def _source_set_name(address: Address, raw_name: str | None) -> str:
    return raw_name or address.target_name or Path(address.spec_path).name


async def _resolve_relative_address(raw_value: str, owner: Address, field_alias: str) -> Address:
    address_input = AddressInput.parse(
        raw_value,
        relative_to=owner.spec_path,
        description_of_origin=f"the `{field_alias}` field on `{owner}`",
    )
    return await Get(Address, AddressInput, address_input)


async def _resolve_wrapped_target(address: Address, description_of_origin: str) -> WrappedTarget:
    return await resolve_target(
        WrappedTargetRequest(address, description_of_origin=description_of_origin),
        **implicitly(),
    )


async def _resolve_main_source_set(owner: Address) -> Address | None:
    """Find the `main` source set next to a `test` source set, if there is one."""
    try:
        address = await _resolve_relative_address(
            f":{MAIN_SOURCE_SET_NAME}", owner, ScalaSourceSetNameField.alias
        )
        wrapped = await _resolve_wrapped_target(address, f"the main source set of `{owner}`")
    except Exception:
        return None

    if wrapped.target.alias != ScalaSourceSet.alias:
        return None
    return wrapped.target.address


async def _merge_or_create_empty(digests: tuple[Digest, ...]) -> Digest:
    if not digests:
        return await Get(Digest, CreateDigest(()))
    if len(digests) == 1:
        return digests[0]
    return await Get(Digest, MergeDigests(digests))


@rule(desc="Compile Scala source set")
async def compile_scala_source_set(
    request: CompileScalaSourceSetRequest,
    scalac: ScalacSubsystem,
) -> BuiltScalaSourceSet:
    wrapped = await _resolve_wrapped_target(request.address, f"the target `{request.address}`")
    target = wrapped.target
    if target.alias != ScalaSourceSet.alias:
        raise ValueError(f"Expected `{ScalaSourceSet.alias}` target, got `{target.alias}` at {target.address}")

    source_set_name = _source_set_name(target.address, target[ScalaSourceSetNameField].value)

    dependency_addresses: list[Address] = []
    if classify(source_set_name) is SourceSetKind.TEST:
        main_address = await _resolve_main_source_set(target.address)
        if main_address is not None and main_address != target.address:
            dependency_addresses.append(main_address)
    for raw in target[ScalaSourceSetDependenciesField].value or ():
        address = await _resolve_relative_address(raw, target.address, ScalaSourceSetDependenciesField.alias)
        if address == target.address:
            raise ValueError(f"{target.address} cannot depend on itself via `{raw}`")
        dependency_addresses.append(address)
    dependency_addresses = list(_dedupe(dependency_addresses))

    dep_source_sets = (
        await MultiGet(
            Get(BuiltScalaSourceSet, CompileScalaSourceSetRequest(address))
            for address in dependency_addresses
        )
        if dependency_addresses
        else ()
    )

    hydrated = await hydrate_sources(
        HydrateSourcesRequest(target[ScalaSourceSetSourcesField]),
        **implicitly(),
    )
    sources = tuple(sorted(f for f in hydrated.snapshot.files if f.endswith(SCALA_EXTENSION)))

    own_classpath = tuple(target[ScalaClasspathField].value or ())
    classpath = _dedupe(
        [
            *own_classpath,
            *(entry for dep in dep_source_sets for entry in (dep.destination_dir, *dep.classpath)),
        ]
    )
    destination_dir = _target_output_dir(target.address, source_set_name)
    dep_digests = tuple(dep.digest for dep in dep_source_sets)

    if not sources:
        return BuiltScalaSourceSet(
            digest=await _merge_or_create_empty(dep_digests),
            source_set_name=source_set_name,
            destination_dir=destination_dir,
            class_files=(),
            classpath=classpath,
            skipped=True,
        )

    settings = scalac.to_settings()
    compiler = CompilerInstanceLoader(settings).load(
        settings.version,
        tuple(target[ScalaCompilerArtifactsField].value or ()),
    )
    compiler.check_classpath(Path(entry) for entry in classpath)

    output_dir_digest = await Get(Digest, CreateDigest([Directory(destination_dir)]))
    input_digest = await _merge_or_create_empty(
        (hydrated.snapshot.digest, output_dir_digest, *dep_digests)
    )

    result = await Get(
        FallibleProcessResult,
        Process(
            argv=compiler.argv(
                (Path(source) for source in sources),
                (Path(entry) for entry in classpath),
                Path(destination_dir),
            ),
            env=dict(compiler.isolation.env),
            input_digest=input_digest,
            output_directories=(destination_dir,),
            description=f"Compile Scala source set {source_set_name} ({target.address}) with Scala {settings.version}",
        ),
    )
    if result.exit_code != 0:
        diagnostics = result.stdout.decode() + result.stderr.decode()
        raise CompileFailed(str(target.address), diagnostics)

    snapshot = await Get(Snapshot, Digest, result.output_digest)
    digest = await _merge_or_create_empty((result.output_digest, *dep_digests))

    return BuiltScalaSourceSet(
        digest=digest,
        source_set_name=source_set_name,
        destination_dir=destination_dir,
        class_files=tuple(sorted(f for f in snapshot.files if f.endswith(".class"))),
        classpath=classpath,
    )


def rules() -> list:
    return [
        *collect_rules(),
    ]
