"""XDR codec generator for Rust.

Turns a pre-parsed XDR type registry (JSON) into a single Rust module that
declares every requested type together with its `XdrCodec` implementation,
and installs the static runtime support files the generated code imports.

Usage:
    MAIN_FILE_NAME=src/xdr.rs python xdrgen.py --registry stellar.json --output-dir out
    python xdrgen.py --registry stellar.json --list-types --filter Asset
"""

import os
import argparse
import json
import re
import shutil
import sys
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
DEFAULT_STATIC_DIR = PROJECT_ROOT / "static"
DEFAULT_OUTPUT_DIR = Path("generated")
DEFAULT_PROFILE = "std"

ENV_GENERATE_TYPES = "GENERATE_TYPES"
ENV_MAIN_FILE_NAME = "MAIN_FILE_NAME"


# ===--- Errors ---=== #


VALID_ERROR_CODES = {
    "MISSING_MAIN_FILE_NAME",
    "INVALID_MAIN_FILE_NAME",
    "INVALID_PROFILE",
    "INVALID_REGISTRY",
    "PATH_NOT_FOUND",
    "CONFLICT_GENERATE_DISCOVERY",
    "FILTER_WITHOUT_LIST",
}


class ConfigError(Exception):
    def __init__(self, code: str, message: str, suggestion: str | None = None):
        if code not in VALID_ERROR_CODES:
            raise ValueError(f"Unknown config error code: {code}")
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion


class GenerationError(Exception):
    """Base class for failures raised while resolving or emitting types."""


class UnknownTypeError(GenerationError):
    def __init__(self, type_name: str, referenced_by: str | None = None):
        if referenced_by is None:
            message = f"Type '{type_name}' is not defined in the registry"
        else:
            message = (
                f"Type '{type_name}' (referenced by '{referenced_by}') "
                f"is not defined in the registry"
            )
        super().__init__(message)
        self.type_name = type_name
        self.referenced_by = referenced_by


class UnrecognizedKindError(GenerationError):
    def __init__(self, type_name: str, kind: str):
        super().__init__(
            f"Type '{type_name}' has unrecognized kind '{kind}' "
            f"(expected one of: {', '.join(TYPE_KINDS)})"
        )
        self.type_name = type_name
        self.kind = kind


# ===--- Backend profiles ---=== #


_PREAMBLE_SHARED = (
    "#[allow(unused_imports)]\n"
    "use crate::xdr_codec::XdrCodec;\n"
    "#[allow(unused_imports)]\n"
    "use crate::streams::{ReadStream, ReadStreamError, WriteStream, WriteStreamError};\n"
    "#[allow(unused_imports)]\n"
    "use crate::compound_types::{LimitedVarOpaque, LimitedString, LimitedVarArray, "
    "UnlimitedVarOpaque, UnlimitedString, UnlimitedVarArray};\n"
    "\n"
)


@dataclass(frozen=True)
class BackendProfile:
    """Runtime environment targeted by the generated module.

    Profiles differ only in the import preamble of the main module and in the
    static runtime files installed beside it. The resolution and emission
    algorithm is shared.

    Attributes:
        name: Profile identifier used on the command line, e.g. "std".
        preamble: Fixed text emitted at the top of the main module.
        bundle_manifest: Paths (relative to the template root and to the
            output directory) of the runtime files to install.
        template_dir: Subdirectory of the static root holding this profile's
            templates.
    """

    name: str
    preamble: str
    bundle_manifest: tuple[str, ...]
    template_dir: str


RUNTIME_MANIFEST: tuple[str, ...] = (
    "src/lib.rs",
    "src/compound_types.rs",
    "src/streams.rs",
    "src/xdr_codec.rs",
)

PROFILE_STD = BackendProfile(
    name="std",
    preamble="#[allow(unused_imports)]\nuse std::boxed::Box;\n" + _PREAMBLE_SHARED,
    bundle_manifest=RUNTIME_MANIFEST,
    template_dir="std",
)

PROFILE_NO_STD = BackendProfile(
    name="no_std",
    preamble=(
        "#[allow(unused_imports)]\nuse alloc::boxed::Box;\n"
        "#[allow(unused_imports)]\nuse alloc::vec::Vec;\n" + _PREAMBLE_SHARED
    ),
    bundle_manifest=RUNTIME_MANIFEST,
    template_dir="no_std",
)

BACKEND_PROFILES: dict[str, BackendProfile] = {
    PROFILE_STD.name: PROFILE_STD,
    PROFILE_NO_STD.name: PROFILE_NO_STD,
}


def parse_profile(raw: str) -> BackendProfile:
    profile = BACKEND_PROFILES.get(raw)
    if profile is None:
        raise ConfigError(
            "INVALID_PROFILE",
            f"Unknown backend profile: {raw}",
            f"Use one of: {', '.join(BACKEND_PROFILES)}.",
        )
    return profile


# ===--- CLI config contracts ---=== #


@dataclass(frozen=True)
class GenerationRequest:
    """Root set and destination for one generation run.

    Attributes:
        root_types: Explicitly requested type names in the order given, or
            None to request every name in the registry.
        main_file_name: Output module path relative to the output directory,
            e.g. "src/xdr.rs".
    """

    root_types: tuple[str, ...] | None
    main_file_name: str


@dataclass(frozen=True)
class GenerateConfig:
    registry: Path
    output_dir: Path
    profile: BackendProfile
    static_dir: Path
    request: GenerationRequest


@dataclass(frozen=True)
class DiscoveryConfig:
    command: str
    filter_text: str | None
    info_type: str | None
    registry: Path


def parse_type_list(raw: str | None) -> tuple[str, ...] | None:
    """Split a comma-separated type list into trimmed, non-blank names.

    Returns None (meaning "all registry types") when raw is None or contains
    no names at all.
    """
    if raw is None:
        return None
    names = tuple(name.strip() for name in raw.split(",") if name.strip())
    return names or None


def validate_main_file_name(raw: str | None) -> str:
    if raw is None or not raw.strip():
        raise ConfigError(
            "MISSING_MAIN_FILE_NAME",
            f"Main file name not specified ({ENV_MAIN_FILE_NAME} is unset).",
            f"Pass --main-file-name src/xdr.rs or set {ENV_MAIN_FILE_NAME}.",
        )
    name = raw.strip()
    candidate = Path(name)
    if candidate.is_absolute() or ".." in candidate.parts:
        raise ConfigError(
            "INVALID_MAIN_FILE_NAME",
            f"Main file name must stay inside the output directory: {name}",
            "Use a relative path such as src/xdr.rs.",
        )
    return name


def validate_path_exists(
    path: Path | None, flag: str, suggestion: str | None = None
) -> Path:
    if path is None:
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"{flag} is required: no path provided.",
            suggestion or f"Pass the path explicitly: {flag} /path/to/resource",
        )
    if path.exists():
        return path
    raise ConfigError(
        "PATH_NOT_FOUND",
        f"Path for {flag} does not exist: {path}",
        suggestion or "Provide an existing path for this flag.",
    )


def build_generation_request(
    raw_types: str | None, raw_main_file_name: str | None
) -> GenerationRequest:
    return GenerationRequest(
        root_types=parse_type_list(raw_types),
        main_file_name=validate_main_file_name(raw_main_file_name),
    )


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate Rust XDR codecs")

    parser.add_argument("--registry", type=Path, default=None)
    parser.add_argument("--output-dir", type=Path, default=DEFAULT_OUTPUT_DIR)
    parser.add_argument("--profile", type=str, default=DEFAULT_PROFILE)
    parser.add_argument("--types", action="append", default=None)
    parser.add_argument("--main-file-name", type=str, default=None)
    parser.add_argument("--static-dir", type=Path, default=DEFAULT_STATIC_DIR)

    discovery_group = parser.add_mutually_exclusive_group()
    discovery_group.add_argument("--list-types", action="store_true", default=False)
    discovery_group.add_argument("--info", type=str, default=None)

    parser.add_argument("--filter", type=str, default=None)

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_argument_parser()
    return parser.parse_args(argv)


def validate_config(
    args: argparse.Namespace, environ: Mapping[str, str] | None = None
) -> GenerateConfig | DiscoveryConfig:
    """Turn parsed arguments plus environment fallbacks into a typed config.

    CLI flags take precedence; GENERATE_TYPES and MAIN_FILE_NAME are consulted
    only when the matching flag is absent. Discovery mode ignores both
    variables.

    Args:
        args: Namespace from parse_args.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        GenerateConfig or DiscoveryConfig.

    Raises:
        ConfigError: On conflicting flags, missing paths, an unknown profile,
            or a missing/invalid main file name.
    """
    if environ is None:
        environ = os.environ

    has_generate_input = bool(args.types or args.main_file_name)
    has_discovery_command = bool(args.list_types or args.info)

    if args.filter and not args.list_types:
        raise ConfigError(
            "FILTER_WITHOUT_LIST",
            "--filter requires --list-types.",
            "Add --list-types or remove --filter.",
        )

    if has_generate_input and has_discovery_command:
        raise ConfigError(
            "CONFLICT_GENERATE_DISCOVERY",
            "Generate flags cannot be combined with discovery flags.",
            "Choose either generate mode or one discovery command.",
        )

    registry = validate_path_exists(
        args.registry,
        "--registry",
        "Export the parsed XDR registry as JSON and pass it: --registry /path/to/registry.json",
    )

    if has_discovery_command:
        return DiscoveryConfig(
            command="list-types" if args.list_types else "info",
            filter_text=args.filter,
            info_type=args.info,
            registry=registry,
        )

    profile = parse_profile(args.profile)
    static_dir = validate_path_exists(args.static_dir, "--static-dir")

    raw_types = ",".join(args.types) if args.types else environ.get(ENV_GENERATE_TYPES)
    raw_main_file_name = args.main_file_name or environ.get(ENV_MAIN_FILE_NAME)
    request = build_generation_request(raw_types, raw_main_file_name)
    validate_main_file_destination(request.main_file_name, profile)

    return GenerateConfig(
        registry=registry,
        output_dir=args.output_dir,
        profile=profile,
        static_dir=static_dir,
        request=request,
    )


def build_config(
    argv: list[str] | None = None, environ: Mapping[str, str] | None = None
) -> GenerateConfig | DiscoveryConfig:
    return validate_config(parse_args(argv), environ)


# ===--- Registry model ---=== #

KIND_ALIAS = "alias"
KIND_ENUM = "enum"
KIND_STRUCT = "struct"
KIND_UNION = "union"

TYPE_KINDS: tuple[str, ...] = (KIND_ALIAS, KIND_ENUM, KIND_STRUCT, KIND_UNION)
AGGREGATE_KINDS = frozenset({KIND_ENUM, KIND_STRUCT, KIND_UNION})

I32_MIN = -(2**31)
I32_MAX = 2**31 - 1


@dataclass(frozen=True)
class TypeDescriptor:
    """One named XDR type as delivered by the upstream analyzer.

    Attributes:
        kind: "alias", "enum", "struct" or "union". Not validated here; the
            kind emitter rejects anything else.
        definition: Rust declaration text (enum/struct/union only).
        implementation: Body of the `impl XdrCodec` block (enum/struct/union).
        reference: Target type expression for aliases.
        dependencies: Names of the types referenced directly, in registry order.
    """

    kind: str
    definition: str = ""
    implementation: str = ""
    reference: str = ""
    dependencies: tuple[str, ...] = ()


@dataclass(frozen=True)
class TypeRegistry:
    types: dict[str, TypeDescriptor]
    constants: dict[str, int]
    source: str = "<memory>"


def determine_dependencies(descriptor: TypeDescriptor) -> tuple[str, ...]:
    return descriptor.dependencies


def determine_type_reference(descriptor: TypeDescriptor) -> str:
    return descriptor.reference


# ===--- Registry loading ---=== #


def _invalid_registry(source: str, detail: str) -> ConfigError:
    return ConfigError(
        "INVALID_REGISTRY",
        f"Invalid registry {source}: {detail}",
        "Regenerate the registry JSON from the XDR analyzer.",
    )


def _parse_text_field(entry: dict, key: str, type_name: str, source: str) -> str:
    value = entry.get(key, "")
    if not isinstance(value, str):
        raise _invalid_registry(
            source, f"type '{type_name}' field '{key}' must be a string"
        )
    return value


def parse_type_descriptor(type_name: str, entry: object, source: str) -> TypeDescriptor:
    if not isinstance(entry, dict):
        raise _invalid_registry(source, f"type '{type_name}' must be an object")

    kind = entry.get("kind")
    if not isinstance(kind, str) or not kind:
        raise _invalid_registry(source, f"type '{type_name}' has no kind")

    dependencies = entry.get("dependencies", [])
    if not isinstance(dependencies, list) or not all(
        isinstance(dep, str) for dep in dependencies
    ):
        raise _invalid_registry(
            source, f"type '{type_name}' dependencies must be a list of names"
        )

    reference = _parse_text_field(entry, "reference", type_name, source)
    if kind == KIND_ALIAS and not reference:
        raise _invalid_registry(source, f"alias '{type_name}' has no reference")

    return TypeDescriptor(
        kind=kind,
        definition=_parse_text_field(entry, "definition", type_name, source),
        implementation=_parse_text_field(entry, "implementation", type_name, source),
        reference=reference,
        dependencies=tuple(dependencies),
    )


def parse_registry_document(document: object, source: str) -> TypeRegistry:
    """Build a TypeRegistry from a decoded registry JSON document.

    Key order in "types" and "constants" is kept as-is; it defines the root
    order for full generation and the constant emission order.

    Args:
        document: Decoded JSON value.
        source: Label used in error messages and the summary report.

    Returns:
        TypeRegistry with descriptors and constants in document order.

    Raises:
        ConfigError: INVALID_REGISTRY for any structural problem, including
            constants that are not integers in the i32 range.
    """
    if not isinstance(document, dict):
        raise _invalid_registry(source, "top level must be an object")

    raw_types = document.get("types", {})
    if not isinstance(raw_types, dict):
        raise _invalid_registry(source, "'types' must be an object")

    raw_constants = document.get("constants", {})
    if not isinstance(raw_constants, dict):
        raise _invalid_registry(source, "'constants' must be an object")

    types = {
        name: parse_type_descriptor(name, entry, source)
        for name, entry in raw_types.items()
    }

    constants: dict[str, int] = {}
    for name, value in raw_constants.items():
        if isinstance(value, bool) or not isinstance(value, int):
            raise _invalid_registry(source, f"constant '{name}' must be an integer")
        if not I32_MIN <= value <= I32_MAX:
            raise _invalid_registry(
                source, f"constant '{name}' = {value} does not fit in i32"
            )
        if not constant_case(name):
            raise _invalid_registry(source, f"constant name {name!r} is empty")
        constants[name] = value

    return TypeRegistry(types=types, constants=constants, source=source)


def _unique_keys_hook(source: str) -> Callable[[list[tuple[str, object]]], dict]:
    def _build_object(pairs: list[tuple[str, object]]) -> dict:
        document: dict = {}
        for key, value in pairs:
            if key in document:
                raise _invalid_registry(source, f"duplicate key {key!r}")
            document[key] = value
        return document

    return _build_object


def load_registry(path: Path) -> TypeRegistry:
    """Read and parse a registry JSON file.

    Raises:
        ConfigError: PATH_NOT_FOUND for a missing file; INVALID_REGISTRY for
            undecodable bytes, malformed JSON, a key repeated within one
            object, or a structural problem in the document.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(
            "PATH_NOT_FOUND",
            f"Registry file does not exist: {path}",
            "Pass an existing registry JSON file with --registry.",
        )
    try:
        document = json.loads(
            path.read_text(encoding="utf-8"),
            object_pairs_hook=_unique_keys_hook(path.name),
        )
    except UnicodeDecodeError as err:
        raise _invalid_registry(path.name, f"not valid UTF-8 ({err})") from err
    except json.JSONDecodeError as err:
        raise _invalid_registry(path.name, f"not valid JSON ({err})") from err
    return parse_registry_document(document, path.name)


# ===--- Naming ---=== #

_LOWER_UPPER_RE = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_WORD_RE = re.compile(r"([A-Z])([A-Z][a-z])")
_SEPARATOR_RE = re.compile(r"[^A-Za-z0-9]+")


def constant_case(name: str) -> str:
    """Convert an identifier to SCREAMING_SNAKE_CASE.

    Word boundaries are lower/digit followed by upper ("maxSize"), the end of
    an acronym ("HTTPServer") and any run of non-alphanumerics ("foo-bar").
    """
    split = _LOWER_UPPER_RE.sub(r"\1 \2", name)
    split = _ACRONYM_WORD_RE.sub(r"\1 \2", split)
    words = _SEPARATOR_RE.sub(" ", split).split()
    return "_".join(word.upper() for word in words)


# ===--- Constant emission ---=== #


def emit_constants(constants: Mapping[str, int]) -> str:
    """Render the constant table as `pub const NAME: i32 = value;` items.

    Entries are emitted in mapping order, unsorted and without deduplication
    of the cased names. The block always ends with one blank line, even when
    the table is empty.
    """
    lines = [
        f"#[allow(dead_code)]\npub const {constant_case(name)}: i32 = {value};\n"
        for name, value in constants.items()
    ]
    return "".join(lines) + "\n"


# ===--- Kind emission ---=== #

ENUM_DERIVES: tuple[str, ...] = ("Debug", "Copy", "Clone", "Eq", "PartialEq")
AGGREGATE_DERIVES: tuple[str, ...] = ("Debug", "Clone", "Eq", "PartialEq")


def derive_tags(kind: str) -> tuple[str, ...]:
    # Enums are plain i32 discriminants; payload-carrying types are not Copy.
    return ENUM_DERIVES if kind == KIND_ENUM else AGGREGATE_DERIVES


def emit_alias(name: str, reference: str) -> str:
    return f"#[allow(dead_code)]\npub type {name} = {reference};\n\n"


def emit_aggregate(name: str, descriptor: TypeDescriptor) -> str:
    derive = ", ".join(derive_tags(descriptor.kind))
    declaration = (
        f"#[allow(dead_code)]\n#[derive({derive})]\n{descriptor.definition}\n"
    )
    codec = f"impl XdrCodec for {name} {{{descriptor.implementation}\n}}\n\n"
    return declaration + codec


def emit_type(
    name: str,
    descriptor: TypeDescriptor,
    resolve_reference: Callable[[TypeDescriptor], str] = determine_type_reference,
) -> str:
    """Render one registry type as Rust source.

    Aliases become a `pub type` item and carry no codec of their own; the
    aliased type's `XdrCodec` implementation applies. Enums, structs and
    unions emit the supplied declaration under a kind-specific derive list,
    followed by an `impl XdrCodec` block wrapping the supplied codec body.

    Args:
        name: Registry name of the type.
        descriptor: The type's descriptor.
        resolve_reference: Maps an alias descriptor to its target expression.

    Returns:
        Source fragment ending in a blank line.

    Raises:
        UnrecognizedKindError: If descriptor.kind is not one of TYPE_KINDS.
    """
    if descriptor.kind == KIND_ALIAS:
        return emit_alias(name, resolve_reference(descriptor))
    if descriptor.kind in AGGREGATE_KINDS:
        return emit_aggregate(name, descriptor)
    raise UnrecognizedKindError(name, descriptor.kind)


# ===--- Closure resolution ---=== #


@dataclass
class ResolutionState:
    """Worklist state for one resolve_closure run.

    pending is used as a stack. queued mirrors pending for O(1) membership.
    A name is pushed only when it is neither emitted nor pending.
    """

    pending: list[str] = field(default_factory=list)
    queued: set[str] = field(default_factory=set)
    emitted: set[str] = field(default_factory=set)
    referenced_by: dict[str, str] = field(default_factory=dict)

    def push(self, name: str, referenced_by: str | None = None) -> bool:
        if name in self.emitted or name in self.queued:
            return False
        self.pending.append(name)
        self.queued.add(name)
        if referenced_by is not None:
            self.referenced_by[name] = referenced_by
        return True

    def pop(self) -> str:
        name = self.pending.pop()
        self.queued.discard(name)
        return name


@dataclass(frozen=True)
class RenderedType:
    name: str
    kind: str
    source: str


@dataclass(frozen=True)
class ResolutionStats:
    """Diagnostics from a single resolve_closure run.

    Attributes:
        root_count: Distinct root names requested.
        emitted_count: Types rendered, roots included.
        added_types: Rendered names that were not roots (pulled in by deps).
    """

    root_count: int
    emitted_count: int
    added_types: frozenset[str]


def resolve_closure(
    roots: Iterable[str],
    types: Mapping[str, TypeDescriptor],
    render: Callable[[str, TypeDescriptor], str] = emit_type,
    dependencies: Callable[[TypeDescriptor], Iterable[str]] = determine_dependencies,
) -> tuple[tuple[RenderedType, ...], ResolutionStats]:
    """Render every type reachable from roots exactly once.

    Roots are pushed in the order given and popped from the end, so the last
    root is rendered first. After a type is rendered its dependencies are
    pushed in registry order, skipping any name already rendered or pending.
    The output is therefore in LIFO discovery order, not dependency order;
    Rust resolves forward references between items. Reference cycles are
    harmless because a rendered name is never queued again.

    Args:
        roots: Requested type names. Duplicates are ignored.
        types: Registry mapping of name -> descriptor.
        render: Produces the source fragment for one type.
        dependencies: Returns the direct dependencies of a descriptor.

    Returns:
        Tuple of (rendered types in emission order, ResolutionStats).

    Raises:
        UnknownTypeError: If a root or any reachable dependency is not in types.
        UnrecognizedKindError: Propagated from render.
    """
    state = ResolutionState()
    root_names: set[str] = set()
    for name in roots:
        if state.push(name):
            root_names.add(name)

    rendered: list[RenderedType] = []
    while state.pending:
        name = state.pop()
        descriptor = types.get(name)
        if descriptor is None:
            raise UnknownTypeError(name, state.referenced_by.get(name))
        rendered.append(RenderedType(name, descriptor.kind, render(name, descriptor)))
        state.emitted.add(name)
        for dependency in dependencies(descriptor):
            state.push(dependency, referenced_by=name)

    stats = ResolutionStats(
        root_count=len(root_names),
        emitted_count=len(rendered),
        added_types=frozenset(state.emitted - root_names),
    )
    return tuple(rendered), stats


# ===--- Module assembly ---=== #


@dataclass(frozen=True)
class GeneratedModule:
    """Main module assembled in memory, not yet written.

    Attributes:
        source: Complete module text.
        rendered: Rendered types in emission order.
        stats: Closure diagnostics.
    """

    source: str
    rendered: tuple[RenderedType, ...]
    stats: ResolutionStats


def select_root_types(
    request: GenerationRequest, registry: TypeRegistry
) -> tuple[str, ...]:
    if request.root_types is None:
        return tuple(registry.types)
    return request.root_types


def assemble_module_source(
    profile: BackendProfile,
    constants_block: str,
    rendered: Iterable[RenderedType],
) -> str:
    return profile.preamble + constants_block + "".join(r.source for r in rendered)


def generate_module(
    registry: TypeRegistry,
    request: GenerationRequest,
    profile: BackendProfile,
) -> GeneratedModule:
    """Build the complete main module for a request without touching disk.

    Args:
        registry: Loaded type registry.
        request: Root set and destination name.
        profile: Backend profile supplying the preamble.

    Returns:
        GeneratedModule with source text, rendered types and stats.

    Raises:
        UnknownTypeError: A requested or referenced type is missing.
        UnrecognizedKindError: A reachable descriptor has an unknown kind.
    """
    constants_block = emit_constants(registry.constants)
    roots = select_root_types(request, registry)
    rendered, stats = resolve_closure(roots, registry.types)
    source = assemble_module_source(profile, constants_block, rendered)
    return GeneratedModule(source=source, rendered=rendered, stats=stats)


# ===--- Writer I/O functions ---=== #


@dataclass(frozen=True)
class FileWriteResult:
    """Result of writing or copying one output file.

    Attributes:
        filename: Path relative to the output directory, e.g. "src/xdr.rs".
        path: Absolute path of the written file.
        line_count: Number of newline characters in the file.
        byte_count: Number of bytes written.
    """

    filename: str
    path: Path
    line_count: int
    byte_count: int


@dataclass(frozen=True)
class BundleInstallResult:
    profile: str
    output_dir: Path
    files: tuple[FileWriteResult, ...]


def initialize_output_path(output_dir: Path) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def validate_main_file_destination(
    main_file_name: str | None, profile: BackendProfile
) -> str:
    """Check that the main module can be written without touching the bundle.

    The name must name a file, and must be neither a bundle entry, a parent
    directory of one, nor a path beneath one.

    Raises:
        ConfigError: MISSING_MAIN_FILE_NAME / INVALID_MAIN_FILE_NAME.
    """
    name = validate_main_file_name(main_file_name)
    candidate = Path(name)
    if not candidate.parts:
        raise ConfigError(
            "INVALID_MAIN_FILE_NAME",
            f"Main file name does not name a file: {name}",
            "Use a file path such as src/xdr.rs.",
        )
    for entry in profile.bundle_manifest:
        entry_path = Path(entry)
        if (
            candidate == entry_path
            or candidate in entry_path.parents
            or entry_path in candidate.parents
        ):
            raise ConfigError(
                "INVALID_MAIN_FILE_NAME",
                f"Main file name {name} collides with runtime file {entry}",
                "Choose a path the runtime bundle does not use, e.g. src/xdr.rs.",
            )
    return name


def write_main_module(
    output_dir: Path, main_file_name: str | None, source: str
) -> FileWriteResult:
    """Write the assembled main module with a single write.

    Args:
        output_dir: Output root. Missing parents of the destination are created.
        main_file_name: Destination relative to output_dir.
        source: Complete module text from generate_module.

    Returns:
        FileWriteResult for the main module.

    Raises:
        ConfigError: MISSING_MAIN_FILE_NAME / INVALID_MAIN_FILE_NAME, raised
            before anything is created on disk.
        OSError: Propagated directly if the filesystem write fails.
    """
    name = validate_main_file_name(main_file_name)
    file_path = Path(output_dir) / name
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(source, encoding="utf-8")
    resolved = file_path.resolve()
    return FileWriteResult(
        filename=Path(name).as_posix(),
        path=resolved,
        line_count=source.count("\n"),
        byte_count=len(resolved.read_bytes()),
    )


def install_bundle(
    profile: BackendProfile, static_dir: Path, output_dir: Path
) -> BundleInstallResult:
    """Copy the profile's runtime support files into the output tree.

    Each manifest entry is copied from static_dir/<template_dir>/<entry> to
    output_dir/<entry>. Intermediate directories are created once each;
    existing files are overwritten, so repeated runs are safe.

    Args:
        profile: Backend profile providing the manifest and template subdir.
        static_dir: Root of the template tree.
        output_dir: Output root.

    Returns:
        BundleInstallResult with one FileWriteResult per manifest entry, in
        manifest order.

    Raises:
        OSError: Propagated directly (e.g. FileNotFoundError for a missing
            template). Files copied before the failure are left in place.
    """
    template_root = Path(static_dir) / profile.template_dir
    output_dir = Path(output_dir)
    created_dirs: set[Path] = set()
    files: list[FileWriteResult] = []

    for relative in profile.bundle_manifest:
        destination = output_dir / relative
        if destination.parent not in created_dirs:
            destination.parent.mkdir(parents=True, exist_ok=True)
            created_dirs.add(destination.parent)
        shutil.copyfile(template_root / relative, destination)
        data = destination.read_bytes()
        files.append(
            FileWriteResult(
                filename=relative,
                path=destination.resolve(),
                line_count=data.count(b"\n"),
                byte_count=len(data),
            )
        )

    return BundleInstallResult(
        profile=profile.name, output_dir=output_dir, files=tuple(files)
    )


# ===--- Discovery commands ---=== #


@dataclass(frozen=True)
class TypeSummary:
    name: str
    kind: str
    dependency_count: int


@dataclass(frozen=True)
class TypeDetail:
    """Full --info output for one registry type.

    Attributes:
        name: Type name.
        kind: Descriptor kind string.
        reference: Alias target, "" for other kinds.
        dependencies: Direct dependencies in registry order.
        referenced_by: Registry types listing this one as a dependency, in
            registry order.
        closure_size: Number of types emitted when this type is the only root.
    """

    name: str
    kind: str
    reference: str
    dependencies: tuple[str, ...]
    referenced_by: tuple[str, ...]
    closure_size: int


def gather_type_summaries(registry: TypeRegistry) -> list[TypeSummary]:
    return [
        TypeSummary(
            name=name,
            kind=descriptor.kind,
            dependency_count=len(determine_dependencies(descriptor)),
        )
        for name, descriptor in registry.types.items()
    ]


def filter_types_by_text(
    summaries: list[TypeSummary], filter_text: str
) -> list[TypeSummary]:
    needle = filter_text.lower()
    return [s for s in summaries if needle in s.name.lower()]


def gather_type_detail(registry: TypeRegistry, name: str) -> TypeDetail | None:
    """Collect --info data for one type, or None if it is not in the registry.

    Raises:
        UnknownTypeError: If the type's closure reaches an undefined name.
    """
    descriptor = registry.types.get(name)
    if descriptor is None:
        return None

    referenced_by = tuple(
        other
        for other, other_descriptor in registry.types.items()
        if name in determine_dependencies(other_descriptor)
    )
    _rendered, stats = resolve_closure(
        (name,), registry.types, render=lambda _name, _descriptor: ""
    )
    return TypeDetail(
        name=name,
        kind=descriptor.kind,
        reference=descriptor.reference if descriptor.kind == KIND_ALIAS else "",
        dependencies=determine_dependencies(descriptor),
        referenced_by=referenced_by,
        closure_size=stats.emitted_count,
    )


def format_types_table(summaries: list[TypeSummary], source: str) -> str:
    """Return the complete --list-types output.

    Output format:

        3 types in registry.json:

          Asset        union   2 deps
          AssetCode    alias   0 deps
          ...

    Name and kind columns are as wide as their widest value. Filtering is
    applied by the caller.
    """
    lines = [f"{len(summaries)} types in {source}:", ""]
    if not summaries:
        lines.append("")
        return "\n".join(lines)

    name_width = max(len(s.name) for s in summaries)
    kind_width = max(len(s.kind) for s in summaries)
    for s in summaries:
        deps_label = "dep" if s.dependency_count == 1 else "deps"
        lines.append(
            f"  {s.name.ljust(name_width)}  {s.kind.ljust(kind_width)}  "
            f"{s.dependency_count} {deps_label}"
        )
    lines.append("")
    return "\n".join(lines)


def format_type_detail(detail: TypeDetail) -> str:
    lines = [f"{detail.name} ({detail.kind})"]
    if detail.reference:
        lines.append(f"  Alias of:  {detail.reference}")
    lines.append(f"  Closure:   {detail.closure_size} types")

    lines.append("")
    lines.append(f"  Depends on ({len(detail.dependencies)}):")
    for dep in detail.dependencies:
        lines.append(f"    {dep}")

    lines.append("")
    lines.append(f"  Referenced by ({len(detail.referenced_by)}):")
    for ref in detail.referenced_by:
        lines.append(f"    {ref}")

    lines.append("")
    return "\n".join(lines)


def run_discovery(config: DiscoveryConfig) -> None:
    """Execute the discovery command in config and print its output.

    Raises:
        SystemExit(1): When --info names a type that is not in the registry.
        ConfigError: Propagated from load_registry.
    """
    registry = load_registry(config.registry)

    if config.command == "list-types":
        summaries = gather_type_summaries(registry)
        if config.filter_text is not None:
            summaries = filter_types_by_text(summaries, config.filter_text)
        print(format_types_table(summaries, registry.source), end="")

    elif config.command == "info":
        assert config.info_type is not None  # validate_config sets it for "info"
        detail = gather_type_detail(registry, config.info_type)
        if detail is None:
            print(
                f"Error: type '{config.info_type}' not found in {registry.source}",
                file=sys.stderr,
            )
            raise SystemExit(1)
        print(format_type_detail(detail), end="")


# ===--- Summary report ---=== #


@dataclass(frozen=True)
class GenerationCounts:
    aliases: int
    enums: int
    structs: int
    unions: int
    constants: int

    @property
    def total_types(self) -> int:
        return self.aliases + self.enums + self.structs + self.unions


@dataclass(frozen=True)
class GenerationSummary:
    """Data for the post-generation console report.

    Attributes:
        profile_name: Backend profile used.
        source_label: Registry file label.
        output_dir: Output directory as a string.
        roots_label: "all" or the explicit root names, comma-separated.
        added_count: Types pulled in by dependency closure.
        counts: Per-kind counts of rendered types plus the constant count.
        files: Bundle files in manifest order, then the main module.
    """

    profile_name: str
    source_label: str
    output_dir: str
    roots_label: str
    added_count: int
    counts: GenerationCounts
    files: tuple[FileWriteResult, ...]


def build_roots_label(request: GenerationRequest) -> str:
    if request.root_types is None:
        return "all"
    return ", ".join(request.root_types)


def build_generation_counts(
    rendered: Iterable[RenderedType], constant_count: int
) -> GenerationCounts:
    kinds = [r.kind for r in rendered]
    return GenerationCounts(
        aliases=kinds.count(KIND_ALIAS),
        enums=kinds.count(KIND_ENUM),
        structs=kinds.count(KIND_STRUCT),
        unions=kinds.count(KIND_UNION),
        constants=constant_count,
    )


def build_generation_summary(
    config: GenerateConfig,
    registry: TypeRegistry,
    module: GeneratedModule,
    bundle: BundleInstallResult,
    main_file: FileWriteResult,
) -> GenerationSummary:
    return GenerationSummary(
        profile_name=config.profile.name,
        source_label=registry.source,
        output_dir=str(config.output_dir),
        roots_label=build_roots_label(config.request),
        added_count=len(module.stats.added_types),
        counts=build_generation_counts(module.rendered, len(registry.constants)),
        files=bundle.files + (main_file,),
    )


def format_generation_summary(summary: GenerationSummary) -> str:
    """Render a GenerationSummary as the console report.

    Returns a string with exactly one trailing newline.
    """
    lines: list[str] = []
    lines.append("XDR codecs generated:")
    lines.append("")
    lines.append(f"  Profile:    {summary.profile_name}")
    lines.append(f"  Source:     {summary.source_label}")
    lines.append(f"  Output:     {summary.output_dir}")
    lines.append(f"  Roots:      {summary.roots_label}")
    lines.append("")
    lines.append(
        f"  Types generated: {summary.counts.total_types}"
        f" ({summary.added_count} via dependencies)"
    )

    def _row(label: str, count: int) -> str:
        return f"    {label:<11}{count:>6}"

    lines.append(_row("Aliases:", summary.counts.aliases))
    lines.append(_row("Enums:", summary.counts.enums))
    lines.append(_row("Structs:", summary.counts.structs))
    lines.append(_row("Unions:", summary.counts.unions))
    lines.append(_row("Constants:", summary.counts.constants))

    lines.append("")
    lines.append("  Files written:")
    for file_result in summary.files:
        line_str = f"{file_result.line_count:>6,} lines"
        lines.append(f"    {file_result.filename:<28} {line_str}")

    total_lines = sum(f.line_count for f in summary.files)
    lines.append("")
    lines.append(f"  Total: {total_lines:,} lines across {len(summary.files)} files")
    lines.append("")

    return "\n".join(lines)


def print_generation_summary(summary: GenerationSummary) -> None:
    print(format_generation_summary(summary), end="")


# ===--- Pipeline ---=== #


@dataclass(frozen=True)
class GenerationResult:
    module: GeneratedModule
    bundle: BundleInstallResult
    main_file: FileWriteResult


def run_generate(config: GenerateConfig) -> GenerationResult:
    """Execute a full generation run.

    Stages: load registry -> assemble module in memory -> validate destination
    -> install runtime bundle -> write main module -> print summary. Every
    failure in the first three stages happens before anything is written.

    Args:
        config: Validated GenerateConfig from build_config.

    Returns:
        GenerationResult describing the module and every file written.

    Raises:
        ConfigError: Unreadable/malformed registry or bad main file name.
        GenerationError: Unknown type reference or unrecognized kind.
        OSError: Filesystem failure while copying or writing.
    """
    print(f"Loading: {config.registry}")
    registry = load_registry(config.registry)
    print(
        f"  Registry: {len(registry.types)} types, "
        f"{len(registry.constants)} constants"
    )

    module = generate_module(registry, config.request, config.profile)
    roots_mode = "all" if config.request.root_types is None else "explicit"
    print(f"  Roots: {module.stats.root_count} requested ({roots_mode})")
    print(
        f"  Resolved: {module.stats.emitted_count} types "
        f"({len(module.stats.added_types)} added by dependency closure)"
    )

    main_file_name = validate_main_file_destination(
        config.request.main_file_name, config.profile
    )
    initialize_output_path(config.output_dir)

    bundle = install_bundle(config.profile, config.static_dir, config.output_dir)
    print(f"  Bundle: {len(bundle.files)} files ({bundle.profile})")

    main_file = write_main_module(config.output_dir, main_file_name, module.source)
    print(f"  Written: {main_file.path}")

    summary = build_generation_summary(config, registry, module, bundle, main_file)
    print_generation_summary(summary)

    return GenerationResult(module=module, bundle=bundle, main_file=main_file)


# ===--- Main generation ---=== #


def _report_config_error(err: ConfigError) -> None:
    print(f"Config error [{err.code}]: {err.message}")
    if err.suggestion:
        print(f"Hint: {err.suggestion}")


def main(argv: list[str] | None = None) -> None:
    try:
        config = build_config(argv)
    except ConfigError as err:
        _report_config_error(err)
        raise SystemExit(1) from err

    try:
        if isinstance(config, DiscoveryConfig):
            run_discovery(config)
        else:
            run_generate(config)
    except ConfigError as err:
        _report_config_error(err)
        raise SystemExit(1) from err
    except GenerationError as err:
        print(f"Generation error: {err}")
        raise SystemExit(1) from err
    except OSError as err:
        print(f"Error: {err}")
        raise SystemExit(1) from err


if __name__ == "__main__":
    main()
