"""
Configuration loader for marshalgen.

Loads the YAML configuration, resolves extension paths and turns the type
manifest into a populated MetaClassFactory and DefinitionsRegistry.
"""

import importlib
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from marshalgen.codegen.meta import Annotation, JavaClass, MetaParameter
from marshalgen.codegen.meta_factory import MetaClassFactory, builtin
from marshalgen.errors import ConfigurationError, ResolutionError
from marshalgen.marshalling.api import ALWAYS_QUALIFY, MARSHALLER, install_runtime_types
from marshalgen.marshalling.definitions import DefinitionsRegistry

from .models import (
    ExposedTypeConfig,
    MarshalgenConfig,
    OutputConfig,
    OutputTarget,
    ParameterDeclaration,
    TypeDeclaration,
    TypeKind,
)

logger = logging.getLogger(__name__)


def load_config_from_yaml(config_path: Path) -> MarshalgenConfig:
    """Load configuration from a YAML file."""
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")

    if raw_config is None:
        raise ConfigurationError("Configuration file is empty")

    try:
        config = MarshalgenConfig(**raw_config)
    except (ValidationError, TypeError) as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}")

    # Relative cache directories are resolved against the config file
    if not config.output.cache_dir.is_absolute():
        config.output.cache_dir = config_path.parent / config.output.cache_dir

    validate_config(config)
    return config


def validate_config(config: MarshalgenConfig) -> None:
    """Check references between sections that pydantic cannot see."""
    declared = {t.name for t in config.types}
    exposed = {e.type for e in config.exposed}

    for entry in config.exposed:
        if entry.type not in declared and not _is_builtin(entry.type):
            raise ConfigurationError(f"Exposed type is not declared: {entry.type}", type_name=entry.type)

    for alias, target in config.aliases.items():
        if target not in exposed:
            raise ConfigurationError(f"Alias '{alias}' targets a type that is not exposed: {target}",
                                     type_name=target)


def _is_builtin(name: str) -> bool:
    try:
        builtin(name)
    except ResolutionError:
        return False
    return True


def create_config_from_args(
    package_name: str,
    class_name: str,
    target: str = "java",
    cache_dir: Path | None = None,
    print_out: bool = False,
    **kwargs: Any,
) -> MarshalgenConfig:
    """Create configuration from CLI arguments."""
    output = OutputConfig(
        package_name=package_name,
        class_name=class_name,
        print_out=print_out,
        **({"cache_dir": cache_dir} if cache_dir is not None else {}),
    )

    config_dict: dict[str, Any] = {"output": output, "target": OutputTarget(target.lower())}
    for key in ("types", "exposed", "aliases", "extensions", "include_builtin_marshallers",
                "default_array_marshallers"):
        if key in kwargs:
            config_dict[key] = kwargs[key]

    return MarshalgenConfig(**config_dict)


def generate_default_config(output_path: Path) -> None:
    """Generate a default configuration file."""
    default_config = {
        "output": {
            "package_name": "com.example.gen",
            "class_name": "MarshallerFactoryImpl",
            "cache_dir": ".marshalgen/cache",
            "print_out": False,
        },
        "target": "java",
        "include_builtin_marshallers": True,
        "default_array_marshallers": True,
        "types": [
            {
                "name": "com.example.Person",
                "fields": [
                    {"name": "name", "type": "java.lang.String", "scope": "public"},
                    {"name": "scores", "type": "int[][]", "scope": "public"},
                ],
            },
            {
                "name": "com.example.Color",
                "kind": "enum",
                "constants": ["RED", "GREEN", "BLUE"],
            },
        ],
        "exposed": [
            {"type": "com.example.Person", "aliases": ["Person"]},
            {"type": "com.example.Color"},
        ],
        "aliases": {},
        "extensions": [],
    }

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        yaml.dump(default_config, f, default_flow_style=False, sort_keys=False)


# ============================================================================
# Extensions
# ============================================================================


def load_extensions(paths: list[str]) -> list[type]:
    """
    Import extension configurator classes.

    Args:
        paths: 'package.module:ClassName' or 'package.module.ClassName'

    Returns:
        The classes, in the given order; they are validated by the generator

    Raises:
        ConfigurationError: If a module or attribute cannot be loaded
    """
    classes = []
    for path in paths:
        module_name, sep, attr = path.partition(":")
        if not sep:
            module_name, _, attr = path.rpartition(".")
        if not module_name or not attr:
            raise ConfigurationError(f"Invalid extension path: {path}", type_name=path)

        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise ConfigurationError(f"Cannot import extension module {module_name}: {e}", type_name=path)

        try:
            extension = getattr(module, attr)
        except AttributeError:
            raise ConfigurationError(f"Extension {attr} not found in {module_name}", type_name=path)

        logger.debug(f"Loaded extension {path}")
        classes.append(extension)
    return classes


# ============================================================================
# Type manifest -> registry
# ============================================================================


def _resolve(factory: MetaClassFactory, name: str, owner: str):
    try:
        return factory.get(name)
    except ResolutionError as e:
        raise ConfigurationError(f"{owner}: {e}", type_name=owner) from e


def _parameters(factory: MetaClassFactory, parameters: list[ParameterDeclaration], owner: str):
    return [MetaParameter(_resolve(factory, p.type, owner), p.name) for p in parameters]


def _annotations(factory: MetaClassFactory, names: list[str], owner: str) -> list[Annotation]:
    annotations = []
    for name in names:
        annotation_type = _resolve(factory, name, owner)
        if not annotation_type.is_annotation:
            raise ConfigurationError(f"{owner}: {name} is not an annotation type", type_name=owner)
        annotations.append(Annotation.of(annotation_type))
    return annotations


def _declare(factory: MetaClassFactory, declaration: TypeDeclaration) -> JavaClass:
    kind = declaration.kind
    return factory.declare(
        declaration.name,
        is_interface=kind in (TypeKind.INTERFACE, TypeKind.ANNOTATION),
        is_annotation=kind is TypeKind.ANNOTATION,
        is_enum=kind is TypeKind.ENUM,
        is_abstract=declaration.abstract,
        is_final=declaration.final or kind is TypeKind.ENUM,
        enum_constants=declaration.constants,
    )


def _populate(factory: MetaClassFactory, type_: JavaClass, declaration: TypeDeclaration) -> None:
    owner = declaration.name

    if declaration.super_class is not None:
        type_.set_super_class(_resolve(factory, declaration.super_class, owner))
    elif declaration.kind is TypeKind.ENUM:
        type_.set_super_class(builtin("java.lang.Enum"))
    elif declaration.kind is TypeKind.CLASS:
        type_.set_super_class(builtin("java.lang.Object"))

    for interface in declaration.interfaces:
        type_.add_interface(_resolve(factory, interface, owner))

    for annotation in _annotations(factory, declaration.annotations, owner):
        type_.add_annotation(annotation)

    for f in declaration.fields:
        type_.declare_field(
            f.name,
            _resolve(factory, f.type, owner),
            scope=f.scope,
            is_static=f.static,
            is_final=f.final,
            is_transient=f.transient,
            annotations=tuple(_annotations(factory, f.annotations, owner)),
        )

    for m in declaration.methods:
        type_.declare_method(
            m.name,
            _resolve(factory, m.returns, owner),
            _parameters(factory, m.parameters, owner),
            scope=m.scope,
            is_static=m.static,
            is_abstract=m.abstract,
        )

    for c in declaration.constructors:
        type_.declare_constructor(_parameters(factory, c.parameters, owner), scope=c.scope)


def build_factory(config: MarshalgenConfig) -> MetaClassFactory:
    """
    Build the type universe described by the manifest.

    Types are declared in a first pass and populated in a second, so
    declarations may reference each other in any order.
    """
    factory = install_runtime_types(MetaClassFactory())

    declared = []
    for declaration in config.types:
        declared.append((_declare(factory, declaration), declaration))
    for type_, declaration in declared:
        _populate(factory, type_, declaration)

    logger.debug(f"Declared {len(declared)} manifest types")
    return factory


def _marshaller_class(factory: MetaClassFactory, entry: ExposedTypeConfig) -> JavaClass | None:
    if entry.marshaller is None:
        return None
    if factory.is_known(entry.marshaller):
        return factory.get(entry.marshaller)
    # hand-written marshallers need no manifest entry of their own
    return factory.declare(
        entry.marshaller,
        super_class=builtin("java.lang.Object"),
        interfaces=[factory.get(MARSHALLER)],
    )


def build_registry(config: MarshalgenConfig) -> DefinitionsRegistry:
    """
    Build the registry of exposed types for a configuration.

    Raises:
        ConfigurationError: If the manifest or an exposed type is invalid
    """
    factory = build_factory(config)
    registry = DefinitionsRegistry(factory, include_builtin_marshallers=config.include_builtin_marshallers)
    always_qualify = factory.get(ALWAYS_QUALIFY)

    for entry in config.exposed:
        type_ = _resolve(factory, entry.type, entry.type)
        marshaller = _marshaller_class(factory, entry)

        if entry.always_qualify:
            target = marshaller if marshaller is not None else type_
            if not isinstance(target, JavaClass) or _is_builtin(target.fully_qualified_name):
                raise ConfigurationError(f"Cannot qualify {target.fully_qualified_name}", type_name=entry.type)
            if not target.is_annotation_present(ALWAYS_QUALIFY):
                target.add_annotation(Annotation.of(always_qualify))

        registry.add_exposed_type(type_, marshaller=marshaller, aliases=entry.aliases)

    for alias, target in config.aliases.items():
        registry.add_alias(alias, target)

    return registry
