"""
MetaClassFactory: the type universe of one generation run.

Builtin Java types (primitives, java.lang, a few java.util collections) are
created once and shared read-only. Everything else (runtime API types and
types declared in a manifest) is declared on a factory instance, so separate
generation runs never see each other's declarations.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from marshalgen.codegen.meta import (
    BOXED_TYPES,
    JavaClass,
    MetaClass,
    MetaTypeVariable,
    ParameterizedType,
)
from marshalgen.errors import ConfigurationError, ResolutionError

logger = logging.getLogger(__name__)

PRIMITIVE_TYPES = ("boolean", "byte", "char", "short", "int", "long", "float", "double", "void")

_JAVA_LANG_CLASSES = (
    "java.lang.Object",
    "java.lang.String",
    "java.lang.StringBuilder",
    "java.lang.Class",
    "java.lang.Number",
    "java.lang.UnsupportedOperationException",
)

# name -> type parameter names
_JAVA_UTIL_INTERFACES = {
    "java.util.Collection": ("E",),
    "java.util.List": ("E",),
    "java.util.Set": ("E",),
    "java.util.Map": ("K", "V"),
}

_JAVA_UTIL_CLASSES = {
    "java.util.ArrayList": ("E",),
    "java.util.HashSet": ("E",),
    "java.util.HashMap": ("K", "V"),
    "java.util.LinkedHashMap": ("K", "V"),
}

_builtins: dict[str, JavaClass] = {}


def _load_builtins() -> dict[str, JavaClass]:
    if _builtins:
        return _builtins

    for name in PRIMITIVE_TYPES:
        _builtins[name] = JavaClass(name, is_primitive=True, is_final=True)

    obj = JavaClass("java.lang.Object")
    _builtins[obj.fully_qualified_name] = obj

    for name in _JAVA_LANG_CLASSES[1:]:
        _builtins[name] = JavaClass(name, super_class=obj, is_final=name == "java.lang.String")

    for name in BOXED_TYPES.values():
        _builtins[name] = JavaClass(name, super_class=obj, is_final=True)

    _builtins["java.lang.Enum"] = JavaClass(
        "java.lang.Enum",
        super_class=obj,
        is_abstract=True,
        type_parameters=[MetaTypeVariable("E")],
    )

    for name, params in _JAVA_UTIL_INTERFACES.items():
        _builtins[name] = JavaClass(
            name,
            is_interface=True,
            type_parameters=[MetaTypeVariable(p) for p in params],
        )

    for name, params in _JAVA_UTIL_CLASSES.items():
        _builtins[name] = JavaClass(
            name,
            super_class=obj,
            type_parameters=[MetaTypeVariable(p) for p in params],
        )

    return _builtins


def builtin(name: str) -> JavaClass:
    """Get a builtin Java type by its fully qualified name."""
    try:
        return _load_builtins()[name]
    except KeyError:
        raise ResolutionError(f"unknown builtin type: {name}", type_name=name) from None


def parse_type_name(text: str) -> tuple[str, list[str], int]:
    """Split a type expression into (base name, type argument texts, dimensions).

    ``java.util.Map<java.lang.String, int[]>[]`` gives
    ``("java.util.Map", ["java.lang.String", "int[]"], 1)``.
    """
    text = text.strip()
    dimensions = 0
    while text.endswith("[]"):
        dimensions += 1
        text = text[:-2].rstrip()

    if "<" not in text:
        return text, [], dimensions

    if not text.endswith(">"):
        raise ResolutionError(f"malformed type expression: {text}", type_name=text)

    base, _, inner = text.partition("<")
    inner = inner[:-1]

    args: list[str] = []
    depth = 0
    current: list[str] = []
    for char in inner:
        if char == "<":
            depth += 1
        elif char == ">":
            depth -= 1
        if char == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    if current:
        args.append("".join(current).strip())

    return base.strip(), [a for a in args if a], dimensions


def parameterized_as(raw_type: MetaClass, *type_arguments: MetaClass | MetaTypeVariable) -> ParameterizedType:
    """Apply type arguments to a raw generic type."""
    return ParameterizedType(raw_type, type_arguments)


def type_parameters_of(*types: MetaClass) -> tuple[MetaClass, ...]:
    """Box primitive types so they can be used as type arguments."""
    return tuple(t.as_boxed() for t in types)


class MetaClassFactory:
    """Per-run registry resolving type names to described types."""

    def __init__(self, types: Iterable[JavaClass] = ()):
        self._types: dict[str, JavaClass] = {}
        for type_ in types:
            self._types[type_.fully_qualified_name] = type_

    def declare(self, name: str, **kwargs: Any) -> JavaClass:
        """Declare a new type in this universe.

        Raises:
            ConfigurationError: If the name is already declared or is a builtin.
        """
        if name in self._types or name in _load_builtins():
            raise ConfigurationError(f"type declared more than once: {name}", type_name=name)

        type_ = JavaClass(name, **kwargs)
        self._types[name] = type_
        logger.debug(f"Declared type {name}")
        return type_

    def is_known(self, name: str) -> bool:
        base, _, _ = parse_type_name(name)
        return base in self._types or base in _load_builtins()

    def find(self, name: str) -> MetaClass | None:
        """Resolve a type expression, returning None for unknown base types."""
        try:
            return self.get(name)
        except ResolutionError:
            return None

    def get(self, name: str) -> MetaClass:
        """Resolve a type expression such as ``int[][]`` or ``java.util.List<Foo>``.

        Raises:
            ResolutionError: If the base type (or a type argument) is unknown.
        """
        base_name, arg_names, dimensions = parse_type_name(name)

        base = self._types.get(base_name) or _load_builtins().get(base_name)
        if base is None:
            raise ResolutionError(f"unknown type: {base_name}", type_name=base_name)

        result: MetaClass = base
        if arg_names:
            result = parameterized_as(base, *(self.get(a) for a in arg_names))
        if dimensions:
            result = result.as_array_of(dimensions)
        return result

    @property
    def declared_types(self) -> list[JavaClass]:
        return list(self._types.values())
