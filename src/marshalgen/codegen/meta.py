"""
Described-type abstraction for code generation.

A MetaClass describes a Java type the generator can reference: its identity,
structure and members. Two kinds exist: JavaClass (types described from the
outside, such as builtins and manifest declarations) and BuildMetaClass
(see codegen.build), the type being generated.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, TypeVar

M = TypeVar("M")


class Scope(str, Enum):
    """Java visibility scopes."""

    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"
    PACKAGE = "package"

    @property
    def canonical_name(self) -> str:
        """Keyword used in source; package scope has none."""
        return "" if self is Scope.PACKAGE else self.value


# ============================================================================
# Members
# ============================================================================


@dataclass(frozen=True)
class MetaTypeVariable:
    """A generic type-parameter placeholder, e.g. ``T extends Number``."""

    name: str
    bounds: tuple["MetaClass", ...] = ()


@dataclass(frozen=True)
class Annotation:
    """An annotation instance attached to a type or member."""

    annotation_type: "MetaClass | None"
    values: tuple[tuple[str, Any], ...] = ()
    type_name: str | None = None

    @classmethod
    def of(cls, annotation_type: "MetaClass | None", **values: Any) -> "Annotation":
        name = annotation_type.fully_qualified_name if annotation_type is not None else None
        return cls(annotation_type, tuple(values.items()), name)

    @property
    def name(self) -> str | None:
        if self.annotation_type is not None:
            return self.annotation_type.fully_qualified_name
        return self.type_name


@dataclass(frozen=True)
class MetaParameter:
    """A method or constructor parameter."""

    type: "MetaClass"
    name: str


@dataclass
class MetaField:
    """A field declared on a type."""

    name: str
    type: "MetaClass"
    declaring_class: "MetaClass | None" = field(default=None, compare=False, repr=False)
    scope: Scope = Scope.PRIVATE
    is_static: bool = False
    is_final: bool = False
    is_transient: bool = False
    annotations: tuple[Annotation, ...] = ()


@dataclass
class MetaMethod:
    """A method declared on a type."""

    name: str
    return_type: "MetaClass"
    parameters: tuple[MetaParameter, ...] = ()
    declaring_class: "MetaClass | None" = field(default=None, compare=False, repr=False)
    scope: Scope = Scope.PUBLIC
    is_static: bool = False
    is_abstract: bool = False
    is_final: bool = False
    annotations: tuple[Annotation, ...] = ()

    @property
    def signature(self) -> tuple[str, tuple[str, ...]]:
        """The (name, parameter-type-list) key used for override resolution."""
        return self.name, tuple(p.type.fully_qualified_name for p in self.parameters)


@dataclass
class MetaConstructor:
    """A constructor declared on a type."""

    parameters: tuple[MetaParameter, ...] = ()
    declaring_class: "MetaClass | None" = field(default=None, compare=False, repr=False)
    scope: Scope = Scope.PUBLIC
    annotations: tuple[Annotation, ...] = ()

    @property
    def signature(self) -> tuple[str, ...]:
        return tuple(p.type.fully_qualified_name for p in self.parameters)


def merge_members(
    inherited: Iterable[M],
    declared: Iterable[M],
    key: Callable[[M], Any],
) -> tuple[M, ...]:
    """Merge inherited members with declared ones.

    Inherited members whose key is declared locally are dropped; the survivors
    come first in their original order, followed by the declared members in
    declaration order.
    """
    declared = list(declared)
    local_keys = {key(m) for m in declared}
    merged = [m for m in inherited if key(m) not in local_keys]
    merged.extend(declared)
    return tuple(merged)


def method_key(method: MetaMethod) -> tuple[str, tuple[str, ...]]:
    return method.signature


def field_key(meta_field: MetaField) -> str:
    return meta_field.name


# ============================================================================
# Described types
# ============================================================================


class MetaClass(ABC):
    """Abstract described type."""

    @property
    @abstractmethod
    def fully_qualified_name(self) -> str:
        """Fully qualified name; array types carry one ``[]`` per dimension."""

    @property
    @abstractmethod
    def super_class(self) -> MetaClass | None:
        pass

    @property
    @abstractmethod
    def interfaces(self) -> tuple[MetaClass, ...]:
        pass

    @property
    @abstractmethod
    def declared_methods(self) -> tuple[MetaMethod, ...]:
        pass

    @property
    @abstractmethod
    def declared_fields(self) -> tuple[MetaField, ...]:
        pass

    @property
    @abstractmethod
    def declared_constructors(self) -> tuple[MetaConstructor, ...]:
        pass

    @property
    def declared_classes(self) -> tuple[MetaClass, ...]:
        return ()

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return ()

    @property
    def type_parameters(self) -> tuple[MetaTypeVariable, ...]:
        return ()

    # -- identity -------------------------------------------------------------

    @property
    def base_name(self) -> str:
        """Fully qualified name without array brackets."""
        return self.fully_qualified_name.split("[", 1)[0]

    @property
    def name(self) -> str:
        """Short (unqualified) name, without array brackets."""
        return self.base_name.rsplit(".", 1)[-1].rsplit("$", 1)[-1]

    @property
    def package_name(self) -> str:
        base = self.base_name
        return base.rsplit(".", 1)[0] if "." in base else ""

    @property
    def canonical_name(self) -> str:
        return self.fully_qualified_name.replace("$", ".")

    @property
    def internal_name(self) -> str:
        """JVM descriptor form, e.g. ``[[I`` or ``[Ljava.lang.String;``."""
        element = self.outer_component_type
        if element.is_primitive:
            inner = _PRIMITIVE_DESCRIPTORS[element.name]
        else:
            inner = "L" + element.base_name + ";"
        if self.is_array:
            return "[" * self.dimensions + inner
        return inner if element.is_primitive else self.base_name

    # -- structural flags -------------------------------------------------------

    @property
    def scope(self) -> Scope:
        return Scope.PUBLIC

    @property
    def is_public(self) -> bool:
        return self.scope is Scope.PUBLIC

    @property
    def is_interface(self) -> bool:
        return False

    @property
    def is_abstract(self) -> bool:
        return False

    @property
    def is_final(self) -> bool:
        return False

    @property
    def is_static(self) -> bool:
        return False

    @property
    def is_inner(self) -> bool:
        return False

    @property
    def is_enum(self) -> bool:
        return False

    @property
    def is_annotation(self) -> bool:
        return False

    @property
    def is_primitive(self) -> bool:
        return False

    @property
    def is_void(self) -> bool:
        return self.fully_qualified_name == "void"

    @property
    def is_array(self) -> bool:
        return False

    @property
    def dimensions(self) -> int:
        return 0

    @property
    def enum_constants(self) -> tuple[str, ...]:
        return ()

    # -- array handling ------------------------------------------------------------

    @property
    def component_type(self) -> MetaClass | None:
        return None

    @property
    def outer_component_type(self) -> MetaClass:
        """The innermost element type of an array, or the type itself."""
        current: MetaClass = self
        while current.is_array:
            current = current.component_type
        return current

    @abstractmethod
    def as_array_of(self, dimensions: int) -> MetaClass:
        pass

    def as_boxed(self) -> MetaClass:
        if self.is_primitive and not self.is_array:
            from marshalgen.codegen.meta_factory import builtin

            return builtin(BOXED_TYPES[self.name])
        return self

    def as_unboxed(self) -> MetaClass:
        if not self.is_array:
            primitive = UNBOXED_TYPES.get(self.fully_qualified_name)
            if primitive is not None:
                from marshalgen.codegen.meta_factory import builtin

                return builtin(primitive)
        return self

    # -- member views -------------------------------------------------------------

    def get_methods(self) -> tuple[MetaMethod, ...]:
        """Declared methods merged with inherited, non-overridden ones."""
        inherited = self.super_class.get_methods() if self.super_class is not None else ()
        return merge_members(inherited, self.declared_methods, method_key)

    def get_fields(self) -> tuple[MetaField, ...]:
        """Declared fields merged with inherited, non-private, non-shadowed ones."""
        inherited: tuple[MetaField, ...] = ()
        if self.super_class is not None:
            inherited = tuple(
                f for f in self.super_class.get_fields() if f.scope is not Scope.PRIVATE
            )
        return merge_members(inherited, self.declared_fields, field_key)

    def get_constructors(self) -> tuple[MetaConstructor, ...]:
        """Declared constructors, or the implicit public no-arg one."""
        if self.declared_constructors or self.is_interface or self.is_primitive:
            return self.declared_constructors
        return (MetaConstructor(declaring_class=self, scope=Scope.PUBLIC),)

    def get_field(self, name: str) -> MetaField | None:
        for meta_field in self.get_fields():
            if meta_field.name == name:
                return meta_field
        return None

    def get_method(self, name: str, *parameter_types: MetaClass) -> MetaMethod | None:
        """Find a method by exact signature."""
        wanted = (name, tuple(t.fully_qualified_name for t in parameter_types))
        for method in self.get_methods():
            if method.signature == wanted:
                return method
        return None

    def get_best_matching_method(self, name: str, *parameter_types: MetaClass) -> MetaMethod | None:
        """Find a method by exact signature, falling back to boxing-compatible matches."""
        exact = self.get_method(name, *parameter_types)
        if exact is not None:
            return exact

        for method in self.get_methods():
            if method.name != name or len(method.parameters) != len(parameter_types):
                continue
            if all(
                _is_compatible(param.type, arg)
                for param, arg in zip(method.parameters, parameter_types)
            ):
                return method
        return None

    def get_constructor(self, *parameter_types: MetaClass) -> MetaConstructor | None:
        wanted = tuple(t.fully_qualified_name for t in parameter_types)
        for constructor in self.get_constructors():
            if constructor.signature == wanted:
                return constructor
        return None

    def is_annotation_present(self, annotation_name: str) -> bool:
        return any(a.name == annotation_name for a in self.annotations)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.fully_qualified_name!r})"


def _is_compatible(param_type: MetaClass, arg_type: MetaClass) -> bool:
    if param_type.fully_qualified_name == arg_type.fully_qualified_name:
        return True
    if param_type.fully_qualified_name == "java.lang.Object" and not arg_type.is_primitive:
        return True
    return (
        param_type.as_boxed().fully_qualified_name == arg_type.as_boxed().fully_qualified_name
    )


class JavaClass(MetaClass):
    """A type described from the outside (builtin or declared in a manifest).

    Members are declared once while the type universe is loaded and are not
    modified afterwards. Array variants are shallow copies sharing the member
    lists of the base type.
    """

    def __init__(
        self,
        name: str,
        *,
        super_class: MetaClass | None = None,
        interfaces: Iterable[MetaClass] = (),
        annotations: Iterable[Annotation] = (),
        type_parameters: Iterable[MetaTypeVariable] = (),
        enum_constants: Iterable[str] = (),
        scope: Scope = Scope.PUBLIC,
        is_interface: bool = False,
        is_abstract: bool = False,
        is_final: bool = False,
        is_static: bool = False,
        is_enum: bool = False,
        is_annotation: bool = False,
        is_primitive: bool = False,
    ):
        self._name = name
        self._super_class = super_class
        self._interfaces = list(interfaces)
        self._annotations = list(annotations)
        self._type_parameters = list(type_parameters)
        self._enum_constants = list(enum_constants)
        self._fields: list[MetaField] = []
        self._methods: list[MetaMethod] = []
        self._constructors: list[MetaConstructor] = []
        self._scope = scope
        self._is_interface = is_interface
        self._is_abstract = is_abstract
        self._is_final = is_final
        self._is_static = is_static
        self._is_enum = is_enum
        self._is_annotation = is_annotation
        self._is_primitive = is_primitive
        self._dimensions = 0
        self._base: JavaClass = self
        self._array_variants: dict[int, JavaClass] = {}

    # -- declaration (manifest loading only) ---------------------------------------

    def set_super_class(self, super_class: MetaClass | None) -> None:
        self._super_class = super_class

    def add_interface(self, interface: MetaClass) -> None:
        self._interfaces.append(interface)

    def add_annotation(self, annotation: Annotation) -> None:
        self._annotations.append(annotation)

    def declare_field(self, name: str, type_: MetaClass, **kwargs: Any) -> MetaField:
        meta_field = MetaField(name, type_, declaring_class=self, **kwargs)
        self._fields.append(meta_field)
        return meta_field

    def declare_method(
        self,
        name: str,
        return_type: MetaClass,
        parameters: Iterable[MetaParameter] = (),
        **kwargs: Any,
    ) -> MetaMethod:
        method = MetaMethod(name, return_type, tuple(parameters), declaring_class=self, **kwargs)
        self._methods.append(method)
        return method

    def declare_constructor(self, parameters: Iterable[MetaParameter] = (), **kwargs: Any) -> MetaConstructor:
        constructor = MetaConstructor(tuple(parameters), declaring_class=self, **kwargs)
        self._constructors.append(constructor)
        return constructor

    # -- MetaClass ----------------------------------------------------------------

    @property
    def fully_qualified_name(self) -> str:
        return self._name + "[]" * self._dimensions

    @property
    def super_class(self) -> MetaClass | None:
        return self._super_class

    @property
    def interfaces(self) -> tuple[MetaClass, ...]:
        return tuple(self._interfaces)

    @property
    def declared_methods(self) -> tuple[MetaMethod, ...]:
        return tuple(self._methods)

    @property
    def declared_fields(self) -> tuple[MetaField, ...]:
        return tuple(self._fields)

    @property
    def declared_constructors(self) -> tuple[MetaConstructor, ...]:
        return tuple(self._constructors)

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return tuple(self._annotations)

    @property
    def type_parameters(self) -> tuple[MetaTypeVariable, ...]:
        return tuple(self._type_parameters)

    @property
    def enum_constants(self) -> tuple[str, ...]:
        return tuple(self._enum_constants)

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def is_interface(self) -> bool:
        return self._is_interface

    @property
    def is_abstract(self) -> bool:
        return self._is_abstract

    @property
    def is_final(self) -> bool:
        return self._is_final

    @property
    def is_static(self) -> bool:
        return self._is_static

    @property
    def is_enum(self) -> bool:
        return self._is_enum

    @property
    def is_annotation(self) -> bool:
        return self._is_annotation

    @property
    def is_primitive(self) -> bool:
        return self._is_primitive and self._dimensions == 0

    @property
    def is_array(self) -> bool:
        return self._dimensions > 0

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def component_type(self) -> MetaClass | None:
        if not self.is_array:
            return None
        if self._dimensions == 1:
            return self._base
        return self._base.as_array_of(self._dimensions - 1)

    def as_array_of(self, dimensions: int) -> MetaClass:
        if dimensions < 1:
            raise ValueError(f"array dimensions must be >= 1, got {dimensions}")
        base = self._base
        variant = base._array_variants.get(dimensions)
        if variant is None:
            variant = copy.copy(base)
            variant._dimensions = dimensions
            variant._array_variants = {}
            base._array_variants[dimensions] = variant
        return variant

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JavaClass):
            return NotImplemented
        return self.fully_qualified_name == other.fully_qualified_name

    def __hash__(self) -> int:
        return hash(self.fully_qualified_name)


class ParameterizedType(MetaClass):
    """A generic type applied to type arguments, e.g. ``Map<String, Marshaller>``."""

    def __init__(self, raw_type: MetaClass, type_arguments: Iterable[MetaClass | MetaTypeVariable]):
        self.raw_type = raw_type
        self.type_arguments = tuple(type_arguments)

    @property
    def fully_qualified_name(self) -> str:
        return self.raw_type.fully_qualified_name

    @property
    def super_class(self) -> MetaClass | None:
        return self.raw_type.super_class

    @property
    def interfaces(self) -> tuple[MetaClass, ...]:
        return self.raw_type.interfaces

    @property
    def declared_methods(self) -> tuple[MetaMethod, ...]:
        return self.raw_type.declared_methods

    @property
    def declared_fields(self) -> tuple[MetaField, ...]:
        return self.raw_type.declared_fields

    @property
    def declared_constructors(self) -> tuple[MetaConstructor, ...]:
        return self.raw_type.declared_constructors

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return self.raw_type.annotations

    @property
    def is_interface(self) -> bool:
        return self.raw_type.is_interface

    @property
    def is_abstract(self) -> bool:
        return self.raw_type.is_abstract

    def as_array_of(self, dimensions: int) -> MetaClass:
        return self.raw_type.as_array_of(dimensions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterizedType):
            return NotImplemented
        return self.raw_type == other.raw_type and self.type_arguments == other.type_arguments

    def __hash__(self) -> int:
        return hash((self.raw_type, self.type_arguments))


BOXED_TYPES = {
    "boolean": "java.lang.Boolean",
    "byte": "java.lang.Byte",
    "char": "java.lang.Character",
    "short": "java.lang.Short",
    "int": "java.lang.Integer",
    "long": "java.lang.Long",
    "float": "java.lang.Float",
    "double": "java.lang.Double",
    "void": "java.lang.Void",
}

UNBOXED_TYPES = {boxed: primitive for primitive, boxed in BOXED_TYPES.items()}

_PRIMITIVE_DESCRIPTORS = {
    "boolean": "Z",
    "byte": "B",
    "char": "C",
    "short": "S",
    "int": "I",
    "long": "J",
    "float": "F",
    "double": "D",
    "void": "V",
}
