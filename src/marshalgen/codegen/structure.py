"""
Fluent builders over BuildMetaClass.

ClassStructureBuilder adds fields, constructors and methods to a generated
class; AnonymousClassStructureBuilder produces a ``new Type() { ... }``
expression. Method and constructor bodies are collected through BlockBuilders
and attached to their owner on ``finish()``.
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from marshalgen.codegen.build import (
    BuildMetaClass,
    BuildMetaConstructor,
    BuildMetaField,
    BuildMetaMethod,
)
from marshalgen.codegen.context import Context, class_reference
from marshalgen.codegen.meta import MetaClass, MetaParameter, ParameterizedType, Scope
from marshalgen.codegen.meta_factory import parameterized_as
from marshalgen.codegen.statement import BlockStatement, ForLoop, NewObject, Statement

T = TypeVar("T")


def parameters_of(*parameters: MetaParameter | MetaClass) -> tuple[MetaParameter, ...]:
    """Normalize parameters; bare types are named a0, a1, ..."""
    result = []
    for i, parameter in enumerate(parameters):
        if isinstance(parameter, MetaParameter):
            result.append(parameter)
        else:
            result.append(MetaParameter(parameter, f"a{i}"))
    return tuple(result)


class BlockBuilder(Generic[T]):
    """Collects statements and hands the finished block to its owner."""

    def __init__(self, body: BlockStatement, on_finish: Callable[[], T]):
        self.body = body
        self._on_finish = on_finish
        self._finished = False

    def append(self, *statements: Any) -> "BlockBuilder[T]":
        self.body.append(*statements)
        return self

    def finish(self) -> T:
        if self._finished:
            raise RuntimeError("block already finished")
        self._finished = True
        return self._on_finish()


class ClassStructureBuilder:
    """Builds up a BuildMetaClass member by member."""

    def __init__(self, class_definition: BuildMetaClass):
        self._class_definition = class_definition

    @classmethod
    def define(cls, fully_qualified_name: str, parent: Context | None = None) -> "ClassStructureBuilder":
        return cls(BuildMetaClass(parent, fully_qualified_name))

    def get_class_definition(self) -> BuildMetaClass:
        return self._class_definition

    @property
    def class_definition(self) -> BuildMetaClass:
        return self._class_definition

    # -- fields ----------------------------------------------------------------------

    def _field(self, scope: Scope, name: str, type_: MetaClass, initializer: Statement | None,
               **flags: bool) -> BuildMetaField:
        meta_field = BuildMetaField(name, type_, scope=scope, initializer=initializer, **flags)
        self._class_definition.add_field(meta_field)
        return meta_field

    def private_field(self, name: str, type_: MetaClass, initializer: Statement | None = None,
                      **flags: bool) -> BuildMetaField:
        return self._field(Scope.PRIVATE, name, type_, initializer, **flags)

    def public_field(self, name: str, type_: MetaClass, initializer: Statement | None = None,
                     **flags: bool) -> BuildMetaField:
        return self._field(Scope.PUBLIC, name, type_, initializer, **flags)

    # -- constructors ----------------------------------------------------------------

    def public_constructor(self, *parameters: MetaParameter | MetaClass) -> BlockBuilder["ClassStructureBuilder"]:
        constructor = BuildMetaConstructor(parameters_of(*parameters), scope=Scope.PUBLIC)

        def attach() -> ClassStructureBuilder:
            self._class_definition.add_constructor(constructor)
            return self

        return BlockBuilder(constructor.body, attach)

    # -- methods ------------------------------------------------------------------------

    def _method(self, scope: Scope, return_type: MetaClass, name: str,
                parameters: tuple[MetaParameter | MetaClass, ...], **flags: bool) -> BlockBuilder["ClassStructureBuilder"]:
        method = BuildMetaMethod(name, return_type, parameters_of(*parameters), scope=scope, **flags)

        def attach() -> ClassStructureBuilder:
            self._class_definition.add_method(method)
            return self

        return BlockBuilder(method.body, attach)

    def public_method(self, return_type: MetaClass, name: str,
                      *parameters: MetaParameter | MetaClass) -> BlockBuilder["ClassStructureBuilder"]:
        return self._method(Scope.PUBLIC, return_type, name, parameters)

    def private_method(self, return_type: MetaClass, name: str,
                       *parameters: MetaParameter | MetaClass) -> BlockBuilder["ClassStructureBuilder"]:
        return self._method(Scope.PRIVATE, return_type, name, parameters)

    def public_overrides_method(self, return_type: MetaClass, name: str,
                                *parameters: MetaParameter | MetaClass) -> BlockBuilder["ClassStructureBuilder"]:
        return self._method(Scope.PUBLIC, return_type, name, parameters, overrides=True)

    def to_java_string(self) -> str:
        return self._class_definition.to_java_string()


class AnonymousClassStatement(Statement):
    """``new Type() { members }`` as an expression."""

    def __init__(self, type_: MetaClass, methods: list[BuildMetaMethod], fields: list[BuildMetaField]):
        self._type = type_
        self.methods = methods
        self.fields = fields

    @property
    def type(self) -> MetaClass:
        return self._type

    def generate(self, context: Context) -> str:
        body_context = Context.create(context)
        members = [f.to_java_string(body_context) for f in self.fields]
        members.extend(m.to_java_string(body_context) for m in self.methods)
        body = "\n\n".join(members)
        return f"new {class_reference(self._type, context)}() {{\n{body}\n}}"


class AnonymousClassStructureBuilder:
    """Builds an anonymous subclass expression."""

    def __init__(self, type_: MetaClass):
        self._type = type_
        self._methods: list[BuildMetaMethod] = []
        self._fields: list[BuildMetaField] = []

    def private_field(self, name: str, type_: MetaClass, initializer: Statement | None = None) -> BuildMetaField:
        meta_field = BuildMetaField(name, type_, scope=Scope.PRIVATE, initializer=initializer)
        self._fields.append(meta_field)
        return meta_field

    def _method(self, scope: Scope, return_type: MetaClass, name: str,
                parameters: tuple[MetaParameter | MetaClass, ...], overrides: bool) -> BlockBuilder["AnonymousClassStructureBuilder"]:
        method = BuildMetaMethod(name, return_type, parameters_of(*parameters), scope=scope, overrides=overrides)

        def attach() -> AnonymousClassStructureBuilder:
            self._methods.append(method)
            return self

        return BlockBuilder(method.body, attach)

    def public_overrides_method(self, return_type: MetaClass, name: str,
                                *parameters: MetaParameter | MetaClass) -> BlockBuilder["AnonymousClassStructureBuilder"]:
        return self._method(Scope.PUBLIC, return_type, name, parameters, overrides=True)

    def public_method(self, return_type: MetaClass, name: str,
                      *parameters: MetaParameter | MetaClass) -> BlockBuilder["AnonymousClassStructureBuilder"]:
        return self._method(Scope.PUBLIC, return_type, name, parameters, overrides=False)

    def private_method(self, return_type: MetaClass, name: str,
                       *parameters: MetaParameter | MetaClass) -> BlockBuilder["AnonymousClassStructureBuilder"]:
        return self._method(Scope.PRIVATE, return_type, name, parameters, overrides=False)

    def finish(self) -> AnonymousClassStatement:
        return AnonymousClassStatement(self._type, list(self._methods), list(self._fields))


# ============================================================================
# Helpers
# ============================================================================


def implement(interface: MetaClass, package_name: str, class_name: str) -> ClassStructureBuilder:
    """Start a public class implementing ``interface``."""
    fqcn = f"{package_name}.{class_name}" if package_name else class_name
    builder = ClassStructureBuilder.define(fqcn)
    builder.get_class_definition().add_interface(interface)
    return builder


def auto_initialized_field(builder: ClassStructureBuilder, type_: MetaClass, name: str,
                           implementation: MetaClass) -> BuildMetaField:
    """Add a private field initialized with ``new Implementation<...>()``."""
    if isinstance(type_, ParameterizedType) and type_.type_arguments:
        implementation = parameterized_as(implementation, *type_.type_arguments)
    return builder.private_field(name, type_, NewObject(implementation))


def auto_for_loop(variable: str, bound: Any, *body: Any) -> ForLoop:
    """``for (int variable = 0; variable < bound; variable++)``."""
    return ForLoop(variable, bound, body)
