"""
Default mapping strategies.

Every strategy emits an anonymous ``Marshaller<T>`` with ``getTypeHandled``,
``getEmptyArray``, ``demarshall`` and ``marshall``. The default resolver picks,
in order: a strategy registered by an extension, the enum strategy, the bean
strategy.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Callable

from marshalgen.codegen.meta import MetaClass, MetaField, MetaParameter, Scope
from marshalgen.codegen.meta_factory import builtin, parameterized_as
from marshalgen.codegen.statement import Bool, Statement, Stmt
from marshalgen.codegen.structure import AnonymousClassStructureBuilder, BlockBuilder
from marshalgen.errors import ResolutionError
from marshalgen.marshalling.api import (
    EJ_OBJECT,
    EJ_VALUE,
    FIELD_ACCESS,
    MARSHALLER,
    MARSHALLING_SESSION,
    MappingStrategy,
    MappingStrategyResolver,
)
from marshalgen.marshalling.mapping_context import GeneratorMappingContext

logger = logging.getLogger(__name__)


class AnonymousMarshallerStrategy(MappingStrategy):
    """Base for strategies producing ``new Marshaller<T>() { ... }``."""

    def __init__(self, context: GeneratorMappingContext, type_: MetaClass):
        self.context = context
        self.type = type_

    def _runtime(self, name: str) -> MetaClass:
        return self.context.factory.get(name)

    def get_serializer_expression(self) -> Statement:
        type_ = self.type
        builder = AnonymousClassStructureBuilder(parameterized_as(self._runtime(MARSHALLER), type_))

        builder.public_overrides_method(
            parameterized_as(builtin("java.lang.Class"), type_), "getTypeHandled"
        ).append(Stmt.load(type_).return_value()).finish()

        builder.public_overrides_method(type_.as_array_of(1), "getEmptyArray").append(
            Stmt.new_array(type_, 0).return_value()
        ).finish()

        session = self._runtime(MARSHALLING_SESSION)
        demarshall = builder.public_overrides_method(
            type_, "demarshall", MetaParameter(self._runtime(EJ_VALUE), "a0"), MetaParameter(session, "a1")
        )
        demarshall.append(Stmt.if_(Bool.is_null(Stmt.load_variable("a0")), [Stmt.load(None).return_value()]))
        self.demarshall_body(demarshall)
        demarshall.finish()

        marshall = builder.public_overrides_method(
            builtin("java.lang.String"), "marshall", MetaParameter(type_, "a0"), MetaParameter(session, "a1")
        )
        marshall.append(Stmt.if_(Bool.is_null(Stmt.load_variable("a0")), [Stmt.load(None).return_value()]))
        self.marshall_body(marshall)
        marshall.finish()

        return builder.finish()

    @abstractmethod
    def demarshall_body(self, body: BlockBuilder) -> None:
        """Append statements turning ``a0`` (an EJValue) into a T."""

    @abstractmethod
    def marshall_body(self, body: BlockBuilder) -> None:
        """Append statements turning ``a0`` (a T) into its JSON text."""


class EnumMappingStrategy(AnonymousMarshallerStrategy):
    """Marshals an enum constant as its quoted name."""

    def demarshall_body(self, body: BlockBuilder) -> None:
        value = Stmt.load_variable("a0").invoke("isString").invoke("stringValue")
        body.append(Stmt.invoke_static(self.type, "valueOf", value).return_value())

    def marshall_body(self, body: BlockBuilder) -> None:
        body.append(
            Stmt.new_object(builtin("java.lang.StringBuilder"), '"')
            .invoke("append", Stmt.load_variable("a0").invoke("name"))
            .invoke("append", '"')
            .invoke("toString")
            .return_value()
        )


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def _public_instance_method(method) -> bool:
    return method is not None and method.scope is Scope.PUBLIC and not method.is_static


@dataclass
class FieldMapping:
    """How one field is read from and written to an instance."""

    field: MetaField
    read: Callable[[Statement], Statement]
    write: Callable[[Statement, Statement], Statement]


class BeanMappingStrategy(AnonymousMarshallerStrategy):
    """
    Marshals a concrete class field by field as a JSON object.

    Fields are read and written directly when public, through a getter/setter
    pair when one exists, and otherwise through the runtime FieldAccess helper.
    FieldAccess relies on reflection and is not available on the portable
    target.
    """

    def __init__(self, context: GeneratorMappingContext, type_: MetaClass, portable_target: bool = False):
        super().__init__(context, type_)
        self.portable_target = portable_target

    @staticmethod
    def mapped_fields(type_: MetaClass) -> list[MetaField]:
        return [f for f in type_.get_fields() if not f.is_static and not f.is_transient]

    @classmethod
    def can_map(cls, type_: MetaClass, portable_target: bool) -> bool:
        if type_.is_interface or type_.is_abstract or type_.is_primitive or type_.is_array:
            return False
        constructor = type_.get_constructor()
        if constructor is None or constructor.scope is not Scope.PUBLIC:
            return False
        if not portable_target:
            return True
        return all(
            cls._reader(type_, f) is not None and cls._writer(type_, f) is not None
            for f in cls.mapped_fields(type_)
        )

    @staticmethod
    def _reader(type_: MetaClass, meta_field: MetaField) -> Callable[[Statement], Statement] | None:
        if meta_field.scope is Scope.PUBLIC:
            return lambda instance: instance.load_field(meta_field.name)

        names = ["get" + _capitalize(meta_field.name)]
        if meta_field.type.fully_qualified_name in ("boolean", "java.lang.Boolean"):
            names.append("is" + _capitalize(meta_field.name))
        for name in names:
            getter = type_.get_method(name)
            if _public_instance_method(getter):
                return lambda instance, getter_name=name: instance.invoke(getter_name)
        return None

    @staticmethod
    def _writer(type_: MetaClass, meta_field: MetaField) -> Callable[[Statement, Statement], Statement] | None:
        if meta_field.scope is Scope.PUBLIC and not meta_field.is_final:
            return lambda instance, value: instance.load_field(meta_field.name).assign_value(value)

        setter_name = "set" + _capitalize(meta_field.name)
        setter = type_.get_best_matching_method(setter_name, meta_field.type)
        if _public_instance_method(setter):
            return lambda instance, value: instance.invoke(setter_name, value)
        return None

    def field_mapping(self, meta_field: MetaField) -> FieldMapping:
        read = self._reader(self.type, meta_field)
        write = self._writer(self.type, meta_field)

        if read is None or write is None:
            if self.portable_target:
                raise ResolutionError(
                    f"{self.type.fully_qualified_name}.{meta_field.name} is not accessible on the portable target",
                    type_name=self.type.fully_qualified_name,
                )
            field_access = self._runtime(FIELD_ACCESS)
            logger.debug(f"Using reflective access for {self.type.fully_qualified_name}.{meta_field.name}")
            if read is None:
                def read(instance: Statement) -> Statement:
                    return Stmt.cast_to(
                        meta_field.type.as_boxed(),
                        Stmt.invoke_static(field_access, "get", instance, meta_field.name),
                    )
            if write is None:
                def write(instance: Statement, value: Statement) -> Statement:
                    return Stmt.invoke_static(field_access, "set", instance, meta_field.name, value)

        return FieldMapping(meta_field, read, write)

    def _demarshall_value(self, field_type: MetaClass, json_value: Statement) -> Statement:
        if field_type.is_array:
            return self.context.array_marshaller_callback.demarshall(field_type, json_value)
        var = self.context.get_marshaller_var(field_type)
        return Stmt.cast_to(
            field_type.as_boxed(),
            Stmt.load_variable(var).invoke("demarshall", json_value, Stmt.load_variable("a1")),
        )

    def _marshall_value(self, field_type: MetaClass, value: Statement) -> Statement:
        if field_type.is_array:
            return self.context.array_marshaller_callback.marshal(field_type, value)
        var = self.context.get_marshaller_var(field_type)
        return Stmt.load_variable(var).invoke("marshall", value, Stmt.load_variable("a1"))

    def demarshall_body(self, body: BlockBuilder) -> None:
        body.append(
            Stmt.declare_variable(self._runtime(EJ_OBJECT), "obj", Stmt.load_variable("a0").invoke("isObject")),
            Stmt.declare_variable(self.type, "entity", Stmt.new_object(self.type)),
        )
        entity = Stmt.load_variable("entity")
        for meta_field in self.mapped_fields(self.type):
            mapping = self.field_mapping(meta_field)
            json_value = Stmt.load_variable("obj").invoke("get", meta_field.name)
            body.append(mapping.write(entity, self._demarshall_value(meta_field.type, json_value)))
        body.append(entity.return_value())

    def marshall_body(self, body: BlockBuilder) -> None:
        body.append(
            Stmt.declare_variable(
                builtin("java.lang.StringBuilder"), "sb", Stmt.new_object(builtin("java.lang.StringBuilder"), "{")
            )
        )
        instance = Stmt.load_variable("a0")
        for i, meta_field in enumerate(self.mapped_fields(self.type)):
            mapping = self.field_mapping(meta_field)
            key = ("," if i else "") + f'"{meta_field.name}":'
            body.append(
                Stmt.load_variable("sb")
                .invoke("append", key)
                .invoke("append", self._marshall_value(meta_field.type, mapping.read(instance)))
            )
        body.append(Stmt.load_variable("sb").invoke("append", "}").invoke("toString").return_value())


class DefaultMappingStrategyResolver(MappingStrategyResolver):
    """Custom strategies first, then enums, then beans."""

    def __init__(self, context: GeneratorMappingContext):
        self.context = context

    def resolve(self, type_: MetaClass, portable_target: bool) -> MappingStrategy | None:
        custom = self.context.get_custom_strategy(type_.fully_qualified_name)
        if custom is not None:
            logger.debug(f"Using extension strategy for {type_.fully_qualified_name}")
            return custom

        if type_.is_enum:
            return EnumMappingStrategy(self.context, type_)

        if BeanMappingStrategy.can_map(type_, portable_target):
            return BeanMappingStrategy(self.context, type_, portable_target)

        logger.debug(f"No mapping strategy applies to {type_.fully_qualified_name}")
        return None
