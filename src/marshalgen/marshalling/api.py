"""
Marshalling extension points and runtime API type names.

The generated factory is compiled against a small client runtime (Marshaller,
MarshallerFactory, the EJ* JSON views, QualifyingMarshallerWrapper). Those
types are described here so the generator can reference them; the runtime
itself is not part of this package.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING

from marshalgen.codegen.meta import Annotation, MetaClass, MetaTypeVariable
from marshalgen.codegen.meta_factory import MetaClassFactory, builtin
from marshalgen.codegen.statement import Statement

if TYPE_CHECKING:
    from marshalgen.marshalling.mapping_context import GeneratorMappingContext

# ============================================================================
# Runtime type names
# ============================================================================

RUNTIME_PACKAGE = "io.marshalgen.client"

MARSHALLER = f"{RUNTIME_PACKAGE}.api.Marshaller"
MARSHALLER_FACTORY = f"{RUNTIME_PACKAGE}.api.MarshallerFactory"
MARSHALLING_SESSION = f"{RUNTIME_PACKAGE}.api.MarshallingSession"
ALWAYS_QUALIFY = f"{RUNTIME_PACKAGE}.api.annotations.AlwaysQualify"

EJ_VALUE = f"{RUNTIME_PACKAGE}.api.json.EJValue"
EJ_ARRAY = f"{RUNTIME_PACKAGE}.api.json.EJArray"
EJ_OBJECT = f"{RUNTIME_PACKAGE}.api.json.EJObject"
EJ_STRING = f"{RUNTIME_PACKAGE}.api.json.EJString"

QUALIFYING_MARSHALLER_WRAPPER = f"{RUNTIME_PACKAGE}.marshallers.QualifyingMarshallerWrapper"
FIELD_ACCESS = f"{RUNTIME_PACKAGE}.util.FieldAccess"

DEPENDENT = "javax.enterprise.context.Dependent"


class MarshallerOutputTarget(str, Enum):
    """Runtime flavour the generated factory is compiled for."""

    JAVA = "java"
    GWT = "gwt"

    @property
    def is_portable(self) -> bool:
        """The GWT target has no reflection, so private fields need accessors."""
        return self is MarshallerOutputTarget.GWT


MARSHALLERS_PACKAGE = f"{RUNTIME_PACKAGE}.marshallers"

#: handled type -> hand-written marshaller shipped with the runtime
BUILTIN_MARSHALLERS = {
    "java.lang.String": f"{MARSHALLERS_PACKAGE}.StringMarshaller",
    "java.lang.Boolean": f"{MARSHALLERS_PACKAGE}.BooleanMarshaller",
    "java.lang.Byte": f"{MARSHALLERS_PACKAGE}.ByteMarshaller",
    "java.lang.Character": f"{MARSHALLERS_PACKAGE}.CharacterMarshaller",
    "java.lang.Short": f"{MARSHALLERS_PACKAGE}.ShortMarshaller",
    "java.lang.Integer": f"{MARSHALLERS_PACKAGE}.IntegerMarshaller",
    "java.lang.Long": f"{MARSHALLERS_PACKAGE}.LongMarshaller",
    "java.lang.Float": f"{MARSHALLERS_PACKAGE}.FloatMarshaller",
    "java.lang.Double": f"{MARSHALLERS_PACKAGE}.DoubleMarshaller",
    "java.lang.Object": f"{MARSHALLERS_PACKAGE}.ObjectMarshaller",
}

#: builtin marshallers whose output always carries a type tag
QUALIFIED_BUILTIN_MARSHALLERS = frozenset({f"{MARSHALLERS_PACKAGE}.ObjectMarshaller"})


def install_runtime_types(factory: MetaClassFactory) -> MetaClassFactory:
    """Declare the client runtime types on a factory.

    Safe to call more than once on the same factory.
    """
    if factory.is_known(MARSHALLER):
        return factory

    obj = builtin("java.lang.Object")
    t = MetaTypeVariable("T")

    marshaller = factory.declare(MARSHALLER, is_interface=True, type_parameters=[t])
    factory.declare(MARSHALLER_FACTORY, is_interface=True)
    factory.declare(MARSHALLING_SESSION, is_interface=True)
    always_qualify = factory.declare(ALWAYS_QUALIFY, is_annotation=True, is_interface=True)
    factory.declare(DEPENDENT, is_annotation=True, is_interface=True)

    for name in (EJ_VALUE, EJ_ARRAY, EJ_OBJECT, EJ_STRING):
        factory.declare(name, is_interface=True)

    factory.declare(
        QUALIFYING_MARSHALLER_WRAPPER,
        super_class=obj,
        interfaces=[marshaller],
        type_parameters=[t],
    )
    factory.declare(FIELD_ACCESS, super_class=obj, is_final=True)

    for marshaller_name in BUILTIN_MARSHALLERS.values():
        annotations = []
        if marshaller_name in QUALIFIED_BUILTIN_MARSHALLERS:
            annotations.append(Annotation.of(always_qualify))
        factory.declare(
            marshaller_name,
            super_class=obj,
            interfaces=[marshaller],
            annotations=annotations,
        )
    return factory


# ============================================================================
# Extension points
# ============================================================================


class MappingStrategy(ABC):
    """Produces the serializer expression for one type."""

    @abstractmethod
    def get_serializer_expression(self) -> Statement:
        """Return an expression of type ``Marshaller<T>``."""


class MappingStrategyResolver(ABC):
    """Chooses a mapping strategy for a type."""

    @abstractmethod
    def resolve(self, type_: MetaClass, portable_target: bool) -> MappingStrategy | None:
        """
        Find a strategy for ``type_``.

        Args:
            type_: The exposed type needing a marshaller
            portable_target: True when generating for the reduced (GWT) target,
                where reflective field access is unavailable

        Returns:
            A strategy, or None if no strategy applies
        """


class MarshallingExtensionConfigurator(ABC):
    """Hook invoked once per generation pass, before synthesis."""

    @abstractmethod
    def configure(self, context: "GeneratorMappingContext") -> None:
        pass


class ArrayMarshallerCallback(ABC):
    """Reports array types met while generating marshallers.

    Both methods return the statement that (de)marshalls ``value`` through the
    array marshaller for ``type_``.
    """

    @abstractmethod
    def marshal(self, type_: MetaClass, value: Statement) -> Statement:
        pass

    @abstractmethod
    def demarshall(self, type_: MetaClass, value: Statement) -> Statement:
        pass
