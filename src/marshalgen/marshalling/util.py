"""Naming helpers and default array shapes for marshaller generation."""

import logging

from marshalgen.codegen.meta import MetaClass
from marshalgen.codegen.meta_factory import MetaClassFactory

logger = logging.getLogger(__name__)

#: array shapes that always get a marshaller, when their element type has one
DEFAULT_ARRAY_SHAPES = (
    "java.lang.String[]",
    "int[]",
    "long[]",
    "double[]",
    "float[]",
    "short[]",
    "boolean[]",
    "byte[]",
    "char[]",
    "java.lang.Object[]",
)


def _mangle(name: str) -> str:
    return name.replace(".", "_").replace("$", "_")


def get_var_name(type_: MetaClass) -> str:
    """
    Field name holding the marshaller for a type.

    Primitive types share the marshaller of their boxed type. Arrays are named
    after their unboxed element type and dimension, so ``int[]`` and
    ``Integer[]`` get different marshallers.

    Examples:
        java.lang.String -> java_lang_String
        int              -> java_lang_Integer
        int[][]          -> arrayOf_int_D2
    """
    if type_.is_array:
        return f"arrayOf_{_mangle(type_.outer_component_type.base_name)}_D{type_.dimensions}"
    return _mangle(type_.as_boxed().base_name)


def demarshall_routine_name(element: MetaClass, dimensions: int) -> str:
    return f"demarshall_{dimensions}_{_mangle(element.base_name)}"


def marshall_routine_name(element: MetaClass, dimensions: int) -> str:
    return f"marshall_{dimensions}_{_mangle(element.base_name)}"


def get_default_array_marshallers(factory: MetaClassFactory) -> list[MetaClass]:
    """Resolve the default array shapes against a type universe."""
    return [factory.get(shape) for shape in DEFAULT_ARRAY_SHAPES]
