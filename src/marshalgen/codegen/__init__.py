"""
Source emission engine.

An in-memory model of Java classes (BuildMetaClass) that can be built up
incrementally and rendered to source text, plus the described-type layer and
the small statement builder it renders with.
"""

from marshalgen.codegen.build import (
    BuildMetaClass,
    BuildMetaConstructor,
    BuildMetaField,
    BuildMetaMethod,
    InnerClass,
)
from marshalgen.codegen.context import Context, class_reference
from marshalgen.codegen.meta import (
    Annotation,
    JavaClass,
    MetaClass,
    MetaConstructor,
    MetaField,
    MetaMethod,
    MetaParameter,
    MetaTypeVariable,
    ParameterizedType,
    Scope,
)
from marshalgen.codegen.meta_factory import MetaClassFactory, builtin, parameterized_as
from marshalgen.codegen.structure import ClassStructureBuilder, implement

__all__ = [
    "Annotation",
    "BuildMetaClass",
    "BuildMetaConstructor",
    "BuildMetaField",
    "BuildMetaMethod",
    "ClassStructureBuilder",
    "Context",
    "InnerClass",
    "JavaClass",
    "MetaClass",
    "MetaClassFactory",
    "MetaConstructor",
    "MetaField",
    "MetaMethod",
    "MetaParameter",
    "MetaTypeVariable",
    "ParameterizedType",
    "Scope",
    "builtin",
    "class_reference",
    "implement",
    "parameterized_as",
]
