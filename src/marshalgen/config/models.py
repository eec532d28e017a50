"""
Configuration models for marshalgen.

Defines the generator configuration and the type manifest (the described
types the generator may reference) using Pydantic for validation.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from marshalgen.codegen.meta import Scope
from marshalgen.marshalling.api import MarshallerOutputTarget

OutputTarget = MarshallerOutputTarget


class TypeKind(str, Enum):
    """Kinds of described types."""

    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    ANNOTATION = "annotation"


# ============================================================================
# Type manifest
# ============================================================================


class ParameterDeclaration(BaseModel):
    """A method or constructor parameter."""

    name: str
    type: str = Field(description="Type expression, e.g. 'int[]' or 'java.util.List<java.lang.String>'")


class FieldDeclaration(BaseModel):
    """A field of a described type."""

    name: str
    type: str
    scope: Scope = Scope.PRIVATE
    static: bool = False
    final: bool = False
    transient: bool = False
    annotations: list[str] = Field(default_factory=list)


class MethodDeclaration(BaseModel):
    """A method of a described type."""

    name: str
    returns: str = "void"
    parameters: list[ParameterDeclaration] = Field(default_factory=list)
    scope: Scope = Scope.PUBLIC
    static: bool = False
    abstract: bool = False


class ConstructorDeclaration(BaseModel):
    """A constructor of a described type."""

    parameters: list[ParameterDeclaration] = Field(default_factory=list)
    scope: Scope = Scope.PUBLIC


class TypeDeclaration(BaseModel):
    """A Java type known to the generator."""

    name: str = Field(description="Fully qualified name")
    kind: TypeKind = TypeKind.CLASS
    super_class: str | None = None
    interfaces: list[str] = Field(default_factory=list)
    abstract: bool = False
    final: bool = False
    annotations: list[str] = Field(default_factory=list, description="Fully qualified annotation types")
    constants: list[str] = Field(default_factory=list, description="Enum constants")
    fields: list[FieldDeclaration] = Field(default_factory=list)
    methods: list[MethodDeclaration] = Field(default_factory=list)
    constructors: list[ConstructorDeclaration] = Field(default_factory=list)


# ============================================================================
# Generation
# ============================================================================


class ExposedTypeConfig(BaseModel):
    """A type the generated factory must be able to marshal."""

    type: str
    marshaller: str | None = Field(default=None, description="Hand-written marshaller class, if any")
    aliases: list[str] = Field(default_factory=list)
    always_qualify: bool = Field(default=False, description="Wrap the marshaller so output carries a type tag")


class OutputConfig(BaseModel):
    """Where and how the factory class is produced."""

    package_name: str = "com.example.gen"
    class_name: str = "MarshallerFactoryImpl"
    cache_dir: Path = Field(default=Path(".marshalgen/cache"))
    print_out: bool = Field(default=False, description="Echo the generated source to stdout")


class MarshalgenConfig(BaseModel):
    """Root configuration for a generation run."""

    output: OutputConfig = Field(default_factory=OutputConfig)
    target: OutputTarget = OutputTarget.JAVA
    include_builtin_marshallers: bool = True
    default_array_marshallers: bool = True
    types: list[TypeDeclaration] = Field(default_factory=list)
    exposed: list[ExposedTypeConfig] = Field(default_factory=list)
    aliases: dict[str, str] = Field(default_factory=dict, description="Alias -> fully qualified name")
    extensions: list[str] = Field(default_factory=list, description="'module:Class' or 'module.Class' paths")
