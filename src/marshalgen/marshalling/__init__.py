"""
Marshaller synthesis.

Generates one MarshallerFactory implementation for the exposed types of a
TypeRegistry, reusing hand-written marshallers and synthesizing the rest
through pluggable mapping strategies.
"""

from marshalgen.marshalling.api import (
    ArrayMarshallerCallback,
    MappingStrategy,
    MappingStrategyResolver,
    MarshallerOutputTarget,
    MarshallingExtensionConfigurator,
)
from marshalgen.marshalling.definitions import DefinitionsRegistry, MappingDefinition, TypeRegistry
from marshalgen.marshalling.generator import GenerationPhase, MarshallerGeneratorFactory
from marshalgen.marshalling.mapping_context import GeneratorMappingContext

__all__ = [
    "ArrayMarshallerCallback",
    "DefinitionsRegistry",
    "GenerationPhase",
    "GeneratorMappingContext",
    "MappingDefinition",
    "MappingStrategy",
    "MappingStrategyResolver",
    "MarshallerGeneratorFactory",
    "MarshallerOutputTarget",
    "MarshallingExtensionConfigurator",
    "TypeRegistry",
]
