"""
Shared state handed to extensions and mapping strategies during generation.
"""

from __future__ import annotations

import logging

from marshalgen.codegen.build import BuildMetaClass
from marshalgen.codegen.context import Context
from marshalgen.codegen.meta import MetaClass
from marshalgen.codegen.meta_factory import MetaClassFactory, builtin
from marshalgen.codegen.structure import ClassStructureBuilder
from marshalgen.errors import ConfigurationError, ResolutionError
from marshalgen.marshalling.api import ArrayMarshallerCallback, MappingStrategy
from marshalgen.marshalling.definitions import TypeRegistry
from marshalgen.marshalling.util import get_var_name

logger = logging.getLogger(__name__)


class GeneratorMappingContext:
    """Context for one marshaller factory being generated."""

    def __init__(
        self,
        definitions: TypeRegistry,
        codegen_context: Context,
        class_structure_builder: ClassStructureBuilder,
        array_marshaller_callback: ArrayMarshallerCallback,
        factory: MetaClassFactory,
    ):
        self.definitions = definitions
        self.codegen_context = codegen_context
        self.class_structure_builder = class_structure_builder
        self.array_marshaller_callback = array_marshaller_callback
        self.factory = factory
        self._generated: set[str] = set()
        self._strategies: dict[str, MappingStrategy] = {}

    @property
    def class_definition(self) -> BuildMetaClass:
        return self.class_structure_builder.get_class_definition()

    # -- generated marshallers -------------------------------------------------------

    def register_generated_marshaller(self, fully_qualified_name: str) -> None:
        self._generated.add(fully_qualified_name)

    def has_generated_marshaller(self, fully_qualified_name: str) -> bool:
        return fully_qualified_name in self._generated

    def can_marshal(self, fully_qualified_name: str) -> bool:
        """Whether the factory will hold a marshaller for the named type."""
        return (
            self.definitions.has_known_serializer(fully_qualified_name)
            or self.has_generated_marshaller(fully_qualified_name)
        )

    def get_marshaller_var(self, type_: MetaClass) -> str:
        """
        Name of the factory field holding the marshaller for ``type_``.

        Types that need a runtime type tag go through the Object marshaller.

        Raises:
            ResolutionError: If no marshaller will be available for the type
        """
        if type_.is_array:
            raise ResolutionError(
                f"array types are marshalled through the array callback: {type_.fully_qualified_name}",
                type_name=type_.fully_qualified_name,
            )

        target = type_.as_boxed()
        if self.definitions.should_use_object_marshaller(target):
            target = builtin("java.lang.Object")

        if not self.can_marshal(target.fully_qualified_name):
            raise ResolutionError(
                f"no available marshaller for class: {target.fully_qualified_name}",
                type_name=target.fully_qualified_name,
            )
        return get_var_name(target)

    # -- custom strategies -----------------------------------------------------------

    def register_mapping_strategy(self, fully_qualified_name: str, strategy: MappingStrategy) -> None:
        """Use ``strategy`` instead of the default ones for the named type.

        Raises:
            ConfigurationError: If ``strategy`` is not a MappingStrategy
        """
        if not isinstance(strategy, MappingStrategy):
            raise ConfigurationError(
                f"{strategy!r} must extend MappingStrategy", type_name=fully_qualified_name
            )
        if fully_qualified_name in self._strategies:
            logger.warning(f"Replacing mapping strategy for {fully_qualified_name}")
        self._strategies[fully_qualified_name] = strategy

    def get_custom_strategy(self, fully_qualified_name: str) -> MappingStrategy | None:
        return self._strategies.get(fully_qualified_name)
