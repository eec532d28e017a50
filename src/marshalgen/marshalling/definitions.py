"""
Type registry: which types are exposed, and how each is marshalled.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

from marshalgen.codegen.meta import MetaClass
from marshalgen.codegen.meta_factory import MetaClassFactory
from marshalgen.errors import ConfigurationError
from marshalgen.marshalling.api import ALWAYS_QUALIFY, BUILTIN_MARSHALLERS, install_runtime_types

logger = logging.getLogger(__name__)


@dataclass
class MappingDefinition:
    """How one exposed type is marshalled."""

    mapping_class: MetaClass
    client_marshaller_class: MetaClass | None = None
    already_generated: bool = False

    @property
    def has_known_serializer(self) -> bool:
        return self.client_marshaller_class is not None


class TypeRegistry(ABC):
    """Read access to the exposed types of one generation run."""

    @property
    @abstractmethod
    def factory(self) -> MetaClassFactory:
        """The type universe the registered types live in."""

    @abstractmethod
    def has_known_serializer(self, fully_qualified_name: str) -> bool:
        pass

    @abstractmethod
    def get_known_serializer_type(self, fully_qualified_name: str) -> MetaClass | None:
        pass

    @abstractmethod
    def get_exposed_types(self) -> list[MetaClass]:
        """Exposed types in registration order."""

    @abstractmethod
    def get_aliases(self) -> dict[str, str]:
        """Alias name -> fully qualified name of the aliased type."""

    @abstractmethod
    def get_definition(self, type_: MetaClass | str) -> MappingDefinition | None:
        pass

    def has_definition(self, fully_qualified_name: str) -> bool:
        return self.get_definition(fully_qualified_name) is not None

    def get_aliases_of(self, fully_qualified_name: str) -> list[str]:
        return [alias for alias, target in self.get_aliases().items() if target == fully_qualified_name]

    def should_use_object_marshaller(self, type_: MetaClass) -> bool:
        """Whether values of ``type_`` need a runtime type tag.

        True for Object, interfaces, abstract classes and types annotated
        with AlwaysQualify.
        """
        if type_.is_array or type_.is_primitive:
            return False
        return (
            type_.fully_qualified_name == "java.lang.Object"
            or type_.is_interface
            or type_.is_abstract
            or type_.is_annotation_present(ALWAYS_QUALIFY)
        )


class DefinitionsRegistry(TypeRegistry):
    """
    In-memory type registry.

    Usage:
        registry = DefinitionsRegistry(factory)
        registry.add_exposed_type(factory.get("com.example.Person"), aliases=["Person"])
        registry.add_exposed_type(money, marshaller=factory.get("com.example.MoneyMarshaller"))
    """

    def __init__(self, factory: MetaClassFactory | None = None, include_builtin_marshallers: bool = True):
        self._factory = install_runtime_types(factory or MetaClassFactory())
        self._definitions: dict[str, MappingDefinition] = {}
        self._aliases: dict[str, str] = {}

        if include_builtin_marshallers:
            for handled, marshaller in BUILTIN_MARSHALLERS.items():
                self.add_exposed_type(self._factory.get(handled), marshaller=self._factory.get(marshaller))

    @property
    def factory(self) -> MetaClassFactory:
        return self._factory

    def add_exposed_type(
        self,
        type_: MetaClass,
        marshaller: MetaClass | None = None,
        aliases: Iterable[str] = (),
        already_generated: bool = False,
    ) -> MappingDefinition:
        """
        Expose a type for marshalling.

        Args:
            type_: The type to expose
            marshaller: A hand-written marshaller class, if one exists
            aliases: Additional lookup names for the type
            already_generated: Skip synthesis for this type

        Raises:
            ConfigurationError: If the type is an array or a primitive
        """
        if type_.is_array or type_.is_primitive:
            raise ConfigurationError(
                f"cannot expose {type_.fully_qualified_name}: arrays and primitives are handled implicitly",
                type_name=type_.fully_qualified_name,
            )

        name = type_.fully_qualified_name
        if name in self._definitions:
            logger.debug(f"Re-registering exposed type {name}")

        definition = MappingDefinition(type_, marshaller, already_generated)
        self._definitions[name] = definition
        for alias in aliases:
            self.add_alias(alias, name)
        return definition

    def add_alias(self, alias: str, fully_qualified_name: str) -> None:
        """Map an alternate lookup name to a type. A later alias wins."""
        previous = self._aliases.get(alias)
        if previous is not None and previous != fully_qualified_name:
            logger.warning(f"Alias '{alias}' remapped from {previous} to {fully_qualified_name}")
        self._aliases[alias] = fully_qualified_name

    def has_known_serializer(self, fully_qualified_name: str) -> bool:
        definition = self._definitions.get(fully_qualified_name)
        return definition is not None and definition.has_known_serializer

    def get_known_serializer_type(self, fully_qualified_name: str) -> MetaClass | None:
        definition = self._definitions.get(fully_qualified_name)
        return definition.client_marshaller_class if definition is not None else None

    def get_exposed_types(self) -> list[MetaClass]:
        return [d.mapping_class for d in self._definitions.values()]

    def get_aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    def get_definition(self, type_: MetaClass | str) -> MappingDefinition | None:
        name = type_ if isinstance(type_, str) else type_.fully_qualified_name
        return self._definitions.get(name)
