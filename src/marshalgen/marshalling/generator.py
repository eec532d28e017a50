"""
Marshaller factory generator.

Produces one Java class implementing MarshallerFactory: a private field per
marshaller, a constructor filling the ``marshallers`` lookup map (qualified
names, canonical names and aliases), ``getMarshaller`` and the recursive
array (de)marshalling routines.

Generation runs four phases, strictly forward:

1. setup      - class skeleton, lookup map field, extension configurators
2. known      - hand-written marshallers of exposed types
3. synthesis  - marshallers produced by mapping strategies
4. arrays     - array marshallers for every array type met in 2-3 and the
                default array shapes
"""

from __future__ import annotations

import logging
import os
import time
from enum import Enum
from typing import Any, Callable, Iterable

from marshalgen.codegen.meta import Annotation, MetaClass, MetaParameter
from marshalgen.codegen.meta_factory import builtin, parameterized_as, type_parameters_of
from marshalgen.codegen.statement import Bool, NewObject, Statement, Stmt
from marshalgen.codegen.structure import (
    AnonymousClassStructureBuilder,
    BlockBuilder,
    ClassStructureBuilder,
    auto_for_loop,
    auto_initialized_field,
    implement,
)
from marshalgen.errors import ConfigurationError, GenerationError, ResolutionError
from marshalgen.marshalling.api import (
    ALWAYS_QUALIFY,
    DEPENDENT,
    EJ_ARRAY,
    EJ_VALUE,
    MARSHALLER,
    MARSHALLER_FACTORY,
    MARSHALLING_SESSION,
    QUALIFYING_MARSHALLER_WRAPPER,
    ArrayMarshallerCallback,
    MappingStrategyResolver,
    MarshallerOutputTarget,
    MarshallingExtensionConfigurator,
)
from marshalgen.marshalling.definitions import TypeRegistry
from marshalgen.marshalling.mapping_context import GeneratorMappingContext
from marshalgen.marshalling.strategies import DefaultMappingStrategyResolver
from marshalgen.marshalling.util import (
    demarshall_routine_name,
    get_default_array_marshallers,
    get_var_name,
    marshall_routine_name,
)

logger = logging.getLogger(__name__)

MARSHALLERS_VAR = "marshallers"
PRINT_OUT_ENV = "MARSHALGEN_PRINT_OUT"

ResolverFactory = Callable[[GeneratorMappingContext], MappingStrategyResolver]


class GenerationPhase(str, Enum):
    """Phases of one generation pass, in execution order."""

    SETUP = "setup"
    KNOWN = "known"
    SYNTHESIS = "synthesis"
    ARRAYS = "arrays"
    DONE = "done"

    @property
    def order(self) -> int:
        return list(GenerationPhase).index(self)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in ("1", "true", "yes", "on")


def _extension_name(extension: Any) -> str:
    cls = extension if isinstance(extension, type) else type(extension)
    return f"{cls.__module__}.{cls.__qualname__}"


class _ArrayReferenceCollector(ArrayMarshallerCallback):
    """Records array types met by strategies; marshallers are added in the array phase."""

    def __init__(self, generator: "MarshallerGeneratorFactory"):
        self._generator = generator

    def marshal(self, type_: MetaClass, value: Statement) -> Statement:
        var = self._generator.reference_array(type_)
        return Stmt.load_variable(var).invoke("marshall", value, Stmt.load_variable("a1"))

    def demarshall(self, type_: MetaClass, value: Statement) -> Statement:
        var = self._generator.reference_array(type_)
        return Stmt.load_variable(var).invoke("demarshall", value, Stmt.load_variable("a1"))


class MarshallerGeneratorFactory:
    """
    Generates a marshaller factory class for the exposed types of a registry.

    Usage:
        registry = DefinitionsRegistry(factory)
        registry.add_exposed_type(factory.get("com.example.Person"))
        source = MarshallerGeneratorFactory.get_for("java", registry).generate(
            "com.example.gen", "MarshallerFactoryImpl"
        )

    An instance generates exactly one class; lookup table and caches are not
    shared between instances.
    """

    def __init__(
        self,
        target: MarshallerOutputTarget | str,
        registry: TypeRegistry,
        extensions: Iterable[Any] = (),
        resolver_factory: ResolverFactory | None = None,
        cache: Any = None,
        print_out: bool = False,
        default_array_marshallers: bool = True,
    ):
        self.target = MarshallerOutputTarget(target)
        self.registry = registry
        self.factory = registry.factory
        self.extensions = list(extensions)
        self.resolver_factory = resolver_factory or DefaultMappingStrategyResolver
        self.cache = cache
        self.print_out = print_out
        self.default_array_marshallers = default_array_marshallers

        self.mapping_context: GeneratorMappingContext | None = None
        self._phase: GenerationPhase | None = None
        self._used = False
        self._builder: ClassStructureBuilder | None = None
        self._constructor: BlockBuilder | None = None
        self._resolver: MappingStrategyResolver | None = None
        self._current_type: str | None = None

        # lookup key -> marshaller field, in emission order
        self._lookup: dict[str, str] = {}
        self._array_marshallers: set[str] = set()
        self._array_routines: set[tuple[str, int]] = set()
        self._referenced_arrays: dict[str, MetaClass] = {}

    @classmethod
    def get_for(cls, target: MarshallerOutputTarget | str, registry: TypeRegistry,
                **kwargs: Any) -> "MarshallerGeneratorFactory":
        return cls(target, registry, **kwargs)

    @property
    def phase(self) -> GenerationPhase | None:
        return self._phase

    @property
    def lookup_table(self) -> dict[str, str]:
        """Lookup key -> name of the field holding its marshaller."""
        return dict(self._lookup)

    @property
    def array_routines(self) -> set[tuple[str, int]]:
        return set(self._array_routines)

    # =========================================================================
    # Entry point
    # =========================================================================

    def generate(self, package_name: str, class_name: str) -> str:
        """
        Generate the marshaller factory source.

        Args:
            package_name: Package of the generated class
            class_name: Simple name of the generated class

        Returns:
            The Java compilation unit

        Raises:
            GenerationError: On any failure; nothing is written to the cache
        """
        if self._used:
            raise GenerationError("a generator instance produces exactly one class", type_name=class_name)
        self._used = True

        logger.info("Generating marshalling class...")
        start = time.perf_counter()
        try:
            source = self._generate(package_name, class_name)
        except GenerationError as e:
            if e.type_name is None:
                e.type_name = self._current_type
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(f"Generated marshalling class in {elapsed_ms:.0f}ms")

        if self.print_out or _env_flag(PRINT_OUT_ENV):
            print(source)

        if self.cache is not None:
            self.cache.write(class_name, source)

        return source

    def _generate(self, package_name: str, class_name: str) -> str:
        self._setup(package_name, class_name)
        self._wire_known_serializers()
        self._synthesize()
        self._close_arrays()

        self._enter(GenerationPhase.DONE)
        self._constructor.finish()
        return self._builder.to_java_string()

    def _enter(self, phase: GenerationPhase) -> None:
        if self._phase is not None and phase.order <= self._phase.order:
            raise GenerationError(f"cannot move from phase {self._phase.value} to {phase.value}")
        logger.debug(f"Entering phase {phase.value}")
        self._phase = phase

    # =========================================================================
    # Phase 1: setup
    # =========================================================================

    def _setup(self, package_name: str, class_name: str) -> None:
        self._enter(GenerationPhase.SETUP)

        self._builder = implement(self.factory.get(MARSHALLER_FACTORY), package_name, class_name)
        class_definition = self._builder.get_class_definition()
        self.mapping_context = GeneratorMappingContext(
            self.registry,
            class_definition.context,
            self._builder,
            _ArrayReferenceCollector(self),
            self.factory,
        )

        class_definition.add_annotation(Annotation.of(self.factory.get(DEPENDENT)))

        map_type = parameterized_as(
            builtin("java.util.Map"), builtin("java.lang.String"), self.factory.get(MARSHALLER)
        )
        auto_initialized_field(self._builder, map_type, MARSHALLERS_VAR, builtin("java.util.HashMap"))

        for extension in self.extensions:
            self._configure_extension(extension)

        self._constructor = self._builder.public_constructor()
        self._resolver = self.resolver_factory(self.mapping_context)

    def _configure_extension(self, extension: Any) -> None:
        """
        Instantiate (if needed) and run one extension configurator.

        Raises:
            ConfigurationError: If the extension is not a
                MarshallingExtensionConfigurator or fails while configuring
        """
        name = _extension_name(extension)
        self._current_type = name

        if isinstance(extension, type):
            if not issubclass(extension, MarshallingExtensionConfigurator):
                raise ConfigurationError(
                    f"class {name} is not a valid marshalling extension. "
                    f"marshalling extensions should implement: {MarshallingExtensionConfigurator.__name__}",
                    type_name=name,
                )
            try:
                configurator = extension()
            except Exception as e:
                raise ConfigurationError(f"error loading marshalling extension: {name}", type_name=name) from e
        elif isinstance(extension, MarshallingExtensionConfigurator):
            configurator = extension
        else:
            raise ConfigurationError(
                f"{extension!r} is not a valid marshalling extension. "
                f"marshalling extensions should implement: {MarshallingExtensionConfigurator.__name__}",
                type_name=name,
            )

        try:
            configurator.configure(self.mapping_context)
        except GenerationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"error loading marshalling extension: {name}", type_name=name) from e

        logger.debug(f"Configured marshalling extension {name}")
        self._current_type = None

    # =========================================================================
    # Phase 2: known serializers
    # =========================================================================

    def _wire_known_serializers(self) -> None:
        self._enter(GenerationPhase.KNOWN)
        qualifying_wrapper = self.factory.get(QUALIFYING_MARSHALLER_WRAPPER)

        for type_ in self.registry.get_exposed_types():
            name = type_.fully_qualified_name
            marshaller_type = self.registry.get_known_serializer_type(name)
            if marshaller_type is None:
                continue

            self._current_type = name
            var = get_var_name(type_)

            if marshaller_type.is_annotation_present(ALWAYS_QUALIFY):
                field_type = parameterized_as(qualifying_wrapper, *type_parameters_of(type_))
                value = Stmt.new_object(field_type, Stmt.new_object(marshaller_type))
            else:
                field_type = marshaller_type
                value = Stmt.new_object(marshaller_type)

            self._builder.private_field(var, field_type)
            self._constructor.append(Stmt.load_variable(var).assign_value(value))
            self._register(var, [name, *self.registry.get_aliases_of(name)])
            logger.debug(f"Wired known marshaller {marshaller_type.fully_qualified_name} for {name}")

        self._current_type = None

    # =========================================================================
    # Phase 3: synthesis
    # =========================================================================

    def _synthesize(self) -> None:
        self._enter(GenerationPhase.SYNTHESIS)
        exposed = self.registry.get_exposed_types()

        for type_ in exposed:
            self.mapping_context.register_generated_marshaller(type_.fully_qualified_name)

        for type_ in exposed:
            definition = self.registry.get_definition(type_)
            if definition is None or definition.has_known_serializer or definition.already_generated:
                continue
            self._generate_marshaller(type_)

        self._current_type = None

        marshaller = self.factory.get(MARSHALLER)
        self._builder.public_overrides_method(
            parameterized_as(marshaller, builtin("java.lang.Object")),
            "getMarshaller",
            MetaParameter(builtin("java.lang.String"), "a0"),
        ).append(
            Stmt.load_variable(MARSHALLERS_VAR).invoke("get", Stmt.load_variable("a0")).return_value()
        ).finish()

    def _generate_marshaller(self, type_: MetaClass) -> None:
        name = type_.fully_qualified_name
        self._current_type = name
        logger.debug(f"Synthesizing marshaller for {name}")

        strategy = self._resolver.resolve(type_, self.target.is_portable)
        if strategy is None:
            raise ResolutionError(f"no available marshaller for class: {name}", type_name=name)

        expression = strategy.get_serializer_expression()
        var = get_var_name(type_)

        if type_.is_annotation_present(ALWAYS_QUALIFY):
            field_type = parameterized_as(self.factory.get(QUALIFYING_MARSHALLER_WRAPPER), type_)
            value: Statement = NewObject(field_type, (expression,))
        else:
            field_type = expression.type or parameterized_as(self.factory.get(MARSHALLER), type_)
            value = expression

        self._builder.private_field(var, field_type)
        self._constructor.append(Stmt.load_variable(var).assign_value(value))

        names = [name]
        if type_.canonical_name != name:
            names.append(type_.canonical_name)
        names.extend(self.registry.get_aliases_of(name))
        self._register(var, names)

    # =========================================================================
    # Phase 4: arrays
    # =========================================================================

    def reference_array(self, type_: MetaClass) -> str:
        """Record an array type needing a marshaller and return its field name."""
        if not type_.is_array:
            raise GenerationError(f"not an array type: {type_.fully_qualified_name}",
                                  type_name=type_.fully_qualified_name)
        self._referenced_arrays.setdefault(type_.fully_qualified_name, type_)
        return get_var_name(type_)

    def _close_arrays(self) -> None:
        self._enter(GenerationPhase.ARRAYS)

        for array_type in list(self._referenced_arrays.values()):
            self._current_type = array_type.fully_qualified_name
            self._add_array_marshaller(array_type)

        if self.default_array_marshallers:
            for array_type in get_default_array_marshallers(self.factory):
                self._current_type = array_type.fully_qualified_name
                try:
                    self.mapping_context.get_marshaller_var(array_type.outer_component_type)
                except ResolutionError:
                    logger.debug(f"Skipping default array marshaller {array_type.fully_qualified_name}")
                    continue
                self._add_array_marshaller(array_type)

        self._current_type = None

    def _add_array_marshaller(self, array_type: MetaClass) -> str:
        """
        Add the marshaller field for an array type, once per field name.

        Raises:
            ResolutionError: If the element type has no marshaller
        """
        var = get_var_name(array_type)
        if var in self._array_marshallers:
            return var

        element = array_type.outer_component_type
        dimensions = array_type.dimensions
        element_var = self.mapping_context.get_marshaller_var(element)
        self._add_array_routines(element, dimensions, element_var)

        marshaller_type = parameterized_as(self.factory.get(MARSHALLER), array_type)
        session = self.factory.get(MARSHALLING_SESSION)
        anonymous = AnonymousClassStructureBuilder(marshaller_type)

        anonymous.public_overrides_method(
            parameterized_as(builtin("java.lang.Class"), array_type), "getTypeHandled"
        ).append(Stmt.load(array_type).return_value()).finish()

        anonymous.public_overrides_method(element.as_array_of(dimensions + 1), "getEmptyArray").append(
            Stmt.new_array(element, 0, *([None] * dimensions)).return_value()
        ).finish()

        anonymous.public_overrides_method(
            array_type, "demarshall",
            MetaParameter(self.factory.get(EJ_VALUE), "a0"), MetaParameter(session, "a1"),
        ).append(
            Stmt.if_(Bool.is_null(Stmt.load_variable("a0")), [Stmt.load(None).return_value()]),
            Stmt.invoke(
                demarshall_routine_name(element, dimensions),
                Stmt.load_variable("a0").invoke("isArray"),
                Stmt.load_variable("a1"),
            ).return_value(),
        ).finish()

        anonymous.public_overrides_method(
            builtin("java.lang.String"), "marshall",
            MetaParameter(array_type, "a0"), MetaParameter(session, "a1"),
        ).append(
            Stmt.if_(Bool.is_null(Stmt.load_variable("a0")), [Stmt.load(None).return_value()]),
            Stmt.invoke(
                marshall_routine_name(element, dimensions), Stmt.load_variable("a0"), Stmt.load_variable("a1")
            ).return_value(),
        ).finish()

        expression = anonymous.finish()
        if self.registry.should_use_object_marshaller(element):
            field_type = parameterized_as(self.factory.get(QUALIFYING_MARSHALLER_WRAPPER), array_type)
            value: Statement = NewObject(field_type, (expression,))
        else:
            field_type = marshaller_type
            value = expression

        self._builder.private_field(var, field_type)
        self._constructor.append(Stmt.load_variable(var).assign_value(value))
        self._register(var, [array_type.fully_qualified_name])
        self._array_marshallers.add(var)
        logger.debug(f"Added array marshaller {var}")
        return var

    def _add_array_routines(self, element: MetaClass, dimensions: int, element_var: str) -> None:
        """Emit ``demarshall_N``/``marshall_N`` for N = dimensions down to 1, once each."""
        key = (element.fully_qualified_name, dimensions)
        if key in self._array_routines:
            return
        self._array_routines.add(key)

        array_type = element.as_array_of(dimensions)
        session = MetaParameter(self.factory.get(MARSHALLING_SESSION), "a1")
        a0 = Stmt.load_variable("a0")
        a1 = Stmt.load_variable("a1")
        i = Stmt.load_variable("i")

        if dimensions == 1:
            element_value = Stmt.cast_to(
                element.as_boxed(), Stmt.load_variable(element_var).invoke("demarshall", a0.invoke("get", i), a1)
            )
            element_text = Stmt.load_variable(element_var).invoke("marshall", Stmt.load_variable("a0", i), a1)
        else:
            element_value = Stmt.invoke(
                demarshall_routine_name(element, dimensions - 1), a0.invoke("get", i).invoke("isArray"), a1
            )
            element_text = Stmt.invoke(marshall_routine_name(element, dimensions - 1), Stmt.load_variable("a0", i), a1)

        sizes = [a0.invoke("size")] + [None] * (dimensions - 1)
        self._builder.private_method(
            array_type, demarshall_routine_name(element, dimensions),
            MetaParameter(self.factory.get(EJ_ARRAY), "a0"), session,
        ).append(
            Stmt.declare_variable(array_type, "newArray", Stmt.new_array(element, *sizes)),
            auto_for_loop(
                "i",
                Stmt.load_variable("newArray").load_field("length"),
                Stmt.load_variable("newArray", i).assign_value(element_value),
            ),
            Stmt.load_variable("newArray").return_value(),
        ).finish()

        self._builder.private_method(
            builtin("java.lang.String"), marshall_routine_name(element, dimensions),
            MetaParameter(array_type, "a0"), session,
        ).append(
            Stmt.declare_variable(
                builtin("java.lang.StringBuilder"), "sb", Stmt.new_object(builtin("java.lang.StringBuilder"), "[")
            ),
            auto_for_loop(
                "i",
                a0.load_field("length"),
                Stmt.if_(Bool.greater_than(i, 0), [Stmt.load_variable("sb").invoke("append", ",")]),
                Stmt.load_variable("sb").invoke("append", element_text),
            ),
            Stmt.load_variable("sb").invoke("append", "]").invoke("toString").return_value(),
        ).finish()

        logger.debug(f"Added array routines for {array_type.fully_qualified_name}")
        if dimensions > 1:
            self._add_array_routines(element, dimensions - 1, element_var)

    # =========================================================================
    # Lookup table
    # =========================================================================

    def _register(self, var: str, names: Iterable[str]) -> None:
        for name in names:
            self._put(name, var)

    def _put(self, name: str, var: str) -> None:
        """Add ``marshallers.put(name, var)``; a later entry for the same name wins."""
        previous = self._lookup.get(name)
        if previous == var:
            return
        if previous is not None:
            logger.warning(f"Lookup key '{name}' remapped from {previous} to {var}")
        self._lookup[name] = var
        self._constructor.append(
            Stmt.load_variable(MARSHALLERS_VAR).invoke("put", name, Stmt.load_variable(var))
        )
