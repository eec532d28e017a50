"""
Type Model Builder.

BuildMetaClass accumulates the structure of one class to be generated and
renders it to Java source. Merged member views and the rendered text are
memoized in a single cache that every mutator clears.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from marshalgen.codegen.context import Context, class_reference
from marshalgen.codegen.meta import (
    Annotation,
    MetaClass,
    MetaConstructor,
    MetaField,
    MetaMethod,
    MetaParameter,
    MetaTypeVariable,
    Scope,
    field_key,
    merge_members,
    method_key,
)
from marshalgen.codegen.meta_factory import builtin
from marshalgen.codegen.pretty import pretty_print_java
from marshalgen.codegen.statement import BlockStatement, Literal, Statement
from marshalgen.errors import GenerationError, RenderError

logger = logging.getLogger(__name__)


# ============================================================================
# Members
# ============================================================================


def _render_parameters(parameters: Iterable[MetaParameter], context: Context) -> str:
    rendered = []
    for parameter in parameters:
        context.add_variable(parameter.name, parameter.type)
        rendered.append(f"{class_reference(parameter.type, context)} {parameter.name}")
    return ", ".join(rendered)


def _modifiers(scope: Scope, *flags: tuple[bool, str]) -> list[str]:
    words = [scope.canonical_name] if scope.canonical_name else []
    words.extend(keyword for enabled, keyword in flags if enabled)
    return words


@dataclass
class BuildMetaField(MetaField):
    """A field of a generated class, with an optional initializer."""

    initializer: Statement | None = field(default=None, compare=False)

    def to_java_string(self, context: Context) -> str:
        words = _modifiers(self.scope, (self.is_static, "static"), (self.is_final, "final"),
                           (self.is_transient, "transient"))
        words.append(class_reference(self.type, context))
        words.append(self.name)
        text = " ".join(words)
        if self.initializer is not None:
            text += f" = {self.initializer.generate(context)}"
        return text + ";"


@dataclass
class BuildMetaMethod(MetaMethod):
    """A method of a generated class, with its body."""

    body: BlockStatement = field(default_factory=BlockStatement, compare=False)
    overrides: bool = False
    reified_form_of: MetaMethod | None = field(default=None, compare=False)

    def to_java_string(self, context: Context) -> str:
        method_context = Context.create(context)
        lines = []
        if self.overrides:
            lines.append("@Override")
        lines.extend(_render_annotation(a, context, self.name) for a in self.annotations)

        words = _modifiers(self.scope, (self.is_static, "static"), (self.is_abstract, "abstract"),
                           (self.is_final, "final"))
        words.append(class_reference(self.return_type, context))
        signature = " ".join(words) + f" {self.name}({_render_parameters(self.parameters, method_context)})"

        if self.is_abstract:
            lines.append(signature + ";")
        else:
            lines.append(signature + " {")
            if not self.body.is_empty():
                lines.append(self.body.generate(method_context))
            lines.append("}")
        return "\n".join(lines)


@dataclass
class BuildMetaConstructor(MetaConstructor):
    """A constructor of a generated class, with its body."""

    body: BlockStatement = field(default_factory=BlockStatement, compare=False)
    reified_form_of: MetaConstructor | None = field(default=None, compare=False)

    def to_java_string(self, context: Context) -> str:
        constructor_context = Context.create(context)
        name = self.declaring_class.name if self.declaring_class is not None else ""
        words = _modifiers(self.scope)
        words.append(f"{name}({_render_parameters(self.parameters, constructor_context)})")
        lines = [" ".join(words) + " {"]
        if not self.body.is_empty():
            lines.append(self.body.generate(constructor_context))
        lines.append("}")
        return "\n".join(lines)


@dataclass
class InnerClass:
    """A nested class declared inside a generated class."""

    type: "BuildMetaClass"

    def generate(self, context: Context) -> str:
        # imports bubble up to the outer class header
        return self.type.to_java_string(Context.create(context))


def _render_annotation_value(value: Any, context: Context, owner: str) -> str:
    if isinstance(value, (list, tuple)):
        return "{" + ", ".join(_render_annotation_value(v, context, owner) for v in value) + "}"
    try:
        return Literal(value).generate(context)
    except TypeError as e:
        raise RenderError(f"unsupported annotation value on {owner}: {value!r}", type_name=owner) from e


def _render_annotation(annotation: Annotation, context: Context, owner: str) -> str:
    """Render an annotation literal.

    Raises:
        RenderError: If the annotation type cannot be resolved.
    """
    annotation_type = annotation.annotation_type
    if annotation_type is None or not annotation_type.is_annotation:
        raise RenderError(
            f"cannot resolve annotation metadata for @{annotation.name} on {owner}",
            type_name=owner,
        )

    text = "@" + class_reference(annotation_type, context)
    if not annotation.values:
        return text
    if len(annotation.values) == 1 and annotation.values[0][0] == "value":
        return f"{text}({_render_annotation_value(annotation.values[0][1], context, owner)})"
    pairs = ", ".join(
        f"{key} = {_render_annotation_value(value, context, owner)}" for key, value in annotation.values
    )
    return f"{text}({pairs})"


def _render_comment(comment: str) -> str:
    lines = ["/**"]
    lines.extend(f" * {line}".rstrip() for line in comment.replace("*/", "*&#47;").splitlines())
    lines.append(" */")
    return "\n".join(lines)


# ============================================================================
# BuildMetaClass
# ============================================================================


@dataclass
class _MemberCache:
    """Memoized views of a BuildMetaClass."""

    name: str | None = None
    methods: tuple[MetaMethod, ...] | None = None
    fields: tuple[MetaField, ...] | None = None
    constructors: tuple[MetaConstructor, ...] | None = None
    generated: str | None = None

    def clear(self) -> None:
        self.name = None
        self.methods = None
        self.fields = None
        self.constructors = None
        self.generated = None


class BuildMetaClass(MetaClass):
    """The in-memory model of a class being generated.

    Usage:
        cls = BuildMetaClass(None, "com.example.Greeter")
        cls.add_interface(factory.get("java.lang.Runnable"))
        cls.add_method(BuildMetaMethod("run", builtin("void")))
        source = cls.to_java_string()

    Array variants (``as_array_of``) share the member lists of their base type
    and are read-only. Once a variant exists, the base type is frozen too.
    """

    def __init__(self, context: Context | None, class_name: str):
        self._class_name = class_name

        self._super_class: MetaClass | None = None
        self._interfaces: list[MetaClass] = []
        self._scope = Scope.PUBLIC

        self._is_array = False
        self._dimensions = 0
        self._is_interface = False
        self._is_abstract = False
        self._is_final = False
        self._is_static = False
        self._is_inner = False

        self._annotations: list[Annotation] = []
        self._inner_classes: list[InnerClass] = []
        self._methods: list[BuildMetaMethod] = []
        self._fields: list[BuildMetaField] = []
        self._constructors: list[BuildMetaConstructor] = []
        self._type_variables: list[MetaTypeVariable] = []
        self._reified_form_of: MetaClass | None = None
        self._class_comment: str | None = None

        self._cache = _MemberCache()
        self._variant_of: BuildMetaClass | None = None
        self._frozen = False

        self._context = Context.create(context)
        self._context.add_variable("this", self)
        self._context.attach_class(self)

    # -- mutation guards -------------------------------------------------------------

    def _check_mutable(self) -> None:
        if self._variant_of is not None:
            raise GenerationError(
                f"array variant of {self._class_name} is read-only", type_name=self._class_name
            )
        if self._frozen:
            raise GenerationError(
                f"cannot modify {self._class_name} after array variants were derived from it",
                type_name=self._class_name,
            )

    def _invalidate(self) -> None:
        self._cache.clear()

    def _mutate(self) -> None:
        self._check_mutable()
        self._invalidate()

    def _shallow_copy(self) -> BuildMetaClass:
        variant = copy.copy(self)
        variant._cache = _MemberCache()
        variant._variant_of = self._variant_of or self
        variant._variant_of._frozen = True
        return variant

    # -- identity --------------------------------------------------------------------

    @property
    def class_name(self) -> str:
        return self._class_name

    @property
    def fully_qualified_name(self) -> str:
        if self._is_array:
            return self._class_name + "[]" * self._dimensions
        return self._class_name

    @property
    def name(self) -> str:
        if self._cache.name is None:
            self._cache.name = self._class_name.rsplit(".", 1)[-1].rsplit("$", 1)[-1]
        return self._cache.name

    @property
    def package_name(self) -> str:
        return self._class_name.rsplit(".", 1)[0] if "." in self._class_name else ""

    @property
    def context(self) -> Context:
        return self._context

    # -- structure -------------------------------------------------------------------

    @property
    def super_class(self) -> MetaClass | None:
        return self._super_class

    @property
    def interfaces(self) -> tuple[MetaClass, ...]:
        return tuple(self._interfaces)

    @property
    def declared_methods(self) -> tuple[MetaMethod, ...]:
        return tuple(self._methods)

    @property
    def declared_fields(self) -> tuple[MetaField, ...]:
        return tuple(self._fields)

    @property
    def declared_constructors(self) -> tuple[MetaConstructor, ...]:
        return tuple(self._constructors)

    @property
    def declared_classes(self) -> tuple[MetaClass, ...]:
        return tuple(inner.type for inner in self._inner_classes)

    @property
    def annotations(self) -> tuple[Annotation, ...]:
        return tuple(self._annotations)

    @property
    def type_parameters(self) -> tuple[MetaTypeVariable, ...]:
        return tuple(self._type_variables)

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def is_interface(self) -> bool:
        return self._is_interface

    @property
    def is_abstract(self) -> bool:
        return self._is_abstract

    @property
    def is_final(self) -> bool:
        return self._is_final

    @property
    def is_static(self) -> bool:
        return self._is_static

    @property
    def is_inner(self) -> bool:
        return self._is_inner

    @property
    def is_array(self) -> bool:
        return self._is_array

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def reified_form_of(self) -> MetaClass | None:
        return self._reified_form_of

    @property
    def is_reified_form(self) -> bool:
        return self._reified_form_of is not None

    # -- mutators --------------------------------------------------------------------

    def set_super_class(self, super_class: MetaClass | None) -> None:
        """Set the supertype.

        Raises:
            GenerationError: If the supertype chain would contain this type.
        """
        current = super_class
        while current is not None:
            if current is self:
                raise GenerationError(
                    f"{self._class_name} cannot be its own supertype", type_name=self._class_name
                )
            current = current.super_class
        self._mutate()
        self._super_class = super_class

    def set_interfaces(self, interfaces: Iterable[MetaClass]) -> None:
        self._mutate()
        self._interfaces = list(interfaces)

    def add_interface(self, interface: MetaClass) -> None:
        self._mutate()
        self._interfaces.append(interface)

    def set_scope(self, scope: Scope) -> None:
        self._mutate()
        self._scope = scope

    def set_interface(self, is_interface: bool) -> None:
        self._mutate()
        self._is_interface = is_interface

    def set_abstract(self, is_abstract: bool) -> None:
        self._mutate()
        self._is_abstract = is_abstract

    def set_final(self, is_final: bool) -> None:
        self._mutate()
        self._is_final = is_final

    def set_static(self, is_static: bool) -> None:
        self._mutate()
        self._is_static = is_static

    def set_inner(self, is_inner: bool) -> None:
        self._mutate()
        self._is_inner = is_inner

    def set_class_comment(self, comment: str | None) -> None:
        self._mutate()
        self._class_comment = comment

    def set_reified_form_of(self, reified_form_of: MetaClass | None) -> None:
        self._mutate()
        self._reified_form_of = reified_form_of

    def set_context(self, context: Context) -> None:
        self._mutate()
        self._context = context

    def add_annotation(self, annotation: Annotation) -> None:
        self._mutate()
        self._annotations.append(annotation)

    def add_inner_class(self, inner_class: InnerClass) -> None:
        self._mutate()
        self._inner_classes.append(inner_class)

    def add_type_variable(self, type_variable: MetaTypeVariable) -> None:
        self._mutate()
        self._type_variables.append(type_variable)

    def add_field(self, meta_field: BuildMetaField) -> None:
        self._mutate()
        meta_field.declaring_class = self
        self._fields.append(meta_field)

    def add_method(self, method: BuildMetaMethod) -> None:
        self._mutate()
        method.declaring_class = self
        self._methods.append(method)

    def add_constructor(self, constructor: BuildMetaConstructor) -> None:
        self._mutate()
        constructor.declaring_class = self
        self._constructors.append(constructor)

    # -- merged views ----------------------------------------------------------------

    def get_methods(self) -> tuple[MetaMethod, ...]:
        if self._cache.methods is None:
            inherited = self._super_class.get_methods() if self._super_class is not None else ()
            self._cache.methods = merge_members(inherited, self._methods, method_key)
        return self._cache.methods

    def get_fields(self) -> tuple[MetaField, ...]:
        if self._cache.fields is None:
            inherited: tuple[MetaField, ...] = ()
            if self._super_class is not None:
                inherited = tuple(
                    f for f in self._super_class.get_fields() if f.scope is not Scope.PRIVATE
                )
            self._cache.fields = merge_members(inherited, self._fields, field_key)
        return self._cache.fields

    def get_constructors(self) -> tuple[MetaConstructor, ...]:
        if self._cache.constructors is None:
            if self._constructors or self._is_interface:
                self._cache.constructors = tuple(self._constructors)
            else:
                default = BuildMetaConstructor(declaring_class=self, scope=Scope.PUBLIC)
                self._cache.constructors = (default,)
        return self._cache.constructors

    # -- arrays ------------------------------------------------------------------------

    @property
    def component_type(self) -> MetaClass | None:
        if not self._is_array:
            return None
        component = self._shallow_copy()
        if self._dimensions > 1:
            component._dimensions = self._dimensions - 1
        else:
            component._is_array = False
            component._dimensions = 0
        return component

    def as_array_of(self, dimensions: int) -> MetaClass:
        variant = self._shallow_copy()
        variant._is_array = True
        variant._dimensions = dimensions
        return variant

    # -- rendering ---------------------------------------------------------------------

    def render(self) -> str:
        return self.to_java_string()

    def to_java_string(self, context: Context | None = None) -> str:
        """Render the complete compilation unit.

        Rendered in its own context, the result is cached; rendering again
        without mutation returns the same string without recomputation.
        Rendering into a caller's context (an enclosing class) always
        regenerates, so the imports land in that context.

        Raises:
            RenderError: If an annotation cannot be resolved or the supertype
                chain is cyclic.
        """
        standalone = context is None
        if standalone:
            if self._cache.generated is not None:
                return self._cache.generated
            context = self._context
            context.reset_imports()

        self._check_supertype_chain()
        logger.debug(f"Rendering {self.fully_qualified_name}")

        buf: list[str] = []
        if self._class_comment is not None:
            buf.append(_render_comment(self._class_comment))

        context.add_variable("this", self)
        if self._annotations:
            buf.append(" ".join(_render_annotation(a, context, self._class_name) for a in self._annotations))

        words = _modifiers(self._scope, (self._is_abstract and not self._is_interface, "abstract"),
                           (self._is_static, "static"), (self._is_final, "final"))
        words.append("interface" if self._is_interface else "class")
        declaration = " ".join(words) + " " + self.name
        if self._type_variables:
            declaration += "<" + ", ".join(_render_type_variable(v, context) for v in self._type_variables) + ">"

        interfaces_to_render = list(self._interfaces)
        if self._super_class is not None:
            if self._is_interface:
                interfaces_to_render.append(self._super_class)
            else:
                declaration += " extends " + class_reference(self._super_class, context)

        if interfaces_to_render:
            declaration += " extends " if self._is_interface else " implements "
            declaration += ", ".join(class_reference(i, context) for i in interfaces_to_render)

        context.add_variable("super", self._super_class or builtin("java.lang.Object"))
        buf.append(declaration + " {")
        buf.append(self.members_to_string(context))
        buf.append("}")

        header = self._render_header(context)
        generated = pretty_print_java(header + "\n".join(buf) + "\n")
        if standalone:
            self._cache.generated = generated
        return generated

    def _render_header(self, context: Context) -> str:
        if self._is_inner:
            return ""

        lines = []
        package = self.package_name
        if package:
            lines.append(f"package {package};")
            lines.append("")

        imports = []
        for cls in context.required_imports:
            if cls == self._class_name:
                continue
            if package and cls.startswith(package + "."):
                if "." not in cls[len(package) + 1:]:
                    continue
            imports.append(f"import {cls};")

        if imports:
            lines.extend(imports)
            lines.append("")
        return "\n".join(lines) + ("\n" if lines else "")

    def members_to_string(self, context: Context) -> str:
        """Render fields, inner classes, constructors and methods, in that order."""
        sections = []

        if self._fields:
            sections.append("\n".join(f.to_java_string(context) for f in self._fields))

        if self._inner_classes:
            sections.append("\n\n".join(inner.generate(context) for inner in self._inner_classes))

        if not self._is_interface:
            constructors = self.get_constructors()
            if constructors:
                sections.append("\n\n".join(c.to_java_string(context) for c in constructors))

        if self._methods:
            sections.append("\n\n".join(m.to_java_string(context) for m in self._methods))

        return "\n\n".join(sections)

    def _check_supertype_chain(self) -> None:
        seen: set[int] = {id(self)}
        current = self._super_class
        while current is not None:
            if id(current) in seen:
                raise RenderError(
                    f"cyclic supertype chain for {self._class_name}", type_name=self._class_name
                )
            seen.add(id(current))
            current = current.super_class

    # -- value semantics -----------------------------------------------------------------

    def _state(self) -> tuple:
        cache = self._cache
        return (
            self._class_name,
            self._super_class,
            tuple(self._interfaces),
            self._scope,
            self._is_array,
            self._dimensions,
            self._is_interface,
            self._is_abstract,
            self._is_final,
            self._is_static,
            self._is_inner,
            tuple(self._annotations),
            tuple(self._methods),
            tuple(self._fields),
            tuple(self._constructors),
            tuple(self._type_variables),
            self._reified_form_of,
            self._class_comment,
            cache.name,
            cache.methods,
            cache.fields,
            cache.constructors,
            cache.generated,
        )

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, BuildMetaClass):
            return NotImplemented
        return self._state() == other._state()

    def __hash__(self) -> int:
        return hash((
            self._class_name,
            self._scope,
            self._is_array,
            self._dimensions,
            self._is_interface,
            self._is_abstract,
            self._is_final,
            self._is_static,
            self._is_inner,
            tuple(m.signature for m in self._methods),
            tuple(f.name for f in self._fields),
            tuple(c.signature for c in self._constructors),
            self._cache.name,
            self._cache.generated,
        ))


def _render_type_variable(variable: MetaTypeVariable, context: Context) -> str:
    if not variable.bounds:
        return variable.name
    bounds = " & ".join(class_reference(b, context) for b in variable.bounds)
    return f"{variable.name} extends {bounds}"
