"""
Code generation context.

A Context is a lexical scope: it knows the variables visible while a piece of
code is generated and collects the imports the generated code needs. Imports
always bubble up to the root context, which belongs to the top-level class.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from marshalgen.codegen.meta import MetaClass, MetaTypeVariable


@dataclass(frozen=True)
class Variable:
    """A named, typed variable visible in a scope."""

    name: str
    type: "MetaClass | None" = None


class Context:
    """A scope for variables and import bookkeeping."""

    def __init__(self, parent: Context | None = None):
        self.parent = parent
        self.auto_import = True
        self._variables: dict[str, Variable] = {}
        self._attached: list[MetaClass] = []
        # import state lives on the root context only
        self._imports: set[str] = set()
        self._claims: dict[str, str] = {}
        self._reserved: dict[str, str] = {}
        self._required: set[str] = set()

    @classmethod
    def create(cls, parent: Context | None = None) -> Context:
        return cls(parent)

    # -- variables --------------------------------------------------------------

    def add_variable(self, name: str, type_: "MetaClass | None" = None) -> Variable:
        variable = Variable(name, type_)
        self._variables[name] = variable
        return variable

    def get_variable(self, name: str) -> Variable | None:
        ctx: Context | None = self
        while ctx is not None:
            if name in ctx._variables:
                return ctx._variables[name]
            ctx = ctx.parent
        return None

    def is_scoped(self, name: str) -> bool:
        return self.get_variable(name) is not None

    # -- classes and imports ------------------------------------------------------

    @property
    def root(self) -> Context:
        ctx = self
        while ctx.parent is not None:
            ctx = ctx.parent
        return ctx

    def attach_class(self, meta_class: "MetaClass") -> None:
        """Claim the short name of a class generated in this scope."""
        self._attached.append(meta_class)
        root = self.root
        owner = meta_class.base_name.replace("$", ".")
        root._reserved.setdefault(meta_class.name, owner)
        root._claims.setdefault(meta_class.name, owner)

    def reset_imports(self) -> None:
        """Forget imports and short-name claims collected by earlier renders.

        Claims of attached classes and explicitly required imports survive
        the reset.
        """
        root = self.root
        root._imports = set(root._required)
        root._claims = dict(root._reserved)

    def import_reference(self, fully_qualified_name: str) -> str:
        """Return how a class should be referenced, recording an import if needed.

        The short name is used unless it is already claimed by a different
        class, in which case the fully qualified name is returned.
        """
        if "." not in fully_qualified_name:
            return fully_qualified_name

        root = self.root
        if not root.auto_import:
            return fully_qualified_name

        package, _, short_name = fully_qualified_name.rpartition(".")
        owner = root._claims.get(short_name)
        if owner is None:
            root._claims[short_name] = fully_qualified_name
            owner = fully_qualified_name
        if owner != fully_qualified_name:
            return fully_qualified_name

        if package != "java.lang":
            root._imports.add(fully_qualified_name)
        return short_name

    def add_required_import(self, fully_qualified_name: str) -> None:
        root = self.root
        root._required.add(fully_qualified_name)
        root._imports.add(fully_qualified_name)

    @property
    def required_imports(self) -> list[str]:
        return sorted(self.root._imports)


def class_reference(type_: "MetaClass | MetaTypeVariable", context: Context) -> str:
    """Render a reference to a type, recording any import it requires."""
    from marshalgen.codegen.meta import MetaTypeVariable, ParameterizedType

    if isinstance(type_, MetaTypeVariable):
        return type_.name

    if type_.is_array:
        element = class_reference(type_.outer_component_type, context)
        return element + "[]" * type_.dimensions

    if isinstance(type_, ParameterizedType):
        raw = class_reference(type_.raw_type, context)
        if not type_.type_arguments:
            return raw
        args = ", ".join(class_reference(a, context) for a in type_.type_arguments)
        return f"{raw}<{args}>"

    if type_.is_primitive:
        return type_.name

    return context.import_reference(type_.canonical_name)
