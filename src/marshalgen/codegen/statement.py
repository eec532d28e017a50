"""
Minimal statement builder.

Only the expression and statement forms the marshaller generator emits are
supported: literals, variable and field access, invocations, object and array
creation, casts, assignments, declarations, returns, throws, if/else and
counted for-loops. Every statement renders itself against a Context so that
type references are imported on the way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable

from marshalgen.codegen.context import Context, class_reference
from marshalgen.codegen.meta import MetaClass
from marshalgen.codegen.meta_factory import builtin


class Statement(ABC):
    """A generated expression or statement."""

    #: statements ending in a block do not take a trailing semicolon
    is_block = False

    @property
    def type(self) -> MetaClass | None:
        return None

    @abstractmethod
    def generate(self, context: Context) -> str:
        pass

    # -- fluent helpers -----------------------------------------------------------

    def invoke(self, method: str, *args: Any) -> "MethodInvocation":
        return MethodInvocation(self, method, args)

    def load_field(self, name: str) -> "FieldAccess":
        return FieldAccess(self, name)

    def assign_value(self, value: Any) -> "Assignment":
        return Assignment(self, value)

    def return_value(self) -> "Return":
        return Return(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.generate(Context())!r})"


def to_statement(value: Any) -> Statement:
    """Wrap plain Python values as literals."""
    if isinstance(value, Statement):
        return value
    return Literal(value)


def _generate_args(args: Iterable[Any], context: Context) -> str:
    return ", ".join(to_statement(a).generate(context) for a in args)


def _escape(text: str) -> str:
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


class Literal(Statement):
    """A literal value: string, number, boolean, null or class literal."""

    def __init__(self, value: Any):
        self.value = value

    @property
    def type(self) -> MetaClass | None:
        value = self.value
        if isinstance(value, bool):
            return builtin("boolean")
        if isinstance(value, int):
            return builtin("int")
        if isinstance(value, float):
            return builtin("double")
        if isinstance(value, str):
            return builtin("java.lang.String")
        if isinstance(value, MetaClass):
            return builtin("java.lang.Class")
        return None

    def generate(self, context: Context) -> str:
        value = self.value
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return repr(value)
        if isinstance(value, str):
            return f'"{_escape(value)}"'
        if isinstance(value, MetaClass):
            return f"{class_reference(value, context)}.class"
        raise TypeError(f"cannot render literal of type {type(value).__name__}")


class VariableReference(Statement):
    """``name`` or ``name[i][j]``."""

    def __init__(self, name: str, indexes: Iterable[Any] = ()):
        self.name = name
        self.indexes = tuple(indexes)

    def generate(self, context: Context) -> str:
        text = self.name
        for index in self.indexes:
            text += f"[{to_statement(index).generate(context)}]"
        return text


class TypeReference(Statement):
    """A bare type name, used as the target of static invocations."""

    def __init__(self, type_: MetaClass):
        self._type = type_

    @property
    def type(self) -> MetaClass:
        return self._type

    def generate(self, context: Context) -> str:
        return class_reference(self._type, context)


class MethodInvocation(Statement):
    def __init__(self, target: Statement | None, method: str, args: Iterable[Any] = ()):
        self.target = target
        self.method = method
        self.args = tuple(args)

    def generate(self, context: Context) -> str:
        call = f"{self.method}({_generate_args(self.args, context)})"
        if self.target is None:
            return call
        return f"{self.target.generate(context)}.{call}"


class FieldAccess(Statement):
    def __init__(self, target: Statement, name: str):
        self.target = target
        self.name = name

    def generate(self, context: Context) -> str:
        return f"{self.target.generate(context)}.{self.name}"


class Assignment(Statement):
    def __init__(self, target: Statement, value: Any):
        self.target = target
        self.value = to_statement(value)

    def generate(self, context: Context) -> str:
        return f"{self.target.generate(context)} = {self.value.generate(context)}"


class Return(Statement):
    def __init__(self, value: Any = None):
        self.value = None if value is None else to_statement(value)

    def generate(self, context: Context) -> str:
        if self.value is None:
            return "return"
        return f"return {self.value.generate(context)}"


class NewObject(Statement):
    """``new Type(args)``."""

    def __init__(self, type_: MetaClass, args: Iterable[Any] = ()):
        self._type = type_
        self.args = tuple(args)

    @property
    def type(self) -> MetaClass:
        return self._type

    def with_parameters(self, *args: Any) -> "NewObject":
        return NewObject(self._type, args)

    def generate(self, context: Context) -> str:
        return f"new {class_reference(self._type, context)}({_generate_args(self.args, context)})"


class NewArray(Statement):
    """``new Type[size][]...``; only leading dimensions carry a size."""

    def __init__(self, component_type: MetaClass, dimensions: Iterable[Any]):
        self.component_type = component_type
        self.dimensions = tuple(dimensions)

    @property
    def type(self) -> MetaClass:
        return self.component_type.as_array_of(len(self.dimensions))

    def generate(self, context: Context) -> str:
        text = f"new {class_reference(self.component_type, context)}"
        for size in self.dimensions:
            if size is None:
                text += "[]"
            else:
                text += f"[{to_statement(size).generate(context)}]"
        return text


class Cast(Statement):
    def __init__(self, type_: MetaClass, value: Any):
        self._type = type_
        self.value = to_statement(value)

    @property
    def type(self) -> MetaClass:
        return self._type

    def generate(self, context: Context) -> str:
        return f"({class_reference(self._type, context)}) {self.value.generate(context)}"


class DeclareVariable(Statement):
    """``Type name = initializer``; the variable is added to the scope."""

    def __init__(self, type_: MetaClass, name: str, initializer: Any = None):
        self._type = type_
        self.name = name
        self.initializer = None if initializer is None else to_statement(initializer)

    def generate(self, context: Context) -> str:
        context.add_variable(self.name, self._type)
        text = f"{class_reference(self._type, context)} {self.name}"
        if self.initializer is not None:
            text += f" = {self.initializer.generate(context)}"
        return text


class Throw(Statement):
    def __init__(self, exception_type: MetaClass, message: str | None = None):
        self.exception_type = exception_type
        self.message = message

    def generate(self, context: Context) -> str:
        args = () if self.message is None else (self.message,)
        return f"throw {NewObject(self.exception_type, args).generate(context)}"


class BooleanExpression(Statement):
    def __init__(self, lhs: Any, operator: str, rhs: Any):
        self.lhs = to_statement(lhs)
        self.operator = operator
        self.rhs = to_statement(rhs)

    @property
    def type(self) -> MetaClass:
        return builtin("boolean")

    def generate(self, context: Context) -> str:
        return f"{self.lhs.generate(context)} {self.operator} {self.rhs.generate(context)}"


class BlockStatement(Statement):
    """An ordered list of statements, one per line."""

    def __init__(self, statements: Iterable[Any] = ()):
        self.statements: list[Statement] = [to_statement(s) for s in statements]

    def append(self, *statements: Any) -> "BlockStatement":
        self.statements.extend(to_statement(s) for s in statements)
        return self

    def is_empty(self) -> bool:
        return not self.statements

    def generate(self, context: Context) -> str:
        lines = []
        for statement in self.statements:
            text = statement.generate(context)
            lines.append(text if statement.is_block else text + ";")
        return "\n".join(lines)


class IfBlock(Statement):
    is_block = True

    def __init__(self, condition: Statement, then: Iterable[Any], otherwise: Iterable[Any] | None = None):
        self.condition = condition
        self.then = BlockStatement(then)
        self.otherwise = None if otherwise is None else BlockStatement(otherwise)

    def generate(self, context: Context) -> str:
        text = f"if ({self.condition.generate(context)}) {{\n"
        text += self.then.generate(Context.create(context))
        text += "\n}"
        if self.otherwise is not None:
            text += " else {\n"
            text += self.otherwise.generate(Context.create(context))
            text += "\n}"
        return text


class ForLoop(Statement):
    """``for (int var = 0; var < bound; var++) { body }``."""

    is_block = True

    def __init__(self, variable: str, bound: Any, body: Iterable[Any] = ()):
        self.variable = variable
        self.bound = to_statement(bound)
        self.body = BlockStatement(body)

    def append(self, *statements: Any) -> "ForLoop":
        self.body.append(*statements)
        return self

    def generate(self, context: Context) -> str:
        loop_context = Context.create(context)
        loop_context.add_variable(self.variable, builtin("int"))
        var = self.variable
        text = f"for (int {var} = 0; {var} < {self.bound.generate(loop_context)}; {var}++) {{\n"
        text += self.body.generate(loop_context)
        return text + "\n}"


class Stmt:
    """Factory functions for statements."""

    @staticmethod
    def load_variable(name: str, *indexes: Any) -> VariableReference:
        return VariableReference(name, indexes)

    @staticmethod
    def load(value: Any) -> Literal:
        return Literal(value)

    @staticmethod
    def load_type(type_: MetaClass) -> TypeReference:
        return TypeReference(type_)

    @staticmethod
    def new_object(type_: MetaClass, *args: Any) -> NewObject:
        return NewObject(type_, args)

    @staticmethod
    def new_array(component_type: MetaClass, *dimensions: Any) -> NewArray:
        return NewArray(component_type, dimensions)

    @staticmethod
    def declare_variable(type_: MetaClass, name: str, initializer: Any = None) -> DeclareVariable:
        return DeclareVariable(type_, name, initializer)

    @staticmethod
    def cast_to(type_: MetaClass, value: Any) -> Cast:
        return Cast(type_, value)

    @staticmethod
    def invoke(method: str, *args: Any) -> MethodInvocation:
        """Invoke a method on the enclosing instance."""
        return MethodInvocation(None, method, args)

    @staticmethod
    def invoke_static(type_: MetaClass, method: str, *args: Any) -> MethodInvocation:
        return MethodInvocation(TypeReference(type_), method, args)

    @staticmethod
    def if_(condition: Statement, then: Iterable[Any], otherwise: Iterable[Any] | None = None) -> IfBlock:
        return IfBlock(condition, then, otherwise)

    @staticmethod
    def throw_(exception_type: MetaClass, message: str | None = None) -> Throw:
        return Throw(exception_type, message)


class Bool:
    """Factory functions for boolean expressions."""

    @staticmethod
    def is_null(value: Any) -> BooleanExpression:
        return BooleanExpression(value, "==", None)

    @staticmethod
    def not_null(value: Any) -> BooleanExpression:
        return BooleanExpression(value, "!=", None)

    @staticmethod
    def greater_than(lhs: Any, rhs: Any) -> BooleanExpression:
        return BooleanExpression(lhs, ">", rhs)

    @staticmethod
    def less_than(lhs: Any, rhs: Any) -> BooleanExpression:
        return BooleanExpression(lhs, "<", rhs)

    @staticmethod
    def or_(lhs: Any, rhs: Any) -> BooleanExpression:
        return BooleanExpression(lhs, "||", rhs)
