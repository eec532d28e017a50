"""
Unit tests for statements, the import context, the pretty printer and the type universe.
"""

import pytest

from marshalgen.codegen.context import Context, class_reference
from marshalgen.codegen.meta import MetaParameter
from marshalgen.codegen.meta_factory import MetaClassFactory, builtin, parameterized_as, parse_type_name
from marshalgen.codegen.pretty import pretty_print_java
from marshalgen.codegen.statement import Bool, Literal, Stmt
from marshalgen.codegen.structure import auto_for_loop
from marshalgen.errors import ConfigurationError, ResolutionError


class TestStatements:
    """Tests for statement rendering."""

    def test_literals(self):
        ctx = Context()

        assert Literal(None).generate(ctx) == "null"
        assert Literal(True).generate(ctx) == "true"
        assert Literal(3).generate(ctx) == "3"
        assert Literal('say "hi"\n').generate(ctx) == '"say \\"hi\\"\\n"'
        assert Literal(builtin("int").as_array_of(1)).generate(ctx) == "int[].class"

    def test_unsupported_literal(self):
        with pytest.raises(TypeError):
            Literal(object()).generate(Context())

    def test_new_array_with_open_dimensions(self):
        stmt = Stmt.new_array(builtin("int"), 3, None)

        assert stmt.generate(Context()) == "new int[3][]"
        assert stmt.type.fully_qualified_name == "int[][]"

    def test_invocation_chain(self):
        stmt = Stmt.load_variable("a0").invoke("get", 1).invoke("isArray")

        assert stmt.generate(Context()) == "a0.get(1).isArray()"

    def test_cast_and_declare(self):
        ctx = Context()
        stmt = Stmt.declare_variable(
            builtin("java.lang.Integer"), "value", Stmt.cast_to(builtin("java.lang.Integer"), Stmt.load(None))
        )

        assert stmt.generate(ctx) == "Integer value = (Integer) null"
        assert ctx.is_scoped("value")

    def test_if_block(self):
        stmt = Stmt.if_(Bool.is_null(Stmt.load_variable("a0")), [Stmt.load(None).return_value()])

        assert stmt.generate(Context()) == "if (a0 == null) {\nreturn null;\n}"

    def test_for_loop(self):
        loop = auto_for_loop(
            "i",
            Stmt.load_variable("a0").invoke("size"),
            Stmt.invoke("visit", Stmt.load_variable("a0").invoke("get", Stmt.load_variable("i"))),
        )

        assert loop.generate(Context()) == "for (int i = 0; i < a0.size(); i++) {\nvisit(a0.get(i));\n}"


class TestContext:
    """Tests for import bookkeeping."""

    def test_java_lang_is_not_imported(self):
        ctx = Context()

        assert class_reference(builtin("java.lang.String"), ctx) == "String"
        assert ctx.required_imports == []

    def test_imports_bubble_to_root(self):
        root = Context()
        child = Context.create(Context.create(root))

        assert class_reference(builtin("java.util.List"), child) == "List"
        assert root.required_imports == ["java.util.List"]

    def test_short_name_conflict_uses_qualified_name(self):
        ctx = Context()
        factory = MetaClassFactory()
        other_list = factory.declare("com.x.List")

        assert class_reference(builtin("java.util.List"), ctx) == "List"
        assert class_reference(other_list, ctx) == "com.x.List"
        assert ctx.required_imports == ["java.util.List"]

    def test_parameterized_reference(self):
        ctx = Context()
        map_type = parameterized_as(builtin("java.util.Map"), builtin("java.lang.String"), builtin("java.lang.Object"))

        assert class_reference(map_type, ctx) == "Map<String, Object>"

    def test_variable_lookup_walks_parents(self):
        root = Context()
        root.add_variable("a0", builtin("int"))
        child = Context.create(root)

        assert child.get_variable("a0").type is builtin("int")
        assert child.get_variable("missing") is None


class TestPrettyPrinter:
    """Tests for re-indentation."""

    def test_indents_by_brace_depth(self):
        source = "class A {\nvoid f() {\nreturn;\n}\n}\n"

        assert pretty_print_java(source) == "class A {\n  void f() {\n    return;\n  }\n}\n"

    def test_ignores_braces_in_literals(self):
        source = 'class A {\nString s = "{";\nchar c = \'}\';\nint x;\n}\n'

        assert pretty_print_java(source) == 'class A {\n  String s = "{";\n  char c = \'}\';\n  int x;\n}\n'

    def test_collapses_blank_lines(self):
        source = "class A {\n\nint x;\n\n\n\nint y;\n\n}\n"

        assert pretty_print_java(source) == "class A {\n  int x;\n\n  int y;\n}\n"


class TestTypeUniverse:
    """Tests for MetaClassFactory and type expressions."""

    def test_parse_type_name(self):
        assert parse_type_name("int[][]") == ("int", [], 2)
        assert parse_type_name("java.util.Map<java.lang.String, java.util.List<int[]>>[]") == (
            "java.util.Map",
            ["java.lang.String", "java.util.List<int[]>"],
            1,
        )

    def test_get_array_type(self):
        factory = MetaClassFactory()
        matrix = factory.get("int[][]")

        assert matrix.is_array
        assert matrix.dimensions == 2
        assert matrix.component_type.fully_qualified_name == "int[]"
        assert matrix.outer_component_type is builtin("int")

    def test_internal_names(self):
        factory = MetaClassFactory()

        assert factory.get("int[][]").internal_name == "[[I"
        assert factory.get("java.lang.String[]").internal_name == "[Ljava.lang.String;"
        assert builtin("java.lang.String").internal_name == "java.lang.String"

    def test_boxing(self):
        assert builtin("int").as_boxed() is builtin("java.lang.Integer")
        assert builtin("java.lang.Integer").as_unboxed() is builtin("int")
        assert builtin("java.lang.String").as_boxed() is builtin("java.lang.String")

    def test_declare_twice_fails(self):
        factory = MetaClassFactory()
        factory.declare("com.x.Foo")

        with pytest.raises(ConfigurationError):
            factory.declare("com.x.Foo")
        with pytest.raises(ConfigurationError):
            factory.declare("java.lang.String")

    def test_unknown_type(self):
        factory = MetaClassFactory()

        with pytest.raises(ResolutionError) as exc_info:
            factory.get("com.x.Missing[]")

        assert exc_info.value.type_name == "com.x.Missing"
        assert factory.find("com.x.Missing") is None
        assert not factory.is_known("com.x.Missing")

    def test_factories_are_isolated(self):
        first = MetaClassFactory()
        second = MetaClassFactory()
        first.declare("com.x.Foo")

        assert first.is_known("com.x.Foo")
        assert not second.is_known("com.x.Foo")

    def test_best_matching_method_boxes(self):
        factory = MetaClassFactory()
        bean = factory.declare("com.x.Bean", super_class=builtin("java.lang.Object"))
        bean.declare_method("setTotal", builtin("void"), [MetaParameter(builtin("java.lang.Integer"), "v")])

        assert bean.get_method("setTotal", builtin("int")) is None
        assert bean.get_best_matching_method("setTotal", builtin("int")).name == "setTotal"
