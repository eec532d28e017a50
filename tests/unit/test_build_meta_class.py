"""
Unit tests for the type model builder (BuildMetaClass).
"""

import pytest

from marshalgen.codegen.build import BuildMetaClass, BuildMetaField, BuildMetaMethod, InnerClass
from marshalgen.codegen.meta import Annotation, MetaParameter, Scope
from marshalgen.codegen.meta_factory import MetaClassFactory, builtin
from marshalgen.codegen.statement import Stmt
from marshalgen.codegen.structure import ClassStructureBuilder
from marshalgen.errors import GenerationError, RenderError


@pytest.fixture
def factory():
    """A fresh type universe."""
    return MetaClassFactory()


@pytest.fixture
def parent():
    """A class declaring a single method m()."""
    cls = BuildMetaClass(None, "com.x.Parent")
    cls.add_method(BuildMetaMethod("m", builtin("void")))
    return cls


@pytest.fixture
def child(parent):
    """A subclass of parent that does not override m()."""
    cls = BuildMetaClass(None, "com.x.Child")
    cls.set_super_class(parent)
    return cls


# =============================================================================
# Rendering
# =============================================================================


def test_render_is_idempotent():
    """Rendering twice without mutation returns the cached string."""
    cls = BuildMetaClass(None, "com.x.Greeter")
    cls.add_field(BuildMetaField("greeting", builtin("java.lang.String"), initializer=Stmt.load("hi")))
    cls.add_method(BuildMetaMethod("greet", builtin("void")))

    first = cls.to_java_string()
    second = cls.render()

    assert first is second
    assert first == second


def test_render_empty_class_has_default_constructor():
    """A class without constructors renders exactly one public no-arg constructor."""
    cls = BuildMetaClass(None, "com.x.Foo")

    source = cls.to_java_string()

    assert source == "package com.x;\n\npublic class Foo {\n  public Foo() {\n  }\n}\n"
    assert source.count("public Foo()") == 1
    assert cls.declared_constructors == ()
    assert len(cls.get_constructors()) == 1
    assert cls.get_constructors()[0].parameters == ()


def test_render_declared_constructor_replaces_default():
    """Once a constructor is declared no default one is rendered."""
    builder = ClassStructureBuilder.define("com.x.Foo")
    builder.public_constructor(builtin("int")).append(Stmt.invoke("init", Stmt.load_variable("a0"))).finish()

    source = builder.to_java_string()

    assert "public Foo(int a0) {" in source
    assert "init(a0);" in source
    assert "public Foo() {" not in source


def test_render_member_order():
    """Fields, inner classes, constructors and methods are rendered in that order."""
    cls = BuildMetaClass(None, "com.x.Outer")
    cls.add_method(BuildMetaMethod("run", builtin("void")))
    cls.add_field(BuildMetaField("count", builtin("int")))
    inner = BuildMetaClass(None, "com.x.Outer$Inner")
    inner.set_inner(True)
    inner.set_static(True)
    cls.add_inner_class(InnerClass(inner))

    source = cls.to_java_string()

    field_at = source.index("private int count;")
    inner_at = source.index("public static class Inner {")
    constructor_at = source.index("public Outer() {")
    method_at = source.index("public void run() {")
    assert field_at < inner_at < constructor_at < method_at


def test_render_imports():
    """Imports are sorted and skip java.lang, the type itself and same-package classes."""
    factory = MetaClassFactory()
    sibling = factory.declare("com.x.Sibling")
    nested = factory.declare("com.x.sub.Nested")

    builder = ClassStructureBuilder.define("com.x.Holder")
    builder.private_field("list", builtin("java.util.List"))
    builder.private_field("name", builtin("java.lang.String"))
    builder.private_field("sibling", sibling)
    builder.private_field("nested", nested)
    builder.private_field("map", builtin("java.util.HashMap"))

    source = builder.to_java_string()
    import_lines = [line for line in source.splitlines() if line.startswith("import ")]

    assert import_lines == [
        "import com.x.sub.Nested;",
        "import java.util.HashMap;",
        "import java.util.List;",
    ]
    assert "private Sibling sibling;" in source
    assert "private String name;" in source


def test_render_interface_lists_supertype_in_extends():
    """An interface renders its supertype among its extends types and no constructor."""
    base = BuildMetaClass(None, "com.x.Base")
    base.set_interface(True)

    iface = BuildMetaClass(None, "com.x.Sub")
    iface.set_interface(True)
    iface.set_super_class(base)
    iface.add_method(BuildMetaMethod("size", builtin("int"), is_abstract=True, scope=Scope.PACKAGE))

    source = iface.to_java_string()

    assert "public interface Sub extends Base {" in source
    assert "abstract int size();" in source
    assert "Sub()" not in source


def test_render_class_extends_and_implements():
    factory = MetaClassFactory()
    runnable = factory.declare("java.lang.Runnable", is_interface=True)
    base = BuildMetaClass(None, "com.x.Base")

    cls = BuildMetaClass(None, "com.x.Task")
    cls.set_super_class(base)
    cls.add_interface(runnable)
    cls.set_final(True)

    assert "public final class Task extends Base implements Runnable {" in cls.to_java_string()


def test_render_class_comment_and_annotations(factory):
    marker = factory.declare("com.x.ann.Marker", is_annotation=True, is_interface=True)
    cls = BuildMetaClass(None, "com.x.Doc")
    cls.set_class_comment("Generated.\nDo not edit.")
    cls.add_annotation(Annotation.of(marker, value="v1"))

    source = cls.to_java_string()

    assert "/**\n * Generated.\n * Do not edit.\n */\n@Marker(\"v1\")\npublic class Doc {" in source
    assert "import com.x.ann.Marker;" in source


def test_render_escapes_comment_terminator():
    """Comment text cannot close the Javadoc block early."""
    cls = BuildMetaClass(None, "com.x.Doc")
    cls.set_class_comment("Matches a*/b paths.")

    source = cls.to_java_string()

    assert " * Matches a*&#47;b paths.\n */\npublic class Doc {" in source
    assert source.count("*/") == 1


def test_render_unresolved_annotation_fails():
    """An annotation without resolvable metadata raises a RenderError naming the type."""
    cls = BuildMetaClass(None, "com.x.Broken")
    cls.add_annotation(Annotation(None, type_name="com.x.Missing"))

    with pytest.raises(RenderError) as exc_info:
        cls.to_java_string()

    assert exc_info.value.type_name == "com.x.Broken"
    assert "com.x.Missing" in str(exc_info.value)


def test_render_annotation_of_non_annotation_type_fails():
    cls = BuildMetaClass(None, "com.x.Broken")
    cls.add_annotation(Annotation.of(builtin("java.lang.String")))

    with pytest.raises(RenderError):
        cls.to_java_string()


def test_inner_class_has_no_header():
    inner = BuildMetaClass(None, "com.x.Outer$Inner")
    inner.set_inner(True)

    source = inner.to_java_string()

    assert not source.startswith("package")
    assert source.startswith("public class Inner {")


def test_inner_class_imports_reach_outer_header(factory):
    """An inner class built in its own context still contributes its imports."""
    thing = factory.declare("com.y.Thing")
    inner = BuildMetaClass(None, "com.x.Outer$Inner")
    inner.set_inner(True)
    inner.set_static(True)
    inner.add_field(BuildMetaField("thing", thing))
    outer = BuildMetaClass(None, "com.x.Outer")
    outer.add_inner_class(InnerClass(inner))

    source = outer.to_java_string()

    assert "import com.y.Thing;" in source
    assert "private Thing thing;" in source
    assert "public static class Inner {" in source


# =============================================================================
# Member resolution
# =============================================================================


def test_get_methods_includes_inherited_once(parent, child):
    """An inherited, non-overridden method appears once and belongs to the parent."""
    methods = [m for m in child.get_methods() if m.name == "m"]

    assert len(methods) == 1
    assert methods[0].declaring_class is parent


def test_get_methods_prefers_override(parent, child):
    """An override with the same signature replaces the inherited method."""
    child.add_method(BuildMetaMethod("m", builtin("void")))

    methods = [m for m in child.get_methods() if m.name == "m"]

    assert len(methods) == 1
    assert methods[0].declaring_class is child


def test_get_methods_overload_is_not_override(parent, child):
    """A method with a different parameter list is an overload."""
    child.add_method(BuildMetaMethod("m", builtin("void"), (MetaParameter(builtin("int"), "a0"),)))

    methods = [m for m in child.get_methods() if m.name == "m"]

    assert [m.declaring_class for m in methods] == [parent, child]


def test_get_methods_order(parent, child):
    """Inherited methods come first, followed by declared ones in declaration order."""
    child.add_method(BuildMetaMethod("b", builtin("void")))
    child.add_method(BuildMetaMethod("a", builtin("void")))

    assert [m.name for m in child.get_methods()] == ["m", "b", "a"]


def test_get_fields_skips_private_and_shadowed(parent, child):
    parent.add_field(BuildMetaField("secret", builtin("int")))
    parent.add_field(BuildMetaField("shared", builtin("int"), scope=Scope.PROTECTED))
    parent.add_field(BuildMetaField("shadowed", builtin("int"), scope=Scope.PUBLIC))
    child.add_field(BuildMetaField("shadowed", builtin("long")))

    fields = child.get_fields()

    assert [f.name for f in fields] == ["shared", "shadowed"]
    assert fields[1].declaring_class is child


# =============================================================================
# Caches and mutation
# =============================================================================


def test_mutation_invalidates_rendered_text():
    cls = BuildMetaClass(None, "com.x.Foo")
    before = cls.to_java_string()

    cls.add_field(BuildMetaField("count", builtin("int")))
    after = cls.to_java_string()

    assert before != after
    assert "private int count;" in after


@pytest.mark.parametrize("replacement", ["com.b.Other", "com.b.Base"])
def test_rerender_after_mutation_matches_fresh_build(factory, replacement):
    """Imports and short names from an earlier render do not leak into the next one."""
    first_base = factory.declare("com.a.Base")
    second_base = factory.declare(replacement)

    cls = BuildMetaClass(None, "com.x.Task")
    cls.set_super_class(first_base)
    assert "import com.a.Base;" in cls.to_java_string()

    cls.set_super_class(second_base)
    rerendered = cls.to_java_string()

    fresh = BuildMetaClass(None, "com.x.Task")
    fresh.set_super_class(second_base)

    assert rerendered == fresh.to_java_string()
    assert "com.a.Base" not in rerendered
    assert f"import {replacement};" in rerendered


def test_mutation_invalidates_merged_views(parent, child):
    assert [m.name for m in child.get_methods()] == ["m"]

    child.add_method(BuildMetaMethod("n", builtin("void")))

    assert [m.name for m in child.get_methods()] == ["m", "n"]


def test_array_variant_shares_members():
    cls = BuildMetaClass(None, "com.x.Foo")
    cls.add_field(BuildMetaField("count", builtin("int")))

    array = cls.as_array_of(2)

    assert array.is_array
    assert array.dimensions == 2
    assert array.fully_qualified_name == "com.x.Foo[][]"
    assert array.component_type.fully_qualified_name == "com.x.Foo[]"
    assert array.outer_component_type.fully_qualified_name == "com.x.Foo"
    assert array.declared_fields == cls.declared_fields


def test_array_variant_is_read_only():
    cls = BuildMetaClass(None, "com.x.Foo")
    array = cls.as_array_of(1)

    with pytest.raises(GenerationError):
        array.add_field(BuildMetaField("count", builtin("int")))


def test_base_is_frozen_after_deriving_variant():
    cls = BuildMetaClass(None, "com.x.Foo")
    cls.as_array_of(1)

    with pytest.raises(GenerationError) as exc_info:
        cls.add_method(BuildMetaMethod("m", builtin("void")))

    assert exc_info.value.type_name == "com.x.Foo"


def test_supertype_cycle_is_rejected():
    a = BuildMetaClass(None, "com.x.A")
    b = BuildMetaClass(None, "com.x.B")
    a.set_super_class(b)

    with pytest.raises(GenerationError):
        b.set_super_class(a)

    with pytest.raises(GenerationError):
        a.set_super_class(a)


# =============================================================================
# Value semantics
# =============================================================================


def _build(name: str) -> BuildMetaClass:
    cls = BuildMetaClass(None, name)
    cls.add_field(BuildMetaField("count", builtin("int")))
    cls.add_method(BuildMetaMethod("run", builtin("void")))
    return cls


def test_equal_models_compare_equal():
    a = _build("com.x.Foo")
    b = _build("com.x.Foo")

    assert a == b
    assert hash(a) == hash(b)


def test_equality_accounts_for_caches():
    a = _build("com.x.Foo")
    b = _build("com.x.Foo")

    a.to_java_string()
    assert a != b

    b.to_java_string()
    assert a == b


def test_structural_difference_breaks_equality():
    a = _build("com.x.Foo")
    b = _build("com.x.Foo")
    b.set_abstract(True)

    assert a != b
