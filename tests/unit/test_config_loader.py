"""
Unit tests for configuration loading and the type manifest.
"""

import collections
import json
import tempfile
from pathlib import Path

import pytest
import yaml

from marshalgen.codegen.meta import Scope
from marshalgen.config.loader import (
    build_factory,
    build_registry,
    create_config_from_args,
    generate_default_config,
    load_config_from_yaml,
    load_extensions,
)
from marshalgen.config.models import MarshalgenConfig, OutputTarget
from marshalgen.errors import ConfigurationError
from marshalgen.marshalling.api import ALWAYS_QUALIFY


@pytest.fixture
def temp_dir():
    """Create a temporary directory for config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def write_config(directory: Path, data) -> Path:
    path = directory / "marshalgen.yaml"
    with open(path, "w") as f:
        yaml.safe_dump(data, f)
    return path


PERSON = {
    "name": "com.x.Person",
    "fields": [
        {"name": "name", "type": "java.lang.String", "scope": "public"},
        {"name": "age", "type": "int"},
    ],
    "methods": [
        {"name": "getAge", "returns": "int"},
        {"name": "setAge", "parameters": [{"name": "age", "type": "int"}]},
    ],
}


# =============================================================================
# Loading
# =============================================================================


def test_default_config_round_trip(temp_dir):
    """Test the generated default configuration loads and validates."""
    path = temp_dir / "marshalgen.yaml"
    generate_default_config(path)

    config = load_config_from_yaml(path)

    assert config.target is OutputTarget.JAVA
    assert config.output.class_name == "MarshallerFactoryImpl"
    assert [e.type for e in config.exposed] == ["com.example.Person", "com.example.Color"]
    assert config.output.cache_dir == temp_dir / ".marshalgen/cache"


def test_missing_file(temp_dir):
    with pytest.raises(ConfigurationError, match="not found"):
        load_config_from_yaml(temp_dir / "missing.yaml")


def test_empty_file(temp_dir):
    path = temp_dir / "marshalgen.yaml"
    path.write_text("")

    with pytest.raises(ConfigurationError, match="empty"):
        load_config_from_yaml(path)


def test_invalid_yaml(temp_dir):
    path = temp_dir / "marshalgen.yaml"
    path.write_text("types: [unclosed\n")

    with pytest.raises(ConfigurationError, match="Invalid YAML"):
        load_config_from_yaml(path)


def test_invalid_target(temp_dir):
    path = write_config(temp_dir, {"target": "cobol"})

    with pytest.raises(ConfigurationError, match="validation failed"):
        load_config_from_yaml(path)


def test_absolute_cache_dir_is_kept(temp_dir):
    cache_dir = temp_dir / "elsewhere"
    path = write_config(temp_dir, {"output": {"cache_dir": str(cache_dir)}})

    assert load_config_from_yaml(path).output.cache_dir == cache_dir


def test_exposed_type_must_be_declared(temp_dir):
    path = write_config(temp_dir, {"exposed": [{"type": "com.x.Missing"}]})

    with pytest.raises(ConfigurationError) as exc_info:
        load_config_from_yaml(path)

    assert exc_info.value.type_name == "com.x.Missing"


def test_builtin_type_may_be_exposed(temp_dir):
    path = write_config(temp_dir, {"exposed": [{"type": "java.lang.Number"}]})

    assert load_config_from_yaml(path).exposed[0].type == "java.lang.Number"


def test_alias_target_must_be_exposed(temp_dir):
    path = write_config(temp_dir, {"types": [PERSON], "aliases": {"P": "com.x.Person"}})

    with pytest.raises(ConfigurationError, match="not exposed"):
        load_config_from_yaml(path)


def test_create_config_from_args(temp_dir):
    config = create_config_from_args("com.acme", "Factory", target="GWT", cache_dir=temp_dir)

    assert config.output.package_name == "com.acme"
    assert config.output.class_name == "Factory"
    assert config.output.cache_dir == temp_dir
    assert config.target is OutputTarget.GWT
    assert config.target.is_portable


# =============================================================================
# Type manifest
# =============================================================================


def test_build_factory_declares_members():
    config = MarshalgenConfig(types=[PERSON])

    factory = build_factory(config)
    person = factory.get("com.x.Person")

    assert person.super_class.fully_qualified_name == "java.lang.Object"
    assert [f.name for f in person.declared_fields] == ["name", "age"]
    assert person.get_field("name").scope is Scope.PUBLIC
    assert person.get_field("age").scope is Scope.PRIVATE
    assert person.get_method("setAge", factory.get("int")) is not None


def test_build_factory_resolves_forward_references():
    config = MarshalgenConfig(types=[
        {"name": "com.x.Team", "fields": [{"name": "lead", "type": "com.x.Person"}]},
        PERSON,
    ])

    team = build_factory(config).get("com.x.Team")

    assert team.get_field("lead").type.fully_qualified_name == "com.x.Person"


def test_build_factory_enum_and_interface():
    config = MarshalgenConfig(types=[
        {"name": "com.x.Color", "kind": "enum", "constants": ["RED", "GREEN"]},
        {"name": "com.x.Shape", "kind": "interface"},
    ])
    factory = build_factory(config)

    color = factory.get("com.x.Color")
    assert color.is_enum
    assert color.enum_constants == ("RED", "GREEN")
    assert color.super_class.fully_qualified_name == "java.lang.Enum"
    assert factory.get("com.x.Shape").is_interface


def test_unknown_field_type():
    config = MarshalgenConfig(types=[{"name": "com.x.Broken", "fields": [{"name": "x", "type": "com.x.Nope"}]}])

    with pytest.raises(ConfigurationError) as exc_info:
        build_factory(config)

    assert exc_info.value.type_name == "com.x.Broken"


def test_annotation_must_be_annotation_type():
    config = MarshalgenConfig(types=[
        {"name": "com.x.Shape", "kind": "interface"},
        {"name": "com.x.Broken", "annotations": ["com.x.Shape"]},
    ])

    with pytest.raises(ConfigurationError, match="not an annotation type"):
        build_factory(config)


def test_build_registry():
    config = MarshalgenConfig(
        types=[PERSON, {"name": "com.x.Money"}],
        exposed=[
            {"type": "com.x.Person", "aliases": ["Person"]},
            {"type": "com.x.Money", "marshaller": "com.x.MoneyMarshaller"},
        ],
        aliases={"Cash": "com.x.Money"},
    )

    registry = build_registry(config)

    exposed = [t.fully_qualified_name for t in registry.get_exposed_types()]
    assert exposed[-2:] == ["com.x.Person", "com.x.Money"]
    assert registry.get_aliases_of("com.x.Person") == ["Person"]
    assert registry.get_aliases_of("com.x.Money") == ["Cash"]
    assert registry.get_known_serializer_type("com.x.Money").fully_qualified_name == "com.x.MoneyMarshaller"
    assert not registry.has_known_serializer("com.x.Person")


def test_build_registry_without_builtins():
    config = MarshalgenConfig(types=[PERSON], exposed=[{"type": "com.x.Person"}], include_builtin_marshallers=False)

    registry = build_registry(config)

    assert [t.fully_qualified_name for t in registry.get_exposed_types()] == ["com.x.Person"]


def test_always_qualify_annotates_type():
    config = MarshalgenConfig(types=[PERSON], exposed=[{"type": "com.x.Person", "always_qualify": True}])

    registry = build_registry(config)

    assert registry.get_definition("com.x.Person").mapping_class.is_annotation_present(ALWAYS_QUALIFY)


def test_always_qualify_rejects_builtin():
    config = MarshalgenConfig(exposed=[{"type": "java.lang.Number", "always_qualify": True}])

    with pytest.raises(ConfigurationError):
        build_registry(config)


# =============================================================================
# Extensions
# =============================================================================


def test_load_extensions_both_path_forms():
    assert load_extensions(["collections:OrderedDict", "json.JSONDecoder"]) == [
        collections.OrderedDict,
        json.JSONDecoder,
    ]


@pytest.mark.parametrize("path", ["no_such_module_xyz:Ext", "json:NoSuchExtension", "Ext"])
def test_load_extensions_failures(path):
    with pytest.raises(ConfigurationError):
        load_extensions([path])
