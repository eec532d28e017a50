"""
Integration test for the generate workflow.

Drives the CLI end to end: configuration file, type manifest, generation and
the cache directory.
"""

import shutil
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from marshalgen.cli import main as cli
from marshalgen.config.loader import create_config_from_args
from marshalgen.config.models import OutputTarget
from marshalgen.errors import ResolutionError

runner = CliRunner()


@pytest.fixture
def shop_config(tmp_path):
    """Copy the example shop manifest into a scratch directory."""
    source = Path(__file__).parent.parent.parent / "examples" / "shop" / "marshalgen.yaml"
    assert source.exists(), "Example manifest not found"
    target = tmp_path / "marshalgen.yaml"
    shutil.copy(source, target)
    return target


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    """Keep rich from wrapping long type names."""
    monkeypatch.setattr(cli, "console", Console(width=200))


def test_generate_shop(shop_config, tmp_path):
    """Test generating the example manifest writes the factory to the cache."""
    result = runner.invoke(cli.app, ["generate", "--config", str(shop_config)])

    assert result.exit_code == 0, result.output
    assert "Generation complete" in result.output

    cache_file = tmp_path / ".marshalgen" / "cache" / "ShopMarshallerFactory.java"
    assert cache_file.exists()
    source = cache_file.read_text(encoding="utf-8")

    # Class outline
    assert source.startswith("package com.example.shop.gen;\n")
    assert "public class ShopMarshallerFactory implements MarshallerFactory {" in source

    # Known, synthesized and array marshallers
    assert "com_example_shop_Money = new MoneyMarshaller();" in source
    assert "return Status.valueOf(a0.isString().stringValue());" in source
    assert 'entity.setItems(arrayOf_com_example_shop_LineItem_D1.demarshall(obj.get("items"), a1));' in source
    assert "private double[][] demarshall_2_double(EJArray a0, MarshallingSession a1) {" in source

    # Lookup table
    assert 'marshallers.put("Order", com_example_shop_Order);' in source
    assert 'marshallers.put("PurchaseOrder", com_example_shop_Order);' in source
    assert 'marshallers.put("com.example.shop.LineItem[]", arrayOf_com_example_shop_LineItem_D1);' in source

    assert (tmp_path / ".marshalgen" / "cache" / "manifest.json").exists()


def test_generate_is_reproducible(shop_config, tmp_path):
    cache_file = tmp_path / ".marshalgen" / "cache" / "ShopMarshallerFactory.java"

    assert runner.invoke(cli.app, ["generate", "-c", str(shop_config)]).exit_code == 0
    first = cache_file.read_text(encoding="utf-8")
    assert runner.invoke(cli.app, ["generate", "-c", str(shop_config)]).exit_code == 0

    assert cache_file.read_text(encoding="utf-8") == first


def test_generate_print_out(shop_config):
    result = runner.invoke(cli.app, ["generate", "-c", str(shop_config), "--print-out"])

    assert result.exit_code == 0, result.output
    assert "public class ShopMarshallerFactory implements MarshallerFactory {" in result.output


def test_init_then_generate(tmp_path):
    """Test the default configuration generates without edits."""
    config_path = tmp_path / "marshalgen.yaml"

    result = runner.invoke(cli.app, ["init", "--output", str(config_path)])
    assert result.exit_code == 0, result.output
    assert config_path.exists()

    result = runner.invoke(cli.app, ["generate", "--config", str(config_path)])
    assert result.exit_code == 0, result.output
    assert (tmp_path / ".marshalgen" / "cache" / "MarshallerFactoryImpl.java").exists()


def test_init_force_overwrites(tmp_path):
    config_path = tmp_path / "marshalgen.yaml"
    config_path.write_text("stale: true\n")

    result = runner.invoke(cli.app, ["init", "-o", str(config_path), "--force"])

    assert result.exit_code == 0, result.output
    assert "stale" not in config_path.read_text()


def test_init_declined(tmp_path):
    config_path = tmp_path / "marshalgen.yaml"
    config_path.write_text("stale: true\n")

    result = runner.invoke(cli.app, ["init", "-o", str(config_path)], input="n\n")

    assert result.exit_code != 0
    assert config_path.read_text() == "stale: true\n"


def test_types_lists_exposed_types(shop_config):
    result = runner.invoke(cli.app, ["types", "--config", str(shop_config)])

    assert result.exit_code == 0, result.output
    assert "com.example.shop.Order" in result.output
    assert "com.example.shop.MoneyMarshaller" in result.output
    assert "generated" in result.output
    assert "PurchaseOrder" in result.output


def test_generate_missing_config(tmp_path):
    result = runner.invoke(cli.app, ["generate", "--config", str(tmp_path / "missing.yaml")])

    assert result.exit_code == 1
    assert "Configuration Error" in result.output


def test_generate_unmappable_type(tmp_path):
    """Test a type without a usable strategy fails and leaves no cached output."""
    config_path = tmp_path / "marshalgen.yaml"
    config_path.write_text(
        "types:\n"
        "  - name: com.x.Shape\n"
        "    kind: interface\n"
        "exposed:\n"
        "  - type: com.x.Shape\n"
    )

    result = runner.invoke(cli.app, ["generate", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "Generation Error (com.x.Shape)" in result.output
    assert not (tmp_path / ".marshalgen" / "cache" / "MarshallerFactoryImpl.java").exists()


def test_gwt_target_requires_accessors(tmp_path):
    """Test private fields without accessors cannot be mapped on the GWT target."""
    config = create_config_from_args(
        "com.x.gen",
        "Factory",
        target="gwt",
        cache_dir=tmp_path / "cache",
        types=[{"name": "com.x.Secret", "fields": [{"name": "code", "type": "int"}]}],
        exposed=[{"type": "com.x.Secret"}],
    )

    with pytest.raises(ResolutionError) as exc_info:
        cli.run_generation(config)

    assert exc_info.value.type_name == "com.x.Secret"
    assert not (tmp_path / "cache").exists()

    config.target = OutputTarget.JAVA
    source, cache_file = cli.run_generation(config)

    assert 'FieldAccess.get(a0, "code")' in source
    assert cache_file == tmp_path / "cache" / "Factory.java"
