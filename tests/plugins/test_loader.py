"""Unit tests for plugin construction."""

from __future__ import annotations

import zipfile
from pathlib import Path

import pytest

from core.exceptions import DataIOError, DescriptorError, InvalidArgumentError
from core.services import HostServices
from plugins.base import Plugin
from plugins.loader import PluginLoader
from plugins.resources import MappingResourceBundle, ZipResourceBundle

_SERVICES = HostServices(server=object(), loader=object())


class GreeterPlugin(Plugin):
    def on_enable(self) -> None:
        self.save_default_config()


def _bundle(name: str = "greeter") -> MappingResourceBundle:
    return MappingResourceBundle(
        {
            "plugin.yml": f"name: {name}\nversion: 0.3\n",
            "config.yml": "greeting: hello\n",
        }
    )


def test_create_plugin_assigns_data_directory(tmp_path: Path) -> None:
    loader = PluginLoader(tmp_path / "plugins")

    plugin = loader.create_plugin(GreeterPlugin, _bundle(), _SERVICES)

    assert isinstance(plugin, GreeterPlugin)
    assert plugin.data_folder == tmp_path / "plugins" / "greeter"
    assert plugin.descriptor.version == "0.3"


def test_created_plugin_runs_lifecycle(tmp_path: Path) -> None:
    plugin = PluginLoader(tmp_path).create_plugin(GreeterPlugin, _bundle(), _SERVICES)

    plugin.load()
    plugin.enable()

    config_file = tmp_path / "greeter" / "config.yml"
    assert config_file.read_text(encoding="utf-8") == "greeting: hello\n"


def test_duplicate_names_never_share_a_root(tmp_path: Path) -> None:
    loader = PluginLoader(tmp_path)
    loader.create_plugin(GreeterPlugin, _bundle(), _SERVICES)

    with pytest.raises(InvalidArgumentError):
        loader.create_plugin(GreeterPlugin, _bundle(), _SERVICES)

    loader.release("greeter")
    loader.create_plugin(GreeterPlugin, _bundle(), _SERVICES)


def test_failed_construction_releases_name(tmp_path: Path) -> None:
    class Exploding(Plugin):
        def __init__(self, *args: object) -> None:
            raise RuntimeError("constructor failed")

    loader = PluginLoader(tmp_path)

    with pytest.raises(RuntimeError):
        loader.create_plugin(Exploding, _bundle(), _SERVICES)

    loader.create_plugin(GreeterPlugin, _bundle(), _SERVICES)


def test_bundle_without_descriptor(tmp_path: Path) -> None:
    with pytest.raises(DescriptorError):
        PluginLoader(tmp_path).create_plugin(
            GreeterPlugin, MappingResourceBundle({}), _SERVICES
        )


def test_open_bundle_from_zip(tmp_path: Path) -> None:
    archive = tmp_path / "greeter.zip"
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr("plugin.yml", "name: greeter\nversion: 1\n")

    loader = PluginLoader(tmp_path / "data")
    bundle = loader.open_bundle(archive)

    assert isinstance(bundle, ZipResourceBundle)
    assert loader.descriptor_from_bundle(bundle).name == "greeter"


def test_open_bundle_errors(tmp_path: Path) -> None:
    not_zip = tmp_path / "greeter.zip"
    not_zip.write_text("plain text", encoding="utf-8")
    loader = PluginLoader(tmp_path)

    with pytest.raises(DescriptorError) as bad_zip:
        loader.open_bundle(not_zip)
    with pytest.raises(DataIOError) as missing:
        loader.open_bundle(tmp_path / "missing.zip")

    assert isinstance(bad_zip.value.cause, zipfile.BadZipFile)
    assert isinstance(missing.value.cause, OSError)
    assert missing.value.context == {"path": str(tmp_path / "missing.zip")}


def test_discover_lists_zip_and_directory_bundles(tmp_path: Path) -> None:
    bundles_dir = tmp_path / "plugins"
    (bundles_dir / "beta").mkdir(parents=True)
    (bundles_dir / "beta" / "plugin.yml").write_text(
        "name: beta\nversion: 1\n", encoding="utf-8"
    )
    (bundles_dir / "alpha_data").mkdir()
    (bundles_dir / "notes.txt").write_text("ignored", encoding="utf-8")
    with zipfile.ZipFile(bundles_dir / "alpha.zip", "w") as zf:
        zf.writestr("plugin.yml", "name: alpha\nversion: 1\n")

    found = PluginLoader(bundles_dir).discover(bundles_dir)

    assert found == [bundles_dir / "alpha.zip", bundles_dir / "beta"]


def test_discover_missing_folder_is_empty(tmp_path: Path) -> None:
    assert PluginLoader(tmp_path).discover(tmp_path / "absent") == []
