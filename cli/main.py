"""Command line interface for the modhost plugin host."""

from __future__ import annotations

from pathlib import Path

import click
import yaml

from core.config import ConfigManager, HostConfig
from core.exceptions import HostError
from core.logger import setup_logging
from core.services import HostServices
from plugins.base import Plugin
from plugins.configuration import ConfigStore
from plugins.datadir import DataDirectory
from plugins.descriptor import ModuleDescriptor
from plugins.loader import PluginLoader
from plugins.manager import PluginManager
from plugins.resources import ResourceBundle


@click.group()
@click.version_option(version="0.1.0", prog_name="modhost")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Host config file (TOML)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """Modhost Plugin Host CLI"""
    manager = ConfigManager()
    try:
        if config_path:
            host_config = manager.load(config_path)
        else:
            host_config = manager.from_dict({})
    except HostError as exc:
        raise click.ClickException(str(exc)) from exc
    logging_settings = host_config.logging.model_dump(exclude_none=True)
    if host_config.app.debug:
        logging_settings["level"] = "DEBUG"
    setup_logging(logging_settings)
    ctx.obj = host_config


def _open(bundle_path: str) -> tuple[ResourceBundle, ModuleDescriptor]:
    try:
        bundle = PluginLoader(".").open_bundle(bundle_path)
        return bundle, ModuleDescriptor.from_bundle(bundle)
    except HostError as exc:
        raise click.ClickException(str(exc)) from exc


def _store(
    host_config: HostConfig, data_dir: str | None, bundle_path: str
) -> ConfigStore:
    bundle, descriptor = _open(bundle_path)
    parent = Path(data_dir) if data_dir else host_config.plugins.data_dir
    return ConfigStore(DataDirectory(parent / descriptor.name), bundle)


_bundle_argument = click.argument("bundle", type=click.Path(exists=True))
_data_dir_option = click.option(
    "--data-dir",
    "-d",
    type=click.Path(file_okay=False),
    help="Parent of plugin data directories (defaults to host config)",
)


@cli.command()
@_bundle_argument
def describe(bundle: str) -> None:
    """Show the plugin.yml descriptor of a bundle"""
    _, descriptor = _open(bundle)
    click.echo(f"name={descriptor.name}")
    click.echo(f"version={descriptor.version}")
    if descriptor.description:
        click.echo(f"description={descriptor.description}")
    if descriptor.authors:
        click.echo(f"authors={', '.join(descriptor.authors)}")
    if descriptor.depend:
        click.echo(f"depend={', '.join(descriptor.depend)}")
    for name in descriptor.commands:
        click.echo(f"command={name}")


@cli.command()
@_bundle_argument
def resources(bundle: str) -> None:
    """List resources packaged in a bundle"""
    opened, _ = _open(bundle)
    for key in opened.list_resources():
        click.echo(key)


@cli.command("init-config")
@_bundle_argument
@_data_dir_option
@click.pass_obj
def init_config(host_config: HostConfig, bundle: str, data_dir: str | None) -> None:
    """Write the embedded default config.yml if none exists"""
    store = _store(host_config, data_dir, bundle)
    existed = store.config_path.exists()
    try:
        store.save_default_config()
    except HostError as exc:
        raise click.ClickException(str(exc)) from exc
    state = "kept" if existed else "created"
    click.echo(f"{state} {store.config_path}")


@cli.command()
@_bundle_argument
@click.argument("resource")
@_data_dir_option
@click.option("--replace", is_flag=True, help="Overwrite an existing file")
@click.pass_obj
def extract(
    host_config: HostConfig,
    bundle: str,
    resource: str,
    data_dir: str | None,
    replace: bool,
) -> None:
    """Copy an embedded resource into the plugin data directory"""
    store = _store(host_config, data_dir, bundle)
    try:
        written = store.save_resource(resource, replace)
    except HostError as exc:
        raise click.ClickException(str(exc)) from exc
    state = "extracted" if written else "kept"
    click.echo(f"{state} {resource}")


@cli.command("show-config")
@_bundle_argument
@_data_dir_option
@click.pass_obj
def show_config(host_config: HostConfig, bundle: str, data_dir: str | None) -> None:
    """Print the effective configuration (file layered over defaults)"""
    store = _store(host_config, data_dir, bundle)
    try:
        document = store.get_config()
    except HostError as exc:
        raise click.ClickException(str(exc)) from exc
    merged = document.to_dict()
    if merged:
        click.echo(yaml.safe_dump(merged, default_flow_style=False, sort_keys=False))


@cli.command()
@click.pass_obj
def check(host_config: HostConfig) -> None:
    """Load and enable every bundle in the bundles folder, then shut down"""
    settings = host_config.plugins
    loader = PluginLoader(settings.data_dir)
    services = HostServices(server=host_config, loader=loader)
    manager = PluginManager()
    problems: dict[str, Exception] = {}

    try:
        bundle_paths = loader.discover(settings.bundles_dir)
    except HostError as exc:
        raise click.ClickException(str(exc)) from exc

    for path in bundle_paths:
        try:
            bundle = loader.open_bundle(path)
            descriptor = loader.descriptor_from_bundle(bundle)
            if descriptor.name in settings.disabled:
                click.echo(f"skipped {descriptor.name}")
                continue
            manager.register(loader.create_plugin(Plugin, bundle, services))
        except HostError as exc:
            problems[path.name] = exc

    manager.load_plugins(max_workers=settings.load_workers)
    for name in manager.enable_plugins():
        click.echo(f"enabled {name}")
    manager.discard_plugins()

    problems.update(manager.failures)
    for name, error in problems.items():
        click.echo(f"failed {name}: {error}")
    if problems:
        raise click.ClickException(f"{len(problems)} plugin(s) failed")


if __name__ == "__main__":
    cli()
