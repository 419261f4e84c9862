"""CLI tests for the modhost command line entry."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from cli.main import cli
from plugins.manager import PluginManager


def _make_bundle(root: Path) -> Path:
    bundle = root / "greeter"
    (bundle / "lang").mkdir(parents=True)
    (bundle / "plugin.yml").write_text(
        "name: greeter\n"
        "version: 1.0\n"
        "description: Says hello\n"
        "depend: [economy]\n"
        "commands:\n"
        "  greet: {}\n",
        encoding="utf-8",
    )
    (bundle / "config.yml").write_text("greeting: hello\nlimit: 5\n", encoding="utf-8")
    (bundle / "lang" / "en.yml").write_text("hi: Hi\n", encoding="utf-8")
    return bundle


def test_cli_help_output() -> None:
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Modhost Plugin Host CLI" in result.output
    assert "init-config" in result.output


def test_cli_version_output() -> None:
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert "modhost, version 0.1.0" in result.output


def test_describe(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)

    result = CliRunner().invoke(cli, ["describe", str(bundle)])

    assert result.exit_code == 0
    assert "name=greeter" in result.output
    assert "version=1.0" in result.output
    assert "depend=economy" in result.output
    assert "command=greet" in result.output


def test_describe_bundle_without_descriptor(tmp_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()

    result = CliRunner().invoke(cli, ["describe", str(empty)])

    assert result.exit_code != 0
    assert "DESCRIPTOR_ERROR" in result.output


def test_resources(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["resources", str(_make_bundle(tmp_path))])

    assert result.exit_code == 0
    assert result.output.split() == ["config.yml", "lang/en.yml", "plugin.yml"]


def test_init_config_is_idempotent(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)
    data_dir = tmp_path / "data"
    runner = CliRunner()

    first = runner.invoke(cli, ["init-config", str(bundle), "-d", str(data_dir)])
    config_file = data_dir / "greeter" / "config.yml"
    config_file.write_text("limit: 9\n", encoding="utf-8")
    second = runner.invoke(cli, ["init-config", str(bundle), "-d", str(data_dir)])

    assert first.exit_code == 0 and "created" in first.output
    assert second.exit_code == 0 and "kept" in second.output
    assert config_file.read_text(encoding="utf-8") == "limit: 9\n"


def test_show_config_layers_file_over_defaults(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)
    data_dir = tmp_path / "data"
    (data_dir / "greeter").mkdir(parents=True)
    (data_dir / "greeter" / "config.yml").write_text("limit: 9\n", encoding="utf-8")

    result = CliRunner().invoke(
        cli, ["show-config", str(bundle), "-d", str(data_dir)]
    )

    assert result.exit_code == 0
    assert "greeting: hello" in result.output
    assert "limit: 9" in result.output


def test_show_config_reports_malformed_file(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)
    data_dir = tmp_path / "data"
    (data_dir / "greeter").mkdir(parents=True)
    (data_dir / "greeter" / "config.yml").write_text("a: [x\n", encoding="utf-8")

    result = CliRunner().invoke(
        cli, ["show-config", str(bundle), "-d", str(data_dir)]
    )

    assert result.exit_code != 0
    assert "CONFIG_PARSE_ERROR" in result.output


def test_extract_resource(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)
    data_dir = tmp_path / "data"
    runner = CliRunner()

    result = runner.invoke(
        cli, ["extract", str(bundle), "lang/en.yml", "-d", str(data_dir)]
    )

    assert result.exit_code == 0
    extracted = data_dir / "greeter" / "lang" / "en.yml"
    assert extracted.read_text(encoding="utf-8") == "hi: Hi\n"


def test_extract_keeps_existing_file_without_replace(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)
    data_dir = tmp_path / "data"
    args = ["extract", str(bundle), "lang/en.yml", "-d", str(data_dir)]
    runner = CliRunner()

    runner.invoke(cli, args)
    extracted = data_dir / "greeter" / "lang" / "en.yml"
    extracted.write_text("hi: Hey\n", encoding="utf-8")
    kept = runner.invoke(cli, args)
    replaced = runner.invoke(cli, [*args, "--replace"])

    assert kept.exit_code == 0
    assert "kept lang/en.yml" in kept.output
    assert "extracted lang/en.yml" in replaced.output
    assert extracted.read_text(encoding="utf-8") == "hi: Hi\n"


def test_extract_unknown_resource_fails(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)

    result = CliRunner().invoke(
        cli, ["extract", str(bundle), "nope.txt", "-d", str(tmp_path / "data")]
    )

    assert result.exit_code != 0
    assert "INVALID_ARGUMENT" in result.output


def test_host_config_sets_data_dir(tmp_path: Path) -> None:
    bundle = _make_bundle(tmp_path)
    host_config = tmp_path / "host.toml"
    host_config.write_text(
        f"[plugins]\ndata_dir = '{(tmp_path / 'var').as_posix()}'\n",
        encoding="utf-8",
    )

    result = CliRunner().invoke(
        cli, ["--config", str(host_config), "init-config", str(bundle)]
    )

    assert result.exit_code == 0
    assert (tmp_path / "var" / "greeter" / "config.yml").is_file()


def _write_bundle(root: Path, name: str, extra: str = "") -> None:
    (root / name).mkdir(parents=True)
    (root / name / "plugin.yml").write_text(
        f"name: {name}\nversion: 1\n{extra}", encoding="utf-8"
    )


def _host_toml(tmp_path: Path, plugins: str, app: str = "") -> Path:
    host_config = tmp_path / "host.toml"
    host_config.write_text(
        f"{app}\n[plugins]\n"
        f"bundles_dir = '{(tmp_path / 'bundles').as_posix()}'\n"
        f"data_dir = '{(tmp_path / 'data').as_posix()}'\n"
        f"{plugins}",
        encoding="utf-8",
    )
    return host_config


def test_check_runs_bundles_in_dependency_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    bundles = tmp_path / "bundles"
    _write_bundle(bundles, "alpha")
    _write_bundle(bundles, "beta", "depend: [alpha]\n")
    _write_bundle(bundles, "gamma")
    host_config = _host_toml(tmp_path, "load_workers = 3\ndisabled = ['gamma']\n")

    seen_workers: list[int] = []
    original = PluginManager.load_plugins

    def recording_load(self: PluginManager, max_workers: int = 1) -> list[str]:
        seen_workers.append(max_workers)
        return original(self, max_workers=max_workers)

    monkeypatch.setattr(PluginManager, "load_plugins", recording_load)

    result = CliRunner().invoke(cli, ["--config", str(host_config), "check"])

    assert result.exit_code == 0
    lines = [line for line in result.output.splitlines() if " " in line]
    assert "skipped gamma" in lines
    assert lines.index("enabled alpha") < lines.index("enabled beta")
    assert "enabled gamma" not in result.output
    assert seen_workers == [3]


def test_check_reports_failures(tmp_path: Path) -> None:
    bundles = tmp_path / "bundles"
    _write_bundle(bundles, "alpha")
    _write_bundle(bundles, "orphan", "depend: [missing]\n")
    (bundles / "broken.zip").write_text("not an archive", encoding="utf-8")
    host_config = _host_toml(tmp_path, "")

    result = CliRunner().invoke(cli, ["--config", str(host_config), "check"])

    assert result.exit_code != 0
    assert "enabled alpha" in result.output
    assert "failed orphan: [LIFECYCLE_ERROR]" in result.output
    assert "failed broken.zip: [DESCRIPTOR_ERROR]" in result.output
    assert "2 plugin(s) failed" in result.output


def test_check_without_bundles_folder(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli, ["--config", str(_host_toml(tmp_path, "")), "check"]
    )

    assert result.exit_code == 0


def test_app_debug_lowers_log_level(tmp_path: Path) -> None:
    host_config = _host_toml(tmp_path, "", app="[app]\ndebug = true\n")

    result = CliRunner().invoke(cli, ["--config", str(host_config), "check"])

    assert result.exit_code == 0
    assert logging.getLogger().level == logging.DEBUG
