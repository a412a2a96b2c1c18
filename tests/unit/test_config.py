from __future__ import annotations

import json
from argparse import Namespace
from pathlib import Path

import pytest

from fuzzrun.config import (
    DEFAULT_IMAGE,
    LaunchSpec,
    build_cli_config,
    build_launch_spec,
    deep_merge,
    load_config,
    resolve_base_dir,
)
from fuzzrun.exceptions import ValidationError
from fuzzrun.seed import SERVER_CONFIG_NAME, default_server_config, seed_config_dir


def _spec(base: Path, environ=None, **cli) -> LaunchSpec:
    cfg = load_config(base, cli, environ=environ or {})
    return build_launch_spec(cfg, base)


def test_defaults_map_sibling_dirs_and_fixed_ports(tmp_path: Path) -> None:
    spec = _spec(tmp_path)

    assert spec.host_config_dir == (tmp_path / "config").resolve()
    assert spec.host_report_dir == (tmp_path / "reports").resolve()
    assert spec.container_config_dir == "/config"
    assert spec.container_report_dir == "/reports"
    assert spec.published_port == spec.container_port == 9001
    assert spec.image == DEFAULT_IMAGE
    assert spec.instance_name == "fuzzingserver"
    assert spec.port_binding == {"9001/tcp": ("0.0.0.0", 9001)}


def test_resolve_base_dir_uses_launcher_location(tmp_path: Path) -> None:
    launcher = tmp_path / "autobahn" / "run.py"
    launcher.parent.mkdir()
    launcher.write_text("# launcher\n", encoding="utf-8")

    assert resolve_base_dir(launcher) == launcher.parent.resolve()
    assert resolve_base_dir(launcher.parent) == launcher.parent.resolve()


def test_resolution_is_independent_of_working_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    launcher = tmp_path / "autobahn" / "run.py"
    launcher.parent.mkdir()
    launcher.write_text("", encoding="utf-8")
    elsewhere = tmp_path / "somewhere" / "else"
    elsewhere.mkdir(parents=True)

    monkeypatch.chdir(launcher.parent)
    from_home = _spec(resolve_base_dir(launcher))
    monkeypatch.chdir(elsewhere)
    from_elsewhere = _spec(resolve_base_dir(str(launcher)))

    assert from_home.host_config_dir == from_elsewhere.host_config_dir
    assert from_home.host_report_dir == from_elsewhere.host_report_dir


def test_precedence_yaml_then_env_then_cli(tmp_path: Path) -> None:
    (tmp_path / "fuzzrun.yaml").write_text(
        "port: 9100\nimage: from-yaml\ninstance_name: yaml-name\n", encoding="utf-8"
    )
    env = {"FUZZRUN_PORT": "9200", "FUZZRUN_IMAGE": "from-env"}

    spec = _spec(tmp_path, environ=env, port=9300)

    assert spec.published_port == 9300
    assert spec.image == "from-env"
    assert spec.instance_name == "yaml-name"


def test_dotenv_next_to_launcher_is_read(tmp_path: Path) -> None:
    (tmp_path / ".env").write_text(
        "FUZZRUN_NAME=from-dotenv\nFUZZRUN_STOP_TIMEOUT=3\n", encoding="utf-8"
    )

    spec = _spec(tmp_path)

    assert spec.instance_name == "from-dotenv"
    assert spec.stop_timeout == 3


def test_relative_paths_resolve_against_base_dir(tmp_path: Path) -> None:
    (tmp_path / "fuzzrun.yaml").write_text(
        "paths:\n  config_dir: cfg\n  report_dir: /abs/reports\n", encoding="utf-8"
    )

    spec = _spec(tmp_path)

    assert spec.host_config_dir == (tmp_path / "cfg").resolve()
    assert spec.host_report_dir == Path("/abs/reports").resolve()


def test_cli_paths_resolve_against_cwd(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    args = Namespace(config_dir=Path("mine"), report_dir=None, port=None)

    cfg = build_cli_config(args)

    assert cfg["paths"]["config_dir"] == str((tmp_path / "mine").resolve())


@pytest.mark.parametrize("port", [0, 70000, "nope"])
def test_invalid_port_is_rejected(tmp_path: Path, port) -> None:
    with pytest.raises(ValidationError):
        _spec(tmp_path, port=port)


def test_empty_image_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="image"):
        _spec(tmp_path, environ={"FUZZRUN_IMAGE": " "}, image=" ")


def test_explicit_missing_config_file_fails(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="not found"):
        load_config(tmp_path, config_path=tmp_path / "missing.yaml", environ={})


def test_broken_default_config_file_is_ignored(tmp_path: Path) -> None:
    (tmp_path / "fuzzrun.yaml").write_text("port: [unclosed\n", encoding="utf-8")

    assert _spec(tmp_path).published_port == 9001


def test_deep_merge_does_not_mutate_nested_defaults() -> None:
    defaults = {"paths": {"config_dir": "config", "report_dir": "reports"}}
    merged = dict(defaults)

    deep_merge(merged, {"paths": {"config_dir": "other"}})

    assert merged["paths"] == {"config_dir": "other", "report_dir": "reports"}
    assert defaults["paths"]["config_dir"] == "config"


def test_seed_writes_default_server_config_once(tmp_path: Path) -> None:
    spec = LaunchSpec(host_config_dir=tmp_path / "c", host_report_dir=tmp_path / "r")

    assert seed_config_dir(spec) is True
    target = tmp_path / "c" / SERVER_CONFIG_NAME
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data == default_server_config(spec)
    assert data["url"] == "ws://127.0.0.1:9001"
    assert data["outdir"] == "/reports/clients"

    target.write_text("{}", encoding="utf-8")
    assert seed_config_dir(spec) is False
    assert target.read_text(encoding="utf-8") == "{}"
    assert seed_config_dir(spec, force=True) is True
