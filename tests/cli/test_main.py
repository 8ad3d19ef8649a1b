"""Tests for CLI main module."""

import json as _json
import pathlib as _pathlib
import typing as _typing

import click.testing as _click_testing
import pytest as _pytest
import yaml as _yaml

import strata.cli as cli

WriteYaml = _typing.Callable[[_pathlib.Path, _typing.Any], _pathlib.Path]


class TestCLIBasics:
    """Help, version and global options."""

    def test_help_shows_all_commands(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["--help"])

        assert result.exit_code == 0
        assert "Strata" in result.output
        for cmd in ["render", "resolve", "layers", "config"]:
            assert cmd in result.output, f"Command '{cmd}' missing from help"

    def test_version_shows_current_version(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_invalid_config_fails_cleanly(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        write_yaml(isolated_env / ".strata" / "config.yaml", {"output": {"format": "xml"}})

        result = runner.invoke(cli.cli, ["config", "show"])

        assert result.exit_code == 1
        assert "Invalid strata configuration" in result.output

    def test_unknown_layout_placeholder_fails_cleanly(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        values_dir: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        write_yaml(
            isolated_env / ".strata" / "config.yaml",
            {"layout": {"environment": "envs/{environment}/{region}.yaml"}},
        )

        result = runner.invoke(cli.cli, ["render", str(values_dir), "-e", "prod"])

        assert result.exit_code == 1
        assert "Invalid strata configuration" in result.output
        assert "unknown placeholder" in result.output

    def test_verbose_run_does_not_leak_into_next_invocation(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        values_dir: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        base = write_yaml(isolated_env / "base.yaml", {"a": 1})

        verbose = runner.invoke(cli.cli, ["--verbose", "render", str(values_dir), "--json"])
        quiet = runner.invoke(cli.cli, ["resolve", str(base), "--json"])

        assert verbose.exit_code == 0, verbose.output
        assert _json.loads(verbose.stdout)["env"] == "base"
        assert quiet.exit_code == 0, quiet.output
        assert _json.loads(quiet.stdout) == {"a": 1}
        assert quiet.stderr == ""


class TestRender:
    """strata render VALUES_DIR -e ENV -i INSTANCE."""

    def test_base_only(self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["render", str(values_dir)])

        assert result.exit_code == 0, result.output
        assert _yaml.safe_load(result.stdout)["env"] == "base"

    def test_environment_and_instance(
        self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path
    ) -> None:
        result = runner.invoke(cli.cli, ["render", str(values_dir), "-e", "prod", "-i", "eu-1"])

        assert result.exit_code == 0, result.output
        assert _yaml.safe_load(result.stdout) == {
            "env": "prod",
            "replicas": 3,
            "image": {"repository": "registry.example.com/web", "tag": "latest"},
            "db": {"host": "db.internal", "port": 6543},
            "tags": ["z"],
            "region": "eu-west-1",
        }

    def test_output_keeps_key_order(
        self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path
    ) -> None:
        result = runner.invoke(cli.cli, ["render", str(values_dir), "-e", "prod", "-i", "eu-1"])

        assert list(_yaml.safe_load(result.stdout)) == [
            "env",
            "replicas",
            "image",
            "db",
            "tags",
            "region",
        ]

    def test_set_and_values_files(
        self,
        runner: _click_testing.CliRunner,
        values_dir: _pathlib.Path,
        tmp_path: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        extra = write_yaml(tmp_path / "hotfix.yaml", {"replicas": 5, "image": {"tag": "hotfix"}})

        result = runner.invoke(
            cli.cli,
            [
                "render",
                str(values_dir),
                "-e",
                "prod",
                "-f",
                str(extra),
                "--set",
                "image.tag=v2",
            ],
        )

        assert result.exit_code == 0, result.output
        resolved = _yaml.safe_load(result.stdout)
        assert resolved["replicas"] == 5
        assert resolved["image"]["tag"] == "v2"

    def test_json_output(self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["render", str(values_dir), "-e", "dev", "--json"])

        assert result.exit_code == 0, result.output
        assert _json.loads(result.stdout)["debug"] is True

    def test_write_to_file(
        self,
        runner: _click_testing.CliRunner,
        values_dir: _pathlib.Path,
        tmp_path: _pathlib.Path,
    ) -> None:
        target = tmp_path / "out" / "prod.json"

        result = runner.invoke(cli.cli, ["render", str(values_dir), "-e", "prod", "-o", str(target)])

        assert result.exit_code == 0, result.output
        assert "Wrote" in result.output
        assert _json.loads(target.read_text(encoding="utf-8"))["replicas"] == 3

    def test_provenance(self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path) -> None:
        result = runner.invoke(
            cli.cli,
            ["render", str(values_dir), "-e", "prod", "--set", "region=us", "--provenance"],
        )

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        prod_file = values_dir / "environments" / "prod" / "values.yaml"

        assert lines[0] == "# Resolved values with provenance"
        replicas = next(line for line in lines if line.startswith("replicas:"))
        assert replicas.startswith("replicas: 3 ")
        assert replicas.endswith(f"# [environment] {prod_file}:2")
        host = next(line for line in lines if line.startswith("db.host:"))
        assert "[base]" in host
        region = next(line for line in lines if line.startswith("region:"))
        assert region.endswith("# [set]")

    def test_uses_configured_values_dir(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        values_dir: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        write_yaml(
            isolated_env / ".strata" / "config.yaml",
            {"values_dir": str(values_dir), "output": {"format": "json"}},
        )

        result = runner.invoke(cli.cli, ["render", "-e", "prod"])

        assert result.exit_code == 0, result.output
        assert _json.loads(result.stdout)["env"] == "prod"

    def test_missing_environment_fails(
        self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path
    ) -> None:
        result = runner.invoke(cli.cli, ["render", str(values_dir), "-e", "staging"])

        assert result.exit_code == 1
        assert "environment layer not found" in result.output

    def test_instance_without_environment_fails(
        self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path
    ) -> None:
        result = runner.invoke(cli.cli, ["render", str(values_dir), "-i", "eu-1"])

        assert result.exit_code == 1
        assert "requires an environment" in result.output

    def test_bad_set_fails(self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["render", str(values_dir), "--set", "novalue"])

        assert result.exit_code == 1
        assert "expected key=value" in result.output

    def test_verbose_logs_chain(
        self,
        runner: _click_testing.CliRunner,
        values_dir: _pathlib.Path,
        tmp_path: _pathlib.Path,
        caplog: _pytest.LogCaptureFixture,
    ) -> None:
        target = tmp_path / "out.yaml"

        result = runner.invoke(
            cli.cli,
            ["--verbose", "render", str(values_dir), "-e", "prod", "-o", str(target)],
        )

        assert result.exit_code == 0, result.output
        assert "base -> environment" in caplog.text


class TestResolve:
    """strata resolve FILES..."""

    def test_later_files_win(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        base = write_yaml(isolated_env / "base.yaml", {"a": 1, "nested": {"x": 1, "y": 1}})
        override = isolated_env / "override.json"
        override.write_text('{"nested": {"y": 2}}')

        result = runner.invoke(cli.cli, ["resolve", str(base), str(override), "--json"])

        assert result.exit_code == 0, result.output
        assert _json.loads(result.stdout) == {"a": 1, "nested": {"x": 1, "y": 2}}

    def test_provenance_names_files(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        base = write_yaml(isolated_env / "base.yaml", {"a": 1, "b": 1})
        override = write_yaml(isolated_env / "override.yaml", {"b": 2})

        result = runner.invoke(cli.cli, ["resolve", str(base), str(override), "--provenance"])

        assert result.exit_code == 0, result.output
        b_line = next(line for line in result.output.splitlines() if line.startswith("b:"))
        assert b_line.endswith(f"# [{override}] {override}:1")

    def test_json_with_date_keys(
        self, runner: _click_testing.CliRunner, isolated_env: _pathlib.Path
    ) -> None:
        releases = isolated_env / "releases.yaml"
        releases.write_text("2024-01-01: v1\n2024-02-01: v2\n")

        result = runner.invoke(cli.cli, ["resolve", str(releases), "--json"])

        assert result.exit_code == 0, result.output
        assert _json.loads(result.stdout) == {"2024-01-01": "v1", "2024-02-01": "v2"}

    def test_provenance_with_output_file(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        base = write_yaml(isolated_env / "base.yaml", {"a": 1, "b": 1})
        override = write_yaml(isolated_env / "override.yaml", {"b": 2})
        target = isolated_env / "out.yaml"

        result = runner.invoke(
            cli.cli,
            ["resolve", str(base), str(override), "--provenance", "-o", str(target)],
        )

        assert result.exit_code == 0, result.output
        assert _yaml.safe_load(target.read_text(encoding="utf-8")) == {"a": 1, "b": 2}
        assert result.stdout.startswith("# Resolved values with provenance")
        assert "Wrote" in result.stderr

    def test_provenance_and_json_need_output_file(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        base = write_yaml(isolated_env / "base.yaml", {"a": 1})

        result = runner.invoke(cli.cli, ["resolve", str(base), "--provenance", "--json"])

        assert result.exit_code == 2
        assert "add -o FILE" in result.output

    def test_missing_file_fails(
        self, runner: _click_testing.CliRunner, isolated_env: _pathlib.Path
    ) -> None:
        result = runner.invoke(cli.cli, ["resolve", str(isolated_env / "nope.yaml")])

        assert result.exit_code == 1
        assert "layer not found" in result.output

    def test_requires_files(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["resolve"])

        assert result.exit_code == 2

    def test_plain_output_without_tty(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        base = write_yaml(isolated_env / "base.yaml", {"a": 1})

        result = runner.invoke(cli.cli, ["resolve", str(base)])

        assert result.stdout == "a: 1\n"

    def test_forced_color(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
    ) -> None:
        base = write_yaml(isolated_env / "base.yaml", {"a": 1})

        result = runner.invoke(cli.cli, ["resolve", str(base), "--color"])

        assert result.exit_code == 0, result.output
        assert "\x1b[" in result.output


class TestLayers:
    """strata layers VALUES_DIR."""

    def test_all_present(self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["layers", str(values_dir), "-e", "prod", "-i", "eu-1"])

        assert result.exit_code == 0
        assert "✓ base:" in result.output
        assert "✓ environment:" in result.output
        assert "✓ instance:" in result.output

    def test_missing_layer_exits_nonzero(
        self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path
    ) -> None:
        result = runner.invoke(cli.cli, ["layers", str(values_dir), "-e", "staging"])

        assert result.exit_code == 1
        assert "✗ environment:" in result.output

    def test_json(self, runner: _click_testing.CliRunner, values_dir: _pathlib.Path) -> None:
        result = runner.invoke(cli.cli, ["layers", str(values_dir), "-e", "dev", "--json"])

        assert result.exit_code == 0
        data = _json.loads(result.stdout)
        assert [entry["name"] for entry in data] == ["base", "environment"]
        assert all(entry["exists"] for entry in data)


class TestConfigCommands:
    """strata config show / path."""

    def test_config_show_outputs_yaml(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["config", "show"])

        assert result.exit_code == 0
        for section in ["layout:", "output:", "logging:"]:
            assert section in result.output

    def test_config_show_json(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["config", "show", "--json"])

        assert result.exit_code == 0
        data = _json.loads(result.stdout)
        assert data["output"] == {"format": "yaml", "indent": 2}

    def test_config_show_section_filters_output(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["config", "show", "--section", "output"])

        assert result.exit_code == 0
        assert "output:" in result.output
        assert "layout:" not in result.output

    def test_config_show_invalid_section_fails(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["config", "show", "--section", "nonexistent"])

        assert result.exit_code != 0
        assert "Unknown section" in result.output

    def test_config_show_provenance(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        monkeypatch: _pytest.MonkeyPatch,
        write_yaml: WriteYaml,
    ) -> None:
        write_yaml(isolated_env / ".strata" / "config.yaml", {"output": {"indent": 4}})
        monkeypatch.setenv("STRATA_VALUES_DIR", "deploy")

        result = runner.invoke(cli.cli, ["config", "show", "--provenance"])

        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()

        def line_for(path: str) -> str:
            return next(line for line in lines if line.startswith(f"{path}:"))

        indent = line_for("output.indent")
        assert indent.startswith("output.indent: 4 ")
        assert "[project]" in indent
        assert indent.endswith("config.yaml:2")
        assert "[built-in]" in line_for("output.format")
        assert line_for("values_dir").endswith("# [runtime]")

    def test_config_show_warns_about_unknown_keys(
        self,
        runner: _click_testing.CliRunner,
        isolated_env: _pathlib.Path,
        write_yaml: WriteYaml,
        caplog: _pytest.LogCaptureFixture,
    ) -> None:
        write_yaml(isolated_env / ".strata" / "config.yaml", {"output": {"indnet": 4}})

        result = runner.invoke(cli.cli, ["config", "show", "--json"])

        assert result.exit_code == 0
        assert "output.indnet" in caplog.text

    def test_config_path_shows_existing(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["config", "path"])

        assert result.exit_code == 0
        assert "Built-in defaults" in result.output
        assert "User config" not in result.output

    def test_config_path_all(self, runner: _click_testing.CliRunner) -> None:
        result = runner.invoke(cli.cli, ["config", "path", "--all"])

        assert result.exit_code == 0
        for name in ["Built-in defaults", "User config", "Project config"]:
            assert name in result.output
