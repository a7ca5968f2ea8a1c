"""Tests for argument parsing, option resolution and the abort path of the CLI."""

from __future__ import annotations

import json
import subprocess
from typing import Any

import pytest

import cli
from commands import ssm as ssm_module
from commands.context import CommandOptions
from commands.gci import GciCommand
from contracts.errors import AuthenticationError, ServiceError
from infra.config import Settings
from tests.aws_mocks import FakeEc2Client, FakeStsClient, instance_payload, make_clients, make_ctx


def _settings(**env: str) -> Settings:
    return Settings.from_env(env=env, env_file=".missing.env")


def _patch_context(monkeypatch: Any, **client_kwargs: Any) -> list[CommandOptions]:
    """Route cli.build_context to fake clients; returns the options it saw."""
    seen: list[CommandOptions] = []

    def _build(settings: Settings, options: CommandOptions) -> Any:
        seen.append(options)
        opts = {"output": options.output, "wide": options.wide, "show_unused": options.show_unused}
        return make_ctx(make_clients(region=options.region, **client_kwargs), **opts)

    monkeypatch.setattr(cli, "build_context", _build)
    monkeypatch.setattr(cli, "get_settings", lambda: _settings())
    return seen


def test_parser_accepts_global_flags_and_subcommands() -> None:
    args = cli.build_parser().parse_args(["--region", "eu-west-3", "--wide", "--output", "json", "res", "--show-unused"])

    assert args.region == "eu-west-3"
    assert args.wide is True
    assert args.output == "json"
    assert args.cmd == "res"
    assert args.show_unused is True


def test_parser_requires_a_subcommand() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args([])


def test_version_flag(capsys: Any) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.build_parser().parse_args(["--version"])
    assert excinfo.value.code == 0
    assert "ri-reconciler" in capsys.readouterr().out


def test_flags_override_settings() -> None:
    settings = _settings(AWS_REGION="us-west-2", RIRECON_OUTPUT="json", RIRECON_WIDE="1")

    defaults = cli.resolve_options(cli.build_parser().parse_args(["ec2"]), settings)
    assert defaults == CommandOptions(region="us-west-2", output="json", wide=True)

    explicit = cli.resolve_options(
        cli.build_parser().parse_args(["--region", "eu-west-1", "--output", "tabular", "ec2"]), settings
    )
    assert explicit.region == "eu-west-1"
    assert explicit.output == "tabular"


def test_main_prints_report_to_stdout(monkeypatch: Any, capsys: Any) -> None:
    _patch_context(monkeypatch, ec2=FakeEc2Client(instances=[instance_payload("i-1", name="web")]))

    code = cli.main(["--output", "json", "ec2"])

    out = capsys.readouterr().out
    assert code == cli.EXIT_OK
    payload = json.loads(out)
    assert payload["matrices"][0]["rows"][0]["Instance ID"] == "i-1"


def test_main_aborts_without_partial_report(monkeypatch: Any, capsys: Any) -> None:
    _patch_context(monkeypatch, sts=FakeStsClient(raise_on="get_caller_identity"))

    code = cli.main(["res"])

    captured = capsys.readouterr()
    assert code == cli.EXIT_ABORT
    assert captured.out == ""
    assert "*** ABORT ***" in captured.err
    assert "credentials" in captured.err


def test_ssm_delegates_to_the_aws_cli(monkeypatch: Any) -> None:
    calls: list[list[str]] = []

    def _run(cmd: list[str], check: bool) -> subprocess.CompletedProcess:
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0)

    sts = FakeStsClient()
    seen = _patch_context(monkeypatch, sts=sts)
    monkeypatch.setattr(ssm_module.shutil, "which", lambda _name: "/usr/bin/aws")
    monkeypatch.setattr(ssm_module.subprocess, "run", _run)

    code = cli.main(["--region", "eu-west-1", "ssm", "i-0abc"])

    assert code == cli.EXIT_OK
    assert calls == [["aws", "ssm", "start-session", "--target", "i-0abc", "--region", "eu-west-1"]]
    assert seen[0].region == "eu-west-1"
    assert sts.count("get_caller_identity") == 1


def test_ssm_failure_is_a_service_error(monkeypatch: Any) -> None:
    def _run(cmd: list[str], check: bool) -> subprocess.CompletedProcess:
        raise subprocess.CalledProcessError(255, cmd)

    monkeypatch.setattr(ssm_module.shutil, "which", lambda _name: "/usr/bin/aws")
    monkeypatch.setattr(ssm_module.subprocess, "run", _run)

    with pytest.raises(ServiceError, match="status 255"):
        ssm_module.SsmCommand(instance_id="i-0abc").execute(make_ctx(make_clients()))


def test_ssm_requires_the_aws_cli(monkeypatch: Any) -> None:
    monkeypatch.setattr(ssm_module.shutil, "which", lambda _name: None)

    with pytest.raises(ServiceError, match="not installed"):
        ssm_module.SsmCommand(instance_id="i-0abc").execute(make_ctx(make_clients()))


def test_gci_reports_the_caller_identity() -> None:
    report = GciCommand().execute(make_ctx(make_clients()))

    (matrix,) = report.matrices
    assert matrix.rows == [["123456789012", "arn:aws:iam::123456789012:user/alice", "AIDAEXAMPLE"]]


def test_gci_without_identity_is_an_authentication_error() -> None:
    with pytest.raises(AuthenticationError, match="caller identity"):
        GciCommand().run(make_ctx(make_clients()), None)
