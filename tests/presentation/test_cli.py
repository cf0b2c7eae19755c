"""Tests for CLI module."""

import base64
import json
import pytest
from unittest.mock import patch, AsyncMock, MagicMock

from fleetshift.application.dtos.rollout_dtos import PipelineState, RolloutResult
from fleetshift.domain.entities.deployment import (
    DeploymentOutcome,
    DeploymentRecord,
    SourceRevision,
)
from fleetshift.domain.errors import ConfigurationError, PublishError, RefreshTimeout
from fleetshift.infrastructure.repositories.sqlite_repository import SQLiteDeploymentRepository
from fleetshift.presentation.cli.cli import async_main, main


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "fleetshift.json"
    path.write_text(json.dumps({
        "environment": "staging",
        "operator": "deployer@build-01",
        "artifact": {"username": "acme"},
        "fleet": {"group_name": "starttech-backend-asg"},
        "health": {"endpoint": "backend-alb.example.com"},
        "record": {"db_path": str(tmp_path / "records.db")},
    }))
    return str(path)


@pytest.fixture(autouse=True)
def clean_env():
    with patch.dict("os.environ", {}, clear=True):
        yield


def _make_container(result):
    """Create a mock container whose deploy returns the given result."""
    container = MagicMock()
    container.telemetry.initialize = AsyncMock()
    container.telemetry.shutdown = AsyncMock()
    container.deploy_backend.execute = AsyncMock(return_value=result)
    container.source_control.revision = AsyncMock(
        return_value=SourceRevision("3f2a9c1", "main")
    )
    return container


def _done(**kwargs):
    return RolloutResult(
        final_state=PipelineState.DONE,
        outcome=kwargs.pop("outcome", DeploymentOutcome.SUCCESS),
        **kwargs,
    )


class TestCLIHelp:
    @pytest.mark.asyncio
    async def test_no_command_prints_help(self, capsys):
        with patch("sys.argv", ["fleetshift"]):
            assert await async_main() == 0
        assert "rolling deployments" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_help_flag(self):
        with patch("sys.argv", ["fleetshift", "--help"]), \
             pytest.raises(SystemExit, match="0"):
            await async_main()

    @pytest.mark.asyncio
    async def test_deploy_help(self):
        with patch("sys.argv", ["fleetshift", "deploy", "--help"]), \
             pytest.raises(SystemExit, match="0"):
            await async_main()

    @pytest.mark.asyncio
    async def test_bad_health_policy_rejected_by_parser(self):
        with patch("sys.argv", ["fleetshift", "deploy", "--health-policy", "retry"]), \
             pytest.raises(SystemExit, match="2"):
            await async_main()


class TestDeployCommand:
    @pytest.mark.asyncio
    async def test_success_exit_zero(self, config_file, capsys):
        container = _make_container(_done())
        with patch("sys.argv", ["fleetshift", "deploy", "-c", config_file]), \
             patch("fleetshift.composition_root.create_container", return_value=container):
            code = await async_main()

        assert code == 0
        out = capsys.readouterr().out
        assert "[+] Deployment finished (Success)" in out
        container.telemetry.initialize.assert_awaited_once()
        container.telemetry.shutdown.assert_awaited_once()
        container.repository.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_warnings_exit_three(self, config_file, capsys):
        result = _done(
            outcome=DeploymentOutcome.TIMED_OUT,
            warnings=[RefreshTimeout("refresh r-1 still InProgress after 600s")],
        )
        container = _make_container(result)
        with patch("sys.argv", ["fleetshift", "deploy", "-c", config_file]), \
             patch("fleetshift.composition_root.create_container", return_value=container):
            code = await async_main()

        assert code == 3
        assert "[!] [RefreshWaiting] refresh r-1" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_abort_exit_one(self, config_file, capsys):
        result = RolloutResult(
            final_state=PipelineState.ABORTED, error=PublishError("push denied")
        )
        container = _make_container(result)
        with patch("sys.argv", ["fleetshift", "deploy", "-c", config_file]), \
             patch("fleetshift.composition_root.create_container", return_value=container):
            code = await async_main()

        assert code == 1
        assert "[-] Deployment Failed: [Publishing] push denied" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_configuration_error_exit_two(self, config_file):
        result = RolloutResult(
            final_state=PipelineState.ABORTED,
            error=ConfigurationError("fleet.group_name is required"),
        )
        container = _make_container(result)
        with patch("sys.argv", ["fleetshift", "deploy", "-c", config_file]), \
             patch("fleetshift.composition_root.create_container", return_value=container):
            assert await async_main() == 2

    @pytest.mark.asyncio
    async def test_skipped_environment_builds_nothing(self, config_file, capsys):
        with patch("sys.argv", ["fleetshift", "deploy", "-c", config_file, "-e", "dev"]), \
             patch("fleetshift.composition_root.create_container") as factory:
            code = await async_main()

        assert code == 0
        factory.assert_not_called()
        out = capsys.readouterr().out
        assert "not deployable" in out
        assert "Deploying to" not in out

    @pytest.mark.asyncio
    async def test_skipped_environment_ignores_telemetry_endpoint(self, tmp_path):
        path = tmp_path / "fleetshift.json"
        path.write_text(json.dumps({
            "environment": "development",
            "telemetry": {"endpoint": "http://collector.example.com:4317"},
            "record": {"db_path": str(tmp_path / "records.db")},
        }))
        with patch("sys.argv", ["fleetshift", "deploy", "-c", str(path)]):
            assert await async_main() == 0
        assert not (tmp_path / "records.db").exists()

    @pytest.mark.asyncio
    async def test_flags_override_config(self, config_file):
        container = _make_container(_done())
        argv = [
            "fleetshift", "deploy", "-c", config_file,
            "--fleet", "other-asg", "--tag", "4b1d2e0",
            "--skip-publish", "--health-policy", "fail-closed",
        ]
        with patch("sys.argv", argv), \
             patch("fleetshift.composition_root.create_container", return_value=container) as factory:
            await async_main()

        config = factory.call_args.args[0]
        assert config.fleet.group_name == "other-asg"
        assert config.artifact.skip_publish is True
        assert config.health.policy == "fail-closed"
        assert container.deploy_backend.execute.call_args.kwargs["tag"] == "4b1d2e0"

    @pytest.mark.asyncio
    async def test_unexpected_error_exit_one(self, config_file, capsys):
        with patch("sys.argv", ["fleetshift", "deploy", "-c", config_file]), \
             patch("fleetshift.composition_root.create_container", side_effect=RuntimeError("boom")):
            assert await async_main() == 1
        assert "deploy failed: boom" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_bad_config_value_exit_two(self, config_file, capsys):
        with patch.dict("os.environ", {"FLEETSHIFT_HEALTH_MAX_ATTEMPTS": "many"}), \
             patch("sys.argv", ["fleetshift", "deploy", "-c", config_file]):
            assert await async_main() == 2
        assert "[-] Configuration error" in capsys.readouterr().out


class TestHistoryCommand:
    def _seed(self, tmp_path):
        repo = SQLiteDeploymentRepository(str(tmp_path / "records.db"))
        for day, artifact in (("01", "acme/api:a1"), ("02", "acme/api:b2")):
            when = f"2026-03-{day}T10:00:00+00:00"
            repo.save(DeploymentRecord(
                artifact=artifact,
                environment="staging",
                fleet_id="starttech-backend-asg",
                outcome=DeploymentOutcome.SUCCESS,
                operator="deployer@build-01",
                git_commit=artifact[-2:],
                git_branch="main",
                started_at=when,
                finished_at=when,
                deployment_time=when,
            ))
        repo.close()

    @pytest.mark.asyncio
    async def test_latest(self, config_file, tmp_path, capsys):
        self._seed(tmp_path)
        with patch("sys.argv", ["fleetshift", "history", "-c", config_file]):
            assert await async_main() == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert "acme/api:b2" in lines[0]
        assert "acme/api:a1" in lines[1]

    @pytest.mark.asyncio
    async def test_by_artifact(self, config_file, tmp_path, capsys):
        self._seed(tmp_path)
        with patch("sys.argv", ["fleetshift", "history", "-c", config_file, "-a", "acme/api:a1"]):
            assert await async_main() == 0
        out = capsys.readouterr().out
        assert "acme/api:a1" in out
        assert "acme/api:b2" not in out

    @pytest.mark.asyncio
    async def test_since(self, config_file, tmp_path, capsys):
        self._seed(tmp_path)
        argv = ["fleetshift", "history", "-c", config_file, "--since", "2026-03-02T00:00:00+00:00"]
        with patch("sys.argv", argv):
            assert await async_main() == 0
        out = capsys.readouterr().out
        assert "acme/api:b2" in out
        assert "acme/api:a1" not in out

    @pytest.mark.asyncio
    async def test_empty(self, config_file, capsys):
        with patch("sys.argv", ["fleetshift", "history", "-c", config_file]):
            assert await async_main() == 0
        assert "No deployments recorded" in capsys.readouterr().out


class TestTemplateCommand:
    @pytest.mark.asyncio
    async def test_renders_script(self, config_file, capsys):
        container = _make_container(None)
        argv = ["fleetshift", "template", "-c", config_file, "--tag", "4b1d2e0"]
        with patch("sys.argv", argv), \
             patch("fleetshift.composition_root.create_container", return_value=container):
            assert await async_main() == 0

        script = capsys.readouterr().out
        assert script.startswith("#!/bin/bash")
        assert "docker pull acme/starttech-backend:4b1d2e0" in script
        assert "-e ENVIRONMENT=staging" in script

    @pytest.mark.asyncio
    async def test_encoded(self, config_file, capsys):
        container = _make_container(None)
        argv = ["fleetshift", "template", "-c", config_file, "--tag", "4b1d2e0", "--encoded"]
        with patch("sys.argv", argv), \
             patch("fleetshift.composition_root.create_container", return_value=container):
            assert await async_main() == 0

        decoded = base64.b64decode(capsys.readouterr().out.strip()).decode("utf-8")
        assert "docker pull acme/starttech-backend:4b1d2e0" in decoded

    @pytest.mark.asyncio
    async def test_unsupported_environment(self, config_file, capsys):
        with patch("sys.argv", ["fleetshift", "template", "-c", config_file, "-e", "dev"]):
            assert await async_main() == 2
        assert "Unsupported environment" in capsys.readouterr().out


class TestMain:
    def test_nonzero_exit_code(self):
        with patch("fleetshift.presentation.cli.cli.async_main", new=AsyncMock(return_value=3)), \
             pytest.raises(SystemExit, match="3"):
            main()

    def test_zero_does_not_exit(self):
        with patch("fleetshift.presentation.cli.cli.async_main", new=AsyncMock(return_value=0)):
            main()
