"""Tests for DockerPublisher."""

import subprocess
import pytest
from unittest.mock import patch, MagicMock
from fleetshift.domain.errors import PublishError
from fleetshift.domain.value_objects.artifact_reference import ArtifactReference
from fleetshift.infrastructure.adapters.docker_publisher import DockerPublisher


ARTIFACT = ArtifactReference("acme/starttech-backend", "3f2a9c1")


def _ok():
    result = MagicMock()
    result.returncode = 0
    result.stdout = ""
    return result


def _commands(mock_run):
    return [c.args[0] for c in mock_run.call_args_list]


class TestDockerPublisher:
    @pytest.mark.asyncio
    async def test_publish_builds_and_pushes_all_tags(self):
        publisher = DockerPublisher(username="acme", password="s3cret", scan_enabled=False)

        with patch("subprocess.run", return_value=_ok()) as mock_run:
            result = await publisher.publish(
                ARTIFACT, extra_tags=("latest",), build_args={"GIT_COMMIT": "3f2a9c1"}
            )

        assert result == ARTIFACT
        commands = _commands(mock_run)
        assert commands[0][:2] == ["docker", "login"]
        assert mock_run.call_args_list[0].kwargs["input"] == "s3cret"
        build = commands[1]
        assert build[:2] == ["docker", "build"]
        assert "acme/starttech-backend:3f2a9c1" in build
        assert "acme/starttech-backend:latest" in build
        assert "GIT_COMMIT=3f2a9c1" in build
        assert commands[2:] == [
            ["docker", "push", "acme/starttech-backend:3f2a9c1"],
            ["docker", "push", "acme/starttech-backend:latest"],
        ]

    @pytest.mark.asyncio
    async def test_no_password_skips_login(self):
        publisher = DockerPublisher(username="acme", scan_enabled=False)
        with patch("subprocess.run", return_value=_ok()) as mock_run:
            await publisher.publish(ARTIFACT)
        assert all(cmd[1] != "login" for cmd in _commands(mock_run))

    @pytest.mark.asyncio
    async def test_duplicate_extra_tag_not_pushed_twice(self):
        publisher = DockerPublisher(username="acme", scan_enabled=False)
        with patch("subprocess.run", return_value=_ok()) as mock_run:
            await publisher.publish(ARTIFACT, extra_tags=("3f2a9c1",))
        pushes = [cmd for cmd in _commands(mock_run) if cmd[1] == "push"]
        assert len(pushes) == 1

    @pytest.mark.asyncio
    async def test_build_failure_raises_publish_error(self):
        publisher = DockerPublisher(username="acme", scan_enabled=False)
        with patch(
            "subprocess.run",
            side_effect=subprocess.CalledProcessError(1, "docker", stderr="no Dockerfile"),
        ):
            with pytest.raises(PublishError, match="no Dockerfile") as exc_info:
                await publisher.publish(ARTIFACT)
        assert exc_info.value.phase == "Publishing"

    @pytest.mark.asyncio
    async def test_docker_missing(self):
        publisher = DockerPublisher(username="acme", scan_enabled=False)
        with patch("subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(PublishError, match="not found on PATH"):
                await publisher.publish(ARTIFACT)


class TestVulnerabilityScan:
    @pytest.mark.asyncio
    async def test_scanner_missing_is_skipped(self):
        publisher = DockerPublisher(username="acme")
        with patch("shutil.which", return_value=None), \
                patch("subprocess.run", return_value=_ok()) as mock_run:
            await publisher.publish(ARTIFACT)
        assert all(cmd[0] != "trivy" for cmd in _commands(mock_run))

    @pytest.mark.asyncio
    async def test_scan_runs_before_push(self):
        publisher = DockerPublisher(username="acme", scan_severity="CRITICAL")
        with patch("shutil.which", return_value="/usr/bin/trivy"), \
                patch("subprocess.run", return_value=_ok()) as mock_run:
            await publisher.publish(ARTIFACT)
        tools = [(cmd[0], cmd[1]) for cmd in _commands(mock_run)]
        assert tools == [("docker", "build"), ("trivy", "image"), ("docker", "push")]
        assert "CRITICAL" in _commands(mock_run)[1]

    @pytest.mark.asyncio
    async def test_failing_scan_aborts_before_push(self):
        publisher = DockerPublisher(username="acme")

        def run(args, **kwargs):
            if args[0] == "trivy":
                raise subprocess.CalledProcessError(1, "trivy", stderr="2 CRITICAL")
            return _ok()

        with patch("shutil.which", return_value="/usr/bin/trivy"), \
                patch("subprocess.run", side_effect=run) as mock_run:
            with pytest.raises(PublishError, match="Vulnerability scan rejected"):
                await publisher.publish(ARTIFACT)
        assert all(cmd[1] != "push" for cmd in _commands(mock_run))
