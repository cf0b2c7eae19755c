"""
Docker Publisher Adapter

Architectural Intent:
- Infrastructure adapter implementing ArtifactPublisherPort
- Logs in, builds, scans and pushes the service image with the docker CLI
- Uses subprocess for CLI operations wrapped in async

Design Decisions:
- The immutable artifact tag and any convenience tags are built in one
  docker build so they always point at the same image
- Vulnerability scanning runs trivy when it is on PATH; a missing scanner
  is logged and skipped, a failing scan aborts the publish
- Any CLI failure is raised as PublishError carrying the command's stderr
"""

import asyncio
import logging
import shutil
import subprocess
from typing import Optional

from fleetshift.domain.errors import PublishError
from fleetshift.domain.ports.artifact_publisher_port import ArtifactPublisherPort
from fleetshift.domain.value_objects.artifact_reference import ArtifactReference

logger = logging.getLogger(__name__)


class DockerPublisher(ArtifactPublisherPort):
    def __init__(
        self,
        username: str,
        password: str = "",
        registry: str = "docker.io",
        dockerfile: str = "./Server/Dockerfile",
        build_context: str = "./Server",
        scan_enabled: bool = True,
        scan_severity: str = "CRITICAL,HIGH",
    ) -> None:
        self.username = username
        self._password = password
        self.registry = registry
        self.dockerfile = dockerfile
        self.build_context = build_context
        self.scan_enabled = scan_enabled
        self.scan_severity = scan_severity

    def _run(self, args: list[str], stdin: Optional[str] = None) -> str:
        try:
            result = subprocess.run(
                args,
                input=stdin,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise PublishError(f"'{args[0]}' not found on PATH") from e
        except subprocess.CalledProcessError as e:
            raise PublishError(
                f"{' '.join(args[:2])} failed (exit {e.returncode}): {(e.stderr or '').strip()}"
            ) from e
        return (result.stdout or "").strip()

    def _login(self) -> None:
        if not self._password:
            logger.warning("No registry password configured; relying on an existing docker login")
            return
        logger.info("Logging into %s as %s", self.registry, self.username)
        self._run(
            ["docker", "login", self.registry, "-u", self.username, "--password-stdin"],
            stdin=self._password,
        )

    def _build(self, refs: list[str], build_args: dict[str, str]) -> None:
        args = ["docker", "build"]
        for ref in refs:
            args += ["--tag", ref]
        for key, value in sorted(build_args.items()):
            args += ["--build-arg", f"{key}={value}"]
        args += ["-f", self.dockerfile, self.build_context]
        logger.info("Building image %s", ", ".join(refs))
        self._run(args)

    def _scan(self, ref: str) -> None:
        if not self.scan_enabled:
            return
        if shutil.which("trivy") is None:
            logger.warning("trivy not installed, skipping vulnerability scan of %s", ref)
            return
        logger.info("Scanning %s for %s vulnerabilities", ref, self.scan_severity)
        try:
            self._run(
                ["trivy", "image", "--exit-code", "1", "--severity", self.scan_severity, ref]
            )
        except PublishError as e:
            raise PublishError(f"Vulnerability scan rejected {ref}: {e}") from e

    def _publish(
        self,
        artifact: ArtifactReference,
        extra_tags: tuple[str, ...],
        build_args: dict[str, str],
    ) -> ArtifactReference:
        primary = str(artifact)
        refs = [primary] + [f"{artifact.repository}:{tag}" for tag in extra_tags if tag != artifact.tag]

        self._login()
        self._build(refs, build_args)
        self._scan(primary)
        for ref in refs:
            logger.info("Pushing %s", ref)
            self._run(["docker", "push", ref])
        return artifact

    async def publish(
        self,
        artifact: ArtifactReference,
        extra_tags: tuple[str, ...] = (),
        build_args: dict[str, str] | None = None,
    ) -> ArtifactReference:
        return await asyncio.get_running_loop().run_in_executor(
            None, self._publish, artifact, extra_tags, dict(build_args or {})
        )
