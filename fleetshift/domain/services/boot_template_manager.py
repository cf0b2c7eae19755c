"""
Fleet Boot Template Manager

Architectural Intent:
- Domain service owning the versioned boot configuration of a fleet
- Renders BootInstructions into the user-data payload new instances execute
- Publishes each rendered payload as a brand new template version

Domain Logic:
- A fleet's template is resolved by naming convention (name contains prefix)
- Exactly one match: append a version
- No match: create the template (version 1) when creation is allowed
- Several matches: TemplateLookupError, an operator has to disambiguate
- Publishing the same payload twice yields two distinct, equivalent versions
"""

from __future__ import annotations
import base64
import logging
import shlex

from fleetshift.domain.entities.boot_template import BootInstructions, TemplateRevision
from fleetshift.domain.errors import FleetApiError, TemplateLookupError
from fleetshift.domain.ports.boot_template_port import BootTemplatePort
from fleetshift.domain.value_objects.fleet_id import FleetId

logger = logging.getLogger(__name__)


class BootScriptRenderer:
    """Renders BootInstructions into a bash user-data script.

    Rendering is deterministic: the same instructions always produce the
    same bytes, so two versions built from one request are interchangeable.
    """

    def render(self, instructions: BootInstructions) -> str:
        artifact = shlex.quote(str(instructions.artifact))
        name = shlex.quote(instructions.container_name)
        user = shlex.quote(instructions.registry_user)
        region = shlex.quote(instructions.region)
        log_group = shlex.quote(instructions.log_group)
        password_param = shlex.quote(instructions.registry_password_parameter)

        env_flags = [
            f'  -e {var}="${var}" \\' for var in instructions.passthrough_env
        ]
        env_flags.append(f"  -e ENVIRONMENT={shlex.quote(instructions.environment)} \\")
        env_flags.append(f"  -e GIT_COMMIT={shlex.quote(instructions.git_commit)} \\")

        lines = [
            "#!/bin/bash",
            "# Container runtime",
            "yum update -y",
            "amazon-linux-extras install docker -y",
            "service docker start",
            "usermod -a -G docker ec2-user",
            "",
            "# Registry login (credentials from the parameter store)",
            f"aws ssm get-parameter --name {password_param} --with-decryption "
            f"--query Parameter.Value --output text | \\",
            f"docker login -u {user} --password-stdin",
            "",
            f"docker pull {artifact}",
            "",
            f"docker stop {name} || true",
            f"docker rm {name} || true",
            "",
            "docker run -d \\",
            f"  --name {name} \\",
            "  --restart unless-stopped \\",
            f"  -p {instructions.port}:{instructions.port} \\",
            *env_flags,
            "  --log-driver=awslogs \\",
            f"  --log-opt awslogs-region={region} \\",
            f"  --log-opt awslogs-group={log_group} \\",
            "  --log-opt awslogs-stream=instance-$(curl -s "
            "http://169.254.169.254/latest/meta-data/instance-id) \\",
            f"  {artifact}",
            "",
            "# Metrics agent",
            "yum install -y amazon-cloudwatch-agent",
            "/opt/aws/amazon-cloudwatch-agent/bin/amazon-cloudwatch-agent-ctl "
            f"-a fetch-config -m ec2 -s -c {shlex.quote(instructions.metrics_config)}",
        ]
        return "\n".join(lines) + "\n"

    def encode(self, instructions: BootInstructions) -> str:
        """Render and base64-encode, the form launch templates store."""
        script = self.render(instructions)
        return base64.b64encode(script.encode("utf-8")).decode("ascii")


class FleetBootTemplateManager:
    def __init__(
        self,
        template_port: BootTemplatePort,
        name_prefix: str,
        create_if_missing: bool = True,
        renderer: BootScriptRenderer | None = None,
    ):
        if not name_prefix:
            raise ValueError("name_prefix cannot be empty")
        self._templates = template_port
        self._name_prefix = name_prefix
        self._create_if_missing = create_if_missing
        self._renderer = renderer or BootScriptRenderer()

    @property
    def renderer(self) -> BootScriptRenderer:
        return self._renderer

    async def publish(self, fleet_id: FleetId, payload: str) -> TemplateRevision:
        """
        Store payload as a new version of the fleet's template.
        """
        try:
            candidates = await self._templates.find_templates(self._name_prefix)
        except FleetApiError as e:
            raise TemplateLookupError(
                f"Could not list boot templates for fleet {fleet_id}: {e}"
            ) from e

        if len(candidates) > 1:
            names = ", ".join(sorted(t.name for t in candidates))
            raise TemplateLookupError(
                f"Boot template for fleet {fleet_id} is ambiguous; "
                f"{len(candidates)} templates match '{self._name_prefix}': {names}"
            )

        if not candidates:
            if not self._create_if_missing:
                raise TemplateLookupError(
                    f"No boot template matches '{self._name_prefix}' for fleet {fleet_id}"
                )
            return await self._create(fleet_id, payload)

        template = candidates[0]
        try:
            version = await self._templates.create_version(template.template_id, payload)
        except FleetApiError as e:
            raise TemplateLookupError(
                f"Could not add a version to template {template.template_id}: {e}"
            ) from e

        logger.info(
            "Created boot template version %d on %s for fleet %s",
            version,
            template.template_id,
            fleet_id,
        )
        return TemplateRevision(template.template_id, template.name, version)

    async def publish_instructions(
        self, fleet_id: FleetId, instructions: BootInstructions
    ) -> TemplateRevision:
        return await self.publish(fleet_id, self._renderer.encode(instructions))

    async def _create(self, fleet_id: FleetId, payload: str) -> TemplateRevision:
        name = f"{self._name_prefix}-lt"
        try:
            template = await self._templates.create_template(name, payload)
        except FleetApiError as e:
            raise TemplateLookupError(
                f"Could not create boot template {name} for fleet {fleet_id}: {e}"
            ) from e

        latest = template.latest_version
        version = latest.version if latest else 1
        logger.info(
            "No boot template found for fleet %s; created %s (%s)",
            fleet_id,
            name,
            template.template_id,
        )
        return TemplateRevision(template.template_id, name, version, created_template=True)
