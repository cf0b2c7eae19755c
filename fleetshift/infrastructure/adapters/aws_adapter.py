"""
AWS Fleet Adapter

Architectural Intent:
- Implements BootTemplatePort, FleetRefreshPort and ParameterStorePort for an
  EC2 Auto Scaling group fronted by a load balancer
- Simulates boto3 SDK call patterns without importing the real SDK, enabling
  integration testing and local development with zero cloud credentials
- When the real boto3 library is available, replace the _stub_* helpers with
  actual boto3.client("ec2" | "autoscaling" | "ssm") calls; the public method
  signatures remain stable

Design Decisions:
- Every simulated API call is logged at DEBUG level with the request payload,
  mirroring the structure of boto3 response dictionaries exactly
- Launch template versions are append-only, as in EC2
- The simulated Auto Scaling service rejects a second refresh while one is
  active (InstanceRefreshInProgress), as the real service does
- A refresh advances one step per status read: Pending -> InProgress ->
  simulated_final_status after simulated_polls_to_complete reads. Setting
  simulated_polls_to_complete to None keeps refreshes in flight forever.
- Provider errors are raised as FleetApiError with the AWS error code

Simulated AWS region defaults: us-east-1
"""

import datetime
import logging
import uuid
from typing import Any, Optional

from fleetshift.domain.entities.boot_template import BootTemplate, BootTemplateVersion
from fleetshift.domain.entities.refresh_operation import RefreshStatus, RolloutPolicy
from fleetshift.domain.errors import FleetApiError
from fleetshift.domain.value_objects.fleet_id import FleetId

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers that mimic the shape of real boto3 response payloads.
# Replace these with actual boto3 client calls when SDK credentials are
# available.
# ---------------------------------------------------------------------------

def _now() -> str:
    return datetime.datetime.now(datetime.UTC).isoformat()


def _response_metadata() -> dict:
    return {
        "RequestId": str(uuid.uuid4()),
        "HTTPStatusCode": 200,
        "HTTPHeaders": {},
    }


def _make_template_id() -> str:
    """Return a plausible launch template ID."""
    return "lt-" + uuid.uuid4().hex[:17]


def _stub_describe_launch_templates(templates: list[dict]) -> dict:
    """
    Simulate a boto3 EC2.describe_launch_templates() response.

    The real call looks like:
        ec2 = boto3.client("ec2", region_name=region)
        response = ec2.describe_launch_templates()
    """
    return {
        "LaunchTemplates": [
            {
                "LaunchTemplateId": t["LaunchTemplateId"],
                "LaunchTemplateName": t["LaunchTemplateName"],
                "CreateTime": t["CreateTime"],
                "DefaultVersionNumber": t["DefaultVersionNumber"],
                "LatestVersionNumber": max(t["Versions"]),
                "Tags": t.get("Tags", []),
            }
            for t in templates
        ],
        "ResponseMetadata": _response_metadata(),
    }


def _stub_create_launch_template(name: str, template_data: dict, tags: list[dict]) -> dict:
    """
    Simulate a boto3 EC2.create_launch_template() response.

    The real call looks like:
        response = ec2.create_launch_template(
            LaunchTemplateName=name,
            LaunchTemplateData=template_data,
            TagSpecifications=[{"ResourceType": "launch-template", "Tags": tags}],
        )
    """
    return {
        "LaunchTemplate": {
            "LaunchTemplateId": _make_template_id(),
            "LaunchTemplateName": name,
            "CreateTime": _now(),
            "CreatedBy": "arn:aws:iam::123456789012:user/fleetshift",
            "DefaultVersionNumber": 1,
            "LatestVersionNumber": 1,
            "Tags": tags,
        },
        "ResponseMetadata": _response_metadata(),
    }


def _stub_create_launch_template_version(
    template_id: str, source_version: int, new_version: int, template_data: dict
) -> dict:
    """
    Simulate a boto3 EC2.create_launch_template_version() response.

    The real call looks like:
        response = ec2.create_launch_template_version(
            LaunchTemplateId=template_id,
            SourceVersion="$Latest",
            LaunchTemplateData={"UserData": user_data},
        )
    """
    return {
        "LaunchTemplateVersion": {
            "LaunchTemplateId": template_id,
            "VersionNumber": new_version,
            "SourceVersion": source_version,
            "CreateTime": _now(),
            "DefaultVersion": False,
            "LaunchTemplateData": template_data,
        },
        "ResponseMetadata": _response_metadata(),
    }


def _stub_start_instance_refresh(group_name: str) -> dict:
    """
    Simulate a boto3 AutoScaling.start_instance_refresh() response.

    The real call looks like:
        asg = boto3.client("autoscaling", region_name=region)
        response = asg.start_instance_refresh(
            AutoScalingGroupName=group_name,
            Strategy="Rolling",
            DesiredConfiguration={"LaunchTemplate": {...}},
            Preferences={...},
        )
    """
    return {
        "InstanceRefreshId": str(uuid.uuid4()),
        "ResponseMetadata": _response_metadata(),
    }


def _stub_describe_instance_refreshes(refreshes: list[dict]) -> dict:
    """
    Simulate a boto3 AutoScaling.describe_instance_refreshes() response.

    The real call looks like:
        response = asg.describe_instance_refreshes(
            AutoScalingGroupName=group_name,
            InstanceRefreshIds=[refresh_id],   # optional
        )

    Refreshes are returned newest first, as the real API does.
    """
    return {
        "InstanceRefreshes": [dict(r) for r in refreshes],
        "ResponseMetadata": _response_metadata(),
    }


def _stub_get_parameter(name: str, value: str) -> dict:
    """
    Simulate a boto3 SSM.get_parameter() response.

    The real call looks like:
        ssm = boto3.client("ssm", region_name=region)
        response = ssm.get_parameter(Name=name, WithDecryption=decrypt)
    """
    return {
        "Parameter": {
            "Name": name,
            "Type": "String",
            "Value": value,
            "Version": 1,
            "LastModifiedDate": _now(),
        },
        "ResponseMetadata": _response_metadata(),
    }


def _policy_preferences(policy: RolloutPolicy) -> dict:
    return {
        "MinHealthyPercentage": policy.min_healthy_percentage,
        "InstanceWarmup": policy.instance_warmup_seconds,
        "SkipMatching": policy.skip_matching,
        "ScaleInProtectedInstances": "Ignore" if policy.skip_lb_excluded else "Refresh",
        "StandbyInstances": policy.standby_instances,
    }


# ---------------------------------------------------------------------------
# Public adapter
# ---------------------------------------------------------------------------

class AWSFleetAdapter:
    """
    AWS launch template, Auto Scaling instance refresh and SSM adapter.

    Simulates boto3 SDK call patterns so the adapter can be exercised in tests
    and local development without AWS credentials. The in-memory registries
    play the role of the AWS backends.

    Configuration parameters
    ------------------------
    region : str
        AWS region name (e.g. "us-east-1").
    profile : str | None
        AWS credentials profile name passed to boto3.Session. Ignored in
        stub mode.
    image_id, instance_type, key_name :
        Launch data used when a launch template has to be created.
    simulated_polls_to_complete : int | None
        Status reads before an in-flight refresh finishes.
    simulated_final_status : str
        Terminal status simulated refreshes settle on.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        profile: Optional[str] = None,
        image_id: str = "ami-0c55b159cbfafe1f0",
        instance_type: str = "t3.micro",
        key_name: Optional[str] = "starttech-key",
        simulated_polls_to_complete: Optional[int] = 3,
        simulated_final_status: str = "Successful",
    ) -> None:
        self.region = region
        self.profile = profile
        self.image_id = image_id
        self.instance_type = instance_type
        self.key_name = key_name
        self.simulated_polls_to_complete = simulated_polls_to_complete
        self.simulated_final_status = simulated_final_status

        # LaunchTemplateId -> template dict with a Versions map
        self._templates: dict[str, dict] = {}
        # AutoScalingGroupName -> refresh dicts, newest first
        self._refreshes: dict[str, list[dict]] = {}
        self._reads: dict[str, int] = {}
        self._parameters: dict[str, str] = {}

        logger.debug(
            "AWSFleetAdapter initialised (region=%s, profile=%s)", region, profile
        )

    # ------------------------------------------------------------------
    # BootTemplatePort implementation
    # ------------------------------------------------------------------

    async def find_templates(self, name_contains: str) -> list[BootTemplate]:
        logger.info(
            "AWS EC2 describe_launch_templates (region=%s, name contains %r)",
            self.region,
            name_contains,
        )
        response = _stub_describe_launch_templates(list(self._templates.values()))
        matches = []
        for summary in response["LaunchTemplates"]:
            if name_contains not in summary["LaunchTemplateName"]:
                continue
            matches.append(self._to_boot_template(self._templates[summary["LaunchTemplateId"]]))
        logger.debug("describe_launch_templates matched %d template(s)", len(matches))
        return matches

    async def create_template(self, name: str, payload: str) -> BootTemplate:
        if any(t["LaunchTemplateName"] == name for t in self._templates.values()):
            raise FleetApiError(
                "InvalidLaunchTemplateName.AlreadyExistsException",
                f"Launch template name already in use: {name}",
            )
        template_data = {
            "ImageId": self.image_id,
            "InstanceType": self.instance_type,
            "KeyName": self.key_name,
            "UserData": payload,
        }
        tags = [{"Key": "Name", "Value": name}, {"Key": "ManagedBy", "Value": "fleetshift"}]
        logger.info("AWS EC2 create_launch_template: name=%s ami=%s", name, self.image_id)
        response = _stub_create_launch_template(name, template_data, tags)

        template = dict(response["LaunchTemplate"])
        template["Versions"] = {1: {"LaunchTemplateData": template_data, "CreateTime": template["CreateTime"]}}
        self._templates[template["LaunchTemplateId"]] = template
        return self._to_boot_template(template)

    async def create_version(self, template_id: str, payload: str) -> int:
        template = self._templates.get(template_id)
        if template is None:
            raise FleetApiError(
                "InvalidLaunchTemplateId.NotFound",
                f"The specified launch template, with template ID {template_id}, does not exist",
            )
        latest = max(template["Versions"])
        template_data = dict(template["Versions"][latest]["LaunchTemplateData"])
        template_data["UserData"] = payload

        logger.info(
            "AWS EC2 create_launch_template_version: template=%s source=$Latest(%d)",
            template_id,
            latest,
        )
        response = _stub_create_launch_template_version(
            template_id, latest, latest + 1, template_data
        )
        version = response["LaunchTemplateVersion"]
        template["Versions"][version["VersionNumber"]] = {
            "LaunchTemplateData": version["LaunchTemplateData"],
            "CreateTime": version["CreateTime"],
        }
        return version["VersionNumber"]

    # ------------------------------------------------------------------
    # FleetRefreshPort implementation
    # ------------------------------------------------------------------

    async def list_refreshes(self, fleet_id: FleetId) -> list[tuple[str, RefreshStatus]]:
        group = str(fleet_id)
        logger.info("AWS AutoScaling describe_instance_refreshes: group=%s", group)
        response = _stub_describe_instance_refreshes(self._refreshes.get(group, []))
        return [
            (r["InstanceRefreshId"], RefreshStatus.from_provider(r["Status"]))
            for r in response["InstanceRefreshes"]
        ]

    async def start_refresh(
        self,
        fleet_id: FleetId,
        template_id: str,
        template_version: int,
        policy: RolloutPolicy,
    ) -> str:
        group = str(fleet_id)
        history = self._refreshes.setdefault(group, [])
        if any(RefreshStatus.from_provider(r["Status"]).is_active for r in history):
            raise FleetApiError(
                "InstanceRefreshInProgress",
                f"An Instance Refresh is already in progress for {group}",
            )
        template = self._templates.get(template_id)
        if template is None or template_version not in template["Versions"]:
            raise FleetApiError(
                "ValidationError",
                f"Launch template {template_id} version {template_version} does not exist",
            )

        preferences = _policy_preferences(policy)
        logger.info(
            "AWS AutoScaling start_instance_refresh: group=%s strategy=Rolling template=%s:%d",
            group,
            template_id,
            template_version,
        )
        logger.debug("start_instance_refresh preferences: %s", preferences)
        response = _stub_start_instance_refresh(group)

        refresh_id = response["InstanceRefreshId"]
        history.insert(
            0,
            {
                "InstanceRefreshId": refresh_id,
                "AutoScalingGroupName": group,
                "Status": "Pending",
                "StatusReason": "",
                "StartTime": _now(),
                "PercentageComplete": 0,
                "Preferences": preferences,
                "DesiredConfiguration": {
                    "LaunchTemplate": {
                        "LaunchTemplateId": template_id,
                        "Version": str(template_version),
                    }
                },
            },
        )
        self._reads[refresh_id] = 0
        return refresh_id

    async def get_refresh_status(self, fleet_id: FleetId, refresh_id: str) -> RefreshStatus:
        group = str(fleet_id)
        matching = [
            r for r in self._refreshes.get(group, []) if r["InstanceRefreshId"] == refresh_id
        ]
        response = _stub_describe_instance_refreshes(matching)
        if not response["InstanceRefreshes"]:
            raise FleetApiError(
                "ValidationError", f"Instance refresh {refresh_id} not found for {group}"
            )
        self._advance(matching[0])
        return RefreshStatus.from_provider(matching[0]["Status"])

    def _advance(self, refresh: dict) -> None:
        """Move a simulated refresh one step forward."""
        if RefreshStatus.from_provider(refresh["Status"]).is_terminal:
            return
        refresh_id = refresh["InstanceRefreshId"]
        self._reads[refresh_id] = self._reads.get(refresh_id, 0) + 1
        reads = self._reads[refresh_id]
        target = self.simulated_polls_to_complete

        if target is not None and reads >= target:
            refresh["Status"] = self.simulated_final_status
            refresh["EndTime"] = _now()
            if self.simulated_final_status == "Successful":
                refresh["PercentageComplete"] = 100
            return

        refresh["Status"] = "InProgress"
        if target:
            refresh["PercentageComplete"] = int(100 * reads / target)

    # ------------------------------------------------------------------
    # ParameterStorePort implementation
    # ------------------------------------------------------------------

    def put_parameter(self, name: str, value: str) -> None:
        """Seed a parameter (simulation only; SSM.put_parameter)."""
        self._parameters[name] = value

    async def get_parameter(self, name: str, decrypt: bool = False) -> Optional[str]:
        logger.info("AWS SSM get_parameter: name=%s decrypt=%s", name, decrypt)
        value = self._parameters.get(name)
        if value is None:
            logger.debug("SSM parameter %s not found", name)
            return None
        response = _stub_get_parameter(name, value)
        return response["Parameter"]["Value"]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_refresh(self, fleet_id: FleetId, refresh_id: str) -> Optional[dict[str, Any]]:
        """Return the raw simulated refresh dict (for tests and debugging)."""
        for refresh in self._refreshes.get(str(fleet_id), []):
            if refresh["InstanceRefreshId"] == refresh_id:
                return refresh
        return None

    @staticmethod
    def _to_boot_template(template: dict) -> BootTemplate:
        versions = tuple(
            BootTemplateVersion(
                version=number,
                payload=data["LaunchTemplateData"].get("UserData", ""),
                created_at=data["CreateTime"],
            )
            for number, data in sorted(template["Versions"].items())
        )
        return BootTemplate(
            template_id=template["LaunchTemplateId"],
            name=template["LaunchTemplateName"],
            versions=versions,
        )
