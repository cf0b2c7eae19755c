"""Tests for boot template and refresh entities."""

import pytest

from fleetshift.domain.entities.boot_template import (
    BootInstructions,
    BootTemplate,
    BootTemplateVersion,
    TemplateRevision,
)
from fleetshift.domain.entities.refresh_operation import (
    RefreshOperation,
    RefreshStatus,
    RefreshWaitResult,
    RolloutPolicy,
)
from fleetshift.domain.value_objects.artifact_reference import ArtifactReference
from fleetshift.domain.value_objects.fleet_id import FleetId


class TestBootTemplate:
    def test_empty_has_no_latest(self):
        assert BootTemplate("lt-1", "api-lt").latest_version is None

    def test_append_starts_at_one(self):
        template = BootTemplate("lt-1", "api-lt").append_version("payload")
        assert template.latest_version.version == 1

    def test_append_is_strictly_increasing(self):
        template = BootTemplate("lt-1", "api-lt")
        for _ in range(3):
            template = template.append_version("p")
        assert [v.version for v in template.versions] == [1, 2, 3]

    def test_append_does_not_mutate(self):
        original = BootTemplate("lt-1", "api-lt")
        original.append_version("p")
        assert original.versions == ()

    def test_version_must_be_positive(self):
        with pytest.raises(ValueError):
            BootTemplateVersion(0, "p")

    def test_revision_str(self):
        assert str(TemplateRevision("lt-1", "api-lt", 4)) == "api-lt(lt-1)@v4"


class TestBootInstructions:
    def test_port_validated(self):
        with pytest.raises(ValueError, match="port"):
            BootInstructions(
                artifact=ArtifactReference("acme/api", "a1"),
                registry_user="acme",
                environment="staging",
                git_commit="a1",
                port=70000,
            )


class TestRefreshStatus:
    @pytest.mark.parametrize("status", [
        RefreshStatus.SUCCESSFUL, RefreshStatus.FAILED, RefreshStatus.CANCELLED,
    ])
    def test_terminal(self, status):
        assert status.is_terminal
        assert not status.is_active

    @pytest.mark.parametrize("status", [RefreshStatus.PENDING, RefreshStatus.IN_PROGRESS])
    def test_active(self, status):
        assert status.is_active
        assert not status.is_terminal

    @pytest.mark.parametrize("raw,expected", [
        ("Successful", RefreshStatus.SUCCESSFUL),
        ("Cancelling", RefreshStatus.IN_PROGRESS),
        ("RollbackInProgress", RefreshStatus.IN_PROGRESS),
        ("RollbackSuccessful", RefreshStatus.FAILED),
        ("RollbackFailed", RefreshStatus.FAILED),
        ("Baking", RefreshStatus.IN_PROGRESS),
    ])
    def test_from_provider(self, raw, expected):
        assert RefreshStatus.from_provider(raw) is expected


class TestRolloutPolicy:
    def test_defaults(self):
        policy = RolloutPolicy()
        assert policy.min_healthy_percentage == 90
        assert policy.instance_warmup_seconds == 300
        assert policy.standby_instances == "Ignore"

    @pytest.mark.parametrize("value", [-1, 101])
    def test_min_healthy_bounds(self, value):
        with pytest.raises(ValueError, match="min_healthy_percentage"):
            RolloutPolicy(min_healthy_percentage=value)

    def test_unknown_standby_mode(self):
        with pytest.raises(ValueError, match="standby"):
            RolloutPolicy(standby_instances="Keep")


class TestRefreshOperation:
    def test_with_status_copies(self):
        op = RefreshOperation("r-1", FleetId("asg"), "lt-1", 2, RolloutPolicy())
        done = op.with_status(RefreshStatus.SUCCESSFUL)
        assert done.status is RefreshStatus.SUCCESSFUL
        assert op.status is RefreshStatus.PENDING
        assert done.refresh_id == "r-1"

    def test_wait_result_succeeded(self):
        assert RefreshWaitResult(RefreshStatus.SUCCESSFUL, False, 60.0, 3).succeeded
        assert not RefreshWaitResult(RefreshStatus.FAILED, False, 60.0, 3).succeeded
        assert not RefreshWaitResult(RefreshStatus.IN_PROGRESS, True, 600.0, 20).succeeded
