"""Integration tests for the deployment flow.

These tests wire the real use cases, domain services, simulated AWS
adapter and SQLite record store through the composition root, faking only
the registry, git and the HTTP probe.
"""

import pytest

from conftest import FakePublisher, FakeSourceControl, ScriptedProbe
from fleetshift.application.dtos.rollout_dtos import (
    EXIT_ABORTED,
    EXIT_CONFIGURATION,
    EXIT_OK,
    EXIT_WARNING,
    PipelineState,
    exit_code_for,
)
from fleetshift.composition_root import create_container
from fleetshift.domain.entities.deployment import DeploymentOutcome
from fleetshift.domain.entities.refresh_operation import RolloutPolicy
from fleetshift.domain.value_objects.fleet_id import FleetId
from fleetshift.infrastructure.adapters.aws_adapter import AWSFleetAdapter


def _container(config, clock, fleet=None, publisher=None, probe=None, source=None):
    return create_container(
        config,
        fleet_adapter=fleet or AWSFleetAdapter(simulated_polls_to_complete=3),
        publisher=publisher or FakePublisher(),
        source_control=source or FakeSourceControl(),
        health_probe=probe or ScriptedProbe([True]),
        sleep=clock.sleep,
        clock=clock,
    )


class TestDeployFlow:
    @pytest.mark.asyncio
    async def test_full_rollout_is_recorded(self, valid_config, clock):
        publisher = FakePublisher()
        fleet = AWSFleetAdapter(simulated_polls_to_complete=3)
        container = _container(valid_config, clock, fleet=fleet, publisher=publisher)

        result = await container.deploy_backend.execute(valid_config)
        container.repository.close()

        assert exit_code_for(result) == EXIT_OK
        assert result.history == [
            PipelineState.IDLE,
            PipelineState.PUBLISHING,
            PipelineState.TEMPLATE_UPDATE,
            PipelineState.REFRESH_STARTING,
            PipelineState.REFRESH_WAITING,
            PipelineState.HEALTH_CHECKING,
            PipelineState.RECORDING,
            PipelineState.DONE,
        ]
        assert str(publisher.calls[0][0]) == "acme/starttech-backend:3f2a9c1"
        assert result.template.version == 1
        assert result.template.created_template is True
        assert result.refresh_wait.polls == 3
        assert clock.sleeps == [30.0, 30.0]

        refresh = fleet.get_refresh(FleetId("starttech-backend-asg"), result.refresh.refresh_id)
        assert refresh["Status"] == "Successful"

        (stored,) = container.repository.find_by_artifact("acme/starttech-backend:3f2a9c1")
        assert stored.outcome is DeploymentOutcome.SUCCESS
        assert stored.health_verified is True
        assert stored.git_commit == "3f2a9c1"
        assert stored.operator == "deployer@build-01"
        container.repository.close()

    @pytest.mark.asyncio
    async def test_second_rollout_appends_template_version(self, valid_config, clock):
        fleet = AWSFleetAdapter(simulated_polls_to_complete=1)
        container = _container(valid_config, clock, fleet=fleet)

        first = await container.deploy_backend.execute(valid_config)
        second = await container.deploy_backend.execute(valid_config, tag="4b1d2e0")

        assert first.template.template_id == second.template.template_id
        assert second.template.version == 2
        assert container.repository.count() == 2
        container.repository.close()

    @pytest.mark.asyncio
    async def test_refresh_that_never_finishes_times_out(self, valid_config, clock):
        fleet = AWSFleetAdapter(simulated_polls_to_complete=None)
        probe = ScriptedProbe([True])
        container = _container(valid_config, clock, fleet=fleet, probe=probe)

        result = await container.deploy_backend.execute(valid_config)

        assert exit_code_for(result) == EXIT_WARNING
        assert result.outcome is DeploymentOutcome.TIMED_OUT
        assert result.refresh_wait.polls == 20
        assert probe.urls == []
        (stored,) = container.repository.latest()
        assert stored.outcome is DeploymentOutcome.TIMED_OUT
        assert stored.health_verified is None
        container.repository.close()

    @pytest.mark.asyncio
    async def test_failed_refresh_aborts_with_failed_record(self, valid_config, clock):
        fleet = AWSFleetAdapter(simulated_polls_to_complete=2, simulated_final_status="Failed")
        container = _container(valid_config, clock, fleet=fleet)

        result = await container.deploy_backend.execute(valid_config)

        assert exit_code_for(result) == EXIT_ABORTED
        assert result.error.phase == "RefreshWaiting"
        (stored,) = container.repository.latest()
        assert stored.outcome is DeploymentOutcome.FAILED
        container.repository.close()

    @pytest.mark.asyncio
    async def test_endpoint_from_parameter_store(self, valid_config, clock):
        config = valid_config.with_overrides(health={"endpoint": ""})
        fleet = AWSFleetAdapter(simulated_polls_to_complete=0)
        fleet.put_parameter("/starttech/alb-dns-name", "alb-123.elb.amazonaws.com")
        probe = ScriptedProbe([False, True])
        container = _container(config, clock, fleet=fleet, probe=probe)

        result = await container.deploy_backend.execute(config)

        assert result.succeeded
        assert probe.urls == ["http://alb-123.elb.amazonaws.com/health"] * 2
        container.repository.close()

    @pytest.mark.asyncio
    async def test_concurrent_refresh_aborts_before_waiting(self, valid_config, clock):
        fleet = AWSFleetAdapter(simulated_polls_to_complete=None)
        template = await fleet.create_template("starttech-backend-lt", "old")
        await fleet.start_refresh(
            FleetId("starttech-backend-asg"), template.template_id, 1,
            RolloutPolicy(),
        )
        container = _container(valid_config, clock, fleet=fleet)

        result = await container.deploy_backend.execute(valid_config)

        assert exit_code_for(result) == EXIT_ABORTED
        assert result.error.phase == "RefreshStarting"
        assert clock.sleeps == []
        container.repository.close()


class TestNoExternalCalls:
    @pytest.mark.asyncio
    async def test_unsupported_environment_is_noop(self, valid_config, clock):
        config = valid_config.with_overrides(environment="development")
        publisher = FakePublisher()
        source = FakeSourceControl()
        probe = ScriptedProbe([True])
        container = _container(config, clock, publisher=publisher, probe=probe, source=source)

        result = await container.deploy_backend.execute(config)

        assert exit_code_for(result) == EXIT_OK
        assert result.final_state is PipelineState.SKIPPED
        assert publisher.calls == []
        assert source.calls == 0
        assert probe.urls == []
        assert container.repository.count() == 0
        container.repository.close()

    @pytest.mark.asyncio
    async def test_missing_fleet_is_configuration_error(self, valid_config, clock):
        config = valid_config.with_overrides(fleet={"group_name": ""})
        publisher = FakePublisher()
        source = FakeSourceControl()
        container = _container(config, clock, publisher=publisher, source=source)

        result = await container.deploy_backend.execute(config)

        assert exit_code_for(result) == EXIT_CONFIGURATION
        assert "fleet.group_name" in str(result.error)
        assert publisher.calls == []
        assert source.calls == 0
        assert container.repository.count() == 0
        container.repository.close()
