"""
CLI Module

Architectural Intent:
- Command-line interface for fleetshift
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug/--json-logs flags for log control
- The process exit code is derived from the rollout result: 0 success or
  no-op, 1 aborted, 2 configuration error, 3 finished with warnings
"""

import argparse
import asyncio
import logging
import sys
import traceback
from datetime import datetime, UTC

from fleetshift.application.dtos.rollout_dtos import (
    EXIT_ABORTED,
    EXIT_CONFIGURATION,
    EXIT_OK,
    PipelineState,
    exit_code_for,
)
from fleetshift.domain.errors import ConfigurationError, RecordPersistError
from fleetshift.infrastructure.config import HEALTH_POLICIES, load_config
from fleetshift.infrastructure.logging import configure_logging, level_from_name


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleetshift",
        description="fleetshift: rolling deployments for auto scaled backend fleets",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON log lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy_parser = subparsers.add_parser(
        "deploy", help="Publish the backend image and roll it across the fleet"
    )
    deploy_parser.add_argument(
        "--config", "-c", default=None, help="Path to JSON config (default: fleetshift.json)"
    )
    deploy_parser.add_argument(
        "--environment", "-e", help="Target environment (staging or production)"
    )
    deploy_parser.add_argument("--fleet", "-f", help="Auto scaling group to refresh")
    deploy_parser.add_argument(
        "--tag", "-t", help="Immutable image tag (default: short git commit)"
    )
    deploy_parser.add_argument(
        "--skip-publish",
        action="store_true",
        help="Reuse an image that is already in the registry",
    )
    deploy_parser.add_argument(
        "--health-policy",
        choices=HEALTH_POLICIES,
        help="What an exhausted health check does to the run",
    )

    history_parser = subparsers.add_parser(
        "history", help="Show recorded deployments"
    )
    history_parser.add_argument("--config", "-c", default=None, help="Path to JSON config")
    history_parser.add_argument("--artifact", "-a", help="Only deployments of this artifact")
    history_parser.add_argument(
        "--since", help="Only deployments at or after this ISO 8601 time"
    )
    history_parser.add_argument(
        "--limit", "-n", type=int, default=20, help="Maximum records to show"
    )

    template_parser = subparsers.add_parser(
        "template", help="Render the instance boot script without deploying"
    )
    template_parser.add_argument("--config", "-c", default=None, help="Path to JSON config")
    template_parser.add_argument(
        "--environment", "-e", help="Environment baked into the script"
    )
    template_parser.add_argument("--tag", "-t", help="Image tag (default: short git commit)")
    template_parser.add_argument(
        "--encoded", action="store_true", help="Print the base64 launch template payload"
    )
    return parser


def _deploy_overrides(args) -> dict:
    overrides: dict = {}
    if args.environment:
        overrides["environment"] = args.environment
    if args.fleet:
        overrides["fleet"] = {"group_name": args.fleet}
    if args.skip_publish:
        overrides["artifact"] = {"skip_publish": True}
    if args.health_policy:
        overrides["health"] = {"policy": args.health_policy}
    return overrides


async def _deploy(args, config, verbose: bool) -> int:
    from fleetshift.application.orchestration.rollout_orchestrator import RolloutOrchestrator
    from fleetshift.composition_root import create_container
    from fleetshift.domain.entities.deployment import Environment

    # Unsupported environments are a no-op: no adapters, no telemetry export.
    if Environment.parse(config.environment) is None:
        result = RolloutOrchestrator.skipped(config.environment)
    else:
        container = create_container(config)
        await container.telemetry.initialize()
        try:
            print(f"[*] Deploying to {config.fleet.group_name or '<unset fleet>'} ({config.environment})...")
            result = await container.deploy_backend.execute(config, tag=args.tag)
        finally:
            await container.telemetry.shutdown()
            container.repository.close()

    code = exit_code_for(result)
    if result.final_state is PipelineState.SKIPPED:
        print(f"[*] Environment '{config.environment}' is not deployable. Nothing to do.")
    elif result.error is not None:
        print(f"[-] Deployment Failed: {result.error}")
    else:
        print(f"[+] {result.summary()}")
        if result.template is not None:
            print(f"    template: {result.template}")
        if result.refresh is not None:
            print(f"    refresh:  {result.refresh.refresh_id} ({result.refresh.status.value})")
        for warning in result.warnings:
            print(f"[!] {warning}")
    if verbose:
        print(f"    phases: {' -> '.join(s.value for s in result.history)}")
    return code


def _history(args, config) -> int:
    from fleetshift.composition_root import create_container

    container = create_container(config)
    repository = container.repository
    try:
        if args.artifact:
            records = repository.find_by_artifact(args.artifact)[: args.limit]
        elif args.since:
            records = repository.find_between(args.since, datetime.now(UTC).isoformat())
            records = list(reversed(records))[: args.limit]
        else:
            records = repository.latest(args.limit)
    except RecordPersistError as e:
        print(f"[-] Cannot read deployment history: {e}")
        return EXIT_ABORTED
    finally:
        repository.close()

    if not records:
        print("[*] No deployments recorded.")
        return EXIT_OK
    for record in records:
        print(
            f"{record.deployment_time}  {record.outcome.value:<8}  {record.environment:<10}  "
            f"{record.artifact}  {record.fleet_id}  {record.operator}"
        )
    return EXIT_OK


async def _template(args, config) -> int:
    from fleetshift.application.use_cases.deploy_backend import build_artifact
    from fleetshift.composition_root import create_container, settings_from_config
    from fleetshift.domain.entities.deployment import DeploymentRequest, Environment
    from fleetshift.domain.services.boot_template_manager import BootScriptRenderer
    from fleetshift.domain.value_objects.fleet_id import FleetId

    environment = Environment.parse(config.environment)
    if environment is None:
        raise ConfigurationError(f"Unsupported environment {config.environment!r}")
    if not config.artifact.username:
        raise ConfigurationError("artifact.username is required")

    container = create_container(config)
    source = await container.source_control.revision()
    request = DeploymentRequest(
        artifact=build_artifact(config, source, args.tag),
        environment=environment,
        fleet_id=FleetId(config.fleet.group_name or "unset"),
        source=source,
    )
    instructions = settings_from_config(config).boot.instructions(request)
    renderer = BootScriptRenderer()
    if args.encoded:
        print(renderer.encode(instructions))
    else:
        print(renderer.render(instructions), end="")
    return EXIT_OK


async def async_main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    # Configure logging based on flags
    if args.debug:
        configure_logging(level=logging.DEBUG, json_format=args.json_logs)
    elif args.verbose:
        configure_logging(level=logging.INFO, json_format=args.json_logs)
    else:
        configure_logging(level=logging.WARNING, json_format=args.json_logs)

    verbose = args.verbose or args.debug

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        config = load_config(args.config)
        if not verbose:
            configure_logging(
                level=level_from_name(config.log_level), json_format=args.json_logs
            )

        if args.command == "deploy":
            overrides = _deploy_overrides(args)
            if overrides:
                config = config.with_overrides(**overrides)
            return await _deploy(args, config, verbose)

        if args.command == "history":
            return _history(args, config)

        if args.command == "template":
            if args.environment:
                config = config.with_overrides(environment=args.environment)
            return await _template(args, config)
    except ConfigurationError as e:
        print(f"[-] Configuration error: {e}")
        return EXIT_CONFIGURATION
    except Exception as e:
        print(f"[-] {args.command} failed: {e}")
        if verbose:
            traceback.print_exc()
        return EXIT_ABORTED

    parser.print_help()
    return EXIT_OK


def main():
    code = asyncio.run(async_main())
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
