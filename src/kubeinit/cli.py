#!/usr/bin/env python3
"""CLI for workload reconciliation."""

import argparse
import json
import logging
import sys
import time

from kubeinit.bumper import INCREMENTS, bump_version
from kubeinit.client import connect
from kubeinit.config import ReconcileConfig
from kubeinit.errors import ReconcileError, VersionFormatError
from kubeinit.pretty import PrettyPrinter
from kubeinit.reconciler import ReconcileReport, Reconciler

logger = logging.getLogger("kubeinit")

printer = PrettyPrinter()

# argparse destination -> ReconcileConfig field
CONFIG_FLAGS = (
    "namespace",
    "deployment_name",
    "service_name",
    "replicas",
    "container_port",
    "exposed_port",
    "image",
    "migration_image",
    "allocate_node_port",
    "deploy_service",
    "kubeconfig",
    "in_cluster",
)


def build_config(args: argparse.Namespace) -> ReconcileConfig:
    """Layer defaults, config file, environment and flags."""
    config = ReconcileConfig()
    if getattr(args, "config", None):
        config = ReconcileConfig.from_yaml(args.config, base=config)
    config = ReconcileConfig.from_env(base=config)

    overrides = {name: getattr(args, name, None) for name in CONFIG_FLAGS}
    if getattr(args, "skip_migration", False):
        overrides["run_migration"] = False
    if not getattr(args, "in_cluster", False):
        overrides["in_cluster"] = None

    config = config.merged(overrides)
    logger.debug(f"Effective configuration: {json.dumps(config.to_dict(), sort_keys=True)}")
    return config


def make_reconciler(config: ReconcileConfig) -> Reconciler:
    client = connect(config.in_cluster, config.kubeconfig, config.request_timeout)
    return Reconciler(client, config)


def print_report(report: ReconcileReport, format_type: str = "text") -> None:
    """Print the outcome of a reconciliation pass."""
    data = report.to_dict()
    if format_type == "json":
        print(json.dumps(data, indent=2))
        return

    migration = data["migration"]
    if migration is None:
        printer.warning("Migration: skipped")
    elif migration["dispatched"]:
        printer.info(
            f"Migration: created job {migration['created']['resource']} "
            f"({migration['decision']})"
        )
        if migration["decision"] == "ambiguous_completion":
            printer.warning(
                f"Job {migration['latest_job']} reported completion without a completion time"
            )
    else:
        printer.info(
            f"Migration: up to date, {migration['latest_job']} "
            f"completed at {migration['completed_at']}"
        )

    workload = data["workload"]
    if workload:
        deployment = workload["deployment"]
        printer.info(f"Deployment {deployment['resource']} {deployment['action']}")
        service = workload["service"]
        if service:
            printer.info(f"Service {service['resource']} {service['action']}")
        else:
            printer.warning("Service: skipped")


def run_pass(config: ReconcileConfig, format_type: str) -> int:
    try:
        report = make_reconciler(config).reconcile()
    except ReconcileError as e:
        printer.error(str(e))
        return 1
    print_report(report, format_type)
    return 0


def cmd_reconcile(args: argparse.Namespace) -> int:
    """Run one reconciliation pass."""
    try:
        config = build_config(args)
    except ReconcileError as e:
        printer.error(str(e))
        return 1
    return run_pass(config, args.format)


def cmd_watch(args: argparse.Namespace) -> int:
    """Run reconciliation passes on an interval."""
    try:
        config = build_config(args)
    except ReconcileError as e:
        printer.error(str(e))
        return 1

    passes = 0
    try:
        while True:
            run_pass(config, args.format)
            passes += 1
            if args.max_passes and passes >= args.max_passes:
                break
            logger.debug(f"Sleeping {args.interval}s before next pass")
            time.sleep(args.interval)
    except KeyboardInterrupt:
        printer.warning("Stopped watching.")

    return 0


def cmd_pods(args: argparse.Namespace) -> int:
    """Report pods in a namespace."""
    try:
        config = build_config(args)
        inventory = make_reconciler(config).pod_inventory(args.pod)
    except ReconcileError as e:
        printer.error(str(e))
        return 1

    if args.format == "json":
        print(json.dumps(inventory.to_dict(), indent=2))
        return 0

    printer.info(f"There are {inventory.count} pods in the {inventory.namespace} namespace")
    if inventory.pod_name:
        if inventory.pod_found:
            printer.info(f"Found {inventory.pod_name} pod in {inventory.namespace} namespace")
        else:
            printer.warning(
                f"Pod {inventory.pod_name} not found in {inventory.namespace} namespace"
            )
    return 0


def cmd_bump(args: argparse.Namespace) -> int:
    """Print the bumped version tag."""
    try:
        print(bump_version(args.version, args.increment))
    except VersionFormatError as e:
        printer.error(str(e))
        return 1
    return 0


def add_cluster_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", help="Path to YAML config file")
    parser.add_argument("-n", "--namespace", help="Target namespace")
    parser.add_argument("--kubeconfig", help="Path to kubeconfig (default: ~/.kube/config)")
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use the pod service account instead of a kubeconfig",
    )


def add_workload_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--deployment-name", help="Deployment name")
    parser.add_argument("--service-name", help="LoadBalancer service name")
    parser.add_argument("--replicas", type=int, help="Deployment replica count")
    parser.add_argument("--container-port", type=int, help="Container port")
    parser.add_argument("--exposed-port", type=int, help="Service port exposed by the load balancer")
    parser.add_argument("--image", help="Application image reference")
    parser.add_argument("--migration-image", help="Migration job image reference")
    parser.add_argument(
        "--allocate-node-port",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Allocate node ports for the load balancer",
    )
    parser.add_argument(
        "--deploy-service",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Create or update the LoadBalancer service",
    )
    parser.add_argument(
        "--skip-migration",
        action="store_true",
        help="Do not dispatch the migration job",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kubeinit",
        description="Reconcile the migration job, deployment and load balancer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kubeinit reconcile -n infra --image ghcr.io/org/app:v1.2.0   # One pass
  kubeinit reconcile --in-cluster --no-deploy-service          # Inside a pod
  kubeinit watch -c kubeinit.yaml -i 60                        # Repeat every 60s
  kubeinit pods -n default --pod example-xxxxx                 # Pod inventory
  kubeinit bump v1.0.13 --increment minor                      # Prints v1.1.0
        """,
    )
    parser.add_argument(
        "--format",
        "-f",
        choices=["text", "json"],
        default="text",
        help="Output format",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # reconcile command
    reconcile_parser = subparsers.add_parser("reconcile", help="Run one reconciliation pass")
    add_cluster_arguments(reconcile_parser)
    add_workload_arguments(reconcile_parser)
    reconcile_parser.set_defaults(func=cmd_reconcile)

    # watch command
    watch_parser = subparsers.add_parser("watch", help="Reconcile repeatedly on an interval")
    add_cluster_arguments(watch_parser)
    add_workload_arguments(watch_parser)
    watch_parser.add_argument(
        "-i",
        "--interval",
        type=int,
        default=30,
        help="Seconds between passes (default: 30)",
    )
    watch_parser.add_argument(
        "--max-passes",
        type=int,
        default=0,
        help="Stop after this many passes (default: run until interrupted)",
    )
    watch_parser.set_defaults(func=cmd_watch)

    # pods command
    pods_parser = subparsers.add_parser("pods", help="Count pods in a namespace")
    add_cluster_arguments(pods_parser)
    pods_parser.add_argument("--pod", help="Also check whether this pod exists")
    pods_parser.set_defaults(func=cmd_pods)

    # bump command
    bump_parser = subparsers.add_parser("bump", help="Bump a vMAJOR.MINOR.PATCH version")
    bump_parser.add_argument("version", help="Current version, e.g. v1.0.13")
    bump_parser.add_argument(
        "--increment",
        default="patch",
        help=f"Part to increment: {', '.join(INCREMENTS)}; any other value bumps patch (default: patch)",
    )
    bump_parser.set_defaults(func=cmd_bump)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
