"""CLI entrypoint for the rollout gate."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from rollout_gate import __version__
from rollout_gate.cluster import KubeCluster
from rollout_gate.config import get_settings
from rollout_gate.errors import HealthCheckError
from rollout_gate.probe import HealthChecker, print_report
from rollout_gate.waiter import Waiter


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Rollout gate: block a StatefulSet rolling restart until under-replicated ranges reach zero.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--replica-index",
        "-r",
        type=int,
        default=None,
        help="Index of the replica that was just restarted (required unless --check-only)",
    )
    parser.add_argument(
        "--statefulset",
        default=None,
        help="StatefulSet to gate (default: from env or 'cockroachdb')",
    )
    parser.add_argument(
        "--namespace",
        "-n",
        default=None,
        help="Kubernetes namespace of the StatefulSet (default: from env or 'default')",
    )
    parser.add_argument(
        "--kubeconfig",
        type=Path,
        default=None,
        help="Path to kubeconfig (default: KUBECONFIG env or ~/.kube/config)",
    )
    parser.add_argument(
        "--context",
        default=None,
        help="Kubernetes context to use",
    )
    parser.add_argument(
        "--http-port",
        type=int,
        default=None,
        help="Port serving /_status/vars (default: from env or 8080)",
    )
    parser.add_argument(
        "--label",
        default="",
        help="Label prefixed to log lines, e.g. the rollout or cluster name",
    )
    parser.add_argument(
        "--check-only",
        action="store_true",
        help="Run a single fleet sweep and report it; no readiness wait or retries",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    args = parser.parse_args(argv)
    if args.replica_index is None and not args.check_only:
        parser.error("--replica-index is required unless --check-only is given")
    return args


def main(argv: list[str] | None = None) -> int:
    """Entrypoint for rollout-gate CLI. Exit 0: proceed, 1: halt the rollout, 2: unexpected error."""
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True)],
    )
    logger = logging.getLogger("rollout_gate")
    if not args.verbose:
        logger.setLevel(logging.WARNING)

    cancel = threading.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, lambda *_: cancel.set())
    console = Console()

    try:
        settings = get_settings()
        if args.kubeconfig:
            settings.kubeconfig = args.kubeconfig
        if args.context:
            settings.context = args.context
        if args.namespace:
            settings.namespace = args.namespace
        if args.statefulset:
            settings.statefulset = args.statefulset
        if args.http_port:
            settings.http_port = args.http_port

        waiter = Waiter(cancel)
        cluster = KubeCluster(settings, waiter)
        checker = HealthChecker(cluster, cluster, cluster, settings=settings, waiter=waiter)

        if args.check_only:
            result = checker.sweep(cluster.topology())
            console.print(f"[bold]{result.status.value}[/bold]: {result.describe()}")
            return 0 if result.ok else 1

        report = checker.probe(args.replica_index, label=args.label)
        print_report(report, console)
        return 0
    except HealthCheckError as e:
        logger.error("Rollout must not proceed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logging.exception("Rollout gate failed")
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
