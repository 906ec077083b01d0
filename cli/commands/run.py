"""
Run command: start the kopf operator
"""

import os
from typing import List, Optional

import kopf
import typer

from podsync.logging_config import setup_logging


def run_command(
    namespace: Optional[List[str]] = typer.Option(
        None,
        "--namespace",
        "-n",
        help="Virtual namespace to watch (repeatable); all namespaces when omitted",
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Overrides PODSYNC_LOG_LEVEL"),
    liveness: Optional[str] = typer.Option(
        None,
        "--liveness",
        help="Liveness endpoint, e.g. http://0.0.0.0:8081/healthz",
    ),
):
    """
    Run the pod syncer.

    Examples:
        podsync run
        podsync run -n tenant-a -n tenant-b
    """
    if log_level:
        # the startup handler configures logging again from the env
        os.environ["PODSYNC_LOG_LEVEL"] = log_level
    setup_logging()

    # registers the kopf handlers
    import vpod_operator.main  # noqa: F401

    kopf.run(
        standalone=True,
        clusterwide=not namespace,
        namespaces=namespace or [],
        liveness_endpoint=liveness,
    )
