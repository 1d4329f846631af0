"""CLI interface for kubersync."""

import logging
import signal
from pathlib import Path
from typing import Any, Optional

import click

from . import __version__
from .api import KubeClient
from .config import build_config_from_flags
from .exceptions import KubeConfigError, KubersyncError
from .output import OutputFormatter
from .sync import SecretInformer, SyncEngine
from .sync.engine import STOP_SECRET_DELETED
from .utils import DEFAULT_RESYNC_PERIOD, DIR_MODE

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("kubersync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _install_signal_handlers(engine: SyncEngine) -> dict[int, Any]:
    """Stop the engine on SIGINT/SIGTERM. Returns the previous handlers."""

    def handler(signum: int, frame: Any) -> None:
        logger.debug(f"Received signal {signum}")
        engine.stop()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, handler)
    return previous


def _restore_signal_handlers(previous: dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)


@click.command()
@click.option(
    "--kubeconfig",
    type=click.Path(dir_okay=False),
    help="Absolute path to the kubeconfig file",
)
@click.option("--master", help="Kubernetes API server URL")
@click.option(
    "--namespace",
    "-n",
    envvar="KUBERSYNC_NAMESPACE",
    default="default",
    show_default=True,
    help="The kubernetes namespace",
)
@click.option("--secret", "-s", envvar="KUBERSYNC_SECRET", help="The name of the secret")
@click.option(
    "--path",
    "-p",
    "local_path",
    envvar="KUBERSYNC_PATH",
    help="The local directory mirroring the secret",
)
@click.option(
    "--resync-period",
    type=float,
    default=DEFAULT_RESYNC_PERIOD,
    show_default=True,
    help="Seconds between full re-deliveries of the secret (0 disables)",
)
@click.option(
    "--sync-timeout",
    type=float,
    default=None,
    help="Seconds to wait for the initial sync (default: wait forever)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    kubeconfig: Optional[str],
    master: Optional[str],
    namespace: str,
    secret: Optional[str],
    local_path: Optional[str],
    resync_period: float,
    sync_timeout: Optional[float],
    quiet: bool,
    json_output: bool,
    verbose: bool,
) -> None:
    """Kubersync - mirror a Kubernetes Secret to a local directory and back.

    Every key of the secret becomes a file under PATH (keys may contain
    slashes to create subdirectories). Changes to the secret are written to
    disk, and changes to files under PATH are written back to the secret.

    Examples:
        kubersync --secret app-config --path /etc/app
        kubersync -n prod -s tls --path ./tls --kubeconfig ~/.kube/config
    """
    out = OutputFormatter(json_output=json_output, quiet=quiet)
    _configure_logging(verbose)

    if not secret:
        out.error("You must specify a secret object")
        ctx.exit(1)
    if not local_path:
        out.error("You must specify a local path")
        ctx.exit(1)

    root = Path(local_path)
    if root.exists() and not root.is_dir():
        out.error(f"Path is not a directory: {local_path}")
        ctx.exit(1)
    try:
        root.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
    except OSError as e:
        out.error(f"Cannot create {local_path}: {e}")
        ctx.exit(1)

    try:
        config = build_config_from_flags(master, kubeconfig)
    except KubeConfigError as e:
        out.error(f"cannot create k8s config: {e}")
        ctx.exit(1)
        return  # Unreachable, but helps type checker

    client = KubeClient(config)
    informer = SecretInformer(
        client,
        namespace,
        field_selector=f"metadata.name={secret}",
        resync_period=resync_period,
    )
    engine = SyncEngine(client, informer, root, namespace, secret, output=out)

    previous = _install_signal_handlers(engine)
    try:
        try:
            engine.start(timeout=sync_timeout)
        except KubersyncError as e:
            if engine.state.stop_reason == "shutdown":
                # interrupted while waiting for the initial sync
                return
            engine.stop("startup failed")
            out.error(str(e))
            ctx.exit(1)

        while not engine.wait(0.5):
            pass
    finally:
        _restore_signal_handlers(previous)
        engine.stop()
        client.close()

    if engine.state.stop_reason == STOP_SECRET_DELETED:
        ctx.exit(1)
