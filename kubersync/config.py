"""Cluster connection configuration.

Resolves where the API server is and how to authenticate against it, in the
same order client-go's ``BuildConfigFromFlags`` does:

1. ``--kubeconfig`` given: load that file (``--master`` overrides its server).
2. only ``--master`` given: talk to that URL without credentials.
3. neither given: use the in-cluster service account, falling back to
   ``$KUBECONFIG`` or ``~/.kube/config``.
"""

import base64
import logging
import os
import ssl
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .exceptions import KubeConfigError

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
DEFAULT_KUBECONFIG = Path.home() / ".kube" / "config"


@dataclass
class ClusterConfig:
    """Connection settings for a single API server."""

    server: str
    """Base URL of the API server, e.g. https://10.0.0.1:6443"""

    token: Optional[str] = None
    """Bearer token"""

    ca_file: Optional[str] = None
    """Path to a PEM bundle used to verify the server"""

    ca_data: Optional[str] = None
    """PEM bundle used to verify the server (inline form)"""

    client_cert_file: Optional[str] = None
    """Path to the client certificate for mutual TLS"""

    client_key_file: Optional[str] = None
    """Path to the client key for mutual TLS"""

    insecure: bool = False
    """Skip server certificate verification"""

    namespace: Optional[str] = None
    """Namespace of the selected context, if any"""

    temp_files: list[str] = field(default_factory=list, repr=False)
    """Credential files decoded from inline kubeconfig data, removed by cleanup()"""

    def __post_init__(self) -> None:
        self.server = self.server.rstrip("/")

    @property
    def verify(self) -> Union[bool, str, ssl.SSLContext]:
        """TLS verification setting in the form httpx expects."""
        if self.insecure:
            return False
        if self.ca_data:
            return ssl.create_default_context(cadata=self.ca_data)
        if self.ca_file:
            return ssl.create_default_context(cafile=self.ca_file)
        return True

    @property
    def cert(self) -> Optional[tuple[str, str]]:
        """Client certificate pair for httpx, if configured."""
        if self.client_cert_file and self.client_key_file:
            return (self.client_cert_file, self.client_key_file)
        return None

    @property
    def headers(self) -> dict[str, str]:
        """Default request headers."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def cleanup(self) -> None:
        """Remove credential files written for inline kubeconfig data."""
        while self.temp_files:
            path = self.temp_files.pop()
            try:
                os.unlink(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Cannot remove temporary credential {path}: {e}")


def _materialize(data: str, suffix: str) -> str:
    """Write base64 inline credential data to a private temp file."""
    fd, path = tempfile.mkstemp(prefix="kubersync-", suffix=suffix)
    with os.fdopen(fd, "wb") as f:
        f.write(base64.b64decode(data))
    return path


def _named(items: list[dict[str, Any]], name: str, kind: str) -> dict[str, Any]:
    for item in items or []:
        if item.get("name") == name:
            return item.get(kind) or {}
    raise KubeConfigError(f"{kind} {name!r} not found in kubeconfig")


def _relative_to(base: Path, value: Optional[str]) -> Optional[str]:
    """Resolve file references in a kubeconfig relative to its directory."""
    if not value:
        return None
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = base / path
    return str(path)


def load_kubeconfig(
    path: Union[str, Path], context: Optional[str] = None
) -> ClusterConfig:
    """Load a kubeconfig file.

    Args:
        path: Path to the kubeconfig YAML file
        context: Context to use (defaults to ``current-context``)

    Returns:
        ClusterConfig for the selected context

    Raises:
        KubeConfigError: If the file is missing or malformed
    """
    path = Path(path).expanduser()
    try:
        with open(path, encoding="utf-8") as f:
            doc = yaml.safe_load(f) or {}
    except OSError as e:
        raise KubeConfigError(f"Cannot read kubeconfig {path}: {e}") from e
    except yaml.YAMLError as e:
        raise KubeConfigError(f"Invalid kubeconfig {path}: {e}") from e

    if not isinstance(doc, dict):
        raise KubeConfigError(f"Invalid kubeconfig {path}: not a mapping")

    context_name = context or doc.get("current-context")
    if not context_name:
        raise KubeConfigError(f"No current-context set in kubeconfig {path}")

    ctx = _named(doc.get("contexts", []), context_name, "context")
    cluster = _named(doc.get("clusters", []), ctx.get("cluster", ""), "cluster")
    user: dict[str, Any] = {}
    if ctx.get("user"):
        user = _named(doc.get("users", []), ctx["user"], "user")

    server = cluster.get("server")
    if not server:
        raise KubeConfigError(f"Cluster {ctx.get('cluster')!r} has no server")

    base = path.parent
    token = user.get("token")
    token_file = _relative_to(base, user.get("tokenFile"))
    if not token and token_file:
        try:
            token = Path(token_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise KubeConfigError(f"Cannot read token file {token_file}: {e}") from e

    ca_data = None
    if cluster.get("certificate-authority-data"):
        ca_data = base64.b64decode(cluster["certificate-authority-data"]).decode("ascii")

    temp_files: list[str] = []
    cert_file = _relative_to(base, user.get("client-certificate"))
    if user.get("client-certificate-data"):
        cert_file = _materialize(user["client-certificate-data"], ".crt")
        temp_files.append(cert_file)
    key_file = _relative_to(base, user.get("client-key"))
    if user.get("client-key-data"):
        key_file = _materialize(user["client-key-data"], ".key")
        temp_files.append(key_file)

    return ClusterConfig(
        server=server,
        token=token,
        ca_file=_relative_to(base, cluster.get("certificate-authority")),
        ca_data=ca_data,
        client_cert_file=cert_file,
        client_key_file=key_file,
        insecure=bool(cluster.get("insecure-skip-tls-verify", False)),
        namespace=ctx.get("namespace"),
        temp_files=temp_files,
    )


def load_incluster_config(
    service_account_dir: Optional[Path] = None,
) -> ClusterConfig:
    """Build a config from the pod's service account.

    Raises:
        KubeConfigError: If not running inside a cluster
    """
    host = os.environ.get("KUBERNETES_SERVICE_HOST")
    port = os.environ.get("KUBERNETES_SERVICE_PORT")
    if not host or not port:
        raise KubeConfigError(
            "Not running in a cluster: KUBERNETES_SERVICE_HOST/PORT are not set"
        )

    if service_account_dir is None:
        service_account_dir = SERVICE_ACCOUNT_DIR

    token_path = service_account_dir / "token"
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise KubeConfigError(f"Cannot read service account token: {e}") from e

    namespace = None
    ns_path = service_account_dir / "namespace"
    if ns_path.exists():
        namespace = ns_path.read_text(encoding="utf-8").strip()

    ca_path = service_account_dir / "ca.crt"
    if ":" in host:
        host = f"[{host}]"
    return ClusterConfig(
        server=f"https://{host}:{port}",
        token=token,
        ca_file=str(ca_path) if ca_path.exists() else None,
        namespace=namespace,
    )


def build_config_from_flags(
    master: Optional[str] = None, kubeconfig: Optional[str] = None
) -> ClusterConfig:
    """Resolve the cluster config from the command line flags.

    Args:
        master: API server URL, overrides the kubeconfig server
        kubeconfig: Path to a kubeconfig file

    Returns:
        ClusterConfig ready to hand to KubeClient

    Raises:
        KubeConfigError: If no usable configuration is found
    """
    if kubeconfig:
        cfg = load_kubeconfig(kubeconfig)
        if master:
            cfg.server = master.rstrip("/")
        return cfg

    if master:
        return ClusterConfig(server=master)

    logger.warning(
        "Neither --kubeconfig nor --master was specified. "
        "Using the in-cluster config."
    )
    try:
        return load_incluster_config()
    except KubeConfigError as e:
        logger.debug(f"In-cluster config unavailable: {e}")

    fallback = os.environ.get("KUBECONFIG")
    if fallback:
        # KUBECONFIG may list several files; the first one wins here
        return load_kubeconfig(fallback.split(os.pathsep)[0])
    if DEFAULT_KUBECONFIG.exists():
        return load_kubeconfig(DEFAULT_KUBECONFIG)

    raise KubeConfigError(
        "No cluster configuration found: pass --kubeconfig or --master, "
        "or run inside a cluster"
    )
