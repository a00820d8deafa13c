"""Kubeconfig document model, validation, and materialization."""

import base64
import binascii
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Protocol, TypedDict
from urllib.parse import urlparse

import yaml

from . import pem_codec
from .ca_manager import CA_CERT_FILE, CLIENT_CERT_FILE, CLIENT_FACING_FILES, CLIENT_KEY_FILE
from .cert_utils import deserialize_certificate, validate_certificate_chain
from .container_runtime import ContainerRuntime
from .errors import ArtifactUnavailableError, ExternalProcessFailureError, MalformedInputError
from .logging_config import LOGGER
from .models import KubeconfigResult

CLUSTER_NAME = "kubernetes"
CONTEXT_NAME = "kubernetes"
USER_NAME = "admin"

EXPECTED_BLOCK_TYPES = {
    CA_CERT_FILE: pem_codec.CERTIFICATE,
    CLIENT_CERT_FILE: pem_codec.CERTIFICATE,
    CLIENT_KEY_FILE: pem_codec.EC_PRIVATE_KEY,
}

ClusterInfo = TypedDict(
    "ClusterInfo",
    {
        "server": str,
        "certificate-authority-data": str,
    },
)


class NamedCluster(TypedDict):
    name: str
    cluster: ClusterInfo


class ContextInfo(TypedDict):
    cluster: str
    user: str


class NamedContext(TypedDict):
    name: str
    context: ContextInfo


UserInfo = TypedDict(
    "UserInfo",
    {
        "client-certificate-data": str,
        "client-key-data": str,
    },
)


class NamedUser(TypedDict):
    name: str
    user: UserInfo


Kubeconfig = TypedDict(
    "Kubeconfig",
    {
        "apiVersion": str,
        "kind": str,
        "clusters": list[NamedCluster],
        "contexts": list[NamedContext],
        "current-context": str,
        "users": list[NamedUser],
    },
)


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def build_kubeconfig(
    server_url: str, ca_cert: bytes, client_cert: bytes, client_key: bytes
) -> Kubeconfig:
    """Build a single-cluster kubeconfig with embedded base64 credentials."""
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [
            {
                "name": CLUSTER_NAME,
                "cluster": {
                    "server": server_url,
                    "certificate-authority-data": _b64(ca_cert),
                },
            }
        ],
        "contexts": [
            {
                "name": CONTEXT_NAME,
                "context": {"cluster": CLUSTER_NAME, "user": USER_NAME},
            }
        ],
        "current-context": CONTEXT_NAME,
        "users": [
            {
                "name": USER_NAME,
                "user": {
                    "client-certificate-data": _b64(client_cert),
                    "client-key-data": _b64(client_key),
                },
            }
        ],
    }


def _check_base64(field: str, value: str) -> None:
    if not value:
        raise MalformedInputError(f"kubeconfig field {field} is empty")
    try:
        base64.b64decode(value, validate=True)
    except binascii.Error as e:
        raise MalformedInputError(f"kubeconfig field {field} is not valid base64: {e}") from e


def validate_kubeconfig(doc: Kubeconfig) -> None:
    """Check document shape and cross-references before serialization.

    Raises:
        MalformedInputError: On the first violation found
    """
    if doc.get("apiVersion") != "v1" or doc.get("kind") != "Config":
        raise MalformedInputError("kubeconfig must be apiVersion v1, kind Config")

    clusters = {entry["name"] for entry in doc.get("clusters", [])}
    users = {entry["name"] for entry in doc.get("users", [])}
    contexts = {entry["name"]: entry["context"] for entry in doc.get("contexts", [])}

    for entry in doc.get("clusters", []):
        cluster = entry["cluster"]
        parsed = urlparse(cluster.get("server", ""))
        if not parsed.scheme or not parsed.hostname:
            raise MalformedInputError(
                f"cluster {entry['name']} has invalid server URL {cluster.get('server')!r}"
            )
        _check_base64("certificate-authority-data", cluster.get("certificate-authority-data", ""))

    for entry in doc.get("users", []):
        user = entry["user"]
        _check_base64("client-certificate-data", user.get("client-certificate-data", ""))
        _check_base64("client-key-data", user.get("client-key-data", ""))

    for name, context in contexts.items():
        if context.get("cluster") not in clusters:
            raise MalformedInputError(f"context {name} references unknown cluster")
        if context.get("user") not in users:
            raise MalformedInputError(f"context {name} references unknown user")

    if doc.get("current-context") not in contexts:
        raise MalformedInputError(
            f"current-context {doc.get('current-context')!r} does not name a context"
        )


def check_credentials(artifacts: dict[str, bytes]) -> None:
    """Check fetched files hold the expected PEM blocks and client.crt chains to ca.crt.

    Raises:
        MalformedInputError: On a wrong block type, unparseable certificate, or broken chain
    """
    for name, expected in EXPECTED_BLOCK_TYPES.items():
        block = pem_codec.decode(artifacts[name])
        if block.block_type != expected:
            raise MalformedInputError(f"{name} holds a {block.block_type} block, expected {expected}")

    ca_cert = deserialize_certificate(artifacts[CA_CERT_FILE])
    client_cert = deserialize_certificate(artifacts[CLIENT_CERT_FILE])
    if not validate_certificate_chain(client_cert, ca_cert):
        raise MalformedInputError(f"{CLIENT_CERT_FILE} was not issued by {CA_CERT_FILE}")


def render_kubeconfig(doc: Kubeconfig) -> str:
    """Serialize a kubeconfig document as YAML."""
    return yaml.safe_dump(dict(doc), default_flow_style=False, sort_keys=False)


class ArtifactSource(Protocol):
    """Somewhere the client-facing credential files can be fetched from."""

    def fetch(self, name: str, destination: Path) -> None:
        """Copy artifact `name` to destination, raising ArtifactUnavailableError."""
        ...


class ContainerArtifactSource:
    """Credentials inside a running container, retrieved with the runtime's copy."""

    def __init__(self, runtime: ContainerRuntime, container_name: str, cert_dir: str = "/certs"):
        self.runtime = runtime
        self.container_name = container_name
        self.cert_dir = cert_dir

    def fetch(self, name: str, destination: Path) -> None:
        container_path = f"{self.cert_dir.rstrip('/')}/{name}"
        try:
            self.runtime.copy_file_out(self.container_name, container_path, destination)
        except ExternalProcessFailureError as e:
            raise ArtifactUnavailableError(str(e)) from e
        if not destination.is_file():
            raise ArtifactUnavailableError(
                f"{container_path} was not copied from container {self.container_name}"
            )


class DirectoryArtifactSource:
    """Credentials in a local directory (e.g. the CA issuance output)."""

    def __init__(self, path: Path):
        self.path = path

    def fetch(self, name: str, destination: Path) -> None:
        source = self.path / name
        try:
            shutil.copyfile(source, destination)
        except OSError as e:
            raise ArtifactUnavailableError(f"cannot read {source}: {e}") from e


class KubeconfigMaterializer:
    """Renders a kubeconfig from the CA and client credentials."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or LOGGER

    def materialize(
        self, server_url: str, source: ArtifactSource, output_path: Path
    ) -> KubeconfigResult:
        """Fetch ca.crt, client.crt and client.key and write a kubeconfig.

        Nothing is written unless all three artifacts were retrieved and the
        document validates. The CA private key is never read.

        Args:
            server_url: API server URL, e.g. https://10.0.0.5:6443
            source: Where to fetch the credential files from
            output_path: Destination for the kubeconfig (mode 0600)

        Returns:
            KubeconfigResult with the written path

        Raises:
            ArtifactUnavailableError: If any of the three files cannot be retrieved or is empty
            MalformedInputError: If the credentials or rendered document fail validation
        """
        with tempfile.TemporaryDirectory(prefix="kubeconfig-certs") as temp:
            temp_dir = Path(temp)
            artifacts = {}
            for name in CLIENT_FACING_FILES:
                local_path = temp_dir / name
                source.fetch(name, local_path)
                data = local_path.read_bytes()
                if not data:
                    raise ArtifactUnavailableError(f"retrieved {name} is empty")
                artifacts[name] = data

        check_credentials(artifacts)

        doc = build_kubeconfig(
            server_url=server_url,
            ca_cert=artifacts[CA_CERT_FILE],
            client_cert=artifacts[CLIENT_CERT_FILE],
            client_key=artifacts[CLIENT_KEY_FILE],
        )
        validate_kubeconfig(doc)
        rendered = render_kubeconfig(doc)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(output_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(rendered)
        os.chmod(output_path, 0o600)

        self.logger.info("Kubeconfig generated at: %s", output_path)
        return KubeconfigResult(path=output_path, server_url=server_url)
