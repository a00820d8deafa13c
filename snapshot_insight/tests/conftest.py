"""Test fixtures for snapshot_insight tests."""

import ipaddress
import logging
import shutil
from collections.abc import Sequence
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey

from snapshot_insight.lib.ca_manager import CAManager
from snapshot_insight.lib.cert_utils import generate_key_pair
from snapshot_insight.lib.certificate_builder import CertificateBuilder
from snapshot_insight.lib.config import DistinguishedName, IssuerConfig, RuntimeConfig
from snapshot_insight.lib.container_runtime import ContainerRuntime, Mount
from snapshot_insight.lib.errors import ExternalProcessFailureError
from snapshot_insight.lib.models import CertificateTemplate, IssuanceResult

HOST_IP = "10.0.0.5"


class FakeRuntime(ContainerRuntime):
    """In-memory ContainerRuntime that records every call.

    copy_file_out serves files from `container_files` (keyed by container
    path); copy_files_in copies into `volumes[volume_name]`. Set `fail_on`
    to a method name to make that method raise ExternalProcessFailureError.
    """

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.container_files: dict[str, Path] = {}
        self.volumes: dict[str, dict[str, bytes]] = {}
        self.fail_on: set[str] = set()

    def _record(self, method: str, *args, **kwargs) -> None:
        self.calls.append((method, args, kwargs))
        if method in self.fail_on:
            raise ExternalProcessFailureError(f"{method} failed: simulated error", stderr="simulated error")

    def methods(self) -> list[str]:
        return [call[0] for call in self.calls]

    def pull_image(self, ref: str) -> None:
        self._record("pull_image", ref)

    def remove_container(self, name: str) -> None:
        self.calls.append(("remove_container", (name,), {}))

    def create_volume(self, name: str) -> None:
        self._record("create_volume", name)
        self.volumes.setdefault(name, {})

    def remove_volume(self, name: str) -> None:
        self.calls.append(("remove_volume", (name,), {}))
        self.volumes.pop(name, None)

    def run_container(
        self,
        image: str,
        *,
        name: str | None = None,
        mounts: Sequence[Mount] = (),
        args: Sequence[str] = (),
        network_mode: str | None = None,
        detached: bool = False,
        remove: bool = False,
    ) -> str:
        self._record(
            "run_container",
            image,
            name=name,
            mounts=list(mounts),
            args=list(args),
            network_mode=network_mode,
            detached=detached,
            remove=remove,
        )
        return "container-id" if detached else ""

    def copy_file_out(self, container: str, container_path: str, local_path: Path) -> None:
        self._record("copy_file_out", container, container_path, local_path)
        if container_path not in self.container_files:
            raise ExternalProcessFailureError(
                f"failed to copy {container_path} from container {container}: "
                f"Could not find the file {container_path} in container {container}"
            )
        shutil.copyfile(self.container_files[container_path], local_path)

    def copy_files_in(self, source_dir: Path, volume_name: str, target_dir: str) -> None:
        self._record("copy_files_in", source_dir, volume_name, target_dir)
        files = self.volumes.setdefault(volume_name, {})
        for path in source_dir.iterdir():
            files[path.name] = path.read_bytes()


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Return temporary directory for test output artifacts."""
    return tmp_path


@pytest.fixture
def test_logger() -> logging.Logger:
    """Return a propagating logger so caplog can capture component output."""
    logger = logging.getLogger("snapshot_insight_test")
    logger.setLevel(logging.DEBUG)
    return logger


@pytest.fixture
def issuer_config() -> IssuerConfig:
    """Return default issuer configuration."""
    return IssuerConfig()


@pytest.fixture
def runtime_config() -> RuntimeConfig:
    """Return default runtime configuration."""
    return RuntimeConfig()


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    """Return a recording container runtime."""
    return FakeRuntime()


@pytest.fixture
def host_ip() -> ipaddress.IPv4Address:
    return ipaddress.IPv4Address(HOST_IP)


@pytest.fixture
def ca_key() -> EllipticCurvePrivateKey:
    """Generate EC private key for the CA."""
    return generate_key_pair()


@pytest.fixture
def ca_template(host_ip: ipaddress.IPv4Address) -> CertificateTemplate:
    """Return CA certificate template for the test host."""
    return CertificateBuilder.ca_template(
        subject_dn=DistinguishedName(organization="Test Org", common_name="Test CA"),
        ip_addresses=[host_ip],
        validity_days=365,
    )


@pytest.fixture
def ca_cert(ca_template: CertificateTemplate, ca_key: EllipticCurvePrivateKey) -> x509.Certificate:
    """Generate self-signed CA certificate."""
    return CertificateBuilder.create_certificate(
        template=ca_template,
        issuer_template=ca_template,
        subject_public_key=ca_key.public_key(),
        issuer_private_key=ca_key,
    )


@pytest.fixture
def client_key() -> EllipticCurvePrivateKey:
    """Generate EC private key for the client certificate."""
    return generate_key_pair()


@pytest.fixture
def client_template(host_ip: ipaddress.IPv4Address) -> CertificateTemplate:
    """Return client certificate template for the test host."""
    return CertificateBuilder.client_template(
        subject_dn=DistinguishedName(organization="Test Org", common_name="test-client"),
        ip_addresses=[host_ip],
        validity_days=365,
    )


@pytest.fixture
def client_cert(
    client_template: CertificateTemplate,
    ca_template: CertificateTemplate,
    client_key: EllipticCurvePrivateKey,
    ca_key: EllipticCurvePrivateKey,
) -> x509.Certificate:
    """Generate client certificate signed by the CA."""
    return CertificateBuilder.create_certificate(
        template=client_template,
        issuer_template=ca_template,
        subject_public_key=client_key.public_key(),
        issuer_private_key=ca_key,
    )


@pytest.fixture
def issued_credentials(
    temp_output_dir: Path, issuer_config: IssuerConfig, test_logger: logging.Logger
) -> IssuanceResult:
    """Issue a full credential bundle into {temp_dir}/issued."""
    return CAManager(issuer_config, logger=test_logger).issue_ca(temp_output_dir / "issued", HOST_IP)
