"""Data models for certificate issuance and kubeconfig materialization."""

from dataclasses import dataclass, field
from datetime import datetime
from ipaddress import IPv4Address, IPv6Address
from pathlib import Path

from cryptography import x509

from .config import DistinguishedName


@dataclass(frozen=True)
class CertificateTemplate:
    """Logical certificate content before signing.

    key_usage holds x509.KeyUsage field names (e.g. "key_cert_sign");
    any field not listed is set to False.
    """

    serial_number: int
    subject: DistinguishedName
    not_before: datetime
    not_after: datetime
    is_ca: bool = False
    key_usage: frozenset[str] = frozenset()
    extended_key_usage: tuple[x509.ObjectIdentifier, ...] = ()
    ip_addresses: tuple[IPv4Address | IPv6Address, ...] = field(default_factory=tuple)


@dataclass
class IssuanceResult:
    """Result from CA issuance.

    Contains paths to the four credential artifacts and both serial numbers.
    """

    ca_cert_path: Path
    ca_key_path: Path
    client_cert_path: Path
    client_key_path: Path
    ca_serial: str
    client_serial: str


@dataclass
class KubeconfigResult:
    """Result from kubeconfig materialization."""

    path: Path
    server_url: str
