"""CA manager for issuing the ephemeral API server credentials."""

import ipaddress
import logging
from ipaddress import IPv4Address, IPv6Address
from pathlib import Path

from .cert_utils import (
    generate_key_pair,
    get_certificate_serial_hex,
    serialize_certificate,
    serialize_private_key,
)
from .certificate_builder import CertificateBuilder
from .config import DistinguishedName, IssuerConfig
from .errors import MalformedInputError
from .logging_config import LOGGER
from .models import IssuanceResult

CA_CERT_FILE = "ca.crt"
CA_KEY_FILE = "ca.key"
CLIENT_CERT_FILE = "client.crt"
CLIENT_KEY_FILE = "client.key"

CREDENTIAL_FILES = (CA_CERT_FILE, CA_KEY_FILE, CLIENT_CERT_FILE, CLIENT_KEY_FILE)
CLIENT_FACING_FILES = (CA_CERT_FILE, CLIENT_CERT_FILE, CLIENT_KEY_FILE)


def parse_host_address(host_address: str) -> IPv4Address | IPv6Address:
    """Parse the IP literal certificates are issued for.

    Raises:
        MalformedInputError: If host_address is not a valid IPv4 or IPv6 literal
    """
    try:
        return ipaddress.ip_address(host_address)
    except ValueError as e:
        raise MalformedInputError(f"invalid host address {host_address!r}: {e}") from e


class CAManager:
    """Certificate Authority manager for ephemeral API server credentials."""

    def __init__(self, config: IssuerConfig, logger: logging.Logger | None = None) -> None:
        """Initialize CA manager with configuration.

        Args:
            config: Issuer configuration with subject names and validity
            logger: Logger for progress messages (defaults to LOGGER)
        """
        self.config = config
        self.logger = logger or LOGGER

    def issue_ca(self, output_dir: Path, host_address: str) -> IssuanceResult:
        """Issue a self-signed CA and a client certificate signed by it.

        Generates, in order:
            - CA private key and self-signed certificate (ca.key, ca.crt)
            - Client private key and certificate signed by the CA (client.key, client.crt)

        Both certificates list host_address in their IP SANs. A failure at any
        step aborts the sequence; files already written are left in place.

        Args:
            output_dir: Directory for the four PEM artifacts (created if missing)
            host_address: IP literal the certificates are valid for

        Returns:
            IssuanceResult with file paths and serial numbers

        Raises:
            MalformedInputError: If host_address is not a valid IP literal
            EntropyFailureError: If key generation fails
        """
        host_ip = parse_host_address(host_address)

        output_dir.mkdir(parents=True, exist_ok=True)

        ca_key = generate_key_pair()
        ca_dn = DistinguishedName(
            organization=self.config.organization,
            common_name=self.config.ca_common_name,
        )
        ca_template = CertificateBuilder.ca_template(
            subject_dn=ca_dn,
            ip_addresses=[host_ip],
            validity_days=self.config.validity_days,
        )
        ca_cert = CertificateBuilder.create_certificate(
            template=ca_template,
            issuer_template=ca_template,
            subject_public_key=ca_key.public_key(),
            issuer_private_key=ca_key,
        )

        ca_cert_path = output_dir / CA_CERT_FILE
        ca_key_path = output_dir / CA_KEY_FILE
        ca_cert_path.write_bytes(serialize_certificate(ca_cert))
        ca_key_path.write_bytes(serialize_private_key(ca_key))
        self.logger.debug("CA certificate written to %s", ca_cert_path)

        client_key = generate_key_pair()
        client_dn = DistinguishedName(
            organization=self.config.organization,
            common_name=self.config.client_common_name,
        )
        client_template = CertificateBuilder.client_template(
            subject_dn=client_dn,
            ip_addresses=[host_ip],
            validity_days=self.config.validity_days,
        )
        client_cert = CertificateBuilder.create_certificate(
            template=client_template,
            issuer_template=ca_template,
            subject_public_key=client_key.public_key(),
            issuer_private_key=ca_key,
        )

        client_cert_path = output_dir / CLIENT_CERT_FILE
        client_key_path = output_dir / CLIENT_KEY_FILE
        client_cert_path.write_bytes(serialize_certificate(client_cert))
        client_key_path.write_bytes(serialize_private_key(client_key))

        self.logger.info(
            "CA and client certificates generated: ca=%s client=%s", ca_cert_path, client_cert_path
        )

        return IssuanceResult(
            ca_cert_path=ca_cert_path,
            ca_key_path=ca_key_path,
            client_cert_path=client_cert_path,
            client_key_path=client_key_path,
            ca_serial=get_certificate_serial_hex(ca_cert),
            client_serial=get_certificate_serial_hex(client_cert),
        )
