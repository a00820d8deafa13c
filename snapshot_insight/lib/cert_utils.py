"""Certificate utility functions for key generation, serialization, and inspection."""

import time
from ipaddress import IPv4Address, IPv6Address

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey

from .errors import EntropyFailureError, MalformedInputError

# Fixed CA serial; leaf serials are timestamps and can never collide with it
CA_SERIAL_NUMBER = 1


def generate_key_pair(curve: ec.EllipticCurve | None = None) -> EllipticCurvePrivateKey:
    """Generate an EC private key on the given curve (P-256 by default).

    Raises:
        EntropyFailureError: If the crypto backend fails to produce a key
    """
    curve = curve or ec.SECP256R1()
    try:
        return ec.generate_private_key(curve)
    except Exception as e:
        raise EntropyFailureError(f"failed to generate {curve.name} key pair: {e}") from e


def serialize_private_key(key: EllipticCurvePrivateKey) -> bytes:
    """Serialize private key to PEM format (SEC1 EC PRIVATE KEY, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def deserialize_private_key(pem_data: bytes) -> EllipticCurvePrivateKey:
    """Deserialize EC private key from PEM bytes."""
    try:
        key = serialization.load_pem_private_key(pem_data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise MalformedInputError(f"invalid private key PEM: {e}") from e
    if not isinstance(key, EllipticCurvePrivateKey):
        raise MalformedInputError("expected EC private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize certificate from PEM bytes."""
    try:
        return x509.load_pem_x509_certificate(pem_data)
    except ValueError as e:
        raise MalformedInputError(f"invalid certificate PEM: {e}") from e


def generate_leaf_serial() -> int:
    """Generate a leaf certificate serial from the current time.

    Nanoseconds since the epoch: distinct across repeated issuances, always
    far above CA_SERIAL_NUMBER, and well within the 20-octet serial limit.
    Not cryptographically unique; each run issues into a fresh volume.
    """
    return time.time_ns()


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def get_certificate_ip_addresses(cert: x509.Certificate) -> list[IPv4Address | IPv6Address]:
    """Return the IP addresses listed in the certificate's SAN extension."""
    try:
        san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    except x509.ExtensionNotFound:
        return []
    return san.value.get_values_for_type(x509.IPAddress)


def validate_certificate_chain(leaf_cert: x509.Certificate, ca_cert: x509.Certificate) -> bool:
    """Verify leaf certificate signature against the CA certificate.

    Returns True if the leaf was directly issued by the CA, False otherwise.
    """
    try:
        leaf_cert.verify_directly_issued_by(ca_cert)
        return True
    except Exception:
        return False
