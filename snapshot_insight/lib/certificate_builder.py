"""Certificate builder for X.509 certificate construction."""

from datetime import datetime, timedelta, timezone
from ipaddress import IPv4Address, IPv6Address

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
)
from cryptography.x509.oid import ExtendedKeyUsageOID

from .cert_utils import CA_SERIAL_NUMBER, generate_leaf_serial
from .config import DistinguishedName
from .models import CertificateTemplate

KEY_USAGE_FIELDS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
    "encipher_only",
    "decipher_only",
)

CA_KEY_USAGE = frozenset({"key_cert_sign", "digital_signature"})
CLIENT_KEY_USAGE = frozenset({"digital_signature", "key_encipherment"})


class CertificateBuilder:
    """Builds the self-signed CA and CA-signed client certificates."""

    @staticmethod
    def ca_template(
        subject_dn: DistinguishedName,
        ip_addresses: list[IPv4Address | IPv6Address],
        validity_days: int,
    ) -> CertificateTemplate:
        """Build the CA certificate template.

        Args:
            subject_dn: Distinguished name for certificate subject
            ip_addresses: SAN IP addresses the certificate is valid for
            validity_days: Certificate validity period in days

        Returns:
            Template with CA basic constraints and cert-sign key usage
        """
        not_before = datetime.now(timezone.utc)
        return CertificateTemplate(
            serial_number=CA_SERIAL_NUMBER,
            subject=subject_dn,
            not_before=not_before,
            not_after=not_before + timedelta(days=validity_days),
            is_ca=True,
            key_usage=CA_KEY_USAGE,
            ip_addresses=tuple(ip_addresses),
        )

    @staticmethod
    def client_template(
        subject_dn: DistinguishedName,
        ip_addresses: list[IPv4Address | IPv6Address],
        validity_days: int,
    ) -> CertificateTemplate:
        """Build the client certificate template.

        Args:
            subject_dn: Distinguished name for certificate subject
            ip_addresses: SAN IP addresses the certificate is valid for
            validity_days: Certificate validity period in days

        Returns:
            End-entity template restricted to client authentication
        """
        not_before = datetime.now(timezone.utc)
        return CertificateTemplate(
            serial_number=generate_leaf_serial(),
            subject=subject_dn,
            not_before=not_before,
            not_after=not_before + timedelta(days=validity_days),
            is_ca=False,
            key_usage=CLIENT_KEY_USAGE,
            extended_key_usage=(ExtendedKeyUsageOID.CLIENT_AUTH,),
            ip_addresses=tuple(ip_addresses),
        )

    @staticmethod
    def create_certificate(
        template: CertificateTemplate,
        issuer_template: CertificateTemplate,
        subject_public_key: EllipticCurvePublicKey,
        issuer_private_key: EllipticCurvePrivateKey,
    ) -> x509.Certificate:
        """Sign a certificate for template, issued by issuer_template.

        For a self-signed CA pass the same template twice, with the private key
        whose public half is subject_public_key. The issuer key is not checked
        against the issuer template.

        Args:
            template: Content of the certificate being issued
            issuer_template: Template of the issuing certificate (issuer name source)
            subject_public_key: Public key embedded in the new certificate
            issuer_private_key: Private key used to sign

        Returns:
            Signed X.509 certificate (ECDSA with SHA-256)
        """
        builder = (
            x509.CertificateBuilder()
            .subject_name(template.subject.to_x509_name())
            .issuer_name(issuer_template.subject.to_x509_name())
            .public_key(subject_public_key)
            .serial_number(template.serial_number)
            .not_valid_before(template.not_before)
            .not_valid_after(template.not_after)
            .add_extension(
                x509.BasicConstraints(ca=template.is_ca, path_length=None),
                critical=True,
            )
            .add_extension(
                x509.KeyUsage(**{name: name in template.key_usage for name in KEY_USAGE_FIELDS}),
                critical=True,
            )
        )

        if template.extended_key_usage:
            builder = builder.add_extension(
                x509.ExtendedKeyUsage(list(template.extended_key_usage)),
                critical=False,
            )

        if template.ip_addresses:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.IPAddress(ip) for ip in template.ip_addresses]),
                critical=False,
            )

        return builder.sign(issuer_private_key, hashes.SHA256())
