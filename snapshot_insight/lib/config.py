"""Configuration dataclasses for certificate issuance and container workflows."""

from dataclasses import dataclass

from cryptography import x509
from cryptography.x509 import oid


@dataclass
class IssuerConfig:
    """Certificate issuance settings for the ephemeral API server CA."""

    organization: str = "Kubernetes"
    ca_common_name: str = "Kubernetes CA"
    client_common_name: str = "Kubernetes Client"
    validity_days: int = 365


@dataclass
class RuntimeConfig:
    """Images, names and server flags used by the snapshot workflows."""

    etcd_image: str = "quay.io/coreos/etcd:v3.5.7"
    apiserver_image: str = "registry.k8s.io/kube-apiserver:v1.27.1"
    helper_image: str = "alpine"
    restore_container: str = "snapshot-insight-restore"
    etcd_container: str = "snapshot-insight-etcd"
    apiserver_container: str = "snapshot-insight-apiserver"
    data_volume: str = "snapshot-insight-etcd-data"
    cert_volume: str = "snapshot-insight-certs"
    cert_dir: str = "/certs"
    etcd_data_dir: str = "/etcd-data"
    etcd_member_name: str = "restored-etcd"
    etcd_client_port: int = 2379
    etcd_peer_port: int = 2380
    apiserver_secure_port: int = 6443
    service_cluster_ip_range: str = "10.96.0.0/12"
    service_account_issuer: str = "https://kubernetes.default.svc.cluster.local"
    encryption_config_target: str = "/etc/kubernetes/encryption-config.json"
    apiserver_verbosity: int = 2


@dataclass
class DistinguishedName:
    """X.509 Subject Distinguished Name."""

    organization: str
    common_name: str

    def to_x509_name(self) -> x509.Name:
        """Convert to cryptography x509.Name for certificate generation."""
        return x509.Name(
            [
                x509.NameAttribute(oid.NameOID.ORGANIZATION_NAME, self.organization),
                x509.NameAttribute(oid.NameOID.COMMON_NAME, self.common_name),
            ]
        )
