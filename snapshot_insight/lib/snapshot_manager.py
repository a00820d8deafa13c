"""Snapshot workflows: restore, start etcd and kube-apiserver, kubeconfig, cleanup."""

import logging
import subprocess
import tempfile
from pathlib import Path

from .ca_manager import CA_CERT_FILE, CA_KEY_FILE, CAManager, parse_host_address
from .config import IssuerConfig, RuntimeConfig
from .container_runtime import ContainerRuntime, Mount
from .errors import ExternalProcessFailureError, InputNotFoundError
from .kubeconfig import ArtifactSource, ContainerArtifactSource, KubeconfigMaterializer
from .logging_config import LOGGER
from .models import KubeconfigResult
from .relocation import relocate_artifacts

HOST_NETWORK = "host"


def get_host_ip_address() -> str:
    """Return the host's primary IP address (first entry of `hostname -I`).

    Raises:
        ExternalProcessFailureError: If hostname fails or reports no addresses
    """
    command = ["hostname", "-I"]
    try:
        result = subprocess.run(command, capture_output=True, text=True, check=False)
    except OSError as e:
        raise ExternalProcessFailureError(
            f"failed to execute hostname -I: {e}", command=command
        ) from e

    if result.returncode != 0:
        raise ExternalProcessFailureError(
            f"failed to execute hostname -I: {result.stderr.strip()}",
            command=command,
            returncode=result.returncode,
            stderr=result.stderr.strip(),
        )

    addresses = result.stdout.split()
    if not addresses:
        raise ExternalProcessFailureError("no IP addresses found in hostname -I output", command)
    return addresses[0]


class SnapshotManager:
    """Runs the restore/start/cleanup workflows against a container runtime."""

    def __init__(
        self,
        runtime_config: RuntimeConfig,
        issuer_config: IssuerConfig,
        runtime: ContainerRuntime,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize snapshot manager.

        Args:
            runtime_config: Images, container/volume names and server flags
            issuer_config: Certificate issuance settings
            runtime: Container runtime that executes every external action
            logger: Logger for progress messages (defaults to LOGGER)
        """
        self.config = runtime_config
        self.issuer_config = issuer_config
        self.runtime = runtime
        self.logger = logger or LOGGER

    def server_url(self, host_ip: str) -> str:
        """Return the HTTPS URL of the kube-apiserver on host_ip."""
        host = f"[{host_ip}]" if ":" in host_ip else host_ip
        return f"https://{host}:{self.config.apiserver_secure_port}"

    def etcd_endpoint(self, host_ip: str) -> str:
        """Return the etcd client URL on host_ip."""
        host = f"[{host_ip}]" if ":" in host_ip else host_ip
        return f"http://{host}:{self.config.etcd_client_port}"

    def restore_snapshot(self, snapshot_path: Path) -> None:
        """Restore an etcd snapshot into a fresh data volume using etcdutl.

        Args:
            snapshot_path: Local etcd snapshot file

        Raises:
            InputNotFoundError: If the snapshot does not exist (checked first)
            ExternalProcessFailureError: If any runtime action fails
        """
        if not snapshot_path.is_file():
            raise InputNotFoundError(f"snapshot file not found: {snapshot_path}")

        cfg = self.config

        self.logger.info("Pulling etcd image: %s", cfg.etcd_image)
        self.runtime.pull_image(cfg.etcd_image)

        self.logger.info("Removing existing container: %s (if running)", cfg.restore_container)
        self.runtime.remove_container(cfg.restore_container)

        self.logger.info("Removing existing volume: %s (if exists)", cfg.data_volume)
        self.runtime.remove_volume(cfg.data_volume)

        self.logger.info("Creating volume: %s", cfg.data_volume)
        self.runtime.create_volume(cfg.data_volume)

        self.logger.info("Restoring snapshot %s into volume %s", snapshot_path, cfg.data_volume)
        self.runtime.run_container(
            cfg.etcd_image,
            name=cfg.restore_container,
            mounts=[
                Mount(str(snapshot_path.resolve()), "/snapshot.db", read_only=True),
                Mount(cfg.data_volume, cfg.etcd_data_dir),
            ],
            args=[
                "/usr/local/bin/etcdutl",
                "snapshot",
                "restore",
                "/snapshot.db",
                f"--data-dir={cfg.etcd_data_dir}",
            ],
            remove=True,
        )

        self.logger.info("Snapshot restored. Data is available in volume: %s", cfg.data_volume)

    def start_etcd(self, host_ip: str | None = None) -> str:
        """Start etcd over the restored data volume on the host network.

        Args:
            host_ip: Address to advertise; resolved from the host when omitted

        Returns:
            The host IP etcd advertises

        Raises:
            MalformedInputError: If host_ip is not an IP literal
        """
        cfg = self.config
        if host_ip is None:
            host_ip = get_host_ip_address()
        parse_host_address(host_ip)

        advertise_urls = f"http://127.0.0.1:{cfg.etcd_client_port},{self.etcd_endpoint(host_ip)}"

        self.logger.info("Removing existing etcd container: %s (if running)", cfg.etcd_container)
        self.runtime.remove_container(cfg.etcd_container)

        self.logger.info("Starting etcd server using volume: %s", cfg.data_volume)
        self.runtime.run_container(
            cfg.etcd_image,
            name=cfg.etcd_container,
            mounts=[Mount(cfg.data_volume, cfg.etcd_data_dir)],
            args=[
                "/usr/local/bin/etcd",
                f"--name={cfg.etcd_member_name}",
                f"--data-dir={cfg.etcd_data_dir}",
                f"--advertise-client-urls={advertise_urls}",
                f"--listen-client-urls=http://0.0.0.0:{cfg.etcd_client_port}",
                f"--listen-peer-urls=http://0.0.0.0:{cfg.etcd_peer_port}",
            ],
            network_mode=HOST_NETWORK,
            detached=True,
        )

        self.logger.info("Etcd server started, listening on host port %d", cfg.etcd_client_port)
        return host_ip

    def apiserver_args(self, etcd_endpoint: str, with_encryption_config: bool) -> list[str]:
        """Build kube-apiserver command line using the CA material in the cert volume."""
        cfg = self.config
        ca_cert_path = f"{cfg.cert_dir}/{CA_CERT_FILE}"
        ca_key_path = f"{cfg.cert_dir}/{CA_KEY_FILE}"

        args = [
            "/usr/local/bin/kube-apiserver",
            f"--etcd-servers={etcd_endpoint}",
            f"--service-cluster-ip-range={cfg.service_cluster_ip_range}",
            "--allow-privileged=true",
            "--anonymous-auth=true",
            "--advertise-address=0.0.0.0",
            f"--secure-port={cfg.apiserver_secure_port}",
            f"--service-account-signing-key-file={ca_key_path}",
            f"--service-account-issuer={cfg.service_account_issuer}",
            f"--service-account-key-file={ca_cert_path}",
            f"--tls-cert-file={ca_cert_path}",
            f"--tls-private-key-file={ca_key_path}",
            f"--client-ca-file={ca_cert_path}",
        ]
        if with_encryption_config:
            args.append(f"--encryption-provider-config={cfg.encryption_config_target}")
        args.append(f"--v={cfg.apiserver_verbosity}")
        return args

    def start_kube_apiserver(
        self,
        etcd_endpoint: str,
        host_ip: str,
        encryption_config: Path | None = None,
    ) -> None:
        """Issue fresh credentials and start kube-apiserver against etcd.

        Args:
            etcd_endpoint: etcd client URL
            host_ip: Address the certificates are issued for
            encryption_config: Optional encryption provider config to mount

        Raises:
            ValueError: If etcd_endpoint is empty
            InputNotFoundError: If encryption_config is given but missing
            MalformedInputError: If host_ip is not an IP literal
            ExternalProcessFailureError: If any runtime action fails
        """
        if not etcd_endpoint:
            raise ValueError("etcd endpoint is required to start kube-apiserver")
        self._check_start_inputs(host_ip, encryption_config)

        cfg = self.config

        self.logger.info(
            "Removing existing kube-apiserver container: %s (if running)", cfg.apiserver_container
        )
        self.runtime.remove_container(cfg.apiserver_container)

        self.logger.info("Creating volume for certificates: %s", cfg.cert_volume)
        self.runtime.create_volume(cfg.cert_volume)

        with tempfile.TemporaryDirectory(prefix="kube-apiserver-certs") as staging:
            self.logger.info("Generating self-signed CA and client certificates")
            CAManager(self.issuer_config, logger=self.logger).issue_ca(Path(staging), host_ip)
            relocate_artifacts(
                Path(staging),
                cfg.cert_volume,
                self.runtime,
                target_dir=cfg.cert_dir,
                logger=self.logger,
            )

        mounts = [Mount(cfg.cert_volume, cfg.cert_dir)]
        if encryption_config is not None:
            mounts.append(
                Mount(str(encryption_config.resolve()), cfg.encryption_config_target, read_only=True)
            )

        self.logger.info("Starting kube-apiserver container: %s", cfg.apiserver_container)
        self.runtime.run_container(
            cfg.apiserver_image,
            name=cfg.apiserver_container,
            mounts=mounts,
            args=self.apiserver_args(etcd_endpoint, encryption_config is not None),
            network_mode=HOST_NETWORK,
            detached=True,
        )

        self.logger.info("Kube-apiserver started at %s", self.server_url(host_ip))

    def _check_start_inputs(self, host_ip: str, encryption_config: Path | None) -> None:
        if encryption_config is not None and not encryption_config.is_file():
            raise InputNotFoundError(f"encryption configuration file not found at {encryption_config}")
        parse_host_address(host_ip)

    def start(self, host_ip: str | None = None, encryption_config: Path | None = None) -> str:
        """Start etcd and kube-apiserver after checking every input.

        The encryption config and host address are validated before the
        first runtime call, so a bad invocation leaves nothing running.

        Args:
            host_ip: Address to advertise and issue for; resolved from the host when omitted
            encryption_config: Optional encryption provider config to mount

        Returns:
            The host IP both servers were started on

        Raises:
            InputNotFoundError: If encryption_config is given but missing
            MalformedInputError: If host_ip is not an IP literal
            ExternalProcessFailureError: If hostname resolution or any runtime action fails
        """
        if host_ip is None:
            host_ip = get_host_ip_address()
        self._check_start_inputs(host_ip, encryption_config)

        self.start_etcd(host_ip)
        self.start_kube_apiserver(
            etcd_endpoint=self.etcd_endpoint(host_ip),
            host_ip=host_ip,
            encryption_config=encryption_config,
        )
        return host_ip

    def generate_kubeconfig(
        self, output_path: Path, server_url: str, source: ArtifactSource | None = None
    ) -> KubeconfigResult:
        """Write a kubeconfig for server_url.

        Credentials are copied out of the apiserver container unless another
        source (e.g. a local directory holding an issued bundle) is given.
        """
        if source is None:
            source = ContainerArtifactSource(
                self.runtime, self.config.apiserver_container, self.config.cert_dir
            )
        return KubeconfigMaterializer(logger=self.logger).materialize(
            server_url, source, output_path
        )

    def cleanup(self) -> None:
        """Remove every container and volume the workflows create. Idempotent."""
        cfg = self.config
        for container in (cfg.apiserver_container, cfg.etcd_container, cfg.restore_container):
            self.logger.info("Stopping and removing container: %s", container)
            self.runtime.remove_container(container)
        for volume in (cfg.cert_volume, cfg.data_volume):
            self.logger.info("Removing volume: %s", volume)
            self.runtime.remove_volume(volume)
        self.logger.info("Cleanup complete")
