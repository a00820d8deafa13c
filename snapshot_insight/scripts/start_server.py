#!/usr/bin/env python3
"""Start etcd and an unauthenticated kube-apiserver over the restored snapshot."""

import argparse
import logging
import sys
from pathlib import Path

from snapshot_insight.lib.config import IssuerConfig, RuntimeConfig
from snapshot_insight.lib.container_runtime import DockerRuntime
from snapshot_insight.lib.errors import InputNotFoundError, MalformedInputError
from snapshot_insight.lib.logging_config import setup_logger
from snapshot_insight.lib.snapshot_manager import SnapshotManager


def main(argv: list[str] | None = None) -> int:
    """Start etcd, issue credentials, start kube-apiserver.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Start etcd and kube-apiserver")
    parser.add_argument(
        "--host-ip",
        help="Address to advertise and issue certificates for (default: first of hostname -I)",
    )
    parser.add_argument(
        "--encryption-config",
        type=Path,
        default=Path("encryption-config.json"),
        help="Encryption provider config for kube-apiserver (default: ./encryption-config.json)",
    )
    parser.add_argument(
        "--no-encryption-config",
        action="store_true",
        help="Start kube-apiserver without an encryption provider config",
    )
    parser.add_argument(
        "--kubeconfig",
        type=Path,
        help="Also write a kubeconfig for the new server to this path",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logger = setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)
    encryption_config = None if args.no_encryption_config else args.encryption_config

    try:
        config = RuntimeConfig()
        runtime = DockerRuntime(helper_image=config.helper_image, logger=logger)
        manager = SnapshotManager(config, IssuerConfig(), runtime, logger=logger)

        host_ip = manager.start(args.host_ip, encryption_config)

        server_url = manager.server_url(host_ip)
        if args.kubeconfig:
            manager.generate_kubeconfig(args.kubeconfig, server_url)
        else:
            logger.info("Next: run snapshot-insight-kubeconfig --server %s", server_url)
        return 0

    except InputNotFoundError as e:
        logger.error("Input not found: %s", e)
        return 1
    except MalformedInputError as e:
        logger.error("Invalid input: %s", e)
        return 1
    except Exception as e:
        logger.error("Start failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
