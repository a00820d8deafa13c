#!/usr/bin/env python3
"""Write a kubeconfig for the running ephemeral kube-apiserver."""

import argparse
import logging
import sys
from pathlib import Path

from snapshot_insight.lib.config import IssuerConfig, RuntimeConfig
from snapshot_insight.lib.container_runtime import DockerRuntime
from snapshot_insight.lib.errors import ArtifactUnavailableError
from snapshot_insight.lib.kubeconfig import DirectoryArtifactSource
from snapshot_insight.lib.logging_config import setup_logger
from snapshot_insight.lib.snapshot_manager import SnapshotManager, get_host_ip_address


def main(argv: list[str] | None = None) -> int:
    """Fetch client credentials and render a kubeconfig.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Generate kubeconfig for the ephemeral server")
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("kubeconfig"),
        help="Output path for the kubeconfig (default: ./kubeconfig)",
    )
    parser.add_argument(
        "--server",
        help="kube-apiserver URL (default: https://<first of hostname -I>:6443)",
    )
    parser.add_argument(
        "--from-dir",
        type=Path,
        help="Read ca.crt, client.crt and client.key from this directory "
        "instead of the running apiserver container",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logger = setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = RuntimeConfig()
        runtime = DockerRuntime(helper_image=config.helper_image, logger=logger)
        manager = SnapshotManager(config, IssuerConfig(), runtime, logger=logger)

        server_url = args.server or manager.server_url(get_host_ip_address())
        source = DirectoryArtifactSource(args.from_dir) if args.from_dir else None
        result = manager.generate_kubeconfig(args.output, server_url, source)

        logger.info("Use it with: KUBECONFIG=%s kubectl get nodes", result.path)
        return 0

    except ArtifactUnavailableError as e:
        logger.error("Credentials unavailable: %s", e)
        return 1
    except Exception as e:
        logger.error("Kubeconfig generation failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
