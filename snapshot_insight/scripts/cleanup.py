#!/usr/bin/env python3
"""Remove the containers and volumes created by restore and start."""

import argparse
import logging
import sys

from snapshot_insight.lib.config import IssuerConfig, RuntimeConfig
from snapshot_insight.lib.container_runtime import DockerRuntime
from snapshot_insight.lib.logging_config import setup_logger
from snapshot_insight.lib.snapshot_manager import SnapshotManager


def main(argv: list[str] | None = None) -> int:
    """Tear down etcd, kube-apiserver and their volumes.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Clean up snapshot-insight containers and volumes")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logger = setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = RuntimeConfig()
        runtime = DockerRuntime(helper_image=config.helper_image, logger=logger)
        SnapshotManager(config, IssuerConfig(), runtime, logger=logger).cleanup()
        return 0

    except Exception as e:
        logger.error("Cleanup failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
