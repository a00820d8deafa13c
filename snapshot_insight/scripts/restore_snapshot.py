#!/usr/bin/env python3
"""Restore an etcd snapshot into a container volume."""

import argparse
import logging
import sys
from pathlib import Path

from snapshot_insight.lib.config import IssuerConfig, RuntimeConfig
from snapshot_insight.lib.container_runtime import DockerRuntime
from snapshot_insight.lib.errors import InputNotFoundError
from snapshot_insight.lib.logging_config import setup_logger
from snapshot_insight.lib.snapshot_manager import SnapshotManager


def main(argv: list[str] | None = None) -> int:
    """Restore snapshot via etcdutl.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    parser = argparse.ArgumentParser(description="Restore an etcd snapshot into a volume")
    parser.add_argument(
        "--snapshot",
        type=Path,
        required=True,
        help="Path to the etcd snapshot file",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logger = setup_logger(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = RuntimeConfig()
        runtime = DockerRuntime(helper_image=config.helper_image, logger=logger)
        manager = SnapshotManager(config, IssuerConfig(), runtime, logger=logger)

        manager.restore_snapshot(args.snapshot)

        logger.info("Restore complete. Next: run snapshot-insight-start")
        return 0

    except InputNotFoundError as e:
        logger.error("Input not found: %s", e)
        return 1
    except Exception as e:
        logger.error("Snapshot restore failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
