"""Relocate issued credentials into the volume the API server mounts."""

import logging
from pathlib import Path

from .ca_manager import CREDENTIAL_FILES
from .container_runtime import ContainerRuntime
from .errors import ArtifactUnavailableError
from .logging_config import LOGGER


def relocate_artifacts(
    staging_dir: Path,
    volume_name: str,
    runtime: ContainerRuntime,
    target_dir: str = "/certs",
    logger: logging.Logger | None = None,
) -> None:
    """Copy the four credential files from staging_dir into a container volume.

    Single best-effort copy through a helper container; failures are
    reported to the caller, never retried.

    Args:
        staging_dir: Local directory holding ca.crt, ca.key, client.crt, client.key
        volume_name: Volume the API server container will mount
        runtime: Container runtime used to run the copy
        target_dir: Mount point of the volume inside the helper container
        logger: Logger for progress messages (defaults to LOGGER)

    Raises:
        ArtifactUnavailableError: If any credential file is missing from staging_dir
        ExternalProcessFailureError: If the copy container fails
    """
    logger = logger or LOGGER

    missing = [name for name in CREDENTIAL_FILES if not (staging_dir / name).is_file()]
    if missing:
        raise ArtifactUnavailableError(
            f"credential files missing from {staging_dir}: {', '.join(missing)}"
        )

    logger.info("Copying certificates and keys into volume: %s", volume_name)
    runtime.copy_files_in(staging_dir, volume_name, target_dir)
    logger.info("Certificates and keys stored in volume %s at %s", volume_name, target_dir)
