"""Container runtime capability interface and Docker Engine implementation."""

import io
import logging
import tarfile
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import docker
from docker.errors import APIError, ContainerError, DockerException, NotFound

from .errors import ExternalProcessFailureError
from .logging_config import LOGGER


@dataclass(frozen=True)
class Mount:
    """Volume or bind mount for a container."""

    source: str
    target: str
    read_only: bool = False

    def to_binding(self) -> dict[str, str]:
        """Render as a docker SDK volume binding."""
        return {"bind": self.target, "mode": "ro" if self.read_only else "rw"}


class ContainerRuntime(ABC):
    """Actions the snapshot workflows need from a container engine.

    Every method blocks until the engine returns. Failures raise
    ExternalProcessFailureError, except remove_container and remove_volume,
    which treat an absent target as success.
    """

    @abstractmethod
    def pull_image(self, ref: str) -> None:
        """Pull an image by reference."""

    @abstractmethod
    def remove_container(self, name: str) -> None:
        """Force-remove a container. Idempotent."""

    @abstractmethod
    def create_volume(self, name: str) -> None:
        """Create a named volume."""

    @abstractmethod
    def remove_volume(self, name: str) -> None:
        """Remove a named volume. Idempotent."""

    @abstractmethod
    def run_container(
        self,
        image: str,
        *,
        name: str | None = None,
        mounts: Sequence[Mount] = (),
        args: Sequence[str] = (),
        network_mode: str | None = None,
        detached: bool = False,
        remove: bool = False,
    ) -> str:
        """Run a container and return its output (the container ID when detached)."""

    @abstractmethod
    def copy_file_out(self, container: str, container_path: str, local_path: Path) -> None:
        """Copy a single file out of a container."""

    @abstractmethod
    def copy_files_in(self, source_dir: Path, volume_name: str, target_dir: str) -> None:
        """Copy every file in source_dir into target_dir of a volume."""


def _describe(error: DockerException) -> str:
    """Return the engine's own explanation of a failure."""
    if isinstance(error, ContainerError):
        stderr = error.stderr
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        return (stderr or "").strip() or f"exit status {error.exit_status}"
    if isinstance(error, APIError) and error.explanation:
        explanation = error.explanation
        if isinstance(explanation, bytes):
            explanation = explanation.decode("utf-8", errors="replace")
        return str(explanation)
    return str(error)


def _failure(action: str, operation: list[str], error: DockerException) -> ExternalProcessFailureError:
    detail = _describe(error)
    return ExternalProcessFailureError(
        f"{action}: {detail}",
        command=operation,
        returncode=error.exit_status if isinstance(error, ContainerError) else None,
        stderr=detail,
    )


class DockerRuntime(ContainerRuntime):
    """ContainerRuntime backed by the Docker Engine API (docker SDK)."""

    def __init__(
        self,
        client: docker.DockerClient | None = None,
        helper_image: str = "alpine",
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize Docker runtime.

        Args:
            client: Docker client (defaults to docker.from_env() on first use)
            helper_image: Image used for short-lived copy containers
            logger: Logger for engine calls (defaults to LOGGER)
        """
        self._client = client
        self.helper_image = helper_image
        self.logger = logger or LOGGER

    @property
    def client(self) -> docker.DockerClient:
        """Return the Docker client, connecting from the environment if needed.

        Raises:
            ExternalProcessFailureError: If the daemon cannot be reached
        """
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                raise _failure("failed to connect to docker daemon", ["from_env"], e) from e
        return self._client

    def pull_image(self, ref: str) -> None:
        self.logger.debug("Pulling image: %s", ref)
        try:
            self.client.images.pull(ref)
        except DockerException as e:
            raise _failure(f"failed to pull image {ref}", ["pull", ref], e) from e

    def remove_container(self, name: str) -> None:
        try:
            self.client.containers.get(name).remove(force=True)
        except NotFound:
            self.logger.debug("Container %s not found, nothing to remove", name)
        except DockerException as e:
            raise _failure(f"failed to remove container {name}", ["rm", "-f", name], e) from e

    def create_volume(self, name: str) -> None:
        try:
            self.client.volumes.create(name=name)
        except DockerException as e:
            raise _failure(f"failed to create volume {name}", ["volume", "create", name], e) from e

    def remove_volume(self, name: str) -> None:
        try:
            self.client.volumes.get(name).remove()
        except NotFound:
            self.logger.debug("Volume %s not found, nothing to remove", name)
        except DockerException as e:
            raise _failure(f"failed to remove volume {name}", ["volume", "rm", name], e) from e

    def run_container(
        self,
        image: str,
        *,
        name: str | None = None,
        mounts: Sequence[Mount] = (),
        args: Sequence[str] = (),
        network_mode: str | None = None,
        detached: bool = False,
        remove: bool = False,
    ) -> str:
        operation = ["run", image, *args]
        self.logger.debug("Running container %s from %s: %s", name, image, list(args))
        try:
            result = self.client.containers.run(
                image,
                command=list(args) or None,
                name=name,
                volumes={mount.source: mount.to_binding() for mount in mounts},
                network_mode=network_mode,
                detach=detached,
                remove=remove,
            )
        except DockerException as e:
            raise _failure(f"failed to run container from {image}", operation, e) from e

        if detached:
            return result.id
        output = result.decode("utf-8", errors="replace") if isinstance(result, bytes) else ""
        if output:
            self.logger.debug("Container output: %s", output.strip())
        return output.strip()

    def copy_file_out(self, container: str, container_path: str, local_path: Path) -> None:
        action = f"failed to copy {container_path} from container {container}"
        operation = ["cp", f"{container}:{container_path}", str(local_path)]
        try:
            chunks, _ = self.client.containers.get(container).get_archive(container_path)
            archive = io.BytesIO(b"".join(chunks))
        except DockerException as e:
            raise _failure(action, operation, e) from e

        with tarfile.open(fileobj=archive) as tar:
            member = tar.next()
            extracted = tar.extractfile(member) if member is not None and member.isfile() else None
            if extracted is None:
                raise ExternalProcessFailureError(
                    f"{action}: {container_path} is not a regular file", command=operation
                )
            local_path.write_bytes(extracted.read())

    def copy_files_in(self, source_dir: Path, volume_name: str, target_dir: str) -> None:
        """Copy staged files into a volume through a created, never-started helper container."""
        action = f"failed to copy {source_dir} into volume {volume_name}"
        operation = ["cp", str(source_dir), f"{volume_name}:{target_dir}"]

        archive = io.BytesIO()
        with tarfile.open(fileobj=archive, mode="w") as tar:
            for path in sorted(source_dir.iterdir()):
                if path.is_file():
                    tar.add(path, arcname=path.name)

        try:
            self.client.images.pull(self.helper_image)
            helper = self.client.containers.create(
                self.helper_image,
                volumes={volume_name: Mount(volume_name, target_dir).to_binding()},
            )
        except DockerException as e:
            raise _failure(action, operation, e) from e

        try:
            if not helper.put_archive(target_dir, archive.getvalue()):
                raise ExternalProcessFailureError(f"{action}: archive was rejected", command=operation)
        except DockerException as e:
            raise _failure(action, operation, e) from e
        finally:
            try:
                helper.remove(force=True)
            except DockerException as e:
                self.logger.warning("Failed to remove helper container %s: %s", helper.id, e)
