"""Exception hierarchy for snapshot-insight operations."""


class SnapshotInsightError(Exception):
    """Base class for all snapshot-insight failures."""


class InputNotFoundError(SnapshotInsightError, FileNotFoundError):
    """Operator-supplied input (snapshot, encryption config) does not exist."""


class ExternalProcessFailureError(SnapshotInsightError):
    """External command exited non-zero or could not be started.

    The underlying stderr is kept verbatim in the message so the operator
    sees exactly what the container runtime reported.
    """

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class MalformedInputError(SnapshotInsightError, ValueError):
    """Input could not be parsed (PEM block, host address, kubeconfig document)."""


class ArtifactUnavailableError(SnapshotInsightError):
    """Expected credential file is missing or could not be retrieved."""


class EntropyFailureError(SnapshotInsightError):
    """Key generation failed. Fatal, never retried."""
