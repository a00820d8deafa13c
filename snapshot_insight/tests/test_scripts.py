"""Tests for command-line entry points."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from snapshot_insight.lib.errors import (
    ArtifactUnavailableError,
    ExternalProcessFailureError,
    InputNotFoundError,
    MalformedInputError,
)
from snapshot_insight.lib.models import IssuanceResult
from snapshot_insight.scripts import cleanup, generate_kubeconfig, restore_snapshot, start_server

from conftest import FakeRuntime


def test_restore_requires_snapshot_arg() -> None:
    """Missing --snapshot is an argparse usage error."""
    with pytest.raises(SystemExit) as exc_info:
        restore_snapshot.main([])

    assert exc_info.value.code == 2


def test_restore_success(tmp_path: Path) -> None:
    snapshot = tmp_path / "snapshot.db"
    with (
        patch("snapshot_insight.scripts.restore_snapshot.DockerRuntime"),
        patch("snapshot_insight.scripts.restore_snapshot.SnapshotManager") as mock_manager_cls,
    ):
        exit_code = restore_snapshot.main(["--snapshot", str(snapshot)])

    assert exit_code == 0
    mock_manager_cls.return_value.restore_snapshot.assert_called_once_with(snapshot)


def test_restore_missing_snapshot_returns_1(tmp_path: Path) -> None:
    """Real manager rejects the missing file before the runtime is touched."""
    with patch("snapshot_insight.scripts.restore_snapshot.DockerRuntime") as mock_runtime_cls:
        exit_code = restore_snapshot.main(["--snapshot", str(tmp_path / "missing.db")])

    assert exit_code == 1
    mock_runtime_cls.return_value.pull_image.assert_not_called()


def test_start_defaults(tmp_path: Path) -> None:
    """Start uses the default encryption config and resolves the host address itself."""
    with (
        patch("snapshot_insight.scripts.start_server.DockerRuntime"),
        patch("snapshot_insight.scripts.start_server.SnapshotManager") as mock_manager_cls,
    ):
        manager = mock_manager_cls.return_value
        manager.start.return_value = "10.0.0.5"
        exit_code = start_server.main([])

    assert exit_code == 0
    manager.start.assert_called_once_with(None, Path("encryption-config.json"))
    manager.generate_kubeconfig.assert_not_called()


def test_start_without_encryption_config_and_with_kubeconfig(tmp_path: Path) -> None:
    output = tmp_path / "kubeconfig"
    with (
        patch("snapshot_insight.scripts.start_server.DockerRuntime"),
        patch("snapshot_insight.scripts.start_server.SnapshotManager") as mock_manager_cls,
    ):
        manager = mock_manager_cls.return_value
        manager.start.return_value = "10.0.0.5"
        manager.server_url.return_value = "https://10.0.0.5:6443"
        exit_code = start_server.main(
            ["--host-ip", "10.0.0.5", "--no-encryption-config", "--kubeconfig", str(output)]
        )

    assert exit_code == 0
    manager.start.assert_called_once_with("10.0.0.5", None)
    manager.server_url.assert_called_once_with("10.0.0.5")
    manager.generate_kubeconfig.assert_called_once_with(output, "https://10.0.0.5:6443")


@pytest.mark.parametrize(
    "error",
    [
        InputNotFoundError("encryption configuration file not found at encryption-config.json"),
        MalformedInputError("invalid host address 'nope'"),
        ExternalProcessFailureError("run kube-apiserver: port is already allocated"),
    ],
)
def test_start_failure_returns_1(error: Exception) -> None:
    with (
        patch("snapshot_insight.scripts.start_server.DockerRuntime"),
        patch("snapshot_insight.scripts.start_server.SnapshotManager") as mock_manager_cls,
    ):
        mock_manager_cls.return_value.start.side_effect = error
        exit_code = start_server.main(["--host-ip", "10.0.0.5"])

    assert exit_code == 1


def test_start_missing_default_encryption_config_starts_nothing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Without ./encryption-config.json no container is started, etcd included."""
    monkeypatch.chdir(tmp_path)
    runtime = FakeRuntime()
    with patch("snapshot_insight.scripts.start_server.DockerRuntime", return_value=runtime):
        exit_code = start_server.main(["--host-ip", "10.0.0.5"])

    assert exit_code == 1
    assert runtime.calls == []


def test_start_invalid_host_ip_starts_nothing() -> None:
    runtime = FakeRuntime()
    with patch("snapshot_insight.scripts.start_server.DockerRuntime", return_value=runtime):
        exit_code = start_server.main(["--host-ip", "not-an-ip", "--no-encryption-config"])

    assert exit_code == 1
    assert runtime.calls == []


def test_kubeconfig_with_explicit_server(tmp_path: Path) -> None:
    output = tmp_path / "kubeconfig"
    with (
        patch("snapshot_insight.scripts.generate_kubeconfig.DockerRuntime"),
        patch("snapshot_insight.scripts.generate_kubeconfig.SnapshotManager") as mock_manager_cls,
        patch("snapshot_insight.scripts.generate_kubeconfig.get_host_ip_address") as mock_host_ip,
    ):
        exit_code = generate_kubeconfig.main(
            ["--output", str(output), "--server", "https://192.168.1.20:6443"]
        )

    assert exit_code == 0
    mock_host_ip.assert_not_called()
    mock_manager_cls.return_value.generate_kubeconfig.assert_called_once_with(
        output, "https://192.168.1.20:6443", None
    )


def test_kubeconfig_default_server_uses_host_ip() -> None:
    with (
        patch("snapshot_insight.scripts.generate_kubeconfig.DockerRuntime"),
        patch("snapshot_insight.scripts.generate_kubeconfig.SnapshotManager") as mock_manager_cls,
        patch(
            "snapshot_insight.scripts.generate_kubeconfig.get_host_ip_address",
            return_value="10.0.0.5",
        ),
    ):
        manager = mock_manager_cls.return_value
        manager.server_url.return_value = "https://10.0.0.5:6443"
        exit_code = generate_kubeconfig.main([])

    assert exit_code == 0
    manager.server_url.assert_called_once_with("10.0.0.5")
    manager.generate_kubeconfig.assert_called_once_with(
        Path("kubeconfig"), "https://10.0.0.5:6443", None
    )


def test_kubeconfig_from_issued_directory(tmp_path: Path, issued_credentials: IssuanceResult) -> None:
    """--from-dir reads the bundle locally and never touches the runtime."""
    output = tmp_path / "kubeconfig"
    runtime = FakeRuntime()
    with patch("snapshot_insight.scripts.generate_kubeconfig.DockerRuntime", return_value=runtime):
        exit_code = generate_kubeconfig.main(
            [
                "--output", str(output),
                "--server", "https://10.0.0.5:6443",
                "--from-dir", str(issued_credentials.ca_cert_path.parent),
            ]
        )

    assert exit_code == 0
    doc = yaml.safe_load(output.read_text())
    assert doc["clusters"][0]["cluster"]["server"] == "https://10.0.0.5:6443"
    assert runtime.calls == []


def test_kubeconfig_from_missing_directory_returns_1(tmp_path: Path) -> None:
    with patch("snapshot_insight.scripts.generate_kubeconfig.DockerRuntime"):
        exit_code = generate_kubeconfig.main(
            [
                "--output", str(tmp_path / "kubeconfig"),
                "--server", "https://10.0.0.5:6443",
                "--from-dir", str(tmp_path / "missing"),
            ]
        )

    assert exit_code == 1
    assert not (tmp_path / "kubeconfig").exists()


def test_kubeconfig_credentials_unavailable_returns_1() -> None:
    with (
        patch("snapshot_insight.scripts.generate_kubeconfig.DockerRuntime"),
        patch("snapshot_insight.scripts.generate_kubeconfig.SnapshotManager") as mock_manager_cls,
    ):
        mock_manager_cls.return_value.generate_kubeconfig.side_effect = ArtifactUnavailableError(
            "Error: No such container: snapshot-insight-apiserver"
        )
        exit_code = generate_kubeconfig.main(["--server", "https://10.0.0.5:6443"])

    assert exit_code == 1


def test_cleanup_success() -> None:
    mock_runtime = MagicMock()
    with patch("snapshot_insight.scripts.cleanup.DockerRuntime", return_value=mock_runtime):
        exit_code = cleanup.main([])

    assert exit_code == 0
    assert mock_runtime.remove_container.call_count == 3
    assert mock_runtime.remove_volume.call_count == 2


def test_cleanup_failure_returns_1() -> None:
    with patch("snapshot_insight.scripts.cleanup.SnapshotManager") as mock_manager_cls:
        mock_manager_cls.return_value.cleanup.side_effect = RuntimeError("boom")
        exit_code = cleanup.main(["--verbose"])

    assert exit_code == 1
