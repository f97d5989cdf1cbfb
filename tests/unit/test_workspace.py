"""Tests for workspace identifier helpers."""

from unittest.mock import patch

import pytest

from sandbox_sync.errors import InvalidWorkspaceError
from sandbox_sync.workspace import (
    detect_workspace_id,
    is_within,
    sandbox_prefix,
    validate_workspace_id,
)


@pytest.fixture(autouse=True)
def clear_workspace_cache():
    detect_workspace_id.cache_clear()
    yield
    detect_workspace_id.cache_clear()


class TestValidateWorkspaceId:
    """Tests for validate_workspace_id function."""

    @pytest.mark.parametrize("workspace", ["alice-machine", "bob-instance", "ip-10-0-0-12.ec2"])
    def test_valid(self, workspace):
        """Test ordinary hostnames are accepted unchanged."""
        assert validate_workspace_id(workspace) == workspace

    @pytest.mark.parametrize(
        "workspace",
        ["", "   ", ".", "..", "alice/machine", "alice\\machine", "alice\0", " alice"],
    )
    def test_invalid(self, workspace):
        """Test identifiers that are not a single path component are rejected."""
        with pytest.raises(InvalidWorkspaceError):
            validate_workspace_id(workspace)


class TestDetectWorkspaceId:
    """Tests for detect_workspace_id function."""

    @patch("sandbox_sync.workspace.socket.gethostname")
    def test_uses_hostname(self, mock_hostname):
        """Test the identifier is the hostname."""
        mock_hostname.return_value = "alice-machine"

        assert detect_workspace_id() == "alice-machine"

    @patch("sandbox_sync.workspace.socket.gethostname")
    def test_cached_for_process(self, mock_hostname):
        """Test the hostname is read only once."""
        mock_hostname.return_value = "alice-machine"

        detect_workspace_id()
        mock_hostname.return_value = "renamed"

        assert detect_workspace_id() == "alice-machine"
        mock_hostname.assert_called_once()

    @patch("sandbox_sync.workspace.socket.gethostname")
    def test_invalid_hostname(self, mock_hostname):
        """Test an unusable hostname raises."""
        mock_hostname.return_value = ""

        with pytest.raises(InvalidWorkspaceError):
            detect_workspace_id()


class TestSandboxPaths:
    """Tests for sandbox_prefix and is_within functions."""

    def test_prefix(self):
        """Test the default and custom sandbox directories."""
        assert sandbox_prefix("alice-machine") == "sandbox/alice-machine/"
        assert sandbox_prefix("alice-machine", "users/sandboxes/") == "users/sandboxes/alice-machine/"
        assert sandbox_prefix("alice-machine", "") == "alice-machine/"

    def test_within(self):
        """Test paths inside the subtree."""
        prefix = "sandbox/alice-machine/"

        assert is_within("sandbox/alice-machine/notes.md", prefix)
        assert is_within("sandbox/alice-machine/deep/dir/file.py", prefix)
        assert is_within("sandbox/alice-machine", prefix)

    def test_not_within(self):
        """Test siblings, prefixes of names and escapes are outside."""
        prefix = "sandbox/alice-machine/"

        assert not is_within("library/x.py", prefix)
        assert not is_within("sandbox/alice-machine2/notes.md", prefix)
        assert not is_within("sandbox/bob-instance/notes.md", prefix)
        assert not is_within("sandbox/alice-machine/../bob-instance/x", prefix)
        assert not is_within("sandbox", prefix)
