"""
Tests for the stale host-key purge.
"""

from smconnect.adapters.shell.filesystem import FilesystemAdapter
from smconnect.core.models.receipt import Receipt
from smconnect.core.services.known_hosts import purge_stale_host_keys

from conftest import SPACE_HOSTNAME, write_file

KNOWN_HOSTS = (
    f"{SPACE_HOSTNAME} ssh-ed25519 AAAA1\n"
    "github.com ssh-ed25519 AAAA2\n"
    f"[{SPACE_HOSTNAME}]:22 ssh-rsa AAAA3\n"
    "@cert-authority sm_lc_arn_* ssh-rsa AAAA4\n"
    "bastion,sm_lc_arn_other ssh-rsa AAAA5\n"
    "# sm_lc_arn_ comment stays\n"
)


class TestPurge:
    def test_removes_only_space_entries(self, fs, paths):
        write_file(paths.known_hosts, KNOWN_HOSTS)
        result = purge_stale_host_keys(fs, paths.known_hosts)
        assert result.ok
        assert result.removed == 4
        assert paths.known_hosts.read_text() == (
            "github.com ssh-ed25519 AAAA2\n"
            "# sm_lc_arn_ comment stays\n"
        )
        assert len(list(paths.known_hosts.parent.glob("known_hosts.backup.*"))) == 1

    def test_nothing_to_remove(self, fs, paths):
        write_file(paths.known_hosts, "github.com ssh-ed25519 AAAA2\n")
        result = purge_stale_host_keys(fs, paths.known_hosts)
        assert result.ok
        assert result.removed == 0
        assert list(paths.known_hosts.parent.glob("known_hosts.backup.*")) == []

    def test_missing_file(self, fs, paths):
        result = purge_stale_host_keys(fs, paths.known_hosts)
        assert result.ok
        assert not result.file_exists

    def test_write_failure_reported(self, paths):
        class ReadOnlyFs(FilesystemAdapter):
            def write(self, target, content, backup=True, executable=False):
                return Receipt.failure(adapter="filesystem", operation="write", error="EROFS")

        write_file(paths.known_hosts, KNOWN_HOSTS)
        result = purge_stale_host_keys(ReadOnlyFs(), paths.known_hosts)
        assert not result.ok
        assert result.error == "EROFS"
