"""Tests for the bastion-proxied SSH client config"""

import os
import stat
import threading

import pytest

from devbastion.errors import (
    ConfigWriteFailed,
    InvalidHostAddress,
    InvalidIdentityPath,
    MissingBastionHost,
)
from devbastion.utils.ssh_config import SSHConfigBuilder


def _stanzas(text):
    return [block for block in text.split("\n\n") if block]


def test_new_config_writes_global_defaults(tmp_path):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))

    assert path.read_text() == (
        "User fedora\n"
        "StrictHostKeyChecking accept-new\n"
        f"UserKnownHostsFile {tmp_path / 'known_hosts'}\n"
    )
    assert builder.config_path == str(path)
    assert stat.S_IMODE(path.stat().st_mode) == 0o640

    control = tmp_path / ".control"
    assert control.is_dir()
    assert stat.S_IMODE(control.stat().st_mode) == 0o700


def test_new_config_truncates_existing_file(tmp_path):
    path = tmp_path / "ssh-config"
    path.write_text("Host stale\n  Hostname 9.9.9.9\n")
    SSHConfigBuilder(str(path), user="ubuntu")
    content = path.read_text()
    assert "stale" not in content
    assert content.startswith("User ubuntu\n")


def test_bastion_and_workload_stanzas(tmp_path):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))
    builder.write_bastion_host("1.2.3.4", "/keys/id_rsa")
    builder.write_workload_host("10.0.2.5", "/keys/id_rsa")

    control = tmp_path / ".control"
    assert path.read_text().endswith(
        "\n"
        "Host bastion\n"
        "  Hostname 1.2.3.4\n"
        "  IdentityFile /keys/id_rsa\n"
        "  ControlMaster auto\n"
        "  ControlPersist 5m\n"
        f"  ControlPath {control}/%r@%h:%p\n"
        "\n"
        "Host 10.0.2.5\n"
        "  IdentityFile /keys/id_rsa\n"
        f"  ProxyCommand ssh -F {path} -W %h:%p bastion\n"
    )
    assert builder.has_bastion


def test_identity_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    builder = SSHConfigBuilder("ssh-config")
    builder.write_bastion_host("1.2.3.4", "ssh-key")

    content = (tmp_path / "ssh-config").read_text()
    assert f"  IdentityFile {tmp_path / 'ssh-key'}\n" in content
    # The config path in ProxyCommand must be absolute too.
    builder.write_workload_host("10.0.2.6", "ssh-key")
    content = (tmp_path / "ssh-config").read_text()
    assert f"ProxyCommand ssh -F {tmp_path / 'ssh-config'} -W %h:%p bastion" in content


def test_control_persist_is_configurable(tmp_path):
    builder = SSHConfigBuilder(str(tmp_path / "ssh-config"), control_persist="10m")
    builder.write_bastion_host("1.2.3.4", "/keys/id_rsa")
    assert "  ControlPersist 10m\n" in (tmp_path / "ssh-config").read_text()


@pytest.mark.parametrize("identity", ["", "key\nHost evil", None])
def test_invalid_identity_path(tmp_path, identity):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))
    before = path.read_text()

    with pytest.raises(InvalidIdentityPath):
        builder.write_workload_host("10.0.2.5", identity)
    assert path.read_text() == before


BAD_ADDRESSES = [
    "",
    None,
    "10.0.2.5\n  ProxyCommand sh -c evil",
    "10.0.2.5 10.0.2.6",
    "10.0.2.5\r",
    "10.0.2.5\x00",
    "\t10.0.2.5",
]


@pytest.mark.parametrize("address", BAD_ADDRESSES)
def test_bastion_rejects_bad_address(tmp_path, address):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))
    before = path.read_text()

    with pytest.raises(InvalidHostAddress):
        builder.write_bastion_host(address, "/keys/id_rsa")
    assert path.read_text() == before
    assert not builder.has_bastion


@pytest.mark.parametrize("address", BAD_ADDRESSES)
def test_workload_rejects_bad_address(tmp_path, address):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))
    builder.write_bastion_host("1.2.3.4", "/keys/id_rsa")
    before = path.read_text()

    with pytest.raises(InvalidHostAddress):
        builder.write_workload_host(address, "/keys/id_rsa")
    assert path.read_text() == before
    assert "sh -c evil" not in path.read_text()


def test_workload_before_bastion_is_refused(tmp_path):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))
    before = path.read_text()

    with pytest.raises(MissingBastionHost):
        builder.write_workload_host("10.0.2.5", "/keys/id_rsa")
    assert path.read_text() == before
    assert not builder.has_bastion


def test_unwritable_location_fails(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("")
    with pytest.raises(ConfigWriteFailed):
        SSHConfigBuilder(str(blocker / "ssh-config"))


def test_append_failure_keeps_previous_stanzas(tmp_path):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))
    builder.write_bastion_host("1.2.3.4", "/keys/id_rsa")
    os.remove(path)
    os.mkdir(path)

    with pytest.raises(ConfigWriteFailed):
        builder.write_workload_host("10.0.2.5", "/keys/id_rsa")


def test_concurrent_workload_writes_do_not_interleave(tmp_path):
    path = tmp_path / "ssh-config"
    builder = SSHConfigBuilder(str(path))
    builder.write_bastion_host("1.2.3.4", "/keys/id_rsa")

    addresses = [f"10.0.{i // 250}.{i % 250 + 5}" for i in range(200)]
    barrier = threading.Barrier(8)

    def worker(chunk):
        barrier.wait()
        for address in chunk:
            builder.write_workload_host(address, "/keys/id_rsa")

    threads = [
        threading.Thread(target=worker, args=(addresses[i::8],)) for i in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stanzas = _stanzas(path.read_text())
    workloads = stanzas[2:]
    assert len(workloads) == len(addresses)
    for stanza in workloads:
        lines = stanza.strip("\n").split("\n")
        assert len(lines) == 3
        assert lines[0].startswith("Host 10.0.")
        assert lines[1] == "  IdentityFile /keys/id_rsa"
        assert lines[2] == f"  ProxyCommand ssh -F {path} -W %h:%p bastion"
    assert sorted(s.split("\n")[0][5:] for s in workloads) == sorted(addresses)
