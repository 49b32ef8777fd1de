"""
devbastion/utils/ssh_config.py

Builds an OpenSSH client configuration for a bastion-proxied network:

    User fedora
    StrictHostKeyChecking accept-new
    UserKnownHostsFile /work/known_hosts

    Host bastion
      Hostname 1.2.3.4
      IdentityFile /work/ssh-key
      ControlMaster auto
      ControlPersist 5m
      ControlPath /work/.control/%r@%h:%p

    Host 172.16.2.6
      IdentityFile /work/ssh-key
      ProxyCommand ssh -F /work/ssh-config -W %h:%p bastion

Workload sessions re-run ssh with this same file to reach the bastion, so every
hop to a workload host reuses the bastion's multiplexed control connection.

Workload stanzas are refused until the bastion stanza is written. Appends are
serialized by a per-builder lock; nothing here protects against two processes
writing the same file.
"""

from __future__ import annotations

import logging
import os
import threading

from devbastion.errors import (
    ConfigWriteFailed,
    InvalidHostAddress,
    InvalidIdentityPath,
    MissingBastionHost,
)

logger = logging.getLogger(__name__)

BASTION_ALIAS = "bastion"
CONFIG_FILE_MODE = 0o640
CONTROL_DIR_MODE = 0o700
CONTROL_DIR_NAME = ".control"


class SSHConfigBuilder:
    """Append-only writer for one SSH client config file.

    Constructing a builder truncates (or creates) the config file, creates the
    control-socket directory next to it, and writes the global defaults.
    """

    def __init__(
        self,
        path: str,
        *,
        user: str = "fedora",
        control_persist: str = "5m",
    ) -> None:
        """
        Args:
            path (str): Where to write the config file.
            user (str): Remote login user for every host.
            control_persist (str): How long idle control connections stay up.

        Raises:
            ConfigWriteFailed: If the file or control directory cannot be created.
        """
        self.config_path = os.path.abspath(path)
        config_dir = os.path.dirname(self.config_path)
        self.control_path = os.path.join(config_dir, CONTROL_DIR_NAME)
        self.known_hosts_path = os.path.join(config_dir, "known_hosts")
        self.control_persist = control_persist
        self.has_bastion = False

        self._lock = threading.Lock()

        try:
            os.makedirs(self.control_path, mode=CONTROL_DIR_MODE, exist_ok=True)
            os.chmod(self.control_path, CONTROL_DIR_MODE)

            fd = os.open(
                self.config_path,
                os.O_CREAT | os.O_TRUNC | os.O_WRONLY,
                CONFIG_FILE_MODE,
            )
            os.close(fd)
            os.chmod(self.config_path, CONFIG_FILE_MODE)
        except OSError as exc:
            raise ConfigWriteFailed(self.config_path, str(exc)) from exc

        self._append(
            f"User {user}\n"
            "StrictHostKeyChecking accept-new\n"
            f"UserKnownHostsFile {self.known_hosts_path}\n"
        )

    def _append(self, text: str) -> None:
        with self._lock:
            try:
                with open(self.config_path, "a", encoding="utf-8") as fh:
                    fh.write(text)
            except OSError as exc:
                raise ConfigWriteFailed(self.config_path, str(exc)) from exc

    def write_bastion_host(self, address: str, identity: str) -> None:
        """Append the "bastion" host entry that workload hosts proxy through.

        Raises:
            InvalidHostAddress: If `address` is empty or not a single token.
            InvalidIdentityPath: If `identity` cannot be made absolute.
            ConfigWriteFailed: If the stanza cannot be appended.
        """
        identity = _absolute_identity(identity)
        address = _host_address(address)
        self._append(
            "\n"
            f"Host {BASTION_ALIAS}\n"
            f"  Hostname {address}\n"
            f"  IdentityFile {identity}\n"
            "  ControlMaster auto\n"
            f"  ControlPersist {self.control_persist}\n"
            f"  ControlPath {self.control_path}/%r@%h:%p\n"
        )
        self.has_bastion = True
        logger.debug("wrote bastion host %s to %s", address, self.config_path)

    def write_workload_host(self, address: str, identity: str) -> None:
        """Append a host entry for `address` that tunnels through the bastion.

        Raises:
            InvalidHostAddress: If `address` is empty or not a single token.
            InvalidIdentityPath: If `identity` cannot be made absolute.
            MissingBastionHost: If write_bastion_host has not succeeded yet.
            ConfigWriteFailed: If the stanza cannot be appended.
        """
        identity = _absolute_identity(identity)
        address = _host_address(address)
        if not self.has_bastion:
            raise MissingBastionHost(self.config_path)
        self._append(
            "\n"
            f"Host {address}\n"
            f"  IdentityFile {identity}\n"
            f"  ProxyCommand ssh -F {self.config_path} -W %h:%p {BASTION_ALIAS}\n"
        )
        logger.debug("wrote workload host %s to %s", address, self.config_path)


def _host_address(address: str) -> str:
    if not isinstance(address, str) or not address:
        raise InvalidHostAddress(address, "expected a non-empty string")
    if any(ch.isspace() or ord(ch) < 0x20 or ch == "\x7f" for ch in address):
        raise InvalidHostAddress(address, "whitespace or control characters")
    return address


def _absolute_identity(identity: str) -> str:
    try:
        path = os.fspath(identity)
    except TypeError as exc:
        raise InvalidIdentityPath(identity, str(exc)) from exc

    if not isinstance(path, str) or not path:
        raise InvalidIdentityPath(identity, "expected a non-empty path string")
    if any(ch in path for ch in ("\n", "\r", "\x00")):
        raise InvalidIdentityPath(identity, "path contains control characters")

    try:
        return os.path.abspath(path)
    except (OSError, ValueError) as exc:
        raise InvalidIdentityPath(identity, str(exc)) from exc
