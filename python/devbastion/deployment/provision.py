"""
devbastion/deployment/provision.py

The provisioning driver's view of the secure-access core. Cloud resources are
created elsewhere; this module supplies what they need and records what they
produce:

  1) provision_public_key: the SSH key injected into every instance.
  2) allocate_workload_addresses: one private address per workload instance.
  3) write_access_config: the bastion-proxied SSH client config.

plan_access runs 2) and 3) for a bastion and N workload hosts.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from devbastion.models.network import NetworkPlan
from devbastion.models.providers import ProviderName, key_bits_for
from devbastion.models.settings import ProvisionSettings
from devbastion.models.ssh import SSHPublicKey
from devbastion.utils.address import AllocationCursor, parse_prefix
from devbastion.utils.keys import load_or_create_public_key
from devbastion.utils.naming import default_name_prefix, gen_name, name_tags
from devbastion.utils.ssh_config import SSHConfigBuilder

logger = logging.getLogger(__name__)


class ProvisionContext(BaseModel):
    """Per-run provisioning state, passed explicitly to whatever needs it.

    Attributes:
        settings: The resolved ProvisionSettings.
        network: The topology's named prefixes.
        name_prefix: Leading component of every resource name; the current
            user name is looked up on first use when unset.
        security_groups: Security group name -> cloud resource id, filled in
            as the driver creates them.
    """

    settings: ProvisionSettings = Field(default_factory=ProvisionSettings)
    network: NetworkPlan = Field(default_factory=NetworkPlan)
    name_prefix: Optional[str] = None
    security_groups: Dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_settings(
        cls, settings: ProvisionSettings, network: Optional[NetworkPlan] = None
    ) -> ProvisionContext:
        return cls(
            settings=settings,
            network=network or NetworkPlan(),
            name_prefix=settings.name_prefix,
        )

    def resolved_name_prefix(self) -> str:
        if self.name_prefix is None:
            self.name_prefix = default_name_prefix()
        return self.name_prefix

    def name(self, *parts: str) -> str:
        return gen_name(self.resolved_name_prefix(), *parts)

    def tags(self, resource_id: str) -> Dict[str, str]:
        return name_tags(self.resolved_name_prefix(), self.settings.stack, resource_id)

    def register_security_group(self, name: str, group_id: str) -> None:
        if name in self.security_groups:
            raise ValueError(f"Security group '{name}' already registered")
        self.security_groups[name] = group_id

    def security_group(self, name: str) -> str:
        if name not in self.security_groups:
            raise KeyError(f"Unknown security group '{name}'")
        return self.security_groups[name]


class AccessPlan(BaseModel):
    """Addresses handed out in one run and the SSH config that reaches them."""

    bastion_address: str
    workload_addresses: List[str]
    ssh_config_path: str
    identity_path: str


def provision_public_key(
    context: ProvisionContext, provider: Optional[ProviderName] = None
) -> SSHPublicKey:
    """
    Load (or create) the run's SSH key. The key size follows `provider` when
    given, otherwise the configured key_bits.
    """
    bits = key_bits_for(provider) if provider else context.settings.key_bits
    return load_or_create_public_key(context.settings.key_path, bits)


def allocate_workload_addresses(prefix: str, count: int) -> List[str]:
    """
    Allocate `count` sequential addresses in `prefix`, one per instance.

    The cursor starts on the first allocatable address and advances before each
    assignment, so for 172.16.2.0/24 the instances get .6, .7, ...

    Raises:
        AddressRangeExhausted: If the prefix cannot hold `count` instances.
    """
    if count < 0:
        raise ValueError("count must not be negative")

    cursor = AllocationCursor(parse_prefix(prefix))
    return [str(cursor.next()) for _ in range(count)]


def write_access_config(
    context: ProvisionContext,
    bastion_address: str,
    workload_addresses: List[str],
) -> SSHConfigBuilder:
    """
    Write a fresh SSH client config: the bastion first, then every workload.
    """
    settings = context.settings
    builder = SSHConfigBuilder(
        settings.ssh_config_path,
        user=settings.ssh_user,
        control_persist=settings.control_persist,
    )
    builder.write_bastion_host(bastion_address, settings.key_path)
    for address in workload_addresses:
        builder.write_workload_host(address, settings.key_path)
    return builder


def plan_access(
    context: ProvisionContext, bastion_address: str, count: int
) -> AccessPlan:
    """
    Allocate `count` workload addresses from the context's workload subnet and
    write the SSH config that reaches them through the bastion.
    """
    addresses = allocate_workload_addresses(context.network.workload, count)
    builder = write_access_config(context, bastion_address, addresses)
    logger.info(
        "ssh config %s: bastion %s, %d workload host(s)",
        builder.config_path,
        bastion_address,
        len(addresses),
    )
    return AccessPlan(
        bastion_address=bastion_address,
        workload_addresses=addresses,
        ssh_config_path=builder.config_path,
        identity_path=os.path.abspath(context.settings.key_path),
    )
