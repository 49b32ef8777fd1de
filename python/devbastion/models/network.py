"""
network.py

NetworkPlan names the prefixes of a development topology: the whole VPC, an
ingress DMZ subnet that holds the bastion, and a private workload subnet.
"""

from __future__ import annotations

import ipaddress
from typing import Dict

from pydantic import BaseModel, field_validator, model_validator


class NetworkPlan(BaseModel):
    """The IP ranges a development network is built from.

    Attributes:
        vpc: The CIDR block of the whole VPC.
        dmz: The ingress subnet, reachable from the internet.
        workload: The private subnet for workload instances.
    """

    vpc: str = "172.16.0.0/16"
    dmz: str = "172.16.1.0/24"
    workload: str = "172.16.2.0/24"

    @field_validator("vpc", "dmz", "workload")
    @classmethod
    def validate_cidr(cls, val: str) -> str:
        # Canonical form; strict=True rejects host bits set in the prefix.
        return str(ipaddress.ip_network(val, strict=True))

    @model_validator(mode="after")
    def check_subnets_in_vpc(self) -> NetworkPlan:
        """
        Every subnet must be a subnet of the VPC block, and the subnets must
        not overlap one another.
        """
        vpc = ipaddress.ip_network(self.vpc)
        dmz = ipaddress.ip_network(self.dmz)
        workload = ipaddress.ip_network(self.workload)

        for name, subnet in (("dmz", dmz), ("workload", workload)):
            if subnet.version != vpc.version or not subnet.subnet_of(vpc):  # type: ignore[arg-type]
                raise ValueError(f"{name} subnet {subnet} is not inside vpc {vpc}")

        if dmz.overlaps(workload):  # type: ignore[arg-type]
            raise ValueError(f"dmz {dmz} overlaps workload {workload}")
        return self

    def as_dict(self) -> Dict[str, str]:
        return {"vpc": self.vpc, "dmz": self.dmz, "workload": self.workload}
