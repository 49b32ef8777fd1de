"""
devbastion/utils/address.py

Deterministic allocation of instance addresses inside a reserved IP block.

Cloud providers hold back the first addresses of every subnet (network address,
VPC router, DNS resolver, future use), so instances are placed starting at the
fifth address after the base. Allocation is monotonic: there is no release, and
advancing past the top of the range (or wrapping past the end of the address
family) raises AddressRangeExhausted instead of reusing anything.

Usage example:
    prefix = parse_prefix("10.0.0.0/24")
    first_allocatable(prefix)          # IPv4Address('10.0.0.5')

    cursor = AllocationCursor(prefix)
    cursor.next()                      # IPv4Address('10.0.0.6')
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Optional, Union

from devbastion.errors import AddressRangeExhausted

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

# Base address plus the provider-reserved addresses that follow it.
RESERVED_LEADING = 4


def parse_prefix(cidr: str) -> IPNetwork:
    """Parse a CIDR string into a network, masking any host bits.

    Args:
        cidr (str): e.g. "172.16.2.0/24" or "fd00::/120".

    Returns:
        IPNetwork: The parsed IPv4 or IPv6 network.

    Raises:
        ValueError: If the string is not a valid prefix.
    """
    return ipaddress.ip_network(cidr, strict=False)


def _increment(address: IPAddress) -> Optional[IPAddress]:
    """Return address + 1, or None if that wraps past the family's last address."""
    value = int(address) + 1
    if value >= 2**address.max_prefixlen:
        return None
    return type(address)(value)


def first_allocatable(prefix: IPNetwork) -> IPAddress:
    """Return the first address in `prefix` that may be assigned to an instance.

    Walks forward from the range start, skipping the zero address and the
    provider-reserved ones, and returns start + 5.

    Raises:
        AddressRangeExhausted: If the range ends (or the address family wraps)
            before the first allocatable address is reached.
    """
    last = prefix.broadcast_address
    address: IPAddress = prefix.network_address
    skipped = 0

    while True:
        if address == last:
            raise AddressRangeExhausted(str(prefix))

        advanced = _increment(address)
        if advanced is None:
            raise AddressRangeExhausted(str(prefix))
        address = advanced

        skipped += 1
        if skipped > RESERVED_LEADING:
            return address


def next_allocatable(address: IPAddress, prefix: IPNetwork) -> IPAddress:
    """Advance one address from a previously allocated `address`.

    Raises:
        AddressRangeExhausted: If advancing wraps to zero, or lands on (or past)
            the top of the range.
    """
    advanced = _increment(address)
    if advanced is None or advanced >= prefix.broadcast_address:
        raise AddressRangeExhausted(str(prefix))
    return advanced


class AllocationCursor:
    """Caller-held allocation state for one prefix.

    The cursor starts positioned on `first_allocatable(prefix)`; each call to
    `next()` advances one address and returns it. Cursors share nothing, so
    independent loops over the same prefix need their own cursor.
    """

    def __init__(self, prefix: IPNetwork) -> None:
        self.prefix = prefix
        self.current: IPAddress = first_allocatable(prefix)

    def next(self) -> IPAddress:
        """Advance and return the next usable address.

        Raises:
            AddressRangeExhausted: When the prefix has no address left.
        """
        self.current = next_allocatable(self.current, self.prefix)
        logger.debug("allocated %s from %s", self.current, self.prefix)
        return self.current

