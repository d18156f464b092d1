"""
IPv4 subnet arithmetic.

Every network lives in one IPv4 CIDR block. Nodes receive addresses from the
usable host range, which excludes the network and broadcast addresses:

    [network + 1, broadcast - 1]

Two networks conflict when their `[network, broadcast]` intervals intersect.
"""

from __future__ import annotations

import ipaddress

from clique_orchestrator.types import InvalidSubnet


def parse_subnet(cidr: str) -> ipaddress.IPv4Network:
    """
    Parse an IPv4 CIDR string.

    Host bits are masked off, so `172.20.0.7/24` parses as `172.20.0.0/24`.

    Raises:
        InvalidSubnet: If the string is not `a.b.c.d/n` or `n` is outside [0, 32].
    """
    if not isinstance(cidr, str) or "/" not in cidr:
        raise InvalidSubnet(str(cidr), "must be in CIDR notation (e.g. '172.20.0.0/24')")

    address, _, prefix = cidr.partition("/")
    if not prefix.isdigit() or not 0 <= int(prefix) <= 32:
        raise InvalidSubnet(cidr, "prefix length must be between 0 and 32")

    try:
        return ipaddress.IPv4Network(f"{address}/{int(prefix)}", strict=False)
    except ValueError as exc:
        raise InvalidSubnet(cidr, str(exc)) from exc


def usable_range(network: ipaddress.IPv4Network) -> tuple[int, int]:
    """
    Return the first and last usable host addresses as integers.

    For /31 and /32 the range is empty: the first value exceeds the last.
    """
    first = int(network.network_address) + 1
    last = int(network.broadcast_address) - 1
    return first, last


def contains_host(network: ipaddress.IPv4Network, ip: str) -> bool:
    """Whether `ip` lies in the usable host range of `network`."""
    try:
        value = int(ipaddress.IPv4Address(ip))
    except ValueError:
        return False
    first, last = usable_range(network)
    return first <= value <= last


def subnets_overlap(a: str, b: str) -> bool:
    """
    Interval overlap test on `[network, broadcast]`.

    `172.20.0.0/24` and `172.20.0.128/25` overlap.
    `172.20.0.0/24` and `172.21.0.0/24` do not.
    """
    net_a = parse_subnet(a)
    net_b = parse_subnet(b)
    start_a, end_a = int(net_a.network_address), int(net_a.broadcast_address)
    start_b, end_b = int(net_b.network_address), int(net_b.broadcast_address)
    return start_a <= end_b and start_b <= end_a
