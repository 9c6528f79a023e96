import socket, ipaddress, logging
from typing import Iterable, Optional, Set
import psutil

logger = logging.getLogger(__name__)


def normalize_address(value: str):
    """Parse an address, dropping any IPv6 zone id and unwrapping IPv4-mapped IPv6."""
    addr = ipaddress.ip_address(value.split('%', 1)[0])
    if addr.version == 6 and addr.ipv4_mapped is not None:
        return addr.ipv4_mapped
    return addr


def local_addresses() -> Set:
    """Every address bound to this host: interface addresses plus whatever the hostname resolves to."""
    found = set()
    candidates = []
    try:
        for addrs in psutil.net_if_addrs().values():
            candidates.extend(a.address for a in addrs if a.family in (socket.AF_INET, socket.AF_INET6))
    except OSError as e:
        logger.warning('could not enumerate network interfaces: %s', e)
    try:
        candidates.extend(info[4][0] for info in socket.getaddrinfo(socket.gethostname(), None))
    except OSError as e:
        logger.warning('could not resolve host name: %s', e)
    for value in candidates:
        try:
            found.add(normalize_address(value))
        except ValueError:
            continue
    return found


def is_local_client(host: Optional[str], addresses: Iterable = None) -> bool:
    """True when the caller is loopback or one of this machine's own addresses."""
    if not host:
        return False
    try:
        remote = normalize_address(host)
    except ValueError:
        return False
    if remote.is_loopback:
        return True
    if addresses is None:
        addresses = local_addresses()
    return remote in set(addresses)
