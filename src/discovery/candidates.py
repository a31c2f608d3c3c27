"""
Candidate generation for backend discovery
Builds the ordered list of base addresses worth probing, highest confidence first
"""

import ipaddress
import logging
from typing import Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = ['localhost', '127.0.0.1']
QUICK_SCAN_HOSTS = [1, 2, 10, 100, 254]
DEFAULT_PREFIXES = ['192.168.1', '192.168.0', '10.0.0', '172.16.0']
DEFAULT_FALLBACK_URLS = ['http://192.168.1.100:8000', 'http://raspberrypi.local:8000']

# Standard private ranges (RFC 1918) that qualify a local address for prefix promotion
PRIVATE_NETWORKS = [
    ipaddress.IPv4Network('10.0.0.0/8'),
    ipaddress.IPv4Network('172.16.0.0/12'),
    ipaddress.IPv4Network('192.168.0.0/16'),
]


def is_private_ipv4(address: str) -> bool:
    try:
        ip = ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return any(ip in network for network in PRIVATE_NETWORKS)


def network_prefix(address: str) -> str:
    """First three octets of an IPv4 address ('192.168.4.17' -> '192.168.4')"""
    return address.rsplit('.', 1)[0]


def dedupe(candidates: Iterable[str]) -> List[str]:
    """Drop repeated addresses, keeping the first occurrence"""
    seen = set()
    unique = []
    for candidate in candidates:
        if candidate not in seen:
            seen.add(candidate)
            unique.append(candidate)
    return unique


class CandidateGenerator:
    """Produces the de-duplicated probe order from discovery config"""

    def __init__(self, config: Dict):
        self.port = config.get('default_port', 8000)
        self.scheme = config.get('scheme', 'http')
        self.network_prefixes = list(config.get('network_prefixes', DEFAULT_PREFIXES))
        host_range = config.get('host_range', [1, 254])
        self.host_start, self.host_end = int(host_range[0]), int(host_range[1])
        self.quick_scan = config.get('quick_scan', False)
        self.quick_scan_hosts = list(config.get('quick_scan_hosts', QUICK_SCAN_HOSTS))
        # scan the observed /24 even when it is not one of the configured prefixes
        self.scan_observed_network = config.get('scan_observed_network', False)
        self.fallback_urls = list(config.get('fallback_urls', DEFAULT_FALLBACK_URLS))

    def address(self, host: str) -> str:
        return f"{self.scheme}://{host}:{self.port}"

    def generate(self, local_address: Optional[str] = None) -> List[str]:
        """
        Full candidate list: loopback, local address, prefix expansion, fallbacks.
        The operator override is verified separately by the coordinator before this runs.
        """
        candidates = [self.address(host) for host in LOOPBACK_HOSTS]

        if local_address:
            candidates.append(self.address(local_address))

        for prefix in self.ordered_prefixes(local_address):
            candidates.extend(self.address(f"{prefix}.{host}") for host in self.host_numbers())

        candidates.extend(url.rstrip('/') for url in self.fallback_urls)

        unique = dedupe(candidates)
        logger.debug(
            f"Generated {len(unique)} candidates "
            f"({len(candidates) - len(unique)} duplicates dropped, quick_scan={self.quick_scan})"
        )
        return unique

    def ordered_prefixes(self, local_address: Optional[str] = None) -> List[str]:
        """Configured prefixes, with the observed local /24 moved to the front when private"""
        prefixes = list(self.network_prefixes)
        if local_address and is_private_ipv4(local_address):
            observed = network_prefix(local_address)
            if observed in prefixes or self.scan_observed_network:
                prefixes = [observed] + [p for p in prefixes if p != observed]
        return prefixes

    def host_numbers(self) -> List[int]:
        if self.quick_scan:
            return [h for h in self.quick_scan_hosts if 1 <= h <= 254]
        return list(range(self.host_start, self.host_end + 1))
