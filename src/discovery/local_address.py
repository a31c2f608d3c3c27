"""
Local network address inference

Learns which private address this machine uses by opening a datagram socket
towards a public rendezvous (STUN) server and reading back the address the OS
bound for it. Connecting a UDP socket sends nothing on the wire and needs no
privileges.
"""

import asyncio
import socket
from concurrent.futures import ThreadPoolExecutor
import ipaddress
import logging
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_RENDEZVOUS_HOST = "stun.l.google.com"
DEFAULT_RENDEZVOUS_PORT = 19302


def is_usable_address(address: str) -> bool:
    """True for addresses that identify this host on a network (not loopback, not link-local)"""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_link_local or ip.is_unspecified)


class LocalAddressInferrer:
    """Best-guess local network address, or None. Never raises."""

    def __init__(self, rendezvous_host: str = DEFAULT_RENDEZVOUS_HOST,
                 rendezvous_port: int = DEFAULT_RENDEZVOUS_PORT,
                 timeout: float = 3.0):
        self.rendezvous_host = rendezvous_host
        self.rendezvous_port = rendezvous_port
        self.timeout = timeout

    async def infer_local_address(self) -> Optional[str]:
        loop = asyncio.get_running_loop()
        # getaddrinfo has no timeout of its own; a lookup still running after
        # the deadline finishes on this private thread, not the default executor
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="local-address")
        try:
            address = await asyncio.wait_for(
                loop.run_in_executor(executor, self._negotiate),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.debug(f"Local address inference timed out after {self.timeout}s")
            return None
        except Exception as e:
            logger.debug(f"Local address inference failed: {e}")
            return None
        finally:
            executor.shutdown(wait=False)

        if address:
            logger.info(f"Inferred local address: {address}")
        else:
            logger.info("Local address unknown")
        return address

    def _negotiate(self) -> Optional[str]:
        """Walk the rendezvous endpoints and return the first usable local address"""
        for peer in self._rendezvous_endpoints():
            local = self._local_address_towards(peer)
            if local and is_usable_address(local):
                return local
        return None

    def _rendezvous_endpoints(self) -> List[tuple]:
        infos = socket.getaddrinfo(
            self.rendezvous_host, self.rendezvous_port,
            socket.AF_INET, socket.SOCK_DGRAM
        )
        return [info[4] for info in infos]

    def _local_address_towards(self, peer: tuple) -> Optional[str]:
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.connect(peer)
                return sock.getsockname()[0]
        except OSError as e:
            logger.debug(f"No route towards {peer[0]}: {e}")
            return None


class StaticAddressInferrer:
    """Inferrer with a fixed answer, for hosts where the address is already known"""

    def __init__(self, address: Optional[str]):
        self.address = address

    async def infer_local_address(self) -> Optional[str]:
        return self.address
