"""
Subnet sweep that finds peers running a file server.

Discovery is connectivity-only: every address of the local /24 is probed
with a short TCP connect on the service port, and any address that
accepts the connection is recorded. No protocol bytes are exchanged.
"""

import asyncio
import ipaddress
import logging
import socket
import threading
from typing import Iterator, List, Optional, Tuple

from . import protocol
from .errors import SubnetDetectionError
from .events import EventSink

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 0.5
DEFAULT_PROBE_HOST = "8.8.8.8"
DEFAULT_PROBE_PORT = 53


def get_local_ip(probe_host: str = DEFAULT_PROBE_HOST, probe_port: int = DEFAULT_PROBE_PORT) -> str:
    """Get the address of the interface used for outbound traffic.

    Connecting a UDP socket only selects a route; no packet is sent.

    Args:
        probe_host: An external address to route towards
        probe_port: Any port on that address

    Returns:
        The local IPv4 address as a string

    Raises:
        SubnetDetectionError: If there is no route or only loopback is available
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect((probe_host, probe_port))
            ip = s.getsockname()[0]
    except OSError as e:
        raise SubnetDetectionError(f"Could not determine local IP: {e}") from e

    address = ipaddress.IPv4Address(ip)
    if address.is_loopback or address.is_unspecified:
        raise SubnetDetectionError(f"Only found local address {ip}")
    return ip


def parse_subnet(subnet: str) -> ipaddress.IPv4Network:
    """Parse a /24 given as ``"192.168.1"`` or ``"192.168.1.0/24"``.

    Raises:
        SubnetDetectionError: If the value is not a valid /24
    """
    value = subnet.strip()
    if "/" not in value:
        octets = value.split(".")
        if len(octets) == 4:
            octets = octets[:3]
        value = ".".join(octets) + ".0/24"

    try:
        network = ipaddress.IPv4Network(value, strict=False)
    except ValueError as e:
        raise SubnetDetectionError(f"Invalid subnet '{subnet}': {e}") from e

    if network.prefixlen != 24:
        raise SubnetDetectionError(f"Only /24 subnets can be scanned, got '{subnet}'")
    return network


def local_subnet(probe_host: str = DEFAULT_PROBE_HOST,
                 probe_port: int = DEFAULT_PROBE_PORT) -> ipaddress.IPv4Network:
    """Derive the /24 network of the local outbound interface."""
    return ipaddress.IPv4Network(f"{get_local_ip(probe_host, probe_port)}/24", strict=False)


def candidate_hosts(network: ipaddress.IPv4Network) -> List[str]:
    """List host suffixes .1 through .254 of a /24."""
    return [str(address) for address in network.hosts()]


class HostInventory:
    """Ordered, duplicate-free collection of hosts found by one scan.

    Probes add to it concurrently; readers may iterate it at any time and
    see a snapshot in discovery order.
    """

    def __init__(self, port: int = protocol.DEFAULT_PORT):
        self.port = port
        self._hosts: List[str] = []
        self._seen = set()
        self._lock = threading.Lock()
        self._done = threading.Event()
        self.error: Optional[str] = None

    def add(self, host: str) -> bool:
        """Record a discovered host.

        Returns:
            True if the host was new, False if it was already recorded
        """
        with self._lock:
            if host in self._seen:
                return False
            self._seen.add(host)
            self._hosts.append(host)
            return True

    def hosts(self) -> List[str]:
        with self._lock:
            return list(self._hosts)

    def addresses(self) -> List[Tuple[str, int]]:
        """Return the discovered peers as ``(host, port)`` pairs."""
        return [(host, self.port) for host in self.hosts()]

    def mark_complete(self, error: Optional[str] = None) -> None:
        with self._lock:
            self.error = error
        self._done.set()

    @property
    def complete(self) -> bool:
        return self._done.is_set()

    def __contains__(self, host: object) -> bool:
        with self._lock:
            return host in self._seen

    def __iter__(self) -> Iterator[str]:
        return iter(self.hosts())

    def __len__(self) -> int:
        with self._lock:
            return len(self._hosts)

    def __repr__(self) -> str:
        return f"HostInventory(port={self.port}, hosts={self.hosts()!r})"


class PeerScanner:
    """Probes every address of a /24 for a listening file server."""

    def __init__(self, port: int = protocol.DEFAULT_PORT, events: Optional[EventSink] = None,
                 timeout: float = DEFAULT_PROBE_TIMEOUT, subnet: Optional[str] = None,
                 probe_host: str = DEFAULT_PROBE_HOST, probe_port: int = DEFAULT_PROBE_PORT):
        """Initialize a new scanner.

        Args:
            port: The service port to probe
            events: Sink for log lines and discovery notifications
            timeout: Seconds to wait for each connect before giving up
            subnet: Fixed /24 to sweep; if None it is derived from the local IP
            probe_host: External address used to find the outbound interface
            probe_port: Port used with probe_host
        """
        self.port = port
        self.events = events or EventSink()
        self.timeout = timeout
        self.subnet = subnet
        self.probe_host = probe_host
        self.probe_port = probe_port

    def resolve_network(self) -> ipaddress.IPv4Network:
        """Work out which /24 to sweep.

        Raises:
            SubnetDetectionError: If no subnet is configured and detection fails
        """
        if self.subnet:
            return parse_subnet(self.subnet)
        return local_subnet(self.probe_host, self.probe_port)

    def start_scan(self, inventory: Optional[HostInventory] = None) -> Tuple[HostInventory, asyncio.Task]:
        """Launch a scan in the background.

        Must be called from a running event loop.

        Returns:
            The live inventory and the task running the sweep
        """
        if inventory is None:
            inventory = HostInventory(self.port)
        task = asyncio.create_task(self.scan(inventory))
        return inventory, task

    async def scan(self, inventory: Optional[HostInventory] = None) -> HostInventory:
        """Sweep the subnet and collect every host that accepts a connection.

        A subnet detection failure is reported through the event sink and
        ends the scan before any probe is sent.

        Args:
            inventory: Inventory to fill; a new one is created if None

        Returns:
            The completed inventory
        """
        if inventory is None:
            inventory = HostInventory(self.port)
        self.events.log(f"[CLIENT] Scanning local network for hosts on port {self.port}...")

        try:
            network = self.resolve_network()
        except SubnetDetectionError as e:
            self.events.log(f"[CLIENT] {e}. Local scan is not possible.")
            inventory.mark_complete(str(e))
            return inventory

        hosts = candidate_hosts(network)
        logger.debug(f"Probing {len(hosts)} addresses in {network} on port {self.port}")

        try:
            await asyncio.gather(*(self._check_host(host, inventory) for host in hosts))
        finally:
            inventory.mark_complete()

        logger.info(f"Scan of {network} finished, {len(inventory)} host(s) found")
        return inventory

    async def probe(self, host: str) -> bool:
        """Check whether anything accepts TCP connections on host:port.

        Returns:
            True if the connect succeeded within the timeout
        """
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, self.port), timeout=self.timeout
            )
        except (OSError, asyncio.TimeoutError):
            return False

        writer.close()
        try:
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error closing probe connection to {host}: {e}")
        return True

    async def _check_host(self, host: str, inventory: HostInventory) -> None:
        if await self.probe(host) and inventory.add(host):
            self.events.host_discovered(host)
            self.events.log(f"[CLIENT] Host found: {host}")
