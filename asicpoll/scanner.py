"""
Range scanner: detect and poll many addresses in parallel
"""
import ipaddress
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable, List, Optional

from .data import MinerData
from .detector import MinerDetector
import config

logger = logging.getLogger(__name__)


class MinerScanner:
    """Runs detection plus one telemetry poll per host"""

    def __init__(self, detector: MinerDetector = None, max_workers: int = None):
        self.detector = detector or MinerDetector()
        self.max_workers = max_workers or config.SCAN_CONCURRENCY

    def get_miner_data(self, ip: str) -> Optional[MinerData]:
        """
        Detect the miner at one address and poll it

        Returns:
            MinerData snapshot, or None when no supported miner answered
        """
        backend = self.detector.get_miner(ip)
        if backend is None:
            return None
        return backend.get_data()

    def scan(self, subnet: str = None) -> List[MinerData]:
        """
        Scan every host address of a subnet

        Args:
            subnet: Network subnet (e.g., "10.0.0.0/24")
        """
        if subnet is None:
            subnet = config.NETWORK_SUBNET

        logger.info(f"Starting network scan on {subnet}")
        network = ipaddress.IPv4Network(subnet, strict=False)
        return self.scan_hosts(str(ip) for ip in network.hosts())

    def scan_hosts(self, ips: Iterable[str]) -> List[MinerData]:
        """Poll a list of addresses; hosts that fail are logged and skipped"""
        ips = list(ips)
        if not ips:
            return []

        found = []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(ips))) as executor:
            futures = {executor.submit(self.get_miner_data, ip): ip for ip in ips}

            for future in as_completed(futures):
                ip = futures[future]
                try:
                    data = future.result()
                    if data is not None:
                        found.append(data)
                except Exception as e:
                    logger.error(f"Error polling {ip}: {e}")

        # completion order is arbitrary; report in address order
        found.sort(key=lambda data: ipaddress.ip_address(data.ip))
        logger.info(f"Scan complete. Found {len(found)} miners")
        return found
