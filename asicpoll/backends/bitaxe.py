"""
Bitaxe (AxeOS, ESP32) backend
"""
import logging
from typing import Any, Dict, List, Optional

from ..api import WebAPI
from ..commands import WebCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, PoolData, PoolURL
from ..device import MinerMake
from ..extract import DataField, pointer
from .base import FieldMap, MinerBackend
from .util import as_bool, as_float, as_int, as_str, hashrate

logger = logging.getLogger(__name__)

SYSTEM_INFO = WebCommand("system/info")


def _pool(info: Dict, prefix: str, position: int, active: Optional[bool]) -> Optional[PoolData]:
    """Build one pool from the stratumURL/stratumPort/stratumUser family of keys"""
    host = as_str(info.get(f"{prefix}URL"))
    if host is None:
        return None
    port = as_int(info.get(f"{prefix}Port"))
    url = PoolURL.parse(host)
    if url.port is None and port is not None:
        url = PoolURL(url.scheme, url.host, port, url.pubkey)
    return PoolData(
        position=position,
        url=url,
        user=as_str(info.get(f"{prefix}User")),
        active=active,
    )


class Bitaxe(MinerBackend):
    make = MinerMake.BITAXE

    def create_api(self):
        return WebAPI(self.ip, path_template="/api/{command}")

    def get_locations(self, data_field):
        paths = {
            DataField.MAC: "/macAddr",
            DataField.HOSTNAME: "/hostname",
            DataField.API_VERSION: "/axeOSVersion",
            DataField.FIRMWARE_VERSION: "/version",
            DataField.CONTROL_BOARD_VERSION: "/boardVersion",
            DataField.HASHRATE: "/hashRate",
            DataField.EXPECTED_HASHRATE: "/expectedHashrate",
            DataField.WATTAGE: "/power",
            DataField.UPTIME: "/uptimeSeconds",
            DataField.FANS: "/fanrpm",
            DataField.HASHBOARDS: "",
            DataField.POOLS: "",
        }
        if data_field not in paths:
            return []
        return [(SYSTEM_INFO, pointer(paths[data_field]))]

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.GIGAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.EXPECTED_HASHRATE), HashRateUnit.GIGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        info = data.get(DataField.HASHBOARDS)
        if not isinstance(info, dict):
            return self.empty_boards()

        rate = hashrate(info.get('hashRate'), HashRateUnit.GIGAHASH)
        voltage = as_float(info.get('coreVoltageActual'))
        return [BoardData(
            position=0,
            hashrate=rate,
            expected_hashrate=hashrate(info.get('expectedHashrate'), HashRateUnit.GIGAHASH),
            board_temperature=as_float(info.get('vrTemp')),
            intake_temperature=as_float(info.get('temp')),
            expected_chips=self.device_info.hardware.chips,
            working_chips=as_int(info.get('asicCount')) or self.device_info.hardware.chips,
            # coreVoltageActual is reported in millivolts
            voltage=voltage / 1000 if voltage is not None else None,
            frequency=as_float(info.get('frequency')),
            active=rate is not None and rate.value > 0,
        )]

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        rpm = as_float(data.get(DataField.FANS))
        if rpm is None:
            return []
        return [FanData(position=0, rpm=rpm)]

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE))

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        info: Any = data.get(DataField.POOLS)
        if not isinstance(info, dict):
            return []

        on_fallback = as_bool(info.get('isUsingFallbackStratum'))
        pools = []
        primary = _pool(info, 'stratum', 0, None if on_fallback is None else not on_fallback)
        if primary is not None:
            primary.accepted_shares = as_int(info.get('sharesAccepted'))
            primary.rejected_shares = as_int(info.get('sharesRejected'))
            pools.append(primary)
        fallback = _pool(info, 'fallbackStratum', 1, on_fallback)
        if fallback is not None:
            pools.append(fallback)
        return pools
