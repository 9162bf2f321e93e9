"""
Canaan AvalonMiner backend (stock cgminer RPC)

Most Avalon telemetry lives in bracket-encoded strings inside the "stats"
response, e.g. "MM ID0": "Ver[1066-...] Fan1[5010] Temp[31] WALLPOWER[3290]".
"""
import logging
import re
from typing import Any, Dict, List, Optional

from ..api import CGMinerRPC
from ..commands import RPCCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, PoolData
from ..device import MinerMake
from ..extract import DataField, pointer
from .base import FieldMap, MinerBackend
from .util import as_float, as_int, cgminer_pools, first_value, hashrate, parse_bracket_stats

logger = logging.getLogger(__name__)

VERSION = RPCCommand("version")
STATS = RPCCommand("stats")
DEVS = RPCCommand("devs")
POOLS = RPCCommand("pools")

_FAN_KEY = re.compile(r'^Fan(\d*)$')

# Later keys override earlier ones
_MODULE_KEYS = ("HBinfo", "MM ID0:Summary", "MM ID0")


def avalon_stats(stats: Any) -> Dict[str, List[str]]:
    """
    Flatten Avalon's bracket-encoded stats into one mapping

    Accepts the raw "/STATS" array, a single stats entry or the bracket
    string itself. Only controller module 0 is read ("HBinfo",
    "MM ID0:Summary" and "MM ID0"); further modules ("MM ID1", ...) are
    ignored.
    """
    if isinstance(stats, str):
        return parse_bracket_stats(stats)

    if isinstance(stats, list):
        entries = [entry for entry in stats if isinstance(entry, dict)]
        avalon = [entry for entry in entries if str(entry.get('ID', '')).upper().startswith('AVA')]
        entries = avalon or entries
        stats = entries[0] if entries else None

    if not isinstance(stats, dict):
        return {}

    merged = {}
    for name in _MODULE_KEYS:
        merged.update(parse_bracket_stats(stats.get(name)))
    return merged


def avalon_fans(stats: Dict[str, List[str]], limit: Optional[int] = None) -> List[FanData]:
    """
    Fan tokens "Fan[rpm]" and "FanN[rpm]" as FanData

    A bare "Fan" is position 0, "FanN" is position N-1. Derived tokens such
    as FanR (duty percent) and FanErr are not fans.
    """
    fans = {}
    for name, values in stats.items():
        match = _FAN_KEY.match(name)
        if match is None or not values:
            continue
        rpm = as_float(values[0])
        if rpm is None:
            continue
        position = int(match.group(1)) - 1 if match.group(1) else 0
        if position < 0:
            continue
        fans.setdefault(position, FanData(position=position, rpm=rpm))

    result = [fans[position] for position in sorted(fans)]
    if limit:
        result = result[:limit]
    return result


class AvalonMiner(MinerBackend):
    make = MinerMake.AVALONMINER

    def create_api(self):
        return CGMinerRPC(self.ip)

    def get_locations(self, data_field):
        if data_field == DataField.MAC:
            return [(VERSION, pointer("/VERSION/0/MAC"))]
        if data_field == DataField.API_VERSION:
            return [(VERSION, pointer("/VERSION/0/API"))]
        if data_field == DataField.FIRMWARE_VERSION:
            return [(VERSION, pointer("/VERSION/0/CGMiner"))]
        if data_field == DataField.HASHRATE:
            return [(DEVS, pointer("/DEVS/0/MHS 5m"))]
        if data_field in (DataField.EXPECTED_HASHRATE, DataField.HASHBOARDS,
                          DataField.FLUID_TEMPERATURE, DataField.WATTAGE,
                          DataField.WATTAGE_LIMIT, DataField.FANS,
                          DataField.LIGHT_FLASHING):
            return [(STATS, pointer("/STATS"))]
        if data_field == DataField.UPTIME:
            return [(STATS, pointer("/STATS/0/Elapsed"))]
        if data_field == DataField.POOLS:
            return [(POOLS, pointer("/POOLS"))]
        return []

    def _stat(self, data: FieldMap, data_field: DataField, name: str) -> Optional[str]:
        return first_value(avalon_stats(data.get(data_field)), name)

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.MEGAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(self._stat(data, DataField.EXPECTED_HASHRATE, 'GHSmm'), HashRateUnit.GIGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        boards = self.empty_boards() or [BoardData(position=0, active=False)]
        stats = avalon_stats(data.get(DataField.HASHBOARDS))
        if not stats:
            return boards

        def per_board(name: str, idx: int) -> Optional[str]:
            values = stats.get(name) or []
            if idx < len(values):
                return values[idx]
            return None

        for idx, board in enumerate(boards):
            board.hashrate = hashrate(per_board('MGHS', idx), HashRateUnit.GIGAHASH)
            board.intake_temperature = as_float(per_board('ITemp', idx))
            board.board_temperature = as_float(per_board('HBITemp', idx))

            chip_temps = stats.get(f"PVT_T{idx}")
            if chip_temps:
                board.working_chips = sum(1 for temp in chip_temps if temp != '0')

            if board.hashrate is not None or board.working_chips:
                board.active = True
        return boards

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        return avalon_fans(avalon_stats(data.get(DataField.FANS)), self.device_info.hardware.fans)

    def parse_fluid_temperature(self, data: FieldMap) -> Optional[float]:
        return as_float(self._stat(data, DataField.FLUID_TEMPERATURE, 'Temp'))

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(self._stat(data, DataField.WATTAGE, 'WALLPOWER'))

    def parse_wattage_limit(self, data: FieldMap) -> Optional[float]:
        return as_float(self._stat(data, DataField.WATTAGE_LIMIT, 'MPO'))

    def parse_light_flashing(self, data: FieldMap) -> Optional[bool]:
        led = as_int(self._stat(data, DataField.LIGHT_FLASHING, 'Led'))
        if led is None:
            return None
        return led == 1

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        return cgminer_pools(data.get(DataField.POOLS))
