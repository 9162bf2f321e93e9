"""
Braiins OS backend (bosminer cgminer-compatible RPC)
"""
import logging
from typing import Any, Dict, List, Optional

from ..api import CGMinerRPC
from ..commands import RPCCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, PoolData
from ..device import MinerFirmware, MinerMake
from ..extract import DataField, pointer
from .base import FieldMap, MinerBackend
from .util import as_float, as_int, as_str, cgminer_pools, hashrate

logger = logging.getLogger(__name__)

VERSION = RPCCommand("version")
SUMMARY = RPCCommand("summary")
DEVS = RPCCommand("devs")
DEVDETAILS = RPCCommand("devdetails")
TEMPS = RPCCommand("temps")
FANS = RPCCommand("fans")
TUNERSTATUS = RPCCommand("tunerstatus")
POOLS = RPCCommand("pools")


def _by_board(entries: Any) -> Dict[int, Dict]:
    """Index bosminer per-board entries by zero-based board position"""
    if not isinstance(entries, list):
        return {}
    boards = {}
    for idx, entry in enumerate(entries):
        if not isinstance(entry, dict):
            continue
        board_id = as_int(entry.get('ID'))
        position = board_id - 1 if board_id else idx
        boards[position] = entry
    return boards


class BraiinsOS(MinerBackend):
    make = MinerMake.ANTMINER
    firmware = MinerFirmware.BRAIINS_OS

    def create_api(self):
        return CGMinerRPC(self.ip)

    def get_locations(self, data_field):
        if data_field == DataField.API_VERSION:
            return [(VERSION, pointer("/VERSION/0/API"))]
        if data_field == DataField.FIRMWARE_VERSION:
            return [(VERSION, pointer("/VERSION/0/BOSminer"))]
        if data_field == DataField.HASHRATE:
            return [(SUMMARY, pointer("/SUMMARY/0/MHS 1m"))]
        if data_field == DataField.EXPECTED_HASHRATE:
            return [(DEVS, pointer("/DEVS"))]
        if data_field == DataField.UPTIME:
            return [(SUMMARY, pointer("/SUMMARY/0/Elapsed"))]
        if data_field == DataField.HASHBOARDS:
            return [
                (DEVS, pointer("/DEVS", tag="devs")),
                (TEMPS, pointer("/TEMPS", tag="temps")),
                (DEVDETAILS, pointer("/DEVDETAILS", tag="details")),
            ]
        if data_field == DataField.FANS:
            return [(FANS, pointer("/FANS"))]
        if data_field == DataField.WATTAGE:
            return [(TUNERSTATUS, pointer("/TUNERSTATUS/0/ApproximateMinerPowerConsumption"))]
        if data_field == DataField.WATTAGE_LIMIT:
            return [(TUNERSTATUS, pointer("/TUNERSTATUS/0/PowerLimit"))]
        if data_field == DataField.POOLS:
            return [(POOLS, pointer("/POOLS"))]
        return []

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.MEGAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        devs = data.get(DataField.EXPECTED_HASHRATE)
        if not isinstance(devs, list):
            return None
        nominal = [as_float(dev.get('Nominal MHS')) for dev in devs if isinstance(dev, dict)]
        nominal = [value for value in nominal if value is not None]
        if not nominal:
            return None
        return hashrate(sum(nominal), HashRateUnit.MEGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        found = data.get(DataField.HASHBOARDS)
        if not isinstance(found, dict):
            found = {}
        devs = _by_board(found.get('devs'))
        temps = _by_board(found.get('temps'))
        details = _by_board(found.get('details'))

        positions = sorted(set(devs) | set(temps) | set(details))
        if not positions:
            return self.empty_boards()

        boards = []
        for position in positions:
            dev = devs.get(position, {})
            temp = temps.get(position, {})
            detail = details.get(position, {})
            rate = hashrate(dev.get('MHS 1m'), HashRateUnit.MEGAHASH)
            boards.append(BoardData(
                position=position,
                hashrate=rate,
                expected_hashrate=hashrate(dev.get('Nominal MHS'), HashRateUnit.MEGAHASH),
                board_temperature=as_float(temp.get('Board')),
                outlet_temperature=as_float(temp.get('Chip')),
                expected_chips=self.device_info.hardware.chips,
                working_chips=as_int(detail.get('Chips')),
                voltage=as_float(detail.get('Voltage')),
                frequency=as_float(detail.get('Frequency')),
                tuned=True,
                active=as_str(dev.get('Status')) == 'Alive' if dev else rate is not None,
            ))
        return boards

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        fans = data.get(DataField.FANS)
        if not isinstance(fans, list):
            return []
        result = []
        for idx, fan in enumerate(fans):
            if not isinstance(fan, dict):
                continue
            rpm = as_float(fan.get('RPM'))
            if rpm is not None:
                result.append(FanData(position=as_int(fan.get('ID', idx)), rpm=rpm))
        return result

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE))

    def parse_wattage_limit(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE_LIMIT))

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        return cgminer_pools(data.get(DataField.POOLS))
