"""
LuxOS backend (luxminer RPC on Antminer hardware)
"""
import logging
from typing import Any, List, Optional

from ..api import CGMinerRPC
from ..commands import RPCCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, MessageSeverity, MinerMessage, PoolData
from ..device import MinerFirmware, MinerMake
from ..extract import DataField, pointer
from .base import FieldMap, MinerBackend
from .util import as_bool, as_float, as_int, as_str, cgminer_pools, hashrate

logger = logging.getLogger(__name__)

VERSION = RPCCommand("version")
STATS = RPCCommand("stats")
SUMMARY = RPCCommand("summary")
POOLS = RPCCommand("pools")
CONFIG = RPCCommand("config")
FANS = RPCCommand("fans")
POWER = RPCCommand("power")
PROFILES = RPCCommand("profiles")


def parse_temp_string(value: Any) -> Optional[float]:
    """
    LuxOS reports per-sensor temperatures as "58-61-60-59"; average the
    non-zero readings
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) or None
    text = as_str(value)
    if text is None:
        return None
    temps = [t for t in (as_float(part) for part in text.split('-')) if t]
    if not temps:
        return None
    return sum(temps) / len(temps)


class LuxOS(MinerBackend):
    make = MinerMake.ANTMINER
    firmware = MinerFirmware.LUXOS

    def create_api(self):
        return CGMinerRPC(self.ip)

    def get_locations(self, data_field):
        if data_field == DataField.MAC:
            return [(CONFIG, pointer("/CONFIG/0/MACAddr"))]
        if data_field == DataField.HOSTNAME:
            return [(CONFIG, pointer("/CONFIG/0/hostname"))]
        if data_field == DataField.SERIAL_NUMBER:
            return [(CONFIG, pointer("/CONFIG/0/serial_no"))]
        if data_field == DataField.LIGHT_FLASHING:
            return [(CONFIG, pointer("/CONFIG/0/RedLed"))]
        if data_field == DataField.API_VERSION:
            return [(VERSION, pointer("/VERSION/0/API"))]
        if data_field == DataField.FIRMWARE_VERSION:
            return [(VERSION, pointer("/VERSION/0/Miner"))]
        if data_field in (DataField.HASHRATE, DataField.IS_MINING):
            return [(SUMMARY, pointer("/SUMMARY/0/GHS 5s"))]
        if data_field == DataField.MESSAGES:
            return [(SUMMARY, pointer("/STATUS"))]
        if data_field == DataField.EXPECTED_HASHRATE:
            return [(STATS, pointer("/STATS/1/total_rateideal"))]
        if data_field == DataField.HASHBOARDS:
            return [(STATS, pointer("/STATS/1"))]
        if data_field == DataField.UPTIME:
            return [(STATS, pointer("/STATS/1/Elapsed"))]
        if data_field == DataField.FANS:
            return [(FANS, pointer("/FANS"))]
        if data_field == DataField.WATTAGE:
            return [(POWER, pointer("/POWER/0/Watts"))]
        if data_field == DataField.WATTAGE_LIMIT:
            return [(PROFILES, pointer("/PROFILES"))]
        if data_field == DataField.POOLS:
            return [(POOLS, pointer("/POOLS"))]
        return []

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.GIGAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.EXPECTED_HASHRATE), HashRateUnit.GIGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        boards = self.empty_boards()
        for board in boards:
            board.tuned = False

        stats = data.get(DataField.HASHBOARDS)
        if not isinstance(stats, dict):
            return boards

        for board in boards:
            idx = board.position + 1
            board.hashrate = hashrate(stats.get(f"chain_rate{idx}"), HashRateUnit.GIGAHASH)
            board.working_chips = as_int(stats.get(f"chain_acn{idx}"))
            board.board_temperature = parse_temp_string(stats.get(f"temp_pcb{idx}"))
            board.intake_temperature = parse_temp_string(stats.get(f"temp_chip{idx}"))
            board.frequency = as_float(stats.get(f"freq{idx}"))

            working = (board.hashrate is not None and board.hashrate.value > 0) or bool(board.working_chips)
            board.active = working
            board.tuned = working
        return boards

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        fans = data.get(DataField.FANS)
        if not isinstance(fans, list):
            return []
        result = []
        for idx, fan in enumerate(fans):
            rpm = as_float(fan.get('RPM')) if isinstance(fan, dict) else None
            if rpm is not None:
                result.append(FanData(position=idx, rpm=rpm))
        return result

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE))

    def parse_wattage_limit(self, data: FieldMap) -> Optional[float]:
        profiles = data.get(DataField.WATTAGE_LIMIT)
        if not isinstance(profiles, list):
            return None
        for profile in profiles:
            if isinstance(profile, dict) and as_bool(profile.get('Active')):
                return as_float(profile.get('Power', profile.get('Watts')))
        return None

    def parse_light_flashing(self, data: FieldMap) -> Optional[bool]:
        led = as_str(data.get(DataField.LIGHT_FLASHING))
        if led is None:
            return None
        return led.lower() != "off"

    def parse_is_mining(self, data: FieldMap) -> bool:
        rate = as_float(data.get(DataField.IS_MINING))
        return rate > 0 if rate is not None else True

    def parse_messages(self, data: FieldMap) -> List[MinerMessage]:
        statuses = data.get(DataField.MESSAGES)
        if not isinstance(statuses, list):
            return []
        severities = {'E': MessageSeverity.ERROR, 'W': MessageSeverity.WARNING}
        messages = []
        for idx, item in enumerate(statuses):
            if not isinstance(item, dict):
                continue
            status = as_str(item.get('STATUS'))
            if status is None or status == 'S':
                continue
            messages.append(MinerMessage(
                timestamp=as_int(item.get('When')) or 0,
                code=as_int(item.get('Code')) or idx,
                message=as_str(item.get('Msg')) or "Unknown error",
                severity=severities.get(status, MessageSeverity.INFO),
            ))
        return messages

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        return cgminer_pools(data.get(DataField.POOLS))
