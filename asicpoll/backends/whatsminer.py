"""
MicroBT WhatsMiner backends

BTMiner2 talks the cgminer-compatible RPC of firmware before 2024.11,
BTMiner3 the length-prefixed v3 API of newer firmware.
"""
import logging
from typing import Any, List, Optional

from ..api import BTMinerV3RPC, CGMinerRPC
from ..commands import RPCCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, MessageSeverity, MinerMessage, PoolData, PoolURL
from ..device import MinerMake
from ..extract import DataField, get_by_pointer, key, pointer
from .base import FieldMap, MinerBackend
from .util import as_bool, as_float, as_int, as_str, cgminer_pools, hashrate

logger = logging.getLogger(__name__)

SUMMARY = RPCCommand("summary")
DEVS = RPCCommand("devs")
POOLS = RPCCommand("pools")
STATUS = RPCCommand("status")
GET_VERSION = RPCCommand("get_version")
GET_PSU = RPCCommand("get_psu")

DEVICE_INFO = RPCCommand("get.device.info")
STATUS_SUMMARY = RPCCommand("get.miner.status", "summary")
STATUS_POOLS = RPCCommand("get.miner.status", "pools")
STATUS_EDEVS = RPCCommand("get.miner.status", "edevs")

# First firmware date served by the v3 API
V3_FIRMWARE = (2024, 11, 0)


def parse_firmware_date(fw_ver: Any) -> Optional[tuple]:
    """
    Turn a WhatsMiner firmware string into a comparable (year, month, day)

    fw_ver looks like "20241105.22.REL" or "20220920.12.1"; only the leading
    YYYYMMDD is significant.
    """
    text = as_str(fw_ver)
    if text is None:
        return None
    digits = text.split('.')[0]
    if len(digits) < 8 or not digits[:8].isdecimal():
        return None
    return int(digits[:4]), int(digits[4:6]), int(digits[6:8])


class BTMiner2(MinerBackend):
    make = MinerMake.WHATSMINER

    def create_api(self):
        return CGMinerRPC(self.ip)

    def get_locations(self, data_field):
        if data_field == DataField.MAC:
            return [(SUMMARY, pointer("/SUMMARY/0/MAC"))]
        if data_field == DataField.API_VERSION:
            return [(GET_VERSION, pointer("/Msg/api_ver"))]
        if data_field == DataField.FIRMWARE_VERSION:
            return [(GET_VERSION, pointer("/Msg/fw_ver"))]
        if data_field == DataField.CONTROL_BOARD_VERSION:
            return [(GET_VERSION, pointer("/Msg/platform"))]
        if data_field == DataField.HASHRATE:
            return [(SUMMARY, pointer("/SUMMARY/0/HS RT"))]
        if data_field == DataField.EXPECTED_HASHRATE:
            return [(SUMMARY, pointer("/SUMMARY/0/Factory GHS"))]
        if data_field == DataField.WATTAGE:
            return [(SUMMARY, pointer("/SUMMARY/0/Power"))]
        if data_field == DataField.WATTAGE_LIMIT:
            return [(SUMMARY, pointer("/SUMMARY/0/Power Limit"))]
        if data_field == DataField.FLUID_TEMPERATURE:
            return [(SUMMARY, pointer("/SUMMARY/0/Env Temp"))]
        if data_field == DataField.UPTIME:
            return [(SUMMARY, pointer("/SUMMARY/0/Elapsed"))]
        if data_field in (DataField.FANS, DataField.MESSAGES):
            return [(SUMMARY, pointer("/SUMMARY/0"))]
        if data_field == DataField.PSU_FANS:
            return [(GET_PSU, pointer("/Msg/fan_speed"))]
        if data_field == DataField.HASHBOARDS:
            return [(DEVS, pointer(""))]
        if data_field == DataField.IS_MINING:
            return [(STATUS, pointer("/SUMMARY/0/btmineroff"))]
        if data_field == DataField.POOLS:
            return [(POOLS, pointer("/POOLS"))]
        return []

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.MEGAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.EXPECTED_HASHRATE), HashRateUnit.GIGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        devs = data.get(DataField.HASHBOARDS)
        boards = []
        for idx in range(self.device_info.hardware.boards or 3):
            dev = get_by_pointer(devs, f"/DEVS/{idx}")
            if not isinstance(dev, dict):
                dev = {}
            rate = hashrate(dev.get('MHS av'), HashRateUnit.MEGAHASH)
            boards.append(BoardData(
                position=idx,
                hashrate=rate,
                expected_hashrate=hashrate(dev.get('Factory GHS'), HashRateUnit.GIGAHASH),
                board_temperature=as_float(dev.get('Temperature')),
                intake_temperature=as_float(dev.get('Chip Temp Min')),
                outlet_temperature=as_float(dev.get('Chip Temp Max')),
                expected_chips=self.device_info.hardware.chips,
                working_chips=as_int(dev.get('Effective Chips')),
                serial_number=as_str(dev.get('PCB SN')),
                frequency=as_float(dev.get('Frequency')),
                tuned=True,
                active=rate is not None and rate.value > 0,
            ))
        return boards

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        summary = data.get(DataField.FANS)
        if not isinstance(summary, dict):
            return []
        fans = []
        for idx, direction in enumerate(("In", "Out")):
            rpm = as_float(summary.get(f"Fan Speed {direction}"))
            if rpm is not None:
                fans.append(FanData(position=idx, rpm=rpm))
        return fans

    def parse_psu_fans(self, data: FieldMap) -> List[FanData]:
        rpm = as_float(data.get(DataField.PSU_FANS))
        if rpm is None:
            return []
        return [FanData(position=0, rpm=rpm)]

    def parse_fluid_temperature(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.FLUID_TEMPERATURE))

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE))

    def parse_wattage_limit(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE_LIMIT))

    def parse_messages(self, data: FieldMap) -> List[MinerMessage]:
        summary = data.get(DataField.MESSAGES)
        if not isinstance(summary, dict):
            return []
        messages = []
        for idx in range(as_int(summary.get('Error Code Count')) or 0):
            code = as_int(summary.get(f"Error Code {idx}"))
            if code is not None:
                messages.append(MinerMessage(timestamp=0, code=code, message="",
                                             severity=MessageSeverity.ERROR))
        return messages

    def parse_is_mining(self, data: FieldMap) -> bool:
        # btmineroff is "true" while the miner is stopped
        stopped = as_bool(data.get(DataField.IS_MINING))
        return not stopped if stopped is not None else True

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        return cgminer_pools(data.get(DataField.POOLS))


class BTMiner3(MinerBackend):
    make = MinerMake.WHATSMINER

    def create_api(self):
        return BTMinerV3RPC(self.ip)

    def get_locations(self, data_field):
        if data_field == DataField.MAC:
            return [(DEVICE_INFO, pointer("/msg/network/mac"))]
        if data_field == DataField.API_VERSION:
            return [(DEVICE_INFO, pointer("/msg/system/api"))]
        if data_field == DataField.FIRMWARE_VERSION:
            return [(DEVICE_INFO, pointer("/msg/system/fwversion"))]
        if data_field == DataField.CONTROL_BOARD_VERSION:
            return [(DEVICE_INFO, pointer("/msg/system/platform"))]
        if data_field == DataField.SERIAL_NUMBER:
            return [(DEVICE_INFO, pointer("/msg/miner/miner-sn"))]
        if data_field == DataField.HOSTNAME:
            return [(DEVICE_INFO, pointer("/msg/network/hostname"))]
        if data_field == DataField.LIGHT_FLASHING:
            return [(DEVICE_INFO, pointer("/msg/system/ledstatus"))]
        if data_field == DataField.WATTAGE_LIMIT:
            return [(DEVICE_INFO, pointer("/msg/miner/power-limit-set"))]
        if data_field == DataField.PSU_FANS:
            return [(DEVICE_INFO, pointer("/msg/power/fanspeed"))]
        if data_field == DataField.FANS:
            return [(STATUS_SUMMARY, pointer("/msg/summary"))]
        if data_field == DataField.HASHRATE:
            return [(STATUS_SUMMARY, pointer("/msg/summary/hash-realtime"))]
        if data_field == DataField.EXPECTED_HASHRATE:
            return [(STATUS_SUMMARY, pointer("/msg/summary/factory-hash"))]
        if data_field == DataField.WATTAGE:
            return [(STATUS_SUMMARY, pointer("/msg/summary/power-realtime"))]
        if data_field == DataField.FLUID_TEMPERATURE:
            return [(STATUS_SUMMARY, pointer("/msg/summary/environment-temperature"))]
        if data_field == DataField.UPTIME:
            return [(STATUS_SUMMARY, pointer("/msg/summary/elapsed"))]
        if data_field == DataField.HASHBOARDS:
            # board serials live in device info, board telemetry in edevs
            return [
                (DEVICE_INFO, pointer("/msg/miner")),
                (STATUS_EDEVS, key("msg")),
            ]
        if data_field == DataField.POOLS:
            return [(STATUS_POOLS, pointer("/msg/pools"))]
        return []

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.TERAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.EXPECTED_HASHRATE), HashRateUnit.TERAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        found = data.get(DataField.HASHBOARDS)
        if not isinstance(found, dict):
            found = {}
        boards = []
        for idx in range(self.device_info.hardware.boards or 3):
            dev = get_by_pointer(found, f"/edevs/{idx}")
            if not isinstance(dev, dict):
                dev = {}
            rate = hashrate(dev.get('hash-average'), HashRateUnit.TERAHASH)
            boards.append(BoardData(
                position=idx,
                hashrate=rate,
                expected_hashrate=hashrate(dev.get('factory-hash'), HashRateUnit.TERAHASH),
                board_temperature=as_float(dev.get('chip-temp-min')),
                intake_temperature=as_float(dev.get('chip-temp-min')),
                outlet_temperature=as_float(dev.get('chip-temp-max')),
                expected_chips=self.device_info.hardware.chips,
                working_chips=as_int(dev.get('effective-chips')),
                serial_number=as_str(found.get(f"pcbsn{idx}")),
                frequency=as_float(dev.get('freq')),
                tuned=True,
                active=rate is not None and rate.value > 0,
            ))
        return boards

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        summary = data.get(DataField.FANS)
        if not isinstance(summary, dict):
            return []
        fans = []
        for idx, direction in enumerate(("in", "out")):
            rpm = as_float(summary.get(f"fan-speed-{direction}"))
            if rpm is not None:
                fans.append(FanData(position=idx, rpm=rpm))
        return fans

    def parse_psu_fans(self, data: FieldMap) -> List[FanData]:
        rpm = as_float(data.get(DataField.PSU_FANS))
        if rpm is None:
            return []
        return [FanData(position=0, rpm=rpm)]

    def parse_fluid_temperature(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.FLUID_TEMPERATURE))

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE))

    def parse_wattage_limit(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE_LIMIT))

    def parse_light_flashing(self, data: FieldMap) -> Optional[bool]:
        status = as_str(data.get(DataField.LIGHT_FLASHING))
        if status is None:
            return None
        return status != "auto"

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        pools = data.get(DataField.POOLS)
        if not isinstance(pools, list):
            return []
        result = []
        for idx, pool in enumerate(pools):
            if not isinstance(pool, dict):
                continue
            url = as_str(pool.get('url'))
            status = as_str(pool.get('status'))
            result.append(PoolData(
                position=as_int(pool.get('id', idx)),
                url=PoolURL.parse(url) if url else None,
                user=as_str(pool.get('account')),
                alive=(status == 'alive') if status is not None else None,
                active=as_bool(pool.get('stratum-active')),
                accepted_shares=as_int(pool.get('accepted')),
                rejected_shares=as_int(pool.get('rejected')),
            ))
        return result
