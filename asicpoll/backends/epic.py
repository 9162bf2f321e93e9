"""
ePIC UMC firmware backend; its REST API shares port 4028 with cgminer
"""
import logging
from typing import List, Optional

from ..api import WebAPI
from ..commands import WebCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, PoolData, PoolURL
from ..device import MinerFirmware, MinerMake
from ..extract import DataField, pointer
from .base import FieldMap, MinerBackend
from .util import as_bool, as_float, as_int, as_str, format_mac, hashrate
import config

logger = logging.getLogger(__name__)

SUMMARY = WebCommand("summary")
NETWORK = WebCommand("network")

IDLE_STATE = "Idling"


def epic_web(ip: str) -> WebAPI:
    return WebAPI(ip, port=config.EPIC_WEB_PORT)


class EPic(MinerBackend):
    make = MinerMake.EPIC
    firmware = MinerFirmware.EPIC

    def create_api(self):
        return epic_web(self.ip)

    def get_locations(self, data_field):
        if data_field == DataField.MAC:
            return [(NETWORK, pointer(""))]
        if data_field == DataField.HOSTNAME:
            return [(SUMMARY, pointer("/Hostname"))]
        if data_field == DataField.UPTIME:
            return [(SUMMARY, pointer("/Session/Uptime"))]
        if data_field == DataField.HASHRATE:
            return [(SUMMARY, pointer("/Session/Average MHs"))]
        if data_field == DataField.HASHBOARDS:
            return [(SUMMARY, pointer("/HBs"))]
        if data_field == DataField.WATTAGE:
            return [(SUMMARY, pointer("/Power Supply Stats/Input Power"))]
        if data_field == DataField.FANS:
            return [(SUMMARY, pointer("/Fans Rpm"))]
        if data_field == DataField.POOLS:
            # pool identity lives under Stratum, share counters under Session
            return [
                (SUMMARY, pointer("/Stratum")),
                (SUMMARY, pointer("/Session")),
            ]
        if data_field == DataField.IS_MINING:
            return [(SUMMARY, pointer("/Status/Operating State"))]
        if data_field == DataField.LIGHT_FLASHING:
            return [(SUMMARY, pointer("/Misc/Locate Miner State"))]
        return []

    def parse_mac(self, data: FieldMap) -> Optional[str]:
        network = data.get(DataField.MAC)
        if not isinstance(network, dict):
            return None
        for mode in ("dhcp", "static"):
            settings = network.get(mode)
            if isinstance(settings, dict) and settings.get('mac_address'):
                return format_mac(settings['mac_address'])
        return None

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.MEGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        boards_data = data.get(DataField.HASHBOARDS)
        if not isinstance(boards_data, list) or not boards_data:
            return self.empty_boards()

        boards = []
        for idx, board in enumerate(boards_data):
            if not isinstance(board, dict):
                continue
            # "Hashrate" is [MH/s, percent of ideal]
            rate_values = board.get('Hashrate')
            raw_rate = rate_values[0] if isinstance(rate_values, list) and rate_values else rate_values
            rate = hashrate(raw_rate, HashRateUnit.MEGAHASH)
            boards.append(BoardData(
                position=as_int(board.get('Index', idx)),
                hashrate=rate,
                board_temperature=as_float(board.get('Temperature')),
                expected_chips=self.device_info.hardware.chips,
                voltage=as_float(board.get('Output Voltage')),
                active=rate is not None and rate.value > 0,
            ))
        return boards

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        fans = data.get(DataField.FANS)
        if not isinstance(fans, dict):
            return []
        result = []
        for name, value in fans.items():
            if not name.startswith("Fans Speed "):
                continue
            position = as_int(name[len("Fans Speed "):])
            rpm = as_float(value)
            if position is not None and rpm is not None:
                result.append(FanData(position=position, rpm=rpm))
        return sorted(result, key=lambda fan: fan.position)

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE))

    def parse_light_flashing(self, data: FieldMap) -> Optional[bool]:
        return as_bool(data.get(DataField.LIGHT_FLASHING))

    def parse_is_mining(self, data: FieldMap) -> bool:
        state = as_str(data.get(DataField.IS_MINING))
        if state is None:
            return True
        return state != IDLE_STATE

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        pool = data.get(DataField.POOLS)
        if not isinstance(pool, dict):
            return []
        url = as_str(pool.get('Current Pool'))
        return [PoolData(
            position=as_int(pool.get('Config Id')),
            url=PoolURL.parse(url) if url else None,
            user=as_str(pool.get('Current User')),
            alive=as_bool(pool.get('IsPoolConnected')),
            active=True,
            accepted_shares=as_int(pool.get('Accepted')),
            rejected_shares=as_int(pool.get('Rejected')),
        )]
