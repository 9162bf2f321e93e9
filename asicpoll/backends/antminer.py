"""
Bitmain Antminer backend (stock firmware)

Telemetry comes from two places: the cgminer RPC on port 4028 and the
digest-protected CGI endpoints of the web interface.
"""
import logging
from typing import Any, List, Optional

from requests.auth import HTTPDigestAuth

from ..api import CGMinerRPC, MultiAPI, WebAPI
from ..commands import RPCCommand, WebCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, MessageSeverity, MinerMessage, PoolData
from ..device import MinerMake
from ..extract import DataField, pointer
from .base import FieldMap, MinerBackend
from .util import as_bool, as_float, as_int, as_str, cgminer_pools, hashrate
import config

logger = logging.getLogger(__name__)

VERSION = RPCCommand("version")
SUMMARY = RPCCommand("summary")
STATS = RPCCommand("stats")
POOLS = RPCCommand("pools")
SYSTEM_INFO = WebCommand("get_system_info")
BLINK_STATUS = WebCommand("get_blink_status")
MINER_CONF = WebCommand("get_miner_conf")
WEB_SUMMARY = WebCommand("summary")

# bitmain-work-mode: 0 normal, 1 sleep, 2 low power
SLEEP_MODE = "1"


def antminer_web(ip: str, username: str = None, password: str = None) -> WebAPI:
    """CGI client for the stock web interface"""
    auth = HTTPDigestAuth(username or config.ANTMINER_USERNAME,
                          password or config.ANTMINER_PASSWORD)
    return WebAPI(ip, path_template="/cgi-bin/{command}.cgi", auth=auth)


def _average(values: Any) -> Optional[float]:
    if not isinstance(values, list):
        return None
    temps = [t for t in (as_float(v) for v in values) if t]
    if not temps:
        return None
    return sum(temps) / len(temps)


class AntMiner(MinerBackend):
    make = MinerMake.ANTMINER

    def create_api(self):
        return MultiAPI(rpc=CGMinerRPC(self.ip), web=antminer_web(self.ip))

    def get_locations(self, data_field):
        if data_field == DataField.MAC:
            return [(SYSTEM_INFO, pointer("/macaddr"))]
        if data_field == DataField.HOSTNAME:
            return [(SYSTEM_INFO, pointer("/hostname"))]
        if data_field == DataField.SERIAL_NUMBER:
            return [(SYSTEM_INFO, pointer("/serial_no"))]
        if data_field == DataField.API_VERSION:
            return [(VERSION, pointer("/VERSION/0/API"))]
        if data_field == DataField.FIRMWARE_VERSION:
            return [(VERSION, pointer("/VERSION/0/CompileTime"))]
        if data_field == DataField.HASHRATE:
            return [(SUMMARY, pointer("/SUMMARY/0/GHS 5s"))]
        if data_field == DataField.EXPECTED_HASHRATE:
            return [(STATS, pointer("/STATS/1/total_rateideal"))]
        if data_field in (DataField.FANS, DataField.WATTAGE):
            return [(STATS, pointer("/STATS/1"))]
        if data_field == DataField.HASHBOARDS:
            return [
                (STATS, pointer("/STATS/0/chain", tag="chain")),
                (STATS, pointer("/STATS/1", tag="legacy")),
            ]
        if data_field == DataField.WATTAGE_LIMIT:
            return [(SUMMARY, pointer("/SUMMARY/0/Power Limit"))]
        if data_field == DataField.LIGHT_FLASHING:
            return [(BLINK_STATUS, pointer("/blink"))]
        if data_field == DataField.IS_MINING:
            return [(MINER_CONF, pointer("/bitmain-work-mode"))]
        if data_field == DataField.UPTIME:
            return [(STATS, pointer("/STATS/1/Elapsed"))]
        if data_field == DataField.MESSAGES:
            return [(WEB_SUMMARY, pointer("/SUMMARY/0/status"))]
        if data_field == DataField.POOLS:
            return [(POOLS, pointer("/POOLS"))]
        return []

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.GIGAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.EXPECTED_HASHRATE), HashRateUnit.GIGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        found = data.get(DataField.HASHBOARDS) or {}
        chains = found.get('chain') if isinstance(found, dict) else None
        if isinstance(chains, list) and chains:
            return self._boards_from_chains(chains)

        legacy = found.get('legacy') if isinstance(found, dict) else None
        if isinstance(legacy, dict):
            boards = self._boards_from_legacy(legacy)
            if boards:
                return boards

        boards = self.empty_boards()
        for board in boards:
            board.tuned = False
        return boards

    def _boards_from_chains(self, chains: List[Any]) -> List[BoardData]:
        boards = []
        for idx, chain in enumerate(chains):
            if not isinstance(chain, dict):
                continue
            rate = hashrate(chain.get('rate_real'), HashRateUnit.GIGAHASH)
            boards.append(BoardData(
                position=as_int(chain.get('index', idx)),
                hashrate=rate,
                expected_hashrate=hashrate(chain.get('rate_ideal'), HashRateUnit.GIGAHASH),
                board_temperature=_average(chain.get('temp_pcb')),
                expected_chips=self.device_info.hardware.chips,
                working_chips=as_int(chain.get('asic_num')),
                serial_number=as_str(chain.get('sn')),
                frequency=as_float(chain.get('freq_avg')),
                tuned=True,
                active=rate is not None and rate.value > 0,
            ))
        return boards

    def _boards_from_legacy(self, stats: dict) -> List[BoardData]:
        """Older firmware reports boards as chain_rate1, temp2_1, chain_acn1, ..."""
        boards = []
        for idx in range(1, 17):
            if f"chain_rate{idx}" not in stats and f"chain_acn{idx}" not in stats:
                continue
            rate = hashrate(stats.get(f"chain_rate{idx}"), HashRateUnit.GIGAHASH)
            chips = as_int(stats.get(f"chain_acn{idx}"))
            boards.append(BoardData(
                position=len(boards),
                hashrate=rate,
                board_temperature=as_float(stats.get(f"temp2_{idx}")),
                expected_chips=self.device_info.hardware.chips,
                working_chips=chips,
                active=bool(chips),
            ))
        return boards

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        stats = data.get(DataField.FANS)
        if not isinstance(stats, dict):
            return []

        fans = []
        for idx in range(1, (self.device_info.hardware.fans or 4) + 1):
            rpm = as_float(stats.get(f"fan{idx}", stats.get(f"Fan{idx}")))
            if rpm:
                fans.append(FanData(position=idx - 1, rpm=rpm))
        return fans

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        stats = data.get(DataField.WATTAGE)
        if not isinstance(stats, dict):
            return None
        # "chain_power" is reported as "3250 W"
        chain_power = as_str(stats.get('chain_power'))
        if chain_power:
            watts = as_float(chain_power.split()[0])
            if watts is not None:
                return watts
        return as_float(stats.get('power', stats.get('Power')))

    def parse_wattage_limit(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE_LIMIT))

    def parse_light_flashing(self, data: FieldMap) -> Optional[bool]:
        return as_bool(data.get(DataField.LIGHT_FLASHING))

    def parse_is_mining(self, data: FieldMap) -> bool:
        mode = as_str(data.get(DataField.IS_MINING))
        if mode is not None:
            return mode != SLEEP_MODE
        rate = as_float(data.get(DataField.HASHRATE))
        if rate is not None:
            return rate > 0
        return True

    def parse_messages(self, data: FieldMap) -> List[MinerMessage]:
        statuses = data.get(DataField.MESSAGES)
        if not isinstance(statuses, list):
            return []

        messages = []
        for idx, item in enumerate(statuses):
            if not isinstance(item, dict):
                continue
            status = as_str(item.get('status'))
            if status is None or status.lower() == 's':
                continue
            if status.lower() == 'e':
                severity = MessageSeverity.ERROR
            elif status.lower() == 'w':
                severity = MessageSeverity.WARNING
            else:
                severity = MessageSeverity.INFO
            messages.append(MinerMessage(
                timestamp=0,
                code=as_int(item.get('code')) or idx,
                message=as_str(item.get('msg')) or "Unknown error",
                severity=severity,
            ))
        return messages

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        return cgminer_pools(data.get(DataField.POOLS))
