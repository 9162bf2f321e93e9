"""
VNish (AnthillOS) backend, REST API under /api/v1
"""
import logging
from typing import Callable, List, Optional

import requests

from ..api import WebAPI
from ..commands import WebCommand
from ..data import BoardData, FanData, HashRate, HashRateUnit, PoolData, PoolURL
from ..device import MinerFirmware, MinerMake
from ..extract import DataField, pointer
from .base import FieldMap, MinerBackend
from .util import as_bool, as_float, as_int, as_str, hashrate
import config

logger = logging.getLogger(__name__)

INFO = WebCommand("info")
SUMMARY = WebCommand("summary")
STATUS = WebCommand("status")

MINING_STATES = ("mining", "starting", "auto-tuning")


def vnish_login(password: str = None) -> Callable[[WebAPI], Optional[str]]:
    """Login callback trading the web password for a bearer token"""
    def login(api: WebAPI) -> Optional[str]:
        try:
            response = api.session.post(api.url_for("unlock"),
                                        json={'pw': password or config.VNISH_PASSWORD},
                                        timeout=api.timeout)
            if not response.ok:
                logger.warning(f"VNish unlock rejected on {api.ip}: {response.status_code}")
                return None
            return as_str(response.json().get('token'))
        except (requests.exceptions.RequestException, ValueError, AttributeError) as e:
            logger.warning(f"VNish unlock failed on {api.ip}: {e}")
            return None
    return login


class VNish(MinerBackend):
    make = MinerMake.ANTMINER
    firmware = MinerFirmware.VNISH

    def create_api(self):
        return WebAPI(self.ip, path_template="/api/v1/{command}", login=vnish_login())

    def get_locations(self, data_field):
        if data_field == DataField.MAC:
            return [(INFO, pointer("/system/network_status/mac"))]
        if data_field == DataField.HOSTNAME:
            return [(INFO, pointer("/system/network_status/hostname"))]
        if data_field == DataField.SERIAL_NUMBER:
            return [(INFO, pointer("/serial"))]
        if data_field == DataField.FIRMWARE_VERSION:
            return [(INFO, pointer("/fw_version"))]
        if data_field == DataField.CONTROL_BOARD_VERSION:
            return [(INFO, pointer("/platform"))]
        if data_field == DataField.UPTIME:
            return [(INFO, pointer("/system/uptime"))]
        if data_field == DataField.HASHRATE:
            return [(SUMMARY, pointer("/miner/hr_realtime"))]
        if data_field == DataField.EXPECTED_HASHRATE:
            return [(SUMMARY, pointer("/miner/hr_nominal"))]
        if data_field == DataField.WATTAGE:
            return [(SUMMARY, pointer("/miner/power_consumption"))]
        if data_field == DataField.HASHBOARDS:
            return [(SUMMARY, pointer("/miner/chains"))]
        if data_field == DataField.FANS:
            return [(SUMMARY, pointer("/miner/cooling/fans"))]
        if data_field == DataField.POOLS:
            return [(SUMMARY, pointer("/miner/pools"))]
        if data_field == DataField.IS_MINING:
            return [(SUMMARY, pointer("/miner/miner_status/miner_state"))]
        if data_field == DataField.LIGHT_FLASHING:
            return [(STATUS, pointer("/find_miner"))]
        return []

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.HASHRATE), HashRateUnit.GIGAHASH)

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return hashrate(data.get(DataField.EXPECTED_HASHRATE), HashRateUnit.GIGAHASH)

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        chains = data.get(DataField.HASHBOARDS)
        if not isinstance(chains, list) or not chains:
            return self.empty_boards()

        boards = []
        for idx, chain in enumerate(chains):
            if not isinstance(chain, dict):
                continue
            rate = hashrate(chain.get('hashrate_rt'), HashRateUnit.GIGAHASH)
            pcb = chain.get('pcb_temp') if isinstance(chain.get('pcb_temp'), dict) else {}
            chip = chain.get('chip_temp') if isinstance(chain.get('chip_temp'), dict) else {}
            statuses = chain.get('chip_statuses') if isinstance(chain.get('chip_statuses'), dict) else {}
            expected = self.device_info.hardware.chips
            bad = (as_int(statuses.get('red')) or 0) + (as_int(statuses.get('grey')) or 0)
            boards.append(BoardData(
                position=(as_int(chain.get('id')) or idx + 1) - 1,
                hashrate=rate,
                expected_hashrate=hashrate(chain.get('hashrate_ideal'), HashRateUnit.GIGAHASH),
                board_temperature=as_float(pcb.get('max')),
                intake_temperature=as_float(pcb.get('min')),
                outlet_temperature=as_float(chip.get('max')),
                expected_chips=expected,
                working_chips=expected - bad if expected is not None and statuses else None,
                serial_number=as_str(chain.get('serial')),
                voltage=as_float(chain.get('voltage')),
                frequency=as_float(chain.get('frequency')),
                active=rate is not None and rate.value > 0,
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
            rpm = as_float(fan.get('rpm'))
            if rpm is not None:
                result.append(FanData(position=idx, rpm=rpm))
        return result

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return as_float(data.get(DataField.WATTAGE))

    def parse_light_flashing(self, data: FieldMap) -> Optional[bool]:
        return as_bool(data.get(DataField.LIGHT_FLASHING))

    def parse_is_mining(self, data: FieldMap) -> bool:
        state = as_str(data.get(DataField.IS_MINING))
        if state is None:
            return True
        return state.lower() in MINING_STATES

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
                user=as_str(pool.get('user')),
                alive=status.lower() in ('working', 'active') if status else None,
                active=status.lower() == 'active' if status else None,
                accepted_shares=as_int(pool.get('accepted')),
                rejected_shares=as_int(pool.get('rejected')),
            ))
        return result
