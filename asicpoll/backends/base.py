"""
Base abstract class for vendor backends
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

from ..api.base import APIClient
from ..collector import DataCollector
from ..data import BoardData, FanData, HashRate, MinerData, MinerMessage, PoolData
from ..device import DeviceInfo, HashAlgorithm, MinerFirmware, MinerMake, MinerModel
from ..extract import DataField, DataLocation
from .util import as_bool, as_int, as_str, format_mac

logger = logging.getLogger(__name__)

FieldMap = Dict[DataField, Any]


class MinerBackend(ABC):
    """
    One discovered miner: its identity, its transport and the table telling
    the collector where each telemetry field lives

    Subclasses implement get_locations and override the parse_* hooks whose
    vendor data needs more than a plain string read.
    """

    make: MinerMake = None
    firmware: MinerFirmware = MinerFirmware.STOCK
    algo: HashAlgorithm = HashAlgorithm.SHA256

    def __init__(self, ip: str, model: Optional[MinerModel] = None,
                 firmware: Optional[MinerFirmware] = None, api: APIClient = None):
        self.ip = ip
        if model is None:
            model = MinerModel(self.make)
        self.device_info = DeviceInfo(model.make, model, firmware or self.firmware, self.algo)
        self.api = api if api is not None else self.create_api()

    @abstractmethod
    def create_api(self) -> APIClient:
        """Build the default transport for this vendor"""
        pass

    @abstractmethod
    def get_locations(self, data_field: DataField) -> List[DataLocation]:
        """
        Where to find a field

        Returns:
            (command, extractor) pairs; empty when the vendor does not
            expose the field
        """
        pass

    def get_collector(self) -> DataCollector:
        return DataCollector(self, self.api)

    def get_data(self) -> MinerData:
        """Poll the miner and return a normalized snapshot"""
        return self.parse_data(self.get_collector().collect_all())

    def parse_data(self, data: FieldMap) -> MinerData:
        """Build MinerData from a collected field map"""
        def safe(hook: Callable[[FieldMap], Any], default: Any = None) -> Any:
            try:
                return hook(data)
            except Exception as e:
                logger.warning(f"{self.ip} - {hook.__name__} failed: {e}")
                return default

        is_mining = safe(self.parse_is_mining, True)
        return MinerData(
            ip=self.ip,
            device_info=self.device_info,
            mac=safe(self.parse_mac),
            serial_number=safe(self.parse_serial_number),
            hostname=safe(self.parse_hostname),
            api_version=safe(self.parse_api_version),
            firmware_version=safe(self.parse_firmware_version),
            control_board_version=safe(self.parse_control_board_version),
            hashboards=safe(self.parse_hashboards, []),
            hashrate=safe(self.parse_hashrate),
            expected_hashrate=safe(self.parse_expected_hashrate),
            fans=safe(self.parse_fans, []),
            psu_fans=safe(self.parse_psu_fans, []),
            fluid_temperature=safe(self.parse_fluid_temperature),
            wattage=safe(self.parse_wattage),
            wattage_limit=safe(self.parse_wattage_limit),
            light_flashing=safe(self.parse_light_flashing),
            messages=safe(self.parse_messages, []),
            uptime=safe(self.parse_uptime),
            is_mining=True if is_mining is None else is_mining,
            pools=safe(self.parse_pools, []),
        )

    # Default parse hooks: plain reads, overridden where units or shapes differ

    def parse_mac(self, data: FieldMap) -> Optional[str]:
        return format_mac(data.get(DataField.MAC))

    def parse_serial_number(self, data: FieldMap) -> Optional[str]:
        return as_str(data.get(DataField.SERIAL_NUMBER))

    def parse_hostname(self, data: FieldMap) -> Optional[str]:
        return as_str(data.get(DataField.HOSTNAME))

    def parse_api_version(self, data: FieldMap) -> Optional[str]:
        return as_str(data.get(DataField.API_VERSION))

    def parse_firmware_version(self, data: FieldMap) -> Optional[str]:
        return as_str(data.get(DataField.FIRMWARE_VERSION))

    def parse_control_board_version(self, data: FieldMap) -> Optional[str]:
        return as_str(data.get(DataField.CONTROL_BOARD_VERSION))

    def parse_hashboards(self, data: FieldMap) -> List[BoardData]:
        return []

    def parse_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return None

    def parse_expected_hashrate(self, data: FieldMap) -> Optional[HashRate]:
        return None

    def parse_fans(self, data: FieldMap) -> List[FanData]:
        return []

    def parse_psu_fans(self, data: FieldMap) -> List[FanData]:
        return []

    def parse_fluid_temperature(self, data: FieldMap) -> Optional[float]:
        return None

    def parse_wattage(self, data: FieldMap) -> Optional[float]:
        return None

    def parse_wattage_limit(self, data: FieldMap) -> Optional[float]:
        return None

    def parse_light_flashing(self, data: FieldMap) -> Optional[bool]:
        return as_bool(data.get(DataField.LIGHT_FLASHING))

    def parse_messages(self, data: FieldMap) -> List[MinerMessage]:
        return []

    def parse_uptime(self, data: FieldMap) -> Optional[int]:
        return as_int(data.get(DataField.UPTIME))

    def parse_is_mining(self, data: FieldMap) -> bool:
        return True

    def parse_pools(self, data: FieldMap) -> List[PoolData]:
        return []

    def empty_boards(self) -> List[BoardData]:
        """One inactive BoardData per expected board"""
        hardware = self.device_info.hardware
        return [
            BoardData(position=idx, expected_chips=hardware.chips, active=False)
            for idx in range(hardware.boards or 0)
        ]

    def __repr__(self) -> str:
        info = self.device_info
        return f"{type(self).__name__}({self.ip}, {info.model}, {info.firmware.value})"
