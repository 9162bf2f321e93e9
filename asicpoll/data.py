"""
Unified telemetry records produced for every polled miner

Every telemetry value is optional: absence means the vendor/firmware does
not expose it, never that polling failed.
"""
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
from urllib.parse import urlparse

import config
from .device import DeviceInfo


class HashRateUnit(Enum):
    """Hashrate units with their multiplier in hashes per second"""
    HASH = ("H/s", 1)
    KILOHASH = ("KH/s", 1e3)
    MEGAHASH = ("MH/s", 1e6)
    GIGAHASH = ("GH/s", 1e9)
    TERAHASH = ("TH/s", 1e12)
    PETAHASH = ("PH/s", 1e15)
    EXAHASH = ("EH/s", 1e18)

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def multiplier(self) -> float:
        return self.value[1]


@dataclass(frozen=True)
class HashRate:
    value: float
    unit: HashRateUnit = HashRateUnit.TERAHASH
    algo: str = "SHA256"

    def as_unit(self, unit: HashRateUnit) -> 'HashRate':
        """Convert to another unit"""
        converted = self.value * self.unit.multiplier / unit.multiplier
        return HashRate(converted, unit, self.algo)

    def __add__(self, other: 'HashRate') -> 'HashRate':
        return HashRate(self.value + other.as_unit(self.unit).value, self.unit, self.algo)

    def to_dict(self) -> Dict:
        return {'value': self.value, 'unit': self.unit.label, 'algo': self.algo}


@dataclass
class ChipData:
    position: int
    hashrate: Optional[HashRate] = None
    temperature: Optional[float] = None
    voltage: Optional[float] = None
    frequency: Optional[float] = None
    tuned: Optional[bool] = None
    working: Optional[bool] = None

    def to_dict(self) -> Dict:
        return {
            'position': self.position,
            'hashrate': self.hashrate.to_dict() if self.hashrate else None,
            'temperature': self.temperature,
            'voltage': self.voltage,
            'frequency': self.frequency,
            'tuned': self.tuned,
            'working': self.working,
        }


@dataclass
class BoardData:
    """One hashboard; temperatures in celsius, voltage in volts, frequency in MHz"""
    position: int
    hashrate: Optional[HashRate] = None
    expected_hashrate: Optional[HashRate] = None
    board_temperature: Optional[float] = None
    intake_temperature: Optional[float] = None
    outlet_temperature: Optional[float] = None
    expected_chips: Optional[int] = None
    working_chips: Optional[int] = None
    serial_number: Optional[str] = None
    chips: List[ChipData] = field(default_factory=list)
    voltage: Optional[float] = None
    frequency: Optional[float] = None
    tuned: Optional[bool] = None
    active: Optional[bool] = None

    def to_dict(self) -> Dict:
        return {
            'position': self.position,
            'hashrate': self.hashrate.to_dict() if self.hashrate else None,
            'expected_hashrate': self.expected_hashrate.to_dict() if self.expected_hashrate else None,
            'board_temperature': self.board_temperature,
            'intake_temperature': self.intake_temperature,
            'outlet_temperature': self.outlet_temperature,
            'expected_chips': self.expected_chips,
            'working_chips': self.working_chips,
            'serial_number': self.serial_number,
            'chips': [chip.to_dict() for chip in self.chips],
            'voltage': self.voltage,
            'frequency': self.frequency,
            'tuned': self.tuned,
            'active': self.active,
        }


@dataclass
class FanData:
    position: int
    rpm: Optional[float] = None

    def to_dict(self) -> Dict:
        return {'position': self.position, 'rpm': self.rpm}


@dataclass(frozen=True)
class PoolURL:
    """Pool address split into scheme/host/port, e.g. stratum+tcp://pool:3333"""
    scheme: str
    host: str
    port: Optional[int] = None
    pubkey: Optional[str] = None

    @classmethod
    def parse(cls, url: str) -> 'PoolURL':
        url = url.strip()
        if '://' not in url:
            url = f"stratum+tcp://{url}"
        try:
            parsed = urlparse(url)
        except ValueError:
            scheme, _, rest = url.partition('://')
            return cls(scheme, rest)
        try:
            port = parsed.port
        except ValueError:
            port = None
        # stratum v2 urls carry the authority key as the path
        pubkey = parsed.path.strip('/') or None
        return cls(parsed.scheme, parsed.hostname or '', port, pubkey)

    def __str__(self) -> str:
        url = f"{self.scheme}://{self.host}"
        if self.port is not None:
            url += f":{self.port}"
        if self.pubkey:
            url += f"/{self.pubkey}"
        return url


@dataclass
class PoolData:
    position: Optional[int] = None
    url: Optional[PoolURL] = None
    user: Optional[str] = None
    alive: Optional[bool] = None
    active: Optional[bool] = None
    accepted_shares: Optional[int] = None
    rejected_shares: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            'position': self.position,
            'url': str(self.url) if self.url else None,
            'user': self.user,
            'alive': self.alive,
            'active': self.active,
            'accepted_shares': self.accepted_shares,
            'rejected_shares': self.rejected_shares,
        }


class MessageSeverity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class MinerMessage:
    timestamp: int
    code: int
    message: str
    severity: MessageSeverity = MessageSeverity.ERROR

    def to_dict(self) -> Dict:
        return {
            'timestamp': self.timestamp,
            'code': self.code,
            'message': self.message,
            'severity': self.severity.value,
        }


@dataclass
class MinerData:
    """Normalized snapshot of one miner, rebuilt on every poll"""
    ip: str
    device_info: DeviceInfo
    mac: Optional[str] = None
    serial_number: Optional[str] = None
    hostname: Optional[str] = None
    api_version: Optional[str] = None
    firmware_version: Optional[str] = None
    control_board_version: Optional[str] = None
    hashboards: List[BoardData] = field(default_factory=list)
    hashrate: Optional[HashRate] = None
    expected_hashrate: Optional[HashRate] = None
    fans: List[FanData] = field(default_factory=list)
    psu_fans: List[FanData] = field(default_factory=list)
    fluid_temperature: Optional[float] = None
    wattage: Optional[float] = None
    wattage_limit: Optional[float] = None
    light_flashing: Optional[bool] = None
    messages: List[MinerMessage] = field(default_factory=list)
    uptime: Optional[int] = None
    is_mining: bool = True
    pools: List[PoolData] = field(default_factory=list)
    timestamp: int = field(default_factory=lambda: int(time.time()))
    schema_version: str = config.DATA_SCHEMA_VERSION

    @property
    def total_chips(self) -> Optional[int]:
        counts = [b.working_chips for b in self.hashboards if b.working_chips is not None]
        return sum(counts) if counts else None

    @property
    def expected_chips(self) -> Optional[int]:
        hardware = self.device_info.hardware
        if hardware.chips is None or hardware.boards is None:
            return None
        return hardware.chips * hardware.boards

    @property
    def average_temperature(self) -> Optional[float]:
        temps = [b.board_temperature for b in self.hashboards if b.board_temperature is not None]
        if not temps:
            return None
        return sum(temps) / len(temps)

    @property
    def efficiency(self) -> Optional[float]:
        """Watts per TH/s"""
        if self.wattage is None or self.hashrate is None:
            return None
        terahash = self.hashrate.as_unit(HashRateUnit.TERAHASH).value
        if terahash <= 0:
            return None
        return self.wattage / terahash

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization"""
        return {
            'schema_version': self.schema_version,
            'timestamp': self.timestamp,
            'ip': self.ip,
            'mac': self.mac,
            'serial_number': self.serial_number,
            'hostname': self.hostname,
            'api_version': self.api_version,
            'firmware_version': self.firmware_version,
            'control_board_version': self.control_board_version,
            'device_info': self.device_info.to_dict(),
            'hashboards': [board.to_dict() for board in self.hashboards],
            'hashrate': self.hashrate.to_dict() if self.hashrate else None,
            'expected_hashrate': self.expected_hashrate.to_dict() if self.expected_hashrate else None,
            'total_chips': self.total_chips,
            'expected_chips': self.expected_chips,
            'fans': [fan.to_dict() for fan in self.fans],
            'psu_fans': [fan.to_dict() for fan in self.psu_fans],
            'average_temperature': self.average_temperature,
            'fluid_temperature': self.fluid_temperature,
            'wattage': self.wattage,
            'wattage_limit': self.wattage_limit,
            'efficiency': self.efficiency,
            'light_flashing': self.light_flashing,
            'messages': [message.to_dict() for message in self.messages],
            'uptime': self.uptime,
            'is_mining': self.is_mining,
            'pools': [pool.to_dict() for pool in self.pools],
        }
