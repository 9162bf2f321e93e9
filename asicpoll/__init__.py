from .data import BoardData, FanData, HashRate, HashRateUnit, MinerData, PoolData
from .detector import MinerDetector
from .device import DeviceInfo, HashAlgorithm, MinerFirmware, MinerMake, MinerModel
from .scanner import MinerScanner

__all__ = [
    'BoardData',
    'FanData',
    'HashRate',
    'HashRateUnit',
    'MinerData',
    'PoolData',
    'MinerDetector',
    'DeviceInfo',
    'HashAlgorithm',
    'MinerFirmware',
    'MinerMake',
    'MinerModel',
    'MinerScanner',
]
