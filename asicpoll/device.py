"""
Device classification: make, firmware, model and hardware layout
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from .models import (
    HARDWARE,
    AntMinerModel,
    AvalonMinerModel,
    BitaxeModel,
    BraiinsModel,
    EPicModel,
    WhatsMinerModel,
    lookup_model,
)


class MinerMake(Enum):
    """Hardware vendor family"""
    ANTMINER = "AntMiner"
    WHATSMINER = "WhatsMiner"
    AVALONMINER = "AvalonMiner"
    EPIC = "ePIC"
    BRAIINS = "Braiins"
    BITAXE = "Bitaxe"


class MinerFirmware(Enum):
    """Control software family, independent of the hardware make"""
    STOCK = "Stock"
    BRAIINS_OS = "BraiinsOS"
    VNISH = "VNish"
    EPIC = "ePIC"
    HIVEOS = "HiveOS"
    LUXOS = "LuxOS"
    MARATHON = "Marathon"
    MSKMINER = "MSKMiner"


class HashAlgorithm(Enum):
    SHA256 = "SHA256"
    SCRYPT = "Scrypt"
    X11 = "X11"
    BLAKE2S256 = "Blake2S256"
    KADENA = "Kadena"


MODEL_ENUMS = {
    MinerMake.ANTMINER: AntMinerModel,
    MinerMake.WHATSMINER: WhatsMinerModel,
    MinerMake.AVALONMINER: AvalonMinerModel,
    MinerMake.BITAXE: BitaxeModel,
    MinerMake.BRAIINS: BraiinsModel,
    MinerMake.EPIC: EPicModel,
}


@dataclass(frozen=True)
class MinerModel:
    """A make plus, when recognized, that make's specific model"""
    make: MinerMake
    model: Optional[Enum] = None

    @classmethod
    def parse(cls, make: MinerMake, text: Optional[str]) -> Optional['MinerModel']:
        """Match a raw model string for a make; None when unrecognized"""
        found = lookup_model(MODEL_ENUMS[make], text)
        if found is None:
            return None
        return cls(make, found)

    @property
    def name(self) -> Optional[str]:
        return self.model.value if self.model is not None else None

    def __str__(self) -> str:
        return self.name or f"Unknown {self.make.value}"


@dataclass(frozen=True)
class MinerHardware:
    """Static chip/fan/board counts for a model"""
    chips: Optional[int] = None
    fans: Optional[int] = None
    boards: Optional[int] = None

    @classmethod
    def for_model(cls, model: Optional[MinerModel]) -> 'MinerHardware':
        if model is None or model.model is None:
            return cls()
        layout = HARDWARE.get(model.model)
        if layout is None:
            return cls()
        return cls(*layout)


@dataclass(frozen=True)
class DeviceInfo:
    """Immutable identity of one discovered miner; hardware follows the model"""
    make: MinerMake
    model: MinerModel
    firmware: MinerFirmware
    algo: HashAlgorithm = HashAlgorithm.SHA256
    hardware: MinerHardware = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, 'hardware', MinerHardware.for_model(self.model))

    def to_dict(self) -> Dict:
        return {
            'make': self.make.value,
            'model': self.model.name,
            'firmware': self.firmware.value,
            'algo': self.algo.value,
            'hardware': {
                'chips': self.hardware.chips,
                'fans': self.hardware.fans,
                'boards': self.hardware.boards,
            },
        }
