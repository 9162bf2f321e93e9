"""
Known miner models per make, with their static hardware layout
"""
import re
from enum import Enum
from typing import Dict, Optional, Tuple, Type


class AntMinerModel(Enum):
    S9 = "Antminer S9"
    S9i = "Antminer S9i"
    S9j = "Antminer S9j"
    T9 = "Antminer T9"
    S17 = "Antminer S17"
    S17Pro = "Antminer S17 Pro"
    S17Plus = "Antminer S17+"
    T17 = "Antminer T17"
    S19 = "Antminer S19"
    S19Pro = "Antminer S19 Pro"
    S19j = "Antminer S19j"
    S19jPro = "Antminer S19j Pro"
    S19XP = "Antminer S19 XP"
    S19kPro = "Antminer S19k Pro"
    T19 = "Antminer T19"
    S21 = "Antminer S21"
    S21Pro = "Antminer S21 Pro"
    S21Plus = "Antminer S21+"
    S21XP = "Antminer S21 XP"
    T21 = "Antminer T21"


class WhatsMinerModel(Enum):
    M20S = "WhatsMiner M20S"
    M21S = "WhatsMiner M21S"
    M30S = "WhatsMiner M30S"
    M30SPlus = "WhatsMiner M30S+"
    M30SPlusPlus = "WhatsMiner M30S++"
    M31S = "WhatsMiner M31S"
    M31SPlus = "WhatsMiner M31S+"
    M32 = "WhatsMiner M32"
    M50 = "WhatsMiner M50"
    M50S = "WhatsMiner M50S"
    M53 = "WhatsMiner M53"
    M56S = "WhatsMiner M56S"
    M60 = "WhatsMiner M60"
    M60S = "WhatsMiner M60S"
    M63S = "WhatsMiner M63S"
    M66S = "WhatsMiner M66S"


class AvalonMinerModel(Enum):
    Avalon721 = "Avalon 721"
    Avalon741 = "Avalon 741"
    Avalon761 = "Avalon 761"
    Avalon821 = "Avalon 821"
    Avalon841 = "Avalon 841"
    Avalon851 = "Avalon 851"
    Avalon921 = "Avalon 921"
    Avalon1026 = "Avalon 1026"
    Avalon1047 = "Avalon 1047"
    Avalon1066 = "Avalon 1066"
    Avalon1126Pro = "Avalon 1126 Pro"
    Avalon1166Pro = "Avalon 1166 Pro"
    Avalon1246 = "Avalon 1246"
    Avalon1566 = "Avalon 1566"
    AvalonNano3 = "Avalon Nano 3"
    AvalonNano3s = "Avalon Nano 3s"


class BitaxeModel(Enum):
    Max = "BM1397"
    Ultra = "BM1366"
    Supra = "BM1368"
    Gamma = "BM1370"


class BraiinsModel(Enum):
    BMM100 = "Braiins Mini Miner BMM 100"
    BMM101 = "Braiins Mini Miner BMM 101"


class EPicModel(Enum):
    BlockMiner520i = "BlockMiner 520i"
    BlockMiner720i = "BlockMiner 720i"


# Extra spellings seen in vendor responses that do not normalize to the
# enum value on their own.
_ALIASES = {
    AvalonMinerModel.Avalon1126Pro: ("Avalon 1126",),
    AvalonMinerModel.Avalon1166Pro: ("Avalon 1166",),
    AvalonMinerModel.AvalonNano3: ("AvalonMiner Nano3", "Avalon Nano3"),
    AvalonMinerModel.AvalonNano3s: ("AvalonMiner Nano3s", "Avalon Nano3s"),
    BraiinsModel.BMM100: ("BMM100", "Braiins Mini Miner"),
    BraiinsModel.BMM101: ("BMM101",),
    BitaxeModel.Max: ("Bitaxe Max",),
    BitaxeModel.Ultra: ("Bitaxe Ultra",),
    BitaxeModel.Supra: ("Bitaxe Supra",),
    BitaxeModel.Gamma: ("Bitaxe Gamma",),
}

# Brand words vendors prepend (or omit) inconsistently
_PREFIXES = {
    AntMinerModel: ("ANTMINER", "BITMAIN"),
    WhatsMinerModel: ("WHATSMINER", "MICROBT"),
    AvalonMinerModel: ("AVALONMINER", "AVALON"),
    BitaxeModel: ("BITAXE",),
    BraiinsModel: ("BRAIINS",),
    EPicModel: ("EPIC",),
}


def normalize_model_name(text: str) -> str:
    """Uppercase and drop whitespace/underscores so spellings compare equal"""
    return re.sub(r'[\s_]+', '', text.upper())


def _strip_prefix(norm: str, prefixes: Tuple[str, ...]) -> str:
    for prefix in prefixes:
        if norm.startswith(prefix) and len(norm) > len(prefix):
            return norm[len(prefix):]
    return norm


def _build_index(enum_cls: Type[Enum]) -> Dict[str, Enum]:
    prefixes = _PREFIXES.get(enum_cls, ())
    index = {}
    for member in enum_cls:
        spellings = (member.value, member.name) + _ALIASES.get(member, ())
        for spelling in spellings:
            norm = normalize_model_name(spelling)
            index.setdefault(norm, member)
            index.setdefault(_strip_prefix(norm, prefixes), member)
    return index


_INDEXES = {
    enum_cls: _build_index(enum_cls)
    for enum_cls in (AntMinerModel, WhatsMinerModel, AvalonMinerModel,
                     BitaxeModel, BraiinsModel, EPicModel)
}


def lookup_model(enum_cls: Type[Enum], text: Optional[str]) -> Optional[Enum]:
    """
    Match a vendor model string against one make's known models

    Returns:
        The enum member, or None when the string is not recognized
    """
    if not text or not isinstance(text, str):
        return None
    index = _INDEXES[enum_cls]
    norm = normalize_model_name(text)
    if norm in index:
        return index[norm]
    return index.get(_strip_prefix(norm, _PREFIXES.get(enum_cls, ())))


# (chips per board, fans, boards)
HARDWARE = {
    AntMinerModel.S9: (63, 2, 3),
    AntMinerModel.S9i: (63, 2, 3),
    AntMinerModel.S9j: (63, 2, 3),
    AntMinerModel.T9: (57, 2, 3),
    AntMinerModel.S17: (48, 4, 3),
    AntMinerModel.S17Pro: (48, 4, 3),
    AntMinerModel.S17Plus: (65, 4, 3),
    AntMinerModel.T17: (30, 4, 3),
    AntMinerModel.S19: (76, 4, 3),
    AntMinerModel.S19Pro: (114, 4, 3),
    AntMinerModel.S19j: (114, 4, 3),
    AntMinerModel.S19jPro: (126, 4, 3),
    AntMinerModel.S19XP: (110, 4, 3),
    AntMinerModel.S19kPro: (77, 4, 3),
    AntMinerModel.T19: (76, 4, 3),
    AntMinerModel.S21: (108, 4, 3),
    AntMinerModel.S21Pro: (65, 4, 3),
    AntMinerModel.S21Plus: (55, 4, 3),
    AntMinerModel.S21XP: (91, 4, 3),
    AntMinerModel.T21: (108, 4, 3),
    WhatsMinerModel.M20S: (66, 2, 3),
    WhatsMinerModel.M21S: (105, 2, 3),
    WhatsMinerModel.M30S: (148, 2, 3),
    WhatsMinerModel.M30SPlus: (215, 2, 3),
    WhatsMinerModel.M30SPlusPlus: (111, 2, 3),
    WhatsMinerModel.M31S: (78, 2, 3),
    WhatsMinerModel.M31SPlus: (111, 2, 3),
    WhatsMinerModel.M32: (78, 2, 3),
    WhatsMinerModel.M50: (105, 2, 3),
    WhatsMinerModel.M50S: (129, 2, 3),
    WhatsMinerModel.M53: (198, 0, 4),
    WhatsMinerModel.M56S: (222, 0, 4),
    WhatsMinerModel.M60: (156, 2, 3),
    WhatsMinerModel.M60S: (160, 2, 3),
    WhatsMinerModel.M63S: (350, 0, 4),
    WhatsMinerModel.M66S: (392, 0, 4),
    AvalonMinerModel.Avalon721: (18, 1, 4),
    AvalonMinerModel.Avalon741: (22, 1, 4),
    AvalonMinerModel.Avalon761: (18, 1, 4),
    AvalonMinerModel.Avalon821: (26, 1, 4),
    AvalonMinerModel.Avalon841: (26, 1, 4),
    AvalonMinerModel.Avalon851: (26, 1, 4),
    AvalonMinerModel.Avalon921: (26, 1, 4),
    AvalonMinerModel.Avalon1026: (80, 2, 3),
    AvalonMinerModel.Avalon1047: (80, 2, 3),
    AvalonMinerModel.Avalon1066: (114, 4, 3),
    AvalonMinerModel.Avalon1126Pro: (120, 4, 3),
    AvalonMinerModel.Avalon1166Pro: (120, 4, 3),
    AvalonMinerModel.Avalon1246: (120, 4, 3),
    AvalonMinerModel.Avalon1566: (160, 2, 3),
    AvalonMinerModel.AvalonNano3: (10, 1, 1),
    AvalonMinerModel.AvalonNano3s: (12, 1, 1),
    BitaxeModel.Max: (1, 1, 1),
    BitaxeModel.Ultra: (1, 1, 1),
    BitaxeModel.Supra: (1, 1, 1),
    BitaxeModel.Gamma: (1, 1, 1),
    BraiinsModel.BMM100: (1, 1, 1),
    BraiinsModel.BMM101: (1, 1, 1),
    EPicModel.BlockMiner520i: (124, 4, 3),
    EPicModel.BlockMiner720i: (180, 4, 3),
}
