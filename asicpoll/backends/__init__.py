import logging
from typing import Optional, Tuple

from ..device import MinerFirmware, MinerMake, MinerModel
from .antminer import AntMiner
from .avalon import AvalonMiner
from .base import MinerBackend
from .bitaxe import Bitaxe
from .braiins import BraiinsOS
from .epic import EPic
from .luxos import LuxOS
from .vnish import VNish
from .whatsminer import V3_FIRMWARE, BTMiner2, BTMiner3

logger = logging.getLogger(__name__)

FIRMWARE_BACKENDS = {
    MinerFirmware.BRAIINS_OS: BraiinsOS,
    MinerFirmware.LUXOS: LuxOS,
    MinerFirmware.VNISH: VNish,
    MinerFirmware.EPIC: EPic,
}

MAKE_BACKENDS = {
    MinerMake.ANTMINER: AntMiner,
    MinerMake.AVALONMINER: AvalonMiner,
    MinerMake.BITAXE: Bitaxe,
    MinerMake.EPIC: EPic,
    MinerMake.BRAIINS: BraiinsOS,
}


def backend_for(ip: str, model: Optional[MinerModel], firmware: Optional[MinerFirmware],
                version: Optional[Tuple[int, ...]] = None) -> Optional[MinerBackend]:
    """
    Pick and build the backend for a classified miner

    Third-party firmware decides the backend regardless of hardware; stock
    firmware is dispatched on make. WhatsMiner additionally needs the
    firmware version to choose between the v2 and v3 APIs.

    Returns:
        A backend instance, or None when no backend supports the combination
    """
    firmware = firmware or MinerFirmware.STOCK

    backend_cls = FIRMWARE_BACKENDS.get(firmware)
    if backend_cls is None and firmware == MinerFirmware.STOCK and model is not None:
        if model.make == MinerMake.WHATSMINER:
            backend_cls = BTMiner3 if version is not None and version >= V3_FIRMWARE else BTMiner2
        else:
            backend_cls = MAKE_BACKENDS.get(model.make)

    if backend_cls is None:
        logger.warning(f"No backend for {model} running {firmware.value} at {ip}")
        return None
    return backend_cls(ip, model, firmware)


__all__ = [
    'MinerBackend',
    'AntMiner',
    'AvalonMiner',
    'Bitaxe',
    'BraiinsOS',
    'BTMiner2',
    'BTMiner3',
    'EPic',
    'LuxOS',
    'VNish',
    'backend_for',
]
