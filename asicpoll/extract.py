"""
Data extraction engine

Maps abstract telemetry fields to locations inside vendor API responses.
A location is a (command, extractor) pair; the extractor pulls a value out
of that command's JSON response with either a pointer path or a flat key.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple

from .commands import MinerCommand


class DataField(Enum):
    """Abstract telemetry facets a backend may know how to locate"""
    MAC = "mac"
    API_VERSION = "api_version"
    FIRMWARE_VERSION = "firmware_version"
    CONTROL_BOARD_VERSION = "control_board_version"
    SERIAL_NUMBER = "serial_number"
    HOSTNAME = "hostname"
    HASHRATE = "hashrate"
    EXPECTED_HASHRATE = "expected_hashrate"
    HASHBOARDS = "hashboards"
    FANS = "fans"
    PSU_FANS = "psu_fans"
    FLUID_TEMPERATURE = "fluid_temperature"
    WATTAGE = "wattage"
    WATTAGE_LIMIT = "wattage_limit"
    LIGHT_FLASHING = "light_flashing"
    MESSAGES = "messages"
    UPTIME = "uptime"
    IS_MINING = "is_mining"
    POOLS = "pools"


def _unescape(segment: str) -> str:
    return segment.replace('~1', '/').replace('~0', '~')


def get_by_pointer(document: Any, path: Optional[str]) -> Any:
    """
    Resolve a slash-delimited pointer inside a JSON document

    Args:
        document: Parsed JSON (dicts, lists, scalars)
        path: Pointer such as "/STATS/0/Elapsed"; None or "" selects the
            whole document

    Returns:
        The value found, or None when any segment is missing or the
        structure does not match
    """
    if not path:
        return document

    current = document
    if path.startswith('/'):
        path = path[1:]
    for segment in path.split('/'):
        segment = _unescape(segment)
        if isinstance(current, dict):
            if segment not in current:
                return None
            current = current[segment]
        elif isinstance(current, list):
            if not segment.isdecimal():
                return None
            index = int(segment)
            if index >= len(current):
                return None
            current = current[index]
        else:
            return None
    return current


def get_by_key(document: Any, key: Optional[str]) -> Any:
    """Look up a top-level key of an already flat response"""
    if not key:
        return document
    if not isinstance(document, dict):
        return None
    return document.get(key)


ExtractFunc = Callable[[Any, Optional[str]], Any]


@dataclass(frozen=True)
class DataExtractor:
    """Strategy for pulling one value out of a command response"""
    func: ExtractFunc = get_by_pointer
    key: Optional[str] = None
    tag: Optional[str] = None

    def extract(self, document: Any) -> Any:
        return self.func(document, self.key)


DataLocation = Tuple[MinerCommand, DataExtractor]


def pointer(path: str, tag: Optional[str] = None) -> DataExtractor:
    return DataExtractor(get_by_pointer, path, tag)


def key(name: str, tag: Optional[str] = None) -> DataExtractor:
    return DataExtractor(get_by_key, name, tag)
