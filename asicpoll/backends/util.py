"""
Lenient conversions shared by the vendor backends
"""
import math
import re
from typing import Any, Dict, List, Optional

from ..data import HashRate, HashRateUnit, PoolData, PoolURL

_BRACKET_TOKEN = re.compile(r'([\w ]+?)\[([^\]]*)\]')


def as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(str(value).strip().rstrip('%'))
    except (TypeError, ValueError):
        return None


def as_int(value: Any) -> Optional[int]:
    number = as_float(value)
    if number is None or not math.isfinite(number):
        return None
    return int(number)


def as_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('true', 'yes', 'on', '1', 'alive', 'y'):
            return True
        if lowered in ('false', 'no', 'off', '0', 'dead', 'n'):
            return False
    return None


def hashrate(value: Any, unit: HashRateUnit, target: HashRateUnit = HashRateUnit.TERAHASH) -> Optional[HashRate]:
    """Build a HashRate from a raw vendor number, converted to target"""
    number = as_float(value)
    if number is None:
        return None
    return HashRate(number, unit).as_unit(target)


def format_mac(value: Any) -> Optional[str]:
    """Normalize MAC addresses to AA:BB:CC:DD:EE:FF"""
    text = as_str(value)
    if text is None:
        return None
    digits = re.sub(r'[^0-9A-Fa-f]', '', text)
    if len(digits) != 12:
        return None
    digits = digits.upper()
    return ':'.join(digits[i:i + 2] for i in range(0, 12, 2))


def parse_bracket_stats(text: Any) -> Dict[str, List[str]]:
    """
    Parse Avalon's embedded "Key[v1 v2] Other[v]" format

    Returns:
        Mapping of key to its whitespace-separated values
    """
    if not isinstance(text, str):
        return {}
    stats = {}
    for match in _BRACKET_TOKEN.finditer(text):
        name = match.group(1).strip()
        stats[name] = match.group(2).split()
    return stats


def first_value(stats: Dict[str, List[str]], name: str) -> Optional[str]:
    values = stats.get(name)
    return values[0] if values else None


def cgminer_pools(pools: Any) -> List[PoolData]:
    """Translate a cgminer "POOLS" array"""
    if not isinstance(pools, list):
        return []

    result = []
    for idx, pool in enumerate(pools):
        if not isinstance(pool, dict):
            continue
        url = as_str(pool.get('URL'))
        if url is None:
            continue
        status = as_str(pool.get('Status'))
        active = pool.get('Stratum Active')
        result.append(PoolData(
            position=as_int(pool.get('POOL', idx)),
            url=PoolURL.parse(url),
            user=as_str(pool.get('User')),
            alive=(status == 'Alive') if status is not None else None,
            active=as_bool(active) if active is not None else None,
            accepted_shares=as_int(pool.get('Accepted')),
            rejected_shares=as_int(pool.get('Rejected')),
        ))
    return result
