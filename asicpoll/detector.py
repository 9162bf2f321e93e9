"""
Miner discovery: identify what answers at an address and build its backend
"""
import json
import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from .api import APIError, BTMinerV3RPC, WebAPI, send_rpc_probe, send_web_probe
from .backends import MinerBackend, backend_for
from .backends.antminer import antminer_web
from .backends.whatsminer import V3_FIRMWARE, parse_firmware_date
from .commands import MinerCommand, RPCCommand, WebCommand
from .device import MinerFirmware, MinerMake, MinerModel
from .extract import get_by_pointer
import config

logger = logging.getLogger(__name__)

Classification = Tuple[Optional[MinerMake], Optional[MinerFirmware]]
Version = Tuple[int, ...]

RPC_VERSION = RPCCommand("version")
RPC_STATS = RPCCommand("stats")
RPC_DEVDETAILS = RPCCommand("devdetails")
RPC_GET_VERSION = RPCCommand("get_version")
WEB_ROOT = WebCommand("/")

MAKE_PROBES = {
    MinerMake.ANTMINER: (RPC_VERSION, WEB_ROOT),
    MinerMake.WHATSMINER: (RPC_GET_VERSION, WEB_ROOT),
    MinerMake.AVALONMINER: (RPC_VERSION, RPC_STATS, WEB_ROOT),
    MinerMake.EPIC: (WEB_ROOT,),
    MinerMake.BRAIINS: (RPC_VERSION, WEB_ROOT),
    MinerMake.BITAXE: (WEB_ROOT,),
}

FIRMWARE_PROBES = {
    MinerFirmware.STOCK: (),
    MinerFirmware.BRAIINS_OS: (RPC_VERSION, WEB_ROOT),
    MinerFirmware.VNISH: (RPC_DEVDETAILS, WEB_ROOT),
    MinerFirmware.EPIC: (WEB_ROOT,),
    MinerFirmware.HIVEOS: (RPC_VERSION,),
    MinerFirmware.LUXOS: (RPC_VERSION,),
    MinerFirmware.MARATHON: (RPC_VERSION,),
    MinerFirmware.MSKMINER: (RPC_VERSION,),
}

# WhatsMiner model strings end in a hardware revision, e.g. "M30S+VE40"
_WHATSMINER_REVISION = re.compile(r'V[A-Z]*\d+$')
_AVALON_SUBTYPED = ("AVALONNANO", "AVALON0O", "AVALONMINER 15")


def parse_type_from_socket(response: Any) -> Optional[Classification]:
    """
    Classify an RPC probe response by keywords in its serialized form

    Rules are checked in order and the first match wins. A response naming
    ANTMINER inside DEVDETAILS comes from third-party firmware reporting
    its hardware, so it does not count as stock AntMiner.
    """
    if response is None:
        return None
    text = json.dumps(response).upper()

    if "BOSMINER" in text or "BOSER" in text:
        return None, MinerFirmware.BRAIINS_OS
    if "LUXMINER" in text:
        return None, MinerFirmware.LUXOS
    if "BITMICRO" in text or "BTMINER" in text:
        return MinerMake.WHATSMINER, MinerFirmware.STOCK
    if "ANTMINER" in text and "DEVDETAILS" not in text:
        return MinerMake.ANTMINER, MinerFirmware.STOCK
    if "AVALON" in text:
        return MinerMake.AVALONMINER, MinerFirmware.STOCK
    if "VNISH" in text:
        return None, MinerFirmware.VNISH
    return None


def _header(headers: Mapping, name: str) -> str:
    if not headers:
        return ""
    value = headers.get(name)
    if value is None:
        # plain dicts are case sensitive, requests' CaseInsensitiveDict is not
        for key, candidate in headers.items():
            if key.lower() == name.lower():
                value = candidate
                break
    return value or ""


def parse_type_from_web(response: Optional[Tuple[str, Mapping, int]]) -> Optional[Classification]:
    """
    Classify a web probe from its body, status and auth/redirect headers

    Args:
        response: (body text, headers, status code)
    """
    if response is None:
        return None
    text, headers, status = response
    text = text or ""
    auth = _header(headers, "WWW-Authenticate")
    location = _header(headers, "Location")

    if status == 401 and 'realm="antMiner' in auth:
        return MinerMake.ANTMINER, MinerFirmware.STOCK
    if "Braiins OS" in text:
        return None, MinerFirmware.BRAIINS_OS
    if "Luxor Firmware" in text:
        return None, MinerFirmware.LUXOS
    if "AxeOS" in text:
        return MinerMake.BITAXE, MinerFirmware.STOCK
    if "Miner Web Dashboard" in text:
        return None, MinerFirmware.EPIC
    if "Avalon" in text:
        return MinerMake.AVALONMINER, MinerFirmware.STOCK
    if "AnthillOS" in text:
        return None, MinerFirmware.VNISH
    if (status == 307 and "https://" in location) or "/cgi-bin/luci" in text:
        return MinerMake.WHATSMINER, MinerFirmware.STOCK
    return None


def avalon_model_name(version: Any) -> Optional[str]:
    """Model string from an Avalon "version" response"""
    prod = get_by_pointer(version, "/VERSION/0/PROD")
    subtype = get_by_pointer(version, "/VERSION/0/MODEL")
    if isinstance(prod, str):
        name = prod.upper().split('-')[0]
        if name in _AVALON_SUBTYPED and isinstance(subtype, str):
            name = f"AVALONMINER {subtype.upper()}"
        return name
    if isinstance(subtype, str):
        return subtype.split('-')[0].upper()
    return None


def whatsminer_model_name(text: Any) -> Optional[str]:
    if not isinstance(text, str):
        return None
    return _WHATSMINER_REVISION.sub('', text.strip().upper())


def braiins_model_name(text: Any) -> Optional[str]:
    if not isinstance(text, str):
        return None
    return text.upper().replace("BITMAIN ", "").replace("S19XP", "S19 XP")


def parse_version(text: Any) -> Optional[Version]:
    """Loose semantic version: "v2.10.3", "1.2.6-rc1" and "2.4" all parse"""
    if not isinstance(text, str):
        return None
    match = re.search(r'(\d+)\.(\d+)(?:\.(\d+))?', text)
    if match is None:
        return None
    return tuple(int(part or 0) for part in match.groups())


def _parse_first(makes: Iterable[MinerMake], text: Optional[str]) -> Optional[MinerModel]:
    for make in makes:
        model = MinerModel.parse(make, text)
        if model is not None:
            return model
    return None


class MinerDetector:
    """
    Identifies miners by racing cheap probes against an address

    Args:
        search_makes: Makes to probe for; None means all
        search_firmwares: Firmwares to probe for; None means all
        timeout: Deadline in seconds for one address
        rpc_probe: Callable (ip, command) returning RPC JSON or None
        web_probe: Callable (ip, path) returning (text, headers, status) or None
    """

    def __init__(self, search_makes: Optional[List[MinerMake]] = None,
                 search_firmwares: Optional[List[MinerFirmware]] = None,
                 timeout: float = None,
                 rpc_probe: Callable[[str, str], Any] = None,
                 web_probe: Callable[[str, str], Any] = None):
        self.search_makes = list(search_makes) if search_makes is not None else None
        self.search_firmwares = list(search_firmwares) if search_firmwares is not None else None
        self.timeout = timeout or config.DISCOVERY_TIMEOUT
        self.rpc_probe = rpc_probe or send_rpc_probe
        self.web_probe = web_probe or send_web_probe

    # Search filters

    def with_search_makes(self, makes: Iterable[MinerMake]) -> 'MinerDetector':
        self.search_makes = list(makes)
        return self

    def add_search_make(self, make: MinerMake) -> 'MinerDetector':
        if self.search_makes is None:
            self.search_makes = []
        if make not in self.search_makes:
            self.search_makes.append(make)
        return self

    def remove_search_make(self, make: MinerMake) -> 'MinerDetector':
        if self.search_makes is None:
            self.search_makes = list(MinerMake)
        self.search_makes = [m for m in self.search_makes if m != make]
        return self

    def with_search_firmwares(self, firmwares: Iterable[MinerFirmware]) -> 'MinerDetector':
        self.search_firmwares = list(firmwares)
        return self

    def add_search_firmware(self, firmware: MinerFirmware) -> 'MinerDetector':
        if self.search_firmwares is None:
            self.search_firmwares = []
        if firmware not in self.search_firmwares:
            self.search_firmwares.append(firmware)
        return self

    def remove_search_firmware(self, firmware: MinerFirmware) -> 'MinerDetector':
        if self.search_firmwares is None:
            self.search_firmwares = list(MinerFirmware)
        self.search_firmwares = [f for f in self.search_firmwares if f != firmware]
        return self

    def discovery_commands(self) -> List[MinerCommand]:
        """Distinct probes needed for the current search filters"""
        makes = self.search_makes if self.search_makes is not None else list(MinerMake)
        firmwares = self.search_firmwares if self.search_firmwares is not None else list(MinerFirmware)

        commands = []
        for make in makes:
            for command in MAKE_PROBES.get(make, ()):
                if command not in commands:
                    commands.append(command)
        for firmware in firmwares:
            for command in FIRMWARE_PROBES.get(firmware, ()):
                if command not in commands:
                    commands.append(command)
        return commands

    # Phase 1: classification

    def probe(self, ip: str, command: MinerCommand) -> Optional[Classification]:
        """Run one probe and classify its answer; never raises"""
        try:
            if isinstance(command, RPCCommand):
                return parse_type_from_socket(self.rpc_probe(ip, command.command))
            return parse_type_from_web(self.web_probe(ip, command.command))
        except Exception as e:
            logger.debug(f"Probe {command} failed for {ip}: {e}")
            return None

    def discover(self, ip: str, timeout: float = None) -> Optional[Classification]:
        """
        Race every probe and return the first classification

        Returns:
            (make, firmware), or None when nothing answered recognizably
            before the deadline
        """
        commands = self.discovery_commands()
        if not commands:
            return None
        timeout = self.timeout if timeout is None else timeout

        executor = ThreadPoolExecutor(max_workers=len(commands))
        futures = [executor.submit(self.probe, ip, command) for command in commands]
        try:
            for future in as_completed(futures, timeout=timeout):
                result = future.result()
                if result is not None:
                    logger.debug(f"{ip} classified as {result}")
                    return result
        except FuturesTimeoutError:
            logger.debug(f"Discovery timed out for {ip} after {timeout}s")
        finally:
            # probes still in flight finish on their own socket timeouts
            executor.shutdown(wait=False, cancel_futures=True)
        return None

    # Phase 2: model and version

    @staticmethod
    def _fetch(api: WebAPI, command: str) -> Any:
        try:
            return api.send_command(command)
        except APIError as e:
            logger.debug(f"Model lookup '{command}' failed for {api.ip}: {e}")
            return None

    def _whatsminer_fw(self, ip: str) -> Optional[Version]:
        response = self.rpc_probe(ip, "get_version")
        return parse_firmware_date(get_by_pointer(response, "/Msg/fw_ver"))

    def resolve_version(self, ip: str, make: Optional[MinerMake],
                        firmware: Optional[MinerFirmware]) -> Optional[Version]:
        """Firmware version where the vendor exposes one cheaply"""
        if make == MinerMake.WHATSMINER:
            return self._whatsminer_fw(ip)
        if make == MinerMake.BITAXE:
            info = self._fetch(WebAPI(ip, path_template="/api/{command}"), "system/info")
            return parse_version(get_by_pointer(info, "/version"))
        if firmware == MinerFirmware.VNISH:
            info = self._fetch(WebAPI(ip, path_template="/api/v1/{command}"), "info")
            return parse_version(get_by_pointer(info, "/fw_version"))
        if firmware == MinerFirmware.EPIC:
            summary = self._fetch(WebAPI(ip, port=config.EPIC_WEB_PORT), "summary")
            software = get_by_pointer(summary, "/Software")
            return parse_version(software.split()[-1]) if isinstance(software, str) and software.split() else None
        return None

    def resolve_model(self, ip: str, make: Optional[MinerMake], firmware: Optional[MinerFirmware],
                      version: Optional[Version] = None) -> Optional[MinerModel]:
        """
        Ask the device for its model string and match it

        The make decides the query when known, otherwise the firmware does.

        Returns:
            The model, or None when the string is missing or unrecognized
        """
        if make == MinerMake.ANTMINER:
            info = self._fetch(antminer_web(ip), "get_system_info")
            return MinerModel.parse(make, get_by_pointer(info, "/minertype"))

        if make == MinerMake.WHATSMINER:
            if version is None:
                version = self._whatsminer_fw(ip)
            if version is not None and version >= V3_FIRMWARE:
                try:
                    info = BTMinerV3RPC(ip).send_command("get.device.info")
                except APIError as e:
                    logger.debug(f"Model lookup 'get.device.info' failed for {ip}: {e}")
                    return None
                text = get_by_pointer(info, "/msg/miner/type")
            else:
                text = get_by_pointer(self.rpc_probe(ip, "devdetails"), "/DEVDETAILS/0/Model")
            return MinerModel.parse(make, whatsminer_model_name(text))

        if make == MinerMake.AVALONMINER:
            return MinerModel.parse(make, avalon_model_name(self.rpc_probe(ip, "version")))

        if make == MinerMake.BITAXE:
            info = self._fetch(WebAPI(ip, path_template="/api/{command}"), "system/info")
            return MinerModel.parse(make, get_by_pointer(info, "/ASICModel"))

        if firmware == MinerFirmware.BRAIINS_OS or make == MinerMake.BRAIINS:
            details = self.rpc_probe(ip, "devdetails")
            text = braiins_model_name(get_by_pointer(details, "/DEVDETAILS/0/Model"))
            return _parse_first((MinerMake.ANTMINER, MinerMake.BRAIINS), text)

        if firmware == MinerFirmware.LUXOS:
            text = get_by_pointer(self.rpc_probe(ip, "version"), "/VERSION/0/Type")
            return MinerModel.parse(MinerMake.ANTMINER, text)

        if firmware == MinerFirmware.VNISH:
            info = self._fetch(WebAPI(ip, path_template="/api/v1/{command}"), "info")
            return MinerModel.parse(MinerMake.ANTMINER, get_by_pointer(info, "/model"))

        if firmware == MinerFirmware.EPIC or make == MinerMake.EPIC:
            capabilities = self._fetch(WebAPI(ip, port=config.EPIC_WEB_PORT), "capabilities")
            text = get_by_pointer(capabilities, "/Model")
            return _parse_first((MinerMake.EPIC, MinerMake.ANTMINER), text)

        return None

    def _resolve(self, ip: str, make: Optional[MinerMake],
                 firmware: Optional[MinerFirmware]) -> Tuple[Optional[MinerModel], Optional[Version]]:
        version = self.resolve_version(ip, make, firmware)
        return self.resolve_model(ip, make, firmware, version), version

    def identify(self, ip: str) -> Optional[Tuple[Optional[MinerModel], Optional[MinerFirmware], Optional[Version]]]:
        """
        Classify, then resolve model and version within the same deadline

        Returns:
            (model, firmware, version), or None when no miner was found.
            A known make with an unrecognized model string yields
            MinerModel(make, None).
        """
        deadline = time.monotonic() + self.timeout
        found = self.discover(ip, self.timeout)
        if found is None:
            return None
        make, firmware = found

        model, version = None, None
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._resolve, ip, make, firmware)
        try:
            model, version = future.result(timeout=max(deadline - time.monotonic(), 0))
        except FuturesTimeoutError:
            logger.warning(f"Model resolution timed out for {ip}")
        except Exception as e:
            logger.error(f"Model resolution failed for {ip}: {e}")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if model is None and make is not None:
            model = MinerModel(make)
        return model, firmware, version

    def get_miner(self, ip: str) -> Optional[MinerBackend]:
        """
        Detect the miner at an address and build its backend

        Returns:
            Backend instance, or None when nothing recognizable answered
        """
        logger.debug(f"Detecting miner at {ip}")
        identity = self.identify(ip)
        if identity is None:
            logger.debug(f"No miner detected at {ip}")
            return None

        model, firmware, version = identity
        backend = backend_for(ip, model, firmware, version)
        if backend is not None:
            logger.info(f"Detected {model} ({firmware.value if firmware else 'unknown firmware'}) at {ip}")
        return backend
