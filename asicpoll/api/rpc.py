"""
cgminer-style RPC over a raw TCP socket (Antminer, Whatsminer, Avalon, etc.)
"""
import json
import logging
import re
import socket
import struct
from typing import Any, Dict, Optional

from .base import APIClient, CommandError, ConnectionFailed, ResponseError, UnsupportedCommand
from ..commands import MinerCommand, RPCCommand
import config

logger = logging.getLogger(__name__)


def repair_json(text: str) -> str:
    """Patch the invalid JSON some cgminer builds emit"""
    text = text.replace('}{', '},{')
    text = text.replace('\n', '')
    text = re.sub(r',\s*([\]}])', r'\1', text)
    text = re.sub(r'([\[{])\s*,', r'\1', text)
    return text


def check_status(response: Dict) -> Dict:
    """
    Validate the STATUS envelope of a cgminer response

    STATUS "S" (success) and "I" (information) are accepted, "E" and anything
    else raise CommandError.
    """
    if not isinstance(response, dict):
        raise ResponseError("Invalid response format")

    status = response.get('STATUS')
    if isinstance(status, list):
        if not status or not isinstance(status[0], dict):
            raise ResponseError("Invalid response format")
        code = status[0].get('STATUS')
        message = status[0].get('Msg')
    elif isinstance(status, str):
        # btminer answers {"STATUS": "S", "Msg": {...}} for its own commands
        code = status
        message = response.get('Msg')
    else:
        raise ResponseError("Invalid response format")

    if code in ('S', 'I'):
        return response
    if code == 'E':
        raise CommandError(str(message or 'Unknown error'))
    raise CommandError("Unknown status")


class CGMinerRPC(APIClient):
    """Socket client speaking the cgminer JSON API"""

    def __init__(self, ip: str, port: int = None, timeout: float = None):
        self.ip = ip
        self.port = port or config.RPC_PORT
        self.timeout = timeout or config.RPC_TIMEOUT

    def _build_request(self, command: str, parameters: Any) -> bytes:
        request = {"command": command}
        if parameters is not None:
            request["parameter"] = parameters
        return json.dumps(request).encode()

    def _exchange(self, data: bytes) -> bytes:
        """Send raw bytes and read until the device closes or NUL-terminates"""
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            sock.settimeout(self.timeout)
            try:
                sock.connect((self.ip, self.port))
                sock.sendall(data)

                response = b''
                while True:
                    chunk = sock.recv(config.RPC_BUFFER_SIZE)
                    if not chunk:
                        break
                    response += chunk
                    if response.endswith(b'\x00'):
                        break
            finally:
                sock.close()
        except socket.timeout as e:
            raise ConnectionFailed(f"Timeout talking to {self.ip}:{self.port}") from e
        except OSError as e:
            raise ConnectionFailed(f"Socket error with {self.ip}:{self.port}: {e}") from e
        return response

    def _parse(self, raw: bytes) -> Any:
        if not raw:
            raise ResponseError("No data returned from the API")

        text = raw.decode('utf-8', errors='replace').replace('\x00', '')
        if text.startswith("Socket connect failed"):
            raise ConnectionFailed(text.strip())

        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass
        try:
            return json.loads(repair_json(text))
        except json.JSONDecodeError as e:
            raise ResponseError(f"Malformed JSON from {self.ip}: {e}") from e

    def send_command(self, command: str, parameters: Any = None, check: bool = True) -> Any:
        """
        Send a command to the cgminer API

        Args:
            command: Command name, e.g. "summary"
            parameters: Optional "parameter" value
            check: Validate the STATUS envelope

        Returns:
            Parsed JSON response
        """
        logger.debug(f"{self.ip} - (Send Command) - {command}")
        response = self._parse(self._exchange(self._build_request(command, parameters)))
        if check:
            check_status(response)
        return response

    def send(self, command: MinerCommand) -> Any:
        if not isinstance(command, RPCCommand):
            raise UnsupportedCommand("Cannot send non RPC command to RPC API")
        return self.send_command(command.command, command.params)


class BTMinerV3RPC(CGMinerRPC):
    """
    Whatsminer API v3 (firmware from 2024.11): length-prefixed JSON with
    "cmd"/"param" requests and "code"/"msg" responses
    """

    DEFAULT_PORT = 4433

    def __init__(self, ip: str, port: int = None, timeout: float = None):
        super().__init__(ip, port or self.DEFAULT_PORT, timeout)

    def _build_request(self, command: str, parameters: Any) -> bytes:
        request = {"cmd": command}
        if parameters is not None:
            request["param"] = parameters
        body = json.dumps(request).encode()
        return struct.pack('<I', len(body)) + body

    def _exchange(self, data: bytes) -> bytes:
        try:
            with socket.create_connection((self.ip, self.port), timeout=self.timeout) as sock:
                sock.sendall(data)
                header = self._recv_exactly(sock, 4)
                (length,) = struct.unpack('<I', header)
                return self._recv_exactly(sock, length)
        except socket.timeout as e:
            raise ConnectionFailed(f"Timeout talking to {self.ip}:{self.port}") from e
        except OSError as e:
            raise ConnectionFailed(f"Socket error with {self.ip}:{self.port}: {e}") from e

    @staticmethod
    def _recv_exactly(sock: socket.socket, size: int) -> bytes:
        data = b''
        while len(data) < size:
            chunk = sock.recv(min(config.RPC_BUFFER_SIZE, size - len(data)))
            if not chunk:
                raise ConnectionFailed("Connection closed mid-response")
            data += chunk
        return data

    def send_command(self, command: str, parameters: Any = None, check: bool = True) -> Any:
        logger.debug(f"{self.ip} - (Send Command v3) - {command}")
        response = self._parse(self._exchange(self._build_request(command, parameters)))
        if check:
            if not isinstance(response, dict) or 'code' not in response:
                raise ResponseError("Invalid response format")
            if response['code'] != 0:
                raise CommandError(str(response.get('msg') or f"Error code {response['code']}"))
        return response


def send_rpc_probe(ip: str, command: str, timeout: Optional[float] = None) -> Optional[Any]:
    """Best-effort RPC call used for identification; None on any failure"""
    try:
        return CGMinerRPC(ip, timeout=timeout).send_command(command, check=False)
    except (ConnectionFailed, ResponseError) as e:
        logger.debug(f"RPC probe '{command}' failed for {ip}: {e}")
        return None
