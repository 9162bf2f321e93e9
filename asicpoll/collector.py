"""
Data collector: one fetch pass over a backend's data locations
"""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Optional

from .api.base import APIClient, APIError
from .commands import MinerCommand
from .extract import DataField, DataLocation

logger = logging.getLogger(__name__)

MAX_COMMAND_WORKERS = 8


class DataCollector:
    """
    Fetches every distinct command a backend needs, once, and builds the
    field map from the responses

    A failed command simply contributes nothing; collection itself never
    raises.
    """

    def __init__(self, backend, api: APIClient):
        self.backend = backend
        self.api = api

    def collect_all(self, fields: Optional[Iterable[DataField]] = None) -> Dict[DataField, Any]:
        """Collect every known DataField, or only `fields` when given"""
        return self.collect(DataField if fields is None else fields)

    def collect(self, fields: Iterable[DataField]) -> Dict[DataField, Any]:
        """
        Collect a subset of fields

        Args:
            fields: DataFields of interest

        Returns:
            Mapping of field to extracted value; unsupported or failed
            fields are absent
        """
        locations: Dict[DataField, List[DataLocation]] = {}
        for data_field in fields:
            try:
                locations[data_field] = list(self.backend.get_locations(data_field))
            except Exception as e:
                logger.error(f"Location lookup for {data_field} failed on {self.backend.ip}: {e}")
                locations[data_field] = []

        commands: List[MinerCommand] = []
        for field_locations in locations.values():
            for command, _ in field_locations:
                if command not in commands:
                    commands.append(command)

        responses = self._fetch(commands)

        data = {}
        for data_field, field_locations in locations.items():
            value = self._extract(field_locations, responses)
            if value is not None:
                data[data_field] = value
        return data

    def _send(self, command: MinerCommand) -> Any:
        return self.api.send(command)

    def _fetch(self, commands: List[MinerCommand]) -> Dict[MinerCommand, Any]:
        """Issue each command once; only successful responses are returned"""
        responses = {}
        if not commands:
            return responses

        with ThreadPoolExecutor(max_workers=min(len(commands), MAX_COMMAND_WORKERS)) as executor:
            futures = {executor.submit(self._send, command): command for command in commands}
            for future in as_completed(futures):
                command = futures[future]
                try:
                    responses[command] = future.result()
                except APIError as e:
                    logger.debug(f"{self.backend.ip} - {command} failed: {e}")
                except Exception as e:
                    logger.warning(f"{self.backend.ip} - unexpected error on {command}: {e}")
        return responses

    @staticmethod
    def _extract(field_locations: List[DataLocation], responses: Dict[MinerCommand, Any]) -> Optional[Any]:
        """
        Apply a field's extractors and merge their results

        One location stores its value as-is. With several, tagged results are
        stored under their tag, untagged mappings are merged key by key, and
        otherwise the first untagged value wins.
        """
        results = []
        for command, extractor in field_locations:
            if command not in responses:
                continue
            value = extractor.extract(responses[command])
            if value is not None:
                results.append((extractor.tag, value))

        if not results:
            return None
        if len(field_locations) == 1:
            return results[0][1]

        merged = {}
        first_plain = None
        for tag, value in results:
            if tag:
                merged[tag] = value
            elif isinstance(value, dict):
                merged.update(value)
            elif first_plain is None:
                first_plain = value
        return merged if merged else first_plain
