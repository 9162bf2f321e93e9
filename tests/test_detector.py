"""
Unit tests for miner discovery
"""
import time
import unittest
from unittest.mock import patch
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from asicpoll.api import WebAPI
from asicpoll.backends import AvalonMiner, Bitaxe, BTMiner2, BTMiner3
from asicpoll.detector import (
    MinerDetector,
    WEB_ROOT,
    avalon_model_name,
    braiins_model_name,
    parse_type_from_socket,
    parse_type_from_web,
    parse_version,
    whatsminer_model_name,
)
from asicpoll.device import MinerFirmware, MinerMake, MinerModel
from asicpoll.models import AntMinerModel, AvalonMinerModel, BitaxeModel, WhatsMinerModel
from tests.mock_responses import (
    AVALON_STATS,
    AVALON_VERSION,
    BITAXE_SYSTEM_INFO,
    WHATSMINER_DEVDETAILS,
    WHATSMINER_GET_VERSION,
)


def rpc_table(responses, delays=None):
    """Fake RPC probe answering from a {command: response} table"""
    delays = delays or {}

    def probe(ip, command):
        if command in delays:
            time.sleep(delays[command])
        return responses.get(command)
    return probe


def no_web(ip, path):
    return None


class TestSocketClassification(unittest.TestCase):
    """Test RPC response heuristics"""

    def test_braiins_wins_over_antminer(self):
        """Test BOSminer responses are BraiinsOS even on Antminer hardware"""
        response = {"VERSION": [{"BOSminer": "0.2.0", "Type": "Antminer S19"}]}
        self.assertEqual(parse_type_from_socket(response), (None, MinerFirmware.BRAIINS_OS))

    def test_boser(self):
        """Test the bosminer gRPC build name"""
        response = {"VERSION": [{"BOSer": "1.2.0"}]}
        self.assertEqual(parse_type_from_socket(response), (None, MinerFirmware.BRAIINS_OS))

    def test_luxos(self):
        """Test LuxOS detection"""
        response = {"VERSION": [{"LUXminer": "2024.5.1", "Type": "Antminer S19"}]}
        self.assertEqual(parse_type_from_socket(response), (None, MinerFirmware.LUXOS))

    def test_whatsminer(self):
        """Test btminer detection"""
        response = {"Description": "btminer", "Msg": {}}
        self.assertEqual(parse_type_from_socket(response), (MinerMake.WHATSMINER, MinerFirmware.STOCK))

    def test_antminer(self):
        """Test stock Antminer detection"""
        response = {"VERSION": [{"Type": "Antminer S19 Pro"}]}
        self.assertEqual(parse_type_from_socket(response), (MinerMake.ANTMINER, MinerFirmware.STOCK))

    def test_antminer_in_devdetails_is_not_stock(self):
        """Test ANTMINER inside DEVDETAILS is not classified as stock Antminer"""
        response = {"DEVDETAILS": [{"Model": "Antminer S19"}]}
        self.assertIsNone(parse_type_from_socket(response))

    def test_vnish_devdetails(self):
        """Test VNish reporting Antminer hardware in DEVDETAILS"""
        response = {"DEVDETAILS": [{"Model": "Antminer S19", "Driver": "vnish"}]}
        self.assertEqual(parse_type_from_socket(response), (None, MinerFirmware.VNISH))

    def test_avalon(self):
        """Test Avalon stats classify as stock AvalonMiner"""
        self.assertEqual(parse_type_from_socket(AVALON_STATS), (MinerMake.AVALONMINER, MinerFirmware.STOCK))
        self.assertEqual(parse_type_from_socket({"STATS": [{"ID": "Avalon"}]}),
                         (MinerMake.AVALONMINER, MinerFirmware.STOCK))

    def test_unrecognized(self):
        """Test unknown and missing responses"""
        self.assertIsNone(parse_type_from_socket({"STATUS": [{"STATUS": "S"}]}))
        self.assertIsNone(parse_type_from_socket(None))


class TestWebClassification(unittest.TestCase):
    """Test HTTP response heuristics"""

    def test_antminer_digest_realm(self):
        """Test the stock Antminer digest challenge"""
        response = ("", {"WWW-Authenticate": 'Digest realm="antMiner Configuration", nonce="x"'}, 401)
        self.assertEqual(parse_type_from_web(response), (MinerMake.ANTMINER, MinerFirmware.STOCK))

    def test_lowercase_header_names(self):
        """Test header lookup ignores case"""
        response = ("", {"www-authenticate": 'Digest realm="antMiner Configuration"'}, 401)
        self.assertEqual(parse_type_from_web(response), (MinerMake.ANTMINER, MinerFirmware.STOCK))

    def test_body_markers(self):
        """Test each body marker"""
        cases = [
            ("<title>Braiins OS</title>", (None, MinerFirmware.BRAIINS_OS)),
            ("Luxor Firmware", (None, MinerFirmware.LUXOS)),
            ("<title>AxeOS</title>", (MinerMake.BITAXE, MinerFirmware.STOCK)),
            ("Miner Web Dashboard", (None, MinerFirmware.EPIC)),
            ("Avalon Device", (MinerMake.AVALONMINER, MinerFirmware.STOCK)),
            ("AnthillOS", (None, MinerFirmware.VNISH)),
            ('<a href="/cgi-bin/luci">', (MinerMake.WHATSMINER, MinerFirmware.STOCK)),
        ]
        for body, expected in cases:
            with self.subTest(body=body):
                self.assertEqual(parse_type_from_web((body, {}, 200)), expected)

    def test_whatsminer_https_redirect(self):
        """Test the WhatsMiner redirect to its https interface"""
        response = ("", {"Location": "https://10.0.0.5/"}, 307)
        self.assertEqual(parse_type_from_web(response), (MinerMake.WHATSMINER, MinerFirmware.STOCK))

    def test_redirect_needs_307(self):
        """Test other redirects are not WhatsMiner"""
        self.assertIsNone(parse_type_from_web(("", {"Location": "https://10.0.0.5/"}, 302)))

    def test_priority(self):
        """Test earlier rules win when several markers are present"""
        response = ("Braiins OS on AxeOS hardware", {}, 200)
        self.assertEqual(parse_type_from_web(response), (None, MinerFirmware.BRAIINS_OS))

    def test_unrecognized(self):
        """Test pages without markers"""
        self.assertIsNone(parse_type_from_web(("<html>router</html>", {}, 200)))
        self.assertIsNone(parse_type_from_web(None))


class TestModelNames(unittest.TestCase):
    """Test vendor model string clean-up"""

    def test_avalon_prod(self):
        """Test PROD is cut at the first dash"""
        self.assertEqual(avalon_model_name(AVALON_VERSION), "AVALON1066")

    def test_avalon_nano(self):
        """Test nano models are named from MODEL"""
        version = {"VERSION": [{"PROD": "AvalonNano-3s", "MODEL": "Nano3s"}]}
        self.assertEqual(avalon_model_name(version), "AVALONMINER NANO3S")

    def test_avalon_model_fallback(self):
        """Test MODEL is used when PROD is missing"""
        self.assertEqual(avalon_model_name({"VERSION": [{"MODEL": "1246-83"}]}), "1246")
        self.assertIsNone(avalon_model_name({"VERSION": [{}]}))

    def test_whatsminer_revision_stripped(self):
        """Test hardware revision suffixes are dropped"""
        self.assertEqual(whatsminer_model_name("M30S+VE40"), "M30S+")
        self.assertEqual(whatsminer_model_name("M60SVK30"), "M60S")
        self.assertIsNone(whatsminer_model_name(None))

    def test_braiins_names(self):
        """Test Braiins model strings"""
        self.assertEqual(braiins_model_name("Bitmain S19XP"), "S19 XP")

    def test_parse_version(self):
        """Test loose version parsing"""
        self.assertEqual(parse_version("v2.4.1"), (2, 4, 1))
        self.assertEqual(parse_version("1.2.6-rc1"), (1, 2, 6))
        self.assertEqual(parse_version("2.4"), (2, 4, 0))
        self.assertIsNone(parse_version("unknown"))


class TestSearchFilters(unittest.TestCase):
    """Test make/firmware filters and probe planning"""

    def test_default_probes_are_unique(self):
        """Test the full probe set has no duplicates"""
        commands = MinerDetector().discovery_commands()
        self.assertEqual(len(commands), len(set(commands)))
        self.assertIn(WEB_ROOT, commands)

    def test_filtered_probes(self):
        """Test probes follow the filters"""
        detector = MinerDetector().with_search_makes([MinerMake.BITAXE]).with_search_firmwares([])
        self.assertEqual(detector.discovery_commands(), [WEB_ROOT])

    def test_add_and_remove(self):
        """Test incremental filter edits"""
        detector = MinerDetector(search_makes=[])
        detector.add_search_make(MinerMake.EPIC).add_search_make(MinerMake.EPIC)
        self.assertEqual(detector.search_makes, [MinerMake.EPIC])

        detector = MinerDetector().remove_search_firmware(MinerFirmware.STOCK)
        self.assertEqual(len(detector.search_firmwares), len(MinerFirmware) - 1)
        self.assertNotIn(MinerFirmware.STOCK, detector.search_firmwares)

    def test_nothing_to_search(self):
        """Test an empty search finds nothing without probing"""
        detector = MinerDetector(search_makes=[], search_firmwares=[], rpc_probe=self.fail)
        self.assertIsNone(detector.discover("10.0.0.5"))


class TestDiscovery(unittest.TestCase):
    """Test the probe race"""

    def test_first_match_wins(self):
        """Test the earliest classifying probe decides"""
        probe = rpc_table(
            {"version": {"VERSION": [{"Type": "Antminer S19"}]}, "stats": {"STATS": [{"ID": "Avalon"}]}},
            delays={"version": 0.5},
        )
        detector = MinerDetector(search_makes=[MinerMake.AVALONMINER], search_firmwares=[],
                                 rpc_probe=probe, web_probe=no_web)

        start = time.monotonic()
        result = detector.discover("10.0.0.5")
        elapsed = time.monotonic() - start

        self.assertEqual(result, (MinerMake.AVALONMINER, MinerFirmware.STOCK))
        self.assertLess(elapsed, 0.4)

    def test_non_classifying_results_ignored(self):
        """Test unrecognized answers do not end the race"""
        probe = rpc_table({"version": {"STATUS": [{"STATUS": "S"}]}},)

        def web(ip, path):
            time.sleep(0.1)
            return ("<title>AxeOS</title>", {}, 200)

        detector = MinerDetector(rpc_probe=probe, web_probe=web)
        self.assertEqual(detector.discover("10.0.0.5"), (MinerMake.BITAXE, MinerFirmware.STOCK))

    def test_probe_exception_absorbed(self):
        """Test a raising probe counts as no answer"""
        def broken(ip, command):
            raise RuntimeError("boom")

        detector = MinerDetector(search_makes=[MinerMake.AVALONMINER], search_firmwares=[],
                                 rpc_probe=broken, web_probe=no_web)
        self.assertIsNone(detector.discover("10.0.0.5"))

    def test_deadline(self):
        """Test hanging probes give up at the deadline"""
        def hanging(ip, command):
            time.sleep(1.0)
            return {"STATS": [{"ID": "Avalon"}]}

        detector = MinerDetector(search_makes=[MinerMake.AVALONMINER], search_firmwares=[],
                                 rpc_probe=hanging, web_probe=no_web)
        start = time.monotonic()
        result = detector.discover("10.0.0.5", timeout=0.2)

        self.assertIsNone(result)
        self.assertLess(time.monotonic() - start, 0.9)


class TestGetMiner(unittest.TestCase):
    """Test full identification and backend selection"""

    def test_avalon_end_to_end(self):
        """Test Avalon stats and version resolve to an Avalon 1066 backend"""
        probe = rpc_table({"stats": AVALON_STATS, "version": AVALON_VERSION})
        detector = MinerDetector(rpc_probe=probe, web_probe=no_web)

        miner = detector.get_miner("10.0.0.5")

        self.assertIsInstance(miner, AvalonMiner)
        self.assertEqual(miner.device_info.model.model, AvalonMinerModel.Avalon1066)
        self.assertEqual(miner.device_info.firmware, MinerFirmware.STOCK)
        self.assertEqual(miner.device_info.hardware.boards, 3)

    def test_unknown_model_keeps_make(self):
        """Test an unrecognized model string still yields a backend"""
        probe = rpc_table({"stats": AVALON_STATS, "version": {"VERSION": [{"PROD": "AVALONXYZ-1"}]}})
        detector = MinerDetector(rpc_probe=probe, web_probe=no_web)

        model, firmware, version = detector.identify("10.0.0.5")

        self.assertEqual(model, MinerModel(MinerMake.AVALONMINER))
        self.assertIsNone(model.model)
        self.assertIsInstance(detector.get_miner("10.0.0.5"), AvalonMiner)

    def test_nothing_found(self):
        """Test silent hosts"""
        detector = MinerDetector(rpc_probe=rpc_table({}), web_probe=no_web, timeout=1)
        self.assertIsNone(detector.identify("10.0.0.5"))
        self.assertIsNone(detector.get_miner("10.0.0.5"))

    def test_whatsminer_v2(self):
        """Test older WhatsMiner firmware resolves through devdetails"""
        probe = rpc_table({"get_version": WHATSMINER_GET_VERSION, "devdetails": WHATSMINER_DEVDETAILS})

        def web(ip, path):
            return ("", {"Location": "https://10.0.0.5/"}, 307)

        detector = MinerDetector(rpc_probe=probe, web_probe=web)
        miner = detector.get_miner("10.0.0.5")

        self.assertIsInstance(miner, BTMiner2)
        self.assertEqual(miner.device_info.model.model, WhatsMinerModel.M30SPlus)

    @patch('asicpoll.detector.BTMinerV3RPC')
    def test_whatsminer_v3(self, mock_v3):
        """Test new WhatsMiner firmware resolves through the v3 API"""
        mock_v3.return_value.send_command.return_value = {"code": 0, "msg": {"miner": {"type": "M60SVK30"}}}
        probe = rpc_table({
            "get_version": {"STATUS": "S", "Description": "btminer", "Msg": {"fw_ver": "20241105.22.REL"}},
        })
        detector = MinerDetector(rpc_probe=probe, web_probe=no_web)

        miner = detector.get_miner("10.0.0.5")

        self.assertIsInstance(miner, BTMiner3)
        self.assertEqual(miner.device_info.model.model, WhatsMinerModel.M60S)
        mock_v3.return_value.send_command.assert_called_once_with("get.device.info")

    @patch.object(WebAPI, 'send_command')
    def test_bitaxe(self, mock_send):
        """Test Bitaxe model and version come from system/info"""
        mock_send.return_value = BITAXE_SYSTEM_INFO

        def web(ip, path):
            return ("<title>AxeOS</title>", {}, 200)

        detector = MinerDetector(rpc_probe=rpc_table({}), web_probe=web)
        model, firmware, version = detector.identify("10.0.0.5")

        self.assertEqual(model.model, BitaxeModel.Gamma)
        self.assertEqual(version, (2, 4, 1))
        self.assertIsInstance(detector.get_miner("10.0.0.5"), Bitaxe)

    def test_luxos_model(self):
        """Test LuxOS reports the Antminer model in version"""
        version = {"VERSION": [{"LUXminer": "2024.5.1", "Type": "Antminer S19j Pro"}]}
        detector = MinerDetector(rpc_probe=rpc_table({"version": version}), web_probe=no_web)

        model, firmware, _ = detector.identify("10.0.0.5")

        self.assertEqual(firmware, MinerFirmware.LUXOS)
        self.assertEqual(model.model, AntMinerModel.S19jPro)

    def test_unsupported_firmware(self):
        """Test firmware without a backend yields no miner"""
        detector = MinerDetector(rpc_probe=rpc_table({}), web_probe=no_web)
        with patch.object(detector, 'identify', return_value=(None, MinerFirmware.HIVEOS, None)):
            self.assertIsNone(detector.get_miner("10.0.0.5"))


if __name__ == '__main__':
    unittest.main()
