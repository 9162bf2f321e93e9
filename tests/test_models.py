"""
Unit tests for model lookup, device identity and telemetry records
"""
import json
import unittest
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from asicpoll.data import BoardData, HashRate, HashRateUnit, MinerData, PoolURL
from asicpoll.device import DeviceInfo, MinerFirmware, MinerHardware, MinerMake, MinerModel
from asicpoll.models import (
    AntMinerModel,
    AvalonMinerModel,
    BitaxeModel,
    BraiinsModel,
    WhatsMinerModel,
    lookup_model,
    normalize_model_name,
)


class TestModelLookup(unittest.TestCase):
    """Test vendor model strings"""

    def test_normalize(self):
        """Test case and whitespace are ignored"""
        self.assertEqual(normalize_model_name(" Antminer S19j_Pro "), "ANTMINERS19JPRO")

    def test_antminer_spellings(self):
        """Test brand prefixes are optional"""
        for text in ("Antminer S19j Pro", "S19J PRO", "ANTMINER S19JPRO", "Bitmain S19j Pro"):
            with self.subTest(text=text):
                self.assertEqual(lookup_model(AntMinerModel, text), AntMinerModel.S19jPro)
        self.assertEqual(lookup_model(AntMinerModel, "S19 XP"), AntMinerModel.S19XP)

    def test_avalon_spellings(self):
        """Test Avalon product strings"""
        self.assertEqual(lookup_model(AvalonMinerModel, "AVALON1066"), AvalonMinerModel.Avalon1066)
        self.assertEqual(lookup_model(AvalonMinerModel, "1066"), AvalonMinerModel.Avalon1066)
        self.assertEqual(lookup_model(AvalonMinerModel, "AVALONMINER NANO3S"), AvalonMinerModel.AvalonNano3s)

    def test_whatsminer_plus_models(self):
        """Test plus suffixes stay distinct"""
        self.assertEqual(lookup_model(WhatsMinerModel, "M30S+"), WhatsMinerModel.M30SPlus)
        self.assertEqual(lookup_model(WhatsMinerModel, "M30S++"), WhatsMinerModel.M30SPlusPlus)

    def test_bitaxe_by_asic(self):
        """Test Bitaxe models keyed by ASIC"""
        self.assertEqual(lookup_model(BitaxeModel, "BM1366"), BitaxeModel.Ultra)

    def test_braiins(self):
        """Test Braiins mini miner"""
        self.assertEqual(lookup_model(BraiinsModel, "BMM 101"), BraiinsModel.BMM101)

    def test_unknown(self):
        """Test unrecognized strings"""
        self.assertIsNone(lookup_model(AntMinerModel, "S99 Ultra"))
        self.assertIsNone(lookup_model(AntMinerModel, ""))
        self.assertIsNone(lookup_model(AntMinerModel, None))

    def test_non_string(self):
        """Test numeric model values are unrecognized rather than errors"""
        self.assertIsNone(lookup_model(BitaxeModel, 1370))
        self.assertIsNone(MinerModel.parse(MinerMake.BITAXE, 1370))


class TestDeviceInfo(unittest.TestCase):
    """Test classification types"""

    def test_model_parse(self):
        """Test MinerModel.parse"""
        model = MinerModel.parse(MinerMake.ANTMINER, "Antminer S19 Pro")
        self.assertEqual(model, MinerModel(MinerMake.ANTMINER, AntMinerModel.S19Pro))
        self.assertEqual(str(model), "Antminer S19 Pro")
        self.assertIsNone(MinerModel.parse(MinerMake.ANTMINER, "garbage"))

    def test_unknown_model_str(self):
        """Test the make-only model"""
        self.assertEqual(str(MinerModel(MinerMake.EPIC)), "Unknown ePIC")

    def test_hardware_follows_model(self):
        """Test hardware is derived from the model"""
        model = MinerModel(MinerMake.AVALONMINER, AvalonMinerModel.AvalonNano3s)
        info = DeviceInfo(MinerMake.AVALONMINER, model, MinerFirmware.STOCK)
        self.assertEqual(info.hardware, MinerHardware(chips=12, fans=1, boards=1))

    def test_unknown_model_hardware(self):
        """Test unknown models have empty hardware"""
        info = DeviceInfo(MinerMake.ANTMINER, MinerModel(MinerMake.ANTMINER), MinerFirmware.VNISH)
        self.assertEqual(info.hardware, MinerHardware())

    def test_immutable(self):
        """Test DeviceInfo cannot be changed"""
        info = DeviceInfo(MinerMake.ANTMINER, MinerModel(MinerMake.ANTMINER), MinerFirmware.STOCK)
        with self.assertRaises(Exception):
            info.firmware = MinerFirmware.LUXOS


class TestMinerData(unittest.TestCase):
    """Test telemetry records"""

    def setUp(self):
        model = MinerModel(MinerMake.ANTMINER, AntMinerModel.S19Pro)
        self.info = DeviceInfo(MinerMake.ANTMINER, model, MinerFirmware.STOCK)

    def test_hashrate_units(self):
        """Test unit conversion"""
        rate = HashRate(110000, HashRateUnit.GIGAHASH)
        self.assertAlmostEqual(rate.as_unit(HashRateUnit.TERAHASH).value, 110.0)
        total = HashRate(1, HashRateUnit.TERAHASH) + HashRate(500, HashRateUnit.GIGAHASH)
        self.assertAlmostEqual(total.value, 1.5)

    def test_derived_values(self):
        """Test chip totals, temperature and efficiency"""
        data = MinerData(
            ip="10.0.0.1",
            device_info=self.info,
            hashrate=HashRate(100.0),
            wattage=3000,
            hashboards=[
                BoardData(position=0, board_temperature=60, working_chips=114),
                BoardData(position=1, board_temperature=0, working_chips=110),
                BoardData(position=2, board_temperature=None, working_chips=None),
            ],
        )
        self.assertEqual(data.total_chips, 224)
        self.assertEqual(data.expected_chips, 342)
        self.assertEqual(data.average_temperature, 30.0)
        self.assertEqual(data.efficiency, 30.0)

    def test_missing_values(self):
        """Test derived values when telemetry is absent"""
        data = MinerData(ip="10.0.0.1", device_info=self.info, wattage=3000, hashrate=HashRate(0))
        self.assertIsNone(data.total_chips)
        self.assertIsNone(data.average_temperature)
        self.assertIsNone(data.efficiency)
        self.assertTrue(data.is_mining)

    def test_to_dict_is_json(self):
        """Test serialization output"""
        data = MinerData(ip="10.0.0.1", device_info=self.info, hashrate=HashRate(100.0),
                         hashboards=[BoardData(position=0)])
        output = json.loads(json.dumps(data.to_dict()))

        self.assertEqual(output['device_info']['model'], "Antminer S19 Pro")
        self.assertEqual(output['device_info']['hardware']['chips'], 114)
        self.assertEqual(output['hashrate'], {'value': 100.0, 'unit': 'TH/s', 'algo': 'SHA256'})
        self.assertEqual(output['schema_version'], "1.0")

    def test_pool_url(self):
        """Test pool address parsing"""
        url = PoolURL.parse("stratum+tcp://btc.viabtc.io:3333")
        self.assertEqual((url.scheme, url.host, url.port), ("stratum+tcp", "btc.viabtc.io", 3333))
        self.assertEqual(PoolURL.parse("pool.example:25").scheme, "stratum+tcp")
        sv2 = PoolURL.parse("stratum2+tcp://v2.pool:3336/9awtMD5KQgvRUh2yFbjV")
        self.assertEqual(sv2.pubkey, "9awtMD5KQgvRUh2yFbjV")
        self.assertEqual(str(sv2), "stratum2+tcp://v2.pool:3336/9awtMD5KQgvRUh2yFbjV")


if __name__ == '__main__':
    unittest.main()
