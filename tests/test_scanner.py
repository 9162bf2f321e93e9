"""
Unit tests for the range scanner and the HTTP API
"""
import unittest
from unittest.mock import Mock, patch
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import app as app_module
from asicpoll.data import HashRate, MinerData
from asicpoll.device import DeviceInfo, MinerFirmware, MinerMake, MinerModel
from asicpoll.scanner import MinerScanner


def make_data(ip):
    info = DeviceInfo(MinerMake.BITAXE, MinerModel(MinerMake.BITAXE), MinerFirmware.STOCK)
    return MinerData(ip=ip, device_info=info, hashrate=HashRate(1.1))


def make_detector(results):
    """Detector stub: ip -> MinerData, Exception, or None"""
    def get_miner(ip):
        result = results.get(ip)
        if result is None:
            return None
        backend = Mock()
        if isinstance(result, Exception):
            backend.get_data.side_effect = result
        else:
            backend.get_data.return_value = result
        return backend

    detector = Mock()
    detector.get_miner.side_effect = get_miner
    return detector


class TestMinerScanner(unittest.TestCase):
    """Test parallel polling"""

    def test_scan_hosts(self):
        """Test found miners are returned in address order"""
        detector = make_detector({
            '10.0.0.12': make_data('10.0.0.12'),
            '10.0.0.3': make_data('10.0.0.3'),
        })
        scanner = MinerScanner(detector)

        found = scanner.scan_hosts(['10.0.0.12', '10.0.0.5', '10.0.0.3'])

        self.assertEqual([data.ip for data in found], ['10.0.0.3', '10.0.0.12'])
        self.assertEqual(detector.get_miner.call_count, 3)

    def test_failing_host_skipped(self):
        """Test one host raising does not abort the batch"""
        detector = make_detector({
            '10.0.0.1': RuntimeError("socket exploded"),
            '10.0.0.2': make_data('10.0.0.2'),
        })

        found = MinerScanner(detector).scan_hosts(['10.0.0.1', '10.0.0.2'])

        self.assertEqual([data.ip for data in found], ['10.0.0.2'])

    def test_scan_subnet(self):
        """Test every host address of the subnet is tried"""
        detector = make_detector({})

        found = MinerScanner(detector).scan("10.0.0.0/30")

        self.assertEqual(found, [])
        called = sorted(call[0][0] for call in detector.get_miner.call_args_list)
        self.assertEqual(called, ['10.0.0.1', '10.0.0.2'])

    def test_empty(self):
        """Test nothing to scan"""
        self.assertEqual(MinerScanner(make_detector({})).scan_hosts([]), [])

    def test_get_miner_data(self):
        """Test single-address polling"""
        scanner = MinerScanner(make_detector({'10.0.0.7': make_data('10.0.0.7')}))

        self.assertEqual(scanner.get_miner_data('10.0.0.7').ip, '10.0.0.7')
        self.assertIsNone(scanner.get_miner_data('10.0.0.8'))


class TestFlaskAPI(unittest.TestCase):
    """Test HTTP endpoints"""

    def setUp(self):
        self.client = app_module.app.test_client()

    def test_health(self):
        """Test the liveness endpoint"""
        response = self.client.get('/api/health')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()['success'])

    @patch.object(app_module, 'scanner')
    def test_get_miner(self, mock_scanner):
        """Test polling one miner"""
        mock_scanner.get_miner_data.return_value = make_data('10.0.0.100')

        response = self.client.get('/api/miner/10.0.0.100')
        payload = response.get_json()

        self.assertEqual(response.status_code, 200)
        self.assertTrue(payload['success'])
        self.assertEqual(payload['miner']['ip'], '10.0.0.100')
        self.assertEqual(payload['miner']['device_info']['make'], 'Bitaxe')

    @patch.object(app_module, 'scanner')
    def test_get_miner_not_found(self, mock_scanner):
        """Test addresses without a miner"""
        mock_scanner.get_miner_data.return_value = None

        response = self.client.get('/api/miner/10.0.0.200')

        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.get_json()['success'])

    @patch.object(app_module, 'scanner')
    def test_get_miner_error(self, mock_scanner):
        """Test unexpected failures"""
        mock_scanner.get_miner_data.side_effect = RuntimeError("boom")

        response = self.client.get('/api/miner/10.0.0.100')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.get_json()['error'], 'boom')

    @patch.object(app_module, 'scanner')
    def test_scan(self, mock_scanner):
        """Test subnet scans"""
        mock_scanner.scan.return_value = [make_data('10.0.0.1'), make_data('10.0.0.2')]

        response = self.client.post('/api/scan', json={'subnet': '10.0.0.0/30'})
        payload = response.get_json()

        self.assertEqual(payload['count'], 2)
        mock_scanner.scan.assert_called_once_with('10.0.0.0/30')

    @patch.object(app_module, 'scanner')
    def test_scan_bad_subnet(self, mock_scanner):
        """Test invalid subnets"""
        mock_scanner.scan.side_effect = ValueError("'nope' does not appear to be an IPv4 network")

        response = self.client.post('/api/scan', json={'subnet': 'nope'})

        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main()
