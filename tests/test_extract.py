"""
Unit tests for the data extraction engine
"""
import unittest
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from asicpoll.commands import RPCCommand, WebCommand
from asicpoll.extract import DataExtractor, get_by_key, get_by_pointer, key, pointer
from tests.mock_responses import AVALON_DEVS, AVALON_VERSION


class TestGetByPointer(unittest.TestCase):
    """Test pointer resolution"""

    def test_nested_lookup(self):
        """Test object keys and list indices"""
        self.assertEqual(get_by_pointer(AVALON_VERSION, "/VERSION/0/MAC"), "b4a2eb000102")

    def test_key_with_space(self):
        """Test keys containing spaces"""
        self.assertEqual(get_by_pointer(AVALON_DEVS, "/DEVS/0/MHS 5m"), 49500000.0)

    def test_empty_path_returns_document(self):
        """Test empty and None paths select the whole document"""
        self.assertIs(get_by_pointer(AVALON_VERSION, ""), AVALON_VERSION)
        self.assertIs(get_by_pointer(AVALON_VERSION, None), AVALON_VERSION)

    def test_missing_segments(self):
        """Test absent keys, out-of-range indices and type mismatches"""
        self.assertIsNone(get_by_pointer(AVALON_VERSION, "/VERSION/5/MAC"))
        self.assertIsNone(get_by_pointer(AVALON_VERSION, "/NOPE"))
        self.assertIsNone(get_by_pointer(AVALON_VERSION, "/VERSION/x"))
        self.assertIsNone(get_by_pointer(AVALON_VERSION, "/VERSION/0/MAC/deeper"))
        self.assertIsNone(get_by_pointer(None, "/VERSION"))

    def test_escaped_segments(self):
        """Test ~1 and ~0 escapes"""
        document = {"a/b": {"c~d": 7}}
        self.assertEqual(get_by_pointer(document, "/a~1b/c~0d"), 7)

    def test_empty_key_segments(self):
        """Test empty segments address the empty-string key"""
        self.assertEqual(get_by_pointer({"": {"x": 1}}, "//x"), 1)
        self.assertIsNone(get_by_pointer({"x": 1}, "//x"))

    def test_document_not_modified(self):
        """Test extraction leaves the input untouched"""
        document = {"SUMMARY": [{"Elapsed": 10}]}
        get_by_pointer(document, "/SUMMARY/0/Elapsed")
        self.assertEqual(document, {"SUMMARY": [{"Elapsed": 10}]})


class TestGetByKey(unittest.TestCase):
    """Test flat key lookup"""

    def test_lookup(self):
        """Test top-level key"""
        self.assertEqual(get_by_key({"msg": {"a": 1}}, "msg"), {"a": 1})

    def test_non_mapping(self):
        """Test lists and scalars yield None"""
        self.assertIsNone(get_by_key([1, 2], "msg"))
        self.assertIsNone(get_by_key("text", "msg"))

    def test_no_key_returns_document(self):
        """Test a missing key name selects the document"""
        self.assertEqual(get_by_key({"a": 1}, None), {"a": 1})


class TestExtractors(unittest.TestCase):
    """Test extractor helpers"""

    def test_pointer_helper(self):
        """Test pointer() builds a pointer extractor with a tag"""
        extractor = pointer("/VERSION/0/API", tag="api")
        self.assertEqual(extractor.extract(AVALON_VERSION), "3.7")
        self.assertEqual(extractor.tag, "api")

    def test_key_helper(self):
        """Test key() builds a flat extractor"""
        self.assertEqual(key("VERSION").extract(AVALON_VERSION), AVALON_VERSION["VERSION"])

    def test_extractors_are_hashable(self):
        """Test extractors compare by value"""
        self.assertEqual(pointer("/a"), DataExtractor(get_by_pointer, "/a"))
        self.assertEqual(len({pointer("/a"), pointer("/a")}), 1)


class TestCommands(unittest.TestCase):
    """Test command descriptors"""

    def test_structural_equality(self):
        """Test equal commands hash equal"""
        self.assertEqual(RPCCommand("stats"), RPCCommand("stats"))
        self.assertNotEqual(RPCCommand("stats"), RPCCommand("summary"))
        self.assertNotEqual(RPCCommand("summary"), WebCommand("summary"))

    def test_parameters_are_canonical(self):
        """Test parameter key order does not affect identity"""
        first = WebCommand("config", "post", {"a": 1, "b": [1, 2]})
        second = WebCommand("config", "POST", {"b": [1, 2], "a": 1})
        self.assertEqual(first, second)
        self.assertEqual(hash(first), hash(second))
        self.assertEqual(first.params, {"a": 1, "b": [1, 2]})

    def test_params_none(self):
        """Test commands without parameters"""
        self.assertIsNone(RPCCommand("version").params)


if __name__ == '__main__':
    unittest.main()
