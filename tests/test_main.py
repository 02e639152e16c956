"""Tests for command-line argument handling."""
import io
import argparse
import unittest
from unittest import mock

from cardflow.main import build_parser, positive_int


class TestArguments(unittest.TestCase):
    """Test the import command arguments."""

    def test_positive_int(self):
        self.assertEqual(positive_int("25"), 25)
        for value in ["0", "-3", "abc", "2.5"]:
            with self.assertRaises(argparse.ArgumentTypeError, msg=value):
                positive_int(value)

    def test_batch_size_must_be_positive(self):
        parser = build_parser()
        for value in ["0", "-1"]:
            with mock.patch("sys.stderr", new=io.StringIO()):
                with self.assertRaises(SystemExit):
                    parser.parse_args(["import", "statement.csv", "--batch-size", value])

    def test_batch_size_parsed(self):
        args = build_parser().parse_args(["import", "statement.csv", "--batch-size", "10"])
        self.assertEqual(args.batch_size, 10)
        self.assertIsNone(build_parser().parse_args(["import", "statement.csv"]).batch_size)


if __name__ == "__main__":
    unittest.main()
