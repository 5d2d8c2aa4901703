"""Configuration validation and conversion to LoadConfig."""

import unittest

from batchload.config import (
    DEFAULT_MAX_FILE_SIZE,
    MAX_NUM_FILES,
    MAX_SIZE_BYTES,
    CreateDisposition,
    LoadConfig,
    WriteDisposition,
    require_worker_reachable,
    validate_config,
)
from batchload.destinations import ConstantTableDestinations, FormattedTableDestinations, destinations_from_config
from batchload.errors import ConfigurationError
from batchload.orchestrator import parse_args


class ValidateConfigTest(unittest.TestCase):
    def test_defaults(self):
        config = LoadConfig.from_dict({"load": {"temp_location": "/tmp/loads"}})
        self.assertEqual(config.write_disposition, WriteDisposition.WRITE_EMPTY)
        self.assertEqual(config.create_disposition, CreateDisposition.CREATE_IF_NEEDED)
        self.assertEqual(config.max_num_writers_per_bundle, 20)
        self.assertEqual(config.max_file_size, DEFAULT_MAX_FILE_SIZE)
        self.assertEqual(config.max_files_per_partition, MAX_NUM_FILES)
        self.assertEqual(config.max_bytes_per_partition, MAX_SIZE_BYTES)
        self.assertEqual(config.num_file_shards, 0)
        self.assertEqual(config.max_retry_jobs, 3)
        self.assertFalse(config.triggered)
        self.assertFalse(config.singleton_table)

    def test_unknown_keys_are_kept_as_extra(self):
        config = LoadConfig.from_dict(
            {"load": {"temp_location": "hdfs://nn/tmp", "write_disposition": "WRITE_TRUNCATE", "team": "bi"}}
        )
        self.assertEqual(config.write_disposition, WriteDisposition.WRITE_TRUNCATE)
        self.assertEqual(config.extra, {"team": "bi"})

    def test_missing_temp_location(self):
        with self.assertRaises(ConfigurationError):
            validate_config({"load": {}})
        with self.assertRaises(ConfigurationError):
            validate_config({})

    def test_unsupported_scheme(self):
        with self.assertRaisesRegex(ConfigurationError, "s3://bucket"):
            validate_config({"load": {"temp_location": "s3://bucket/tmp"}})

    def test_bad_disposition(self):
        with self.assertRaises(ConfigurationError):
            validate_config({"load": {"temp_location": "/tmp", "write_disposition": "WRITE_SOMETIMES"}})

    def test_non_positive_limits(self):
        for key in ("max_num_writers_per_bundle", "max_file_size", "max_retry_jobs", "max_parallel_loads"):
            with self.subTest(key=key):
                with self.assertRaises(ConfigurationError):
                    validate_config({"load": {"temp_location": "/tmp", key: 0}})
        with self.assertRaises(ConfigurationError):
            validate_config({"load": {"temp_location": "/tmp", "num_file_shards": -1}})

    def test_triggering_requires_file_shards(self):
        with self.assertRaisesRegex(ConfigurationError, "num_file_shards"):
            validate_config({"load": {"temp_location": "/tmp", "triggering_frequency": 30}})
        config = LoadConfig.from_dict(
            {"load": {"temp_location": "/tmp", "triggering_frequency": "30", "num_file_shards": 4}}
        )
        self.assertTrue(config.triggered)
        self.assertEqual(config.triggering_frequency, 30.0)

    def test_direct_construction_is_checked(self):
        with self.assertRaises(ConfigurationError):
            LoadConfig(temp_location="")
        with self.assertRaisesRegex(ConfigurationError, "num_file_shards"):
            LoadConfig(temp_location="/tmp", triggering_frequency=10, num_file_shards=0)
        with self.assertRaises(ConfigurationError):
            LoadConfig(temp_location="/tmp", max_retry_jobs=0)

    def test_hdfs_is_not_reachable_from_workers(self):
        with self.assertRaisesRegex(ConfigurationError, "hdfs://nn/tmp"):
            require_worker_reachable("hdfs://nn/tmp")
        require_worker_reachable("file:///shared/tmp")
        require_worker_reachable("/shared/tmp")

    def test_configuration_error_is_value_error(self):
        with self.assertRaises(ValueError):
            validate_config({"load": {"temp_location": "/tmp", "triggering_frequency": 0, "num_file_shards": 1}})


class DestinationsConfigTest(unittest.TestCase):
    def test_constant_table(self):
        destinations = destinations_from_config({"destination": {"table": "ds.orders", "schema": "id INT"}})
        self.assertIsInstance(destinations, ConstantTableDestinations)
        self.assertEqual(destinations.get_table("anything").table_spec, "ds.orders")
        self.assertEqual(destinations.get_table("anything").schema, "id INT")
        self.assertEqual(destinations.default_destination(), "ds.orders")

    def test_pattern_requires_key_field(self):
        with self.assertRaises(ConfigurationError):
            destinations_from_config({"destination": {"table_pattern": "ds.events_{}"}})
        destinations = destinations_from_config({"destination": {"table_pattern": "ds.events_{}", "key_field": "kind"}})
        self.assertIsInstance(destinations, FormattedTableDestinations)
        self.assertEqual(destinations.get_table("click").table_spec, "ds.events_click")
        self.assertIsNone(destinations.default_destination())

    def test_missing_destination(self):
        with self.assertRaises(ConfigurationError):
            destinations_from_config({})

    def test_cli_arguments(self):
        args = parse_args(["--config", "cfg.json", "--input", "rows.json", "--triggering-frequency", "30"])
        self.assertEqual(args.config, "cfg.json")
        self.assertEqual(args.triggering_frequency, 30.0)
        self.assertIsNone(args.table)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
