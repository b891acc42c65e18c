import unittest
import os
import yaml
import tempfile

from mutscan.config import Config, ConfigurationError
from mutscan.errors import InputValidationError


class TestConfig(unittest.TestCase):

    def setUp(self):
        """Set up temporary files and directories for tests."""
        self.test_dir = tempfile.TemporaryDirectory()
        self.config_dir = self.test_dir.name

        # Create dummy resource files for existence checks
        self.dummy_annotation = self._create_dummy_file("annotation.gff")
        self.dummy_reference = self._create_dummy_file("ref.fa")
        self.dummy_snps_dir = os.path.join(self.config_dir, "snps")
        os.makedirs(self.dummy_snps_dir)

        # Create a valid config file
        self.valid_config_path = os.path.join(self.config_dir, "valid_config.yaml")
        self.valid_config_data = {
            "annotation": self.dummy_annotation,
            "reference": self.dummy_reference,
            "snps_dir": self.dummy_snps_dir,
            "output_file": "output.tsv",
            "log_level": "DEBUG",
            "threads": 8,
        }
        self._write_yaml(self.valid_config_path, self.valid_config_data)

        # Create an invalid config file (missing required param)
        self.invalid_config_path = os.path.join(self.config_dir, "invalid_config.yaml")
        self._write_yaml(self.invalid_config_path, {
            "reference": self.dummy_reference,
            "snps_dir": self.dummy_snps_dir,
        })

    def tearDown(self):
        """Clean up temporary directory."""
        self.test_dir.cleanup()

    def _create_dummy_file(self, filename: str) -> str:
        """Helper to create an empty dummy file."""
        path = os.path.join(self.config_dir, filename)
        with open(path, 'w') as f:
            f.write("")
        return path

    def _write_yaml(self, path: str, data) -> str:
        with open(path, 'w') as f:
            yaml.dump(data, f)
        return path

    def test_load_valid_config_file(self):
        """Tests loading settings solely from a valid YAML file."""
        config = Config()
        config.load(self.valid_config_path)

        self.assertEqual(config.get("annotation"), self.dummy_annotation)
        self.assertEqual(config.get("reference"), self.dummy_reference)
        self.assertEqual(config.get("output_file"), "output.tsv")
        self.assertEqual(config.get("log_level"), "DEBUG")
        self.assertEqual(config.get("threads"), 8)
        # Defaults survive
        self.assertEqual(config.get("join_backend"), "auto")
        self.assertEqual(config.get("seq_id_column"), 14)

        resources = config.get_resource_files()
        self.assertEqual(resources["snps_dir"], self.dummy_snps_dir)
        self.assertIsNone(resources["mutants_dir"])

    def test_missing_required_parameter_in_file(self):
        config = Config()
        with self.assertRaisesRegex(ConfigurationError, "Missing required configuration parameters: annotation"):
            config.load(self.invalid_config_path)

    def test_missing_required_parameter_no_file_no_cli(self):
        config = Config()
        with self.assertRaisesRegex(ConfigurationError,
                                    "Missing required configuration parameters: annotation, reference"):
            config.load()

    def test_missing_mutant_source(self):
        config = Config()
        with self.assertRaisesRegex(ConfigurationError, "One of mutants_dir or snps_dir"):
            config.load(None, {"annotation": self.dummy_annotation, "reference": self.dummy_reference})

    def test_both_mutant_sources(self):
        config = Config()
        with self.assertRaisesRegex(ConfigurationError, "Only one of"):
            config.load(self.valid_config_path, {"mutants_dir": self.config_dir})

    def test_cli_overrides_file(self):
        """Tests that explicit overrides win over config file settings."""
        config = Config()
        other_annotation = self._create_dummy_file("other.gff")
        config.load(self.valid_config_path, {
            "log_level": "warning",
            "annotation": other_annotation,
            "threads": None,  # not given on the command line
        })

        self.assertEqual(config.get("log_level"), "WARNING")
        self.assertEqual(config.get("annotation"), other_annotation)
        self.assertEqual(config.get("threads"), 8)
        self.assertEqual(config.get_resource_files()["annotation"], other_annotation)

    def test_non_existent_config_file(self):
        config = Config()
        with self.assertRaisesRegex(ConfigurationError, "Config file not found"):
            config.load(os.path.join(self.config_dir, "non_existent_config.yaml"))

    def test_non_existent_resource_file(self):
        config = Config()
        missing = os.path.join(self.config_dir, "missing.gff")
        with self.assertRaisesRegex(ConfigurationError, r"Required file not found: annotation = .*missing.gff"):
            config.load(self.valid_config_path, {"annotation": missing})

    def test_invalid_values(self):
        for overrides, message in [
            ({"threads": 0}, "threads must be a positive integer"),
            ({"join_backend": "pyranges"}, "join_backend must be one of"),
            ({"log_level": "LOUD"}, "log_level must be one of"),
            ({"seq_id_column": 2}, "seq_id_column must be 4 or greater"),
            ({"show_snps_args": "-T"}, "show_snps_args must be a list"),
        ]:
            with self.subTest(overrides=overrides):
                with self.assertRaisesRegex(ConfigurationError, message):
                    Config().load(self.valid_config_path, overrides)

    def test_configuration_error_is_input_error(self):
        self.assertTrue(issubclass(ConfigurationError, InputValidationError))


if __name__ == "__main__":
    unittest.main()
