import unittest
from unittest import mock

from accident_pipeline.config import (
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_SOURCE_CONTAINER,
    ConfigurationError,
    load_config,
)

VALID_ENV = {
    "STORAGE_CONNECTION_STRING": "http://localhost:9000",
    "SQL_CONNECTION_STRING": "warehouse.db",
    "SENDGRID_API_KEY": "key",
}


class TestLoadConfig(unittest.TestCase):

    def test_required_settings_with_defaults(self):
        config = load_config(VALID_ENV)

        self.assertEqual(config.database_connection, "warehouse.db")
        self.assertEqual(config.source_container, DEFAULT_SOURCE_CONTAINER)
        self.assertEqual(config.operation_timeout, DEFAULT_OPERATION_TIMEOUT)

    def test_optional_settings_override_defaults(self):
        config = load_config(dict(VALID_ENV, SOURCE_CONTAINER="extracts", OPERATION_TIMEOUT="30", NOTIFY_TO="me@example.com"))

        self.assertEqual(config.source_container, "extracts")
        self.assertEqual(config.operation_timeout, 30)
        self.assertEqual(config.notify_to, "me@example.com")

    def test_missing_settings_are_named(self):
        env = dict(VALID_ENV, SENDGRID_API_KEY="  ")
        del env["SQL_CONNECTION_STRING"]

        with self.assertRaises(ConfigurationError) as ctx:
            load_config(env)

        self.assertEqual(str(ctx.exception), "Missing required configuration: SQL_CONNECTION_STRING, SENDGRID_API_KEY")

    def test_malformed_timeout_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            load_config(dict(VALID_ENV, OPERATION_TIMEOUT="ten minutes"))

    @mock.patch("accident_pipeline.config.load_dotenv")
    def test_reads_process_environment_after_dotenv(self, mock_load_dotenv):
        with mock.patch.dict("os.environ", VALID_ENV, clear=True):
            config = load_config()

        mock_load_dotenv.assert_called_once_with()
        self.assertEqual(config.storage_connection, "http://localhost:9000")


if __name__ == '__main__':
    unittest.main()
