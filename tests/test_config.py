"""Tests for settings helpers and the logging request-id filter."""
import logging

from transplantflow.config import Settings
from transplantflow.core.logging import RequestIDFilter


def test_database_url_normalised_for_asyncpg():
    settings = Settings(_env_file=None, database_url="postgresql://u:p@db:5432/tf?sslmode=require&application_name=tf")
    url, connect_args = settings.async_engine_url_and_connect_args()
    assert url.startswith("postgresql+asyncpg://u:p@db:5432/tf")
    assert "sslmode" not in url
    assert "application_name=tf" in url
    assert connect_args == {"ssl": True}


def test_sslmode_disable_adds_no_connect_args():
    settings = Settings(_env_file=None, database_url="postgresql://db/tf?sslmode=disable")
    assert settings.async_engine_url_and_connect_args()[1] == {}


def test_cors_origins_list_and_debug_parsing():
    settings = Settings(_env_file=None, cors_origins="http://a.test, ,http://b.test", debug="yes")
    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]
    assert settings.debug is True


def test_request_id_filter_defaults():
    record = logging.LogRecord("transplantflow", logging.INFO, __file__, 1, "hello", None, None)
    assert RequestIDFilter().filter(record)
    assert record.request_id == "N/A"

    record.request_id = "abc"
    RequestIDFilter().filter(record)
    assert record.request_id == "abc"
