from pathlib import Path

import pytest

from feed_discover.config import AppConfig, parse_app_config
from feed_discover.feeds import DEFAULT_USER_AGENT
from feed_discover.filtering import DEFAULT_PAGE_SIZE, SortKey


def _write(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "config.xml"
    path.write_text(body, encoding="utf-8")
    return path


def test_parse_app_config_full(tmp_path):
    path = _write(
        tmp_path,
        """
        <config>
            <catalog>data/catalog.json</catalog>
            <page-size>50</page-size>
            <sort>rating-desc</sort>
            <logging>
                <level>DEBUG</level>
                <file>logs/app.log</file>
            </logging>
            <database>
                <enabled>true</enabled>
                <connection-string>sqlite:///state/ui.db</connection-string>
            </database>
            <preview>
                <timeout>5</timeout>
                <retries>3</retries>
                <concurrency>2</concurrency>
                <user-agent>custom-agent/2.0</user-agent>
            </preview>
        </config>
        """,
    )

    config = parse_app_config(str(path))

    base = tmp_path.resolve()
    assert config.catalog_file == str(base / "data" / "catalog.json")
    assert config.page_size == 50
    assert config.sort is SortKey.RATING_DESC
    assert config.logging.level == "DEBUG"
    assert config.logging.file == str(base / "logs" / "app.log")
    assert config.database.enabled is True
    assert config.database.connection_string == f"sqlite:///{base / 'state' / 'ui.db'}"
    assert config.preview.timeout == 5.0
    assert config.preview.retries == 3
    assert config.preview.concurrency == 2
    assert config.preview.user_agent == "custom-agent/2.0"


def test_parse_app_config_defaults(tmp_path):
    config = parse_app_config(str(_write(tmp_path, "<config/>")))

    assert config == AppConfig()
    assert config.catalog_file is None
    assert config.page_size == DEFAULT_PAGE_SIZE
    assert config.sort is SortKey.TITLE_ASC
    assert config.database.enabled is False
    assert config.preview.user_agent == DEFAULT_USER_AGENT


def test_connection_strings_other_than_relative_sqlite_are_untouched(tmp_path):
    for value in (
        "sqlite:///:memory:",
        "sqlite:////var/lib/app.db",
        "postgresql://user:pw@localhost/db",
    ):
        path = _write(
            tmp_path,
            f"<config><database><enabled>true</enabled>"
            f"<connection-string>{value}</connection-string></database></config>",
        )
        assert parse_app_config(str(path)).database.connection_string == value


def test_missing_config_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        parse_app_config(str(tmp_path / "absent.xml"))


@pytest.mark.parametrize(
    "body, message",
    [
        ("<config><page-size>0</page-size></config>", "page-size"),
        ("<config><sort>newest</sort></config>", "sort"),
        ("<config><preview><retries>-1</retries></preview></config>", "retries"),
        ("<config><preview><concurrency>0</concurrency></preview></config>", "concurrency"),
    ],
)
def test_invalid_values_raise(tmp_path, body, message):
    with pytest.raises(ValueError, match=message):
        parse_app_config(str(_write(tmp_path, body)))
