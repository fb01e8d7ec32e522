"""
Client configuration loading tests.
"""

import pytest

from securerange.config import ClientConfig, load_client_config
from securerange.crypto.ec import compressed_public_key
from securerange.errors import ConfigError

from sim_verifier import DEMO_SERIAL as SERIAL


def test_load_valid_config(write_config, client_key, server_key):
    cfg = load_client_config(write_config())
    assert isinstance(cfg, ClientConfig)
    assert cfg.serial_id == SERIAL.encode("utf-8")
    assert compressed_public_key(cfg.client_private_key()) == compressed_public_key(client_key)
    assert cfg.server_public_key().public_numbers() == server_key.public_key().public_numbers()


def test_comments_quotes_and_whitespace(tmp_path, client_key, server_key):
    path = tmp_path / "client.conf"
    path.write_text(
        "# comment line\n"
        "\n"
        f'client_serial_id = "{SERIAL}"\n'
        f"client_privkey_hex={client_key.private_numbers().private_value:064x}\n"
        f"server_pubkey_hex={compressed_public_key(server_key).hex()}  \n",
        encoding="utf-8",
    )
    assert load_client_config(str(path)).client_serial_id == SERIAL


@pytest.mark.parametrize("key", ["client_serial_id", "client_privkey_hex", "server_pubkey_hex"])
def test_missing_key(write_config, key):
    with pytest.raises(ConfigError, match=key):
        load_client_config(write_config(**{key: None}))


def test_empty_value(write_config):
    with pytest.raises(ConfigError):
        load_client_config(write_config(client_serial_id=""))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_client_config(str(tmp_path / "nope.conf"))


@pytest.mark.parametrize("overrides", [
    {"client_privkey_hex": "zz" * 32},
    {"client_privkey_hex": "01" * 31},
    {"client_privkey_hex": "00" * 32},
    {"client_privkey_hex": "ff" * 32},
    {"server_pubkey_hex": "02" + "ff" * 32},
    {"server_pubkey_hex": "04" + "11" * 32},
    {"server_pubkey_hex": "02" * 32},
])
def test_malformed_values(write_config, overrides):
    with pytest.raises(ConfigError):
        load_client_config(write_config(**overrides))


def test_values_are_not_interpolated(write_config, monkeypatch):
    monkeypatch.setenv("SRP_TEST_SERIAL", "expanded")
    cfg = load_client_config(write_config(client_serial_id="'lab-${SRP_TEST_SERIAL}'"))
    assert cfg.client_serial_id == "lab-${SRP_TEST_SERIAL}"
