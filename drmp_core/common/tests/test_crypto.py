# drmp_core/common/tests/test_crypto.py
import pytest
from cryptography.fernet import Fernet
from django.core.exceptions import ImproperlyConfigured

from drmp_core.common import crypto


def test_round_trip_produces_ciphertext():
    token = crypto.encrypt_value("110101199003071234")
    assert token != "110101199003071234"
    assert crypto.decrypt_value(token) == "110101199003071234"


def test_blank_values_pass_through():
    assert crypto.encrypt_value(None) is None
    assert crypto.encrypt_value("") == ""
    assert crypto.decrypt_value("") == ""
    assert crypto.search_digest("") == ""


def test_digest_is_deterministic_and_keyed(settings):
    first = crypto.search_digest("13800138000")
    assert first == crypto.search_digest(" 13800138000 ")
    assert first != "13800138000"

    settings.DRMP_SEARCH_DIGEST_KEY = "another-digest-secret"
    assert crypto.search_digest("13800138000") != first


def test_digest_survives_encryption_key_rotation(settings):
    before = crypto.search_digest("张三")
    settings.DRMP_FIELD_ENCRYPTION_KEYS = [Fernet.generate_key().decode(), *settings.DRMP_FIELD_ENCRYPTION_KEYS]
    assert crypto.search_digest("张三") == before


def test_missing_digest_key_is_a_configuration_error(settings):
    settings.DRMP_SEARCH_DIGEST_KEY = ""
    with pytest.raises(ImproperlyConfigured):
        crypto.search_digest("张三")


def test_rotated_keys_still_decrypt(settings):
    old_key = settings.DRMP_FIELD_ENCRYPTION_KEYS[0]
    token = crypto.encrypt_value("张三")

    settings.DRMP_FIELD_ENCRYPTION_KEYS = [Fernet.generate_key().decode(), old_key]
    assert crypto.decrypt_value(token) == "张三"


def test_unknown_key_fails_loudly(settings):
    token = crypto.encrypt_value("张三")
    settings.DRMP_FIELD_ENCRYPTION_KEYS = [Fernet.generate_key().decode()]
    with pytest.raises(ImproperlyConfigured):
        crypto.decrypt_value(token)


def test_missing_keys_is_a_configuration_error(settings):
    settings.DRMP_FIELD_ENCRYPTION_KEYS = []
    with pytest.raises(ImproperlyConfigured):
        crypto.encrypt_value("secret")


def test_comma_separated_keys_are_accepted(settings):
    a, b = Fernet.generate_key().decode(), Fernet.generate_key().decode()
    settings.DRMP_FIELD_ENCRYPTION_KEYS = f"{a}, {b}"
    assert crypto.decrypt_value(crypto.encrypt_value("x")) == "x"


@pytest.mark.parametrize(
    "fn,value,expected",
    [
        (crypto.mask_id_card, "110101199003071234", "1101**********1234"),
        (crypto.mask_id_card, "1234567", "1234567"),
        (crypto.mask_phone, "13800138000", "138****8000"),
        (crypto.mask_phone, "123456", "123456"),
        (crypto.mask_name, "张三丰", "张*丰"),
        (crypto.mask_name, "张三", "张*"),
        (crypto.mask_name, "张", "张"),
        (crypto.mask_name, "欧阳娜娜", "欧**娜"),
        (crypto.mask_phone, None, None),
    ],
)
def test_masking(fn, value, expected):
    assert fn(value) == expected
