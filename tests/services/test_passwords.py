import re

import pytest

from znunyinstaller.services.passwords import generate_password


@pytest.mark.parametrize("length", [1, 16, 25, 64])
def test_generate_password_has_exact_alphanumeric_length(length):
    password = generate_password(length)

    assert re.fullmatch(rf"[A-Za-z0-9]{{{length}}}", password)


def test_generate_password_defaults_to_sixteen_characters():
    assert len(generate_password()) == 16


def test_generate_password_is_not_repeated():
    assert generate_password(25) != generate_password(25)


@pytest.mark.parametrize("length", [0, -3])
def test_generate_password_rejects_non_positive_length(length):
    with pytest.raises(ValueError):
        generate_password(length)
