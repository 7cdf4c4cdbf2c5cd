"""Tests for schema name derivation and identifier validation."""

import re

import pytest

from phantm.core.exceptions import ValidationError
from phantm.core.naming import ACCOUNT_NAME_PATTERN, derive_name, validate_identifier


class TestDeriveName:
    @pytest.mark.parametrize("name", ["account_a", "account_acme_2026", "account_0", "account___"])
    def test_valid_custom_names_are_returned_unchanged(self, name):
        assert derive_name(name) == name

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "account_",
            "Account_acme",
            "account_Acme",
            "tenant_acme",
            "account-acme",
            "account_acme;drop",
            "account_acme ",
            "account_acme\n",
            'account_a"b',
        ],
    )
    def test_invalid_custom_names_are_rejected(self, name):
        with pytest.raises(ValidationError):
            derive_name(name)

    def test_generated_names_match_account_pattern(self):
        for _ in range(200):
            name = derive_name()
            assert ACCOUNT_NAME_PATTERN.match(name)
            assert re.fullmatch(r"account_[0-9a-f]{8}", name)

    def test_generated_names_vary(self):
        assert len({derive_name() for _ in range(50)}) > 1


class TestValidateIdentifier:
    @pytest.mark.parametrize("name", ["account_a1", "_private", "x", "a_b_c_123"])
    def test_accepts_plain_identifiers(self, name):
        assert validate_identifier(name) == name

    @pytest.mark.parametrize("name", ["", "1abc", "Upper", "with space", "semi;colon", "quo\"te", None])
    def test_rejects_everything_else(self, name):
        with pytest.raises(ValidationError):
            validate_identifier(name)
