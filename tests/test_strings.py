"""Tests for locale string bundles."""

import pytest

from splitcheck.exceptions import ConfigurationError, LocaleStringsError
from splitcheck.strings import (
    DEFAULT_STRINGS,
    REQUIRED_KEYS,
    interpolate_string,
    validate_strings,
)


class TestValidateStrings:
    def test_default_bundle_is_complete(self):
        assert set(REQUIRED_KEYS) <= set(validate_strings(DEFAULT_STRINGS))

    def test_missing_keys_are_listed(self):
        strings = {key: key for key in REQUIRED_KEYS if key not in ("cost", "item")}

        with pytest.raises(LocaleStringsError) as exc_info:
            validate_strings(strings)

        assert exc_info.value.missing == ["cost", "item"]
        assert isinstance(exc_info.value, ConfigurationError)

    def test_extra_keys_are_kept(self):
        strings = dict(DEFAULT_STRINGS, share="Share")
        assert validate_strings(strings)["share"] == "Share"


class TestInterpolateString:
    def test_replaces_placeholder(self):
        assert interpolate_string("Contributor {index}", {"index": "4"}) == (
            "Contributor 4"
        )

    def test_unknown_placeholder_is_left_alone(self):
        assert interpolate_string("{index} of {total}", {"index": "1"}) == (
            "1 of {total}"
        )
