import pytest
from starlette.requests import Request

from medportal.utils.i18n import get_request_language, get_translated_message


def make_request(query_string=b"", headers=None):
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "query_string": query_string,
            "headers": headers or [],
        }
    )


@pytest.mark.parametrize(
    "locale, expected",
    [
        ("en", "Invalid or expired refresh token"),
        ("es", "Token de actualización inválido o caducado"),
    ],
)
def test_translates_known_key(locale, expected):
    assert get_translated_message("invalid_refresh_token", locale) == expected


def test_unsupported_locale_falls_back_to_default():
    assert get_translated_message("invalid_refresh_token", "fr") == get_translated_message(
        "invalid_refresh_token", "en"
    )


def test_unknown_key_is_returned_unchanged():
    assert get_translated_message("no_such_message", "en") == "no_such_message"


def test_query_parameter_wins_over_header():
    request = make_request(b"lang=es", [(b"accept-language", b"en-US,en;q=0.9")])
    assert get_request_language(request) == "es"


def test_accept_language_header_is_parsed():
    request = make_request(headers=[(b"accept-language", b"fr-FR, es;q=0.8")])
    assert get_request_language(request) == "es"


def test_defaults_to_english():
    assert get_request_language(make_request()) == "en"
