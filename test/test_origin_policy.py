import logging
import re

import pytest

from middleware.origin_policy import (
    Decision,
    OriginPolicy,
    origin_hostname,
    parse_allowlist,
)

ALLOWLIST = ("http://localhost:5173", "https://orbitcrm.netlify.app")
SUBDOMAIN_PATTERN = r"^[a-z0-9-]+\.example\.com$"


def test_parse_allowlist_trims_strips_slashes_and_drops_empty_entries():
    raw = " https://a.example.com/ , ,http://localhost:3000//,https://a.example.com"
    assert parse_allowlist(raw) == ("https://a.example.com", "http://localhost:3000")
    assert parse_allowlist("") == ()


@pytest.mark.parametrize("origin", ALLOWLIST)
def test_allowlisted_origin_is_allowed_with_and_without_trailing_slash(origin):
    policy = OriginPolicy(ALLOWLIST)
    assert policy.decide(origin) is Decision.ALLOW
    assert policy.decide(origin + "/") is Decision.ALLOW


def test_configured_entry_with_trailing_slash_matches_bare_origin():
    policy = OriginPolicy.from_config("https://orbitcrm.netlify.app/")
    assert policy.is_allowed("https://orbitcrm.netlify.app")


@pytest.mark.parametrize("allowlist", [(), ALLOWLIST])
def test_absent_origin_is_always_allowed(allowlist):
    policy = OriginPolicy(allowlist)
    assert policy.decide(None) is Decision.ALLOW
    assert policy.decide("") is Decision.ALLOW


def test_unknown_origin_is_denied_and_logged(caplog):
    policy = OriginPolicy(ALLOWLIST)
    with caplog.at_level(logging.WARNING, logger="middleware.origin_policy"):
        assert policy.decide("https://evil.test") is Decision.DENY
    assert "https://evil.test" in caplog.text


def test_exact_match_is_not_a_prefix_match():
    policy = OriginPolicy(ALLOWLIST)
    assert policy.decide("http://localhost:5173.evil.test") is Decision.DENY
    assert policy.decide("http://localhost:51733") is Decision.DENY


def test_pattern_matches_subdomain_hostname():
    policy = OriginPolicy.from_config("", SUBDOMAIN_PATTERN)
    assert policy.decide("https://preview123.example.com") is Decision.ALLOW


def test_pattern_uses_strict_hostname_not_substring():
    policy = OriginPolicy.from_config("", SUBDOMAIN_PATTERN)
    assert policy.decide("https://example.com.evil.com") is Decision.DENY
    assert policy.decide("https://preview.example.com.evil.com") is Decision.DENY


def test_pattern_ignores_port_and_scheme_of_origin():
    policy = OriginPolicy.from_config("", r"^app\.example\.com$")
    assert policy.is_allowed("http://app.example.com:8443")


@pytest.mark.parametrize("origin", ["not a url", "null", "://missing-scheme", "http://[::1"])
def test_malformed_origin_is_denied_without_raising(origin):
    policy = OriginPolicy.from_config("http://localhost:5173", r".*")
    assert policy.decide(origin) is Decision.DENY


def test_malformed_origin_still_gets_exact_match_result():
    policy = OriginPolicy.from_config("null", SUBDOMAIN_PATTERN)
    assert policy.decide("null") is Decision.ALLOW


def test_pattern_is_compiled_once():
    policy = OriginPolicy.from_config("", SUBDOMAIN_PATTERN)
    assert isinstance(policy.pattern, re.Pattern)
    assert policy.pattern.pattern == SUBDOMAIN_PATTERN


def test_invalid_pattern_is_a_configuration_error():
    with pytest.raises(re.error):
        OriginPolicy.from_config("", "([unclosed")


def test_origin_hostname():
    assert origin_hostname("https://Preview.Example.com:443") == "preview.example.com"
    assert origin_hostname("not a url") is None


def test_from_settings_falls_back_to_client_url(make_settings):
    policy = OriginPolicy.from_settings(make_settings(CLIENT_URL="https://crm.example.com/"))
    assert policy.allowlist == ("https://crm.example.com",)
    assert policy.pattern is None

    policy = OriginPolicy.from_settings(
        make_settings(CLIENT_URL="https://crm.example.com/", CORS_ORIGINS="http://localhost:5173")
    )
    assert policy.allowlist == ("http://localhost:5173",)
