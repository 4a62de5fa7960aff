from abuseportal.utils.helpers import coerce_int, env_flag, escape
from abuseportal.utils.validators import (
    is_valid_cve_id,
    is_valid_cvrf_id,
    is_valid_ip,
    is_valid_port,
    is_valid_subscription_id,
    is_valid_url,
)


def test_ipv4_accepts_dotted_quads_in_range():
    assert is_valid_ip("192.168.1.5")
    assert is_valid_ip("0.0.0.0")
    assert is_valid_ip("255.255.255.255")


def test_ipv4_rejects_out_of_range_and_malformed():
    assert not is_valid_ip("256.1.1.1")
    assert not is_valid_ip("1.2.3")
    assert not is_valid_ip("1.2.3.4.5")
    assert not is_valid_ip("01.2.3.4")
    assert not is_valid_ip("1.2.3.4\n")


def test_ipv6_full_and_compressed():
    assert is_valid_ip("2001:0db8:85a3:0000:0000:8a2e:0370:7334")
    assert is_valid_ip("2001:db8::1")
    assert is_valid_ip("::1")
    assert not is_valid_ip("2001:db8:::1")
    assert not is_valid_ip("fe80::1%eth0")
    assert not is_valid_ip("[::1]")


def test_non_string_inputs_are_invalid():
    for value in (None, 42, 1.5, ["1.2.3.4"], {"a": 1}):
        assert not is_valid_ip(value)
        assert not is_valid_url(value)
        assert not is_valid_subscription_id(value)


def test_url_requires_http_scheme_and_host():
    assert is_valid_url("https://malicious-site.com/login")
    assert is_valid_url("http://phishing.example.com:8080/a?b=c")
    assert not is_valid_url("ftp://example.com")
    assert not is_valid_url("example.com")
    assert not is_valid_url("https://")
    assert not is_valid_url("http://exa mple.com")
    assert not is_valid_url("http://example.com:99999")


def test_subscription_id_is_canonical_uuid():
    assert is_valid_subscription_id("00000000-0000-0000-0000-000000000000")
    assert is_valid_subscription_id("A1B2C3D4-e5f6-7890-abcd-ef1234567890")
    assert not is_valid_subscription_id("00000000000000000000000000000000")
    assert not is_valid_subscription_id("{00000000-0000-0000-0000-000000000000}")


def test_port_bounds_and_whitespace():
    assert is_valid_port("22")
    assert is_valid_port(" 443 ")
    assert is_valid_port(65535)
    assert not is_valid_port("0")
    assert not is_valid_port("65536")
    assert not is_valid_port("22abc")
    assert not is_valid_port("-1")
    assert not is_valid_port(True)


def test_bulletin_identifiers_case_insensitive():
    assert is_valid_cve_id("CVE-2024-12345")
    assert is_valid_cve_id("cve-2024-1234")
    assert not is_valid_cve_id("CVE-2024-123")
    assert not is_valid_cve_id("CVE-24-12345")
    assert is_valid_cvrf_id("2024-Jan")
    assert is_valid_cvrf_id("2024-dec")
    assert not is_valid_cvrf_id("2024-January")
    assert not is_valid_cvrf_id("24-Jan")


def test_helpers_coerce_and_escape():
    assert coerce_int("12", default=0) == 12
    assert coerce_int("nope", default=5) == 5
    assert coerce_int("-3", default=0, min_value=0) == 0
    assert coerce_int("900", default=0, max_value=100) == 100
    assert escape('<a href="x">') == "&lt;a href=&quot;x&quot;&gt;"
    assert escape(None) == ""
    assert env_flag("yes") is True
    assert env_flag("off") is False
    assert env_flag(None, default=True) is True
