"""Tests for DNS TXT lookups."""

from unittest.mock import MagicMock, patch

import dns.resolver

from adfsfed.core.dns import resolve_txt_records, txt_record_present, verification_instructions


def _rdata(*strings: str) -> MagicMock:
    rdata = MagicMock()
    rdata.strings = [s.encode() for s in strings]
    return rdata


class TestResolveTxtRecords:
    """Tests for resolve_txt_records."""

    def test_returns_record_values(self) -> None:
        answers = [_rdata("v=spf1 -all"), _rdata("MS=ms12345")]

        with patch.object(dns.resolver.Resolver, "resolve", return_value=answers):
            result = resolve_txt_records("example.org", nameservers=["192.0.2.53"])

        assert result == ["v=spf1 -all", "MS=ms12345"]

    def test_joins_multi_string_records(self) -> None:
        answers = [_rdata("MS=", "ms12345")]

        with patch.object(dns.resolver.Resolver, "resolve", return_value=answers):
            result = resolve_txt_records("example.org", nameservers=["192.0.2.53"])

        assert result == ["MS=ms12345"]

    def test_non_utf8_record_does_not_hide_others(self) -> None:
        binary = MagicMock()
        binary.strings = [b"\xff\xfebinary"]
        answers = [binary, _rdata("MS=ms12345")]

        with patch.object(dns.resolver.Resolver, "resolve", return_value=answers):
            result = resolve_txt_records("example.org", nameservers=["192.0.2.53"])

        assert result[1] == "MS=ms12345"
        assert result[0].endswith("binary")

        with patch.object(dns.resolver.Resolver, "resolve", return_value=answers):
            assert txt_record_present("example.org", "MS=ms12345", ["192.0.2.53"])

    def test_nxdomain_is_empty(self) -> None:
        with patch.object(dns.resolver.Resolver, "resolve", side_effect=dns.resolver.NXDOMAIN):
            assert resolve_txt_records("missing.example", nameservers=["192.0.2.53"]) == []

    def test_no_answer_is_empty(self) -> None:
        with patch.object(dns.resolver.Resolver, "resolve", side_effect=dns.resolver.NoAnswer):
            assert resolve_txt_records("example.org", nameservers=["192.0.2.53"]) == []

    def test_custom_nameservers_used(self) -> None:
        seen = {}

        def resolve(self, name, rdtype):
            seen["nameservers"] = list(self.nameservers)
            seen["query"] = (name, rdtype)
            return []

        with patch.object(dns.resolver.Resolver, "resolve", resolve):
            resolve_txt_records("example.org", nameservers=["192.0.2.53"])

        assert seen["nameservers"] == ["192.0.2.53"]
        assert seen["query"] == ("example.org", "TXT")


class TestTxtRecordPresent:
    """Tests for txt_record_present."""

    def test_exact_match_required(self) -> None:
        answers = [_rdata("MS=ms12345")]

        with patch.object(dns.resolver.Resolver, "resolve", return_value=answers):
            assert txt_record_present("example.org", "MS=ms12345", ["192.0.2.53"])
            assert not txt_record_present("example.org", "MS=ms1234", ["192.0.2.53"])


class TestVerificationInstructions:
    """Tests for verification_instructions."""

    def test_contains_record(self) -> None:
        text = verification_instructions("example.org", "MS=ms12345", 3600)

        assert "Record Name: example.org (@)" in text
        assert "Record Type: TXT" in text
        assert "Record Value: MS=ms12345" in text
        assert "TTL: 3600" in text
        assert "run this command again" in text

    def test_without_ttl(self) -> None:
        assert "TTL" not in verification_instructions("example.org", "MS=ms12345")

    def test_without_record(self) -> None:
        text = verification_instructions("example.org", None)

        assert "did not issue" in text
        assert "Record Value" not in text
