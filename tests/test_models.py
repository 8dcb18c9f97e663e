"""Domain models, settings, target parsing and JSON export."""

from __future__ import annotations

import ipaddress
import json
import socket

import pytest
from pydantic import ValidationError

from adapters.json_exporter import export_services_json, services_to_json
from adapters.targets import parse_target, parse_targets
from core.config import ScanSettings
from core.domain.errors import TargetParseError
from core.domain.models import Service, Target, Transport
from fakes import make_target


class TestTarget:

    def test_endpoint_formats(self):
        assert make_target("10.0.0.1", 3306).endpoint == "10.0.0.1:3306"
        assert make_target("2001:db8::1", 443).endpoint == "[2001:db8::1]:443"
        assert str(make_target("10.0.0.1", 443, host="db.example.com")) == "10.0.0.1:443 (db.example.com)"

    def test_port_range_enforced(self):
        with pytest.raises(ValidationError):
            Target(address=ipaddress.ip_address("10.0.0.1"), port=70000)

    def test_frozen(self):
        target = make_target()
        with pytest.raises(ValidationError):
            target.port = 22


class TestService:

    def test_from_target_over_tls(self):
        service = Service.from_target(
            make_target("10.0.0.2", 8443, host="web.example.com"),
            protocol="http",
            transport=Transport.TLS,
            version="nginx",
        )

        assert service.tls is True
        assert service.host == "web.example.com"
        assert service.model_dump(mode="json")["transport"] == "tls"

    def test_plain_tcp_is_not_tls(self):
        service = Service.from_target(make_target(), protocol="mysql", transport=Transport.TCP)

        assert service.tls is False
        assert service.metadata == {}


class TestSettings:

    def test_defaults(self, monkeypatch):
        for key in ("FAST_MODE", "PROXY", "MAX_CONCURRENCY", "DEFAULT_TIMEOUT_SECONDS"):
            monkeypatch.delenv(f"PROTOSCOPE_{key}", raising=False)

        settings = ScanSettings(_env_file=None)

        assert settings.default_timeout_seconds == 2.0
        assert settings.max_concurrency == 10
        assert settings.target_concurrency == 1
        assert settings.fast_mode is False
        assert settings.proxy == ""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PROTOSCOPE_FAST_MODE", "true")
        monkeypatch.setenv("PROTOSCOPE_MAX_CONCURRENCY", "4")

        settings = ScanSettings(_env_file=None)

        assert settings.fast_mode is True
        assert settings.max_concurrency == 4

    def test_dotenv_in_working_directory(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PROTOSCOPE_PROXY", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("PROTOSCOPE_PROXY=socks5://127.0.0.1:9050\n", encoding="utf-8")

        assert ScanSettings().proxy == "socks5://127.0.0.1:9050"

    def test_frozen_and_validated(self):
        settings = ScanSettings(_env_file=None)
        with pytest.raises(ValidationError):
            settings.fast_mode = True
        with pytest.raises(ValidationError):
            ScanSettings(_env_file=None, max_concurrency=0)
        with pytest.raises(ValidationError):
            ScanSettings(_env_file=None, default_timeout_seconds=0)


class TestTargetParsing:

    def test_ip_literals(self):
        v4 = parse_target("10.0.0.1:3306")
        v6 = parse_target("[2001:db8::1]:443")

        assert (v4.ip, v4.port, v4.host) == ("10.0.0.1", 3306, "")
        assert (v6.ip, v6.port) == ("2001:db8::1", 443)

    def test_hostname_is_resolved_and_kept(self, monkeypatch):
        def fake_getaddrinfo(host, port, *args, **kwargs):
            assert host == "DB.Example.com"
            return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("192.0.2.10", port))]

        monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo)

        target = parse_target("DB.Example.com:5432")

        assert target.ip == "192.0.2.10"
        assert target.host == "db.example.com"

    def test_unresolvable_hostname(self, monkeypatch):
        def fake_getaddrinfo(*args, **kwargs):
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

        monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo)

        with pytest.raises(TargetParseError):
            parse_target("nowhere.invalid:80")

    @pytest.mark.parametrize(
        "value",
        ["10.0.0.1", "::1:80", "[::1]80", "10.0.0.1:http", "10.0.0.1:70000", ":80"],
    )
    def test_invalid_input(self, value):
        with pytest.raises(TargetParseError):
            parse_target(value)

    def test_target_parse_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_target("nonsense")

    def test_list_skips_blanks_and_comments(self):
        targets = parse_targets(["# lab hosts", "", "10.0.0.1:22", "  10.0.0.2:80  "])

        assert [t.endpoint for t in targets] == ["10.0.0.1:22", "10.0.0.2:80"]


def test_json_export(tmp_path):
    services = [
        Service.from_target(make_target(port=3306), protocol="mysql", transport=Transport.TCP, version="8.0.36"),
        Service.from_target(make_target(port=443), protocol="http", transport=Transport.TLS),
    ]

    path = export_services_json(services=services, output_path=tmp_path / "out" / "services.json")
    records = json.loads(path.read_text(encoding="utf-8"))

    assert [r["protocol"] for r in records] == ["mysql", "http"]
    assert records[1]["tls"] is True
    assert json.loads(services_to_json([])) == []
