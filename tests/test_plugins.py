"""Built-in plugins against canned server replies."""

from __future__ import annotations

import struct

import pytest

from adapters.plugins.base import BasePlugin
from adapters.plugins.dns import DNSPlugin, build_query, parse_reply as parse_dns_reply
from adapters.plugins.echo import EchoPlugin
from adapters.plugins.ftp import FTPPlugin, reply_complete
from adapters.plugins.http import HTTPPlugin, HTTPSPlugin, build_request, parse_response
from adapters.plugins.mysql import MySQLPlugin, parse_greeting
from adapters.plugins.ntp import NTPPlugin
from adapters.plugins.rdp import RDPPlugin, build_connection_request, parse_connection_confirm
from adapters.plugins.redis import RedisPlugin
from adapters.plugins.ssh import SSHPlugin
from core.domain.models import Transport
from fakes import FakeConnection, make_target

TIMEOUT = 0.5


def mysql_packet(payload: bytes, sequence: int = 0) -> bytes:
    return len(payload).to_bytes(3, "little") + bytes([sequence]) + payload


def mysql_handshake(version: bytes, connection_id: int = 42) -> bytes:
    payload = b"\x0a" + version + b"\x00" + struct.pack("<I", connection_id) + b"abcdefgh\x00" + b"\xff\xf7"
    return mysql_packet(payload)


class TestHTTP:

    @pytest.mark.asyncio
    async def test_identifies_html_server(self):
        reply = (
            b"HTTP/1.1 200 OK\r\n"
            b"Server: nginx/1.25.3\r\n"
            b"Content-Type: text/html; charset=utf-8\r\n"
            b"X-Request-Id: abc\r\n\r\n"
        )
        body = b'<html><head><title> Welcome </title><meta name="description" content="Test page"></head></html>'
        conn = FakeConnection([reply, body])

        service = await HTTPPlugin().run(conn, TIMEOUT, make_target(port=8080))

        assert service is not None
        assert service.protocol == "http"
        assert service.version == "nginx/1.25.3"
        assert service.metadata["status_code"] == 200
        assert service.metadata["title"] == "Welcome"
        assert service.metadata["meta_description"] == "Test page"
        assert "x-request-id" not in service.metadata["headers"]
        assert conn.sent[0].startswith(b"GET / HTTP/1.1\r\n")

    def test_request_uses_hostname_when_known(self):
        assert b"Host: web.example.com:8080\r\n" in build_request(make_target(port=8080, host="web.example.com"))
        assert b"Host: [2001:db8::1]:80\r\n" in build_request(make_target("2001:db8::1", 80))

    @pytest.mark.asyncio
    async def test_declines_non_http_reply(self):
        conn = FakeConnection([b"SSH-2.0-OpenSSH_9.6\r\n"])

        assert await HTTPPlugin().run(conn, TIMEOUT, make_target(port=8080)) is None

    def test_parse_response_without_reason(self):
        parsed = parse_response(b"HTTP/1.0 404\r\nContent-Length: 0\r\n\r\n")

        assert parsed is not None
        assert parsed["status_code"] == 404
        assert parsed["reason"] == ""

    @pytest.mark.asyncio
    async def test_https_reports_tls_transport(self):
        plugin = HTTPSPlugin()
        conn = FakeConnection([b"HTTP/1.1 301 Moved Permanently\r\nLocation: https://example.com/\r\n\r\n"], tls=True)

        service = await plugin.run(conn, TIMEOUT, make_target(port=443))

        assert plugin.name == "http"
        assert plugin.transport is Transport.TLS
        assert service is not None
        assert service.tls is True
        assert service.transport is Transport.TLS
        assert service.metadata["headers"] == {"location": "https://example.com/"}


class TestSSH:

    @pytest.mark.asyncio
    async def test_parses_identification_string(self):
        conn = FakeConnection([b"SSH-2.0-OpenSSH_9.6p1 Ubuntu-3ubuntu13\r\n"])

        service = await SSHPlugin().run(conn, TIMEOUT, make_target(port=22))

        assert service is not None
        assert service.version == "OpenSSH_9.6p1"
        assert service.metadata["protocol_version"] == "2.0"
        assert service.metadata["comments"] == "Ubuntu-3ubuntu13"

    @pytest.mark.asyncio
    async def test_skips_lines_before_the_banner(self):
        conn = FakeConnection([b"Authorized use only\r\nSSH-2.0-dropbear_2022.83\r\n"])

        service = await SSHPlugin().run(conn, TIMEOUT, make_target(port=2222))

        assert service is not None
        assert service.version == "dropbear_2022.83"

    @pytest.mark.asyncio
    async def test_silence_is_a_decline(self):
        assert await SSHPlugin().run(FakeConnection(), TIMEOUT, make_target(port=22)) is None


class TestFTP:

    @pytest.mark.asyncio
    async def test_greeting_confirmed_by_user_reply(self):
        conn = FakeConnection([b"220 ProFTPD Server ready.\r\n", b"331 Password required for anonymous\r\n"])

        service = await FTPPlugin().run(conn, TIMEOUT, make_target(port=21))

        assert service is not None
        assert service.metadata == {
            "banner": "ProFTPD Server ready.",
            "user_reply_code": 331,
            "anonymous_login": True,
        }
        assert conn.sent == [b"USER anonymous\r\n"]

    @pytest.mark.asyncio
    async def test_multi_line_greeting_split_across_reads(self):
        conn = FakeConnection(
            [
                b"220-Welcome to FileZilla\r\n",
                b"220-Please visit https://filezilla-project.org/\r\n",
                b"220 ready\r\n",
                b"331 Password required\r\n",
            ]
        )

        service = await FTPPlugin().run(conn, TIMEOUT, make_target(port=21))

        assert service is not None
        assert service.metadata["banner"] == "Welcome to FileZilla"
        assert service.metadata["user_reply_code"] == 331
        assert conn.sent == [b"USER anonymous\r\n"]
        assert conn.replies == []

    @pytest.mark.asyncio
    async def test_multi_line_user_reply(self):
        conn = FakeConnection([b"220 vsFTPd 3.0.5\r\n", b"530-Anonymous access is disabled.\r\n530 Login incorrect.\r\n"])

        service = await FTPPlugin().run(conn, TIMEOUT, make_target(port=21))

        assert service is not None
        assert service.metadata["user_reply_code"] == 530
        assert service.metadata["anonymous_login"] is False

    def test_reply_complete_needs_final_line_with_same_code(self):
        assert reply_complete(b"220 ready\r\n")
        assert not reply_complete(b"220-Welcome\r\n")
        assert not reply_complete(b"220-Welcome\r\n 331 not the end\r\n")
        assert reply_complete(b"220-Welcome\r\n220 ready\r\n")

    @pytest.mark.asyncio
    async def test_smtp_greeting_is_not_ftp(self):
        conn = FakeConnection([b"220 mail.example.com ESMTP Postfix\r\n", b"502 5.5.2 Error: command not recognized\r\n"])

        assert await FTPPlugin().run(conn, TIMEOUT, make_target(port=21)) is None


class TestMySQL:

    @pytest.mark.asyncio
    async def test_handshake_across_two_reads(self):
        packet = mysql_handshake(b"8.0.36")
        conn = FakeConnection([packet[:10], packet[10:]])

        service = await MySQLPlugin().run(conn, TIMEOUT, make_target(port=3306))

        assert service is not None
        assert service.version == "8.0.36"
        assert service.metadata["flavor"] == "mysql"
        assert service.metadata["connection_id"] == 42
        assert service.metadata["protocol_version"] == 10

    def test_mariadb_flavor(self):
        info = parse_greeting(mysql_handshake(b"5.5.5-10.11.6-MariaDB-0+deb12u1"))

        assert info is not None
        assert info["flavor"] == "mariadb"

    @pytest.mark.asyncio
    async def test_host_blocked_error_still_identifies_mysql(self):
        message = b"Host '10.0.0.9' is not allowed to connect to this MySQL server"
        conn = FakeConnection([mysql_packet(b"\xff" + struct.pack("<H", 1130) + message)])

        service = await MySQLPlugin().run(conn, TIMEOUT, make_target(port=3306))

        assert service is not None
        assert service.version is None
        assert service.metadata["error_code"] == 1130

    @pytest.mark.asyncio
    async def test_declines_http_reply(self):
        conn = FakeConnection([b"HTTP/1.1 400 Bad Request\r\n\r\n"])

        assert await MySQLPlugin().run(conn, TIMEOUT, make_target(port=3306)) is None

    def test_rejects_non_zero_sequence(self):
        packet = mysql_packet(b"\x0a8.0.36\x00" + bytes(4), sequence=1)

        assert parse_greeting(packet) is None


class TestRedis:

    @pytest.mark.asyncio
    async def test_pong(self):
        conn = FakeConnection([b"+PONG\r\n"])

        service = await RedisPlugin().run(conn, TIMEOUT, make_target(port=6379))

        assert service is not None
        assert service.metadata["auth_required"] is False
        assert conn.sent == [b"*1\r\n$4\r\nPING\r\n"]

    @pytest.mark.asyncio
    async def test_auth_required(self):
        conn = FakeConnection([b"-NOAUTH Authentication required.\r\n"])

        service = await RedisPlugin().run(conn, TIMEOUT, make_target(port=6379))

        assert service is not None
        assert service.metadata["auth_required"] is True

    @pytest.mark.asyncio
    async def test_other_errors_decline(self):
        conn = FakeConnection([b"-ERR unknown command\r\n"])

        assert await RedisPlugin().run(conn, TIMEOUT, make_target(port=6379)) is None


class TestRDP:

    def test_connection_request_framing(self):
        request = build_connection_request()

        assert request[:2] == b"\x03\x00"
        assert struct.unpack(">H", request[2:4])[0] == len(request)
        assert request[4] == len(request) - 5
        assert request[5] == 0xE0
        assert request.endswith(b"\x01\x00\x08\x00\x0b\x00\x00\x00")

    @pytest.mark.asyncio
    async def test_negotiation_response(self):
        reply = b"\x03\x00\x00\x13\x0e\xd0\x00\x00\x12\x34\x00" + b"\x02\x00\x08\x00" + struct.pack("<I", 2)
        conn = FakeConnection([reply])

        service = await RDPPlugin().run(conn, TIMEOUT, make_target(port=3389))

        assert service is not None
        assert service.metadata == {"selected_protocol": "hybrid"}

    def test_negotiation_failure(self):
        reply = b"\x03\x00\x00\x13\x0e\xd0\x00\x00\x12\x34\x00" + b"\x03\x00\x08\x00" + struct.pack("<I", 5)

        assert parse_connection_confirm(reply) == {"negotiation_failure": 5}

    def test_declines_other_protocols(self):
        assert parse_connection_confirm(b"SSH-2.0-OpenSSH_9.6\r\n") is None


class TestEcho:

    @pytest.mark.asyncio
    async def test_echoed_payload_matches(self):
        conn = FakeConnection(responder=lambda sent: sent)

        service = await EchoPlugin().run(conn, TIMEOUT, make_target(port=7))

        assert service is not None
        assert service.protocol == "echo"
        assert len(conn.sent[0]) == 16

    @pytest.mark.asyncio
    async def test_different_reply_declines(self):
        conn = FakeConnection([b"220 welcome\r\n"])

        assert await EchoPlugin().run(conn, TIMEOUT, make_target(port=7)) is None


class TestDNS:

    @pytest.mark.asyncio
    async def test_reply_with_matching_id(self):
        def respond(query: bytes) -> bytes:
            return query[:2] + struct.pack(">HHHHH", 0x8180, 1, 0, 13, 0)

        service = await DNSPlugin().run(FakeConnection(responder=respond), TIMEOUT, make_target(port=53))

        assert service is not None
        assert service.transport is Transport.UDP
        assert service.metadata["rcode"] == 0
        assert service.metadata["recursion_available"] is True
        assert service.metadata["authority_records"] == 13

    @pytest.mark.asyncio
    async def test_echoed_query_is_not_a_reply(self):
        service = await DNSPlugin().run(FakeConnection(responder=lambda q: q), TIMEOUT, make_target(port=53))

        assert service is None

    def test_transaction_id_must_match(self):
        reply = build_query(0x1234)[:2] + struct.pack(">HHHHH", 0x8180, 1, 0, 0, 0)

        assert parse_dns_reply(reply, 0x4321) is None
        assert parse_dns_reply(reply, 0x1234) is not None


class TestNTP:

    @pytest.mark.asyncio
    async def test_server_reply(self):
        conn = FakeConnection([bytes([0x24, 2]) + bytes(46)])

        service = await NTPPlugin().run(conn, TIMEOUT, make_target(port=123))

        assert service is not None
        assert service.version == "NTPv4"
        assert service.metadata["stratum"] == 2
        assert len(conn.sent[0]) == 48

    @pytest.mark.asyncio
    async def test_echoed_request_declines(self):
        service = await NTPPlugin().run(FakeConnection(responder=lambda q: q), TIMEOUT, make_target(port=123))

        assert service is None


class TestBasePlugin:

    def test_run_must_be_implemented(self):
        class Incomplete(BasePlugin):
            name = "incomplete"

        with pytest.raises(TypeError):
            Incomplete()

    def test_default_port_matching(self):
        assert MySQLPlugin().port_priority(3307)
        assert not MySQLPlugin().port_priority(3308)
