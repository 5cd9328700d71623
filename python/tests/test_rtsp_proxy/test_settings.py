"""
  ==============================================================================

   This file is part of the YUP library.
   Copyright (c) 2025 - kunitoki@gmail.com

   YUP is an open source library subject to open-source licensing.

   The code included in this file is provided under the terms of the ISC license
   http://www.isc.org/downloads/software-support-policy/isc-license. Permission
   to use, copy, modify, and/or distribute this software for any purpose with or
   without fee is hereby granted provided that the above copyright notice and
   this permission notice appear in all copies.

   YUP IS PROVIDED "AS IS" WITHOUT ANY WARRANTY, AND ALL WARRANTIES, WHETHER
   EXPRESSED OR IMPLIED, INCLUDING MERCHANTABILITY AND FITNESS FOR PURPOSE, ARE
   DISCLAIMED.

  ==============================================================================
"""

from __future__ import annotations

import pytest

from rtsp_proxy.errors import UsageError
from rtsp_proxy.settings import DEFAULT_RTSP_PORT, Credentials, Settings, Verbosity, parse_settings


@pytest.mark.parametrize(
    ("argv", "port", "verbosity"),
    [
        (["streams.txt"], DEFAULT_RTSP_PORT, Verbosity.QUIET),
        (["-v", "streams.txt"], DEFAULT_RTSP_PORT, Verbosity.VERBOSE),
        (["-V", "streams.txt"], DEFAULT_RTSP_PORT, Verbosity.VERY_VERBOSE),
        (["-p", "8554", "streams.txt"], 8554, Verbosity.QUIET),
        (["-v", "-p", "1", "streams.txt"], 1, Verbosity.VERBOSE),
        (["-p", "65535", "-V", "streams.txt"], 65535, Verbosity.VERY_VERBOSE),
        (["-v", "-V", "streams.txt"], DEFAULT_RTSP_PORT, Verbosity.VERY_VERBOSE),
        (["-V", "-v", "streams.txt"], DEFAULT_RTSP_PORT, Verbosity.VERBOSE),
    ],
)
def test_parse_settings_resolves_port_and_verbosity (argv: list[str], port: int, verbosity: Verbosity) -> None:
    settings = parse_settings(argv)
    assert settings.port == port
    assert settings.verbosity is verbosity
    assert settings.definition_file == "streams.txt"


def test_parse_settings_defaults () -> None:
    settings = parse_settings(["streams.txt"])
    assert settings.credentials is None
    assert settings.access_credentials is None
    assert settings.tunnel_port == 0
    assert settings.http_tunnel_port == 0
    assert settings.rest_port is None
    assert settings.log_level == "INFO"


@pytest.mark.parametrize(
    "argv",
    [
        [],
        ["-v"],
        ["-p", "8554"],
        ["-p", "abc", "streams.txt"],
        ["-p", "0", "streams.txt"],
        ["-p", "65536", "streams.txt"],
        ["-p", "-1", "streams.txt"],
        ["-p", "-v", "streams.txt"],
        ["-x", "streams.txt"],
        ["-h", "streams.txt"],
        ["one.txt", "two.txt"],
        ["streams.txt", "-v"],
        [""],
    ],
)
def test_parse_settings_rejects_malformed_command_lines (argv: list[str]) -> None:
    with pytest.raises(UsageError) as excinfo:
        parse_settings(argv, prog="rtsp-proxy-server")
    assert "rtsp-proxy-server" in excinfo.value.usage
    assert "<rtsp_url_definition_file>" in excinfo.value.usage


def test_parse_settings_reads_credentials_and_tunneling () -> None:
    settings = parse_settings(
        ["-u", "alice", "s3cret", "-U", "viewer", "pw", "-T", "80", "--http-port", "8080", "streams.txt"]
    )
    assert settings.credentials == Credentials("alice", "s3cret")
    assert settings.access_credentials == Credentials("viewer", "pw")
    assert settings.tunnel_port == 80
    assert settings.http_tunnel_port == 8080


def test_parse_settings_reads_rest_and_logging_options () -> None:
    settings = parse_settings(["--rest-port", "5000", "--rest-host", "0.0.0.0", "--log-level", "debug", "streams.txt"])
    assert settings.rest_port == 5000
    assert settings.rest_host == "0.0.0.0"
    assert settings.log_level == "DEBUG"


def test_rest_port_zero_requests_any_free_port () -> None:
    assert parse_settings(["--rest-port", "0", "streams.txt"]).rest_port == 0


@pytest.mark.parametrize("argv", [["--log-level", "banana", "streams.txt"], ["--rest-port", "-1", "streams.txt"]])
def test_parse_settings_rejects_bad_rest_and_logging_options (argv: list[str]) -> None:
    with pytest.raises(UsageError):
        parse_settings(argv)


def test_definition_file_may_look_like_an_option_value () -> None:
    settings = parse_settings(["-p", "8554", "8555"])
    assert settings.port == 8554
    assert settings.definition_file == "8555"


def test_credentials_repr_hides_password () -> None:
    assert "s3cret" not in repr(Credentials("alice", "s3cret"))


def test_settings_are_immutable () -> None:
    settings = parse_settings(["streams.txt"])
    with pytest.raises(AttributeError):
        settings.port = 8554  # type: ignore[misc]


def test_settings_validate_ports () -> None:
    with pytest.raises(ValueError):
        Settings(definition_file="streams.txt", port=0)
    with pytest.raises(ValueError):
        Settings(definition_file="streams.txt", tunnel_port=70000)
    with pytest.raises(ValueError):
        Settings(definition_file="")
    with pytest.raises(ValueError):
        Settings(definition_file="streams.txt", log_level="verbose")
