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

import argparse
import enum
from dataclasses import dataclass
from typing import Dict, List, Mapping, NoReturn, Optional, Sequence

from .errors import UsageError

__all__ = ["DEFAULT_RTSP_PORT", "LOG_LEVELS", "Credentials", "Settings", "Verbosity", "parse_settings"]

DEFAULT_RTSP_PORT = 554

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

_USAGE = (
    "%(prog)s [-v|-V] [-p <rtspServer-port>] [-u <username> <password>]"
    " [-U <username-for-authentication> <password-for-authentication>]"
    " [-T <http-port>] <rtsp_url_definition_file>"
)


class Verbosity(enum.IntEnum):
    """Diagnostic output level handed to every proxy session."""

    QUIET = 0
    VERBOSE = 1
    VERY_VERBOSE = 2


@dataclass(frozen=True, slots=True)
class Credentials:
    username: str
    password: str

    def __repr__ (self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class Settings:
    """Immutable process configuration resolved once from the command line.

    ``credentials`` authenticate the proxy against upstream servers, while
    ``access_credentials`` (when set) are demanded from clients of the proxy.
    A ``tunnel_port`` of 0 disables RTSP-over-HTTP towards upstream servers and
    an ``http_tunnel_port`` of 0 disables the client-facing tunneling listener.
    """

    definition_file: str
    verbosity: Verbosity = Verbosity.QUIET
    port: int = DEFAULT_RTSP_PORT
    credentials: Optional[Credentials] = None
    access_credentials: Optional[Credentials] = None
    tunnel_port: int = 0
    http_tunnel_port: int = 0
    rest_host: str = "127.0.0.1"
    rest_port: Optional[int] = None
    log_level: str = "INFO"

    def __post_init__ (self) -> None:
        if not self.definition_file:
            raise ValueError("definition_file must be a non-empty path")

        if not 0 < self.port <= 0xFFFF:
            raise ValueError("port must be within 1-65535")

        for name in ("tunnel_port", "http_tunnel_port"):
            if not 0 <= getattr(self, name) <= 0xFFFF:
                raise ValueError(f"{name} must be within 0-65535")

        if self.rest_port is not None and not 0 <= self.rest_port <= 0xFFFF:
            raise ValueError("rest_port must be within 0-65535")

        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")


class _ArgumentParser(argparse.ArgumentParser):
    def error (self, message: str) -> NoReturn:
        raise UsageError(message, usage=self.format_usage())


def _parse_port (value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port number '{value}'") from None

    if not 0 < port <= 0xFFFF:
        raise argparse.ArgumentTypeError(f"port number {port} is outside 1-65535")
    return port


def _parse_listen_port (value: str) -> int:
    if value == "0":
        return 0
    return _parse_port(value)


def _build_parser (prog: Optional[str]) -> tuple[_ArgumentParser, Dict[str, int]]:
    parser = _ArgumentParser(prog=prog, usage=_USAGE, add_help=False, description="Proxy RTSP streams listed in a definition file")
    actions: List[argparse.Action] = [
        parser.add_argument("-v", dest="verbosity", action="store_const", const=Verbosity.VERBOSE, default=Verbosity.QUIET, help="Verbose output"),
        parser.add_argument("-V", dest="verbosity", action="store_const", const=Verbosity.VERY_VERBOSE, help="More verbose output"),
        parser.add_argument("-p", dest="port", type=_parse_port, default=DEFAULT_RTSP_PORT, help="RTSP server port (default: 554)"),
        parser.add_argument("-u", dest="credentials", nargs=2, metavar=("USERNAME", "PASSWORD"), help="Credentials for the upstream servers"),
        parser.add_argument("-U", dest="access_credentials", nargs=2, metavar=("USERNAME", "PASSWORD"), help="Credentials clients must present"),
        parser.add_argument("-T", dest="tunnel_port", type=_parse_port, default=0, help="Reach upstream servers through RTSP-over-HTTP on this port"),
        parser.add_argument("--http-port", dest="http_tunnel_port", type=_parse_port, default=0, help="Accept RTSP-over-HTTP clients on this port"),
        parser.add_argument("--rest-host", default="127.0.0.1", help="Host interface for the optional REST status server"),
        parser.add_argument("--rest-port", type=_parse_listen_port, help="Port for the optional REST status server (0 picks a free port)"),
        parser.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, default="INFO", help="Python logging level (default: INFO)"),
    ]
    parser.add_argument("definition_files", nargs="*", metavar="rtsp_url_definition_file")

    # Number of values each option consumes, keyed by option string.
    arity: Dict[str, int] = {}
    for action in actions:
        nargs = 1 if action.nargs is None else int(action.nargs)
        for option in action.option_strings:
            arity[option] = nargs
    return parser, arity


def _check_options_precede_file (argv: Sequence[str], arity: Mapping[str, int], usage: str) -> None:
    index = 0
    while index < len(argv) and argv[index].startswith("-"):
        index += 1 + arity.get(argv[index], 0)

    for argument in argv[index:]:
        if argument.startswith("-"):
            raise UsageError(f"option '{argument}' must precede the definition file", usage=usage)


def _credentials (pair: Optional[Sequence[str]]) -> Optional[Credentials]:
    if pair is None:
        return None
    username, password = pair
    return Credentials(username, password)


def parse_settings (argv: Sequence[str], prog: Optional[str] = None) -> Settings:
    """Resolve *argv* (without the program name) into :class:`Settings`.

    Options are only recognised ahead of the definition file; anything that
    follows the first positional argument is positional too. Raises
    :class:`~rtsp_proxy.errors.UsageError` for unknown options, malformed port
    values and when anything other than exactly one definition file remains.
    """

    parser, arity = _build_parser(prog)
    args = parser.parse_args(list(argv))
    usage = parser.format_usage()

    _check_options_precede_file(argv, arity, usage)

    definition_files = args.definition_files or []
    if len(definition_files) != 1:
        raise UsageError("exactly one definition file must be given", usage=usage)

    definition_file = definition_files[0]
    if not definition_file:
        raise UsageError("the definition file path must not be empty", usage=usage)

    return Settings(
        definition_file=definition_file,
        verbosity=args.verbosity,
        port=args.port,
        credentials=_credentials(args.credentials),
        access_credentials=_credentials(args.access_credentials),
        tunnel_port=args.tunnel_port,
        http_tunnel_port=args.http_tunnel_port,
        rest_host=args.rest_host,
        rest_port=args.rest_port,
        log_level=args.log_level,
    )
