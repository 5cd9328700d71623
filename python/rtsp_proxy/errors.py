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

__all__ = [
    "ProxyServerError",
    "UsageError",
    "BindFailure",
    "FatalStartupError",
    "DefinitionError",
    "DefinitionFileError",
    "SessionCreationError",
    "ServerShutdownError",
]


class ProxyServerError(Exception):
    """Base class for every failure raised by :mod:`rtsp_proxy`."""


class UsageError(ProxyServerError):
    """Raised when the command line cannot be resolved into settings.

    *usage* carries the one-line synopsis the top-level handler prints before
    exiting.
    """

    def __init__ (self, message: str, usage: str = "") -> None:
        super().__init__(message)
        self.usage = usage


class BindFailure(ProxyServerError):
    """Raised by a server factory when it cannot listen on *port*."""

    def __init__ (self, port: int, diagnostic: str) -> None:
        super().__init__(f"Unable to create a RTSP server with port number {port}: {diagnostic}")
        self.port = port
        self.diagnostic = diagnostic


class FatalStartupError(ProxyServerError):
    """Raised when no control-plane server could be created at all."""

    def __init__ (self, diagnostic: str) -> None:
        super().__init__(f"Failed to create RTSP server: {diagnostic}")
        self.diagnostic = diagnostic


class DefinitionError(ProxyServerError):
    """Raised for a stream definition line that cannot name a proxied stream."""

    def __init__ (self, line_number: int, message: str) -> None:
        super().__init__(f"line {line_number}: {message}")
        self.line_number = line_number


class DefinitionFileError(ProxyServerError):
    """Raised when the stream definition file cannot be opened or decoded."""


class SessionCreationError(ProxyServerError):
    """Raised by a server when a single proxy session cannot be created."""


class ServerShutdownError(ProxyServerError):
    """Raised by a server that can no longer accept registrations."""
