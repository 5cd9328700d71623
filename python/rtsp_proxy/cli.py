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

import logging
import sys
from typing import TYPE_CHECKING, Optional, Sequence

from .errors import ProxyServerError, UsageError
from .orchestrator import ProxyOrchestrator
from .settings import Settings, Verbosity, parse_settings

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .rest_server import RestStatusServer

__all__ = ["main"]

_logger = logging.getLogger(__name__)


def _configure_logging (settings: Settings) -> None:
    if settings.verbosity >= Verbosity.VERY_VERBOSE:
        level = logging.DEBUG
    else:
        level = getattr(logging, settings.log_level)
    logging.basicConfig(level=level)


def _start_rest_server (orchestrator: ProxyOrchestrator, settings: Settings) -> Optional[RestStatusServer]:
    from .rest_server import start_rest_server

    try:
        return start_rest_server(orchestrator, host=settings.rest_host, port=settings.rest_port)
    except OSError as exc:
        _logger.warning("REST status server is not available on %s:%s: %s", settings.rest_host, settings.rest_port, exc.strerror or exc)
        return None


def main (argv: Optional[Sequence[str]] = None) -> int:
    try:
        settings = parse_settings(sys.argv[1:] if argv is None else argv)
    except UsageError as exc:
        sys.stderr.write(exc.usage)
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _configure_logging(settings)
    _logger.info("RTSP Proxy Server")

    orchestrator = ProxyOrchestrator(settings)
    try:
        orchestrator.startup()
    except ProxyServerError as exc:
        _logger.error("%s", exc)
        return 1

    rest_server = None
    try:
        if settings.rest_port is not None:
            rest_server = _start_rest_server(orchestrator, settings)
        orchestrator.run()
    except KeyboardInterrupt:  # pragma: no cover - interactive guard
        _logger.info("Stopping due to keyboard interrupt")
    finally:
        if rest_server is not None:
            try:
                rest_server.close()
            except Exception:  # pragma: no cover - shutdown best effort
                _logger.exception("Failed to stop REST status server cleanly")
        orchestrator.close()

    return 0


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
