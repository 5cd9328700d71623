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
import threading
from typing import Any, Dict, Optional

from .orchestrator import ProxyOrchestrator, RegisteredStream

__all__ = ["RestStatusServer", "start_rest_server"]

_logger = logging.getLogger(__name__)


def _describe_stream (stream: RegisteredStream) -> Dict[str, Any]:
    return {
        "name": stream.name,
        "upstream": stream.upstream_url,
        "url": stream.url,
    }


class RestStatusServer:
    """Expose the proxied streams of a :class:`ProxyOrchestrator` over a small Flask REST API."""

    def __init__ (self, orchestrator: ProxyOrchestrator, host: str = "127.0.0.1", port: int = 5000) -> None:
        try:  # pragma: no cover - exercised when Flask is available
            from flask import Flask, jsonify
            from werkzeug.serving import make_server
        except ImportError as exc:  # pragma: no cover - import guard
            raise ImportError("Flask is required for the REST status server; install flask>=2.3") from exc

        self._orchestrator = orchestrator
        self._host = host
        self._port = port
        self._app = Flask(__name__)
        self._jsonify = jsonify
        self._make_server = make_server
        self._server = None
        self._thread: Optional[threading.Thread] = None

        self._register_routes()

    @property
    def app (self) -> Any:
        return self._app

    @property
    def port (self) -> int:
        """The listening port, resolved from the socket once started so a requested port of 0 reports the real one."""

        return self._port

    def __enter__ (self) -> "RestStatusServer":
        self.start()
        return self

    def __exit__ (self, exc_type, exc, tb) -> None:
        self.close()

    def start (self) -> None:
        if self._server is not None:
            return

        self._server = self._make_server(self._host, self._port, self._app)
        self._server.daemon_threads = True
        self._port = self._server.server_port
        self._thread = threading.Thread(target=self._serve_forever, name="rtsp-proxy-rest", daemon=True)
        self._thread.start()
        _logger.info("REST status server listening on http://%s:%d/streams", self._host, self._port)

    def close (self) -> None:
        if self._server is None:
            return

        _logger.info("Stopping REST status server on http://%s:%d", self._host, self._port)
        self._server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
        self._server.server_close()
        self._server = None
        self._thread = None

    def _serve_forever (self) -> None:
        assert self._server is not None
        try:
            self._server.serve_forever()
        except Exception:  # pragma: no cover - background server loop
            _logger.exception("REST status server terminated unexpectedly")

    def _register_routes (self) -> None:
        app = self._app

        @app.get("/health")
        def health () -> Any:
            running = self._orchestrator.running
            if running is None:
                return self._jsonify({"status": "starting"}), 503
            return self._jsonify({"status": "ok", "port": running.server.port})

        @app.get("/streams")
        def list_streams () -> Any:
            streams = [_describe_stream(stream) for stream in self._orchestrator.list_streams()]
            return self._jsonify({"streams": streams})

        @app.get("/streams/<path:name>")
        def get_stream (name: str) -> Any:
            try:
                stream = self._orchestrator.get_stream(name)
            except KeyError:
                return self._jsonify({"error": f"Stream '{name}' not found"}), 404
            return self._jsonify(_describe_stream(stream))

    def __repr__ (self) -> str:
        return f"RestStatusServer(host={self._host!r}, port={self._port!r})"


def start_rest_server (orchestrator: ProxyOrchestrator, host: str = "127.0.0.1", port: int = 5000) -> RestStatusServer:
    """Create and start a :class:`RestStatusServer` instance."""

    server = RestStatusServer(orchestrator, host=host, port=port)
    server.start()
    return server
