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

from typing import List, Optional

import pytest

pytest.importorskip("flask", reason="Flask is required for the REST status server")

from rtsp_proxy import ProxyOrchestrator, Settings, StreamDefinition
from rtsp_proxy.rest_server import RestStatusServer


class StaticServer:
    port = 8554

    def create_proxy_session (self, upstream_url, name, credentials, tunnel_port, verbosity):
        return name

    def register (self, session):
        return session

    def playable_url (self, handle) -> str:
        return f"rtsp://proxy.test:8554/{handle}"

    def enable_http_tunneling (self, port: int) -> None:
        pass

    def close (self) -> None:
        pass


def _orchestrator (definitions: Optional[List[StreamDefinition]] = None) -> ProxyOrchestrator:
    return ProxyOrchestrator(
        Settings(definition_file="streams.txt"),
        server_factory=lambda port, auth_db: StaticServer(),
        definition_loader=lambda path: definitions or [],
    )


def test_health_reflects_startup_state () -> None:
    orchestrator = _orchestrator()
    client = RestStatusServer(orchestrator).app.test_client()

    assert client.get("/health").status_code == 503

    orchestrator.startup()
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "port": 8554}


def test_streams_are_listed_in_registration_order () -> None:
    orchestrator = _orchestrator(
        [
            StreamDefinition("rtsp://cam-1/live", "lobby", 1),
            StreamDefinition("rtsp://cam-2/live", "loading dock", 2),
        ]
    )
    orchestrator.startup()
    client = RestStatusServer(orchestrator).app.test_client()

    payload = client.get("/streams").get_json()
    assert payload == {
        "streams": [
            {"name": "lobby", "upstream": "rtsp://cam-1/live", "url": "rtsp://proxy.test:8554/lobby"},
            {"name": "loading dock", "upstream": "rtsp://cam-2/live", "url": "rtsp://proxy.test:8554/loading dock"},
        ]
    }

    response = client.get("/streams/lobby")
    assert response.status_code == 200
    assert response.get_json()["upstream"] == "rtsp://cam-1/live"

    assert client.get("/streams/missing").status_code == 404


def test_start_reports_the_bound_port_when_any_port_was_requested () -> None:
    server = RestStatusServer(_orchestrator(), host="127.0.0.1", port=0)
    assert server.port == 0

    with server:
        assert server.port > 0

    assert server.port > 0
