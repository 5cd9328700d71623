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

Startup orchestration for the RTSP proxy server.

The orchestrator never speaks RTSP itself. It negotiates a listening port with
a control-plane server, registers one proxy session per stream definition and
then hands the process over to an event loop. Servers, sessions and the loop
are collaborators reached through the protocols below; the defaults build them
on GStreamer's RTSP server (see :mod:`rtsp_proxy.gst_server`), tests inject
fakes.

Lifecycle is split in two so callers can inspect a started proxy without
blocking: :meth:`ProxyOrchestrator.startup` does all the registration work and
:meth:`ProxyOrchestrator.run` enters the loop, which only returns once the loop
is quit (for example by SIGTERM).
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from .definitions import StreamDefinition, load_stream_definitions
from .errors import BindFailure, DefinitionError, FatalStartupError, SessionCreationError
from .settings import DEFAULT_RTSP_PORT, Credentials, Settings, Verbosity


_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthDatabase:
    """Usernames and passwords clients must present to reach proxied streams."""

    realm: str = "RTSP Proxy Server"
    users: Dict[str, str] = field(default_factory=dict)

    def add_user (self, username: str, password: str) -> None:
        self.users[username] = password

    @classmethod
    def from_settings (cls, settings: Settings) -> Optional["AuthDatabase"]:
        if settings.access_credentials is None:
            return None

        database = cls()
        database.add_user(settings.access_credentials.username, settings.access_credentials.password)
        return database


class ControlPlaneServer(Protocol):
    """Protocol implemented by RTSP servers driven by :class:`ProxyOrchestrator`.

    ``port`` is the port the server is bound to. ``create_proxy_session`` and
    ``register`` may raise :class:`~rtsp_proxy.errors.SessionCreationError` for
    a single bad stream or :class:`~rtsp_proxy.errors.ServerShutdownError` when
    no further registration is possible.
    """

    port: int

    def create_proxy_session (
        self,
        upstream_url: str,
        name: str,
        credentials: Optional[Credentials],
        tunnel_port: int,
        verbosity: Verbosity,
    ) -> Any: ...

    def register (self, session: Any) -> Any: ...

    def playable_url (self, handle: Any) -> str: ...

    def enable_http_tunneling (self, port: int) -> None: ...

    def close (self) -> None: ...


class ServerFactory(Protocol):
    """Creates a bound server or raises :class:`~rtsp_proxy.errors.BindFailure`."""

    def __call__ (self, port: int, auth_db: Optional[AuthDatabase]) -> ControlPlaneServer: ...


class EventLoop(Protocol):
    def run (self) -> None: ...


EventLoopFactory = Callable[[], EventLoop]
DefinitionLoader = Callable[[str], Iterable[StreamDefinition]]


@dataclass(frozen=True, slots=True)
class RegisteredStream:
    """A stream definition that now has a live proxy session behind it."""

    definition: StreamDefinition
    handle: Any
    url: str

    @property
    def name (self) -> str:
        return self.definition.name

    @property
    def upstream_url (self) -> str:
        return self.definition.upstream_url


@dataclass(frozen=True, slots=True)
class RunningProxy:
    """Outcome of :meth:`ProxyOrchestrator.startup`."""

    server: ControlPlaneServer
    streams: Tuple[RegisteredStream, ...]
    http_tunnel_port: Optional[int] = None


def negotiate_server (
    requested_port: int,
    server_factory: ServerFactory,
    auth_db: Optional[AuthDatabase] = None,
) -> ControlPlaneServer:
    """Create a server on *requested_port*, falling back once to port 554.

    The fallback is only attempted when *requested_port* differs from 554 and
    is announced with a single warning. Raises :class:`FatalStartupError`
    carrying the last diagnostic when no server could be created.
    """

    try:
        return server_factory(requested_port, auth_db)
    except BindFailure as exc:
        failure = exc

    if requested_port != DEFAULT_RTSP_PORT:
        _logger.warning(
            "Unable to create a RTSP server with port number %d: %s; trying instead with the standard port number (%d)",
            requested_port,
            failure.diagnostic,
            DEFAULT_RTSP_PORT,
        )
        try:
            return server_factory(DEFAULT_RTSP_PORT, auth_db)
        except BindFailure as exc:
            failure = exc

    raise FatalStartupError(failure.diagnostic) from failure


def register_streams (
    server: ControlPlaneServer,
    settings: Settings,
    definitions: Iterable[StreamDefinition],
) -> List[RegisteredStream]:
    """Create and register one proxy session per definition, in order.

    Invalid definitions and sessions the server refuses are logged and
    skipped. Any other exception, notably
    :class:`~rtsp_proxy.errors.ServerShutdownError`, aborts the batch.
    """

    registered: List[RegisteredStream] = []
    for definition in definitions:
        try:
            definition.validate()
            session = server.create_proxy_session(
                definition.upstream_url,
                definition.name,
                settings.credentials,
                settings.tunnel_port,
                settings.verbosity,
            )
            handle = server.register(session)
        except DefinitionError as exc:
            _logger.warning("Skipping stream definition at %s", exc)
            continue
        except SessionCreationError as exc:
            _logger.warning("Skipping stream '%s' (%s): %s", definition.name, definition.upstream_url, exc)
            continue

        url = server.playable_url(handle)
        _logger.info('RTSP stream, proxying "%s"', definition.upstream_url)
        _logger.info("\tplay via %s", url)
        registered.append(RegisteredStream(definition, handle, url))

    return registered


def _default_server_factory (port: int, auth_db: Optional[AuthDatabase]) -> ControlPlaneServer:
    from .gst_server import GstRtspControlServer

    return GstRtspControlServer(port, auth_db)


def _default_event_loop_factory () -> EventLoop:
    from .gst_server import GLibEventLoop

    return GLibEventLoop()


class ProxyOrchestrator:
    """Turns :class:`Settings` into a served set of proxied RTSP streams."""

    def __init__ (
        self,
        settings: Settings,
        server_factory: Optional[ServerFactory] = None,
        event_loop_factory: Optional[EventLoopFactory] = None,
        definition_loader: DefinitionLoader = load_stream_definitions,
    ) -> None:
        self._settings = settings
        self._server_factory = server_factory or _default_server_factory
        self._event_loop_factory = event_loop_factory or _default_event_loop_factory
        self._definition_loader = definition_loader
        self._running: Optional[RunningProxy] = None

    def __enter__ (self) -> "ProxyOrchestrator":
        return self

    def __exit__ (self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def settings (self) -> Settings:
        return self._settings

    @property
    def running (self) -> Optional[RunningProxy]:
        return self._running

    def startup (self) -> RunningProxy:
        if self._running is not None:
            raise RuntimeError("The proxy has already been started")

        settings = self._settings
        server = negotiate_server(settings.port, self._server_factory, AuthDatabase.from_settings(settings))

        try:
            definitions = self._definition_loader(settings.definition_file)
            streams = register_streams(server, settings, definitions)
        except Exception:
            server.close()
            raise

        http_tunnel_port = self._start_http_tunneling(server)

        self._running = RunningProxy(server=server, streams=tuple(streams), http_tunnel_port=http_tunnel_port)
        return self._running

    def run (self) -> None:
        if self._running is None:
            raise RuntimeError("startup() must complete before run()")

        loop = self._event_loop_factory()
        _logger.debug("Entering event loop with %d proxied stream(s)", len(self._running.streams))
        loop.run()

    def list_streams (self) -> List[RegisteredStream]:
        if self._running is None:
            return []
        return list(self._running.streams)

    def get_stream (self, name: str) -> RegisteredStream:
        for stream in self.list_streams():
            if stream.name == name:
                return stream
        raise KeyError(name)

    def close (self) -> None:
        if self._running is None:
            return

        running, self._running = self._running, None
        try:
            running.server.close()
        except Exception:  # pragma: no cover - shutdown best effort
            _logger.exception("Failed to close RTSP server cleanly")

    def _start_http_tunneling (self, server: ControlPlaneServer) -> Optional[int]:
        port = self._settings.http_tunnel_port
        if not port:
            return None

        try:
            server.enable_http_tunneling(port)
        except BindFailure as exc:
            _logger.warning("RTSP-over-HTTP tunneling is not available: %s", exc.diagnostic)
            return None

        _logger.info("(We use port %d for optional RTSP-over-HTTP tunneling.)", port)
        return port
