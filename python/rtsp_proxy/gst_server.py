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

GStreamer backed collaborators for :class:`~rtsp_proxy.orchestrator.ProxyOrchestrator`.

Runtime expectations:

* GStreamer 1.16+ with the ``gst-rtsp-server`` library and its GObject
  introspection typelib (``GstRtspServer-1.0``).
* PyGObject (``gi``) to reach both from Python.

Each proxied stream is a shared :class:`GstRtspServer.RTSPMediaFactoryURI`
mounted at ``/<name>``, so every client of that stream rides on one upstream
connection. The URL helpers at the bottom of this module have no GStreamer
dependency and are safe to use anywhere.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging
import signal
import socket
from typing import Any, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from .errors import BindFailure, ServerShutdownError, SessionCreationError
from .orchestrator import AuthDatabase
from .settings import DEFAULT_RTSP_PORT, Credentials, Verbosity

try:  # pragma: no cover - optional dependency handled lazily
    import gi

    gi.require_version("Gst", "1.0")
    gi.require_version("GstRtspServer", "1.0")
    from gi.repository import GLib, Gst, GstRtspServer
except (ImportError, ValueError):  # pragma: no cover - exercised in tests via dependency injection
    GLib = None  # type: ignore
    Gst = None  # type: ignore
    GstRtspServer = None  # type: ignore

__all__ = [
    "GLibEventLoop",
    "GstRtspControlServer",
    "ProxySession",
    "ProxySessionHandle",
    "build_upstream_uri",
    "format_playable_url",
]

_logger = logging.getLogger(__name__)

_MEDIA_FACTORY_ROLE = "media.factory.role"


@dataclass(frozen=True, slots=True)
class ProxySession:
    name: str
    upstream_url: str
    factory: Any


@dataclass(frozen=True, slots=True)
class ProxySessionHandle:
    name: str
    path: str
    session: ProxySession


def _require_gstreamer () -> None:
    if GstRtspServer is None:  # pragma: no cover - executed only in production without injection
        raise ImportError("GStreamer RTSP server bindings are unavailable; install PyGObject and the GstRtspServer-1.0 typelib")


def _build_auth (auth_db: AuthDatabase) -> Any:
    auth = GstRtspServer.RTSPAuth()
    auth.set_realm(auth_db.realm)
    for username, password in auth_db.users.items():
        token = GstRtspServer.RTSPToken()
        token.set_string(_MEDIA_FACTORY_ROLE, username)
        auth.add_basic(GstRtspServer.RTSPAuth.make_basic(username, password), token)
    return auth


def _build_permissions (auth_db: AuthDatabase) -> Any:
    permissions = GstRtspServer.RTSPPermissions()
    for username in auth_db.users:
        permissions.add_permission_for_role(username, "media.factory.access", True)
        permissions.add_permission_for_role(username, "media.factory.construct", True)
    return permissions


class GstRtspControlServer:
    """Concrete control-plane server built on :mod:`GstRtspServer`.

    Construction binds the listening socket immediately so port problems
    surface as :class:`~rtsp_proxy.errors.BindFailure` while the orchestrator
    is still negotiating.
    """

    def __init__ (self, port: int, auth_db: Optional[AuthDatabase] = None, host: Optional[str] = None) -> None:
        _require_gstreamer()
        Gst.init(None)

        self._auth_db = auth_db
        self._auth = _build_auth(auth_db) if auth_db is not None else None
        self._sources: List[Any] = []
        self._closed = False

        self._server = self._listen(port, mounts=None)
        self._mounts = self._server.get_mount_points()
        self.port = int(self._server.get_bound_port())
        self._host = host or _our_ip_address()

    def _listen (self, port: int, mounts: Any) -> Any:
        server = GstRtspServer.RTSPServer.new()
        server.set_service(str(port))
        if mounts is not None:
            server.set_mount_points(mounts)
        if self._auth is not None:
            server.set_auth(self._auth)

        try:
            source = server.create_source(None)
        except GLib.Error as exc:
            raise BindFailure(port, exc.message) from exc

        source.attach(None)
        self._sources.append(source)
        return server

    def create_proxy_session (
        self,
        upstream_url: str,
        name: str,
        credentials: Optional[Credentials],
        tunnel_port: int,
        verbosity: Verbosity,
    ) -> ProxySession:
        if self._closed:
            raise ServerShutdownError("RTSP server has been closed")

        uri = build_upstream_uri(upstream_url, credentials, tunnel_port)
        if not Gst.uri_is_valid(uri):
            raise SessionCreationError(f"'{upstream_url}' is not a valid URI")

        factory = GstRtspServer.RTSPMediaFactoryURI.new()
        factory.set_uri(uri)
        factory.set_shared(True)
        if self._auth_db is not None:
            factory.set_permissions(_build_permissions(self._auth_db))
        if verbosity >= Verbosity.VERBOSE:
            factory.connect("media-configure", self._on_media_configure, name)
        if verbosity >= Verbosity.VERY_VERBOSE:
            _logger.debug("Proxy session '%s' will pull from %s", name, uri)

        return ProxySession(name=name, upstream_url=upstream_url, factory=factory)

    def register (self, session: ProxySession) -> ProxySessionHandle:
        if self._closed:
            raise ServerShutdownError("RTSP server has been closed")

        path = f"/{session.name}"
        self._mounts.add_factory(path, session.factory)
        return ProxySessionHandle(name=session.name, path=path, session=session)

    def playable_url (self, handle: ProxySessionHandle) -> str:
        return format_playable_url(self._host, self.port, handle.name)

    def enable_http_tunneling (self, port: int) -> None:
        # gst-rtsp-server accepts tunneled clients on every listener; a second
        # listener sharing the mount points is all HTTP tunneling needs.
        self._listen(port, self._mounts)

    def close (self) -> None:
        if self._closed:
            return

        self._closed = True
        for source in self._sources:
            source.destroy()
        self._sources.clear()

    def _on_media_configure (self, factory: Any, media: Any, name: str) -> None:
        _logger.info("Client session started on proxied stream '%s'", name)

    def __repr__ (self) -> str:
        return f"GstRtspControlServer(host={self._host!r}, port={self.port!r})"


class GLibEventLoop:
    """Runs the default GLib main context until SIGINT or SIGTERM arrives."""

    def __init__ (self) -> None:
        _require_gstreamer()
        self._loop = GLib.MainLoop()

    def run (self) -> None:
        handler_ids = [
            GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signum, self._handle_signal, signum)
            for signum in (signal.SIGINT, signal.SIGTERM)
        ]
        try:
            self._loop.run()
        finally:
            for handler_id in handler_ids:
                GLib.source_remove(handler_id)

    def quit (self) -> None:
        self._loop.quit()

    def _handle_signal (self, signum: int) -> bool:
        _logger.info("Received signal %s; stopping", signum)
        self._loop.quit()
        return GLib.SOURCE_CONTINUE


def _our_ip_address () -> str:
    probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # Connecting a UDP socket sends nothing; it only selects the outbound interface.
        probe.connect(("192.0.2.1", 9))
        return probe.getsockname()[0]
    except OSError:
        _logger.debug("Unable to determine our IP address; using loopback", exc_info=True)
        return "127.0.0.1"
    finally:
        probe.close()


def build_upstream_uri (upstream_url: str, credentials: Optional[Credentials] = None, tunnel_port: int = 0) -> str:
    """Return the URI a proxy session should pull *upstream_url* from.

    *credentials* are embedded unless the URL already carries its own user
    info. A non-zero *tunnel_port* switches ``rtsp://`` locations to
    GStreamer's ``rtsph://`` RTSP-over-HTTP scheme on that port.
    """

    parts = urlsplit(upstream_url)
    if not parts.hostname:
        return upstream_url

    userinfo, _, hostport = parts.netloc.rpartition("@")
    if credentials is not None and not userinfo:
        userinfo = f"{quote(credentials.username, safe='')}:{quote(credentials.password, safe='')}"

    scheme = parts.scheme
    if tunnel_port and scheme == "rtsp":
        host = parts.hostname
        hostport = f"[{host}]:{tunnel_port}" if ":" in host else f"{host}:{tunnel_port}"
        scheme = "rtsph"

    netloc = f"{userinfo}@{hostport}" if userinfo else hostport
    return urlunsplit((scheme, netloc, parts.path, parts.query, parts.fragment))


def format_playable_url (host: str, port: int, name: str) -> str:
    """Build ``rtsp://host[:port]/name``, leaving out the standard port 554."""

    if ":" in host:
        host = f"[{host}]"
    authority = host if port == DEFAULT_RTSP_PORT else f"{host}:{port}"
    return f"rtsp://{authority}/{quote(name)}"
