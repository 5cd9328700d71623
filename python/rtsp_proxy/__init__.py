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

RTSP proxy server orchestration.

The package reads a stream definition file, exposes every upstream stream it
lists under a local name on an RTSP server and keeps serving until the process
is told to stop. The modules here focus on:

* Resolving the ``[-v|-V] [-p <port>] <definition-file>`` command line into an
  immutable :class:`~rtsp_proxy.settings.Settings` value.
* Parsing the definition file lazily, one
  :class:`~rtsp_proxy.definitions.StreamDefinition` per meaningful line.
* Negotiating the listening port (falling back once to 554) and registering a
  proxy session per definition, reporting the URL clients should play.

Runtime expectations:

* GStreamer with ``gst-rtsp-server`` and PyGObject provide the default server,
  proxy sessions and event loop (:mod:`rtsp_proxy.gst_server`).
* Flask is only needed for the optional REST status server.

The top-level API re-exports :class:`~rtsp_proxy.orchestrator.ProxyOrchestrator`,
:class:`~rtsp_proxy.settings.Settings` and
:class:`~rtsp_proxy.definitions.StreamDefinition` for convenience.
"""

from .definitions import StreamDefinition
from .orchestrator import ProxyOrchestrator
from .settings import Settings

__all__ = ["ProxyOrchestrator", "Settings", "StreamDefinition"]
