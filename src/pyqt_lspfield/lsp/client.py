"""
Language-server client over a WebSocket.

The structured editor talks to its language server through
``LanguageServerClientABC``. ``WebSocketLanguageClient`` is the default
implementation: JSON-RPC 2.0 over ``QWebSocket``, driven entirely by Qt
signals on the GUI thread.

Lifecycle:
- The socket opens in the constructor.
- ``initialize`` is sent once connected; document notifications issued before
  the server answered are queued and flushed after ``initialized``.
- ``close`` sends ``shutdown``/``exit`` when connected and closes the socket.
  It is idempotent.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABCMeta, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

from PyQt6.QtCore import QObject, QUrl, pyqtSignal
from PyQt6.QtNetwork import QAbstractSocket
from PyQt6.QtWebSockets import QWebSocket

from .protocol import CompletionItem, Position, parse_completion_result

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Tuple[CompletionItem, ...]], None]


def connection_error_message(server_uri: str) -> str:
    return f"WebSocket connection to '{server_uri}' failed."


class _CombinedMeta(ABCMeta, type(QObject)):
    """Combined metaclass for ABC + PyQt6 QObject."""


class LanguageServerClientABC(QObject, metaclass=_CombinedMeta):
    """Connection to one language server.

    Signals:
        diagnostics_published: ``(uri, version, diagnostics)`` where
            ``version`` is ``None`` when the server did not send one and
            ``diagnostics`` is the raw LSP list.
        connection_failed: human readable error string.
    """

    diagnostics_published = pyqtSignal(str, object, list)
    connection_failed = pyqtSignal(str)

    @property
    @abstractmethod
    def trigger_characters(self) -> Tuple[str, ...]:
        """Completion trigger characters advertised by the server."""

    @abstractmethod
    def open_document(self, uri: str, language_id: str, version: int, text: str) -> None:
        """Announce a document to the server."""

    @abstractmethod
    def change_document(self, uri: str, version: int, text: str) -> None:
        """Replace the full text of an open document."""

    @abstractmethod
    def request_completion(self, uri: str, position: Position, callback: CompletionCallback) -> None:
        """Ask for completions at ``position``; ``callback`` runs on the GUI thread."""

    @abstractmethod
    def close(self) -> None:
        """Release the connection. Safe to call more than once."""

    @property
    @abstractmethod
    def is_closed(self) -> bool:
        """True once ``close`` ran."""


class WebSocketLanguageClient(LanguageServerClientABC):
    """JSON-RPC language-server client on a ``QWebSocket``."""

    def __init__(self, server_uri: str, root_uri: str, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.server_uri = server_uri
        self.root_uri = root_uri

        self._next_id = 1
        self._pending_requests: Dict[int, Callable[[Any], None]] = {}
        self._outbox: List[dict] = []
        self._initialized = False
        self._closed = False
        self._trigger_characters: Tuple[str, ...] = ()

        self._socket = QWebSocket()
        self._socket.connected.connect(self._on_connected)
        self._socket.disconnected.connect(self._on_disconnected)
        self._socket.textMessageReceived.connect(self._on_message)
        self._socket.errorOccurred.connect(self._on_socket_error)

        logger.info(f"[LSP_CLIENT] Connecting to {server_uri}")
        self._socket.open(QUrl(server_uri))

    @property
    def trigger_characters(self) -> Tuple[str, ...]:
        return self._trigger_characters

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # ---------------------------------------------------------------- documents

    def open_document(self, uri: str, language_id: str, version: int, text: str) -> None:
        self._notify("textDocument/didOpen", {
            "textDocument": {
                "uri": uri,
                "languageId": language_id,
                "version": version,
                "text": text,
            }
        })

    def change_document(self, uri: str, version: int, text: str) -> None:
        self._notify("textDocument/didChange", {
            "textDocument": {"uri": uri, "version": version},
            "contentChanges": [{"text": text}],
        })

    def request_completion(self, uri: str, position: Position, callback: CompletionCallback) -> None:
        if not self._initialized:
            return
        self._request(
            "textDocument/completion",
            {"textDocument": {"uri": uri}, "position": position.to_lsp()},
            lambda result: callback(parse_completion_result(result)),
        )

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._pending_requests.clear()
        self._outbox.clear()
        if self._socket.state() == QAbstractSocket.SocketState.ConnectedState:
            if self._initialized:
                self._send({"jsonrpc": "2.0", "id": self._take_id(), "method": "shutdown"})
                self._send({"jsonrpc": "2.0", "method": "exit"})
            self._socket.close()
        else:
            self._socket.abort()
        logger.info(f"[LSP_CLIENT] Closed connection to {self.server_uri}")

    # ---------------------------------------------------------------- transport

    def _take_id(self) -> int:
        request_id = self._next_id
        self._next_id += 1
        return request_id

    def _send(self, message: dict) -> None:
        self._socket.sendTextMessage(json.dumps(message))

    def _notify(self, method: str, params: dict) -> None:
        if self._closed:
            return
        message = {"jsonrpc": "2.0", "method": method, "params": params}
        if self._initialized:
            self._send(message)
        else:
            self._outbox.append(message)

    def _request(self, method: str, params: dict, on_result: Callable[[Any], None]) -> None:
        if self._closed:
            return
        request_id = self._take_id()
        self._pending_requests[request_id] = on_result
        self._send({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})

    def _on_connected(self) -> None:
        if self._closed:
            return
        logger.info(f"[LSP_CLIENT] Connected to {self.server_uri}")
        request_id = self._take_id()
        self._pending_requests[request_id] = self._on_initialize_result
        self._send({
            "jsonrpc": "2.0",
            "id": request_id,
            "method": "initialize",
            "params": {
                "processId": os.getpid(),
                "rootUri": self.root_uri,
                "capabilities": {
                    "textDocument": {
                        "synchronization": {"didSave": False, "dynamicRegistration": False},
                        "completion": {"completionItem": {"snippetSupport": False}},
                        "publishDiagnostics": {"versionSupport": True},
                    },
                },
                "workspaceFolders": None,
            },
        })

    def _on_initialize_result(self, result: Any) -> None:
        capabilities = (result or {}).get("capabilities", {}) if isinstance(result, dict) else {}
        completion = capabilities.get("completionProvider") or {}
        self._trigger_characters = tuple(completion.get("triggerCharacters") or ())
        self._send({"jsonrpc": "2.0", "method": "initialized", "params": {}})
        self._initialized = True
        outbox, self._outbox = self._outbox, []
        for message in outbox:
            self._send(message)
        logger.debug(f"[LSP_CLIENT] Initialized, flushed {len(outbox)} queued notifications")

    def _on_disconnected(self) -> None:
        self._initialized = False
        logger.debug(f"[LSP_CLIENT] Disconnected from {self.server_uri}")

    def _on_socket_error(self, error) -> None:
        if self._closed:
            return
        logger.warning(f"[LSP_CLIENT] Socket error on {self.server_uri}: {self._socket.errorString()}")
        self.connection_failed.emit(connection_error_message(self.server_uri))

    def _on_message(self, payload: str) -> None:
        if self._closed:
            return
        try:
            message = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"[LSP_CLIENT] Dropping malformed message: {e}")
            return
        if not isinstance(message, dict):
            return

        if "method" in message:
            if "id" in message:
                self._handle_server_request(message)
            else:
                self._handle_notification(message)
            return

        callback = self._pending_requests.pop(message.get("id"), None)
        if callback is None:
            return
        if "error" in message:
            logger.warning(f"[LSP_CLIENT] Request {message.get('id')} failed: {message['error']}")
            return
        callback(message.get("result"))

    def _handle_notification(self, message: dict) -> None:
        if message["method"] != "textDocument/publishDiagnostics":
            return
        params = message.get("params") or {}
        self.diagnostics_published.emit(
            str(params.get("uri", "")),
            params.get("version"),
            list(params.get("diagnostics") or []),
        )

    def _handle_server_request(self, message: dict) -> None:
        # workspace/configuration and friends: reply so the server does not stall
        self._send({"jsonrpc": "2.0", "id": message["id"], "result": None})


class ConnectionProbe(QObject):
    """Fire-and-forget reachability check for a language-server endpoint.

    Opens a socket and closes it as soon as it connects. On failure the
    callback receives the error string, unless ``cancel`` ran first.
    """

    def __init__(
        self,
        server_uri: str,
        on_error: Callable[[str], None],
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.server_uri = server_uri
        self._on_error = on_error
        self._cancelled = False
        self._socket = QWebSocket()
        self._socket.connected.connect(self._socket.close)
        self._socket.errorOccurred.connect(self._on_socket_error)
        self._socket.open(QUrl(server_uri))

    def cancel(self) -> None:
        self._cancelled = True
        self._socket.abort()

    def _on_socket_error(self, error) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        logger.warning(f"[LSP_CLIENT] Probe failed for {self.server_uri}: {self._socket.errorString()}")
        self._on_error(connection_error_message(self.server_uri))
