from __future__ import annotations
import asyncio
from contextlib import suppress
from typing import Any, Awaitable, Callable, Dict, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from bridge.auth import AUTH_COOKIE, Authenticator
from bridge.config import BridgeConfig, ws_url
from bridge.correlation import CorrelationTable
from bridge.errors import (
    AuthenticationError,
    BridgeConnectionError,
    BridgeError,
    ConnectionLost,
    NotConnected,
)
from bridge.events import BufferedEvent, EventBuffer
from bridge.reconnect import Reconnector, Sleep
from bridge.state import ConnectionState, Session
from shared import addresses
from shared.frames import FrameError, InboundFrame, create_request_frame
from shared.log import get_logger, log_frame

logger = get_logger(__name__)

SET_ACTIVE_PLACE = "sess:SetActivePlace"

ConnectFactory = Callable[..., Awaitable[Any]]


class BridgeClient:
    """
    Client for the gateway's request/response bus.

    Owns the single WebSocket, the table of pending requests, the buffer of
    unsolicited events and the reconnect driver. All state is mutated on
    the event loop that runs the receive loop.
    """

    def __init__(
        self,
        config: BridgeConfig,
        *,
        connect_factory: Optional[ConnectFactory] = None,
        sleep: Sleep = asyncio.sleep,
        authenticator: Optional[Authenticator] = None,
    ) -> None:
        self.config = config
        self._connect_factory: ConnectFactory = connect_factory or websockets.connect
        self._sleep = sleep
        self._authenticator = authenticator

        self._state = ConnectionState.DISCONNECTED
        self._base_url: Optional[str] = config.base_url or None
        self._token: Optional[str] = config.auth_token
        self._websocket: Optional[Any] = None
        self._recv_task: Optional[asyncio.Task] = None
        self._session: Optional[Session] = None
        self._active_place_id: Optional[str] = None
        self._intentional_close = False
        self._send_lock = asyncio.Lock()
        self._connect_lock = asyncio.Lock()
        self._ensure_lock = asyncio.Lock()

        self.pending = CorrelationTable(timeout=config.request_timeout)
        self.events = EventBuffer(capacity=config.event_buffer_size)
        self.reconnector = self._new_reconnector()

    # ---- properties ----

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> Optional[Session]:
        return self._session

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def active_place_id(self) -> Optional[str]:
        return self._active_place_id

    @property
    def place_destination(self) -> str:
        if not self._active_place_id:
            raise BridgeError("No active place set. Call set_active_place first.")
        return addresses.place(self._active_place_id)

    # ---- lifecycle ----

    async def login(self, username: Optional[str] = None, password: Optional[str] = None) -> str:
        """Authenticate against the configured base URL and remember the token"""
        if not self._base_url:
            raise AuthenticationError("No base URL configured")
        username = username or self.config.username
        password = password or self.config.password
        if not username or not password:
            raise AuthenticationError("Username and password are required")
        authenticator = self._authenticator or Authenticator(self._base_url, timeout=self.config.request_timeout)
        self._token = await authenticator.login(username, password)
        return self._token

    async def connect(self, base_url: Optional[str] = None, token: Optional[str] = None) -> Session:
        """
        Open the bus and wait for SessionCreated.

        Returns the current session without a new exchange when already open.
        Raises BridgeConnectionError if the socket cannot be opened or closes
        (or stays silent past the announcement timeout) before the session
        is announced.
        """
        async with self._connect_lock:
            if self._state is ConnectionState.OPEN and self._session is not None:
                return self._session

            auth_token = token or self._token
            if not auth_token:
                raise AuthenticationError("No auth token available. Call login() first.")
            base = base_url or self._base_url
            if not base:
                raise BridgeConnectionError("No base URL configured")

            self._base_url = base
            self._token = auth_token
            if self.reconnector.running:
                # explicit connect preempts the backoff schedule
                await self.reconnector.stop()
                self.reconnector = self._new_reconnector()
            elif self._intentional_close:
                # disconnect() halted the previous driver for good
                self.reconnector = self._new_reconnector()
            self._intentional_close = False

            return await self._open(fallback=ConnectionState.DISCONNECTED)

    async def ensure_connected(self) -> Session:
        """Log in if needed and connect; concurrent callers share one attempt"""
        async with self._ensure_lock:
            if self._state is ConnectionState.OPEN and self._session is not None:
                return self._session
            if not self._token:
                await self.login()
            return await self.connect()

    async def disconnect(self) -> None:
        """Close for good: no reconnects, pending requests fail. Idempotent."""
        self._intentional_close = True
        await self.reconnector.stop()
        self._state = ConnectionState.DISCONNECTED
        self._session = None

        websocket, self._websocket = self._websocket, None
        recv_task, self._recv_task = self._recv_task, None
        self.pending.fail_all(ConnectionLost("Client disconnected"))

        if websocket is not None:
            with suppress(WebSocketException, OSError):
                await websocket.close()
            logger.info("WebSocket closed by client")
        if recv_task is not None and recv_task is not asyncio.current_task():
            recv_task.cancel()
            with suppress(asyncio.CancelledError):
                await recv_task

    async def __aenter__(self) -> 'BridgeClient':
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.disconnect()

    # ---- requests ----

    async def send_request(self, destination: str, message_type: str,
                           attributes: Optional[Dict[str, Any]] = None) -> InboundFrame:
        """
        Send one request and wait for the frame carrying its correlation id.

        Raises NotConnected before sending unless the connection is open,
        RequestTimeout when no response arrives in time, and ConnectionLost
        when the socket closes first. Error frames are returned, not raised.
        """
        websocket = self._websocket
        if self._state is not ConnectionState.OPEN or websocket is None:
            raise NotConnected("WebSocket is not connected")

        frame = create_request_frame(destination, message_type, attributes)
        future = self.pending.register(frame.correlation_id, message_type)
        payload = frame.to_json()
        log_frame(logger, "debug", "Sending request", frame=frame.to_dict())
        try:
            async with self._send_lock:
                await websocket.send(payload)
        except (ConnectionClosed, OSError) as e:
            self.pending.discard(frame.correlation_id)
            if future.done() and not future.cancelled():
                # already failed by the close handler; mark it retrieved
                future.exception()
            raise ConnectionLost(f"WebSocket closed while sending {message_type}") from e
        except BaseException:
            self.pending.discard(frame.correlation_id)
            raise

        return await future

    async def set_active_place(self, place_id: str) -> InboundFrame:
        """Activate a place on the server and remember it for reconnects"""
        response = await self.send_request(addresses.SESSION_DESTINATION, SET_ACTIVE_PLACE, {"placeId": place_id})
        if not response.is_error:
            self._active_place_id = place_id
        return response

    def remember_active_place(self, place_id: Optional[str]) -> None:
        self._active_place_id = place_id

    def drain_events(self) -> List[BufferedEvent]:
        return self.events.drain()

    def peek_events(self) -> List[BufferedEvent]:
        return self.events.peek()

    # ---- connection internals ----

    def _new_reconnector(self) -> Reconnector:
        return Reconnector(
            self._reconnect_once,
            self._restore_active_place,
            delays=self.config.reconnect_delays,
            sleep=self._sleep,
        )

    async def _open(self, fallback: ConnectionState) -> Session:
        self._state = ConnectionState.CONNECTING
        url = ws_url(self._base_url or self.config.base_url)
        logger.debug("WebSocket connecting to %s", url)
        try:
            websocket = await self._connect_factory(
                url,
                additional_headers={"Cookie": f"{AUTH_COOKIE}={self._token}"},
                ping_interval=self.config.ping_interval,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._state = fallback
            raise BridgeConnectionError(f"Could not open WebSocket to {url}: {e}") from e

        logger.info("WebSocket connected")
        welcome: asyncio.Future[Session] = asyncio.get_running_loop().create_future()
        self._websocket = websocket
        self._recv_task = asyncio.create_task(self._recv_loop(websocket, welcome))

        try:
            session = await asyncio.wait_for(welcome, timeout=self.config.announcement_timeout)
        except asyncio.TimeoutError:
            await self._abandon(websocket, fallback)
            raise BridgeConnectionError(
                f"No session announcement within {self.config.announcement_timeout:g}s"
            ) from None
        except BridgeConnectionError:
            if not self._intentional_close:
                self._state = fallback
            raise
        except asyncio.CancelledError:
            await self._abandon(websocket, fallback)
            raise

        # disconnect() may have run between the announcement and this resumption
        if self._websocket is not websocket or self._intentional_close:
            raise BridgeConnectionError("Client disconnected before the session was established")
        return session

    async def _abandon(self, websocket: Any, fallback: ConnectionState) -> None:
        if self._websocket is websocket:
            self._websocket = None
            self._recv_task = None
            if not self._intentional_close:
                self._state = fallback
        with suppress(WebSocketException, OSError):
            await websocket.close()

    async def _recv_loop(self, websocket: Any, welcome: "asyncio.Future[Session]") -> None:
        reason = "WebSocket closed"
        try:
            async for raw in websocket:
                try:
                    self._dispatch(websocket, raw, welcome)
                except Exception as e:
                    logger.error("Failed to process inbound frame: %s", e)
        except ConnectionClosed as e:
            reason = f"WebSocket closed ({e})"
        except Exception as e:
            reason = f"WebSocket receive failed ({e})"
            logger.error("Error in receive loop: %s", e)
            with suppress(WebSocketException, OSError):
                await websocket.close()
        finally:
            logger.info("WebSocket closed (code=%s)", getattr(websocket, "close_code", None))
            self._on_transport_closed(websocket, welcome, reason)

    def _dispatch(self, websocket: Any, raw: str | bytes, welcome: "asyncio.Future[Session]") -> None:
        # Frames still queued on a socket that was closed or replaced are stale
        if websocket is not self._websocket or self._intentional_close:
            logger.debug("Dropping frame from a closed WebSocket")
            return

        try:
            frame = InboundFrame.from_json(raw)
        except FrameError as e:
            logger.debug("Dropping malformed frame: %s", e)
            return

        if frame.is_session_announcement() and not welcome.done():
            session = Session.from_attributes(frame.attributes)
            self._session = session
            self._state = ConnectionState.OPEN
            logger.info("Session created: personId=%s, %d place(s)", session.subject_id, len(session.places))
            welcome.set_result(session)
            return

        if not welcome.done():
            log_frame(logger, "debug", "Ignoring frame received before session announcement", frame=frame.raw)
            return

        if self.pending.resolve(frame.correlation_id, frame):
            return

        log_frame(logger, "debug", "Unmatched frame buffered as event", frame=frame.raw)
        self.events.append(BufferedEvent.from_frame(frame))

    def _on_transport_closed(self, websocket: Any, welcome: "asyncio.Future[Session]", reason: str) -> None:
        if not welcome.done():
            welcome.set_exception(BridgeConnectionError("WebSocket closed before SessionCreated"))

        if websocket is not self._websocket:
            return

        self._websocket = None
        self._recv_task = None
        was_open = self._state is ConnectionState.OPEN
        self.pending.fail_all(ConnectionLost(reason))
        self._session = None

        if was_open and not self._intentional_close and self._base_url and self._token:
            self._state = ConnectionState.RECONNECTING
            self.reconnector.start()

    async def _reconnect_once(self) -> Session:
        if self._intentional_close:
            raise BridgeConnectionError("Client disconnected")
        return await self._open(fallback=ConnectionState.RECONNECTING)

    async def _restore_active_place(self) -> None:
        place_id = self._active_place_id
        if not place_id:
            return
        logger.info("Reconnected, re-setting active place %s", place_id)
        response = await self.send_request(addresses.SESSION_DESTINATION, SET_ACTIVE_PLACE, {"placeId": place_id})
        if response.is_error:
            logger.warning("Failed to restore active place: %s %s", response.error_code, response.error_message)
            return
        logger.info("Active place restored after reconnect")

