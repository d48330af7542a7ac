"""Signal transport for commandwire.

Connects to the Signal CLI REST API via WebSocket and delivers incoming
direct messages to subscribers (normally CommandService.handle_message).
Implements the MessageSource contract: the bot's own account is exposed
as current_user so its own messages can be ignored, and every
conversation is a SignalChannel that replies through /v2/send.

Key classes:
    SignalClient: Account lookup, receive loop, dispatch and sending.
    SignalChannel, SignalUser, SignalMessage: Transport-side values
        handed to the command service.
"""

import asyncio
import hashlib
import json
import time as _time
import unicodedata
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List, Optional, Set
from urllib.parse import urlparse

import aiohttp

from .events import MessageHandler
from .exceptions import SignalClientError
from .logging_config import get_logger
from .permissions import mask_identity

logger = get_logger("signal")

MAX_MESSAGE_LENGTH = 10000
DEDUP_WINDOW_SECONDS = 60

_BIDI_CHARS = frozenset('\u202a\u202b\u202c\u202d\u202e\u2066\u2067\u2068\u2069')


def sanitize_input(text: str) -> str:
    """Strip control and bidi override characters and enforce a length limit."""
    # Remove all control characters except newline, tab, carriage return
    text = ''.join(
        ch for ch in text
        if ch in ('\n', '\r', '\t') or not unicodedata.category(ch).startswith('C')
    )
    text = ''.join(ch for ch in text if ch not in _BIDI_CHARS)
    return text[:MAX_MESSAGE_LENGTH]


def log_task_exception(task: asyncio.Task):
    """Log exceptions from dispatch tasks instead of silently swallowing them."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc:
        logger.error("dispatch_task_failed", error=str(exc), exc_type=type(exc).__name__)


@dataclass(frozen=True)
class SignalUser:
    id: str


@dataclass(frozen=True)
class SignalChannel:
    """A one-to-one conversation, identified by the peer's number or UUID."""
    client: "SignalClient" = field(repr=False, compare=False)
    id: str

    async def send_message(self, text: str) -> None:
        await self.client.send_message(self.id, text)


@dataclass(frozen=True)
class SignalMessage:
    text: str
    user: Optional[SignalUser]
    channel: SignalChannel
    timestamp: int = 0


class SignalClient:
    """Signal CLI REST API client acting as a command MessageSource.

    Each inbound message is dispatched to every subscriber in its own
    task, so a slow command does not hold up the receive loop.

    Args:
        api_url: Base URL of the Signal CLI REST API.
        account: Account number to run as; looked up from the API when None.
    """

    def __init__(self, api_url: str, account: Optional[str] = None):
        self.api_url = api_url.rstrip("/")
        self.account = account
        self.session: Optional[aiohttp.ClientSession] = None
        self.running = False
        self._handlers: List[MessageHandler] = []
        self._tasks: Set[asyncio.Task] = set()
        self._processed_messages = OrderedDict()  # Dedup: msg_hash -> timestamp

    @classmethod
    def from_config(cls, config) -> "SignalClient":
        return cls(api_url=config.signal_api_url, account=config.signal_account)

    # --- MessageSource ---

    @property
    def current_user(self) -> Optional[SignalUser]:
        return SignalUser(self.account) if self.account else None

    def subscribe(self, handler: MessageHandler) -> None:
        self._handlers.append(handler)

    async def create_private_channel(self, user: SignalUser) -> SignalChannel:
        return SignalChannel(self, user.id)

    # --- Lifecycle ---

    async def start(self):
        """Open the HTTP session and resolve the account."""
        self.session = aiohttp.ClientSession()
        self.running = True

        # Warn if non-localhost Signal API is not using HTTPS
        parsed = urlparse(self.api_url)
        if (
            parsed.hostname not in ("127.0.0.1", "localhost", "::1")
            and parsed.scheme != "https"
        ):
            logger.warning(
                "insecure_signal_api_url", url=self.api_url,
                msg="Non-localhost Signal API should use HTTPS",
            )

        if not self.account:
            await self._get_account()
        logger.info("signal_client_started", account=mask_identity(self.account))

    async def stop(self):
        """Wait for in-flight dispatches, then close the session."""
        if not self.running:
            return
        self.running = False
        await self.drain()
        if self.session:
            await self.session.close()
        logger.info("signal_client_stopped")

    async def drain(self):
        """Wait until every in-flight dispatch task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _get_account(self):
        """Get the registered Signal account with retry."""
        max_attempts = 12
        base_delay = 5
        max_delay = 15

        for attempt in range(1, max_attempts + 1):
            try:
                url = f"{self.api_url}/v1/accounts"
                async with self.session.get(url, timeout=aiohttp.ClientTimeout(total=10)) as resp:
                    if resp.status == 200:
                        accounts = await resp.json()
                        if not accounts:
                            raise SignalClientError("No Signal accounts registered")
                        acct = accounts[0]
                        self.account = acct if isinstance(acct, str) else acct.get("number")
                        logger.info("account_found", account=mask_identity(self.account))
                        return
                    logger.warning("account_request_failed", status=resp.status)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.warning(
                    "account_request_error", error=str(e), attempt=attempt,
                )
            if attempt < max_attempts:
                await asyncio.sleep(min(base_delay * attempt, max_delay))

        raise SignalClientError(
            "Could not resolve Signal account", attempts=max_attempts
        )

    # --- Sending ---

    async def send_message(self, recipient: str, message: str):
        """Send a message via Signal API. Failures are logged, not raised."""
        payload = {
            "message": message,
            "number": self.account,
            "recipients": [recipient],
        }
        try:
            url = f"{self.api_url}/v2/send"
            async with self.session.post(url, json=payload) as resp:
                if resp.status != 201:
                    body = await resp.text()
                    logger.warning("send_failed", status=resp.status, body=body[:200])
        except aiohttp.ClientError as e:
            logger.error("send_error", error=str(e))

    # --- Receiving ---

    async def poll_messages(self):
        """Connect via WebSocket to receive messages (json-rpc mode)."""
        if not self.account:
            raise SignalClientError("No account for polling")

        ws_base = self.api_url.replace(
            "http://", "ws://"
        ).replace("https://", "wss://")
        ws_url = f"{ws_base}/v1/receive/{self.account}"

        reconnect_delay = 5
        MAX_RECONNECT_DELAY = 300

        while self.running:
            try:
                logger.info("websocket_connecting", url=ws_url)
                async with self.session.ws_connect(ws_url, heartbeat=30) as ws:
                    logger.info("websocket_connected")
                    reconnect_delay = 5
                    async for msg in ws:
                        if msg.type == aiohttp.WSMsgType.TEXT:
                            try:
                                data = json.loads(msg.data)
                            except json.JSONDecodeError:
                                logger.warning("invalid_json", data=msg.data[:100])
                                continue
                            self._handle_signal_message(data)
                        elif msg.type == aiohttp.WSMsgType.ERROR:
                            logger.error("websocket_error", error=str(ws.exception()))
                            break
                        elif msg.type == aiohttp.WSMsgType.CLOSED:
                            logger.info("websocket_closed")
                            break

            except asyncio.CancelledError:
                break
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                logger.error("websocket_exception", error=str(e))
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * 2, MAX_RECONNECT_DELAY)

    def _is_duplicate(self, timestamp: int, text: str) -> bool:
        msg_hash = hashlib.sha256(f"{timestamp}:{text}".encode()).hexdigest()
        if msg_hash in self._processed_messages:
            return True
        now = _time.time()
        self._processed_messages[msg_hash] = now

        cutoff = now - DEDUP_WINDOW_SECONDS
        while self._processed_messages:
            oldest_key, oldest_time = next(iter(self._processed_messages.items()))
            if oldest_time < cutoff:
                self._processed_messages.pop(oldest_key)
            else:
                break
        return False

    def _parse_envelope(self, msg: dict) -> Optional[SignalMessage]:
        """Turn a received envelope into a SignalMessage, or None to skip it.

        Messages the account sent from another device arrive as sync
        messages; they are attributed to the account itself.
        """
        envelope = msg.get("envelope", {})
        source = (
            envelope.get("source")
            or envelope.get("sourceNumber")
            or envelope.get("sourceUuid")
        )
        text = None
        peer = source

        data_message = envelope.get("dataMessage")
        if data_message:
            if data_message.get("groupInfo"):
                logger.debug("group_message_skipped")
                return None
            text = data_message.get("message")

        sync_message = envelope.get("syncMessage")
        if sync_message and not text:
            sent_message = sync_message.get("sentMessage") or {}
            if sent_message.get("groupInfo"):
                return None
            text = sent_message.get("message")
            peer = (
                sent_message.get("destination")
                or sent_message.get("destinationNumber")
                or self.account
            )
            source = self.account

        if not text or not text.strip() or not source or not peer:
            return None

        text = sanitize_input(text)
        timestamp = envelope.get("timestamp", 0)
        if self._is_duplicate(timestamp, text):
            logger.debug("duplicate_message_skipped", timestamp=timestamp)
            return None

        return SignalMessage(
            text=text,
            user=SignalUser(source),
            channel=SignalChannel(self, peer),
            timestamp=timestamp,
        )

    def _handle_signal_message(self, msg: dict) -> Optional[SignalMessage]:
        """Parse one API payload and dispatch it to every subscriber."""
        try:
            message = self._parse_envelope(msg)
        except (AttributeError, TypeError) as e:
            logger.error("message_parse_error", error=str(e), msg=str(msg)[:200])
            return None
        if message is None:
            return None

        logger.info(
            "message_received",
            source=mask_identity(message.user.id),
            length=len(message.text),
        )
        for handler in self._handlers:
            task = asyncio.create_task(handler(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            task.add_done_callback(log_task_exception)
        return message

    async def run(self):
        """Start, poll messages until stopped, then stop."""
        await self.start()
        try:
            await self.poll_messages()
        finally:
            await self.stop()
