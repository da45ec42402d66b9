"""Streaming recognition over a signed WebSocket connection.

Protocol flow:
1. Connect with HMAC-SHA256 authorization passed as URL query parameters
2. Send audio as JSON frames of 1280 bytes (~40ms), paced like real time
3. Receive recognition results while sending
4. Finish with a LAST frame and wait for the final result
"""

import asyncio
import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field
from email.utils import formatdate
from enum import IntEnum
from typing import Any, Optional
from urllib.parse import quote, urlencode

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..audio.buffer import AudioBuffer
from ..config import StreamConfig
from ..errors import AuthError, BackendError, NetworkError, StreamTimeoutError, VoiceError
from .types import BackendDescriptor, Credential, TranscriptionResult, language_tag

logger = logging.getLogger(__name__)

AUDIO_FORMAT = "audio/L16;rate=16000"
AUDIO_ENCODING = "raw"


class FramePosition(IntEnum):
    """Value of the ``status`` field in outgoing and incoming frames."""
    FIRST = 0
    CONTINUE = 1
    LAST = 2


@dataclass(frozen=True)
class FrameEnvelope:
    """One outgoing unit of the audio stream."""
    index: int
    position: FramePosition
    chunk: bytes

    def to_message(self, app_id: str, business: dict[str, Any]) -> dict[str, Any]:
        message: dict[str, Any] = {"common": {"app_id": app_id}}
        if self.position == FramePosition.FIRST:
            message["business"] = business
        message["data"] = {
            "status": int(self.position),
            "format": AUDIO_FORMAT,
            "encoding": AUDIO_ENCODING,
            "audio": base64.b64encode(self.chunk).decode("ascii"),
        }
        return message


def build_frames(pcm: bytes, frame_size: int = 1280) -> list[FrameEnvelope]:
    """Split raw PCM into FIRST, CONTINUE... and LAST frames.

    A single-chunk stream yields only a FIRST frame.
    """
    chunks = [pcm[i:i + frame_size] for i in range(0, len(pcm), frame_size)]
    last = len(chunks) - 1
    frames = []
    for i, chunk in enumerate(chunks):
        if i == 0:
            position = FramePosition.FIRST
        elif i == last:
            position = FramePosition.LAST
        else:
            position = FramePosition.CONTINUE
        frames.append(FrameEnvelope(index=i, position=position, chunk=chunk))
    return frames


@dataclass
class StreamResponse:
    """One parsed message from the service."""
    code: int
    message: Optional[str] = None
    sid: Optional[str] = None
    status: Optional[int] = None
    words: list[str] = field(default_factory=list)

    @property
    def is_last(self) -> bool:
        return self.status == FramePosition.LAST

    @classmethod
    def parse(cls, raw: str) -> "StreamResponse":
        payload = json.loads(raw)
        data = payload.get("data") or {}
        words = []
        result = data.get("result") or {}
        for word in result.get("ws") or []:
            for candidate in word.get("cw") or []:
                words.append(candidate["w"])
        status = data.get("status")
        return cls(
            code=int(payload["code"]),
            message=payload.get("message"),
            sid=payload.get("sid"),
            status=int(status) if status is not None else None,
            words=words,
        )


class CloudStreamBackend:
    """Bidirectional streaming recognition backend."""

    descriptor = BackendDescriptor(name="cloud_stream", capability="streaming")

    def __init__(
        self,
        credential: Credential,
        config: Optional[StreamConfig] = None,
        language: str = "zh_cn",
    ):
        self.credential = credential
        self.config = config or StreamConfig()
        self.language = language

    @property
    def business_params(self) -> dict[str, Any]:
        """One-time parameters carried by the FIRST frame."""
        params: dict[str, Any] = {
            "language": self.language,
            "domain": self.config.domain,
            "accent": self.config.accent,
            "vad_eos": self.config.vad_eos,
        }
        if self.config.dwa is not None:
            params["dwa"] = self.config.dwa
        if self.config.ptt is not None:
            params["ptt"] = self.config.ptt
        return params

    def build_auth_url(self, date: Optional[str] = None) -> str:
        """Build the signed connection URL.

        Args:
            date: RFC1123 timestamp, defaults to now

        Returns:
            wss:// URL with authorization, date and host query parameters
        """
        if not self.credential.api_key or not self.credential.api_secret:
            raise AuthError("Streaming backend requires an API key and secret")

        host = self.config.host
        path = self.config.path
        if date is None:
            date = formatdate(usegmt=True)

        signature_origin = f"host: {host}\ndate: {date}\nGET {path} HTTP/1.1"
        digest = hmac.new(
            self.credential.api_secret.encode("utf-8"),
            signature_origin.encode("utf-8"),
            hashlib.sha256,
        ).digest()
        signature = base64.b64encode(digest).decode("ascii")

        authorization_origin = (
            f'api_key="{self.credential.api_key}", algorithm="hmac-sha256", '
            f'headers="host date request-line", signature="{signature}"'
        )
        authorization = base64.b64encode(authorization_origin.encode("utf-8")).decode("ascii")

        query = urlencode(
            {"authorization": authorization, "date": date, "host": host},
            quote_via=quote,
        )
        return f"wss://{host}{path}?{query}"

    async def _receive_loop(self, ws) -> list[StreamResponse]:
        """Collect responses until the LAST status or the peer closes."""
        responses: list[StreamResponse] = []
        try:
            async for message in ws:
                if isinstance(message, bytes):
                    logger.debug("Ignoring binary message")
                    continue
                logger.debug(f"Received: {message}")
                try:
                    response = StreamResponse.parse(message)
                except (ValueError, KeyError, TypeError, AttributeError) as e:
                    logger.error(f"Failed to parse response: {e}")
                    continue

                responses.append(response)
                if response.is_last:
                    logger.info("Received final recognition result")
                    break
        except ConnectionClosed as e:
            logger.info(f"WebSocket closed: {e}")
        return responses

    async def _send_frames(self, ws, frames: list[FrameEnvelope]) -> Optional[VoiceError]:
        """Send every frame in order, pausing between frames.

        Returns the send error instead of raising so that responses already
        received can still be used.
        """
        app_id = self.credential.app_id or ""
        business = self.business_params
        interval = self.config.frame_interval_ms / 1000
        last_index = len(frames) - 1

        for frame in frames:
            payload = json.dumps(frame.to_message(app_id, business))
            try:
                await ws.send(payload)
            except (WebSocketException, OSError) as e:
                logger.error(f"Failed to send frame {frame.index}: {e}")
                return NetworkError(f"Failed to send audio: {e}")

            if frame.index < last_index:
                await asyncio.sleep(interval)

        return None

    async def transcribe_async(self, audio: AudioBuffer) -> TranscriptionResult:
        """Stream a recording and wait for the final recognition result."""
        if not self.credential.app_id:
            raise AuthError("Streaming backend requires an app id")

        url = self.build_auth_url()
        frames = build_frames(audio.to_pcm_bytes(), self.config.frame_size)

        logger.info("Connecting to streaming ASR...")
        try:
            ws = await websockets.connect(url, open_timeout=self.config.timeout)
        except (WebSocketException, OSError, asyncio.TimeoutError) as e:
            raise NetworkError(f"WebSocket connection failed: {e}") from e

        logger.info(f"Sending {len(frames)} frames ({len(audio) * 2} bytes)")
        receive_task = asyncio.create_task(self._receive_loop(ws))
        try:
            send_error = await self._send_frames(ws, frames)
            try:
                responses = await asyncio.wait_for(receive_task, timeout=self.config.timeout)
            except asyncio.TimeoutError as e:
                raise StreamTimeoutError() from e
        finally:
            if not receive_task.done():
                receive_task.cancel()
            await ws.close()

        if send_error is not None:
            if not responses:
                raise send_error
            logger.warning(f"Send failed but {len(responses)} responses were received")

        for response in responses:
            if response.code != 0:
                raise BackendError(response.message or "Recognition failed", code=response.code)

        text = "".join(word for response in responses for word in response.words)
        logger.info(f"Streaming recognition complete: {len(text)} characters")

        return TranscriptionResult.untimed(
            text,
            language=language_tag(self.language),
            backend=self.descriptor,
        )

    def transcribe(self, audio: AudioBuffer) -> TranscriptionResult:
        """Blocking wrapper around transcribe_async."""
        return asyncio.run(self.transcribe_async(audio))
