"""Single-shot HTTP recognition with client-credentials bearer tokens."""

import base64
import logging
from typing import Optional

import httpx

from ..audio.buffer import AudioBuffer
from ..config import BatchConfig
from ..errors import AuthError, BackendError, NetworkError
from .credentials import TokenCache
from .types import BackendDescriptor, Credential, TranscriptionResult, language_tag

logger = logging.getLogger(__name__)


class CloudBatchBackend:
    """HTTP request/response recognition backend.

    Meant to be long-lived: the bearer token fetched on the first call is
    reused by later calls until it is about to expire.
    """

    descriptor = BackendDescriptor(name="cloud_batch", capability="batch")

    def __init__(
        self,
        credential: Credential,
        config: Optional[BatchConfig] = None,
        language: str = "zh",
        http: Optional[httpx.Client] = None,
    ):
        self.credential = credential
        self.config = config or BatchConfig()
        self.language = language
        self.token_cache = TokenCache(refresh_margin=self.config.token_refresh_margin)
        self._http = http

    def _get_http(self) -> httpx.Client:
        """Lazy-init HTTP client with connection pooling."""
        if self._http is None:
            self._http = httpx.Client(timeout=self.config.timeout)
        return self._http

    def get_token(self) -> str:
        """Return a valid bearer token, fetching a new one only when stale."""
        token = self.token_cache.get()
        if token is not None:
            return token

        with self.token_cache.lock:
            # Another thread may have refreshed while we waited.
            token = self.token_cache.get()
            if token is not None:
                return token
            token, expires_in = self._fetch_token()
            self.token_cache.store(token, expires_in)
            return token

    def _fetch_token(self) -> tuple[str, float]:
        logger.info("Fetching access token")
        params = {
            "grant_type": "client_credentials",
            "client_id": self.credential.api_key,
            "client_secret": self.credential.api_secret,
        }
        try:
            response = self._get_http().post(self.config.token_url, params=params)
        except httpx.HTTPError as e:
            raise NetworkError(f"Token request failed: {e}") from e

        if not response.is_success:
            raise AuthError(f"Token request rejected with HTTP {response.status_code}")

        try:
            data = response.json()
            return data["access_token"], float(data.get("expires_in", 0))
        except (ValueError, KeyError, TypeError) as e:
            raise AuthError(f"Malformed token response: {e}") from e

    def transcribe(self, audio: AudioBuffer) -> TranscriptionResult:
        """Recognize a complete recording with one HTTP request."""
        token = self.get_token()

        wav_bytes = audio.to_wav_bytes()
        request = {
            "format": "wav",
            "rate": audio.sample_rate,
            "channel": audio.channels,
            "cuid": self.config.cuid,
            "token": token,
            "speech": base64.b64encode(wav_bytes).decode("ascii"),
            "len": len(wav_bytes),
        }

        logger.info(f"Sending {audio.duration:.2f}s of audio ({len(wav_bytes)} bytes)")
        try:
            response = self._get_http().post(self.config.api_url, json=request)
        except httpx.HTTPError as e:
            raise NetworkError(f"Recognition request failed: {e}") from e

        try:
            data = response.json()
            err_no = int(data["err_no"])
            err_msg = data.get("err_msg", "")
            pieces = data.get("result") or []
        except (ValueError, KeyError, TypeError) as e:
            raise BackendError(f"Unparseable recognition response: {e}") from e

        if err_no != 0:
            raise BackendError(err_msg or "Recognition failed", code=err_no)

        text = "".join(str(piece) for piece in pieces)
        logger.info(f"Batch recognition complete: {len(text)} characters")

        return TranscriptionResult.untimed(
            text,
            language=language_tag(self.language),
            backend=self.descriptor,
        )

    def close(self) -> None:
        """Close HTTP client."""
        if self._http is not None:
            self._http.close()
            self._http = None
