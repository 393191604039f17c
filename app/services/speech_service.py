"""Voice-note decoding: provider media -> 16 kHz mono WAV -> transcript."""

import asyncio
import os
import tempfile
import time
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from app.errors import (
    DependencyUnavailable,
    NoSpeech,
    ProviderRejected,
    ProviderTimeout,
    TranscodeFailed,
    ValidationFailed,
)
from app.logging_config import get_logger
from app.services.whatsapp_service import WhatsAppClient

logger = get_logger("speech_service")

MIN_AUDIO_BYTES = 100
SAMPLE_RATE = 16000
INITIAL_SILENCE_TIMEOUT_MS = 60000
END_SILENCE_TIMEOUT_MS = 3000
RETRYABLE_ERRORS = (TranscodeFailed, ProviderTimeout, ProviderRejected)


class FfmpegTranscoder:
    """Transcode arbitrary audio (usually OGG/Opus) to 16-bit PCM WAV with ffmpeg."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", timeout_seconds: float = 15.0):
        self.ffmpeg_path = ffmpeg_path
        self.timeout_seconds = timeout_seconds

    def command(self, source: str, target: str) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-loglevel",
            "error",
            "-i",
            source,
            "-acodec",
            "pcm_s16le",
            "-ar",
            str(SAMPLE_RATE),
            "-ac",
            "1",
            "-f",
            "wav",
            target,
        ]

    async def to_wav(self, audio: bytes) -> bytes:
        # Scratch files live only inside this directory and are removed on every path.
        with tempfile.TemporaryDirectory(prefix="shiftline-audio-") as workdir:
            source = os.path.join(workdir, "input.ogg")
            target = os.path.join(workdir, "output.wav")
            try:
                with open(source, "wb") as handle:
                    handle.write(audio)
            except OSError as exc:
                raise TranscodeFailed(f"Could not stage audio: {exc}") from exc

            try:
                process = await asyncio.create_subprocess_exec(
                    *self.command(source, target),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as exc:
                raise DependencyUnavailable("ffmpeg is not installed") from exc

            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout_seconds)
            except asyncio.TimeoutError as exc:
                raise ProviderTimeout("Transcoding timed out") from exc
            finally:
                if process.returncode is None:
                    process.kill()
                    await process.wait()

            if process.returncode != 0 or not os.path.exists(target):
                detail = (stderr or b"").decode("utf-8", errors="replace")[:300]
                raise TranscodeFailed(f"ffmpeg exited with {process.returncode}: {detail}")

            try:
                with open(target, "rb") as handle:
                    return handle.read()
            except OSError as exc:
                raise TranscodeFailed(f"Could not read transcoded audio: {exc}") from exc


class AzureSpeechRecognizer:
    """Azure Speech short-audio REST recognition."""

    def __init__(
        self,
        subscription_key: Optional[str],
        region: Optional[str],
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.subscription_key = subscription_key
        self.region = region
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def url(self) -> str:
        return (
            f"https://{self.region}.stt.speech.microsoft.com"
            "/speech/recognition/conversation/cognitiveservices/v1"
        )

    async def recognize(self, wav: bytes, language: str = "en-US") -> str:
        if not (self.subscription_key and self.region):
            raise DependencyUnavailable("Azure Speech is not configured")

        params = {
            "language": language,
            "format": "simple",
            "initialSilenceTimeoutMs": INITIAL_SILENCE_TIMEOUT_MS,
            "endSilenceTimeoutMs": END_SILENCE_TIMEOUT_MS,
        }
        headers = {
            "Ocp-Apim-Subscription-Key": self.subscription_key,
            "Content-Type": f"audio/wav; codecs=audio/pcm; samplerate={SAMPLE_RATE}",
            "Accept": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(self.url, params=params, headers=headers, content=wav)
        except httpx.TimeoutException as exc:
            raise ProviderTimeout("Speech recognition timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderRejected(f"Speech transport error: {exc}") from exc

        if response.status_code != 200:
            raise ProviderRejected(f"Speech API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ProviderRejected("Speech API returned an unreadable body") from exc
        status = data.get("RecognitionStatus")
        text = (data.get("DisplayText") or "").strip()
        if status == "Success" and text:
            return text
        if status in {"NoMatch", "InitialSilenceTimeout", "BabbleTimeout"} or status == "Success":
            raise NoSpeech("No speech could be recognized")
        raise ProviderRejected(f"Speech recognition canceled: {status}")


class MediaDecoder:
    def __init__(
        self,
        whatsapp: WhatsAppClient,
        recognizer: AzureSpeechRecognizer,
        transcoder: FfmpegTranscoder,
        default_language: str = "en-US",
        retries: int = 2,
        backoff_seconds: Sequence[float] = (1.0, 2.0),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.whatsapp = whatsapp
        self.recognizer = recognizer
        self.transcoder = transcoder
        self.default_language = default_language
        self.retries = retries
        self.backoff_seconds = list(backoff_seconds)
        self._sleep = sleep

    async def decode(self, media_id: str, language: Optional[str] = None) -> str:
        """Fetch a voice note by provider media id and return its transcript."""
        media_url = await self.whatsapp.get_media_url(media_id)
        audio = await self.whatsapp.download_media(media_url)
        return await self.transcribe(audio, language=language)

    async def transcribe(self, audio: bytes, language: Optional[str] = None) -> str:
        if len(audio or b"") < MIN_AUDIO_BYTES:
            raise ValidationFailed(f"Audio buffer too small ({len(audio or b'')} bytes)")

        language = language or self.default_language
        attempt = 0
        while True:
            started = time.monotonic()
            try:
                wav = await self.transcoder.to_wav(audio)
                transcript = await self.recognizer.recognize(wav, language)
            except RETRYABLE_ERRORS as exc:
                if attempt >= self.retries:
                    raise
                delay = self.backoff_seconds[min(attempt, len(self.backoff_seconds) - 1)]
                logger.warning(
                    "Voice decode attempt failed, retrying",
                    extra={"context": {"attempt": attempt + 1, "delay": delay, "error": exc.message}},
                )
                await self._sleep(delay)
                attempt += 1
                continue

            logger.info(
                "Voice note transcribed",
                extra={
                    "context": {
                        "elapsed_ms": round((time.monotonic() - started) * 1000, 2),
                        "attempts": attempt + 1,
                        "chars": len(transcript),
                    }
                },
            )
            return transcript
