"""Message codec for the Gemini Live BidiGenerateContent WebSocket protocol.

Only the parts of the protocol this client uses are modelled. Inbound
messages are validated with pydantic; anything with an unexpected shape is
reported as a ProtocolParseError and dropped by the caller.
"""

import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ProtocolParseError

logger = logging.getLogger(__name__)

INPUT_SAMPLE_RATE = 16000
OUTPUT_SAMPLE_RATE = 24000
INPUT_MIME_TYPE = f"audio/pcm;rate={INPUT_SAMPLE_RATE}"

ENDPOINT_TEMPLATE = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.{api_version}.GenerativeService.BidiGenerateContent"
    "?key={api_key}"
)

LIVE_PROMPT_SUFFIX = (
    "\n\nIMPORTANT: Process the user's voice input live according to the instruction above. "
    "Provide incremental updates word-by-word or phrase-by-phrase as the user speaks. "
    "Be concise and respond progressively to build up your response as you hear more of their speech."
)

DEFAULT_TRANSCRIPTION_INSTRUCTION = (
    "You are a live voice transcription assistant. Transcribe what the user says in real-time, "
    "showing progressive updates as they speak. Provide accurate, word-by-word transcription."
)

_RATE_PATTERN = re.compile(r"rate=(\d+)")


def build_endpoint(api_key: str, api_version: str = "v1alpha") -> str:
    return ENDPOINT_TEMPLATE.format(api_version=api_version, api_key=api_key)


def redact_endpoint(endpoint: str) -> str:
    """Endpoint without its query string, safe to log."""
    return endpoint.split("?", 1)[0]


def compose_system_instruction(prompt: Optional[str]) -> str:
    """System instruction text for an operator prompt (or the default)."""
    prompt = (prompt or "").strip()
    if prompt:
        return f"{prompt}{LIVE_PROMPT_SUFFIX}"
    return DEFAULT_TRANSCRIPTION_INSTRUCTION


# Inbound


class _Inbound(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", protected_namespaces=())


class InlineData(_Inbound):
    mime_type: str = Field(default="", alias="mimeType")
    data: str = ""

    @field_validator("data")
    @classmethod
    def check_base64(cls, value: str) -> str:
        try:
            base64.b64decode(value, validate=True)
        except ValueError as e:
            raise ValueError(f"inline data is not valid base64: {e}") from e
        return value

    @property
    def is_audio(self) -> bool:
        return self.mime_type.startswith("audio/pcm")

    @property
    def sample_rate(self) -> int:
        match = _RATE_PATTERN.search(self.mime_type)
        return int(match.group(1)) if match else OUTPUT_SAMPLE_RATE

    def audio_seconds(self) -> float:
        """Duration of 16-bit mono PCM carried in ``data``."""
        if not self.is_audio or not self.data:
            return 0.0
        return (len(base64.b64decode(self.data)) // 2) / self.sample_rate


class Part(_Inbound):
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(default=None, alias="inlineData")


class ModelTurn(_Inbound):
    parts: List[Part] = Field(default_factory=list)


class Transcription(_Inbound):
    text: Optional[str] = None


class ServerContent(_Inbound):
    model_turn: Optional[ModelTurn] = Field(default=None, alias="modelTurn")
    input_transcription: Optional[Transcription] = Field(default=None, alias="inputTranscription")
    output_transcription: Optional[Transcription] = Field(default=None, alias="outputTranscription")
    turn_complete: bool = Field(default=False, alias="turnComplete")


class ServerMessage(_Inbound):
    setup_complete: Optional[Any] = Field(default=None, alias="setupComplete")
    server_content: Optional[ServerContent] = Field(default=None, alias="serverContent")

    @property
    def is_setup_complete(self) -> bool:
        # The service sends an empty object (older builds: true); presence is what matters.
        return self.setup_complete is not None


def parse_server_message(raw: Union[str, bytes]) -> ServerMessage:
    """Decode one inbound frame.

    Raises:
        ProtocolParseError: If the payload is not JSON or has the wrong shape
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolParseError(f"Inbound message is not valid JSON: {e}", raw) from e

    if not isinstance(payload, dict):
        raise ProtocolParseError(f"Inbound message is not an object: {type(payload).__name__}", raw)

    try:
        return ServerMessage.model_validate(payload)
    except ValidationError as e:
        raise ProtocolParseError(f"Inbound message has unexpected shape: {e}", raw) from e


# Outbound


def build_setup_message(model: str,
                        system_instruction: Optional[str] = None,
                        response_modalities: Sequence[str] = ("TEXT",),
                        temperature: Optional[float] = None,
                        voice: Optional[str] = None) -> Dict[str, Any]:
    """Setup message sent once the socket opens."""
    generation_config: Dict[str, Any] = {"responseModalities": list(response_modalities)}
    if temperature is not None:
        generation_config["temperature"] = temperature
    if voice and "AUDIO" in response_modalities:
        generation_config["speechConfig"] = {
            "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}}
        }

    setup: Dict[str, Any] = {"model": model, "generationConfig": generation_config}
    if system_instruction:
        setup["systemInstruction"] = {"parts": [{"text": system_instruction}]}
    return {"setup": setup}


def build_realtime_input(chunk: bytes, mime_type: str = INPUT_MIME_TYPE) -> Dict[str, Any]:
    """Realtime-input message carrying one base64-encoded media chunk (PCM by default)."""
    return {
        "realtimeInput": {
            "mediaChunks": [{
                "mimeType": mime_type,
                "data": base64.b64encode(chunk).decode("ascii"),
            }]
        }
    }


def build_text_message(text: str) -> Dict[str, Any]:
    """Complete user turn carrying ``text``."""
    return {
        "clientContent": {
            "turns": [{"role": "user", "parts": [{"text": text}]}],
            "turnComplete": True,
        }
    }


def encode(message: Dict[str, Any]) -> str:
    return json.dumps(message)
