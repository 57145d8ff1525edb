"""Checks which model identifiers the live endpoint accepts.

Each model gets its own connection: send a setup message, wait for
setupComplete, send a small test chunk and note whether any server content
comes back. Attempts are bounded by a fixed timeout and spaced by a fixed
delay so the sweep does not hammer the service.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import aiohttp
from rich.console import Console

from ..errors import ProtocolParseError
from ..session import protocol

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_DELAY_SECONDS = 2.0
CLOSE_GRACE_SECONDS = 1.0
TEST_MESSAGE = b"Hello, test message"

DEFAULT_MODELS = [
    # Gemini 2.0 models
    "models/gemini-2.0-flash-live-001",
    "models/gemini-2.0-flash-exp",
    "models/gemini-2.0-flash-exp-live",
    "models/gemini-2.0-flash-live",
    "models/gemini-2.0-live",
    "models/gemini-2.0-flash-preview",
    "models/gemini-2.0-flash-preview-live",
    # Gemini 2.5 models
    "models/gemini-2.5-flash-preview-native-audio-dialog",
    "models/gemini-2.5-flash-live",
    "models/gemini-2.5-flash-exp",
    "models/gemini-2.5-flash-preview",
    "models/gemini-2.5-pro-preview-05-06",
    # Gemini 1.5 models
    "models/gemini-1.5-flash",
    "models/gemini-1.5-flash-live",
    "models/gemini-1.5-pro",
    "models/gemini-1.5-pro-live",
    "models/gemini-1.5-flash-8b",
    # Generic models
    "models/gemini-live",
    "models/gemini-pro",
    "models/gemini-pro-vision",
    "models/gemini-flash",
    # Without 'models/' prefix
    "gemini-2.0-flash-live-001",
    "gemini-2.0-flash-exp",
    "gemini-2.5-flash-preview-native-audio-dialog",
    "gemini-live",
]

STATUSES = ("success", "failed", "error", "timeout")


@dataclass
class ProbeResult:
    """Outcome of probing one model identifier."""
    model: str
    status: str = "unknown"  # "success", "failed", "error", "timeout"
    error: Optional[str] = None
    setup_complete: bool = False
    response_received: bool = False


class ModelProber:
    """Sweeps model identifiers against the live endpoint."""

    def __init__(self,
                 endpoint: str,
                 timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
                 delay_seconds: float = DEFAULT_DELAY_SECONDS,
                 close_grace_seconds: float = CLOSE_GRACE_SECONDS,
                 session_factory: Callable[[], aiohttp.ClientSession] = aiohttp.ClientSession):
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds
        self.delay_seconds = delay_seconds
        self.close_grace_seconds = close_grace_seconds
        self.session_factory = session_factory
        self.results: List[ProbeResult] = []

    async def probe_model(self, session: aiohttp.ClientSession, model: str) -> ProbeResult:
        logger.info(f"Testing model: {model}")
        result = ProbeResult(model=model)
        try:
            await asyncio.wait_for(self._exchange(session, model, result), self.timeout_seconds)
        except asyncio.TimeoutError:
            if result.status == "unknown":
                result.status = "timeout"
                result.error = "Connection timeout"
        except (aiohttp.ClientError, OSError) as e:
            # A reset socket fails this model only; the sweep goes on.
            result.status = "error"
            result.error = str(e) or type(e).__name__
        logger.info(f"{model}: {result.status}{f' ({result.error})' if result.error else ''}")
        return result

    async def _exchange(self, session: aiohttp.ClientSession, model: str, result: ProbeResult) -> None:
        async with session.ws_connect(self.endpoint) as ws:
            logger.debug(f"Connected for {model}")
            await ws.send_str(protocol.encode(protocol.build_setup_message(model)))

            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.ERROR:
                    result.status = "error"
                    result.error = str(ws.exception())
                    break
                if msg.type not in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    continue

                try:
                    message = protocol.parse_server_message(msg.data)
                except ProtocolParseError as e:
                    logger.info(f"JSON parse error for {model}: {e}")
                    continue

                if message.is_setup_complete:
                    result.setup_complete = True
                    result.status = "success"
                    logger.debug(f"Setup complete for {model}")
                    await ws.send_str(protocol.encode(
                        protocol.build_realtime_input(TEST_MESSAGE, mime_type="text/plain")))

                if message.server_content is not None:
                    result.response_received = True
                    logger.debug(f"Response received from {model}")
                    break

            close_code = ws.close_code

        if result.status == "unknown":
            result.status = "failed"
            result.error = f"Closed: {close_code}"
        # Late frames after close are not waited for beyond this grace period.
        await asyncio.sleep(self.close_grace_seconds)

    async def probe_all(self, models: Sequence[str]) -> List[ProbeResult]:
        logger.info(f"Testing {len(models)} models against {protocol.redact_endpoint(self.endpoint)}")
        async with self.session_factory() as session:
            for index, model in enumerate(models):
                self.results.append(await self.probe_model(session, model))
                if index < len(models) - 1:
                    await asyncio.sleep(self.delay_seconds)
        return self.results


def group_results(results: Sequence[ProbeResult]) -> Dict[str, List[ProbeResult]]:
    """Results keyed by status, in report order."""
    grouped: Dict[str, List[ProbeResult]] = {status: [] for status in STATUSES}
    for result in results:
        grouped.setdefault(result.status, []).append(result)
    return grouped


def print_summary(results: Sequence[ProbeResult], console: Optional[Console] = None) -> None:
    """Print a model testing summary."""
    console = console or Console()
    grouped = group_results(results)

    console.print("\n🎯 MODEL TESTING SUMMARY", style="bold blue")
    console.print("=" * 24)

    console.print(f"\n✅ SUCCESSFUL MODELS ({len(grouped['success'])}):", style="green")
    for r in grouped["success"]:
        indicators = []
        if r.setup_complete:
            indicators.append("Setup✓")
        if r.response_received:
            indicators.append("Response✓")
        suffix = f" ({', '.join(indicators)})" if indicators else ""
        console.print(f"   🟢 {r.model}{suffix}")

    sections = [
        ("failed", "❌ FAILED MODELS", "🔴", "red"),
        ("error", "⚠️  ERROR MODELS", "🟡", "yellow"),
        ("timeout", "⏰ TIMEOUT MODELS", "⚪", "white"),
    ]
    for status, title, marker, style in sections:
        if not grouped[status]:
            continue
        console.print(f"\n{title} ({len(grouped[status])}):", style=style)
        for r in grouped[status]:
            detail = f" - {r.error}" if r.error and status != "timeout" else ""
            console.print(f"   {marker} {r.model}{detail}")

    console.print("\n📊 TOTAL STATS:")
    console.print(f"   Total tested: {len(results)}")
    for status in STATUSES:
        console.print(f"   {status.capitalize()}: {len(grouped[status])}")

    console.print("\n🏆 RECOMMENDED MODELS FOR LIVE API:", style="bold")
    for r in grouped["success"]:
        if r.setup_complete:
            console.print(f"   ⭐ {r.model}")
