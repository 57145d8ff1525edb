"""End-to-end session tests against a local aiohttp WebSocket server.

The server mimics the live service: it answers the setup message with
setupComplete and echoes a transcription for every audio chunk.
"""

import json
import time

import pytest
from aiohttp import WSMsgType, web

from live2text.config import LiveSettings
from live2text.models.events import ConnectionState
from live2text.session import EventLoopThread, SessionController, websocket_transport_factory
from live2text.transcription import ReconcileMode, TranscriptReconciler
from live2text.ui import MemoryDisplaySink


class FakeLiveService:
    """Minimal stand-in for the BidiGenerateContent endpoint."""

    def __init__(self, loop_thread: EventLoopThread):
        self.loop_thread = loop_thread
        self.received = []
        self.runner = None
        self.port = None
        self.close_after_setup = False

    async def handle(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        chunks = 0
        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            message = json.loads(msg.data)
            self.received.append(message)
            if "setup" in message:
                await ws.send_str(json.dumps({"setupComplete": {}}))
                if self.close_after_setup:
                    await ws.close()
            elif "realtimeInput" in message:
                chunks += 1
                words = " ".join(["word"] * chunks)
                await ws.send_str(json.dumps(
                    {"serverContent": {"inputTranscription": {"text": f"Heard {words}"}}}))
            elif "clientContent" in message:
                text = message["clientContent"]["turns"][0]["parts"][0]["text"]
                await ws.send_str(json.dumps({"serverContent": {
                    "modelTurn": {"parts": [{"text": f"You said: {text}"}]},
                    "turnComplete": True,
                }}))
        return ws

    async def _start(self):
        app = web.Application()
        app.router.add_get("/ws", self.handle)
        self.runner = web.AppRunner(app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "127.0.0.1", 0)
        await site.start()
        self.port = self.runner.addresses[0][1]

    async def _stop(self):
        await self.runner.cleanup()

    def start(self):
        self.loop_thread.submit(self._start()).result(5.0)

    def stop(self):
        self.loop_thread.submit(self._stop()).result(5.0)

    @property
    def endpoint(self):
        return f"ws://127.0.0.1:{self.port}/ws?key=test"


def wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def loop_thread():
    thread = EventLoopThread().start()
    yield thread
    thread.stop()


@pytest.fixture
def service(loop_thread):
    service = FakeLiveService(loop_thread)
    service.start()
    yield service
    service.stop()


@pytest.fixture
def session(service, loop_thread):
    sink = MemoryDisplaySink()
    controller = SessionController(
        websocket_transport_factory(service.endpoint, loop_thread),
        LiveSettings(model="models/test-live-model"),
        sink,
        TranscriptReconciler(mode=ReconcileMode.LIVE, sink=sink),
    )
    yield controller, sink
    controller.close()


@pytest.mark.integration
class TestLiveSession:

    def test_connects_and_becomes_ready(self, session, service):
        controller, sink = session
        controller.connect()

        assert wait_until(lambda: controller.state is ConnectionState.READY)
        assert service.received[0]["setup"]["model"] == "models/test-live-model"

    def test_audio_round_trip_updates_display(self, session, sample_audio_chunk):
        controller, sink = session
        controller.connect()
        assert wait_until(lambda: controller.state is ConnectionState.READY)

        assert controller.start_recording()
        for _ in range(3):
            controller.send_frame(sample_audio_chunk)

        assert wait_until(lambda: sink.text == "Heard word word word")
        assert controller.stats.audio_input_seconds == pytest.approx(3 * 4096 / 16000)

    def test_text_turn_round_trip(self, session):
        controller, sink = session
        controller.connect()
        assert wait_until(lambda: controller.state is ConnectionState.READY)

        assert controller.send_text("hello")

        assert wait_until(lambda: sink.text == "You said: hello")
        assert controller.stats.text_input_tokens == 2

    def test_server_close_disconnects(self, session, service):
        service.close_after_setup = True
        controller, sink = session
        controller.connect()

        assert wait_until(lambda: controller.state is ConnectionState.DISCONNECTED
                          and sink.last_status is not None and sink.last_status[1])
        assert controller.transport is None

    def test_prompt_change_reconnects(self, session, service):
        controller, sink = session
        controller.connect()
        assert wait_until(lambda: controller.state is ConnectionState.READY)

        assert controller.set_system_instruction("Translate to French")

        assert wait_until(lambda: controller.state is ConnectionState.READY
                          and len([m for m in service.received if "setup" in m]) == 2)
        setups = [m["setup"] for m in service.received if "setup" in m]
        assert setups[-1]["systemInstruction"]["parts"][0]["text"].startswith("Translate to French")
