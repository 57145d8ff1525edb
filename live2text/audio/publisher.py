"""Audio publisher module for pub/sub event publishing."""

import logging
from typing import Callable

from pubsub import pub

from ..models.events import AudioEvent

logger = logging.getLogger(__name__)

AUDIO_TOPIC = "audio_frames"


class AudioPublisher:
    """Publishes audio events using pubsub.pub for pub/sub architecture."""

    def __init__(self, topic: str = AUDIO_TOPIC):
        """Initialize audio publisher.

        Args:
            topic: Pub/sub topic name for audio events
        """
        self.topic = topic
        self.published = 0
        logger.info(f"AudioPublisher initialized with topic: {topic}")

    def publish_audio_event(self, audio_event: AudioEvent) -> None:
        """Publish an audio event to the pub/sub topic."""
        pub.sendMessage(self.topic, event=audio_event)
        self.published += 1

    def subscribe(self, listener: Callable[[AudioEvent], None]) -> None:
        """Register ``listener(event)`` for every published frame.

        pubsub keeps weak references; the caller must keep the listener's
        owner alive.
        """
        pub.subscribe(listener, self.topic)
        logger.debug(f"Subscribed {listener} to {self.topic}")

    def unsubscribe(self, listener: Callable[[AudioEvent], None]) -> None:
        try:
            pub.unsubscribe(listener, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
