"""
SnapshotPublisher - Mission Observation Publishing

ZMQ PUB socket broadcasting mission snapshots and log entries to
presentation clients (HUD, log panel). Clients subscribe to the
'snapshot' and/or 'log' topics and receive JSON payloads.
"""

import time
import json
import logging
import threading
from typing import Optional

import zmq

from greenwave.mission.models import MissionSnapshot
from greenwave.utils.mission_log import LogEntry

logger = logging.getLogger(__name__)

TOPIC_SNAPSHOT = b"snapshot"
TOPIC_LOG = b"log"


class SnapshotPublisher:
    """
    Publishes read-only mission observations.

    Publishing is fire-and-forget: a slow or missing subscriber never
    blocks the mission.
    """

    def __init__(self, config: dict = None):
        """
        Initialize SnapshotPublisher.

        Args:
            config: 'telemetry' configuration section
        """
        self.config = config or {}
        self.bind_address = self.config.get('bind', 'tcp://*:5560')

        self.context: Optional[zmq.Context] = None
        self.socket: Optional[zmq.Socket] = None
        self.is_running = False

        # PUB sockets are not thread-safe; publishers may be called from
        # any controller thread
        self._lock = threading.Lock()

        self.messages_published = 0
        self.start_time: Optional[float] = None

    def start(self, bind_address: str = None) -> bool:
        """
        Bind the PUB socket.

        Returns:
            True if the publisher started
        """
        if bind_address:
            self.bind_address = bind_address

        try:
            self.context = zmq.Context()
            self.socket = self.context.socket(zmq.PUB)
            self.socket.setsockopt(zmq.LINGER, 0)
            self.socket.setsockopt(zmq.SNDHWM, 1000)

            logger.info(f"Binding snapshot publisher to {self.bind_address}...")
            self.socket.bind(self.bind_address)

            self.is_running = True
            self.start_time = time.time()
            logger.info("Snapshot publisher started")
            return True

        except zmq.ZMQError as e:
            logger.error(f"Publisher start failed: {e}")
            self.stop()
            return False

    def stop(self):
        """Close the socket and context."""
        self.is_running = False
        with self._lock:
            if self.socket:
                self.socket.close()
            if self.context:
                self.context.term()
            self.socket = None
            self.context = None
        logger.info("Snapshot publisher stopped")

    def _publish(self, topic: bytes, data: dict) -> bool:
        if not self.is_running or not self.socket:
            return False

        message = {
            'topic': topic.decode(),
            'data': data,
            'timestamp': time.time()
        }

        try:
            with self._lock:
                self.socket.send_multipart([topic, json.dumps(message).encode('utf-8')],
                                           flags=zmq.NOBLOCK)
            self.messages_published += 1
            return True
        except zmq.Again:
            logger.debug("Publisher queue full - message dropped")
            return False
        except zmq.ZMQError as e:
            logger.error(f"Publish error: {e}")
            return False

    def publish_snapshot(self, snapshot: MissionSnapshot) -> bool:
        """Publish a mission snapshot (usable as a controller listener)."""
        return self._publish(TOPIC_SNAPSHOT, snapshot.to_dict())

    def publish_log(self, entry: LogEntry) -> bool:
        """Publish a log entry (usable as a MissionLog listener)."""
        return self._publish(TOPIC_LOG, entry.to_dict())

    def get_statistics(self) -> dict:
        return {
            'bind_address': self.bind_address,
            'is_running': self.is_running,
            'messages_published': self.messages_published,
            'uptime_seconds': time.time() - self.start_time if self.start_time else 0
        }


def decode_message(frames) -> dict:
    """Decode a [topic, payload] multipart message received by a subscriber."""
    topic, payload = frames
    message = json.loads(payload.decode('utf-8'))
    if message.get('topic') != topic.decode():
        raise ValueError(f"Topic mismatch: {topic!r} vs {message.get('topic')!r}")
    return message
