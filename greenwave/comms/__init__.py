# Communications - Observation Publishing
"""
ZMQ-based publishing of mission observations to presentation clients.
"""

from .snapshot_publisher import SnapshotPublisher, decode_message

__all__ = ["SnapshotPublisher", "decode_message"]
