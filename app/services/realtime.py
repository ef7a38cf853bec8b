"""
In-process pub/sub behind the SSE endpoint.

Every connection gets a queue and joins its user's private channel and its
role channel. Delivery is at-most-once per connected client.
"""
from typing import Dict, List, Set
import asyncio
import json
from datetime import datetime
from dataclasses import dataclass
import uuid


# ============================================================
# EVENT TYPES
# ============================================================

@dataclass
class Event:
    """Server-sent event structure"""
    type: str
    data: Dict
    id: str = ""
    timestamp: str = ""

    def __post_init__(self):
        if not self.id:
            self.id = f"evt_{uuid.uuid4().hex[:8]}"
        if not self.timestamp:
            self.timestamp = datetime.utcnow().isoformat() + "Z"

    def to_sse(self) -> str:
        """Format as SSE message"""
        payload = {
            "type": self.type,
            "data": self.data,
            "timestamp": self.timestamp,
        }
        return f"id: {self.id}\nevent: {self.type}\ndata: {json.dumps(payload, default=str)}\n\n"


def user_channel(user_id: int) -> str:
    return f"user_{user_id}"


def role_channel(role: str) -> str:
    return f"role_{role}"


# ============================================================
# EVENT MANAGER (Pub/Sub)
# ============================================================

class EventManager:
    """Tracks connected clients and the channels they listen on"""

    def __init__(self):
        self._clients: Dict[str, asyncio.Queue] = {}
        self._channels: Dict[str, Set[str]] = {}  # channel -> client_ids

    async def connect(self, client_id: str, channels: List[str]) -> asyncio.Queue:
        """Register a new client on its channels"""
        queue = asyncio.Queue()
        self._clients[client_id] = queue

        for channel in channels:
            self._channels.setdefault(channel, set()).add(client_id)

        await queue.put(Event(
            type="connected",
            data={"client_id": client_id, "channels": channels}
        ))

        return queue

    async def disconnect(self, client_id: str):
        """Remove a client"""
        self._clients.pop(client_id, None)

        for members in self._channels.values():
            members.discard(client_id)
        self._channels = {name: members for name, members in self._channels.items() if members}

    async def publish(self, channel: str, event: Event) -> int:
        """Queue an event for every client on a channel; returns how many got it"""
        delivered = 0
        for client_id in self._channels.get(channel, set()):
            queue = self._clients.get(client_id)
            if queue is not None:
                await queue.put(event)
                delivered += 1
        return delivered

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def channels(self) -> List[str]:
        return list(self._channels.keys())


# Global event manager
event_manager = EventManager()
