"""Durable stream implementations."""

from uptimer.streams.base import DurableStream
from uptimer.streams.memory import InMemoryStream
from uptimer.streams.redis_stream import RedisStream

__all__ = ["DurableStream", "InMemoryStream", "RedisStream"]
