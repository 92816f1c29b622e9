# dealscout/events/__init__.py
from .channel import EventChannel

__all__ = ["EventChannel"]
