"""WebSocket delivery of terminal events to the front end."""

from .terminal_broker import TerminalEventBroker

__all__ = ['TerminalEventBroker']
