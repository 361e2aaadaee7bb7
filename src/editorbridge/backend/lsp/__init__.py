"""Language server proxy.

Lets a web front end talk to locally installed language servers over a
WebSocket per instance instead of raw stdio.

Components:
- framing: Content-Length codec for the server's stdio
- listener: WebSocket listener on an OS-assigned port
- server: LanguageServerInstance, the stdio <-> clients bridge
- manager: LanguageServerManager, registry of running instances
- detect: project detection and binary health probe
"""

from .manager import LanguageServerManager
from .server import LanguageServerInstance

__all__ = ['LanguageServerManager', 'LanguageServerInstance']
