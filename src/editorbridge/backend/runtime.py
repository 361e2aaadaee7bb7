"""Process bridge runtime: owner of the LSP and terminal registries"""

import asyncio
import logging
from typing import Optional

from .exception import InternalError
from .lsp.language import build_server_table, get_server_spec, manifest_table
from .lsp.detect import ProjectInfo, detect_project, probe_language_server
from .lsp.manager import LanguageServerManager
from .terminal.manager import TerminalManager
from .websocket.terminal_broker import TerminalEventBroker

logger = logging.getLogger(__name__)


class BridgeRuntime:
    """
    The single long-lived object behind the API layer.

    Created and started in the application lifespan, stopped at shutdown.
    Exposes the commands the front end can invoke.

    Attributes:
        config: Configuration dict from config.toml
        servers: Language tag -> LanguageServerSpec
        lsp_manager: Registry of language server instances
        terminal_broker: Terminal event delivery
        terminal_manager: Registry of terminal sessions
    """

    def __init__(self, config: Optional[dict] = None):
        self.config = config or {}

        lsp_config = self.config.get("lsp") or {}
        terminal_config = self.config.get("terminal") or {}

        self.servers = build_server_table(self.config)
        self.lsp_manager = LanguageServerManager(
            servers=self.servers,
            host=lsp_config.get("host", "127.0.0.1"),
        )

        self.terminal_broker = TerminalEventBroker()
        self.terminal_manager = TerminalManager(
            self.terminal_broker,
            shell=terminal_config.get("shell") or None,
            rows=terminal_config.get("rows", 24),
            cols=terminal_config.get("cols", 80),
        )

        self._started = False

    async def start(self) -> None:
        """Bind the runtime to the running event loop."""
        if self._started:
            raise InternalError("BridgeRuntime already started")

        self.terminal_broker.set_main_loop(asyncio.get_running_loop())
        self._started = True
        logger.info("BridgeRuntime started")

    async def stop(self) -> None:
        """Tear down every terminal, language server and subscriber."""
        if not self._started:
            return

        logger.info("Stopping BridgeRuntime...")

        try:
            await self.terminal_manager.cleanup_all()
        except Exception as e:
            logger.error(f"Terminal cleanup failed: {e}")

        try:
            await self.lsp_manager.cleanup_all()
        except Exception as e:
            logger.error(f"LSP cleanup failed: {e}")

        await self.terminal_broker.disconnect_all()

        self._started = False
        logger.info("BridgeRuntime stopped")

    # ==================== Collaborators ====================

    def detect_project(self, path: str) -> ProjectInfo:
        return detect_project(path, manifest_table(self.servers))

    def probe_language_server(self, language: str) -> bool:
        return probe_language_server(get_server_spec(self.servers, language))
