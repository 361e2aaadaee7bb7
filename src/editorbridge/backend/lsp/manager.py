"""Registry of running language server instances.

This module manages the lifecycle of language server bridges:
- Language tag -> binary dispatch
- Instance creation, tracking and teardown
- Shutdown of every instance at application stop
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..exception import NotFoundError, ValidationError
from .language import DEFAULT_SERVERS, LanguageServerSpec, get_server_spec
from .server import LanguageServerInstance

logger = logging.getLogger(__name__)


class LanguageServerManager:
    """
    Manages language server bridge instances.

    Usage:
        manager = LanguageServerManager(host="127.0.0.1")

        lsp_id, port = await manager.start_lsp("go", "/proj")
        # front end connects to ws://127.0.0.1:{port}
        await manager.stop_lsp(lsp_id)

        await manager.cleanup_all()

    Attributes:
        host: Bind address for instance listeners
        servers: Language tag -> LanguageServerSpec
        instances: Registry of running instances (lsp_id -> LanguageServerInstance)
    """

    def __init__(
        self,
        servers: Optional[Dict[str, LanguageServerSpec]] = None,
        host: str = "127.0.0.1",
    ):
        self.host = host
        self.servers = servers if servers is not None else dict(DEFAULT_SERVERS)
        self.instances: Dict[str, LanguageServerInstance] = {}
        self.lock = asyncio.Lock()

        logger.info(
            f"LanguageServerManager initialized: host={host}, "
            f"languages={sorted(self.servers)}"
        )

    async def start_lsp(self, language: str, root_path: str) -> Tuple[str, int]:
        """
        Start a language server for a project.

        Steps:
        1. Resolve language tag to a binary (ConfigurationError if unknown)
        2. Spawn the process and bind the listener
        3. Register the instance; the listener is already accepting

        Args:
            language: Language tag ("rust", "go", ...)
            root_path: Project root directory

        Returns:
            (lsp_id, port)

        Raises:
            ConfigurationError: Unsupported language
            ValidationError: root_path is not a directory
            SpawnError: Binary missing or listener bind failed
        """
        spec = get_server_spec(self.servers, language)

        root = Path(root_path)
        if not root.is_dir():
            raise ValidationError(f"Root path is not a directory: {root_path}")

        lsp_id = uuid.uuid4().hex
        instance = LanguageServerInstance(lsp_id, spec, root, host=self.host)
        port = await instance.start()

        async with self.lock:
            self.instances[lsp_id] = instance

        logger.info(
            f"[LanguageServerManager] Started: lsp_id={lsp_id}, "
            f"language={language}, port={port}"
        )
        return lsp_id, port

    async def stop_lsp(self, lsp_id: str) -> None:
        """
        Stop a language server instance.

        The registry entry is removed before teardown is awaited.

        Raises:
            NotFoundError: No instance with this id
        """
        async with self.lock:
            instance = self.instances.pop(lsp_id, None)

        if instance is None:
            raise NotFoundError(f"No LSP server with id: {lsp_id}")

        await instance.stop()
        logger.info(f"[LanguageServerManager] Stopped: lsp_id={lsp_id}")

    def get_instance(self, lsp_id: str) -> LanguageServerInstance:
        """
        Raises:
            NotFoundError: No instance with this id
        """
        instance = self.instances.get(lsp_id)
        if instance is None:
            raise NotFoundError(f"No LSP server with id: {lsp_id}")
        return instance

    def list_instances(self) -> List[dict]:
        return [instance.status() for instance in self.instances.values()]

    async def cleanup_all(self) -> None:
        """
        Stop all language server instances.

        Errors are logged but don't stop cleanup.
        """
        async with self.lock:
            instances = list(self.instances.values())
            self.instances.clear()

        if not instances:
            logger.debug("[LanguageServerManager] No instances to cleanup")
            return

        logger.info(f"[LanguageServerManager] Cleaning up {len(instances)} instances")

        for instance in instances:
            try:
                await instance.stop()
            except Exception as e:
                logger.error(f"Error stopping LSP instance {instance.lsp_id}: {e}")

        logger.info("[LanguageServerManager] All instances cleaned up")
