"""Language server table: which binary serves which language tag"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from ..exception import ConfigurationError


@dataclass(frozen=True)
class LanguageServerSpec:
    """How to launch and probe the language server for one language tag

    Attributes:
        language: Language tag (e.g. "rust")
        command: Executable name or path
        args: Arguments that put the binary in stdio server mode
        version_args: Arguments for the health probe
        manifest: Project manifest file name used by project detection
    """
    language: str
    command: str
    args: List[str] = field(default_factory=list)
    version_args: List[str] = field(default_factory=lambda: ["--version"])
    manifest: Optional[str] = None


# Order matters: it is the manifest precedence within one directory
DEFAULT_SERVERS: Dict[str, LanguageServerSpec] = {
    "rust": LanguageServerSpec(
        language="rust",
        command="rust-analyzer",
        args=[],
        version_args=["--version"],
        manifest="Cargo.toml",
    ),
    "go": LanguageServerSpec(
        language="go",
        command="gopls",
        args=["serve"],
        version_args=["version"],
        manifest="go.mod",
    ),
}


def build_server_table(config: Optional[dict] = None) -> Dict[str, LanguageServerSpec]:
    """Merge ``[lsp.servers.<tag>]`` overrides from config.toml into the defaults

    Args:
        config: Full configuration dict (may be None)

    Returns:
        Language tag -> LanguageServerSpec

    Raises:
        ConfigurationError: A new tag is declared without a command
    """
    servers = dict(DEFAULT_SERVERS)
    overrides = ((config or {}).get("lsp") or {}).get("servers") or {}

    for language, entry in overrides.items():
        entry = entry or {}
        base = servers.get(language)
        if base is None:
            if not entry.get("command"):
                raise ConfigurationError(
                    f"Language server '{language}' needs a 'command' in [lsp.servers.{language}]"
                )
            base = LanguageServerSpec(language=language, command=entry["command"])

        servers[language] = replace(
            base,
            command=entry.get("command", base.command),
            args=list(entry.get("args", base.args)),
            version_args=list(entry.get("version_args", base.version_args)),
            manifest=entry.get("manifest", base.manifest),
        )

    return servers


def get_server_spec(servers: Dict[str, LanguageServerSpec], language: str) -> LanguageServerSpec:
    """Look up a language tag

    Raises:
        ConfigurationError: Unsupported language
    """
    spec = servers.get(language)
    if spec is None:
        raise ConfigurationError(f"Unsupported language: {language}")
    return spec


def manifest_table(servers: Dict[str, LanguageServerSpec]) -> Dict[str, str]:
    """Manifest file name -> language tag, in table order"""
    return {
        spec.manifest: language
        for language, spec in servers.items()
        if spec.manifest
    }
