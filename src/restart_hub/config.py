"""Hub configuration loaded from environment variables."""
from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

from restart_hub.endpoint import DEFAULT_HOST, DEFAULT_PORT
from restart_hub.events.types import DEFAULT_PEER_SOURCE
from restart_hub.events.watcher import DEFAULT_EXTENSIONS


class Settings(BaseSettings):
    """Hub configuration loaded from environment variables.

    Attributes:
        host: Interface the WebSocket endpoint binds.
        port: Well-known port peers connect to.
        debug: Enable debug-level logging.
        log_json: Emit JSON log lines instead of console output.
        shutdown_timeout: Seconds to wait for connections on shutdown.
        default_peer_source: Source tag for peer messages without one.
        disable_auto_reload: Turn off the file-save trigger.
        save_source: Source tag of broadcasts fired by file saves.
        save_debounce_ms: Debounce window for file-save events.
        watch_paths_raw: Comma-separated directories to watch for saves.
        watch_extensions_raw: Comma-separated extensions that count as saves.
    """

    model_config = SettingsConfigDict(
        env_prefix="RESTART_HUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    debug: bool = False
    log_json: bool = True
    shutdown_timeout: float = 5.0
    default_peer_source: str = DEFAULT_PEER_SOURCE

    disable_auto_reload: bool = False
    save_source: str = "vscode-autosave"
    save_debounce_ms: int = 200
    watch_paths_raw: str = "."
    watch_extensions_raw: str = ",".join(DEFAULT_EXTENSIONS)

    @computed_field
    @property
    def watch_paths(self) -> list[str]:
        """Parse watch paths from comma-separated string.

        Returns:
            List of directory paths to watch for saves.
        """
        return [
            path.strip()
            for path in self.watch_paths_raw.split(",")
            if path.strip()
        ]

    @computed_field
    @property
    def watch_extensions(self) -> list[str]:
        """Parse watched extensions, normalized to lower case with a dot.

        Returns:
            List of extensions such as ``.lua``.
        """
        extensions = []
        for ext in self.watch_extensions_raw.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            extensions.append(ext if ext.startswith(".") else f".{ext}")
        return extensions
