"""Diagnostics and troubleshooting snapshot generation.

Collects version information, configuration, per-session state and recent
log lines into one plain-text snapshot that can be served or exported.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from .config import TabTermConfig
from .multiplexer.menu_detector import strip_escapes

if TYPE_CHECKING:
    from .log_manager import LogManager
    from .multiplexer.session_manager import SessionManager


VERSIONED_PACKAGES = ("tabterm", "fastapi", "pydantic", "websockets", "uvicorn")


def gather_version_info() -> Dict[str, str]:
    versions: Dict[str, str] = {}
    for name in VERSIONED_PACKAGES:
        try:
            versions[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            versions[name] = "unknown"
    return versions


class DiagnosticsManager:
    """Manages diagnostic snapshot generation and export.

    Responsibilities:
    - Generate troubleshooting snapshots
    - Collect version information
    - Export snapshots to files
    """

    def __init__(
        self,
        config: TabTermConfig,
        log_manager: LogManager,
        get_managers: Callable[[], Dict[str, SessionManager]],
        version_info: Optional[Dict[str, str]] = None,
    ):
        """Initialize diagnostics manager.

        Args:
            config: Active service configuration
            log_manager: LogManager instance for log access
            get_managers: Callback returning the session manager of each open panel
            version_info: Package versions; gathered from metadata if omitted
        """
        self.config = config
        self.log_manager = log_manager
        self.get_managers = get_managers
        self.version_info = version_info if version_info is not None else gather_version_info()

    def generate_snapshot(self) -> str:
        lines: List[str] = []

        lines.append(f"timestamp: {datetime.now(timezone.utc).isoformat()}")
        lines.append("versions:")
        for name, version in self.version_info.items():
            lines.append(f"  {name}: {version}")

        lines.append("config:")
        for key, value in asdict(self.config).items():
            lines.append(f"  {key}: {value}")

        managers = self.get_managers()
        lines.append(f"panels: {len(managers)}")
        for panel_id, manager in managers.items():
            lines.append(f"  - {panel_id}:")
            for session in manager.list_sessions():
                lines.append(
                    f"      {session.id}: name={session.name!r} state={session.state.value} "
                    f"alive={session.process.is_alive()} lines={session.buffered_lines()} "
                    f"pending_detection={session.has_pending_detection()}"
                )
                if session.last_options:
                    menu = ", ".join(f"[{o.key}] {o.label}" for o in session.last_options)
                    lines.append(f"        last_menu: {menu}")
                preview = strip_escapes(session.detection_window())[-120:]
                if preview:
                    lines.append("        recent_output_preview:")
                    lines.append("          " + preview.replace("\n", "\\n"))

        for category in ("events", "menus", "errors", "debug"):
            lines.append(f"---- recent {category} ----")
            lines.append(self._recent_log_text(category))

        return "\n".join(lines)

    def update_troubleshooting_log(self) -> str:
        snapshot = self.generate_snapshot()
        self.log_manager.clear("troubleshooting")
        self.log_manager.add("troubleshooting", snapshot)
        return snapshot

    def export_to_file(self, target_dir: str = "troubleshooting") -> Optional[str]:
        """Export troubleshooting snapshot to file.

        Returns:
            Path to saved file, or None if export failed
        """
        snapshot = self.update_troubleshooting_log()
        try:
            dir_path = Path(target_dir)
            dir_path.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
            target_file = dir_path / f"troubleshooting_pack_{timestamp}.txt"
            target_file.write_text(snapshot, encoding="utf-8")
            return str(target_file)
        except OSError as e:
            self.log_manager.add("errors", f"Snapshot export failed: {e}")
            return None

    def _recent_log_text(self, category: str, limit: int = 50) -> str:
        recent = self.log_manager.tail(category, limit)
        if not recent:
            return f"(no {category})"
        return "\n".join(recent)
