"""Operational event log in JSONL format.

One line per event: session lifecycle, completed turns and memory
commands, stamped with the EVE and tenant they belong to. The file is
rotated once it grows past a size limit, and only the newest rotated
files are kept.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single event line."""

    timestamp: str
    event: str
    session_id: str | None = None
    agent_id: str | None = None
    tenant_id: str | None = None
    duration_ms: float | None = None
    offline: bool = False
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize, leaving out unset fields so lines stay short."""
        return {
            k: v for k, v in asdict(self).items()
            if v is not None and v is not False and v != {}
        }


class JSONLLogger:
    """Appends structured events to a size-rotated JSONL file.

    Example:
        logger = JSONLLogger(log_dir="/tmp/evemind")
        logger.set_session("eve-1-3fa2b9c0", agent_id="eve-1", tenant_id="acme")
        logger.log_turn(duration_ms=840.2, streamed=True, context_memories=3)
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
        keep_rotated: int = 5,
    ) -> None:
        """Initialize the logger.

        Args:
            log_dir: Directory for the log files. Defaults to ~/.evemind/logs.
            filename: Name of the active log file.
            max_size_mb: Size at which the active file is rotated.
            keep_rotated: How many rotated files to keep.
        """
        self.log_dir = Path(log_dir) if log_dir is not None else Path.home() / ".evemind" / "logs"
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)
        self.keep_rotated = keep_rotated
        self._session_id: str | None = None
        self._agent_id: str | None = None
        self._tenant_id: str | None = None
        self._rotations = 0

    @property
    def log_path(self) -> Path:
        return self.log_dir / self.filename

    def set_session(
        self,
        session_id: str | None,
        agent_id: str | None = None,
        tenant_id: str | None = None,
    ) -> None:
        """Stamp subsequent events with a session and, optionally, an owner."""
        self._session_id = session_id
        if agent_id is not None:
            self._agent_id = agent_id
        if tenant_id is not None:
            self._tenant_id = tenant_id

    def _rotated_files(self) -> list[Path]:
        stem = Path(self.filename).stem
        return sorted(self.log_dir.glob(f"{stem}_*.jsonl"))

    def _rotate_if_needed(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self.max_size_bytes:
            return

        self._rotations += 1
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        target = self.log_dir / f"{self.log_path.stem}_{stamp}_{self._rotations:04d}.jsonl"
        self.log_path.rename(target)

        rotated = self._rotated_files()
        for stale in rotated[: max(0, len(rotated) - self.keep_rotated)]:
            stale.unlink()

    def log(
        self,
        event: str,
        *,
        session_id: str | None = None,
        duration_ms: float | None = None,
        offline: bool = False,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Write one event. Unknown keyword arguments go under ``extra``."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            session_id=session_id or self._session_id,
            agent_id=self._agent_id,
            tenant_id=self._tenant_id,
            duration_ms=duration_ms,
            offline=offline,
            error=error,
            extra=extra,
        )
        self._rotate_if_needed()
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict(), ensure_ascii=False) + "\n")

    def log_turn(
        self,
        *,
        duration_ms: float,
        streamed: bool,
        offline: bool = False,
        context_memories: int = 0,
        session_id: str | None = None,
    ) -> None:
        self.log(
            "turn_complete",
            session_id=session_id,
            duration_ms=duration_ms,
            offline=offline,
            streamed=streamed,
            context_memories=context_memories,
        )

    def log_memory_command(
        self,
        command: str,
        affected: int,
        *,
        session_id: str | None = None,
        error: str | None = None,
    ) -> None:
        """Record a memory operation the user asked for, and its outcome."""
        self.log(
            "memory_command",
            session_id=session_id,
            error=error,
            command=command,
            affected=affected,
        )


_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Return the shared event logger, creating it on first use."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(
    log_dir: str | Path | None = None,
    max_size_mb: float = 10.0,
    keep_rotated: int = 5,
) -> JSONLLogger:
    """Replace the shared event logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb, keep_rotated=keep_rotated)
    return _logger
