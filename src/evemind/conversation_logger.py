"""Per-session conversation transcripts.

Every chat session writes one JSONL file under the transcript directory,
named ``<date>_<session_id>.jsonl``. Besides the user and assistant
messages, the transcript records how each turn was produced: the stages
it went through, the completion request, stream fallbacks, offline
replies, learned insights and errors.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


class ConversationLogger:
    """Writes conversation transcripts for later review."""

    def __init__(self, log_dir: Path | str | None = None) -> None:
        """Initialize the transcript writer.

        Args:
            log_dir: Where transcripts go. Defaults to ./logs in cwd.
        """
        self.log_dir = Path(log_dir) if log_dir is not None else Path.cwd() / "logs"
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def transcript_path(self, session_id: str) -> Path:
        """Path of the transcript file for a session, dated today."""
        return self.log_dir / f"{datetime.now():%Y-%m-%d}_{session_id}.jsonl"

    def log_event(self, session_id: str, event: str, **fields: Any) -> None:
        """Append one event to a session transcript."""
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": session_id,
            "event": event,
            **fields,
        }
        with open(self.transcript_path(session_id), "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")

    def log_user_message(self, session_id: str, content: str) -> None:
        self.log_event(session_id, "user_message", role="user", content=content)

    def log_assistant_message(self, session_id: str, content: str) -> None:
        """Record the final reply of a turn, streamed or not."""
        self.log_event(session_id, "assistant_message", role="assistant", content=content)

    def log_stage(self, session_id: str, stage: str) -> None:
        self.log_event(session_id, "stage", stage=stage)

    def log_llm_request(
        self,
        session_id: str,
        model: str | None,
        messages_count: int,
        streaming: bool,
        context_memories: int = 0,
    ) -> None:
        """Record a completion request and how much context it carried."""
        self.log_event(
            session_id,
            "llm_request",
            model=model,
            messages_count=messages_count,
            streaming=streaming,
            context_memories=context_memories,
        )

    def log_stream_fallback(self, session_id: str, error: str, chunks: int) -> None:
        """Record a broken stream that was retried as a standard request."""
        self.log_event(session_id, "stream_fallback", error=error, chunks_received=chunks)

    def log_offline_response(self, session_id: str, reason: str) -> None:
        self.log_event(session_id, "offline_response", reason=reason)

    def log_insights_learned(self, session_id: str, keys: list[str]) -> None:
        self.log_event(session_id, "insights_learned", count=len(keys), keys=keys)

    def log_error(self, session_id: str, error: str, context: str | None = None) -> None:
        """Record a failure; ``context`` names the stage it happened in."""
        fields: dict[str, Any] = {"error": error}
        if context:
            fields["context"] = context
        self.log_event(session_id, "error", **fields)

    def log_session_start(self, session_id: str) -> None:
        self.log_event(session_id, "session_start")

    def log_session_end(self, session_id: str, reason: str = "normal") -> None:
        self.log_event(session_id, "session_end", reason=reason)


_conversation_logger: ConversationLogger | None = None


def get_conversation_logger(log_dir: Path | str | None = None) -> ConversationLogger:
    """Return the shared transcript writer, creating it on first use."""
    global _conversation_logger
    if _conversation_logger is None:
        _conversation_logger = ConversationLogger(log_dir=log_dir)
    return _conversation_logger


def reset_conversation_logger() -> None:
    """Drop the shared transcript writer (used by tests)."""
    global _conversation_logger
    _conversation_logger = None
