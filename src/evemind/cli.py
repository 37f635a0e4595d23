"""CLI interface for evemind."""

import os
import time

from groq import AsyncGroq

from .chat import (
    CompletionClient,
    ConversationOrchestrator,
    GroqCompletionClient,
    OfflineCompletionClient,
)
from .config import EVEConfig, apply_env_overrides, load_config
from .conversation_logger import ConversationLogger
from .errors import EVEError
from .logging import get_logger
from .memory import (
    InsightExtractor,
    InsightLearner,
    InsightValidator,
    MemoryManager,
    MemoryStore,
    MemoryType,
    RelevanceRanker,
    analyze_memories,
    render_value,
)

BANNER = """
╔══════════════════════════════════════════╗
║           evemind v0.1.0                 ║
║    Enterprise Virtual Employee chat      ║
╚══════════════════════════════════════════╝

Commands:
  /exit, /quit       - Exit the CLI
  /clear             - Clear the conversation (memories are kept)
  /memories [type]   - List memories, optionally of one type
  /forget <key>      - Delete memories stored under a key
  /purge             - Delete expired memories
  /stats             - Show memory analytics
  /help              - Show this help

Type your message and press Enter.
"""


def _build_llm(config: EVEConfig) -> CompletionClient:
    """Create the completion client, or an offline one without an API key."""
    api_key = os.getenv("GROQ_API_KEY")
    if not api_key:
        return OfflineCompletionClient()
    return GroqCompletionClient(
        AsyncGroq(api_key=api_key),
        model=config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


class CLI:
    """Interactive command-line interface for one EVE."""

    def __init__(
        self,
        config: EVEConfig | None = None,
        llm: CompletionClient | None = None,
        memory_store: MemoryStore | None = None,
        conversation_logger: ConversationLogger | None = None,
    ) -> None:
        self.config = config or apply_env_overrides(load_config())

        self.memory_store = memory_store or MemoryStore(self.config.db_path)
        self.memory_store.init_db()
        self.memory = MemoryManager(
            self.memory_store,
            self.config.agent_id,
            self.config.tenant_id,
            ranker=RelevanceRanker(self.config.ranking),
        )

        self.llm = llm or _build_llm(self.config)
        learner = InsightLearner(
            self.memory,
            InsightExtractor(self.llm),
            InsightValidator(self.memory, self.config.thresholds),
        )
        self.orchestrator = ConversationOrchestrator(
            self.memory,
            self.llm,
            learner=learner,
            config=self.config,
            conversation_logger=conversation_logger,
            on_partial=self._print_partial,
        )
        self.logger = get_logger()
        self._printed = ""

    @property
    def session_id(self) -> str:
        return self.orchestrator.session_id

    def _start_session(self) -> None:
        self.logger.set_session(
            self.session_id, agent_id=self.config.agent_id, tenant_id=self.config.tenant_id
        )
        self.logger.log("session_start")
        self.orchestrator.conv_logger.log_session_start(self.session_id)

    def _print_partial(self, text: str) -> None:
        """Print the newly streamed part of the reply."""
        if not self._printed:
            print("\n" + "─" * 40)
        print(text[len(self._printed):], end="", flush=True)
        self._printed = text

    def _format_response(self, response: str, offline: bool) -> str:
        """Format the assistant's response for display."""
        output = ["\n" + "─" * 40]
        output.append(response)
        output.append("─" * 40)

        if offline:
            output.append("⚠ Offline mode: simulated response")

        return "\n".join(output)

    def _format_memories(self, memories: list) -> str:
        if not memories:
            return "No memories stored."
        lines = [f"{len(memories)} memory(ies):"]
        for m in memories:
            lines.append(
                f"  [{m.type.value}] {m.key}: {render_value(m.value)} "
                f"(importance {m.importance})"
            )
        return "\n".join(lines)

    def _format_stats(self) -> str:
        stats = analyze_memories(self.memory.load_all())
        lines = [
            f"Total memories: {stats.total_count}",
            f"Quality score: {stats.quality}/100",
            f"Growth: {stats.growth.last_7d} this week, "
            f"{stats.growth.last_30d} this month ({stats.growth.trend.value})",
        ]
        if stats.by_type:
            by_type = ", ".join(f"{k}={v}" for k, v in sorted(stats.by_type.items()))
            lines.append(f"By type: {by_type}")
        for recommendation in stats.recommendations:
            lines.append(f"  • {recommendation}")
        return "\n".join(lines)

    async def _process_message(self, message: str) -> None:
        """Process a user message through the orchestrator."""
        self._printed = ""
        start = time.perf_counter()

        try:
            reply = await self.orchestrator.send_message(message)
        except Exception as e:
            error_msg = f"Error: {e}"
            print(f"\n❌ {error_msg}")
            self.logger.log("error", error=str(e))
            return

        offline = self.orchestrator.offline
        if self._printed and self._printed == reply:
            print("\n" + "─" * 40)
        else:
            if self._printed:
                print("\n⚠ Stream interrupted, showing full reply:")
            print(self._format_response(reply, offline))

        self.logger.log_turn(
            duration_ms=(time.perf_counter() - start) * 1000,
            streamed=bool(self._printed),
            offline=offline,
            context_memories=len(self.orchestrator.relevant_context),
        )

    async def _exit(self) -> None:
        if self.orchestrator.is_learning:
            print("\n📝 Saving memories...")
        await self.orchestrator.wait_for_learning()
        print("\n👋 Goodbye!")
        self.logger.log("session_end")
        self.orchestrator.conv_logger.log_session_end(self.session_id)

    def _run_memory_command(self, name: str, arg: str) -> None:
        """Run a memory command, reporting store failures inline."""
        memory_type = None
        if name == "/memories" and arg:
            try:
                memory_type = MemoryType(arg.lower())
            except ValueError:
                types = ", ".join(t.value for t in MemoryType)
                print(f"Unknown memory type {arg!r}. Use one of: {types}")
                return

        try:
            if name == "/memories":
                memories = (
                    self.memory.get_memories_by_type(memory_type)
                    if memory_type
                    else self.memory.load_all()
                )
                print(self._format_memories(memories))
                affected = len(memories)
            elif name == "/forget":
                if not arg:
                    print("Usage: /forget <key>")
                    return
                affected = self.memory.forget(arg)
                print(f"✓ Forgot {affected} memory(ies) stored under {arg!r}")
            elif name == "/purge":
                affected = self.memory.purge_expired()
                print(f"✓ Purged {affected} expired memory(ies)")
            else:
                print(self._format_stats())
                affected = 0
        except EVEError as e:
            print(f"\n❌ Error: {e}")
            self.logger.log_memory_command(name, 0, error=str(e))
            return

        self.logger.log_memory_command(name, affected)

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        name, _, arg = command.strip().partition(" ")
        name = name.lower()
        arg = arg.strip()

        if name in ("/exit", "/quit", "exit", "quit"):
            await self._exit()
            return False

        if name == "/clear":
            old_session = self.session_id
            self.orchestrator.clear_conversation()
            self.logger.set_session(self.session_id)
            self.logger.log("session_reset", old_session_id=old_session)
            print(f"\n✓ Conversation cleared. New session: {self.session_id}")
            return True

        if name in ("/memories", "/forget", "/purge", "/stats"):
            self._run_memory_command(name, arg)
            return True

        if name == "/help":
            print(BANNER)
            return True

        print(f"Unknown command: {name}. Type /help for commands.")
        return True

    async def run(self) -> None:
        """Run the interactive CLI."""
        print(BANNER)
        print(f"Session: {self.session_id}\n")
        if isinstance(self.llm, OfflineCompletionClient):
            print("⚠ GROQ_API_KEY is not set: running in offline mode.\n")

        self._start_session()

        try:
            while True:
                try:
                    # input() blocks the loop, so finish the last turn's
                    # persisting and learning before the next turn reads context.
                    await self.orchestrator.wait_for_learning()
                    user_input = input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_message(user_input)

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    try:
                        confirm = input("Exit? (y/n): ").strip().lower()
                        if confirm in ("y", "yes"):
                            await self._exit()
                            break
                    except (KeyboardInterrupt, EOFError):
                        print("\n👋 Goodbye!")
                        break

                except EOFError:
                    await self._exit()
                    break
        finally:
            self.memory_store.close()


async def run_cli(config: EVEConfig | None = None) -> None:
    """Entry point for the CLI."""
    cli = CLI(config=config)
    await cli.run()
