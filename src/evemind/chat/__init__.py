"""Chat module: completion client, prompts and the conversation loop."""

from .analysis import Analysis, MessageAnalyzer
from .completion import CompletionClient, GroqCompletionClient
from .offline import OfflineCompletionClient, generate_mock_response
from .orchestrator import ConversationOrchestrator, TurnStage
from .prompt import Message, build_messages, build_system_prompt

__all__ = [
    "Analysis",
    "CompletionClient",
    "ConversationOrchestrator",
    "GroqCompletionClient",
    "Message",
    "MessageAnalyzer",
    "OfflineCompletionClient",
    "TurnStage",
    "build_messages",
    "build_system_prompt",
    "generate_mock_response",
]
