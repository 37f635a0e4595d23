"""Prompt builder for EVE conversations."""

from dataclasses import dataclass
from typing import Any

from ..config import EVEProfile

SYSTEM_PROMPT_BASE = """You are {name}, a virtual employee working for {company_name}.
Your primary functions are: {capabilities}.
You help the company automate tasks and improve efficiency.
You are professional, accurate, and constantly learning to improve your abilities.

When asked to perform a task, you should:
1. Understand the request
2. Identify if you have the capability to fulfill it
3. Request any missing information
4. Execute the task or provide a clear explanation of what you would do

Your working hours are {working_hours}."""

CONTEXT_INSTRUCTIONS = """

You have access to the following context:
{context_block}"""

ANALYSIS_INSTRUCTIONS = """

Your preliminary analysis of the user's message:
{thought_process}"""


@dataclass
class Message:
    """A single conversation turn."""

    role: str
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


def build_system_prompt(
    profile: EVEProfile,
    context_block: str = "",
    thought_process: str | None = None,
) -> str:
    """Build the system prompt with persona, memory context and analysis.

    Args:
        profile: The EVE persona.
        context_block: Formatted relevant memories.
        thought_process: Optional analysis of the incoming message.

    Returns:
        Complete system prompt string.
    """
    prompt = SYSTEM_PROMPT_BASE.format(
        name=profile.name,
        company_name=profile.company_name,
        capabilities=", ".join(profile.capabilities) or "general assistance",
        working_hours=profile.working_hours,
    )

    if context_block.strip():
        prompt += CONTEXT_INSTRUCTIONS.format(context_block=context_block)

    if thought_process and thought_process.strip():
        prompt += ANALYSIS_INSTRUCTIONS.format(thought_process=thought_process)

    return prompt


def build_messages(
    system_prompt: str,
    history: list[Message],
    message: str,
    window: int,
) -> list[dict[str, Any]]:
    """Assemble the message list sent to the completion API.

    Args:
        system_prompt: The system prompt.
        history: Earlier turns of this conversation.
        message: The new user message.
        window: How many trailing history messages to include.

    Returns:
        System message, the history window, then the user message.
    """
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    if window > 0:
        messages.extend(m.to_dict() for m in history[-window:])
    messages.append({"role": "user", "content": message})
    return messages
