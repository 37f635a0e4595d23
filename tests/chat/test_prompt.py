"""Tests for prompt building."""

from evemind.chat import Message, build_messages, build_system_prompt
from evemind.config import EVEProfile


def test_system_prompt_has_persona():
    profile = EVEProfile(
        name="Ada",
        company_name="Acme Corp",
        capabilities=["scheduling", "customer support"],
        working_hours="9-5 CET",
    )
    prompt = build_system_prompt(profile)

    assert "You are Ada, a virtual employee working for Acme Corp." in prompt
    assert "scheduling, customer support" in prompt
    assert "9-5 CET" in prompt
    assert "following context" not in prompt


def test_system_prompt_includes_context_block():
    prompt = build_system_prompt(EVEProfile(), 'Known fact: timezone - "PST"')
    assert "You have access to the following context:" in prompt
    assert prompt.endswith('Known fact: timezone - "PST"')


def test_system_prompt_blank_context_omitted():
    assert "following context" not in build_system_prompt(EVEProfile(), "   ")


def test_system_prompt_includes_analysis():
    prompt = build_system_prompt(EVEProfile(), "", thought_process="User wants a summary")
    assert "User wants a summary" in prompt


def test_build_messages_order():
    history = [Message("user", "hi"), Message("assistant", "hello")]
    messages = build_messages("SYSTEM", history, "how are you?", window=10)
    assert messages == [
        {"role": "system", "content": "SYSTEM"},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
        {"role": "user", "content": "how are you?"},
    ]


def test_build_messages_window():
    history = [Message("user", str(i)) for i in range(12)]
    messages = build_messages("SYSTEM", history, "new", window=10)
    assert len(messages) == 12
    assert messages[1]["content"] == "2"


def test_build_messages_zero_window():
    history = [Message("user", "old")]
    messages = build_messages("SYSTEM", history, "new", window=0)
    assert [m["content"] for m in messages] == ["SYSTEM", "new"]
