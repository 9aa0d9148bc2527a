from chatrelay.assembler import (
    CONTEXT_ACK,
    FALLBACK_SYSTEM_PROMPT,
    assemble,
    build_context_block,
    build_system_prompt,
)
from chatrelay.conversation.models import Message
from chatrelay.settings_store import ChatSettings


def _all_off(**overrides) -> ChatSettings:
    values = dict(
        system_prompt="Base prompt.",
        custom_instructions="",
        enable_code_execution=False,
        enable_file_editing=False,
        memory_enabled=False,
        use_snake_case=False,
        no_comments=False,
    )
    values.update(overrides)
    return ChatSettings(**values)


def _user(text):
    return Message(role="user", content=text)


def _assistant(text):
    return Message(role="assistant", content=text)


class TestSystemPrompt:
    def test_all_toggles_off_is_base_prompt(self):
        assert build_system_prompt(_all_off()) == "Base prompt."

    def test_empty_prompt_uses_fallback(self):
        assert build_system_prompt(_all_off(system_prompt="")) == FALLBACK_SYSTEM_PROMPT

    def test_snake_case_only(self):
        settings = _all_off(system_prompt="", use_snake_case=True)
        assert build_system_prompt(settings) == (
            "You are a helpful AI assistant.\n\n"
            "Code generation rules: use snake_case for all variable and function names."
        )

    def test_both_code_rules(self):
        prompt = build_system_prompt(_all_off(use_snake_case=True, no_comments=True))
        assert (
            "Code generation rules: use snake_case for all variable and function names; "
            "do not include any comments in code." in prompt
        )

    def test_clause_order(self):
        settings = _all_off(
            use_snake_case=True,
            custom_instructions="Answer in French.",
            enable_code_execution=True,
            enable_file_editing=True,
        )
        prompt = build_system_prompt(settings)
        positions = [
            prompt.index("Base prompt."),
            prompt.index("Code generation rules"),
            prompt.index("User's custom instructions:\nAnswer in French."),
            prompt.index("You can suggest code snippets."),
            prompt.index("You can suggest file modifications."),
        ]
        assert positions == sorted(positions)


class TestMessages:
    def test_memory_with_history_inserts_context_pair(self):
        prior = [_user("hi"), _assistant("hello!")]
        result = assemble(_all_off(memory_enabled=True), prior, _user("next"))

        assert [m.role for m in result.messages] == ["system", "user", "assistant", "user"]
        assert result.messages[1].content == (
            "[CONTEXT FROM PREVIOUS MESSAGES - Use this for continuity]\n\n"
            "User: hi\n\nAssistant: hello!\n\n"
            "[END OF CONTEXT]"
        )
        assert result.messages[2].content == CONTEXT_ACK
        assert result.messages[3].content == "next"

    def test_memory_disabled_drops_history(self):
        prior = [_user("hi"), _assistant("hello!")]
        result = assemble(_all_off(), prior, _user("next"))
        assert [m.role for m in result.messages] == ["system", "user"]
        assert result.messages[1].content == "next"

    def test_single_message_has_no_context(self):
        result = assemble(_all_off(memory_enabled=True), [], _user("first"))
        assert len(result.messages) == 2

    def test_one_prior_message_counts_as_history(self):
        result = assemble(_all_off(memory_enabled=True), [_user("only")], _user("again"))
        assert len(result.messages) == 4

    def test_system_message_matches_prompt(self):
        result = assemble(_all_off(), [], _user("x"))
        assert result.messages[0].content == result.system_prompt

    def test_sampling_parameters_pass_through(self):
        result = assemble(_all_off(temperature=1.3, max_tokens=256), [], _user("x"))
        assert result.temperature == 1.3
        assert result.max_tokens == 256

    def test_defaults(self):
        result = assemble(ChatSettings(), [], _user("x"))
        assert result.temperature == 0.7
        assert result.max_tokens == 4000


def test_context_block_labels_roles():
    block = build_context_block([_assistant("a"), _user("b")])
    assert "Assistant: a\n\nUser: b" in block


def test_payload_shape():
    payload = assemble(_all_off(), [], _user("x")).to_payload("some-model")
    assert payload == {
        "model": "some-model",
        "messages": [
            {"role": "system", "content": "Base prompt."},
            {"role": "user", "content": "x"},
        ],
        "temperature": 0.7,
        "max_tokens": 4000,
        "stream": False,
    }
