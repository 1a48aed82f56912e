"""Unit tests for system instruction assembly."""

from project_chat.chat.prompts import (
    CLOSING_DIRECTIVE,
    INSTRUCTIONS_HEADER,
    MEMORY_SCOPE_LINE,
    build_system_instruction,
)


class TestBuildSystemInstruction:

    def test_identity_names_project(self):
        text = build_system_instruction("Apollo")
        assert text.splitlines()[0] == 'You are the project-only assistant for project "Apollo".'

    def test_custom_instructions_between_preamble_and_closing(self):
        text = build_system_instruction("Apollo", "Always answer in French")
        identity = text.index("Apollo")
        scope = text.index(MEMORY_SCOPE_LINE)
        custom = text.index("Always answer in French")
        closing = text.index(CLOSING_DIRECTIVE)
        assert identity < scope < custom < closing

    def test_no_instructions_block_when_absent(self):
        text = build_system_instruction("Apollo", None)
        assert INSTRUCTIONS_HEADER not in text
        assert text.endswith(CLOSING_DIRECTIVE)

    def test_blank_instructions_ignored(self):
        assert INSTRUCTIONS_HEADER not in build_system_instruction("Apollo", "  \n ")

    def test_instructions_are_stripped(self):
        text = build_system_instruction("Apollo", "\n  Cite sources.  \n")
        assert f"{INSTRUCTIONS_HEADER}\nCite sources.\n{CLOSING_DIRECTIVE}" in text
