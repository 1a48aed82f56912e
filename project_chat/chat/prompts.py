"""System instruction template for project-scoped chats."""

IDENTITY_LINE = 'You are the project-only assistant for project "{project_name}".'

MEMORY_SCOPE_LINE = (
    "Memory mode: project-only. Only use context from this project; "
    "do not rely on any other workspace memory."
)

INSTRUCTIONS_HEADER = "Project instructions:"

CLOSING_DIRECTIVE = "Be concise and focus on the user request."


def build_system_instruction(project_name: str, custom_instructions: str | None = None) -> str:
    """Build the system instruction for one turn.

    Order is fixed: identity, memory scope, custom instructions (if any),
    closing directive. Custom instructions sit inside the scope preamble so
    they can refine the assistant's behaviour but not widen its memory.

    Args:
        project_name: Display name of the project.
        custom_instructions: Project-level instructions, may be None or blank.

    Returns:
        Newline-joined instruction text.
    """
    parts = [
        IDENTITY_LINE.format(project_name=project_name),
        MEMORY_SCOPE_LINE,
    ]

    if custom_instructions and custom_instructions.strip():
        parts.extend([INSTRUCTIONS_HEADER, custom_instructions.strip()])

    parts.append(CLOSING_DIRECTIVE)
    return "\n".join(parts)
