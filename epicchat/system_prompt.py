"""System prompt builder for epic chat sessions."""

from typing import Optional

from epicchat.constants import NO_EPIC_TASKS_TEXT, NO_SPEC_TEXT
from epicchat.models import CommandType, ContextBundle


class SystemPromptBuilder:
    """Builds the system prompt for one epic chat request.

    Sections always appear in this order: project introduction, command
    instructions, epic specification, current tasks, cross-project context
    (optional), project learnings (optional).
    """

    def __init__(self, command_type: CommandType, bundle: ContextBundle):
        """Initialize system prompt builder.

        Args:
            command_type: Selects the instruction block
            bundle: Context gathered for this request
        """
        self.command_type = CommandType(command_type)
        self.bundle = bundle

    def build(self) -> str:
        """Build the full system prompt.

        Returns:
            System prompt text (never empty)
        """
        spec = self.bundle.spec if self.bundle.spec and self.bundle.spec.strip() else NO_SPEC_TEXT
        tasks = self.bundle.tasks if self.bundle.tasks.strip() else NO_EPIC_TASKS_TEXT

        prompt = f"""{self._build_introduction()}

{self._build_command_instructions()}

## Epic Specification
{spec}

## Current Tasks
{tasks}
"""

        if self.bundle.extra_context and self.bundle.extra_context.strip():
            prompt += f"\n## Cross-Project Context\n{self.bundle.extra_context}\n"

        if self.bundle.learnings and self.bundle.learnings.strip():
            prompt += f"\n## Project Learnings\n{self.bundle.learnings}\n"

        return prompt

    def _build_introduction(self) -> str:
        name = self.bundle.project_name.strip() or "this project"
        return (
            "You are an AI assistant helping with software development "
            f'for the project "{name}".'
        )

    def _build_command_instructions(self) -> str:
        if self.command_type is CommandType.INTERVIEW:
            return self._build_interview_instructions()
        if self.command_type is CommandType.REVIEW:
            return self._build_review_instructions()
        return self._build_chat_instructions()

    def _build_interview_instructions(self) -> str:
        return """## Role: Requirements Interviewer

You are conducting a requirements elicitation interview for this epic. Your goal is to:
- Ask targeted, specific questions about unclear requirements
- Help the user think through edge cases and constraints
- Identify missing acceptance criteria
- Suggest potential technical approaches and trade-offs
- Build understanding incrementally through conversation

Ask one or two focused questions at a time. Do not overwhelm the user with too many questions at once. Build on their answers to dig deeper."""

    def _build_review_instructions(self) -> str:
        return """## Role: Epic Analyst

You are reviewing this epic's specification and current progress. Your goal is to:
- Analyze the epic spec for completeness, clarity, and feasibility
- Review the current task breakdown and identify gaps
- Flag potential risks, blockers, or architectural concerns
- Suggest improvements to the spec or task structure
- Assess overall progress and remaining effort

Provide a structured, actionable review. Be specific about what's good and what needs attention."""

    def _build_chat_instructions(self) -> str:
        return """## Role: Development Assistant

You are a helpful development assistant with context about this epic and its tasks. Your goal is to:
- Answer questions about the epic, its tasks, and implementation approach
- Help with technical decisions and trade-offs
- Suggest solutions to implementation challenges
- Provide code guidance when asked
- Help prioritize and plan work

Be concise and practical. Reference the epic spec and task list when relevant."""


def build_system_prompt(command_type: CommandType, bundle: ContextBundle) -> str:
    """Build the system prompt for a command type and context bundle."""
    return SystemPromptBuilder(command_type, bundle).build()


def build_extra_context(
    current_memory: Optional[str], cross_project: Optional[str]
) -> Optional[str]:
    """Combine current project memory and cross-project knowledge.

    Args:
        current_memory: Sections from this project's ``.flow/memory``
        cross_project: Knowledge gathered from other registered projects

    Returns:
        Extension block, or None when both inputs are empty
    """
    parts = []

    if current_memory:
        parts.append(f"### Current Project Memory\n{current_memory}")

    if cross_project:
        parts.append(
            "### Patterns from other projects\n"
            "These learnings come from other projects in this workspace. "
            "Suggest relevant improvements where applicable:\n\n"
            f"{cross_project}"
        )

    return "\n\n".join(parts) if parts else None
