"""Prompt construction for commit message generation."""

from typing import Optional, Sequence

CONVENTIONAL_FORMAT = (
    "Use Conventional Commits format (e.g., feat:, fix:, docs:, refactor:, test:, chore:)."
)

PREFIX_FORMATS = {
    "conventional": CONVENTIONAL_FORMAT,
    "bracket": "Use bracket prefix format (e.g., [Add], [Fix], [Update], [Remove], [Refactor]).",
    "colon": "Use colon prefix format (e.g., Add:, Fix:, Update:, Remove:, Refactor:).",
    "emoji": (
        "Use emoji prefix format (e.g., ✨ for new feature, \U0001f41b for bug fix, "
        "\U0001f4dd for docs, ♻️ for refactor, \U0001f527 for config)."
    ),
    "plain": "Do NOT use any prefix. Write only the commit message without type prefix.",
    "none": "Do NOT use any prefix. Write only the commit message without type prefix.",
}

PREFIX_TYPES = ["auto"] + list(PREFIX_FORMATS)

SINGLE_LINE_RULES = """
Rules:
- Write only a single line (no multi-line message)
- Keep it concise (ideally under 72 characters)"""

BODY_RULES = """
Structure:
- First line: Subject line (concise summary, ideally under 72 characters)
- Second line: Empty (blank line)
- Third line onwards: Body with bullet points describing key changes

Body Guidelines:
- Use bullet points starting with "- "
- Each bullet point should describe a specific change
- Include 2-5 bullet points based on the scope of changes
- Be specific about what was added, changed, or removed"""

PROMPT_TEMPLATE = """Generate a git commit message for the following changes.

{format_section}

Instructions:
- Match the commit message style shown above
- Write the commit message in {language}
{body_instructions}
- Be specific about what changed
- Output ONLY the commit message as plain text
- Do NOT use any markdown formatting (no **, *, `, #, etc.)
- Do NOT include any explanation, reasoning, or thinking process
- Do NOT write phrases like "I will...", "Let me...", "Based on...", "Here is..."
- Respond with the commit message immediately, no preamble

Changes:
```diff
{diff}
```"""


def format_section(prefix_type: Optional[str], recent_commits: Sequence[str]) -> str:
    """
    Describe the expected message format.

    ``None`` or ``"auto"`` asks the agent to copy the style of the recent
    commits; any unknown value is treated as a custom format description.
    """
    if prefix_type and prefix_type != "auto":
        known = PREFIX_FORMATS.get(prefix_type.lower())
        if known:
            return known
        return f"Use the following prefix format: {prefix_type.strip()}"

    if not recent_commits:
        return f"No recent commits found. {CONVENTIONAL_FORMAT}"

    listing = "\n".join(
        f"{i}. {subject}" for i, subject in enumerate(recent_commits, start=1)
    )
    return (
        "Recent commit messages in this repository:\n"
        f"{listing}\n\n"
        "Analyze the recent commit messages above and match their style/format."
    )


def build_prompt(
    diff: str,
    recent_commits: Sequence[str],
    language: str = "English",
    prefix_type: Optional[str] = None,
    with_body: bool = False,
) -> str:
    return PROMPT_TEMPLATE.format(
        format_section=format_section(prefix_type, recent_commits),
        language=language,
        body_instructions=BODY_RULES if with_body else SINGLE_LINE_RULES,
        diff=diff,
    )
