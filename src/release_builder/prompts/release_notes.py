"""Prompt templates for release notes generation.

The system prompt fixes the output contract (HTML only, fixed section
structure, user-facing wording); the user prompt lists the source material
grouped the way the sections are laid out:

1. Tickets grouped by type: New Features, Improvements, Fixes, Breaking Changes
2. Commits and pull requests, with authors
3. Company details, when given
"""

from __future__ import annotations

from release_builder.schemas import GenerationRequest, TicketEntry, TicketType, Tone

# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """You are an expert product writer creating release notes for a SaaS product.

Return ONLY valid HTML (no Markdown). Do not wrap the output in code fences. Do not include <html>, <head>, or <body> tags.

Write in a {tone} tone. Make it skimmable and user-focused.

Required structure:
- Start with a short <p> summary (1-3 sentences).
- Then include only the sections that apply, each as <h2> + <ul><li>...</li></ul>:
  - New Features
  - Improvements
  - Fixes
  - Breaking Changes (only if truly breaking)

Writing rules:
- Each <li> should be one short sentence and describe the user benefit.
- Remove internal IDs (e.g., ABC-123, commit SHAs) unless they are clearly user-facing.
- Avoid implementation details, stack names, or internal systems.
- If an item has little context, be conservative and do not invent details."""

TEMPLATE_GUIDANCE = """

Template guidance (follow where it makes sense, but still output valid HTML):
{template}"""

# Section order in the user prompt
TICKET_SECTIONS: list[tuple[TicketType, str]] = [
    (TicketType.FEATURE, "New Features"),
    (TicketType.IMPROVEMENT, "Improvements"),
    (TicketType.BUGFIX, "Fixes"),
    (TicketType.BREAKING, "Breaking Changes"),
]


def build_system_prompt(tone: Tone = Tone.PROFESSIONAL, template: str | None = None) -> str:
    """Build the system prompt for the requested tone.

    Args:
        tone: Writing tone
        template: Optional template text the model should loosely follow

    Returns:
        The formatted system prompt string
    """
    prompt = SYSTEM_PROMPT.format(tone=tone.value)
    if template:
        prompt += TEMPLATE_GUIDANCE.format(template=template)
    return prompt


# ---------------------------------------------------------------------------
# User Prompt
# ---------------------------------------------------------------------------


def _format_ticket(ticket: TicketEntry) -> str:
    line = f"- {ticket.title or 'Untitled'}: {ticket.description or ''}\n"
    if ticket.labels:
        line += f"  Labels: {', '.join(ticket.labels)}\n"
    return line


def build_user_prompt(request: GenerationRequest) -> str:
    """Lay out the request's tickets, commits and company details as source material."""
    prompt = "Use the following items as source material:\n\n"

    for ticket_type, heading in TICKET_SECTIONS:
        group = [t for t in request.tickets if t.type == ticket_type]
        if not group:
            continue
        prompt += f"{heading}:\n"
        prompt += "".join(_format_ticket(t) for t in group)
        prompt += "\n"

    if request.commits:
        prompt += "Commits / PRs:\n"
        for commit in request.commits:
            prompt += f"- {commit.message}\n"
            if commit.author:
                prompt += f"  Author: {commit.author}\n"
        prompt += "\n"

    if request.company_details:
        prompt += f"Company details:\n{request.company_details}\n"

    return prompt
