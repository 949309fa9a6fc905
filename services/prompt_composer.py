# services/prompt_composer.py
"""Deterministic prompt construction for query generation."""
from typing import Dict, List

SYSTEM_IDENTITY = (
    "You are an expert AI assistant for Payroll Matrix, a payroll management "
    "system. You translate business questions about clients, payrolls, staff "
    "and schedules into read-only Hasura GraphQL queries."
)

INSTRUCTIONS = [
    "Generate QUERY operations only. Never generate mutations or subscriptions.",
    "Respond with a single JSON object and nothing else, in exactly this shape: "
    '{"query": "<GraphQL query>", "explanation": "<one or two sentences>", "variables": {}}',
    "The \"variables\" key is optional; include it only when the query declares variables.",
    "Use camelCase for every field and argument name (createdAt, goLiveDate, orderBy).",
    "Do not write any prose, markdown or code fences outside the JSON object.",
    "Only use tables and fields listed in the schema above.",
    "Filter with where: { field: { _eq: \"value\" } }, sort with orderBy: { field: DESC }.",
    "Always include a limit (default 10) unless the user asks for a count.",
    "Always use double quotes for string values.",
    "Never select passwords, tokens, secrets or other credentials.",
]


def compose(
    system_prompt: str,
    user_role: str,
    current_page: str,
    schema_context: str,
    user_message: str,
) -> List[Dict[str, str]]:
    """Build the three-message prompt.

    The context message is plain string concatenation. The user's text only
    ever appears, verbatim, in the final user message.
    """
    context = (
        "## User Context\n"
        + "- Role: " + (user_role or "viewer") + "\n"
        + "- Current page: " + (current_page or "Dashboard") + "\n\n"
        + "## Schema\n"
        + (schema_context or "") + "\n\n"
        + "## Instructions\n"
        + "\n".join(f"{index}. {line}" for index, line in enumerate(INSTRUCTIONS, 1))
    )

    return [
        {"role": "system", "content": system_prompt or SYSTEM_IDENTITY},
        {"role": "system", "content": context},
        {"role": "user", "content": user_message},
    ]
