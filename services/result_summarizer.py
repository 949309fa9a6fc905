# services/result_summarizer.py
"""Plain-language answers built from query results."""
import json
import logging
from typing import Any, Dict, List, Optional

from services.llm_client import CompletionClient, CompletionUnavailable

logger = logging.getLogger(__name__)

MANAGER_ROLES = {"developer", "org_admin", "manager"}

# First match wins
BUSINESS_CONTEXTS = [
    ("Client Management", ("client",)),
    ("Payroll Operations", ("payroll",)),
    ("Staff Management", ("staff", "user", "team")),
    ("Scheduling & Time", ("schedule", "time", "capacity")),
    ("Financial Performance", ("revenue", "billing", "financial")),
    ("Leave Management", ("leave", "holiday", "vacation")),
    ("Skills & Capabilities", ("skill", "expertise")),
    ("Business Analytics", ("report", "analytics", "performance")),
]
DEFAULT_CONTEXT = "Business Operations"

RELATED_QUESTIONS = {
    "Client Management": [
        "How many active clients do we have?",
        "Which clients have the most payrolls?",
        "Show me clients added this month",
    ],
    "Payroll Operations": [
        "Which payrolls are currently active?",
        "Show me payrolls going live this month",
        "Which payrolls have upcoming EFT dates?",
    ],
    "Staff Management": [
        "Who's available today?",
        "What's our team capacity this week?",
        "Show me staff skill distribution",
    ],
    "Financial Performance": [
        "What's our revenue this quarter?",
        "Show me billing efficiency metrics",
        "Which clients are most profitable?",
    ],
}
DEFAULT_RELATED_QUESTIONS = [
    "Show me recent activity",
    "What's the current status?",
    "Give me a summary of key metrics",
]

CONTEXT_PHRASES = {
    "Client Management": ("client", "This represents important relationship data for business planning.", "Here are the details you requested."),
    "Payroll Operations": ("payroll record", "This data is key to understanding processing efficiency and client service levels.", "Here are the payroll details."),
    "Staff Management": ("staff record", "This information helps with resource planning and team management.", "Here are the team details."),
    "Financial Performance": ("financial record", "This data provides insights into business performance and profitability.", "Here are the financial details."),
    "Scheduling & Time": ("schedule entry", "This helps understand resource utilization and capacity planning.", "Here are the schedule details."),
}

MAX_SAMPLE_ROWS = 20


def _plural(noun: str, count: int) -> str:
    if count == 1:
        return noun
    if noun.endswith("entry"):
        return noun[:-1] + "ies"
    return noun + "s"


class ResultSummarizer:
    """Summarizes result data for the user, with or without a language model."""

    def __init__(self, completion_client: Optional[CompletionClient] = None):
        self.completion_client = completion_client

    @staticmethod
    def determine_business_context(question: str) -> str:
        lowered = (question or "").lower()
        for context, keywords in BUSINESS_CONTEXTS:
            if any(keyword in lowered for keyword in keywords):
                return context
        return DEFAULT_CONTEXT

    @staticmethod
    def record_count(data: Optional[Dict[str, Any]]) -> int:
        """Rows across every root field; aggregate roots contribute their count."""
        if not data:
            return 0
        total = 0
        for value in data.values():
            if isinstance(value, list):
                total += len(value)
            elif isinstance(value, dict):
                aggregate = value.get("aggregate")
                if isinstance(aggregate, dict) and isinstance(aggregate.get("count"), int):
                    total += aggregate["count"]
                else:
                    total += 1
        return total

    def analyze_results(self, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        tables = sorted(data.keys()) if data else []
        fields = set()
        for value in (data or {}).values():
            rows = value if isinstance(value, list) else [value]
            for row in rows[:MAX_SAMPLE_ROWS]:
                if isinstance(row, dict):
                    fields.update(row.keys())
        return {
            "record_count": self.record_count(data),
            "tables": tables,
            "fields": sorted(fields),
        }

    def related_questions(self, question: str) -> List[str]:
        context = self.determine_business_context(question)
        return list(RELATED_QUESTIONS.get(context, DEFAULT_RELATED_QUESTIONS))

    def fallback_answer(self, question: str, data: Optional[Dict[str, Any]], user_role: str = "viewer") -> str:
        """Deterministic answer used when no language model is available."""
        context = self.determine_business_context(question)
        if data is None:
            return (
                f"I couldn't find any data to answer your question about {context.lower()}. "
                "The data may not exist, or you may need different permissions to access it."
            )
        count = self.record_count(data)
        if count == 0:
            return (
                f"No records found for your {context.lower()} query. "
                "You may want to adjust your criteria or check the date range."
            )

        phrase = CONTEXT_PHRASES.get(context)
        if phrase is None:
            return (
                f"Found {count} {_plural('record', count)} for your query. "
                f"The data shows the current state of your {context.lower()}."
            )
        noun, manager_note, default_note = phrase
        note = manager_note if user_role in MANAGER_ROLES else default_note
        return f"Found {count} {_plural(noun, count)} matching your query. {note}"

    def error_answer(self, error: Exception, user_role: str = "viewer") -> str:
        message = str(error).lower()
        if "permission" in message or "access" in message:
            if user_role == "viewer":
                return "I don't have permission to access the data needed to answer your question. You may need elevated permissions to view this information."
            return "I don't have permission to access the data needed to answer your question. Please check with your administrator about data access."
        if "not found" in message or "does not exist" in message:
            return "The data you're asking about doesn't seem to exist in our system. Please check your question refers to valid business entities or try rephrasing it."
        return "I encountered an issue while trying to answer your question. Please try rephrasing your question or try again later."

    async def summarize(
        self,
        question: str,
        data: Optional[Dict[str, Any]],
        query: str = "",
        user_role: str = "viewer",
    ) -> str:
        """Answer ``question`` from ``data``. Never raises."""
        if self.record_count(data) == 0 or not self.completion_client or not self.completion_client.available:
            return self.fallback_answer(question, data, user_role)

        context = self.determine_business_context(question)
        analysis = self.analyze_results(data)
        sample = {
            key: value[:MAX_SAMPLE_ROWS] if isinstance(value, list) else value
            for key, value in data.items()
        }
        prompt = f"""You are a business analyst for a payroll management company. Answer the user's question based ONLY on the query results provided.

Business area: {context}
Records returned: {analysis['record_count']}
Tables: {', '.join(analysis['tables'])}
Fields: {', '.join(analysis['fields'])}

GraphQL query that produced this data:
{query}

Query Results:
{json.dumps(sample, indent=2, default=str)}

User's Question:
{question}

Important:
- Answer based ONLY on the data provided above
- If the question cannot be answered from this data, say what information is missing
- Give specific values and counts from the data
- Keep the answer to a short paragraph without markdown"""

        try:
            return await self.completion_client.complete(
                [
                    {"role": "system", "content": "You summarize business data accurately and concisely."},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
            )
        except CompletionUnavailable as e:
            logger.error(f"Answer summarization failed: {e}")
            return self.fallback_answer(question, data, user_role)
