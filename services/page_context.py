# services/page_context.py
"""Page-aware context and suggested questions."""
import calendar
from datetime import date
from typing import Dict, Optional

from models.pipeline import PageContext

MAX_SUGGESTIONS = 6

ROUTE_CONTEXTS = {
    "/dashboard": {
        "type": "overview",
        "title": "Dashboard",
        "suggested_queries": [
            "Show me recent payroll activity",
            "What clients need attention?",
            "Show upcoming deadlines",
        ],
        "relevant_tables": ["payrolls", "clients", "payroll_dashboard_stats"],
    },
    "/payrolls": {
        "type": "payroll_management",
        "title": "Payroll Management",
        "suggested_queries": [
            "Show payrolls in progress",
            "List overdue payrolls",
            "Show payroll assignments for this week",
        ],
        "relevant_tables": ["payrolls", "payroll_assignments", "payroll_dates"],
    },
    "/clients": {
        "type": "client_management",
        "title": "Client Management",
        "suggested_queries": [
            "Show active clients",
            "Which clients have recent payrolls?",
            "Show client contact details",
        ],
        "relevant_tables": ["clients", "payrolls"],
    },
    "/staff": {
        "type": "staff_management",
        "title": "Staff Management",
        "suggested_queries": [
            "Show staff by skills",
            "Who's available this week?",
            "Show staff capacity overview",
        ],
        "relevant_tables": ["users", "user_skills", "consultant_capacity_overview"],
    },
    "/work-schedule": {
        "type": "scheduling",
        "title": "Work Schedule",
        "suggested_queries": [
            "Show today's schedule",
            "Who's scheduled this week?",
            "Show schedule conflicts",
        ],
        "relevant_tables": ["work_schedule", "users"],
    },
    "/leave": {
        "type": "leave_management",
        "title": "Leave Management",
        "suggested_queries": [
            "Show pending leave requests",
            "Who's on leave this week?",
            "Show leave balance by staff",
        ],
        "relevant_tables": ["leave", "users"],
    },
    "/payroll-schedule": {
        "type": "payroll_scheduling",
        "title": "Payroll Schedule",
        "suggested_queries": [
            "Show upcoming payroll dates",
            "Which payrolls are due?",
            "Show schedule conflicts",
        ],
        "relevant_tables": ["payroll_dates", "payrolls", "payroll_date_types"],
    },
}

DETAIL_ROUTES = {
    "/payrolls": ("Payroll Details", [
        "Show this payroll's assignments",
        "Show this payroll's timeline",
        "Who's working on this payroll?",
    ]),
    "/clients": ("Client Details", [
        "Show this client's payroll history",
        "Show this client's staff assignments",
        "Show notes for this client",
    ]),
    "/staff": ("Staff Details", [
        "Show this person's assignments",
        "Show this person's schedule",
        "Show this person's skills and capacity",
    ]),
}

DEFAULT_ROUTE = {
    "type": "general",
    "title": "Payroll Matrix",
    "suggested_queries": [
        "Show me an overview",
        "What needs my attention?",
        "Show recent activity",
    ],
    "relevant_tables": ["payrolls", "clients", "users"],
}

ROLE_SUGGESTIONS = {
    "developer": ["Show system diagnostics", "Show recent errors"],
    "org_admin": ["Show organization overview", "Show user activity"],
    "manager": ["Show team performance", "Show capacity planning"],
    "consultant": ["Show my assignments", "Show my schedule"],
}


def _route_for(pathname: str):
    if pathname in ROUTE_CONTEXTS:
        return ROUTE_CONTEXTS[pathname], None
    for prefix, (title, queries) in DETAIL_ROUTES.items():
        if pathname.startswith(prefix + "/"):
            entity_id = pathname[len(prefix) + 1:].split("/")[0] or None
            route = dict(ROUTE_CONTEXTS[prefix], title=title, suggested_queries=queries)
            return route, entity_id
    return DEFAULT_ROUTE, None


def extract_page_context(
    pathname: Optional[str],
    user_role: str,
    search_params: Optional[Dict[str, str]] = None,
    today: Optional[date] = None,
) -> PageContext:
    """Resolve the caller's page into a title, tables and up to six suggestions."""
    path = (pathname or "/").split("?")[0].rstrip("/") or "/"
    route, entity_id = _route_for(path)

    suggestions = list(route["suggested_queries"])
    suggestions.extend(ROLE_SUGGESTIONS.get(user_role, []))

    today = today or date.today()
    if today.weekday() == 0:
        suggestions.append("Show this week's schedule")
    if today.day > calendar.monthrange(today.year, today.month)[1] - 3:
        suggestions.append("Show month-end payroll summary")

    search_params = search_params or {}
    if search_params.get("status"):
        suggestions.append(f"Show {search_params['status']} items")
    if search_params.get("client"):
        suggestions.append(f"Show data for {search_params['client']}")

    return PageContext(
        pathname=path,
        title=route["title"],
        page_type=route["type"],
        relevant_tables=tuple(route["relevant_tables"]),
        suggested_queries=tuple(suggestions[:MAX_SUGGESTIONS]),
        entity_id=entity_id,
    )
