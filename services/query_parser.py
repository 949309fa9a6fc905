# services/query_parser.py
"""
Recovering a GraphQL query from free-form model output.

Two independent passes:

* ``extract_query_response`` finds the query text and an explanation,
  falling back through JSON, fenced blocks, a regex match, a brace-counting
  scan and finally a canned query chosen from the user's own words.
* ``repair_graphql_syntax`` fixes the mistakes language models commonly make
  in GraphQL (quote style, quoted literals, unbalanced braces, spelled-out
  filter operators). It works on code outside string literals and comments
  only, so a query that is already valid comes back unchanged.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from data.schemas import BOOLEAN_COLUMNS, DEFAULT_FALLBACK_QUERY, FALLBACK_QUERIES

logger = logging.getLogger(__name__)

DEFAULT_EXPLANATION = "Generated GraphQL query for your request"
KEYWORD_FALLBACK_EXPLANATION = (
    "I generated a basic query to get you started. The AI had trouble parsing "
    "your request, but this should provide useful data."
)
DEFAULT_FALLBACK_EXPLANATION = (
    "I provided a basic clients query as a fallback. Try rephrasing your "
    "question with the table or fields you are interested in."
)

_FENCE_LINE = re.compile(r"^\s*```[\w-]*\s*$", re.MULTILINE)
_GRAPHQL_FENCE = re.compile(r"```(?:graphql|gql)\s*\n?(.*?)(?:```|$)", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```[\w-]*\s*\n?(.*?)```", re.DOTALL)
_NAMED_QUERY = re.compile(r"query\s+[_A-Za-z]\w*\s*(?:\([^)]*\))?\s*\{[\s\S]*\}")
_QUERY_KEYWORD = re.compile(r"\bquery\b")

_OPERATOR_FIXES = {
    "greater_than_or_equal": "_gte",
    "less_than_or_equal": "_lte",
    "greater_than": "_gt",
    "less_than": "_lt",
    "not_equals": "_neq",
    "equals": "_eq",
}
_OPERATOR_PATTERN = re.compile(
    r"(?<![\w$])(" + "|".join(sorted(_OPERATOR_FIXES, key=len, reverse=True)) + r")(?=\s*:)"
)
_NUMERIC_KEYS = re.compile(r"\b(limit|offset|_gt|_gte|_lt|_lte)\s*:\s*$")
_VALUE_POSITION = re.compile(r":\s*$")
_IS_NULL_KEY = re.compile(r"\b_is_null\s*:\s*$")
_BOOLEAN_COMPARISON = re.compile(r"\b(\w+)\s*:\s*\{\s*_n?eq\s*:\s*$")
_DIRECT_VALUE = re.compile(r"\b(\w+)\s*:\s*$")
_NUMBER = re.compile(r"-?\d+(\.\d+)?")

# opener -> accepted closers
_QUOTES = {
    '"': '"',
    "“": "”“\"",
    "”": "”“\"",
    "'": "'",
    "‘": "’‘'",
    "’": "’‘'",
}


@dataclass(frozen=True)
class ExtractedQuery:
    query: str
    explanation: str
    variables: Dict[str, Any] = field(default_factory=dict)
    source: str = "json"

    @property
    def is_fallback(self) -> bool:
        return self.source in ("keyword_fallback", "default_fallback")


@dataclass(frozen=True)
class RepairResult:
    query: str
    fixes: Tuple[str, ...] = ()


def strip_code_fences(text: str) -> str:
    """Remove markdown fence lines, keeping their contents."""
    return _FENCE_LINE.sub("", text or "").strip()


def _safe_json_loads(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            return None
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def _variables_from(data: Dict[str, Any]) -> Dict[str, Any]:
    variables = data.get("variables")
    return variables if isinstance(variables, dict) else {}


def parse_json_response(raw: str) -> Optional[ExtractedQuery]:
    """Stage 1: the response is (or contains) the JSON object we asked for."""
    data = _safe_json_loads(strip_code_fences(raw))
    if not data:
        return None
    query, explanation = data.get("query"), data.get("explanation")
    if not isinstance(query, str) or not query.strip() or not isinstance(explanation, str):
        return None
    return ExtractedQuery(
        query=query.strip(),
        explanation=explanation.strip() or DEFAULT_EXPLANATION,
        variables=_variables_from(data),
        source="json",
    )


def _query_from_block(block: str) -> str:
    # A fenced JSON object that only carries a query still counts as a candidate
    data = _safe_json_loads(block)
    if data and isinstance(data.get("query"), str):
        return data["query"]
    return block


def _brace_scan(text: str) -> Optional[Tuple[int, int]]:
    """Span from the first line starting with ``query`` to its balancing brace."""
    match = re.search(r"^[ \t]*query\b", text, re.MULTILINE)
    if not match:
        return None
    start = match.start()
    depth, opened = 0, False
    for index in range(start, len(text)):
        ch = text[index]
        if ch == "{":
            depth += 1
            opened = True
        elif ch == "}":
            depth -= 1
            if opened and depth == 0:
                return start, index + 1
    return (start, len(text)) if opened else None


def locate_query(raw: str) -> Optional[Tuple[str, str, str]]:
    """Stage 2: find a query candidate in non-JSON output.

    Returns ``(query, remaining_text, source)`` or None.
    """
    data = _safe_json_loads(strip_code_fences(raw))
    if data and isinstance(data.get("query"), str) and data["query"].strip():
        return data["query"].strip(), "", "partial_json"

    match = _GRAPHQL_FENCE.search(raw)
    if match and match.group(1).strip():
        return _query_from_block(match.group(1)).strip(), raw[:match.start()] + raw[match.end():], "graphql_fence"

    for match in _ANY_FENCE.finditer(raw):
        block = match.group(1)
        if _QUERY_KEYWORD.search(block):
            return _query_from_block(block).strip(), raw[:match.start()] + raw[match.end():], "fence"

    match = _NAMED_QUERY.search(raw)
    if match:
        return match.group(0).strip(), raw[:match.start()] + raw[match.end():], "regex"

    span = _brace_scan(raw)
    if span:
        start, end = span
        return raw[start:end].strip(), raw[:start] + raw[end:], "brace_scan"

    return None


def _clean_explanation(text: str) -> str:
    text = _FENCE_LINE.sub("", text).replace("```", "")
    return " ".join(text.split())


def fallback_query_for(user_message: str) -> Tuple[str, str, bool]:
    """Canned query keyed on words in the user's request.

    Returns ``(query, explanation, is_default)``.
    """
    message = (user_message or "").lower()
    for keywords, query in FALLBACK_QUERIES:
        if any(re.search(rf"\b{keyword}", message) for keyword in keywords):
            return query, KEYWORD_FALLBACK_EXPLANATION, False
    return DEFAULT_FALLBACK_QUERY, DEFAULT_FALLBACK_EXPLANATION, True


def extract_query_response(raw: str, user_message: str) -> ExtractedQuery:
    """Run the extraction chain. Always returns something usable."""
    raw = raw or ""

    parsed = parse_json_response(raw)
    if parsed:
        return parsed

    located = locate_query(raw)
    if located:
        query, rest, source = located
        logger.info(f"Recovered query from non-JSON output via {source}")
        return ExtractedQuery(
            query=query,
            explanation=_clean_explanation(rest) or DEFAULT_EXPLANATION,
            source=source,
        )

    query, explanation, is_default = fallback_query_for(user_message)
    logger.warning(f"No query found in model output, using {'default' if is_default else 'keyword'} fallback")
    return ExtractedQuery(
        query=query,
        explanation=explanation,
        source="default_fallback" if is_default else "keyword_fallback",
    )


# --- syntax repair -------------------------------------------------------

def _split_literals(text: str) -> Tuple[List[List[Any]], bool]:
    """Split into ``[kind, text]`` segments: code, string, block or comment.

    Strings opened with single or typographic quotes are rewritten as
    standard double-quoted strings. Returns the segments and whether any
    quote was normalized.
    """
    segments: List[List[Any]] = []
    code: List[str] = []
    normalized = False
    i, n = 0, len(text)

    def flush():
        if code:
            segments.append(["code", "".join(code)])
            code.clear()

    while i < n:
        ch = text[i]

        if ch == "#":
            end = text.find("\n", i)
            end = n if end == -1 else end
            flush()
            segments.append(["comment", text[i:end]])
            i = end
            continue

        if text.startswith('"""', i):
            end = text.find('"""', i + 3)
            end = n if end == -1 else end + 3
            flush()
            segments.append(["block", text[i:end]])
            i = end
            continue

        if ch in _QUOTES:
            closers = _QUOTES[ch]
            j = i + 1
            content: List[str] = []
            closed = False
            while j < n and text[j] != "\n":
                if text[j] == "\\" and j + 1 < n:
                    content.append(text[j:j + 2])
                    j += 2
                    continue
                if text[j] in closers:
                    closed = True
                    break
                content.append(text[j])
                j += 1

            if not closed:
                code.append(ch)
                i += 1
                continue

            flush()
            body = "".join(content)
            if ch == '"' and text[j] == '"':
                segments.append(["string", text[i:j + 1]])
            else:
                body = body.replace("\\'", "'")
                body = re.sub(r'(?<!\\)"', r'\\"', body)
                segments.append(["string", f'"{body}"'])
                normalized = True
            i = j + 1
            continue

        code.append(ch)
        i += 1

    flush()
    return segments, normalized


def _fix_literals(segments: List[List[Any]]) -> Tuple[bool, bool]:
    """Unquote boolean/null literals in boolean positions and numeric pagination/comparison values."""
    fixed_bool, fixed_number = False, False
    for index, (kind, value) in enumerate(segments):
        if kind != "string" or index == 0 or segments[index - 1][0] != "code":
            continue
        previous = segments[index - 1][1]
        inner = value[1:-1]
        if not _VALUE_POSITION.search(previous):
            continue
        if inner in ("true", "false", "null") and _is_boolean_position(previous, inner):
            segments[index] = ["code", inner]
            fixed_bool = True
        elif _NUMERIC_KEYS.search(previous) and _NUMBER.fullmatch(inner):
            segments[index] = ["code", inner]
            fixed_number = True
    return fixed_bool, fixed_number


def _is_boolean_position(previous: str, literal: str) -> bool:
    if _IS_NULL_KEY.search(previous):
        return literal != "null"
    match = _BOOLEAN_COMPARISON.search(previous) or _DIRECT_VALUE.search(previous)
    return bool(match) and match.group(1) in BOOLEAN_COLUMNS


def _balance_braces(segments: List[List[Any]], opens: int, closes: int) -> bool:
    """Append missing closers or drop unmatched trailing ones. Returns whether anything changed."""
    if opens > closes:
        if segments and segments[-1][0] == "code":
            segments[-1][1] = segments[-1][1].rstrip()
        segments.append(["code", "\n" + "}" * (opens - closes)])
        return True

    unmatched = set()
    depth = 0
    for index, (kind, value) in enumerate(segments):
        if kind != "code":
            continue
        for offset, ch in enumerate(value):
            if ch == "{":
                depth += 1
            elif ch == "}":
                if depth:
                    depth -= 1
                else:
                    unmatched.add((index, offset))

    # Only closers followed by nothing but whitespace, comments or other unmatched closers
    removable = set()
    for index in range(len(segments) - 1, -1, -1):
        kind, value = segments[index]
        if kind == "comment":
            continue
        if kind != "code":
            break
        offset = len(value) - 1
        while offset >= 0 and (value[offset].isspace() or (index, offset) in unmatched):
            if value[offset] == "}":
                removable.add((index, offset))
            offset -= 1
        if offset >= 0:
            break

    if not removable:
        return False
    for index in {index for index, _ in removable}:
        value = segments[index][1]
        segments[index][1] = "".join(ch for offset, ch in enumerate(value) if (index, offset) not in removable)
    if segments[-1][0] == "code":
        segments[-1][1] = segments[-1][1].rstrip()
    return True


def repair_graphql_syntax(text: str) -> RepairResult:
    """Apply lexical repairs. Valid GraphQL passes through untouched."""
    fixes: List[str] = []
    segments, normalized = _split_literals(text or "")
    if normalized:
        fixes.append("normalized_quotes")

    fixed_bool, fixed_number = _fix_literals(segments)
    if fixed_bool:
        fixes.append("unquoted_literals")
    if fixed_number:
        fixes.append("unquoted_numbers")

    operators_fixed = False
    for segment in segments:
        if segment[0] != "code":
            continue
        replaced, count = _OPERATOR_PATTERN.subn(lambda m: _OPERATOR_FIXES[m.group(1)], segment[1])
        if count:
            segment[1] = replaced
            operators_fixed = True
    if operators_fixed:
        fixes.append("canonical_operators")

    opens = sum(s[1].count("{") for s in segments if s[0] == "code")
    closes = sum(s[1].count("}") for s in segments if s[0] == "code")
    if opens != closes and _balance_braces(segments, opens, closes):
        fixes.append("balanced_braces")

    if fixes:
        logger.debug(f"Applied GraphQL repairs: {fixes}")
    repaired = "".join(s[1] for s in segments)
    return RepairResult(query=repaired if fixes else (text or ""), fixes=tuple(fixes))
