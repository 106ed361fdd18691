import json

from openai.types.chat import ChatCompletionToolParam

WEB_SEARCH_TOOL_NAME = "web_search"
MAX_QUERY_LENGTH = 400


def web_search_tool() -> ChatCompletionToolParam:
    """Schema of the single function tool offered to the model."""
    return {
        "type": "function",
        "function": {
            "name": WEB_SEARCH_TOOL_NAME,
            "description": (
                "Search the web for current information. Use this when the "
                "user asks about recent events or facts you are unsure of."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": (
                            f"The search query (max {MAX_QUERY_LENGTH} characters)"
                        ),
                    },
                },
                "required": ["query"],
            },
        },
    }


def extract_search_query(arguments: str) -> str:
    """Read ``query`` from a tool call's JSON arguments.

    Falls back to the raw argument string when it is not a JSON object
    or the query is missing or blank.
    """
    try:
        parsed = json.loads(arguments)
    except (json.JSONDecodeError, TypeError):
        return arguments
    if isinstance(parsed, dict):
        query = parsed.get("query")
        if isinstance(query, str) and query.strip():
            return query
    return arguments


def truncate_query(query: str) -> str:
    return query[:MAX_QUERY_LENGTH]
