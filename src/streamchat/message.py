from enum import Enum
from pydantic import BaseModel, field_serializer, model_validator

from streamchat.streaming import ToolCall


class MessageRole(Enum):
    SYSTEM = "system"
    ASSISTANT = "assistant"
    USER = "user"
    TOOL = "tool"


class ChatMessage(BaseModel):
    """One entry of the running conversation sent to the completions API.

    ``tool_call_id`` is only set on tool-role messages and ``tool_calls``
    only on assistant messages. Absent fields are dropped from the wire
    payload produced by :meth:`to_wire`.
    """

    role: MessageRole
    content: str | None = None
    tool_call_id: str | None = None
    tool_calls: list[ToolCall] | None = None
    name: str | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_role_fields(self):
        if self.role is MessageRole.TOOL and not self.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")
        if self.tool_calls and self.role is not MessageRole.ASSISTANT:
            raise ValueError("only assistant messages may carry tool_calls")
        return self

    @field_serializer('role')
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value

    @field_serializer("tool_calls")
    def serialize_tool_calls(self, tool_calls: list[ToolCall] | None) -> list[dict] | None:
        if tool_calls is None:
            return None
        return [
            {
                "id": t.id,
                "type": "function",
                "function": {
                    "arguments": t.arguments,
                    "name": t.name
                }
            }
            for t in tool_calls
        ]

    def to_wire(self) -> dict:
        return self.model_dump(exclude_none=True)

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(
        cls, content: str | None = None, tool_calls: list[ToolCall] | None = None,
    ) -> "ChatMessage":
        return cls(
            role=MessageRole.ASSISTANT,
            content=content or None,
            tool_calls=tool_calls or None,
        )

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> "ChatMessage":
        return cls(role=MessageRole.TOOL, content=content, tool_call_id=tool_call_id)

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        """Build a message from a wire-shaped mapping, e.g. one from :meth:`to_wire`."""
        tool_calls = [
            tc if isinstance(tc, ToolCall) else _tool_call_from_wire(tc)
            for tc in data.get("tool_calls") or []
        ]
        return cls(
            role=MessageRole(data["role"]),
            content=data.get("content"),
            tool_call_id=data.get("tool_call_id"),
            tool_calls=tool_calls or None,
            name=data.get("name"),
        )


def _tool_call_from_wire(data: dict) -> ToolCall:
    function = data.get("function") or {}
    return ToolCall(
        id=data["id"],
        name=function["name"],
        arguments=function.get("arguments") or "{}",
    )
