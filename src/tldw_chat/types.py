"""Request, message and tool models shared by the client and transports."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, model_validator

Role = Literal["system", "user", "assistant", "tool"]
ToolChoice = Literal["auto", "none", "required"]
ReasoningEffort = Literal["low", "medium", "high"]

DEFAULT_TOOL_PARAMETERS: dict[str, Any] = {"type": "object", "properties": {}}


class TextPart(BaseModel):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str


class ImageUrl(BaseModel):
    url: str
    detail: Literal["auto", "low", "high"] | None = None


class ImagePart(BaseModel):
    """Image reference content part."""

    type: Literal["image_url"] = "image_url"
    image_url: ImageUrl


ContentPart = Annotated[Union[TextPart, ImagePart], Field(discriminator="type")]


class ChatMessage(BaseModel):
    """Single chat message with plain or part-based content."""

    role: Role
    content: str | list[ContentPart]
    tool_call_id: str | None = None


class ToolFunction(BaseModel):
    name: str = Field(pattern=r"^[A-Za-z0-9_-]{1,64}$")
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=lambda: dict(DEFAULT_TOOL_PARAMETERS))


class ToolDefinition(BaseModel):
    """Canonical function tool sent upstream."""

    type: Literal["function"] = "function"
    function: ToolFunction

    @property
    def name(self) -> str:
        return self.function.name


class ChatOptions(BaseModel):
    """Caller-facing options for a single send or stream call."""

    model: str
    temperature: float | None = 0.7
    max_tokens: int | None = None
    top_p: float | None = 1.0
    frequency_penalty: float | None = 0.0
    presence_penalty: float | None = 0.0
    system_prompt: str | None = None
    reasoning_effort: ReasoningEffort | None = None
    tool_choice: ToolChoice | None = None
    # heterogeneous tool records, canonicalized by tools.normalize_tools
    tools: list[Any] | None = None
    save_to_db: bool | None = None
    conversation_id: str | None = None
    history_message_limit: int | None = None
    history_message_order: str | None = None
    slash_command_injection_mode: str | None = None
    api_provider: str | None = None
    extra_headers: dict[str, Any] | None = None
    extra_body: dict[str, Any] | None = None
    json_mode: bool = False
    # keep image parts in dict user messages instead of flattening to text
    supports_multimodal: bool = False


class ChatRequest(BaseModel):
    """Canonical outbound chat completion payload."""

    messages: list[ChatMessage]
    model: str
    stream: bool = False
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None
    reasoning_effort: ReasoningEffort | None = None
    tool_choice: ToolChoice | None = None
    tools: list[ToolDefinition] | None = None
    save_to_db: bool | None = None
    conversation_id: str | None = None
    history_message_limit: int | None = None
    history_message_order: str | None = None
    slash_command_injection_mode: str | None = None
    api_provider: str | None = None
    extra_headers: dict[str, Any] | None = None
    extra_body: dict[str, Any] | None = None
    response_format: dict[str, Any] | None = None

    @model_validator(mode="after")
    def _tool_choice_requires_tools(self) -> "ChatRequest":
        if self.tool_choice is not None and not self.tools:
            raise ValueError("tool_choice requires a non-empty tools list")
        return self

    def to_payload(self, *, include_headers: bool = True) -> dict[str, Any]:
        """Return the JSON body, dropping unset fields."""
        exclude = None if include_headers else {"extra_headers"}
        return self.model_dump(mode="json", exclude_none=True, exclude=exclude)
