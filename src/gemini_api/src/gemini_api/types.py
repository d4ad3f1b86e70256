"""Pydantic schemas for the Gemini ``generateContent`` wire format.

Field names are snake_case in Python and camelCase on the wire. Serialize requests with
``model_dump(by_alias=True, exclude_none=True, mode="json")`` so unset options are omitted.
Response-side enumerations fall back to plain strings so that values introduced by the
service after this release do not break decoding.
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    "Candidate",
    "CodeExecution",
    "CodeExecutionResult",
    "Content",
    "ErrorDetail",
    "ErrorEnvelope",
    "ExecutableCode",
    "FileData",
    "FinishReason",
    "FunctionCall",
    "FunctionCallingConfig",
    "FunctionCallingMode",
    "FunctionDeclaration",
    "FunctionResponse",
    "GenerateContentRequest",
    "GenerateContentResponse",
    "GenerationConfig",
    "GoogleSearch",
    "HarmBlockThreshold",
    "HarmCategory",
    "HarmProbability",
    "InlineData",
    "Model",
    "ModelList",
    "Outcome",
    "Part",
    "ProgrammingLanguage",
    "PromptFeedback",
    "Role",
    "SafetyRating",
    "SafetySetting",
    "Schema",
    "SchemaType",
    "ThinkingConfig",
    "Tool",
    "ToolConfig",
    "UsageMetadata",
    "VideoMetadata",
]


class WireModel(BaseModel):
    """Base model mapping snake_case attributes to the camelCase wire names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable payload using wire field names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Role(str, Enum):
    """Producer of a piece of content."""

    USER = "user"
    MODEL = "model"


class FinishReason(str, Enum):
    """Reason the model stopped generating tokens."""

    FINISH_REASON_UNSPECIFIED = "FINISH_REASON_UNSPECIFIED"
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"
    LANGUAGE = "LANGUAGE"
    OTHER = "OTHER"
    BLOCKLIST = "BLOCKLIST"
    PROHIBITED_CONTENT = "PROHIBITED_CONTENT"
    SPII = "SPII"
    MALFORMED_FUNCTION_CALL = "MALFORMED_FUNCTION_CALL"
    IMAGE_SAFETY = "IMAGE_SAFETY"


class HarmCategory(str, Enum):
    """Category of harm a safety rating or setting applies to."""

    HARM_CATEGORY_UNSPECIFIED = "HARM_CATEGORY_UNSPECIFIED"
    HARM_CATEGORY_DEROGATORY = "HARM_CATEGORY_DEROGATORY"
    HARM_CATEGORY_TOXICITY = "HARM_CATEGORY_TOXICITY"
    HARM_CATEGORY_VIOLENCE = "HARM_CATEGORY_VIOLENCE"
    HARM_CATEGORY_SEXUAL = "HARM_CATEGORY_SEXUAL"
    HARM_CATEGORY_MEDICAL = "HARM_CATEGORY_MEDICAL"
    HARM_CATEGORY_DANGEROUS = "HARM_CATEGORY_DANGEROUS"
    HARM_CATEGORY_HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HARM_CATEGORY_HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    HARM_CATEGORY_SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    HARM_CATEGORY_DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"
    HARM_CATEGORY_CIVIC_INTEGRITY = "HARM_CATEGORY_CIVIC_INTEGRITY"


class HarmBlockThreshold(str, Enum):
    """Probability at and beyond which content is blocked."""

    HARM_BLOCK_THRESHOLD_UNSPECIFIED = "HARM_BLOCK_THRESHOLD_UNSPECIFIED"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_NONE = "BLOCK_NONE"
    OFF = "OFF"


class HarmProbability(str, Enum):
    """Probability that a piece of content is harmful."""

    HARM_PROBABILITY_UNSPECIFIED = "HARM_PROBABILITY_UNSPECIFIED"
    NEGLIGIBLE = "NEGLIGIBLE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class FunctionCallingMode(str, Enum):
    """Execution mode for function calling."""

    MODE_UNSPECIFIED = "MODE_UNSPECIFIED"
    AUTO = "AUTO"
    ANY = "ANY"
    NONE = "NONE"
    VALIDATED = "VALIDATED"


class ProgrammingLanguage(str, Enum):
    """Language of model-generated executable code."""

    LANGUAGE_UNSPECIFIED = "LANGUAGE_UNSPECIFIED"
    PYTHON = "PYTHON"


class Outcome(str, Enum):
    """Outcome of a code execution run."""

    OUTCOME_UNSPECIFIED = "OUTCOME_UNSPECIFIED"
    OUTCOME_OK = "OUTCOME_OK"
    OUTCOME_FAILED = "OUTCOME_FAILED"
    OUTCOME_DEADLINE_EXCEEDED = "OUTCOME_DEADLINE_EXCEEDED"


class SchemaType(str, Enum):
    """Data types usable in a :class:`Schema`."""

    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class InlineData(WireModel):
    """Inline media bytes, base64 encoded."""

    mime_type: str
    data: str


class FileData(WireModel):
    """URI based media."""

    mime_type: str
    file_uri: str


class Duration(WireModel):
    """Protobuf duration as seconds plus nanoseconds."""

    seconds: int = 0
    nanos: int = 0


class VideoMetadata(WireModel):
    """Clip bounds applied to video input."""

    start_offset: Duration | None = None
    end_offset: Duration | None = None


class FunctionCall(WireModel):
    """Function invocation predicted by the model."""

    id: str | None = None
    name: str
    args: dict[str, Any] = Field(default_factory=dict)


class FunctionResponse(WireModel):
    """Result of a :class:`FunctionCall`, sent back to the model."""

    id: str | None = None
    name: str
    response: dict[str, Any] | None = None


class ExecutableCode(WireModel):
    """Code generated by the model for the code execution tool."""

    language: ProgrammingLanguage | str = Field(union_mode="left_to_right")
    code: str


class CodeExecutionResult(WireModel):
    """Outcome and output of running :class:`ExecutableCode`."""

    outcome: Outcome | str = Field(union_mode="left_to_right")
    output: str | None = None


class Part(WireModel):
    """A single piece of a multi-part :class:`Content` message."""

    text: str | None = None
    thought: bool | None = None
    inline_data: InlineData | None = None
    file_data: FileData | None = None
    video_metadata: VideoMetadata | None = None
    executable_code: ExecutableCode | None = None
    code_execution_result: CodeExecutionResult | None = None
    function_call: FunctionCall | None = None
    function_response: FunctionResponse | None = None

    @classmethod
    def from_text(cls, text: str) -> Part:
        """Build a text-only part."""
        return cls(text=text)

    @classmethod
    def from_inline_data(cls, mime_type: str, data: bytes | str) -> Part:
        """Build a part carrying inline media.

        Args:
            mime_type: IANA media type of the data, e.g. ``"image/png"``.
            data: Raw bytes, or a string that is already base64 encoded.

        """
        if isinstance(data, bytes):
            data = base64.b64encode(data).decode("ascii")
        return cls(inline_data=InlineData(mime_type=mime_type, data=data))


class Content(WireModel):
    """Multi-part content of a single conversation turn."""

    role: Role | None = None
    parts: list[Part] = Field(default_factory=list)

    @classmethod
    def from_text(cls, text: str, role: Role = Role.USER) -> Content:
        """Build a single-part text turn for the given role."""
        return cls(role=role, parts=[Part.from_text(text)])


# ---------------------------------------------------------------------------
# Request configuration
# ---------------------------------------------------------------------------


class Schema(WireModel):
    """Subset of an OpenAPI 3.0 schema used for structured output and tool parameters."""

    schema_type: SchemaType | None = Field(default=None, alias="type")
    format: str | None = None
    title: str | None = None
    description: str | None = None
    nullable: bool | None = None
    enum_values: list[str] | None = Field(default=None, alias="enum")
    max_items: str | None = None
    min_items: str | None = None
    properties: dict[str, Schema] | None = None
    required: list[str] | None = None
    property_ordering: list[str] | None = None
    items: Schema | None = None


class ThinkingConfig(WireModel):
    """Thinking budget for models that support it."""

    thinking_budget: int | None = Field(default=None, ge=0, le=24576)
    include_thoughts: bool | None = None


class GenerationConfig(WireModel):
    """Options controlling sampling and output format."""

    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    candidate_count: int | None = None
    max_output_tokens: int | None = None
    stop_sequences: list[str] | None = None
    response_mime_type: str | None = None
    response_schema: Schema | None = None
    thinking_config: ThinkingConfig | None = None


class SafetySetting(WireModel):
    """Blocking threshold for one harm category."""

    category: HarmCategory
    threshold: HarmBlockThreshold


class FunctionDeclaration(WireModel):
    """Function the model may ask the caller to execute."""

    name: str
    description: str
    parameters: dict[str, Any] | None = None


class GoogleSearch(WireModel):
    """Marker enabling the built-in Google Search tool."""


class CodeExecution(WireModel):
    """Marker enabling server-side code execution."""


class Tool(WireModel):
    """Tools the model may call while generating."""

    function_declarations: list[FunctionDeclaration] | None = None
    google_search: GoogleSearch | None = None
    code_execution: CodeExecution | None = None


class FunctionCallingConfig(WireModel):
    """How the model may choose among declared functions."""

    mode: FunctionCallingMode | None = None
    allowed_function_names: list[str] | None = None


class ToolConfig(WireModel):
    """Configuration shared by every tool in a request."""

    function_calling_config: FunctionCallingConfig | None = None


class GenerateContentRequest(WireModel):
    """Request body shared by ``generateContent`` and ``streamGenerateContent``."""

    contents: list[Content] = Field(default_factory=list)
    tools: list[Tool] | None = None
    tool_config: ToolConfig | None = None
    safety_settings: list[SafetySetting] | None = None
    system_instruction: Content | None = None
    generation_config: GenerationConfig | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class SafetyRating(WireModel):
    """Probability of harm for one category."""

    category: HarmCategory | str = Field(union_mode="left_to_right")
    probability: HarmProbability | str = Field(union_mode="left_to_right")
    blocked: bool = False


class PromptFeedback(WireModel):
    """Whether the prompt was blocked, and why."""

    block_reason: str | None = None
    safety_ratings: list[SafetyRating] = Field(default_factory=list)


class UsageMetadata(WireModel):
    """Token counts for the request and the generated candidates."""

    prompt_token_count: int | None = None
    candidates_token_count: int | None = None
    thoughts_token_count: int | None = None
    total_token_count: int | None = None


class Candidate(WireModel):
    """One response candidate generated by the model."""

    content: Content | None = None
    finish_reason: FinishReason | str | None = Field(default=None, union_mode="left_to_right")
    index: int | None = None
    safety_ratings: list[SafetyRating] = Field(default_factory=list)


class GenerateContentResponse(WireModel):
    """A full response, or one streamed increment of a response."""

    candidates: list[Candidate] = Field(default_factory=list)
    prompt_feedback: PromptFeedback | None = None
    usage_metadata: UsageMetadata | None = None
    model_version: str | None = None

    @property
    def parts(self) -> list[Part]:
        """Return the parts of the first candidate, or an empty list."""
        if not self.candidates or self.candidates[0].content is None:
            return []
        return self.candidates[0].content.parts

    @property
    def text(self) -> str:
        """Return the concatenated non-thought text of the first candidate."""
        return "".join(part.text for part in self.parts if part.text and not part.thought)

    @property
    def function_calls(self) -> list[FunctionCall]:
        """Return function calls predicted in the first candidate."""
        return [part.function_call for part in self.parts if part.function_call is not None]

    def __str__(self) -> str:
        return self.text


class Model(WireModel):
    """Metadata about a generative model."""

    name: str
    version: str | None = None
    display_name: str | None = None
    description: str | None = None
    input_token_limit: int | None = None
    output_token_limit: int | None = None
    supported_generation_methods: list[str] = Field(default_factory=list)
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None


class ModelList(WireModel):
    """One page of the model listing."""

    models: list[Model] = Field(default_factory=list)
    next_page_token: str | None = None


class ErrorDetail(WireModel):
    """Body of a Gemini error envelope."""

    code: int
    message: str = ""
    status: str | None = None
    details: list[dict[str, Any]] = Field(default_factory=list)


class ErrorEnvelope(WireModel):
    """Top-level ``{"error": {...}}`` object returned on failure."""

    error: ErrorDetail
