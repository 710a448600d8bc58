"""
Gemini AI Service for FinCharts AI

Uses the google.genai SDK for the financial charting chat:
- Conversation history and file attachments mapped to Gemini contents
- A single function tool, ``generate_graph_data``, for chart output
- Tool arguments post-processed into frontend chart data

The service is stateless; every call receives the full conversation.
"""

import asyncio
import base64
import binascii
import os
from typing import Optional, List, Dict, Any
import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.config.settings import get_settings
from app.domain.charts import (
    CHART_TYPES,
    ChatMessage,
    FileData,
    FinanceChatResponse,
    InvalidChartDataError,
    process_chart_data,
)
from app.infrastructure.exceptions import (
    AIServiceError,
    ConfigurationError,
    InvalidToolOutputError,
    RateLimitError,
    ValidationError,
)


logger = logging.getLogger(__name__)


# Load system prompt from file
SYSTEM_PROMPT_PATH = os.path.join(
    os.path.dirname(__file__),
    "FINANCE_SYSTEM_PROMPT.md"
)

CHART_TOOL_NAME = "generate_graph_data"

CHART_TOOL_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "chartType": {
            "type": "string",
            "enum": CHART_TYPES,
            "description": "The type of chart to generate",
        },
        "config": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "description": {"type": "string"},
                "trend": {
                    "type": "object",
                    "properties": {
                        "percentage": {"type": "number"},
                        "direction": {"type": "string", "enum": ["up", "down"]},
                    },
                    "required": ["percentage", "direction"],
                },
                "footer": {"type": "string"},
                "totalLabel": {"type": "string"},
                "xAxisKey": {"type": "string"},
            },
            "required": ["title", "description"],
        },
        "data": {
            "type": "array",
            "items": {"type": "object", "additionalProperties": True},
        },
        "chartConfig": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "label": {"type": "string"},
                    "stacked": {"type": "boolean"},
                },
                "required": ["label"],
            },
        },
    },
    "required": ["chartType", "config", "data", "chartConfig"],
}


def load_system_prompt() -> str:
    """Load the system prompt from the markdown file."""
    try:
        with open(SYSTEM_PROMPT_PATH, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        logger.warning(f"System prompt not found at {SYSTEM_PROMPT_PATH}")
        return "You are a financial data visualization expert."


def build_chart_tool() -> types.Tool:
    """Function tool the model calls to emit chart data."""
    return types.Tool(
        function_declarations=[
            types.FunctionDeclaration(
                name=CHART_TOOL_NAME,
                description="Generate structured JSON data for creating financial charts and graphs.",
                parameters_json_schema=CHART_TOOL_SCHEMA,
            )
        ]
    )


def _is_rate_limited(error: Exception) -> bool:
    if isinstance(error, genai_errors.APIError) and error.code == 429:
        return True
    error_msg = str(error).lower()
    return "rate" in error_msg or "quota" in error_msg


class GeminiService:
    """
    Gemini chat service with chart tool calling.

    One client per process; credentials come from settings unless passed
    explicitly.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[genai.Client] = None,
    ):
        settings = get_settings()
        api_key = api_key or settings.google_api_key

        if client is None and not api_key:
            raise ConfigurationError(
                "Missing GOOGLE_API_KEY environment variable",
                missing_keys=["GOOGLE_API_KEY"]
            )

        self._client = client or genai.Client(api_key=api_key)
        self.default_model = model or settings.gemini_model
        self.max_output_tokens = settings.chat_max_output_tokens
        self.temperature = settings.chat_temperature
        self._system_prompt = load_system_prompt()
        self._chart_tool = build_chart_tool()

        logger.info(f"GeminiService initialized with model: {self.default_model}")

    @property
    def client(self) -> genai.Client:
        """Get the Gemini client instance."""
        return self._client

    # =========================================================================
    # Request Building
    # =========================================================================

    def _file_parts(self, file_data: FileData) -> List[types.Part]:
        """Decode an attachment into the parts placed before the user's text."""
        if not file_data.base64:
            raise ValidationError("No file data")

        try:
            raw = base64.b64decode(file_data.base64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(
                "Failed to process file content",
                details={"file_name": file_data.file_name},
                original_error=e,
            )

        if file_data.is_text:
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ValidationError(
                    "Failed to process file content",
                    details={"file_name": file_data.file_name},
                    original_error=e,
                )
            return [types.Part.from_text(text=f"File contents of {file_data.file_name}:\n\n{text}")]

        if file_data.media_type.startswith("image/"):
            return [types.Part.from_bytes(data=raw, mime_type=file_data.media_type)]

        logger.info(f"Ignoring attachment with unsupported type {file_data.media_type}")
        return []

    def build_contents(
        self,
        messages: List[ChatMessage],
        file_data: Optional[FileData] = None,
    ) -> List[types.Content]:
        """
        Map the client conversation to Gemini contents.

        ``assistant`` turns become ``model`` turns. An attachment is folded
        into the last turn, ahead of its text.
        """
        contents = [
            types.Content(
                role="model" if message.role == "assistant" else "user",
                parts=[types.Part.from_text(text=message.content)],
            )
            for message in messages
        ]

        if file_data is not None and contents:
            file_parts = self._file_parts(file_data)
            if file_parts:
                contents[-1] = types.Content(
                    role="user",
                    parts=file_parts + [types.Part.from_text(text=messages[-1].content)],
                )

        return contents

    def _generation_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=self._system_prompt,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            tools=[self._chart_tool],
            tool_config=types.ToolConfig(
                function_calling_config=types.FunctionCallingConfig(mode="AUTO")
            ),
        )

    # =========================================================================
    # Chat
    # =========================================================================

    async def chat(
        self,
        messages: List[ChatMessage],
        file_data: Optional[FileData] = None,
        model: Optional[str] = None,
    ) -> FinanceChatResponse:
        """
        Run one chat turn, letting the model decide whether to chart.

        Args:
            messages: Full conversation, oldest first
            file_data: Optional attachment for the latest turn
            model: Model override; defaults to the configured model

        Returns:
            FinanceChatResponse with text, raw tool call and chart data

        Raises:
            ValidationError: attachment could not be decoded
            RateLimitError: Gemini quota exhausted
            InvalidToolOutputError: tool arguments are not a usable chart
            AIServiceError: any other Gemini failure
        """
        model = model or self.default_model
        contents = self.build_contents(messages, file_data)

        logger.info(
            f"Finance chat request: model={model}, messages={len(contents)}, "
            f"file={file_data.media_type if file_data else None}"
        )

        try:
            response = await asyncio.to_thread(
                lambda: self.client.models.generate_content(
                    model=model,
                    contents=contents,
                    config=self._generation_config(),
                )
            )
        except Exception as e:
            if _is_rate_limited(e):
                raise RateLimitError(
                    "Gemini API rate limit exceeded",
                    original_error=e
                )

            raise AIServiceError(
                f"Finance chat failed: {str(e)}",
                model=model,
                operation="finance_chat",
                original_error=e
            )

        return self._to_chat_response(response, model)

    def _to_chat_response(
        self,
        response: types.GenerateContentResponse,
        model: str,
    ) -> FinanceChatResponse:
        text_parts: List[str] = []
        function_call: Optional[types.FunctionCall] = None

        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts or []:
                if part.text:
                    text_parts.append(part.text)
                if part.function_call and function_call is None:
                    function_call = part.function_call

        if function_call is None:
            return FinanceChatResponse(content="".join(text_parts))

        tool_input = dict(function_call.args or {})
        tool_use = {
            "type": "tool_use",
            "id": function_call.id,
            "name": function_call.name,
            "input": tool_input,
        }

        if function_call.name != CHART_TOOL_NAME:
            raise InvalidToolOutputError(
                f"Unknown tool called: {function_call.name}",
                model=model,
                operation="finance_chat",
            )

        try:
            chart_data = process_chart_data(tool_input)
        except InvalidChartDataError as e:
            logger.warning(f"Rejected chart tool output: {e}")
            raise InvalidToolOutputError(
                f"Invalid chart data structure: {e}",
                model=model,
                operation="finance_chat",
                original_error=e,
            )

        return FinanceChatResponse(
            content="".join(text_parts),
            has_tool_use=True,
            tool_use=tool_use,
            chart_data=chart_data,
        )


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_gemini_service_instance: Optional[GeminiService] = None


def get_gemini_service() -> GeminiService:
    """Get or create Gemini service singleton."""
    global _gemini_service_instance

    if _gemini_service_instance is None:
        _gemini_service_instance = GeminiService()

    return _gemini_service_instance
