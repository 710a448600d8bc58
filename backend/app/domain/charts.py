"""
Chart Domain Models

Request/response DTOs for the financial charting chat and the
post-processing applied to the ``generate_graph_data`` tool output before
it reaches the frontend chart components.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ChartType(str, Enum):
    """Chart kinds the frontend knows how to render."""
    BAR = "bar"
    MULTI_BAR = "multiBar"
    LINE = "line"
    PIE = "pie"
    AREA = "area"
    STACKED_AREA = "stackedArea"


CHART_TYPES = [chart_type.value for chart_type in ChartType]


class InvalidChartDataError(ValueError):
    """Raised when tool output does not describe a renderable chart."""
    pass


# =============================================================================
# Request/Response DTOs
# =============================================================================

class ChatMessage(BaseModel):
    """A single conversation turn as held by the client."""
    role: Literal["user", "assistant"]
    content: str


class FileData(BaseModel):
    """An attachment sent with the latest user turn, base64 encoded."""
    base64: str
    media_type: str = Field(default="text/plain", alias="mediaType")
    is_text: bool = Field(default=False, alias="isText")
    file_name: Optional[str] = Field(default=None, alias="fileName")

    model_config = ConfigDict(populate_by_name=True)


class FinanceChatRequest(BaseModel):
    """
    Request body for the finance chat endpoint.

    The whole conversation is sent on every call; nothing is kept
    server-side between requests.
    """
    messages: List[ChatMessage] = Field(..., min_length=1)
    file_data: Optional[FileData] = Field(default=None, alias="fileData")
    model: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class FinanceChatResponse(BaseModel):
    """Assistant reply plus the processed chart, when one was generated."""
    content: str = ""
    has_tool_use: bool = Field(default=False, alias="hasToolUse")
    tool_use: Optional[Dict[str, Any]] = Field(default=None, alias="toolUse")
    chart_data: Optional[Dict[str, Any]] = Field(default=None, alias="chartData")

    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# Tool Output Processing
# =============================================================================

def chart_color(index: int) -> str:
    """Theme colour variable for the ``index``-th (0-based) series."""
    return f"hsl(var(--chart-{index + 1}))"


def _normalize_pie_data(chart: Dict[str, Any]) -> List[Dict[str, Any]]:
    # Value comes from the first configured series, label from the x-axis key
    config = chart.get("config") or {}
    chart_config = chart.get("chartConfig") or {}
    value_key = next(iter(chart_config), None)
    segment_key = config.get("xAxisKey") or "segment"

    normalized = []
    for item in chart["data"]:
        if not isinstance(item, dict):
            raise InvalidChartDataError("Pie chart data items must be objects")
        normalized.append({
            "segment": (
                item.get(segment_key)
                or item.get("segment")
                or item.get("category")
                or item.get("name")
            ),
            "value": (item.get(value_key) if value_key else None) or item.get("value"),
        })
    return normalized


def process_chart_data(tool_input: Dict[str, Any]) -> Dict[str, Any]:
    """
    Turn raw ``generate_graph_data`` arguments into frontend chart data.

    - ``chartType`` must be one of ``CHART_TYPES`` and ``data`` a list
    - pie data is reshaped to ``{segment, value}`` items and the x-axis
      key forced to ``"segment"``
    - every ``chartConfig`` series gets a sequential theme colour

    Args:
        tool_input: Arguments of the model's function call

    Returns:
        A new dict; ``tool_input`` is not modified

    Raises:
        InvalidChartDataError: structure cannot be rendered
    """
    if not isinstance(tool_input, dict):
        raise InvalidChartDataError("Chart data must be an object")

    chart_type = tool_input.get("chartType")
    if chart_type not in CHART_TYPES:
        raise InvalidChartDataError(f"Unsupported chart type: {chart_type!r}")

    if not isinstance(tool_input.get("data"), list):
        raise InvalidChartDataError("Chart data must contain a data list")

    chart_config = tool_input.get("chartConfig") or {}
    if not isinstance(chart_config, dict):
        raise InvalidChartDataError("chartConfig must be an object")

    chart = dict(tool_input)
    chart["config"] = dict(tool_input.get("config") or {})

    if chart_type == ChartType.PIE.value:
        chart["data"] = _normalize_pie_data(chart)
        chart["config"]["xAxisKey"] = "segment"

    chart["chartConfig"] = {
        key: {**(series if isinstance(series, dict) else {}), "color": chart_color(index)}
        for index, (key, series) in enumerate(chart_config.items())
    }

    return chart
