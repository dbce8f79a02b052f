"""Event kind constants.

Learn: Centralizing event kinds as constants prevents typos and
makes it easy to discover every kind the log can hold.
"""

# ─── Session lifecycle ───────────────────────────────────

SESSION_START = "SESSION_START"
SESSION_END = "SESSION_END"

# ─── Tool calls ──────────────────────────────────────────
# TOOL_END carries tool_name, duration_ms, response_chars and, when the
# call failed, error_message.

TOOL_START = "TOOL_START"
TOOL_END = "TOOL_END"

# ─── Model calls ─────────────────────────────────────────
# LLM_REQUEST carries prompt_chars; LLM_RESPONSE carries response_chars
# and duration_ms. Both may name the model.

LLM_REQUEST = "LLM_REQUEST"
LLM_RESPONSE = "LLM_RESPONSE"

# ─── Problems ────────────────────────────────────────────

ERROR = "ERROR"
BUDGET_WARNING = "BUDGET_WARNING"

EVENT_KINDS: tuple[str, ...] = (
    SESSION_START,
    SESSION_END,
    TOOL_START,
    TOOL_END,
    LLM_REQUEST,
    LLM_RESPONSE,
    ERROR,
    BUDGET_WARNING,
)

LLM_KINDS: tuple[str, ...] = (LLM_REQUEST, LLM_RESPONSE)
