"""Assistant-role texts synthesized when no model reply is available."""

from config.settings import OLLAMA_BASE_URL

NO_MODEL_SELECTED = (
    "Error: No model selected. Please open Settings and choose a model "
    "before sending messages."
)

CONNECTION_FAILED = (
    "Error: Could not connect to Ollama. "
    f"Make sure Ollama is running at {OLLAMA_BASE_URL}"
)

REQUEST_TIMED_OUT = (
    "Error: Ollama did not respond in time. "
    "Try again or raise OLLAMA_REQUEST_TIMEOUT."
)

BAD_STATUS = "Error: Ollama API returned status {status}"

PARSE_FAILED = "Error: Failed to parse response from Ollama"
