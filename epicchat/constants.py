"""Constants and default values for epicchat."""

# Default model configuration
DEFAULT_MODEL = "anthropic:claude-sonnet-4-5"
DEFAULT_MAX_TOKENS = 4096

# Cross-project context cache
DEFAULT_CROSS_PROJECT_TTL = 30 * 60  # seconds
MAX_CROSS_PROJECT_CHARS = 6000
MAX_PER_PROJECT_CHARS = 2000
MIN_PARTIAL_SECTION_CHARS = 200
TRUNCATION_MARKER = "\n...(truncated)"

# Learnings file limits
LEARNINGS_FILENAME = "learnings.md"
LEARNINGS_HEADER = "# Learnings"
MAX_LEARNINGS_SIZE = 8 * 1024
MAX_LEARNINGS_ENTRIES = 50

# Workspace layout
FLOW_DIR = ".flow"
EPICCHAT_DIR = ".epicchat"

# Context fallbacks
NO_SPEC_TEXT = "No epic specification available."
NO_TASKS_DIR_TEXT = "No tasks found."
NO_EPIC_TASKS_TEXT = "No tasks found for this epic."
TASKS_UNREADABLE_TEXT = "Unable to read tasks."

# Substrings (lowercase) that mark a failure as a connectivity problem
NETWORK_ERROR_MARKERS = (
    "econnrefused",
    "connection refused",
    "enotfound",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "etimedout",
    "timed out",
    "timeout",
    "fetch failed",
    "connection error",
    "network",
)

INVALID_RESPONSE_MARKERS = ("invalid", "parse")

# Model descriptors - Anthropic Claude models only
SUPPORTED_MODELS = {
    # Claude Sonnet 4.5 - default for epic chat
    "anthropic:claude-sonnet-4-5": {
        "provider": "anthropic",
        "name": "claude-sonnet-4-5-20250929",
        "max_output_tokens": DEFAULT_MAX_TOKENS,
    },
    # Claude Haiku 4.5 - Fast and cost-effective
    "anthropic:claude-haiku-4-5": {
        "provider": "anthropic",
        "name": "claude-haiku-4-5-20251001",
        "max_output_tokens": DEFAULT_MAX_TOKENS,
    },
    # Claude Opus 4.1 - Most capable for long reviews
    "anthropic:claude-opus-4-1": {
        "provider": "anthropic",
        "name": "claude-opus-4-1-20250805",
        "max_output_tokens": DEFAULT_MAX_TOKENS,
    },
}
