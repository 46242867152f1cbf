APP_DIR_NAME = "taskqueue-mcp"
TASKS_FILE = "tasks.json"
CONFIG_FILE = "config.yaml"
LOCK_SUFFIX = ".lock"
LOCK_TIMEOUT = 30  # seconds

ENV_TASK_FILE = "TASK_MANAGER_FILE_PATH"
ENV_CURRENT_PROJECT = "CURRENT_PROJECT_PATH"
ENV_LOG_LEVEL = "TASKQUEUE_LOG_LEVEL"

STATUS_FILE_DIR = (".cursor", "rules")
STATUS_FILE_NAME = "current_status.mdc"

DEFAULT_CLI_LOG_LEVEL = "WARNING"
DEFAULT_SERVER_LOG_LEVEL = "INFO"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000

LLM_TIMEOUT_SECONDS = 120

# provider -> environment variable holding its API key
PROVIDER_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_GENERATIVE_AI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
}
