CONFIG_FILE = "taskboard.yaml"
CONFIG_ENV_VAR = "TASKBOARD_CONFIG"
ENV_PREFIX = "TASKBOARD_"
STATE_DIR_NAME = ".taskboard"
STORE_FILENAME = "records.yaml"
LOCK_FILENAME = "records.lock"
LOCK_TIMEOUT = 30  # seconds

API_PREFIX = "/api/v1"

DEFAULT_PAGE = 1
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
DEFAULT_SORT_FIELD = "created_at"
DEFAULT_SORT_ORDER = "desc"

DEFAULT_HEARTBEAT_SECONDS = 30.0
DEFAULT_TOKEN_EXPIRE_MINUTES = 1440  # 24 hours

ENTITY_USER = "user"
ENTITY_PROJECT = "project"
ENTITY_TASK = "task"
ENTITIES = (ENTITY_USER, ENTITY_PROJECT, ENTITY_TASK)

EVENT_TASK_CREATED = "task-created"
EVENT_TASK_UPDATED = "task-updated"
EVENT_TASK_DELETED = "task-deleted"
EVENT_TASKS_REORDERED = "tasks-reordered"
EVENT_PROJECT_UPDATED = "project-updated"
