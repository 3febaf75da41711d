"""Configuration constants for pomotask."""

import os
from pathlib import Path

# Directories and files
DATA_DIR = Path(os.getenv("POMOTASK_HOME", Path.home() / ".pomotask"))
RECORDS_DB = DATA_DIR / "records.db"
LOCAL_DB = DATA_DIR / "local.db"
LOG_LEVEL = os.getenv("POMOTASK_LOG_LEVEL", "INFO")

# Collections
TASKS = "tasks"
POMODORO_LOGS = "pomodoro_logs"
USER_SETTINGS = "user_settings"
USERS = "users"

# Local slots
TIMER_STATE_KEY = "timerState"
OWNER_ID_KEY = "ownerId"

# Timer
TICK_INTERVAL_MS = 1000

# Task limits
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
MAX_TAGS = 10
POMODORO_TARGET_MIN = 1
POMODORO_TARGET_MAX = 100

# Settings limits (minutes / count)
DURATION_MIN = 1
DURATION_MAX = 180
LONG_BREAK_INTERVAL_MAX = 12

DEFAULT_SETTINGS = {
    "pomodoro_duration": 25,
    "short_break": 5,
    "long_break": 15,
    "long_break_interval": 4,
    "sound_enabled": True,
    "vibration_enabled": True,
    "auto_start_break": False,
    "auto_start_pomodoro": False,
}

# Statistics
STREAK_WINDOW_DAYS = 30
CHART_DAYS = 7

# Retention defaults for cleanup (days)
KEEP_COMPLETED_TASKS_DAYS = 30
KEEP_POMODOROS_DAYS = 90
