"""Environment-driven settings."""

import os

from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gradebook.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Proctoring: auto-submit once an attempt reaches this many tab switches
DEFAULT_TAB_SWITCH_LIMIT = int(os.getenv("DEFAULT_TAB_SWITCH_LIMIT", "3"))

# Upper bound for the manual-entry form generator
BULK_MAX_QUESTIONS = int(os.getenv("BULK_MAX_QUESTIONS", "50"))
