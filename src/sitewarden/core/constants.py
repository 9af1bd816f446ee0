# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Enumerations, persistence keys, and fixed scan constants."""

from enum import StrEnum


class ScanStatus(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SINGLE = "single"


class ScanStep(StrEnum):
    PLUGIN = "plugin"
    CORE = "core"
    SPAMVERTISING = "spamvertising"
    PASSWORD = "password"
    AUDIT = "audit"
    DATABASE = "database"
    SERVER = "server"
    ROOT = "root"
    MALWARE = "malware"


class StepStatus(StrEnum):
    SUCCESS = "success"
    WARNING = "warning"
    CRITICAL = "critical"


class Confidence(StrEnum):
    VERY_HIGH = "very-high"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    BENIGN = "benign"


class MatchContext(StrEnum):
    RAW = "raw"
    TOKEN = "token"
    BOTH = "both"


class AiStatus(StrEnum):
    CLEAN = "clean"
    SUSPICIOUS = "suspicious"
    MALICIOUS = "malicious"


class DbType(StrEnum):
    USER = "user"
    HIDDEN_USER = "hidden_user"
    OPTION = "option"
    COMMENT = "comment"
    DEEP = "deep"


class IntegrityPhase(StrEnum):
    START = "start"
    FETCH = "fetch"
    VERIFY = "verify"
    MODIFIED = "modified"
    SKIPPED = "skipped"
    COMPLETE = "complete"


class DiscoveryPhase(StrEnum):
    EXTERNAL = "external"
    INTERNAL = "internal"


class ExternalPhase(StrEnum):
    DISCOVERY = "discovery"
    COMPLETE = "complete"


class AuditPhase(StrEnum):
    USERS = "users"
    OPTIONS = "options"
    COMPLETE = "complete"


class MalwarePhase(StrEnum):
    START = "start"
    RUNNING = "running"


class PatternSource(StrEnum):
    SERVER_CACHE = "Server Cache Patterns"
    SERVER = "Server Patterns"
    LOCAL_CACHE = "Local Cache Patterns"
    LOCAL = "Local Patterns"
    DEGRADED = "Degraded Mode"


# Persistence keys
STATE_KEY = "sitewarden_state"
ENGINE_LOCK_KEY = "sitewarden_engine_lock"
FORCE_CANCEL_KEY = "sitewarden_force_cancel"
CANCEL_PENDING_KEY = "sitewarden_cancel_pending"
PATTERNS_REMOTE_CACHE_KEY = "sitewarden_patterns_remote"
PATTERNS_LOCAL_CACHE_KEY = "sitewarden_patterns_local"
PATTERNS_REMOTE_FAILED_KEY = "sitewarden_patterns_remote_failed"
PATTERNS_SOURCE_KEY = "sitewarden_patterns_source"
PLUGIN_MODIFIED_KEY = "sitewarden_plugin_files_modified"

# Transient lifetimes, seconds
HOUR = 3600
DAY = 24 * HOUR
PATTERNS_REMOTE_TTL = DAY
PATTERNS_LOCAL_TTL = 30 * DAY
PATTERNS_REMOTE_FAILED_TTL = 6 * HOUR
FORCE_CANCEL_TTL = 300

# File classification
PHP_EXTENSIONS = frozenset(
    {"php", "phtml", "php3", "php4", "php5", "php7", "php8", "inc", "phar"}
)
SAFE_EXTENSIONS = frozenset(
    {
        "jpg", "jpeg", "png", "gif", "svg", "webp", "ico",
        "mp3", "wav", "mp4", "mkv", "avi",
        "ttf", "woff", "woff2", "otf",
        "zip", "rar", "7z", "tar", "gz", "pdf",
    }
)
SELF_HASH_EXTENSIONS = frozenset(
    {"php", "inc", "js", "css", "html", "htm", "json", "xml", "txt", "py", "yml"}
)

BINARY_SNIFF_BYTES = 2048
BINARY_SNIFF_MAX_SIZE = 5 * 1024 * 1024
EXTERNAL_MAX_FILE_SIZE = 100 * 1024 * 1024
LARGE_FILE_MARKER = "\n\n{{===[ File too large | Only head section loaded ]===}}\n\n"

# Snippet and AI context shaping
SNIPPET_BEFORE = 100
SNIPPET_AFTER = 200
AI_CONTEXT_PAD = 400
AI_CONTEXT_SEARCH_BACK = 1000
AI_CONTEXT_MERGE_GAP = 200
AI_CONTEXT_MAX = 14_000
AI_CONTEXT_FALLBACK = 8000
AI_CONTEXT_NO_WINDOWS = 10_000

# Checker batching
SPAM_BATCH_SIZE = 200
DATABASE_BATCH_SIZE = 500
DATABASE_MIN_VALUE_LENGTH = 100
ADMIN_LIST_LIMIT = 500
