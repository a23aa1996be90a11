"""Centralized constants for migratectl engine invocation and exit statuses."""

# Fixed engine switches
FLAG_SUBDIRS_INCLUDING_EMPTY = "/E"
FLAG_RETRY_COUNT = "/R"
FLAG_RETRY_WAIT = "/W"
FLAG_FAT_TIMESTAMPS = "/FFT"
FLAG_FULL_PATHS = "/FP"
FLAG_EXCLUDE_JUNCTIONS = "/XJ"
FLAG_THREADS = "/MT"
FLAG_BYTES = "/BYTES"
FLAG_VERBOSE = "/V"
FLAG_TEE = "/TEE"

# Attribute copy modes
FLAG_COPY = "/COPY"
FLAG_DIR_COPY = "/DCOPY"
COPY_WITH_SECURITY = "DATS"
COPY_WITHOUT_SECURITY = "DAT"
DIR_COPY_TIMESTAMPS = "T"

# Restart/backup modes
FLAG_RESTARTABLE = "/Z"
FLAG_BACKUP_RESTARTABLE = "/ZB"

# Optional switches
FLAG_INTER_PACKET_GAP = "/IPG"
FLAG_EXCLUDE_DIRS = "/XD"
FLAG_EXCLUDE_FILES = "/XF"
FLAG_LIST_ONLY = "/L"
FLAG_MIRROR = "/MIR"
FLAG_COPY_ALL = "/COPYALL"
FLAG_LOG = "/LOG"
FLAG_LOG_APPEND = "/LOG+"

# Engine exit codes: bit flags, anything at or above the threshold is a failure
ENGINE_FAILURE_THRESHOLD = 8
ENGINE_EXIT_DESCRIPTIONS = {
    0: "No changes",
    1: "Files copied",
    2: "Extra files detected",
    3: "Files copied, extras detected",
}

# Exit code recorded for a run cancelled by the idle watchdog
WATCHDOG_TIMEOUT_EXIT_CODE = 124

# Process exit statuses
EXIT_SUCCESS = 0
EXIT_NOT_CONFIRMED = 1
EXIT_VALIDATION_FAILED = 2
EXIT_INTERNAL_ERROR = 99

# Placeholder the engine prints in place of a byte figure
BYTES_PLACEHOLDERS = ("*", "-", "n/a")
