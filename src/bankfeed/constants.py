from decimal import Decimal

DB_PATH_ENV_VAR = "BANKFEED_DB_PATH"
LOG_LEVEL_ENV_VAR = "BANKFEED_LOG_LEVEL"
DEFAULT_DB_DIR = ".bankfeed"
DEFAULT_DB_FILE = "bankfeed.db"

# Pending transactions at or above this score qualify for bulk approval
HIGH_CONFIDENCE_THRESHOLD = 80
# Confidence attached to a suggestion produced by a deterministic rule match
RULE_MATCH_CONFIDENCE = 100

AMOUNT_EPSILON = Decimal("0.01")
PARTIAL_PAYMENT_TOLERANCE = Decimal("1.1")
MAX_MATCH_CANDIDATES = 3

RULE_TEST_SAMPLE_SIZE = 100
RULE_NAME_MAX_LENGTH = 100
RULE_MATCH_VALUE_MAX_LENGTH = 255
# Regex rules never see more of a description than the column can hold
REGEX_SUBJECT_MAX_LENGTH = 500

NEEDS_MANUAL_CATEGORIZATION = "needs manual categorization"
