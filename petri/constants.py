"""
Central configuration constants for the trait core.

Defines default values, keyword tables, and configuration parameters
used across multiple modules.
"""

# ============================================================================
# Diagnostics Configuration
# ============================================================================

# Echo notifier messages to the console as they are recorded
PRINT_DIAGNOSTICS = True

# Console prefixes for each diagnostic level
DIAGNOSTIC_PREFIXES = {
    'info': '[OK]',
    'warning': '[WARN]',
    'error': '[ERROR]',
}


# ============================================================================
# Aggregation Mode Keywords
# ============================================================================

# Named reducers (lower-case keyword -> canonical reducer name)
MODE_ALIASES = {
    'unique': 'unique',
    'richness': 'unique',
    'mode': 'mode',
    'dom': 'mode',
    'dominant': 'mode',
    'min': 'min',
    'max': 'max',
    'min_id': 'min_id',
    'max_id': 'max_id',
    'mean': 'mean',
    'ave': 'mean',
    'average': 'mean',
    'median': 'median',
    'variance': 'variance',
    'stddev': 'stddev',
    'sum': 'sum',
    'total': 'sum',
    'entropy': 'entropy',
}

# Comparison operators for counting modes (two-character forms first)
COMPARISON_OPERATORS = ['==', '!=', '<=', '>=', '<', '>']

# Prefix that turns a mode into a mutual-information query (":other_trait")
MUTUAL_INFO_PREFIX = ':'

# Logarithm base for entropy and mutual information (bits)
ENTROPY_LOG_BASE = 2.0

# Reducers that only make sense on numeric values
NUMERIC_ONLY_REDUCERS = ('mean', 'median', 'variance', 'stddev', 'sum')


# ============================================================================
# Trait Archive Configuration
# ============================================================================

# Companion trait prefixes created for archived traits
ARCHIVE_LAST_PREFIX = 'last_'       # Value before the most recent reset
ARCHIVE_ALL_PREFIX = 'archive_'     # Every value held at a reset
ARCHIVE_CHANGE_PREFIX = 'sequence_' # Every value ever assigned


# ============================================================================
# Macro Preprocessing
# ============================================================================

MACRO_CHAR = '$'
MACRO_OPEN = '{'
MACRO_CLOSE = '}'


# ============================================================================
# Script Function Names
# ============================================================================

# Config-language type names for the two collection flavors
POPULATION_TYPE_NAME = 'Population'
COLLECTION_TYPE_NAME = 'OrgList'

# Default mode for TRAIT(): value for the first organism
TRAIT_DEFAULT_MODE = '0'
