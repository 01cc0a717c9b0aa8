"""
Constants used across the cache and reconciliation layers.
Pinned so every process agrees on key names.
"""

# =============================================================================
# Redis key names
# =============================================================================
POPULAR_KEYWORDS_KEY: str = "popular_keywords"   # ZSET term -> score
RECENT_KEYWORDS_KEY: str = "recent_keywords"     # LIST, head = most recent
DIRTY_KEYWORDS_KEY: str = "dirty:keywords"       # SET of terms awaiting resync

# =============================================================================
# Limits
# =============================================================================
DEFAULT_RECENT_CAPACITY: int = 10
DEFAULT_POPULAR_LIMIT: int = 10
DEFAULT_RECENT_LIMIT: int = DEFAULT_RECENT_CAPACITY
DEFAULT_AUTOCOMPLETE_LIMIT: int = 10
COMPARE_LIMIT: int = 10

# =============================================================================
# Reconciliation modes (metric / report labels)
# =============================================================================
MODE_FULL: str = "full"
MODE_DIRTY: str = "dirty"
