"""
Metric Naming Conventions
Names and tags written by the domain wrappers and read by the dashboard.
"""

# Durations (ms)
RESPONSE_TIME = "response_time"
AI_RESPONSE_TIME = "ai_response_time"
DB_QUERY_TIME = "db_query_time"

# Error events (value 1 per failure)
API_ERRORS = "api_errors"
AI_ERRORS = "ai_errors"
DB_ERRORS = "db_errors"

# AI quality
AI_CONFIDENCE = "ai_confidence"
AI_TOKENS = "ai_tokens"
AI_HALLUCINATION = "ai_hallucination_score"

# Database
DB_ROWS = "db_rows"

# Cache events (value 1, tag type=hit|miss|eviction)
CACHE_OPERATIONS = "cache_operations"

DURATION_METRICS = (RESPONSE_TIME, AI_RESPONSE_TIME, DB_QUERY_TIME)
ERROR_METRICS = (API_ERRORS, AI_ERRORS, DB_ERRORS)

HALLUCINATION_FLOOR = 0.15

# Tag keys
TAG_CATEGORY = "category"
TAG_OPERATION = "operation"
TAG_ESCALATED = "escalated"
TAG_CACHE_EVENT = "type"
