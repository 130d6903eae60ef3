# src/litreport/observability/names.py

"""Standard metric names for litreport observability.

Use these constants instead of hardcoded strings for consistency
across the codebase.

Note: All duration metrics are in milliseconds by convention.
"""

# ============================================================================
# Parser Metrics
# ============================================================================

# Duration
PARSE_DURATION = "parse_duration"

# Counters
BLOCKS_PARSED_TOTAL = "blocks_parsed_total"


# ============================================================================
# Pipeline Metrics
# ============================================================================

# Duration (labelled with engine)
BLOCK_EXECUTION_DURATION = "block_execution_duration"

# Counters
BLOCKS_EXECUTED_TOTAL = "blocks_executed_total"
EVAL_ERRORS_TOTAL = "eval_errors_total"
INLINE_EXPRESSIONS_TOTAL = "inline_expressions_total"


# ============================================================================
# Execution Context Metrics
# ============================================================================

RESOURCE_RELEASE_ERRORS_TOTAL = "resource_release_errors_total"


# ============================================================================
# Query Evaluator Metrics
# ============================================================================

QUERY_DURATION = "query_duration"
QUERY_ROWS = "query_rows"


# ============================================================================
# Render Metrics
# ============================================================================

# Duration
RENDER_DURATION = "render_duration"

# Counters
RENDERS_TOTAL = "renders_total"
RENDERS_HALTED_TOTAL = "renders_halted_total"
