# src/drone_conformal_reviewer/classifier.py
from .models import Classification, Severity

# Codes reported at error severity
ERROR_CODES = frozenset({
    "W_INNER_DIM_MISMATCH",
    "W_ELEMENTWISE_MISMATCH",
    "W_CONSTRAINT_CONFLICT",
    "W_HORZCAT_ROW_MISMATCH",
    "W_VERTCAT_COL_MISMATCH",
    "W_RESHAPE_MISMATCH",
    "W_INDEX_OUT_OF_BOUNDS",
    "W_DIVISION_BY_ZERO",
    "W_ARITHMETIC_TYPE_MISMATCH",
    "W_TRANSPOSE_TYPE_MISMATCH",
    "W_NEGATE_TYPE_MISMATCH",
    "W_CONCAT_TYPE_MISMATCH",
    "W_INDEX_ASSIGN_TYPE_MISMATCH",
    "W_POSSIBLY_NEGATIVE_DIM",
    "W_FUNCTION_ARG_COUNT_MISMATCH",
    "W_LAMBDA_ARG_COUNT_MISMATCH",
    "W_MULTI_ASSIGN_COUNT_MISMATCH",
    "W_MULTI_ASSIGN_NON_CALL",
    "W_MULTI_ASSIGN_BUILTIN",
    "W_PROCEDURE_IN_EXPR",
    "W_BREAK_OUTSIDE_LOOP",
    "W_CONTINUE_OUTSIDE_LOOP",
    "W_STRICT_MODE",
    "W_MLDIVIDE_DIM_MISMATCH",
    "W_MATRIX_POWER_NON_SQUARE",
})

# Low-confidence codes, only shown when strict mode is on
STRICT_ONLY_CODES = frozenset({
    "W_UNKNOWN_FUNCTION",
    "W_RECURSIVE_FUNCTION",
    "W_RECURSIVE_LAMBDA",
    "W_UNSUPPORTED_BUILTIN",
    "W_UNSUPPORTED_SYNTAX",
    "W_UNSUPPORTED_INDEX_TYPE",
    "W_UNSUPPORTED_FIELD_BASE",
    "W_UNSUPPORTED_HANDLE_TARGET",
    "W_UNSUPPORTED_SWITCH_EXPR",
    "W_END_OUTSIDE_INDEXING",
    "W_EXTERNAL_PARSE_ERROR",
    "W_STRUCT_FIELD_NOT_FOUND",
    "W_CELL_TYPE_MISMATCH",
    "W_INDEX_INTO_NON_MATRIX",
    "W_NON_MATRIX_MULTIPLICATION",
    "W_SUBSCRIPT_ON_NON_INDEXABLE",
    "W_FIELD_ACCESS_ON_NON_STRUCT",
    "W_UNKNOWN_SIZE_FUNCTION",
    "W_GLOBAL_NOT_SUPPORTED",
})

UNSUPPORTED_PREFIX = "W_UNSUPPORTED_"

# Synthetic codes for per-file engine failures
PARSE_ERROR_CODE = "W_PARSE_ERROR"
INTERNAL_ERROR_CODE = "W_INTERNAL_ERROR"


def classify_severity(code: str) -> Severity:
    """Maps any code to a severity; unknown codes are warnings."""
    if code in ERROR_CODES:
        return Severity.ERROR
    if code.startswith(UNSUPPORTED_PREFIX):
        return Severity.HINT
    return Severity.WARNING


def classify(code: str, strict: bool) -> Classification:
    """
    Decides whether a diagnostic code is shown and at which severity.

    Args:
        code: The engine's diagnostic code.
        strict: Whether strict-only codes should be shown.

    Returns:
        Classification with visible=False (and no severity) for strict-only
        codes outside strict mode, otherwise visible with its severity.
    """
    if not strict and code in STRICT_ONLY_CODES:
        return Classification(visible=False)
    return Classification(visible=True, severity=classify_severity(code))
