from .parser import (
    DeltaParseResult,
    MessageDiagnostic,
    parse_delta_block,
    parse_delta_message,
    parse_message,
    parse_thread_deltas,
    valid_operations,
)

__all__ = [
    "DeltaParseResult",
    "MessageDiagnostic",
    "parse_delta_block",
    "parse_delta_message",
    "parse_message",
    "parse_thread_deltas",
    "valid_operations",
]
