from .sections import (
    MARKERS,
    extract_key_value_list,
    extract_list,
    extract_section,
    parse_marker_text,
)
