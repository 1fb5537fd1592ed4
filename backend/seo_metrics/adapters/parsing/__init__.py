"""
Response Parsing Adapters
"""

from .csv_schema import (
    Column,
    ReportSchema,
    SCHEMAS,
    split_lines,
    parse_single_row,
    parse_rows,
)
from .transformers import (
    competition_level,
    extract_hostname,
    is_nothing_found,
    transform_domain_overview,
    transform_keyword_data,
    transform_global_keyword_data,
    transform_related_keywords,
    transform_backlink_overview,
    transform_backlinks,
    transform_referring_domains,
    transform_backlink_competitors,
    transform_site_audit,
)

__all__ = [
    # Schemas
    "Column",
    "ReportSchema",
    "SCHEMAS",
    "split_lines",
    "parse_single_row",
    "parse_rows",
    # Transformers
    "competition_level",
    "extract_hostname",
    "is_nothing_found",
    "transform_domain_overview",
    "transform_keyword_data",
    "transform_global_keyword_data",
    "transform_related_keywords",
    "transform_backlink_overview",
    "transform_backlinks",
    "transform_referring_domains",
    "transform_backlink_competitors",
    "transform_site_audit",
]
