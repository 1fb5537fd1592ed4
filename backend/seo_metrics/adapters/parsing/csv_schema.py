"""
Report Schemas
Ordered, typed column definitions for every SEMrush report we consume,
and the parser that maps `;`-delimited bodies onto them
"""

import csv
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from seo_metrics.adapters.semrush.base import ReportType, MalformedResponseError


# ============================================================================
# CONVERTERS
# ============================================================================

def to_int(value: str) -> int:
    value = value.strip()
    if not value:
        return 0
    try:
        return int(float(value))
    except ValueError:
        raise MalformedResponseError(f"Expected an integer, got {value!r}")


def to_optional_int(value: str) -> Optional[int]:
    if not value.strip():
        return None
    return to_int(value)


def to_float(value: str) -> float:
    value = value.strip()
    if not value:
        return 0.0
    try:
        return float(value)
    except ValueError:
        raise MalformedResponseError(f"Expected a number, got {value!r}")


def to_str(value: str) -> str:
    return value.strip()


# ============================================================================
# SCHEMA
# ============================================================================

@dataclass(frozen=True)
class Column:
    """One report column"""
    key: str                 # field name in the parsed row
    code: str                # SEMrush export_columns code
    header: str              # header as it appears in the response
    convert: Callable[[str], Any] = to_str
    required: bool = True


@dataclass(frozen=True)
class ReportSchema:
    """Ordered column list for one report type"""
    report_type: ReportType
    columns: Tuple[Column, ...]

    @property
    def export_columns(self) -> str:
        return ",".join(c.code for c in self.columns)

    def __len__(self) -> int:
        return len(self.columns)


def _split(line: str) -> List[str]:
    return next(csv.reader([line], delimiter=";"))


def split_lines(raw: str) -> List[str]:
    """Non-empty lines of a report body; header plus at least one row"""
    lines = [line for line in (raw or "").strip().splitlines() if line.strip()]
    if len(lines) < 2:
        raise MalformedResponseError("Invalid CSV response from SEMrush")
    return lines


def parse_single_row(schema: ReportSchema, raw: str) -> Dict[str, Any]:
    """Map the first data row onto the schema by header name"""
    lines = split_lines(raw)
    headers = [h.strip() for h in _split(lines[0])]
    values = _split(lines[1])
    row = {header: (values[i] if i < len(values) else "") for i, header in enumerate(headers)}

    parsed = {}
    for column in schema.columns:
        if column.header not in row:
            if column.required:
                raise MalformedResponseError(
                    f"{schema.report_type.value}: missing column {column.header!r}"
                )
            parsed[column.key] = column.convert("")
            continue
        parsed[column.key] = column.convert(row[column.header])
    return parsed


def parse_rows(
    schema: ReportSchema,
    raw: str,
    skip_short_rows: bool = False,
) -> List[Dict[str, Any]]:
    """
    Map every data row onto the schema by position.

    Rows shorter than the schema fail the parse unless skip_short_rows is
    set, in which case they are dropped. Extra trailing cells are ignored.
    """
    lines = split_lines(raw)
    width = len(schema)
    if len(_split(lines[0])) < width:
        raise MalformedResponseError(
            f"{schema.report_type.value}: expected {width} columns in header"
        )

    rows = []
    for line in lines[1:]:
        cells = _split(line)
        if len(cells) < width:
            if skip_short_rows:
                continue
            raise MalformedResponseError(
                f"{schema.report_type.value}: row has {len(cells)} of {width} columns"
            )
        rows.append({
            column.key: column.convert(cells[i])
            for i, column in enumerate(schema.columns)
        })
    return rows


# ============================================================================
# SEMRUSH REPORT SCHEMAS
# ============================================================================

DOMAIN_RANK = ReportSchema(ReportType.DOMAIN_RANK, (
    Column("domain", "Dn", "Domain"),
    Column("rank", "Rk", "Rank", to_int),
    Column("organic_keywords", "Or", "Organic Keywords", to_int),
    Column("organic_traffic", "Ot", "Organic Traffic", to_int),
    Column("organic_cost", "Oc", "Organic Cost", to_float),
))

PHRASE_THIS = ReportSchema(ReportType.PHRASE_THIS, (
    Column("keyword", "Ph", "Keyword"),
    Column("search_volume", "Nq", "Search Volume", to_int),
    Column("cpc", "Cp", "CPC", to_float),
    Column("competition", "Co", "Competition", to_float),
    Column("keyword_difficulty", "Kd", "Keyword Difficulty Index", to_int),
))

PHRASE_ALL = ReportSchema(ReportType.PHRASE_ALL, (
    Column("database", "Db", "Database"),
    Column("keyword", "Ph", "Keyword"),
    Column("search_volume", "Nq", "Search Volume", to_int),
    Column("cpc", "Cp", "CPC", to_float),
    Column("competition", "Co", "Competition", to_float),
    Column("keyword_difficulty", "Kd", "Keyword Difficulty Index", to_float),
))

PHRASE_RELATED = ReportSchema(ReportType.PHRASE_RELATED, (
    Column("keyword", "Ph", "Keyword"),
    Column("search_volume", "Nq", "Search Volume", to_int),
    Column("cpc", "Cp", "CPC", to_float),
    Column("competition", "Co", "Competition", to_float),
    Column("keyword_difficulty", "Kd", "Keyword Difficulty Index", to_int),
    Column("relevance", "Rr", "Related Relevance", to_float),
))

BACKLINKS_OVERVIEW = ReportSchema(ReportType.BACKLINKS_OVERVIEW, (
    Column("authority_score", "ascore", "ascore", to_int),
    Column("total_backlinks", "total", "total", to_int),
    Column("referring_domains", "domains_num", "domains_num", to_int),
    Column("referring_urls", "urls_num", "urls_num", to_int),
    Column("referring_ips", "ips_num", "ips_num", to_int),
    Column("follow_links", "follows_num", "follows_num", to_int),
    Column("nofollow_links", "nofollows_num", "nofollows_num", to_int),
))

BACKLINKS = ReportSchema(ReportType.BACKLINKS, (
    Column("page_authority", "page_ascore", "page_ascore", to_int),
    Column("source_title", "source_title", "source_title"),
    Column("source_url", "source_url", "source_url"),
    Column("target_url", "target_url", "target_url"),
    Column("anchor", "anchor", "anchor"),
    Column("external_links", "external_num", "external_num", to_int),
    Column("internal_links", "internal_num", "internal_num", to_int),
    Column("first_seen", "first_seen", "first_seen", to_optional_int),
    Column("last_seen", "last_seen", "last_seen", to_optional_int),
))

BACKLINKS_REFDOMAINS = ReportSchema(ReportType.BACKLINKS_REFDOMAINS, (
    Column("domain_authority", "domain_ascore", "domain_ascore", to_optional_int),
    Column("domain", "domain", "domain"),
    Column("backlinks", "backlinks_num", "backlinks_num", to_int),
    Column("ip", "ip", "ip"),
    Column("country", "country", "country"),
    Column("first_seen", "first_seen", "first_seen", to_optional_int),
    Column("last_seen", "last_seen", "last_seen", to_optional_int),
))

BACKLINKS_COMPETITORS = ReportSchema(ReportType.BACKLINKS_COMPETITORS, (
    Column("authority_score", "ascore", "ascore", to_int),
    Column("domain", "neighbour", "neighbour"),
    Column("similarity", "similarity", "similarity", to_float),
    Column("common_referring_domains", "common_refdomains", "common_refdomains", to_int),
    Column("referring_domains", "domains_num", "domains_num", to_int),
    Column("backlinks", "backlinks_num", "backlinks_num", to_int),
))

SITE_AUDIT = ReportSchema(ReportType.SITE_AUDIT, (
    Column("domain", "domain", "domain"),
    Column("pages_crawled", "pages_crawled", "pages_crawled", to_int),
    Column("health_score", "health_score", "health_score", to_int),
    Column("errors", "errors", "errors", to_int),
    Column("warnings", "warnings", "warnings", to_int),
    Column("notices", "notices", "notices", to_int),
))

SCHEMAS = {
    schema.report_type: schema
    for schema in (
        DOMAIN_RANK, PHRASE_THIS, PHRASE_ALL, PHRASE_RELATED, BACKLINKS_OVERVIEW,
        BACKLINKS, BACKLINKS_REFDOMAINS, BACKLINKS_COMPETITORS, SITE_AUDIT,
    )
}
