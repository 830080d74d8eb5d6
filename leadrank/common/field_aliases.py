"""
Field alias resolution for schema-free lead records.

Lead exports name the same attribute differently ("lead_job_title",
"Title", "title"). Each semantic attribute maps to an ordered tuple of
acceptable keys; the first present, non-blank value wins.
"""

from typing import Dict, Iterable, Mapping, Optional

TITLE_FIELDS = ("lead_job_title", "Title", "title")
COMPANY_FIELDS = ("account_name", "Company", "company")
INDUSTRY_FIELDS = ("account_industry", "Industry", "industry")
EMPLOYEE_RANGE_FIELDS = ("account_employee_range", "Employee Range", "employee_range")
FULL_NAME_FIELDS = ("Full Name", "full_name")
FIRST_NAME_FIELDS = ("lead_first_name",)
LAST_NAME_FIELDS = ("lead_last_name",)
DOMAIN_FIELDS = ("account_domain", "domain")
LINK_FIELDS = ("LI", "linkedin", "LinkedIn")
RANK_FIELDS = ("Rank", "rank")

FIELD_ALIASES: Dict[str, tuple] = {
    "title": TITLE_FIELDS,
    "company": COMPANY_FIELDS,
    "industry": INDUSTRY_FIELDS,
    "employee_range": EMPLOYEE_RANGE_FIELDS,
    "full_name": FULL_NAME_FIELDS,
    "first_name": FIRST_NAME_FIELDS,
    "last_name": LAST_NAME_FIELDS,
    "domain": DOMAIN_FIELDS,
    "link": LINK_FIELDS,
    "rank": RANK_FIELDS,
}

# Keys already rendered through a canonical slot, or never descriptive
CANONICAL_KEYS = frozenset(
    key
    for aliases in FIELD_ALIASES.values()
    for key in aliases
)


def get_field_value(lead: Mapping[str, str], possible_fields: Iterable[str]) -> str:
    """
    Return the first non-blank value among possible_fields.

    Each candidate key is also tried in lower- and upper-case, since CSV
    headers are not consistent about casing.

    Args:
        lead: Lead record
        possible_fields: Candidate keys in priority order

    Returns:
        The value as found (untrimmed), or "" when nothing matches
    """
    for field in possible_fields:
        for key in (field, field.lower(), field.upper()):
            value = lead.get(key)
            if value is not None and str(value).strip():
                return str(value)
    return ""


def resolve(lead: Mapping[str, str], attribute: str) -> str:
    """Resolve a semantic attribute ("title", "company", ...) on a lead."""
    return get_field_value(lead, FIELD_ALIASES[attribute])


def is_canonical_key(key: str) -> bool:
    """True when key is one of the aliased attributes (any casing)."""
    return key in CANONICAL_KEYS or key.lower() in CANONICAL_KEYS


def lead_identity(lead: Mapping[str, str]) -> str:
    """Stable identity used to address cached embeddings: 'full name|company'."""
    full_name = (lead.get("Full Name") or "").strip()
    company = (lead.get("Company") or "").strip()
    return f"{full_name}|{company}"


def lead_label(lead: Mapping[str, str]) -> Optional[str]:
    """
    Short human-readable label for a lead ("Jane Doe, VP Sales at Acme").

    Returns None when the lead carries neither a name, a title nor a company.
    """
    name = resolve(lead, "full_name").strip()
    if not name:
        name = " ".join(
            part for part in (resolve(lead, "first_name").strip(), resolve(lead, "last_name").strip()) if part
        )
    title = resolve(lead, "title").strip()
    company = resolve(lead, "company").strip()

    role = title
    if company:
        role = f"{title} at {company}" if title else company
    if name and role:
        return f"{name}, {role}"
    return name or role or None
