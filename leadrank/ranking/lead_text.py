"""
Lead-to-text projection for embedding.

Role and company go first since they carry the most signal for matching,
then industry and size, then name and domain, then any remaining source
fields. Fields already rendered through an alias (and identifier links or
gold ranks) are not repeated.
"""

from typing import List, Mapping

from leadrank.common.field_aliases import is_canonical_key, resolve


def lead_to_text(lead: Mapping[str, str]) -> str:
    """
    Serialize a lead to descriptive text.

    Example:
        >>> lead_to_text({"Title": "VP Sales", "Company": "Acme", "Employee Range": "51-200"})
        'Lead. Role: VP Sales. Company: Acme. Company size: 51-200'

    Returns:
        "Lead. <parts>" or just "Lead." when nothing descriptive is present
    """
    parts: List[str] = []

    title = resolve(lead, "title")
    company = resolve(lead, "company")
    industry = resolve(lead, "industry")
    employee_range = resolve(lead, "employee_range")

    if title:
        parts.append(f"Role: {title}")
    if company:
        parts.append(f"Company: {company}")
    if industry:
        parts.append(f"Industry: {industry}")
    if employee_range:
        parts.append(f"Company size: {employee_range}")

    full_name = resolve(lead, "full_name")
    first_name = resolve(lead, "first_name")
    last_name = resolve(lead, "last_name")
    if full_name:
        parts.append(f"Name: {full_name}")
    elif first_name or last_name:
        parts.append(f"Name: {first_name} {last_name}".strip())

    domain = resolve(lead, "domain")
    if domain:
        parts.append(f"Domain: {domain}")

    for key, value in lead.items():
        if value is None or not str(value).strip() or is_canonical_key(key):
            continue
        parts.append(f"{key}: {value}")

    return f"Lead. {'. '.join(parts)}" if parts else "Lead."


def is_descriptive(lead: Mapping[str, str]) -> bool:
    """True when the lead serializes to more than the bare 'Lead.' marker."""
    return lead_to_text(lead) != "Lead."
