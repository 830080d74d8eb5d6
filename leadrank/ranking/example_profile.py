"""
Example ideal-lead profile for demos and as a default optimizer seed.

Outbound infrastructure for B2B companies selling into complex verticals;
targets by company size and department.
"""

EXAMPLE_PERSONA = """We provide outbound infrastructure for B2B companies that sell into complex verticals (manufacturing, education, healthcare). Ideal leads are directly accountable for pipeline and operatively involved in outbound.

Target: By company size. Startups (1-50): Founder, CEO, Owner, Managing Director, Head of Sales. SMB (51-200): VP of Sales, Head of Sales, Sales Director, Director of Sales Development, CRO, Head of Revenue Operations, VP of Growth. Mid-Market & Enterprise: VP of Sales Development, VP of Sales, Head of Sales Development, Director of Sales Development, CRO, VP of Revenue Operations, VP of GTM, VP of Inside Sales, VP of Field Sales. Departments: Sales Development, Sales, Revenue Operations, Business Development, GTM.

Avoid: CEO or President at Mid-Market and Enterprise (too far from outbound). CFO, CTO, HR, Legal, Compliance, Customer Success, Product Management. BDRs and SDRs as primary decision-makers. Account Executives, CMO, Board Members, Advisors. Companies in layoffs or with no online presence.

Prefer: Companies selling into manufacturing, education, or healthcare. Recently raised funding or actively hiring SDRs/BDRs. Long sales cycles (3+ months). Small or no existing SDR team. Lead recently promoted. Previous use of outsourced outbound."""
