"""
HERA Universal ERP Service

Multi-tenant ERP backend on the universal 5-table schema:
- core_entities: every business object (accounts, suppliers, modules, ...)
- core_dynamic_data: per-entity custom fields
- core_metadata: typed annotations (inventory adjustments, analytics)
- core_relationships: links between entities
- universal_transactions: every business event (journal entries, receipts, ...)

On top of the schema it provides GL validation with auto-fix, statistical
anomaly detection, schema governance, goods receiving and module templates.
"""

from uuid import UUID

__version__ = "1.0.0"

SYSTEM_ORGANIZATION_ID = UUID("00000000-0000-0000-0000-000000000001")

__all__ = ["SYSTEM_ORGANIZATION_ID", "__version__"]
