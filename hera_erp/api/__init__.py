"""
HERA API routes.

Provides REST API endpoints for:
- Authentication (login, register, token refresh)
- Organization and membership management
- Universal entities and relationships
- General ledger (accounts, journal entries, validation, posting, anomaly detection)
- Schema governance
- Goods receiving
- ERP module templates
"""

from hera_erp.api.anomaly_detection import router as anomaly_router
from hera_erp.api.auth import router as auth_router
from hera_erp.api.entities import router as entities_router
from hera_erp.api.gl_accounts import router as gl_router
from hera_erp.api.gl_posting import router as gl_posting_router
from hera_erp.api.gl_validation import router as gl_validation_router
from hera_erp.api.organizations import router as organizations_router
from hera_erp.api.receiving import router as receiving_router
from hera_erp.api.schema_governance import router as schema_router
from hera_erp.api.templates import router as templates_router

__all__ = [
    "auth_router",
    "organizations_router",
    "entities_router",
    "gl_router",
    "gl_validation_router",
    "gl_posting_router",
    "anomaly_router",
    "schema_router",
    "receiving_router",
    "templates_router",
]
