# tenantguard/core/context.py
# Request-scoped values for log enrichment only. Core calls take the Principal explicitly.

import contextvars

correlation_id_ctx = contextvars.ContextVar("correlation_id", default=None)
tenant_id_ctx = contextvars.ContextVar("tenant_id", default=None)
principal_id_ctx = contextvars.ContextVar("principal_id", default=None)
