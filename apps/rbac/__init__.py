"""
Authorization and resource-sharing engine.

Provides:
- Identity resolution from a verified session plus an optional impersonation overlay
- Static role to capability lookup
- Tenant, self and review-only scope assertions
- The workflow-gated resource-sharing gate for the oversight role
- Server-side impersonation sessions
"""
