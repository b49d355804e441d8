"""
Core app - Shared plumbing used by every other app.

- errors: ErrorCode taxonomy, ApiError, storage fault classification and
  the NinjaAPI exception handlers that normalize failures once per request
- trace: timing helper for service calls
"""
