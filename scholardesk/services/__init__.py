"""
Service Layer

FLOW OVERVIEW
- One module per feature area (users, articles, assignments, sessions, storage,
  billing, analytics, analytics_export). Routes call these functions and never
  query the database themselves.
- Every operation answers with a ServiceResult: success flag, payload, and on
  failure a stable error code, message and HTTP status.
"""

from typing import Any, Dict, Optional

NOT_FOUND = 'NOT_FOUND'
VALIDATION_ERROR = 'VALIDATION_ERROR'
DUPLICATE = 'DUPLICATE'
INSUFFICIENT_BALANCE = 'INSUFFICIENT_BALANCE'
FORBIDDEN = 'FORBIDDEN'
LAST_ADMIN = 'LAST_ADMIN'
STORAGE_ERROR = 'STORAGE_ERROR'
DATABASE_ERROR = 'DATABASE_ERROR'

_DEFAULT_STATUS = {
    NOT_FOUND: 404,
    VALIDATION_ERROR: 400,
    DUPLICATE: 409,
    INSUFFICIENT_BALANCE: 402,
    FORBIDDEN: 403,
    LAST_ADMIN: 400,
    STORAGE_ERROR: 502,
    DATABASE_ERROR: 500,
}


class ServiceResult:
    """Result of a service operation."""

    def __init__(self, success: bool, data: Any = None, error_code: Optional[str] = None,
                 message: Optional[str] = None, status_code: Optional[int] = None):
        self.success = success
        self.data = data
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or (200 if success else _DEFAULT_STATUS.get(error_code, 400))

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> 'ServiceResult':
        return cls(True, data=data, message=message)

    @classmethod
    def fail(cls, error_code: str, message: str, status_code: Optional[int] = None) -> 'ServiceResult':
        return cls(False, error_code=error_code, message=message, status_code=status_code)

    def __bool__(self):
        return self.success

    def __repr__(self):
        if self.success:
            return '<ServiceResult ok>'
        return f'<ServiceResult {self.error_code}: {self.message}>'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            'success': self.success,
            'data': self.data,
            'error_code': self.error_code,
            'message': self.message
        }


def paginate(query, page: int, limit: int):
    """Apply offset/limit to a query and return (rows, total)"""
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, total


def page_payload(key: str, rows, total: int, page: int, limit: int) -> Dict[str, Any]:
    """Standard shape of a paginated listing"""
    return {
        key: rows,
        'total': total,
        'page': page,
        'limit': limit,
        'total_pages': (total + limit - 1) // limit if limit else 0,
    }
