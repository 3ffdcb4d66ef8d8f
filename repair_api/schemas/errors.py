"""
Shared error response schemas for OpenAPI documentation.

Import these in endpoint files to add consistent error responses.

Note: These definitions use inline examples rather than model references
to avoid circular imports with the exceptions module.
"""

from typing import Dict, Any


def _problem_example(status: int, title: str, code: str, detail: str) -> Dict[str, Any]:
    return {
        "application/problem+json": {
            "example": {
                "type": f"https://api.repairshop.local/problems/{code.lower().replace('_', '-')}",
                "title": title,
                "status": status,
                "detail": detail,
                "code": code,
                "timestamp": "2026-01-29T10:30:00Z",
                "trace_id": "abc123def456",
            }
        }
    }


# Reusable response definitions for OpenAPI
ERROR_RESPONSES: Dict[int, Dict[str, Any]] = {
    400: {
        "description": "Bad Request - Business rule or promotion rejected",
        "content": _problem_example(
            400, "Bad Request", "BIZ_005", "Target level SILVER is not above current level GOLD"
        ),
    },
    401: {
        "description": "Unauthorized - Authentication required",
        "content": _problem_example(401, "Unauthorized", "AUTH_001", "Authentication required"),
    },
    403: {
        "description": "Forbidden - Insufficient permissions",
        "content": _problem_example(403, "Forbidden", "AUTH_002", "Admin access required"),
    },
    404: {
        "description": "Not Found - Resource does not exist",
        "content": _problem_example(
            404, "Not Found", "RES_001", "Technician profile with ID 123 was not found"
        ),
    },
    409: {
        "description": "Conflict - Level configuration or duplicate resource",
        "content": _problem_example(
            409, "Level Configuration Error", "BIZ_004", "No technician level covers 1500 points; check the level ranges"
        ),
    },
    422: {
        "description": "Validation Error - Invalid field values",
        "content": _problem_example(
            422, "Validation Error", "VAL_001", "A reason is required for manual points adjustments"
        ),
    },
    500: {
        "description": "Internal Server Error",
        "content": _problem_example(500, "Internal Server Error", "SRV_001", "An unexpected error occurred"),
    },
}


def get_error_responses(*status_codes: int) -> Dict[int, Dict[str, Any]]:
    """
    Get error response definitions for specified status codes.

    Usage in endpoint:
        @router.post(
            "/{technician_id}/promote",
            responses=get_error_responses(400, 404)
        )
    """
    return {code: ERROR_RESPONSES[code] for code in status_codes if code in ERROR_RESPONSES}
