"""
Response envelopes.

Success: {"status_code", "data", "message", "success": True}
Failure: {"status_code", "message", "errors", "success": False}
"""
from typing import Any, Dict, List, Optional


def api_response(data: Any = None, message: str = "Success", status_code: int = 200) -> Dict[str, Any]:
    return {
        "status_code": status_code,
        "data": data if data is not None else {},
        "message": message,
        "success": status_code < 400,
    }


def api_error(status_code: int, message: str, errors: Optional[List[Any]] = None) -> Dict[str, Any]:
    return {
        "status_code": status_code,
        "message": message,
        "errors": list(errors or []),
        "success": False,
    }
