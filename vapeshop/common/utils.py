from datetime import datetime,timezone
from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse
from vapeshop.common.constants import request_id_ctx

def now() -> datetime:
    return datetime.now(timezone.utc)


def build_success(data: Optional[Dict[str, Any]] = None, message: str = "OK",
                  request_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": data,
        "request_id": request_id,
    }

def build_error(message: str,
                errors: Optional[List[str]] = None,
                request_id: Optional[str] = None) -> Dict[str, Any]:

    return {
        "success": False,
        "message": message,
        "errors": list(errors) if errors else [message],
        "request_id": request_id,
    }

def json_ok(content: Dict[str, Any], status_code: int = 200,headers = None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code,headers=headers)

def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)

def success_response(data: Optional[Dict[str, Any]] = None, status_code: int = 200, message: str = "OK",
                     headers: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content = build_success(data, message=message, request_id=request_id_ctx.get())
    return json_ok(content, status_code=status_code,headers=headers)

def error_response(message: str, status_code: int, errors: Optional[List[str]] = None,
                   headers: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content = build_error(message, errors=errors, request_id=request_id_ctx.get())
    return json_error(content, status_code=status_code, headers=headers)
