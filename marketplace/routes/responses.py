from typing import Any, Optional

from flask import jsonify


def success(message: str, data: Any = None, status: int = 200):
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def failure(message: str, status: int, error: Optional[str] = None):
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    return jsonify(body), status
