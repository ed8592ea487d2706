# hrcore_api/common/http.py
from flask import jsonify, request

def ok(data=None, status=200, message="ok", **meta):
    payload = {"status": "success", "message": message, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status

def fail(message="Bad Request", status=400, code=None, detail=None):
    payload = {"status": "error", "message": message}
    if code: payload["code"] = code
    if detail: payload["detail"] = detail
    return jsonify(payload), status

def json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
