"""
Error Logger Utility
Stores unhandled errors in the error_logs table together with the request that caused them.
"""

import traceback
import json
from datetime import datetime
from flask import request, has_request_context
from flask_login import current_user


# Keys whose values never reach the database
SENSITIVE_KEYS = {
    'password', 'password_hash', 'token', 'csrf_token', 'secret',
    'api_key', 'authorization', 'cookie', 'session'
}


def sanitize_data(data):
    """Redact sensitive keys from a (possibly nested) dict."""
    if not isinstance(data, dict):
        return data
    sanitized = {}
    for key, value in data.items():
        if any(s in key.lower() for s in SENSITIVE_KEYS):
            sanitized[key] = '[REDACTED]'
        elif isinstance(value, dict):
            sanitized[key] = sanitize_data(value)
        else:
            sanitized[key] = str(value)[:500]
    return sanitized


def _request_payload():
    raw_data = {}
    if request.args:
        raw_data['args'] = dict(request.args)
    if request.form:
        raw_data['form'] = dict(request.form)
    payload = request.get_json(silent=True) if request.is_json else None
    if isinstance(payload, dict):
        raw_data['json'] = payload
    if not raw_data:
        return None
    return json.dumps(sanitize_data(raw_data))[:4000]


def log_error(error, status_code=500):
    """
    Record an error in the database.

    Safe to call from error handlers: any failure while logging is swallowed
    after rolling the session back, so the original response still goes out.

    Args:
        error: The exception or error object
        status_code: HTTP status code (default 500)

    Returns:
        The ErrorLog row, or None when it could not be stored
    """
    from cafe_pos.models import db, ErrorLog

    try:
        tb = traceback.format_exc()
        if tb == 'NoneType: None\n':
            tb = None

        error_log = ErrorLog(
            timestamp=datetime.utcnow(),
            error_type=type(error).__name__,
            error_message=str(error)[:2000],
            traceback=tb,
            status_code=status_code,
            is_resolved=False
        )

        if has_request_context():
            error_log.request_url = request.url[:512] if request.url else None
            error_log.request_method = request.method
            error_log.ip_address = request.remote_addr
            error_log.user_agent = str(request.user_agent)[:512] if request.user_agent else None
            error_log.blueprint = request.blueprints[0] if request.blueprints else None
            error_log.endpoint = request.endpoint
            try:
                error_log.request_data = _request_payload()
            except (TypeError, ValueError):
                error_log.request_data = None
            if current_user and current_user.is_authenticated:
                error_log.user_id = current_user.id

        db.session.add(error_log)
        db.session.commit()
        return error_log

    except Exception:
        # The error logger must never take the app down with it
        db.session.rollback()
        return None
