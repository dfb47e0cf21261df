"""
Security hardening module.

Provides CSRF protection, rate limiting, input sanitization, security
headers and the session-based user check for the application.
"""

import re
from functools import wraps
from datetime import timedelta
from typing import Optional, Dict, Any

from flask import request, session, jsonify
from flask_limiter import Limiter
from flask_wtf.csrf import CSRFProtect


# Security configuration defaults
DEFAULT_CONFIG = {
    'SESSION_COOKIE_SECURE': True,
    'SESSION_COOKIE_HTTPONLY': True,
    'SESSION_COOKIE_SAMESITE': 'Lax',
    'PERMANENT_SESSION_LIFETIME': timedelta(hours=1),
    'WTF_CSRF_TIME_LIMIT': 3600,  # 1 hour
    'WTF_CSRF_SSL_STRICT': True,
}

SESSION_USER_KEY = 'user_id'


def get_client_ip() -> str:
    """Get the client IP address, handling proxies."""
    # Check for forwarded header (if behind proxy)
    forwarded_for = request.headers.get('X-Forwarded-For')
    if forwarded_for:
        # Get first IP in chain
        return forwarded_for.split(',')[0].strip()

    real_ip = request.headers.get('X-Real-Ip')
    if real_ip:
        return real_ip

    return request.remote_addr or 'unknown'


def get_current_user_id() -> Optional[str]:
    """The authenticated user id stored in the session, if any."""
    user_id = session.get(SESSION_USER_KEY)
    if user_id is None or str(user_id).strip() == '':
        return None
    return str(user_id)


def rate_limit_key() -> str:
    """Limit signed-in users per account and everyone else per IP."""
    user_id = get_current_user_id()
    return f'user:{user_id}' if user_id else f'ip:{get_client_ip()}'


# Initialize extensions at module level
csrf = CSRFProtect()
limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=["1000 per day", "200 per hour"]
)


def add_security_headers(response):
    """
    Add security headers to response.
    This is a standalone function that can be used as an after_request handler.
    """
    # Content Security Policy
    response.headers['Content-Security-Policy'] = (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline'; "
        "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
        "font-src 'self' https://fonts.gstatic.com; "
        "img-src 'self' data:; "
        "connect-src 'self';"
    )

    # Prevent MIME type sniffing
    response.headers['X-Content-Type-Options'] = 'nosniff'

    # Prevent clickjacking
    response.headers['X-Frame-Options'] = 'DENY'

    # Referrer policy
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'

    # Drafts hold personal data
    if request.path.startswith('/api/'):
        response.headers['Cache-Control'] = 'no-store'

    return response


def init_security(app):
    """Initialize security extensions with the app."""
    # Apply default security config
    for key, value in DEFAULT_CONFIG.items():
        if key not in app.config:
            app.config[key] = value

    # Initialize CSRF protection
    csrf.init_app(app)

    # Initialize rate limiter
    limiter.init_app(app)


# Rate limit configurations
RATE_LIMITS = {
    'draft_write': "120 per minute",
    'finalize': "10 per hour",
    'pdf': "30 per hour",
    'chat': "20 per minute",
}


def rate_limit_draft_write():
    """Decorator for draft save endpoints."""
    return limiter.limit(RATE_LIMITS['draft_write'])


def rate_limit_finalize():
    """Decorator for will finalize/update endpoints."""
    return limiter.limit(RATE_LIMITS['finalize'])


def rate_limit_pdf():
    """Decorator for PDF export endpoints."""
    return limiter.limit(RATE_LIMITS['pdf'])


def rate_limit_chat():
    """Decorator for chatbot endpoints."""
    return limiter.limit(RATE_LIMITS['chat'])


def user_required(f):
    """Decorator to require an authenticated user in the session."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = get_current_user_id()
        if user_id is None:
            return jsonify({'ok': False, 'error': 'User is not authenticated.'}), 401

        # Store for use in view
        request.user_id = user_id

        return f(*args, **kwargs)
    return decorated_function


# Input sanitization
HTML_TAG_PATTERN = re.compile(r'<[^>]+>')
SCRIPT_PATTERN = re.compile(r'<script[^>]*>.*?</script>', re.DOTALL | re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r'on\w+\s*=', re.IGNORECASE)


def sanitize_string(value: str, max_length: int = 10000) -> str:
    """
    Sanitize a string value for safe storage and display.

    Args:
        value: Input string
        max_length: Maximum allowed length

    Returns:
        Sanitized string
    """
    if value is None:
        return ''

    if not isinstance(value, str):
        value = str(value)

    value = SCRIPT_PATTERN.sub('', value)
    value = EVENT_HANDLER_PATTERN.sub('', value)
    value = HTML_TAG_PATTERN.sub('', value)

    return value[:max_length].strip()


def sanitize_payload(payload: Any) -> Any:
    """
    Recursively sanitize all string values in a payload.

    Args:
        payload: Dictionary, list or scalar to sanitize

    Returns:
        Sanitized copy; non-string scalars are returned unchanged
    """
    if isinstance(payload, dict):
        return {k: sanitize_payload(v) for k, v in payload.items()}
    elif isinstance(payload, list):
        return [sanitize_payload(item) for item in payload]
    elif isinstance(payload, str):
        return sanitize_string(payload)
    else:
        return payload


def get_json_payload() -> Dict[str, Any]:
    """The request's JSON object body, sanitized; {} when absent or not an object."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return {}
    return sanitize_payload(data)
