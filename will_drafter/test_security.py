"""
Security Tests

Tests for security features:
- Input sanitization
- Session user check
- Rate limit keys
- Security headers
"""

import unittest

from flask import Flask, jsonify, request, session

from will_drafter.security import (
    sanitize_string, sanitize_payload, user_required,
    rate_limit_key, add_security_headers, get_client_ip
)


class TestInputSanitization(unittest.TestCase):
    """Test input sanitization functions."""
    
    def test_sanitize_string_removes_dangerous_chars(self):
        """Test that dangerous characters are removed."""
        # Test HTML/script injection
        dangerous = '<script>alert("xss")</script>'
        sanitized = sanitize_string(dangerous)
        self.assertNotIn('<', sanitized)
        self.assertNotIn('>', sanitized)
    
    def test_sanitize_string_preserves_safe_text(self):
        """Test that safe text is preserved."""
        safe = 'John O\'Connor-Smith'
        sanitized = sanitize_string(safe)
        self.assertEqual(sanitized, safe)
    
    def test_sanitize_string_handles_unicode(self):
        """Test handling of unicode characters."""
        unicode_text = 'José García-Müller'
        sanitized = sanitize_string(unicode_text)
        self.assertEqual(sanitized, unicode_text)
    
    def test_sanitize_string_trims_whitespace(self):
        """Test that whitespace is trimmed."""
        text = '  John Smith  '
        sanitized = sanitize_string(text)
        self.assertEqual(sanitized, 'John Smith')
    
    def test_sanitize_string_empty_input(self):
        """Test handling of empty input."""
        self.assertEqual(sanitize_string(''), '')
        self.assertEqual(sanitize_string(None), '')
    
    def test_sanitize_payload_nested_dict(self):
        """Test sanitization of nested dictionaries."""
        payload = {
            'name': '<script>alert(1)</script>John',
            'address': {
                'street': '123 <b>Test</b> Street',
                'city': 'Pune'
            },
            'items': [
                {'name': '<img src=x onerror=alert(1)>'},
                'safe string'
            ]
        }
        
        sanitized = sanitize_payload(payload)
        
        # Check dangerous content removed
        self.assertNotIn('<', sanitized['name'])
        self.assertNotIn('<', sanitized['address']['street'])
        self.assertNotIn('<', sanitized['items'][0]['name'])
        
        # Check safe content preserved
        self.assertEqual(sanitized['address']['city'], 'Pune')
        self.assertEqual(sanitized['items'][1], 'safe string')
    
    def test_sanitize_payload_preserves_types(self):
        """Test that non-string types are preserved."""
        payload = {
            'string': 'test',
            'integer': 42,
            'float': 3.14,
            'boolean': True,
            'null': None,
            'list': [1, 2, 3]
        }
        
        sanitized = sanitize_payload(payload)
        
        self.assertEqual(sanitized['string'], 'test')
        self.assertEqual(sanitized['integer'], 42)
        self.assertEqual(sanitized['float'], 3.14)
        self.assertEqual(sanitized['boolean'], True)
        self.assertIsNone(sanitized['null'])
        self.assertEqual(sanitized['list'], [1, 2, 3])


def _make_app():
    app = Flask(__name__)
    app.config['SECRET_KEY'] = 'test-secret'

    @app.route('/api/whoami')
    @user_required
    def whoami():
        return jsonify({'ok': True, 'userId': request.user_id})

    @app.route('/api/key')
    def key():
        return jsonify({'key': rate_limit_key(), 'ip': get_client_ip()})

    @app.route('/login/<user_id>')
    def login(user_id):
        session['user_id'] = user_id
        return jsonify({'ok': True})

    @app.after_request
    def headers(response):
        return add_security_headers(response)

    return app


class TestUserRequired(unittest.TestCase):
    """Test the session user check."""

    def setUp(self):
        self.client = _make_app().test_client()

    def test_rejects_anonymous_request(self):
        response = self.client.get('/api/whoami')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.get_json(), {'ok': False, 'error': 'User is not authenticated.'})

    def test_blank_user_id_rejected(self):
        with self.client.session_transaction() as sess:
            sess['user_id'] = '  '
        self.assertEqual(self.client.get('/api/whoami').status_code, 401)

    def test_session_user_passed_to_view(self):
        self.client.get('/login/user-7')
        response = self.client.get('/api/whoami')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['userId'], 'user-7')


class TestRateLimitKey(unittest.TestCase):
    """Test rate limit keys."""

    def setUp(self):
        self.client = _make_app().test_client()

    def test_anonymous_keyed_by_forwarded_ip(self):
        response = self.client.get('/api/key', headers={'X-Forwarded-For': '203.0.113.9, 10.0.0.1'})
        self.assertEqual(response.get_json(), {'key': 'ip:203.0.113.9', 'ip': '203.0.113.9'})

    def test_signed_in_keyed_by_user(self):
        self.client.get('/login/user-7')
        self.assertEqual(self.client.get('/api/key').get_json()['key'], 'user:user-7')


class TestSecurityHeaders(unittest.TestCase):
    """Test response headers."""

    def setUp(self):
        self.client = _make_app().test_client()

    def test_standard_headers(self):
        response = self.client.get('/api/key')
        self.assertEqual(response.headers['X-Content-Type-Options'], 'nosniff')
        self.assertIn('X-Frame-Options', response.headers)

    def test_api_responses_not_cached(self):
        response = self.client.get('/api/key')
        self.assertIn('no-store', response.headers['Cache-Control'])


class TestSecurityEdgeCases(unittest.TestCase):
    """Test security edge cases."""

    def test_sanitize_very_long_string(self):
        """Test sanitization of very long strings."""
        long_string = 'A' * 10000
        sanitized = sanitize_string(long_string)
        self.assertEqual(len(sanitized), 10000)

    def test_sanitize_truncates_beyond_limit(self):
        self.assertEqual(len(sanitize_string('A' * 20, max_length=5)), 5)

    def test_sanitize_nested_deeply(self):
        """Test sanitization of deeply nested structures."""
        payload = {'level1': {'level2': {'level3': {'level4': '<script>test</script>'}}}}
        sanitized = sanitize_payload(payload)
        self.assertNotIn('<', sanitized['level1']['level2']['level3']['level4'])


if __name__ == '__main__':
    unittest.main()
