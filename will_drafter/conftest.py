"""
Shared pytest fixtures: an app on an in-memory database and sample drafts.
"""

import pytest

from will_drafter import create_app, db


def stub_chat_backend(system_prompt, query):
    return f'Answer to: {query}'


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'RATELIMIT_ENABLED': False,
        'SESSION_COOKIE_SECURE': False,
        'CHAT_BACKEND': stub_chat_backend,
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user_client(client):
    """A test client signed in as user-1."""
    with client.session_transaction() as sess:
        sess['user_id'] = 'user-1'
    return client


@pytest.fixture
def personal_info():
    return {
        'gender': 'male',
        'fullName': 'Ravi Kumar',
        'dob': '1980-05-12',
        'fatherHusbandName': 'Suresh Kumar',
        'religion': 'Hindu',
        'aadhar': '123456789012',
        'occupation': 'Engineer',
        'address': '12 MG Road, Bengaluru',
        'email': 'ravi@example.com',
        'mobile': '9876543210',
    }


@pytest.fixture
def executor_section():
    return {
        'primaryExecutor': {
            'fullName': 'Anil Sharma',
            'fatherName': 'Mohan Sharma',
            'aadhar': '210987654321',
            'address': '7 Park Street, Kolkata',
            'email': 'anil@example.com',
            'mobile': '9123456780',
        },
        'addSecondExecutor': False,
        'specialInstructions': '',
        'city': 'Bengaluru',
        'state': 'Karnataka',
    }


@pytest.fixture
def jane_doe_draft(personal_info, executor_section):
    """One asset worth 5 lakh, one beneficiary, 60% allocated."""
    return {
        'personalInfo': personal_info,
        'familyDetails': {'maritalStatus': 'unmarried', 'spouseName': '', 'children': []},
        'assets': {'assets': [{
            'id': 'a1',
            'type': 'Bank Account',
            'details': {
                'description': 'SBI savings account',
                'value': '500000',
                'bankName': 'State Bank of India',
                'accountType': 'Savings',
                'accountNumber': '00112233',
            },
        }]},
        'beneficiaries': {'beneficiaries': [
            {'id': 'b1', 'name': 'Jane Doe', 'relationship': 'Friend'},
        ]},
        'assetAllocation': {'allocations': [
            {'id': 'al1', 'assetId': 'a1', 'beneficiaryId': 'b1', 'percentage': 60},
        ]},
        'executor': executor_section,
    }
