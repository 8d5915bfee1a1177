from datetime import datetime

import pytest

from edutrack.errors import ValidationError
from edutrack.utils.password_validator import PasswordValidator
from edutrack.utils.validation import FieldValidator, is_uuid, parse_bool


def test_collects_every_error_before_raising():
    v = FieldValidator({'username': 'ab', 'age': 'ten'})
    v.string('username', 'Username too short', 3, 50)
    v.integer('age', 'Age must be a number')
    v.email('email', 'Email is required')

    with pytest.raises(ValidationError) as excinfo:
        v.validate()

    assert excinfo.value.message == 'Validation failed'
    assert [e['field'] for e in excinfo.value.errors] == ['username', 'age', 'email']


def test_query_validator_message():
    v = FieldValidator({'page': '0'}, 'Invalid query parameters')
    v.integer('page', 'Page must be a positive integer', minimum=1)

    with pytest.raises(ValidationError) as excinfo:
        v.validate()
    assert excinfo.value.to_dict()['message'] == 'Invalid query parameters'


def test_cleans_values():
    v = FieldValidator({'name': '  Dala  ', 'email': 'Musa@Example.COM', 'count': '12', 'flag': 'yes'})

    assert v.string('name', 'bad') == 'Dala'
    assert v.email('email', 'bad') == 'musa@example.com'
    assert v.integer('count', 'bad', 0, 100) == 12
    assert v.boolean('flag', 'bad') is True
    v.validate()


def test_integer_rejects_booleans_and_fractions():
    v = FieldValidator({'a': True, 'b': 2.5})
    assert v.integer('a', 'bad') is None
    assert v.integer('b', 'bad') is None
    assert len(v.errors) == 2


def test_optional_fields_may_be_blank():
    v = FieldValidator({'phone': ''})
    assert v.string('phone', 'bad', required=False) is None
    assert v.choice('status', ('open',), 'bad') is None
    v.validate()


def test_date_end_of_day():
    v = FieldValidator({'from': '2024-03-01', 'to': '2024-03-31', 'at': '2024-03-05T10:00:00+01:00'})

    assert v.date('from', 'bad') == datetime(2024, 3, 1)
    assert v.date('to', 'bad', end_of_day=True) == datetime(2024, 3, 31, 23, 59, 59, 999999)
    assert v.date('at', 'bad') == datetime(2024, 3, 5, 9, 0)
    assert v.date('missing', 'bad') is None


def test_helpers():
    assert is_uuid('3f1c2a4e-0000-4000-8000-000000000000')
    assert not is_uuid('not-a-uuid')
    assert parse_bool('off') is False
    assert parse_bool('maybe') is None


@pytest.mark.parametrize('password, valid', [
    ('Str0ng!Pass', True),
    ('short1!A', True),
    ('alllowercase1!', False),
    ('NoDigits!!', False),
    ('NoSpecial12', False),
    ('Admin123!', False),
])
def test_password_rules(password, valid):
    assert PasswordValidator().validate_password(password)[0] is valid


def test_secret_keeps_whitespace_and_rejects_non_strings():
    v = FieldValidator({'password': ' Str0ng!Pass ', 'token': 123})

    assert v.secret('password', 'bad') == ' Str0ng!Pass '
    assert v.secret('token', 'bad') is None
    assert v.errors == [{'field': 'token', 'message': 'bad'}]
