"""Tests for :mod:`zoints.services.passwords`."""

import hashlib
import string
from unittest import TestCase

from hypothesis import given, settings
from hypothesis import strategies as st

from .. import passwords
from ..exceptions import PasswordAuthenticationFailed


def legacy_hash(password: str, salt: str = '9f86d081884c7d65') -> str:
    digest = hashlib.pbkdf2_hmac('sha512', password.encode('utf-8'),
                                 salt.encode('utf-8'), 1000, 64).hex()
    return f'{salt}:{digest}'


class TestCheckPassword(TestCase):
    """Tests for :func:`.passwords.check_password`."""

    def test_correct_password(self):
        encrypted = passwords.hash_password('thepassword')
        self.assertIsNone(passwords.check_password('thepassword', encrypted))

    def test_wrong_password(self):
        encrypted = passwords.hash_password('thepassword')
        with self.assertRaises(PasswordAuthenticationFailed):
            passwords.check_password('notthepassword', encrypted)

    def test_no_hash(self):
        """An account without a hash cannot authenticate by password."""
        for encrypted in [None, '']:
            with self.assertRaises(PasswordAuthenticationFailed):
                passwords.check_password('thepassword', encrypted)

    def test_legacy_hash(self):
        """The previous salt:digest format is still accepted."""
        encrypted = legacy_hash('thepassword')
        self.assertTrue(passwords.is_legacy(encrypted))
        self.assertIsNone(passwords.check_password('thepassword', encrypted))
        with self.assertRaises(PasswordAuthenticationFailed):
            passwords.check_password('notthepassword', encrypted)

    def test_current_hash_is_not_legacy(self):
        self.assertFalse(passwords.is_legacy(
            passwords.hash_password('thepassword')
        ))

    @given(st.text(alphabet=string.printable, min_size=1, max_size=32),
           st.text(alphabet=string.printable, min_size=1, max_size=32))
    @settings(max_examples=20, deadline=None)
    def test_check_passwords_fuzz(self, passw, fuzzpw):
        encrypted = passwords.hash_password(passw)
        if passw == fuzzpw:
            passwords.check_password(fuzzpw, encrypted)
        else:
            with self.assertRaises(PasswordAuthenticationFailed):
                passwords.check_password(fuzzpw, encrypted)
