import os
import unittest
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from storage import MemoryStorage
from users import UserRepository
from models import ValidationError, AuthenticationError
from services import UserService, AuthService, SettingsService, SESSION_KEY, DEFAULT_SETTINGS


class UserServiceTests(unittest.TestCase):
    def setUp(self):
        self.storage = MemoryStorage()
        self.repo = UserRepository(self.storage)
        self.service = UserService(self.repo, audit=self.storage)

    def _values(self, **kw):
        values = {'name': 'Budi Santoso', 'username': 'budi', 'role': 'cashier', 'password': 'kasir123'}
        values.update(kw)
        return values

    def test_create_hashes_password(self):
        user = self.service.create_user(self._values())
        self.assertEqual(user.id, 1)
        self.assertNotEqual(user.password_hash, 'kasir123')
        self.assertTrue(self.repo.verify_password(user, 'kasir123'))
        self.assertFalse(self.repo.verify_password(user, 'wrong-pass'))
        self.assertEqual(self.storage.read_audit()[0]['event_type'], 'user_create')

    def test_validation(self):
        for bad in (self._values(name=''), self._values(username='bu'), self._values(role='owner'),
                    self._values(password='12345')):
            with self.assertRaises(ValidationError):
                self.service.create_user(bad)
        self.assertEqual(self.service.list_users(), [])

    def test_duplicate_username_case_insensitive(self):
        self.service.create_user(self._values())
        with self.assertRaises(ValidationError):
            self.service.create_user(self._values(name='Other', username='BUDI'))

    def test_update_with_blank_password_keeps_hash(self):
        user = self.service.create_user(self._values())
        updated = self.service.update_user(user.id, self._values(name='Budi S.', password=''))
        self.assertEqual(updated.name, 'Budi S.')
        self.assertEqual(updated.password_hash, user.password_hash)
        # own username is not a duplicate
        self.service.update_user(user.id, self._values(password='newpass1'))
        self.assertTrue(self.repo.verify_password(self.repo.get_user(user.id), 'newpass1'))

    def test_delete(self):
        user = self.service.create_user(self._values())
        self.service.delete_user(user.id)
        self.assertIsNone(self.repo.get_user(user.id))
        with self.assertRaises(ValidationError):
            self.service.delete_user(user.id)


class AuthServiceTests(unittest.TestCase):
    def setUp(self):
        self.storage = MemoryStorage()
        self.repo = UserRepository(self.storage)
        self.repo.add_user('Admin', 'admin', 'admin', 'password')
        self.auth = AuthService(self.storage, self.repo)

    def test_login_sets_session(self):
        session = self.auth.login('admin', 'password')
        self.assertEqual(session, {'username': 'admin', 'role': 'admin'})
        self.assertEqual(self.storage.get_item(SESSION_KEY), session)
        self.assertTrue(self.auth.is_authenticated())
        self.assertEqual(self.storage.read_audit()[0]['event_type'], 'login_success')

    def test_login_input_validation(self):
        with self.assertRaises(AuthenticationError):
            self.auth.login('', 'password')
        with self.assertRaises(AuthenticationError):
            self.auth.login('admin', 'pass')
        self.assertFalse(self.auth.is_authenticated())

    def test_wrong_password_logged(self):
        with self.assertRaises(AuthenticationError):
            self.auth.login('admin', 'not-the-password')
        with self.assertRaises(AuthenticationError):
            self.auth.login('nobody', 'password')
        self.assertFalse(self.auth.is_authenticated())
        self.assertEqual([e['event_type'] for e in self.storage.read_audit()], ['login_failed', 'login_failed'])

    def test_logout_clears_session(self):
        self.auth.login('admin', 'password')
        self.auth.logout()
        self.assertIsNone(self.auth.current_user())
        self.assertEqual(self.storage.read_audit()[0]['event_type'], 'logout')


class SettingsServiceTests(unittest.TestCase):
    def setUp(self):
        self.storage = MemoryStorage()
        self.settings = SettingsService(self.storage)

    def test_defaults(self):
        self.assertEqual(self.settings.get_settings(), DEFAULT_SETTINGS)

    def test_save_store(self):
        self.settings.save_store({'name': 'Warung Kopi', 'address': 'Jl. Merdeka 1', 'phone': '0812', 'email': ''})
        store = self.settings.get_settings()['store']
        self.assertEqual(store['name'], 'Warung Kopi')
        self.assertEqual(self.storage.read_audit()[0]['event_type'], 'settings_update')

    def test_store_validation(self):
        base = {'name': 'Warung', 'address': 'Jl. A', 'phone': '0812', 'email': ''}
        for key in ('name', 'address', 'phone'):
            with self.assertRaises(ValidationError):
                self.settings.save_store(dict(base, **{key: ' '}))
        with self.assertRaises(ValidationError):
            self.settings.save_store(dict(base, email='not-an-email'))
        self.assertEqual(self.settings.get_settings()['store'], DEFAULT_SETTINGS['store'])

    def test_save_receipt_and_app(self):
        self.settings.save_receipt({'header': 'Hi', 'footer': '', 'show_logo': False, 'show_tax_details': True})
        self.settings.save_app({'default_tax': 11, 'currency': 'USD', 'theme': 'dark'})
        current = self.settings.get_settings()
        self.assertFalse(current['receipt']['show_logo'])
        self.assertEqual(current['app'], {'default_tax': 11.0, 'currency': 'USD', 'theme': 'dark'})
        # saving one section leaves the others alone
        self.assertEqual(current['store'], DEFAULT_SETTINGS['store'])

    def test_app_validation(self):
        for bad in ({'default_tax': 101}, {'default_tax': -1}, {'default_tax': 'ten'},
                    {'default_tax': 10, 'currency': 'EUR'}, {'default_tax': 10, 'theme': 'neon'}):
            with self.assertRaises(ValidationError):
                self.settings.save_app(bad)


if __name__ == '__main__':
    unittest.main()
