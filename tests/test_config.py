import os
import sys
import unittest
import tempfile
import keyring
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig, load_app_config
from models import build, Exercise
from settings_schema import validate_app_config, validate_settings


class DummyKeyring(keyring.backend.KeyringBackend):
    priority = 1

    def __init__(self):
        self.store = {}

    def get_password(self, service, username):
        return self.store.get((service, username))

    def set_password(self, service, username, password):
        self.store[(service, username)] = password

    def delete_password(self, service, username):
        self.store.pop((service, username), None)


class SettingsEncryptionTest(unittest.TestCase):
    def setUp(self) -> None:
        self.keyring = DummyKeyring()
        keyring.set_keyring(self.keyring)
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'enc_settings.yaml')

    def tearDown(self) -> None:
        self.tmp.cleanup()
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'api_key': 'secret', 'user_id': 'u1', 'backend_url': None})
        with open(self.path, encoding='utf-8') as f:
            self.assertNotIn('secret', f.read())
        self.assertEqual(self.keyring.store[('fittrack', 'api_key')], 'secret')
        data = cfg.load()
        self.assertEqual(data['api_key'], 'secret')
        self.assertEqual(data['user_id'], 'u1')
        self.assertNotIn('backend_url', data)


class AppConfigTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'settings.yaml')
        self.env = {k: os.environ.pop(k) for k in list(os.environ) if k.startswith('FITTRACK_')}

    def tearDown(self) -> None:
        self.tmp.cleanup()
        for key in [k for k in os.environ if k.startswith('FITTRACK_')]:
            os.environ.pop(key)
        os.environ.update(self.env)

    def test_defaults_without_file(self) -> None:
        cfg = load_app_config(self.path)
        self.assertIsNone(cfg.backend_url)
        self.assertEqual(cfg.user_id, 'temp-user-123')
        self.assertEqual(cfg.rest_timer_seconds, 90)

    def test_file_then_environment(self) -> None:
        YamlConfig(self.path).save({'rest_timer_seconds': 120, 'user_id': 'from-file'})
        os.environ['FITTRACK_USER_ID'] = 'from-env'
        os.environ['FITTRACK_BACKEND_URL'] = 'https://db.example'
        cfg = load_app_config(self.path)
        self.assertEqual(cfg.rest_timer_seconds, 120)
        self.assertEqual(cfg.user_id, 'from-env')
        self.assertEqual(cfg.backend_url, 'https://db.example')

    def test_invalid_values_raise_value_error(self) -> None:
        with self.assertRaises(ValueError):
            validate_app_config({'rest_timer_seconds': 5})
        with self.assertRaises(ValueError):
            validate_settings({'default_weight_unit': 'stone'})
        with self.assertRaises(ValueError):
            build(Exercise, {'name': 'Row', 'category': 'back', 'muscle_group': 'Back'})


if __name__ == '__main__':
    unittest.main()
