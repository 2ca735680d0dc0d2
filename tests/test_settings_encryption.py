import os
import sys
import unittest
import keyring
import yaml
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import YamlConfig
from db import SettingsRepository

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
        self.backend = DummyKeyring()
        keyring.set_keyring(self.backend)
        os.environ['ENCRYPT_SETTINGS'] = '1'
        self.path = 'enc_settings.yaml'
        self.db_path = 'enc_settings.db'
        for p in (self.path, self.db_path):
            if os.path.exists(p):
                os.remove(p)

    def tearDown(self) -> None:
        for p in (self.path, self.db_path):
            if os.path.exists(p):
                os.remove(p)
        os.environ.pop('ENCRYPT_SETTINGS', None)

    def test_encrypt_and_load(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'sync_token': 'secret', 'weight_unit': 'kg'})
        self.assertTrue(os.path.exists(self.path))
        with open(self.path, encoding='utf-8') as f:
            raw = yaml.safe_load(f)
        self.assertIs(raw['sync_token'], True)
        self.assertEqual(self.backend.store[('ironquest', 'sync_token')], 'secret')
        data = cfg.load()
        self.assertEqual(data['sync_token'], 'secret')
        self.assertEqual(data['weight_unit'], 'kg')

    def test_missing_secret_is_dropped(self) -> None:
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump({'backup_passphrase': True, 'weight_unit': 'lbs'}, f)
        data = YamlConfig(self.path).load()
        self.assertNotIn('backup_passphrase', data)
        self.assertEqual(data['weight_unit'], 'lbs')

    def test_cleared_secret_leaves_keyring(self) -> None:
        cfg = YamlConfig(self.path)
        cfg.save({'sync_token': 'secret'})
        cfg.save({'sync_token': None, 'weight_unit': 'kg'})
        self.assertNotIn(('ironquest', 'sync_token'), self.backend.store)
        self.assertEqual(cfg.load(), {'weight_unit': 'kg'})

    def test_non_mapping_file_rejected(self) -> None:
        with open(self.path, 'w', encoding='utf-8') as f:
            f.write('- just\n- a list\n')
        with self.assertRaises(ValueError):
            YamlConfig(self.path).load()

    def test_repository_round_trips_secret(self) -> None:
        settings = SettingsRepository(self.db_path, self.path)
        settings.set_text('sync_token', 'abc123')
        self.assertEqual(self.backend.store[('ironquest', 'sync_token')], 'abc123')
        with open(self.path, encoding='utf-8') as f:
            self.assertNotIn('abc123', f.read())

if __name__ == '__main__':
    unittest.main()
