"""
Tests for GitHub webhook signature checks and push event parsing.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from github_webhook import PushEvent, WebhookError, generate_github_hash, verify_signature
from tests.redirect_fixtures import make_push_event


class TestSignatures(unittest.TestCase):

    def test_sha1_hash(self):
        # GitHub's documented example secret and payload
        secret = 'hello'
        payload = b'this is an example payload of what we want to sign.'
        self.assertEqual(
            generate_github_hash(secret, payload),
            'sha1=604b8100cfe1aeaee448759c1450f080f41d41db',
        )

    def test_sha256_prefix(self):
        self.assertTrue(generate_github_hash('s', b'{}', 'sha256').startswith('sha256='))

    def test_verify_accepts_matching_signature(self):
        payload = b'{"ref": "refs/heads/master"}'
        headers = {'X-Hub-Signature-256': generate_github_hash('secret', payload, 'sha256')}
        self.assertTrue(verify_signature('secret', payload, headers))

    def test_verify_falls_back_to_sha1(self):
        payload = b'{}'
        headers = {'X-Hub-Signature': generate_github_hash('secret', payload)}
        self.assertTrue(verify_signature('secret', payload, headers))

    def test_verify_rejects_wrong_secret(self):
        payload = b'{}'
        headers = {'X-Hub-Signature-256': generate_github_hash('other', payload, 'sha256')}
        self.assertFalse(verify_signature('secret', payload, headers))

    def test_verify_rejects_tampered_payload(self):
        headers = {'X-Hub-Signature': generate_github_hash('secret', b'{"a": 1}')}
        self.assertFalse(verify_signature('secret', b'{"a": 2}', headers))

    def test_missing_signature(self):
        with self.assertRaises(WebhookError):
            verify_signature('secret', b'{}', {})

    def test_non_ascii_signature_is_a_mismatch(self):
        headers = {'X-Hub-Signature-256': 'sha256=é' + 'a' * 63}
        self.assertFalse(verify_signature('secret', b'{}', headers))


class TestPushEvent(unittest.TestCase):

    def test_parse(self):
        event = PushEvent.from_json(make_push_event(modified=['Readme.md']))
        self.assertEqual(event.ref, 'refs/heads/master')
        self.assertEqual(len(event.commits), 1)
        self.assertEqual(event.commits[0].modified, ['Readme.md'])
        self.assertIsNotNone(event.head_commit)

    def test_readme_change_does_not_touch_redirects(self):
        event = PushEvent.from_json(make_push_event(modified=['Readme.md']))
        self.assertFalse(event.file_modified('redirects.toml'))

    def test_redirects_modified(self):
        event = PushEvent.from_json(make_push_event(modified=['Readme.md', 'redirects.toml']))
        self.assertTrue(event.file_modified('redirects.toml'))

    def test_redirects_added(self):
        event = PushEvent.from_json(make_push_event(added=['redirects.toml']))
        self.assertTrue(event.file_modified('redirects.toml'))

    def test_multiple_commits(self):
        data = make_push_event(modified=['Readme.md'])
        data['commits'].append(dict(data['commits'][0], modified=['redirects.toml']))
        self.assertTrue(PushEvent.from_json(data).file_modified('redirects.toml'))

    def test_not_a_push_event(self):
        with self.assertRaises(WebhookError):
            PushEvent.from_json({'zen': 'Keep it logically awesome.'})
        with self.assertRaises(WebhookError):
            PushEvent.from_json(None)


if __name__ == '__main__':
    unittest.main()
