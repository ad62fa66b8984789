"""
Tests for redirect target reachability checks, using recorded responses.
"""

import unittest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import requests

from redirects import LinkCheckError, RedirectEntry, RedirectTable
from link_checker import check_entries, check_url, make_table_validator
from tests.redirect_fixtures import MockResponse, make_http_client


class TestCheckUrl(unittest.TestCase):

    def test_reachable(self):
        client = make_http_client({'https://doc.rust-lang.org': MockResponse(200)})
        self.assertIsNone(check_url('https://doc.rust-lang.org/std', http_client=client))

    def test_follows_redirects_with_timeout(self):
        client = make_http_client({'https://doc.rust-lang.org': MockResponse(200)})
        check_url('https://doc.rust-lang.org/', http_client=client, timeout=3)
        url, kwargs = client.calls[0]
        self.assertEqual(kwargs['timeout'], 3)
        self.assertTrue(kwargs['allow_redirects'])

    def test_404(self):
        client = make_http_client({})
        problem = check_url('https://nocduro.com/invalid_page_name', http_client=client)
        self.assertEqual(problem.reason, 'HTTP 404')

    def test_connection_error(self):
        client = make_http_client({'http://example': requests.ConnectionError('Name or service not known')})
        problem = check_url('http://example', http_client=client)
        self.assertIsNotNone(problem)
        self.assertIn('request failed', problem.reason)


class TestCheckEntries(unittest.TestCase):

    def setUp(self):
        self.client = make_http_client({
            'https://doc.rust-lang.org': MockResponse(200),
            'https://down.example': MockResponse(503),
        })

    def test_problems_in_entry_order(self):
        entries = [
            RedirectEntry('gone', 'https://missing.example/page'),
            RedirectEntry('std', 'https://doc.rust-lang.org/std'),
            RedirectEntry('down', 'https://down.example'),
        ]
        problems = check_entries(entries, http_client=self.client, max_workers=2)
        self.assertEqual([p.short for p in problems], ['gone', 'down'])
        self.assertEqual(problems[1].reason, 'HTTP 503')
        self.assertEqual(str(problems[1]), 'down: https://down.example: HTTP 503')

    def test_all_ok(self):
        entries = [RedirectEntry('std', 'https://doc.rust-lang.org/std')]
        self.assertEqual(check_entries(entries, http_client=self.client), [])

    def test_empty(self):
        self.assertEqual(check_entries([], http_client=self.client), [])


class TestTableValidator(unittest.TestCase):

    def test_rejects_unreachable_targets(self):
        client = make_http_client({})
        validate = make_table_validator(http_client=client)
        table = RedirectTable.build([RedirectEntry('gone', 'https://missing.example')])
        with self.assertRaises(LinkCheckError) as ctx:
            validate(table)
        self.assertEqual(len(ctx.exception.problems), 1)

    def test_accepts_reachable_targets(self):
        client = make_http_client({'https://doc.rust-lang.org': MockResponse(200)})
        validate = make_table_validator(http_client=client)
        validate(RedirectTable.build([RedirectEntry('std', 'https://doc.rust-lang.org/std')]))


if __name__ == '__main__':
    unittest.main()
