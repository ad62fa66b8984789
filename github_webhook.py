"""GitHub push webhook handling.

GitHub signs each delivery with an HMAC of the raw body using the webhook
secret, sent as ``X-Hub-Signature`` (SHA-1) and ``X-Hub-Signature-256``.
"""
import hmac
import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

SIGNATURE_HEADERS = (
    ('X-Hub-Signature-256', 'sha256'),
    ('X-Hub-Signature', 'sha1'),
)


class WebhookError(Exception):
    """A webhook delivery could not be authenticated or parsed."""


def generate_github_hash(secret: str, payload: bytes, algorithm: str = 'sha1') -> str:
    """Return the signature header value GitHub sends for payload."""
    if isinstance(payload, str):
        payload = payload.encode('utf-8')
    digest = hmac.new(secret.encode('utf-8'), msg=payload, digestmod=getattr(hashlib, algorithm)).hexdigest()
    return f'{algorithm}={digest}'


def verify_signature(secret: str, payload: bytes, headers: Mapping[str, str]) -> bool:
    """Check the strongest signature header present against payload."""
    for header, algorithm in SIGNATURE_HEADERS:
        signature = headers.get(header)
        if signature:
            expected = generate_github_hash(secret, payload, algorithm)
            return hmac.compare_digest(expected.encode('ascii'), signature.encode('utf-8', 'replace'))
    raise WebhookError('No signature')


@dataclass
class Commit:
    id: str
    message: str = ''
    url: str = ''
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'Commit':
        return cls(
            id=data.get('id', ''),
            message=data.get('message', ''),
            url=data.get('url', ''),
            added=list(data.get('added') or []),
            removed=list(data.get('removed') or []),
            modified=list(data.get('modified') or []),
        )


@dataclass
class PushEvent:
    ref: str
    before: str
    after: str
    compare: str = ''
    commits: List[Commit] = field(default_factory=list)
    head_commit: Optional[Commit] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'PushEvent':
        if not isinstance(data, dict) or 'ref' not in data:
            raise WebhookError('Payload is not a push event')
        head = data.get('head_commit')
        return cls(
            ref=data['ref'],
            before=data.get('before', ''),
            after=data.get('after', ''),
            compare=data.get('compare', ''),
            commits=[Commit.from_json(c) for c in data.get('commits') or []],
            head_commit=Commit.from_json(head) if head else None,
        )

    def file_modified(self, filename: str) -> bool:
        """Return True if any commit in the push added or modified filename."""
        for commit in self.commits:
            if filename in commit.modified or filename in commit.added:
                return True
        return False
