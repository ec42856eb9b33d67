"""
Access gate: per-identity secret challenge in front of team-scoped views.

Identities are assignee names; the empty identity (or "All Team Members")
means the whole team and only the master secret opens it. The master
secret opens every identity. Unlocks last for the session.

At most one challenge is pending. A new request replaces it. Wrong
secrets keep it open with unlimited retries; cancel reverts the
selection to the last identity that succeeded.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Set

from portal.config import MASTER_IDENTITY, MASTER_PASSWORD, TEAM_PASSWORDS

logger = logging.getLogger('services.access')

ALL_MEMBERS = 'All Team Members'
WRONG_SECRET = 'Incorrect password. Try again.'
NO_CHALLENGE = 'No access request pending'


def normalise_identity(identity: Optional[str]) -> str:
    identity = (identity or '').strip()
    return '' if identity == ALL_MEMBERS else identity


@dataclass(frozen=True)
class AccessAttempt:
    granted: bool
    error: Optional[str] = None
    scope: Optional[str] = None


@dataclass
class PendingChallenge:
    identity: str
    on_granted: Callable[[], None]
    on_denied: Optional[Callable[[], None]] = None
    error: Optional[str] = None


@dataclass
class AccessSession:
    """
    Per-session gate state.

    last_identity is None until the first successful unlock; '' means the
    whole team was last selected.
    """
    unlocked: Set[str] = field(default_factory=set)
    last_identity: Optional[str] = None
    selection: Optional[str] = None
    pending: Optional[PendingChallenge] = None

    def is_unlocked(self, identity: Optional[str]) -> bool:
        if MASTER_IDENTITY in self.unlocked:
            return True
        identity = normalise_identity(identity)
        return bool(identity) and identity in self.unlocked

    def reset(self):
        self.unlocked.clear()
        self.last_identity = None
        self.selection = None
        self.pending = None

    def to_dict(self) -> Dict:
        # Callbacks do not survive serialisation; pending is request-local
        return {
            'unlocked': sorted(self.unlocked),
            'last_identity': self.last_identity,
            'selection': self.selection,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> 'AccessSession':
        data = data or {}
        return cls(
            unlocked=set(data.get('unlocked') or []),
            last_identity=data.get('last_identity'),
            selection=data.get('selection'),
        )


class AccessGate:

    def __init__(self, session: AccessSession, secrets: Optional[Dict[str, str]] = None,
                 master_secret: Optional[str] = None):
        self.session = session
        self.secrets = dict(TEAM_PASSWORDS if secrets is None else secrets)
        self.master_secret = MASTER_PASSWORD if master_secret is None else master_secret

    @property
    def pending(self) -> Optional[PendingChallenge]:
        return self.session.pending

    def request_access(self, identity: Optional[str], on_granted: Callable[[], None],
                       on_denied: Optional[Callable[[], None]] = None) -> bool:
        """
        Run on_granted now if identity is already unlocked, otherwise open a
        challenge. Returns True when access was granted without a challenge.
        """
        identity = normalise_identity(identity)
        self.session.selection = identity

        if self.session.is_unlocked(identity):
            on_granted()
            return True

        if self.session.pending is not None:
            logger.debug("Replacing pending challenge for %r", self.session.pending.identity)
        self.session.pending = PendingChallenge(identity, on_granted, on_denied)
        return False

    def _matches(self, identity: str, secret: str) -> Optional[str]:
        """Scope the secret unlocks for this identity, or None."""
        if self.master_secret and secret == self.master_secret:
            return MASTER_IDENTITY
        if not identity:
            return None
        own = self.secrets.get(identity)
        if own and secret == own:
            return identity
        return None

    def submit(self, secret: Optional[str]) -> AccessAttempt:
        pending = self.session.pending
        if pending is None:
            return AccessAttempt(granted=False, error=NO_CHALLENGE)

        scope = self._matches(pending.identity, (secret or '').strip())
        if scope is None:
            pending.error = WRONG_SECRET
            logger.info("Access denied for %r", pending.identity or ALL_MEMBERS,
                        extra={'identity': pending.identity})
            return AccessAttempt(granted=False, error=WRONG_SECRET)

        self.session.unlocked.add(scope)
        self.session.last_identity = pending.identity
        self.session.selection = pending.identity
        self.session.pending = None
        logger.info("Access granted for %r (scope %s)", pending.identity or ALL_MEMBERS, scope,
                    extra={'identity': pending.identity})
        pending.on_granted()
        return AccessAttempt(granted=True, scope=scope)

    def cancel(self):
        pending = self.session.pending
        self.session.pending = None
        self.session.selection = self.session.last_identity
        if pending is not None and pending.on_denied is not None:
            pending.on_denied()
