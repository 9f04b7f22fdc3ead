"""User resolution for @mentions.

The local users table is only a cache; Slack's directory is authoritative.
"""

import os
import logging
import requests
from dataclasses import dataclass
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"


@dataclass
class UserRef:
    user_id: Optional[str]
    username: str
    team_id: Optional[str] = None
    display_name: Optional[str] = None
    real_name: Optional[str] = None


class SlackDirectory:
    """Slack Web API lookups for workspace members."""

    def __init__(self, token: Optional[str] = None, timeout: int = 10):
        self.token = token or os.getenv('SLACK_BOT_TOKEN')
        self.timeout = timeout
        if not self.token:
            logger.warning("SLACK_BOT_TOKEN not set. Slack user lookups will be disabled.")

    def _call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        if not self.token:
            return None
        try:
            response = requests.get(
                f"{SLACK_API_URL}/{method}",
                headers={"Authorization": f"Bearer {self.token}"},
                params=params or {},
                timeout=self.timeout,
            )
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Slack {method} failed: {e}")
            return None
        if not data.get('ok'):
            logger.warning(f"Slack {method} returned error: {data.get('error')}")
            return None
        return data

    def find_member(self, name: str) -> Optional[Dict[str, Any]]:
        """Find a non-deleted member by username, display name or real name."""
        data = self._call('users.list')
        if not data:
            return None
        for member in data.get('members', []):
            profile = member.get('profile') or {}
            if name in (member.get('name'), profile.get('display_name'), member.get('real_name')):
                if member.get('deleted'):
                    continue
                return member
        return None

    def user_info(self, user_id: str) -> Optional[Dict[str, Any]]:
        data = self._call('users.info', {'user': user_id})
        return data.get('user') if data else None


def _member_to_ref(member: Dict[str, Any], team_id: str) -> UserRef:
    profile = member.get('profile') or {}
    return UserRef(
        user_id=member['id'],
        username=member.get('name') or member['id'],
        team_id=team_id,
        display_name=profile.get('display_name') or None,
        real_name=member.get('real_name'),
    )


class UserResolver:
    """Resolve mention names to stable user ids: cache first, then the directory."""

    def __init__(self, store, directory: Optional[SlackDirectory] = None):
        self.store = store
        self.directory = directory

    def _remember(self, user: UserRef) -> None:
        try:
            self.store.upsert_user(user.user_id, user.username, user.team_id,
                                   user.display_name, user.real_name)
        except Exception:
            logger.exception(f"Failed to cache user {user.user_id}")

    def lookup_by_mention(self, name: str, team_id: str) -> Optional[UserRef]:
        clean = (name or '').lstrip('@').strip()
        if not clean:
            return None

        cached = self.store.find_user_by_username(clean, team_id)
        if cached:
            return UserRef(cached.user_id, cached.username, cached.team_id,
                           cached.display_name, cached.real_name)

        if self.directory is None:
            return None

        member = self.directory.find_member(clean)
        if not member:
            logger.info(f"Could not resolve @{clean} in team {team_id}")
            return None

        user = _member_to_ref(member, team_id)
        self._remember(user)
        return user

    def identify(self, user_id: str, team_id: str, username: Optional[str] = None) -> UserRef:
        """Build a reference for the acting user and refresh the cache."""
        if username:
            user = UserRef(user_id, username, team_id)
        else:
            cached = self.store.get_user(user_id)
            info = None if cached else (self.directory.user_info(user_id) if self.directory else None)
            if cached:
                user = UserRef(cached.user_id, cached.username, team_id, cached.display_name, cached.real_name)
            elif info:
                user = _member_to_ref(info, team_id)
            else:
                user = UserRef(user_id, user_id, team_id)
        self._remember(user)
        return user
