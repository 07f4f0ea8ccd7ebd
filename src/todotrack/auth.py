"""Device-code sign-in with a persistent token cache (msal).

The cache is an ``msal.SerializableTokenCache`` stored as JSON next to the
user's home directory, so a second run signs in silently.
"""
from __future__ import annotations
import logging
from pathlib import Path
from typing import Callable, List, Optional

import msal

from todotrack.errors import AuthError, describe
from todotrack.settings import AppSettings

logger = logging.getLogger(__name__)

PromptCallback = Callable[[str], None]


class DeviceCodeAuth:
    def __init__(self, settings: AppSettings, prompt: PromptCallback,
                 app: Optional[msal.PublicClientApplication] = None):
        if not settings.client_id:
            raise AuthError('client id is not configured')
        self.scopes: List[str] = list(settings.scopes)
        self.prompt = prompt
        self.cache_path: Path = settings.token_cache
        self.cache = msal.SerializableTokenCache()
        if self.cache_path.exists():
            self.cache.deserialize(self.cache_path.read_text())
        self.app = app or msal.PublicClientApplication(
            settings.client_id,
            authority=settings.authority,
            token_cache=self.cache,
        )

    def _save_cache(self) -> None:
        if not self.cache.has_state_changed:
            return
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            self.cache_path.write_text(self.cache.serialize())
        except OSError as e:
            logger.warning('could not write token cache %s: %s', self.cache_path, e)
            return
        logger.debug('token cache written to %s', self.cache_path)

    def get_token(self) -> str:
        """Return an access token, signing in with a device code if needed.

        Blocks while the user completes the device flow; callers on the
        event loop should run it in a worker thread. Network failures while
        talking to the identity platform are raised as AuthError.
        """
        try:
            result = self._acquire()
        except (OSError, ValueError) as e:
            # requests' transport errors are OSError subclasses
            raise AuthError(f'sign-in failed: {describe(e)}') from e
        if 'access_token' not in result:
            raise AuthError(result.get('error_description') or result.get('error') or 'Sign-in failed')
        self._save_cache()
        return result['access_token']

    def _acquire(self) -> dict:
        result = None
        accounts = self.app.get_accounts()
        if accounts:
            result = self.app.acquire_token_silent(self.scopes, account=accounts[0])
        if not result:
            flow = self.app.initiate_device_flow(scopes=self.scopes)
            if 'user_code' not in flow:
                raise AuthError(flow.get('error_description') or 'Could not start device code flow')
            self.prompt(flow['message'])
            result = self.app.acquire_token_by_device_flow(flow)
        return result
