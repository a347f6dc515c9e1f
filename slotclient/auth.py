"""Login state for the client: token plus user record, restored from storage."""
import logging

from slotclient.api_client import ApiClient
from slotclient.errors import GameError
from slotclient.game_api import AuthAPI
from slotclient.storage import ClientStorage, User


logger = logging.getLogger(__name__)


class AuthSession:
    """Tracks whether the client holds a valid token and who it belongs to."""

    def __init__(self, client: ApiClient, storage: ClientStorage):
        self._client = client
        self._storage = storage
        self._api = AuthAPI(client)
        self.user: User | None = None
        self.is_authenticated = False
        self.is_loading = False

    async def restore(self) -> bool:
        """
        Load token and user from storage.

        Authenticated only when both are present.
        """
        token = await self._storage.get_token()
        user = await self._storage.get_user()
        if token is not None:
            await self._client.set_auth_token(token, persist=False)
        self.user = user
        self.is_authenticated = token is not None and user is not None
        return self.is_authenticated

    async def login(self, login: str, password: str) -> User:
        """Log in; raises GameError on failure."""
        self.is_loading = True
        try:
            await self._api.login(login, password)
            return await self._remember(User(login=login))
        finally:
            self.is_loading = False

    async def register(self, name: str, login: str, password: str) -> User:
        """Register and log in; raises GameError on failure."""
        self.is_loading = True
        try:
            await self._api.register(name, login, password)
            return await self._remember(User(login=login, name=name))
        finally:
            self.is_loading = False

    async def logout(self) -> None:
        """Log out. Local state is cleared even when the server call fails."""
        try:
            await self._api.logout()
        except GameError as e:
            logger.warning("Logout request failed: %s", e.message)
        finally:
            await self._storage.save_user(None)
            self.user = None
            self.is_authenticated = False

    async def _remember(self, user: User) -> User:
        await self._storage.save_user(user)
        self.user = user
        self.is_authenticated = True
        logger.info("Authenticated as %s", user.login)
        return user
