"""Domain layer DI providers."""

from dishka import Scope, provide

from accounts.config import AuthSettings, PasswordSettings, Settings
from accounts.domain.repository import FileStore, UserStore
from accounts.domain.service import (
    CredentialCodec,
    PasswordVault,
    TokenService,
    UserContext,
    UserDirectory,
)
from accounts.util.di.base import ProviderBase


class ProdDomainProvider(ProviderBase):
    """Domain services provider - concrete, no mocks needed.

    Stateless services are APP-scoped. The context and directory are
    REQUEST-scoped to follow the store's session lifecycle.
    """

    @provide(scope=Scope.APP)
    def get_credential_codec(self) -> CredentialCodec:
        return CredentialCodec()

    @provide(scope=Scope.APP)
    def get_password_vault(self, settings: PasswordSettings) -> PasswordVault:
        """Provide password vault with the configured work factor."""
        return PasswordVault(settings)

    @provide(scope=Scope.APP)
    def get_token_service(
        self, auth_settings: AuthSettings, codec: CredentialCodec
    ) -> TokenService:
        """Provide JWT token domain service."""
        return TokenService(auth_settings=auth_settings, codec=codec)

    @provide(scope=Scope.REQUEST)
    def get_user_context(
        self,
        settings: Settings,
        store: UserStore,
        files: FileStore,
        vault: PasswordVault,
        codec: CredentialCodec,
        tokens: TokenService,
    ) -> UserContext:
        """Provide the collaborators bound to user entities."""
        return UserContext(
            store=store,
            files=files,
            vault=vault,
            codec=codec,
            tokens=tokens,
            settings=settings,
        )

    @provide(scope=Scope.REQUEST)
    def get_user_directory(self, ctx: UserContext) -> UserDirectory:
        return UserDirectory(ctx)
