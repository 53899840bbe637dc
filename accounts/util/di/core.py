"""Core DI providers (non-mockable)."""

from dishka import Scope, provide

from accounts.config import AuthSettings, KeySettings, PasswordSettings, Settings
from accounts.util.di.base import ProviderBase


class ProdConfigProvider(ProviderBase):
    """Settings provider, loaded from the environment and .env file."""

    @provide(scope=Scope.APP)
    def provide_settings(self) -> Settings:
        """Provide application settings from environment."""
        return Settings()

    @provide(scope=Scope.APP)
    def provide_auth_settings(self, settings: Settings) -> AuthSettings:
        return settings.auth

    @provide(scope=Scope.APP)
    def provide_password_settings(self, settings: Settings) -> PasswordSettings:
        return settings.passwords

    @provide(scope=Scope.APP)
    def provide_key_settings(self, settings: Settings) -> KeySettings:
        return settings.keys
