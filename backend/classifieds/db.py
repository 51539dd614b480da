from classifieds.backends.base import MarketplaceBackend
from classifieds.config import Settings
from classifieds.errors import ConfigurationError


def get_backend(settings: Settings) -> MarketplaceBackend:
    if settings.backend == "supabase":
        from classifieds.backends.supabase_backend import SupabaseBackend

        return SupabaseBackend(settings)
    if settings.backend == "firestore":
        from classifieds.backends.firestore_backend import FirestoreBackend

        return FirestoreBackend(settings)
    raise ConfigurationError(f"Unknown backend '{settings.backend}'")
