import json
import os
from dataclasses import dataclass, field
from typing import Dict

from dotenv import load_dotenv

from classifieds.errors import ConfigurationError

load_dotenv()

# Public project literals; the anon key is safe to ship with the client.
DEFAULT_SUPABASE_URL = "https://arnaegobfepqfwctudpw.supabase.co"
DEFAULT_SUPABASE_ANON_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9.eyJpc3MiOiJzdXBhYmFzZSIsInJlZiI6ImFybmFlZ29iZmVwcWZ3Y3R1ZHB3Iiwicm9sZSI6ImFub24iLCJpYXQiOjE3NjI0NDUzNTUsImV4cCI6MjA3ODAyMTM1NX0"
    ".l5l-lceMGvK7jp_DUV8lXlRofg_7SurOfaE28EZ0xTI"
)

BACKENDS = ("supabase", "firestore")


def _parse_firebase_config(raw: str) -> Dict[str, str]:
    if not raw or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"FIREBASE_CONFIG is not valid JSON: {e}")
    if not isinstance(parsed, dict):
        raise ConfigurationError("FIREBASE_CONFIG must be a JSON object")
    return parsed


@dataclass(frozen=True)
class Settings:
    backend: str = "supabase"
    app_id: str = "default-app-id"
    initial_auth_token: str = ""
    supabase_url: str = DEFAULT_SUPABASE_URL
    supabase_anon_key: str = DEFAULT_SUPABASE_ANON_KEY
    firebase_config: Dict[str, str] = field(default_factory=dict)
    listings_table: str = "listings"
    bucket_name: str = "listing_images"

    @classmethod
    def from_env(cls) -> "Settings":
        backend = os.getenv("MARKETPLACE_BACKEND", "supabase").strip().lower() or "supabase"
        if backend not in BACKENDS:
            raise ConfigurationError(f"Unknown MARKETPLACE_BACKEND '{backend}', expected one of {', '.join(BACKENDS)}")
        return cls(
            backend=backend,
            app_id=os.getenv("APP_ID", "").strip() or "default-app-id",
            initial_auth_token=os.getenv("INITIAL_AUTH_TOKEN", "").strip(),
            supabase_url=os.getenv("SUPABASE_URL", DEFAULT_SUPABASE_URL).strip(),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", DEFAULT_SUPABASE_ANON_KEY).strip(),
            firebase_config=_parse_firebase_config(os.getenv("FIREBASE_CONFIG", "")),
            listings_table=os.getenv("LISTINGS_TABLE", "listings").strip() or "listings",
            bucket_name=os.getenv("BUCKET_NAME", "listing_images").strip() or "listing_images",
        )

    @property
    def firestore_collection(self) -> str:
        return f"artifacts/{self.app_id}/public/data/{self.listings_table}"

    @property
    def channel_name(self) -> str:
        return f"public_listings_changes_{self.app_id}"

    def credentials_present(self) -> bool:
        if self.backend == "firestore":
            return bool(self.firebase_config.get("apiKey") and self.firebase_config.get("projectId"))
        return bool(self.supabase_url and self.supabase_anon_key)

    def require_credentials(self):
        if not self.credentials_present():
            raise ConfigurationError(f"{self.backend} config is incomplete. Data persistence is disabled.")


def get_settings() -> Settings:
    return Settings.from_env()
