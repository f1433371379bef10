from functools import lru_cache
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field


load_dotenv()


class Settings(BaseModel):
    store_backend: str = Field(default="sheets")
    sheet_id: str = Field(default="")
    slots_gid: int = Field(default=0)
    signups_gid: int = Field(default=0)
    google_service_account: str = Field(default="")
    google_service_account_email: str = Field(default="")
    google_private_key: str = Field(default="")
    timezone: str = Field(default="America/New_York")

    admin_password: str = Field(default="")
    auth_secret: str = Field(default="change-me")
    auth_algorithm: str = Field(default="HS256")
    admin_token_ttl_seconds: int = Field(default=7200)

    max_slots_per_booking: int = Field(default=10)
    min_name_length: int = Field(default=2)
    max_name_length: int = Field(default=100)
    max_email_length: int = Field(default=254)
    max_phone_length: int = Field(default=20)
    max_notes_length: int = Field(default=500)
    max_category_length: int = Field(default=50)
    require_contact_for_cancel: bool = Field(default=True)

    min_slot_capacity: int = Field(default=1)
    max_slot_capacity: int = Field(default=99)
    default_slot_capacity: int = Field(default=6)

    rate_limit_window_seconds: float = Field(default=60.0)
    rate_limit_max_requests: int = Field(default=50)
    cache_ttl_seconds: float = Field(default=30.0)
    max_concurrent_bookings: int = Field(default=3)


def _env(name: str, field: str) -> str:
    return os.getenv(name, str(Settings.model_fields[field].default))


@lru_cache
def get_settings() -> Settings:
    return Settings(
        store_backend=_env("STORE_BACKEND", "store_backend"),
        sheet_id=_env("SHEET_ID", "sheet_id"),
        slots_gid=int(_env("SLOTS_GID", "slots_gid")),
        signups_gid=int(_env("SIGNUPS_GID", "signups_gid")),
        google_service_account=_env("GOOGLE_SERVICE_ACCOUNT", "google_service_account"),
        google_service_account_email=_env("GOOGLE_SERVICE_ACCOUNT_EMAIL", "google_service_account_email"),
        google_private_key=_env("GOOGLE_PRIVATE_KEY", "google_private_key").replace("\\n", "\n"),
        timezone=_env("TIMEZONE", "timezone"),
        admin_password=_env("ADMIN_PASSWORD", "admin_password"),
        auth_secret=_env("AUTH_SECRET", "auth_secret"),
        auth_algorithm=_env("AUTH_ALGORITHM", "auth_algorithm"),
        admin_token_ttl_seconds=int(_env("ADMIN_TOKEN_TTL_SECONDS", "admin_token_ttl_seconds")),
        max_slots_per_booking=int(_env("MAX_SLOTS_PER_BOOKING", "max_slots_per_booking")),
        min_name_length=int(_env("MIN_NAME_LENGTH", "min_name_length")),
        max_name_length=int(_env("MAX_NAME_LENGTH", "max_name_length")),
        max_email_length=int(_env("MAX_EMAIL_LENGTH", "max_email_length")),
        max_phone_length=int(_env("MAX_PHONE_LENGTH", "max_phone_length")),
        max_notes_length=int(_env("MAX_NOTES_LENGTH", "max_notes_length")),
        max_category_length=int(_env("MAX_CATEGORY_LENGTH", "max_category_length")),
        require_contact_for_cancel=bool(int(os.getenv("REQUIRE_CONTACT_FOR_CANCEL", "1"))),
        min_slot_capacity=int(_env("MIN_SLOT_CAPACITY", "min_slot_capacity")),
        max_slot_capacity=int(_env("MAX_SLOT_CAPACITY", "max_slot_capacity")),
        default_slot_capacity=int(_env("DEFAULT_SLOT_CAPACITY", "default_slot_capacity")),
        rate_limit_window_seconds=float(_env("RATE_LIMIT_WINDOW_SECONDS", "rate_limit_window_seconds")),
        rate_limit_max_requests=int(_env("RATE_LIMIT_MAX_REQUESTS", "rate_limit_max_requests")),
        cache_ttl_seconds=float(_env("CACHE_TTL_SECONDS", "cache_ttl_seconds")),
        max_concurrent_bookings=int(_env("MAX_CONCURRENT_BOOKINGS", "max_concurrent_bookings")),
    )
