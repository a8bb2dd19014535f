"""Feature flags controlling which capabilities the service exposes."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from forkcast.errors import FeatureDisabledError


class FeatureFlags(BaseSettings):
    """Named boolean switches, read from FEATURE_* environment variables."""

    # Location
    ip_geolocation: bool = True

    # Food
    food_recommendations: bool = True
    food_details: bool = True
    food_exclusions: bool = True
    extended_settings: bool = True
    meal_type_selection: bool = True
    special_requirements: bool = True
    number_of_diners: bool = True

    # Recommendation context
    use_weather_for_recommendations: bool = True
    use_location_for_recommendations: bool = True

    # Security
    recaptcha: bool = True

    # System
    enable_caching: bool = True

    model_config = SettingsConfigDict(
        env_prefix="FEATURE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def get_feature_flags() -> FeatureFlags:
    """Take a fresh snapshot of the feature flags."""
    return FeatureFlags()


def is_feature_enabled(name: str) -> bool:
    return getattr(get_feature_flags(), name)


def require_feature(flags: FeatureFlags, name: str, label: str) -> None:
    """Raise FeatureDisabledError when the named flag is off."""
    if not getattr(flags, name):
        raise FeatureDisabledError(label)
