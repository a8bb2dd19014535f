"""Unit tests for the pure helpers: keys, circuit breaker, metrics, locales, prompts."""

import pytest


class TestCacheKeys:
    """Tests for cache key derivation."""

    def test_key_is_deterministic(self):
        """Test that the same namespace and parts give the same key."""
        from forkcast.services.cache_keys import Namespace, generate_cache_key

        first = generate_cache_key(Namespace.WEATHER, ["21.03", "105.85", "vi"])
        second = generate_cache_key(Namespace.WEATHER, ["21.03", "105.85", "vi"])

        assert first == second

    def test_key_is_namespace_plus_md5(self):
        """Test that keys are the prefix followed by a 32-char hex digest."""
        import hashlib

        from forkcast.services.cache_keys import generate_cache_key

        key = generate_cache_key("w:", ["10.00", "20.00", "en"])

        assert key == "w:" + hashlib.md5(b"10.00:20.00:en").hexdigest()
        assert len(key) == len("w:") + 32

    def test_none_parts_are_dropped(self):
        """Test that None entries do not change the key."""
        from forkcast.services.cache_keys import generate_cache_key

        assert generate_cache_key("w:", ["10.00", None, "vi"]) == generate_cache_key(
            "w:", ["10.00", "vi"]
        )

    def test_all_none_gives_default_key(self):
        """Test that a key with no usable parts degenerates to the default."""
        from forkcast.services.cache_keys import generate_cache_key

        assert generate_cache_key("geo:", [None, None]) == "geo:default"
        assert generate_cache_key("geo:", []) == "geo:default"

    def test_part_order_matters(self):
        """Test that parts are hashed in the given order."""
        from forkcast.services.cache_keys import generate_cache_key

        assert generate_cache_key("fr:", ["a", "b"]) != generate_cache_key("fr:", ["b", "a"])

    def test_booleans_and_numbers_are_stringified(self):
        """Test that non-string parts are stringified before hashing."""
        from forkcast.services.cache_keys import generate_cache_key

        assert generate_cache_key("fd:", [True, 3]) == generate_cache_key("fd:", ["true", "3"])

    def test_namespaces_do_not_overlap(self):
        """Test that identical parts land in different key spaces per namespace."""
        from forkcast.services.cache_keys import Namespace, generate_cache_key

        keys = {generate_cache_key(namespace, ["same"]) for namespace in Namespace}

        assert len(keys) == len(Namespace)

    def test_label_for_key(self):
        """Test that metrics labels are derived from the key prefix."""
        from forkcast.services.cache_keys import Namespace

        assert Namespace.label_for_key("w:abc") == "weather"
        assert Namespace.label_for_key("fr:abc") == "food-recommendation"
        assert Namespace.label_for_key("fd:abc") == "food-details"
        assert Namespace.label_for_key("geo:default") == "geolocation"
        assert Namespace.label_for_key("zzz") == "other"


class TestCircuitBreaker:
    """Tests for circuit breaker functionality."""

    def test_circuit_starts_closed(self):
        """Test circuit starts in closed state."""
        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test")
        assert cb.state == CircuitState.CLOSED
        assert cb.is_available() is True

    def test_circuit_opens_after_failures(self):
        """Test circuit opens after threshold failures."""
        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test", failure_threshold=3)

        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED

        cb.record_failure()
        assert cb.state == CircuitState.OPEN
        assert cb.is_available() is False

    def test_circuit_resets_on_success(self):
        """Test circuit resets failure count on success."""
        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test", failure_threshold=3)

        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        cb.record_failure()

        assert cb.state == CircuitState.CLOSED

    def test_half_open_allows_single_trial_call(self):
        """Test circuit lets one trial call through after the recovery timeout."""
        import time

        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        time.sleep(0.06)

        assert cb.state == CircuitState.HALF_OPEN
        assert cb.is_available() is True
        assert cb.is_available() is False

    def test_half_open_failure_reopens(self):
        """Test a failed trial call sends the circuit back to OPEN."""
        import time

        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        time.sleep(0.06)
        cb.is_available()
        cb.record_failure()

        assert cb._state == CircuitState.OPEN

    def test_unreported_trial_call_expires(self):
        """Test a trial call that never reports back stops blocking after the recovery timeout."""
        import time

        from forkcast.services.circuit_breaker import CircuitBreaker

        cb = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        time.sleep(0.06)

        assert cb.is_available() is True
        assert cb.is_available() is False

        time.sleep(0.06)
        assert cb.is_available() is True

    def test_abandon_trial_frees_slot(self):
        """Test a cancelled trial call gives its slot to the next caller."""
        import time

        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=0.05)
        cb.record_failure()
        time.sleep(0.06)
        cb.is_available()

        cb.abandon_trial()

        assert cb.state == CircuitState.HALF_OPEN
        assert cb.is_available() is True

    def test_abandon_trial_ignored_when_closed(self):
        """Test abandoning outside HALF_OPEN leaves the circuit alone."""
        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test")
        cb.abandon_trial()

        assert cb.state == CircuitState.CLOSED
        assert cb.get_status()["failure_count"] == 0

    def test_reset_closes_circuit(self):
        from forkcast.services.circuit_breaker import CircuitBreaker, CircuitState

        cb = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=60)
        cb.record_failure()
        cb.reset()

        assert cb.state == CircuitState.CLOSED
        assert cb.get_status()["failure_count"] == 0

    def test_get_status(self):
        """Test get_status returns correct info."""
        from forkcast.services.circuit_breaker import CircuitBreaker

        cb = CircuitBreaker(name="redis", failure_threshold=5, recovery_timeout=30.0)
        cb.record_failure()

        status = cb.get_status()
        assert status["name"] == "redis"
        assert status["state"] == "closed"
        assert status["failure_count"] == 1
        assert status["failure_threshold"] == 5


class TestMetrics:
    """Tests for metrics service functionality."""

    def test_metrics_initialization(self):
        """Test metrics starts empty."""
        from forkcast.services.metrics import Metrics

        stats = Metrics().get_stats()

        assert stats == {"cache": {}, "upstream_calls": {}, "upstream_errors": {}}

    def test_hit_rate_per_namespace(self):
        """Test hit rate is computed per namespace."""
        from forkcast.services.metrics import Metrics

        m = Metrics()
        m.record_cache_hit("weather")
        m.record_cache_hit("weather")
        m.record_cache_miss("weather")
        m.record_cache_miss("food-details")

        stats = m.get_stats()
        assert stats["cache"]["weather"]["hit_rate_percent"] == 66.67
        assert stats["cache"]["food-details"]["hit_rate_percent"] == 0.0

    def test_upstream_counters(self):
        """Test upstream call and error counters."""
        from forkcast.services.metrics import Metrics

        m = Metrics()
        m.record_upstream_call("open-meteo")
        m.record_upstream_call("open-meteo")
        m.record_upstream_error("open-meteo")

        stats = m.get_stats()
        assert stats["upstream_calls"] == {"open-meteo": 2}
        assert stats["upstream_errors"] == {"open-meteo": 1}

    def test_reset(self):
        """Test resetting metrics."""
        from forkcast.services.metrics import Metrics

        m = Metrics()
        m.record_cache_hit("weather")
        m.record_cache_error("weather")
        m.record_upstream_call("ipapi")
        m.reset()

        assert m.get_stats()["cache"] == {}
        assert m.get_stats()["upstream_calls"] == {}


class TestFeatureFlags:
    """Tests for environment-driven feature flags."""

    def test_all_enabled_by_default(self):
        from forkcast.features import FeatureFlags

        flags = FeatureFlags()

        assert all(flags.model_dump().values())

    def test_env_override(self, set_features):
        """Test FEATURE_* variables switch flags off."""
        from forkcast.features import is_feature_enabled

        set_features(ip_geolocation=False)

        assert is_feature_enabled("ip_geolocation") is False
        assert is_feature_enabled("food_details") is True

    def test_require_feature(self):
        from forkcast.errors import FeatureDisabledError
        from forkcast.features import FeatureFlags, require_feature

        flags = FeatureFlags(food_details=False)

        require_feature(flags, "food_recommendations", "Food recommendations")
        with pytest.raises(FeatureDisabledError) as exc_info:
            require_feature(flags, "food_details", "Food details")
        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Food details feature is disabled"


class TestLocaleCatalogs:
    """Tests for weather condition localization."""

    def test_catalogs_are_preloaded(self):
        """Test that the bundled locales are loaded at import."""
        from forkcast.i18n import CATALOGS

        assert {"en", "vi", "fr"} <= set(CATALOGS)

    def test_condition_text_for_locale(self):
        """Test lookup in the requested locale."""
        from forkcast.i18n import weather_condition_text

        assert weather_condition_text("3", "en") == "Overcast"
        assert weather_condition_text("3", "fr") == "Couvert"
        assert weather_condition_text("3", "vi") == "Nhiều mây"

    def test_unknown_locale_falls_back_to_english(self):
        """Test that unsupported locales use the English catalog."""
        from forkcast.i18n import weather_condition_text

        assert weather_condition_text("0", "de") == "Clear sky"
        assert weather_condition_text("0", None) == "Clear sky"

    def test_unknown_condition_uses_unknown_entry(self):
        """Test that an unmapped condition reads as unknown."""
        from forkcast.i18n import weather_condition_text

        assert weather_condition_text("unknown", "en") == "Unknown"
        assert weather_condition_text("1234", "en") == "Unknown"


class TestPrompts:
    """Tests for prompt assembly."""

    @pytest.fixture
    def weather(self):
        from forkcast.schemas import Weather

        return Weather(
            temperature=5.0,
            condition="61",
            conditionText="Slight rain",
            location="Lyon, Auvergne-Rhône-Alpes",
        )

    def test_response_language(self):
        """Test locale to response language mapping."""
        from forkcast.prompts import response_language

        assert response_language("vi") == "Vietnamese"
        assert response_language("fr") == "French"
        assert response_language("ja") == "English"
        assert response_language(None) == "English"

    def test_prompt_includes_weather_and_location(self, weather):
        """Test weather and location context are included when enabled."""
        from forkcast.features import FeatureFlags
        from forkcast.prompts import recommendations_prompt

        prompt = recommendations_prompt(FeatureFlags(), weather)

        assert "Location: Lyon, Auvergne-Rhône-Alpes" in prompt
        assert "Temperature: 5.0°C" in prompt
        assert "Weather Condition: Slight rain" in prompt
        assert "authentic to Lyon" in prompt

    def test_prompt_without_weather_context(self, weather):
        """Test the generic prompt when weather and location are disabled."""
        from forkcast.features import FeatureFlags
        from forkcast.prompts import recommendations_prompt

        flags = FeatureFlags(
            use_weather_for_recommendations=False,
            use_location_for_recommendations=False,
        )
        prompt = recommendations_prompt(flags, weather)

        assert "generally popular and delicious" in prompt
        assert "Temperature" not in prompt
        assert "Location:" not in prompt

    def test_optional_sections(self, weather):
        """Test exclusions, diners, meal type and requirements sections."""
        from forkcast.features import FeatureFlags
        from forkcast.prompts import recommendations_prompt

        prompt = recommendations_prompt(
            FeatureFlags(),
            weather,
            excluded_foods=["peanuts", "shrimp"],
            number_of_diners=4,
            meal_type="full",
            special_requirements="  vegetarian  ",
        )

        assert "peanuts, shrimp" in prompt
        assert "meal for 4 people" in prompt
        assert "FULL SET MEAL" in prompt
        assert "vegetarian" in prompt

    def test_disabled_sections_are_left_out(self, weather):
        """Test that sections for disabled features are omitted."""
        from forkcast.features import FeatureFlags
        from forkcast.prompts import recommendations_prompt

        flags = FeatureFlags(
            food_exclusions=False,
            number_of_diners=False,
            meal_type_selection=False,
            special_requirements=False,
        )
        prompt = recommendations_prompt(
            flags,
            weather,
            excluded_foods=["peanuts"],
            number_of_diners=4,
            meal_type="single",
            special_requirements="vegan",
        )

        assert "peanuts" not in prompt
        assert "people dining together" not in prompt
        assert "SINGLE DISH" not in prompt
        assert "vegan" not in prompt

    def test_single_diner_has_no_group_section(self, weather):
        """Test that one diner does not trigger the group section."""
        from forkcast.features import FeatureFlags
        from forkcast.prompts import recommendations_prompt

        prompt = recommendations_prompt(FeatureFlags(), weather, number_of_diners=1)

        assert "people dining together" not in prompt

    def test_food_details_prompts(self):
        """Test the food details prompts carry the name and language."""
        from forkcast.prompts import food_details_prompt, food_details_system_prompt

        assert '"Bún chả"' in food_details_prompt("Bún chả")
        assert "Respond only in Vietnamese" in food_details_system_prompt("vi")
