"""LLM-backed food recommendations and dish details."""

import logging

from pydantic import ValidationError

from forkcast import prompts
from forkcast.errors import RequestValidationFailed
from forkcast.features import FeatureFlags, get_feature_flags, require_feature
from forkcast.schemas import FoodInfo, FoodRecommendation, Weather
from forkcast.services.cache import CacheService, cache_service
from forkcast.services.cache_keys import Namespace, generate_cache_key
from forkcast.services.llm import (
    DEFAULT_MODEL_CONFIG,
    LLMResponseFormatError,
    LLMService,
    llm_service,
)

logger = logging.getLogger(__name__)

FOOD_RECOMMENDATIONS_TTL = 21600
FOOD_DETAILS_TTL = 86400
SPECIAL_REQUIREMENTS_KEY_LENGTH = 50


def recommendation_cache_parts(
    flags: FeatureFlags,
    weather: Weather | None,
    excluded_foods: list[str] | None,
    locale: str | None,
    number_of_diners: int | None,
    meal_type: str | None,
    special_requirements: str | None,
) -> list[str]:
    """Inputs that change the recommendation, in a stable order."""
    parts: list[str] = []

    if flags.use_location_for_recommendations and weather and weather.location:
        parts.append(weather.location)

    if flags.use_weather_for_recommendations and weather:
        parts.extend([f"{weather.temperature:.1f}", weather.condition])

    if flags.food_exclusions and excluded_foods:
        parts.extend(sorted(excluded_foods))

    if locale:
        parts.append(locale)

    if flags.number_of_diners and number_of_diners and number_of_diners > 1:
        parts.append(f"diners:{number_of_diners}")

    if flags.meal_type_selection and meal_type:
        parts.append(f"mealType:{meal_type}")

    requirements = (special_requirements or "").strip()
    if flags.extended_settings and flags.special_requirements and requirements:
        parts.append(f"req:{requirements[:SPECIAL_REQUIREMENTS_KEY_LENGTH]}")

    return parts


class FoodService:
    """Recommendations and dish details from the LLM, cached by request shape."""

    def __init__(
        self,
        llm: LLMService | None = None,
        cache: CacheService | None = None,
        model_type: str = DEFAULT_MODEL_CONFIG,
    ):
        self.llm = llm or llm_service
        self.cache = cache or cache_service
        self.model_type = model_type

    async def get_food_details(self, food_name: str, locale: str | None = None) -> FoodInfo:
        """Description, ingredients and preparation for a dish."""
        flags = get_feature_flags()
        require_feature(flags, "food_details", "Food details")

        async def fetch() -> FoodInfo:
            content = await self.llm.create_chat_completion(
                prompts.food_details_system_prompt(locale),
                prompts.food_details_prompt(food_name),
                model_type=self.model_type,
            )
            return self._parse(content, FoodInfo)

        if not flags.enable_caching:
            return await fetch()

        key = generate_cache_key(Namespace.FOOD_DETAILS, [food_name.lower().strip(), locale])
        return await self.cache.get_or_fetch(key, fetch, FOOD_DETAILS_TTL, model=FoodInfo)

    async def get_food_recommendations(
        self,
        weather: Weather | None,
        excluded_foods: list[str] | None = None,
        locale: str | None = None,
        number_of_diners: int | None = None,
        meal_type: str | None = None,
        special_requirements: str | None = None,
    ) -> FoodRecommendation:
        """
        Six dishes suited to the weather, place and the user's constraints.

        Args:
            weather: Current weather; required when weather-based recommendations are on
            excluded_foods: Foods or ingredients to avoid
            locale: Response language hint ('vi', 'fr', otherwise English)
            number_of_diners: Group size
            meal_type: 'single' or 'full'
            special_requirements: Free-text preferences

        Returns:
            FoodRecommendation with exactly six names
        """
        flags = get_feature_flags()
        require_feature(flags, "food_recommendations", "Food recommendations")

        if flags.use_weather_for_recommendations and weather is None:
            raise RequestValidationFailed("Weather data is required for food recommendations")

        async def fetch() -> FoodRecommendation:
            content = await self.llm.create_chat_completion(
                prompts.recommendations_system_prompt(locale),
                prompts.recommendations_prompt(
                    flags,
                    weather,
                    excluded_foods,
                    number_of_diners,
                    meal_type,
                    special_requirements,
                ),
                model_type=self.model_type,
            )
            return self._parse(content, FoodRecommendation)

        if not flags.enable_caching:
            return await fetch()

        key = generate_cache_key(
            Namespace.FOOD_RECOMMENDATIONS,
            recommendation_cache_parts(
                flags,
                weather,
                excluded_foods,
                locale,
                number_of_diners,
                meal_type,
                special_requirements,
            ),
        )
        return await self.cache.get_or_fetch(
            key, fetch, FOOD_RECOMMENDATIONS_TTL, model=FoodRecommendation
        )

    @staticmethod
    def _parse(content: str, model):
        """Validate the model's JSON reply against the expected shape."""
        try:
            return model.model_validate_json(content)
        except ValidationError as e:
            logger.error(f"LLM returned an invalid {model.__name__} payload: {e}")
            raise LLMResponseFormatError(f"Failed to parse {model.__name__} response")


food_service = FoodService()
