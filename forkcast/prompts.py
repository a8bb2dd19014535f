"""Prompt templates for the food recommendation and food details calls."""

from forkcast.features import FeatureFlags
from forkcast.schemas import Weather

RESPONSE_LANGUAGES = {
    "vi": "Vietnamese",
    "fr": "French",
}

FOOD_DETAILS_SYSTEM_PROMPT = """You are a helpful assistant that provides detailed information about foods and dishes. Respond only in {language} with the requested JSON format."""

FOOD_DETAILS_PROMPT = """
As a culinary expert, please provide detailed information about the dish or food called "{food_name}".

Please include:
1. A brief description of the dish
2. A list of main ingredients
3. A brief overview of how it's prepared

Format your response as a JSON object with these fields:
- 'name': the name of the dish
- 'description': a string with a description
- 'ingredients': an array of strings listing the main ingredients
- 'preparation': a string explaining how it's prepared
"""

RECOMMENDATIONS_SYSTEM_PROMPT = """You are a helpful assistant that provides food recommendations based on weather and user preferences.
Respond only in {language} with the requested JSON format.
IMPORTANT: When a location is provided, your recommended foods should be authentic and appropriate to that location's cuisine and culinary traditions. Do not recommend dishes from other regions unless they are commonly eaten in the specified location."""

EXCLUSIONS_SECTION = """
IMPORTANT: The user has specified the following foods or ingredients to exclude. DO NOT recommend these foods or any dishes containing these ingredients:
{excluded}
"""

DINERS_SECTION = """
The user is planning a meal for {count} people dining together. Please recommend foods that:
1. Are suitable for sharing in a group setting
2. Can be served family-style or as a shared platter
3. Are crowd-pleasers that appeal to diverse tastes
4. Are appropriate portion sizes for {count} people
"""

FULL_MEAL_SECTION = """
The user has requested a FULL SET MEAL recommendation. Please provide a complete meal set that includes:
1. Main dishes (protein-focused dishes)
2. Side dishes (vegetables, starches, etc.)
3. Desserts or beverages to complete the meal
4. Ensure the combination creates a balanced and cohesive dining experience
"""

SINGLE_DISH_SECTION = """
The user has requested SINGLE DISH recommendations. Please provide individual dishes that:
1. Are complete meals on their own
2. Don't require additional side dishes to be satisfying
3. Are well-balanced in terms of nutrition and flavor
"""

SPECIAL_REQUIREMENTS_SECTION = """
IMPORTANT: The user has provided the following special requirements or preferences. Please consider these when making your recommendations:
{requirements}
"""

RECOMMENDATIONS_FORMAT_SECTION = """
Please provide:
1. A mouthwatering list of 6 recommended foods or dishes that would be especially enjoyable{conditions}{authentic}
2. A brief explanation of why these culinary choices are ideal {why}{why_location}

IMPORTANT: Format your response as a JSON object with EXACTLY these two fields:
- 'foods': an array of strings with ONLY the food names (e.g. ["Pasta", "Pizza", "Soup"]). Each item must be a simple food name without descriptions or additional details.
- 'reasoning': a string explaining why these foods are recommended

Example of correct format:
{{"foods": ["Hot Chocolate", "Beef Stew", "Roasted Chicken", "Pumpkin Soup", "Apple Pie", "Mulled Wine"], "reasoning": "These warming foods are perfect for cold weather because..."}}
"""


def response_language(locale: str | None) -> str:
    """Language the model should answer in; English unless recognized."""
    return RESPONSE_LANGUAGES.get(locale or "", "English")


def food_details_system_prompt(locale: str | None) -> str:
    return FOOD_DETAILS_SYSTEM_PROMPT.format(language=response_language(locale))


def food_details_prompt(food_name: str) -> str:
    return FOOD_DETAILS_PROMPT.format(food_name=food_name)


def recommendations_system_prompt(locale: str | None) -> str:
    return RECOMMENDATIONS_SYSTEM_PROMPT.format(language=response_language(locale))


def recommendations_prompt(
    flags: FeatureFlags,
    weather: Weather | None,
    excluded_foods: list[str] | None = None,
    number_of_diners: int | None = None,
    meal_type: str | None = None,
    special_requirements: str | None = None,
) -> str:
    """Assemble the recommendation prompt from the enabled optional sections."""
    use_weather = flags.use_weather_for_recommendations
    use_location = flags.use_location_for_recommendations
    location = weather.location if (use_location and weather and weather.location) else None

    prompt = "\nAs a culinary expert, please recommend 6 delicious foods or dishes"

    if (use_weather or use_location) and weather:
        prompt += " that would be perfect for the following conditions:\n"
        if location:
            prompt += f"\nLocation: {location}"
            prompt += (
                f"\nIMPORTANT: Please recommend dishes that are popular, traditional, or commonly "
                f"eaten in {location}. The recommendations should reflect the local cuisine and "
                f"food culture of this location."
            )
        if use_weather:
            prompt += (
                f"\nTemperature: {weather.temperature}°C"
                f"\nWeather Condition: {weather.conditionText}"
            )
    else:
        prompt += " that are generally popular and delicious."

    if flags.food_exclusions and excluded_foods:
        prompt += EXCLUSIONS_SECTION.format(excluded=", ".join(excluded_foods))

    if flags.number_of_diners and number_of_diners and number_of_diners > 1:
        prompt += DINERS_SECTION.format(count=number_of_diners)

    if flags.meal_type_selection and meal_type:
        prompt += FULL_MEAL_SECTION if meal_type == "full" else SINGLE_DISH_SECTION

    requirements = (special_requirements or "").strip()
    if flags.extended_settings and flags.special_requirements and requirements:
        prompt += SPECIAL_REQUIREMENTS_SECTION.format(requirements=requirements)

    prompt += RECOMMENDATIONS_FORMAT_SECTION.format(
        conditions=" in these conditions" if use_weather else "",
        authentic=f" and authentic to {location}" if location else "",
        why=(
            "for this weather (considering comfort, seasonal ingredients, local traditions, etc.)"
            if use_weather
            else "based on your expertise"
        ),
        why_location=f" and why they represent the cuisine of {location}" if location else "",
    )
    return prompt
