"""
Charla Chat Executors - Weather

Current conditions from the OpenWeather "current weather" endpoint.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from config import runtime_config
from errors import handle_async_tool_errors, ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)


def _format_weather(location: str, data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        main = data["main"]
        description = data["weather"][0]["description"]
    except (KeyError, IndexError, TypeError):
        raise ExternalServiceError(
            "Weather service returned an unexpected payload",
            service="weather",
        )
    return {
        "success": True,
        "location": location,
        "temperature": f"{main['temp']}°C",
        "description": description,
        "humidity": f"{main['humidity']}%",
    }


async def _fetch_weather(location: str, http_client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
    api_key = runtime_config.openweather_key
    if not api_key:
        raise ExternalServiceError(
            "Falta la API KEY del clima.",
            details="Set OPENWEATHER_KEY",
            service="weather",
            status_code=503,
        )

    params = {"q": location, "appid": api_key, "units": "metric", "lang": "es"}
    timeout_s = float(runtime_config.weather_timeout_s or 8.0)

    try:
        if http_client is not None:
            response = await http_client.get(runtime_config.openweather_url, params=params, timeout=timeout_s)
        else:
            async with httpx.AsyncClient(timeout=timeout_s) as client:
                response = await client.get(runtime_config.openweather_url, params=params)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        message = "Ubicación no encontrada" if status_code == 404 else "Weather service error"
        raise ExternalServiceError(
            message,
            details=f"OpenWeather returned status {status_code}",
            service="weather",
            status_code=status_code,
        )
    except httpx.TimeoutException:
        raise ExternalServiceError(
            "Weather service timed out",
            details="The weather request took too long. Try again.",
            service="weather",
        )
    except httpx.RequestError:
        raise ExternalServiceError(
            "Weather service unavailable",
            details="Could not connect to the weather service",
            service="weather",
        )

    try:
        data = response.json()
    except ValueError:
        raise ExternalServiceError("Weather service returned invalid JSON", service="weather")
    return _format_weather(location, data)


@handle_async_tool_errors("getWeather")
async def execute_get_weather(location: str, http_client: Optional[httpx.AsyncClient] = None) -> Dict[str, Any]:
    """Current weather for a location (city name, optionally with country code)."""
    location = str(location).strip()
    if not location:
        raise ValidationError("Location is required", parameter="location")
    return await _fetch_weather(location, http_client=http_client)
