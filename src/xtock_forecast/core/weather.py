"""
Open-Meteo Weather Lookup

Maps tomorrow's forecast for a location onto the three conditions the
forecaster understands (sunny / cloudy / rainy). Free, no API key required.

Usage:
    from xtock_forecast.core.weather import WeatherClient

    with WeatherClient(latitude=40.7128, longitude=-74.0060) as client:
        weather = client.get_tomorrow_condition()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

import httpx

from .models import Weather

logger = logging.getLogger(__name__)

FORECAST_API = "https://api.open-meteo.com/v1/forecast"

DAILY_VARIABLES = [
    "weather_code",
    "precipitation_sum",
    "temperature_2m_max",
]

# WMO Weather Codes: (description, condition)
WMO_CODES = {
    0: ("Clear sky", Weather.SUNNY),
    1: ("Mainly clear", Weather.SUNNY),
    2: ("Partly cloudy", Weather.CLOUDY),
    3: ("Overcast", Weather.CLOUDY),
    45: ("Fog", Weather.CLOUDY),
    48: ("Depositing rime fog", Weather.CLOUDY),
    51: ("Light drizzle", Weather.RAINY),
    53: ("Moderate drizzle", Weather.RAINY),
    55: ("Dense drizzle", Weather.RAINY),
    56: ("Light freezing drizzle", Weather.RAINY),
    57: ("Dense freezing drizzle", Weather.RAINY),
    61: ("Slight rain", Weather.RAINY),
    63: ("Moderate rain", Weather.RAINY),
    65: ("Heavy rain", Weather.RAINY),
    66: ("Light freezing rain", Weather.RAINY),
    67: ("Heavy freezing rain", Weather.RAINY),
    71: ("Slight snowfall", Weather.RAINY),
    73: ("Moderate snowfall", Weather.RAINY),
    75: ("Heavy snowfall", Weather.RAINY),
    77: ("Snow grains", Weather.RAINY),
    80: ("Slight rain showers", Weather.RAINY),
    81: ("Moderate rain showers", Weather.RAINY),
    82: ("Violent rain showers", Weather.RAINY),
    85: ("Slight snow showers", Weather.RAINY),
    86: ("Heavy snow showers", Weather.RAINY),
    95: ("Thunderstorm", Weather.RAINY),
    96: ("Thunderstorm with slight hail", Weather.RAINY),
    99: ("Thunderstorm with heavy hail", Weather.RAINY),
}


def condition_for_code(weather_code: Optional[int]) -> Weather:
    """Forecaster condition for a WMO code; unknown codes count as cloudy."""
    if weather_code is None:
        return Weather.CLOUDY
    code = int(weather_code)
    if code in WMO_CODES:
        return WMO_CODES[code][1]
    return Weather.RAINY if code >= 51 else Weather.CLOUDY


@dataclass
class DailyOutlook:
    """One day of the Open-Meteo daily forecast."""
    date: date
    weather_code: Optional[int]
    precip_mm: float
    temp_max_c: float
    description: str
    condition: Weather

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "weather_code": self.weather_code,
            "precip_mm": self.precip_mm,
            "temp_max_c": self.temp_max_c,
            "description": self.description,
            "condition": self.condition.value,
        }


class WeatherClient:
    """Client for the Open-Meteo daily forecast."""

    def __init__(
        self,
        latitude: float,
        longitude: float,
        timezone: str = "auto",
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.timezone = timezone
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "WeatherClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def get_daily_forecast(self, days: int = 2) -> List[DailyOutlook]:
        """Fetch the daily outlook, starting today."""
        params = {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "daily": ",".join(DAILY_VARIABLES),
            "timezone": self.timezone,
            "forecast_days": days,
        }

        logger.info(f"Fetching {days}-day forecast for ({self.latitude}, {self.longitude})")

        response = self._client.get(FORECAST_API, params=params)
        response.raise_for_status()
        daily = response.json().get("daily", {})
        dates = daily.get("time", [])

        results = []
        for i, date_str in enumerate(dates):
            # missing codes stay None, which maps to cloudy
            code = daily.get("weather_code", [None] * len(dates))[i]
            results.append(DailyOutlook(
                date=date.fromisoformat(date_str),
                weather_code=code,
                precip_mm=daily.get("precipitation_sum", [0] * len(dates))[i] or 0,
                temp_max_c=daily.get("temperature_2m_max", [0] * len(dates))[i] or 0,
                description=WMO_CODES.get(code, ("Unknown", None))[0],
                condition=condition_for_code(code),
            ))
        return results

    def get_tomorrow_condition(self, today: Optional[date] = None) -> Weather:
        """Condition for tomorrow, or cloudy when the API has no row for it."""
        tomorrow = (today or date.today()) + timedelta(days=1)
        outlook = self.get_daily_forecast(days=2)
        for day in outlook:
            if day.date == tomorrow:
                logger.info(f"Tomorrow ({tomorrow}): {day.description} -> {day.condition.value}")
                return day.condition
        if len(outlook) >= 2:
            return outlook[1].condition
        logger.warning(f"No forecast row for {tomorrow}; assuming cloudy")
        return Weather.CLOUDY
