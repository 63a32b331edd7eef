"""
AI trip generation.

The generator only returns the model's raw text; extraction and
normalization happen in the trip core so that any model output, however
noisy, goes through the same path.
"""

import json
import logging
from typing import Any, Dict, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError

from reise.core.errors import UpstreamFailure
from reise.core.settings import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Du er en erfaren norsk reiseplanlegger.
Svar KUN med gyldig JSON på formen {"trip": {...}} der trip har feltene:
  title, description,
  stops: [{name, day, description, location, lat, lng, countryCode, iata,
           hotels: [{name, location, description, price_per_night, currency, url}],
           experiences: [{name, location, description, day, price_per_person, currency, url}]}],
  packing_list: [{category, items}] med kategoriene "Klær", "Toalettsaker", "Elektronikk", "Annet".
Bruk kun ekte nettadresser, ellers utelat url. Ikke bruk vage punkter som "diverse" eller "osv".
"""


def episode_description(episode_name: str) -> str:
    return f"Lag en reise basert på Grenseløs-episoden: {episode_name}"


class TripGenerator(Protocol):
    async def generate(
        self,
        source_url: Optional[str],
        user_description: str,
        user_profile: Optional[Dict[str, Any]] = None,
    ) -> str: ...


def build_user_prompt(source_url: Optional[str], user_description: str,
                      user_profile: Optional[Dict[str, Any]] = None) -> str:
    lines = [f"Ønske: {user_description.strip()}"]
    if source_url:
        lines.append(f"Kilde: {source_url}")
    if user_profile:
        lines.append(f"Brukerprofil: {json.dumps(user_profile, ensure_ascii=False, default=str)}")
    return "\n".join(lines)


class OpenAITripGenerator:
    """``TripGenerator`` backed by the OpenAI chat completions API"""

    def __init__(self, client: Optional[AsyncOpenAI] = None, settings: Optional[Settings] = None):
        self.settings = settings or Settings()
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.OPENAI_API_KEY:
                raise UpstreamFailure("OPENAI_API_KEY is not configured", provider="openai")
            self._client = AsyncOpenAI(
                api_key=self.settings.OPENAI_API_KEY,
                timeout=self.settings.OPENAI_TIMEOUT,
            )
        return self._client

    async def generate(
        self,
        source_url: Optional[str],
        user_description: str,
        user_profile: Optional[Dict[str, Any]] = None,
    ) -> str:
        model = self.settings.OPENAI_MODEL
        logger.info(f"Generating trip with model {model} (source_url={source_url})")
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(source_url, user_description, user_profile)},
                ],
                temperature=self.settings.OPENAI_TEMPERATURE,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.error(f"Trip generation failed: {e}")
            raise UpstreamFailure(f"Trip generation failed: {type(e).__name__}", provider="openai") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise UpstreamFailure("Trip generation returned an empty response", provider="openai")
        return content
