"""Voice ordering: map a spoken request onto menu item ids.

The transcript and the unit's current menu go to an OpenAI-compatible
chat-completions endpoint which answers with ``{"items": [{"id", "quantity"}]}``.
Whatever goes wrong on the way (no key, network error, malformed reply) the
resolver answers with an empty list so ordering always falls back to manual
selection.
"""
import json
import logging
from typing import Protocol

from django.conf import settings
from openai import AsyncOpenAI, OpenAI, OpenAIError
from rest_framework import serializers

from venuepos.exceptions import ExternalServiceFailure
from .pricing import default_voice_variant

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an ordering assistant for a hospitality venue. "
    "Map loosely matched names (in English or the local language) to the ids "
    "of the menu items provided. If a quantity is not specified, assume 1. "
    'Return ONLY a JSON object of the form {"items": [{"id": "<id>", "quantity": <int>}]}.'
)


class LenientQuantityField(serializers.Field):
    """Anything that is not a positive whole number counts as one."""

    def to_internal_value(self, data):
        try:
            quantity = int(data)
        except (TypeError, ValueError):
            return 1
        return quantity if quantity >= 1 else 1

    def to_representation(self, value):
        return value


class ResolvedItemSerializer(serializers.Serializer):
    id = serializers.CharField()
    quantity = LenientQuantityField(required=False, default=1)


def candidates_for(menu):
    return [
        {'id': str(item.pk), 'displayName': item.name, 'localName': item.local_name}
        for item in menu
    ]


class VoiceOrderResolver:
    def __init__(self, client=None, async_client=None, model=None):
        self.client = client
        self.async_client = async_client
        self.model = model or settings.VOICE_ORDER["MODEL"]

    def build_messages(self, transcript, candidates):
        request = {'transcript': transcript, 'menu': candidates}
        return [
            {'role': 'system', 'content': SYSTEM_PROMPT},
            {'role': 'user', 'content': json.dumps(request, ensure_ascii=False)},
        ]

    def _request(self, transcript, candidates):
        return {
            'model': self.model,
            'temperature': 0,
            'response_format': {'type': 'json_object'},
            'messages': self.build_messages(transcript, candidates),
        }

    @staticmethod
    def _content(response):
        try:
            return response.choices[0].message.content or ''
        except (AttributeError, IndexError) as e:
            raise ExternalServiceFailure(f"Unexpected completion shape: {e}")

    def parse(self, content, candidate_ids):
        """Validate the model's reply, keeping only ids from the candidate menu."""
        try:
            payload = json.loads(content)
        except (TypeError, ValueError) as e:
            raise ExternalServiceFailure(f"Voice reply is not JSON: {e}")
        if not isinstance(payload, dict) or not isinstance(payload.get('items', []), list):
            raise ExternalServiceFailure("Voice reply has no items list")

        resolved = []
        for entry in payload.get('items', []):
            serializer = ResolvedItemSerializer(data=entry)
            if not serializer.is_valid():
                logger.debug("Dropping voice entry %r: %s", entry, serializer.errors)
                continue
            item_id = serializer.validated_data['id']
            if item_id not in candidate_ids:
                logger.debug("Dropping unknown menu id %s from voice reply", item_id)
                continue
            resolved.append({'id': item_id, 'quantity': serializer.validated_data['quantity']})
        return resolved

    def resolve(self, transcript, candidate_menu):
        transcript = (transcript or '').strip()
        candidates = candidates_for(candidate_menu)
        if not transcript or not candidates:
            return []
        if self.client is None:
            logger.error("Voice ordering is not configured: set VOICE_ORDER_API_KEY")
            return []

        try:
            response = self.client.chat.completions.create(**self._request(transcript, candidates))
            return self.parse(self._content(response), {c['id'] for c in candidates})
        except (OpenAIError, ExternalServiceFailure) as e:
            logger.error("Voice order resolution failed: %s", e)
            return []
        except Exception:
            logger.exception("Voice order resolution failed unexpectedly")
            return []

    async def aresolve(self, transcript, candidate_menu):
        transcript = (transcript or '').strip()
        candidates = candidates_for(candidate_menu)
        if not transcript or not candidates:
            return []
        if self.async_client is None:
            logger.error("Voice ordering is not configured: set VOICE_ORDER_API_KEY")
            return []

        try:
            response = await self.async_client.chat.completions.create(**self._request(transcript, candidates))
            return self.parse(self._content(response), {c['id'] for c in candidates})
        except (OpenAIError, ExternalServiceFailure) as e:
            logger.error("Voice order resolution failed: %s", e)
            return []
        except Exception:
            logger.exception("Voice order resolution failed unexpectedly")
            return []

    async def aclose(self):
        if self.async_client is not None and hasattr(self.async_client, 'close'):
            await self.async_client.close()


def get_resolver(asynchronous=False):
    """Resolver wired to the configured endpoint; unconfigured when no key is set.

    Only the client the caller needs is built. Async callers close it with
    :meth:`VoiceOrderResolver.aclose` once the request is done.
    """
    config = settings.VOICE_ORDER
    if not config["API_KEY"]:
        return VoiceOrderResolver()

    options = {
        'api_key': config["API_KEY"],
        'base_url': config["BASE_URL"],
        'timeout': config["TIMEOUT"],
        'max_retries': 0,
    }
    if asynchronous:
        return VoiceOrderResolver(async_client=AsyncOpenAI(**options), model=config["MODEL"])
    return VoiceOrderResolver(client=OpenAI(**options), model=config["MODEL"])


def apply_resolution(cart, resolved, current_menu):
    """Add resolved items to ``cart``.

    Ids are checked against ``current_menu`` again, so items removed or made
    unavailable since the request was sent are skipped.
    """
    menu = {
        str(item.pk): item for item in current_menu
        if item.is_available and item.business_unit == cart.business_unit
    }
    added = []
    for entry in resolved:
        item = menu.get(str(entry['id']))
        if item is None:
            continue
        added.append(cart.add_line(item, default_voice_variant(item), entry.get('quantity', 1)))
    return added


class SpeechCapability(Protocol):
    def transcribe(self) -> str:
        ...

    def speak(self, text: str) -> None:
        ...


class ManualEntry:
    """Speech stand-in for devices without a microphone: typed text in, nothing out."""

    def __init__(self, text=''):
        self.text = text

    def transcribe(self):
        return self.text

    def speak(self, text):
        logger.debug("Speech output unavailable, dropping %r", text)
