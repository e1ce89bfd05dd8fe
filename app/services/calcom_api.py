# app/services/calcom_api.py
import requests
from requests.exceptions import RequestException
import logging
from typing import Any, Dict, Optional

from app.core.config import Settings
from app.paygate.errors import ConfigError, UpstreamActionError

logger = logging.getLogger(__name__)

DEFAULT_NOTES = "No additional notes provided"


def build_booking_payload(booking: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize an inbound booking request into a Cal.com v2 booking payload.

    The payment proof and claimed payer address are never forwarded.

    Args:
        booking: Booking request as a plain dict (eventTypeId, start,
            attendee, metadata, guests, bookingFieldsResponses)

    Returns:
        Payload for POST /bookings
    """
    attendee = booking["attendee"]
    metadata = booking.get("metadata") or {}

    notes = metadata.get("notes") or DEFAULT_NOTES

    fields_responses: Dict[str, Any] = dict(booking.get("bookingFieldsResponses") or {})
    fields_responses.update({
        "name": attendee["name"],
        "email": attendee["email"],
        "notes": str(notes),
    })
    referral = metadata.get("referralSource")
    if referral is not None:
        fields_responses["discovery-method"] = referral

    payload: Dict[str, Any] = {
        "start": booking["start"],
        "attendee": {
            "name": attendee["name"],
            "email": attendee["email"],
            "timeZone": attendee["timeZone"],
            "language": attendee.get("language") or "en",
        },
        "eventTypeId": int(booking["eventTypeId"]),
        "bookingFieldsResponses": fields_responses,
    }

    guests = booking.get("guests")
    if guests:
        payload["guests"] = list(guests)

    return payload


class CalcomClient:
    """Minimal client for the Cal.com v2 bookings API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        api_version: str = "2024-08-13",
        timeout: float = 15.0
    ):
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.api_version = api_version
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "CalcomClient":
        """
        Build a client from application settings.

        Raises:
            ConfigError: If the Cal.com URL or API key is not configured
        """
        if not settings.CALCOM_API_KEY:
            raise ConfigError("Cal.com API key not configured")
        if not settings.CALCOM_API_URL:
            raise ConfigError("Cal.com API URL not configured")
        return cls(
            api_url=settings.CALCOM_API_URL,
            api_key=settings.CALCOM_API_KEY,
            api_version=settings.CALCOM_API_VERSION,
            timeout=settings.CALCOM_TIMEOUT_SECONDS,
        )

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "cal-api-version": self.api_version,
        }

    def create_booking(self, payload: Dict[str, Any]) -> Any:
        """
        Create a booking with Cal.com.

        Args:
            payload: Normalized booking payload (see build_booking_payload)

        Returns:
            The JSON body Cal.com returned, unchanged

        Raises:
            UpstreamActionError: If Cal.com is unreachable, rejects the booking,
                or returns something that is not JSON
        """
        api_url = f"{self.api_url}/bookings"
        try:
            response = requests.post(
                api_url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout
            )
        except RequestException as e:
            logger.error(f"Error reaching Cal.com ({api_url}): {e}")
            raise UpstreamActionError(f"Could not reach Cal.com: {e}")

        if not response.ok:
            error_data = response.text
            logger.error(
                f"Cal.com booking error: status={response.status_code} "
                f"reason={response.reason} body={error_data} "
                f"eventTypeId={payload.get('eventTypeId')} start={payload.get('start')}"
            )
            raise UpstreamActionError(
                f"Failed to create booking with Cal.com: {error_data}",
                status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Cal.com returned invalid JSON: {e}")
            raise UpstreamActionError(
                "Invalid response from Cal.com",
                status_code=response.status_code
            )
