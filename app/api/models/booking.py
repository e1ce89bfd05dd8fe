# app/api/models/booking.py
from pydantic import BaseModel, Field
from typing import Optional, Dict, List, Union


class Attendee(BaseModel):
    """Person the booking is made for."""
    name: str = Field(..., min_length=1, description="Attendee full name")
    email: str = Field(..., min_length=3, description="Attendee email address")
    timeZone: str = Field(..., description="IANA time zone of the attendee", examples=["Europe/Lisbon"])
    language: Optional[str] = Field(default=None, description="Preferred language (defaults to en)")


class BookingRequest(BaseModel):
    """Request model for creating a paid booking."""
    start: str = Field(..., description="Slot start time (ISO 8601, UTC)", examples=["2026-11-03T14:00:00Z"])
    eventTypeId: int = Field(..., gt=0, description="Cal.com event type to book")
    attendee: Attendee
    metadata: Optional[Dict[str, Union[str, int, float, bool]]] = Field(
        default=None,
        description="Free-form metadata; 'notes' and 'referralSource' are forwarded"
    )
    guests: Optional[List[str]] = Field(default=None, description="Additional guest emails")
    bookingFieldsResponses: Optional[Dict[str, Union[str, List[str]]]] = Field(
        default=None,
        description="Extra booking form responses"
    )
    paymentTxHash: Optional[str] = Field(
        default=None,
        description="Hash of the token transfer paying for this booking",
        examples=["0x" + "ab" * 32]
    )
    payerAddress: Optional[str] = Field(
        default=None,
        description="Address the payment was sent from (optional, makes matching stricter)"
    )
