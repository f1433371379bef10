from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .models import Signup, Slot


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SlotRead(WireModel):
    id: int
    date: str
    slot_label: str = Field(alias="slotLabel")
    capacity: int
    taken: int
    available: int

    @classmethod
    def from_domain(cls, slot: Slot) -> "SlotRead":
        return cls(
            id=slot.id,
            date=slot.date,
            slot_label=slot.label,
            capacity=slot.capacity,
            taken=slot.taken,
            available=slot.available,
        )


class SignupLookupRead(WireModel):
    signup_row_id: int = Field(alias="signupRowId")
    slot_row_id: int = Field(alias="slotRowId")
    date: str
    slot_label: str = Field(alias="slotLabel")
    name: str
    contact: str
    notes: str
    category: Optional[str] = None

    @classmethod
    def from_domain(cls, signup: Signup) -> "SignupLookupRead":
        return cls(
            signup_row_id=signup.id,
            slot_row_id=signup.slot_id,
            date=signup.date,
            slot_label=signup.slot_label,
            name=signup.name,
            contact=signup.contact,
            notes=signup.notes,
            category=signup.category or None,
        )


class SlotsByDate(WireModel):
    ok: bool = True
    dates: Dict[str, List[SlotRead]]


class BookingsRead(WireModel):
    ok: bool = True
    bookings: List[SignupLookupRead]


class SlotList(WireModel):
    ok: bool = True
    slots: List[SlotRead]


class MessageRead(WireModel):
    ok: bool = True
    message: str
    details: Optional[List[Any]] = None


# Booking fields are loosely typed on purpose: the domain validator reports every
# problem in one message instead of stopping at the first type error.
class BookingCreate(WireModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    slot_ids: Any = Field(default=None, alias="slotIds")


class BookingCancel(WireModel):
    signup_id: int = Field(validation_alias=AliasChoices("signupId", "signupRowId", "signup_id"))
    slot_id: Optional[int] = Field(default=None, validation_alias=AliasChoices("slotId", "slotRowId", "slot_id"))
    contact: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

    @property
    def contact_value(self) -> Optional[str]:
        return self.contact or self.phone or self.email


class AdminLogin(WireModel):
    password: str


class AdminSessionRead(WireModel):
    ok: bool
    token: Optional[str] = None
    expires_in: Optional[int] = Field(default=None, alias="expiresIn")


class NewSlotSpec(WireModel):
    label: str = ""
    capacity: Optional[int] = None


class NewSlotDay(WireModel):
    date: str
    slots: List[NewSlotSpec] = Field(min_length=1)


class AdminAddSlots(WireModel):
    action: Literal["addSlots"] = "addSlots"
    new_slots_data: List[NewSlotDay] = Field(alias="newSlotsData", min_length=1)


class AdminDeleteSlots(WireModel):
    action: Literal["deleteSlots"] = "deleteSlots"
    row_ids: List[Any] = Field(alias="rowIds", min_length=1)
