"""
Typed records for the booking API payloads.

The API speaks camelCase JSON; the models expose snake_case attributes and
accept either spelling.  Fields the API may omit or send as null are
declared Optional so every consumer has to handle the missing case.
Agreement dates are parsed into ``datetime.date`` on the way in (see
``dates.parse_date``); an unreadable date becomes None instead of failing
the whole payload.
"""

from datetime import date
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import AliasChoices, BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dates import parse_date

# Unreadable dates become None instead of rejecting the payload
LenientDate = Annotated[Optional[date], BeforeValidator(parse_date)]


def _none_as_empty(value):
    return '' if value is None else value


def _none_as_list(value):
    return [] if value is None else value


# Free-text fields the API may send as null
Text = Annotated[str, BeforeValidator(_none_as_empty)]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='ignore',
    )


# ---------------------------------------------------------------------------
# Fleet

class Bus(ApiModel):
    id: str
    vehicle_number: Text = ''
    name: Optional[str] = None
    is_active: bool = True
    bus_type: Optional[str] = None
    capacity: Optional[int] = None
    base_rate: Optional[Decimal] = None
    home_city: Optional[str] = None
    created_at_utc: Optional[str] = None

    @property
    def label(self) -> str:
        if self.name:
            return f"{self.vehicle_number} ({self.name})"
        return self.vehicle_number


class AssignedBus(ApiModel):
    id: str
    vehicle_number: Text = ''
    name: Optional[str] = None


class PublicBus(ApiModel):
    id: str
    name: Text = ''
    vehicle_number: Text = ''
    company_name: Text = ''
    base_rate: Decimal = Decimal('0')
    bus_type: Text = ''
    capacity: int = 0


# ---------------------------------------------------------------------------
# Agreements

class BusRate(ApiModel):
    per_day_rent: Optional[Decimal] = None
    include_mountain_rent: bool = False
    mountain_rent: Optional[Decimal] = None


class Agreement(ApiModel):
    id: str
    customer_name: Text = ''
    phone: Text = ''
    from_date: LenientDate = None
    to_date: LenientDate = None
    bus_type: Text = ''
    bus_count: Optional[int] = None
    passengers: Optional[int] = None
    places_to_cover: Text = ''
    per_day_rent: Optional[Decimal] = None
    include_mountain_rent: bool = False
    mountain_rent: Optional[Decimal] = None
    use_individual_bus_rates: bool = False
    bus_rates: Optional[List[BusRate]] = None
    total_amount: Optional[Decimal] = None
    advance_paid: Optional[Decimal] = None
    balance: Optional[Decimal] = None
    notes: Text = ''
    assigned_buses: Optional[List[AssignedBus]] = None
    is_cancelled: bool = False
    is_completed: bool = False
    cancelled_at_utc: Optional[str] = None
    created_at_utc: Optional[str] = None

    @property
    def first_place(self) -> str:
        return self.places_to_cover.split(',')[0].strip()


class ScheduleAgreement(ApiModel):
    """The schedule-relevant projection of an agreement."""

    id: str
    customer_name: Text = ''
    from_date: LenientDate = None
    to_date: LenientDate = None
    bus_type: Text = ''
    bus_count: Optional[int] = None
    assigned_bus_ids: Annotated[List[str], BeforeValidator(_none_as_list)] = Field(default_factory=list)


class Schedule(ApiModel):
    from_: Text = Field(default='', alias='from')
    to: Text = ''
    buses: Annotated[List[Bus], BeforeValidator(_none_as_list)] = Field(default_factory=list)
    agreements: Annotated[List[ScheduleAgreement], BeforeValidator(_none_as_list)] = Field(default_factory=list)


class BusConflict(ApiModel):
    bus_id: str
    bus_vehicle_number: Text = ''
    conflicting_agreement_id: Text = ''
    conflicting_customer_name: Text = ''
    conflicting_from_date: LenientDate = None
    conflicting_to_date: LenientDate = None


class BusAssignmentConflict(ApiModel):
    message: Text = ''
    conflicts: List[BusConflict] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Accounts

class FuelEntry(ApiModel):
    id: str
    place: Text = ''
    liters: Decimal = Decimal('0')
    cost: Decimal = Decimal('0')


class OtherExpense(ApiModel):
    id: str
    description: Text = ''
    amount: Decimal = Decimal('0')


class BusExpense(ApiModel):
    id: str
    bus_id: Optional[str] = None
    bus_vehicle_number: Optional[str] = None
    bus_name: Optional[str] = None
    driver_batta: Decimal = Decimal('0')
    days: int = 0
    start_km: Optional[int] = None
    end_km: Optional[int] = None
    total_fuel_cost: Decimal = Decimal('0')
    total_other_expenses: Decimal = Decimal('0')
    total_expenses: Decimal = Decimal('0')
    fuel_entries: List[FuelEntry] = Field(default_factory=list)
    other_expenses: List[OtherExpense] = Field(default_factory=list)

    @property
    def distance_km(self) -> Optional[int]:
        if self.start_km is None or self.end_km is None:
            return None
        return self.end_km - self.start_km


class AgreementAccounts(ApiModel):
    agreement_id: str
    income_total_amount: Decimal = Decimal('0')
    total_expenses: Decimal = Decimal('0')
    profit_or_loss: Decimal = Decimal('0')
    required_bus_count: int = 0
    assigned_buses: List[Bus] = Field(default_factory=list)
    updated_at_utc: Optional[str] = None
    bus_expenses: List[BusExpense] = Field(default_factory=list)


class AccountsSummaryItem(ApiModel):
    agreement_id: str
    customer_name: Text = ''
    from_date: LenientDate = None
    to_date: LenientDate = None
    bus_type: Text = ''
    bus_count: Optional[int] = None
    income_total_amount: Decimal = Decimal('0')
    total_expenses: Decimal = Decimal('0')
    profit_or_loss: Decimal = Decimal('0')
    balance: Optional[Decimal] = None
    is_cancelled: bool = False
    created_at_utc: Optional[str] = None


# ---------------------------------------------------------------------------
# Auth and settings

class AuthSession(ApiModel):
    token: str
    username: Optional[str] = Field(default=None, validation_alias=AliasChoices('username', 'userName'))
    user_id: Optional[int] = None
    email: Optional[str] = None
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    company_phone: Optional[str] = None


class SystemSetting(ApiModel):
    key: str
    value: Text = ''
    group: str = 'General'
    updated_at_utc: Optional[str] = None
