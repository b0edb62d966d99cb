"""
Request/response schemas for the scheduling endpoints.
"""
import datetime as dt
from typing import Literal, Optional
from pydantic import BaseModel, Field


class AvailabilityResponse(BaseModel):
    doctor_id: str
    clinic_id: Optional[str] = None
    date: dt.date
    slots: list[str]
    available: bool


class CreateAppointmentRequest(BaseModel):
    date: dt.date
    time: str = Field(pattern=r"^\d{1,2}:\d{2}$")
    patient_id: str = Field(min_length=1)
    patient_name: str = ""
    patient_phone: Optional[str] = None
    clinic_id: Optional[str] = None
    source: Literal["patient_app", "doctor_app"] = "doctor_app"
    appointment_type: Literal["checkup", "followup"] = "checkup"
    note: Optional[str] = None
    language: Optional[Literal["en", "ar"]] = None
    notify_patient: bool = False


class ExtraFeeIn(BaseModel):
    description: str = Field(min_length=1, max_length=255)
    amount: float = Field(ge=0)


class ExtraFeeOut(BaseModel):
    description: str
    amount: float
    created_at: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    status: Literal["pending", "confirmed", "completed", "cancelled"]
    extra_fee: Optional[ExtraFeeIn] = None
    language: Optional[Literal["en", "ar"]] = None
    notify: bool = True


class AppointmentDetail(BaseModel):
    id: str
    doctor_id: str
    clinic_id: Optional[str] = None
    date: dt.date
    time: str
    appointment_type: str
    status: str
    source: str
    patient_id: str
    patient_name: str
    base_price: float
    extra_fees: list[ExtraFeeOut]
    total: float
    currency: str
    queue_number: Optional[int] = None
    whatsapp_url: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None


class WarningOut(BaseModel):
    code: str
    message: str


class AppointmentMutationResponse(BaseModel):
    appointment: AppointmentDetail
    changed: bool = True
    notified: bool = False
    warnings: list[WarningOut] = []


class TodayQueueResponse(BaseModel):
    doctor_id: str
    clinic_id: Optional[str] = None
    date: dt.date
    appointments: list[AppointmentDetail]
    total: int


class DailyIncome(BaseModel):
    date: dt.date
    total: float
    appointments: int


class DailyIncomeResponse(BaseModel):
    doctor_id: str
    currency: str
    today_total: float
    days: list[DailyIncome]
