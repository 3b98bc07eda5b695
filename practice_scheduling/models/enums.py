"""Closed value sets shared by the models, services and request schemas."""

from enum import Enum


class DayOfWeek(str, Enum):
    MONDAY = 'monday'
    TUESDAY = 'tuesday'
    WEDNESDAY = 'wednesday'
    THURSDAY = 'thursday'
    FRIDAY = 'friday'
    SATURDAY = 'saturday'
    SUNDAY = 'sunday'

    @classmethod
    def from_date(cls, value) -> 'DayOfWeek':
        return list(cls)[value.weekday()]


class StaffRole(str, Enum):
    PHYSICIAN = 'physician'
    NURSE = 'nurse'
    SLEEP_TECHNICIAN = 'sleep_technician'
    RESPIRATORY_THERAPIST = 'respiratory_therapist'
    DME_SPECIALIST = 'dme_specialist'
    ADMINISTRATIVE = 'administrative'


class TimeOffReason(str, Enum):
    VACATION = 'vacation'
    SICK = 'sick'
    MEETING = 'meeting'
    TRAINING = 'training'
    PERSONAL = 'personal'
    BLOCKED = 'blocked'


class ApprovalStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class AppointmentStatus(str, Enum):
    REQUESTED = 'requested'
    CONFIRMED = 'confirmed'
    CHECKED_IN = 'checked_in'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'
    RESCHEDULED = 'rescheduled'
    NO_SHOW = 'no_show'


INACTIVE_STATUSES = frozenset({AppointmentStatus.CANCELLED.value, AppointmentStatus.RESCHEDULED.value})


class ConfirmationSource(str, Enum):
    PATIENT = 'patient'
    STAFF = 'staff'
    AUTOMATED = 'automated'


class Urgency(str, Enum):
    URGENT = 'urgent'
    HIGH = 'high'
    NORMAL = 'normal'
    LOW = 'low'


class RelatedRecordKind(str, Enum):
    PRESCRIPTION = 'prescription'
    SLEEP_STUDY = 'sleep_study'
    DME_PRESCRIPTION = 'dme_prescription'
    PFT_TEST = 'pft_test'
    REFERRAL = 'referral'
