"""Typed payloads for the normalized permit subtypes.

A permit's ``details`` JSON carries at most one of ``building_permit``,
``business_permit`` or ``motorela``. Which one is allowed is decided by the
permit type's ``kind``; the matching model below validates and normalizes it.
Text fields are required unless noted. Measurements, counts and dates may be
left blank and are stored as null rather than zero.
"""
from datetime import date
from typing import Annotated, Any, Dict, Optional, Type, Union

from pydantic import BaseModel, BeforeValidator, Field, StringConstraints
from pydantic import ValidationError as PydanticValidationError

from ..constants import DETAILS_KEYS
from ..core.errors import ValidationError


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _blank_number_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        return value or None
    return value


def _none_to_blank(value: Any) -> Any:
    return "" if value is None else value


RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]
BlankableText = Annotated[str, BeforeValidator(_none_to_blank)]
OptionalFloat = Annotated[Optional[float], BeforeValidator(_blank_number_to_none)]
OptionalInt = Annotated[Optional[int], BeforeValidator(_blank_number_to_none)]
OptionalDate = Annotated[Optional[date], BeforeValidator(_blank_to_none)]


class BuildingPermitDetails(BaseModel):
    application_no: RequiredText = Field(title="Application No")
    bp_no: RequiredText = Field(title="BP No.")
    owner_signature_date: OptionalDate = Field(default=None, title="Owner/Representative Signature Date")

    applicant_lastname: RequiredText = Field(title="Applicant Last Name")
    applicant_firstname: RequiredText = Field(title="Applicant First Name")
    applicant_mi: RequiredText = Field(title="Applicant Middle Initial")
    applicant_tin: RequiredText = Field(title="Applicant TIN")
    ownership_form: RequiredText = Field(title="Form of Ownership")
    address: RequiredText = Field(title="Address")
    applicant_ctc_no: RequiredText = Field(title="Applicant CTC No")
    applicant_ctc_date: OptionalDate = Field(default=None, title="Applicant CTC Date")
    applicant_ctc_place: RequiredText = Field(title="Applicant CTC Place")
    applicant_signature_date: OptionalDate = Field(default=None, title="Applicant Signature Date")

    construction_location: RequiredText = Field(title="Location of Construction")
    scope_of_work: RequiredText = Field(title="Scope of Work")
    occupancy_use: RequiredText = Field(title="Use or Character of Occupancy")
    lot_area: OptionalFloat = Field(default=None, title="Lot Area")
    floor_area: OptionalFloat = Field(default=None, title="Total Floor Area")
    cost_of_construction: OptionalFloat = Field(default=None, title="Estimated Cost of Construction")
    date_of_construction: OptionalDate = Field(default=None, title="Expected Date of Construction")

    inspector_name: RequiredText = Field(title="Inspector Name")
    inspector_address: RequiredText = Field(title="Inspector Address")
    prc_no: RequiredText = Field(title="PRC No")
    ptr_no: RequiredText = Field(title="PTR No")
    inspector_issued_at: RequiredText = Field(title="Inspector Issued at")
    inspector_validity: OptionalDate = Field(default=None, title="Inspector Validity")

    engineer_ctc_no: RequiredText = Field(title="Engineer/Architect CTC No")
    engineer_ctc_date: OptionalDate = Field(default=None, title="Engineer CTC Date")
    engineer_ctc_place: RequiredText = Field(title="Engineer CTC Place")


class BusinessPermitDetails(BaseModel):
    tax_year: OptionalInt = Field(default=None, title="Tax Year")
    control_no: RequiredText = Field(title="Control No")
    mode_of_payment: RequiredText = Field(title="Mode of Payment")
    application_type: RequiredText = Field(title="Application Type")
    amendment: BlankableText = Field(default="", title="Amendment")
    org_type: RequiredText = Field(title="Type of Organization")

    tax_payer_lastname: RequiredText = Field(title="Taxpayer Last Name")
    tax_payer_firstname: RequiredText = Field(title="Taxpayer First Name")
    tax_payer_middlename: RequiredText = Field(title="Taxpayer Middle Name")
    tin: RequiredText = Field(title="TIN")
    ctc_no: RequiredText = Field(title="CTC No")
    owner_address: RequiredText = Field(title="Owner Address")
    phone: RequiredText = Field(title="Phone")
    email: RequiredText = Field(title="Email")

    business_name: RequiredText = Field(title="Business Name")
    nature_of_business: RequiredText = Field(title="Nature of Business")
    business_address: RequiredText = Field(title="Business Address")
    business_area: RequiredText = Field(title="Business Area")
    business_activity_code: RequiredText = Field(title="Activity Code")
    line_of_business: RequiredText = Field(title="Line of Business")
    no_of_units: OptionalInt = Field(default=None, title="No. of Units")
    capitalization: OptionalFloat = Field(default=None, title="Capitalization")
    essential_sales: OptionalFloat = Field(default=None, title="Essential Gross Sales")
    non_essential_sales: OptionalFloat = Field(default=None, title="Non-Essential Gross Sales")

    total_employees: OptionalInt = Field(default=None, title="Total Employees")
    employees_in_lgu: OptionalInt = Field(default=None, title="Employees Residing in LGU")

    # Lessor block is optional; it is only stored once one of these is filled in.
    lessor_name: BlankableText = Field(default="", title="Lessor Name")
    lessor_address: BlankableText = Field(default="", title="Lessor Address")


class MotorelaPermitDetails(BaseModel):
    application_no: RequiredText = Field(title="Application Control No.")
    date: OptionalDate = Field(default=None, title="Date")
    body_no: RequiredText = Field(title="Body No")
    chassis_no: RequiredText = Field(title="Chassis No")
    make: RequiredText = Field(title="Make")
    motor_no: RequiredText = Field(title="Motor No")
    route: RequiredText = Field(title="Route of Operation")
    plate_no: RequiredText = Field(title="Plate No")
    operator: RequiredText = Field(title="Name of Operator")
    operator_address: RequiredText = Field(title="Operator Address")
    contact: RequiredText = Field(title="Contact Number")
    driver: RequiredText = Field(title="Name of Driver")
    driver_address: RequiredText = Field(title="Driver Address")
    cedula_no: OptionalText = Field(default=None, title="CEDULA No.")
    place_issued: OptionalText = Field(default=None, title="Place of Issue")
    date_issued: OptionalDate = Field(default=None, title="Date of Issue")


PermitDetails = Union[BuildingPermitDetails, BusinessPermitDetails, MotorelaPermitDetails, None]

DETAILS_MODELS: Dict[str, Type[BaseModel]] = {
    "building": BuildingPermitDetails,
    "business": BusinessPermitDetails,
    "motorela": MotorelaPermitDetails,
}


def _translate_error(model: Type[BaseModel], exc: PydanticValidationError) -> ValidationError:
    error = exc.errors()[0]
    field_name = str(error["loc"][0]) if error.get("loc") else None
    field_info = model.model_fields.get(field_name) if field_name else None
    label = (field_info.title if field_info and field_info.title else field_name) or "Field"
    raw = error.get("input")
    if error["type"] == "missing" or raw is None or (isinstance(raw, str) and not raw.strip()):
        return ValidationError(f"{label} is required", field=field_name)
    if error["type"].startswith(("float", "int")):
        return ValidationError(f"{label} must be a number", field=field_name)
    if error["type"].startswith(("date", "datetime")):
        return ValidationError(f"{label} must be a valid date (YYYY-MM-DD)", field=field_name)
    return ValidationError(f"{label}: {error['msg']}", field=field_name)


def parse_subtype_payload(kind: str, payload: Any) -> BaseModel:
    model = DETAILS_MODELS.get(kind)
    if model is None:
        raise ValidationError(f"Permit kind '{kind}' has no detail form.")
    if isinstance(payload, model):
        return payload
    if not isinstance(payload, dict):
        raise ValidationError(f"{DETAILS_KEYS[kind]} details must be an object.", field=DETAILS_KEYS[kind])
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise _translate_error(model, exc) from exc


def parse_permit_details(kind: str, details: Optional[Dict[str, Any]]) -> PermitDetails:
    """Select and validate the subtype payload allowed by ``kind``.

    Raises ``ValidationError`` when a subtype key contradicts the permit type or
    when a normalized kind arrives without its detail block.
    """
    details = details or {}
    expected_key = DETAILS_KEYS.get(kind)
    for key in DETAILS_KEYS.values():
        if key in details and key != expected_key:
            raise ValidationError(
                f"'{key}' details cannot be attached to a {kind} permit.",
                field=key,
            )
    if expected_key is None:
        return None
    if details.get(expected_key) is None:
        raise ValidationError(f"{expected_key.replace('_', ' ').title()} details are required", field=expected_key)
    return parse_subtype_payload(kind, details[expected_key])
