"""
Wire schemas for the payments API.

Authorization-flow actions, form inputs and images are closed tagged unions
discriminated on their "type" field. An unknown type fails validation, which
parse_response turns into a ProtocolError.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from quickpay.engine.errors import ProtocolError
from quickpay.models.enums import Currency, InputType, PaymentStatus

ModelT = TypeVar("ModelT", bound=BaseModel)


class LocalizedText(BaseModel):
    key: Optional[str] = None
    default: str


# ─── Providers ─────────────────────────────────────────────────────────────


class Provider(BaseModel):
    id: str
    display_name: Optional[str] = None
    country_code: Optional[str] = None
    icon_uri: Optional[str] = None
    logo_uri: Optional[str] = None
    bg_color: Optional[str] = None
    search_aliases: list[str] = Field(default_factory=list)


# ─── Form inputs ───────────────────────────────────────────────────────────


class InputRegex(BaseModel):
    regex: str
    message: LocalizedText


class Base64Image(BaseModel):
    type: Literal["base64"]
    data: str
    media_type: Optional[str] = None


class UriImage(BaseModel):
    type: Literal["uri"]
    uri: str


InputImage = Annotated[Union[Base64Image, UriImage], Field(discriminator="type")]


class _TextInputFields(BaseModel):
    id: str
    display_text: LocalizedText
    description: Optional[LocalizedText] = None
    mandatory: bool = True
    format: Optional[str] = None
    sensitive: bool = False
    min_length: int
    max_length: int
    regexes: list[InputRegex] = Field(default_factory=list)


class TextInput(_TextInputFields):
    type: Literal["text"]


class TextWithImageInput(_TextInputFields):
    type: Literal["text_with_image"]
    image: InputImage


class SelectOption(BaseModel):
    id: str
    display_text: LocalizedText


class SelectInput(BaseModel):
    type: Literal["select"]
    id: str
    display_text: LocalizedText
    description: Optional[LocalizedText] = None
    mandatory: bool = True
    options: list[SelectOption]


AdditionalInput = Annotated[
    Union[TextInput, TextWithImageInput, SelectInput],
    Field(discriminator="type"),
]


# ─── Next actions ──────────────────────────────────────────────────────────


class ProviderSelectionAction(BaseModel):
    type: Literal["provider_selection"]
    providers: list[Provider] = Field(default_factory=list)


class ConsentAction(BaseModel):
    type: Literal["consent"]
    subsequent_action_hint: Optional[str] = None
    requirements: Optional[dict[str, Any]] = None


class RedirectAction(BaseModel):
    type: Literal["redirect"]
    uri: str
    metadata: Optional[dict[str, Any]] = None


class FormAction(BaseModel):
    type: Literal["form"]
    inputs: list[AdditionalInput]


class WaitAction(BaseModel):
    type: Literal["wait"]


NextAction = Annotated[
    Union[ProviderSelectionAction, ConsentAction, RedirectAction, FormAction, WaitAction],
    Field(discriminator="type"),
]


class ActionSet(BaseModel):
    next: NextAction


class AuthorizationFlow(BaseModel):
    actions: Optional[ActionSet] = None


class AuthorizationFlowResponse(BaseModel):
    """Response to starting a flow or submitting any flow action."""

    status: Optional[str] = None
    authorization_flow: Optional[AuthorizationFlow] = None


# ─── Start-flow capabilities ───────────────────────────────────────────────


class ProviderSelectionSupported(BaseModel):
    pass


class RedirectSupported(BaseModel):
    return_uri: str
    direct_return_uri: Optional[str] = None


class ConsentSupported(BaseModel):
    pass


class FormSupported(BaseModel):
    input_types: list[InputType]


class StartAuthorizationFlowRequest(BaseModel):
    provider_selection: Optional[ProviderSelectionSupported] = None
    redirect: Optional[RedirectSupported] = None
    consent: Optional[ConsentSupported] = None
    form: Optional[FormSupported] = None


def supported_capabilities(return_uri: str) -> StartAuthorizationFlowRequest:
    """Every action and input kind this client can handle."""
    return StartAuthorizationFlowRequest(
        provider_selection=ProviderSelectionSupported(),
        redirect=RedirectSupported(return_uri=return_uri),
        consent=ConsentSupported(),
        form=FormSupported(
            input_types=[InputType.TEXT, InputType.TEXT_WITH_IMAGE, InputType.SELECT],
        ),
    )


# ─── Payments ──────────────────────────────────────────────────────────────


class SortCodeAccountNumber(BaseModel):
    type: Literal["sort_code_account_number"] = "sort_code_account_number"
    sort_code: str
    account_number: str


class Iban(BaseModel):
    type: Literal["iban"] = "iban"
    iban: str


AccountIdentifier = Annotated[Union[SortCodeAccountNumber, Iban], Field(discriminator="type")]


class Beneficiary(BaseModel):
    type: Literal["external_account"] = "external_account"
    account_holder_name: str
    reference: str
    account_identifier: AccountIdentifier


class PaymentUser(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class CreatePaymentRequest(BaseModel):
    """A bank transfer with user-selected provider, instant scheme preferred."""

    amount_in_minor: int = Field(gt=0)
    currency: Currency
    beneficiary: Beneficiary
    user: PaymentUser

    def to_wire(self) -> dict[str, Any]:
        return {
            "amount_in_minor": self.amount_in_minor,
            "currency": self.currency.value,
            "payment_method": {
                "type": "bank_transfer",
                "provider_selection": {
                    "type": "user_selected",
                    "scheme_selection": {
                        "type": "instant_preferred",
                        "allow_remitter_fee": False,
                    },
                },
                "beneficiary": self.beneficiary.model_dump(mode="json"),
            },
            "user": self.user.model_dump(mode="json", exclude_none=True),
        }


class PaymentUserRef(BaseModel):
    id: str


class CreatePaymentResponse(BaseModel):
    id: str
    user: Optional[PaymentUserRef] = None
    resource_token: Optional[str] = None
    status: PaymentStatus


class PaymentStatusResponse(BaseModel):
    id: str
    status: PaymentStatus
    amount_in_minor: Optional[int] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_stage: Optional[str] = None
    failure_reason: Optional[str] = None


def parse_response(model: type[ModelT], data: Any) -> ModelT:
    """Validate a decoded response body, mapping shape violations to ProtocolError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ProtocolError(f"Unexpected {model.__name__} payload: {e}") from e
