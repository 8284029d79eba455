"""
Authentication flow endpoints.

Each flow is one user's walk through the sign-in, sign-up and password
recovery screens. Intents always answer 200: refusals (validation,
gateway failure, illegal transition, busy) are reported in the body
alongside the fresh view so the client can re-render in one round trip.
"""

import logging
from typing import Optional, Dict, Any, Union

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from authflow.errors import ActionResult
from authflow.flow import FlowController
from authflow.view import build_view
from ..deps import ServicesDep, FlowDep

logger = logging.getLogger(__name__)

router = APIRouter()


# Request/Response models

class CreateFlowRequest(BaseModel):
    """Flow creation request."""
    step: Optional[str] = Field(None, description="Initial step (login, signup, forgot-password)")


class NavigateRequest(BaseModel):
    """Step change request."""
    step: str = Field(..., description="Target step identifier")


class FieldChangeRequest(BaseModel):
    """Single form field edit."""
    field: str = Field(..., description="name, contact, password, confirm_password or accept_terms")
    value: Union[bool, str, None] = Field(None, description="true/false for accept_terms, text for every other field")


class VisibilityRequest(BaseModel):
    """Password visibility toggle."""
    field: str = Field(..., description="password or confirm_password")


class DigitRequest(BaseModel):
    """One OTP box edit."""
    index: int = Field(..., ge=0, description="Box index")
    value: str = Field("", description="Single digit, or empty to clear")


class BackspaceRequest(BaseModel):
    """Backspace pressed in an OTP box."""
    index: int = Field(..., ge=0, description="Box index")


class PasteRequest(BaseModel):
    """Whole code pasted at once."""
    text: str = Field(..., description="Pasted text; non-digits are ignored")


class FlowResponse(BaseModel):
    """Current view of a flow."""
    flow_id: Optional[str] = None
    view: Dict[str, Any]


class ActionResponse(BaseModel):
    """Outcome of an intent plus the view after it."""
    success: bool
    kind: Optional[str] = None
    error: Optional[str] = None
    field_errors: Dict[str, str] = {}
    focus: Optional[int] = None
    view: Dict[str, Any]


def _respond(controller: FlowController, result: ActionResult) -> ActionResponse:
    return ActionResponse(**result.to_dict(), view=build_view(controller).to_dict())


# Endpoints

@router.post("", response_model=FlowResponse, status_code=status.HTTP_201_CREATED)
async def create_flow(request: CreateFlowRequest, services: ServicesDep):
    """
    Start a new authentication flow.

    Unknown step identifiers start at sign-in.
    """
    entry = services.flows.create(request.step)
    return FlowResponse(flow_id=entry.flow_id, view=build_view(entry.controller).to_dict())


@router.get("/{flow_id}", response_model=FlowResponse)
async def get_flow_view(flow_id: str, controller: FlowDep):
    """Get the current view of a flow."""
    return FlowResponse(flow_id=flow_id, view=build_view(controller).to_dict())


@router.delete("/{flow_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_flow(flow_id: str, controller: FlowDep, services: ServicesDep):
    """Discard a flow, cancelling any running countdown."""
    services.flows.discard(flow_id)


@router.post("/{flow_id}/navigate", response_model=ActionResponse)
async def navigate(request: NavigateRequest, controller: FlowDep):
    """Switch to another step (sign-in, sign-up, forgot password)."""
    return _respond(controller, controller.navigate(request.step))


@router.post("/{flow_id}/back", response_model=ActionResponse)
async def back(controller: FlowDep):
    """Go back one step."""
    return _respond(controller, controller.back())


@router.post("/{flow_id}/fields", response_model=ActionResponse)
async def change_field(request: FieldChangeRequest, controller: FlowDep):
    """Edit one field of the active form."""
    return _respond(controller, controller.update_field(request.field, request.value))


@router.post("/{flow_id}/visibility", response_model=ActionResponse)
async def toggle_visibility(request: VisibilityRequest, controller: FlowDep):
    """Show or hide a password field."""
    return _respond(controller, controller.toggle_visibility(request.field))


@router.post("/{flow_id}/submit", response_model=ActionResponse)
async def submit(controller: FlowDep):
    """
    Submit the active form.

    Sign-in, sign-up, code request, code verification or password reset,
    depending on the current step.
    """
    result = await controller.submit()
    return _respond(controller, result)


@router.post("/{flow_id}/otp/digit", response_model=ActionResponse)
async def set_digit(request: DigitRequest, controller: FlowDep):
    """Type into one code box."""
    return _respond(controller, controller.set_digit(request.index, request.value))


@router.post("/{flow_id}/otp/backspace", response_model=ActionResponse)
async def backspace(request: BackspaceRequest, controller: FlowDep):
    """Backspace in one code box."""
    return _respond(controller, controller.backspace(request.index))


@router.post("/{flow_id}/otp/paste", response_model=ActionResponse)
async def paste(request: PasteRequest, controller: FlowDep):
    """Paste a whole code."""
    return _respond(controller, controller.paste(request.text))


@router.post("/{flow_id}/otp/resend", response_model=ActionResponse)
async def resend(controller: FlowDep):
    """Resend the code once the countdown has finished."""
    result = await controller.resend()
    return _respond(controller, result)
