"""Auth endpoints for API v1."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session

from solarcrm.auth.jwt import PrimarySession, create_session_token, decode_session_token, should_refresh_secondary
from solarcrm.auth.session_bridge import ANONYMOUS, DatabaseClient, database_client_for_token, sign_out
from solarcrm.auth.supabase_auth import SecondarySession, SupabaseAuthClient
from solarcrm.core.config import Config
from solarcrm.core.dependencies import (
    CurrentUser,
    _extract_bearer_token,
    get_auth_client,
    get_current_user,
    get_primary_session,
    get_session_factory,
    get_settings,
)
from solarcrm.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    SolarCRMException,
    ValidationError,
)
from solarcrm.models.enums import LeadSource, UserRole, UserStatus
from solarcrm.models.user import User
from solarcrm.schemas.auth import CustomerSignupRequest, LoginRequest, SessionResponse, SessionUser
from solarcrm.services.lead_service import LeadService
from solarcrm.services.user_service import UserService
from solarcrm.utils.validators import is_valid_email, is_valid_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SIGNUP_ADDRESS_PLACEHOLDER = "Not provided"


def _session_user(profile: User) -> SessionUser:
    return SessionUser(
        id=profile.id,
        email=profile.email,
        name=profile.name,
        role=profile.role.value,
        status=profile.status.value,
    )


def _set_session_cookie(response: Response, token: str, settings: Config) -> None:
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=settings.SESSION_MAX_AGE_DAYS * 24 * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def _issue_session(
    secondary: SecondarySession,
    response: Response,
    settings: Config,
    session_factory: Callable[[], Session],
) -> SessionResponse:
    """Load the profile as the newly signed-in identity and mint a primary session."""
    with database_client_for_token(secondary.access_token, session_factory=session_factory, config=settings) as client:
        profile = UserService(client.session).get_profile(secondary.user_id)
        if profile is None:
            raise AuthenticationError("User profile not found")
        if profile.status == UserStatus.DISABLED:
            raise AuthorizationError("Your account has been disabled.", code="ACCOUNT_DISABLED")
        token = create_session_token(
            profile,
            secret=settings.JWT_SECRET,
            max_age_days=settings.SESSION_MAX_AGE_DAYS,
            secondary_access_token=secondary.access_token,
            secondary_refresh_token=secondary.refresh_token,
        )
        user = _session_user(profile)

    _set_session_cookie(response, token, settings)
    expires = decode_session_token(token, secret=settings.JWT_SECRET).expires
    logger.info("auth.session.issued", extra={"event": "auth.session.issued", "user_id": user.id})
    return SessionResponse(user=user, expires=expires, session_token=token)


def _tolerant_primary_session(request: Request, settings: Config) -> PrimarySession | None:
    try:
        token = _extract_bearer_token(request.headers.get("Authorization"))
        token = token or request.cookies.get(settings.SESSION_COOKIE_NAME)
        return decode_session_token(token, secret=settings.JWT_SECRET) if token else None
    except AuthenticationError:
        return None


@router.post("/login", response_model=SessionResponse)
def login(
    payload: LoginRequest,
    response: Response,
    settings: Config = Depends(get_settings),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> SessionResponse:
    secondary = auth_client.sign_in_with_password(payload.email.strip().lower(), payload.password)
    return _issue_session(secondary, response, settings, session_factory)


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    settings: Config = Depends(get_settings),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> dict:
    primary = _tolerant_primary_session(request, settings)
    sign_out(primary, auth_client)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return {"success": True}


@router.post("/refresh", response_model=SessionResponse)
def refresh(
    response: Response,
    force: bool = Query(default=False),
    primary: PrimarySession | None = Depends(get_primary_session),
    settings: Config = Depends(get_settings),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> SessionResponse:
    if primary is None:
        raise AuthenticationError("Authentication required")
    if not primary.secondary_refresh_token:
        raise AuthenticationError("Session cannot be refreshed; sign in again.")

    if not force and not should_refresh_secondary(primary, settings.SECONDARY_TOKEN_REFRESH_MINUTES):
        return SessionResponse(
            user=SessionUser(
                id=primary.user_id,
                email=primary.email,
                name=primary.name,
                role=primary.role,
                status=primary.status,
            ),
            expires=primary.expires,
            refreshed=False,
        )

    secondary = auth_client.refresh_session(primary.secondary_refresh_token)
    session = _issue_session(secondary, response, settings, session_factory)
    return session.model_copy(update={"refreshed": True})


@router.get("/session", response_model=SessionResponse)
def current_session(
    user: CurrentUser = Depends(get_current_user),
    settings: Config = Depends(get_settings),
) -> SessionResponse:
    return SessionResponse(
        user=SessionUser(id=user.id, email=user.email, name=user.name, role=user.role, status=user.status),
        expires=user.session.expires,
        refresh_recommended=should_refresh_secondary(user.session, settings.SECONDARY_TOKEN_REFRESH_MINUTES),
    )


@router.post("/customer-signup", status_code=status.HTTP_201_CREATED)
def customer_signup(
    payload: CustomerSignupRequest,
    response: Response,
    settings: Config = Depends(get_settings),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> dict[str, Any]:
    """Register a customer account, its profile and its lead."""
    email = payload.email.strip().lower()
    if not is_valid_email(email):
        raise ValidationError("Invalid email address.")
    if not is_valid_phone(payload.phone):
        raise ValidationError("Invalid phone number format.")

    with DatabaseClient(session_factory(), ANONYMOUS) as lookup:
        if UserService(lookup.session).get_by_email(email) is not None:
            raise ConflictError("An account with this email already exists", code="EMAIL_EXISTS")

    result = auth_client.sign_up(
        email,
        payload.password,
        {"name": payload.name, "phone": payload.phone, "role": UserRole.CUSTOMER.value},
    )
    signed_in = isinstance(result, SecondarySession)
    user_id = result.user_id if signed_in else result.id
    client = (
        database_client_for_token(result.access_token, session_factory=session_factory, config=settings)
        if signed_in
        else DatabaseClient(session_factory(), ANONYMOUS)
    )

    with client:
        profile = UserService(client.session).create_profile(
            user_id, email, payload.name, phone=payload.phone, role=UserRole.CUSTOMER
        )
        lead_created = True
        try:
            LeadService(client.session).create_lead(
                {
                    "customer_name": payload.name,
                    "phone": payload.phone,
                    "email": email,
                    "address": payload.address or SIGNUP_ADDRESS_PLACEHOLDER,
                    "source": LeadSource.SELF,
                },
                profile,
            )
        except SolarCRMException as exc:
            lead_created = False
            logger.warning(
                "auth.signup.lead_creation_failed",
                extra={"event": "auth.signup.lead_creation_failed", "user_id": user_id, "reason": exc.message},
            )
        user = _session_user(profile)

    body: dict[str, Any] = {"success": True, "user": user.model_dump(), "leadCreated": lead_created}
    if signed_in:
        body["session"] = _issue_session(result, response, settings, session_factory).model_dump()
    return body
