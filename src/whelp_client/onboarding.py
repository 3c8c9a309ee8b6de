"""Onboarding, subscription plans and usage endpoints."""

from __future__ import annotations

import logging
from typing import Any

from .auth import _require
from .envelopes import unwrap_object
from .errors import MalformedResponse, ValidationError
from .models import BillingInterval, CurrentPlan, Plan, UsagePage
from .transport import ApiClient


logger = logging.getLogger(__name__)


def _interval(value: BillingInterval | str) -> BillingInterval:
    try:
        return BillingInterval(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown billing interval '{value}' (expected monthly or yearly)") from exc


class OnboardingApi:
    """Account setup after registration, plan selection and usage reporting.

    The two onboarding steps post JSON; selecting a plan is a multipart form.
    All responses may arrive wrapped in ``{"data": ...}``.
    """

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    async def step1(
        self,
        *,
        first_name: str,
        last_name: str,
        institution_id: str,
        department: str,
        phone: str | int,
    ) -> dict[str, Any]:
        """Submit the personal details step."""

        _require(
            first_name=first_name,
            last_name=last_name,
            institution_id=institution_id,
            department=department,
            phone=phone,
        )
        payload = await self._client.post(
            "/auth/onboarding/step1/",
            {
                "first_name": first_name,
                "last_name": last_name,
                "institution_id": institution_id,
                "department": department,
                "phone": phone,
            },
        )
        return unwrap_object(payload, what="onboarding_step1")

    async def step2(
        self,
        *,
        company_name: str,
        website: str,
        country: str,
        phone: str,
    ) -> dict[str, Any]:
        """Submit the company details step."""

        _require(company_name=company_name, website=website, country=country, phone=phone)
        payload = await self._client.post(
            "/auth/onboarding/step2/",
            {"company_name": company_name, "website": website, "country": country, "phone": phone},
        )
        return unwrap_object(payload, what="onboarding_step2")

    async def available_plans(self, billing_interval: BillingInterval | str | None = None) -> list[Plan]:
        params = None
        if billing_interval is not None:
            params = {"billing_interval": _interval(billing_interval).value}
        body = unwrap_object(await self._client.get("/home/plans/available/", params), what="plans")
        plans = body.get("plans")
        if not isinstance(plans, list):
            logger.error("onboarding.plans.unrecognized keys=%s", sorted(body))
            raise MalformedResponse("Plans response has no plans list", payload=body)
        return [Plan.from_payload(item) for item in plans]

    async def select_plan(self, plan_id: str, billing_interval: BillingInterval | str) -> str:
        """Subscribe to ``plan_id`` and return the new subscription id."""

        _require(plan_id=plan_id)
        interval = _interval(billing_interval)
        payload = await self._client.post_form(
            "/home/plans/select/", {"plan_id": plan_id, "billing_interval": interval.value}
        )
        body = unwrap_object(payload, what="select_plan")
        subscription_id = body.get("subscription_id")
        if not subscription_id:
            raise MalformedResponse("Plan selection did not return a subscription_id", payload=payload)
        logger.info("onboarding.plan.selected plan=%s interval=%s", plan_id, interval.value)
        return str(subscription_id)

    async def current_plan(self) -> CurrentPlan:
        payload = await self._client.get("/home/plans/current/")
        return CurrentPlan.from_payload(unwrap_object(payload, what="current_plan"))

    async def usage_stream(self) -> UsagePage:
        payload = await self._client.get("/home/usage-stream/")
        return UsagePage.from_payload(unwrap_object(payload, what="usage_stream"))
