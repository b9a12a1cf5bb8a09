"""Subscription feature gating.

Decides whether an agency's plan and subscription status allow a
feature, and returns a bilingual upsell message when they do not. The
feature matrix is immutable configuration loaded from YAML.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from src.utils.logger import get_logger
from src.validation.validators import (
    collect_errors,
    validate_plan_key,
    validate_subscription_status,
)

logger = get_logger(__name__)

BLOCKED_STATUSES: tuple[str, ...] = ("canceled", "past_due", "suspended", "incomplete")
ACTIVE_STATUSES: tuple[str, ...] = ("trialing", "active")
DEFAULT_PLAN = "trial"
BILLING_URL = "/settings/billing"
SALES_URL = "/contact-sales"


class UpsellMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    en: str
    es: str

    def for_locale(self, locale: str = "en") -> str:
        return self.es if locale == "es" else self.en


class PlanLimits(BaseModel):
    """Per-plan quotas; ``None`` means unlimited."""

    model_config = ConfigDict(frozen=True)

    max_groups: int | None = 1
    max_travelers: int | None = 50
    max_emails_per_month: int | None = 100


def _default_features() -> dict[str, tuple[str, ...]]:
    everyone = ("trial", "solo_groups", "pro", "enterprise")
    paid = ("solo_groups", "pro", "enterprise")
    pro = ("pro", "enterprise")
    return {
        "basic_dashboard": everyone,
        "single_group": everyone,
        "multi_group": pro,
        "bulk_import": pro,
        "email_reminders": everyone,
        "mass_communications": pro,
        "document_manager": paid,
        "analytics_basic": paid,
        "analytics_advanced": pro,
        "branding_basic": paid,
        "branding_full": pro,
        "api_access": ("enterprise",),
        "custom_domain": ("enterprise",),
        "multi_currency": pro,
        "ocr_parsing": pro,
    }


def _default_limits() -> dict[str, PlanLimits]:
    return {
        "trial": PlanLimits(max_groups=1, max_travelers=50, max_emails_per_month=100),
        "solo_groups": PlanLimits(
            max_groups=1, max_travelers=120, max_emails_per_month=1500
        ),
        "pro": PlanLimits(max_groups=None, max_travelers=500, max_emails_per_month=5000),
        "enterprise": PlanLimits(
            max_groups=None, max_travelers=None, max_emails_per_month=None
        ),
    }


def _default_upsells() -> dict[str, UpsellMessage]:
    pairs = {
        "multi_group": (
            "Upgrade to Pro to manage unlimited groups",
            "Actualiza a Pro para gestionar grupos ilimitados",
        ),
        "bulk_import": (
            "Upgrade to Pro to unlock bulk CSV import",
            "Actualiza a Pro para desbloquear importación masiva de CSV",
        ),
        "mass_communications": (
            "Upgrade to Pro to send mass communications",
            "Actualiza a Pro para enviar comunicaciones masivas",
        ),
        "analytics_advanced": (
            "Upgrade to Pro for advanced analytics and reports",
            "Actualiza a Pro para análisis y reportes avanzados",
        ),
        "branding_full": (
            "Upgrade to Pro for complete white-label branding",
            "Actualiza a Pro para marca blanca completa",
        ),
        "api_access": (
            "Contact sales for Enterprise API access",
            "Contacta ventas para acceso a la API Enterprise",
        ),
        "custom_domain": (
            "Contact sales for custom domain setup",
            "Contacta ventas para configurar tu dominio personalizado",
        ),
        "multi_currency": (
            "Upgrade to Pro to track payments in multiple currencies",
            "Actualiza a Pro para rastrear pagos en múltiples monedas",
        ),
        "ocr_parsing": (
            "Upgrade to Pro for automatic contract parsing",
            "Actualiza a Pro para la extracción automática de contratos",
        ),
        "document_manager": (
            "Subscribe to access the document manager",
            "Suscríbete para acceder al gestor de documentos",
        ),
        "analytics_basic": (
            "Subscribe to access analytics",
            "Suscríbete para acceder a las analíticas",
        ),
        "default": (
            "Upgrade your plan to unlock this feature",
            "Actualiza tu plan para desbloquear esta función",
        ),
    }
    return {key: UpsellMessage(en=en, es=es) for key, (en, es) in pairs.items()}


class FeatureMatrix(BaseModel):
    """Which plans unlock which features, plus plan limits and upsells."""

    model_config = ConfigDict(frozen=True)

    features: dict[str, tuple[str, ...]] = Field(default_factory=_default_features)
    plan_limits: dict[str, PlanLimits] = Field(default_factory=_default_limits)
    upsell_messages: dict[str, UpsellMessage] = Field(default_factory=_default_upsells)
    sales_features: tuple[str, ...] = ("api_access", "custom_domain")
    blocked_message: UpsellMessage = UpsellMessage(
        en="Your subscription requires attention. Please update your billing.",
        es="Tu suscripción requiere atención. Por favor actualiza tu facturación.",
    )

    def upsell_for(self, feature: str) -> UpsellMessage:
        return self.upsell_messages.get(feature) or self.upsell_messages["default"]


def load_feature_matrix(path: Path = Path("configs/features.yaml")) -> FeatureMatrix:
    """Load the feature matrix from YAML, falling back to built-in defaults."""
    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f)
        if raw:
            logger.info("Loaded feature matrix from %s", path)
            return FeatureMatrix(**raw)
    logger.debug("Using default feature matrix")
    return FeatureMatrix()


class BillingInfo(BaseModel):
    status: str | None = None
    plan_key: str | None = None


class AgencyProfile(BaseModel):
    """Subscription data for an agency.

    Top-level fields win over the nested ``billing`` record.
    """

    agency_id: str | None = None
    subscription_status: str | None = None
    plan_key: str | None = None
    billing: BillingInfo | None = None

    @property
    def status(self) -> str | None:
        if self.subscription_status:
            return self.subscription_status
        return self.billing.status if self.billing else None

    @property
    def plan(self) -> str:
        if self.plan_key:
            return self.plan_key
        if self.billing and self.billing.plan_key:
            return self.billing.plan_key
        return DEFAULT_PLAN


@dataclass
class AccessDecision:
    """Outcome of a feature check."""

    allowed: bool
    blocked: bool = False
    reason: str | None = None
    upsell_message: UpsellMessage | None = None
    upgrade_url: str | None = None
    error: str | None = None
    remaining: int | None = None


def _as_profile(profile: AgencyProfile | Mapping[str, Any] | None) -> AgencyProfile | None:
    if profile is None or isinstance(profile, AgencyProfile):
        return profile
    if isinstance(profile, Mapping):
        return AgencyProfile.model_validate(dict(profile))
    return None


def validate_agency_profile(profile: AgencyProfile | None) -> list[str]:
    if profile is None:
        return ["agency_profile is required"]
    checks = []
    if profile.subscription_status:
        checks.append(
            (validate_subscription_status(profile.subscription_status), "subscription_status")
        )
    if profile.plan_key:
        checks.append((validate_plan_key(profile.plan_key), "plan_key"))
    return collect_errors(checks)


class FeatureGate:
    """Plan-based feature access checks.

    Args:
        matrix: Feature matrix; defaults to the built-in one.
    """

    def __init__(self, matrix: FeatureMatrix | None = None) -> None:
        self.matrix = matrix or FeatureMatrix()

    def check_feature_access(
        self, profile: AgencyProfile | Mapping[str, Any] | None, feature: str
    ) -> AccessDecision:
        """Check whether ``profile`` may use ``feature``.

        Args:
            profile: Agency subscription data.
            feature: Feature key such as ``ocr_parsing``.

        Returns:
            An allowed decision, or a denial with an upsell message.
        """
        agency = _as_profile(profile)
        errors = validate_agency_profile(agency)
        if errors:
            return AccessDecision(
                allowed=False,
                error="; ".join(errors),
                upsell_message=self.matrix.upsell_for("default"),
            )

        status = agency.status
        if status in BLOCKED_STATUSES:
            logger.info("Feature %s blocked: subscription %s", feature, status)
            return AccessDecision(
                allowed=False,
                blocked=True,
                reason=status,
                upsell_message=self.matrix.blocked_message,
                upgrade_url=BILLING_URL,
            )

        if agency.plan in self.matrix.features.get(feature, ()):
            return AccessDecision(allowed=True)

        return AccessDecision(
            allowed=False,
            upsell_message=self.matrix.upsell_for(feature),
            upgrade_url=SALES_URL if feature in self.matrix.sales_features else BILLING_URL,
        )

    def get_upsell_message(self, feature: str, locale: str = "en") -> str:
        return self.matrix.upsell_for(feature).for_locale(locale)

    def get_plan_limits(self, plan_key: str) -> PlanLimits:
        return self.matrix.plan_limits.get(plan_key) or self.matrix.plan_limits[DEFAULT_PLAN]

    def get_features_for_plan(self, plan_key: str) -> list[str]:
        return [f for f, plans in self.matrix.features.items() if plan_key in plans]

    def can_create_group(
        self, profile: AgencyProfile | Mapping[str, Any], current_group_count: int = 0
    ) -> AccessDecision:
        """Check the group quota, deferring to ``multi_group`` once it is used up."""
        decision = self.check_feature_access(profile, "single_group")
        if not decision.allowed:
            return decision

        agency = _as_profile(profile)
        max_groups = self.get_plan_limits(agency.plan).max_groups
        if max_groups is not None and current_group_count >= max_groups:
            return self.check_feature_access(agency, "multi_group")

        remaining = None if max_groups is None else max_groups - current_group_count
        return AccessDecision(allowed=True, remaining=remaining)


def is_subscription_active(profile: AgencyProfile | Mapping[str, Any]) -> bool:
    agency = _as_profile(profile)
    return agency is not None and agency.status in ACTIVE_STATUSES


def check_feature_access(
    profile: AgencyProfile | Mapping[str, Any] | None, feature: str
) -> AccessDecision:
    """Check feature access against the built-in feature matrix."""
    return FeatureGate().check_feature_access(profile, feature)
