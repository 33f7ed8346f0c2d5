# ================================================================
# services/email_templates.py — Add-on expiration email templates
# ================================================================
from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Any, Dict, Callable

from models.models import AddOnType

TEMPLATE_WARNING_DAY7 = "addon_warning_day7"
TEMPLATE_WARNING_DAY3 = "addon_warning_day3"
TEMPLATE_WARNING_DAY1 = "addon_warning_day1"
TEMPLATE_EXPIRED = "addon_expired"

REMINDER_TEMPLATES = {
    "day7": TEMPLATE_WARNING_DAY7,
    "day3": TEMPLATE_WARNING_DAY3,
    "day1": TEMPLATE_WARNING_DAY1,
}


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


# ------------------------
# Add-on wording
# ------------------------
ADDON_FRIENDLY_NAMES = {
    AddOnType.EXTRA_WORKSPACE.value: "Extra Workspace",
    AddOnType.EXTRA_FUNNEL.value: "Extra Website",
    AddOnType.EXTRA_PAGE.value: "Extra Page",
    AddOnType.EXTRA_SUBDOMAIN.value: "Extra Subdomain",
    AddOnType.EXTRA_CUSTOM_DOMAIN.value: "Extra Custom Domain",
    AddOnType.EXTRA_ADMIN_SEAT.value: "Extra Admin",
}

WHAT_WILL_HAPPEN = {
    AddOnType.EXTRA_WORKSPACE.value: "The extra workspace and all its websites will be disabled.",
    AddOnType.EXTRA_FUNNEL.value: "Excess websites beyond your plan limit will be archived.",
    AddOnType.EXTRA_PAGE.value: "Excess pages beyond your plan limit will be unpublished.",
    AddOnType.EXTRA_SUBDOMAIN.value: "Excess subdomains beyond your plan limit will be deleted.",
    AddOnType.EXTRA_CUSTOM_DOMAIN.value: "Excess custom domains beyond your plan limit will be deleted.",
    AddOnType.EXTRA_ADMIN_SEAT.value: "Excess team members beyond your plan limit will be removed.",
}


def get_addon_friendly_name(addon_type: str) -> str:
    return ADDON_FRIENDLY_NAMES.get(addon_type, addon_type)


def get_what_will_happen_text(addon_type: str) -> str:
    return WHAT_WILL_HAPPEN.get(addon_type, "Resources will be adjusted to match your plan limits.")


def get_what_happened_text(addon_type: str, resources_affected: Dict[str, int]) -> str:
    """Describe what the reconciliation actually changed."""
    workspaces = resources_affected.get("workspaces", 0)
    funnels = resources_affected.get("funnels", 0)
    pages = resources_affected.get("pages", 0)
    domains = resources_affected.get("domains", 0)
    members = resources_affected.get("members", 0)

    if addon_type == AddOnType.EXTRA_WORKSPACE.value:
        return f"{workspaces} workspace(s) and {funnels} website(s) have been disabled."
    if addon_type == AddOnType.EXTRA_FUNNEL.value:
        return f"{funnels} excess website(s) have been archived."
    if addon_type == AddOnType.EXTRA_PAGE.value:
        return f"{pages} excess page(s) have been unpublished."
    if addon_type in (AddOnType.EXTRA_SUBDOMAIN.value, AddOnType.EXTRA_CUSTOM_DOMAIN.value):
        return f"{domains} excess domain(s) have been deleted."
    if addon_type == AddOnType.EXTRA_ADMIN_SEAT.value:
        return f"{members} excess team member(s) have been removed."
    return "Your account has been adjusted to match your plan limits."


def format_date(value: datetime) -> str:
    """January 15, 2025"""
    return f"{value:%B} {value.day}, {value.year}"


# ------------------------
# Shared layout
# ------------------------
def _wrap_html(app_name: str, heading: str, body: str, button_label: str, button_url: str) -> str:
    return f"""
    <div style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <h2>{heading}</h2>
        {body}
        <p style="text-align: center; margin: 20px 0;">
            <a href="{button_url}" style="
                background-color: #4F46E5;
                color: white;
                padding: 12px 28px;
                text-decoration: none;
                border-radius: 6px;
                font-weight: bold;
                display: inline-block;
            ">{button_label}</a>
        </p>
        <hr style="border:none; border-top:1px solid #eee; margin: 24px 0;">
        <p>Best regards,<br><strong>The {app_name} Team</strong></p>
    </div>
    """


def _quantity_suffix(quantity: int) -> str:
    return f" ({quantity})" if quantity and quantity > 1 else ""


def _render_warning(days_label: str, subject: str, data: Dict[str, Any]) -> RenderedEmail:
    app_name = data.get("app_name", "Pagecraft")
    name = escape(data["recipient_name"])
    addon_name = escape(data["addon_type_name"]) + _quantity_suffix(data.get("quantity", 1))
    expires = format_date(data["expiration_date"])
    what = escape(data["what_will_happen"])
    renewal_url = data["renewal_url"]

    body = f"""
        <p>Hello <strong>{name}</strong>,</p>
        <p>Your <strong>{addon_name}</strong> add-on expires {days_label}, on <strong>{expires}</strong>.</p>
        <p><strong>What will happen:</strong> {what}</p>
        <p>Renew the add-on before it expires to keep everything running.</p>
    """
    html = _wrap_html(app_name, "⏰ Your add-on is expiring", body, "Renew Add-on", renewal_url)

    text = f"""
Hello {data['recipient_name']},

Your {data['addon_type_name']}{_quantity_suffix(data.get('quantity', 1))} add-on expires {days_label}, on {expires}.

What will happen:
{data['what_will_happen']}

Renew here: {renewal_url}

Best regards,
The {app_name} Team
    """.strip()
    return RenderedEmail(subject=subject, html=html, text=text)


def render_warning_day7(data: Dict[str, Any]) -> RenderedEmail:
    return _render_warning("in 7 days", "Add-on Expiring in 7 Days", data)


def render_warning_day3(data: Dict[str, Any]) -> RenderedEmail:
    return _render_warning("in 3 days", "Urgent: Add-on Expiring in 3 Days", data)


def render_warning_day1(data: Dict[str, Any]) -> RenderedEmail:
    return _render_warning("tomorrow", "Final Warning: Add-on Expires Tomorrow", data)


def render_expired(data: Dict[str, Any]) -> RenderedEmail:
    app_name = data.get("app_name", "Pagecraft")
    name = escape(data["recipient_name"])
    addon_name = escape(data["addon_type_name"]) + _quantity_suffix(data.get("quantity", 1))
    expired_on = format_date(data["expiration_date"])
    what = escape(data["what_happened"])
    renewal_url = data["renewal_url"]

    body = f"""
        <p>Hello <strong>{name}</strong>,</p>
        <p>Your <strong>{addon_name}</strong> add-on expired on <strong>{expired_on}</strong>.</p>
        <p><strong>What has changed:</strong> {what}</p>
        <p>To restore access to these features, renew this add-on at any time.</p>
    """
    html = _wrap_html(app_name, "Your add-on has expired", body, "Renew Add-on", renewal_url)

    text = f"""
Hello {data['recipient_name']},

Your {data['addon_type_name']}{_quantity_suffix(data.get('quantity', 1))} add-on expired on {expired_on}.

What has changed:
{data['what_happened']}

To restore access to these features, renew this add-on at any time: {renewal_url}

Best regards,
The {app_name} Team
    """.strip()
    return RenderedEmail(subject="Add-on Expired", html=html, text=text)


TEMPLATES: Dict[str, Callable[[Dict[str, Any]], RenderedEmail]] = {
    TEMPLATE_WARNING_DAY7: render_warning_day7,
    TEMPLATE_WARNING_DAY3: render_warning_day3,
    TEMPLATE_WARNING_DAY1: render_warning_day1,
    TEMPLATE_EXPIRED: render_expired,
}


def render_template(template_id: str, data: Dict[str, Any]) -> RenderedEmail:
    try:
        renderer = TEMPLATES[template_id]
    except KeyError:
        raise ValueError(f"Unknown email template: {template_id}")
    return renderer(data)
