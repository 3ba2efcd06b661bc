"""
Copy for the three inactivity nudges.

Bodies carry an {{APP_URL}} placeholder; render_nudge() fills it with the
project's app URL.
"""
from html import escape
from typing import Dict, NamedTuple

from app.core.trial_defaults import FALLBACK_PRODUCT_NAME

APP_URL_PLACEHOLDER = "{{APP_URL}}"

_SUBJECTS: Dict[str, str] = {
    "nudge1": "Still on your {name} trial?",
    "nudge2": "Your {name} trial is idling",
    "nudge3": "Before your {name} trial fully goes cold…",
}

_INTROS: Dict[str, str] = {
    "nudge1": "You started a trial with {name}, but you haven’t really used it yet.",
    "nudge2": "Your {name} trial is sitting there without much action.",
    "nudge3": "Your trial with {name} is about to fade out completely.",
}


class RenderedNudge(NamedTuple):
    subject: str
    html: str
    text: str


def get_nudge_subject(nudge: str, product_name: str) -> str:
    name = product_name or FALLBACK_PRODUCT_NAME
    template = _SUBJECTS.get(nudge, "{name} trial reminder")
    return template.format(name=name)


def get_nudge_body_html(nudge: str, product_name: str) -> str:
    name = escape(product_name or FALLBACK_PRODUCT_NAME)
    intro = _INTROS.get(nudge, _INTROS["nudge3"]).format(name=f"<strong>{name}</strong>")

    return f"""
  <div style="background-color: #020617; padding: 24px; font-family: system-ui, -apple-system, BlinkMacSystemFont, 'SF Pro Text', sans-serif; color: #e5e7eb;">
    <div style="max-width: 520px; margin: 0 auto; border-radius: 18px; border: 1px solid #1f2937; background: radial-gradient(circle at top left, #0f172a 0, #020617 55%); padding: 20px 20px 24px;">
      <div style="font-size: 11px; letter-spacing: 0.18em; text-transform: uppercase; color: #64748b; margin-bottom: 8px;">
        TrialRescue · for {name}
      </div>
      <h1 style="font-size: 18px; line-height: 1.4; color: #f9fafb; margin: 0 0 10px;">
        Don’t let your {name} trial go cold
      </h1>
      <p style="font-size: 14px; line-height: 1.7; color: #cbd5f5; margin: 0 0 10px;">
        {intro}
      </p>
      <p style="font-size: 13px; line-height: 1.7; color: #9ca3af; margin: 0 0 12px;">
        Most trials quietly die because people get busy, not because the product is bad.
        Take 5 minutes to jump back in, run one meaningful action, and see if {name} is worth keeping.
      </p>
      <p style="font-size: 13px; line-height: 1.7; color: #9ca3af; margin: 0 0 20px;">
        When you’re ready, click below to go straight back into your {name} workspace.
      </p>
      <a href="{APP_URL_PLACEHOLDER}" style="display: inline-block; font-size: 14px; padding: 9px 18px; border-radius: 9999px; background-color: #06b6d4; color: #020617; text-decoration: none; font-weight: 600;">
        Open my {name} trial
      </a>
      <p style="font-size: 11px; line-height: 1.7; color: #6b7280; margin-top: 24px;">
        This reminder was sent automatically on behalf of <strong>{name}</strong>
        because you started a trial and haven’t been active recently.
      </p>
    </div>
  </div>
"""


def get_nudge_body_text(nudge: str, product_name: str) -> str:
    name = product_name or FALLBACK_PRODUCT_NAME
    intro = _INTROS.get(nudge, _INTROS["nudge3"]).format(name=name)

    return f"""
Don’t let your {name} trial go cold.

{intro}

Most trials quietly die because people get busy, not because the product is bad.
Take 5 minutes to jump back in, run one meaningful action, and see if {name} is worth keeping.

Open my trial: {APP_URL_PLACEHOLDER}

This reminder was sent automatically on behalf of {name} because you started a trial and haven’t been active recently.
"""


def render_nudge(nudge: str, product_name: str, app_url: str) -> RenderedNudge:
    return RenderedNudge(
        subject=get_nudge_subject(nudge, product_name),
        html=get_nudge_body_html(nudge, product_name).replace(APP_URL_PLACEHOLDER, escape(app_url, quote=True)),
        text=get_nudge_body_text(nudge, product_name).replace(APP_URL_PLACEHOLDER, app_url),
    )
