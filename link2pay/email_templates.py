"""
HTML Email Templates
Inline-styled HTML for retention, drip campaign and growth application emails
"""

import re
from typing import Optional

from .config import APP_URL

# Link2Pay brand colors
THEME = {
    "primary": "#4C9F70",
    "primary_light": "#f0f8f4",
    "background": "#f8fafc",
    "text_primary": "#333333",
    "text_muted": "#666666",
    "border": "#eeeeee",
}

BUTTON_STYLE = (
    f"background: {THEME['primary']}; color: white; padding: 12px 24px; "
    "text-decoration: none; border-radius: 6px; display: inline-block;"
)

KEYCAP_LINE = re.compile(r"^[1-9]️?⃣")
CTA_LINE = re.compile(r"👉 (https?://\S+)")


def get_base_template(title: str, content: str, footer: Optional[str] = None) -> str:
    """Base HTML wrapper for all emails"""
    footer_html = (
        f'<p style="color: {THEME["text_muted"]}; font-size: 14px; margin-top: 30px;">{footer}</p>'
        if footer
        else ""
    )
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{title}</title>
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: {THEME['text_primary']}; background: {THEME['background']};">
  <div style="max-width: 600px; margin: 0 auto; background: #ffffff; padding: 20px;">
    {content}
    {footer_html}
  </div>
</body>
</html>"""


def button(url: str, label: str) -> str:
    return f'<p style="margin: 20px 0;"><a href="{url}" style="{BUTTON_STYLE} font-weight: bold;">{label}</a></p>'


def convert_campaign_text_to_html(text: str) -> str:
    """
    Turn a plain-text drip template into HTML:
    "👉 <url>" becomes a CTA button, lines ending in ":" become headings,
    keycap-numbered lines (1️⃣ ...) become paragraphs, other lines are joined with <br>.
    """
    parts = []
    for line in text.split("\n"):
        stripped = line.strip()
        cta = CTA_LINE.search(stripped)
        if cta:
            parts.append(button(cta.group(1), "Get Started Now →"))
        elif stripped.endswith(":"):
            parts.append(f'<h3 style="color: #333; margin: 20px 0 10px 0;">{stripped}</h3>')
        elif KEYCAP_LINE.match(stripped):
            parts.append(f'<p style="margin: 8px 0; padding-left: 10px;">{stripped}</p>')
        else:
            parts.append(f"{line}<br>")
    return "".join(parts)


RETENTION_TEMPLATES = {
    "active": {
        "subject": "You're crushing it! 🔥",
        "title": "🔥 You're in the top 10% of sellers this week! Keep it up 💪",
        "body": "<p>Your hard work is paying off. Keep sending those invoices!</p>",
        "cta": None,
    },
    "at_risk": {
        "subject": "Your customers might be waiting...",
        "title": "Hey 👋 noticed you haven't sent an invoice lately",
        "body": "<p>Your customers might be waiting! Send one today and keep the momentum going.</p>",
        "cta": ("/invoice/quick-start", "Send Invoice Now"),
    },
    "dormant": {
        "subject": "We miss you at Link2Pay 😢",
        "title": "We miss you 😢 Ready to make another sale?",
        "body": "<p>Your store is ready and waiting for you.</p>",
        "cta": ("", "Log In Now"),
    },
}


def retention_email_template(tag: str) -> tuple[str, str]:
    """Returns (subject, html) for a retention tag"""
    template = RETENTION_TEMPLATES[tag]
    content = f"<h1>{template['title']}</h1>{template['body']}"
    if template["cta"]:
        path, label = template["cta"]
        content += f'<p><a href="{APP_URL}{path}" style="{BUTTON_STYLE}">{label}</a></p>'
    content += "<p>Best regards,<br>The Link2Pay Team</p>"
    return template["subject"], get_base_template(template["subject"], content)


def format_zar(value: float) -> str:
    """R 12,500 style formatting, no decimals"""
    return f"R {round(value):,}"


def growth_application_template(
    business_name: str,
    owner_name: str,
    business_category: str,
    business_offer: str,
    monthly_revenue: float,
    growth_goals: str,
    business_location: str,
) -> str:
    """Field values must already be HTML-escaped"""
    label_style = f"font-weight: bold; color: {THEME['primary']};"

    def field(label: str, value: str, highlight: bool = False) -> str:
        style = (
            f"margin-bottom: 15px; background-color: {THEME['primary_light']}; padding: 10px; "
            f"border-left: 4px solid {THEME['primary']};"
            if highlight
            else "margin-bottom: 15px;"
        )
        return (
            f'<div style="{style}"><div style="{label_style}">{label}</div>'
            f'<div style="margin-top: 5px;">{value}</div></div>'
        )

    category = business_category or ""
    content = f"""
    <div style="background-color: {THEME['primary']}; color: white; padding: 20px; text-align: center;">
      <h1>🚀 New Link2Pay Growth Application</h1>
    </div>
    <p>A new business has applied for growth services through Link2Pay. Here are the details:</p>
    {field("🏢 Business Name:", business_name)}
    {field("👤 Owner Name:", owner_name)}
    {field("📊 Business Category:", category[:1].upper() + category[1:])}
    {field("📍 Business Location:", business_location)}
    {field("💰 Current Monthly Revenue:", f"<strong>{format_zar(monthly_revenue)}</strong>", highlight=True)}
    {field("🛍️ What does your business offer?", business_offer)}
    {field("🎯 Growth Goals:", growth_goals)}
    <hr style="margin: 30px 0; border: 1px solid {THEME['border']};">
    <p><strong>Next Steps:</strong></p>
    <ul>
      <li>Review the application within 48 hours</li>
      <li>Contact the business owner to discuss growth opportunities</li>
      <li>Assess fit for marketing services and growth programs</li>
    </ul>
    """
    return get_base_template(
        "New Link2Pay Growth Application",
        content,
        footer="This application was submitted through the Link2Pay dashboard growth feature.",
    )
