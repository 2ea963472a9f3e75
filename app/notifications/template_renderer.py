"""Localized push notification templates.

Templates are keyed by (kind, language). The default language is treated as untranslated:
callers' own title and body strings are sent as-is, and only other languages are looked up.
Placeholders use the ``{{key}}`` form and are filled from the request data map.
"""

from __future__ import annotations

import dataclasses
import re

from app.notifications.contracts import NotificationKind, NotificationRequest, NotificationTemplate

DEFAULT_LANGUAGE = "en"

_PLACEHOLDER_RE = re.compile(r"\{\{([a-zA-Z0-9_]+)\}\}")


def _template(kind: NotificationKind, language: str, title: str, body: str) -> NotificationTemplate:
  return NotificationTemplate(kind=kind, language=language, title_template=title, body_template=body)


TEMPLATES: dict[tuple[NotificationKind, str], NotificationTemplate] = {
  (NotificationKind.WEATHER_ALERT, "hi"): _template(NotificationKind.WEATHER_ALERT, "hi", "मौसम चेतावनी", "आपकी यात्रा के लिए मौसम की चेतावनी: {{description}}"),
  (NotificationKind.ITINERARY_UPDATE, "hi"): _template(NotificationKind.ITINERARY_UPDATE, "hi", "यात्रा अपडेट", "आपका यात्रा कार्यक्रम अपडेट किया गया है"),
  (NotificationKind.WEATHER_ALERT, "bn"): _template(NotificationKind.WEATHER_ALERT, "bn", "আবহাওয়া সতর্কতা", "আপনার ভ্রমণের জন্য আবহাওয়া সতর্কতা: {{description}}"),
  (NotificationKind.ITINERARY_UPDATE, "bn"): _template(NotificationKind.ITINERARY_UPDATE, "bn", "ভ্রমণ আপডেট", "আপনার ভ্রমণসূচি আপডেট করা হয়েছে"),
  (NotificationKind.WEATHER_ALERT, "ta"): _template(NotificationKind.WEATHER_ALERT, "ta", "வானிலை எச்சரிக்கை", "உங்கள் பயணத்திற்கான வானிலை எச்சரிக்கை: {{description}}"),
  (NotificationKind.ITINERARY_UPDATE, "ta"): _template(NotificationKind.ITINERARY_UPDATE, "ta", "பயண புதுப்பிப்பு", "உங்கள் பயணத் திட்டம் புதுப்பிக்கப்பட்டது"),
  (NotificationKind.WEATHER_ALERT, "mr"): _template(NotificationKind.WEATHER_ALERT, "mr", "हवामान इशारा", "तुमच्या प्रवासासाठी हवामान इशारा: {{description}}"),
  (NotificationKind.ITINERARY_UPDATE, "mr"): _template(NotificationKind.ITINERARY_UPDATE, "mr", "प्रवास अपडेट", "तुमचा प्रवास कार्यक्रम अपडेट करण्यात आला आहे"),
}


def resolve_template(kind: NotificationKind, language: str) -> NotificationTemplate | None:
  """Return the template for the exact (kind, language) pair, if one exists."""
  return TEMPLATES.get((kind, language))


def render_text(raw_template: str, data: dict[str, str]) -> str:
  """Replace {{key}} placeholders with data values, leaving unknown keys verbatim."""

  def _replace(match: re.Match[str]) -> str:
    key = match.group(1)
    if key not in data:
      return match.group(0)
    return str(data[key])

  return _PLACEHOLDER_RE.sub(_replace, raw_template)


def apply_template(template: NotificationTemplate, data: dict[str, str]) -> tuple[str, str]:
  """Render a template into a (title, body) pair."""
  return render_text(template.title_template, data), render_text(template.body_template, data)


def localize_request(request: NotificationRequest, language: str, *, default_language: str = DEFAULT_LANGUAGE) -> NotificationRequest:
  """Return a request localized for the language, or the original request when no translation applies."""
  if not language or language == default_language:
    return request

  template = resolve_template(request.kind, language)
  if template is None:
    return request

  title, body = apply_template(template, request.data)
  return dataclasses.replace(request, title=title, body=body, language=language)
