"""
Reminder digest — a plain-text summary of deadline alerts grouped by
responsible party, ready to paste into an email or chat message.
"""

from __future__ import annotations

from typing import Optional

from jinja2 import BaseLoader, Environment

from evidence_bank.tracker.alerts import Alert, AlertEngine


DIGEST_TEMPLATE = """\
Evidence request reminder — {{ today.strftime('%d %B %Y') }}
Alert threshold: {{ threshold }} day(s)
Overdue: {{ counts.overdue }} | Approaching: {{ counts.approaching }}

{% if not groups %}
No open deadlines need attention.
{% else %}
{% for party, alerts in groups %}
{{ party }}
{% for alert in alerts %}
  - {{ alert.request_id }} [{{ alert.channel.value }}] {{ alert.description or '(no description)' }}
    {{ alert.message }}
{% endfor %}

{% endfor %}
{% endif %}
"""


class DigestGenerator:
    """
    Render a reminder digest for the alerts of a store.

    Usage:
        text = DigestGenerator().render(AlertEngine(store))
    """

    def __init__(self, template: str = DIGEST_TEMPLATE) -> None:
        self._jinja_env = Environment(
            loader=BaseLoader(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self._template = self._jinja_env.from_string(template)

    def render(self, engine: AlertEngine, include_compact: bool = False) -> str:
        alerts = engine.check_both_channels() if include_compact else engine.check_all()
        return self._template.render(
            today=engine.engine.today,
            threshold=engine.threshold,
            counts=engine.counts(),
            groups=group_by_party(alerts),
        )


def group_by_party(alerts: list[Alert], unassigned: Optional[str] = None) -> list[tuple[str, list[Alert]]]:
    """Group alerts by responsible party, keeping the alert order inside each group."""
    fallback = unassigned or "Unassigned"
    groups: dict[str, list[Alert]] = {}
    for alert in alerts:
        groups.setdefault(alert.responsible_party or fallback, []).append(alert)
    return sorted(groups.items(), key=lambda kv: kv[0].lower())
