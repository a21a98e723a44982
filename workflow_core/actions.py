"""
Action catalogue and per-type action configuration models.

An ActionItem stores its configuration as an opaque map so that snapshots
written by older editors round-trip untouched. `parse_action_config` turns
that map into the model registered for the action type, falling back to
`UnknownActionConfig` for unregistered or legacy types.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ActionConfig(BaseModel):
    """Base class for typed action configuration."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class SendEmailConfig(ActionConfig):
    from_address: str = Field(default="", alias="from")
    to: str = ""
    subject: str = ""
    html_body: str = ""
    tag: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)
    items_id: Optional[str] = None
    campaigns_id: Optional[str] = None


class SendSmsConfig(ActionConfig):
    to: str = ""
    message: str = ""


class ModalButton(ActionConfig):
    id: str
    text: str = ""
    value: str = ""
    font_color: str = ""
    background_color: str = ""


class ShowModalConfig(ActionConfig):
    message: str = ""
    buttons: list[ModalButton] = Field(default_factory=list)


class AddNoteConfig(ActionConfig):
    note: str = ""


class TagConfig(ActionConfig):
    tag: str = ""


class UpdateFieldConfig(ActionConfig):
    field: str = ""
    value: str = ""


class RedirectConfig(ActionConfig):
    url: str = ""


class WebhookConfig(ActionConfig):
    url: str = ""
    method: str = "POST"
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[str] = None


class UnknownActionConfig(ActionConfig):
    """Configuration for action types without a registered model; keeps every key."""
    model_config = ConfigDict(extra="allow")


ACTION_CONFIG_MODELS: dict[str, type[ActionConfig]] = {
    "send_email": SendEmailConfig,
    "send_sms": SendSmsConfig,
    "show_modal": ShowModalConfig,
    "add_note": AddNoteConfig,
    "add_tag": TagConfig,
    "remove_tag": TagConfig,
    "update_field": UpdateFieldConfig,
    "redirect": RedirectConfig,
    "webhook": WebhookConfig,
    "api_call": WebhookConfig,
}


# (value, label, category) for every action the editor offers
ACTION_TYPES: list[tuple[str, str, str]] = [
    ("send_email", "Send Email", "communication"),
    ("send_sms", "Send SMS", "communication"),
    ("push_notification", "Push Notification", "communication"),
    ("in_app_message", "In-App Message", "communication"),
    ("create_task", "Create Task", "task_management"),
    ("assign_task", "Assign Task", "task_management"),
    ("add_note", "Add Note", "task_management"),
    ("notify_admin", "Notify Admin", "task_management"),
    ("update_field", "Update Field", "data_management"),
    ("add_tag", "Add Tag", "data_management"),
    ("remove_tag", "Remove Tag", "data_management"),
    ("update_status", "Update Status", "data_management"),
    ("show_form", "Show Form", "forms"),
    ("show_modal", "Show Modal", "forms"),
    ("redirect", "Redirect", "forms"),
    ("stripe_checkout", "Stripe Checkout", "payments"),
    ("create_invoice", "Create Invoice", "payments"),
    ("send_receipt", "Send Receipt", "payments"),
    ("refund", "Process Refund", "payments"),
    ("webhook", "Call Webhook", "integrations"),
    ("api_call", "API Call", "integrations"),
    ("slack_message", "Send to Slack", "integrations"),
]


def parse_action_config(action_type: str, config: dict[str, Any]) -> ActionConfig:
    """Parse a raw config map into the model registered for `action_type`."""
    model = ACTION_CONFIG_MODELS.get(action_type, UnknownActionConfig)
    return model.model_validate(config or {})
