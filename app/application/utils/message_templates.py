from __future__ import annotations

from dataclasses import dataclass

from app.domain.entities.notification import ComposedMessage, NotificationChannel, NotificationEvent


@dataclass(frozen=True)
class MessageContext:
    entry_id: str
    customer_name: str
    salon_name: str
    service_names: tuple[str, ...]
    arrival_minutes: int | None = None
    salon_address: str | None = None
    position: int | None = None


def _services_line(ctx: MessageContext) -> str:
    return ", ".join(ctx.service_names) if ctx.service_names else "your booking"


def _arrival_phrase(ctx: MessageContext) -> str:
    if ctx.arrival_minutes is None:
        return "soon"
    if ctx.arrival_minutes == 1:
        return "in 1 minute"
    return f"in {ctx.arrival_minutes} minutes"


def _headline(event: NotificationEvent, ctx: MessageContext) -> str:
    if event == NotificationEvent.REMINDER:
        return f"Reminder: you're in the queue at {ctx.salon_name}"
    return f"Your turn is coming up at {ctx.salon_name}!"


def _text_body(event: NotificationEvent, ctx: MessageContext) -> str:
    name = ctx.customer_name or "there"
    lines = [f"Hi {name}! {_headline(event, ctx)}"]
    lines.append(f"Services: {_services_line(ctx)}")
    lines.append(f"Please arrive {_arrival_phrase(ctx)}.")
    if ctx.salon_address:
        lines.append(f"Address: {ctx.salon_address}")
    return "\n".join(lines)


def compose_queue_message(
    event: NotificationEvent,
    channel: NotificationChannel,
    ctx: MessageContext,
) -> ComposedMessage:
    """Build the channel-specific message for a notify or reminder event."""
    if channel == NotificationChannel.EMAIL:
        return ComposedMessage(
            channel=channel,
            subject=_headline(event, ctx),
            body=_text_body(event, ctx),
        )

    if channel == NotificationChannel.PUSH:
        return ComposedMessage(
            channel=channel,
            subject=_headline(event, ctx),
            body=f"Please arrive {_arrival_phrase(ctx)}. Services: {_services_line(ctx)}",
            data={
                "queue_id": ctx.entry_id,
                "url": f"/queue?id={ctx.entry_id}",
                "tag": f"queue-{event.value}",
                "require_interaction": event == NotificationEvent.NOTIFY,
                "actions": [
                    {"action": "view", "title": "View Queue"},
                    {"action": "dismiss", "title": "Dismiss"},
                ],
            },
        )

    # sms, whatsapp and anything plain-text
    return ComposedMessage(channel=channel, body=_text_body(event, ctx))


def compose_otp_message(channel: NotificationChannel, code: str, ttl_minutes: int, name: str | None) -> ComposedMessage:
    greeting = f"Hi {name}, " if name else ""
    body = f"{greeting}your verification code is {code}. It expires in {ttl_minutes} minutes."
    if channel == NotificationChannel.EMAIL:
        return ComposedMessage(channel=channel, subject="Your verification code", body=body)
    return ComposedMessage(channel=channel, body=body)
