"""
HTML templates for transactional emails.

Each builder returns ``(subject, html)``. Values coming from users are
escaped before interpolation.
"""

from datetime import datetime
from decimal import Decimal
from html import escape
from typing import Optional, Tuple

from andaya.config import settings
from andaya.utils.currency import format_number_es
from andaya.utils.dates import format_datetime_es

FOOTER_STYLE = (
    "color: #666; font-size: 14px; margin-top: 30px; padding-top: 20px; "
    "border-top: 1px solid #e0e0e0;"
)
BUTTON_STYLE = (
    "display: inline-block; background: {color}; color: white; padding: 14px 32px; "
    "text-decoration: none; border-radius: 6px; font-weight: 600; margin: 5px; font-size: 16px;"
)


def _layout(title: str, gradient: str, body: str, footer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: {gradient}; padding: 30px; border-radius: 10px 10px 0 0; text-align: center;">
    <h1 style="color: white; margin: 0; font-size: 24px;">{title}</h1>
  </div>
  <div style="background: white; padding: 30px; border: 1px solid #e0e0e0; border-top: none; border-radius: 0 0 10px 10px;">
    {body}
    <p style="{FOOTER_STYLE}">{footer}</p>
  </div>
</body>
</html>"""


def _field(label: str, value: str, value_style: str = "font-size: 16px;") -> str:
    return (
        f'<div style="margin: 15px 0;"><strong style="color: #666;">{label}:</strong><br>'
        f'<span style="{value_style}">{value}</span></div>'
    )


def _button(url: str, text: str, color: str) -> str:
    return f'<a href="{escape(url)}" style="{BUTTON_STYLE.format(color=color)}">{text}</a>'


def _bs(value) -> str:
    return f"Bs {format_number_es(value)}"


def app_url(path: str) -> str:
    return f"{settings.APP_PUBLIC_URL.rstrip('/')}{path}"


def reservation_approved_email(
    reservation_id: str,
    vehicle_name: str,
    renter_name: str,
    start_at: datetime,
    end_at: datetime,
    total_bs: Decimal,
    owner_whatsapp_url: Optional[str] = None,
) -> Tuple[str, str]:
    buttons = _button(app_url(f"/reservas/{reservation_id}"), "Ver detalles de la reserva", "#667eea")
    if owner_whatsapp_url:
        buttons += _button(owner_whatsapp_url, "💬 Contactar por WhatsApp", "#25D366")

    body = (
        f'<p style="font-size: 16px;">¡Hola {escape(renter_name)}!</p>'
        f'<p style="font-size: 16px;">Tu reserva fue aprobada por el propietario.</p>'
        f'<div style="background: #f8f9fa; padding: 20px; border-radius: 8px;">'
        f'<h2 style="margin-top: 0; color: #667eea; font-size: 20px;">{escape(vehicle_name)}</h2>'
        + _field("Retiro", format_datetime_es(start_at))
        + _field("Devolución", format_datetime_es(end_at))
        + _field("Total", _bs(total_bs), "font-size: 24px; color: #10b981; font-weight: bold;")
        + "</div>"
        f'<div style="text-align: center; margin: 30px 0;">{buttons}</div>'
        "<p>• Revisa las condiciones del vehículo al recibirlo<br>"
        "• Respeta la hora de devolución para evitar cargos por retraso</p>"
    )
    subject = f"¡Reserva aprobada! — {vehicle_name}"
    return subject, _layout(
        "¡Reserva aprobada!",
        "linear-gradient(135deg, #10b981 0%, #059669 100%)",
        body,
        "El equipo de AndaYa",
    )


def reservation_rejected_email(
    vehicle_name: str, renter_name: str, reason: str
) -> Tuple[str, str]:
    body = (
        f'<p style="font-size: 16px;">Hola {escape(renter_name)},</p>'
        f'<p style="font-size: 16px;">Lamentablemente tu solicitud para '
        f"<strong>{escape(vehicle_name)}</strong> no fue aprobada.</p>"
        + _field("Motivo", escape(reason))
        + f'<div style="text-align: center; margin: 30px 0;">'
        f'{_button(app_url("/explorar"), "Buscar otro vehículo", "#667eea")}</div>'
    )
    subject = f"Reserva no aprobada — {vehicle_name}"
    return subject, _layout(
        "Reserva no aprobada",
        "linear-gradient(135deg, #ef4444 0%, #b91c1c 100%)",
        body,
        "El equipo de AndaYa",
    )


def extension_request_email(
    owner_first_name: str,
    renter_name: str,
    vehicle_name: str,
    current_end_at: datetime,
    new_end_at: datetime,
    extension_cost_bs: Decimal,
) -> Tuple[str, str]:
    body = (
        f'<p style="font-size: 16px;">Hola {escape(owner_first_name)},</p>'
        f'<p style="font-size: 16px;">{escape(renter_name)} solicita extender su reserva:</p>'
        f'<div style="background: #f8f9fa; padding: 20px; border-radius: 8px;">'
        f'<h2 style="margin-top: 0; color: #f59e0b; font-size: 20px;">{escape(vehicle_name)}</h2>'
        + _field("Devolución actual", format_datetime_es(current_end_at))
        + _field(
            "Nueva devolución solicitada",
            format_datetime_es(new_end_at),
            "font-size: 16px; color: #f59e0b; font-weight: bold;",
        )
        + _field(
            "Costo adicional",
            _bs(extension_cost_bs),
            "font-size: 24px; color: #10b981; font-weight: bold;",
        )
        + "</div>"
        f'<div style="text-align: center; margin: 30px 0;">'
        f'{_button(app_url("/owner/reservas"), "Ver y Responder", "#10b981")}</div>'
    )
    subject = f"Solicitud de extensión — {vehicle_name}"
    return subject, _layout(
        "Solicitud de Extensión",
        "linear-gradient(135deg, #f59e0b 0%, #d97706 100%)",
        body,
        "Este correo fue enviado por AndaYa. Por favor responde lo antes posible.",
    )


def receipt_email(
    vehicle_name: str,
    subtotal_bs: Decimal,
    overage_hours: Decimal,
    late_fees_bs: Decimal,
    final_total_bs: Decimal,
) -> str:
    """Final receipt body shared by the renter and owner emails."""
    late_block = ""
    if overage_hours > 0:
        late_block = (
            '<div style="margin: 15px 0; padding: 15px; background: #fef3c7; border-radius: 6px;">'
            f'<strong style="color: #92400e;">Retraso ({overage_hours.normalize():f}h pasado el período de gracia):</strong><br>'
            f'<span style="font-size: 18px; color: #b45309;">{_bs(late_fees_bs)}</span></div>'
        )

    body = (
        '<p style="font-size: 16px;">Reserva completada</p>'
        '<div style="background: #f8f9fa; padding: 20px; border-radius: 8px;">'
        f'<h2 style="margin-top: 0; color: #667eea; font-size: 20px;">{escape(vehicle_name)}</h2>'
        + _field("Subtotal de alquiler", _bs(subtotal_bs), "font-size: 18px;")
        + late_block
        + _field(
            "Total Final",
            _bs(final_total_bs),
            "font-size: 28px; color: #667eea; font-weight: bold;",
        )
        + "</div>"
    )
    return _layout(
        "Recibo Final de Reserva",
        "linear-gradient(135deg, #667eea 0%, #764ba2 100%)",
        body,
        "Gracias por usar AndaYa. Este es tu recibo final.",
    )


def vehicle_rejected_email(owner_name: str, vehicle_title: str, reason: str) -> Tuple[str, str]:
    body = (
        f'<p style="font-size: 16px;">Hola {escape(owner_name)},</p>'
        f'<p style="font-size: 16px;">Tu vehículo <strong>{escape(vehicle_title)}</strong> '
        "no fue aprobado para publicarse.</p>"
        + _field("Motivo", escape(reason))
        + f'<div style="text-align: center; margin: 30px 0;">'
        f'{_button(app_url("/owner/vehiculos"), "Editar publicación", "#667eea")}</div>'
    )
    return "Tu vehículo no fue aprobado", _layout(
        "Publicación no aprobada",
        "linear-gradient(135deg, #ef4444 0%, #b91c1c 100%)",
        body,
        "El equipo de AndaYa",
    )
