# bakery/utils/messages.py
from ..config import Config
from ..models.order import Order, OrderStatus
from .formatters import format_datetime, format_price

# Display only; business rules never read these
STATUS_LABELS = {
    OrderStatus.PENDING: "En attente",
    OrderStatus.CONFIRMED: "Confirmée",
    OrderStatus.PREPARING: "En préparation",
    OrderStatus.READY: "Prête",
    OrderStatus.COMPLETED: "Terminée",
    OrderStatus.CANCELLED: "Annulée",
}

STATUS_EMOJI = {
    OrderStatus.PENDING: "⏳",
    OrderStatus.CONFIRMED: "✅",
    OrderStatus.PREPARING: "👨‍🍳",
    OrderStatus.READY: "🛍",
    OrderStatus.COMPLETED: "📦",
    OrderStatus.CANCELLED: "❌",
}

def status_label(status) -> str:
    try:
        return STATUS_LABELS[OrderStatus(status)]
    except ValueError:
        return str(status)

class Messages:
    @staticmethod
    def order_created_sms(order: Order) -> str:
        """SMS sent to the customer right after checkout"""
        return (
            f"Bonjour {order.customer_name} !\n"
            f"Commande enregistree : {order.order_number}\n"
            f"Suivez-la sur :\n"
            f"{Config.APP_URL}/mes-commandes\n"
            f"Entrez votre tel + {order.order_number}\n"
            f"Merci ! {Config.STORE_NAME}"
        )

    @staticmethod
    def status_changed_sms(order: Order) -> str:
        if order.status == OrderStatus.READY:
            if order.is_delivery:
                detail = "Elle est prete et part en livraison."
            else:
                detail = "Elle est prete, vous pouvez venir la retirer."
        elif order.status == OrderStatus.CANCELLED:
            detail = "Elle a ete annulee. Contactez-nous pour plus d'informations."
        else:
            detail = f"Nouveau statut : {status_label(order.status)}."
        return (
            f"Bonjour {order.customer_name},\n"
            f"Commande {order.order_number} : {detail}\n"
            f"{Config.STORE_NAME}"
        )

    @staticmethod
    def format_order(order: Order) -> str:
        """Order summary for the admin channel"""
        items_text = "\n".join([
            f"- {item.quantity}x {item.product_name}: {format_price(item.subtotal)}"
            for item in order.items
        ])
        emoji = STATUS_EMOJI.get(order.status, "")
        lines = [
            f"🛍 Commande {order.order_number}",
            "------------------",
            items_text,
            "------------------",
            f"💰 Total : {format_price(order.total)}",
            f"📊 Statut : {emoji} {status_label(order.status)}",
            f"👤 {order.customer_name} ({order.customer_phone})",
        ]
        if order.is_delivery:
            lines.append(f"🚚 Livraison : {order.delivery_address}")
        if order.payment:
            lines.append(f"💳 Paiement : {order.payment.method.value} / {order.payment.status.value}")
        if order.created_at:
            lines.append(f"🕒 {format_datetime(order.created_at)}")
        return "\n".join(lines)

    @staticmethod
    def new_order_admin(order: Order) -> str:
        return f"🔔 Nouvelle commande\n\n{Messages.format_order(order)}"

    @staticmethod
    def status_changed_admin(order: Order, previous) -> str:
        return (
            f"🔄 Commande {order.order_number} : "
            f"{status_label(previous)} → {status_label(order.status)}"
            + (f"\n📝 {order.admin_notes}" if order.admin_notes else "")
        )
