import html
import requests
from decimal import Decimal

from rastuci import config
from rastuci.utils.logs import get_logger

logger = get_logger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class OrderNotifier:
    def __init__(self, api_key: str = None, sender: str = None, session: requests.Session = None):
        self._api_key = api_key
        self._sender = sender
        self.session = session or requests.Session()

    @property
    def api_key(self) -> str:
        return self._api_key if self._api_key is not None else config.RESEND_API_KEY

    @property
    def sender(self) -> str:
        return self._sender or config.EMAIL_FROM

    def send(self, to: str, subject: str, html: str) -> bool:
        """Send one email through Resend. Failures are logged, never raised."""
        if not self.api_key:
            logger.info("RESEND_API_KEY not configured, email skipped", extra={"subject": subject})
            return False
        if not to:
            logger.info("Email without recipient skipped", extra={"subject": subject})
            return False
        try:
            resp = self.session.post(
                RESEND_URL,
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                headers={"Authorization": "Bearer {0}".format(self.api_key)},
                timeout=config.HTTP_TIMEOUT,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error("Error sending email to %s: %s", to, e)
            return False
        return True

    def format_items(self, order) -> str:
        """HTML rows of the order lines plus totals."""
        lines = []
        for item in order.items:
            desc = html.escape(item.product_name)
            extra = html.escape(" / ".join(x for x in (item.size, item.color) if x))
            if extra:
                desc = "{0} ({1})".format(desc, extra)
            lines.append("<li>{0} × {1} = ${2:.2f}</li>".format(desc, item.qty, Decimal(str(item.line_total))))
        lines.append("</ul><p>Envío: ${0:.2f}</p>".format(Decimal(str(order.shipping_cost or 0))))
        lines.append("<p><b>Total: ${0:.2f}</b></p>".format(Decimal(str(order.total or 0))))
        return "<ul>" + "".join(lines)

    def order_url(self, order) -> str:
        return "{0}/orders/{1}?token={2}".format(config.APP_URL.rstrip("/"), order.id, order.access_token)

    def notify_order_created(self, order) -> bool:
        """Order confirmation for the customer."""
        msg = [
            "<h2>¡Gracias por tu compra, {0}!</h2>".format(html.escape(order.customer_name or "")),
            "<p>Recibimos tu pedido <b>#{0}</b>.</p>".format(order.id),
            self.format_items(order),
        ]
        if order.tracking_number:
            msg.append("<p>Número de seguimiento: <b>{0}</b></p>".format(html.escape(order.tracking_number)))
        msg.append('<p><a href="{0}">Ver pedido</a></p>'.format(html.escape(self.order_url(order))))
        return self.send(order.customer_email, "Confirmación de pedido #{0}".format(order.id), "\n".join(msg))

    def notify_order_delivered(self, order) -> bool:
        msg = [
            "<h2>¡Tu pedido #{0} fue entregado!</h2>".format(order.id),
            "<p>Esperamos que lo disfrutes. Gracias por elegir Rastuci.</p>",
            '<p><a href="{0}">Ver pedido</a></p>'.format(html.escape(self.order_url(order))),
        ]
        return self.send(order.customer_email, "Pedido #{0} entregado".format(order.id), "\n".join(msg))


# global instance
notifier = OrderNotifier()
