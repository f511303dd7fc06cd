from io import BytesIO
from typing import Iterable
from urllib.parse import quote  # RFC 5987
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from openpyxl import Workbook
from openpyxl.styles import Font

from rastuci.models.order import Order
from rastuci.utils.money import to_decimal

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

STATUS_LABELS_ES = {
    "PENDING": "Pendiente",
    "PENDING_PAYMENT": "Pagado",
    "PROCESSED": "Enviado",
    "DELIVERED": "Entregado",
}


def content_disposition_utf8(pretty_filename_utf8: str, fallback_ascii: str) -> str:
    """
    Content-Disposition with an ASCII fallback and the UTF-8 name per RFC 5987.
    Header values must be latin-1, so the UTF-8 name is percent-encoded.
    """
    return "attachment; filename=\"{fallback}\"; filename*=UTF-8''{utf8}".format(
        fallback=fallback_ascii.replace('"', ''),
        utf8=quote(pretty_filename_utf8, safe="")
    )


def _fmt(value) -> str:
    return "$ {0:,.2f}".format(to_decimal(value))


def order_receipt_pdf(order: Order, store_name: str = "Rastuci") -> BytesIO:
    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=30, rightMargin=30, topMargin=30, bottomMargin=30
    )
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(
        name="Wrap",
        parent=styles["Normal"],
        wordWrap="CJK",
        fontSize=9,
        leading=11,
    ))

    elems = [Paragraph("{0} - Comprobante de pedido #{1}".format(escape(store_name or "Rastuci"), order.id), styles["Title"])]

    meta = (
        "Cliente: {0}<br/>"
        "Email: {1}<br/>"
        "Teléfono: {2}<br/>"
        "Dirección: {3}<br/>"
        "Fecha: {4}<br/>"
        "Estado: {5}<br/>"
        "Pago: {6}"
    ).format(
        escape(order.customer_name or "-"),
        escape(order.customer_email or "-"),
        escape(order.customer_phone or "-"),
        escape(order.customer_address or "-"),
        order.created_at.strftime("%d/%m/%Y %H:%M"),
        STATUS_LABELS_ES.get(order.status, order.status),
        order.payment_method,
    )
    if order.tracking_number:
        meta += "<br/>Seguimiento: {0}".format(escape(order.tracking_number))
    elems += [Spacer(1, 8), Paragraph(meta, styles["Normal"]), Spacer(1, 12)]

    data = [[
        Paragraph("Producto", styles["Wrap"]),
        Paragraph("Talle", styles["Wrap"]),
        Paragraph("Color", styles["Wrap"]),
        Paragraph("Cant.", styles["Wrap"]),
        Paragraph("Precio", styles["Wrap"]),
        Paragraph("Subtotal", styles["Wrap"]),
    ]]
    for it in order.items:
        data.append([
            Paragraph(escape(it.product_name), styles["Wrap"]),
            Paragraph(escape(it.size or "-"), styles["Wrap"]),
            Paragraph(escape(it.color or "-"), styles["Wrap"]),
            str(int(it.qty)),
            _fmt(it.unit_price),
            _fmt(it.line_total),
        ])
    data.append(["", "", "", "", "Envío:", _fmt(order.shipping_cost)])
    data.append(["", "", "", "", "Total:", _fmt(order.total)])

    table = Table(data, colWidths=[200, 50, 70, 40, 80, 90])
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("GRID", (0, 0), (-1, -3), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("ALIGN", (3, 1), (-1, -1), "RIGHT"),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
    ]))
    elems.append(table)

    doc.build(elems)
    buf.seek(0)
    return buf


def receipt_filenames(order: Order) -> tuple:
    date_str = order.created_at.strftime("%Y-%m-%d")
    name = (order.customer_name or "Cliente").strip()
    return (
        "Pedido {0} {1} {2}.pdf".format(order.id, name, date_str),
        "pedido_{0}_{1}.pdf".format(order.id, date_str),
    )


def orders_xlsx(orders: Iterable[Order]) -> BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Pedidos"

    header = ["#", "Fecha", "Cliente", "Email", "Teléfono", "Dirección", "Estado", "Pago",
              "Envío", "Seguimiento", "Productos", "Subtotal", "Costo envío", "Total"]
    ws.append(header)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for o in orders:
        products = "; ".join(
            "{0}{1} x{2}".format(
                i.product_name,
                " ({0})".format(" / ".join(x for x in (i.size, i.color) if x)) if (i.size or i.color) else "",
                i.qty,
            )
            for i in o.items
        )
        ws.append([
            o.id,
            o.created_at.strftime("%Y-%m-%d %H:%M"),
            o.customer_name,
            o.customer_email or "",
            o.customer_phone or "",
            o.customer_address or "",
            STATUS_LABELS_ES.get(o.status, o.status),
            o.payment_method,
            o.shipping_method or "",
            o.tracking_number or "",
            products,
            float(to_decimal(o.subtotal)),
            float(to_decimal(o.shipping_cost)),
            float(to_decimal(o.total)),
        ])

    widths = {"A": 6, "B": 17, "C": 24, "D": 28, "E": 16, "F": 36, "G": 12, "H": 12,
              "I": 18, "J": 18, "K": 48, "L": 12, "M": 12, "N": 12}
    for col, width in widths.items():
        ws.column_dimensions[col].width = width

    bio = BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio
