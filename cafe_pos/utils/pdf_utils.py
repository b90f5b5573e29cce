"""
PDF Generation Utilities
Order tickets for the kitchen and the customer
"""

from io import BytesIO
from flask import current_app
from reportlab.lib.pagesizes import A6
from reportlab.pdfgen import canvas

from cafe_pos.utils.export import format_currency


def generate_order_ticket(order, company=None, copy='customer'):
    """
    Generate a PDF ticket for an order

    Args:
        order: Order object
        company: CompanySettings row for the header (falls back to config)
        copy: 'customer' prints prices, 'kitchen' prints items and notes only

    Returns:
        BytesIO containing the PDF
    """
    output = BytesIO()
    pdf = canvas.Canvas(output, pagesize=A6)
    width, height = A6
    margin = 20

    if company is not None:
        business_name = company.company_name
        business_address = company.address or ''
        business_phone = company.phone or ''
    else:
        business_name = current_app.config.get('BUSINESS_NAME', '')
        business_address = current_app.config.get('BUSINESS_ADDRESS', '')
        business_phone = current_app.config.get('BUSINESS_PHONE', '')

    y = height - 30

    pdf.setFont("Helvetica-Bold", 13)
    pdf.drawCentredString(width / 2, y, business_name)

    if business_address:
        y -= 14
        pdf.setFont("Helvetica", 8)
        pdf.drawCentredString(width / 2, y, business_address)
    if business_phone:
        y -= 11
        pdf.setFont("Helvetica", 8)
        pdf.drawCentredString(width / 2, y, f"Phone: {business_phone}")

    y -= 12
    pdf.line(margin, y, width - margin, y)

    y -= 16
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(margin, y, "KITCHEN TICKET" if copy == 'kitchen' else "ORDER TICKET")

    y -= 14
    pdf.setFont("Helvetica", 8)
    pdf.drawString(margin, y, f"Order #: {order.id}")
    pdf.drawRightString(width - margin, y, order.created_at.strftime('%Y-%m-%d %H:%M'))

    y -= 11
    service = (order.service_type or 'takeaway').replace('_', ' ').title()
    if order.table:
        service = f"{service} - {order.table.name}"
    pdf.drawString(margin, y, service)
    if order.employee:
        pdf.drawRightString(width - margin, y, order.employee.full_name)

    y -= 8
    pdf.line(margin, y, width - margin, y)

    y -= 12
    for item in order.items:
        name = item.product_name or (item.product.name if item.product else "Unknown")
        if item.size_name:
            name = f"{name} ({item.size_name})"
        if len(name) > 32:
            name = name[:29] + "..."

        pdf.setFont("Helvetica", 8)
        pdf.drawString(margin, y, f"{item.quantity} x {name}")
        if copy != 'kitchen':
            pdf.drawRightString(width - margin, y, format_currency(item.subtotal))

        if item.notes:
            y -= 10
            pdf.setFont("Helvetica-Oblique", 7)
            pdf.drawString(margin + 10, y, item.notes[:45])

        y -= 12
        if y < 60:
            pdf.showPage()
            y = height - 30

    if order.notes:
        pdf.setFont("Helvetica-Oblique", 7)
        pdf.drawString(margin, y, f"Notes: {order.notes[:50]}")
        y -= 12

    pdf.line(margin, y, width - margin, y)

    if copy != 'kitchen':
        y -= 16
        pdf.setFont("Helvetica-Bold", 11)
        pdf.drawString(margin, y, "TOTAL:")
        pdf.drawRightString(width - margin, y, format_currency(order.total))

        y -= 14
        pdf.setFont("Helvetica", 8)
        pdf.drawString(margin, y, f"Payment Method: {(order.payment_method or 'cash').title()}")

        pdf.setFont("Helvetica-Oblique", 7)
        pdf.drawCentredString(width / 2, 20, "Thank you for your visit!")

    pdf.save()
    output.seek(0)
    return output
