import io
import json
import logging
from typing import List, Tuple

from pos_backend.database import db
from pos_backend.models.audit import InventoryAuditRecord

# ReportLab Imports
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle
from reportlab.lib.styles import getSampleStyleSheet

logger = logging.getLogger(__name__)

class StockAuditReporter:

    async def get_audit_trail(self, business_id: str, grn_id: str) -> List[InventoryAuditRecord]:
        records = await db.inventory_audit.get_audits_by_grn(business_id, grn_id)
        return sorted(records, key=lambda r: r.timestamp)

    async def generate_audit_report(self, business_id: str, grn_id: str, format: str = "PDF") -> Tuple[str, bytes]:
        """
        Render the stock audit trail of one GRN.
        Returns (filename, content).
        """
        records = await self.get_audit_trail(business_id, grn_id)

        if format.upper() == "PDF":
            filename = f"stock_audit_{grn_id}.pdf"
            content = self._create_pdf(grn_id, records)
        elif format.upper() == "JSON":
            filename = f"stock_audit_{grn_id}.json"
            content = json.dumps([r.model_dump(mode="json") for r in records], indent=2).encode("utf-8")
        else:
            raise ValueError("Unsupported format")

        logger.info(f"Stock audit report {filename} generated ({len(records)} records)")
        return filename, content

    def _create_pdf(self, grn_id: str, records: List[InventoryAuditRecord]) -> bytes:
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=letter)
        styles = getSampleStyleSheet()
        story = []

        reference = records[0].source_reference_number if records else grn_id
        story.append(Paragraph(f"Stock Audit Report: {reference}", styles['Title']))
        if records:
            story.append(Paragraph(
                f"Branch: {records[0].branch_name or records[0].branch_id}. "
                f"Confirmed by {records[0].performed_by_staff_name} ({records[0].performed_by_role})",
                styles['Normal']
            ))
        story.append(Spacer(1, 12))

        data = [["Timestamp", "SKU", "Product", "Action", "Qty", "Before", "After"]]
        for r in records:
            data.append([
                r.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                r.product_sku,
                r.product_name[:40],
                r.action.value,
                f"{r.quantity:g}",
                f"{r.previous_stock:g}",
                f"{r.new_stock:g}",
            ])

        t = Table(data, colWidths=[100, 70, 150, 60, 40, 45, 45])
        t.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('ALIGN', (4, 1), (-1, -1), 'RIGHT'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
            ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
        ]))

        story.append(t)
        doc.build(story)
        return buffer.getvalue()

stock_audit_reporter = StockAuditReporter()
