"""PDF rendering for propostas (A4, reportlab)."""

import base64
import binascii
import logging
import re
from datetime import datetime, timezone
from io import BytesIO
from typing import Dict, Any, Optional
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import mm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, Image
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.utils import ImageReader

from app.services.pricing_service import normalize_formas
from app.utils.formatters import money_br, date_br

logger = logging.getLogger(__name__)

TITLE = "PROPOSTA DE ORÇAMENTO PARA MÓVEIS PLANEJADOS"
DEFAULT_COMPANY = 'Fifty+'
DEFAULT_EXCLUSO = "Não contempla itens não mencionados."

LOGO_MAX_WIDTH = 40*mm
LOGO_MAX_HEIGHT = 25*mm

DATA_URL_PATTERN = re.compile(r'^data:image/[\w.+-]+;base64,(?P<data>.+)$', re.DOTALL)


def build_pdf_filename(cliente_nome: Optional[str], created_at=None) -> str:
    """
    Download filename for a proposta.

    Example:
        build_pdf_filename('João Silva', '2026-01-12') -> 'Proposta_Jo_o_Silva_12-01-2026.pdf'
    """
    sanitized = re.sub(r'[^a-zA-Z0-9]', '_', (cliente_nome or 'Cliente').strip())[:30]
    day = date_br(created_at or datetime.now(timezone.utc))
    return f"Proposta_{sanitized}_{day.replace('/', '-')}.pdf"


def _logo_flowable(logo: Optional[str]):
    """Image flowable from a data URL, or None when it cannot be decoded."""
    if not logo:
        return None
    match = DATA_URL_PATTERN.match(logo.strip())
    if not match:
        return None
    try:
        raw = base64.b64decode(match.group('data'), validate=False)
    except (binascii.Error, ValueError):
        logger.warning("[PDF] Invalid logo data URL, falling back to company name")
        return None
    try:
        iw, ih = ImageReader(BytesIO(raw)).getSize()
    except Exception:
        logger.warning("[PDF] Logo image could not be read, falling back to company name")
        return None
    if not iw or not ih:
        return None

    scale = min(LOGO_MAX_WIDTH / iw, LOGO_MAX_HEIGHT / ih)
    image = Image(BytesIO(raw), width=iw * scale, height=ih * scale)
    image.hAlign = 'CENTER'
    return image


def _label(label: str, value: Any) -> str:
    return f"<b>{escape(label)}</b> {escape(str(value))}"


def render_proposta_pdf(state: Dict[str, Any], profile: Dict[str, Any]) -> BytesIO:
    """
    Render a proposta as PDF.

    Args:
        state: Flat proposta state (see deserialize_from_storage)
        profile: Profile fields (nome, cpf, wpp, insta, logo, unidade)

    Returns:
        BytesIO positioned at 0
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=15*mm,
        leftMargin=15*mm,
        topMargin=20*mm,
        bottomMargin=15*mm,
        title=TITLE
    )

    elements = []
    styles = getSampleStyleSheet()

    company_style = ParagraphStyle(
        'Company',
        parent=styles['Heading1'],
        fontSize=22,
        leading=26,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )
    title_style = ParagraphStyle(
        'ProposalTitle',
        parent=styles['Heading2'],
        fontSize=14,
        leading=18,
        fontName='Helvetica-Bold',
        spaceAfter=6
    )
    section_style = ParagraphStyle(
        'Section',
        parent=styles['Heading3'],
        fontSize=11,
        fontName='Helvetica-Bold',
        spaceBefore=8,
        spaceAfter=4
    )
    body_style = ParagraphStyle('Body', parent=styles['Normal'], fontSize=10, leading=14)
    detail_style = ParagraphStyle(
        'Detail',
        parent=styles['Normal'],
        fontSize=9,
        leading=12,
        leftIndent=5*mm,
        textColor=colors.HexColor('#505050')
    )
    note_style = ParagraphStyle('Note', parent=detail_style, fontSize=8, fontName='Helvetica-Oblique')

    company = profile.get('nome') or DEFAULT_COMPANY
    unidade = profile.get('unidade') or 'mm'

    # 1. Header
    logo = _logo_flowable(profile.get('logo'))
    if logo is not None:
        elements.append(logo)
        elements.append(Spacer(1, 8*mm))
    else:
        elements.append(Paragraph(escape(company), company_style))
        elements.append(Spacer(1, 6*mm))

    elements.append(Paragraph(escape(TITLE), title_style))
    divider = Table([['']], colWidths=[180*mm], rowHeights=[1])
    divider.setStyle(TableStyle([
        ('LINEBELOW', (0, 0), (-1, -1), 0.2, colors.HexColor('#DCDCDC')),
    ]))
    elements.append(divider)
    elements.append(Spacer(1, 4*mm))

    # 2. Client
    elements.append(Paragraph(_label('CLIENTE:', (state.get('cliente_nome') or '—').upper()), body_style))
    elements.append(Paragraph(_label('LOCAL:', state.get('cliente_end') or '—'), body_style))
    if state.get('cliente_ref'):
        elements.append(Paragraph(_label('REFERÊNCIA:', state['cliente_ref']), body_style))
    elements.append(Paragraph(_label('DATA:', date_br(state.get('created_at') or datetime.now(timezone.utc))), body_style))
    if state.get('validade'):
        elements.append(Paragraph(_label('VALIDADE:', state['validade']), body_style))

    # 3. Environments
    elements.append(Paragraph('DETALHAMENTO DO PROJETO', section_style))
    for idx, ambiente in enumerate(state.get('ambientes') or [], start=1):
        tipo = str(ambiente.get('tipo') or '').upper()
        elements.append(Paragraph(f"<b>{idx}. {escape(tipo)}</b>", body_style))
        for peca in ambiente.get('pecas') or []:
            line = f"• {peca.get('nome') or 'Peça'}:"
            if peca.get('l') or peca.get('a') or peca.get('p'):
                line += (
                    f" {peca.get('l') or '0'}{unidade} (L) x {peca.get('a') or '0'}{unidade} (A)"
                    f" x {peca.get('p') or '0'}{unidade} (P)"
                )
            elements.append(Paragraph(escape(line), detail_style))
        if ambiente.get('detalhes'):
            elements.append(Paragraph(escape(f"Obs: {ambiente['detalhes']}"), note_style))
        elements.append(Spacer(1, 2*mm))

    # 4. Technical specs
    specs = []
    for label, field in (('Material', 'chapa'), ('Acabamento', 'acabamento'),
                         ('Ferragens', 'ferragens'), ('Observações', 'detalhes')):
        if state.get(field):
            specs.append(f"{label}: {state[field]}")
    for label, field in (('Início', 'inicio'), ('Entrega', 'entrega'),
                         ('Garantia', 'garantia'), ('Incluso', 'incluso')):
        if state.get(field):
            specs.append(f"{label}: {state[field]}")

    elements.append(Paragraph('ESPECIFICAÇÕES TÉCNICAS', section_style))
    for spec in specs:
        elements.append(Paragraph(escape(spec), detail_style))

    # 5. Total
    elements.append(Paragraph('INVESTIMENTO TOTAL', section_style))
    total_table = Table([[money_br(state.get('v_total'))]], colWidths=[180*mm])
    total_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 12),
        ('LEFTPADDING', (0, 0), (-1, -1), 0),
    ]))
    elements.append(total_table)

    # 6. Payment terms
    condicoes = []
    if state.get('pgto_condicao'):
        condicoes.append(f"Condição: {state['pgto_condicao']}")
    if state.get('pgto_formas'):
        condicoes.append(f"Formas: {', '.join(normalize_formas(state['pgto_formas']))}.")
    parcelas = state.get('pgto_parcelas') or 1
    try:
        parcelas = int(parcelas)
    except (TypeError, ValueError):
        parcelas = 1
    if parcelas > 1:
        juros = 'com juros' if state.get('pgto_juros') else 'sem juros'
        condicoes.append(f"Parcelamento: {parcelas}x {juros}.")
    if state.get('pgto_pix'):
        condicoes.append(f"PIX: {state['pgto_pix']}")
    if state.get('prazo_obs'):
        condicoes.append(f"Prazo: {state['prazo_obs']}")

    elements.append(Paragraph('CONDIÇÕES DE PAGAMENTO', section_style))
    for condicao in condicoes:
        elements.append(Paragraph(escape(condicao), body_style))

    # 7. Vendor
    elements.append(Paragraph('DADOS DO FORNECEDOR', section_style))
    elements.append(Paragraph(escape(company), body_style))
    if profile.get('cpf'):
        elements.append(Paragraph(escape(f"CNPJ/CPF: {profile['cpf']}"), body_style))
    elements.append(Paragraph(escape(f"WhatsApp: {profile.get('wpp') or '—'}"), body_style))
    if profile.get('insta'):
        elements.append(Paragraph(escape(f"Instagram: {profile['insta']}"), body_style))

    # 8. Considerations
    elements.append(Paragraph('CONSIDERAÇÕES IMPORTANTES', section_style))
    elements.append(Paragraph(escape(str(state.get('excluso') or DEFAULT_EXCLUSO)), body_style))
    if state.get('obs_final'):
        elements.append(Paragraph(escape(str(state['obs_final'])), body_style))

    if profile.get('rodape'):
        footer_style = ParagraphStyle(
            'Footer', parent=styles['Normal'], fontSize=8,
            textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER
        )
        elements.append(Spacer(1, 8*mm))
        elements.append(Paragraph(escape(profile['rodape']), footer_style))

    doc.build(elements)
    buffer.seek(0)
    return buffer
