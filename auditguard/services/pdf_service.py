import logging
import re
from datetime import datetime
from io import BytesIO
from xml.sax.saxutils import escape

from pypdf import PdfReader
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, PageBreak

from auditguard.utils import get_ist_time

logger = logging.getLogger(__name__)

HEADER_COLOR = colors.HexColor('#051338')
TABLE_HEADER_COLOR = colors.HexColor('#3498db')


class PdfExtractionError(Exception):
    pass


def extract_text(pdf_bytes):
    """Return the text of every page, one page per line block."""
    try:
        reader = PdfReader(BytesIO(pdf_bytes))
        pages = [(page.extract_text() or '') for page in reader.pages]
    except Exception as e:
        raise PdfExtractionError(f'Could not read PDF: {e}') from e
    return '\n'.join(pages) + '\n' if pages else ''


LEAD_ID_PATTERNS = [
    re.compile(r'Lead\s*Id\s*[:\-]?\s*([A-Za-z0-9]{12})', re.I),
    re.compile(r'LeadId\s*[:\-]?\s*([A-Za-z0-9]{12})', re.I),
    re.compile(r'Lead\s*ID\s*[:\-]?\s*([A-Za-z0-9]{12})', re.I),
    re.compile(r'Lead\s*Id\s*[:\-]?\s*(BLSA[A-Za-z0-9_\-]+)', re.I),
    re.compile(r'Lead\s*Id\s*[:\-]?\s*([A-Za-z0-9_\-]+)', re.I),
    re.compile(r'LeadId\s*[:\-]?\s*([A-Za-z0-9_\-]+)', re.I),
    re.compile(r'Lead\s*ID\s*[:\-]?\s*([A-Za-z0-9_\-]+)', re.I),
    re.compile(r'(BLSA[A-Za-z0-9_\-]+)', re.I),
    re.compile(r'\b([A-Za-z]{4}[0-9]{8})\b'),
]

APPLICANT_NAME_PATTERNS = [
    re.compile(r"(?:Applicant|Customer|Borrower|Client)\s*(?:'s)?\s*(?:Name|Full\s*Name)[:\-]?\s*"
               r"([A-Za-z\s\.]+?)(?:\n|$|,)", re.I),
    re.compile(r'(?:Name\s*of\s*(?:Applicant|Customer|Borrower|Client))[:\-]?\s*([A-Za-z\s\.]+?)(?:\n|$|,)', re.I),
    re.compile(r'(?:Mr\.|Mrs\.|Ms\.|Shri|Smt\.)\s*([A-Za-z\s\.]+?)(?:\n|$|,)', re.I),
]

REPORT_DATE_PATTERNS = [
    re.compile(r'(?:Report\s*Date|Date)[:\-]?\s*(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})', re.I),
    re.compile(r'(?:Report\s*Date|Date)[:\-]?\s*(\d{1,2})\s*'
               r'(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s*(\d{2,4})', re.I),
    re.compile(r'(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})'),
    re.compile(r'(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})'),
]

VISIT_LABEL = (r'(?:Visit\s*(?:Date\s*(?:&|and)?\s*)?Time|Photo\s*Timestamp|Visited\s*(?:on|at)'
               r'|Site\s*Visit|Field\s*Visit)')
VISIT_DATETIME_PATTERNS = [
    re.compile(VISIT_LABEL + r'[:\-]?\s*(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\s*(?:at\s*)?'
               r'(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)?', re.I | re.M),
    re.compile(r'(?:Visit\s*(?:Date\s*(?:&|and)?\s*)?Time|Photo\s*Timestamp|Visited\s*(?:on|at))[:\-]?\s*'
               r'(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\s+(\d{1,2}):(\d{2})(?::(\d{2}))?', re.I | re.M),
    re.compile(r'(?:Photo|Image)\s*(?:taken|captured)\s*(?:on|at)[:\-]?\s*'
               r'(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\s+(\d{1,2}):(\d{2})', re.I | re.M),
    re.compile(r'(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\s+(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)?', re.I | re.M),
    re.compile(r'(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\s+(\d{1,2}):(\d{2})(?::(\d{2}))?', re.I | re.M),
    re.compile(r'(\d{1,2})[/\-](\d{1,2})[/\-](\d{2,4})\s*,?\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*(AM|PM)?', re.I | re.M),
    re.compile(r'(\d{2})(\d{2})(\d{4})\s+(\d{2}):(\d{2})(?::(\d{2}))?', re.I | re.M),
]

DECISION_LABEL = (r'(?:(?:final|verification|field|case|loan|application|applicant|report|investigation)\s+)*'
                  r'(?:decision|status|verdict|result|recommendation|outcome)\s*[:\-]?\s*')
DECISION_PATTERN = re.compile(
    DECISION_LABEL + r'(positive|negative|credit\s+refer|approved|rejected|declined|not\s+recommended|recommended)',
    re.I | re.M)
REFER_PATTERN = re.compile(
    DECISION_LABEL + r'\b(refer)\b(?!\s*(?:to|for|the|this|that|a|an|ence|ring|red|s\b))', re.I | re.M)
POSITIVE_WORDS = ('positive', 'approved', 'recommended')
NEGATIVE_WORDS = ('negative', 'rejected', 'declined', 'not recommended')

REQUIRED_FIELDS = [
    ('Reference Check - Primary Contact', re.compile(r'reference.*primary|primary.*contact', re.I)),
    ('Reference Check - Secondary Contact', re.compile(r'reference.*secondary|secondary.*contact', re.I)),
    ('Neighbor Feedback - 1', re.compile(r'neighbor.*feedback.*1|neighbour.*feedback.*1', re.I)),
    ('Neighbor Feedback - 2', re.compile(r'neighbor.*feedback.*2|neighbour.*feedback.*2', re.I)),
    ('Asset Verification - Photo 1', re.compile(r'asset.*photo|photo.*asset', re.I)),
    ('Applicant Spouse Details', re.compile(r'spouse|partner', re.I)),
    ('Emergency Contact Number', re.compile(r'emergency.*contact|emergency.*number', re.I)),
    ('Alternate Address', re.compile(r'alternate.*address|secondary.*address', re.I)),
    ('Bank Account Details', re.compile(r'bank.*account|account.*number', re.I)),
    ('Co-applicant Information', re.compile(r'co-applicant|coapplicant', re.I)),
]
PHOTO_WORDS = re.compile(r'photo|image|picture|photograph', re.I)
MAJOR_ISSUES = re.compile(r'fraud|fake|false|forged', re.I)
NEGATIVE_INDICATORS = re.compile(r'discrepancy|mismatch|inconsistent|unable to verify|not found', re.I)


def extract_lead_id(text):
    for pattern in LEAD_ID_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            return match.group(1).strip()
    return None


def extract_applicant_name(text):
    for pattern in APPLICANT_NAME_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1):
            name = match.group(1).strip()
            if 2 <= len(name) <= 100:
                return name
    return None


def extract_report_date(text):
    """Find the report date; returns ``{'date': 'YYYY-MM-DD', 'ddmmyy': ...}`` or None."""
    for pattern in REPORT_DATE_PATTERNS:
        match = pattern.search(text)
        if not match:
            continue
        groups = match.groups()
        if len(groups[0]) == 4:
            year, month, day = groups[0], groups[1].zfill(2), groups[2].zfill(2)
        else:
            # the month-name pattern only captures day and year
            if len(groups) == 2:
                day, month, year = groups[0].zfill(2), '01', groups[1]
                month_match = re.search(r'(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)', match.group(0), re.I)
                if month_match:
                    month = f"{datetime.strptime(month_match.group(1).title(), '%b').month:02d}"
            else:
                day, month, year = groups[0].zfill(2), groups[1].zfill(2), groups[2]
        if len(year) == 4:
            year = year[2:]
        full_year = ('19' + year if int(year) > 50 else '20' + year) if len(year) == 2 else year
        return {'date': f'{full_year}-{month}-{day}', 'ddmmyy': f'{day}{month}{year}'}
    return None


def _group(match, index):
    return match.group(index) if index <= match.re.groups else None


def extract_visit_datetime(text):
    """Earliest plausible (2020-2030) visit date-time mentioned in the text."""
    found = []
    for pattern in VISIT_DATETIME_PATTERNS:
        for match in pattern.finditer(text):
            hours = int(_group(match, 4) or 0)
            minutes = int(_group(match, 5) or 0)
            seconds = int(_group(match, 6) or 0)
            ampm = _group(match, 7)
            if len(match.group(1)) == 4:
                year, month, day = int(match.group(1)), int(match.group(2)), int(match.group(3))
            else:
                day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
            if year < 100:
                year = 1900 + year if year > 50 else 2000 + year
            if ampm:
                if ampm.upper() == 'PM' and hours < 12:
                    hours += 12
                if ampm.upper() == 'AM' and hours == 12:
                    hours = 0
            try:
                value = datetime(year, month, day, hours, minutes, seconds)
            except ValueError:
                continue
            if 2020 <= value.year <= 2030:
                found.append(value)

    if not found:
        logger.debug("No date-time patterns found in PDF text")
        return None
    earliest = min(found)
    logger.info("Found %d date(s) in PDF text, earliest: %s", len(found), earliest.isoformat())
    return earliest


def extract_decision(text):
    match = DECISION_PATTERN.search(text)
    if match and match.group(1):
        decision = re.sub(r'\s+', ' ', match.group(1).lower().strip())
        if decision in POSITIVE_WORDS:
            return 'Positive'
        if decision in NEGATIVE_WORDS:
            return 'Negative'
        if decision == 'credit refer':
            return 'Credit Refer'

    if REFER_PATTERN.search(text):
        return 'Credit Refer'
    return None


def analyze_pdf_content(text):
    total_fields = 100
    missing = [name for name, pattern in REQUIRED_FIELDS if not pattern.search(text)]
    photo_count = min(20, max(5, len(PHOTO_WORDS.findall(text))))

    risk_level = 'Low'
    if MAJOR_ISSUES.search(text):
        risk_level = 'High'
    elif NEGATIVE_INDICATORS.search(text):
        risk_level = 'Medium'

    return {
        'totalFields': total_fields,
        'filledFields': total_fields - len(missing),
        'missingFields': missing,
        'photoCount': photo_count,
        'riskLevel': risk_level,
    }


def _text(value, limit=None):
    if value is None or value == '':
        return 'N/A'
    text = str(value)
    if limit:
        text = text[:limit]
    return escape(text)


def _styles():
    styles = getSampleStyleSheet()
    return {
        'title': ParagraphStyle('LipTitle', parent=styles['Heading1'], fontSize=18, textColor=HEADER_COLOR,
                                spaceAfter=12, alignment=TA_CENTER),
        'section': ParagraphStyle('LipSection', parent=styles['Heading2'], fontSize=12, textColor=HEADER_COLOR,
                                  spaceBefore=10, spaceAfter=6),
        'normal': styles['Normal'],
        'small': ParagraphStyle('LipSmall', parent=styles['Normal'], fontSize=8, textColor=colors.grey),
        'cell': ParagraphStyle('LipCell', parent=styles['Normal'], fontSize=9, leading=11),
    }


def _field_table(rows, style):
    data = [[Paragraph(f'<b>{escape(label)}</b>', style), Paragraph(_text(value), style)] for label, value in rows]
    table = Table(data, colWidths=[2 * inch, 4.5 * inch])
    table.setStyle(TableStyle([
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('BACKGROUND', (0, 0), (0, -1), colors.HexColor('#eef3fb')),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    return table


def build_draft_pdf(draft, lead_id):
    """Render an LIP draft as a multi-section PDF and return its bytes."""
    pa = draft.get('primaryApplicant') or {}
    bd = draft.get('basicDetails') or {}
    pd_details = draft.get('pdDetails') or {}
    pers = draft.get('personalDetails') or {}
    bus = draft.get('businessDetails') or {}
    refs = draft.get('referenceChecks') or {}
    prop = draft.get('propertyDetails') or {}
    summary = draft.get('summary') or {}
    end_use = draft.get('endUseDetails') or {}

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, rightMargin=72, leftMargin=72, topMargin=72, bottomMargin=36,
                            title=f'LIP Verification Report - {lead_id}', author='AuditGuard')
    st = _styles()
    elements = [
        Paragraph('LIP Verification Report', st['title']),
        Paragraph(f'<b>Lead ID:</b> {_text(lead_id)} &nbsp;&nbsp; '
                  f'<b>Report Date:</b> {_text(draft.get("reportDate") or get_ist_time().strftime("%Y-%m-%d"))}',
                  st['normal']),
        Spacer(1, 12),
    ]

    sections = [
        ('1. Primary Applicant Details', [
            ('Customer Name', pa.get('customerName')),
            ('Mobile Number', pa.get('mobileNumber')),
            ('Email ID', pa.get('emailId')),
            ('Residence Address', pa.get('residenceAddress')),
            ('Office Address', pa.get('officeAddress')),
        ]),
        ('2. Basic Details', [
            ('Branch', bd.get('branch')),
            ('Product Line', bd.get('productLine')),
            ('Transaction Type', bd.get('transactionType')),
            ('Total Loan Amount', bd.get('totalLoanAmount')),
            ('PD Type', bd.get('pdType')),
            ('Customer Profile', bd.get('customerProfile')),
            ('Nature of Business', bd.get('natureOfBusiness')),
            ('Profession', bd.get('profession')),
        ]),
        ('3. PD Details', [
            ('PD Date', pd_details.get('pdDate')),
            ('PD Place', pd_details.get('pdPlace')),
            ('Current Address', pd_details.get('currentAddress')),
            ('PD Done With', pd_details.get('pdDoneWith')),
        ]),
        ('4. Personal Details', [
            ('Residence Type', pers.get('residenceType')),
            ('Residence Vintage', pers.get('residenceVintage')),
            ('Monthly Rent', pers.get('monthlyRent')),
            ('Family Members', pers.get('totalFamilyMembers')),
            ('Dependents', pers.get('dependents')),
            ('Household Expenses', pers.get('monthlyHouseholdExpenses')),
            ('Other Comments', pers.get('otherComments')),
        ]),
        ('5. Business Details', [
            ('Business Name', bus.get('businessName')),
            ('Business Profile', bus.get('businessProfile')),
            ('Business Vintage (Months)', bus.get('businessVintageMonths')),
            ('Total Business Vintage', bus.get('totalBusinessVintage')),
            ('Major Services', bus.get('majorServices')),
            ('Source of Business', bus.get('sourceOfBusiness')),
            ('Business Setup', bus.get('businessSetup')),
            ('Monthly Rental', bus.get('monthlyRental')),
            ('Surrounding Area', bus.get('surroundingArea')),
            ('Net Monthly Income', bus.get('netMonthlyIncome')),
            ('Comfortable EMI', bus.get('comfortableEmi')),
        ]),
    ]
    for index, key in ((6, 'reference1'), (7, 'reference2')):
        ref = refs.get(key) or {}
        sections.append((f'{index}. Reference Check {index - 5}', [
            ('Type', ref.get('type')),
            ('Name', ref.get('name')),
            ('Contact', ref.get('contact')),
            ('Feedback', ref.get('feedback')),
            ('Remarks', ref.get('remarks')),
        ]))
    sections += [
        ('8. Property Details', [
            ('Property Type', prop.get('propertyType')),
            ('Approx Area', prop.get('approxArea')),
            ('Property Usage', prop.get('propertyUsage')),
            ('Approx Valuation', prop.get('approxValuation')),
            ('Property Address', prop.get('propertyAddress')),
        ]),
        ('9. Summary', [
            ('Overall Summary', summary.get('overallSummary')),
            ('Risk Mitigants', summary.get('riskMitigants')),
        ]),
        ('10. End Use Details', [
            ('Purpose of Loan', end_use.get('purposeOfLoan')),
            ('End Use', end_use.get('endUse')),
        ]),
    ]

    for title, rows in sections:
        elements.append(Paragraph(title, st['section']))
        elements.append(_field_table(rows, st['cell']))

    elements.append(PageBreak())
    recommendation_style = ParagraphStyle('LipRecommendation', parent=st['section'], fontSize=14,
                                          textColor=colors.HexColor('#007f00'))
    elements.append(Paragraph('11. Recommendation', st['section']))
    elements.append(Paragraph(_text(draft.get('recommendation')), recommendation_style))
    elements.append(Paragraph('12. Remarks', st['section']))
    elements.append(Paragraph(_text(draft.get('remarks')), st['normal']))
    elements.append(Spacer(1, 24))
    elements.append(Paragraph('This report was generated from audio/photo inputs using AI. '
                              'All information should be verified before final decision.', st['normal']))
    elements.append(Spacer(1, 12))
    elements.append(Paragraph(f'Generated by AuditGuard - {get_ist_time().isoformat()}', st['small']))

    doc.build(elements)
    return buffer.getvalue()


def build_report_pdf(report):
    """One page summary of a stored report (scores, decision, summary)."""
    lead_id = report.lead_id or report.id
    scores = report.scores or {}
    breakdown = scores.get('comprehensiveBreakdown') or {}
    decision = report.decision or {}

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter, rightMargin=72, leftMargin=72, topMargin=72, bottomMargin=18)
    st = _styles()
    elements = [
        Paragraph(f'Verification Report - {_text(lead_id)}', st['title']),
        Paragraph(f'<b>Generated:</b> {_text(report.date or get_ist_time().strftime("%Y-%m-%d"))}', st['normal']),
        Paragraph(f'<b>Status:</b> {_text(report.status)}', st['normal']),
        Spacer(1, 16),
        Paragraph('Scores', st['section']),
    ]

    score_data = [
        ['Metric', 'Value'],
        ['Overall', f"{scores.get('overall') or 0}%"],
        ['Personal', f"{breakdown.get('personal') or 0}/15"],
        ['Business', f"{breakdown.get('business') or 0}/30"],
        ['Banking', f"{breakdown.get('banking') or 0}/15"],
        ['Networth', f"{breakdown.get('networth') or 0}/10"],
        ['Existing Debt', f"{breakdown.get('existingDebt') or 0}/10"],
        ['End Use', f"{breakdown.get('endUse') or 0}/10"],
        ['Reference Checks', f"{breakdown.get('referenceChecks') or 0}/10"],
    ]
    score_table = Table(score_data, colWidths=[3 * inch, 2 * inch])
    score_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), TABLE_HEADER_COLOR),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ('BACKGROUND', (0, 1), (-1, -1), colors.beige),
        ('GRID', (0, 0), (-1, -1), 1, colors.black),
    ]))
    elements.append(score_table)

    elements.append(Paragraph('Decision', st['section']))
    elements.append(Paragraph(_text(decision.get('status') or 'Pending'), st['normal']))
    elements.append(Paragraph(_text(decision.get('remarks')), st['normal']))
    elements.append(Paragraph('Summary', st['section']))
    elements.append(Paragraph(_text(report.summary), st['normal']))

    doc.build(elements)
    return buffer.getvalue()
