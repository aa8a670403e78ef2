import logging
from io import BytesIO

import pandas as pd

from auditguard.extensions import db
from auditguard.models import MisEntry
from auditguard.utils import get_ist_time, get_value_from_row, cell_to_text

logger = logging.getLogger(__name__)

# entry field -> accepted spreadsheet headers
EXCEL_COLUMNS = {
    'leadId': ['Lead ID', 'Lead Id', 'LeadId', 'leadId', 'LEAD ID', 'Lead No'],
    'customerName': ['Customer Name', 'Applicant Name', 'customerName', 'CUSTOMER NAME', 'Name'],
    'businessName': ['Business Name', 'businessName', 'Firm Name'],
    'contactDetails': ['Contact Details', 'Contact', 'Mobile', 'Phone', 'contactDetails'],
    'customerAddress': ['Customer Address', 'Address', 'customerAddress'],
    'inDate': ['In Date', 'InDate', 'Initiation Date', 'inDate', 'Date'],
    'outDate': ['Out Date', 'OutDate', 'outDate'],
    'initiatedPerson': ['Initiated Person', 'Initiated By', 'initiatedPerson'],
    'product': ['Product', 'product'],
    'pdPerson': ['PD Person', 'pdPerson'],
    'pdTyping': ['PD Typing', 'pdTyping'],
    'workNature': ['Work Nature', 'Nature of Work', 'workNature'],
    'location': ['Location', 'City', 'location'],
    'status': ['Status', 'status'],
}

EXPORT_HEADERS = [
    ('sno', 'S.No'),
    ('leadId', 'Lead ID'),
    ('customerName', 'Customer Name'),
    ('businessName', 'Business Name'),
    ('contactDetails', 'Contact Details'),
    ('customerAddress', 'Customer Address'),
    ('inDate', 'In Date'),
    ('outDate', 'Out Date'),
    ('initiatedPerson', 'Initiated Person'),
    ('product', 'Product'),
    ('pdPerson', 'PD Person'),
    ('pdTyping', 'PD Typing'),
    ('workNature', 'Work Nature'),
    ('location', 'Location'),
    ('status', 'Status'),
    ('workflowStatus', 'Workflow Status'),
    ('associateId', 'Associate'),
]


def find_by_lead_id(lead_id):
    return db.session.execute(
        db.select(MisEntry).filter_by(lead_id=lead_id).limit(1)
    ).scalar_one_or_none()


def mark_mis_entry_completed(lead_id, report_date=None):
    """Close the open MIS entry for a lead once its report exists.

    Failures are logged and never propagate to the caller.
    """
    if not lead_id or not lead_id.strip():
        return
    normalized = lead_id.strip()
    try:
        entry = db.session.execute(
            db.select(MisEntry)
            .filter(MisEntry.lead_id == normalized, MisEntry.workflow_status != 'completed')
            .order_by(MisEntry.id)
            .limit(1)
        ).scalar_one_or_none()
        if entry is None:
            return
        out_date = report_date or get_ist_time().strftime('%Y-%m-%d')
        entry.status = 'Completed'
        entry.workflow_status = 'completed'
        entry.out_date = out_date
        db.session.commit()
        logger.info("[MIS] Marked entry %s (Lead: %s) as completed with outDate: %s", entry.id, normalized, out_date)
    except Exception:
        db.session.rollback()
        logger.error("[MIS] Failed to mark entry completed for Lead ID %s", lead_id, exc_info=True)


def next_sno():
    max_sno = db.session.execute(db.select(db.func.max(MisEntry.sno))).scalar()
    return (max_sno or 0) + 1


def create_entry(data):
    entry = MisEntry()
    entry.apply(data)
    entry.sno = next_sno()
    db.session.add(entry)
    db.session.commit()
    return entry


def _valid_entries(entries):
    valid = []
    for item in entries:
        if not isinstance(item, dict):
            continue
        lead_id = item.get('leadId')
        if not isinstance(lead_id, str) or len(lead_id.strip()) < 3:
            logger.debug("MIS bulk: skipping entry with invalid leadId %r", lead_id)
            continue
        name = item.get('customerName')
        name = name.strip() if isinstance(name, str) else ''
        valid.append({**item, 'customerName': name or lead_id})
    return valid


def _exists(lead_id, customer_name):
    return db.session.execute(
        db.select(MisEntry.id).filter_by(lead_id=lead_id, customer_name=customer_name).limit(1)
    ).first() is not None


def create_entries_bulk(associate_id, entries):
    """Insert new MIS rows for an associate.

    Returns ``(created, skipped)``; ``created`` is None when nothing in
    ``entries`` was usable at all.
    """
    valid = _valid_entries(entries)
    if not valid:
        return None, len(entries)

    unique = [e for e in valid if not _exists(e['leadId'], e['customerName'])]
    skipped = len(entries) - len(unique)
    if not unique:
        return [], skipped

    sno = next_sno()
    created = []
    for item in unique:
        entry = MisEntry()
        entry.apply(item)
        entry.associate_id = associate_id
        entry.sno = sno
        sno += 1
        db.session.add(entry)
        created.append(entry)
    db.session.commit()
    logger.info("MIS bulk: created %d entries for %s, skipped %d", len(created), associate_id, skipped)
    return created, skipped


def read_entries_from_excel(file):
    """Read an MIS work-allocation sheet into entry dicts."""
    df = pd.read_excel(file)
    entries = []
    for _, row in df.iterrows():
        item = {}
        for field, candidates in EXCEL_COLUMNS.items():
            value = cell_to_text(get_value_from_row(row, candidates))
            if value is not None:
                item[field] = value
        if item:
            entries.append(item)
    return entries


def export_entries_to_excel(entries):
    rows = []
    for entry in entries:
        data = entry.to_dict()
        rows.append({header: data.get(key) for key, header in EXPORT_HEADERS})
    df = pd.DataFrame(rows, columns=[header for _, header in EXPORT_HEADERS])

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
        df.to_excel(writer, sheet_name='MIS', index=False)

        summary_df = pd.DataFrame([
            {'Metric': 'Exported At', 'Value': get_ist_time().strftime('%Y-%m-%d %H:%M')},
            {'Metric': 'Total Entries', 'Value': len(rows)},
            {'Metric': 'Completed', 'Value': sum(1 for e in entries if e.workflow_status == 'completed')},
        ])
        summary_df.to_excel(writer, sheet_name='Summary', index=False)
    buffer.seek(0)
    return buffer
