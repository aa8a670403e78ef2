from auditguard.extensions import db
from auditguard.utils import get_ist_time, isoformat_or_none

ADMIN_ID = 'ADMIN'


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(10), primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)  # werkzeug hash
    name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(100), nullable=False)
    avatar = db.Column(db.Text, nullable=False)

    @property
    def is_admin(self):
        return self.id == ADMIN_ID

    def to_dict(self, include_admin_flag=False):
        data = {
            'id': self.id,
            'username': self.username,
            'name': self.name,
            'role': self.role,
            'avatar': self.avatar,
        }
        if include_admin_flag:
            data['isAdmin'] = self.is_admin
        return data


class Report(db.Model):
    __tablename__ = 'reports'
    id = db.Column(db.String(50), primary_key=True)
    associate_id = db.Column(db.String(10), db.ForeignKey('users.id'), nullable=False)
    lead_id = db.Column(db.String(100), nullable=False, default='')
    title = db.Column(db.String(255), nullable=False)
    date = db.Column(db.String(10), nullable=False)  # YYYY-MM-DD
    status = db.Column(db.String(20), nullable=False)
    metrics = db.Column(db.JSON, nullable=False)
    scores = db.Column(db.JSON, nullable=False)
    decision = db.Column(db.JSON, nullable=False)
    remarks = db.Column(db.JSON, nullable=False)
    summary = db.Column(db.Text, nullable=False)
    tat = db.Column(db.JSON)
    tat_delay_reason = db.Column(db.Text)
    tat_delay_remark = db.Column(db.Text)
    pdf_content = db.Column(db.Text)  # base64
    file_size = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=get_ist_time)

    associate = db.relationship('User', backref='reports')

    def to_dict(self, include_pdf=True):
        data = {
            'id': self.id,
            'associateId': self.associate_id,
            'leadId': self.lead_id,
            'title': self.title,
            'date': self.date,
            'status': self.status,
            'metrics': self.metrics,
            'scores': self.scores,
            'decision': self.decision,
            'remarks': self.remarks,
            'summary': self.summary,
            'tat': self.tat,
            'tatDelayReason': self.tat_delay_reason,
            'tatDelayRemark': self.tat_delay_remark,
            'fileSize': self.file_size,
            'createdAt': isoformat_or_none(self.created_at),
        }
        if include_pdf:
            data['pdfContent'] = self.pdf_content
        return data


class MisEntry(db.Model):
    __tablename__ = 'mis_entries'
    id = db.Column(db.Integer, primary_key=True)
    associate_id = db.Column(db.String(10), db.ForeignKey('users.id'), nullable=False)
    sno = db.Column(db.Integer, nullable=False)
    lead_id = db.Column(db.String(100), nullable=False)
    customer_name = db.Column(db.String(255), nullable=False)
    business_name = db.Column(db.String(255))
    contact_details = db.Column(db.Text)
    customer_address = db.Column(db.Text)
    in_date = db.Column(db.String(50))
    out_date = db.Column(db.String(50))
    initiated_person = db.Column(db.String(255))
    product = db.Column(db.String(100))
    pd_person = db.Column(db.String(255))
    pd_typing = db.Column(db.String(255))
    pd_person_id = db.Column(db.String(10), db.ForeignKey('users.id'))
    pd_typing_id = db.Column(db.String(10), db.ForeignKey('users.id'))
    work_nature = db.Column(db.String(100))
    location = db.Column(db.String(255))
    status = db.Column(db.String(50), default='Pending')
    workflow_status = db.Column(db.String(20), default='unassigned')
    assigned_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=get_ist_time)

    # camelCase API key -> column attribute
    FIELD_MAP = {
        'associateId': 'associate_id',
        'sno': 'sno',
        'leadId': 'lead_id',
        'customerName': 'customer_name',
        'businessName': 'business_name',
        'contactDetails': 'contact_details',
        'customerAddress': 'customer_address',
        'inDate': 'in_date',
        'outDate': 'out_date',
        'initiatedPerson': 'initiated_person',
        'product': 'product',
        'pdPerson': 'pd_person',
        'pdTyping': 'pd_typing',
        'pdPersonId': 'pd_person_id',
        'pdTypingId': 'pd_typing_id',
        'workNature': 'work_nature',
        'location': 'location',
        'status': 'status',
        'workflowStatus': 'workflow_status',
    }

    def apply(self, data):
        for key, attr in self.FIELD_MAP.items():
            if key in data:
                setattr(self, attr, data[key])

    def to_dict(self):
        data = {'id': self.id}
        for key, attr in self.FIELD_MAP.items():
            data[key] = getattr(self, attr)
        data['assignedAt'] = isoformat_or_none(self.assigned_at)
        data['createdAt'] = isoformat_or_none(self.created_at)
        return data


class ArchiveStats(db.Model):
    __tablename__ = 'archive_stats'
    id = db.Column(db.Integer, primary_key=True)
    archive_date = db.Column(db.DateTime, nullable=False)
    archive_file_name = db.Column(db.String(255), nullable=False)
    reports_count = db.Column(db.Integer, nullable=False)
    mis_entries_count = db.Column(db.Integer, nullable=False)
    total_positive = db.Column(db.Integer, default=0)
    total_negative = db.Column(db.Integer, default=0)
    total_credit_refer = db.Column(db.Integer, default=0)
    total_pending = db.Column(db.Integer, default=0)
    avg_overall_score = db.Column(db.Integer)
    avg_comprehensive_score = db.Column(db.Integer)
    associate_breakdown = db.Column(db.JSON)
    oldest_report_date = db.Column(db.String(10))
    newest_report_date = db.Column(db.String(10))
    created_at = db.Column(db.DateTime, default=get_ist_time)

    def to_dict(self):
        return {
            'id': self.id,
            'archiveDate': isoformat_or_none(self.archive_date),
            'archiveFileName': self.archive_file_name,
            'reportsCount': self.reports_count,
            'misEntriesCount': self.mis_entries_count,
            'totalPositive': self.total_positive,
            'totalNegative': self.total_negative,
            'totalCreditRefer': self.total_credit_refer,
            'totalPending': self.total_pending,
            'avgOverallScore': self.avg_overall_score,
            'avgComprehensiveScore': self.avg_comprehensive_score,
            'associateBreakdown': self.associate_breakdown,
            'oldestReportDate': self.oldest_report_date,
            'newestReportDate': self.newest_report_date,
            'createdAt': isoformat_or_none(self.created_at),
        }
