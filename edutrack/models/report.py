from datetime import datetime

from edutrack import db
from edutrack.models.user import new_id
from edutrack.utils.report_policy import visibility_scope

ISSUE_TYPES = ('infrastructure', 'furniture', 'maintenance', 'safety', 'resources', 'sanitation')
PRIORITIES = ('low', 'medium', 'high', 'urgent')
STATUSES = ('reported', 'acknowledged', 'in-progress', 'resolved', 'rejected')
VISIBILITIES = ('public', 'government', 'private')
COMMENT_TYPES = ('comment', 'update', 'question', 'resolution')
RESOURCE_TYPES = ('funding', 'materials', 'equipment', 'services')
PROVIDER_TYPES = ('government', 'ngo', 'private', 'donor', 'community')
RESOURCE_STATUSES = ('pledged', 'approved', 'allocated', 'disbursed', 'completed')


def _in(column, values):
    quoted = ', '.join(f"'{v}'" for v in values)
    return f'{column} IN ({quoted})'


def _iso(value):
    return value.isoformat() if value else None


class Report(db.Model):
    __tablename__ = 'reports'
    __table_args__ = (
        db.CheckConstraint(_in('issue_type', ISSUE_TYPES), name='ck_reports_issue_type'),
        db.CheckConstraint(_in('priority', PRIORITIES), name='ck_reports_priority'),
        db.CheckConstraint(_in('status', STATUSES), name='ck_reports_status'),
        db.CheckConstraint(_in('visibility', VISIBILITIES), name='ck_reports_visibility'),
        db.CheckConstraint('urgency_score BETWEEN 0 AND 100', name='ck_reports_urgency_score'),
        db.CheckConstraint('students_affected >= 0', name='ck_reports_students_affected'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    school_id = db.Column(db.String(36), db.ForeignKey('schools.id'), nullable=False, index=True)
    reporter_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    issue_type = db.Column(db.String(50), nullable=False)
    priority = db.Column(db.String(20), nullable=False, default='medium', index=True)
    status = db.Column(db.String(20), nullable=False, default='reported', index=True)
    students_affected = db.Column(db.Integer, nullable=False, default=0)
    estimated_cost = db.Column(db.Numeric(12, 2, asdecimal=False))
    urgency_score = db.Column(db.Integer, nullable=False, default=0)
    location_detail = db.Column(db.Text)
    photos = db.Column(db.JSON, default=list)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    visibility = db.Column(db.String(20), nullable=False, default='public')
    resolved_at = db.Column(db.DateTime)
    resolved_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    resolution_notes = db.Column(db.Text)
    resolution_cost = db.Column(db.Numeric(12, 2, asdecimal=False))
    funding_source = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    reporter = db.relationship('User', foreign_keys=[reporter_id],
                               backref=db.backref('reports', lazy=True))
    resolver = db.relationship('User', foreign_keys=[resolved_by])
    comments = db.relationship('Comment', backref='report', lazy=True,
                               cascade='all, delete-orphan',
                               order_by='Comment.created_at')
    resources = db.relationship('Resource', backref='report', lazy=True,
                                cascade='all, delete-orphan',
                                order_by='Resource.created_at.desc()')

    @classmethod
    def visible_to(cls, viewer):
        """SQL filter matching the reports ``viewer`` may list, or None for no restriction"""
        scope = visibility_scope(viewer)
        if scope.unrestricted:
            return None
        clause = cls.visibility.in_(scope.tiers)
        if scope.school_id:
            clause = db.or_(clause, cls.school_id == scope.school_id)
        return clause

    def to_dict(self, detail=False):
        """Serialise for API responses; reporter identity is withheld for anonymous reports"""
        school = self.school
        reporter = None if self.is_anonymous else self.reporter
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'issueType': self.issue_type,
            'priority': self.priority,
            'status': self.status,
            'studentsAffected': self.students_affected,
            'estimatedCost': self.estimated_cost,
            'urgencyScore': self.urgency_score,
            'locationDetail': self.location_detail,
            'photos': self.photos or [],
            'isAnonymous': self.is_anonymous,
            'visibility': self.visibility,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
            'resolvedAt': _iso(self.resolved_at),
            'resolutionNotes': self.resolution_notes,
            'resolutionCost': self.resolution_cost,
            'fundingSource': self.funding_source,
            'school': {
                'id': school.id,
                'name': school.name,
                'schoolType': school.school_type,
                'address': school.address,
                'lga': school.lga,
                'latitude': school.latitude,
                'longitude': school.longitude,
            } if school else None,
            'reporterName': reporter.full_name if reporter else None,
            'reporterRole': reporter.role if reporter else None,
        }
        if detail:
            if school:
                data['school']['contactPhone'] = school.contact_phone
                data['school']['headTeacherName'] = school.head_teacher_name
            data['reporterId'] = reporter.id if reporter else None
            data['reporterEmail'] = reporter.email if reporter else None
            data['resolvedByName'] = self.resolver.full_name if self.resolver else None
        return data

    def __repr__(self):
        return f'<Report {self.id}: {self.title} [{self.status}]>'


class Comment(db.Model):
    __tablename__ = 'comments'
    __table_args__ = (
        db.CheckConstraint(_in('comment_type', COMMENT_TYPES), name='ck_comments_type'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    report_id = db.Column(db.String(36), db.ForeignKey('reports.id', ondelete='CASCADE'),
                          nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'))
    comment_text = db.Column(db.Text, nullable=False)
    comment_type = db.Column(db.String(20), nullable=False, default='comment')
    is_internal = db.Column(db.Boolean, nullable=False, default=False)
    attachments = db.Column(db.JSON, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = db.relationship('User', backref=db.backref('comments', lazy=True))

    def to_dict(self):
        return {
            'id': self.id,
            'commentText': self.comment_text,
            'commentType': self.comment_type,
            'isInternal': self.is_internal,
            'attachments': self.attachments or [],
            'createdAt': _iso(self.created_at),
            'author': {
                'name': self.author.full_name if self.author else None,
                'role': self.author.role if self.author else None,
            },
        }


class Resource(db.Model):
    """Funding or material pledged towards resolving a report"""
    __tablename__ = 'resources'
    __table_args__ = (
        db.CheckConstraint(_in('resource_type', RESOURCE_TYPES), name='ck_resources_type'),
        db.CheckConstraint(_in('provider_type', PROVIDER_TYPES), name='ck_resources_provider_type'),
        db.CheckConstraint(_in('status', RESOURCE_STATUSES), name='ck_resources_status'),
        db.CheckConstraint('amount IS NULL OR amount >= 0', name='ck_resources_amount'),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    report_id = db.Column(db.String(36), db.ForeignKey('reports.id', ondelete='CASCADE'), index=True)
    resource_type = db.Column(db.String(50), nullable=False)
    provider_name = db.Column(db.String(255), nullable=False)
    provider_type = db.Column(db.String(50))
    amount = db.Column(db.Numeric(12, 2, asdecimal=False))
    currency = db.Column(db.String(3), default='NGN')
    description = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='pledged')
    contact_info = db.Column(db.JSON)
    conditions = db.Column(db.Text)
    allocated_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'reportId': self.report_id,
            'resourceType': self.resource_type,
            'providerName': self.provider_name,
            'providerType': self.provider_type,
            'amount': self.amount,
            'currency': self.currency,
            'description': self.description,
            'status': self.status,
            'conditions': self.conditions,
            'allocatedAt': _iso(self.allocated_at),
            'completedAt': _iso(self.completed_at),
            'createdAt': _iso(self.created_at),
        }
