"""
Assignment Models

This module contains the Assignment and AssignmentSubmission models.
"""

from datetime import datetime
from .database import db
from .utils import isoformat

STATUS_PENDING = 'pending'
STATUS_SUBMITTED = 'submitted'
STATUS_GRADED = 'graded'

CLASS_GROUPS = ('A', 'B')


class Assignment(db.Model):
    """A weekly assignment published by an admin to one or more classes"""
    __tablename__ = 'assignments'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    week_number = db.Column(db.Integer, nullable=False)
    assignment_code = db.Column(db.String(4), unique=True, nullable=False)
    file_url = db.Column(db.String(512))
    file_name = db.Column(db.String(255))
    due_date = db.Column(db.DateTime)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    target_classes = db.Column(db.JSON, nullable=False, default=list)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    creator = db.relationship('User', foreign_keys=[created_by])
    submissions = db.relationship('AssignmentSubmission', back_populates='assignment',
                                  cascade='all, delete-orphan', lazy=True)

    def targets(self, group):
        """Check whether the assignment is published to a class group"""
        return bool(group) and group in (self.target_classes or [])

    def to_dict(self, include_submissions=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'week_number': self.week_number,
            'assignment_code': self.assignment_code,
            'file_url': self.file_url,
            'file_name': self.file_name,
            'due_date': isoformat(self.due_date),
            'is_active': self.is_active,
            'target_classes': list(self.target_classes or []),
            'created_by': self.creator.user_id if self.creator else None,
            'creator': {
                'id': self.creator.user_id,
                'name': self.creator.name,
                'email': self.creator.email,
            } if self.creator else None,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_submissions:
            data['submissions'] = [s.to_dict(include_assignment=False) for s in self.submissions]
        return data


class AssignmentSubmission(db.Model):
    """A student's answer to an assignment"""
    __tablename__ = 'assignment_submissions'

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    assignment_code_input = db.Column(db.String(4), nullable=False)
    file_url = db.Column(db.String(512))
    file_name = db.Column(db.String(255))
    submission_text = db.Column(db.Text)
    status = db.Column(db.String(20), default=STATUS_PENDING, nullable=False)
    grade = db.Column(db.Float)
    feedback = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow)
    graded_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    assignment = db.relationship('Assignment', back_populates='submissions')
    student = db.relationship('User', foreign_keys=[student_id],
                              backref=db.backref('submissions', lazy=True, cascade='all, delete-orphan'))

    __table_args__ = (
        db.UniqueConstraint('assignment_id', 'student_id', name='unique_assignment_student'),
    )

    def is_graded(self):
        return self.status == STATUS_GRADED

    def to_dict(self, include_assignment=True):
        data = {
            'id': self.id,
            'assignment_id': self.assignment_id,
            'student_id': self.student.user_id if self.student else None,
            'assignment_code_input': self.assignment_code_input,
            'file_url': self.file_url,
            'file_name': self.file_name,
            'submission_text': self.submission_text,
            'status': self.status,
            'grade': self.grade,
            'feedback': self.feedback,
            'submitted_at': isoformat(self.submitted_at),
            'graded_at': isoformat(self.graded_at),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
            'student': self.student.summary_dict() if self.student else None,
        }
        if include_assignment:
            data['assignment'] = self.assignment.to_dict() if self.assignment else None
        return data
