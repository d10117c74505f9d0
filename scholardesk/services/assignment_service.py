"""
Assignment Service

FLOW OVERVIEW
Admin
- create_assignment / update_assignment / delete_assignment / get_assignment / list_assignments
- code_exists(code, exclude_id)
- list_submissions(assignment_id) / list_all_submissions() / grade_submission(...)
- assignment_stats()

Student
- list_assignments_for_class(group) / get_assignment_by_code(code, group)
- submit_assignment(assignment_id, student, payload)
  • Entered code must match; assignment must be active and target the student's class;
    one submission per student per assignment.
- get_student_submission / update_submission
  • Graded submissions are frozen.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from ..models import db, Assignment, AssignmentSubmission
from ..models.assignment import STATUS_SUBMITTED, STATUS_GRADED
from ..utils.validators import InputValidator, sanitize_input
from . import ServiceResult, NOT_FOUND, VALIDATION_ERROR, DUPLICATE, FORBIDDEN, DATABASE_ERROR

logger = logging.getLogger(__name__)


def _commit(action):
    """Commit the session; returns a failed ServiceResult or None"""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to {action}: {e}")
        return ServiceResult.fail(DATABASE_ERROR, f"Could not {action}")
    return None


def code_exists(code, exclude_id=None):
    """Check whether an assignment code is already taken"""
    if not code:
        return False
    query = Assignment.query.filter(Assignment.assignment_code == code.strip().upper())
    if exclude_id:
        query = query.filter(Assignment.id != exclude_id)
    return db.session.query(query.exists()).scalar()


def _clean_fields(payload, partial=False):
    fields = {}

    if 'title' in payload or not partial:
        result = InputValidator.validate_article_title(payload.get('title'))
        if not result.is_valid:
            return None, result.error_message
        fields['title'] = result.sanitized_value

    if 'description' in payload or not partial:
        description = sanitize_input(payload.get('description'), max_length=20000)
        if not description:
            return None, "Description is required"
        fields['description'] = description

    if 'week_number' in payload or not partial:
        result = InputValidator.validate_week_number(payload.get('week_number'))
        if not result.is_valid:
            return None, result.error_message
        fields['week_number'] = result.sanitized_value

    if 'assignment_code' in payload or not partial:
        result = InputValidator.validate_assignment_code(payload.get('assignment_code'))
        if not result.is_valid:
            return None, result.error_message
        fields['assignment_code'] = result.sanitized_value

    if 'target_classes' in payload or not partial:
        result = InputValidator.validate_target_classes(payload.get('target_classes'))
        if not result.is_valid:
            return None, result.error_message
        fields['target_classes'] = result.sanitized_value

    if 'due_date' in payload:
        result = InputValidator.validate_iso_datetime(payload.get('due_date'))
        if not result.is_valid:
            return None, result.error_message
        fields['due_date'] = result.sanitized_value

    if 'is_active' in payload:
        result = InputValidator.parse_bool(payload.get('is_active'))
        if not result.is_valid:
            return None, f"is_active: {result.error_message}"
        fields['is_active'] = result.sanitized_value

    for field in ('file_url', 'file_name'):
        if field in payload:
            fields[field] = sanitize_input(payload.get(field), max_length=512) or None

    return fields, None


def create_assignment(payload, creator):
    fields, error = _clean_fields(payload or {})
    if error:
        return ServiceResult.fail(VALIDATION_ERROR, error)

    if code_exists(fields['assignment_code']):
        return ServiceResult.fail(DUPLICATE, f"Assignment code {fields['assignment_code']} is already in use")

    fields.setdefault('is_active', True)
    assignment = Assignment(created_by=creator.id, **fields)
    db.session.add(assignment)
    failure = _commit("create assignment")
    if failure:
        return failure

    logger.info(f"Assignment {assignment.assignment_code} (week {assignment.week_number}) created")
    return ServiceResult(True, data=assignment.to_dict(), message="Assignment created", status_code=201)


def update_assignment(assignment_id, payload):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return ServiceResult.fail(NOT_FOUND, "Assignment not found")

    fields, error = _clean_fields(payload or {}, partial=True)
    if error:
        return ServiceResult.fail(VALIDATION_ERROR, error)

    if 'assignment_code' in fields and code_exists(fields['assignment_code'], exclude_id=assignment.id):
        return ServiceResult.fail(DUPLICATE, f"Assignment code {fields['assignment_code']} is already in use")

    for field, value in fields.items():
        setattr(assignment, field, value)

    failure = _commit("update assignment")
    if failure:
        return failure
    return ServiceResult.ok(assignment.to_dict(), message="Assignment updated")


def list_assignments():
    rows = Assignment.query.order_by(Assignment.week_number.asc(), Assignment.id.asc()).all()
    return ServiceResult.ok([a.to_dict() for a in rows])


def get_assignment(assignment_id, include_submissions=False):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return ServiceResult.fail(NOT_FOUND, "Assignment not found")
    return ServiceResult.ok(assignment.to_dict(include_submissions=include_submissions))


def delete_assignment(assignment_id):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return ServiceResult.fail(NOT_FOUND, "Assignment not found")

    # Submissions go first through the delete-orphan cascade
    for submission in list(assignment.submissions):
        db.session.delete(submission)
    db.session.delete(assignment)
    failure = _commit("delete assignment")
    if failure:
        return failure

    logger.info(f"Assignment {assignment_id} deleted with its submissions")
    return ServiceResult.ok({'id': assignment_id}, message="Assignment deleted")


def list_submissions(assignment_id):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return ServiceResult.fail(NOT_FOUND, "Assignment not found")

    rows = (AssignmentSubmission.query
            .filter_by(assignment_id=assignment_id)
            .order_by(AssignmentSubmission.submitted_at.desc(), AssignmentSubmission.id.desc())
            .all())
    return ServiceResult.ok([s.to_dict() for s in rows])


def list_all_submissions():
    rows = (AssignmentSubmission.query
            .order_by(AssignmentSubmission.submitted_at.desc(), AssignmentSubmission.id.desc())
            .all())
    return ServiceResult.ok([s.to_dict() for s in rows])


def get_submission(submission_id, requester=None):
    submission = db.session.get(AssignmentSubmission, submission_id)
    if not submission:
        return ServiceResult.fail(NOT_FOUND, "Submission not found")
    if requester is not None and not requester.is_admin() and submission.student_id != requester.id:
        return ServiceResult.fail(FORBIDDEN, "You can only view your own submissions")
    return ServiceResult.ok(submission.to_dict())


def grade_submission(submission_id, grade, feedback=None):
    submission = db.session.get(AssignmentSubmission, submission_id)
    if not submission:
        return ServiceResult.fail(NOT_FOUND, "Submission not found")

    result = InputValidator.validate_grade(grade)
    if not result.is_valid:
        return ServiceResult.fail(VALIDATION_ERROR, result.error_message)

    submission.grade = result.sanitized_value
    submission.feedback = sanitize_input(feedback, max_length=5000) or None
    submission.status = STATUS_GRADED
    submission.graded_at = datetime.utcnow()

    failure = _commit("grade submission")
    if failure:
        return failure

    logger.info(f"Submission {submission_id} graded {submission.grade}")
    return ServiceResult.ok(submission.to_dict(), message="Submission graded")


def assignment_stats():
    assignments = Assignment.query.all()
    targets_a = sum(1 for a in assignments if a.targets('A'))
    targets_b = sum(1 for a in assignments if a.targets('B'))
    targets_both = sum(1 for a in assignments if a.targets('A') and a.targets('B'))

    return ServiceResult.ok({
        'total_assignments': len(assignments),
        'active_assignments': sum(1 for a in assignments if a.is_active),
        'total_submissions': AssignmentSubmission.query.count(),
        'pending_submissions': AssignmentSubmission.query.filter_by(status=STATUS_SUBMITTED).count(),
        'graded_submissions': AssignmentSubmission.query.filter_by(status=STATUS_GRADED).count(),
        'assignments_for_class_a': targets_a,
        'assignments_for_class_b': targets_b,
        'assignments_for_both_classes': targets_both,
    })


# Student side

def list_assignments_for_class(group):
    if not group:
        return ServiceResult.ok([])

    rows = (Assignment.query
            .filter(Assignment.is_active.is_(True))
            .order_by(Assignment.week_number.asc(), Assignment.id.asc())
            .all())
    # target_classes is a JSON list, filtered here to stay portable across databases
    return ServiceResult.ok([a.to_dict() for a in rows if a.targets(group)])


def get_assignment_by_code(code, group):
    if not code:
        return ServiceResult.fail(VALIDATION_ERROR, "Assignment code is required")

    assignment = Assignment.query.filter(
        Assignment.assignment_code == code.strip().upper(),
        Assignment.is_active.is_(True)
    ).first()
    if not assignment or not assignment.targets(group):
        return ServiceResult.fail(NOT_FOUND, "No active assignment with that code for your class")
    return ServiceResult.ok(assignment.to_dict())


def _submission_content(payload):
    fields = {}
    if 'submission_text' in payload:
        fields['submission_text'] = sanitize_input(payload.get('submission_text'), max_length=50000) or None
    for field in ('file_url', 'file_name'):
        if field in payload:
            fields[field] = sanitize_input(payload.get(field), max_length=512) or None
    return fields


def submit_assignment(assignment_id, student, payload):
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        return ServiceResult.fail(NOT_FOUND, "Assignment not found")

    if not assignment.is_active:
        return ServiceResult.fail(VALIDATION_ERROR, "This assignment is no longer accepting submissions")

    if not assignment.targets(student.group):
        return ServiceResult.fail(FORBIDDEN, "This assignment is not assigned to your class")

    entered_code = (payload.get('assignment_code_input') or payload.get('assignment_code') or '').strip().upper()
    if entered_code != assignment.assignment_code:
        return ServiceResult.fail(VALIDATION_ERROR, "Assignment code does not match")

    content = _submission_content(payload)
    if not content.get('submission_text') and not content.get('file_url'):
        return ServiceResult.fail(VALIDATION_ERROR, "Submission needs text or an uploaded file")

    existing = AssignmentSubmission.query.filter_by(assignment_id=assignment.id, student_id=student.id).first()
    if existing:
        return ServiceResult.fail(DUPLICATE, "You have already submitted this assignment")

    submission = AssignmentSubmission(
        assignment_id=assignment.id,
        student_id=student.id,
        assignment_code_input=entered_code,
        status=STATUS_SUBMITTED,
        submitted_at=datetime.utcnow(),
        **content
    )
    db.session.add(submission)
    failure = _commit("submit assignment")
    if failure:
        return failure

    logger.info(f"Student {student.user_id} submitted assignment {assignment.assignment_code}")
    return ServiceResult(True, data=submission.to_dict(), message="Assignment submitted", status_code=201)


def get_student_submission(assignment_id, student_id):
    submission = AssignmentSubmission.query.filter_by(assignment_id=assignment_id, student_id=student_id).first()
    return ServiceResult.ok(submission.to_dict() if submission else None)


def update_submission(submission_id, student, payload):
    submission = db.session.get(AssignmentSubmission, submission_id)
    if not submission:
        return ServiceResult.fail(NOT_FOUND, "Submission not found")

    if submission.student_id != student.id:
        return ServiceResult.fail(FORBIDDEN, "You can only edit your own submissions")

    if submission.is_graded():
        return ServiceResult.fail(VALIDATION_ERROR, "Graded submissions can no longer be changed")

    content = _submission_content(payload or {})
    text = content.get('submission_text', submission.submission_text)
    file_url = content.get('file_url', submission.file_url)
    if not text and not file_url:
        return ServiceResult.fail(VALIDATION_ERROR, "Submission needs text or an uploaded file")

    for field, value in content.items():
        setattr(submission, field, value)
    submission.status = STATUS_SUBMITTED
    submission.submitted_at = datetime.utcnow()

    failure = _commit("update submission")
    if failure:
        return failure
    return ServiceResult.ok(submission.to_dict(), message="Submission updated")
