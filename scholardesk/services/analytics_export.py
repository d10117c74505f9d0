"""
Analytics Reports

FLOW OVERVIEW
- generate_individual_report(user_id): one student's analytics, strengths, weak spots, advice.
- generate_group_report(group): class averages, engagement split, top 5, up to 3 struggling.
- generate_summary_report(): platform totals, class A vs B, trends, insights, per-student rows.
- export_to_csv(report): summary reports only.

Every report shares the envelope {generated_at, report_type, time_range, data} and covers
the last 30 days.
"""

import csv
import io
import logging
from datetime import datetime, timedelta

from ..models import User, BrainstormingSession, AnalyticsEvent
from ..models.user import ROLE_USER
from ..utils.validators import InputValidator
from . import ServiceResult, NOT_FOUND, VALIDATION_ERROR
from .analytics_service import compute_learning_analytics, collect_student_analytics, DRAFT_CREATED

logger = logging.getLogger(__name__)

REPORT_DAYS = 30
TOP_PERFORMERS = 5
STRUGGLING_STUDENTS = 3
STRUGGLING_SCORE = 50
AT_RISK_SCORE = 40

CSV_HEADER = [
    'Student Name', 'NIM', 'Group', 'Productivity Score', 'Brain Projects',
    'Drafts', 'Engagement Level', 'Login Sessions'
]


def _envelope(report_type, data, now=None):
    now = now or datetime.utcnow()
    return {
        'generated_at': now.isoformat(),
        'report_type': report_type,
        'time_range': {
            'start': (now - timedelta(days=REPORT_DAYS)).isoformat(),
            'end': now.isoformat(),
        },
        'data': data,
    }


def _score(analytics):
    return analytics['overall_stats']['productivity_score']


def _engagement(analytics):
    return analytics['overall_stats']['engagement_level']


def _average(values):
    values = list(values)
    return round(sum(values) / len(values), 2) if values else 0


# Individual

def individual_summary(analytics):
    brain, writer, overall = analytics['brain_stats'], analytics['writer_stats'], analytics['overall_stats']

    strengths = [
        'Active in brainstorming activities' if brain['total_projects'] > 3 else None,
        'Consistent in writing practice' if writer['total_drafts'] > 2 else None,
        'High productivity score' if overall['productivity_score'] > 75 else None,
        'Detailed project exploration' if brain['avg_clicks_per_project'] > 10 else None,
    ]
    improvements = [
        'Could benefit from more AI assistance in brainstorming' if brain['total_chat_queries'] < 5 else None,
        'Underutilizing AI writing assistance' if writer['ai_assistance_usage'] < 3 else None,
        'Low engagement with the platform' if overall['engagement_level'] == 'low' else None,
        'Need to improve citation practices' if writer['citation_count'] < 5 else None,
    ]

    return {
        'strengths': [s for s in strengths if s],
        'areas_for_improvement': [s for s in improvements if s],
        'key_metrics': {
            'productivity_score': overall['productivity_score'],
            'total_projects': brain['total_projects'],
            'total_drafts': writer['total_drafts'],
            'engagement_level': overall['engagement_level'],
        },
    }


def individual_recommendations(analytics):
    brain, writer, overall = analytics['brain_stats'], analytics['writer_stats'], analytics['overall_stats']
    recommendations = []

    if brain['total_projects'] < 2:
        recommendations.append('Start more brainstorming projects to enhance idea development skills')
    if writer['total_drafts'] < 2:
        recommendations.append('Increase writing practice by creating more drafts')
    if brain['total_chat_queries'] < 5:
        recommendations.append('Utilize AI chat assistance more frequently for better insights')
    if writer['ai_assistance_usage'] < 3:
        recommendations.append('Explore AI writing assistance features to improve content quality')
    if overall['engagement_level'] == 'low':
        recommendations.append('Increase platform engagement by exploring different features')
    if brain['total_projects'] and brain['avg_clicks_per_project'] < 8:
        recommendations.append('Develop more detailed mind maps with additional nodes and connections')

    return recommendations or ['Keep up the excellent work! Continue maintaining current engagement levels.']


def generate_individual_report(user_id):
    user = User.query.filter_by(user_id=user_id).first()
    if not user:
        return ServiceResult.fail(NOT_FOUND, "User not found")

    analytics = compute_learning_analytics(user)
    return ServiceResult.ok(_envelope('individual', {
        'user': user.summary_dict(),
        'analytics': analytics,
        'summary': individual_summary(analytics),
        'recommendations': individual_recommendations(analytics),
    }))


# Group

def group_stats(rows):
    return {
        'avg_productivity': _average(_score(a) for _, a in rows),
        'avg_brain_projects': _average(a['brain_stats']['total_projects'] for _, a in rows),
        'avg_drafts': _average(a['writer_stats']['total_drafts'] for _, a in rows),
        'high_engagement_count': sum(1 for _, a in rows if _engagement(a) == 'high'),
        'medium_engagement_count': sum(1 for _, a in rows if _engagement(a) == 'medium'),
        'low_engagement_count': sum(1 for _, a in rows if _engagement(a) == 'low'),
    }


def top_performers(rows, count=TOP_PERFORMERS):
    ranked = sorted(rows, key=lambda pair: _score(pair[1]), reverse=True)[:count]
    return [
        {
            'name': user.name,
            'nim': user.nim,
            'productivity_score': _score(a),
            'brain_projects': a['brain_stats']['total_projects'],
            'drafts': a['writer_stats']['total_drafts'],
        }
        for user, a in ranked
    ]


def struggling_students(rows, count=STRUGGLING_STUDENTS):
    flagged = [pair for pair in rows if _score(pair[1]) < STRUGGLING_SCORE or _engagement(pair[1]) == 'low']
    flagged.sort(key=lambda pair: _score(pair[1]))

    result = []
    for user, a in flagged[:count]:
        issues = [
            'No brainstorming activity' if a['brain_stats']['total_projects'] == 0 else None,
            'No writing activity' if a['writer_stats']['total_drafts'] == 0 else None,
            'Low platform usage' if a['overall_stats']['total_login_sessions'] < 5 else None,
        ]
        result.append({
            'name': user.name,
            'nim': user.nim,
            'productivity_score': _score(a),
            'engagement_level': _engagement(a),
            'issues_identified': [issue for issue in issues if issue],
        })
    return result


def group_recommendations(rows):
    if not rows:
        return ['No students in this group yet.']

    stats = group_stats(rows)
    recommendations = []
    if stats['avg_productivity'] < 60:
        recommendations.append('Group productivity is below target. Consider additional training sessions.')
    if stats['avg_brain_projects'] < 2:
        recommendations.append('Encourage more brainstorming activities within the group.')
    if stats['avg_drafts'] < 2:
        recommendations.append('Implement more structured writing assignments.')
    if stats['low_engagement_count'] > len(rows) * 0.3:
        recommendations.append('High number of low-engagement students. Consider motivational interventions.')

    return recommendations or ['Group is performing well. Continue current strategies.']


def generate_group_report(group):
    result = InputValidator.validate_group(group)
    if not result.is_valid:
        return ServiceResult.fail(VALIDATION_ERROR, result.error_message)
    group = result.sanitized_value

    rows = collect_student_analytics(group)
    return ServiceResult.ok(_envelope('group', {
        'group_id': group,
        'total_students': len(rows),
        'group_stats': group_stats(rows),
        'top_performers': top_performers(rows),
        'struggling_students': struggling_students(rows),
        'recommendations': group_recommendations(rows),
    }))


# Summary

def overall_stats(rows):
    total = len(rows)

    def rate(level):
        return round(sum(1 for _, a in rows if _engagement(a) == level) / total * 100, 1) if total else 0

    return {
        'total_students': total,
        'avg_productivity': _average(_score(a) for _, a in rows),
        'total_brain_projects': sum(a['brain_stats']['total_projects'] for _, a in rows),
        'total_drafts': sum(a['writer_stats']['total_drafts'] for _, a in rows),
        'total_annotations': sum(a['writer_stats']['total_annotations'] for _, a in rows),
        'high_engagement_rate': rate('high'),
        'medium_engagement_rate': rate('medium'),
        'low_engagement_rate': rate('low'),
    }


def compare_groups(rows):
    comparison = {}
    for group in InputValidator.GROUPS:
        members = [pair for pair in rows if pair[0].group == group]
        comparison[f'group_{group.lower()}'] = {
            'student_count': len(members),
            'avg_productivity': _average(_score(a) for _, a in members),
            'avg_brain_projects': _average(a['brain_stats']['total_projects'] for _, a in members),
            'avg_drafts': _average(a['writer_stats']['total_drafts'] for _, a in members),
            'high_engagement_count': sum(1 for _, a in members if _engagement(a) == 'high'),
        }
    return comparison


def analyze_trends(rows, now=None):
    now = now or datetime.utcnow()
    week_ago = now - timedelta(days=7)

    return {
        'weekly_growth': {
            'new_projects': BrainstormingSession.query.filter(BrainstormingSession.created_at >= week_ago).count(),
            'new_drafts': AnalyticsEvent.query.filter(
                AnalyticsEvent.action == DRAFT_CREATED, AnalyticsEvent.timestamp >= week_ago
            ).count(),
            'new_users': User.query.filter(User.role == ROLE_USER, User.created_at >= week_ago).count(),
        },
        'students_at_risk': sum(
            1 for _, a in rows if _score(a) < AT_RISK_SCORE or _engagement(a) == 'low'
        ),
    }


def system_insights(rows):
    if not rows:
        return ['No student activity recorded yet.']

    stats = overall_stats(rows)
    insights = []

    if stats['avg_productivity'] > 75:
        insights.append('Excellent overall productivity across the platform. Current teaching methods are highly effective.')
    elif stats['avg_productivity'] < 50:
        insights.append('Overall productivity is below expectations. Consider reviewing teaching strategies and platform features.')

    if stats['high_engagement_rate'] > 60:
        insights.append('High engagement rate indicates strong student motivation and platform usability.')
    if stats['low_engagement_rate'] > 30:
        insights.append('Significant number of students showing low engagement. Intervention may be needed.')

    groups = compare_groups(rows)
    if groups['group_a']['student_count'] and groups['group_b']['student_count']:
        gap = abs(groups['group_a']['avg_productivity'] - groups['group_b']['avg_productivity'])
        if gap > 15:
            insights.append(f'Significant productivity gap between groups ({gap:.1f} points). Consider balancing teaching approaches.')

    if stats['total_brain_projects'] / stats['total_students'] < 1.5:
        insights.append('Students are underutilizing the Brain module. Consider promoting brainstorming activities.')
    if stats['total_drafts'] / stats['total_students'] < 1.2:
        insights.append('Writing activity is below optimal levels. Encourage more draft creation and revision.')

    return insights or ['System is performing optimally with balanced usage across all features.']


def generate_summary_report():
    rows = sorted(collect_student_analytics(), key=lambda pair: (pair[0].name or '').lower())
    logger.info(f"Summary report generated for {len(rows)} students")
    return ServiceResult.ok(_envelope('summary', {
        'total_students': len(rows),
        'overall_stats': overall_stats(rows),
        'group_comparison': compare_groups(rows),
        'trends': analyze_trends(rows),
        'insights': system_insights(rows),
        'individual_data': [{'user': user.summary_dict(), 'analytics': a} for user, a in rows],
    }))


def export_to_csv(report):
    """Render a summary report as CSV text"""
    if not report or report.get('report_type') != 'summary':
        return ServiceResult.fail(VALIDATION_ERROR, "Only summary reports can be exported to CSV")

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for row in report['data'].get('individual_data', []):
        user, analytics = row['user'], row['analytics']
        writer.writerow([
            user.get('name'),
            user.get('nim') or '',
            user.get('group') or '',
            analytics['overall_stats']['productivity_score'],
            analytics['brain_stats']['total_projects'],
            analytics['writer_stats']['total_drafts'],
            analytics['overall_stats']['engagement_level'],
            analytics['overall_stats']['total_login_sessions'],
        ])

    return ServiceResult.ok(buffer.getvalue())
