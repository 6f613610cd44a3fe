"""
Survey section registry.

Answers are stored as a flat bag of fields named after the section and
category they belong to:

    hr_documentcontrol_question1   -> score 0-5
    hr_documentcontrol_question2   -> score 0-5
    hr_documentcontrol_feedback    -> free text
"""
import re

QUESTIONS_PER_CATEGORY = 2
MIN_SCORE = 0
MAX_SCORE = 5

SURVEY_SECTIONS = {
    'hr': {
        'label': 'Human Resources',
        'categories': {
            'documentcontrol': 'Document Control',
            'itsupport': 'IT Support',
            'itfield': 'IT Field',
            'siteservice': 'Site Service',
            'peopledev': 'People Development',
            'comben': 'Compensation & Benefits',
            'translator': 'Translator',
            'talentacquisition': 'Talent Acquisition',
            'ir': 'Industrial Relations',
            'performance': 'Performance Management',
            'recruitment': 'Recruitment',
            'training': 'Training',
        },
    },
    'environmental': {
        'label': 'Environmental',
        'categories': {
            'monitoring': 'Monitoring',
            'management': 'Management',
            'audit': 'Audit',
            'study': 'Study',
        },
    },
    'external': {
        'label': 'External Affairs',
        'categories': {
            'communityrelations': 'Community Relations',
            'assetprotection': 'Asset Protection',
            'govrel': 'Government Relations',
            'communications': 'Communications',
            'legal': 'Legal',
        },
    },
    'scm': {
        'label': 'Supply Chain Management',
        'categories': {
            'inventory': 'Inventory',
            'procurement': 'Procurement',
            'logistic': 'Logistics',
            'warehouse': 'Warehouse',
        },
    },
    'finance': {
        'label': 'Finance',
        'categories': {
            'contract': 'Contract',
            'costcontrol': 'Cost Control',
            'finance': 'Finance',
        },
    },
}

_ANSWER_FIELD = re.compile(r'^(?P<section>[a-z]+)_(?P<category>[a-z]+)_question(?P<question>\d+)$')
_FEEDBACK_FIELD = re.compile(r'^(?P<section>[a-z]+)_(?P<category>[a-z]+)_feedback$')


def answer_field(section, category, question):
    return f"{section}_{category}_question{question}"


def feedback_field(section, category):
    return f"{section}_{category}_feedback"


def is_known_category(section, category):
    return category in SURVEY_SECTIONS.get(section, {}).get('categories', {})


def parse_answer_field(name):
    """Split a score field name into (section, category, question), or None."""
    match = _ANSWER_FIELD.match(name or '')
    if not match:
        return None
    section, category = match.group('section'), match.group('category')
    question = int(match.group('question'))
    if not is_known_category(section, category):
        return None
    if not 1 <= question <= QUESTIONS_PER_CATEGORY:
        return None
    return section, category, question


def iter_categories():
    """Yield (section, category, label) for every category in the survey."""
    for section, definition in SURVEY_SECTIONS.items():
        for category, label in definition['categories'].items():
            yield section, category, label


def validate_answers(answers):
    """
    Validate an answers bag.

    Returns a dict of field name -> error message. Empty dict means valid.
    """
    errors = {}
    if answers is None:
        return errors
    if not isinstance(answers, dict):
        return {'answers': 'Answers must be an object of field -> value'}

    for name, value in answers.items():
        feedback = _FEEDBACK_FIELD.match(name)
        if feedback:
            if not is_known_category(feedback.group('section'), feedback.group('category')):
                errors[name] = 'Unknown survey category'
            elif value is not None and not isinstance(value, str):
                errors[name] = 'Feedback must be text'
            continue

        if parse_answer_field(name) is None:
            errors[name] = 'Unknown survey field'
            continue
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            errors[name] = 'Score must be an integer'
        elif not MIN_SCORE <= value <= MAX_SCORE:
            errors[name] = f'Score must be between {MIN_SCORE} and {MAX_SCORE}'
    return errors


def extract_scores(row):
    """
    Pull the score fields out of a store row.

    Works for both the flat hosted schema (one column per question) and
    the nested `answers` object used by the Django model.
    """
    source = dict(row.get('answers') or {})
    for key, value in row.items():
        if key != 'answers' and key not in source:
            source[key] = value

    scores = {}
    for name, value in source.items():
        if parse_answer_field(name) is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int):
            continue
        if MIN_SCORE <= value <= MAX_SCORE:
            scores[name] = value
    return scores
