"""Survey score analytics split by the employee's level."""
from surveys.sections import SURVEY_SECTIONS, extract_scores, parse_answer_field

from .engine import (
    LEVEL_MANAGERIAL,
    LEVEL_NON_MANAGERIAL,
    compute_level_analytics,
    match_responses,
    normalize_level,
)


def compute_category_scores(employees, responses):
    """
    Mean score per survey category, overall and per level.

    Only uniquely matched responses count, bucketed by the employee's
    level. Categories nobody answered are left out rather than reported
    as NaN.

    Returns:
        {
            'hr_documentcontrol': {
                'section': 'hr', 'category': 'documentcontrol',
                'label': 'Document Control', 'responses': 3,
                'overall': 4.17, 'Managerial': 4.5, 'Non Managerial': 4.0,
            },
            ...
        }
    """
    match = match_responses(employees, responses)
    sums = {}

    for response, employee in match.matched:
        level = normalize_level(employee.level)
        per_category = {}
        for name, score in extract_scores(response.row).items():
            section, category, _ = parse_answer_field(name)
            per_category.setdefault((section, category), []).append(score)

        for key, scores in per_category.items():
            bucket = sums.setdefault(key, {'overall': [0, 0], 'responses': 0})
            bucket['responses'] += 1
            bucket['overall'][0] += sum(scores)
            bucket['overall'][1] += len(scores)
            if level:
                level_bucket = bucket.setdefault(level, [0, 0])
                level_bucket[0] += sum(scores)
                level_bucket[1] += len(scores)

    results = {}
    for (section, category), bucket in sums.items():
        entry = {
            'section': section,
            'category': category,
            'label': SURVEY_SECTIONS[section]['categories'][category],
            'responses': bucket['responses'],
            'overall': round(bucket['overall'][0] / bucket['overall'][1], 2),
        }
        for level in (LEVEL_MANAGERIAL, LEVEL_NON_MANAGERIAL):
            total, count = bucket.get(level, (0, 0))
            entry[level] = round(total / count, 2) if count else None
        results[f"{section}_{category}"] = entry
    return dict(sorted(results.items()))


def build_analytics(employees, responses):
    """Level completion numbers plus category scores, ready for JSON."""
    return {
        'levels': compute_level_analytics(employees, responses).as_dict(),
        'categories': compute_category_scores(employees, responses),
    }
