"""
Tests for survey responses: answer validation and the read API.
"""
import pytest
import uuid
from django.core.exceptions import ValidationError
from surveys.models import SurveyResponse
from surveys.sections import (
    answer_field,
    extract_scores,
    iter_categories,
    parse_answer_field,
    validate_answers,
)


class TestSections:
    """Survey field naming and answer validation"""

    def test_field_names_round_trip(self):
        name = answer_field('scm', 'warehouse', 2)
        assert name == 'scm_warehouse_question2'
        assert parse_answer_field(name) == ('scm', 'warehouse', 2)

    def test_unknown_fields_do_not_parse(self):
        assert parse_answer_field('hr_cafeteria_question1') is None
        assert parse_answer_field('hr_training_question3') is None
        assert parse_answer_field('id_badge_number') is None

    def test_every_section_has_categories(self):
        sections = {section for section, _, _ in iter_categories()}
        assert sections == {'hr', 'environmental', 'external', 'scm', 'finance'}

    def test_validate_answers(self):
        errors = validate_answers({
            'hr_training_question1': 5,
            'hr_training_question2': 6,
            'hr_training_feedback': 'More sessions please',
            'scm_inventory_question1': '3',
            'scm_inventory_question2': True,
            'unknown_field': 1,
            'environmental_audit_question1': None,
        })
        assert set(errors) == {
            'hr_training_question2', 'scm_inventory_question1',
            'scm_inventory_question2', 'unknown_field',
        }
        assert validate_answers(None) == {}
        assert validate_answers(['x']) == {'answers': 'Answers must be an object of field -> value'}

    def test_extract_scores_merges_flat_and_nested(self):
        row = {
            'id': 'R1',
            'hr_itsupport_question1': 3,
            'hr_itsupport_question2': 9,
            'answers': {'finance_contract_question1': 0, 'finance_contract_feedback': 'ok'},
        }
        assert extract_scores(row) == {
            'hr_itsupport_question1': 3,
            'finance_contract_question1': 0,
        }


@pytest.mark.django_db
class TestSurveyResponseModel:
    def test_clean_rejects_bad_scores(self, sample_employee):
        response = SurveyResponse(
            id_badge_number=sample_employee.id_badge_number,
            name=sample_employee.name,
            department=sample_employee.department,
            answers={'hr_training_question1': 11},
        )
        with pytest.raises(ValidationError):
            response.full_clean()

    def test_to_row_shape(self, sample_response):
        row = sample_response.to_row()
        assert row['id'] == str(sample_response.id)
        assert row['employee_id'] is None
        assert row['answers']['hr_documentcontrol_question2'] == 5
        assert not sample_response.is_linked


@pytest.mark.django_db
class TestSurveyResponseAPI:
    """Tests for /api/survey-responses"""

    def test_list_filters_by_link(self, api_client, sample_response, sample_employee):
        SurveyResponse.objects.create(
            id_badge_number='MTI999', name='Linked', department='HR', employee=sample_employee,
        )

        data = api_client.get('/api/survey-responses', {'linked': 'false'}).json()
        assert data['total'] == 1
        assert data['responses'][0]['response_id'] == str(sample_response.id)

        data = api_client.get('/api/survey-responses', {'linked': 'true'}).json()
        assert [r['name'] for r in data['responses']] == ['Linked']

    def test_search(self, api_client, sample_response):
        data = api_client.get('/api/survey-responses', {'search': '240266'}).json()
        assert data['total'] == 1

    def test_get_includes_answers(self, api_client, sample_response):
        response = api_client.get(f'/api/survey-responses/{sample_response.id}')
        assert response.status_code == 200
        assert response.json()['answers']['hr_documentcontrol_question1'] == 4

    def test_get_not_found(self, api_client):
        assert api_client.get(f'/api/survey-responses/{uuid.uuid4()}').status_code == 404
        assert api_client.get('/api/survey-responses/not-a-uuid').status_code == 404
