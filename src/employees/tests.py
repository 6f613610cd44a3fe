"""
Tests for Employees API endpoints and the soft-delete roster.
"""
import pytest
import json
from employees.models import Employee
from employees.utils import is_valid_badge_number


class TestEmployeeCreateAPI:
    """Tests for manual employee entry"""

    @pytest.mark.django_db
    def test_create_employee_success(self, api_client):
        """Test creating an employee with valid data"""
        response = api_client.post(
            '/api/employees',
            data=json.dumps({
                "id_badge_number": " MTI240300 ",
                "name": "Siti Rahma",
                "department": "Human Resources",
                "level": "Managerial",
                "email": "siti@example.com"
            }),
            content_type='application/json'
        )
        assert response.status_code == 201
        data = response.json()
        assert data['message'] == 'Employee created successfully'
        assert data['id_badge_number'] == 'MTI240300'

        # Verify in database
        employee = Employee.objects.get(id_badge_number='MTI240300')
        assert employee.status == Employee.STATUS_NOT_SUBMITTED
        assert str(employee.id) == data['employee_id']

    @pytest.mark.django_db
    def test_create_employee_duplicate_badge_ignores_case(self, api_client, sample_employee):
        """Test validation: badge numbers collide regardless of case"""
        response = api_client.post(
            '/api/employees',
            data=json.dumps({
                "id_badge_number": sample_employee.id_badge_number.lower(),
                "name": "Someone Else",
                "department": "Finance"
            }),
            content_type='application/json'
        )
        assert response.status_code == 400
        assert 'already exists' in response.json()['field_errors']['id_badge_number'][0]

    @pytest.mark.django_db
    def test_create_employee_field_errors(self, api_client):
        """Test validation: every bad field is reported at once"""
        response = api_client.post(
            '/api/employees',
            data=json.dumps({
                "id_badge_number": "M!",
                "name": " ",
                "department": "Finance",
                "level": "Director",
                "email": "not-an-email"
            }),
            content_type='application/json'
        )
        assert response.status_code == 400
        errors = response.json()['field_errors']
        assert set(errors) == {'id_badge_number', 'name', 'level', 'email'}
        assert Employee.objects.count() == 0


class TestEmployeeReadAPI:
    """Tests for listing and badge lookup"""

    @pytest.mark.django_db
    def test_list_employees_filters(self, api_client, sample_employee):
        Employee.objects.create(id_badge_number="MTI100", name="Budi", department="SCM",
                                level=Employee.LEVEL_NON_MANAGERIAL)

        response = api_client.get('/api/employees', {'level': 'Non Managerial'})
        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 1
        assert data['employees'][0]['name'] == 'Budi'

        response = api_client.get('/api/employees', {'search': 'finance'})
        assert [e['id_badge_number'] for e in response.json()['employees']] == ['MTI240266']

    @pytest.mark.django_db
    def test_list_employees_caps_page_size(self, api_client, sample_employee):
        response = api_client.get('/api/employees', {'per_page': 500})
        data = response.json()
        assert data['per_page'] == 100
        assert data['total_pages'] == 1

    @pytest.mark.django_db
    def test_get_employee_by_badge_case_insensitive(self, api_client, sample_response):
        response = api_client.get('/api/employees/mti240266')
        assert response.status_code == 200
        data = response.json()
        assert data['id_badge_number'] == 'MTI240266'
        # Unlinked responses are not listed until reconciliation links them
        assert data['survey_responses'] == []

    @pytest.mark.django_db
    def test_get_employee_not_found(self, api_client):
        response = api_client.get('/api/employees/NOPE123')
        assert response.status_code == 404

    @pytest.mark.django_db
    def test_get_employee_shared_badge(self, api_client, sample_employee):
        Employee.objects.create(id_badge_number="mti240266", name="Twin", department="HR")
        response = api_client.get('/api/employees/MTI240266')
        assert response.status_code == 409
        assert 'shared by 2' in response.json()['error']


class TestSoftDelete:
    """Soft delete hides employees from the default manager"""

    @pytest.mark.django_db
    def test_soft_delete_and_restore(self, sample_employee):
        sample_employee.soft_delete(deleted_by='admin', reason='Left company')

        assert not Employee.objects.filter(pk=sample_employee.pk).exists()
        assert Employee.objects.deleted_only().count() == 1
        deleted = Employee.all_objects.get(pk=sample_employee.pk)
        assert deleted.deletion_reason == 'Left company'

        deleted.restore()
        assert Employee.objects.filter(pk=sample_employee.pk).exists()
        assert Employee.all_objects.get(pk=sample_employee.pk).deleted_by is None

    def test_badge_number_format(self):
        assert is_valid_badge_number('MTI240266')
        assert is_valid_badge_number('EXT-0042')
        assert not is_valid_badge_number('AB')
        assert not is_valid_badge_number('MTI 240266')
        assert not is_valid_badge_number(None)
