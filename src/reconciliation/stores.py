"""
Record stores used by reconciliation.

A store exposes the capabilities reconciliation needs:

    fetch_all(table)                        -> list of row dicts
    update(table, record_id, fields)        -> None
    update_many(table, record_ids, fields)  -> {record_id: error}

DjangoStore talks to the service database through the ORM.
SupabaseStore talks to the hosted project through its PostgREST API.
Both raise StoreError for anything that goes wrong on the wire or in
the database; the engine itself never does.
"""
import contextlib
import logging

import requests
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from audit.middleware import audit_actor
from employees.models import Employee
from surveys.models import SurveyResponse

logger = logging.getLogger(__name__)

TABLES = ('employees', 'survey_responses')


class StoreError(RuntimeError):
    """Raised when a store cannot read or write records."""


class SurveyStore:
    """Base class for record stores."""

    name = 'base'
    supports_atomic = False

    def fetch_all(self, table):
        raise NotImplementedError

    def update(self, table, record_id, fields):
        raise NotImplementedError

    def update_many(self, table, record_ids, fields):
        """
        Set the same fields on several rows.

        Returns {record_id: error} for the rows that could not be
        updated; an empty dict means every row was written.
        """
        failures = {}
        for record_id in record_ids:
            try:
                self.update(table, record_id, fields)
            except StoreError as e:
                failures[record_id] = str(e)
        return failures

    @contextlib.contextmanager
    def atomic(self):
        yield

    def _check_table(self, table):
        if table not in TABLES:
            raise StoreError(f"Unknown table '{table}'")


class DjangoStore(SurveyStore):
    """Store backed by the Django models (employees, survey_responses)."""

    name = 'django'
    supports_atomic = True
    models = {
        'employees': Employee,
        'survey_responses': SurveyResponse,
    }

    def __init__(self, actor='reconciliation'):
        self.actor = actor

    def fetch_all(self, table):
        self._check_table(table)
        model = self.models[table]
        try:
            return [obj.to_row() for obj in model.objects.all().order_by('created_at', 'id')]
        except DatabaseError as e:
            raise StoreError(f"Failed to fetch {table}: {e}") from e

    def update(self, table, record_id, fields):
        self._check_table(table)
        model = self.models[table]
        try:
            obj = model.objects.get(pk=record_id)
        except (model.DoesNotExist, ValidationError, ValueError, DatabaseError) as e:
            raise StoreError(f"{table} row {record_id} not found") from e

        for name, value in fields.items():
            setattr(obj, name, value)
        try:
            with audit_actor(self.actor):
                obj.save(update_fields=list(fields) + ['updated_at'])
        except DatabaseError as e:
            raise StoreError(f"Failed to update {table} row {record_id}: {e}") from e

    @contextlib.contextmanager
    def atomic(self):
        with transaction.atomic():
            yield


class SupabaseStore(SurveyStore):
    """
    Store backed by a hosted Supabase project (PostgREST over HTTPS).

    Every request has a timeout. Connection errors and 5xx responses are
    retried with exponential backoff, making at most `attempts` requests
    in total. Updates are plain `set field=value` patches, so retrying
    them is safe.
    """

    name = 'supabase'

    def __init__(self, base_url, api_key, timeout=30, attempts=3, backoff=0.5,
                 page_size=1000, session=None):
        if not base_url or not api_key:
            raise StoreError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be configured")
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or self._build_session(attempts, backoff)
        self.session.headers.update({
            'apikey': api_key,
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
        })

    @staticmethod
    def _build_session(attempts, backoff):
        session = requests.Session()
        # urllib3 counts retries after the first request
        retries = max(int(attempts) - 1, 0)
        retry = Retry(
            total=retries,
            connect=retries,
            read=retries,
            backoff_factor=backoff,
            status_forcelist=(500, 502, 503, 504),
            allowed_methods=frozenset(['GET', 'PATCH']),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount('https://', adapter)
        session.mount('http://', adapter)
        return session

    def _url(self, table):
        return f"{self.base_url}/rest/v1/{table}"

    def _handle(self, response):
        if 200 <= response.status_code < 300:
            if not response.content:
                return []
            try:
                return response.json()
            except ValueError as e:
                raise StoreError(f"Invalid JSON from {response.url}") from e
        raise StoreError(
            f"{response.request.method} {response.url} failed with "
            f"status {response.status_code}: {response.text}"
        )

    def fetch_all(self, table):
        """
        Read every row of a table, one page at a time.

        The server may cap a page below `page_size` (PostgREST max-rows),
        so only an empty page ends the table.
        """
        self._check_table(table)
        rows = []
        offset = 0
        while True:
            params = {
                'select': '*',
                'order': 'id.asc',
                'limit': self.page_size,
                'offset': offset,
            }
            try:
                response = self.session.get(self._url(table), params=params, timeout=self.timeout)
            except requests.RequestException as e:
                raise StoreError(f"Failed to fetch {table}: {e}") from e
            page = self._handle(response)
            if not page:
                break
            rows.extend(page)
            offset += len(page)
        logger.debug(f"Fetched {len(rows)} rows from {table}")
        return rows

    def _patch(self, table, id_filter, fields):
        try:
            response = self.session.patch(
                self._url(table),
                params={'id': id_filter},
                json=fields,
                headers={'Prefer': 'return=representation'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreError(f"Failed to update {table} ({id_filter}): {e}") from e
        return self._handle(response)

    def update(self, table, record_id, fields):
        self._check_table(table)
        updated = self._patch(table, f'eq.{record_id}', fields)
        if not updated:
            # PostgREST answers 200 with no rows when RLS hides the row
            raise StoreError(
                f"Update of {table} row {record_id} matched no rows "
                f"(missing row or row-level security)"
            )

    def update_many(self, table, record_ids, fields):
        """One PATCH for every id; ids missing from the returned rows failed."""
        self._check_table(table)
        record_ids = list(record_ids)
        if not record_ids:
            return {}
        updated = self._patch(table, f"in.({','.join(str(i) for i in record_ids)})", fields)
        written = {str(row.get('id')) for row in updated}
        return {
            record_id: (
                f"Update of {table} row {record_id} matched no rows "
                f"(missing row or row-level security)"
            )
            for record_id in record_ids
            if str(record_id) not in written
        }


def build_store(name=None):
    """Create the store configured in settings.RECONCILIATION['STORE']."""
    config = settings.RECONCILIATION
    name = name or config.get('STORE', 'django')
    if name == 'django':
        return DjangoStore()
    if name == 'supabase':
        return SupabaseStore(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY,
            timeout=config.get('REQUEST_TIMEOUT', 30),
            attempts=config.get('RETRY_ATTEMPTS', 3),
            backoff=config.get('RETRY_BACKOFF', 0.5),
            page_size=config.get('PAGE_SIZE', 1000),
        )
    raise StoreError(f"Unknown store '{name}'")
