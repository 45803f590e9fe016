import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from google.cloud import bigquery
from google.api_core import exceptions as google_exceptions

from crudbasico.config import Settings
from crudbasico.exceptions import StoreError
from crudbasico.schemas import Task

logger = logging.getLogger(__name__)

TASK_COLUMNS = "id, title, description, priority, status, due_date, created_at"

TASK_SCHEMA = [
    bigquery.SchemaField("id", "STRING", mode="REQUIRED"),
    bigquery.SchemaField("title", "STRING", mode="REQUIRED"),
    bigquery.SchemaField("description", "STRING", mode="NULLABLE"),
    bigquery.SchemaField("priority", "STRING", mode="REQUIRED"),
    bigquery.SchemaField("status", "STRING", mode="REQUIRED"),
    bigquery.SchemaField("due_date", "TIMESTAMP", mode="NULLABLE"),
    bigquery.SchemaField("created_at", "TIMESTAMP", mode="REQUIRED"),
]

# Column -> BigQuery parameter type for fields that can be written.
WRITABLE_COLUMNS = {
    "title": "STRING",
    "description": "STRING",
    "priority": "STRING",
    "status": "STRING",
    "due_date": "TIMESTAMP",
}


def row_to_task(row) -> Task:
    """Helper function to convert BigQuery row to Task model."""
    return Task(
        id=row.id,
        title=row.title,
        description=row.description or "",
        priority=row.priority,
        status=row.status,
        due_date=row.due_date,
        created_at=row.created_at,
    )


def build_find_filter(
    search: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
) -> Tuple[str, List[bigquery.ScalarQueryParameter]]:
    """Build the WHERE clause and parameters for a filtered task listing.

    Search is a case-insensitive literal substring match on title or
    description. All filters are joined with AND. Returns an empty clause
    when nothing is filtered.
    """
    conditions = []
    params = []

    if search:
        conditions.append(
            "(STRPOS(LOWER(title), LOWER(@search)) > 0"
            " OR STRPOS(LOWER(IFNULL(description, '')), LOWER(@search)) > 0)"
        )
        params.append(bigquery.ScalarQueryParameter("search", "STRING", search))
    if status:
        conditions.append("status = @status")
        params.append(bigquery.ScalarQueryParameter("status", "STRING", status))
    if priority:
        conditions.append("priority = @priority")
        params.append(bigquery.ScalarQueryParameter("priority", "STRING", priority))

    if not conditions:
        return "", params
    return "WHERE " + " AND ".join(conditions), params


class TaskStore:
    """Task persistence on a single BigQuery table.

    Every method is blocking; callers in the API run them on a thread pool.
    BigQuery API failures are re-raised as StoreError with the raw message.
    """

    def __init__(self, settings: Settings, client: Optional[bigquery.Client] = None):
        missing = settings.missing_store_vars()
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        if client is None:
            try:
                client = bigquery.Client(project=settings.project_id)
            except Exception as e:
                raise ConnectionError(f"Failed to initialize BigQuery client: {str(e)}") from e

        self.client = client
        self.project_id = settings.project_id
        self.dataset_id = settings.dataset_id
        self.table_id = settings.table_id
        self.location = settings.location

    def get_full_table_id(self) -> str:
        return f"{self.project_id}.{self.dataset_id}.{self.table_id}"

    def ensure_schema(self) -> None:
        """Create the dataset and tasks table if they don't exist."""
        dataset_ref = bigquery.DatasetReference(self.project_id, self.dataset_id)
        dataset = bigquery.Dataset(dataset_ref)
        dataset.location = self.location
        table = bigquery.Table(bigquery.TableReference(dataset_ref, self.table_id), schema=TASK_SCHEMA)

        try:
            self.client.create_dataset(dataset, exists_ok=True)
            logger.info("Dataset '%s' is ready", self.dataset_id)
            self.client.create_table(table, exists_ok=True)
            logger.info("Table '%s' is ready", self.table_id)
        except google_exceptions.GoogleAPICallError as e:
            raise StoreError(str(e)) from e

    def _query(self, query: str, params: Optional[List[bigquery.ScalarQueryParameter]] = None):
        job_config = bigquery.QueryJobConfig(query_parameters=params or [])
        try:
            query_job = self.client.query(query, job_config=job_config)
            rows = list(query_job.result())
        except google_exceptions.GoogleAPICallError as e:
            raise StoreError(str(e)) from e
        return query_job, rows

    def create(self, fields: Dict[str, Any]) -> Task:
        task = Task(
            id=str(uuid.uuid4()),
            title=fields["title"],
            description=fields.get("description", ""),
            priority=fields.get("priority", "medium"),
            status=fields.get("status", "pending"),
            due_date=fields.get("due_date"),
            created_at=datetime.now(timezone.utc),
        )

        query = f"""
        INSERT INTO `{self.get_full_table_id()}`
        ({TASK_COLUMNS})
        VALUES (@id, @title, @description, @priority, @status, @due_date, @created_at)
        """
        self._query(query, [
            bigquery.ScalarQueryParameter("id", "STRING", task.id),
            bigquery.ScalarQueryParameter("title", "STRING", task.title),
            bigquery.ScalarQueryParameter("description", "STRING", task.description),
            bigquery.ScalarQueryParameter("priority", "STRING", task.priority),
            bigquery.ScalarQueryParameter("status", "STRING", task.status),
            bigquery.ScalarQueryParameter("due_date", "TIMESTAMP", task.due_date),
            bigquery.ScalarQueryParameter("created_at", "TIMESTAMP", task.created_at),
        ])
        logger.debug("Created task %s", task.id)
        return task

    def find(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> List[Task]:
        where, params = build_find_filter(search, status, priority)
        query = f"""
        SELECT {TASK_COLUMNS}
        FROM `{self.get_full_table_id()}`
        {where}
        ORDER BY created_at DESC
        """
        _, rows = self._query(query, params)
        return [row_to_task(row) for row in rows]

    def find_by_id(self, task_id: str) -> Optional[Task]:
        query = f"""
        SELECT {TASK_COLUMNS}
        FROM `{self.get_full_table_id()}`
        WHERE id = @task_id
        """
        _, rows = self._query(query, [bigquery.ScalarQueryParameter("task_id", "STRING", task_id)])
        if not rows:
            return None
        return row_to_task(rows[0])

    def update_by_id(self, task_id: str, updates: Dict[str, Any]) -> Optional[Task]:
        """Set only the given columns. Returns the updated task, or None if no row matched."""
        unknown = set(updates) - set(WRITABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")
        if not updates:
            return self.find_by_id(task_id)

        set_clause = ", ".join([f"{field} = @{field}" for field in updates.keys()])
        query = f"""
        UPDATE `{self.get_full_table_id()}`
        SET {set_clause}
        WHERE id = @task_id
        """
        params = [bigquery.ScalarQueryParameter("task_id", "STRING", task_id)] + [
            bigquery.ScalarQueryParameter(field, WRITABLE_COLUMNS[field], value)
            for field, value in updates.items()
        ]
        query_job, _ = self._query(query, params)
        if not query_job.num_dml_affected_rows:
            return None
        return self.find_by_id(task_id)

    def delete_by_id(self, task_id: str) -> bool:
        query = f"""
        DELETE FROM `{self.get_full_table_id()}`
        WHERE id = @task_id
        """
        query_job, _ = self._query(query, [bigquery.ScalarQueryParameter("task_id", "STRING", task_id)])
        return bool(query_job.num_dml_affected_rows)

    def count(self, status: Optional[str] = None) -> int:
        where, params = build_find_filter(status=status)
        query = f"""
        SELECT COUNT(*) AS total
        FROM `{self.get_full_table_id()}`
        {where}
        """
        _, rows = self._query(query, params)
        return rows[0].total if rows else 0

    def ping(self) -> bool:
        """True when the tasks table is reachable."""
        try:
            self.client.get_table(self.get_full_table_id())
        except Exception as e:
            logger.warning("BigQuery health probe failed: %s", e)
            return False
        return True
