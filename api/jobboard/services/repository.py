from __future__ import annotations

import json
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from jobboard.core.config import get_settings


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable or not configured."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when an operation violates state transition rules or uniqueness."""


class RepositoryForbiddenError(RepositoryError):
    """Raised when an operation is not permitted for the actor."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


SCRAPED_JOB_STATUSES = ("scraped", "enriching", "enriched", "indexed", "failed")
SCRAPED_JOB_CORE_FIELDS = (
    "external_id",
    "source",
    "company",
    "title",
    "description",
    "url",
    "city",
    "state",
    "lat",
    "lng",
    "pay_min",
    "pay_max",
    "pay_type",
    "is_urgent",
    "is_easy_apply",
    "posted_at",
    "work_schedule",
    "onet_code",
    "transit_grade",
    "transit_distance_miles",
    "transit_nearby_stops",
    "transit_nearby_rail",
)
SCRAPED_JOB_ENRICHMENT_FIELDS = (
    "transit_score",
    "transit_distance",
    "bus_accessible",
    "rail_accessible",
    "shift_morning",
    "shift_afternoon",
    "shift_evening",
    "shift_overnight",
    "shift_flexible",
    "shift_source",
    "second_chance",
    "second_chance_tier",
    "second_chance_score",
    "second_chance_confidence",
    "second_chance_signals",
    "second_chance_reasoning",
    "no_background_check",
)
SENDER_STATUSES = {"pending", "approved", "blocked"}
SENDER_UPDATE_FIELDS = ("name", "company", "email", "notes")
INBOUND_MESSAGE_STATUSES = {"pending_review", "approved", "rejected", "processed"}
SUBMISSION_SOURCES = {"sms", "form"}
SUBMISSION_STATUSES = {"pending_parse", "pending_approval", "approved", "denied", "closed"}
SUBMISSION_CLOSE_REASONS = {"employer_request", "auto_expired"}
EMPLOYER_STATUSES = {"pending_review", "approved", "rejected"}
PROFILE_FIELDS = ("name", "email", "phone", "bio", "home_lat", "home_lon", "home_address")
JOB_PREFERENCE_FIELDS = (
    "max_commute_minutes",
    "require_bus",
    "require_rail",
    "require_public_transit",
    "require_second_chance",
    "prefer_second_chance",
    "prefer_urgent",
    "prefer_easy_apply",
    "shift_morning",
    "shift_afternoon",
    "shift_evening",
    "shift_overnight",
    "shift_flexible",
)
COMMUTE_MINUTES = {10, 30, 60}
JOB_REVIEW_STATUSES = {"saved", "skipped"}

_SCRAPED_JOB_COLUMNS = ",\n".join(
    ["id::text as id", *SCRAPED_JOB_CORE_FIELDS, *SCRAPED_JOB_ENRICHMENT_FIELDS]
    + [
        "status::text as status",
        "scraped_at",
        "enriched_at",
        "indexed_at",
        "failure_reason",
        "failure_stage",
        "typesense_id",
    ]
)
_SENDER_COLUMNS = """
  id::text as id,
  phone,
  name,
  company,
  email,
  status::text as status,
  notes,
  created_at,
  updated_at
"""
_SUBMISSION_COLUMNS = """
  s.id::text as id,
  s.source::text as source,
  s.sender_id::text as sender_id,
  s.raw_content,
  s.parsed_job,
  s.status::text as status,
  s.approved_at,
  s.approved_by,
  s.denied_at,
  s.deny_reason,
  s.closed_at,
  s.closed_reason,
  s.created_at,
  snd.phone as sender_phone,
  snd.name as sender_name
"""
_EMPLOYER_COLUMNS = """
  id::text as id,
  sender_id::text as sender_id,
  name,
  email,
  company,
  role,
  website,
  status::text as status,
  approved_at,
  approved_by,
  created_at
"""
_PROFILE_COLUMNS = """
  id::text as id,
  user_id,
  name,
  email,
  phone,
  bio,
  home_lat,
  home_lon,
  home_address,
  created_at,
  updated_at
"""
_APPLICATION_COLUMNS = """
  a.id::text as id,
  a.job_submission_id::text as job_submission_id,
  a.seeker_profile_id::text as seeker_profile_id,
  a.resume_id,
  a.status::text as status,
  a.applied_at,
  a.connected_at,
  a.passed_at,
  p.name as seeker_name,
  p.email as seeker_email,
  p.phone as seeker_phone
"""


class PostgresRepository:
    def __init__(self, database_url: str | None, min_pool_size: int, max_pool_size: int) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    # Scraped jobs

    async def insert_scraped_job(self, *, fields: dict[str, Any]) -> dict[str, Any]:
        values = self._validate_scraped_job_fields(fields)
        pool = await self._get_pool()
        placeholders = ", ".join(f"${index}" for index in range(1, len(SCRAPED_JOB_CORE_FIELDS) + 1))
        try:
            row = await pool.fetchrow(
                f"""
                insert into scraped_jobs ({", ".join(SCRAPED_JOB_CORE_FIELDS)}, status, scraped_at)
                values ({placeholders}, 'scraped', now())
                returning {_SCRAPED_JOB_COLUMNS}
                """,
                *[values[key] for key in SCRAPED_JOB_CORE_FIELDS],
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(
                f"scraped job already exists: source={values['source']} external_id={values['external_id']}"
            ) from exc
        return self._scraped_job_row_to_dict(row)

    async def enrich_scraped_job(self, *, job_id: str, signals: dict[str, Any]) -> dict[str, Any]:
        patch = self._validate_enrichment_signals(signals)
        assignments: list[str] = []
        args: list[Any] = [job_id]
        for key, value in patch.items():
            args.append(value)
            assignments.append(f"{key} = ${len(args)}")
        assignments.extend(["status = 'enriched'", "enriched_at = now()"])

        row = await self._fetchrow_by_uuid(
            f"""
            update scraped_jobs
            set {", ".join(assignments)}
            where id = $1::uuid
            returning {_SCRAPED_JOB_COLUMNS}
            """,
            *args,
        )
        if not row:
            raise RepositoryNotFoundError(f"Job not found: {job_id}")
        return self._scraped_job_row_to_dict(row)

    async def mark_scraped_job_indexed(self, *, job_id: str, typesense_id: str) -> dict[str, Any]:
        normalized_typesense_id = self._coerce_text(typesense_id)
        if not normalized_typesense_id:
            raise RepositoryValidationError("typesense_id must be a non-empty string")
        row = await self._fetchrow_by_uuid(
            f"""
            update scraped_jobs
            set status = 'indexed', indexed_at = now(), typesense_id = $2
            where id = $1::uuid
            returning {_SCRAPED_JOB_COLUMNS}
            """,
            job_id,
            normalized_typesense_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"Job not found: {job_id}")
        return self._scraped_job_row_to_dict(row)

    async def update_scraped_job_status(
        self,
        *,
        job_id: str,
        status: str,
        failure_reason: str | None = None,
        failure_stage: str | None = None,
    ) -> dict[str, Any]:
        if status not in SCRAPED_JOB_STATUSES:
            raise RepositoryValidationError(f"status must be one of: {', '.join(SCRAPED_JOB_STATUSES)}")
        row = await self._fetchrow_by_uuid(
            f"""
            update scraped_jobs
            set
              status = $2::scraped_job_status,
              failure_reason = coalesce($3, failure_reason),
              failure_stage = coalesce($4, failure_stage)
            where id = $1::uuid
            returning {_SCRAPED_JOB_COLUMNS}
            """,
            job_id,
            status,
            failure_reason,
            failure_stage,
        )
        if not row:
            raise RepositoryNotFoundError(f"Job not found: {job_id}")
        return self._scraped_job_row_to_dict(row)

    async def get_scraped_job(self, *, job_id: str) -> dict[str, Any]:
        row = await self._fetchrow_by_uuid(
            f"select {_SCRAPED_JOB_COLUMNS} from scraped_jobs where id = $1::uuid",
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"Job not found: {job_id}")
        return self._scraped_job_row_to_dict(row)

    async def get_scraped_job_by_external_id(self, *, external_id: str, source: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"select {_SCRAPED_JOB_COLUMNS} from scraped_jobs where external_id = $1 and source = $2",
            external_id,
            source,
        )
        return self._scraped_job_row_to_dict(row) if row else None

    async def get_scraped_job_by_typesense_id(self, *, typesense_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"select {_SCRAPED_JOB_COLUMNS} from scraped_jobs where typesense_id = $1 limit 1",
            typesense_id,
        )
        return self._scraped_job_row_to_dict(row) if row else None

    async def list_scraped_jobs_by_status(self, *, status: str, limit: int | None = None) -> list[dict[str, Any]]:
        if status not in SCRAPED_JOB_STATUSES:
            raise RepositoryValidationError(f"status must be one of: {', '.join(SCRAPED_JOB_STATUSES)}")
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_SCRAPED_JOB_COLUMNS}
            from scraped_jobs
            where status = $1::scraped_job_status
            order by scraped_at asc
            limit $2
            """,
            status,
            limit,
        )
        return [self._scraped_job_row_to_dict(row) for row in rows]

    async def list_recent_failed_scraped_jobs(self, *, limit: int = 100) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_SCRAPED_JOB_COLUMNS}
            from scraped_jobs
            where status = 'failed'
            order by scraped_at desc
            limit $1
            """,
            limit,
        )
        return [self._scraped_job_row_to_dict(row) for row in rows]

    async def get_scraped_job_stats(self) -> dict[str, int]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select status::text as status, count(*)::int as count
            from scraped_jobs
            group by status
            """
        )
        stats = {status: 0 for status in SCRAPED_JOB_STATUSES}
        for row in rows:
            stats[row["status"]] = int(row["count"])
        stats["total"] = sum(stats[status] for status in SCRAPED_JOB_STATUSES)
        return stats

    async def list_scraped_job_ids(self, *, limit: int) -> list[str]:
        pool = await self._get_pool()
        rows = await pool.fetch("select id::text as id from scraped_jobs order by id limit $1", limit)
        return [row["id"] for row in rows]

    async def delete_scraped_job(self, *, job_id: str) -> dict[str, Any]:
        row = await self._fetchrow_by_uuid(
            """
            delete from scraped_jobs
            where id = $1::uuid
            returning external_id, source, typesense_id
            """,
            job_id,
        )
        if not row:
            raise RepositoryNotFoundError(f"Job not found: {job_id}")
        return {
            "external_id": row["external_id"],
            "source": row["source"],
            "typesense_id": row["typesense_id"],
        }

    async def delete_scraped_jobs(self, *, job_ids: list[str]) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for job_id in job_ids:
            try:
                deleted = await self.delete_scraped_job(job_id=job_id)
            except RepositoryNotFoundError:
                results.append({"id": job_id, "deleted": False, "error": "not_found"})
                continue
            results.append({"id": job_id, "deleted": True, **deleted})
        return results

    # Senders

    async def get_sender(self, *, sender_id: str) -> dict[str, Any] | None:
        row = await self._fetchrow_by_uuid(f"select {_SENDER_COLUMNS} from senders where id = $1::uuid", sender_id)
        return dict(row) if row else None

    async def get_sender_by_phone(self, *, phone: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(f"select {_SENDER_COLUMNS} from senders where phone = $1", phone)
        return dict(row) if row else None

    async def get_or_create_sender(
        self,
        *,
        phone: str,
        name: str | None = None,
        company: str | None = None,
        email: str | None = None,
    ) -> dict[str, Any]:
        normalized_phone = self._coerce_text(phone)
        if not normalized_phone:
            raise RepositoryValidationError("phone must be a non-empty string")
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    insert into senders (phone, name, company, email)
                    values ($1, $2, $3, $4)
                    on conflict (phone) do nothing
                    """,
                    normalized_phone,
                    name,
                    company,
                    email,
                )
                row = await conn.fetchrow(f"select {_SENDER_COLUMNS} from senders where phone = $1", normalized_phone)
        return dict(row)

    async def list_senders(self, *, status: str | None = None, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        if status is not None and status not in SENDER_STATUSES:
            raise RepositoryValidationError("status must be one of: pending, approved, blocked")
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_SENDER_COLUMNS}
            from senders
            where $1::sender_status is null or status = $1::sender_status
            order by created_at desc
            limit $2 offset $3
            """,
            status,
            limit,
            offset,
        )
        return [dict(row) for row in rows]

    async def update_sender(self, *, sender_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        patch = {key: fields[key] for key in SENDER_UPDATE_FIELDS if key in fields}
        assignments = ["updated_at = now()"]
        args: list[Any] = [sender_id]
        for key, value in patch.items():
            args.append(value)
            assignments.append(f"{key} = ${len(args)}")
        row = await self._fetchrow_by_uuid(
            f"""
            update senders
            set {", ".join(assignments)}
            where id = $1::uuid
            returning {_SENDER_COLUMNS}
            """,
            *args,
        )
        if not row:
            raise RepositoryNotFoundError("Sender not found")
        return dict(row)

    async def update_sender_status(self, *, sender_id: str, status: str) -> dict[str, Any]:
        if status not in SENDER_STATUSES:
            raise RepositoryValidationError("status must be one of: pending, approved, blocked")
        if not self._is_uuid(sender_id):
            raise RepositoryNotFoundError("Sender not found")
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"""
                    update senders
                    set status = $2::sender_status, updated_at = now()
                    where id = $1::uuid
                    returning {_SENDER_COLUMNS}
                    """,
                    sender_id,
                    status,
                )
                if not row:
                    raise RepositoryNotFoundError("Sender not found")
                if status == "approved":
                    await conn.execute(
                        """
                        update inbound_messages
                        set status = 'approved'
                        where phone = $1 and status = 'pending_review'
                        """,
                        row["phone"],
                    )
        return dict(row)

    # Inbound messages

    async def create_inbound_message(
        self,
        *,
        phone: str,
        body: str,
        twilio_message_sid: str,
        sender_id: str | None = None,
        status: str = "pending_review",
    ) -> dict[str, Any]:
        if status not in INBOUND_MESSAGE_STATUSES:
            raise RepositoryValidationError("invalid inbound message status")
        if sender_id is not None and not self._is_uuid(sender_id):
            raise RepositoryValidationError("sender_id must be a valid id")
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                insert into inbound_messages (phone, body, twilio_message_sid, sender_id, status)
                values ($1, $2, $3, $4::uuid, $5::inbound_message_status)
                returning id::text as id
                """,
                phone,
                body,
                twilio_message_sid,
                sender_id,
                status,
            )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError(f"message already recorded: {twilio_message_sid}") from exc
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryValidationError("sender not found") from exc
        return await self.get_inbound_message(message_id=row["id"])

    async def get_inbound_message(self, *, message_id: str) -> dict[str, Any]:
        row = await self._fetchrow_by_uuid(
            """
            select
              m.id::text as id,
              m.phone,
              m.body,
              m.twilio_message_sid,
              m.sender_id::text as sender_id,
              m.status::text as status,
              m.submission_id::text as submission_id,
              m.created_at,
              snd.name as sender_name,
              snd.status::text as sender_status
            from inbound_messages m
            left join senders snd on snd.id = m.sender_id
            where m.id = $1::uuid
            """,
            message_id,
        )
        if not row:
            raise RepositoryNotFoundError("Message not found")
        return dict(row)

    async def get_inbound_message_by_sid(self, *, twilio_message_sid: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        message_id = await pool.fetchval(
            "select id::text from inbound_messages where twilio_message_sid = $1",
            twilio_message_sid,
        )
        if message_id is None:
            return None
        return await self.get_inbound_message(message_id=message_id)

    async def link_inbound_message_submission(self, *, message_id: str, submission_id: str) -> None:
        if not self._is_uuid(submission_id):
            raise RepositoryValidationError("submission_id must be a valid id")
        row = await self._fetchrow_by_uuid(
            """
            update inbound_messages
            set submission_id = $2::uuid
            where id = $1::uuid
            returning id
            """,
            message_id,
            submission_id,
        )
        if not row:
            raise RepositoryNotFoundError("Message not found")

    async def list_inbound_messages(self, *, status: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        if status is not None and status not in INBOUND_MESSAGE_STATUSES:
            raise RepositoryValidationError("invalid inbound message status")
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select
              m.id::text as id,
              m.phone,
              m.body,
              m.twilio_message_sid,
              m.sender_id::text as sender_id,
              m.status::text as status,
              m.submission_id::text as submission_id,
              m.created_at,
              snd.name as sender_name,
              snd.status::text as sender_status
            from inbound_messages m
            left join senders snd on snd.id = m.sender_id
            where $1::inbound_message_status is null or m.status = $1::inbound_message_status
            order by m.created_at desc
            limit $2
            """,
            status,
            limit,
        )
        return [dict(row) for row in rows]

    async def update_inbound_message_status(self, *, message_id: str, status: str) -> dict[str, Any]:
        if status not in INBOUND_MESSAGE_STATUSES:
            raise RepositoryValidationError("invalid inbound message status")
        row = await self._fetchrow_by_uuid(
            """
            update inbound_messages
            set status = $2::inbound_message_status
            where id = $1::uuid
            returning id::text as id
            """,
            message_id,
            status,
        )
        if not row:
            raise RepositoryNotFoundError("Message not found")
        return await self.get_inbound_message(message_id=message_id)

    async def delete_inbound_message(self, *, message_id: str) -> None:
        row = await self._fetchrow_by_uuid(
            "delete from inbound_messages where id = $1::uuid returning id",
            message_id,
        )
        if not row:
            raise RepositoryNotFoundError("Message not found")

    # Job submissions

    async def create_submission(self, *, source: str, raw_content: str, sender_id: str | None = None) -> dict[str, Any]:
        if source not in SUBMISSION_SOURCES:
            raise RepositoryValidationError("source must be one of: sms, form")
        if sender_id is not None and not self._is_uuid(sender_id):
            raise RepositoryValidationError("sender_id must be a valid id")
        pool = await self._get_pool()
        try:
            row = await pool.fetchrow(
                """
                insert into job_submissions (source, sender_id, raw_content, status)
                values ($1::submission_source, $2::uuid, $3, 'pending_parse')
                returning id::text as id
                """,
                source,
                sender_id,
                raw_content,
            )
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryValidationError("sender not found") from exc
        return await self._require_submission(row["id"])

    async def get_submission(self, *, submission_id: str) -> dict[str, Any] | None:
        row = await self._fetchrow_by_uuid(
            f"""
            select {_SUBMISSION_COLUMNS}
            from job_submissions s
            left join senders snd on snd.id = s.sender_id
            where s.id = $1::uuid
            """,
            submission_id,
        )
        return self._submission_row_to_dict(row) if row else None

    async def update_submission_parsed(self, *, submission_id: str, parsed_job: dict[str, Any]) -> dict[str, Any]:
        row = await self._fetchrow_by_uuid(
            """
            update job_submissions
            set parsed_job = $2::jsonb, status = 'pending_approval'
            where id = $1::uuid
            returning id::text as id
            """,
            submission_id,
            json.dumps(parsed_job),
        )
        if not row:
            raise RepositoryNotFoundError("Submission not found")
        return await self._require_submission(submission_id)

    async def admin_update_parsed_submission(self, *, submission_id: str, parsed_job: dict[str, Any]) -> dict[str, Any]:
        async with self._lock_submission(submission_id) as (conn, current):
            if current["status"] != "pending_approval":
                raise RepositoryConflictError(
                    f"Cannot edit job: status is {current['status']}. Only pending_approval jobs can be edited."
                )
            await conn.execute(
                "update job_submissions set parsed_job = $2::jsonb where id = $1::uuid",
                submission_id,
                json.dumps(parsed_job),
            )
        return await self._require_submission(submission_id)

    async def approve_submission(self, *, submission_id: str, approved_by: str) -> dict[str, Any]:
        async with self._lock_submission(submission_id) as (conn, current):
            if current["status"] == "closed":
                raise RepositoryConflictError("Cannot approve: status is closed")
            if current["status"] != "approved":
                if current["parsed_job"] is None:
                    raise RepositoryConflictError("Job not parsed yet")
                await conn.execute(
                    """
                    update job_submissions
                    set status = 'approved', approved_at = now(), approved_by = $2
                    where id = $1::uuid
                    """,
                    submission_id,
                    approved_by,
                )
                if current["sender_id"]:
                    await conn.execute(
                        """
                        update senders
                        set status = 'approved', updated_at = now()
                        where id = $1::uuid and status = 'pending'
                        """,
                        current["sender_id"],
                    )
        return await self._require_submission(submission_id)

    async def deny_submission(self, *, submission_id: str, reason: str | None = None) -> dict[str, Any]:
        async with self._lock_submission(submission_id) as (conn, current):
            if current["status"] == "closed":
                raise RepositoryConflictError("Cannot deny: status is closed")
            if current["status"] != "denied":
                await conn.execute(
                    """
                    update job_submissions
                    set status = 'denied', denied_at = now(), deny_reason = $2
                    where id = $1::uuid
                    """,
                    submission_id,
                    self._coerce_text(reason) or "Denied",
                )
        return await self._require_submission(submission_id)

    async def close_submission(self, *, submission_id: str, reason: str) -> dict[str, bool]:
        if reason not in SUBMISSION_CLOSE_REASONS:
            raise RepositoryValidationError("reason must be one of: employer_request, auto_expired")
        async with self._lock_submission(submission_id) as (conn, current):
            if current["status"] == "closed":
                return {"already_closed": True}
            if current["status"] != "approved":
                raise RepositoryConflictError(f"Cannot close: status is {current['status']}")
            await conn.execute(
                """
                update job_submissions
                set status = 'closed', closed_at = now(), closed_reason = $2
                where id = $1::uuid
                """,
                submission_id,
                reason,
            )
        return {"already_closed": False}

    async def list_submissions(
        self,
        *,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        if status is not None and status not in SUBMISSION_STATUSES:
            raise RepositoryValidationError("invalid submission status")
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_SUBMISSION_COLUMNS}
            from job_submissions s
            left join senders snd on snd.id = s.sender_id
            where $1::submission_status is null or s.status = $1::submission_status
            order by s.created_at desc
            limit $2 offset $3
            """,
            status,
            limit,
            offset,
        )
        return [self._submission_row_to_dict(row) for row in rows]

    async def list_open_submissions_by_sender(self, *, sender_id: str) -> list[dict[str, Any]]:
        if not self._is_uuid(sender_id):
            return []
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_SUBMISSION_COLUMNS}
            from job_submissions s
            left join senders snd on snd.id = s.sender_id
            where s.sender_id = $1::uuid and s.status = 'approved'
            order by s.created_at desc
            """,
            sender_id,
        )
        return [self._submission_row_to_dict(row) for row in rows]

    # Employers

    async def create_employer_for_sender(
        self,
        *,
        sender_id: str,
        name: str,
        email: str,
        company: str,
        role: str | None = None,
        website: str | None = None,
    ) -> tuple[dict[str, Any], bool]:
        if not self._is_uuid(sender_id):
            raise RepositoryNotFoundError("Sender not found")
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                try:
                    inserted = await conn.fetchrow(
                        """
                        insert into employers (sender_id, name, email, company, role, website)
                        values ($1::uuid, $2, $3, $4, $5, $6)
                        on conflict (sender_id) do nothing
                        returning id
                        """,
                        sender_id,
                        name,
                        email,
                        company,
                        role,
                        website,
                    )
                except pg_exc.ForeignKeyViolationError as exc:
                    raise RepositoryNotFoundError("Sender not found") from exc
                row = await conn.fetchrow(
                    f"select {_EMPLOYER_COLUMNS} from employers where sender_id = $1::uuid",
                    sender_id,
                )
        return dict(row), inserted is None

    async def get_employer(self, *, employer_id: str) -> dict[str, Any] | None:
        row = await self._fetchrow_by_uuid(
            f"select {_EMPLOYER_COLUMNS} from employers where id = $1::uuid",
            employer_id,
        )
        return dict(row) if row else None

    async def get_employer_by_sender(self, *, sender_id: str) -> dict[str, Any] | None:
        row = await self._fetchrow_by_uuid(
            f"select {_EMPLOYER_COLUMNS} from employers where sender_id = $1::uuid",
            sender_id,
        )
        return dict(row) if row else None

    async def list_employers(self, *, status: str | None = None, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        if status is not None and status not in EMPLOYER_STATUSES:
            raise RepositoryValidationError("status must be one of: pending_review, approved, rejected")
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_EMPLOYER_COLUMNS}
            from employers
            where $1::employer_status is null or status = $1::employer_status
            order by created_at desc
            limit $2 offset $3
            """,
            status,
            limit,
            offset,
        )
        return [dict(row) for row in rows]

    async def approve_employer(self, *, employer_id: str, approved_by: str) -> tuple[dict[str, Any], bool]:
        """Approve an employer; the flag is False when it was already approved."""
        row = await self._fetchrow_by_uuid(
            f"""
            update employers
            set status = 'approved', approved_at = now(), approved_by = $2
            where id = $1::uuid and status <> 'approved'
            returning {_EMPLOYER_COLUMNS}
            """,
            employer_id,
            approved_by,
        )
        if row:
            return dict(row), True
        existing = await self.get_employer(employer_id=employer_id)
        if not existing:
            raise RepositoryNotFoundError("Employer not found")
        return existing, False

    async def reject_employer(self, *, employer_id: str) -> dict[str, Any]:
        row = await self._fetchrow_by_uuid(
            f"""
            update employers
            set status = 'rejected'
            where id = $1::uuid and status <> 'rejected'
            returning {_EMPLOYER_COLUMNS}
            """,
            employer_id,
        )
        if row:
            return dict(row)
        existing = await self.get_employer(employer_id=employer_id)
        if not existing:
            raise RepositoryNotFoundError("Employer not found")
        return existing

    async def delete_employer(self, *, employer_id: str) -> None:
        row = await self._fetchrow_by_uuid("delete from employers where id = $1::uuid returning id", employer_id)
        if not row:
            raise RepositoryNotFoundError("Employer not found")

    # Profiles and preferences

    async def get_profile_by_user(self, *, user_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(f"select {_PROFILE_COLUMNS} from profiles where user_id = $1", user_id)
        return dict(row) if row else None

    async def upsert_profile(self, *, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        patch = {key: fields[key] for key in PROFILE_FIELDS if key in fields}
        columns = ["user_id", *patch.keys()]
        placeholders = [f"${index}" for index in range(1, len(columns) + 1)]
        updates = [f"{key} = excluded.{key}" for key in patch] + ["updated_at = now()"]
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            insert into profiles ({", ".join(columns)})
            values ({", ".join(placeholders)})
            on conflict (user_id) do update set {", ".join(updates)}
            returning {_PROFILE_COLUMNS}
            """,
            user_id,
            *patch.values(),
        )
        return dict(row)

    async def get_job_preferences(self, *, user_id: str) -> dict[str, Any] | None:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"select user_id, {', '.join(JOB_PREFERENCE_FIELDS)}, updated_at from job_preferences where user_id = $1",
            user_id,
        )
        return dict(row) if row else None

    async def upsert_job_preferences(self, *, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        commute = fields.get("max_commute_minutes")
        if commute is not None and commute not in COMMUTE_MINUTES:
            raise RepositoryValidationError("max_commute_minutes must be one of: 10, 30, 60")
        values = [fields.get(key, None if key == "max_commute_minutes" else False) for key in JOB_PREFERENCE_FIELDS]
        placeholders = ", ".join(f"${index}" for index in range(2, len(JOB_PREFERENCE_FIELDS) + 2))
        updates = ", ".join(f"{key} = excluded.{key}" for key in JOB_PREFERENCE_FIELDS)
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            insert into job_preferences (user_id, {", ".join(JOB_PREFERENCE_FIELDS)})
            values ($1, {placeholders})
            on conflict (user_id) do update set {updates}, updated_at = now()
            returning user_id, {", ".join(JOB_PREFERENCE_FIELDS)}, updated_at
            """,
            user_id,
            *values,
        )
        return dict(row)

    # Job reviews

    async def review_job(
        self,
        *,
        user_id: str,
        job_id: str,
        status: str,
        job_snapshot: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if status not in JOB_REVIEW_STATUSES:
            raise RepositoryValidationError("status must be one of: saved, skipped")
        pool = await self._get_pool()
        row = await pool.fetchrow(
            """
            insert into job_reviews (user_id, job_id, status, job_snapshot)
            values ($1, $2, $3::job_review_status, $4::jsonb)
            on conflict (user_id, job_id) do update
              set status = excluded.status, job_snapshot = excluded.job_snapshot, reviewed_at = now()
            returning id::text as id, user_id, job_id, status::text as status, job_snapshot, reviewed_at
            """,
            user_id,
            job_id,
            status,
            json.dumps(job_snapshot) if job_snapshot is not None else None,
        )
        return self._review_row(row)

    async def unsave_job(self, *, user_id: str, job_id: str) -> bool:
        pool = await self._get_pool()
        row = await pool.fetchrow(
            "delete from job_reviews where user_id = $1 and job_id = $2 returning id",
            user_id,
            job_id,
        )
        return row is not None

    async def list_reviewed_job_ids(self, *, user_id: str) -> list[str]:
        pool = await self._get_pool()
        rows = await pool.fetch("select job_id from job_reviews where user_id = $1", user_id)
        return [row["job_id"] for row in rows]

    async def list_saved_jobs(self, *, user_id: str) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        rows = await pool.fetch(
            """
            select id::text as id, user_id, job_id, status::text as status, job_snapshot, reviewed_at
            from job_reviews
            where user_id = $1 and status = 'saved'
            order by reviewed_at desc
            """,
            user_id,
        )
        return [self._review_row(row) for row in rows]

    # Applications

    async def create_application(
        self,
        *,
        job_submission_id: str,
        seeker_profile_id: str,
        resume_id: str | None = None,
    ) -> dict[str, Any]:
        if not self._is_uuid(job_submission_id):
            raise RepositoryNotFoundError("Job not found")
        if not self._is_uuid(seeker_profile_id):
            raise RepositoryNotFoundError("Profile not found")
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    job_row = await conn.fetchrow(
                        "select status::text as status from job_submissions where id = $1::uuid for share",
                        job_submission_id,
                    )
                    if not job_row:
                        raise RepositoryNotFoundError("Job not found")
                    if job_row["status"] != "approved":
                        raise RepositoryConflictError("Job is not accepting applications")

                    existing_count = await conn.fetchval(
                        "select count(*)::int from applications where job_submission_id = $1::uuid",
                        job_submission_id,
                    )
                    row = await conn.fetchrow(
                        """
                        insert into applications (job_submission_id, seeker_profile_id, resume_id, status, applied_at)
                        values ($1::uuid, $2::uuid, $3, 'pending', now())
                        returning id::text as id
                        """,
                        job_submission_id,
                        seeker_profile_id,
                        resume_id,
                    )
        except pg_exc.UniqueViolationError as exc:
            raise RepositoryConflictError("Already applied to this job") from exc
        except pg_exc.ForeignKeyViolationError as exc:
            raise RepositoryNotFoundError("Profile not found") from exc
        return {"id": row["id"], "is_first_applicant": existing_count == 0}

    async def get_application_for_seeker(
        self, *, job_submission_id: str, seeker_profile_id: str
    ) -> dict[str, Any] | None:
        if not self._is_uuid(job_submission_id) or not self._is_uuid(seeker_profile_id):
            return None
        pool = await self._get_pool()
        row = await pool.fetchrow(
            f"""
            select
              {_APPLICATION_COLUMNS},
              not exists(
                select 1 from applications earlier
                where earlier.job_submission_id = a.job_submission_id and earlier.applied_at < a.applied_at
              ) as is_first_applicant
            from applications a
            left join profiles p on p.id = a.seeker_profile_id
            where a.job_submission_id = $1::uuid and a.seeker_profile_id = $2::uuid
            """,
            job_submission_id,
            seeker_profile_id,
        )
        return dict(row) if row else None

    async def has_applied(self, *, job_submission_id: str, seeker_profile_id: str) -> bool:
        if not self._is_uuid(job_submission_id) or not self._is_uuid(seeker_profile_id):
            return False
        pool = await self._get_pool()
        found = await pool.fetchval(
            """
            select exists(
              select 1 from applications
              where job_submission_id = $1::uuid and seeker_profile_id = $2::uuid
            )
            """,
            job_submission_id,
            seeker_profile_id,
        )
        return bool(found)

    async def count_applications(self, *, job_submission_id: str) -> int:
        if not self._is_uuid(job_submission_id):
            return 0
        pool = await self._get_pool()
        count = await pool.fetchval(
            "select count(*)::int from applications where job_submission_id = $1::uuid",
            job_submission_id,
        )
        return int(count or 0)

    async def list_applications_for_job(self, *, job_submission_id: str) -> list[dict[str, Any]]:
        if not self._is_uuid(job_submission_id):
            return []
        pool = await self._get_pool()
        rows = await pool.fetch(
            f"""
            select {_APPLICATION_COLUMNS}
            from applications a
            left join profiles p on p.id = a.seeker_profile_id
            where a.job_submission_id = $1::uuid
            order by a.applied_at desc
            """,
            job_submission_id,
        )
        return [dict(row) for row in rows]

    async def get_application(self, *, application_id: str) -> dict[str, Any] | None:
        row = await self._fetchrow_by_uuid(
            f"""
            select {_APPLICATION_COLUMNS}
            from applications a
            left join profiles p on p.id = a.seeker_profile_id
            where a.id = $1::uuid
            """,
            application_id,
        )
        return dict(row) if row else None

    async def mark_application_connected(self, *, application_id: str) -> dict[str, Any]:
        return await self._mark_application(application_id=application_id, status="connected", column="connected_at")

    async def mark_application_passed(self, *, application_id: str) -> dict[str, Any]:
        return await self._mark_application(application_id=application_id, status="passed", column="passed_at")

    async def _mark_application(self, *, application_id: str, status: str, column: str) -> dict[str, Any]:
        await self._fetchrow_by_uuid(
            f"""
            update applications
            set status = $2::application_status, {column} = now()
            where id = $1::uuid and status <> $2::application_status
            returning id
            """,
            application_id,
            status,
        )
        application = await self.get_application(application_id=application_id)
        if not application:
            raise RepositoryNotFoundError("Application not found")
        return application

    # Internals

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            raise RepositoryUnavailableError("DATABASE_URL is required")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=15,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            raise RepositoryUnavailableError("database unavailable") from exc

    async def _fetchrow_by_uuid(self, query: str, entity_id: str, *args: Any) -> asyncpg.Record | None:
        if not self._is_uuid(entity_id):
            return None
        pool = await self._get_pool()
        try:
            return await pool.fetchrow(query, entity_id, *args)
        except (pg_exc.InvalidTextRepresentationError, asyncpg.DataError):
            return None

    async def _require_submission(self, submission_id: str) -> dict[str, Any]:
        submission = await self.get_submission(submission_id=submission_id)
        if not submission:
            raise RepositoryNotFoundError("Submission not found")
        return submission

    @asynccontextmanager
    async def _lock_submission(self, submission_id: str) -> AsyncIterator[tuple[asyncpg.Connection, dict[str, Any]]]:
        if not self._is_uuid(submission_id):
            raise RepositoryNotFoundError("Submission not found")
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    select
                      id::text as id,
                      sender_id::text as sender_id,
                      parsed_job,
                      status::text as status
                    from job_submissions
                    where id = $1::uuid
                    for update
                    """,
                    submission_id,
                )
                if not row:
                    raise RepositoryNotFoundError("Submission not found")
                yield conn, dict(row)


    def _validate_scraped_job_fields(self, fields: dict[str, Any]) -> dict[str, Any]:
        values = {key: fields.get(key) for key in SCRAPED_JOB_CORE_FIELDS}
        for key in ("external_id", "source", "company", "title", "url"):
            normalized = self._coerce_text(values[key]) if key in {"external_id", "source"} else values[key]
            if normalized is None:
                raise RepositoryValidationError(f"{key} is required")
            values[key] = normalized
        values["is_urgent"] = bool(values["is_urgent"])
        values["is_easy_apply"] = bool(values["is_easy_apply"])
        posted_at = values["posted_at"]
        if posted_at is not None and not isinstance(posted_at, datetime):
            raise RepositoryValidationError("posted_at must be a datetime")
        return values

    @staticmethod
    def _validate_enrichment_signals(signals: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(signals) - set(SCRAPED_JOB_ENRICHMENT_FIELDS))
        if unknown:
            raise RepositoryValidationError(f"unknown enrichment fields: {unknown}")
        confidence = signals.get("second_chance_confidence")
        if confidence is not None and not 0.0 <= float(confidence) <= 1.0:
            raise RepositoryValidationError("second_chance_confidence must be within 0..1")
        return {key: signals[key] for key in SCRAPED_JOB_ENRICHMENT_FIELDS if key in signals}

    @staticmethod
    def _scraped_job_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        payload = dict(row)
        signals = payload.get("second_chance_signals")
        payload["second_chance_signals"] = list(signals) if signals is not None else None
        schedule = payload.get("work_schedule")
        payload["work_schedule"] = list(schedule) if schedule is not None else None
        return payload

    @classmethod
    def _submission_row_to_dict(cls, row: asyncpg.Record) -> dict[str, Any]:
        payload = dict(row)
        parsed_job = payload.get("parsed_job")
        payload["parsed_job"] = cls._coerce_json_dict(parsed_job) if parsed_job is not None else None
        return payload

    @staticmethod
    def _is_uuid(value: Any) -> bool:
        if not isinstance(value, str):
            return False
        try:
            uuid.UUID(value)
        except ValueError:
            return False
        return True

    def _review_row(self, row: asyncpg.Record) -> dict[str, Any]:
        review = dict(row)
        snapshot = review.get("job_snapshot")
        review["job_snapshot"] = self._coerce_json_dict(snapshot) if snapshot is not None else None
        return review

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)

    @staticmethod
    def _coerce_json_dict(value: Any) -> dict[str, Any]:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return {}
        if isinstance(value, dict):
            return value
        return {}


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    if settings.storage_backend == "memory":
        from jobboard.services.store import InMemoryRepository

        return InMemoryRepository()  # type: ignore[return-value]
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
    )
