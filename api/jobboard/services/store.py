from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from jobboard.services.repository import (
    COMMUTE_MINUTES,
    EMPLOYER_STATUSES,
    INBOUND_MESSAGE_STATUSES,
    JOB_PREFERENCE_FIELDS,
    JOB_REVIEW_STATUSES,
    PROFILE_FIELDS,
    SCRAPED_JOB_CORE_FIELDS,
    SCRAPED_JOB_ENRICHMENT_FIELDS,
    SCRAPED_JOB_STATUSES,
    SENDER_STATUSES,
    SENDER_UPDATE_FIELDS,
    SUBMISSION_CLOSE_REASONS,
    SUBMISSION_SOURCES,
    SUBMISSION_STATUSES,
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryValidationError,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRepository:
    """Process-local repository with the same contract as ``PostgresRepository``.

    Used for local development (``STORAGE_BACKEND=memory``) and tests. Uniqueness
    rules mirror the database constraints: ``(external_id, source)`` for scraped
    jobs, ``(job_submission_id, seeker_profile_id)`` for applications, one
    employer per sender and one profile per user.
    """

    def __init__(self) -> None:
        self.scraped_jobs: dict[str, dict[str, Any]] = {}
        self.senders: dict[str, dict[str, Any]] = {}
        self.inbound_messages: dict[str, dict[str, Any]] = {}
        self.submissions: dict[str, dict[str, Any]] = {}
        self.employers: dict[str, dict[str, Any]] = {}
        self.profiles: dict[str, dict[str, Any]] = {}
        self.preferences: dict[str, dict[str, Any]] = {}
        self.applications: dict[str, dict[str, Any]] = {}
        self.job_reviews: dict[tuple[str, str], dict[str, Any]] = {}

    async def close(self) -> None:
        return None

    # Scraped jobs

    async def insert_scraped_job(self, *, fields: dict[str, Any]) -> dict[str, Any]:
        values = {key: fields.get(key) for key in SCRAPED_JOB_CORE_FIELDS}
        for key in ("external_id", "source", "company", "title", "url"):
            value = values[key]
            if key in {"external_id", "source"} and isinstance(value, str):
                value = value.strip() or None
            if value is None:
                raise RepositoryValidationError(f"{key} is required")
            values[key] = value
        if values["posted_at"] is not None and not isinstance(values["posted_at"], datetime):
            raise RepositoryValidationError("posted_at must be a datetime")
        if self._find_scraped_job(external_id=values["external_id"], source=values["source"]):
            raise RepositoryConflictError(
                f"scraped job already exists: source={values['source']} external_id={values['external_id']}"
            )

        record: dict[str, Any] = {"id": str(uuid4()), **values}
        record["is_urgent"] = bool(values["is_urgent"])
        record["is_easy_apply"] = bool(values["is_easy_apply"])
        record.update({key: None for key in SCRAPED_JOB_ENRICHMENT_FIELDS})
        record.update(
            {
                "status": "scraped",
                "scraped_at": _now(),
                "enriched_at": None,
                "indexed_at": None,
                "failure_reason": None,
                "failure_stage": None,
                "typesense_id": None,
            }
        )
        self.scraped_jobs[record["id"]] = record
        return deepcopy(record)

    async def enrich_scraped_job(self, *, job_id: str, signals: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(signals) - set(SCRAPED_JOB_ENRICHMENT_FIELDS))
        if unknown:
            raise RepositoryValidationError(f"unknown enrichment fields: {unknown}")
        confidence = signals.get("second_chance_confidence")
        if confidence is not None and not 0.0 <= float(confidence) <= 1.0:
            raise RepositoryValidationError("second_chance_confidence must be within 0..1")
        record = self._require_scraped_job(job_id)
        for key in SCRAPED_JOB_ENRICHMENT_FIELDS:
            if key in signals:
                value = signals[key]
                record[key] = list(value) if isinstance(value, (list, tuple)) else value
        record["status"] = "enriched"
        record["enriched_at"] = _now()
        return deepcopy(record)

    async def mark_scraped_job_indexed(self, *, job_id: str, typesense_id: str) -> dict[str, Any]:
        if not isinstance(typesense_id, str) or not typesense_id.strip():
            raise RepositoryValidationError("typesense_id must be a non-empty string")
        record = self._require_scraped_job(job_id)
        record["status"] = "indexed"
        record["indexed_at"] = _now()
        record["typesense_id"] = typesense_id.strip()
        return deepcopy(record)

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
        record = self._require_scraped_job(job_id)
        record["status"] = status
        if failure_reason is not None:
            record["failure_reason"] = failure_reason
        if failure_stage is not None:
            record["failure_stage"] = failure_stage
        return deepcopy(record)

    async def get_scraped_job(self, *, job_id: str) -> dict[str, Any]:
        return deepcopy(self._require_scraped_job(job_id))

    async def get_scraped_job_by_external_id(self, *, external_id: str, source: str) -> dict[str, Any] | None:
        record = self._find_scraped_job(external_id=external_id, source=source)
        return deepcopy(record) if record else None

    async def get_scraped_job_by_typesense_id(self, *, typesense_id: str) -> dict[str, Any] | None:
        for record in self.scraped_jobs.values():
            if record["typesense_id"] == typesense_id:
                return deepcopy(record)
        return None

    async def list_scraped_jobs_by_status(self, *, status: str, limit: int | None = None) -> list[dict[str, Any]]:
        if status not in SCRAPED_JOB_STATUSES:
            raise RepositoryValidationError(f"status must be one of: {', '.join(SCRAPED_JOB_STATUSES)}")
        rows = sorted(
            (record for record in self.scraped_jobs.values() if record["status"] == status),
            key=lambda record: record["scraped_at"],
        )
        if limit is not None:
            rows = rows[:limit]
        return [deepcopy(row) for row in rows]

    async def list_recent_failed_scraped_jobs(self, *, limit: int = 100) -> list[dict[str, Any]]:
        rows = sorted(
            (record for record in self.scraped_jobs.values() if record["status"] == "failed"),
            key=lambda record: record["scraped_at"],
            reverse=True,
        )
        return [deepcopy(row) for row in rows[:limit]]

    async def get_scraped_job_stats(self) -> dict[str, int]:
        stats = {status: 0 for status in SCRAPED_JOB_STATUSES}
        for record in self.scraped_jobs.values():
            stats[record["status"]] += 1
        stats["total"] = len(self.scraped_jobs)
        return stats

    async def list_scraped_job_ids(self, *, limit: int) -> list[str]:
        return sorted(self.scraped_jobs)[:limit]

    async def delete_scraped_job(self, *, job_id: str) -> dict[str, Any]:
        record = self.scraped_jobs.pop(job_id, None)
        if record is None:
            raise RepositoryNotFoundError(f"Job not found: {job_id}")
        return {
            "external_id": record["external_id"],
            "source": record["source"],
            "typesense_id": record["typesense_id"],
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
        sender = self.senders.get(sender_id)
        return deepcopy(sender) if sender else None

    async def get_sender_by_phone(self, *, phone: str) -> dict[str, Any] | None:
        for sender in self.senders.values():
            if sender["phone"] == phone:
                return deepcopy(sender)
        return None

    async def get_or_create_sender(
        self,
        *,
        phone: str,
        name: str | None = None,
        company: str | None = None,
        email: str | None = None,
    ) -> dict[str, Any]:
        normalized_phone = phone.strip() if isinstance(phone, str) else ""
        if not normalized_phone:
            raise RepositoryValidationError("phone must be a non-empty string")
        existing = await self.get_sender_by_phone(phone=normalized_phone)
        if existing:
            return existing
        now = _now()
        sender = {
            "id": str(uuid4()),
            "phone": normalized_phone,
            "name": name,
            "company": company,
            "email": email,
            "status": "pending",
            "notes": None,
            "created_at": now,
            "updated_at": now,
        }
        self.senders[sender["id"]] = sender
        return deepcopy(sender)

    async def list_senders(self, *, status: str | None = None, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        if status is not None and status not in SENDER_STATUSES:
            raise RepositoryValidationError("status must be one of: pending, approved, blocked")
        rows = [sender for sender in self.senders.values() if status is None or sender["status"] == status]
        rows.sort(key=lambda sender: sender["created_at"], reverse=True)
        return [deepcopy(row) for row in rows[offset : offset + limit]]

    async def update_sender(self, *, sender_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        sender = self.senders.get(sender_id)
        if sender is None:
            raise RepositoryNotFoundError("Sender not found")
        for key in SENDER_UPDATE_FIELDS:
            if key in fields:
                sender[key] = fields[key]
        sender["updated_at"] = _now()
        return deepcopy(sender)

    async def update_sender_status(self, *, sender_id: str, status: str) -> dict[str, Any]:
        if status not in SENDER_STATUSES:
            raise RepositoryValidationError("status must be one of: pending, approved, blocked")
        sender = self.senders.get(sender_id)
        if sender is None:
            raise RepositoryNotFoundError("Sender not found")
        sender["status"] = status
        sender["updated_at"] = _now()
        if status == "approved":
            for message in self.inbound_messages.values():
                if message["phone"] == sender["phone"] and message["status"] == "pending_review":
                    message["status"] = "approved"
        return deepcopy(sender)

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
        if sender_id is not None and sender_id not in self.senders:
            raise RepositoryValidationError("sender not found")
        if any(message["twilio_message_sid"] == twilio_message_sid for message in self.inbound_messages.values()):
            raise RepositoryConflictError(f"message already recorded: {twilio_message_sid}")
        message = {
            "id": str(uuid4()),
            "phone": phone,
            "body": body,
            "twilio_message_sid": twilio_message_sid,
            "sender_id": sender_id,
            "status": status,
            "submission_id": None,
            "created_at": _now(),
        }
        self.inbound_messages[message["id"]] = message
        return self._message_with_sender(message)

    async def get_inbound_message(self, *, message_id: str) -> dict[str, Any]:
        message = self.inbound_messages.get(message_id)
        if message is None:
            raise RepositoryNotFoundError("Message not found")
        return self._message_with_sender(message)

    async def get_inbound_message_by_sid(self, *, twilio_message_sid: str) -> dict[str, Any] | None:
        for message in self.inbound_messages.values():
            if message["twilio_message_sid"] == twilio_message_sid:
                return self._message_with_sender(message)
        return None

    async def link_inbound_message_submission(self, *, message_id: str, submission_id: str) -> None:
        if submission_id not in self.submissions:
            raise RepositoryValidationError("submission_id must be a valid id")
        message = self.inbound_messages.get(message_id)
        if message is None:
            raise RepositoryNotFoundError("Message not found")
        message["submission_id"] = submission_id

    async def list_inbound_messages(self, *, status: str | None = None, limit: int = 100) -> list[dict[str, Any]]:
        if status is not None and status not in INBOUND_MESSAGE_STATUSES:
            raise RepositoryValidationError("invalid inbound message status")
        rows = [message for message in self.inbound_messages.values() if status is None or message["status"] == status]
        rows.sort(key=lambda message: message["created_at"], reverse=True)
        return [self._message_with_sender(row) for row in rows[:limit]]

    async def update_inbound_message_status(self, *, message_id: str, status: str) -> dict[str, Any]:
        if status not in INBOUND_MESSAGE_STATUSES:
            raise RepositoryValidationError("invalid inbound message status")
        message = self.inbound_messages.get(message_id)
        if message is None:
            raise RepositoryNotFoundError("Message not found")
        message["status"] = status
        return self._message_with_sender(message)

    async def delete_inbound_message(self, *, message_id: str) -> None:
        if self.inbound_messages.pop(message_id, None) is None:
            raise RepositoryNotFoundError("Message not found")

    # Job submissions

    async def create_submission(self, *, source: str, raw_content: str, sender_id: str | None = None) -> dict[str, Any]:
        if source not in SUBMISSION_SOURCES:
            raise RepositoryValidationError("source must be one of: sms, form")
        if sender_id is not None and sender_id not in self.senders:
            raise RepositoryValidationError("sender not found")
        submission = {
            "id": str(uuid4()),
            "source": source,
            "sender_id": sender_id,
            "raw_content": raw_content,
            "parsed_job": None,
            "status": "pending_parse",
            "approved_at": None,
            "approved_by": None,
            "denied_at": None,
            "deny_reason": None,
            "closed_at": None,
            "closed_reason": None,
            "created_at": _now(),
        }
        self.submissions[submission["id"]] = submission
        return self._submission_with_sender(submission)

    async def get_submission(self, *, submission_id: str) -> dict[str, Any] | None:
        submission = self.submissions.get(submission_id)
        return self._submission_with_sender(submission) if submission else None

    async def update_submission_parsed(self, *, submission_id: str, parsed_job: dict[str, Any]) -> dict[str, Any]:
        submission = self._require_submission(submission_id)
        submission["parsed_job"] = deepcopy(parsed_job)
        submission["status"] = "pending_approval"
        return self._submission_with_sender(submission)

    async def admin_update_parsed_submission(self, *, submission_id: str, parsed_job: dict[str, Any]) -> dict[str, Any]:
        submission = self._require_submission(submission_id)
        if submission["status"] != "pending_approval":
            raise RepositoryConflictError(
                f"Cannot edit job: status is {submission['status']}. Only pending_approval jobs can be edited."
            )
        submission["parsed_job"] = deepcopy(parsed_job)
        return self._submission_with_sender(submission)

    async def approve_submission(self, *, submission_id: str, approved_by: str) -> dict[str, Any]:
        submission = self._require_submission(submission_id)
        if submission["status"] == "closed":
            raise RepositoryConflictError("Cannot approve: status is closed")
        if submission["status"] != "approved":
            if submission["parsed_job"] is None:
                raise RepositoryConflictError("Job not parsed yet")
            submission["status"] = "approved"
            submission["approved_at"] = _now()
            submission["approved_by"] = approved_by
            sender = self.senders.get(submission["sender_id"] or "")
            if sender and sender["status"] == "pending":
                sender["status"] = "approved"
                sender["updated_at"] = _now()
        return self._submission_with_sender(submission)

    async def deny_submission(self, *, submission_id: str, reason: str | None = None) -> dict[str, Any]:
        submission = self._require_submission(submission_id)
        if submission["status"] == "closed":
            raise RepositoryConflictError("Cannot deny: status is closed")
        if submission["status"] != "denied":
            submission["status"] = "denied"
            submission["denied_at"] = _now()
            submission["deny_reason"] = (reason or "").strip() or "Denied"
        return self._submission_with_sender(submission)

    async def close_submission(self, *, submission_id: str, reason: str) -> dict[str, bool]:
        if reason not in SUBMISSION_CLOSE_REASONS:
            raise RepositoryValidationError("reason must be one of: employer_request, auto_expired")
        submission = self._require_submission(submission_id)
        if submission["status"] == "closed":
            return {"already_closed": True}
        if submission["status"] != "approved":
            raise RepositoryConflictError(f"Cannot close: status is {submission['status']}")
        submission["status"] = "closed"
        submission["closed_at"] = _now()
        submission["closed_reason"] = reason
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
        rows = [row for row in self.submissions.values() if status is None or row["status"] == status]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [self._submission_with_sender(row) for row in rows[offset : offset + limit]]

    async def list_open_submissions_by_sender(self, *, sender_id: str) -> list[dict[str, Any]]:
        rows = [
            row
            for row in self.submissions.values()
            if row["sender_id"] == sender_id and row["status"] == "approved"
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [self._submission_with_sender(row) for row in rows]

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
        if sender_id not in self.senders:
            raise RepositoryNotFoundError("Sender not found")
        existing = await self.get_employer_by_sender(sender_id=sender_id)
        if existing:
            return existing, True
        employer = {
            "id": str(uuid4()),
            "sender_id": sender_id,
            "name": name,
            "email": email,
            "company": company,
            "role": role,
            "website": website,
            "status": "pending_review",
            "approved_at": None,
            "approved_by": None,
            "created_at": _now(),
        }
        self.employers[employer["id"]] = employer
        return deepcopy(employer), False

    async def get_employer(self, *, employer_id: str) -> dict[str, Any] | None:
        employer = self.employers.get(employer_id)
        return deepcopy(employer) if employer else None

    async def get_employer_by_sender(self, *, sender_id: str) -> dict[str, Any] | None:
        for employer in self.employers.values():
            if employer["sender_id"] == sender_id:
                return deepcopy(employer)
        return None

    async def list_employers(self, *, status: str | None = None, limit: int = 50, offset: int = 0) -> list[dict[str, Any]]:
        if status is not None and status not in EMPLOYER_STATUSES:
            raise RepositoryValidationError("status must be one of: pending_review, approved, rejected")
        rows = [row for row in self.employers.values() if status is None or row["status"] == status]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [deepcopy(row) for row in rows[offset : offset + limit]]

    async def approve_employer(self, *, employer_id: str, approved_by: str) -> tuple[dict[str, Any], bool]:
        employer = self.employers.get(employer_id)
        if employer is None:
            raise RepositoryNotFoundError("Employer not found")
        if employer["status"] == "approved":
            return deepcopy(employer), False
        employer["status"] = "approved"
        employer["approved_at"] = _now()
        employer["approved_by"] = approved_by
        return deepcopy(employer), True

    async def reject_employer(self, *, employer_id: str) -> dict[str, Any]:
        employer = self.employers.get(employer_id)
        if employer is None:
            raise RepositoryNotFoundError("Employer not found")
        employer["status"] = "rejected"
        return deepcopy(employer)

    async def delete_employer(self, *, employer_id: str) -> None:
        if self.employers.pop(employer_id, None) is None:
            raise RepositoryNotFoundError("Employer not found")

    # Profiles and preferences

    async def get_profile_by_user(self, *, user_id: str) -> dict[str, Any] | None:
        for profile in self.profiles.values():
            if profile["user_id"] == user_id:
                return deepcopy(profile)
        return None

    async def upsert_profile(self, *, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        now = _now()
        profile = next((row for row in self.profiles.values() if row["user_id"] == user_id), None)
        if profile is None:
            profile = {"id": str(uuid4()), "user_id": user_id, "created_at": now}
            profile.update({key: None for key in PROFILE_FIELDS})
            self.profiles[profile["id"]] = profile
        for key in PROFILE_FIELDS:
            if key in fields:
                profile[key] = fields[key]
        profile["updated_at"] = now
        return deepcopy(profile)

    async def get_job_preferences(self, *, user_id: str) -> dict[str, Any] | None:
        preferences = self.preferences.get(user_id)
        return deepcopy(preferences) if preferences else None

    async def upsert_job_preferences(self, *, user_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        commute = fields.get("max_commute_minutes")
        if commute is not None and commute not in COMMUTE_MINUTES:
            raise RepositoryValidationError("max_commute_minutes must be one of: 10, 30, 60")
        preferences: dict[str, Any] = {"user_id": user_id}
        for key in JOB_PREFERENCE_FIELDS:
            preferences[key] = fields.get(key, None if key == "max_commute_minutes" else False)
        preferences["updated_at"] = _now()
        self.preferences[user_id] = preferences
        return deepcopy(preferences)

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
        existing = self.job_reviews.get((user_id, job_id))
        review = {
            "id": existing["id"] if existing else str(uuid4()),
            "user_id": user_id,
            "job_id": job_id,
            "status": status,
            "job_snapshot": deepcopy(job_snapshot),
            "reviewed_at": _now(),
        }
        self.job_reviews[(user_id, job_id)] = review
        return deepcopy(review)

    async def unsave_job(self, *, user_id: str, job_id: str) -> bool:
        return self.job_reviews.pop((user_id, job_id), None) is not None

    async def list_reviewed_job_ids(self, *, user_id: str) -> list[str]:
        return [job_id for owner, job_id in self.job_reviews if owner == user_id]

    async def list_saved_jobs(self, *, user_id: str) -> list[dict[str, Any]]:
        rows = [row for row in self.job_reviews.values() if row["user_id"] == user_id and row["status"] == "saved"]
        rows.sort(key=lambda row: row["reviewed_at"], reverse=True)
        return deepcopy(rows)

    # Applications

    async def create_application(
        self,
        *,
        job_submission_id: str,
        seeker_profile_id: str,
        resume_id: str | None = None,
    ) -> dict[str, Any]:
        submission = self.submissions.get(job_submission_id)
        if submission is None:
            raise RepositoryNotFoundError("Job not found")
        if submission["status"] != "approved":
            raise RepositoryConflictError("Job is not accepting applications")
        if seeker_profile_id not in self.profiles:
            raise RepositoryNotFoundError("Profile not found")

        existing = [row for row in self.applications.values() if row["job_submission_id"] == job_submission_id]
        if any(row["seeker_profile_id"] == seeker_profile_id for row in existing):
            raise RepositoryConflictError("Already applied to this job")

        application = {
            "id": str(uuid4()),
            "job_submission_id": job_submission_id,
            "seeker_profile_id": seeker_profile_id,
            "resume_id": resume_id,
            "status": "pending",
            "applied_at": _now(),
            "connected_at": None,
            "passed_at": None,
        }
        self.applications[application["id"]] = application
        return {"id": application["id"], "is_first_applicant": not existing}

    async def get_application_for_seeker(
        self, *, job_submission_id: str, seeker_profile_id: str
    ) -> dict[str, Any] | None:
        rows = sorted(
            (row for row in self.applications.values() if row["job_submission_id"] == job_submission_id),
            key=lambda row: row["applied_at"],
        )
        for index, row in enumerate(rows):
            if row["seeker_profile_id"] == seeker_profile_id:
                return {**self._application_with_seeker(row), "is_first_applicant": index == 0}
        return None

    async def has_applied(self, *, job_submission_id: str, seeker_profile_id: str) -> bool:
        return any(
            row["job_submission_id"] == job_submission_id and row["seeker_profile_id"] == seeker_profile_id
            for row in self.applications.values()
        )

    async def count_applications(self, *, job_submission_id: str) -> int:
        return sum(1 for row in self.applications.values() if row["job_submission_id"] == job_submission_id)

    async def list_applications_for_job(self, *, job_submission_id: str) -> list[dict[str, Any]]:
        rows = [row for row in self.applications.values() if row["job_submission_id"] == job_submission_id]
        rows.sort(key=lambda row: row["applied_at"], reverse=True)
        return [self._application_with_seeker(row) for row in rows]

    async def get_application(self, *, application_id: str) -> dict[str, Any] | None:
        application = self.applications.get(application_id)
        return self._application_with_seeker(application) if application else None

    async def mark_application_connected(self, *, application_id: str) -> dict[str, Any]:
        return self._mark_application(application_id, status="connected", column="connected_at")

    async def mark_application_passed(self, *, application_id: str) -> dict[str, Any]:
        return self._mark_application(application_id, status="passed", column="passed_at")

    def _mark_application(self, application_id: str, *, status: str, column: str) -> dict[str, Any]:
        application = self.applications.get(application_id)
        if application is None:
            raise RepositoryNotFoundError("Application not found")
        if application["status"] != status:
            application["status"] = status
            application[column] = _now()
        return self._application_with_seeker(application)

    # Internals

    def _find_scraped_job(self, *, external_id: str, source: str) -> dict[str, Any] | None:
        for record in self.scraped_jobs.values():
            if record["external_id"] == external_id and record["source"] == source:
                return record
        return None

    def _require_scraped_job(self, job_id: str) -> dict[str, Any]:
        record = self.scraped_jobs.get(job_id)
        if record is None:
            raise RepositoryNotFoundError(f"Job not found: {job_id}")
        return record

    def _require_submission(self, submission_id: str) -> dict[str, Any]:
        submission = self.submissions.get(submission_id)
        if submission is None:
            raise RepositoryNotFoundError("Submission not found")
        return submission

    def _submission_with_sender(self, submission: dict[str, Any]) -> dict[str, Any]:
        sender = self.senders.get(submission["sender_id"] or "")
        payload = deepcopy(submission)
        payload["sender_phone"] = sender["phone"] if sender else None
        payload["sender_name"] = sender["name"] if sender else None
        return payload

    def _message_with_sender(self, message: dict[str, Any]) -> dict[str, Any]:
        sender = self.senders.get(message["sender_id"] or "")
        payload = deepcopy(message)
        payload["sender_name"] = sender["name"] if sender else None
        payload["sender_status"] = sender["status"] if sender else None
        return payload

    def _application_with_seeker(self, application: dict[str, Any]) -> dict[str, Any]:
        profile = self.profiles.get(application["seeker_profile_id"])
        payload = deepcopy(application)
        payload["seeker_name"] = profile["name"] if profile else None
        payload["seeker_email"] = profile["email"] if profile else None
        payload["seeker_phone"] = profile["phone"] if profile else None
        return payload
