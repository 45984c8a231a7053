"""Scheduled jobs for PsicoZen."""

from .retention_cron import purge_expired_submissions, run_retention_job

__all__ = ["purge_expired_submissions", "run_retention_job"]
