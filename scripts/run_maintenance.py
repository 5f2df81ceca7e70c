"""
Run the scheduled cleanup jobs once.
Intended to be invoked from cron: lockouts every 6 hours, rate limits hourly, audit logs and
expired verification links daily.
Pass job names to run a subset, e.g. `python scripts/run_maintenance.py rate_limits webhooks`.
"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from middleware.global_rate_limit import cleanup_old_records
from utils.account_lockout import cleanup_lockout_records
from utils.audit_logger import cleanup_audit_logs
from utils.email_verification import cleanup_verification_tokens
from utils.logger import setup_logging
from utils.webhook_dispatcher import process_due_retries

JOBS = {
    "lockouts": cleanup_lockout_records,
    "rate_limits": cleanup_old_records,
    "audit_logs": cleanup_audit_logs,
    "webhooks": process_due_retries,
    "verification_tokens": cleanup_verification_tokens,
}


async def run_maintenance(job_names):
    logger = setup_logging()
    results = {}
    for name in job_names:
        results[name] = await JOBS[name]()
        logger.info(f"Maintenance job '{name}' finished: {results[name]}")
    return results


if __name__ == "__main__":
    requested = sys.argv[1:] or list(JOBS)
    unknown = [name for name in requested if name not in JOBS]
    if unknown:
        print(f"Unknown job(s): {', '.join(unknown)}. Available: {', '.join(JOBS)}")
        sys.exit(1)

    for name, count in asyncio.run(run_maintenance(requested)).items():
        print(f"{name}: {count}")
