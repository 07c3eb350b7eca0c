"""
ReplyFlow Sync DAG

This DAG keeps the job catalog and derived state fresh:
1. Discovers new sources and syncs every source whose interval elapsed
2. Recalculates match scores for every user with a profile
3. Reconciles Pro subscriptions with the billing provider

Schedule: Every 3 hours, America/Sao_Paulo
"""
from datetime import datetime, timedelta

import pendulum
from airflow import DAG
from airflow.operators.empty import EmptyOperator
from airflow.operators.python import PythonOperator


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

TZ = pendulum.timezone("America/Sao_Paulo")

default_args = {
    "owner": "replyflow",
    "depends_on_past": False,
    "email_on_failure": False,
    "email_on_retry": False,
    "retries": 2,
    "retry_delay": timedelta(minutes=5),
    "retry_exponential_backoff": True,
    "max_retry_delay": timedelta(minutes=30),
}


# -----------------------------------------------------------------------------
# Task Callable Functions
# -----------------------------------------------------------------------------

def get_database_url() -> str:
    """
    Resolve the database URL.

    Order: Airflow connection 'replyflow_db', then DATABASE_URL, then
    POSTGRES_* variables (password optionally from the Docker secret).
    """
    import os
    from airflow.hooks.base import BaseHook

    try:
        conn = BaseHook.get_connection('replyflow_db')
        print("Using Airflow connection: replyflow_db")
        return conn.get_uri().replace('postgres://', 'postgresql://')
    except Exception as e:
        print(f"Warning: Could not get Airflow connection, trying environment variables: {e}")

    database_url = os.getenv('DATABASE_URL')
    if database_url:
        return database_url

    db_host = os.getenv('POSTGRES_HOST', 'postgres')
    db_port = os.getenv('POSTGRES_PORT', '5432')
    db_user = os.getenv('POSTGRES_USER', 'replyflow')
    db_password = os.getenv('POSTGRES_PASSWORD')
    db_name = os.getenv('POSTGRES_DB', 'replyflow')

    if not db_password:
        secret_path = '/run/secrets/postgres_password'
        if os.path.exists(secret_path):
            try:
                with open(secret_path, 'r', encoding='utf-8') as f:
                    db_password = f.read().strip()
            except UnicodeDecodeError:
                with open(secret_path, 'r', encoding='utf-16') as f:
                    db_password = f.read().strip()

    if not db_password:
        raise ValueError(
            "DATABASE_URL must be configured via Airflow connection 'replyflow_db' "
            "or environment variables (DATABASE_URL or POSTGRES_*)."
        )
    return f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


def sync_sources(**context):
    """Run discovery plus a scheduled sync over every enabled source."""
    from replyflow.contacts.db_operations import ContactsDB
    from replyflow.sources.db_operations import SourcesDB
    from replyflow.sources.main import run_sync
    from replyflow.sources.sync import SyncAlreadyRunningError, SyncOptions

    print("=" * 60)
    print("SYNC TASK - Starting")
    print("=" * 60)

    database_url = get_database_url()
    options = SyncOptions(run_discovery=True, enforce_schedule=True)

    try:
        result = run_sync(SourcesDB(database_url), ContactsDB(database_url), options)
    except SyncAlreadyRunningError:
        print("Another sync holds the lock; skipping this run")
        return {"skipped": True, "new_jobs": 0}

    failed = [item for item in result.results if item.status == 'failed']

    print("=" * 60)
    print("SYNC TASK - Completed")
    print("=" * 60)
    print(f"  - Sources: {len(result.results)}")
    print(f"  - New jobs: {result.total_new_jobs}")
    print(f"  - Failed: {len(failed)}")
    for item in failed:
        print(f"    {item.source}: {item.error}")
    print("=" * 60)

    return {"skipped": False, "new_jobs": result.total_new_jobs, "failed": len(failed)}


def calculate_matches(**context):
    """Recalculate match scores for every user with a profile."""
    from replyflow.matcher.config_loader import load_matching_config
    from replyflow.matcher.db_operations import MatcherDB
    from replyflow.matcher.main import run_matcher

    print("=" * 60)
    print("MATCH TASK - Starting")
    print("=" * 60)

    stats = run_matcher(MatcherDB(get_database_url()), load_matching_config())

    print(f"  - Users: {stats['users']}")
    print(f"  - Scored jobs: {stats['scored_jobs']}")
    print(f"  - Failed: {stats['failed']}")
    print("=" * 60)

    if stats['failed'] and not stats['users']:
        raise RuntimeError("Match score recalculation failed for every user")
    return stats


def reconcile_billing(**context):
    """Reconcile live subscriptions with the billing provider."""
    from replyflow.billing import (
        BillingService,
        get_billing_config,
        get_billing_provider,
        reconcile_stale_billing,
    )
    from replyflow.billing.db_operations import BillingDB

    print("=" * 60)
    print("BILLING TASK - Starting")
    print("=" * 60)

    config = get_billing_config()
    service = BillingService(BillingDB(get_database_url()), get_billing_provider(config), config)
    results = reconcile_stale_billing(service)
    failures = [result for result in results if not result.success]

    print(f"  - Users: {len(results)}")
    print(f"  - Failed: {len(failures)}")
    for result in failures:
        print(f"    {result.user_id}: {result.error}")
    print("=" * 60)

    return {"users": len(results), "failed": len(failures)}


# -----------------------------------------------------------------------------
# DAG Definition
# -----------------------------------------------------------------------------

with DAG(
    dag_id="replyflow_sync",
    default_args=default_args,
    description="Source sync, match scores and billing reconciliation",
    schedule="0 */3 * * *",
    start_date=datetime(2026, 1, 1, tzinfo=TZ),
    catchup=False,
    max_active_runs=1,
    tags=["replyflow", "sync", "billing"],
) as dag:

    start = EmptyOperator(task_id="start")

    sync = PythonOperator(
        task_id="sync_sources",
        python_callable=sync_sources,
        retries=1,
        doc_md="""
        **Sync job sources**

        - Inserts catalog sources that are not stored yet
        - Fetches every enabled source whose interval elapsed
        - Parses postings and upserts direct contacts
        """
    )

    matches = PythonOperator(
        task_id="calculate_matches",
        python_callable=calculate_matches,
        doc_md="""
        **Recalculate match scores**

        - Reads config/matching.yml for weights
        - Upserts job_match_scores for every user with a profile
        """
    )

    billing = PythonOperator(
        task_id="reconcile_billing",
        python_callable=reconcile_billing,
        trigger_rule="all_done",
        doc_md="""
        **Reconcile billing**

        - Refreshes subscriptions and payments from Asaas
        - Re-projects the Pro entitlement into user_plan
        - Runs even if the sync failed
        """
    )

    end = EmptyOperator(task_id="end", trigger_rule="all_done")

    start >> sync >> matches >> billing >> end
