"""
ReplyFlow API server.

Usage:
    python -m replyflow.api.main [--host HOST] [--port PORT] [--reload]

Environment:
    DATABASE_URL            PostgreSQL connection URL (required)
    REPLYFLOW_SYNC_TOKEN    Token for POST /api/sync/system
    SMTP_HOST, SMTP_FROM    Outreach email delivery (optional)
    ASAAS_*, BILLING_*      Billing configuration (needed by /api/billing)
"""

import argparse
import logging
import sys

import uvicorn
from dotenv import load_dotenv

from .app import create_app

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description='Run the ReplyFlow HTTP API')

    parser.add_argument(
        '--host',
        type=str,
        default='0.0.0.0',
        help='Bind address (default: 0.0.0.0)'
    )

    parser.add_argument(
        '--port',
        type=int,
        default=8000,
        help='Port (default: 8000)'
    )

    parser.add_argument(
        '--reload',
        action='store_true',
        help='Reload on code changes (development only)'
    )

    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logger.info(f"Starting ReplyFlow API on {args.host}:{args.port}")

    if args.reload:
        uvicorn.run('replyflow.api.main:create_app', factory=True, host=args.host, port=args.port, reload=True)
    else:
        uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


if __name__ == '__main__':
    sys.exit(main())
