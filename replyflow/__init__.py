"""ReplyFlow services.

Job aggregation, contact outreach and subscription billing for job seekers.
Each subpackage is a small service that can be run from the command line
(``python -m replyflow.<service>.main``) or used from the HTTP API.
"""

__version__ = "0.1.0"
