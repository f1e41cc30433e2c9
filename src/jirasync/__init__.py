"""jirasync: mirror Jira projects and issues from inbound webhooks."""

__version__ = "0.3.0"
