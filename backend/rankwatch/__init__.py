"""RankWatch: weekly SERP rank tracking, alerting and reporting."""

__version__ = "1.0.0"
