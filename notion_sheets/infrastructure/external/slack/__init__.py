from notion_sheets.infrastructure.external.slack.slack_notifier import SlackConfig, SlackNotifier


__all__ = ["SlackConfig", "SlackNotifier"]
