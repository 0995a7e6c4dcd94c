from .email_client import HttpEmailSender, LoggingEmailSender, build_email_sender

__all__ = ["HttpEmailSender", "LoggingEmailSender", "build_email_sender"]
